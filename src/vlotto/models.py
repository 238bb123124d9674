from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class TopWinningTicket:
    name: str
    matches: Optional[int]
    score: Optional[int]
    index: Optional[str]  # "<idx>of<planned>" token


@dataclass(frozen=True)
class DrawingResults:
    drawing_hash: str = ""
    drawing_timestamp: Optional[str] = None
    winner_status: Optional[str] = None
    verification_status: Optional[str] = None
    drawing_method: Optional[str] = None
    top_ticket_authentic: Optional[bool] = None
    top_winning_ticket: Optional[TopWinningTicket] = None


@dataclass(frozen=True)
class LotteryParameters:
    main_identity: str = ""
    drawing_block: int = 0
    required_matches: int = 0
    r_address_for_tickets: str = ""
    claimed_tickets_address: str = ""
    start_block: Optional[int] = None
    target_drawing_block: Optional[int] = None
    ticket_price: Optional[float] = None
    ticket_multiplier: Optional[float] = None
    jackpot_minimum: Optional[float] = None
    jackpot_ceiling_cap: Optional[float] = None
    grace_period: Optional[int] = None
    confirmations: Optional[int] = None
    payout_offer_expiry: Optional[int] = None
    offer_expiry_offset: Optional[int] = None
    next_jackpot_percent: Optional[float] = None
    operations_percent: Optional[float] = None


@dataclass(frozen=True)
class TicketSummary:
    planned: int = 0
    generated: Optional[int] = None
    registered: Optional[int] = None
    data_updated: Optional[int] = None
    data_failed: Optional[int] = None
    on_marketplace: Optional[int] = None
    sold: Optional[int] = None
    verified: Optional[int] = None
    verification_results: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LedgerSnapshot:
    """Canonical ledger state.

    The informational sections (timelock, marketplace, payout, ...) are
    carried for display and never interpreted by scoring or caching.
    """

    current_phase: str
    drawing_results: DrawingResults
    lottery_parameters: LotteryParameters
    ticket_summary: TicketSummary
    ledger_version: Optional[str] = None
    last_updated: Optional[str] = None
    drawing_id: Optional[str] = None
    phase_status: Dict[str, Any] = field(default_factory=dict)
    timelock_status: Dict[str, Any] = field(default_factory=dict)
    marketplace_status: Dict[str, Any] = field(default_factory=dict)
    payout_summary: Dict[str, Any] = field(default_factory=dict)
    distribution_summary: Dict[str, Any] = field(default_factory=dict)
    operational_metrics: Dict[str, Any] = field(default_factory=dict)
    security_metrics: Dict[str, Any] = field(default_factory=dict)
    utilities: Dict[str, Any] = field(default_factory=dict)
    financial_summary: Dict[str, Any] = field(default_factory=dict)

    @property
    def drawing_block(self) -> int:
        return self.lottery_parameters.drawing_block

    @property
    def drawing_hash(self) -> str:
        return self.drawing_results.drawing_hash

    @property
    def has_drawing_hash(self) -> bool:
        return bool(self.drawing_hash.strip())

    @property
    def main_identity(self) -> str:
        return self.lottery_parameters.main_identity

    @property
    def r_address_for_tickets(self) -> str:
        return self.lottery_parameters.r_address_for_tickets

    @property
    def claimed_tickets_address(self) -> str:
        return self.lottery_parameters.claimed_tickets_address

    @property
    def planned_ticket_count(self) -> int:
        return self.ticket_summary.planned

    @property
    def required_matches(self) -> int:
        return self.lottery_parameters.required_matches


@dataclass(frozen=True)
class SignatureBundle:
    signature: str = ""
    hash: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.signature) and bool(self.hash)


@dataclass(frozen=True)
class TicketPayload:
    """What a ticket identity publishes about itself."""

    playing_number: str = ""
    registration_txid: str = ""
    ticket_validation: SignatureBundle = SignatureBundle()
    proofguard_acknowledgement: SignatureBundle = SignatureBundle()


@dataclass(frozen=True)
class TicketStatus:
    sold: bool = False
    discarded: bool = False
    claimed: bool = False


@dataclass(frozen=True)
class TicketScore:
    matches: int = 0
    score: int = 0


@dataclass(frozen=True)
class TicketRecord:
    name: str
    index: int
    playing_number: str
    registration_txid: str
    sold: bool = False
    discarded: bool = False
    claimed: bool = False
    matches: int = 0
    score: int = 0
    ticket_validation: SignatureBundle = SignatureBundle()
    proofguard_acknowledgement: SignatureBundle = SignatureBundle()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "index": self.index,
            "playing_number": self.playing_number,
            "registration_txid": self.registration_txid,
            "sold": self.sold,
            "discarded": self.discarded,
            "claimed": self.claimed,
            "matches": self.matches,
            "score": self.score,
            "ticket_validation": {
                "signature": self.ticket_validation.signature,
                "hash": self.ticket_validation.hash,
            },
            "proofguard_acknowledgement": {
                "signature": self.proofguard_acknowledgement.signature,
                "hash": self.proofguard_acknowledgement.hash,
            },
        }


@dataclass(frozen=True)
class TicketFetch:
    """Raw and normalized data for one resolved ticket identity."""

    name: str
    content: Dict[str, Any]
    payload: TicketPayload
    identity: Dict[str, Any]
    attempts: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SkippedTicket:
    index: int
    name: str
    reason: str


@dataclass(frozen=True)
class EnumerationResult:
    planned: int
    tickets: List[TicketRecord]
    skipped: List[SkippedTicket]

    @property
    def complete(self) -> bool:
        return not self.skipped
