"""
Four-step ticket authenticity check.

    1. ticket T signed its registration txid:  verifymessage(T, sig1, regtx)
    2. ticket T signed hash1:                  verifyhash(T, sig1, hash1)
    3. proofguard co-signed T's signature:     verifymessage(P, sig2, sig1)
    4. proofguard signed hash2:                verifyhash(P, sig2, hash2)

with P = proofguard.<main identity>@. Every step runs even when an
earlier one raised, so the result always says which checks failed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .models import TicketRecord
from .rpc import RpcClient
from .tickets import proofguard_identity_name

log = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    ticket_signed_registration: bool = False
    ticket_signed_hash: bool = False
    proofguard_signed_ticket_sig: bool = False
    proofguard_signed_hash: bool = False
    errors: List[str] = field(default_factory=list)
    success: bool = False

    @property
    def checks(self) -> Dict[str, bool]:
        return {
            "ticket_signed_registration": self.ticket_signed_registration,
            "ticket_signed_hash": self.ticket_signed_hash,
            "proofguard_signed_ticket_sig": self.proofguard_signed_ticket_sig,
            "proofguard_signed_hash": self.proofguard_signed_hash,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "checks": self.checks, "errors": list(self.errors)}


def missing_signature_data(ticket: TicketRecord) -> Optional[str]:
    if not ticket.ticket_validation.is_complete or not ticket.proofguard_acknowledgement.is_complete:
        return "Missing signature data"
    if not ticket.registration_txid:
        return "Missing registration txid"
    return None


async def verify_ticket_authenticity(
    rpc: RpcClient,
    ticket: TicketRecord,
    main_identity: str,
    chain: Optional[str] = None,
) -> VerificationResult:
    result = VerificationResult()

    missing = missing_signature_data(ticket)
    if missing:
        result.errors.append(missing)
        return result

    sig1 = ticket.ticket_validation.signature
    hash1 = ticket.ticket_validation.hash
    sig2 = ticket.proofguard_acknowledgement.signature
    hash2 = ticket.proofguard_acknowledgement.hash
    proofguard = proofguard_identity_name(main_identity)

    steps: List[Tuple[str, Callable[[], Awaitable[bool]]]] = [
        (
            "ticket_signed_registration",
            lambda: rpc.verify_message(ticket.name, sig1, ticket.registration_txid, False, chain=chain),
        ),
        (
            "ticket_signed_hash",
            lambda: rpc.verify_hash(ticket.name, sig1, hash1, False, chain=chain),
        ),
        (
            "proofguard_signed_ticket_sig",
            lambda: rpc.verify_message(proofguard, sig2, sig1, False, chain=chain),
        ),
        (
            "proofguard_signed_hash",
            lambda: rpc.verify_hash(proofguard, sig2, hash2, False, chain=chain),
        ),
    ]

    for number, (attr, check) in enumerate(steps, start=1):
        try:
            setattr(result, attr, bool(await check()))
        except Exception as e:
            log.warning("Ticket %s check %d raised: %s", ticket.name, number, e)
            result.errors.append(f"Check {number} failed: {e}")

    result.success = all(result.checks.values())
    if not result.success:
        log.info("Ticket %s failed verification: %s", ticket.name, result.checks)
    return result


async def is_ticket_verified(
    rpc: RpcClient, ticket: TicketRecord, main_identity: str, chain: Optional[str] = None
) -> bool:
    result = await verify_ticket_authenticity(rpc, ticket, main_identity, chain)
    return result.success
