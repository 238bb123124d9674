"""
Ledger and ticket payload normalization.

Payloads have been published under several naming conventions over time
(camelCase, PascalCase, snake_case, plus a few irregular spellings). Each
canonical field declares its aliases in priority order; the first alias
holding a non-null value wins, otherwise the converter's default applies.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .content import extract_content_message
from .models import (
    DrawingResults,
    LedgerSnapshot,
    LotteryParameters,
    SignatureBundle,
    TicketPayload,
    TicketSummary,
    TopWinningTicket,
)

log = logging.getLogger(__name__)

Aliases = Tuple[str, ...]
FieldTable = Dict[str, Tuple[Aliases, Callable[[Any], Any]]]

HEX_RE = re.compile(r"[0-9a-fA-F]+")
DRAWING_HASH_NIBBLES = 64
TICKET_INDEX_RE = re.compile(r"\d+_(\d+of\d+)")


def probe(obj: Mapping[str, Any], aliases: Aliases) -> Any:
    for name in aliases:
        value = obj.get(name)
        if value is not None:
            return value
    return None


# Converters: each maps a probed value (None when absent) to the field value.

def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _opt_text(value: Any) -> Optional[str]:
    return None if value is None else _text(value)


def _opt_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and re.fullmatch(r"-?\d+", value.strip()):
        return int(value.strip())
    return None


def _count(value: Any) -> int:
    parsed = _opt_int(value)
    return 0 if parsed is None else parsed


def _opt_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _opt_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _obj(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _phase(value: Any) -> str:
    return _text(value) or "Unknown"


def read_fields(obj: Mapping[str, Any], table: FieldTable) -> Dict[str, Any]:
    return {name: convert(probe(obj, aliases)) for name, (aliases, convert) in table.items()}


# Ledger

LEDGER_SECTIONS: Dict[str, Aliases] = {
    "lottery_parameters": ("lotteryParameters", "LotteryParameters", "lottery_parameters"),
    "ticket_summary": ("ticketSummary", "TicketSummary", "ticket_summary"),
    "drawing_results": ("drawingResults", "DrawingResults", "drawing_results"),
    "timelock_status": ("timelockStatus", "TimelockStatus", "timelock_status"),
    "marketplace_status": ("marketplaceStatus", "MarketplaceStatus", "marketplace_status"),
    "payout_summary": ("payoutSummary", "PayoutSummary", "payout_summary"),
    "distribution_summary": ("distributionSummary", "DistributionSummary", "distribution_summary"),
    "operational_metrics": ("operationalMetrics", "OperationalMetrics", "operational_metrics"),
    "security_metrics": ("securityMetrics", "SecurityMetrics", "security_metrics"),
    "utilities": ("utilities", "Utilities"),
    "financial_summary": ("financialSummary", "FinancialSummary", "financial_summary"),
    "phase_status": ("phaseStatus", "PhaseStatus", "phase_status"),
}

LEDGER_FIELDS: FieldTable = {
    "ledger_version": (("ledgerVersion", "LedgerVersion", "ledger_version"), _opt_text),
    "last_updated": (("lastUpdated", "LastUpdated", "last_updated"), _opt_text),
    "current_phase": (("currentPhase", "CurrentPhase", "current_phase"), _phase),
    "drawing_id": (("drawingId", "DrawingId", "drawing_id"), _opt_text),
}

DRAWING_RESULT_FIELDS: FieldTable = {
    "drawing_hash": (("drawingHash", "DrawingHash", "drawing_hash"), _text),
    "drawing_timestamp": (("drawingTimestamp", "DrawingTimestamp", "drawing_timestamp"), _opt_text),
    "winner_status": (("winnerStatus", "WinnerStatus", "winner_status"), _opt_text),
    "verification_status": (("verificationStatus", "VerificationStatus", "verification_status"), _opt_text),
    "drawing_method": (("drawingMethod", "DrawingMethod", "drawing_method"), _opt_text),
    "top_ticket_authentic": (("topTicketAuthentic", "TopTicketAuthentic", "top_ticket_authentic"), _opt_bool),
}

TOP_TICKET_FIELDS: FieldTable = {
    "name": (("topWinningTicket", "TopWinningTicket", "top_winning_ticket"), _text),
    "matches": (("topTicketMatches", "TopTicketMatches", "top_ticket_matches"), _opt_int),
    "score": (("topTicketScore", "TopTicketScore", "top_ticket_score"), _opt_int),
}

LOTTERY_PARAMETER_FIELDS: FieldTable = {
    "main_identity": (
        ("mainVerusID", "MainVerusID", "main_verus_id", "mainLotteryID", "MainLotteryID"),
        _text,
    ),
    "drawing_block": (("drawingBlock", "DrawingBlock", "drawing_block"), _count),
    "required_matches": (("requiredMatches", "RequiredMatches", "required_matches"), _count),
    "r_address_for_tickets": (("rAddressForTickets", "RAddressForTickets", "r_address_for_tickets"), _text),
    "claimed_tickets_address": (
        ("claimedTicketsAddress", "ClaimedTicketsAddress", "claimed_tickets_address"),
        _text,
    ),
    "start_block": (("startBlock", "StartBlock", "start_block"), _opt_int),
    "target_drawing_block": (("targetDrawingBlock", "TargetDrawingBlock", "target_drawing_block"), _opt_int),
    "ticket_price": (("ticketPrice", "TicketPrice", "ticket_price"), _opt_number),
    "ticket_multiplier": (("ticketMultiplier", "TicketMultiplier", "ticket_multiplier"), _opt_number),
    "jackpot_minimum": (("jackpotMinimum", "JackpotMinimum", "jackpot_minimum"), _opt_number),
    "jackpot_ceiling_cap": (("jackpotCeilingCap", "JackpotCeilingCap", "jackpot_ceiling_cap"), _opt_number),
    "grace_period": (("gracePeriod", "GracePeriod", "grace_period"), _opt_int),
    "confirmations": (("confirmations", "Confirmations"), _opt_int),
    "payout_offer_expiry": (("payoutOfferExpiry", "PayoutOfferExpiry", "payout_offer_expiry"), _opt_int),
    "offer_expiry_offset": (("offerExpiryOffset", "OfferExpiryOffset", "offer_expiry_offset"), _opt_int),
    "next_jackpot_percent": (("nextJackpotPercent", "NextJackpotPercent", "next_jackpot_percent"), _opt_number),
    "operations_percent": (("operationsPercent", "OperationsPercent", "operations_percent"), _opt_number),
}

TICKET_SUMMARY_FIELDS: FieldTable = {
    "planned": (("planned", "Planned"), _count),
    "generated": (("generated", "Generated"), _opt_int),
    "registered": (("registered", "Registered"), _opt_int),
    "data_updated": (("dataUpdated", "DataUpdated", "data_updated"), _opt_int),
    "data_failed": (("dataFailed", "DataFailed", "data_failed"), _opt_int),
    "on_marketplace": (("onMarketplace", "OnMarketplace", "on_marketplace"), _opt_int),
    "sold": (("sold", "Sold"), _opt_int),
    "verified": (("verified", "Verified"), _opt_int),
    "verification_results": (
        ("verificationResults", "VerificationResults", "verification_results"),
        _obj,
    ),
}


def _top_winning_ticket(drawing: Mapping[str, Any]) -> Optional[TopWinningTicket]:
    fields = read_fields(drawing, TOP_TICKET_FIELDS)
    if not fields["name"]:
        return None
    # "773160_6of9" or "773160_6of9.vlotto@" -> "6of9"
    m = TICKET_INDEX_RE.search(fields["name"])
    return TopWinningTicket(index=m.group(1) if m else None, **fields)


def normalize_ledger(data: Mapping[str, Any]) -> Optional[LedgerSnapshot]:
    sections = {name: _obj(probe(data, aliases)) for name, aliases in LEDGER_SECTIONS.items()}

    drawing = sections.pop("drawing_results")
    drawing_results = DrawingResults(
        top_winning_ticket=_top_winning_ticket(drawing),
        **read_fields(drawing, DRAWING_RESULT_FIELDS),
    )
    lottery_parameters = LotteryParameters(**read_fields(sections.pop("lottery_parameters"), LOTTERY_PARAMETER_FIELDS))
    ticket_summary = TicketSummary(**read_fields(sections.pop("ticket_summary"), TICKET_SUMMARY_FIELDS))

    if ticket_summary.planned < 0:
        log.warning("Ledger rejected: negative planned ticket count %d", ticket_summary.planned)
        return None
    drawing_hash = drawing_results.drawing_hash
    if drawing_hash.strip() and not (len(drawing_hash) == DRAWING_HASH_NIBBLES and HEX_RE.fullmatch(drawing_hash)):
        log.warning("Ledger rejected: drawing hash is not %d hex digits", DRAWING_HASH_NIBBLES)
        return None

    return LedgerSnapshot(
        drawing_results=drawing_results,
        lottery_parameters=lottery_parameters,
        ticket_summary=ticket_summary,
        **read_fields(data, LEDGER_FIELDS),
        **sections,
    )


def _decode_object(message: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(message)
    except (ValueError, RecursionError) as e:
        log.debug("Payload is not valid JSON: %s", e)
        return None
    if not isinstance(data, dict):
        log.debug("Payload is not a JSON object")
        return None
    return data


def parse_ledger_message(message: str) -> Optional[LedgerSnapshot]:
    data = _decode_object(message)
    if data is None:
        return None
    return normalize_ledger(data)


def parse_ledger_data(identity: Any) -> Optional[LedgerSnapshot]:
    message = extract_content_message(identity)
    if not message:
        return None
    return parse_ledger_message(message)


# Tickets

TICKET_SECTIONS: Dict[str, Aliases] = {
    "ticket_validation": ("ticket_validation", "TicketValidation", "ticketValidation"),
    "proofguard_acknowledgement": (
        "proofguard_acknowledgement",
        "ProofguardAcknowledgement",
        "proofguardAcknowledgement",
    ),
}

TICKET_FIELDS: FieldTable = {
    "playing_number": (("playing_number", "PlayingNumber", "playingNumber", "playingnumber"), _text),
    "registration_txid": (
        ("registration_txid", "RegistrationTxID", "registrationTxid", "registrationTxID"),
        _text,
    ),
}

TICKET_VALIDATION_FIELDS: FieldTable = {
    "signature": (
        ("signed_by_ticket_signature", "SignedByTicketSignature", "signedByTicketSignature"),
        _text,
    ),
    "hash": (("signed_by_ticket_hash", "SignedByTicketHash", "signedByTicketHash"), _text),
}

PROOFGUARD_FIELDS: FieldTable = {
    "signature": (
        ("signed_by_proofguard_signature", "SignedByProofguardSignature", "signedByProofguardSignature"),
        _text,
    ),
    "hash": (("signed_by_proofguard_hash", "SignedByProofguardHash", "signedByProofguardHash"), _text),
}


def normalize_ticket(data: Mapping[str, Any]) -> TicketPayload:
    validation = _obj(probe(data, TICKET_SECTIONS["ticket_validation"]))
    proofguard = _obj(probe(data, TICKET_SECTIONS["proofguard_acknowledgement"]))
    return TicketPayload(
        ticket_validation=SignatureBundle(**read_fields(validation, TICKET_VALIDATION_FIELDS)),
        proofguard_acknowledgement=SignatureBundle(**read_fields(proofguard, PROOFGUARD_FIELDS)),
        **read_fields(data, TICKET_FIELDS),
    )


def parse_ticket_message(message: str) -> Optional[TicketPayload]:
    data = _decode_object(message)
    if data is None:
        return None
    return normalize_ticket(data)


def parse_ticket_data(content: Any) -> Optional[TicketPayload]:
    message = extract_content_message(content)
    if not message:
        return None
    return parse_ticket_message(message)
