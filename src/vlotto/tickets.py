from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional

from .errors import TicketNotResolved, VlottoError
from .models import TicketFetch
from .project_constants import TICKET_NAME_FALLBACK_ATTEMPTS, VDXF_TICKET_FINALIZED_DATA
from .rpc import RpcClient
from .schema import parse_ticket_data

log = logging.getLogger(__name__)


def trim_main_identity(main_identity: str) -> str:
    """Strip one trailing '@'."""
    return main_identity[:-1] if main_identity.endswith("@") else main_identity


def generate_ticket_name(drawing_block: int, index: int, planned: int, main_identity: str) -> str:
    """<drawingBlock>_<idx>of<planned>.<main-trimmed>@"""
    return f"{drawing_block}_{index}of{planned}.{trim_main_identity(main_identity)}@"


def proofguard_identity_name(main_identity: str) -> str:
    return f"proofguard.{trim_main_identity(main_identity)}@"


def fallback_ticket_names(drawing_block: int, index: int, planned: int, main_identity: str) -> List[str]:
    """
    Names tried after the deterministic one fails. Identity minting may
    append disambiguating digits to the lottery's main identity that the
    ledger does not carry, so drop one trailing character per attempt.
    """
    names: List[str] = []
    trimmed = trim_main_identity(main_identity)
    for _ in range(TICKET_NAME_FALLBACK_ATTEMPTS):
        trimmed = trimmed[:-1]
        if not trimmed:
            break
        names.append(generate_ticket_name(drawing_block, index, planned, trimmed + "@"))
    return names


async def _fetch_one(
    rpc: RpcClient, name: str, chain: Optional[str], vdxf_key: str
) -> TicketFetch:
    content = await rpc.get_identity_content(
        name,
        height_start=None,
        height_end=None,
        tx_proofs=False,
        vdxf_key=vdxf_key,
        chain=chain,
    )
    payload = parse_ticket_data(content)
    if payload is None:
        raise VlottoError(f"No ticket payload in content of {name}")

    # Current state, for custody-based status
    identity = await rpc.get_identity(name, chain=chain)
    return TicketFetch(name=name, content=content, payload=payload, identity=identity)


async def resolve_ticket(
    rpc: RpcClient,
    ticket_name: str,
    chain: Optional[str] = None,
    vdxf_key: Optional[str] = None,
    main_identity: Optional[str] = None,
    index: Optional[int] = None,
    planned: Optional[int] = None,
    drawing_block: Optional[int] = None,
) -> TicketFetch:
    """
    Fetch a ticket's content and identity, degrading to shortened main
    identity names when the deterministic name fails. The fallback runs
    only when main_identity, index, planned and drawing_block are all
    given. Raises TicketNotResolved after the last attempt.
    """
    key = vdxf_key or VDXF_TICKET_FINALIZED_DATA
    candidates = [ticket_name]
    if None not in (main_identity, index, planned, drawing_block):
        candidates += fallback_ticket_names(drawing_block, index, planned, main_identity)

    attempts: List[str] = []
    reason = ""
    for name in candidates:
        attempts.append(name)
        try:
            fetched = await _fetch_one(rpc, name, chain, key)
        except Exception as e:
            reason = str(e) or type(e).__name__
            log.debug("Ticket name %s failed: %s", name, reason)
            continue
        if len(attempts) > 1:
            log.info("Ticket %s resolved under fallback name %s", ticket_name, name)
        return replace(fetched, attempts=tuple(attempts))

    raise TicketNotResolved(index, attempts, reason)


async def fetch_ticket(
    rpc: RpcClient,
    ticket_name: str,
    chain: Optional[str] = None,
    vdxf_key: Optional[str] = None,
    main_identity: Optional[str] = None,
    index: Optional[int] = None,
    planned: Optional[int] = None,
    drawing_block: Optional[int] = None,
) -> Optional[TicketFetch]:
    """Like resolve_ticket, but None when no name resolves."""
    try:
        return await resolve_ticket(
            rpc,
            ticket_name,
            chain=chain,
            vdxf_key=vdxf_key,
            main_identity=main_identity,
            index=index,
            planned=planned,
            drawing_block=drawing_block,
        )
    except TicketNotResolved as e:
        log.debug("%s", e)
        return None
