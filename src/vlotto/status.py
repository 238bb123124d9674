from __future__ import annotations

import logging
from typing import Optional

import base58

from .config import normalize_chain
from .models import TicketStatus
from .project_constants import (
    GRAVEYARD_ADDRESSES,
    I_ADDRESS_VERSION,
    R_ADDRESS_VERSION,
    TESTNET_CHAIN,
)

log = logging.getLogger(__name__)


def network_for_chain(chain: Optional[str]) -> str:
    """Graveyard network key; anything but the testnet uses mainnet's."""
    return "VRSCTEST" if normalize_chain(chain) == TESTNET_CHAIN else "VRSC"


def graveyard_address(chain: Optional[str]) -> str:
    return GRAVEYARD_ADDRESSES[network_for_chain(chain)]


def address_version(address: str) -> Optional[int]:
    """
    Version byte of a base58check address (60 for R-addresses, 102 for
    i-addresses), or None when the checksum or length is wrong.
    """
    try:
        raw = base58.b58decode_check(address)
    except ValueError:
        return None
    if len(raw) != 21:
        return None
    return raw[0]


def is_r_address(address: str) -> bool:
    return address_version(address) == R_ADDRESS_VERSION


def is_i_address(address: str) -> bool:
    return address_version(address) == I_ADDRESS_VERSION


def classify_status(
    address: Optional[str],
    *,
    chain: Optional[str],
    r_address_for_tickets: str,
    claimed_tickets_address: str = "",
) -> TicketStatus:
    """
    sold/discarded/claimed from a ticket's current primary address.

    The three predicates are independent. A claimed ticket is also sold;
    a claimed ticket that is discarded or unsold means the ledger's
    reference addresses overlap. That is logged and reported as is.
    """
    if not address:
        return TicketStatus()

    graveyard = graveyard_address(chain)
    claimed = bool(claimed_tickets_address) and address == claimed_tickets_address
    discarded = address == graveyard
    sold = address != graveyard and address != r_address_for_tickets

    status = TicketStatus(sold=sold, discarded=discarded, claimed=claimed)
    if claimed and (discarded or not sold):
        log.warning(
            "Address %s matches more than one ticket state (sold=%s discarded=%s claimed=%s)",
            address,
            sold,
            discarded,
            claimed,
        )
    if address_version(address) is None:
        log.debug("Primary address %s is not a valid base58check address", address)
    return status
