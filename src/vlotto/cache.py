"""
In-memory lottery cache.

Every mutation builds a new immutable ``CacheState`` and swaps it in, so a
reader holding a state never sees a half-updated slot. Nothing survives
the process.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Tuple

from .models import LedgerSnapshot, TicketRecord

log = logging.getLogger(__name__)

EMPTY_TICKETS: Mapping[str, TicketRecord] = MappingProxyType({})


@dataclass(frozen=True)
class LedgerSlot:
    snapshot: Optional[LedgerSnapshot] = None
    raw_source: Any = None
    last_fetched_at: float = 0.0
    observed_height: int = 0
    parent_address: Optional[str] = None


@dataclass(frozen=True)
class CacheState:
    ledger: LedgerSlot = LedgerSlot()
    tickets: Mapping[str, TicketRecord] = field(default_factory=lambda: EMPTY_TICKETS)
    ranked_tickets: Tuple[TicketRecord, ...] = ()
    last_phase: Optional[str] = None
    last_drawing_block: Optional[int] = None
    loading: bool = False
    last_error: Optional[str] = None
    version: int = 0


class LotteryCache:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = CacheState()

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def ledger(self) -> Optional[LedgerSnapshot]:
        return self._state.ledger.snapshot

    def get_ticket(self, name: str) -> Optional[TicketRecord]:
        return self._state.tickets.get(name)

    def _swap(self, **changes: Any) -> CacheState:
        with self._lock:
            self._state = replace(self._state, version=self._state.version + 1, **changes)
            return self._state

    def set_ledger(
        self,
        snapshot: LedgerSnapshot,
        raw_source: Any = None,
        observed_height: int = 0,
        parent_address: Optional[str] = None,
    ) -> CacheState:
        """
        Replace the ledger slot. Tickets are dropped when the phase or
        drawing block differs from the previously cached ledger, since
        status and scores were computed against the old parameters.
        """
        with self._lock:
            prev = self._state
            changes: dict = dict(
                ledger=LedgerSlot(
                    snapshot=snapshot,
                    raw_source=raw_source,
                    last_fetched_at=time.time(),
                    observed_height=observed_height,
                    parent_address=parent_address,
                ),
                last_phase=snapshot.current_phase,
                last_drawing_block=snapshot.drawing_block,
                last_error=None,
            )
            phase_changed = prev.last_phase is not None and prev.last_phase != snapshot.current_phase
            block_changed = (
                prev.last_drawing_block is not None and prev.last_drawing_block != snapshot.drawing_block
            )
            if phase_changed or block_changed:
                log.info(
                    "Ledger moved from (%s, %s) to (%s, %s); dropping %d cached tickets",
                    prev.last_phase,
                    prev.last_drawing_block,
                    snapshot.current_phase,
                    snapshot.drawing_block,
                    len(prev.tickets),
                )
                changes.update(tickets=EMPTY_TICKETS, ranked_tickets=())
            self._state = replace(prev, version=prev.version + 1, **changes)
            return self._state

    def set_ticket(self, ticket: TicketRecord) -> CacheState:
        with self._lock:
            tickets = dict(self._state.tickets)
            tickets[ticket.name] = ticket
            self._state = replace(
                self._state, tickets=MappingProxyType(tickets), version=self._state.version + 1
            )
            return self._state

    def set_tickets(self, tickets: Iterable[TicketRecord]) -> CacheState:
        return self._swap(tickets=MappingProxyType({t.name: t for t in tickets}))

    def set_ranked_tickets(self, ranked: Iterable[TicketRecord]) -> CacheState:
        return self._swap(ranked_tickets=tuple(ranked))

    def invalidate_tickets(self) -> CacheState:
        return self._swap(tickets=EMPTY_TICKETS, ranked_tickets=())

    def set_loading(self, loading: bool) -> CacheState:
        return self._swap(loading=loading)

    def set_error(self, error: Optional[str]) -> CacheState:
        return self._swap(last_error=error)

    def clear(self) -> CacheState:
        with self._lock:
            self._state = CacheState(version=self._state.version + 1)
            return self._state
