from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from .cache import LotteryCache
from .config import normalize_chain
from .content import parent_address, primary_address
from .draw import compute_score, rank_tickets
from .errors import (
    LedgerNotLoaded,
    LedgerUnavailable,
    RpcError,
    TicketNotResolved,
)
from .models import (
    EnumerationResult,
    LedgerSnapshot,
    SkippedTicket,
    TicketRecord,
    TicketScore,
)
from .project_constants import LEDGER_IDENTITY, POLL_INTERVAL_S
from .rpc import RpcClient
from .schema import parse_ledger_data
from .status import classify_status, is_r_address
from .tickets import generate_ticket_name, resolve_ticket
from .verify import VerificationResult, verify_ticket_authenticity

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class LotteryService:
    """Ledger/ticket orchestration over one RPC client and one cache."""

    def __init__(
        self,
        rpc: RpcClient,
        cache: Optional[LotteryCache] = None,
        chain: Optional[str] = None,
        ledger_identity: str = LEDGER_IDENTITY,
    ) -> None:
        self.rpc = rpc
        self.cache = cache if cache is not None else LotteryCache()
        self.chain = normalize_chain(chain)
        self.ledger_identity = ledger_identity

    def _chain(self, chain: Optional[str]) -> Optional[str]:
        return normalize_chain(chain) if chain else self.chain

    async def fetch_ledger(self, chain: Optional[str] = None) -> LedgerSnapshot:
        """
        Fetch, normalize and cache the ledger. On failure the previous
        snapshot stays cached, the error is recorded and re-raised.
        """
        chain = self._chain(chain)
        self.cache.set_loading(True)
        self.cache.set_error(None)
        try:
            identity = await self.rpc.get_identity(self.ledger_identity, chain=chain)
            # Read after the identity so the height is at least as fresh.
            height = await self.rpc.get_block_count(chain=chain)

            snapshot = parse_ledger_data(identity)
            if snapshot is None:
                raise LedgerUnavailable(f"Failed to parse ledger data from {self.ledger_identity}")

            for label, addr in (
                ("rAddressForTickets", snapshot.r_address_for_tickets),
                ("claimedTicketsAddress", snapshot.claimed_tickets_address),
            ):
                if addr and not is_r_address(addr):
                    log.warning("Ledger %s %r is not an R-address", label, addr)

            self.cache.set_ledger(
                snapshot,
                raw_source=identity,
                observed_height=height,
                parent_address=parent_address(identity),
            )
            log.info(
                "Ledger %s: phase=%s drawing_block=%d planned=%d height=%d",
                self.ledger_identity,
                snapshot.current_phase,
                snapshot.drawing_block,
                snapshot.planned_ticket_count,
                height,
            )
            return snapshot
        except Exception as e:
            self.cache.set_error(str(e) or type(e).__name__)
            raise
        finally:
            self.cache.set_loading(False)

    async def resolve_index(self, ledger: LedgerSnapshot, index: int, chain: Optional[str] = None) -> TicketRecord:
        """Resolve, classify and score one ticket. Raises TicketNotResolved."""
        chain = self._chain(chain)
        name = generate_ticket_name(
            ledger.drawing_block, index, ledger.planned_ticket_count, ledger.main_identity
        )
        fetched = await resolve_ticket(
            self.rpc,
            name,
            chain=chain,
            main_identity=ledger.main_identity,
            index=index,
            planned=ledger.planned_ticket_count,
            drawing_block=ledger.drawing_block,
        )

        status = classify_status(
            primary_address(fetched.identity),
            chain=chain,
            r_address_for_tickets=ledger.r_address_for_tickets,
            claimed_tickets_address=ledger.claimed_tickets_address,
        )
        score = TicketScore()
        if ledger.has_drawing_hash:
            score = compute_score(fetched.payload.playing_number, ledger.drawing_hash)

        return TicketRecord(
            name=fetched.name,
            index=index,
            playing_number=fetched.payload.playing_number,
            registration_txid=fetched.payload.registration_txid,
            sold=status.sold,
            discarded=status.discarded,
            claimed=status.claimed,
            matches=score.matches,
            score=score.score,
            ticket_validation=fetched.payload.ticket_validation,
            proofguard_acknowledgement=fetched.payload.proofguard_acknowledgement,
        )

    async def enumerate_tickets(
        self, chain: Optional[str] = None, progress: Optional[ProgressCallback] = None
    ) -> EnumerationResult:
        """
        Fetch tickets 1..planned in order. Each resolved ticket is cached
        as soon as it is scored; the ranking is replaced once at the end.
        Indices that do not resolve are skipped and reported.
        """
        ledger = self.cache.ledger
        if ledger is None:
            raise LedgerNotLoaded("Ledger data not loaded")

        planned = ledger.planned_ticket_count
        tickets: List[TicketRecord] = []
        skipped: List[SkippedTicket] = []

        for index in range(1, planned + 1):
            try:
                ticket = await self.resolve_index(ledger, index, chain)
            except TicketNotResolved as e:
                name = e.attempts[0] if e.attempts else ""
                skipped.append(SkippedTicket(index=index, name=name, reason=e.reason))
                log.info("Skipping ticket %d/%d: %s", index, planned, e.reason)
            except Exception as e:
                skipped.append(SkippedTicket(index=index, name="", reason=str(e) or type(e).__name__))
                log.info("Skipping ticket %d/%d: %s", index, planned, e)
            else:
                tickets.append(ticket)
                self.cache.set_ticket(ticket)
            if progress is not None:
                progress(index, planned)

        ranked = rank_tickets(tickets)
        self.cache.set_ranked_tickets(ranked)
        log.info("Enumerated %d/%d tickets (%d skipped)", len(ranked), planned, len(skipped))
        return EnumerationResult(planned=planned, tickets=ranked, skipped=skipped)

    async def check_for_updates(self, chain: Optional[str] = None) -> bool:
        """Refresh the ledger when the chain has grown. Never raises."""
        chain = self._chain(chain)
        try:
            height = await self.rpc.get_block_count(chain=chain)
            last = self.cache.state.ledger.observed_height
            if height <= last:
                return False
            log.debug("Block height %d > %d, refreshing ledger", height, last)
            await self.fetch_ledger(chain)
            return True
        except Exception as e:
            log.warning("Update check failed: %r", e)
            return False

    def start_auto_refresh(
        self, chain: Optional[str] = None, interval_s: float = POLL_INTERVAL_S
    ) -> "UpdatePoller":
        poller = UpdatePoller(self, chain=chain, interval_s=interval_s)
        poller.start()
        return poller

    async def manual_refresh(self, chain: Optional[str] = None) -> LedgerSnapshot:
        # Tickets are not refetched; callers enumerate when they need them.
        return await self.fetch_ledger(chain)

    async def verify_ticket(self, name: str, chain: Optional[str] = None) -> VerificationResult:
        ledger = self.cache.ledger
        if ledger is None:
            raise LedgerNotLoaded("Ledger data not loaded")
        ticket = self.cache.get_ticket(name)
        if ticket is None:
            result = VerificationResult()
            result.errors.append(f"Ticket {name} is not cached")
            return result
        return await verify_ticket_authenticity(self.rpc, ticket, ledger.main_identity, self._chain(chain))

    async def fetch_utility_identity(self, utility_name: str, chain: Optional[str] = None) -> Dict[str, Any]:
        try:
            return await self.rpc.get_identity(utility_name, chain=self._chain(chain))
        except RpcError as e:
            raise RpcError(f"Failed to fetch utility identity {utility_name}: {e}", e.code) from e

    async def fetch_utility_currency(self, currency_name: str, chain: Optional[str] = None) -> Dict[str, Any]:
        try:
            return await self.rpc.get_currency(currency_name, height=None, chain=self._chain(chain))
        except RpcError as e:
            raise RpcError(f"Failed to fetch utility currency {currency_name}: {e}", e.code) from e


class UpdatePoller:
    """
    Periodic update check owned by the caller.

    stop() only ends the loop: a check already in flight finishes and its
    ledger, if any, is cached as usual.
    """

    def __init__(
        self,
        service: LotteryService,
        chain: Optional[str] = None,
        interval_s: float = POLL_INTERVAL_S,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.service = service
        self.chain = chain
        self.interval_s = interval_s
        self.checks = 0
        self.refreshes = 0
        self._stopped = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopped.clear()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        self._stopped.set()

    async def wait_closed(self) -> None:
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        while not self._stopped.is_set():
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval_s)
            except asyncio.TimeoutError:
                pass
            if self._stopped.is_set():
                break
            self.checks += 1
            if await self.service.check_for_updates(self.chain):
                self.refreshes += 1
