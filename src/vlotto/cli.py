from __future__ import annotations

import argparse
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from .config import Settings
from .draw import format_hex, get_top_winner, scoring_summary
from .errors import VlottoError
from .models import LedgerSnapshot
from .rpc import RpcClient
from .service import LotteryService


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env(rpc_url_override=args.rpc_url, chain_override=args.chain)


def _service(args: argparse.Namespace, settings: Settings | None = None) -> LotteryService:
    settings = settings or _settings(args)
    rpc = RpcClient.from_settings(settings, timeout_s=args.timeout)
    return LotteryService(rpc, chain=settings.chain, ledger_identity=settings.ledger_identity)


def print_ledger(ledger: LedgerSnapshot, height: int) -> None:
    print("========================================")
    print("🎟  VLOTTO LEDGER")
    print("========================================")
    print(f"Main identity : {ledger.main_identity}")
    print(f"Phase         : {ledger.current_phase}")
    print(f"Drawing block : {ledger.drawing_block}")
    print(f"Chain height  : {height}")
    print(f"Planned       : {ledger.planned_ticket_count}")
    print(f"Req. matches  : {ledger.required_matches}")
    if ledger.has_drawing_hash:
        print(f"Drawing hash  : {format_hex(ledger.drawing_hash)}")
    top = ledger.drawing_results.top_winning_ticket
    if top is not None:
        print("----------------------------------------")
        print(f"🏆 Top ticket : {top.name} ({top.index or '?'})")
        print(f"Matches/score : {top.matches}/{top.score}")


async def _ledger(args: argparse.Namespace) -> int:
    svc = _service(args)
    async with svc.rpc:
        ledger = await svc.fetch_ledger()
    print_ledger(ledger, svc.cache.state.ledger.observed_height)
    return 0


async def _tickets(args: argparse.Namespace) -> int:
    log = logging.getLogger("tickets")
    svc = _service(args)

    def progress(current: int, total: int) -> None:
        log.debug("Ticket %d/%d", current, total)

    async with svc.rpc:
        ledger = await svc.fetch_ledger()
        result = await svc.enumerate_tickets(progress=progress)

    print_ledger(ledger, svc.cache.state.ledger.observed_height)
    print("----------------------------------------")
    for rank, t in enumerate(result.tickets, start=1):
        flags = "".join(
            flag for flag, on in (("S", t.sold), ("D", t.discarded), ("C", t.claimed)) if on
        )
        print(f"{rank:>3}. #{t.index:<4} {t.name:<40} matches={t.matches:<3} score={t.score:<4} {flags}")
    for s in result.skipped:
        print(f"  skipped #{s.index}: {s.reason}")

    summary = scoring_summary(result.tickets, ledger.required_matches)
    winner = get_top_winner(result.tickets, ledger.required_matches)
    print("----------------------------------------")
    print(f"Resolved      : {len(result.tickets)}/{result.planned}")
    print(f"Sold          : {summary.sold_tickets}")
    print(f"Qualified     : {summary.qualified_winners} ({summary.sold_qualified_winners} sold)")
    print(f"Winner        : {winner.name if winner else '(none)'}")

    if args.out:
        out: Dict[str, Any] = {
            "generated_at_utc": datetime.now(timezone.utc).isoformat(),
            "ledger_identity": svc.ledger_identity,
            "drawing_block": ledger.drawing_block,
            "drawing_hash": ledger.drawing_hash,
            "planned": result.planned,
            "ranked_tickets": [t.to_dict() for t in result.tickets],
            "skipped": [{"index": s.index, "name": s.name, "reason": s.reason} for s in result.skipped],
        }
        with open(args.out, "w", encoding="utf-8") as f:
            json.dump(out, f, indent=2)
        print(f"🧾 Wrote: {args.out}")
    return 0


async def _verify(args: argparse.Namespace) -> int:
    svc = _service(args)
    async with svc.rpc:
        ledger = await svc.fetch_ledger()
        ticket = await svc.resolve_index(ledger, args.index)
        svc.cache.set_ticket(ticket)
        result = await svc.verify_ticket(ticket.name)

    print(f"Ticket        : {ticket.name}")
    for name, ok in result.checks.items():
        print(f"{'✅' if ok else '❌'} {name}")
    for err in result.errors:
        print(f"   {err}")
    print("✅ TICKET VERIFIED" if result.success else "❌ TICKET NOT VERIFIED")
    return 0 if result.success else 1


async def _watch(args: argparse.Namespace) -> int:
    log = logging.getLogger("watch")
    settings = _settings(args)
    svc = _service(args, settings)
    interval = args.interval or settings.poll_interval_s
    async with svc.rpc:
        await svc.fetch_ledger()
        poller = svc.start_auto_refresh(interval_s=interval)
        log.info("Polling every %.0fs (Ctrl+C to stop)", interval)
        try:
            await poller.wait_closed()
        finally:
            poller.stop()
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vlotto",
        description="Read, score and verify vlotto lottery tickets from Verus identities.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--chain", default=None, help="Chain selector, e.g. vrsctest (default: VRSC).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    led = sub.add_parser("ledger", help="Fetch and print the lottery ledger.")
    led.set_defaults(func=_ledger)

    t = sub.add_parser("tickets", help="Enumerate, score and rank all tickets.")
    t.add_argument("--out", default=None, help="Write the ranking as JSON to this path.")
    t.set_defaults(func=_tickets)

    v = sub.add_parser("verify", help="Run the four-step signature check on one ticket.")
    v.add_argument("--index", required=True, type=int, help="1-based ticket index.")
    v.set_defaults(func=_verify)

    w = sub.add_parser("watch", help="Poll the chain and refresh the ledger on new blocks.")
    w.add_argument("--interval", type=float, default=None, help="Poll interval seconds.")
    w.set_defaults(func=_watch)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    try:
        code = asyncio.run(args.func(args))
    except VlottoError as e:
        logging.getLogger("vlotto").error("%s", e)
        code = 1
    except KeyboardInterrupt:
        code = 130
    raise SystemExit(code)
