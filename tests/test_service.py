import asyncio

import pytest

from vlotto.errors import CurrencyNotFound, LedgerNotLoaded, LedgerUnavailable, RpcError, RpcTransportError
from vlotto.project_constants import GRAVEYARD_ADDRESSES, LEDGER_IDENTITY, VDXF_TICKET_FINALIZED_DATA
from vlotto.service import LotteryService, UpdatePoller

from tests.fakes import R_BUYER, R_CLAIMED, R_TICKETS, content_identity, ledger_payload, ticket_payload

DRAWING_HASH = "00a1b2" + "c" * 58


def _publish_ledger(rpc, **kwargs) -> None:
    rpc.identities[LEDGER_IDENTITY] = content_identity(ledger_payload(**kwargs), parent="iVlottoParent")


def _service(rpc, chain="vrsctest") -> LotteryService:
    return LotteryService(rpc, chain=chain)


def test_fetch_ledger_caches_snapshot(rpc) -> None:
    _publish_ledger(rpc)
    svc = _service(rpc)
    ledger = asyncio.run(svc.fetch_ledger())

    assert ledger.current_phase == "Drawing"
    state = svc.cache.state
    assert state.ledger.snapshot == ledger
    assert state.ledger.observed_height == 100
    assert state.ledger.parent_address == "iVlottoParent"
    assert state.loading is False
    assert state.last_error is None
    # height is read after the identity
    assert [m for m, _ in rpc.calls] == ["get_identity", "get_block_count"]


def test_failed_fetch_keeps_previous_snapshot(rpc) -> None:
    _publish_ledger(rpc)
    svc = _service(rpc)
    first = asyncio.run(svc.fetch_ledger())

    rpc.identities[LEDGER_IDENTITY] = content_identity("{broken")
    with pytest.raises(LedgerUnavailable):
        asyncio.run(svc.fetch_ledger())
    assert svc.cache.ledger == first
    assert "Failed to parse ledger" in svc.cache.state.last_error
    assert svc.cache.state.loading is False


def test_transport_error_recorded_and_raised(rpc) -> None:
    rpc.failures[("get_identity", LEDGER_IDENTITY)] = RpcTransportError("connection reset")
    svc = _service(rpc)
    with pytest.raises(RpcTransportError):
        asyncio.run(svc.fetch_ledger())
    assert svc.cache.state.last_error == "connection reset"
    assert svc.cache.state.loading is False
    assert svc.cache.ledger is None


def test_ledger_refetch_with_new_phase_invalidates_tickets(rpc) -> None:
    _publish_ledger(rpc, phase="Selling", planned=1)
    rpc.add_ticket("773160_1of1.lottery1@", ticket_payload("ab" * 32), R_BUYER)
    svc = _service(rpc)

    async def scenario():
        await svc.fetch_ledger()
        await svc.enumerate_tickets()
        assert len(svc.cache.state.tickets) == 1
        _publish_ledger(rpc, phase="Drawing", planned=1)
        await svc.fetch_ledger()

    asyncio.run(scenario())
    assert svc.cache.state.tickets == {}
    assert svc.cache.state.ranked_tickets == ()


def test_enumeration_requires_ledger(rpc) -> None:
    with pytest.raises(LedgerNotLoaded):
        asyncio.run(_service(rpc).enumerate_tickets())


def test_enumeration_classifies_scores_ranks_and_skips(rpc) -> None:
    _publish_ledger(rpc, planned=4, drawing_hash=DRAWING_HASH)
    rpc.add_ticket("773160_1of4.lottery1@", ticket_payload("000000cc" + "d" * 56), R_BUYER)
    rpc.add_ticket("773160_2of4.lottery1@", ticket_payload("00a102" + "d" * 58), R_CLAIMED)
    # index 3 never published
    # index 4 was minted under the shortened main identity
    rpc.add_ticket("773160_4of4.lottery@", ticket_payload("f" * 64), GRAVEYARD_ADDRESSES["VRSCTEST"])

    svc = _service(rpc)
    progress = []

    async def scenario():
        await svc.fetch_ledger()
        return await svc.enumerate_tickets(progress=lambda cur, total: progress.append((cur, total)))

    result = asyncio.run(scenario())

    assert progress == [(1, 4), (2, 4), (3, 4), (4, 4)]
    assert result.planned == 4
    assert [t.index for t in result.tickets] == [2, 1, 4]
    assert not result.complete
    assert [s.index for s in result.skipped] == [3]
    assert result.skipped[0].name == "773160_3of4.lottery1@"

    second, first, fourth = result.tickets
    assert (second.matches, second.score) == (3, 13)
    assert second.claimed and second.sold and not second.discarded
    assert (first.matches, first.score) == (2, 24)
    assert first.sold and not first.claimed
    assert fourth.name == "773160_4of4.lottery@"
    assert fourth.discarded and not fourth.sold

    state = svc.cache.state
    assert set(state.tickets) == {t.name for t in result.tickets}
    assert list(state.ranked_tickets) == result.tickets


def test_enumeration_without_drawing_hash_leaves_scores_zero(rpc) -> None:
    _publish_ledger(rpc, planned=1)
    rpc.add_ticket("773160_1of1.lottery1@", ticket_payload("ab" * 32), R_TICKETS)
    svc = _service(rpc)

    async def scenario():
        await svc.fetch_ledger()
        return await svc.enumerate_tickets()

    ticket = asyncio.run(scenario()).tickets[0]
    assert (ticket.matches, ticket.score) == (0, 0)
    assert not ticket.sold


def test_zero_planned_tickets(rpc) -> None:
    _publish_ledger(rpc, planned=0)
    svc = _service(rpc)

    async def scenario():
        await svc.fetch_ledger()
        return await svc.enumerate_tickets()

    result = asyncio.run(scenario())
    assert result.planned == 0
    assert result.tickets == [] and result.skipped == []


def test_check_for_updates_only_when_height_advances(rpc) -> None:
    _publish_ledger(rpc)
    svc = _service(rpc)

    async def scenario():
        assert await svc.check_for_updates() is True
        assert await svc.check_for_updates() is False
        rpc.height = 101
        assert await svc.check_for_updates() is True
        rpc.failures[("get_block_count", "")] = RpcTransportError("down")
        assert await svc.check_for_updates() is False

    asyncio.run(scenario())
    assert svc.cache.state.ledger.observed_height == 101


def test_poller_refreshes_and_stops(rpc) -> None:
    _publish_ledger(rpc)
    svc = _service(rpc)

    async def scenario():
        poller = svc.start_auto_refresh(interval_s=0.01)
        await asyncio.sleep(0.1)
        poller.stop()
        await poller.wait_closed()
        return poller

    poller = asyncio.run(scenario())
    assert not poller.running
    assert poller.checks >= 1
    assert poller.refreshes == 1
    assert svc.cache.ledger is not None


def test_stopping_poller_lets_in_flight_fetch_finish(rpc) -> None:
    _publish_ledger(rpc)
    svc = _service(rpc)

    async def scenario():
        rpc.gate = asyncio.Event()
        poller = UpdatePoller(svc, interval_s=0.01)
        poller.start()
        while not any(m == "get_identity" for m, _ in rpc.calls):
            await asyncio.sleep(0.01)
        poller.stop()
        rpc.gate.set()
        await poller.wait_closed()
        return poller

    poller = asyncio.run(scenario())
    assert poller.refreshes == 1
    assert svc.cache.ledger is not None


def test_poller_rejects_non_positive_interval(rpc) -> None:
    with pytest.raises(ValueError):
        UpdatePoller(_service(rpc), interval_s=0)


def test_manual_refresh_does_not_fetch_tickets(rpc) -> None:
    _publish_ledger(rpc)
    svc = _service(rpc)
    asyncio.run(svc.manual_refresh())
    assert [m for m, _ in rpc.calls] == ["get_identity", "get_block_count"]


def test_utility_lookups(rpc) -> None:
    rpc.identities["jackpot.vlotto@"] = {"identity": {"name": "jackpot"}}
    svc = _service(rpc)
    assert asyncio.run(svc.fetch_utility_identity("jackpot.vlotto@"))["identity"]["name"] == "jackpot"
    assert asyncio.run(svc.fetch_utility_currency("vlotto"))["name"] == "vlotto"

    with pytest.raises(RpcError, match="Failed to fetch utility identity missing@"):
        asyncio.run(svc.fetch_utility_identity("missing@"))

    rpc.failures[("get_currency", "nope")] = CurrencyNotFound("no such currency", -19)
    with pytest.raises(RpcError, match="Failed to fetch utility currency nope"):
        asyncio.run(svc.fetch_utility_currency("nope"))


def test_verify_cached_ticket(rpc) -> None:
    _publish_ledger(rpc, planned=1)
    rpc.add_ticket("773160_1of1.lottery1@", ticket_payload("ab" * 32), R_BUYER)
    svc = _service(rpc)

    async def scenario():
        with pytest.raises(LedgerNotLoaded):
            await svc.verify_ticket("773160_1of1.lottery1@")
        await svc.fetch_ledger()
        await svc.enumerate_tickets()
        missing = await svc.verify_ticket("nope@")
        found = await svc.verify_ticket("773160_1of1.lottery1@")
        return missing, found

    missing, found = asyncio.run(scenario())
    assert not missing.success and missing.errors == ["Ticket nope@ is not cached"]
    assert found.success
    assert ("verify_message", "proofguard.lottery1@") in rpc.calls


def test_one_malformed_ticket_does_not_abort_enumeration(rpc) -> None:
    _publish_ledger(rpc, planned=3)
    rpc.contents["773160_1of3.lottery1@"] = content_identity(
        "[" * 200000 + "]" * 200000, key=VDXF_TICKET_FINALIZED_DATA
    )
    rpc.add_ticket("773160_2of3.lottery1@", ticket_payload("ab" * 32), R_BUYER)
    rpc.add_ticket("773160_3of3.lottery1@", ticket_payload("cd" * 32), R_BUYER)
    svc = _service(rpc)
    resolve_index = svc.resolve_index

    async def flaky_resolve(ledger, index, chain=None):
        if index == 2:
            raise TypeError("unexpected identity shape")
        return await resolve_index(ledger, index, chain)

    svc.resolve_index = flaky_resolve

    async def scenario():
        await svc.fetch_ledger()
        return await svc.enumerate_tickets()

    result = asyncio.run(scenario())
    assert [t.index for t in result.tickets] == [3]
    assert [s.index for s in result.skipped] == [1, 2]
    assert result.skipped[1].reason == "unexpected identity shape"


def test_unexpected_ledger_failure_is_recorded_and_poller_survives(rpc) -> None:
    rpc.failures[("get_identity", LEDGER_IDENTITY)] = TypeError("unexpected identity shape")
    svc = _service(rpc)

    with pytest.raises(TypeError):
        asyncio.run(svc.fetch_ledger())
    assert svc.cache.state.last_error == "unexpected identity shape"
    assert svc.cache.state.loading is False

    async def scenario():
        assert await svc.check_for_updates() is False
        poller = svc.start_auto_refresh(interval_s=0.01)
        await asyncio.sleep(0.1)
        running = poller.running
        checks = poller.checks
        poller.stop()
        await poller.wait_closed()
        return running, checks

    running, checks = asyncio.run(scenario())
    assert running
    assert checks >= 2
    assert svc.cache.ledger is None
