import random

from vlotto.draw import (
    compute_score,
    filter_winning_tickets,
    first_nonzero_index,
    format_hex,
    get_top_winner,
    highlight_matches,
    rank_tickets,
    scoring_summary,
)
from vlotto.models import TicketRecord, TicketScore


def _ticket(index: int, matches: int, score: int, sold: bool = True) -> TicketRecord:
    return TicketRecord(
        name=f"100_{index}of9.l@",
        index=index,
        playing_number="",
        registration_txid="",
        sold=sold,
        matches=matches,
        score=score,
    )


def test_first_nonzero_index() -> None:
    assert first_nonzero_index("00a1") == 2
    assert first_nonzero_index("a") == 0
    assert first_nonzero_index("0000") == 4
    assert first_nonzero_index("") == 0


def test_leading_zeros_never_compared() -> None:
    assert compute_score("000abc", "000abc") == TicketScore(matches=3, score=10 + 11 + 12)
    assert compute_score("0000bc", "000abc") == TicketScore(matches=2, score=11 + 12)
    assert compute_score("000", "000") == TicketScore(matches=0, score=0)


def test_walks_to_shorter_length() -> None:
    assert compute_score("ab", "abcd") == TicketScore(matches=2, score=21)
    assert compute_score("abcd", "ab") == TicketScore(matches=2, score=21)


def test_scoring_is_deterministic() -> None:
    rng = random.Random(7)
    for _ in range(20):
        p = "".join(rng.choice("0123456789abcdef") for _ in range(64))
        d = "".join(rng.choice("0123456789abcdef") for _ in range(64))
        assert compute_score(p, d) == compute_score(p, d)


def test_end_to_end_scenario() -> None:
    drawing = "00a1b2" + "c" * 58
    # positions 2, 3, 5 match after the leading zeros
    three = "00a102" + "d" * 58
    # two high-value matches
    two = "000000cc" + "d" * 56
    assert len(drawing) == len(three) == len(two) == 64

    s3 = compute_score(three, drawing)
    s2 = compute_score(two, drawing)
    assert s3 == TicketScore(matches=3, score=0xA + 0x1 + 0x2)
    assert s2 == TicketScore(matches=2, score=24)

    ranked = rank_tickets([_ticket(1, s2.matches, s2.score), _ticket(2, s3.matches, s3.score)])
    assert [t.index for t in ranked] == [2, 1]


def test_ranking_order_and_tie_break() -> None:
    tickets = [
        _ticket(5, 3, 20),
        _ticket(2, 3, 20),
        _ticket(9, 4, 1),
        _ticket(1, 3, 25),
        _ticket(3, 0, 0),
    ]
    ranked = rank_tickets(tickets)
    assert [t.index for t in ranked] == [9, 1, 2, 5, 3]
    # independent of input order, stable under re-sorting
    assert rank_tickets(list(reversed(tickets))) == ranked
    assert rank_tickets(ranked) == ranked


def test_winner_filters() -> None:
    tickets = [_ticket(1, 5, 40, sold=False), _ticket(2, 4, 10), _ticket(3, 1, 15)]
    assert [t.index for t in filter_winning_tickets(tickets, 4)] == [2]
    assert [t.index for t in filter_winning_tickets(tickets, 4, sold_only=False)] == [1, 2]
    assert get_top_winner(tickets, 4).index == 2
    assert get_top_winner(tickets, 4, sold_only=False).index == 1
    assert get_top_winner(tickets, 6) is None


def test_scoring_summary() -> None:
    summary = scoring_summary([_ticket(1, 5, 40, sold=False), _ticket(2, 4, 10), _ticket(3, 1, 15)], 4)
    assert summary.total_tickets == 3
    assert summary.sold_tickets == 2
    assert summary.unsold_tickets == 1
    assert summary.highest_matches == 5
    assert summary.highest_score == 40
    assert summary.qualified_winners == 2
    assert summary.sold_qualified_winners == 1
    assert scoring_summary([], 1).highest_score == 0


def test_highlight_matches() -> None:
    nibbles = highlight_matches("0a1", "0a2f")
    assert [n.char for n in nibbles] == ["0", "a", "1", "?"]
    assert [n.matches for n in nibbles] == [False, True, False, False]
    assert [n.is_leading_zero for n in nibbles] == [True, False, False, False]


def test_format_hex() -> None:
    assert format_hex("0123456789abcdef01") == "01234567 89abcdef 01"
    assert format_hex("abcd", group_size=2) == "ab cd"
