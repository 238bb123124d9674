from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .models import TicketRecord, TicketScore

HEX_VALUES = {c: int(c, 16) for c in "0123456789abcdefABCDEF"}


@dataclass(frozen=True)
class Nibble:
    char: str
    matches: bool
    is_leading_zero: bool


@dataclass(frozen=True)
class ScoringSummary:
    total_tickets: int
    sold_tickets: int
    unsold_tickets: int
    highest_matches: int
    highest_score: int
    qualified_winners: int
    sold_qualified_winners: int


def first_nonzero_index(hex_string: str) -> int:
    """Index of the first non-'0' character; len(hex_string) when all zero."""
    for i, c in enumerate(hex_string):
        if c != "0":
            return i
    return len(hex_string)


def hex_value(c: str) -> int:
    return HEX_VALUES.get(c, 0)


def compute_score(playing_number: str, drawing_hash: str) -> TicketScore:
    """
    Leading zeros of the drawing hash are never compared, even where the
    playing number has zeros too. From the first non-zero nibble on, each
    identical nibble is one match and adds its value (0-15) to the score.
    """
    matches = 0
    score = 0
    start = first_nonzero_index(drawing_hash)
    end = min(len(drawing_hash), len(playing_number))
    for i in range(start, end):
        if drawing_hash[i] == playing_number[i]:
            matches += 1
            score += hex_value(drawing_hash[i])
    return TicketScore(matches=matches, score=score)


def rank_key(ticket: TicketRecord) -> Tuple[int, int, int]:
    return (-ticket.matches, -ticket.score, ticket.index)


def rank_tickets(tickets: Iterable[TicketRecord]) -> List[TicketRecord]:
    """matches desc, score desc, then lower index wins."""
    return sorted(tickets, key=rank_key)


def filter_winning_tickets(
    tickets: Iterable[TicketRecord], required_matches: int, sold_only: bool = True
) -> List[TicketRecord]:
    return [
        t
        for t in tickets
        if t.matches >= required_matches and (t.sold or not sold_only)
    ]


def get_top_winner(
    tickets: Iterable[TicketRecord], required_matches: int, sold_only: bool = True
) -> Optional[TicketRecord]:
    winners = filter_winning_tickets(rank_tickets(tickets), required_matches, sold_only)
    return winners[0] if winners else None


def scoring_summary(tickets: Sequence[TicketRecord], required_matches: int) -> ScoringSummary:
    sold = [t for t in tickets if t.sold]
    return ScoringSummary(
        total_tickets=len(tickets),
        sold_tickets=len(sold),
        unsold_tickets=len(tickets) - len(sold),
        highest_matches=max((t.matches for t in tickets), default=0),
        highest_score=max((t.score for t in tickets), default=0),
        qualified_winners=sum(1 for t in tickets if t.matches >= required_matches),
        sold_qualified_winners=sum(1 for t in sold if t.matches >= required_matches),
    )


def highlight_matches(playing_number: str, drawing_hash: str) -> List[Nibble]:
    start = first_nonzero_index(drawing_hash)
    out: List[Nibble] = []
    for i in range(len(drawing_hash)):
        leading = i < start
        in_range = i < len(playing_number)
        out.append(
            Nibble(
                char=playing_number[i] if in_range else "?",
                matches=not leading and in_range and playing_number[i] == drawing_hash[i],
                is_leading_zero=leading,
            )
        )
    return out


def format_hex(hex_string: str, group_size: int = 8) -> str:
    return " ".join(hex_string[i : i + group_size] for i in range(0, len(hex_string), group_size))
