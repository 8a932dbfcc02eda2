"""
Finish-position parsing and ordering.

Every ranking in the engine goes through `parse_position`, which turns a raw
position string ("1", "T5", "CUT", "WD", "DQ", "", None) into a totally
ordered `PositionKey`:

    numeric ranks (ascending)  <  unknown  <  CUT  <  WD  <  DQ

"T5" and "5" compare equal, so callers break those ties with their own
secondary keys (see `golfer_sort_key` and `team_sort_key`).
"""

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, List, Optional, Tuple, Union

from .models import Golfer, Team


class RankClass(IntEnum):
    """Ordering class of a finish position."""
    NUMERIC = 0
    UNKNOWN = 1
    CUT = 2
    WITHDRAWN = 3
    DISQUALIFIED = 4


SENTINEL_CLASSES = {
    "CUT": RankClass.CUT,
    "WD": RankClass.WITHDRAWN,
    "DQ": RankClass.DISQUALIFIED,
}

_NUMERIC_RE = re.compile(r"^(T?)(\d+)$")

RawPosition = Union[str, int, None]


@dataclass(frozen=True, order=True)
class PositionKey:
    """Canonical position. Compares on (rank_class, value) only."""
    rank_class: RankClass
    value: int = 0
    tied: bool = field(default=False, compare=False)

    @property
    def is_numeric(self) -> bool:
        return self.rank_class == RankClass.NUMERIC

    @property
    def is_sentinel(self) -> bool:
        return self.rank_class >= RankClass.CUT


UNKNOWN_POSITION = PositionKey(RankClass.UNKNOWN)


def parse_position(raw: RawPosition) -> PositionKey:
    """Canonicalize a raw finish position. Never raises."""
    if raw is None:
        return UNKNOWN_POSITION
    text = str(raw).strip().upper()
    if not text:
        return UNKNOWN_POSITION

    sentinel = SENTINEL_CLASSES.get(text)
    if sentinel is not None:
        return PositionKey(sentinel)

    match = _NUMERIC_RE.match(text)
    if not match:
        return UNKNOWN_POSITION
    value = int(match.group(2))
    if value <= 0:
        return UNKNOWN_POSITION
    return PositionKey(RankClass.NUMERIC, value, tied=bool(match.group(1)))


def compare_positions(a: RawPosition, b: RawPosition) -> int:
    """Three-way compare: -1, 0 or 1."""
    key_a = parse_position(a)
    key_b = parse_position(b)
    return (key_a > key_b) - (key_a < key_b)


def numeric_rank(raw: RawPosition) -> Optional[int]:
    """The numeric rank ("T3" -> 3), or None for CUT/WD/DQ/unknown."""
    key = parse_position(raw)
    return key.value if key.is_numeric else None


def is_tied(raw: RawPosition) -> bool:
    return parse_position(raw).tied


def sort_positions(positions: Iterable[RawPosition]) -> List[RawPosition]:
    """Stable ascending sort of raw position strings."""
    return sorted(positions, key=parse_position)


# =============================================================================
# Tie-break configurations
# =============================================================================

def golfer_sort_key(golfer: Golfer) -> Tuple:
    """Position, then score ascending (missing last), then name."""
    return (
        parse_position(golfer.position),
        golfer.score is None,
        golfer.score if golfer.score is not None else 0,
        (golfer.player_name or "").lower(),
    )


def team_sort_key(team: Team) -> Tuple:
    """Position, then score ascending (missing last)."""
    return (
        parse_position(team.position),
        team.score is None,
        team.score if team.score is not None else 0,
    )
