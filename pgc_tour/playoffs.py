"""
Playoff cut: splits each tour's ranked standings into gold, silver and
unqualified groups using the tour's playoff-spot configuration.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .models import (
    DataSource, PlayoffCut, PlayoffsResult, PlayoffTeam, ResultStatus,
    SeasonSnapshot, StandingsEntry, StandingsResult, TourPlayoffs,
)
from .standings import build_season_standings

logger = logging.getLogger(__name__)

GOLD = "gold"
SILVER = "silver"

BRACKETS = {GOLD: 1, SILVER: 2}


def normalize_playoff_spots(spots: Optional[Sequence]) -> Tuple[Tuple[int, int], List[str]]:
    """
    Coerce a playoff-spot configuration to (gold, silver).

    A single value means no silver group. Missing, negative and non-integer
    counts become 0; values past the second are ignored. Every correction is
    reported in the returned diagnostics.
    """
    diagnostics = []
    values = list(spots or ())
    if not values:
        diagnostics.append("No playoff spots configured; treating as (0, 0)")
    if len(values) > 2:
        diagnostics.append(f"Playoff spots {tuple(values)} has more than two values; using the first two")
        values = values[:2]

    counts = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            diagnostics.append(f"Invalid playoff spot count {value!r}; using 0")
            counts.append(0)
        elif value < 0:
            diagnostics.append(f"Negative playoff spot count {value}; using 0")
            counts.append(0)
        else:
            counts.append(value)

    while len(counts) < 2:
        counts.append(0)
    return (counts[0], counts[1]), diagnostics


def _label(entries: Sequence[StandingsEntry], playoff_type: str) -> Tuple[PlayoffTeam, ...]:
    return tuple(
        PlayoffTeam(entry=entry, playoff_position=index, playoff_type=playoff_type)
        for index, entry in enumerate(entries, start=1)
    )


def cut_playoffs(entries: Sequence[StandingsEntry], playoff_spots: Optional[Sequence]) -> PlayoffCut:
    """
    Partition ranked entries into gold, silver and unqualified.

    A list shorter than the configured spots is not an error; the groups
    just hold what is available.
    """
    (gold, silver), diagnostics = normalize_playoff_spots(playoff_spots)
    ranked = list(entries)
    silver_end = gold + silver
    return PlayoffCut(
        gold=_label(ranked[:gold], GOLD),
        silver=_label(ranked[gold:silver_end], SILVER),
        unqualified=tuple(ranked[silver_end:]),
        diagnostics=tuple(diagnostics),
    )


def build_playoffs_from_standings(standings: StandingsResult) -> PlayoffsResult:
    """Apply each tour's playoff cut to already-built standings."""
    if standings.status in (ResultStatus.NOT_FOUND, ResultStatus.ERROR):
        return PlayoffsResult(
            season_id=standings.season_id,
            status=standings.status,
            data_source=standings.data_source,
            message=standings.message,
            diagnostics=standings.diagnostics,
        )

    diagnostics = list(standings.diagnostics)
    playoffs = []
    for tour_standings in standings.standings_by_tour:
        tour = tour_standings.tour
        cut = cut_playoffs(tour_standings.entries, tour.playoff_spots)
        if cut.diagnostics:
            logger.warning(f"Tour {tour.name}: {'; '.join(cut.diagnostics)}")
            diagnostics.extend(f"Tour {tour.id}: {message}" for message in cut.diagnostics)
        spots, _ = normalize_playoff_spots(tour.playoff_spots)
        playoffs.append(TourPlayoffs(
            tour=tour,
            gold_teams=cut.gold,
            silver_teams=cut.silver,
            unqualified=cut.unqualified,
            playoff_spots=spots,
        ))

    result = PlayoffsResult(
        season_id=standings.season_id,
        playoffs_by_tour=tuple(playoffs),
        status=standings.status,
        data_source=standings.data_source,
        message=standings.message,
        diagnostics=tuple(diagnostics),
    )
    logger.debug(
        f"Season {standings.season_id} playoffs: {result.total_gold_teams} gold, "
        f"{result.total_silver_teams} silver"
    )
    return result


def build_playoffs(
    season: SeasonSnapshot,
    as_of: Optional[datetime] = None,
    data_source: DataSource = DataSource.SEASON_CACHE,
) -> PlayoffsResult:
    """Season standings plus the playoff cut, per tour."""
    return build_playoffs_from_standings(build_season_standings(season, as_of, data_source))


def playoff_brackets(result: PlayoffsResult) -> Dict[str, int]:
    """Tour card id -> 0 (none), 1 (gold) or 2 (silver)."""
    brackets: Dict[str, int] = {}
    for tour_playoffs in result.playoffs_by_tour:
        for team in tour_playoffs.gold_teams + tour_playoffs.silver_teams:
            brackets[team.tour_card.id] = BRACKETS[team.playoff_type]
        for entry in tour_playoffs.unqualified:
            brackets[entry.tour_card.id] = 0
    return brackets
