"""
Season standings: folds per-tournament team results into tour card totals
and ranks the cards within each tour.
"""

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import (
    DataSource, ResultStatus, SeasonSnapshot, SeasonTotals, StandingsEntry,
    StandingsResult, Team, TotalsMismatch, TourCard, TourStandings, Tournament,
)
from .positions import numeric_rank

logger = logging.getLogger(__name__)

TOTAL_FIELDS = ("points", "earnings", "win", "top_ten", "made_cut", "appearances")


def _teams_by_tour_card(tournaments: Iterable[Tournament], as_of: Optional[datetime]) -> Dict[str, List[Team]]:
    teams: Dict[str, List[Team]] = defaultdict(list)
    for tournament in tournaments:
        if not tournament.is_concluded(as_of):
            continue
        for team in tournament.teams:
            teams[team.tour_card_id].append(team)
    return teams


def fold_teams(teams: Iterable[Team]) -> SeasonTotals:
    """Reduce a card's team results into season totals."""
    points = 0.0
    earnings = 0.0
    win = top_ten = made_cut = appearances = 0
    for team in teams:
        points += team.points or 0
        earnings += team.earnings or 0
        rank = numeric_rank(team.position)
        if rank == 1:
            win += 1
        if rank is not None and rank <= 10:
            top_ten += 1
        if team.cut_made:
            made_cut += 1
        appearances += 1
    return SeasonTotals(
        points=round(points, 2),
        earnings=round(earnings, 2),
        win=win,
        top_ten=top_ten,
        made_cut=made_cut,
        appearances=appearances,
    )


def aggregate_tour_card(tour_card: TourCard, tournaments: Iterable[Tournament],
                        as_of: Optional[datetime] = None) -> SeasonTotals:
    """Season totals for one tour card across the concluded tournaments."""
    return fold_teams(_teams_by_tour_card(tournaments, as_of).get(tour_card.id, []))


def standings_sort_key(entry: StandingsEntry) -> Tuple:
    """Points descending, then earnings descending, then tour card id."""
    return (-entry.totals.points, -entry.totals.earnings, entry.tour_card.id)


def position_labels(entries: Sequence[StandingsEntry]) -> List[str]:
    """Standings positions by points; cards level on points share a "T" label."""
    points_count: Dict[float, int] = defaultdict(int)
    for entry in entries:
        points_count[entry.totals.points] += 1

    labels = []
    for entry in entries:
        better = sum(1 for other in entries if other.totals.points > entry.totals.points)
        prefix = "T" if points_count[entry.totals.points] > 1 else ""
        labels.append(f"{prefix}{better + 1}")
    return labels


def rank_entries(entries: Iterable[StandingsEntry]) -> Tuple[StandingsEntry, ...]:
    ordered = sorted(entries, key=standings_sort_key)
    return tuple(
        replace(entry, position=label)
        for entry, label in zip(ordered, position_labels(ordered))
    )


def build_season_standings(
    season: SeasonSnapshot,
    as_of: Optional[datetime] = None,
    data_source: DataSource = DataSource.SEASON_CACHE,
) -> StandingsResult:
    """Rank every tour card of the season within its tour."""
    if season.is_empty:
        return StandingsResult(
            season_id=season.season_id,
            status=ResultStatus.NOT_FOUND,
            data_source=DataSource.NONE,
            message=f"No season data found for {season.season_id}",
        )

    teams_by_card = _teams_by_tour_card(season.tournaments, as_of)
    tour_ids = {tour.id for tour in season.tours}
    diagnostics = []

    entries_by_tour: Dict[str, List[StandingsEntry]] = defaultdict(list)
    for card in season.tour_cards:
        if card.tour_id not in tour_ids:
            diagnostics.append(f"Tour card {card.id}: tour {card.tour_id} not found")
            continue
        totals = fold_teams(teams_by_card.get(card.id, []))
        entries_by_tour[card.tour_id].append(StandingsEntry(tour_card=card, totals=totals))

    card_ids = {card.id for card in season.tour_cards}
    orphans = sorted(card_id for card_id in teams_by_card if card_id not in card_ids)
    for card_id in orphans:
        diagnostics.append(f"Teams reference unknown tour card {card_id}")

    if diagnostics:
        logger.warning(f"Season {season.season_id} standings: {len(diagnostics)} integrity issues")

    standings = tuple(
        TourStandings(tour=tour, entries=rank_entries(entries_by_tour.get(tour.id, [])))
        for tour in sorted(season.tours, key=lambda t: (t.name, t.id))
    )
    status = ResultStatus.SUCCESS if season.tour_cards else ResultStatus.EMPTY
    return StandingsResult(
        season_id=season.season_id,
        standings_by_tour=standings,
        status=status,
        data_source=data_source,
        message="" if season.tour_cards else "No tour cards found for this season",
        diagnostics=tuple(diagnostics),
    )


def verify_tour_card_totals(season: SeasonSnapshot, as_of: Optional[datetime] = None) -> List[TotalsMismatch]:
    """Compare stored tour card totals with a fresh fold of their team results."""
    teams_by_card = _teams_by_tour_card(season.tournaments, as_of)
    mismatches = []
    for card in season.tour_cards:
        computed = fold_teams(teams_by_card.get(card.id, []))
        for name in TOTAL_FIELDS:
            stored = getattr(card, name)
            expected = getattr(computed, name)
            if round(stored or 0, 2) != round(expected, 2):
                mismatches.append(TotalsMismatch(card.id, name, stored, expected))
    return mismatches


def apply_totals(season: SeasonSnapshot, as_of: Optional[datetime] = None) -> List[TourCard]:
    """Tour cards with totals and standings positions recomputed."""
    result = build_season_standings(season, as_of)
    updated = []
    for tour_standings in result.standings_by_tour:
        for entry in tour_standings.entries:
            updated.append(replace(entry.tour_card, position=entry.position, **entry.totals.as_dict()))
    return updated
