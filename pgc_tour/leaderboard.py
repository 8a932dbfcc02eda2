"""
Per-tour leaderboards for one tournament.

Joins teams -> tour cards -> tours, attaches each team's golfers, and sorts
both with the position comparator. A team whose tour card (or tour) cannot be
resolved is dropped and reported in `diagnostics`; one bad record never
blanks the whole leaderboard.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from .models import (
    DataSource, Golfer, LeaderboardResult, LeaderboardTeam, NoTeamsReason,
    ResultStatus, Team, TourLeaderboard, TournamentSnapshot, TournamentStatus,
)
from .positions import golfer_sort_key, team_sort_key

logger = logging.getLogger(__name__)


NO_TEAMS_REASONS = {
    TournamentStatus.UPCOMING: NoTeamsReason.BEFORE_START,
    TournamentStatus.CURRENT: NoTeamsReason.IN_PROGRESS,
    TournamentStatus.RECENT: NoTeamsReason.COMPLETED_NO_DATA,
    TournamentStatus.HISTORICAL: NoTeamsReason.COMPLETED_NO_DATA,
}

NO_TEAMS_MESSAGES = {
    NoTeamsReason.BEFORE_START: "No teams registered yet (tournament hasn't started)",
    NoTeamsReason.IN_PROGRESS: "No teams found for current tournament",
    NoTeamsReason.COMPLETED_NO_DATA: "No teams found for this tournament",
}


def _display_golfers(team: Team, golfers_by_id: Dict[int, Golfer], diagnostics: List[str]) -> tuple:
    found = []
    for api_id in team.golfer_ids:
        golfer = golfers_by_id.get(api_id)
        if golfer is None:
            diagnostics.append(f"Team {team.id}: golfer {api_id} not in tournament field")
            continue
        found.append(golfer)
    return tuple(sorted(found, key=golfer_sort_key))


def build_leaderboard(
    snapshot: TournamentSnapshot,
    data_source: DataSource = DataSource.LIVE,
    status: Optional[TournamentStatus] = None,
    now: Optional[datetime] = None,
) -> LeaderboardResult:
    """
    Build the per-tour leaderboard for a tournament snapshot.

    `status` only decides the reason given when there are no teams; it is
    derived from the tournament dates when not supplied.
    """
    tournament = snapshot.tournament
    if status is None:
        status = tournament.status_at(now or datetime.now())

    if not tournament.teams:
        reason = NO_TEAMS_REASONS[status]
        return LeaderboardResult(
            tournament=tournament,
            status=ResultStatus.EMPTY,
            data_source=data_source,
            tournament_status=status,
            no_teams_reason=reason,
            message=NO_TEAMS_MESSAGES[reason],
            last_updated=now,
        )

    tours_by_id = {tour.id: tour for tour in snapshot.tours}
    cards_by_id = {card.id: card for card in snapshot.tour_cards}
    golfers_by_id = {golfer.api_id: golfer for golfer in tournament.golfers}

    diagnostics: List[str] = []
    dropped = 0
    grouped: Dict[str, List[LeaderboardTeam]] = defaultdict(list)

    for team in tournament.teams:
        tour_card = cards_by_id.get(team.tour_card_id)
        if tour_card is None:
            dropped += 1
            diagnostics.append(f"Team {team.id}: tour card {team.tour_card_id} not found")
            continue
        tour = tours_by_id.get(tour_card.tour_id)
        if tour is None:
            dropped += 1
            diagnostics.append(f"Team {team.id}: tour {tour_card.tour_id} not found")
            continue
        golfers = _display_golfers(team, golfers_by_id, diagnostics)
        grouped[tour.id].append(LeaderboardTeam(team=team, tour_card=tour_card, tour=tour, golfers=golfers))

    if dropped:
        logger.warning(f"Dropped {dropped} unresolvable teams from {tournament.name} leaderboard")

    groups = []
    for entries in grouped.values():
        ordered = tuple(sorted(entries, key=lambda entry: team_sort_key(entry.team)))
        groups.append(TourLeaderboard(tour=ordered[0].tour, teams=ordered, team_count=len(ordered)))
    groups.sort(key=lambda group: (group.tour.name, group.tour.id))

    total = sum(group.team_count for group in groups)
    if not groups:
        reason = NO_TEAMS_REASONS[status]
        return LeaderboardResult(
            tournament=tournament,
            status=ResultStatus.EMPTY,
            data_source=data_source,
            tournament_status=status,
            no_teams_reason=reason,
            message="No teams could be matched to a tour",
            diagnostics=tuple(diagnostics),
            last_updated=now,
        )

    return LeaderboardResult(
        tournament=tournament,
        teams_by_tour=tuple(groups),
        status=ResultStatus.SUCCESS,
        data_source=data_source,
        total_teams=total,
        tournament_status=status,
        diagnostics=tuple(diagnostics),
        last_updated=now,
    )
