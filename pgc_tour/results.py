"""
Team result calculations for a tournament.

Team scores are built round by round from the team's golfers:
- rounds one and two average every golfer on the team
- rounds three and four average the best five golfers still in the event
- a withdrawn or disqualified golfer with no card for a round is charged
  par plus a penalty for it
- from round three on, a team with fewer than five active golfers is CUT

Positions are then assigned per tour with "T" ties, and once the tournament
is over, points and earnings are awarded from the tier schedule.
"""

import logging
from collections import defaultdict
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import DEFAULT_PAR, MIN_GOLFERS_FOR_CUT, PENALTY_STROKES
from .models import Golfer, Team, Tier, TournamentSnapshot
from .positions import RankClass, numeric_rank, parse_position

logger = logging.getLogger(__name__)

CUT_POSITIONS = {"CUT", "WD", "DQ"}
FINAL_ROUND = 4


def team_golfers(team: Team, golfers: Iterable[Golfer]) -> List[Golfer]:
    """The tournament golfers on this team; missing ids are skipped."""
    by_id = {g.api_id: g for g in golfers}
    return [by_id[api_id] for api_id in team.golfer_ids if api_id in by_id]


def is_golfer_cut(golfer: Golfer) -> bool:
    """Whether a golfer is out of the event (cut, withdrawn or disqualified)."""
    return (golfer.position or "").strip().upper() in CUT_POSITIONS


def golfer_round_score(golfer: Golfer, round_number: int, par: int = DEFAULT_PAR) -> Optional[int]:
    """Strokes for one round, with the penalty for a WD/DQ golfer's missing card."""
    score = golfer.rounds[round_number - 1]
    if score is not None:
        return score
    if (golfer.position or "").strip().upper() in ("WD", "DQ"):
        return par + PENALTY_STROKES
    return None


def _mean(values: Sequence[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def _round_average(golfers: Sequence[Golfer], round_number: int, par: int) -> Optional[float]:
    scores = [golfer_round_score(g, round_number, par) for g in golfers]
    return _mean([s for s in scores if s is not None])


def _best_five_average(golfers: Sequence[Golfer], round_number: int, par: int) -> Optional[float]:
    scores = sorted(
        s for s in (golfer_round_score(g, round_number, par) for g in golfers) if s is not None
    )
    return _mean(scores[:MIN_GOLFERS_FOR_CUT])


def round_scores(golfers: Sequence[Golfer], current_round: int,
                 par: int = DEFAULT_PAR) -> Tuple[Optional[float], ...]:
    """
    Team stroke average for each of the four rounds.

    A round only counts once it is complete (`current_round` past it).
    Weekend rounds are None when fewer than five golfers are active.
    """
    active = [g for g in golfers if not is_golfer_cut(g)]
    weekend_ok = len(active) >= MIN_GOLFERS_FOR_CUT

    scores: List[Optional[float]] = []
    for round_number in range(1, FINAL_ROUND + 1):
        if current_round <= round_number:
            scores.append(None)
        elif round_number <= 2:
            scores.append(_round_average(golfers, round_number, par))
        elif weekend_ok:
            scores.append(_best_five_average(active, round_number, par))
        else:
            scores.append(None)
    return tuple(scores)


def today_score(golfers: Sequence[Golfer], current_round: int) -> Optional[float]:
    """Average score to par in the round being played."""
    if current_round <= 2:
        relevant = list(golfers)
    else:
        active = [g for g in golfers if not is_golfer_cut(g)]
        relevant = sorted(active, key=lambda g: g.today if g.today is not None else 999)
        relevant = relevant[:MIN_GOLFERS_FOR_CUT]
    return _mean([g.today for g in relevant if g.today is not None])


def team_total_score(rounds: Sequence[Optional[float]], today: Optional[float],
                     par: int = DEFAULT_PAR) -> Optional[float]:
    """Sum of completed rounds to par plus today's score, or None when nothing counts."""
    parts = [r - par for r in rounds if r is not None]
    if today is not None:
        parts.append(today)
    return sum(parts) if parts else None


def _round1(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(value, 1)


def score_team(team: Team, golfers: Iterable[Golfer], current_round: Optional[int],
               par: int = DEFAULT_PAR) -> Team:
    """Recompute one team's score, today and round from its golfers."""
    if not current_round:
        return team
    members = team_golfers(team, golfers)

    active = [g for g in members if not is_golfer_cut(g)]
    if current_round >= 3 and len(active) < MIN_GOLFERS_FOR_CUT:
        logger.debug(
            f"Team {team.id} cut in round {min(current_round, FINAL_ROUND)}: "
            f"{len(active)} active golfers, need {MIN_GOLFERS_FOR_CUT}"
        )
        return replace(
            team, position="CUT", score=None, today=None,
            round=min(current_round, FINAL_ROUND), made_cut=False,
        )

    rounds = round_scores(members, current_round, par)
    # The round in play only exists until the tournament is final
    today = today_score(members, current_round) if current_round <= FINAL_ROUND else None
    return replace(
        team,
        position=None if parse_position(team.position).rank_class == RankClass.CUT else team.position,
        score=_round1(team_total_score(rounds, today, par)),
        today=_round1(today),
        round=min(current_round, FINAL_ROUND),
        made_cut=True if current_round >= 3 else team.made_cut,
    )


def score_teams(teams: Iterable[Team], golfers: Sequence[Golfer], current_round: Optional[int],
                par: int = DEFAULT_PAR) -> List[Team]:
    """Recompute every team's score from its golfers."""
    return [score_team(team, golfers, current_round, par) for team in teams]


def assign_positions(teams: Sequence[Team]) -> List[Team]:
    """
    Label teams "1", "T2", "T2", "4"... by score.

    Teams that are CUT or have no score keep their current position.
    The returned list keeps the input order.
    """
    active = [
        (index, team) for index, team in enumerate(teams)
        if team.score is not None and parse_position(team.position).rank_class != RankClass.CUT
    ]
    active.sort(key=lambda pair: pair[1].score)

    counts: Dict[float, int] = defaultdict(int)
    for _, team in active:
        counts[team.score] += 1

    labels: Dict[int, str] = {}
    rank = 1
    for offset, (index, team) in enumerate(active):
        if offset > 0 and team.score != active[offset - 1][1].score:
            rank = offset + 1
        labels[index] = f"T{rank}" if counts[team.score] > 1 else str(rank)

    return [
        replace(team, position=labels[index]) if index in labels else team
        for index, team in enumerate(teams)
    ]


def _average_slots(schedule: Sequence[float], start: int, count: int) -> float:
    total = sum(schedule[i] for i in range(start, start + count) if 0 <= i < len(schedule))
    return total / count if count else 0.0


def award_points_and_earnings(teams: Sequence[Team], tier: Tier) -> List[Team]:
    """
    Award points and earnings from the tier schedule.

    Teams tied at rank n split the slots n..n+k-1 evenly. CUT teams and teams
    without a numeric rank get nothing. Playoff tiers award no points.
    """
    by_rank: Dict[int, List[int]] = defaultdict(list)
    for index, team in enumerate(teams):
        rank = numeric_rank(team.position)
        if rank is not None:
            by_rank[rank].append(index)

    awards: Dict[int, tuple] = {}
    for rank, indexes in by_rank.items():
        count = len(indexes)
        points = 0 if tier.is_playoff else round(_average_slots(tier.points, rank - 1, count))
        earnings = round(_average_slots(tier.payouts, rank - 1, count), 2)
        for index in indexes:
            awards[index] = (points, earnings)

    return [
        replace(team, points=awards[index][0], earnings=awards[index][1])
        if index in awards else replace(team, points=0, earnings=0)
        for index, team in enumerate(teams)
    ]


def update_tournament_teams(snapshot: TournamentSnapshot, par: int = DEFAULT_PAR) -> List[Team]:
    """
    Score, rank and (once final) pay out every team in a tournament.

    Positions and awards are computed within each tour. Teams whose tour card
    is unknown are ranked together. Returned teams keep the snapshot's order.
    """
    tournament = snapshot.tournament
    current_round = tournament.current_round
    scored = score_teams(tournament.teams, tournament.golfers, current_round, par)

    tour_of = {card.id: card.tour_id for card in snapshot.tour_cards}
    by_tour: Dict[Optional[str], List[int]] = defaultdict(list)
    for index, team in enumerate(scored):
        by_tour[tour_of.get(team.tour_card_id)].append(index)

    final = current_round is not None and current_round > FINAL_ROUND
    if final and snapshot.tier is None:
        logger.warning(f"No tier {tournament.tier_id!r} for {tournament.name}; points not awarded")

    updated: List[Team] = list(scored)
    for indexes in by_tour.values():
        ranked = assign_positions([scored[i] for i in indexes])
        if final and snapshot.tier is not None:
            ranked = award_points_and_earnings(ranked, snapshot.tier)
        for index, team in zip(indexes, ranked):
            updated[index] = team

    logger.info(f"Scored {len(updated)} teams for {tournament.name} (round {current_round})")
    return updated
