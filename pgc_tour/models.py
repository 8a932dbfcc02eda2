"""
Data models for the PGC Tour engine.
Entity records, plus the result records produced by the ranking components.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple


class TierName(Enum):
    """Tournament prize/points class."""
    STANDARD = "Standard"
    ELEVATED = "Elevated"
    MAJOR = "Major"
    PLAYOFF = "Playoff"

    @classmethod
    def from_label(cls, label: str) -> "TierName":
        """Match a stored tier label (case-insensitive, 'Playoff 2' -> PLAYOFF)."""
        text = (label or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        for member in cls:
            if member.value.lower() in text:
                return member
        raise ValueError(f"Unknown tier name: {label!r}")


class TournamentStatus(Enum):
    """Where a tournament sits relative to now."""
    UPCOMING = "upcoming"
    CURRENT = "current"
    RECENT = "recent"          # Ended within the recent window
    HISTORICAL = "historical"


class DataSource(Enum):
    """Which snapshot a result was aggregated over."""
    LIVE = "live"
    SEASON_CACHE = "season-cache"
    HISTORICAL_API = "historical-api"
    ERROR = "error"
    NONE = "none"


class ResultStatus(Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    NOT_FOUND = "not_found"
    ERROR = "error"


class NoTeamsReason(Enum):
    """Why a leaderboard has no teams."""
    BEFORE_START = "before_start"
    IN_PROGRESS = "in_progress"
    COMPLETED_NO_DATA = "completed_no_data"


# =============================================================================
# Entities
# =============================================================================

@dataclass(frozen=True)
class Golfer:
    """A golfer in one tournament's field."""
    api_id: int
    player_name: str
    tournament_id: Optional[str] = None
    position: Optional[str] = None
    round_one: Optional[int] = None
    round_two: Optional[int] = None
    round_three: Optional[int] = None
    round_four: Optional[int] = None
    score: Optional[float] = None
    today: Optional[float] = None
    thru: Optional[int] = None
    skill_estimate: Optional[float] = None  # Lower is better (a rank)
    world_rank: Optional[int] = None
    rating: Optional[float] = None
    group: Optional[int] = None  # Assigned tier, 1-5
    country: Optional[str] = None

    @property
    def rounds(self) -> Tuple[Optional[int], ...]:
        return (self.round_one, self.round_two, self.round_three, self.round_four)


@dataclass(frozen=True)
class Team:
    """A tour card's team for one tournament. Golfer set is fixed at creation."""
    id: int
    tournament_id: str
    tour_card_id: str
    golfer_ids: Tuple[int, ...] = ()
    position: Optional[str] = None
    score: Optional[float] = None
    today: Optional[float] = None
    round: Optional[int] = None
    points: float = 0
    earnings: float = 0
    made_cut: Optional[bool] = None

    @property
    def cut_made(self) -> bool:
        """Stored flag, or derived from position when the flag is unset."""
        if self.made_cut is not None:
            return self.made_cut
        return (self.position or "").strip().upper() != "CUT"


@dataclass(frozen=True)
class TourCard:
    """A member's seat on one tour for one season."""
    id: str
    member_id: str
    tour_id: str
    season_id: str
    display_name: str
    points: float = 0
    earnings: float = 0
    win: int = 0
    top_ten: int = 0
    made_cut: int = 0
    appearances: int = 0
    position: Optional[str] = None
    playoff: int = 0  # 0 = none, 1 = gold, 2 = silver


@dataclass(frozen=True)
class Tour:
    """A tour with its playoff-spot configuration: (gold,) or (gold, silver)."""
    id: str
    name: str
    season_id: str = ""
    short_form: str = ""
    playoff_spots: Tuple[int, ...] = (0,)


@dataclass(frozen=True)
class Tier:
    """Payout/points schedule, indexed by finish rank - 1."""
    id: str
    name: TierName
    payouts: Tuple[float, ...] = ()
    points: Tuple[float, ...] = ()
    season_id: str = ""

    @property
    def is_playoff(self) -> bool:
        return self.name == TierName.PLAYOFF


@dataclass(frozen=True)
class Tournament:
    """A tournament with (optionally) its teams and golfers attached."""
    id: str
    name: str
    season_id: str
    tier_id: str
    start_date: datetime
    end_date: datetime
    current_round: Optional[int] = None  # 5 once all four rounds are final
    teams: Tuple[Team, ...] = ()
    golfers: Tuple[Golfer, ...] = ()

    def status_at(self, now: datetime, recent_window: timedelta = timedelta(hours=24)) -> TournamentStatus:
        """Classify the tournament relative to `now`."""
        if now < self.start_date:
            return TournamentStatus.UPCOMING
        if now <= self.end_date:
            return TournamentStatus.CURRENT
        if now - self.end_date <= recent_window:
            return TournamentStatus.RECENT
        return TournamentStatus.HISTORICAL

    def is_concluded(self, as_of: Optional[datetime] = None) -> bool:
        """Whether results from this tournament count toward season totals."""
        if self.current_round is not None:
            return self.current_round > 4
        if as_of is not None:
            return self.end_date < as_of
        return True

    def with_records(self, teams: Optional[List[Team]] = None,
                     golfers: Optional[List[Golfer]] = None) -> "Tournament":
        return replace(
            self,
            teams=tuple(teams) if teams is not None else self.teams,
            golfers=tuple(golfers) if golfers is not None else self.golfers,
        )


@dataclass(frozen=True)
class SeasonSnapshot:
    """Point-in-time view of one season. Replaced wholesale, never patched."""
    season_id: str
    tournaments: Tuple[Tournament, ...] = ()
    tours: Tuple[Tour, ...] = ()
    tour_cards: Tuple[TourCard, ...] = ()
    tiers: Tuple[Tier, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.tours and not self.tour_cards and not self.tournaments

    def tier_for(self, tournament: Tournament) -> Optional[Tier]:
        for tier in self.tiers:
            if tier.id == tournament.tier_id:
                return tier
        return None


@dataclass(frozen=True)
class TournamentSnapshot:
    """One tournament (teams and golfers attached) plus its season's tours and cards."""
    tournament: Tournament
    tours: Tuple[Tour, ...] = ()
    tour_cards: Tuple[TourCard, ...] = ()
    tier: Optional[Tier] = None


@dataclass(frozen=True)
class RankingData:
    """External skill ranking for one golfer (higher skill_estimate is better)."""
    api_id: int
    player_name: str
    skill_estimate: float
    dg_rank: int = 999
    owgr_rank: Optional[int] = None
    country: str = ""


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class LeaderboardTeam:
    """A team resolved against its tour card, tour and golfers."""
    team: Team
    tour_card: TourCard
    tour: Tour
    golfers: Tuple[Golfer, ...] = ()


@dataclass(frozen=True)
class TourLeaderboard:
    tour: Tour
    teams: Tuple[LeaderboardTeam, ...]
    team_count: int


@dataclass(frozen=True)
class LeaderboardResult:
    """Per-tour leaderboard for one tournament, tagged with its data source."""
    tournament: Optional[Tournament]
    teams_by_tour: Tuple[TourLeaderboard, ...] = ()
    status: ResultStatus = ResultStatus.SUCCESS
    data_source: DataSource = DataSource.LIVE
    total_teams: int = 0
    tournament_status: Optional[TournamentStatus] = None
    no_teams_reason: Optional[NoTeamsReason] = None
    message: str = ""
    diagnostics: Tuple[str, ...] = ()
    last_updated: Optional[datetime] = None

    def for_tour(self, tour_name: str) -> Optional[TourLeaderboard]:
        name = tour_name.lower()
        for group in self.teams_by_tour:
            if group.tour.name.lower() == name or group.tour.short_form.lower() == name:
                return group
        return None


@dataclass(frozen=True)
class SeasonTotals:
    """Season totals folded from a tour card's team results."""
    points: float = 0
    earnings: float = 0
    win: int = 0
    top_ten: int = 0
    made_cut: int = 0
    appearances: int = 0

    def as_dict(self) -> Dict[str, float]:
        return {
            "points": self.points,
            "earnings": self.earnings,
            "win": self.win,
            "top_ten": self.top_ten,
            "made_cut": self.made_cut,
            "appearances": self.appearances,
        }


@dataclass(frozen=True)
class StandingsEntry:
    tour_card: TourCard
    totals: SeasonTotals
    position: str = ""


@dataclass(frozen=True)
class TourStandings:
    tour: Tour
    entries: Tuple[StandingsEntry, ...] = ()


@dataclass(frozen=True)
class StandingsResult:
    season_id: str
    standings_by_tour: Tuple[TourStandings, ...] = ()
    status: ResultStatus = ResultStatus.SUCCESS
    data_source: DataSource = DataSource.SEASON_CACHE
    message: str = ""
    diagnostics: Tuple[str, ...] = ()

    def for_tour(self, tour_id: str) -> Optional[TourStandings]:
        for group in self.standings_by_tour:
            if group.tour.id == tour_id:
                return group
        return None


@dataclass(frozen=True)
class TotalsMismatch:
    """A stored tour card total that differs from the recomputed fold."""
    tour_card_id: str
    field: str
    stored: float
    computed: float


@dataclass(frozen=True)
class PlayoffTeam:
    entry: StandingsEntry
    playoff_position: int  # 1-based within its group
    playoff_type: str      # "gold" or "silver"

    @property
    def tour_card(self) -> TourCard:
        return self.entry.tour_card


@dataclass(frozen=True)
class PlayoffCut:
    gold: Tuple[PlayoffTeam, ...] = ()
    silver: Tuple[PlayoffTeam, ...] = ()
    unqualified: Tuple[StandingsEntry, ...] = ()
    diagnostics: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TourPlayoffs:
    tour: Tour
    gold_teams: Tuple[PlayoffTeam, ...] = ()
    silver_teams: Tuple[PlayoffTeam, ...] = ()
    unqualified: Tuple[StandingsEntry, ...] = ()
    playoff_spots: Tuple[int, ...] = ()

    @property
    def total_teams(self) -> int:
        return len(self.gold_teams) + len(self.silver_teams) + len(self.unqualified)


@dataclass(frozen=True)
class PlayoffsResult:
    season_id: str
    playoffs_by_tour: Tuple[TourPlayoffs, ...] = ()
    status: ResultStatus = ResultStatus.SUCCESS
    data_source: DataSource = DataSource.SEASON_CACHE
    message: str = ""
    diagnostics: Tuple[str, ...] = ()

    @property
    def total_gold_teams(self) -> int:
        return sum(len(t.gold_teams) for t in self.playoffs_by_tour)

    @property
    def total_silver_teams(self) -> int:
        return sum(len(t.silver_teams) for t in self.playoffs_by_tour)


@dataclass(frozen=True)
class GroupsResult:
    """Golfer groups built for a tournament."""
    tournament: Optional[Tournament]
    groups: Tuple[Tuple[Golfer, ...], ...] = ((), (), (), (), ())
    status: ResultStatus = ResultStatus.SUCCESS
    data_source: DataSource = DataSource.LIVE
    message: str = ""
    diagnostics: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def golfers_processed(self) -> int:
        return sum(len(g) for g in self.groups)

    @property
    def groups_created(self) -> int:
        return sum(1 for g in self.groups if g)
