"""
Data freshness policy and the data service built on it.

`FreshnessPolicy` maps a tournament's status and the requested operation to
a cache bucket (staleness budget, retries, data source). `DataService` is
the I/O boundary: it loads snapshots from a record store through the shared
`ExpiringCache`, runs the pure ranking components on them, and turns fetch
failures into tagged results instead of exceptions.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from .cache import CachePolicy, ExpiringCache, FetchError
from .config import (
    CACHE_PRESETS, HISTORICAL_BUCKET, LIVE_BUCKET, RANKINGS_BUCKET, RECENT_BUCKET,
    SEASON_BUCKET, UPCOMING_BUCKET, CachePreset, Config, get_config,
)
from .groups import build_groups, rank_field
from .leaderboard import build_leaderboard
from .models import (
    DataSource, Golfer, GroupsResult, LeaderboardResult, PlayoffsResult,
    RankingData, ResultStatus, SeasonSnapshot, StandingsResult, Team, Tier, Tour,
    TourCard, Tournament, TournamentSnapshot, TournamentStatus,
)
from .playoffs import build_playoffs_from_standings
from .standings import build_season_standings

logger = logging.getLogger(__name__)


class Operation(Enum):
    LEADERBOARD = "leaderboard"
    STANDINGS = "standings"
    PLAYOFFS = "playoffs"
    GROUPS = "groups"


SEASON_OPERATIONS = {Operation.STANDINGS, Operation.PLAYOFFS}

STATUS_BUCKETS = {
    TournamentStatus.CURRENT: LIVE_BUCKET,
    TournamentStatus.RECENT: RECENT_BUCKET,
    TournamentStatus.HISTORICAL: HISTORICAL_BUCKET,
    TournamentStatus.UPCOMING: UPCOMING_BUCKET,
}


class RecordStore(Protocol):
    """Read-only source of raw season and tournament records."""

    def fetch_tournament(self, tournament_id: str) -> Optional[Tournament]: ...

    def fetch_tournaments(self, season_id: str) -> List[Tournament]: ...

    def fetch_tours(self, season_id: str) -> List[Tour]: ...

    def fetch_tour_cards(self, season_id: str) -> List[TourCard]: ...

    def fetch_tiers(self, season_id: str) -> List[Tier]: ...

    def fetch_teams(self, tournament_id: str) -> List[Team]: ...

    def fetch_golfers(self, tournament_id: str) -> List[Golfer]: ...


class RankingsProvider(Protocol):
    last_error: Optional[str]

    def get_dg_rankings(self) -> Dict[int, RankingData]: ...


def tournament_status(tournament: Tournament, now: datetime,
                      recent_window: timedelta = timedelta(hours=24)) -> TournamentStatus:
    """UPCOMING, CURRENT, RECENT (ended within `recent_window`) or HISTORICAL."""
    return tournament.status_at(now, recent_window)


class FreshnessPolicy:
    """Static status/operation -> cache policy lookup."""

    def __init__(self, presets: Optional[Dict[str, CachePreset]] = None):
        self.presets = presets or CACHE_PRESETS

    def bucket_for(self, status: Optional[TournamentStatus], operation: Operation) -> str:
        if operation in SEASON_OPERATIONS or status is None:
            return SEASON_BUCKET
        return STATUS_BUCKETS[status]

    def for_bucket(self, bucket: str, force_refresh: bool = False) -> CachePolicy:
        policy = CachePolicy.from_preset(bucket, self.presets[bucket])
        return policy.forced() if force_refresh else policy

    def resolve(self, status: Optional[TournamentStatus], operation: Operation,
                force_refresh: bool = False) -> CachePolicy:
        """
        Cache policy for an operation on a tournament in `status`.

        Season-wide operations always use the season bucket. A forced refresh
        bypasses the cache in every bucket and reports live data.
        """
        return self.for_bucket(self.bucket_for(status, operation), force_refresh)


class DataService:
    """Loads snapshots through the cache and runs the ranking components on them."""

    def __init__(
        self,
        store: RecordStore,
        rankings: Optional[RankingsProvider] = None,
        cache: Optional[ExpiringCache] = None,
        policy: Optional[FreshnessPolicy] = None,
        config: Optional[Config] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or get_config()
        self.store = store
        self.rankings = rankings
        self.cache = cache or ExpiringCache(max_workers=self.config.cache_workers)
        self.policy = policy or FreshnessPolicy()
        self._now = now or datetime.now
        # Separate from the cache's pool: loaders run inside cache workers.
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.cache_workers, thread_name_prefix="pgc-load"
        )

    @property
    def recent_window(self) -> timedelta:
        return timedelta(hours=self.config.recent_window_hours)

    def close(self):
        self._executor.shutdown(wait=True)
        self.cache.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # =========================================================================
    # Snapshot loading
    # =========================================================================

    def load_tournament_snapshot(self, tournament: Tournament) -> TournamentSnapshot:
        """Fetch one tournament's teams and golfers plus its season's tours, cards and tiers."""
        season_id = tournament.season_id
        teams = self._executor.submit(self.store.fetch_teams, tournament.id)
        golfers = self._executor.submit(self.store.fetch_golfers, tournament.id)
        tours = self._executor.submit(self.store.fetch_tours, season_id)
        cards = self._executor.submit(self.store.fetch_tour_cards, season_id)
        tiers = self._executor.submit(self.store.fetch_tiers, season_id)

        tier = next((t for t in tiers.result() if t.id == tournament.tier_id), None)
        return TournamentSnapshot(
            tournament=tournament.with_records(teams.result(), golfers.result()),
            tours=tuple(tours.result()),
            tour_cards=tuple(cards.result()),
            tier=tier,
        )

    def load_season(self, season_id: str) -> SeasonSnapshot:
        """Fetch a full season: collections concurrently, then every tournament's teams."""
        tournaments = self._executor.submit(self.store.fetch_tournaments, season_id)
        tours = self._executor.submit(self.store.fetch_tours, season_id)
        cards = self._executor.submit(self.store.fetch_tour_cards, season_id)
        tiers = self._executor.submit(self.store.fetch_tiers, season_id)

        records = list(tournaments.result())
        team_futures = [self._executor.submit(self.store.fetch_teams, t.id) for t in records]
        with_teams = tuple(
            tournament.with_records(teams=future.result())
            for tournament, future in zip(records, team_futures)
        )
        snapshot = SeasonSnapshot(
            season_id=season_id,
            tournaments=with_teams,
            tours=tuple(tours.result()),
            tour_cards=tuple(cards.result()),
            tiers=tuple(tiers.result()),
        )
        logger.debug(
            f"Loaded season {season_id}: {len(snapshot.tournaments)} tournaments, "
            f"{len(snapshot.tour_cards)} tour cards"
        )
        return snapshot

    def _tournament(self, tournament_id: str, force_refresh: bool, timeout: Optional[float]) -> Optional[Tournament]:
        key = ("tournament", tournament_id)
        policy = self.policy.for_bucket(SEASON_BUCKET, force_refresh)
        tournament = self.cache.get_or_fetch(
            key, lambda: self.store.fetch_tournament(tournament_id), policy, timeout
        )
        if tournament is None:
            # Misses are not cached
            self.cache.invalidate(key)
        return tournament

    def _season(self, season_id: str, policy: CachePolicy, timeout: Optional[float]) -> SeasonSnapshot:
        return self.cache.get_or_fetch(
            ("season", season_id),
            lambda: self.load_season(season_id),
            policy,
            timeout,
        )

    def _timeout(self, timeout: Optional[float]) -> float:
        return self.config.fetch_timeout if timeout is None else timeout

    # =========================================================================
    # Operations
    # =========================================================================

    def leaderboard(self, tournament_id: str, force_refresh: bool = False,
                    timeout: Optional[float] = None) -> LeaderboardResult:
        """Per-tour leaderboard, from the snapshot the tournament's status calls for."""
        timeout = self._timeout(timeout)
        tournament = None
        try:
            tournament = self._tournament(tournament_id, force_refresh, timeout)
            if tournament is None:
                return LeaderboardResult(
                    tournament=None,
                    status=ResultStatus.NOT_FOUND,
                    data_source=DataSource.NONE,
                    message=f"Tournament {tournament_id} not found",
                )

            now = self._now()
            status = tournament_status(tournament, now, self.recent_window)
            policy = self.policy.resolve(status, Operation.LEADERBOARD, force_refresh)
            snapshot = self.cache.get_or_fetch(
                ("leaderboard", tournament_id),
                lambda: self.load_tournament_snapshot(tournament),
                policy,
                timeout,
            )
        except FetchError as e:
            logger.error(f"Leaderboard for {tournament_id} unavailable: {e}")
            return LeaderboardResult(
                tournament=tournament,
                status=ResultStatus.ERROR,
                data_source=DataSource.ERROR,
                message=str(e),
            )

        return build_leaderboard(snapshot, policy.data_source, status, now)

    def season_standings(self, season_id: str, force_refresh: bool = False,
                         timeout: Optional[float] = None) -> StandingsResult:
        policy = self.policy.resolve(None, Operation.STANDINGS, force_refresh)
        try:
            season = self._season(season_id, policy, self._timeout(timeout))
        except FetchError as e:
            logger.error(f"Standings for season {season_id} unavailable: {e}")
            return StandingsResult(
                season_id=season_id,
                status=ResultStatus.ERROR,
                data_source=DataSource.ERROR,
                message=str(e),
            )
        return build_season_standings(season, self._now(), policy.data_source)

    def playoffs(self, season_id: str, force_refresh: bool = False,
                 timeout: Optional[float] = None) -> PlayoffsResult:
        standings = self.season_standings(season_id, force_refresh, timeout)
        return build_playoffs_from_standings(standings)

    def groups(self, tournament_id: str, field_size: Optional[int] = None,
               refresh_rankings: bool = False, timeout: Optional[float] = None) -> GroupsResult:
        """
        Build the five golfer groups for a tournament's field.

        With a rankings provider the field is ranked by current skill
        estimates first; otherwise the stored skill estimates are used.
        """
        timeout = self._timeout(timeout)
        tournament = None
        try:
            tournament = self._tournament(tournament_id, False, timeout)
            if tournament is None:
                return GroupsResult(
                    tournament=None,
                    status=ResultStatus.NOT_FOUND,
                    data_source=DataSource.NONE,
                    message=f"Tournament {tournament_id} not found",
                )

            status = tournament_status(tournament, self._now(), self.recent_window)
            policy = self.policy.resolve(status, Operation.GROUPS, refresh_rankings)
            field = self.cache.get_or_fetch(
                ("groups", tournament_id),
                lambda: list(self.store.fetch_golfers(tournament_id)),
                policy,
                timeout,
            )
            if self.rankings is not None:
                rankings_policy = self.policy.for_bucket(RANKINGS_BUCKET, refresh_rankings)
                rankings = self.cache.get_or_fetch(
                    ("rankings",), self._fetch_rankings, rankings_policy, timeout
                )
                field = rank_field(field, rankings)
        except FetchError as e:
            logger.error(f"Groups for {tournament_id} unavailable: {e}")
            return GroupsResult(
                tournament=tournament,
                status=ResultStatus.ERROR,
                data_source=DataSource.ERROR,
                message=str(e),
            )

        if not field:
            return GroupsResult(
                tournament=tournament,
                status=ResultStatus.EMPTY,
                data_source=policy.data_source,
                message="No ranked golfers in the tournament field",
            )

        groups = build_groups(field, field_size)
        logger.info(f"Created {sum(1 for g in groups if g)} groups from {len(field)} golfers for {tournament.name}")
        return GroupsResult(
            tournament=tournament,
            groups=groups,
            status=ResultStatus.SUCCESS,
            data_source=policy.data_source,
        )

    def _fetch_rankings(self) -> Dict[int, RankingData]:
        rankings = self.rankings.get_dg_rankings()
        if not rankings:
            reason = getattr(self.rankings, "last_error", None) or "empty response"
            raise FetchError(f"Rankings provider returned no data: {reason}")
        return rankings

    def invalidate_season(self, season_id: str, tournament_ids: Iterable[str] = ()):
        """Drop cached season data so the next call reloads it."""
        self.cache.invalidate(("season", season_id))
        for tournament_id in tournament_ids:
            self.cache.invalidate(("tournament", tournament_id))
            self.cache.invalidate(("leaderboard", tournament_id))
