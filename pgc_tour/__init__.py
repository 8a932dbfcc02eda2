"""
PGC Tour Engine
Golfer groups, tournament leaderboards, season standings and playoff cuts
for a fantasy golf season.
"""

__version__ = "1.0.0"

from .models import (
    Golfer, Team, TourCard, Tour, Tier, TierName, Tournament,
    SeasonSnapshot, TournamentSnapshot, DataSource, ResultStatus, TournamentStatus,
)
from .config import Config, get_config
from .positions import compare_positions, parse_position, sort_positions
from .groups import build_groups
from .leaderboard import build_leaderboard
from .standings import build_season_standings
from .playoffs import build_playoffs, cut_playoffs
from .results import score_team, update_tournament_teams
from .cache import ExpiringCache, FetchError, FetchTimeout
from .freshness import DataService, FreshnessPolicy
from .database import Database, DatabaseError
from .api import DataGolfAPI, get_api

__all__ = [
    # Models
    "Golfer", "Team", "TourCard", "Tour", "Tier", "TierName", "Tournament",
    "SeasonSnapshot", "TournamentSnapshot", "DataSource", "ResultStatus", "TournamentStatus",
    # Config
    "Config", "get_config",
    # Ranking components
    "compare_positions", "parse_position", "sort_positions", "build_groups",
    "build_leaderboard", "build_season_standings", "build_playoffs", "cut_playoffs",
    "score_team", "update_tournament_teams",
    # Freshness
    "ExpiringCache", "FetchError", "FetchTimeout", "DataService", "FreshnessPolicy",
    # Collaborators
    "Database", "DatabaseError", "DataGolfAPI", "get_api",
]
