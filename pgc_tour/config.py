"""
Configuration management for the PGC Tour engine.
Includes the group-size table, the cache freshness presets, and default tier schedules.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass

from dotenv import load_dotenv

from .models import DataSource, Tier, TierName


# Load environment variables from .env file
load_dotenv()


@dataclass
class Config:
    """Application configuration."""
    datagolf_api_key: str = ""

    # Paths
    data_dir: Path = Path.home() / ".pgc_tour"
    db_path: Optional[Path] = None

    # Freshness settings
    recent_window_hours: float = 24.0  # A finished tournament counts as "recent" this long
    fetch_timeout: float = 30.0        # Seconds a caller waits on an in-flight fetch
    cache_workers: int = 8

    # URLs
    datagolf_base_url: str = "https://feeds.datagolf.com"

    def __post_init__(self):
        """Load settings from environment."""
        self.datagolf_api_key = os.getenv("DATAGOLF_API_KEY", self.datagolf_api_key)

        db_path = os.getenv("PGC_DB_PATH")
        if db_path:
            self.db_path = Path(db_path)
        elif self.db_path is None:
            self.db_path = self.data_dir / "pgc_tour.db"

        self.recent_window_hours = float(os.getenv("PGC_RECENT_WINDOW_HOURS", self.recent_window_hours))
        self.fetch_timeout = float(os.getenv("PGC_FETCH_TIMEOUT", self.fetch_timeout))
        self.cache_workers = int(os.getenv("PGC_CACHE_WORKERS", self.cache_workers))

        # Ensure directories exist
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise RuntimeError(f"Permission denied creating data directory {self.data_dir}: {e}") from e
        except OSError as e:
            raise RuntimeError(f"Failed to create data directory {self.data_dir}: {e}") from e

    def validate_config(self, require_api_key: bool = False) -> List[str]:
        """Return a list of configuration problems (empty when valid)."""
        errors = []
        if require_api_key and not self.datagolf_api_key:
            errors.append(
                "DATAGOLF_API_KEY not configured. Get a key at https://datagolf.com/api-access"
            )
        if self.recent_window_hours < 0:
            errors.append("PGC_RECENT_WINDOW_HOURS must be non-negative")
        if self.fetch_timeout <= 0:
            errors.append("PGC_FETCH_TIMEOUT must be positive")
        if self.cache_workers < 1:
            errors.append("PGC_CACHE_WORKERS must be at least 1")
        return errors


def get_config() -> Config:
    """Get application configuration."""
    return Config()


# ============================================================================
# GOLFER GROUPS
# Each tier takes a share of the ranked field, capped at a fixed count.
# Tier 5 takes whatever is left.
# ============================================================================

@dataclass(frozen=True)
class GroupLimit:
    name: str
    percentage: float
    max_count: int


GROUP_LIMITS: Tuple[GroupLimit, ...] = (
    GroupLimit("Elite", 0.10, 10),
    GroupLimit("Strong", 0.175, 16),
    GroupLimit("Solid", 0.225, 22),
    GroupLimit("Competitive", 0.25, 30),
)

REMAINDER_GROUP_NAME = "Developmental"

# Data Golf ids left out of group creation (amateur/special invites)
EXCLUDED_GOLFER_IDS: Tuple[int, ...] = (18417,)


# ============================================================================
# TEAM SCORING
# ============================================================================

DEFAULT_PAR = 72
# Strokes over par charged for a round a withdrawn/disqualified golfer never played
PENALTY_STROKES = 8
# Weekend rounds count the best this many active golfers, and a team with
# fewer active golfers than this misses the cut
MIN_GOLFERS_FOR_CUT = 5


# ============================================================================
# FRESHNESS PRESETS
# Live data: shortest staleness, fewest retries (cost-conscious).
# Historical data: longest staleness, fewest retries (stable).
# ============================================================================

@dataclass(frozen=True)
class CachePreset:
    stale_seconds: float
    retries: int
    retry_delay: float
    data_source: DataSource


LIVE_BUCKET = "live"
RECENT_BUCKET = "recent"
SEASON_BUCKET = "season"
HISTORICAL_BUCKET = "historical"
UPCOMING_BUCKET = "upcoming"
RANKINGS_BUCKET = "rankings"

CACHE_PRESETS: Dict[str, CachePreset] = {
    LIVE_BUCKET: CachePreset(
        stale_seconds=2 * 60,
        retries=1,
        retry_delay=5.0,
        data_source=DataSource.LIVE,
    ),
    RECENT_BUCKET: CachePreset(
        stale_seconds=15 * 60,
        retries=2,
        retry_delay=3.0,
        data_source=DataSource.SEASON_CACHE,
    ),
    SEASON_BUCKET: CachePreset(
        stale_seconds=15 * 60,
        retries=2,
        retry_delay=2.0,
        data_source=DataSource.SEASON_CACHE,
    ),
    HISTORICAL_BUCKET: CachePreset(
        stale_seconds=24 * 60 * 60,
        retries=1,
        retry_delay=1.0,
        data_source=DataSource.HISTORICAL_API,
    ),
    UPCOMING_BUCKET: CachePreset(
        stale_seconds=5 * 60,
        retries=2,
        retry_delay=3.0,
        data_source=DataSource.SEASON_CACHE,
    ),
    # Skill rankings change weekly, independent of any tournament
    RANKINGS_BUCKET: CachePreset(
        stale_seconds=12 * 60 * 60,
        retries=1,
        retry_delay=2.0,
        data_source=DataSource.LIVE,
    ),
}


# ============================================================================
# DEFAULT TIER SCHEDULES
# Used when a season export carries no tiers of its own.
# ============================================================================

DEFAULT_TIERS: Dict[TierName, Tier] = {
    TierName.STANDARD: Tier(
        id="standard",
        name=TierName.STANDARD,
        points=(500, 300, 190, 135, 110, 100, 90, 85, 80, 75,
                70, 65, 60, 57, 54, 51, 48, 45, 42, 40,
                38, 36, 34, 32, 30, 28, 26, 24, 22, 20),
        payouts=(2500, 1500, 950, 675, 550, 500, 450, 425, 400, 375,
                 350, 325, 300, 285, 270, 255, 240, 225, 210, 200,
                 190, 180, 170, 160, 150, 140, 130, 120, 110, 100),
    ),
    TierName.ELEVATED: Tier(
        id="elevated",
        name=TierName.ELEVATED,
        points=(750, 450, 285, 200, 165, 150, 135, 125, 120, 112,
                105, 97, 90, 85, 81, 76, 72, 67, 63, 60),
        payouts=(5000, 3000, 1900, 1350, 1100, 1000, 900, 850, 800, 750,
                 700, 650, 600, 570, 540, 510, 480, 450, 420, 400),
    ),
    TierName.MAJOR: Tier(
        id="major",
        name=TierName.MAJOR,
        points=(1000, 600, 380, 270, 220, 200, 180, 170, 160, 150,
                140, 130, 120, 114, 108, 102, 96, 90, 84, 80),
        payouts=(10000, 6000, 3800, 2700, 2200, 2000, 1800, 1700, 1600, 1500,
                 1400, 1300, 1200, 1140, 1080, 1020, 960, 900, 840, 800),
    ),
    TierName.PLAYOFF: Tier(
        id="playoff",
        name=TierName.PLAYOFF,
        points=(),
        payouts=(25000, 15000, 10000, 7500, 6000, 5000, 4500, 4000, 3500, 3000),
    ),
}
