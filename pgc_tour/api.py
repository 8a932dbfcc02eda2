"""
Data Golf API client for the PGC Tour engine.
Fetches skill rankings and tournament fields.
"""

import json
import logging
import time
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Any

import requests

from .config import get_config
from .database import Database
from .groups import rank_field
from .models import Golfer, RankingData

logger = logging.getLogger(__name__)


def display_name(player_name: str) -> str:
    """Data Golf lists players as "Last, First"; convert to "First Last"."""
    if ", " not in player_name:
        return player_name.strip()
    last, first = player_name.split(", ", 1)
    return f"{first.strip()} {last.strip()}"


class DataGolfAPI:
    """Client for Data Golf API."""

    BASE_URL = "https://feeds.datagolf.com"

    def __init__(self, api_key: Optional[str] = None, db: Optional[Database] = None,
                 max_retries: int = 3):
        """
        Initialize API client.

        Callers that already retry (the data service cache) pass
        `max_retries=1` so each of their attempts is a single HTTP request.
        """
        config = get_config()
        self.api_key = api_key or config.datagolf_api_key
        self.base_url = config.datagolf_base_url or self.BASE_URL
        self.timeout = config.fetch_timeout
        self.db = db or Database()
        self.max_retries = max(1, max_retries)
        self._session = requests.Session()
        self.last_error: str = ""

    def _request(self, endpoint: str, params: Optional[Dict] = None, cache_hours: float = 1) -> Optional[Any]:
        """Make API request with caching."""
        if not self.api_key:
            self.last_error = "DATAGOLF_API_KEY not configured"
            raise ValueError(
                "DATAGOLF_API_KEY not configured. "
                "Set the DATAGOLF_API_KEY environment variable. "
                "Get a key at https://datagolf.com/api-access"
            )

        # Check cache first
        cache_key = f"datagolf:{endpoint}:{str(params)}"
        cached = self.db.get_cache(cache_key)
        if cached:
            logger.debug(f"Using cached data for {endpoint}")
            return cached

        url = f"{self.base_url}{endpoint}"
        params = dict(params or {})
        params["key"] = self.api_key

        max_retries = self.max_retries
        base_delay = 1.0  # seconds

        for attempt in range(max_retries):
            try:
                response = self._session.get(url, params=params, timeout=self.timeout)
                response.raise_for_status()

                try:
                    data = response.json()
                except json.JSONDecodeError as e:
                    self.last_error = f"Failed to parse JSON from {endpoint}: {e}"
                    logger.error(self.last_error)
                    return None

                # Only cache non-empty responses
                if data:
                    expires = datetime.now() + timedelta(hours=cache_hours)
                    self.db.set_cache(cache_key, data, expires)
                    self.last_error = ""
                else:
                    self.last_error = f"Empty response from {endpoint}"
                    logger.warning(self.last_error)

                return data
            except requests.RequestException as e:
                self.last_error = f"API request failed: {e}"
                if attempt < max_retries - 1:
                    delay = base_delay * (2 ** attempt)  # Exponential backoff
                    logger.warning(f"API request failed (attempt {attempt + 1}/{max_retries}): {e}. Retrying in {delay}s...")
                    time.sleep(delay)
                else:
                    logger.error(f"API request failed after {max_retries} attempts: {e}")
                    return None

        return None

    def get_dg_rankings(self) -> Dict[int, RankingData]:
        """
        Get Data Golf skill rankings keyed by Data Golf id.
        Covers the top 500 players with skill estimates and OWGR rank.
        """
        data = self._request(
            "/preds/get-dg-rankings",
            params={"file_format": "json"},
            cache_hours=12
        )

        if not data:
            return {}

        rankings = {}
        rankings_list = data.get("rankings", []) if isinstance(data, dict) else data
        for player in rankings_list:
            dg_id = player.get("dg_id")
            if dg_id is None or player.get("dg_skill_estimate") is None:
                continue
            rankings[int(dg_id)] = RankingData(
                api_id=int(dg_id),
                player_name=display_name(player.get("player_name", "")),
                skill_estimate=float(player["dg_skill_estimate"]),
                dg_rank=player.get("datagolf_rank") or 999,
                owgr_rank=player.get("owgr_rank"),
                country=player.get("country", "") or "",
            )
        logger.info(f"Fetched rankings for {len(rankings)} golfers")
        return rankings

    def get_field_updates(self, tournament_id: Optional[str] = None, tour: str = "pga") -> List[Golfer]:
        """Get the current field for the upcoming tournament."""
        data = self._request(
            "/field-updates",
            params={"tour": tour, "file_format": "json"},
            cache_hours=1
        )

        if not data:
            return []

        field = []
        for player in data.get("field", []):
            dg_id = player.get("dg_id")
            name = player.get("player_name", "")
            if dg_id is None or not name:
                continue
            field.append(Golfer(
                api_id=int(dg_id),
                player_name=display_name(name),
                tournament_id=tournament_id,
                country=player.get("country") or None,
            ))
        return field

    def refresh_skill_estimates(self, tournament_id: str) -> int:
        """Rank a stored tournament field by current skill estimates and save it."""
        golfers = self.db.fetch_golfers(tournament_id)
        if not golfers:
            logger.warning(f"No golfers stored for tournament {tournament_id}")
            return 0

        rankings = self.get_dg_rankings()
        if not rankings:
            logger.warning("No rankings available; skill estimates unchanged")
            return 0

        ranked = rank_field(golfers, rankings)
        saved = self.db.save_golfers(ranked)
        logger.info(f"Updated skill estimates for {saved} golfers in tournament {tournament_id}")
        return saved


def get_api() -> DataGolfAPI:
    """Get configured API client."""
    return DataGolfAPI()
