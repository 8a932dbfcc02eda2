"""
Shared pytest fixtures for PGC Tour engine tests.
"""

import os
import tempfile
import threading
from collections import Counter
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from pgc_tour.config import DEFAULT_TIERS, Config
from pgc_tour.models import (
    Golfer, SeasonSnapshot, Team, TierName, Tour, TourCard, Tournament,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db_path(temp_dir):
    """Create a temporary database path."""
    return temp_dir / "test_data.db"


@pytest.fixture
def mock_env_no_api_key():
    """Mock environment with no API key."""
    with patch.dict(os.environ, {"DATAGOLF_API_KEY": ""}, clear=False):
        yield


@pytest.fixture
def mock_env_with_api_key():
    """Mock environment with API key set."""
    with patch.dict(os.environ, {"DATAGOLF_API_KEY": "test_api_key_12345"}, clear=False):
        yield


@pytest.fixture
def test_config(temp_dir, temp_db_path):
    """Config pointing at the temp directory, with env overrides cleared."""
    with patch.dict(os.environ, {
        "DATAGOLF_API_KEY": "",
        "PGC_DB_PATH": str(temp_db_path),
        "PGC_RECENT_WINDOW_HOURS": "24",
        "PGC_FETCH_TIMEOUT": "5",
        "PGC_CACHE_WORKERS": "4",
    }, clear=False):
        yield Config(data_dir=temp_dir)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


# =============================================================================
# Record builders
# =============================================================================

def make_golfer(api_id, name=None, position=None, score=None, skill=None, **kwargs):
    return Golfer(
        api_id=api_id,
        player_name=name or f"Golfer {api_id}",
        position=position,
        score=score,
        skill_estimate=skill,
        **kwargs
    )


def make_team(team_id, tour_card_id, position=None, score=None, points=0, earnings=0,
              tournament_id="t1", golfer_ids=(), made_cut=None):
    return Team(
        id=team_id,
        tournament_id=tournament_id,
        tour_card_id=tour_card_id,
        golfer_ids=tuple(golfer_ids),
        position=position,
        score=score,
        points=points,
        earnings=earnings,
        made_cut=made_cut,
    )


def make_card(card_id, tour_id, **kwargs):
    return TourCard(
        id=card_id,
        member_id=f"m-{card_id}",
        tour_id=tour_id,
        season_id="2025",
        display_name=kwargs.pop("display_name", f"Member {card_id}"),
        **kwargs
    )


@pytest.fixture
def sample_season():
    """
    Two tours, one concluded tournament and one in progress.

    Alpha Tour (2 gold, 1 silver): a1 wins, a2/a3 tie for second, a4 misses the cut.
    Bravo Tour (1 gold): b1 wins, b2 second.
    """
    tours = (
        Tour(id="tour-a", name="Alpha Tour", season_id="2025", short_form="ALP", playoff_spots=(2, 1)),
        Tour(id="tour-b", name="Bravo Tour", season_id="2025", short_form="BRV", playoff_spots=(1,)),
    )
    cards = (
        make_card("a1", "tour-a"),
        make_card("a2", "tour-a"),
        make_card("a3", "tour-a"),
        make_card("a4", "tour-a"),
        make_card("b1", "tour-b"),
        make_card("b2", "tour-b"),
    )
    golfers = (
        make_golfer(101, "Scottie Scheffler", position="1", score=-12),
        make_golfer(102, "Rory McIlroy", position="T2", score=-9),
        make_golfer(103, "Xander Schauffele", position="T2", score=-9),
        make_golfer(104, "Jon Rahm", position="CUT", score=4),
        make_golfer(105, "Ludvig Aberg", position="WD"),
    )
    completed = Tournament(
        id="t1",
        name="Sony Open",
        season_id="2025",
        tier_id="standard",
        start_date=datetime(2025, 1, 9),
        end_date=datetime(2025, 1, 12, 23, 59),
        current_round=5,
        teams=(
            make_team(1, "a1", "1", -10.0, 500, 2500, golfer_ids=(101, 102)),
            make_team(2, "a2", "T2", -8.0, 245, 1225, golfer_ids=(102, 103)),
            make_team(3, "a3", "T2", -8.0, 245, 1225, golfer_ids=(103, 101)),
            make_team(4, "a4", "CUT", None, 0, 0, golfer_ids=(104, 105)),
            make_team(5, "b1", "1", -5.0, 500, 2500, golfer_ids=(101, 104)),
            make_team(6, "b2", "2", -3.0, 300, 1500, golfer_ids=(105, 103)),
        ),
        golfers=golfers,
    )
    in_progress = Tournament(
        id="t2",
        name="American Express",
        season_id="2025",
        tier_id="standard",
        start_date=datetime(2025, 1, 16),
        end_date=datetime(2025, 1, 19, 23, 59),
        current_round=2,
        teams=(make_team(7, "a4", "1", -6.0, 500, 2500, tournament_id="t2"),),
    )
    tier = replace(DEFAULT_TIERS[TierName.STANDARD], season_id="2025")
    return SeasonSnapshot(
        season_id="2025",
        tournaments=(completed, in_progress),
        tours=tours,
        tour_cards=cards,
        tiers=(tier,),
    )


class InMemoryStore:
    """Record store over a SeasonSnapshot that counts calls and can fail on demand."""

    def __init__(self, season: SeasonSnapshot, failures=None, gate=None):
        self.season = season
        self.calls = Counter()
        self.failures = Counter(failures or {})
        self.gate = gate
        self._lock = threading.Lock()

    def _record(self, name):
        with self._lock:
            self.calls[name] += 1
            failing = self.failures[name] > 0
            if failing:
                self.failures[name] -= 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if failing:
            raise ConnectionError(f"{name} unavailable")

    def _tournament(self, tournament_id):
        for tournament in self.season.tournaments:
            if tournament.id == tournament_id:
                return tournament
        return None

    def fetch_tournament(self, tournament_id):
        self._record("fetch_tournament")
        tournament = self._tournament(tournament_id)
        return tournament.with_records((), ()) if tournament else None

    def fetch_tournaments(self, season_id):
        self._record("fetch_tournaments")
        return [t.with_records((), ()) for t in self.season.tournaments if t.season_id == season_id]

    def fetch_tours(self, season_id):
        self._record("fetch_tours")
        return [t for t in self.season.tours if t.season_id == season_id]

    def fetch_tour_cards(self, season_id):
        self._record("fetch_tour_cards")
        return [c for c in self.season.tour_cards if c.season_id == season_id]

    def fetch_tiers(self, season_id):
        self._record("fetch_tiers")
        return list(self.season.tiers)

    def fetch_teams(self, tournament_id):
        self._record("fetch_teams")
        tournament = self._tournament(tournament_id)
        return list(tournament.teams) if tournament else []

    def fetch_golfers(self, tournament_id):
        self._record("fetch_golfers")
        tournament = self._tournament(tournament_id)
        return list(tournament.golfers) if tournament else []


@pytest.fixture
def memory_store(sample_season):
    return InMemoryStore(sample_season)
