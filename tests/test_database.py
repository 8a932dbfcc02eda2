"""
Tests for database.py - Database operations.
"""

import sqlite3
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from pgc_tour.database import Database, DatabaseError
from pgc_tour.models import Tier, TierName, Tour
from pgc_tour.standings import apply_totals

from conftest import make_card, make_golfer, make_team


SEASON_EXPORT = {
    "season_id": "2025",
    "year": 2025,
    "tiers": [{"id": "standard", "name": "Standard", "payouts": [2500, 1500], "points": [500, 300]}],
    "tours": [
        {"id": "tour-a", "name": "Alpha Tour", "short_form": "ALP", "playoff_spots": [2, 1]},
        {"id": "tour-b", "name": "Bravo Tour", "short_form": "BRV", "playoff_spots": [1]},
    ],
    "tour_cards": [
        {"id": "a1", "member_id": "m1", "tour_id": "tour-a", "display_name": "Member a1"},
        {"id": "b1", "member_id": "m2", "tour_id": "tour-b", "display_name": "Member b1"},
    ],
    "tournaments": [
        {
            "id": "t1",
            "name": "Sony Open",
            "tier_id": "standard",
            "start_date": "2025-01-09T00:00:00",
            "end_date": "2025-01-12T23:59:00",
            "current_round": 5,
            "teams": [
                {"id": 1, "tour_card_id": "a1", "golfer_ids": [101, 102], "position": "1",
                 "score": -10, "points": 500, "earnings": 2500},
                {"id": 2, "tour_card_id": "b1", "golfer_ids": [101], "position": "CUT", "made_cut": False},
            ],
            "golfers": [
                {"api_id": 101, "player_name": "Scottie Scheffler", "position": "1", "score": -12},
                {"api_id": 102, "player_name": "Rory McIlroy", "position": "T2", "round_one": 68},
            ],
        },
    ],
}


@pytest.fixture
def db(temp_db_path):
    """Create a test database."""
    with patch('pgc_tour.database.get_config') as mock_config:
        mock_config.return_value.db_path = temp_db_path
        return Database(db_path=temp_db_path)


class TestDatabaseInitialization:
    """Tests for database initialization."""

    def test_database_creates_file(self, temp_db_path):
        """Test that database file is created."""
        with patch('pgc_tour.database.get_config') as mock_config:
            mock_config.return_value.db_path = temp_db_path
            Database()
            assert temp_db_path.exists()

    def test_database_creates_tables(self, db, temp_db_path):
        """Test that all required tables are created."""
        conn = sqlite3.connect(temp_db_path)
        cursor = conn.cursor()
        cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = {row[0] for row in cursor.fetchall()}
        conn.close()

        expected_tables = {
            'seasons', 'tours', 'tiers', 'tour_cards', 'tournaments',
            'teams', 'golfers', 'cache',
        }
        assert expected_tables.issubset(tables)

    @pytest.mark.parametrize("error,message", [
        ("permission denied", "Permission denied"),
        ("attempt to write a readonly database", "Permission denied"),
        ("disk full", "Disk full"),
        ("unable to open database file", "Cannot open database"),
        ("database is locked", "Database error"),
    ])
    def test_database_errors_are_translated(self, temp_dir, error, message):
        """Test sqlite errors on startup surface as DatabaseError."""
        with patch('pgc_tour.database.get_config') as mock_config:
            mock_config.return_value.db_path = temp_dir / "test.db"
            with patch.object(Database, '_init_db', side_effect=sqlite3.OperationalError(error)):
                with pytest.raises(DatabaseError) as exc_info:
                    Database(db_path=temp_dir / "test.db")
                assert message in str(exc_info.value)


class TestSeasonRecords:
    """Tests for tours, tiers and tour cards."""

    def test_tour_round_trip(self, db):
        db.save_tour(Tour("tour-b", "Bravo Tour", "2025", "BRV", (1,)))
        db.save_tour(Tour("tour-a", "Alpha Tour", "2025", "ALP", (8, 4)))
        tours = db.fetch_tours("2025")
        assert [t.id for t in tours] == ["tour-a", "tour-b"]
        assert tours[0].playoff_spots == (8, 4)
        assert db.fetch_tours("1999") == []

    def test_corrupt_playoff_spots_are_empty(self, db, temp_db_path):
        """Test that corrupted JSON in playoff spots is handled gracefully."""
        conn = sqlite3.connect(temp_db_path)
        conn.execute(
            "INSERT INTO tours (id, season_id, name, playoff_spots_json) VALUES (?, ?, ?, ?)",
            ("tour-x", "2025", "Broken Tour", "invalid json {{{"),
        )
        conn.commit()
        conn.close()

        tour = db.fetch_tours("2025")[0]
        assert tour.playoff_spots == ()

    def test_tier_round_trip(self, db):
        db.save_tier(Tier("playoff", TierName.PLAYOFF, payouts=(25000, 15000), season_id="2025"))
        tier = db.fetch_tiers("2025")[0]
        assert tier.name == TierName.PLAYOFF
        assert tier.payouts == (25000, 15000)
        assert tier.points == ()

    def test_tour_card_round_trip(self, db):
        db.save_tour_card(make_card("a1", "tour-a", points=120.5, win=1))
        card = db.fetch_tour_cards("2025")[0]
        assert card.points == 120.5
        assert card.win == 1
        assert card.position is None

    def test_seasons(self, db):
        db.save_season("2025", 2025)
        db.save_season("2024", 2024)
        assert db.get_seasons() == ["2024", "2025"]


class TestTournamentRecords:
    """Tests for tournaments, teams and golfers."""

    def test_load_snapshot_counts(self, db):
        counts = db.load_snapshot(SEASON_EXPORT)
        assert counts == {
            "tiers": 1, "tours": 2, "tour_cards": 2,
            "tournaments": 1, "teams": 2, "golfers": 2,
        }

    def test_loaded_records_read_back(self, db):
        db.load_snapshot(SEASON_EXPORT)
        tournament = db.fetch_tournament("t1")
        assert tournament.start_date == datetime(2025, 1, 9)
        assert tournament.current_round == 5
        assert tournament.teams == ()

        teams = db.fetch_teams("t1")
        assert teams[0].golfer_ids == (101, 102)
        assert teams[0].made_cut is None
        assert teams[1].made_cut is False

        golfers = db.fetch_golfers("t1")
        assert [g.player_name for g in golfers] == ["Scottie Scheffler", "Rory McIlroy"]
        assert golfers[1].round_one == 68

    def test_fetch_tournament_not_found(self, db):
        assert db.fetch_tournament("missing") is None

    def test_tournaments_in_schedule_order(self, db, sample_season):
        for tournament in reversed(sample_season.tournaments):
            db.save_tournament(tournament)
        assert [t.id for t in db.fetch_tournaments("2025")] == ["t1", "t2"]

    def test_save_teams_replaces(self, db):
        assert db.save_teams([make_team(1, "a1", "5"), make_team(2, "a2", "6")]) == 2
        db.save_team(make_team(1, "a1", "1", -4.0))
        teams = db.fetch_teams("t1")
        assert len(teams) == 2
        assert teams[0].position == "1"

    def test_golfer_group_round_trip(self, db):
        db.save_golfers([make_golfer(101, tournament_id="t1", group=1, skill=1.0)])
        golfer = db.fetch_golfers("t1")[0]
        assert golfer.group == 1
        assert golfer.skill_estimate == 1.0


class TestTotalsWriteBack:
    """Tests for writing recomputed totals and brackets."""

    def test_update_tour_card_totals(self, db, sample_season):
        for card in sample_season.tour_cards:
            db.save_tour_card(card)
        assert db.update_tour_card_totals(apply_totals(sample_season)) == 6

        by_id = {card.id: card for card in db.fetch_tour_cards("2025")}
        assert by_id["a1"].points == 500
        assert by_id["a2"].position == "T2"

    def test_update_playoff_brackets(self, db, sample_season):
        for card in sample_season.tour_cards:
            db.save_tour_card(card)
        assert db.update_playoff_brackets({"a1": 1, "a3": 2, "zz": 1}) == 2

        by_id = {card.id: card for card in db.fetch_tour_cards("2025")}
        assert (by_id["a1"].playoff, by_id["a3"].playoff, by_id["a4"].playoff) == (1, 2, 0)


class TestCacheOperations:
    """Tests for cache operations."""

    def test_set_and_get_cache(self, db):
        """Test setting and getting cache entries."""
        test_data = {"key": "value", "nested": {"a": 1}}
        expires = datetime.now() + timedelta(hours=1)

        db.set_cache("test_key", test_data, expires)
        assert db.get_cache("test_key") == test_data

    def test_cache_expiration(self, db):
        """Test that expired cache entries return None."""
        db.set_cache("expired_key", {"data": 1}, datetime.now() - timedelta(hours=1))
        assert db.get_cache("expired_key") is None

    def test_clear_expired_cache(self, db):
        """Test clearing expired cache entries."""
        db.set_cache("expired", {"a": 1}, datetime.now() - timedelta(hours=1))
        db.set_cache("valid", {"b": 2}, datetime.now() + timedelta(hours=1))

        assert db.clear_expired_cache() == 1
        assert db.get_cache("valid") == {"b": 2}
