"""
SQLite record store for the PGC Tour engine.
Persists seasons, tours, tiers, tour cards, tournaments, teams and golfers,
and serves them back through the record-store fetch methods.
"""

import sqlite3
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Dict, Any, Iterable
from contextlib import contextmanager

from .models import (
    Golfer, Team, Tier, TierName, Tour, TourCard, Tournament,
)
from .config import get_config

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Raised when the database cannot be opened or written."""
    pass


def _database_error(error: sqlite3.OperationalError, db_path: Path) -> DatabaseError:
    message = str(error).lower()
    if "permission" in message or "readonly" in message:
        return DatabaseError(f"Permission denied writing database at {db_path}")
    if "disk full" in message or "disk is full" in message:
        return DatabaseError(f"Disk full: cannot write database at {db_path}")
    if "unable to open" in message:
        return DatabaseError(f"Cannot open database at {db_path}")
    return DatabaseError(f"Database error at {db_path}: {error}")


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection."""
        config = get_config()
        self.db_path = db_path or config.db_path
        try:
            self._init_db()
        except sqlite3.OperationalError as e:
            raise _database_error(e, self.db_path) from e

    @contextmanager
    def _connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.OperationalError as e:
            conn.rollback()
            raise _database_error(e, self.db_path) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database schema."""
        with self._connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS seasons (
                    id TEXT PRIMARY KEY,
                    year INTEGER
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tours (
                    id TEXT PRIMARY KEY,
                    season_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    short_form TEXT DEFAULT '',
                    playoff_spots_json TEXT DEFAULT '[0]'
                )
            """)

            # Payouts/points are stored as JSON arrays indexed by rank - 1
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tiers (
                    id TEXT PRIMARY KEY,
                    season_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    payouts_json TEXT DEFAULT '[]',
                    points_json TEXT DEFAULT '[]'
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tour_cards (
                    id TEXT PRIMARY KEY,
                    member_id TEXT NOT NULL,
                    tour_id TEXT NOT NULL,
                    season_id TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    points REAL DEFAULT 0,
                    earnings REAL DEFAULT 0,
                    win INTEGER DEFAULT 0,
                    top_ten INTEGER DEFAULT 0,
                    made_cut INTEGER DEFAULT 0,
                    appearances INTEGER DEFAULT 0,
                    position TEXT,
                    playoff INTEGER DEFAULT 0
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tournaments (
                    id TEXT PRIMARY KEY,
                    season_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    tier_id TEXT NOT NULL,
                    start_date TEXT NOT NULL,
                    end_date TEXT NOT NULL,
                    current_round INTEGER
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS teams (
                    id INTEGER PRIMARY KEY,
                    tournament_id TEXT NOT NULL,
                    tour_card_id TEXT NOT NULL,
                    golfer_ids_json TEXT DEFAULT '[]',
                    position TEXT,
                    score REAL,
                    today REAL,
                    round INTEGER,
                    points REAL DEFAULT 0,
                    earnings REAL DEFAULT 0,
                    made_cut INTEGER
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS golfers (
                    api_id INTEGER NOT NULL,
                    tournament_id TEXT NOT NULL,
                    player_name TEXT NOT NULL,
                    position TEXT,
                    round_one INTEGER,
                    round_two INTEGER,
                    round_three INTEGER,
                    round_four INTEGER,
                    score REAL,
                    today REAL,
                    thru INTEGER,
                    skill_estimate REAL,
                    world_rank INTEGER,
                    rating REAL,
                    grp INTEGER,
                    country TEXT,
                    PRIMARY KEY (api_id, tournament_id)
                )
            """)

            # Cache table for API data
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS cache (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at TEXT NOT NULL
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_teams_tournament ON teams (tournament_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_tour_cards_season ON tour_cards (season_id)")

    # =========================================================================
    # Season / tour / tier operations
    # =========================================================================

    def save_season(self, season_id: str, year: Optional[int] = None):
        with self._connection() as conn:
            conn.execute("INSERT OR REPLACE INTO seasons (id, year) VALUES (?, ?)", (season_id, year))

    def get_seasons(self) -> List[str]:
        with self._connection() as conn:
            cursor = conn.execute("SELECT id FROM seasons ORDER BY id")
            return [row["id"] for row in cursor.fetchall()]

    def save_tour(self, tour: Tour):
        """Save or update a tour."""
        with self._connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO tours (id, season_id, name, short_form, playoff_spots_json)
                VALUES (?, ?, ?, ?, ?)
            """, (tour.id, tour.season_id, tour.name, tour.short_form, json.dumps(list(tour.playoff_spots))))

    def fetch_tours(self, season_id: str) -> List[Tour]:
        with self._connection() as conn:
            cursor = conn.execute("SELECT * FROM tours WHERE season_id = ? ORDER BY name, id", (season_id,))
            return [self._row_to_tour(row) for row in cursor.fetchall()]

    def _row_to_tour(self, row: sqlite3.Row) -> Tour:
        """Convert database row to Tour object."""
        try:
            spots = tuple(json.loads(row["playoff_spots_json"] or "[]"))
        except json.JSONDecodeError:
            logger.warning(f"Invalid playoff spots for tour {row['id']}")
            spots = ()
        return Tour(
            id=row["id"],
            name=row["name"],
            season_id=row["season_id"],
            short_form=row["short_form"] or "",
            playoff_spots=spots,
        )

    def save_tier(self, tier: Tier):
        """Save or update a tier."""
        with self._connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO tiers (id, season_id, name, payouts_json, points_json)
                VALUES (?, ?, ?, ?, ?)
            """, (
                tier.id,
                tier.season_id,
                tier.name.value,
                json.dumps(list(tier.payouts)),
                json.dumps(list(tier.points)),
            ))

    def fetch_tiers(self, season_id: str) -> List[Tier]:
        with self._connection() as conn:
            cursor = conn.execute("SELECT * FROM tiers WHERE season_id = ? ORDER BY id", (season_id,))
            return [self._row_to_tier(row) for row in cursor.fetchall()]

    def _row_to_tier(self, row: sqlite3.Row) -> Tier:
        return Tier(
            id=row["id"],
            name=TierName.from_label(row["name"]),
            payouts=tuple(json.loads(row["payouts_json"] or "[]")),
            points=tuple(json.loads(row["points_json"] or "[]")),
            season_id=row["season_id"],
        )

    # =========================================================================
    # Tour card operations
    # =========================================================================

    def save_tour_card(self, card: TourCard):
        """Save or update a tour card."""
        with self._connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO tour_cards
                (id, member_id, tour_id, season_id, display_name, points, earnings,
                 win, top_ten, made_cut, appearances, position, playoff)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                card.id, card.member_id, card.tour_id, card.season_id, card.display_name,
                card.points, card.earnings, card.win, card.top_ten, card.made_cut,
                card.appearances, card.position, card.playoff,
            ))

    def fetch_tour_cards(self, season_id: str) -> List[TourCard]:
        with self._connection() as conn:
            cursor = conn.execute("SELECT * FROM tour_cards WHERE season_id = ? ORDER BY id", (season_id,))
            return [self._row_to_tour_card(row) for row in cursor.fetchall()]

    def _row_to_tour_card(self, row: sqlite3.Row) -> TourCard:
        return TourCard(
            id=row["id"],
            member_id=row["member_id"],
            tour_id=row["tour_id"],
            season_id=row["season_id"],
            display_name=row["display_name"],
            points=row["points"] or 0,
            earnings=row["earnings"] or 0,
            win=row["win"] or 0,
            top_ten=row["top_ten"] or 0,
            made_cut=row["made_cut"] or 0,
            appearances=row["appearances"] or 0,
            position=row["position"],
            playoff=row["playoff"] or 0,
        )

    def update_tour_card_totals(self, cards: Iterable[TourCard]) -> int:
        """Write recomputed season totals and positions. Returns rows updated."""
        updated = 0
        with self._connection() as conn:
            for card in cards:
                cursor = conn.execute("""
                    UPDATE tour_cards
                    SET points = ?, earnings = ?, win = ?, top_ten = ?, made_cut = ?,
                        appearances = ?, position = ?
                    WHERE id = ?
                """, (
                    card.points, card.earnings, card.win, card.top_ten, card.made_cut,
                    card.appearances, card.position, card.id,
                ))
                updated += cursor.rowcount
        return updated

    def update_playoff_brackets(self, brackets: Dict[str, int]) -> int:
        """Set each tour card's playoff bracket (0 none, 1 gold, 2 silver)."""
        with self._connection() as conn:
            cursor = conn.executemany(
                "UPDATE tour_cards SET playoff = ? WHERE id = ?",
                [(bracket, card_id) for card_id, bracket in brackets.items()],
            )
            return cursor.rowcount

    # =========================================================================
    # Tournament operations
    # =========================================================================

    def save_tournament(self, tournament: Tournament):
        """Save or update a tournament (teams and golfers are saved separately)."""
        with self._connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO tournaments
                (id, season_id, name, tier_id, start_date, end_date, current_round)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                tournament.id,
                tournament.season_id,
                tournament.name,
                tournament.tier_id,
                tournament.start_date.isoformat(),
                tournament.end_date.isoformat(),
                tournament.current_round,
            ))

    def fetch_tournament(self, tournament_id: str) -> Optional[Tournament]:
        """Get tournament by id."""
        with self._connection() as conn:
            cursor = conn.execute("SELECT * FROM tournaments WHERE id = ?", (tournament_id,))
            row = cursor.fetchone()
            if row:
                return self._row_to_tournament(row)
        return None

    def fetch_tournaments(self, season_id: str) -> List[Tournament]:
        """Get a season's tournaments in schedule order."""
        with self._connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM tournaments WHERE season_id = ? ORDER BY start_date, id", (season_id,)
            )
            return [self._row_to_tournament(row) for row in cursor.fetchall()]

    def _row_to_tournament(self, row: sqlite3.Row) -> Tournament:
        """Convert database row to Tournament object."""
        return Tournament(
            id=row["id"],
            name=row["name"],
            season_id=row["season_id"],
            tier_id=row["tier_id"],
            start_date=_parse_datetime(row["start_date"]),
            end_date=_parse_datetime(row["end_date"]),
            current_round=row["current_round"],
        )

    # =========================================================================
    # Team operations
    # =========================================================================

    def save_team(self, team: Team):
        with self._connection() as conn:
            self._insert_team(conn, team)

    def save_teams(self, teams: Iterable[Team]) -> int:
        count = 0
        with self._connection() as conn:
            for team in teams:
                self._insert_team(conn, team)
                count += 1
        return count

    def _insert_team(self, conn: sqlite3.Connection, team: Team):
        conn.execute("""
            INSERT OR REPLACE INTO teams
            (id, tournament_id, tour_card_id, golfer_ids_json, position, score, today,
             round, points, earnings, made_cut)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            team.id,
            team.tournament_id,
            team.tour_card_id,
            json.dumps(list(team.golfer_ids)),
            team.position,
            team.score,
            team.today,
            team.round,
            team.points,
            team.earnings,
            None if team.made_cut is None else int(team.made_cut),
        ))

    def fetch_teams(self, tournament_id: str) -> List[Team]:
        with self._connection() as conn:
            cursor = conn.execute("SELECT * FROM teams WHERE tournament_id = ? ORDER BY id", (tournament_id,))
            return [self._row_to_team(row) for row in cursor.fetchall()]

    def _row_to_team(self, row: sqlite3.Row) -> Team:
        """Convert database row to Team object."""
        try:
            golfer_ids = tuple(json.loads(row["golfer_ids_json"] or "[]"))
        except json.JSONDecodeError:
            logger.warning(f"Invalid golfer ids for team {row['id']}")
            golfer_ids = ()
        made_cut = row["made_cut"]
        return Team(
            id=row["id"],
            tournament_id=row["tournament_id"],
            tour_card_id=row["tour_card_id"],
            golfer_ids=golfer_ids,
            position=row["position"],
            score=row["score"],
            today=row["today"],
            round=row["round"],
            points=row["points"] or 0,
            earnings=row["earnings"] or 0,
            made_cut=None if made_cut is None else bool(made_cut),
        )

    # =========================================================================
    # Golfer operations
    # =========================================================================

    def save_golfers(self, golfers: Iterable[Golfer]) -> int:
        """Save or update golfers. Every golfer must carry a tournament id."""
        count = 0
        with self._connection() as conn:
            for golfer in golfers:
                conn.execute("""
                    INSERT OR REPLACE INTO golfers
                    (api_id, tournament_id, player_name, position, round_one, round_two,
                     round_three, round_four, score, today, thru, skill_estimate,
                     world_rank, rating, grp, country)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    golfer.api_id, golfer.tournament_id, golfer.player_name, golfer.position,
                    golfer.round_one, golfer.round_two, golfer.round_three, golfer.round_four,
                    golfer.score, golfer.today, golfer.thru, golfer.skill_estimate,
                    golfer.world_rank, golfer.rating, golfer.group, golfer.country,
                ))
                count += 1
        return count

    def fetch_golfers(self, tournament_id: str) -> List[Golfer]:
        with self._connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM golfers WHERE tournament_id = ? ORDER BY api_id", (tournament_id,)
            )
            return [self._row_to_golfer(row) for row in cursor.fetchall()]

    def _row_to_golfer(self, row: sqlite3.Row) -> Golfer:
        return Golfer(
            api_id=row["api_id"],
            player_name=row["player_name"],
            tournament_id=row["tournament_id"],
            position=row["position"],
            round_one=row["round_one"],
            round_two=row["round_two"],
            round_three=row["round_three"],
            round_four=row["round_four"],
            score=row["score"],
            today=row["today"],
            thru=row["thru"],
            skill_estimate=row["skill_estimate"],
            world_rank=row["world_rank"],
            rating=row["rating"],
            group=row["grp"],
            country=row["country"],
        )

    # =========================================================================
    # Snapshot import
    # =========================================================================

    def load_snapshot(self, data: Dict[str, Any]) -> Dict[str, int]:
        """
        Import a season export.

        Expected shape: {"season_id", "year"?, "tiers", "tours", "tour_cards",
        "tournaments"}, where each tournament may carry "teams" and "golfers".
        Returns the number of records imported per kind.
        """
        season_id = str(data["season_id"])
        counts = {"tiers": 0, "tours": 0, "tour_cards": 0, "tournaments": 0, "teams": 0, "golfers": 0}

        self.save_season(season_id, data.get("year"))

        for item in data.get("tiers", []):
            self.save_tier(Tier(
                id=str(item["id"]),
                name=TierName.from_label(item["name"]),
                payouts=tuple(item.get("payouts", [])),
                points=tuple(item.get("points", [])),
                season_id=season_id,
            ))
            counts["tiers"] += 1

        for item in data.get("tours", []):
            self.save_tour(Tour(
                id=str(item["id"]),
                name=item["name"],
                season_id=season_id,
                short_form=item.get("short_form", ""),
                playoff_spots=tuple(item.get("playoff_spots", [0])),
            ))
            counts["tours"] += 1

        for item in data.get("tour_cards", []):
            self.save_tour_card(TourCard(
                id=str(item["id"]),
                member_id=str(item.get("member_id", "")),
                tour_id=str(item["tour_id"]),
                season_id=season_id,
                display_name=item.get("display_name", ""),
                points=item.get("points", 0),
                earnings=item.get("earnings", 0),
                win=item.get("win", 0),
                top_ten=item.get("top_ten", 0),
                made_cut=item.get("made_cut", 0),
                appearances=item.get("appearances", 0),
                position=item.get("position"),
                playoff=item.get("playoff", 0),
            ))
            counts["tour_cards"] += 1

        for item in data.get("tournaments", []):
            tournament_id = str(item["id"])
            self.save_tournament(Tournament(
                id=tournament_id,
                name=item["name"],
                season_id=season_id,
                tier_id=str(item["tier_id"]),
                start_date=_parse_datetime(item["start_date"]),
                end_date=_parse_datetime(item["end_date"]),
                current_round=item.get("current_round"),
            ))
            counts["tournaments"] += 1

            counts["teams"] += self.save_teams(
                Team(
                    id=int(team["id"]),
                    tournament_id=tournament_id,
                    tour_card_id=str(team["tour_card_id"]),
                    golfer_ids=tuple(int(g) for g in team.get("golfer_ids", [])),
                    position=team.get("position"),
                    score=team.get("score"),
                    today=team.get("today"),
                    round=team.get("round"),
                    points=team.get("points", 0),
                    earnings=team.get("earnings", 0),
                    made_cut=team.get("made_cut"),
                )
                for team in item.get("teams", [])
            )
            counts["golfers"] += self.save_golfers(
                Golfer(
                    api_id=int(golfer["api_id"]),
                    player_name=golfer["player_name"],
                    tournament_id=tournament_id,
                    position=golfer.get("position"),
                    round_one=golfer.get("round_one"),
                    round_two=golfer.get("round_two"),
                    round_three=golfer.get("round_three"),
                    round_four=golfer.get("round_four"),
                    score=golfer.get("score"),
                    today=golfer.get("today"),
                    thru=golfer.get("thru"),
                    skill_estimate=golfer.get("skill_estimate"),
                    world_rank=golfer.get("world_rank"),
                    rating=golfer.get("rating"),
                    group=golfer.get("group"),
                    country=golfer.get("country"),
                )
                for golfer in item.get("golfers", [])
            )

        logger.info(
            f"Loaded season {season_id}: {counts['tournaments']} tournaments, "
            f"{counts['tour_cards']} tour cards, {counts['teams']} teams"
        )
        return counts

    # =========================================================================
    # Cache operations
    # =========================================================================

    def set_cache(self, key: str, value: Any, expires_at: datetime):
        """Set a cache entry."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT OR REPLACE INTO cache (key, value, expires_at) VALUES (?, ?, ?)",
                (key, json.dumps(value), expires_at.isoformat())
            )

    def get_cache(self, key: str) -> Optional[Any]:
        """Get a cache entry if not expired."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value, expires_at FROM cache WHERE key = ?", (key,))
            row = cursor.fetchone()
            if row:
                expires = datetime.fromisoformat(row["expires_at"])
                if expires > datetime.now():
                    return json.loads(row["value"])
                # Expired, delete it
                cursor.execute("DELETE FROM cache WHERE key = ?", (key,))
        return None

    def clear_expired_cache(self) -> int:
        """Remove all expired cache entries."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM cache WHERE expires_at < ?",
                (datetime.now().isoformat(),)
            )
            return cursor.rowcount
