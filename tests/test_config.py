"""
Tests for config.py - Configuration management.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from pgc_tour.config import (
    CACHE_PRESETS, DEFAULT_TIERS, GROUP_LIMITS, Config, get_config,
)
from pgc_tour.models import DataSource, TierName


CLEAN_ENV = {
    "DATAGOLF_API_KEY": "",
    "PGC_DB_PATH": "",
    "PGC_RECENT_WINDOW_HOURS": "24",
    "PGC_FETCH_TIMEOUT": "30",
    "PGC_CACHE_WORKERS": "8",
}


class TestConfig:
    """Tests for Config class."""

    def test_config_loads_defaults(self, temp_dir):
        """Test that config loads with default values."""
        with patch.dict(os.environ, CLEAN_ENV, clear=False):
            config = Config(data_dir=temp_dir)
            assert config.datagolf_api_key == ""
            assert config.db_path == temp_dir / "pgc_tour.db"
            assert config.recent_window_hours == 24.0
            assert config.fetch_timeout == 30.0
            assert config.cache_workers == 8

    def test_config_loads_env_vars(self, temp_dir):
        """Test that config loads environment variables."""
        with patch.dict(os.environ, {
            "DATAGOLF_API_KEY": "test_key",
            "PGC_DB_PATH": str(temp_dir / "other.db"),
            "PGC_RECENT_WINDOW_HOURS": "6",
            "PGC_FETCH_TIMEOUT": "2.5",
            "PGC_CACHE_WORKERS": "3",
        }, clear=False):
            config = Config(data_dir=temp_dir)
            assert config.datagolf_api_key == "test_key"
            assert config.db_path == temp_dir / "other.db"
            assert config.recent_window_hours == 6.0
            assert config.fetch_timeout == 2.5
            assert config.cache_workers == 3

    def test_get_config_returns_config(self):
        with patch.dict(os.environ, CLEAN_ENV, clear=False):
            with patch.object(Path, 'mkdir'):
                assert isinstance(get_config(), Config)

    def test_validate_config_missing_api_key(self, temp_dir):
        """Test validate_config returns error when API key missing."""
        with patch.dict(os.environ, CLEAN_ENV, clear=False):
            config = Config(data_dir=temp_dir)
            errors = config.validate_config(require_api_key=True)
            assert len(errors) == 1
            assert "DATAGOLF_API_KEY" in errors[0]

    def test_validate_config_api_key_not_required(self, temp_dir):
        with patch.dict(os.environ, CLEAN_ENV, clear=False):
            config = Config(data_dir=temp_dir)
            assert config.validate_config(require_api_key=False) == []

    def test_validate_config_bad_values(self, temp_dir):
        with patch.dict(os.environ, {
            **CLEAN_ENV,
            "PGC_RECENT_WINDOW_HOURS": "-1",
            "PGC_FETCH_TIMEOUT": "0",
            "PGC_CACHE_WORKERS": "0",
        }, clear=False):
            config = Config(data_dir=temp_dir)
            assert len(config.validate_config()) == 3

    def test_directory_creation_permission_error(self):
        """Test that permission errors are handled properly."""
        with patch.dict(os.environ, CLEAN_ENV, clear=False):
            with patch.object(Path, 'mkdir', side_effect=PermissionError("Access denied")):
                with pytest.raises(RuntimeError) as exc_info:
                    Config()
                assert "Permission denied" in str(exc_info.value)

    def test_directory_creation_os_error(self):
        """Test that OS errors are handled properly."""
        with patch.dict(os.environ, CLEAN_ENV, clear=False):
            with patch.object(Path, 'mkdir', side_effect=OSError("Disk error")):
                with pytest.raises(RuntimeError) as exc_info:
                    Config()
                assert "Disk error" in str(exc_info.value)


class TestTables:
    """Tests for the static group, freshness and tier tables."""

    def test_group_limits(self):
        assert [(g.percentage, g.max_count) for g in GROUP_LIMITS] == [
            (0.10, 10), (0.175, 16), (0.225, 22), (0.25, 30),
        ]

    def test_presets_cover_every_bucket(self):
        assert set(CACHE_PRESETS) == {"live", "recent", "season", "historical", "upcoming", "rankings"}
        assert CACHE_PRESETS["live"].data_source == DataSource.LIVE
        assert CACHE_PRESETS["historical"].data_source == DataSource.HISTORICAL_API
        assert CACHE_PRESETS["upcoming"].data_source == DataSource.SEASON_CACHE

    def test_default_tiers(self):
        assert DEFAULT_TIERS[TierName.STANDARD].points[:3] == (500, 300, 190)
        assert DEFAULT_TIERS[TierName.PLAYOFF].is_playoff
        assert DEFAULT_TIERS[TierName.PLAYOFF].points == ()
