"""
Tests for playoffs.py - Playoff cut.
"""

import pytest

from pgc_tour.models import ResultStatus, SeasonSnapshot, SeasonTotals, StandingsEntry
from pgc_tour.playoffs import (
    build_playoffs, cut_playoffs, normalize_playoff_spots, playoff_brackets,
)

from conftest import make_card


def ranked_entries(count):
    return [
        StandingsEntry(
            tour_card=make_card(f"c{i:02d}", "tour-a"),
            totals=SeasonTotals(points=1000 - i),
            position=str(i),
        )
        for i in range(1, count + 1)
    ]


class TestCutPlayoffs:
    """Tests for partitioning ranked standings."""

    def test_gold_and_silver_scenario(self):
        """Test 20 cards with (8, 4) gives ranks 1-8 gold, 9-12 silver, 13-20 out."""
        entries = ranked_entries(20)
        cut = cut_playoffs(entries, (8, 4))
        assert [t.entry.position for t in cut.gold] == [str(i) for i in range(1, 9)]
        assert [t.entry.position for t in cut.silver] == [str(i) for i in range(9, 13)]
        assert [e.position for e in cut.unqualified] == [str(i) for i in range(13, 21)]

    def test_positions_within_group(self):
        cut = cut_playoffs(ranked_entries(20), (8, 4))
        assert [t.playoff_position for t in cut.gold] == list(range(1, 9))
        assert [t.playoff_position for t in cut.silver] == [1, 2, 3, 4]
        assert {t.playoff_type for t in cut.gold} == {"gold"}
        assert {t.playoff_type for t in cut.silver} == {"silver"}

    def test_single_value_means_gold_only(self):
        cut = cut_playoffs(ranked_entries(10), (3,))
        assert (len(cut.gold), len(cut.silver), len(cut.unqualified)) == (3, 0, 7)
        assert cut.diagnostics == ()

    @pytest.mark.parametrize("length", [0, 1, 5, 8, 10, 12, 13, 30])
    @pytest.mark.parametrize("spots", [(8, 4), (0, 0), (3,), (12, 0), (0, 5)])
    def test_partition_completeness(self, length, spots):
        """Test group sizes and that the partition covers the list without overlap."""
        entries = ranked_entries(length)
        gold = spots[0]
        silver = spots[1] if len(spots) > 1 else 0
        cut = cut_playoffs(entries, spots)

        assert len(cut.gold) == min(gold, length)
        assert len(cut.silver) == min(silver, max(0, length - gold))
        combined = [t.entry for t in cut.gold] + [t.entry for t in cut.silver] + list(cut.unqualified)
        assert combined == entries

    def test_short_list_is_not_an_error(self):
        cut = cut_playoffs(ranked_entries(5), (8, 4))
        assert (len(cut.gold), len(cut.silver), len(cut.unqualified)) == (5, 0, 0)


class TestNormalizeSpots:
    """Tests for playoff-spot configuration cleanup."""

    @pytest.mark.parametrize("spots,expected", [
        ((8, 4), (8, 4)),
        ((8,), (8, 0)),
        ([5, 2], (5, 2)),
    ])
    def test_valid_configs(self, spots, expected):
        normalized, diagnostics = normalize_playoff_spots(spots)
        assert normalized == expected
        assert diagnostics == []

    @pytest.mark.parametrize("spots,expected", [
        ((), (0, 0)),
        (None, (0, 0)),
        ((-3, 2), (0, 2)),
        ((4, 2, 9), (4, 2)),
        (("8", 1), (0, 1)),
        ((True, 1), (0, 1)),
    ])
    def test_invalid_configs_are_reported(self, spots, expected):
        normalized, diagnostics = normalize_playoff_spots(spots)
        assert normalized == expected
        assert len(diagnostics) >= 1


class TestBuildPlayoffs:
    """Tests for season playoffs per tour."""

    def test_sample_season(self, sample_season):
        result = build_playoffs(sample_season)
        assert result.status == ResultStatus.SUCCESS
        alpha, bravo = result.playoffs_by_tour
        assert [t.tour_card.id for t in alpha.gold_teams] == ["a1", "a2"]
        assert [t.tour_card.id for t in alpha.silver_teams] == ["a3"]
        assert [e.tour_card.id for e in alpha.unqualified] == ["a4"]
        assert alpha.total_teams == 4
        assert alpha.playoff_spots == (2, 1)
        assert [t.tour_card.id for t in bravo.gold_teams] == ["b1"]
        assert result.total_gold_teams == 3
        assert result.total_silver_teams == 1

    def test_brackets(self, sample_season):
        brackets = playoff_brackets(build_playoffs(sample_season))
        assert brackets == {"a1": 1, "a2": 1, "a3": 2, "a4": 0, "b1": 1, "b2": 0}

    def test_empty_season(self):
        result = build_playoffs(SeasonSnapshot(season_id="1999"))
        assert result.status == ResultStatus.NOT_FOUND
        assert result.playoffs_by_tour == ()
