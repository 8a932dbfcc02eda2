"""
Golfer group creation for a new tournament.
Buckets a ranked field into five skill tiers of capped size.
"""

import logging
import math
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import EXCLUDED_GOLFER_IDS, GROUP_LIMITS
from .models import Golfer, RankingData

logger = logging.getLogger(__name__)

GROUP_COUNT = len(GROUP_LIMITS) + 1

Groups = Tuple[Tuple[Golfer, ...], ...]


def _skill_key(golfer: Golfer) -> Tuple:
    return (
        golfer.skill_estimate is None,
        golfer.skill_estimate if golfer.skill_estimate is not None else 0,
        golfer.api_id,
    )


def group_sizes(field_size: int) -> List[int]:
    """
    Sizes of the capped tiers (1-4) for a field of `field_size` golfers.

    Each tier takes ceil(percentage * field_size), capped at its max count
    and at whatever room is left in the field.
    """
    sizes = []
    cumulative = 0
    for limit in GROUP_LIMITS:
        # round() guards against 0.1 * 70 == 7.000000000000001
        share = math.ceil(round(limit.percentage * field_size, 9))
        size = max(0, min(limit.max_count, share, field_size - cumulative))
        sizes.append(size)
        cumulative += size
    return sizes


def build_groups(ranked_golfers: Iterable[Golfer], field_size: Optional[int] = None) -> Groups:
    """
    Split a ranked field into five ordered, disjoint groups.

    Golfers are ordered by skill estimate ascending (ties by api_id), so the
    assignment is reproducible. Percentages apply to `field_size` (defaults
    to the number of golfers, clamped to it); group 5 takes every golfer left
    after groups 1-4, so the five groups always cover the input.
    """
    ordered = sorted(ranked_golfers, key=_skill_key)
    total = len(ordered)
    size = total if field_size is None else max(0, min(field_size, total))

    groups = []
    start = 0
    for count in group_sizes(size):
        groups.append(tuple(ordered[start:start + count]))
        start += count
    groups.append(tuple(ordered[start:]))

    logger.debug(f"Grouped {total} golfers: {[len(g) for g in groups]}")
    return tuple(groups)


def assign_groups(groups: Sequence[Sequence[Golfer]]) -> List[Golfer]:
    """Flatten groups into golfers carrying their 1-based group number."""
    assigned = []
    for index, group in enumerate(groups, start=1):
        assigned.extend(replace(golfer, group=index) for golfer in group)
    return assigned


def skill_rating(skill_estimate: float) -> float:
    """Display rating derived from a Data Golf skill estimate."""
    return round((skill_estimate + 2) / 0.0004) / 100


def rank_field(
    field: Iterable[Golfer],
    rankings: Dict[int, RankingData],
    excluded_ids: Iterable[int] = EXCLUDED_GOLFER_IDS,
) -> List[Golfer]:
    """
    Attach skill ranks to a tournament field.

    The provider's skill estimate is higher-is-better; it becomes a 1-based
    rank (lower is better) within the field. Excluded golfers and golfers the
    provider does not rank are left out.
    """
    excluded = set(excluded_ids)
    ranked = []
    unranked = 0
    for golfer in field:
        if golfer.api_id in excluded:
            continue
        ranking = rankings.get(golfer.api_id)
        if ranking is None:
            unranked += 1
            continue
        ranked.append((golfer, ranking))

    if unranked:
        logger.info(f"Skipped {unranked} golfers with no skill ranking")

    ranked.sort(key=lambda pair: (-pair[1].skill_estimate, pair[0].api_id))
    return [
        replace(
            golfer,
            skill_estimate=float(rank),
            world_rank=ranking.owgr_rank if ranking.owgr_rank is not None else 501,
            rating=skill_rating(ranking.skill_estimate),
            country=golfer.country or ranking.country or None,
        )
        for rank, (golfer, ranking) in enumerate(ranked, start=1)
    ]
