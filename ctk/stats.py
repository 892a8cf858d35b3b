"""
Aggregations over record sets: summary counts and grouping by category.
"""
from collections.abc import Mapping
from typing import Dict, List, Sequence

from ctk.models import Stats


def _categories(record: Mapping) -> List[str]:
    value = record.get("categories")
    return list(value) if isinstance(value, (list, tuple)) else []


def compute_stats(records: Sequence[Mapping]) -> Stats:
    """Count total, active and online records, and distinct categories."""
    distinct = set()
    active = 0
    with_url = 0

    for record in records:
        if record.get("isActive") is True:
            active += 1
        if record.get("url"):
            with_url += 1
        distinct.update(_categories(record))

    return Stats(
        total=len(records),
        active=active,
        with_url=with_url,
        distinct_category_count=len(distinct),
    )


def group_by_category(records: Sequence[Mapping]) -> Dict[str, List[Mapping]]:
    """
    Group records under each of their categories.

    Groups appear in first-seen order and keep record order. A record is
    listed once per distinct category it carries; records without
    categories appear in no group.
    """
    groups: Dict[str, List[Mapping]] = {}
    for record in records:
        for category in dict.fromkeys(_categories(record)):
            groups.setdefault(category, []).append(record)
    return groups


def category_counts(records: Sequence[Mapping]) -> Dict[str, int]:
    """Number of records per category, in first-seen order."""
    return {category: len(members) for category, members in group_by_category(records).items()}
