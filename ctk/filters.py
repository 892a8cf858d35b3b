"""
Filter pipeline for catalog records.

Every filter is order preserving and returns the input record objects
themselves (no copies), so filters compose and are idempotent. They work on
Records as well as on plain dicts using the same wire keys.
"""
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional, Sequence, Union

from ctk.models import FilterCriteria, StatusFilter


def _text(record: Mapping, key: str) -> str:
    value = record.get(key)
    return value if isinstance(value, str) else ""


def _categories(record: Mapping) -> List[str]:
    value = record.get("categories")
    if isinstance(value, (list, tuple)):
        return [c for c in value if isinstance(c, str)]
    return []


def search_records(records: Sequence[Mapping], query: Optional[str]) -> List[Mapping]:
    """
    Case-insensitive substring search.

    A record matches if the query occurs in its name, its description or
    any of its categories. A blank query matches everything.
    """
    if query is None or not query.strip():
        return list(records)

    q = query.strip().lower()
    return [
        r for r in records
        if q in _text(r, "name").lower()
        or q in _text(r, "description").lower()
        or any(q in c.lower() for c in _categories(r))
    ]


def filter_by_categories(records: Sequence[Mapping], categories: Iterable[str]) -> List[Mapping]:
    """Keep records carrying at least one of the given categories (exact match)."""
    wanted = set(categories)
    if not wanted:
        return list(records)
    return [r for r in records if wanted.intersection(_categories(r))]


def filter_by_category(records: Sequence[Mapping], category: str) -> List[Mapping]:
    """Keep records with a category containing `category`, ignoring case."""
    needle = category.lower()
    return [r for r in records if any(needle in c.lower() for c in _categories(r))]


def filter_by_status(records: Sequence[Mapping], status: Union[StatusFilter, str]) -> List[Mapping]:
    """Keep records whose status equals `status`; ALL passes everything."""
    if isinstance(status, str):
        status = StatusFilter.from_string(status)
    if status is StatusFilter.ALL:
        return list(records)
    return [r for r in records if r.get("status") == status.value]


def apply_filters(records: Sequence[Mapping], criteria: Optional[FilterCriteria]) -> List[Any]:
    """Apply search, category and status filters together (AND)."""
    if criteria is None or criteria.is_empty:
        return list(records)

    filtered = search_records(records, criteria.search)
    filtered = filter_by_categories(filtered, criteria.categories)
    filtered = filter_by_status(filtered, criteria.status)
    return filtered
