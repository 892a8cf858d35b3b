"""
Built-in functions available to rules.

The utility operations (project, filter_category, search, group_by_category,
stats, ...) expose the engine's own record operations to schema authors.
The remaining helpers cover the string, list and number manipulation the
example schemas need. Nothing here reaches outside the values passed in.

Every function receives the evaluation Scope first, so it can charge work
against the step budget.
"""

from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional

from ctk.errors import EvaluationError
from ctk.exporters import to_delimited, to_text
from ctk.filters import filter_by_category, filter_by_status, search_records
from ctk.projection import project
from ctk.rules.ast import Scope, is_number, type_name
from ctk.rules.compiler import bind_selector, parse_selector
from ctk.schema import Schema
from ctk.stats import compute_stats, group_by_category


BUILTINS: Dict[str, Callable] = {}


def builtin(name: str):
    """Register a function under `name` in the rule environment."""
    def decorator(fn: Callable) -> Callable:
        BUILTINS[name] = fn
        return fn
    return decorator


def _records(value: Any, func: str) -> List[Mapping]:
    if not isinstance(value, (list, tuple)):
        raise EvaluationError(f"{func}() expects a list of records, got {type_name(value)}")
    for item in value:
        if not isinstance(item, Mapping):
            raise EvaluationError(f"{func}() expects a list of records, found {type_name(item)}")
    return list(value)


def _list(value: Any, func: str) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    raise EvaluationError(f"{func}() expects a list, got {type_name(value)}")


def _string(value: Any, func: str) -> str:
    if isinstance(value, str):
        return value
    raise EvaluationError(f"{func}() expects a string, got {type_name(value)}")


def _int(value: Any, func: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != int(value):
        raise EvaluationError(f"{func}() expects an integer, got {value!r}")
    return int(value)


# =============================================================================
# Record utilities
# =============================================================================

@builtin("project")
def _project(scope: Scope, records: Any, keys: Any) -> List[Dict[str, Any]]:
    records = _records(records, "project")
    keys = [_string(k, "project") for k in _list(keys, "project")]
    scope.budget.tick(len(records) * max(len(keys), 1))
    return project(records, keys)


@builtin("filter_category")
def _filter_category(scope: Scope, records: Any, category: Any) -> List[Mapping]:
    records = _records(records, "filter_category")
    scope.budget.tick(len(records))
    return filter_by_category(records, _string(category, "filter_category"))


@builtin("filter_status")
def _filter_status(scope: Scope, records: Any, status: Any) -> List[Mapping]:
    records = _records(records, "filter_status")
    scope.budget.tick(len(records))
    return filter_by_status(records, _string(status, "filter_status"))


@builtin("search")
def _search(scope: Scope, records: Any, query: Any) -> List[Mapping]:
    records = _records(records, "search")
    scope.budget.tick(len(records))
    return search_records(records, _string(query, "search"))


@builtin("group_by_category")
def _group_by_category(scope: Scope, records: Any) -> Dict[str, List[Mapping]]:
    records = _records(records, "group_by_category")
    scope.budget.tick(len(records))
    return group_by_category(records)


@builtin("stats")
def _stats(scope: Scope, records: Any) -> Dict[str, int]:
    records = _records(records, "stats")
    scope.budget.tick(len(records))
    return compute_stats(records).to_dict()


@builtin("restructure")
def _restructure(scope: Scope, records: Any, mapping: Any) -> List[Dict[str, Any]]:
    records = _records(records, "restructure")
    if not isinstance(mapping, Mapping):
        raise EvaluationError(f"restructure() expects an object schema, got {type_name(mapping)}")

    schema = Schema()
    for name, value in mapping.items():
        schema.add(name, bind_selector(parse_selector(value, field=name, bound=scope.names), scope))

    rows = []
    for i, record in enumerate(records):
        scope.budget.tick()
        row = {}
        for name, selector in schema:
            try:
                row[name] = selector.select(record)
            except EvaluationError as e:
                raise e.located(name, i)
        rows.append(row)
    return rows


@builtin("to_csv")
def _to_csv(scope: Scope, rows: Any) -> str:
    rows = _list(rows, "to_csv")
    scope.budget.tick(len(rows))
    return to_delimited(rows)


# =============================================================================
# Strings
# =============================================================================

@builtin("len")
def _len(scope: Scope, value: Any) -> int:
    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value)
    if value is None:
        return 0
    raise EvaluationError(f"len() expects a string, list or object, got {type_name(value)}")


@builtin("lower")
def _lower(scope: Scope, s: Any) -> str:
    return _string(s, "lower").lower()


@builtin("upper")
def _upper(scope: Scope, s: Any) -> str:
    return _string(s, "upper").upper()


@builtin("trim")
def _trim(scope: Scope, s: Any) -> str:
    return _string(s, "trim").strip()


@builtin("truncate")
def _truncate(scope: Scope, s: Any, length: Any) -> str:
    return _string(s, "truncate")[:max(_int(length, "truncate"), 0)]


@builtin("split")
def _split(scope: Scope, s: Any, sep: Any = " ") -> List[str]:
    s = _string(s, "split")
    sep = _string(sep, "split")
    if not sep:
        raise EvaluationError("split() separator must not be empty")
    scope.budget.tick(max(len(s) // 64, 1))
    return s.split(sep)


@builtin("join")
def _join(scope: Scope, items: Any, sep: Any = ", ") -> str:
    items = _list(items, "join")
    scope.budget.tick(len(items))
    return _string(sep, "join").join(to_text(item) for item in items)


@builtin("word_count")
def _word_count(scope: Scope, s: Any) -> int:
    return len(_string(s, "word_count").split())


@builtin("contains")
def _contains(scope: Scope, haystack: Any, needle: Any) -> bool:
    if isinstance(haystack, str):
        return _string(needle, "contains").lower() in haystack.lower()
    if isinstance(haystack, (list, tuple)):
        return needle in haystack
    if haystack is None:
        return False
    raise EvaluationError(f"contains() expects a string or list, got {type_name(haystack)}")


@builtin("starts_with")
def _starts_with(scope: Scope, s: Any, prefix: Any) -> bool:
    return _string(s, "starts_with").startswith(_string(prefix, "starts_with"))


@builtin("ends_with")
def _ends_with(scope: Scope, s: Any, suffix: Any) -> bool:
    return _string(s, "ends_with").endswith(_string(suffix, "ends_with"))


@builtin("replace")
def _replace(scope: Scope, s: Any, old: Any, new: Any) -> str:
    s = _string(s, "replace")
    old = _string(old, "replace")
    if not old:
        raise EvaluationError("replace() pattern must not be empty")
    return s.replace(old, _string(new, "replace"))


@builtin("text")
def _text(scope: Scope, value: Any) -> str:
    return to_text(value)


# =============================================================================
# Values, numbers and collections
# =============================================================================

@builtin("number")
def _number(scope: Scope, value: Any) -> Any:
    if is_number(value):
        return value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            try:
                return float(value)
            except ValueError:
                pass
    raise EvaluationError(f"number() cannot convert {value!r}")


@builtin("bool")
def _bool(scope: Scope, value: Any) -> bool:
    return bool(value)


@builtin("round")
def _round(scope: Scope, value: Any, digits: Any = 0) -> Any:
    if not is_number(value):
        raise EvaluationError(f"round() expects a number, got {type_name(value)}")
    digits = _int(digits, "round")
    return round(value, digits) if digits else int(round(value))


@builtin("first")
def _first(scope: Scope, items: Any, default: Any = None) -> Any:
    if items is None:
        return default
    items = _list(items, "first")
    return items[0] if items else default


@builtin("coalesce")
def _coalesce(scope: Scope, *values: Any) -> Optional[Any]:
    """First value that is neither null nor an empty string."""
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _numbers(items: Any, func: str) -> list:
    items = _list(items, func)
    for item in items:
        if not is_number(item):
            raise EvaluationError(f"{func}() expects numbers, found {type_name(item)}")
    return items


@builtin("sum")
def _sum(scope: Scope, items: Any) -> Any:
    items = _numbers(items, "sum")
    scope.budget.tick(len(items))
    return sum(items)


@builtin("min")
def _min(scope: Scope, items: Any) -> Any:
    items = _list(items, "min")
    scope.budget.tick(len(items))
    return min(items) if items else None


@builtin("max")
def _max(scope: Scope, items: Any) -> Any:
    items = _list(items, "max")
    scope.budget.tick(len(items))
    return max(items) if items else None


@builtin("unique")
def _unique(scope: Scope, items: Any) -> list:
    items = _list(items, "unique")
    scope.budget.tick(len(items))
    result = []
    for item in items:
        if item not in result:
            result.append(item)
    return result


@builtin("sorted")
def _sorted(scope: Scope, items: Any, reverse: Any = False) -> list:
    items = _list(items, "sorted")
    scope.budget.tick(len(items))
    return sorted(items, reverse=bool(reverse))


@builtin("keys")
def _keys(scope: Scope, obj: Any) -> List[str]:
    if not isinstance(obj, Mapping):
        raise EvaluationError(f"keys() expects an object, got {type_name(obj)}")
    return list(obj.keys())


@builtin("values")
def _values(scope: Scope, obj: Any) -> list:
    if not isinstance(obj, Mapping):
        raise EvaluationError(f"values() expects an object, got {type_name(obj)}")
    return list(obj.values())


@builtin("get")
def _get(scope: Scope, obj: Any, key: Any, default: Any = None) -> Any:
    if obj is None:
        return default
    if not isinstance(obj, Mapping):
        raise EvaluationError(f"get() expects an object, got {type_name(obj)}")
    value = obj.get(_string(key, "get"))
    return default if value is None else value
