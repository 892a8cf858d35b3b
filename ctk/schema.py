"""
Schemas: ordered mappings from output field names to selectors.

A selector either copies a source field (FieldRef) or derives a value from
the whole record (Derive). Schemas built in Python may use any callable as a
derivation rule; schemas written as text compile their rules with
ctk.rules.
"""
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Sequence, Tuple, Union


@dataclass(frozen=True)
class FieldRef:
    """Copy a field from the source record (null when absent)."""
    field: str

    def select(self, record: Mapping) -> Any:
        return record.get(self.field)

    def __repr__(self):
        return f"FieldRef({self.field!r})"


@dataclass(frozen=True)
class Derive:
    """Compute a value from the whole record."""
    rule: Callable[[Mapping], Any]
    source: str = ""

    def select(self, record: Mapping) -> Any:
        return self.rule(record)

    def __repr__(self):
        if self.source:
            return f"Derive({self.source!r})"
        return f"Derive({self.rule!r})"


Selector = Union[FieldRef, Derive]


class Schema:
    """
    Ordered output-field -> selector mapping.

    Example:
        schema = Schema.from_mapping({
            "title": "name",
            "isOnline": lambda s: bool(s["url"]),
        })
        rows = restructure(records, schema)
    """

    def __init__(self, entries: Sequence[Tuple[str, Selector]] = ()):
        self._entries: List[Tuple[str, Selector]] = []
        for name, selector in entries:
            self.add(name, selector)

    def add(self, name: str, selector: Selector) -> "Schema":
        if not isinstance(selector, (FieldRef, Derive)):
            raise TypeError(f"Selector for {name!r} must be FieldRef or Derive, got {type(selector).__name__}")
        self._entries = [(n, s) for n, s in self._entries if n != name]
        self._entries.append((name, selector))
        return self

    @classmethod
    def from_mapping(cls, mapping: Mapping) -> "Schema":
        """Build a schema from {name: field-name | callable | selector}."""
        schema = cls()
        for name, value in mapping.items():
            if isinstance(value, (FieldRef, Derive)):
                schema.add(str(name), value)
            elif isinstance(value, str):
                schema.add(str(name), FieldRef(value))
            elif callable(value):
                schema.add(str(name), Derive(value))
            else:
                raise TypeError(f"Invalid selector for {name!r}: {value!r}")
        return schema

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self._entries]

    def __iter__(self) -> Iterator[Tuple[str, Selector]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def apply(self, record: Mapping) -> Dict[str, Any]:
        """Build one output row, fields in declaration order."""
        return {name: selector.select(record) for name, selector in self._entries}

    def __repr__(self):
        return f"Schema({self._entries!r})"


def restructure(records: Sequence[Mapping], schema: Union[Schema, Mapping]) -> List[Dict[str, Any]]:
    """Apply `schema` to every record, keeping record order."""
    if not isinstance(schema, Schema):
        schema = Schema.from_mapping(schema)
    return [schema.apply(record) for record in records]
