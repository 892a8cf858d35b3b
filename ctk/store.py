"""
Record store: the loaded catalog and its category vocabulary.

A store is immutable. Loading a new catalog builds a new store rather than
mutating the current one.
"""
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from ctk.errors import ValidationError
from ctk.models import Record

logger = logging.getLogger(__name__)


def derive_categories(records: Iterable[Record]) -> List[str]:
    """Union of all record categories, in first-seen order."""
    seen = {}
    for record in records:
        for category in record.categories:
            seen.setdefault(category, None)
    return list(seen)


class RecordStore:
    """
    Holds a validated record set and the known categories.

    Example:
        store = RecordStore.from_json('{"services": [...], "categories": [...]}')
        for record in store:
            print(record.name)
    """

    def __init__(self, records: Sequence[Record] = (), categories: Optional[Sequence[str]] = None):
        self._records: Tuple[Record, ...] = tuple(records)
        if categories is None:
            categories = derive_categories(self._records)
        self._categories: Tuple[str, ...] = tuple(categories)

    @property
    def records(self) -> Tuple[Record, ...]:
        return self._records

    @property
    def categories(self) -> Tuple[str, ...]:
        return self._categories

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)

    @classmethod
    def from_payload(cls, payload: Any) -> "RecordStore":
        """
        Build a store from a decoded catalog.

        Accepts either {"services": [...], "categories": [...]} or a bare list
        of records. Without an explicit category list the vocabulary is derived
        from the records.

        Raises:
            ValidationError: If the payload or any record is malformed
        """
        categories = None

        if isinstance(payload, dict):
            if "services" not in payload:
                raise ValidationError("Catalog object has no 'services' list")
            items = payload["services"]
            if not isinstance(items, list):
                raise ValidationError("Catalog 'services' must be a list")
            raw_categories = payload.get("categories")
            if raw_categories is not None:
                if not isinstance(raw_categories, list) or not all(isinstance(c, str) for c in raw_categories):
                    raise ValidationError("Catalog 'categories' must be a list of strings")
                categories = raw_categories
        elif isinstance(payload, list):
            items = payload
        else:
            raise ValidationError(f"Invalid catalog format: expected object or array, got {type(payload).__name__}")

        records = []
        for i, item in enumerate(items):
            try:
                records.append(Record.from_dict(item))
            except ValidationError as e:
                raise ValidationError(f"Invalid record at position {i}: {e}") from e

        store = cls(records, categories)
        logger.info(f"Loaded {len(store)} services, {len(store.categories)} categories")
        return store

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "RecordStore":
        """Parse catalog JSON text into a store."""
        if isinstance(text, bytes):
            text = text.decode("utf-8")
        if not text or not text.strip():
            raise ValidationError("Catalog is empty")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON: {e}") from e
        return cls.from_payload(payload)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "RecordStore":
        """Load a catalog from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise ValidationError(f"Catalog file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_json(f.read())
