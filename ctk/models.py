"""
Data model for catalog records.

A Record is an immutable service entry. It is also a read-only mapping keyed
by the catalog's wire names ("isActive", "institutionId", ...), so projection,
schema rules and exporters can treat records and transformed rows alike.
"""
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional

from ctk.errors import ValidationError


class Status(Enum):
    """Publication status of a service."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"

    @classmethod
    def normalize(cls, value: Any) -> str:
        """Normalize a raw status value, accepting the portal's French labels."""
        if not isinstance(value, str):
            raise ValidationError(f"Invalid status: {value!r}")
        aliases = {
            "active": cls.ACTIVE,
            "actif": cls.ACTIVE,
            "inactive": cls.INACTIVE,
            "inactif": cls.INACTIVE,
        }
        status = aliases.get(value.strip().lower())
        if status is None:
            raise ValidationError(f"Invalid status: {value!r}")
        return status.value


class StatusFilter(Enum):
    """Status criterion for the filter pipeline."""
    ALL = "all"
    ACTIVE = "Active"
    INACTIVE = "Inactive"

    @classmethod
    def from_string(cls, s: str) -> "StatusFilter":
        """Parse a status filter from user input."""
        key = s.strip().lower()
        if key in ("all", "*", ""):
            return cls.ALL
        return cls(Status.normalize(key))


# Wire name -> attribute name, in canonical record order
WIRE_FIELDS = {
    "name": "name",
    "id": "id",
    "categories": "categories",
    "description": "description",
    "status": "status",
    "isActive": "is_active",
    "institutionId": "institution_id",
    "icon": "icon",
    "url": "url",
}

FIELD_NAMES = list(WIRE_FIELDS)


@dataclass(frozen=True)
class Record(Mapping):
    """
    A catalog service entry.

    Attributes:
        name: Display name of the service
        id: Service identifier
        categories: Category labels, in source order (may repeat or be empty)
        description: Free-text description
        status: "Active" or "Inactive"
        is_active: Activity flag, kept independent from status
        institution_id: Owning institution
        icon: Optional icon reference
        url: Optional online access URL
        extra: Input keys not part of the record schema, kept verbatim
    """
    name: str
    id: str
    categories: List[str] = field(default_factory=list)
    description: str = ""
    status: str = Status.ACTIVE.value
    is_active: bool = False
    institution_id: str = ""
    icon: Optional[str] = None
    url: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        attr = WIRE_FIELDS.get(key)
        if attr is not None:
            return getattr(self, attr)
        return self.extra[key]

    def __iter__(self) -> Iterator[str]:
        yield from WIRE_FIELDS
        yield from self.extra

    def __len__(self) -> int:
        return len(WIRE_FIELDS) + len(self.extra)

    def to_dict(self) -> Dict[str, Any]:
        """Return the record as a wire-format dict (values are not copied)."""
        return {key: self[key] for key in self}

    @classmethod
    def from_dict(cls, data: Any) -> "Record":
        """
        Build a record from a decoded JSON object.

        Raises:
            ValidationError: If required fields are missing or mistyped
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Record must be an object, got {type(data).__name__}")

        name = data.get("name")
        if not isinstance(name, str):
            raise ValidationError("Record is missing a string 'name'")

        record_id = data.get("id")
        if isinstance(record_id, bool) or not isinstance(record_id, (str, int)):
            raise ValidationError(f"Record {name!r} is missing a string 'id'")

        categories = data.get("categories") or []
        if not isinstance(categories, list) or not all(isinstance(c, str) for c in categories):
            raise ValidationError(f"Record {name!r}: 'categories' must be a list of strings")

        description = data.get("description") or ""
        if not isinstance(description, str):
            raise ValidationError(f"Record {name!r}: 'description' must be a string")

        is_active = data.get("isActive", False)
        if not isinstance(is_active, bool):
            raise ValidationError(f"Record {name!r}: 'isActive' must be a boolean")

        for optional in ("icon", "url"):
            value = data.get(optional)
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"Record {name!r}: '{optional}' must be a string or null")

        institution_id = data.get("institutionId") or ""

        return cls(
            name=name,
            id=str(record_id),
            categories=list(categories),
            description=description,
            status=Status.normalize(data.get("status", Status.ACTIVE.value)),
            is_active=is_active,
            institution_id=str(institution_id),
            icon=data.get("icon"),
            url=data.get("url"),
            extra={k: v for k, v in data.items() if k not in WIRE_FIELDS},
        )


@dataclass(frozen=True)
class FilterCriteria:
    """
    Filter settings, ANDed together.

    Attributes:
        search: Case-insensitive text matched against name, description, categories
        categories: Keep records carrying at least one of these (empty = no filter)
        status: Status equality filter
    """
    search: Optional[str] = None
    categories: FrozenSet[str] = frozenset()
    status: StatusFilter = StatusFilter.ALL

    @classmethod
    def create(
        cls,
        search: Optional[str] = None,
        categories: Optional[Iterable[str]] = None,
        status: Any = StatusFilter.ALL,
    ) -> "FilterCriteria":
        """Build criteria from loose user values."""
        if isinstance(status, str):
            status = StatusFilter.from_string(status)
        return cls(
            search=search,
            categories=frozenset(categories or ()),
            status=status,
        )

    @property
    def is_empty(self) -> bool:
        """True when no filter narrows the record set."""
        return (
            not (self.search and self.search.strip())
            and not self.categories
            and self.status is StatusFilter.ALL
        )


@dataclass(frozen=True)
class Stats:
    """Aggregate counts over a record set."""
    total: int = 0
    active: int = 0
    with_url: int = 0
    distinct_category_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "active": self.active,
            "withUrl": self.with_url,
            "distinctCategoryCount": self.distinct_category_count,
        }
