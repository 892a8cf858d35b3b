"""
Built-in example schemas.

Ready-made schemas covering the common ways of reshaping the catalog. They
double as documentation for the schema format; `ctk examples NAME` prints one
and `ctk transform --example NAME` runs it.
"""

from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True)
class Example:
    """A named schema with a short description."""
    name: str
    title: str
    description: str
    source: str


EXAMPLES: Dict[str, Example] = {}


def _register(example: Example) -> Example:
    EXAMPLES[example.name] = example
    return example


_register(Example(
    name="basic_selection",
    title="Basic selection",
    description="Extract name, ID and status",
    source="""\
select: [name, id, status]
""",
))

_register(Example(
    name="card_format",
    title="Card format",
    description="Build display cards",
    source="""\
fields:
  id: id
  title: name
  summary: truncate(description, 100) + '...'
  isOnline: bool(url)
  badgeCount: len(categories)
  statusColor: "'green' if isActive else 'red'"
""",
))

_register(Example(
    name="analytics",
    title="Analytics format",
    description="Dashboard-ready metrics per service",
    source="""\
fields:
  serviceId: id
  serviceName: name
  categoryCount: len(categories)
  hasWebAccess: bool(url)
  primaryCategory: categories[0] or 'Uncategorized'
  wordCount: len(split(description, ' '))
  institutionCode: institutionId
""",
))

_register(Example(
    name="export",
    title="Export format",
    description="Simplified, French-labelled columns for spreadsheets",
    source="""\
fields:
  Nom du service: name
  Identifiant: id
  Catégories: join(categories, ', ')
  Description courte: truncate(description, 150)
  Actif: "'Oui' if isActive else 'Non'"
  URL: url or 'Non disponible'
""",
))


def get_example(name: str) -> Example:
    """
    Look up an example by name.

    Raises:
        KeyError: If no example has that name
    """
    try:
        return EXAMPLES[name]
    except KeyError:
        raise KeyError(f"Unknown example '{name}' (available: {', '.join(EXAMPLES)})") from None


def list_examples() -> List[Example]:
    return list(EXAMPLES.values())
