"""
CTK - Catalog Toolkit

Filter, reshape and export a catalog of public service records.

Design Principles:
- The loaded catalog is an immutable, in-memory record set
- Every operation is a pure function of its inputs and never mutates records
- User schemas run in a closed rule language, never as host code
- Composable operations that pipe well together

Example Usage:
    >>> from ctk import Session
    >>> session = Session()
    >>> session.load_file("services.json")
    >>> session.set_criteria(search="passeport")
    >>> outcome = session.run_schema("select: [name, id, status]")
    >>> print(session.export_csv())
"""

__version__ = "0.1.0"
__author__ = "CTK Contributors"

# Configuration
from ctk.config import CtkConfig, get_config, init_config

# Errors
from ctk.errors import (
    CtkError,
    ValidationError,
    AcquisitionError,
    AcquisitionCause,
    EvaluationError,
    ErrorKind,
)

# Models
from ctk.models import Record, Status, StatusFilter, FilterCriteria, Stats

# Engines
from ctk.store import RecordStore
from ctk.filters import apply_filters, search_records, filter_by_categories, filter_by_status
from ctk.projection import project
from ctk.schema import Schema, FieldRef, Derive, restructure
from ctk.stats import compute_stats, group_by_category, category_counts
from ctk.rules import evaluate, EvaluationResult

# Import/Export
from ctk.fetch import CatalogFetcher
from ctk.exporters import export_file, to_delimited, to_json

# Session
from ctk.session import Session, Outcome

__all__ = [
    # Config
    "CtkConfig",
    "get_config",
    "init_config",
    # Errors
    "CtkError",
    "ValidationError",
    "AcquisitionError",
    "AcquisitionCause",
    "EvaluationError",
    "ErrorKind",
    # Models
    "Record",
    "Status",
    "StatusFilter",
    "FilterCriteria",
    "Stats",
    # Engines
    "RecordStore",
    "apply_filters",
    "search_records",
    "filter_by_categories",
    "filter_by_status",
    "project",
    "Schema",
    "FieldRef",
    "Derive",
    "restructure",
    "compute_stats",
    "group_by_category",
    "category_counts",
    "evaluate",
    "EvaluationResult",
    # Import/Export
    "CatalogFetcher",
    "export_file",
    "to_delimited",
    "to_json",
    # Session
    "Session",
    "Outcome",
]
