"""
Session: the working state of one CTK user.

A Session owns the loaded record store, the active filter criteria, the last
good transform result and the last error. Every operation returns an Outcome
instead of raising, and a failed operation never disturbs what a previous
successful one produced.

Example:
    session = Session()
    outcome = session.load_file("services.json")
    session.set_criteria(search="passeport", status="active")
    outcome = session.run_schema("select: [name, id]")
    if outcome.ok:
        print(session.export_csv())
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Union

from ctk.config import CtkConfig, get_config
from ctk.errors import AcquisitionError, CtkError, ValidationError
from ctk.exporters import to_delimited, to_json
from ctk.fetch import CatalogFetcher, catalog_url
from ctk.filters import apply_filters
from ctk.models import FilterCriteria, Record, Stats, StatusFilter
from ctk.projection import project
from ctk.rules.evaluator import SchemaEvaluator
from ctk.stats import compute_stats
from ctk.store import RecordStore

logger = logging.getLogger(__name__)


@dataclass
class Outcome:
    """
    Result of a session operation.

    Attributes:
        ok: Whether the operation succeeded
        rows: Rows produced (transforms) or records loaded (loads)
        error: The failure, when ok is False
        wrapped: True when a single object result was wrapped into a list
    """
    ok: bool
    rows: List[Any] = field(default_factory=list)
    error: Optional[CtkError] = None
    wrapped: bool = False

    @classmethod
    def success(cls, rows: Sequence[Any], wrapped: bool = False) -> "Outcome":
        return cls(ok=True, rows=list(rows), wrapped=wrapped)

    @classmethod
    def failure(cls, error: CtkError) -> "Outcome":
        return cls(ok=False, error=error)


class Session:
    """Record store, filters and results for one user."""

    def __init__(self, config: Optional[CtkConfig] = None):
        self.config = config or get_config()
        self.store = RecordStore()
        self.criteria = FilterCriteria()
        self.last_result: Optional[List[Any]] = None
        self.last_error: Optional[CtkError] = None

    # =========================================================================
    # Loading
    # =========================================================================

    def _replace_store(self, build) -> Outcome:
        try:
            store = build()
        except (ValidationError, AcquisitionError) as e:
            logger.warning(f"Catalog load failed, keeping {len(self.store)} loaded services: {e}")
            self.last_error = e
            return Outcome.failure(e)

        self.store = store
        self.last_error = None
        return Outcome.success(store.records)

    def load(self, payload: Any) -> Outcome:
        """Load an already decoded catalog."""
        return self._replace_store(lambda: RecordStore.from_payload(payload))

    def load_text(self, text: Union[str, bytes]) -> Outcome:
        """Load catalog JSON text (e.g. pasted by the user)."""
        return self._replace_store(lambda: RecordStore.from_json(text))

    def load_file(self, path: Union[str, Path]) -> Outcome:
        return self._replace_store(lambda: RecordStore.from_file(path))

    def load_url(self, url: Optional[str] = None, fetcher: Optional[CatalogFetcher] = None) -> Outcome:
        """
        Fetch and load a remote catalog.

        Args:
            url: Catalog URL (defaults to the configured catalog)
            fetcher: Fetcher to use (defaults to one built from the config)
        """
        if url is None:
            url = catalog_url(self.config.catalog_url, self.config.include_categories)

        if fetcher is None:
            fetcher = CatalogFetcher(
                timeout=self.config.timeout,
                user_agent=self.config.user_agent,
                proxy_url=self.config.proxy_url,
                verify_ssl=self.config.verify_ssl,
            )

        return self._replace_store(lambda: RecordStore.from_payload(fetcher.fetch(url)))

    # =========================================================================
    # Filtering and stats
    # =========================================================================

    @property
    def records(self) -> Sequence[Record]:
        return self.store.records

    @property
    def categories(self) -> Sequence[str]:
        return self.store.categories

    def set_criteria(
        self,
        search: Optional[str] = None,
        categories: Optional[Iterable[str]] = None,
        status: Any = StatusFilter.ALL,
    ) -> FilterCriteria:
        """Replace the active filter criteria."""
        self.criteria = FilterCriteria.create(search=search, categories=categories, status=status)
        return self.criteria

    def filtered(self) -> List[Record]:
        """Loaded records passing the active criteria."""
        return apply_filters(self.store.records, self.criteria)

    def stats(self) -> Stats:
        """Stats of the whole loaded set."""
        return compute_stats(self.store.records)

    # =========================================================================
    # Transforms
    # =========================================================================

    def _fail(self, error: CtkError) -> Outcome:
        self.last_error = error
        return Outcome.failure(error)

    def _succeed(self, rows: List[Any], wrapped: bool = False) -> Outcome:
        self.last_result = rows
        self.last_error = None
        return Outcome.success(rows, wrapped=wrapped)

    def _require_records(self) -> List[Record]:
        records = self.filtered()
        if not records:
            raise ValidationError("No services to process: load a catalog or relax the filters")
        return records

    def run_projection(self, keys: Sequence[str]) -> Outcome:
        """Project the filtered records onto `keys`."""
        try:
            records = self._require_records()
            keys = [k for k in (keys or ()) if k]
            if not keys:
                raise ValidationError("Select at least one field")
        except ValidationError as e:
            return self._fail(e)

        rows = project(records, keys)
        logger.info(f"Projected {len(rows)} services onto {len(keys)} fields")
        return self._succeed(rows)

    def run_schema(self, source: str) -> Outcome:
        """Evaluate schema text against the filtered records."""
        try:
            records = self._require_records()
            if not source or not source.strip():
                raise ValidationError("Schema is empty")
        except ValidationError as e:
            return self._fail(e)

        evaluator = SchemaEvaluator(
            timeout=self.config.rule_timeout,
            max_steps=self.config.rule_max_steps,
        )
        result = evaluator.evaluate(records, source)
        if not result.ok:
            return self._fail(result.error)

        logger.info(f"Schema produced {len(result.rows)} rows")
        return self._succeed(result.rows, wrapped=result.wrapped)

    # =========================================================================
    # Export
    # =========================================================================

    def export_csv(self) -> str:
        """Last good result as delimited text ("" when there is none)."""
        return to_delimited(self.last_result or [])

    def export_json(self, pretty: Optional[bool] = None) -> str:
        if pretty is None:
            pretty = self.config.export_pretty
        return to_json(self.last_result or [], pretty=pretty)
