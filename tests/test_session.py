"""
Tests for ctk/session.py

A session must turn every failure into an Outcome and keep what earlier
successful operations produced.
"""
import json
from unittest.mock import Mock

from ctk.config import CtkConfig
from ctk.errors import AcquisitionCause, AcquisitionError, ErrorKind, EvaluationError, ValidationError
from ctk.session import Outcome, Session


class TestLoading:
    """Test catalog loading."""

    def test_load_payload(self, config, catalog_payload):
        session = Session(config)
        outcome = session.load(catalog_payload)
        assert outcome.ok
        assert len(outcome.rows) == 4
        assert session.categories[-1] == "Agriculture"

    def test_load_text(self, config, catalog_payload):
        session = Session(config)
        assert session.load_text(json.dumps(catalog_payload)).ok
        assert len(session.records) == 4

    def test_load_file(self, config, catalog_file):
        session = Session(config)
        assert session.load_file(catalog_file).ok

    def test_failed_load_keeps_previous_store(self, session):
        before = session.store
        outcome = session.load_text("{not json")
        assert not outcome.ok
        assert isinstance(outcome.error, ValidationError)
        assert session.store is before
        assert session.last_error is outcome.error

    def test_load_url_uses_fetcher(self, config, catalog_payload):
        session = Session(config)
        fetcher = Mock()
        fetcher.fetch.return_value = catalog_payload

        outcome = session.load_url("https://x.bj/api/", fetcher=fetcher)

        assert outcome.ok
        fetcher.fetch.assert_called_once_with("https://x.bj/api/")

    def test_load_url_default_url(self, catalog_payload):
        session = Session(CtkConfig(catalog_url="https://x.bj/api/"))
        fetcher = Mock()
        fetcher.fetch.return_value = catalog_payload
        session.load_url(fetcher=fetcher)
        fetcher.fetch.assert_called_once_with("https://x.bj/api/?categories=true&eservices=true")

    def test_acquisition_failure(self, session):
        fetcher = Mock()
        fetcher.fetch.side_effect = AcquisitionError("down", AcquisitionCause.CONNECTIVITY)
        outcome = session.load_url("https://x.bj/api/", fetcher=fetcher)
        assert not outcome.ok
        assert outcome.error.cause is AcquisitionCause.CONNECTIVITY
        assert len(session.records) == 4

    def test_default_config(self):
        assert isinstance(Session().config, CtkConfig)


class TestFiltering:
    def test_filtered(self, session):
        session.set_criteria(search="tax", status="active")
        assert [r.id for r in session.filtered()] == ["1002"]

    def test_categories_filter(self, session):
        session.set_criteria(categories=["Voyage", "Entreprise"])
        assert [r.id for r in session.filtered()] == ["1001", "1004"]

    def test_stats_cover_whole_set(self, session):
        session.set_criteria(search="passeport")
        assert session.stats().total == 4


class TestProjection:
    def test_run_projection(self, session):
        outcome = session.run_projection(["id", "name"])
        assert outcome.ok
        assert outcome.rows[0] == {"id": "1001", "name": "Demande de passeport"}
        assert session.last_result == outcome.rows

    def test_no_keys(self, session):
        outcome = session.run_projection([])
        assert not outcome.ok
        assert isinstance(outcome.error, ValidationError)

    def test_empty_filtered_set(self, session):
        session.set_criteria(search="zzz")
        outcome = session.run_projection(["id"])
        assert isinstance(outcome.error, ValidationError)

    def test_nothing_loaded(self, config):
        outcome = Session(config).run_projection(["id"])
        assert isinstance(outcome.error, ValidationError)


class TestSchema:
    def test_run_schema(self, session):
        outcome = session.run_schema("fields:\n  n: name\n")
        assert outcome.ok
        assert len(outcome.rows) == 4
        assert not outcome.wrapped

    def test_wrapped_result(self, session):
        outcome = session.run_schema("stats(records)")
        assert outcome.ok
        assert outcome.wrapped

    def test_blank_schema(self, session):
        outcome = session.run_schema("   ")
        assert isinstance(outcome.error, ValidationError)

    def test_validation_before_evaluation(self, session):
        session.set_criteria(search="zzz")
        outcome = session.run_schema("this is not a schema (")
        assert isinstance(outcome.error, ValidationError)

    def test_failure_keeps_last_result_and_records(self, session):
        good = session.run_schema("select: [id]")
        records_before = session.store

        bad = session.run_schema("fields:\n  x: name + 1\n")

        assert not bad.ok
        assert isinstance(bad.error, EvaluationError)
        assert bad.error.kind is ErrorKind.RUNTIME
        assert session.last_result == good.rows
        assert session.store is records_before
        assert session.last_error is bad.error

    def test_limits_from_config(self, catalog_payload):
        session = Session(CtkConfig(rule_max_steps=10))
        session.load(catalog_payload)
        outcome = session.run_schema("fields:\n  n: len(name)\n")
        assert outcome.error.kind is ErrorKind.TIMEOUT

    def test_runs_on_filtered_records(self, session):
        session.set_criteria(status="inactive")
        outcome = session.run_schema("select: [id]")
        assert outcome.rows == [{"id": "1003"}, {"id": "1004"}]


class TestExport:
    def test_export_csv(self, session):
        session.run_projection(["name", "id"])
        assert session.export_csv().split("\n")[:2] == ["name,id", "Demande de passeport,1001"]

    def test_export_json(self, session):
        session.run_projection(["id"])
        assert json.loads(session.export_json()) == [{"id": "1001"}, {"id": "1002"}, {"id": "1003"}, {"id": "1004"}]

    def test_export_compact(self, session):
        session.run_projection(["id"])
        assert "\n" not in session.export_json(pretty=False)

    def test_export_without_result(self, session):
        assert session.export_csv() == ""
        assert session.export_json() == "[]"


class TestOutcome:
    def test_success(self):
        outcome = Outcome.success((1, 2))
        assert outcome.ok and outcome.rows == [1, 2] and outcome.error is None

    def test_failure(self):
        error = ValidationError("x")
        outcome = Outcome.failure(error)
        assert not outcome.ok and outcome.rows == [] and outcome.error is error
