"""
Tests for ctk/cli.py

Runs the command line entry point end to end against a catalog file,
checking stdout, stderr and exit codes.
"""
import io
import json
from unittest.mock import patch

import pytest

from ctk import cli
from ctk.errors import AcquisitionCause, AcquisitionError
from ctk.fetch import CatalogFetcher


def run_json(capsys, *argv):
    cli.main(list(argv))
    return json.loads(capsys.readouterr().out)


def run_failing(capsys, *argv):
    with pytest.raises(SystemExit) as exc:
        cli.main(list(argv))
    assert exc.value.code == 1
    return capsys.readouterr().err


class TestArgumentParser:
    """Test parser structure."""

    def test_subcommands(self):
        parser = cli.build_parser()
        args = parser.parse_args(["--source", "s.json", "project", "--keys", "name,id", "--category", "Tax",
                                  "--category", "Health"])
        assert args.command == "project"
        assert args.keys == "name,id"
        assert args.category == ["Tax", "Health"]
        assert args.status == "all"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_transform_needs_exactly_one_schema(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["transform", "--example", "analytics", "--expr", "records"])
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["transform"])

    def test_invalid_status(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["list", "--status", "pending"])


class TestDataCommands:
    """Test commands that read a catalog."""

    def test_stats_json(self, capsys, catalog_file):
        data = run_json(capsys, "--source", str(catalog_file), "-o", "json", "stats")
        assert data == {"total": 4, "active": 2, "withUrl": 2, "distinctCategoryCount": 5}

    def test_stats_filtered(self, capsys, catalog_file):
        data = run_json(capsys, "--source", str(catalog_file), "-o", "json", "stats", "--status", "active")
        assert data["total"] == 2

    def test_stats_table(self, capsys, catalog_file):
        cli.main(["--source", str(catalog_file), "stats"])
        out = capsys.readouterr().out
        assert "Catalog Statistics" in out
        assert "Total Services" in out

    def test_categories(self, capsys, catalog_file):
        data = run_json(capsys, "--source", str(catalog_file), "-o", "json", "categories")
        assert data[2] == {"category": "Tax", "count": 2}
        assert data[-1] == {"category": "Agriculture", "count": 0}

    def test_list_with_filters(self, capsys, catalog_file):
        data = run_json(capsys, "--source", str(catalog_file), "-o", "json", "list", "--search", "tax")
        assert [r["id"] for r in data] == ["1002", "1004"]

    def test_list_table(self, capsys, catalog_file):
        cli.main(["--source", str(catalog_file), "list", "--category", "Voyage"])
        assert "Services (1)" in capsys.readouterr().out

    def test_project_csv(self, capsys, catalog_file):
        cli.main(["--source", str(catalog_file), "-o", "csv", "project", "--keys", "name,id"])
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "name,id"
        assert lines[1] == "Demande de passeport,1001"
        assert len(lines) == 5

    def test_project_to_file(self, capsys, catalog_file, tmp_path):
        out = tmp_path / "export" / "rows.csv"
        cli.main(["--source", str(catalog_file), "project", "--keys", "id", "--out", str(out)])
        assert out.read_text(encoding="utf-8") == "id\n1001\n1002\n1003\n1004"
        assert "Wrote 4 rows" in capsys.readouterr().err

    def test_transform_example(self, capsys, catalog_file):
        data = run_json(capsys, "--source", str(catalog_file), "-o", "json", "transform", "--example", "analytics")
        assert data[2]["primaryCategory"] == "Uncategorized"

    def test_transform_schema_file(self, capsys, catalog_file, tmp_path):
        schema = tmp_path / "schema.yaml"
        schema.write_text("select: [id]\n", encoding="utf-8")
        data = run_json(capsys, "--source", str(catalog_file), "-o", "json", "transform", "--schema", str(schema),
                        "--status", "inactive")
        assert data == [{"id": "1003"}, {"id": "1004"}]

    def test_transform_wrapped_warning(self, capsys, catalog_file):
        cli.main(["--source", str(catalog_file), "-o", "json", "transform", "--expr", "stats(records)"])
        captured = capsys.readouterr()
        assert json.loads(captured.out)[0]["total"] == 4
        assert "wrapped" in captured.err

    def test_transform_to_json_file(self, catalog_file, tmp_path):
        out = tmp_path / "cards.json"
        cli.main(["-q", "--source", str(catalog_file), "transform", "--example", "card_format", "--out", str(out)])
        assert json.loads(out.read_text(encoding="utf-8"))[0]["statusColor"] == "green"

    def test_transform_table(self, capsys, catalog_file):
        cli.main(["--source", str(catalog_file), "transform", "--expr", "select: [id]"])
        assert "Transform (4 rows)" in capsys.readouterr().out

    def test_stdin_source(self, capsys, monkeypatch, catalog_payload):
        monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps(catalog_payload)))
        data = run_json(capsys, "--source", "-", "-o", "json", "stats")
        assert data["total"] == 4

    def test_url_source(self, capsys, catalog_payload):
        with patch.object(CatalogFetcher, "fetch", return_value=catalog_payload) as mock_fetch:
            data = run_json(capsys, "--source", "https://x.bj/api/", "-o", "json", "stats")
        assert data["total"] == 4
        mock_fetch.assert_called_once_with("https://x.bj/api/")


class TestErrors:
    """Test error reporting and exit codes."""

    def test_missing_catalog(self, capsys, tmp_path):
        err = run_failing(capsys, "--source", str(tmp_path / "missing.json"), "stats")
        assert "not found" in err

    def test_invalid_catalog(self, capsys, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"items": []}', encoding="utf-8")
        err = run_failing(capsys, "--source", str(path), "list")
        assert "Invalid input" in err

    def test_schema_error(self, capsys, catalog_file):
        err = run_failing(capsys, "--source", str(catalog_file), "transform", "--expr", "fields:\n  x: name + 1\n")
        assert "Schema error (runtime)" in err

    def test_schema_syntax_error(self, capsys, catalog_file):
        err = run_failing(capsys, "--source", str(catalog_file), "transform", "--expr", "project(records,")
        assert "Schema error (syntax)" in err

    def test_empty_selection_is_validation_error(self, capsys, catalog_file):
        err = run_failing(capsys, "--source", str(catalog_file), "project", "--keys", "name",
                          "--search", "zzz")
        assert "Invalid input" in err
        assert "Schema error" not in err

    def test_unknown_example(self, capsys, catalog_file):
        err = run_failing(capsys, "--source", str(catalog_file), "transform", "--example", "nope")
        assert "Unknown example" in err

    def test_missing_schema_file(self, capsys, catalog_file, tmp_path):
        err = run_failing(capsys, "--source", str(catalog_file), "transform", "--schema", str(tmp_path / "x.yaml"))
        assert "not found" in err

    def test_malformed_environment_value(self, capsys, monkeypatch, catalog_file):
        monkeypatch.setenv("CTK_TIMEOUT", "2.5")
        err = run_failing(capsys, "--source", str(catalog_file), "stats")
        assert "Invalid input" in err
        assert "CTK_TIMEOUT" in err

    def test_acquisition_error(self, capsys):
        error = AcquisitionError("HTTP error: 502 - Bad Gateway", AcquisitionCause.HTTP_STATUS, status_code=502)
        with patch.object(CatalogFetcher, "fetch", side_effect=error):
            err = run_failing(capsys, "stats")
        assert "Could not load catalog (http_status)" in err


class TestFetchCommand:
    def test_fetch_to_stdout(self, capsys, catalog_payload):
        with patch.object(CatalogFetcher, "fetch", return_value=catalog_payload) as mock_fetch:
            data = run_json(capsys, "fetch")
        assert data == catalog_payload
        assert mock_fetch.call_args[0][0].endswith("?categories=true&eservices=true")

    def test_fetch_without_categories(self, capsys, catalog_payload):
        with patch.object(CatalogFetcher, "fetch", return_value=catalog_payload) as mock_fetch:
            cli.main(["fetch", "--no-categories"])
        assert "categories=true" not in mock_fetch.call_args[0][0]

    def test_fetch_to_file(self, capsys, catalog_payload, tmp_path):
        out = tmp_path / "services.json"
        with patch.object(CatalogFetcher, "fetch", return_value=catalog_payload):
            cli.main(["fetch", "--out", str(out)])
        assert json.loads(out.read_text(encoding="utf-8")) == catalog_payload
        assert "Saved 4 services" in capsys.readouterr().err

    def test_fetch_rejects_invalid_catalog(self, capsys):
        with patch.object(CatalogFetcher, "fetch", return_value={"oops": True}):
            err = run_failing(capsys, "fetch")
        assert "Invalid input" in err


class TestOtherCommands:
    def test_examples_list(self, capsys):
        data = run_json(capsys, "-o", "json", "examples")
        assert [e["name"] for e in data] == ["basic_selection", "card_format", "analytics", "export"]

    def test_examples_show(self, capsys):
        cli.main(["-q", "examples", "basic_selection"])
        assert capsys.readouterr().out == "select: [name, id, status]\n"

    def test_examples_unknown(self, capsys):
        err = run_failing(capsys, "examples", "nope")
        assert "Unknown example" in err

    def test_config_show(self, capsys):
        data = run_json(capsys, "config")
        assert data["output_format"] == "table"
        assert data["rule_max_steps"] == 100_000

    def test_config_init(self, capsys, tmp_path):
        path = tmp_path / "ctk.toml"
        cli.main(["-q", "config", "--init", "--path", str(path)])
        assert "timeout = 10" in path.read_text(encoding="utf-8")

    def test_config_file_option(self, capsys, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text("preview_rows = 7\n", encoding="utf-8")
        data = run_json(capsys, "--config", str(path), "config")
        assert data["preview_rows"] == 7

    def test_output_option_recorded_in_config(self, capsys):
        data = run_json(capsys, "-o", "json", "config")
        assert data["output_format"] == "json"
