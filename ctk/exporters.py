"""
Exporters for transformed catalog data.

Provides CSV (delimited text) and JSON serialization of result rows, as
strings or written to files.
"""
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Sequence

ARRAY_SEPARATOR = "; "
DELIMITER = ","


def to_jsonable(value: Any) -> Any:
    """Convert records and nested containers into plain JSON values."""
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def to_text(value: Any) -> str:
    """Plain text form of a scalar, shared by CSV cells and the rule text helpers."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def _format_cell(value: Any) -> str:
    """Render one CSV cell."""
    if isinstance(value, (list, tuple)):
        return _quote(ARRAY_SEPARATOR.join(_format_element(v) for v in value))
    if isinstance(value, Mapping):
        value = json.dumps(to_jsonable(value), ensure_ascii=False, separators=(",", ":"))
    if isinstance(value, str):
        if any(ch in value for ch in ('"', DELIMITER, "\n", "\r")):
            return _quote(value)
        return value
    return to_text(value)


def _format_element(value: Any) -> str:
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(to_jsonable(value), ensure_ascii=False, separators=(",", ":"))
    return to_text(value)


def _as_row(row: Any) -> Mapping:
    return row if isinstance(row, Mapping) else {"value": row}


def to_delimited(rows: Sequence[Any]) -> str:
    """
    Serialize rows to comma-delimited text.

    The header is the key list of the first row and every row is written
    against that same header: missing keys give empty cells, extra keys are
    dropped. An empty input gives an empty string.
    """
    if not rows:
        return ""

    headers = list(_as_row(rows[0]).keys())
    lines = [DELIMITER.join(_format_cell(str(h)) for h in headers)]
    for row in rows:
        row = _as_row(row)
        lines.append(DELIMITER.join(_format_cell(row.get(h)) for h in headers))
    return "\n".join(lines)


def to_json(rows: Any, pretty: bool = True) -> str:
    """Serialize rows to JSON, preserving per-row key order."""
    return json.dumps(to_jsonable(rows), indent=2 if pretty else None, ensure_ascii=False)


def export_to_string(rows: Sequence[Any], format: str, pretty: bool = True) -> str:
    """
    Export rows to a string in the specified format.

    Args:
        rows: Result rows
        format: Export format (json, csv)
        pretty: Indent JSON output

    Returns:
        Exported content as string
    """
    if format == "json":
        return to_json(rows, pretty=pretty)
    if format == "csv":
        return to_delimited(rows)
    raise ValueError(f"Unknown format: {format}")


def export_file(rows: Sequence[Any], path: Path, format: str = None, pretty: bool = True) -> None:
    """
    Export rows to a file.

    Args:
        rows: Result rows
        path: Output file path
        format: Export format (json, csv); inferred from the suffix when omitted
    """
    path = Path(path)
    if format is None:
        format = detect_format(path)

    content = export_to_string(rows, format, pretty=pretty)

    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def detect_format(path: Path, default: str = "json") -> str:
    """Guess an export format from a file suffix."""
    suffix = Path(path).suffix.lower()
    if suffix in (".csv", ".tsv", ".txt"):
        return "csv"
    if suffix == ".json":
        return "json"
    return default
