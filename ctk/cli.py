#!/usr/bin/env python3
"""
CTK - Catalog Toolkit

A composable command-line interface for exploring and reshaping a public
service catalog. Output goes to stdout as a table, JSON or CSV, so commands
combine with pipes; errors and warnings go to stderr.
"""
import sys
import argparse
import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ctk import __version__
from ctk.config import get_config, init_config
from ctk.constants import MAX_CELL_WIDTH
from ctk.errors import AcquisitionError, CtkError, EvaluationError, ValidationError
from ctk.examples import get_example, list_examples
from ctk.exporters import export_file, to_delimited, to_json
from ctk.fetch import CatalogFetcher, catalog_url
from ctk.models import Record
from ctk.session import Session
from ctk.stats import category_counts, compute_stats
from ctk.store import RecordStore

logger = logging.getLogger(__name__)


console = Console()
err_console = Console(stderr=True)


def describe_error(error: CtkError) -> str:
    """One-line, user-facing description of a failure."""
    if isinstance(error, EvaluationError):
        return f"Schema error ({error.kind.value}): {error}"
    if isinstance(error, AcquisitionError):
        return f"Could not load catalog ({error.cause.value}): {error}"
    if isinstance(error, ValidationError):
        return f"Invalid input: {error}"
    return f"Error: {error}"


def fail(message: str):
    """Print an error and exit with status 1."""
    err_console.print(f"[red]{escape(message)}[/red]")
    sys.exit(1)


def format_value(value: Any) -> str:
    """Format a cell for table display."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return "; ".join(format_value(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    text = str(value)
    if len(text) > MAX_CELL_WIDTH:
        text = text[:MAX_CELL_WIDTH - 1] + "…"
    return text


def output_rows(rows: Sequence[Any], format: str, title: str = "Result"):
    """Output result rows in the specified format."""
    config = get_config()

    if format == "json":
        print(to_json(list(rows), pretty=config.export_pretty))
    elif format == "csv":
        text = to_delimited(rows)
        if text:
            print(text)
    else:
        rows = [row if isinstance(row, dict) else {"value": row} for row in rows]
        if not rows:
            console.print("[yellow]No rows[/yellow]")
            return

        table = Table(title=f"{title} ({len(rows)} rows)")
        header = list(rows[0])
        for i, key in enumerate(header):
            table.add_column(escape(key), style="cyan" if i == 0 else None)

        for row in rows[:config.preview_rows]:
            table.add_row(*(escape(format_value(row.get(key))) for key in header))

        console.print(table)
        if len(rows) > config.preview_rows:
            console.print(f"[dim]... {len(rows) - config.preview_rows} more rows[/dim]")


def output_records(records: List[Record], format: str):
    """Output catalog records in the specified format."""
    config = get_config()

    if format in ("json", "csv"):
        output_rows([r.to_dict() for r in records], format)
        return

    table = Table(title=f"Services ({len(records)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Status", style="magenta")
    table.add_column("Categories", style="yellow")
    table.add_column("URL", style="blue")

    for record in records[:config.preview_rows]:
        table.add_row(
            escape(record.id),
            escape(format_value(record.name)),
            record.status,
            escape(format_value(", ".join(record.categories))),
            escape(format_value(record.url)),
        )

    console.print(table)
    if len(records) > config.preview_rows:
        console.print(f"[dim]... {len(records) - config.preview_rows} more services[/dim]")


def write_or_output(args, rows: List[Any], title: str):
    """Write rows to --out if given, else print them."""
    if getattr(args, "out", None):
        path = Path(args.out)
        export_file(rows, path, pretty=get_config().export_pretty)
        if not args.quiet:
            err_console.print(f"[green]Wrote {len(rows)} rows to {escape(str(path))}[/green]")
    else:
        output_rows(rows, args.output, title=title)


def is_url(source: Optional[str]) -> bool:
    return bool(source) and source.startswith(("http://", "https://"))


def load_session(args) -> Session:
    """Load the catalog named by --source and apply the filter options."""
    session = Session(get_config())

    if args.source == "-":
        outcome = session.load_text(sys.stdin.read())
    elif args.source is None or is_url(args.source):
        outcome = session.load_url(args.source)
    else:
        outcome = session.load_file(args.source)

    if not outcome.ok:
        fail(describe_error(outcome.error))

    try:
        session.set_criteria(
            search=getattr(args, "search", None),
            categories=getattr(args, "category", None),
            status=getattr(args, "status", "all"),
        )
    except ValidationError as e:
        fail(describe_error(e))

    logger.debug(f"{len(session.filtered())} of {len(session.records)} services pass the filters")
    return session


def cmd_fetch(args):
    """Download the catalog."""
    config = get_config()
    url = args.source if is_url(args.source) else catalog_url(config.catalog_url, not args.no_categories)

    with CatalogFetcher(
        timeout=config.timeout,
        user_agent=config.user_agent,
        proxy_url=config.proxy_url,
        verify_ssl=config.verify_ssl,
    ) as fetcher:
        try:
            payload = fetcher.fetch(url)
            store = RecordStore.from_payload(payload)
        except CtkError as e:
            fail(describe_error(e))

    text = to_json(payload, pretty=config.export_pretty)
    if args.out:
        path = Path(args.out)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text + "\n", encoding="utf-8")
        if not args.quiet:
            err_console.print(
                f"[green]Saved {len(store)} services, {len(store.categories)} categories "
                f"to {escape(str(path))}[/green]"
            )
    else:
        print(text)


def cmd_stats(args):
    """Show catalog statistics."""
    session = load_session(args)
    stats = compute_stats(session.filtered())

    if args.output == "json":
        print(json.dumps(stats.to_dict(), indent=2))
    elif args.output == "csv":
        print(to_delimited([stats.to_dict()]))
    else:
        table = Table(title="Catalog Statistics")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Total Services", str(stats.total))
        table.add_row("Active", str(stats.active))
        table.add_row("With URL", str(stats.with_url))
        table.add_row("Distinct Categories", str(stats.distinct_category_count))

        console.print(table)


def cmd_categories(args):
    """List the category vocabulary with service counts."""
    session = load_session(args)
    counts = category_counts(session.filtered())

    names = list(session.categories)
    names.extend(c for c in counts if c not in session.categories)
    rows = [{"category": name, "count": counts.get(name, 0)} for name in names]

    if args.output in ("json", "csv"):
        output_rows(rows, args.output)
        return

    table = Table(title=f"Categories ({len(rows)})")
    table.add_column("Category", style="yellow")
    table.add_column("Services", style="green", justify="right")
    for row in rows:
        table.add_row(escape(row["category"]), str(row["count"]))
    console.print(table)


def cmd_list(args):
    """List filtered services."""
    session = load_session(args)
    output_records(session.filtered(), args.output)


def cmd_project(args):
    """Keep only the selected fields."""
    session = load_session(args)
    keys = [k.strip() for k in args.keys.split(",") if k.strip()]

    outcome = session.run_projection(keys)
    if not outcome.ok:
        fail(describe_error(outcome.error))

    write_or_output(args, outcome.rows, title="Projection")


def read_schema(args) -> str:
    """Schema text from --schema, --example or --expr."""
    if args.example:
        try:
            return get_example(args.example).source
        except KeyError as e:
            fail(str(e.args[0]))
    if args.schema:
        path = Path(args.schema)
        if not path.exists():
            fail(f"Schema file not found: {path}")
        return path.read_text(encoding="utf-8")
    return args.expr


def cmd_transform(args):
    """Run a schema against the filtered services."""
    source = read_schema(args)
    session = load_session(args)

    outcome = session.run_schema(source)
    if not outcome.ok:
        fail(describe_error(outcome.error))

    if outcome.wrapped and not args.quiet:
        err_console.print("[yellow]Warning: schema returned a single object; wrapped it as one row[/yellow]")

    write_or_output(args, outcome.rows, title="Transform")


def cmd_examples(args):
    """List or show built-in example schemas."""
    if args.name:
        try:
            example = get_example(args.name)
        except KeyError as e:
            fail(str(e.args[0]))
        if not args.quiet:
            console.print(f"[bold]{escape(example.title)}[/bold] - {escape(example.description)}")
        print(example.source, end="")
        return

    examples = list_examples()
    if args.output == "json":
        print(json.dumps([
            {"name": e.name, "title": e.title, "description": e.description, "source": e.source}
            for e in examples
        ], indent=2, ensure_ascii=False))
        return

    table = Table(title="Example Schemas")
    table.add_column("Name", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Description")
    for example in examples:
        table.add_row(example.name, escape(example.title), escape(example.description))
    console.print(table)


def cmd_config(args):
    """Show or initialize configuration."""
    config = get_config()

    if args.init:
        config_path = Path(args.path) if args.path else Path.home() / ".config" / "ctk" / "config.toml"
        config.save(config_path)
        if not args.quiet:
            console.print(f"[green]Created config at {escape(str(config_path))}[/green]")
    else:
        print(json.dumps(config.to_dict(), indent=2))


def add_filter_options(parser: argparse.ArgumentParser):
    parser.add_argument("--search", "-s", help="Case-insensitive text filter on name, description, categories")
    parser.add_argument("--category", "-c", action="append",
                        help="Keep services in this category (repeatable; any match)")
    parser.add_argument("--status", choices=["all", "active", "inactive"], default="all",
                        help="Status filter (default: all)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ctk",
        description="CTK - Catalog Toolkit: filter, reshape and export a public service catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Download the catalog once, then work offline
  ctk fetch --out services.json

  # Explore
  ctk --source services.json stats
  ctk --source services.json categories
  ctk --source services.json list --search passeport --status active

  # Reshape
  ctk --source services.json project --keys name,id,url -o csv
  ctk --source services.json transform --example analytics --out analytics.csv
  ctk --source services.json transform --expr "group_by_category(records)" -o json
  ctk --source services.json transform --schema my_schema.yaml

  # Composable Unix-style pipelines
  curl -s https://example.org/catalog.json | ctk --source - list -o json | jq '.[].name'

Configuration:
  Config file: ~/.config/ctk/config.toml or ./ctk.toml
  Environment: CTK_CATALOG_URL, CTK_OUTPUT_FORMAT, CTK_RULE_TIMEOUT
        """
    )

    # Global options
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--source", help="Catalog file, '-' for stdin, or http(s) URL (default: configured catalog URL)")
    parser.add_argument("--config", help="Config file path")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal output")
    parser.add_argument("-o", "--output", choices=["table", "json", "csv"], help="Output format")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Commands")

    fetch_parser = subparsers.add_parser("fetch", help="Download the catalog")
    fetch_parser.add_argument("--no-categories", action="store_true",
                              help="Do not request the category vocabulary")
    fetch_parser.add_argument("--out", help="Write the catalog to this file instead of stdout")
    fetch_parser.set_defaults(func=cmd_fetch)

    stats_parser = subparsers.add_parser("stats", help="Show catalog statistics")
    add_filter_options(stats_parser)
    stats_parser.set_defaults(func=cmd_stats)

    categories_parser = subparsers.add_parser("categories", help="List categories with counts")
    add_filter_options(categories_parser)
    categories_parser.set_defaults(func=cmd_categories)

    list_parser = subparsers.add_parser("list", help="List services")
    add_filter_options(list_parser)
    list_parser.set_defaults(func=cmd_list)

    project_parser = subparsers.add_parser("project", help="Keep only the selected fields")
    project_parser.add_argument("--keys", "-k", required=True, help="Comma-separated field names, in output order")
    project_parser.add_argument("--out", help="Export to file (.json or .csv)")
    add_filter_options(project_parser)
    project_parser.set_defaults(func=cmd_project)

    transform_parser = subparsers.add_parser("transform", help="Reshape services with a schema")
    schema_group = transform_parser.add_mutually_exclusive_group(required=True)
    schema_group.add_argument("--schema", help="Schema file")
    schema_group.add_argument("--example", help="Built-in example schema name")
    schema_group.add_argument("--expr", help="Schema text or a single expression")
    transform_parser.add_argument("--out", help="Export to file (.json or .csv)")
    add_filter_options(transform_parser)
    transform_parser.set_defaults(func=cmd_transform)

    examples_parser = subparsers.add_parser("examples", help="List or show built-in example schemas")
    examples_parser.add_argument("name", nargs="?", help="Example to print")
    examples_parser.set_defaults(func=cmd_examples)

    config_parser = subparsers.add_parser("config", help="Show or initialize configuration")
    config_parser.add_argument("--init", action="store_true", help="Write the current configuration to a file")
    config_parser.add_argument("--path", help="Config file to write (default: ~/.config/ctk/config.toml)")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Initialize configuration with CLI overrides
    config_args = {}
    if args.output:
        config_args["output_format"] = args.output
    if args.config:
        config_args["config_file"] = Path(args.config)

    try:
        config = init_config(**config_args)
    except CtkError as e:
        fail(describe_error(e))

    logging.basicConfig(
        level=getattr(logging, str(config.log_level).upper(), logging.WARNING),
        format="%(levelname)s: %(message)s",
    )

    # Set default output format if not specified
    if not args.output:
        args.output = config.output_format

    # Execute command
    try:
        args.func(args)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except CtkError as e:
        fail(describe_error(e))
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        fail(f"Error: {e}")


if __name__ == "__main__":
    main()
