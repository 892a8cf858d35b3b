"""
Schema evaluator: compile schema text and run it against a record set.

Schema text is either a YAML schema document:

    from: search(records, 'permis')
    let:
      total: len(records)
    fields:
      serviceId: id
      serviceName: name
      primaryCategory: categories[0] or 'Uncategorized'
      share: round(100 / total, 1)

or a single rule expression evaluated once over the whole record set:

    project(filter_status(records, 'Active'), ['name', 'id'])

Text with a line starting with one of the document keys is read as a
document; anything else is a single expression. A document needs exactly
one of `select` (list of field names), `fields` (output field -> selector)
or `result` (an expression). Rule values that contain YAML syntax characters
(`: `, ` #`, a leading quote, `!`, `[`, `{` or `?`) must be quoted.

Evaluation never raises: failures come back as an EvaluationResult carrying
an EvaluationError.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

import yaml

from ctk.constants import DEFAULT_RULE_MAX_STEPS, DEFAULT_RULE_TIMEOUT
from ctk.errors import ErrorKind, EvaluationError
from ctk.exporters import to_jsonable
from ctk.projection import project
from ctk.rules.ast import Budget, Literal, Node, Scope, type_name
from ctk.rules.builtins import BUILTINS
from ctk.rules.compiler import ParsedSelector, bind_selector, parse_selector
from ctk.rules.parser import is_identifier, parse_rule

logger = logging.getLogger(__name__)

DOCUMENT_KEYS = ("from", "let", "select", "fields", "result")
OUTPUT_KEYS = ("select", "fields", "result")

_DOCUMENT_LINE = re.compile(r"^\s*(%s)\s*:" % "|".join(DOCUMENT_KEYS), re.MULTILINE)


@dataclass
class EvaluationResult:
    """
    Outcome of one schema evaluation.

    Attributes:
        rows: Result rows when evaluation succeeded
        error: The failure otherwise
        wrapped: True when a single object result was wrapped into a list
        steps: Evaluation steps consumed
    """
    rows: Optional[List[Any]] = None
    error: Optional[EvaluationError] = None
    wrapped: bool = False
    steps: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SchemaProgram:
    """A compiled schema, ready to run any number of times."""
    source: str
    mode: str  # 'select', 'fields', 'result'
    source_node: Optional[Node] = None
    lets: List[Tuple[str, Node]] = field(default_factory=list)
    select: List[str] = field(default_factory=list)
    fields: List[Tuple[str, ParsedSelector]] = field(default_factory=list)
    result: Optional[Node] = None

    def run(self, records: Sequence[Any], budget: Budget) -> Any:
        """Execute once over the whole record set."""
        records = list(records)
        scope = Scope(
            budget=budget,
            functions=BUILTINS,
            roots={"records": records, "services": records},
        )

        if self.source_node is not None:
            working = self.source_node.evaluate(scope)
            if not isinstance(working, (list, tuple)):
                raise EvaluationError(f"'from' must produce a list of records, got {type_name(working)}")
            working = list(working)
            scope.roots = {"records": working, "services": working}
        else:
            working = records

        for name, node in self.lets:
            try:
                scope.names[name] = node.evaluate(scope)
            except EvaluationError as e:
                raise e.located(field=name)

        if self.mode == "select":
            budget.tick(len(working) * max(len(self.select), 1))
            return project(_as_records(working), self.select)

        if self.mode == "fields":
            selectors = [(name, bind_selector(sel, scope)) for name, sel in self.fields]
            rows = []
            for i, record in enumerate(_as_records(working)):
                budget.tick()
                row = {}
                for name, selector in selectors:
                    try:
                        row[name] = selector.select(record)
                    except EvaluationError as e:
                        raise e.located(name, i)
                    except Exception as e:
                        raise EvaluationError(str(e) or type(e).__name__, field=name, index=i) from e
                rows.append(row)
            return rows

        return self.result.evaluate(scope)


def _as_records(items: List[Any]) -> List[Mapping]:
    for i, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise EvaluationError(f"Expected a record, got {type_name(item)}", index=i)
    return items


def _compile_rule(text: Any, key: str) -> Node:
    if text is None or isinstance(text, (bool, int, float)):
        return Literal(text)
    if not isinstance(text, str):
        raise EvaluationError(f"'{key}' must be a rule expression", kind=ErrorKind.SYNTAX, field=key)
    try:
        return parse_rule(text)
    except EvaluationError as e:
        raise e.located(field=key)


def _compile_document(source: str, doc: Mapping) -> SchemaProgram:
    unknown = [k for k in doc if k not in DOCUMENT_KEYS]
    if unknown:
        raise EvaluationError(
            f"Unknown schema keys: {', '.join(map(str, unknown))} (expected {', '.join(DOCUMENT_KEYS)})",
            kind=ErrorKind.SYNTAX,
        )

    outputs = [k for k in OUTPUT_KEYS if k in doc]
    if len(outputs) != 1:
        raise EvaluationError("Schema needs exactly one of: select, fields, result", kind=ErrorKind.SYNTAX)

    program = SchemaProgram(source=source, mode=outputs[0])

    if "from" in doc:
        program.source_node = _compile_rule(doc["from"], "from")

    lets = doc.get("let") or {}
    if not isinstance(lets, Mapping):
        raise EvaluationError("'let' must map names to rules", kind=ErrorKind.SYNTAX)
    for name, rule in lets.items():
        if not isinstance(name, str) or not is_identifier(name):
            raise EvaluationError(f"Invalid let name: {name!r}", kind=ErrorKind.SYNTAX)
        program.lets.append((name, _compile_rule(rule, name)))

    if program.mode == "select":
        keys = doc["select"]
        if isinstance(keys, str):
            keys = [k.strip() for k in keys.split(",") if k.strip()]
        if not isinstance(keys, list) or not keys or not all(isinstance(k, str) for k in keys):
            raise EvaluationError("'select' must be a non-empty list of field names", kind=ErrorKind.SYNTAX)
        program.select = keys

    elif program.mode == "fields":
        mapping = doc["fields"]
        if not isinstance(mapping, Mapping) or not mapping:
            raise EvaluationError("'fields' must map output names to selectors", kind=ErrorKind.SYNTAX)
        bound = {name for name, _ in program.lets}
        program.fields = [
            (str(name), parse_selector(value, field=str(name), bound=bound)) for name, value in mapping.items()
        ]

    else:
        program.result = _compile_rule(doc["result"], "result")

    return program


def compile_schema(source: str) -> SchemaProgram:
    """
    Compile schema text.

    Raises:
        EvaluationError: With kind SYNTAX when the text is not a valid schema
    """
    if not isinstance(source, str) or not source.strip():
        raise EvaluationError("Schema is empty", kind=ErrorKind.SYNTAX)

    # An object literal is an expression, even when its keys look like document keys
    if source.lstrip().startswith("{") or not _DOCUMENT_LINE.search(source):
        return SchemaProgram(source=source, mode="result", result=parse_rule(source.strip()))

    try:
        doc = yaml.safe_load(source)
    except yaml.YAMLError as e:
        raise EvaluationError(f"Invalid schema document: {e}", kind=ErrorKind.SYNTAX) from e

    if not isinstance(doc, Mapping):
        raise EvaluationError("Schema document must be a mapping of schema keys", kind=ErrorKind.SYNTAX)
    return _compile_document(source, doc)


def normalize_result(value: Any) -> Tuple[List[Any], bool]:
    """
    Apply the result shape policy.

    Lists are kept; a single object becomes a one-element list (wrapped);
    anything else is rejected.
    """
    if isinstance(value, (list, tuple)):
        return to_jsonable(list(value)), False
    if isinstance(value, Mapping):
        return [to_jsonable(value)], True
    raise EvaluationError(
        f"Schema must produce a list of rows or an object, got {type_name(value)}",
        kind=ErrorKind.RESULT,
    )


class SchemaEvaluator:
    """
    Runs schemas under step and time limits.

    Example:
        evaluator = SchemaEvaluator(timeout=1.0)
        result = evaluator.evaluate(records, "fields:\\n  title: name\\n")
        if result.ok:
            print(result.rows)
    """

    def __init__(self, timeout: Optional[float] = DEFAULT_RULE_TIMEOUT, max_steps: int = DEFAULT_RULE_MAX_STEPS):
        self.timeout = timeout
        self.max_steps = max_steps

    def evaluate(self, records: Sequence[Any], source: Any) -> EvaluationResult:
        """Compile and run `source` once over `records`."""
        budget = Budget(self.max_steps, self.timeout)
        try:
            program = source if isinstance(source, SchemaProgram) else compile_schema(source)
            rows, wrapped = normalize_result(program.run(records, budget))
        except EvaluationError as e:
            logger.info(f"Schema evaluation failed ({e.kind.value}): {e}")
            return EvaluationResult(error=e, steps=budget.steps)
        except RecursionError as e:
            logger.info(f"Schema evaluation failed: {e}")
            error = EvaluationError("Schema is nested too deeply", kind=ErrorKind.SYNTAX)
            return EvaluationResult(error=error, steps=budget.steps)
        except Exception as e:
            logger.warning(f"Unexpected error during schema evaluation: {e!r}")
            error = EvaluationError(str(e) or type(e).__name__, kind=ErrorKind.RUNTIME)
            return EvaluationResult(error=error, steps=budget.steps)

        if wrapped:
            logger.warning("Schema produced a single object; wrapped it as a one-row result")
        logger.debug(f"Schema produced {len(rows)} rows in {budget.steps} steps")
        return EvaluationResult(rows=rows, wrapped=wrapped, steps=budget.steps)


def evaluate(
    records: Sequence[Any],
    source: Any,
    timeout: Optional[float] = DEFAULT_RULE_TIMEOUT,
    max_steps: int = DEFAULT_RULE_MAX_STEPS,
) -> EvaluationResult:
    """Evaluate schema text against records. See SchemaEvaluator."""
    return SchemaEvaluator(timeout=timeout, max_steps=max_steps).evaluate(records, source)
