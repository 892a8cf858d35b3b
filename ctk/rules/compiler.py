"""
Compile schema selectors written as text.

A selector value in a schema document is read as:

- a bare identifier ("name", "institutionId"): a field reference, unless it
  names a let-binding or one of `records`, `services`, `record`, in which
  case it reads that name like any rule would
- any other string: a rule expression, evaluated per record
- a number, boolean or null: a constant
- {field: "some key"} or {rule: "expression"}: explicit forms

Compilation happens before any record is touched, so syntax errors are
reported without running anything. Rule selectors are later bound to the
evaluation scope of one invocation.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from ctk.errors import ErrorKind, EvaluationError
from ctk.rules.ast import Literal, Name, Node, Scope
from ctk.rules.parser import is_identifier, parse_rule
from ctk.schema import Derive, FieldRef, Selector


@dataclass
class RuleSelector:
    """A compiled rule, not yet bound to a scope."""
    node: Node
    source: str

    def bind(self, scope: Scope) -> Derive:
        node = self.node

        def rule(record: Mapping) -> Any:
            return node.evaluate(scope.for_record(record))

        return Derive(rule, source=self.source)


ParsedSelector = Union[FieldRef, RuleSelector]

# Names a bare selector resolves from the scope rather than the record
SCOPE_NAMES = ("records", "services", "record")


def parse_selector(value: Any, field: Optional[str] = None, bound: Iterable[str] = ()) -> ParsedSelector:
    """
    Compile one selector value.

    `bound` lists the let-binding names visible to the selector.

    Raises:
        EvaluationError: SYNTAX error naming the offending field
    """
    try:
        if isinstance(value, str):
            text = value.strip()
            if is_identifier(text) and text not in SCOPE_NAMES and text not in bound:
                return FieldRef(text)
            if is_identifier(text):
                return RuleSelector(Name(text), text)
            return RuleSelector(parse_rule(text), text)

        if value is None or isinstance(value, (bool, int, float)):
            return RuleSelector(Literal(value), repr(value))

        if isinstance(value, Mapping) and len(value) == 1:
            if "field" in value and isinstance(value["field"], str):
                return FieldRef(value["field"])
            if "rule" in value and isinstance(value["rule"], str):
                return RuleSelector(parse_rule(value["rule"]), value["rule"])

        raise EvaluationError(
            f"Invalid selector {value!r}: expected a field name, a rule, or {{field: ...}} / {{rule: ...}}",
            kind=ErrorKind.SYNTAX,
        )
    except EvaluationError as e:
        raise e.located(field=field)


def bind_selector(selector: ParsedSelector, scope: Scope) -> Selector:
    """Turn a parsed selector into an executable one."""
    if isinstance(selector, RuleSelector):
        return selector.bind(scope)
    return selector
