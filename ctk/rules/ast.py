"""
Rule language AST and tree-walking evaluator.

Rules are small expressions evaluated against catalog data:

    categories[0] or 'Uncategorized'
    truncate(description, 100) + '...'
    'green' if isActive else 'red'
    len(search(records, 'tax'))

Nodes only ever touch the values handed to them through a Scope: the record
being processed, the record set, let-bindings and a fixed table of built-in
functions. Every node evaluation is charged against a Budget, so runaway
rules fail with a timeout instead of hanging the caller.
"""

import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from ctk.constants import DEADLINE_CHECK_INTERVAL, MAX_LIST_LENGTH, MAX_STRING_LENGTH
from ctk.errors import ErrorKind, EvaluationError


# =============================================================================
# Runtime environment
# =============================================================================

class Budget:
    """Step and wall-clock limits for one evaluation."""

    def __init__(self, max_steps: int, timeout: Optional[float] = None):
        self.max_steps = max_steps
        self.timeout = timeout
        self.steps = 0
        self._deadline = time.monotonic() + timeout if timeout else None

    def tick(self, n: int = 1) -> None:
        """Charge `n` steps, failing once a limit is exceeded."""
        before = self.steps
        self.steps += n
        if self.steps > self.max_steps:
            raise EvaluationError(
                f"Evaluation exceeded {self.max_steps} steps",
                kind=ErrorKind.TIMEOUT,
            )
        if self._deadline is not None and (
            n > 1 or before // DEADLINE_CHECK_INTERVAL != self.steps // DEADLINE_CHECK_INTERVAL
        ):
            if time.monotonic() > self._deadline:
                raise EvaluationError(
                    f"Evaluation timed out after {self.timeout}s",
                    kind=ErrorKind.TIMEOUT,
                )


@dataclass
class Scope:
    """
    Name resolution for rule evaluation.

    Lookup order: let-bindings, fields of the current record, `record`,
    then the root names (`records`, `services`).
    """
    budget: Budget
    functions: Dict[str, Callable] = field(default_factory=dict)
    roots: Dict[str, Any] = field(default_factory=dict)
    names: Dict[str, Any] = field(default_factory=dict)
    record: Optional[Mapping] = None

    def for_record(self, record: Mapping) -> "Scope":
        """Child scope for evaluating a rule against one record."""
        return Scope(
            budget=self.budget,
            functions=self.functions,
            roots=self.roots,
            names=self.names,
            record=record,
        )

    def lookup(self, name: str) -> Any:
        if name in self.names:
            return self.names[name]
        if self.record is not None:
            if name in self.record:
                return self.record[name]
            if name == "record":
                return self.record
        if name in self.roots:
            return self.roots[name]
        raise EvaluationError(f"Unknown name '{name}'")


# =============================================================================
# Value helpers
# =============================================================================

def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def type_name(value: Any) -> str:
    """User-facing type name of a rule value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "list"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def check_length(value: Any) -> Any:
    if isinstance(value, str) and len(value) > MAX_STRING_LENGTH:
        raise EvaluationError(f"String result longer than {MAX_STRING_LENGTH} characters")
    if isinstance(value, (list, tuple)) and len(value) > MAX_LIST_LENGTH:
        raise EvaluationError(f"List result longer than {MAX_LIST_LENGTH} items")
    return value


# =============================================================================
# Nodes
# =============================================================================

class Node(ABC):
    """Base class for all rule nodes."""

    def evaluate(self, scope: Scope) -> Any:
        scope.budget.tick()
        return self._eval(scope)

    @abstractmethod
    def _eval(self, scope: Scope) -> Any:
        pass


@dataclass
class Literal(Node):
    """Constant value: number, string, boolean or null."""
    value: Any

    def _eval(self, scope: Scope) -> Any:
        return self.value

    def __repr__(self):
        return f"Literal({self.value!r})"


@dataclass
class Name(Node):
    """Variable or record field reference."""
    name: str

    def _eval(self, scope: Scope) -> Any:
        return scope.lookup(self.name)

    def __repr__(self):
        return f"Name({self.name})"


@dataclass
class ListExpr(Node):
    """List literal: [a, b, c]"""
    items: List[Node]

    def _eval(self, scope: Scope) -> Any:
        return [item.evaluate(scope) for item in self.items]


@dataclass
class DictExpr(Node):
    """Object literal: {"key": value}"""
    entries: List[Tuple[str, Node]]

    def _eval(self, scope: Scope) -> Any:
        return {key: value.evaluate(scope) for key, value in self.entries}


@dataclass
class Member(Node):
    """Key access with dot syntax: record.name"""
    target: Node
    name: str

    def _eval(self, scope: Scope) -> Any:
        target = self.target.evaluate(scope)
        if isinstance(target, Mapping):
            return target.get(self.name)
        raise EvaluationError(f"Cannot read '{self.name}' of {type_name(target)}")


@dataclass
class Index(Node):
    """
    Subscript: items[0], record["institutionId"]

    Out-of-range positions and missing keys give null.
    """
    target: Node
    index: Node

    def _eval(self, scope: Scope) -> Any:
        target = self.target.evaluate(scope)
        index = self.index.evaluate(scope)

        if isinstance(target, Mapping):
            if not isinstance(index, str):
                raise EvaluationError(f"Object keys must be strings, got {type_name(index)}")
            return target.get(index)

        if isinstance(target, (list, tuple, str)):
            if isinstance(index, bool) or not isinstance(index, int):
                raise EvaluationError(f"List index must be an integer, got {type_name(index)}")
            if -len(target) <= index < len(target):
                return target[index]
            return None

        raise EvaluationError(f"Cannot index {type_name(target)}")


@dataclass
class Call(Node):
    """Built-in function call: truncate(description, 100)"""
    func: str
    args: List[Node]

    def _eval(self, scope: Scope) -> Any:
        fn = scope.functions.get(self.func)
        if fn is None:
            raise EvaluationError(f"Unknown function '{self.func}'")
        args = [arg.evaluate(scope) for arg in self.args]
        try:
            return check_length(fn(scope, *args))
        except EvaluationError:
            raise
        except (TypeError, ValueError, KeyError, IndexError, AttributeError) as e:
            raise EvaluationError(f"{self.func}(): {e}") from e


@dataclass
class Unary(Node):
    """Negation (-x) or logical not (not x, !x)."""
    op: str
    operand: Node

    def _eval(self, scope: Scope) -> Any:
        value = self.operand.evaluate(scope)
        if self.op == "not":
            return not value
        if self.op == "-":
            if not is_number(value):
                raise EvaluationError(f"Cannot negate {type_name(value)}")
            return -value
        raise EvaluationError(f"Unknown operator '{self.op}'")


def _arithmetic(op: str, left: Any, right: Any, budget: Budget) -> Any:
    if op == "+":
        if is_number(left) and is_number(right):
            return left + right
        if isinstance(left, str) and isinstance(right, str):
            return check_length(left + right)
        if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
            budget.tick(len(left) + len(right))
            if len(left) + len(right) > MAX_LIST_LENGTH:
                raise EvaluationError(f"List result longer than {MAX_LIST_LENGTH} items")
            return list(left) + list(right)

    elif op == "*":
        if is_number(left) and is_number(right):
            return left * right
        if isinstance(left, str) and isinstance(right, int) and not isinstance(right, bool):
            if len(left) * max(right, 0) > MAX_STRING_LENGTH:
                raise EvaluationError(f"String result longer than {MAX_STRING_LENGTH} characters")
            return left * right

    elif op in ("-", "/", "//", "%"):
        if is_number(left) and is_number(right):
            if op == "-":
                return left - right
            if right == 0:
                raise EvaluationError("Division by zero")
            if op == "/":
                return left / right
            if op == "//":
                return left // right
            return left % right

    raise EvaluationError(f"Unsupported operands for '{op}': {type_name(left)} and {type_name(right)}")


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "==":
        return left == right
    if op == "!=":
        return left != right

    if op in ("in", "not in"):
        if isinstance(right, str):
            if not isinstance(left, str):
                raise EvaluationError(f"'{op}' on a string needs a string, got {type_name(left)}")
            found = left in right
        elif isinstance(right, (list, tuple, Mapping)):
            found = left in right
        else:
            raise EvaluationError(f"'{op}' needs a string, list or object, got {type_name(right)}")
        return found if op == "in" else not found

    ordered = (is_number(left) and is_number(right)) or (isinstance(left, str) and isinstance(right, str))
    if not ordered:
        raise EvaluationError(f"Cannot compare {type_name(left)} and {type_name(right)} with '{op}'")
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    if op == ">=":
        return left >= right
    raise EvaluationError(f"Unknown operator '{op}'")


@dataclass
class Binary(Node):
    """Arithmetic or comparison between two operands."""
    op: str
    left: Node
    right: Node

    ARITHMETIC = ("+", "-", "*", "/", "//", "%")
    COMPARISON = ("==", "!=", "<", "<=", ">", ">=", "in", "not in")

    def _eval(self, scope: Scope) -> Any:
        left = self.left.evaluate(scope)
        right = self.right.evaluate(scope)
        if self.op in self.ARITHMETIC:
            return _arithmetic(self.op, left, right, scope.budget)
        return _compare(self.op, left, right)

    def __repr__(self):
        return f"Binary({self.left!r} {self.op} {self.right!r})"


@dataclass
class Logical(Node):
    """Short-circuit and/or, returning the deciding operand."""
    op: str  # 'and', 'or'
    left: Node
    right: Node

    def _eval(self, scope: Scope) -> Any:
        left = self.left.evaluate(scope)
        if self.op == "and":
            return self.right.evaluate(scope) if left else left
        return left if left else self.right.evaluate(scope)


@dataclass
class Conditional(Node):
    """then_value if test else else_value"""
    test: Node
    then: Node
    otherwise: Node

    def _eval(self, scope: Scope) -> Any:
        if self.test.evaluate(scope):
            return self.then.evaluate(scope)
        return self.otherwise.evaluate(scope)
