"""
Parser for the rule expression language.

Turns rule text into a tree of ctk.rules.ast nodes. The grammar is a small,
Python-flavored expression language; a few JavaScript spellings (||, &&, !,
?:) are accepted so schemas ported from the web tool keep working.

    expr        := conditional
    conditional := or_expr ["if" or_expr "else" conditional]
                 | or_expr ["?" expr ":" conditional]
    or_expr     := and_expr {("or" | "||") and_expr}
    and_expr    := not_expr {("and" | "&&") not_expr}
    not_expr    := ("not" | "!") not_expr | comparison
    comparison  := additive [comp_op additive]
    additive    := term {("+" | "-") term}
    term        := unary {("*" | "/" | "//" | "%") unary}
    unary       := "-" unary | postfix
    postfix     := primary {"[" expr "]" | "." NAME | "(" args ")"}
    primary     := NUMBER | STRING | NAME | true | false | null
                 | "[" items "]" | "{" entries "}" | "(" expr ")"
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ctk.constants import MAX_EXPRESSION_DEPTH
from ctk.errors import ErrorKind, EvaluationError
from ctk.rules.ast import (
    Binary,
    Call,
    Conditional,
    DictExpr,
    Index,
    ListExpr,
    Literal,
    Logical,
    Member,
    Name,
    Node,
    Unary,
)


KEYWORDS = {"and", "or", "not", "in", "if", "else", "true", "false", "null", "True", "False", "None"}

CONSTANTS = {
    "true": True,
    "True": True,
    "false": False,
    "False": False,
    "null": None,
    "None": None,
}

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_TOKEN_RE = re.compile(r"""
    (?P<ws>\s+)
  | (?P<number>\d+\.\d*|\.\d+|\d+)
  | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>//|==|!=|<=|>=|\|\||&&|[-+*/%<>!?:.,()\[\]{}])
""", re.VERBOSE)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}


def syntax_error(message: str, position: Optional[int] = None) -> EvaluationError:
    if position is not None:
        message = f"{message} at position {position}"
    return EvaluationError(message, kind=ErrorKind.SYNTAX)


@dataclass
class Token:
    kind: str  # 'number', 'string', 'name', 'op', 'end'
    value: object
    position: int

    def __repr__(self):
        return f"Token({self.kind} {self.value!r})"


def _unescape(body: str) -> str:
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


def tokenize(text: str) -> List[Token]:
    """Split rule text into tokens."""
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match:
            raise syntax_error(f"Unexpected character {text[pos]!r}", pos)

        kind = match.lastgroup
        raw = match.group(kind)
        if kind == "number":
            tokens.append(Token("number", float(raw) if "." in raw else int(raw), pos))
        elif kind == "string":
            tokens.append(Token("string", _unescape(raw[1:-1]), pos))
        elif kind in ("name", "op"):
            tokens.append(Token(kind, raw, pos))
        pos = match.end()

    tokens.append(Token("end", None, len(text)))
    return tokens


class RuleParser:
    """Recursive-descent parser over a token list."""

    COMPARISONS = ("==", "!=", "<", "<=", ">", ">=")

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0
        self.depth = 0

    # -- token helpers --------------------------------------------------------

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def _peek(self, offset: int = 1) -> Token:
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def _at(self, *values: str) -> bool:
        tok = self.current
        return tok.kind in ("op", "name") and tok.value in values

    def _advance(self) -> Token:
        tok = self.current
        self.pos += 1
        return tok

    def _expect(self, value: str) -> Token:
        if not self._at(value):
            raise syntax_error(f"Expected '{value}' but found {self._describe(self.current)}", self.current.position)
        return self._advance()

    @staticmethod
    def _describe(tok: Token) -> str:
        if tok.kind == "end":
            return "end of rule"
        return repr(tok.value)

    # -- grammar --------------------------------------------------------------

    def parse(self) -> Node:
        if self.current.kind == "end":
            raise syntax_error("Empty rule")
        node = self.expression()
        if self.current.kind != "end":
            raise syntax_error(f"Unexpected {self._describe(self.current)}", self.current.position)
        return node

    def expression(self) -> Node:
        self.depth += 1
        if self.depth > MAX_EXPRESSION_DEPTH:
            raise syntax_error("Rule is nested too deeply", self.current.position)
        try:
            return self.conditional()
        finally:
            self.depth -= 1

    def conditional(self) -> Node:
        node = self.or_expr()
        if self._at("if"):
            self._advance()
            test = self.or_expr()
            self._expect("else")
            return Conditional(test=test, then=node, otherwise=self.conditional())
        if self._at("?"):
            self._advance()
            then = self.expression()
            self._expect(":")
            return Conditional(test=node, then=then, otherwise=self.conditional())
        return node

    def or_expr(self) -> Node:
        node = self.and_expr()
        while self._at("or", "||"):
            self._advance()
            node = Logical("or", node, self.and_expr())
        return node

    def and_expr(self) -> Node:
        node = self.not_expr()
        while self._at("and", "&&"):
            self._advance()
            node = Logical("and", node, self.not_expr())
        return node

    def not_expr(self) -> Node:
        if self._at("not", "!"):
            self._advance()
            return Unary("not", self.not_expr())
        return self.comparison()

    def comparison(self) -> Node:
        node = self.additive()
        if self._at(*self.COMPARISONS):
            op = self._advance().value
            return Binary(op, node, self.additive())
        if self._at("in"):
            self._advance()
            return Binary("in", node, self.additive())
        if self._at("not") and self._peek().kind == "name" and self._peek().value == "in":
            self._advance()
            self._advance()
            return Binary("not in", node, self.additive())
        return node

    def additive(self) -> Node:
        node = self.term()
        while self._at("+", "-"):
            op = self._advance().value
            node = Binary(op, node, self.term())
        return node

    def term(self) -> Node:
        node = self.unary()
        while self._at("*", "/", "//", "%"):
            op = self._advance().value
            node = Binary(op, node, self.unary())
        return node

    def unary(self) -> Node:
        if self._at("-"):
            self._advance()
            return Unary("-", self.unary())
        if self._at("!"):
            self._advance()
            return Unary("not", self.unary())
        return self.postfix()

    def postfix(self) -> Node:
        node = self.primary()
        while True:
            if self._at("["):
                self._advance()
                index = self.expression()
                self._expect("]")
                node = Index(node, index)
            elif self._at("."):
                self._advance()
                tok = self._advance()
                if tok.kind != "name":
                    raise syntax_error(f"Expected a field name after '.', found {self._describe(tok)}", tok.position)
                node = Member(node, tok.value)
            elif self._at("("):
                if not isinstance(node, Name):
                    raise syntax_error("Only built-in functions can be called", self.current.position)
                self._advance()
                node = Call(node.name, self._sequence(")"))
            else:
                return node

    def _sequence(self, closing: str) -> List[Node]:
        items = []
        while not self._at(closing):
            items.append(self.expression())
            if not self._at(closing):
                self._expect(",")
        self._expect(closing)
        return items

    def _entries(self) -> List[Tuple[str, Node]]:
        entries = []
        while not self._at("}"):
            tok = self._advance()
            if tok.kind == "string" or (tok.kind == "name" and tok.value not in KEYWORDS):
                key = tok.value
            else:
                raise syntax_error(f"Expected an object key, found {self._describe(tok)}", tok.position)
            self._expect(":")
            entries.append((key, self.expression()))
            if not self._at("}"):
                self._expect(",")
        self._expect("}")
        return entries

    def primary(self) -> Node:
        tok = self.current

        if tok.kind in ("number", "string"):
            self._advance()
            return Literal(tok.value)

        if tok.kind == "name":
            if tok.value in CONSTANTS:
                self._advance()
                return Literal(CONSTANTS[tok.value])
            if tok.value in KEYWORDS:
                raise syntax_error(f"Unexpected keyword '{tok.value}'", tok.position)
            self._advance()
            return Name(tok.value)

        if self._at("("):
            self._advance()
            node = self.expression()
            self._expect(")")
            return node

        if self._at("["):
            self._advance()
            return ListExpr(self._sequence("]"))

        if self._at("{"):
            self._advance()
            return DictExpr(self._entries())

        raise syntax_error(f"Unexpected {self._describe(tok)}", tok.position)


def parse_rule(text: str) -> Node:
    """
    Parse rule text into an AST.

    Raises:
        EvaluationError: With kind SYNTAX if the text is not a valid rule
    """
    if not isinstance(text, str):
        raise syntax_error(f"Rule must be text, got {type(text).__name__}")
    return RuleParser(text).parse()


def is_identifier(text: str) -> bool:
    """True for a bare field name such as `institutionId`."""
    return bool(IDENTIFIER.match(text)) and text not in KEYWORDS
