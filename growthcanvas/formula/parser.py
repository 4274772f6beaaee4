"""
Formula tokenizer and recursive-descent parser.

Operator precedence, lowest first: comparison (= <> < > <= >=), text
concatenation (&), addition (+ -), multiplication (* /), exponent (^),
unary sign, percent postfix.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from ..exceptions import FormulaParseError
from .references import parse_address


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<string>"(?:[^"]|"")*")
  | (?P<error>\#(?:DIV/0!|N/A|NAME\?|NUM!|REF!|VALUE!|CYCLE!|ERROR!))
  | (?P<ref>\$?[A-Za-z]{1,3}\$?\d+)(?![A-Za-z0-9_.(])
  | (?P<ident>[A-Za-z_][A-Za-z0-9_.]*)
  | (?P<op><=|>=|<>|[-+*/^&=<>%:(),])
    """,
    re.VERBOSE,
)

COMPARISON_OPS = ("=", "<>", "<", ">", "<=", ">=")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Boolean:
    value: bool


@dataclass(frozen=True)
class ErrorLiteral:
    code: str


@dataclass(frozen=True)
class CellRef:
    row: int
    col: int


@dataclass(frozen=True)
class RangeRef:
    top: int
    left: int
    bottom: int
    right: int


@dataclass(frozen=True)
class Call:
    name: str
    args: Tuple["Node", ...]


@dataclass(frozen=True)
class Unary:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class Percent:
    operand: "Node"


@dataclass(frozen=True)
class Binary:
    op: str
    left: "Node"
    right: "Node"


Node = Union[Number, Text, Boolean, ErrorLiteral, CellRef, RangeRef, Call, Unary, Percent, Binary]


def tokenize(source: str) -> List[Token]:
    """Split formula text (without the leading '=') into tokens."""
    tokens: List[Token] = []
    position = 0
    while position < len(source):
        match = _TOKEN_RE.match(source, position)
        if not match:
            raise FormulaParseError(f"Unexpected character '{source[position]}' at {position}")
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(Token(kind, match.group(kind)))
        position = match.end()
    return tokens


class _Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.position = 0

    def peek(self) -> Optional[Token]:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def next(self) -> Token:
        token = self.peek()
        if token is None:
            raise FormulaParseError("Unexpected end of formula")
        self.position += 1
        return token

    def accept_op(self, *ops: str) -> Optional[str]:
        token = self.peek()
        if token is not None and token.kind == "op" and token.text in ops:
            self.position += 1
            return token.text
        return None

    def expect_op(self, op: str) -> None:
        if self.accept_op(op) is None:
            token = self.peek()
            found = token.text if token else "end of formula"
            raise FormulaParseError(f"Expected '{op}' but found '{found}'")

    def parse(self) -> Node:
        node = self.comparison()
        if self.peek() is not None:
            raise FormulaParseError(f"Unexpected '{self.peek().text}'")
        return node

    def comparison(self) -> Node:
        node = self.concatenation()
        while True:
            op = self.accept_op(*COMPARISON_OPS)
            if op is None:
                return node
            node = Binary(op, node, self.concatenation())

    def concatenation(self) -> Node:
        node = self.additive()
        while self.accept_op("&"):
            node = Binary("&", node, self.additive())
        return node

    def additive(self) -> Node:
        node = self.multiplicative()
        while True:
            op = self.accept_op("+", "-")
            if op is None:
                return node
            node = Binary(op, node, self.multiplicative())

    def multiplicative(self) -> Node:
        node = self.power()
        while True:
            op = self.accept_op("*", "/")
            if op is None:
                return node
            node = Binary(op, node, self.power())

    def power(self) -> Node:
        node = self.unary()
        while self.accept_op("^"):
            node = Binary("^", node, self.unary())
        return node

    def unary(self) -> Node:
        op = self.accept_op("-", "+")
        if op is not None:
            return Unary(op, self.unary())
        return self.postfix()

    def postfix(self) -> Node:
        node = self.primary()
        while self.accept_op("%"):
            node = Percent(node)
        return node

    def primary(self) -> Node:
        token = self.next()
        if token.kind == "number":
            return Number(float(token.text))
        if token.kind == "string":
            return Text(token.text[1:-1].replace('""', '"'))
        if token.kind == "error":
            return ErrorLiteral(token.text)
        if token.kind == "ref":
            return self.reference(token)
        if token.kind == "ident":
            name = token.text.upper()
            if self.accept_op("("):
                return Call(name, self.arguments())
            if name in ("TRUE", "FALSE"):
                return Boolean(name == "TRUE")
            raise FormulaParseError(f"Unknown name '{token.text}'")
        if token.kind == "op" and token.text == "(":
            node = self.comparison()
            self.expect_op(")")
            return node
        raise FormulaParseError(f"Unexpected '{token.text}'")

    def reference(self, token: Token) -> Node:
        row, col = parse_address(token.text)
        if self.accept_op(":") is None:
            return CellRef(row, col)
        end = self.next()
        if end.kind != "ref":
            raise FormulaParseError(f"Invalid range end '{end.text}'")
        end_row, end_col = parse_address(end.text)
        return RangeRef(min(row, end_row), min(col, end_col), max(row, end_row), max(col, end_col))

    def arguments(self) -> Tuple[Node, ...]:
        args: List[Node] = []
        if self.accept_op(")"):
            return tuple(args)
        while True:
            args.append(self.comparison())
            if self.accept_op(")"):
                return tuple(args)
            self.expect_op(",")


def parse_formula(source: str) -> Node:
    """
    Parse formula text into an expression tree.

    Args:
        source: Formula text, with or without the leading '='

    Raises:
        FormulaParseError: If the formula is malformed
    """
    if source.startswith("="):
        source = source[1:]
    tokens = tokenize(source)
    if not tokens:
        raise FormulaParseError("Empty formula")
    try:
        return _Parser(tokens).parse()
    except ValueError as e:
        raise FormulaParseError(str(e)) from e
