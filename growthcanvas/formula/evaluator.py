"""
Per-sheet formula evaluation.

Cells are evaluated lazily and memoised. Before a formula cell is computed,
the formula cells it references are ordered dependencies-first with an
explicit work stack, so arbitrarily long reference chains never deepen the
Python call stack and a cell's value does not depend on which cell was read
first. Every cell on a reference cycle evaluates to #CYCLE!. Every failure
is captured as a CellError on the cell that produced it.
"""

import logging
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

from ..exceptions import FormulaParseError
from .functions import FunctionRegistry
from .parser import (
    Binary,
    Boolean,
    Call,
    CellRef,
    ErrorLiteral,
    Node,
    Number,
    Percent,
    RangeRef,
    Text,
    Unary,
    parse_formula,
)
from .values import (
    CYCLE,
    DIV_ZERO,
    ERROR,
    NAME,
    NUM,
    VALUE,
    CellError,
    RangeValue,
    Scalar,
    Value,
    display_value,
    literal_value,
    to_number,
    to_text,
)


CellKey = Tuple[int, int]

_VISITING = 1
_DONE = 2


def is_formula(raw: str) -> bool:
    return raw.startswith("=") and len(raw) > 1


def _blank_like(other: Scalar) -> Scalar:
    if isinstance(other, str):
        return ""
    if isinstance(other, bool):
        return False
    return 0.0


def _type_rank(value: Scalar) -> int:
    if isinstance(value, bool):
        return 2
    if isinstance(value, str):
        return 1
    return 0


def compare(op: str, left: Scalar, right: Scalar) -> bool:
    """Spreadsheet comparison: numbers < text < logicals, text case-insensitive."""
    if left is None:
        left = _blank_like(right)
    if right is None:
        right = _blank_like(left)
    left_rank, right_rank = _type_rank(left), _type_rank(right)
    if left_rank != right_rank:
        left, right = left_rank, right_rank
    elif isinstance(left, str):
        left, right = left.lower(), right.lower()
    if op == "=":
        return left == right
    if op == "<>":
        return left != right
    if op == "<":
        return left < right
    if op == ">":
        return left > right
    if op == "<=":
        return left <= right
    return left >= right


class SheetEvaluator:
    """
    Evaluation state for one grid of raw cell strings.
    """

    def __init__(self, grid: List[List[str]], functions: FunctionRegistry):
        """
        Initialize the evaluator.

        Args:
            grid: Row-major raw cell text (formulas already sanitized)
            functions: Functions available to formulas
        """
        self.grid = grid
        self.functions = functions
        self.height = len(grid)
        self.width = max((len(row) for row in grid), default=0)
        self._values: Dict[CellKey, Scalar] = {}
        self._trees: Dict[CellKey, Union[Node, CellError]] = {}
        self._in_progress: Set[CellKey] = set()

    def raw(self, row: int, col: int) -> Optional[str]:
        """Raw text of a cell, or None outside the grid."""
        if row < 0 or col < 0 or row >= self.height or col >= len(self.grid[row]):
            return None
        return self.grid[row][col]

    def value(self, row: int, col: int) -> Scalar:
        """Evaluated value of a cell (None for empty or out-of-grid cells)."""
        raw = self.raw(row, col)
        if raw is None:
            return None
        key = (row, col)
        if key in self._values:
            return self._values[key]
        if not is_formula(raw):
            value = literal_value(raw)
            self._values[key] = value
            return value
        if key in self._in_progress:
            return CellError(CYCLE, "Circular reference")
        for cell in self._evaluation_order(key):
            if cell not in self._values:
                self._values[cell] = self._compute(cell)
        return self._values[key]

    def _compute(self, key: CellKey) -> Scalar:
        self._in_progress.add(key)
        try:
            return self._evaluate_formula(key)
        finally:
            self._in_progress.discard(key)

    def _parse(self, key: CellKey) -> Union[Node, CellError]:
        if key not in self._trees:
            row, col = key
            try:
                self._trees[key] = parse_formula(self.grid[row][col])
            except FormulaParseError as e:
                self._trees[key] = CellError(ERROR, str(e))
            except RecursionError:
                logging.warning(f"Formula in {key} is nested too deeply to parse")
                self._trees[key] = CellError(ERROR, "Formula nested too deeply")
        return self._trees[key]

    def _references(self, node: Node) -> Iterator[CellKey]:
        """Every cell an expression reads, ranges clipped to the grid."""
        pending = [node]
        while pending:
            node = pending.pop()
            if isinstance(node, CellRef):
                yield node.row, node.col
            elif isinstance(node, RangeRef):
                bottom = min(node.bottom, max(node.top, self.height - 1))
                right = min(node.right, max(node.left, self.width - 1))
                for row in range(node.top, bottom + 1):
                    for col in range(node.left, right + 1):
                        yield row, col
            elif isinstance(node, Call):
                pending.extend(node.args)
            elif isinstance(node, (Unary, Percent)):
                pending.append(node.operand)
            elif isinstance(node, Binary):
                pending.extend((node.left, node.right))

    def _formula_dependencies(self, key: CellKey) -> List[CellKey]:
        tree = self._parse(key)
        if isinstance(tree, CellError):
            return []
        dependencies = []
        for ref in dict.fromkeys(self._references(tree)):
            raw = self.raw(*ref)
            if raw is not None and is_formula(raw) and ref not in self._values:
                dependencies.append(ref)
        return dependencies

    def _evaluation_order(self, start: CellKey) -> List[CellKey]:
        """
        Unevaluated formula cells reachable from ``start``, dependencies first.

        Cells found on a reference cycle are stored as #CYCLE! while walking.
        """
        order: List[CellKey] = []
        state = {start: _VISITING}
        path = [start]
        stack = [iter(self._formula_dependencies(start))]
        while stack:
            dependency = next(stack[-1], None)
            if dependency is None:
                stack.pop()
                done = path.pop()
                state[done] = _DONE
                order.append(done)
                continue
            seen = state.get(dependency)
            if seen == _DONE:
                continue
            if seen == _VISITING:
                for cell in path[path.index(dependency):]:
                    self._values[cell] = CellError(CYCLE, "Circular reference")
                continue
            state[dependency] = _VISITING
            path.append(dependency)
            stack.append(iter(self._formula_dependencies(dependency)))
        return order

    def display(self, row: int, col: int) -> str:
        """Display text of a cell: typed text for literals, computed text for formulas."""
        raw = self.raw(row, col)
        if raw is None:
            return ""
        if not is_formula(raw):
            return raw
        return display_value(self.value(row, col))

    def _evaluate_formula(self, key: CellKey) -> Scalar:
        tree = self._parse(key)
        if isinstance(tree, CellError):
            return tree
        try:
            result = self.evaluate(tree)
        except RecursionError:
            logging.warning(f"Formula in {key} is nested too deeply to evaluate")
            return CellError(ERROR, "Formula nested too deeply")
        if isinstance(result, RangeValue):
            return CellError(VALUE, "A range cannot be the value of a cell")
        if result is None:
            return 0.0
        return result

    def evaluate(self, node: Node) -> Value:
        """Evaluate an expression tree in the context of this sheet."""
        if isinstance(node, Number):
            return node.value
        if isinstance(node, Text):
            return node.value
        if isinstance(node, Boolean):
            return node.value
        if isinstance(node, ErrorLiteral):
            return CellError(node.code)
        if isinstance(node, CellRef):
            return self.value(node.row, node.col)
        if isinstance(node, RangeRef):
            return self._range(node)
        if isinstance(node, Call):
            return self._call(node)
        if isinstance(node, Unary):
            number = to_number(self._scalar(self.evaluate(node.operand)))
            if isinstance(number, CellError):
                return number
            return -number if node.op == "-" else number
        if isinstance(node, Percent):
            number = to_number(self._scalar(self.evaluate(node.operand)))
            if isinstance(number, CellError):
                return number
            return number / 100
        if isinstance(node, Binary):
            return self._binary(node)
        return CellError(ERROR, f"Unsupported expression {node!r}")

    def _scalar(self, value: Value) -> Value:
        if isinstance(value, RangeValue):
            return CellError(VALUE, "A range cannot be used as a single value")
        return value

    def _range(self, node: RangeRef) -> RangeValue:
        bottom = min(node.bottom, max(node.top, self.height - 1))
        right = min(node.right, max(node.left, self.width - 1))
        return RangeValue([
            [self.value(row, col) for col in range(node.left, right + 1)]
            for row in range(node.top, bottom + 1)
        ])

    def _call(self, node: Call) -> Value:
        function = self.functions.get(node.name)
        if function is None:
            return CellError(NAME, f"Unknown function {node.name}")
        if function.lazy:
            args = [lambda arg=arg: self.evaluate(arg) for arg in node.args]
        else:
            args = [self.evaluate(arg) for arg in node.args]
        try:
            return function.func(*args)
        except TypeError:
            return CellError(VALUE, f"Wrong number of arguments to {node.name}")
        except (ArithmeticError, ValueError) as e:
            return CellError(NUM, f"{node.name} failed: {e}")

    def _binary(self, node: Binary) -> Value:
        left = self._scalar(self.evaluate(node.left))
        right = self._scalar(self.evaluate(node.right))
        if isinstance(left, CellError):
            return left
        if isinstance(right, CellError):
            return right

        if node.op == "&":
            return to_text(left) + to_text(right)
        if node.op in ("=", "<>", "<", ">", "<=", ">="):
            return compare(node.op, left, right)

        a, b = to_number(left), to_number(right)
        if isinstance(a, CellError):
            return a
        if isinstance(b, CellError):
            return b
        if node.op == "+":
            return a + b
        if node.op == "-":
            return a - b
        if node.op == "*":
            return a * b
        if node.op == "/":
            if b == 0:
                return CellError(DIV_ZERO, "Division by zero")
            return a / b
        if node.op == "^":
            if a == 0 and b < 0:
                return CellError(DIV_ZERO, "Zero raised to a negative power")
            try:
                result = a ** b
            except OverflowError:
                return CellError(NUM, "Result too large")
            if isinstance(result, complex):
                return CellError(NUM, "Result is not a real number")
            return float(result)
        return CellError(ERROR, f"Unknown operator {node.op}")
