"""
Value types and coercions used by the formula evaluator.

A cell value is one of: None (empty), float, str, bool or CellError.
Ranges evaluate to a RangeValue holding a rectangular block of cell values.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union


DIV_ZERO = "#DIV/0!"
VALUE = "#VALUE!"
REF = "#REF!"
NAME = "#NAME?"
NUM = "#NUM!"
NA = "#N/A"
CYCLE = "#CYCLE!"
ERROR = "#ERROR!"

ERROR_CODES = (DIV_ZERO, VALUE, REF, NAME, NUM, NA, CYCLE, ERROR)


@dataclass(frozen=True)
class CellError:
    """An evaluation error scoped to one cell."""

    code: str
    message: str = field(default="", compare=False)

    def __str__(self) -> str:
        return self.code


@dataclass
class RangeValue:
    """A rectangular block of evaluated cells, row-major."""

    rows: List[List["Scalar"]]

    def values(self) -> Iterator["Scalar"]:
        for row in self.rows:
            yield from row

    @property
    def height(self) -> int:
        return len(self.rows)

    @property
    def width(self) -> int:
        return len(self.rows[0]) if self.rows else 0


Scalar = Union[None, float, str, bool, CellError]
Value = Union[Scalar, RangeValue]


_PLAIN_NUMBER_RE = re.compile(r"^(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_THOUSANDS_RE = re.compile(r"^\d{1,3}(?:,\d{3})+(?:\.\d*)?$")


def parse_number_text(text: str) -> Optional[float]:
    """
    Read typed numeric text the way a spreadsheet does.

    Accepts a leading sign, a ``$`` currency mark, thousands separators and a
    trailing ``%`` (divides by 100). Returns None for anything else.
    """
    s = text.strip()
    if not s:
        return None
    percent = s.endswith("%")
    if percent:
        s = s[:-1].rstrip()
    sign = ""
    if s[:1] in ("+", "-"):
        sign, s = s[0], s[1:].lstrip()
    if s.startswith("$"):
        s = s[1:].lstrip()
    if _THOUSANDS_RE.match(s):
        s = s.replace(",", "")
    if not _PLAIN_NUMBER_RE.match(s):
        return None
    value = float(sign + s)
    return value / 100 if percent else value


def literal_value(raw: str) -> Scalar:
    """Typed value of a non-formula cell."""
    if raw == "":
        return None
    number = parse_number_text(raw)
    if number is not None:
        return number
    upper = raw.strip().upper()
    if upper == "TRUE":
        return True
    if upper == "FALSE":
        return False
    if upper in ERROR_CODES:
        return CellError(upper)
    return raw


def to_number(value: Value) -> Union[float, CellError]:
    """Coerce a scalar to a number for arithmetic."""
    if isinstance(value, CellError):
        return value
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, float):
        return value
    if isinstance(value, int):
        return float(value)
    if isinstance(value, str):
        number = parse_number_text(value)
        if number is None:
            return CellError(VALUE, f"Cannot convert '{value}' to a number")
        return number
    return CellError(VALUE, "A range cannot be used as a single value")


def to_text(value: Value) -> Union[str, CellError]:
    """Coerce a scalar to text for concatenation and string functions."""
    if isinstance(value, CellError):
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return format_number(float(value))
    if isinstance(value, str):
        return value
    return CellError(VALUE, "A range cannot be used as a single value")


def to_bool(value: Value) -> Union[bool, CellError]:
    """Coerce a scalar to a logical value."""
    if isinstance(value, CellError):
        return value
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        upper = value.strip().upper()
        if upper == "TRUE":
            return True
        if upper == "FALSE":
            return False
        return CellError(VALUE, f"Cannot convert '{value}' to a logical value")
    return CellError(VALUE, "A range cannot be used as a single value")


def format_number(value: float) -> str:
    """Display form of a number: no trailing '.0', at most 15 significant digits."""
    if math.isnan(value) or math.isinf(value):
        return NUM
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    return f"{value:.15g}"


def display_value(value: Value) -> str:
    """Render an evaluated value as cell display text."""
    if isinstance(value, CellError):
        return value.code
    if isinstance(value, RangeValue):
        return VALUE
    text = to_text(value)
    return text.code if isinstance(text, CellError) else text
