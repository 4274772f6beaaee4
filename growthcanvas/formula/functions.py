"""
Spreadsheet function library.

Functions receive evaluated arguments (scalars or RangeValue). Functions
registered as lazy receive zero-argument callables instead, so that IF and
IFERROR only evaluate the branch they return.
"""

import math
import re
import statistics
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_DOWN, ROUND_HALF_UP, ROUND_UP, Decimal
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from .values import (
    DIV_ZERO,
    NA,
    NUM,
    REF,
    VALUE,
    CellError,
    RangeValue,
    Scalar,
    Value,
    parse_number_text,
    to_bool,
    to_number,
    to_text,
)


SPREADSHEET_EPOCH = date(1899, 12, 30)


@dataclass(frozen=True)
class RegisteredFunction:
    name: str
    func: Callable[..., Any]
    lazy: bool = False


BUILTIN_FUNCTIONS: Dict[str, RegisteredFunction] = {}


def spreadsheet_function(name: str, lazy: bool = False):
    """Register a builtin under its spreadsheet name."""
    def decorator(func):
        BUILTIN_FUNCTIONS[name] = RegisteredFunction(name, func, lazy)
        return func
    return decorator


class FunctionRegistry:
    """
    Registry of the functions available to formulas.
    """

    def __init__(self, functions: Optional[Dict[str, RegisteredFunction]] = None):
        self._functions: Dict[str, RegisteredFunction] = dict(functions or {})

    @classmethod
    def with_builtins(cls) -> "FunctionRegistry":
        return cls(BUILTIN_FUNCTIONS)

    def register(self, name: str, func: Callable[..., Any], lazy: bool = False) -> None:
        """
        Register or replace a function.

        Args:
            name: Spreadsheet name (case-insensitive)
            func: Implementation
            lazy: Pass arguments as callables instead of values
        """
        name = name.upper()
        self._functions[name] = RegisteredFunction(name, func, lazy)

    def get(self, name: str) -> Optional[RegisteredFunction]:
        return self._functions.get(name.upper())

    def names(self) -> List[str]:
        """All registered function names, sorted."""
        return sorted(self._functions)

    def __contains__(self, name: str) -> bool:
        return name.upper() in self._functions


# Argument helpers

def _first_error(values) -> Optional[CellError]:
    for value in values:
        if isinstance(value, CellError):
            return value
    return None


def _numbers(args) -> Iterator[Union[float, CellError]]:
    """
    Numbers for aggregate functions.

    Direct arguments are coerced (text that is not numeric is an error);
    inside ranges only numeric cells count and text, logical and empty cells
    are skipped. Errors are yielded so callers can propagate them.
    """
    for arg in args:
        if isinstance(arg, RangeValue):
            for value in arg.values():
                if isinstance(value, CellError):
                    yield value
                elif isinstance(value, float):
                    yield value
        elif arg is None:
            continue
        else:
            yield to_number(arg)


def _collect_numbers(args) -> Union[List[float], CellError]:
    numbers: List[float] = []
    for number in _numbers(args):
        if isinstance(number, CellError):
            return number
        numbers.append(number)
    return numbers


def _flatten(args) -> Iterator[Scalar]:
    for arg in args:
        if isinstance(arg, RangeValue):
            yield from arg.values()
        else:
            yield arg


def _round(value: Value, digits: Value, rounding: str) -> Union[float, CellError]:
    number = to_number(value)
    places = to_number(digits)
    error = _first_error((number, places))
    if error:
        return error
    exponent = Decimal(1).scaleb(-int(places))
    return float(Decimal(repr(number)).quantize(exponent, rounding=rounding))


def _serial(moment: datetime) -> float:
    days = (moment.date() - SPREADSHEET_EPOCH).days
    seconds = moment.hour * 3600 + moment.minute * 60 + moment.second
    return days + seconds / 86400.0


_CRITERIA_RE = re.compile(r"^(<=|>=|<>|=|<|>)?(.*)$", re.DOTALL)


def _criteria_matcher(criteria: Scalar) -> Callable[[Scalar], bool]:
    """Build a predicate from COUNTIF/SUMIF criteria such as '>5' or 'done'."""
    if isinstance(criteria, (int, float)) and not isinstance(criteria, bool):
        return lambda value: isinstance(value, float) and value == criteria
    text = to_text(criteria)
    if isinstance(text, CellError):
        return lambda value: False
    op, operand = _CRITERIA_RE.match(text).groups()
    op = op or "="
    number = parse_number_text(operand)

    def matches(value: Scalar) -> bool:
        if number is not None and isinstance(value, float):
            left, right = value, number
        elif number is None and isinstance(value, str):
            left, right = value.lower(), operand.lower()
        elif value is None and operand == "":
            return op == "="
        else:
            return op == "<>"
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

    return matches


def _lookup_equal(candidate: Scalar, target: Scalar) -> bool:
    if isinstance(candidate, str) and isinstance(target, str):
        return candidate.lower() == target.lower()
    return candidate == target


def _lookup_le(candidate: Scalar, target: Scalar) -> bool:
    if isinstance(candidate, float) and isinstance(target, float):
        return candidate <= target
    if isinstance(candidate, str) and isinstance(target, str):
        return candidate.lower() <= target.lower()
    return False


def _lookup_ge(candidate: Scalar, target: Scalar) -> bool:
    if isinstance(candidate, float) and isinstance(target, float):
        return candidate >= target
    if isinstance(candidate, str) and isinstance(target, str):
        return candidate.lower() >= target.lower()
    return False


def _lookup(target: Value, keys: List[Scalar], approximate: bool) -> Optional[int]:
    """Index of the matching key (exact, or last key <= target on sorted keys)."""
    if approximate:
        found = None
        for index, key in enumerate(keys):
            if key is None:
                continue
            if _lookup_le(key, target):
                found = index
            else:
                break
        return found
    for index, key in enumerate(keys):
        if _lookup_equal(key, target):
            return index
    return None


# Math and aggregates

@spreadsheet_function("SUM")
def fn_sum(*args):
    numbers = _collect_numbers(args)
    if isinstance(numbers, CellError):
        return numbers
    return float(sum(numbers))


@spreadsheet_function("AVERAGE")
def fn_average(*args):
    numbers = _collect_numbers(args)
    if isinstance(numbers, CellError):
        return numbers
    if not numbers:
        return CellError(DIV_ZERO, "AVERAGE of no numbers")
    return sum(numbers) / len(numbers)


@spreadsheet_function("COUNT")
def fn_count(*args):
    count = 0
    for arg in args:
        if isinstance(arg, RangeValue):
            count += sum(1 for value in arg.values() if isinstance(value, float))
        elif arg is not None and not isinstance(to_number(arg), CellError):
            count += 1
    return float(count)


@spreadsheet_function("COUNTA")
def fn_counta(*args):
    return float(sum(1 for value in _flatten(args) if value is not None and value != ""))


@spreadsheet_function("COUNTBLANK")
def fn_countblank(*args):
    return float(sum(1 for value in _flatten(args) if value is None or value == ""))


@spreadsheet_function("COUNTIF")
def fn_countif(cells, criteria):
    if not isinstance(cells, RangeValue):
        cells = RangeValue([[cells]])
    matches = _criteria_matcher(criteria)
    return float(sum(1 for value in cells.values() if matches(value)))


@spreadsheet_function("SUMIF")
def fn_sumif(cells, criteria, sum_cells=None):
    if not isinstance(cells, RangeValue):
        cells = RangeValue([[cells]])
    if sum_cells is None:
        sum_cells = cells
    elif not isinstance(sum_cells, RangeValue):
        sum_cells = RangeValue([[sum_cells]])
    matches = _criteria_matcher(criteria)
    total = 0.0
    for r, row in enumerate(cells.rows):
        for c, value in enumerate(row):
            if not matches(value):
                continue
            if r < sum_cells.height and c < len(sum_cells.rows[r]):
                addend = sum_cells.rows[r][c]
                if isinstance(addend, CellError):
                    return addend
                if isinstance(addend, float):
                    total += addend
    return total


def _as_range(value: Value) -> RangeValue:
    return value if isinstance(value, RangeValue) else RangeValue([[value]])


def _criteria_mask(pairs) -> Union[List[List[bool]], CellError]:
    """
    Cells matching every (range, criteria) pair of a *IFS call.

    Raises:
        TypeError: If the arguments do not come in pairs
    """
    if not pairs or len(pairs) % 2:
        raise TypeError("Criteria ranges and criteria must come in pairs")
    ranges = [_as_range(cells) for cells in pairs[0::2]]
    matchers = [_criteria_matcher(criteria) for criteria in pairs[1::2]]
    height, width = ranges[0].height, ranges[0].width
    if any((cells.height, cells.width) != (height, width) for cells in ranges):
        return CellError(VALUE, "Criteria ranges must have the same size")
    return [
        [all(match(cells.rows[r][c]) for cells, match in zip(ranges, matchers)) for c in range(width)]
        for r in range(height)
    ]


def _matched_numbers(cells: RangeValue, mask) -> Union[List[float], CellError]:
    if isinstance(mask, CellError):
        return mask
    if (cells.height, cells.width) != (len(mask), len(mask[0]) if mask else 0):
        return CellError(VALUE, "Ranges must have the same size")
    numbers: List[float] = []
    for row, flags in zip(cells.rows, mask):
        for value, matched in zip(row, flags):
            if not matched:
                continue
            if isinstance(value, CellError):
                return value
            if isinstance(value, float):
                numbers.append(value)
    return numbers


@spreadsheet_function("SUMIFS")
def fn_sumifs(sum_cells, *pairs):
    numbers = _matched_numbers(_as_range(sum_cells), _criteria_mask(pairs))
    return numbers if isinstance(numbers, CellError) else float(sum(numbers))


@spreadsheet_function("COUNTIFS")
def fn_countifs(*pairs):
    mask = _criteria_mask(pairs)
    if isinstance(mask, CellError):
        return mask
    return float(sum(flag for row in mask for flag in row))


@spreadsheet_function("AVERAGEIF")
def fn_averageif(cells, criteria, average_cells=None):
    target = _as_range(cells if average_cells is None else average_cells)
    numbers = _matched_numbers(target, _criteria_mask((cells, criteria)))
    if isinstance(numbers, CellError):
        return numbers
    if not numbers:
        return CellError(DIV_ZERO, "AVERAGEIF matched no numbers")
    return sum(numbers) / len(numbers)


@spreadsheet_function("AVERAGEIFS")
def fn_averageifs(average_cells, *pairs):
    numbers = _matched_numbers(_as_range(average_cells), _criteria_mask(pairs))
    if isinstance(numbers, CellError):
        return numbers
    if not numbers:
        return CellError(DIV_ZERO, "AVERAGEIFS matched no numbers")
    return sum(numbers) / len(numbers)


@spreadsheet_function("MAX")
def fn_max(*args):
    numbers = _collect_numbers(args)
    if isinstance(numbers, CellError):
        return numbers
    return max(numbers) if numbers else 0.0


@spreadsheet_function("MIN")
def fn_min(*args):
    numbers = _collect_numbers(args)
    if isinstance(numbers, CellError):
        return numbers
    return min(numbers) if numbers else 0.0


@spreadsheet_function("MEDIAN")
def fn_median(*args):
    numbers = _collect_numbers(args)
    if isinstance(numbers, CellError):
        return numbers
    if not numbers:
        return CellError(NUM, "MEDIAN of no numbers")
    return float(statistics.median(numbers))


@spreadsheet_function("PRODUCT")
def fn_product(*args):
    numbers = _collect_numbers(args)
    if isinstance(numbers, CellError):
        return numbers
    if not numbers:
        return 0.0
    return float(math.prod(numbers))


@spreadsheet_function("ABS")
def fn_abs(value):
    number = to_number(value)
    return number if isinstance(number, CellError) else abs(number)


@spreadsheet_function("ROUND")
def fn_round(value, digits=0.0):
    return _round(value, digits, ROUND_HALF_UP)


@spreadsheet_function("ROUNDUP")
def fn_roundup(value, digits=0.0):
    return _round(value, digits, ROUND_UP)


@spreadsheet_function("ROUNDDOWN")
def fn_rounddown(value, digits=0.0):
    return _round(value, digits, ROUND_DOWN)


@spreadsheet_function("INT")
def fn_int(value):
    number = to_number(value)
    return number if isinstance(number, CellError) else float(math.floor(number))


@spreadsheet_function("MOD")
def fn_mod(value, divisor):
    number, by = to_number(value), to_number(divisor)
    error = _first_error((number, by))
    if error:
        return error
    if by == 0:
        return CellError(DIV_ZERO, "MOD by zero")
    return number % by


@spreadsheet_function("POWER")
def fn_power(value, exponent):
    base, power = to_number(value), to_number(exponent)
    error = _first_error((base, power))
    if error:
        return error
    if base == 0 and power < 0:
        return CellError(DIV_ZERO, "Zero raised to a negative power")
    result = base ** power
    if isinstance(result, complex):
        return CellError(NUM, "Result is not a real number")
    return float(result)


@spreadsheet_function("SQRT")
def fn_sqrt(value):
    number = to_number(value)
    if isinstance(number, CellError):
        return number
    if number < 0:
        return CellError(NUM, "SQRT of a negative number")
    return math.sqrt(number)


# Logical

@spreadsheet_function("IF", lazy=True)
def fn_if(condition, when_true=None, when_false=None):
    test = to_bool(condition())
    if isinstance(test, CellError):
        return test
    if test:
        return when_true() if when_true is not None else True
    return when_false() if when_false is not None else False


@spreadsheet_function("IFERROR", lazy=True)
def fn_iferror(value, fallback):
    result = value()
    if isinstance(result, CellError):
        return fallback()
    return result


@spreadsheet_function("IFS", lazy=True)
def fn_ifs(*pairs):
    if not pairs or len(pairs) % 2:
        raise TypeError("IFS takes condition and value pairs")
    for condition, value in zip(pairs[0::2], pairs[1::2]):
        test = to_bool(condition())
        if isinstance(test, CellError):
            return test
        if test:
            return value()
    return CellError(NA, "No IFS condition was true")


@spreadsheet_function("ISBLANK")
def fn_isblank(value):
    return value is None


@spreadsheet_function("ISNUMBER")
def fn_isnumber(value):
    return isinstance(value, float)


@spreadsheet_function("ISERROR")
def fn_iserror(value):
    return isinstance(value, CellError)


def _logicals(args) -> Union[List[bool], CellError]:
    results: List[bool] = []
    for arg in args:
        if isinstance(arg, RangeValue):
            for value in arg.values():
                if isinstance(value, CellError):
                    return value
                if isinstance(value, (bool, float)):
                    results.append(bool(value))
        else:
            logical = to_bool(arg)
            if isinstance(logical, CellError):
                return logical
            results.append(logical)
    if not results:
        return CellError(VALUE, "No logical values")
    return results


@spreadsheet_function("AND")
def fn_and(*args):
    results = _logicals(args)
    return results if isinstance(results, CellError) else all(results)


@spreadsheet_function("OR")
def fn_or(*args):
    results = _logicals(args)
    return results if isinstance(results, CellError) else any(results)


@spreadsheet_function("NOT")
def fn_not(value):
    logical = to_bool(value)
    return logical if isinstance(logical, CellError) else not logical


# Lookup

@spreadsheet_function("VLOOKUP")
def fn_vlookup(target, table, column, approximate=True):
    if isinstance(target, CellError):
        return target
    if not isinstance(table, RangeValue):
        return CellError(VALUE, "VLOOKUP needs a range")
    index = to_number(column)
    sorted_match = to_bool(approximate)
    error = _first_error((index, sorted_match))
    if error:
        return error
    index = int(index)
    if index < 1:
        return CellError(VALUE, "Column index must be at least 1")
    if index > table.width:
        return CellError(REF, "Column index outside the range")
    keys = [row[0] if row else None for row in table.rows]
    found = _lookup(target, keys, sorted_match)
    if found is None:
        return CellError(NA, "Value not found")
    return table.rows[found][index - 1]


@spreadsheet_function("HLOOKUP")
def fn_hlookup(target, table, row, approximate=True):
    if isinstance(target, CellError):
        return target
    if not isinstance(table, RangeValue):
        return CellError(VALUE, "HLOOKUP needs a range")
    index = to_number(row)
    sorted_match = to_bool(approximate)
    error = _first_error((index, sorted_match))
    if error:
        return error
    index = int(index)
    if index < 1:
        return CellError(VALUE, "Row index must be at least 1")
    if index > table.height:
        return CellError(REF, "Row index outside the range")
    keys = list(table.rows[0]) if table.rows else []
    found = _lookup(target, keys, sorted_match)
    if found is None:
        return CellError(NA, "Value not found")
    return table.rows[index - 1][found]


@spreadsheet_function("INDEX")
def fn_index(cells, row, column=None):
    """Cell at a 1-based position; row or column 0 selects a whole column or row."""
    cells = _as_range(cells)
    row_number = to_number(row)
    column_number = to_number(column) if column is not None else None
    error = _first_error((row_number, column_number))
    if error:
        return error
    row_number = int(row_number)
    if column_number is None:
        # A single row is indexed along its columns
        if cells.height == 1 and cells.width > 1:
            row_number, column_number = 1, row_number
        else:
            column_number = 1
    column_number = int(column_number)
    if not (0 <= row_number <= cells.height and 0 <= column_number <= cells.width):
        return CellError(REF, "INDEX position outside the range")
    if row_number == 0 and column_number == 0:
        return cells
    if row_number == 0:
        return RangeValue([[values[column_number - 1]] for values in cells.rows])
    if column_number == 0:
        return RangeValue([list(cells.rows[row_number - 1])])
    return cells.rows[row_number - 1][column_number - 1]


@spreadsheet_function("MATCH")
def fn_match(target, cells, match_type=1.0):
    """
    1-based position of ``target`` in a single row or column.

    Match type 0 is exact; 1 finds the largest key <= target in ascending
    keys; -1 finds the smallest key >= target in descending keys.
    """
    if isinstance(target, CellError):
        return target
    cells = _as_range(cells)
    if cells.height > 1 and cells.width > 1:
        return CellError(NA, "MATCH needs a single row or column")
    kind = to_number(match_type)
    if isinstance(kind, CellError):
        return kind
    keys = list(cells.values())
    if kind == 0:
        found = _lookup(target, keys, approximate=False)
    elif kind > 0:
        found = _lookup(target, keys, approximate=True)
    else:
        found = None
        for index, key in enumerate(keys):
            if key is None:
                continue
            if _lookup_ge(key, target):
                found = index
            else:
                break
    if found is None:
        return CellError(NA, "Value not found")
    return float(found + 1)


# Text

@spreadsheet_function("CONCATENATE")
def fn_concatenate(*args):
    parts = []
    for arg in args:
        if isinstance(arg, RangeValue):
            return CellError(VALUE, "CONCATENATE does not accept ranges")
        text = to_text(arg)
        if isinstance(text, CellError):
            return text
        parts.append(text)
    return "".join(parts)


@spreadsheet_function("CONCAT")
def fn_concat(*args):
    parts = []
    for value in _flatten(args):
        text = to_text(value)
        if isinstance(text, CellError):
            return text
        parts.append(text)
    return "".join(parts)


@spreadsheet_function("LEN")
def fn_len(value):
    text = to_text(value)
    return text if isinstance(text, CellError) else float(len(text))


@spreadsheet_function("UPPER")
def fn_upper(value):
    text = to_text(value)
    return text if isinstance(text, CellError) else text.upper()


@spreadsheet_function("LOWER")
def fn_lower(value):
    text = to_text(value)
    return text if isinstance(text, CellError) else text.lower()


@spreadsheet_function("TRIM")
def fn_trim(value):
    text = to_text(value)
    if isinstance(text, CellError):
        return text
    return " ".join(part for part in text.split(" ") if part)


@spreadsheet_function("LEFT")
def fn_left(value, count=1.0):
    text, n = to_text(value), to_number(count)
    error = _first_error((text, n))
    if error:
        return error
    if n < 0:
        return CellError(VALUE, "LEFT count must not be negative")
    return text[:int(n)]


@spreadsheet_function("RIGHT")
def fn_right(value, count=1.0):
    text, n = to_text(value), to_number(count)
    error = _first_error((text, n))
    if error:
        return error
    if n < 0:
        return CellError(VALUE, "RIGHT count must not be negative")
    n = int(n)
    return text[len(text) - n:] if n else ""


@spreadsheet_function("MID")
def fn_mid(value, start, count):
    text, first, n = to_text(value), to_number(start), to_number(count)
    error = _first_error((text, first, n))
    if error:
        return error
    if first < 1 or n < 0:
        return CellError(VALUE, "MID start must be at least 1 and count not negative")
    first = int(first) - 1
    return text[first:first + int(n)]


def _find(needle, haystack, start, fold_case: bool):
    text, within, first = to_text(needle), to_text(haystack), to_number(start)
    error = _first_error((text, within, first))
    if error:
        return error
    if first < 1 or first > len(within) + 1:
        return CellError(VALUE, "Start position outside the text")
    if fold_case:
        text, within = text.lower(), within.lower()
    index = within.find(text, int(first) - 1)
    if index < 0:
        return CellError(VALUE, "Text not found")
    return float(index + 1)


@spreadsheet_function("FIND")
def fn_find(needle, haystack, start=1.0):
    return _find(needle, haystack, start, fold_case=False)


@spreadsheet_function("SEARCH")
def fn_search(needle, haystack, start=1.0):
    return _find(needle, haystack, start, fold_case=True)


@spreadsheet_function("SUBSTITUTE")
def fn_substitute(value, old, new, instance=None):
    text, old_text, new_text = to_text(value), to_text(old), to_text(new)
    occurrence = to_number(instance) if instance is not None else None
    error = _first_error((text, old_text, new_text, occurrence))
    if error:
        return error
    if not old_text:
        return text
    if occurrence is None:
        return text.replace(old_text, new_text)
    if occurrence < 1:
        return CellError(VALUE, "SUBSTITUTE instance must be at least 1")
    index = -1
    for _ in range(int(occurrence)):
        index = text.find(old_text, index + 1)
        if index < 0:
            return text
    return text[:index] + new_text + text[index + len(old_text):]


_NUMBER_FORMAT_RE = re.compile(r"^(?P<prefix>[^0#]*)(?P<body>[0#,]*(?:\.[0#]*)?)(?P<suffix>.*)$", re.DOTALL)
_DATE_TOKEN_RE = re.compile(r"yyyy|yy|mm|m|dd|d", re.IGNORECASE)


def _serial_date(value: Value) -> Union[date, CellError]:
    number = to_number(value)
    if isinstance(number, CellError):
        return number
    if number < 0:
        return CellError(NUM, "Dates cannot be negative")
    return SPREADSHEET_EPOCH + timedelta(days=int(number))


def _format_date(value: Value, pattern: str) -> Union[str, CellError]:
    day = _serial_date(value)
    if isinstance(day, CellError):
        return day
    parts = {
        "yyyy": f"{day.year:04d}",
        "yy": f"{day.year % 100:02d}",
        "mm": f"{day.month:02d}",
        "m": str(day.month),
        "dd": f"{day.day:02d}",
        "d": str(day.day),
    }
    return _DATE_TOKEN_RE.sub(lambda match: parts[match.group(0).lower()], pattern)


def _format_number(number: float, pattern: str) -> str:
    match = _NUMBER_FORMAT_RE.match(pattern)
    prefix, body, suffix = match.group("prefix"), match.group("body"), match.group("suffix")
    if "%" in suffix:
        number *= 100
    integer_part, _, decimals = body.partition(".")
    places = len(decimals)
    rounded = Decimal(repr(number)).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    if "," in integer_part:
        text = f"{abs(rounded):,.{places}f}"
    else:
        text = f"{abs(rounded):.{places}f}"
        whole, dot, fraction = text.partition(".")
        text = whole.zfill(integer_part.count("0")) + dot + fraction
    if integer_part.count("0") == 0 and text.startswith("0"):
        text = text[1:]
    sign = "-" if rounded < 0 else ""
    return f"{sign}{prefix}{text}{suffix}"


@spreadsheet_function("TEXT")
def fn_text(value, format_text):
    """Format a number or date serial with a small subset of spreadsheet format codes."""
    pattern = to_text(format_text)
    if isinstance(pattern, CellError):
        return pattern
    if isinstance(value, CellError):
        return value
    if re.search(r"[yYdD]", pattern):
        return _format_date(value, pattern)
    number = to_number(value)
    if isinstance(number, CellError) or not re.search(r"[0#]", pattern):
        return to_text(value)
    return _format_number(number, pattern)


# Date

@spreadsheet_function("TODAY")
def fn_today():
    return float((date.today() - SPREADSHEET_EPOCH).days)


@spreadsheet_function("NOW")
def fn_now():
    return _serial(datetime.now())


@spreadsheet_function("DATE")
def fn_date(year, month, day):
    numbers = [to_number(part) for part in (year, month, day)]
    error = _first_error(numbers)
    if error:
        return error
    y, m, d = (int(number) for number in numbers)
    if 0 <= y < 1900:
        y += 1900
    y += (m - 1) // 12
    m = (m - 1) % 12 + 1
    moment = date(y, m, 1) + timedelta(days=d - 1)
    serial = (moment - SPREADSHEET_EPOCH).days
    if serial < 0:
        return CellError(NUM, "Date before the spreadsheet epoch")
    return float(serial)


def _date_part(value: Value, part: str):
    day = _serial_date(value)
    return day if isinstance(day, CellError) else float(getattr(day, part))


@spreadsheet_function("YEAR")
def fn_year(value):
    return _date_part(value, "year")


@spreadsheet_function("MONTH")
def fn_month(value):
    return _date_part(value, "month")


@spreadsheet_function("DAY")
def fn_day(value):
    return _date_part(value, "day")
