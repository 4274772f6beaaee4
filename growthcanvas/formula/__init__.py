"""Spreadsheet formula evaluation for table widgets."""

from .evaluator import SheetEvaluator, compare, is_formula
from .functions import BUILTIN_FUNCTIONS, FunctionRegistry, RegisteredFunction, spreadsheet_function
from .parser import parse_formula, tokenize
from .references import cell_address, column_letter, parse_address
from .values import CellError, RangeValue, display_value, format_number, literal_value

__all__ = [
    "SheetEvaluator",
    "compare",
    "is_formula",
    "BUILTIN_FUNCTIONS",
    "FunctionRegistry",
    "RegisteredFunction",
    "spreadsheet_function",
    "parse_formula",
    "tokenize",
    "cell_address",
    "column_letter",
    "parse_address",
    "CellError",
    "RangeValue",
    "display_value",
    "format_number",
    "literal_value",
]
