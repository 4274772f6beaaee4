"""
Formula engine adapter for table widgets.

Keeps one evaluation sheet per table widget id, renders computed cell text
for the table and chart views, and exposes the function catalog used by the
editor's autocomplete.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .formula import FunctionRegistry, SheetEvaluator, is_formula


@dataclass(frozen=True)
class FunctionInfo:
    """One autocomplete entry."""

    name: str
    parameters: str = ""
    description: str = ""


COMMON_FUNCTIONS: Dict[str, FunctionInfo] = {
    "SUM": FunctionInfo("SUM", "(number1, [number2], ...)", "Adds all the numbers in a range of cells."),
    "AVERAGE": FunctionInfo("AVERAGE", "(number1, [number2], ...)", "Returns the average of its arguments."),
    "COUNT": FunctionInfo("COUNT", "(value1, [value2], ...)", "Counts the number of cells that contain numbers."),
    "MAX": FunctionInfo("MAX", "(number1, [number2], ...)", "Returns the largest value in a set of values."),
    "MIN": FunctionInfo("MIN", "(number1, [number2], ...)", "Returns the smallest value in a set of values."),
    "IF": FunctionInfo("IF", "(logical_test, value_if_true, [value_if_false])", "Returns one value if a condition is true and another if it is false."),
    "VLOOKUP": FunctionInfo("VLOOKUP", "(lookup_value, table_array, col_index_num, [range_lookup])", "Looks for a value in the leftmost column of a table and returns a value in the same row from a column you specify."),
    "CONCATENATE": FunctionInfo("CONCATENATE", "(text1, [text2], ...)", "Joins several text strings into one text string."),
    "TODAY": FunctionInfo("TODAY", "()", "Returns the current date."),
    "NOW": FunctionInfo("NOW", "()", "Returns the current date and time."),
}


def sanitize_cell(raw: str) -> str:
    """Rewrite ';' argument separators to ',' inside formula cells."""
    if raw.startswith("=") and ";" in raw:
        return raw.replace(";", ",")
    return raw


class SheetEngine:
    """
    One evaluation sheet per table widget id.

    Evaluation errors stay inside the cell that produced them; a broken
    formula never affects other cells or other sheets.
    """

    def __init__(self, functions: Optional[FunctionRegistry] = None):
        self.functions = functions or FunctionRegistry.with_builtins()
        self._sheets: Dict[str, SheetEvaluator] = {}
        self._grids: Dict[str, List[List[str]]] = {}

    def update_sheet(self, table_id: str, grid: List[List[str]]) -> None:
        """
        Replace (or create) the sheet for a table with the given grid.

        Calling this again with an identical grid keeps the existing
        evaluation state.

        Args:
            table_id: Id of the table widget
            grid: Row-major raw cell text
        """
        sanitized = [[sanitize_cell(str(cell)) for cell in row] for row in grid]
        if self._grids.get(table_id) == sanitized:
            return
        self._grids[table_id] = sanitized
        self._sheets[table_id] = SheetEvaluator(sanitized, self.functions)
        logging.debug(f"Updated sheet {table_id} ({len(sanitized)} rows)")

    def remove_sheet(self, table_id: str) -> None:
        if self._sheets.pop(table_id, None) is not None:
            self._grids.pop(table_id, None)
            logging.debug(f"Removed sheet {table_id}")

    def has_sheet(self, table_id: str) -> bool:
        return table_id in self._sheets

    def sheet_ids(self) -> List[str]:
        return list(self._sheets)

    def get_computed_value(self, table_id: str, row: int, col: int) -> str:
        """
        Display text of one cell.

        Returns an empty string for a missing sheet or coordinates outside the
        grid; evaluation errors come back as their short code (e.g. '#DIV/0!').
        """
        sheet = self._sheets.get(table_id)
        if sheet is None:
            return ""
        return sheet.display(row, col)

    def get_computed_data(self, table_id: str, row_count: Optional[int] = None,
                          col_count: Optional[int] = None) -> List[List[str]]:
        """
        Display text of a rectangular region starting at A1.

        Args:
            table_id: Id of the table widget
            row_count: Number of rows (defaults to the grid height)
            col_count: Number of columns (defaults to the widest row)

        Returns:
            Grid of display strings, or an empty list for a missing sheet
        """
        sheet = self._sheets.get(table_id)
        if sheet is None:
            return []
        rows = sheet.height if row_count is None else row_count
        cols = sheet.width if col_count is None else col_count
        return [[sheet.display(r, c) for c in range(cols)] for r in range(rows)]

    def is_formula_cell(self, table_id: str, row: int, col: int) -> bool:
        sheet = self._sheets.get(table_id)
        if sheet is None:
            return False
        raw = sheet.raw(row, col)
        return raw is not None and is_formula(raw)

    def get_registered_functions(self) -> List[str]:
        return self.functions.names()

    def get_function_catalog(self) -> List[FunctionInfo]:
        """
        Autocomplete entries for every registered function.

        Documented functions come first, then the rest; both groups are
        alphabetical.
        """
        entries = [COMMON_FUNCTIONS.get(name, FunctionInfo(name)) for name in self.get_registered_functions()]
        return sorted(entries, key=lambda info: (not info.description, info.name))

    def close(self) -> None:
        """Drop every sheet."""
        self._sheets.clear()
        self._grids.clear()
