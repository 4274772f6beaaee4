"""A1-style address conversion for zero-based grid coordinates."""

import re
from typing import Tuple

from openpyxl.utils import column_index_from_string, get_column_letter


_ADDRESS_RE = re.compile(r"^\$?([A-Za-z]{1,3})\$?(\d+)$")


def column_letter(col: int) -> str:
    """Zero-based column index to its letter ('A' for 0)."""
    return get_column_letter(col + 1)


def cell_address(row: int, col: int) -> str:
    """Zero-based coordinates to an A1 address (row 0, col 0 is 'A1')."""
    return f"{column_letter(col)}{row + 1}"


def parse_address(address: str) -> Tuple[int, int]:
    """
    A1 address (absolute markers allowed) to zero-based ``(row, col)``.

    Raises:
        ValueError: If the address is malformed or out of range
    """
    match = _ADDRESS_RE.match(address.strip())
    if not match:
        raise ValueError(f"Invalid cell address: {address}")
    row = int(match.group(2)) - 1
    if row < 0:
        raise ValueError(f"Invalid cell address: {address}")
    col = column_index_from_string(match.group(1).upper()) - 1
    return row, col
