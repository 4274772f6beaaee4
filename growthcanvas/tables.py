"""
Table grid editing helpers.

Every helper returns a new grid and leaves its input untouched. Out-of-range
indices are no-ops, and the last remaining row or column is never removed.
"""

from typing import List


Grid = List[List[str]]


def set_cell(grid: Grid, row: int, col: int, value: str) -> Grid:
    """Set one cell, padding a short row with empty cells."""
    if row < 0 or row >= len(grid) or col < 0:
        return grid
    updated = list(grid[row])
    if col >= len(updated):
        updated.extend([""] * (col + 1 - len(updated)))
    updated[col] = value
    return grid[:row] + [updated] + grid[row + 1:]


def add_row(grid: Grid) -> Grid:
    """Append an empty row as wide as the first row."""
    width = len(grid[0]) if grid else 1
    return [list(row) for row in grid] + [[""] * width]


def add_column(grid: Grid) -> Grid:
    if not grid:
        return [[""]]
    return [list(row) + [""] for row in grid]


def remove_row(grid: Grid, index: int) -> Grid:
    if len(grid) <= 1 or index < 0 or index >= len(grid):
        return grid
    return [list(row) for i, row in enumerate(grid) if i != index]


def remove_column(grid: Grid, index: int) -> Grid:
    if not grid or len(grid[0]) <= 1 or index < 0 or index >= len(grid[0]):
        return grid
    return [[cell for i, cell in enumerate(row) if i != index] for row in grid]
