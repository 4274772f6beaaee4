"""
GrowthCanvas: the document core of a growth-strategy canvas editor.

Sections of nested, reorderable widgets, spreadsheet-style tables with
formulas, charts fed by those tables, and debounced persistence.
"""

__version__ = "0.1.0"
__author__ = "GrowthCanvas Project"

# Import main components
from .charts import ChartProjector, TableSource
from .drag import DragController, DragState, container_drop_id, place_widget
from .exceptions import (
    FormulaParseError,
    GrowthCanvasError,
    NoDataSourceError,
    PersistenceError,
    UnauthorizedError,
)
from .models import CanvasDocument, Section, Widget, create_widget
from .persistence import (
    CanvasRepository,
    DuckDBCanvasRepository,
    HttpCanvasRepository,
    InMemoryCanvasRepository,
    JsonPayloadCodec,
)
from .richtext import html_to_markdown, markdown_to_html
from .sheet_engine import FunctionInfo, SheetEngine
from .store import DocumentStore, SaveScheduler, reconcile_sections

__all__ = [
    "ChartProjector",
    "TableSource",
    "DragController",
    "DragState",
    "container_drop_id",
    "place_widget",
    "FormulaParseError",
    "GrowthCanvasError",
    "NoDataSourceError",
    "PersistenceError",
    "UnauthorizedError",
    "CanvasDocument",
    "Section",
    "Widget",
    "create_widget",
    "CanvasRepository",
    "DuckDBCanvasRepository",
    "HttpCanvasRepository",
    "InMemoryCanvasRepository",
    "JsonPayloadCodec",
    "html_to_markdown",
    "markdown_to_html",
    "FunctionInfo",
    "SheetEngine",
    "DocumentStore",
    "SaveScheduler",
    "reconcile_sections",
]
