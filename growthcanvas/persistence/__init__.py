"""Document storage backends for GrowthCanvas."""

from .base import CanvasRepository, JsonPayloadCodec, PayloadCodec
from .duckdb_store import DuckDBCanvasRepository
from .http import HttpCanvasRepository
from .memory import InMemoryCanvasRepository

__all__ = [
    "CanvasRepository",
    "JsonPayloadCodec",
    "PayloadCodec",
    "DuckDBCanvasRepository",
    "HttpCanvasRepository",
    "InMemoryCanvasRepository",
]
