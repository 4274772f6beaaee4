"""
Local document storage using DuckDB.

Stores encoded canvases and the canonical section list in a single database
file, so the editor can run without the web API.
"""

import duckdb
import json
import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from ..config import DEFAULT_SECTION_TITLES
from ..exceptions import PersistenceError
from ..models import CanonicalSection, LoadedCanvas, SavedCanvas
from .base import CanvasRepository


class DuckDBCanvasRepository(CanvasRepository):
    """
    Manages the DuckDB database holding canvases and canonical sections.
    """

    def __init__(self, db_path: str = "growthcanvas.db",
                 section_titles: Optional[List[str]] = None):
        """
        Initialize the repository.

        Args:
            db_path: Path to the DuckDB database file (':memory:' for a transient one)
            section_titles: Titles seeded into an empty sections table
        """
        self.db_path = db_path
        self.section_titles = list(section_titles or DEFAULT_SECTION_TITLES)
        self.connection = None

    def connect(self):
        """Establish connection to the database."""
        self.connection = duckdb.connect(self.db_path)

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def close(self) -> None:
        self.disconnect()

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        self.initialize_database()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _require_connection(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")
        return self.connection

    def initialize_database(self):
        """
        Create the tables if they don't exist and seed the canonical sections.
        """
        connection = self._require_connection()

        connection.execute("""
            CREATE TABLE IF NOT EXISTS canvases (
                canvas_id VARCHAR PRIMARY KEY,
                payload TEXT NOT NULL,
                integrity TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP NOT NULL
            )
        """)

        connection.execute("""
            CREATE TABLE IF NOT EXISTS sections (
                section_id VARCHAR PRIMARY KEY,
                title VARCHAR NOT NULL UNIQUE,
                order_index INTEGER NOT NULL
            )
        """)

        count = connection.execute("SELECT COUNT(*) FROM sections").fetchone()[0]
        if count == 0:
            for index, title in enumerate(self.section_titles):
                connection.execute(
                    "INSERT INTO sections (section_id, title, order_index) VALUES (?, ?, ?)",
                    [f"section_{index + 1}", title, index]
                )
            logging.info(f"Seeded {len(self.section_titles)} canonical sections")

    def save(self, document_id: Optional[str], payload: str,
             integrity: Optional[Dict[str, str]] = None) -> SavedCanvas:
        connection = self._require_connection()
        canvas_id = document_id or str(uuid.uuid4())
        now = datetime.now()
        try:
            connection.execute("""
                INSERT INTO canvases (canvas_id, payload, integrity, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (canvas_id) DO UPDATE SET
                    payload = excluded.payload,
                    integrity = excluded.integrity,
                    updated_at = excluded.updated_at
            """, [canvas_id, payload, json.dumps(integrity or {}), now])
        except duckdb.Error as e:
            raise PersistenceError(f"Failed to save canvas {canvas_id}: {e}") from e
        logging.info(f"Saved canvas {canvas_id}")
        return SavedCanvas(id=canvas_id, updated_at=now.isoformat())

    def load(self, document_id: Optional[str] = None) -> Optional[LoadedCanvas]:
        connection = self._require_connection()
        if document_id:
            row = connection.execute(
                "SELECT canvas_id, payload, integrity, updated_at FROM canvases WHERE canvas_id = ?",
                [document_id]
            ).fetchone()
            if row is None:
                raise PersistenceError(f"Canvas not found: {document_id}")
        else:
            row = connection.execute(
                "SELECT canvas_id, payload, integrity, updated_at FROM canvases "
                "ORDER BY updated_at DESC LIMIT 1"
            ).fetchone()
            if row is None:
                return None

        canvas_id, payload, integrity, updated_at = row
        return LoadedCanvas(
            id=canvas_id,
            payload=payload,
            integrity=json.loads(integrity),
            updated_at=updated_at.isoformat() if updated_at else None,
        )

    def fetch_sections(self) -> List[CanonicalSection]:
        connection = self._require_connection()
        rows = connection.execute(
            "SELECT section_id, title FROM sections ORDER BY order_index"
        ).fetchall()
        return [CanonicalSection(id=section_id, title=title) for section_id, title in rows]
