"""In-process document storage for tests and demos."""

import uuid
from typing import Dict, List, Optional

from ..exceptions import PersistenceError
from ..models import CanonicalSection, LoadedCanvas, SavedCanvas, utc_now_iso
from .base import CanvasRepository


class InMemoryCanvasRepository(CanvasRepository):
    """
    Keeps saved documents in a dict; the most recently saved one is loaded
    when no id is given.
    """

    def __init__(self, sections: Optional[List[CanonicalSection]] = None):
        self.sections = list(sections or [])
        self.records: Dict[str, LoadedCanvas] = {}
        self.save_calls = 0
        self._latest_id: Optional[str] = None

    def save(self, document_id: Optional[str], payload: str,
             integrity: Optional[Dict[str, str]] = None) -> SavedCanvas:
        self.save_calls += 1
        canvas_id = document_id or str(uuid.uuid4())
        updated_at = utc_now_iso()
        self.records[canvas_id] = LoadedCanvas(
            id=canvas_id,
            payload=payload,
            integrity=dict(integrity or {}),
            updated_at=updated_at,
        )
        self._latest_id = canvas_id
        return SavedCanvas(id=canvas_id, updated_at=updated_at)

    def load(self, document_id: Optional[str] = None) -> Optional[LoadedCanvas]:
        if document_id is None:
            if self._latest_id is None:
                return None
            return self.records[self._latest_id]
        if document_id not in self.records:
            raise PersistenceError(f"Canvas not found: {document_id}")
        return self.records[document_id]

    def fetch_sections(self) -> List[CanonicalSection]:
        return list(self.sections)
