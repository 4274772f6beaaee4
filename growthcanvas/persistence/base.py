"""
Persistence interfaces for GrowthCanvas.

A repository stores encoded documents and serves the canonical section list;
a payload codec turns a document into the stored payload and back.
"""

import json
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..exceptions import PersistenceError
from ..models import CanonicalSection, CanvasDocument, LoadedCanvas, SavedCanvas


class CanvasRepository(ABC):
    """
    Abstract base class for document storage backends.
    """

    @abstractmethod
    def save(self, document_id: Optional[str], payload: str,
             integrity: Optional[Dict[str, str]] = None) -> SavedCanvas:
        """
        Persist an encoded document.

        Args:
            document_id: Canonical id from an earlier save, or None for a new document
            payload: Encoded document
            integrity: Codec material stored alongside the payload

        Returns:
            The stored record; its id must be used for later saves

        Raises:
            UnauthorizedError: If the backend rejects the session
            PersistenceError: On any other failure
        """
        pass

    @abstractmethod
    def load(self, document_id: Optional[str] = None) -> Optional[LoadedCanvas]:
        """
        Fetch a stored document.

        Args:
            document_id: Specific document, or None for the most recent one

        Returns:
            The stored record, or None when there is no document yet
        """
        pass

    @abstractmethod
    def fetch_sections(self) -> List[CanonicalSection]:
        """Return the canonical section list in display order."""
        pass

    def close(self) -> None:
        """Release backend resources."""
        pass


class PayloadCodec(ABC):
    """
    Converts documents to stored payloads and back.
    """

    @abstractmethod
    def encode(self, document: CanvasDocument) -> Tuple[str, Dict[str, str]]:
        """Return the payload and its integrity material."""
        pass

    @abstractmethod
    def decode(self, payload: str, integrity: Dict[str, str]) -> CanvasDocument:
        """
        Rebuild a document from a stored payload.

        Raises:
            PersistenceError: If the payload cannot be decoded
        """
        pass


class JsonPayloadCodec(PayloadCodec):
    """Plaintext JSON payloads with no integrity material."""

    def encode(self, document: CanvasDocument) -> Tuple[str, Dict[str, str]]:
        return document.model_dump_json(), {}

    def decode(self, payload: str, integrity: Dict[str, str]) -> CanvasDocument:
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Stored document is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError("Stored document is not a JSON object")
        try:
            return CanvasDocument.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(f"Stored document does not match the canvas schema: {e}") from e
