"""
HTTP document storage speaking the canvas web API.

Endpoints:
    POST /api/canvas/save   {canvasId, data, iv, salt, userId} -> {success, canvas}
    GET  /api/canvas/load   ?userId=..[&id=..] -> canvas | {canvas: canvas|null}
    GET  /api/sections      -> {sections: [{id, title, orderIndex}]}
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

import httpx

from ..config import get_config
from ..exceptions import PersistenceError, UnauthorizedError
from ..models import CanonicalSection, LoadedCanvas, SavedCanvas
from .base import CanvasRepository


class HttpCanvasRepository(CanvasRepository):
    """
    Canvas storage backed by the web API.
    """

    def __init__(self, base_url: Optional[str] = None, user_id: Optional[str] = None,
                 timeout: Optional[float] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize the repository.

        Args:
            base_url: API root (defaults to ``api.base_url`` from config)
            user_id: Account the documents belong to (defaults to ``api.user_id``)
            timeout: Request timeout in seconds (defaults to ``api.timeout``)
            transport: Optional httpx transport, used by tests
        """
        config = get_config()
        self.base_url = (base_url or config.api_base_url).rstrip("/")
        self.user_id = user_id if user_id is not None else config.api_user_id
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else config.api_timeout,
            transport=transport,
        )
        logging.info(f"Initialized HttpCanvasRepository for: {self.base_url}")

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.client.request(method, path, **kwargs)
            if response.status_code == 401:
                raise UnauthorizedError(f"Not authorized for {path}")
            response.raise_for_status()
            return response.json()
        except httpx.RequestError as e:
            raise PersistenceError(f"Failed to reach canvas API: {e}") from e
        except httpx.HTTPStatusError as e:
            raise PersistenceError(f"Canvas API request failed: {e}") from e
        except ValueError as e:
            raise PersistenceError(f"Canvas API returned invalid JSON: {e}") from e

    def save(self, document_id: Optional[str], payload: str,
             integrity: Optional[Dict[str, str]] = None) -> SavedCanvas:
        integrity = integrity or {}
        body = {
            "canvasId": document_id or str(uuid.uuid4()),
            "data": payload,
            "iv": integrity.get("iv", ""),
            "salt": integrity.get("salt", ""),
            "userId": self.user_id,
        }
        result = self._request("POST", "/api/canvas/save", json=body)
        canvas = result.get("canvas") if isinstance(result, dict) else None
        if not canvas or "id" not in canvas:
            raise PersistenceError("Save response did not include the stored canvas")
        logging.info(f"Saved canvas {canvas['id']}")
        return SavedCanvas(id=canvas["id"], updated_at=canvas.get("updatedAt"))

    def load(self, document_id: Optional[str] = None) -> Optional[LoadedCanvas]:
        params = {"userId": self.user_id}
        if document_id:
            params["id"] = document_id
        result = self._request("GET", "/api/canvas/load", params=params)
        if isinstance(result, dict) and "canvas" in result:
            result = result["canvas"]
        if not result:
            return None
        integrity = {key: result[key] for key in ("iv", "salt") if result.get(key)}
        return LoadedCanvas(
            id=result["id"],
            payload=result.get("data") or "",
            integrity=integrity,
            updated_at=result.get("updatedAt"),
        )

    def fetch_sections(self) -> List[CanonicalSection]:
        result = self._request("GET", "/api/sections")
        sections = result.get("sections", []) if isinstance(result, dict) else []
        return [CanonicalSection.model_validate(section) for section in sections]
