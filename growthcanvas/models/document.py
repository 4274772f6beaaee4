"""
Document models for GrowthCanvas.

A document is an ordered list of sections, each owning one widget tree,
plus project information and metadata used as the sync signal.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .widgets import Widget, normalize_widget_list


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Section(BaseModel):
    """
    A named top-level grouping of widgets, independently completable.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(
        ...,
        description="Canonical section id (remapped on load reconciliation)"
    )

    title: str = Field(
        ...,
        description="Section title; the reconciliation key against the canonical list"
    )

    is_completed: bool = Field(
        default=False,
        description="User-toggled completion flag"
    )

    widgets: List[Widget] = Field(
        default_factory=list,
        description="Ordered top-level widgets of the section"
    )

    @field_validator("widgets", mode="before")
    @classmethod
    def _normalize_widgets(cls, value: Any) -> Any:
        return normalize_widget_list(value)


class ProjectInfo(BaseModel):
    """Project-level labels shown on the canvas and exports."""

    model_config = ConfigDict(extra="ignore")

    title: str = Field(default="", description="Project title")
    author_name: str = Field(default="", description="Author label")

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_keys(cls, data: Any) -> Any:
        if isinstance(data, dict) and "student_name" in data and "author_name" not in data:
            data = dict(data)
            data["author_name"] = data.pop("student_name")
        return data


class ProjectMeta(BaseModel):
    """Document metadata; ``last_modified`` moves on every mutation."""

    model_config = ConfigDict(extra="ignore")

    version: str = Field(default="1.0", description="Document schema version")

    last_modified: str = Field(
        default_factory=utc_now_iso,
        description="ISO-8601 timestamp of the last structural or content change"
    )

    theme: str = Field(default="rockstar-default", description="Theme name")

    grid_columns: int = Field(
        default=1,
        ge=1,
        le=3,
        description="Number of section columns in the canvas layout"
    )

    document_id: Optional[str] = Field(
        default=None,
        description="Canonical id assigned by the persistence backend"
    )

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_keys(cls, data: Any) -> Any:
        if isinstance(data, dict) and "dbId" in data and "document_id" not in data:
            data = dict(data)
            data["document_id"] = data.pop("dbId")
        return data


class CanvasDocument(BaseModel):
    """
    The root aggregate: sections, project information and metadata.
    """

    model_config = ConfigDict(extra="ignore")

    meta: ProjectMeta = Field(default_factory=ProjectMeta)
    project: ProjectInfo = Field(default_factory=ProjectInfo)
    sections: List[Section] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_keys(cls, data: Any) -> Any:
        if isinstance(data, dict) and "syllabus_sections" in data and "sections" not in data:
            data = dict(data)
            data["sections"] = data.pop("syllabus_sections")
        return data


class CanonicalSection(BaseModel):
    """An entry of the server-sourced authoritative section list."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Canonical section id")
    title: str = Field(..., description="Canonical section title")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class SavedCanvas(BaseModel):
    """The record returned by the persistence backend after a save."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Canonical document id to adopt for later saves")
    updated_at: Optional[str] = Field(default=None, description="Backend update timestamp")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class LoadedCanvas(BaseModel):
    """A persisted document as returned by the load collaborator."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Canonical document id")
    payload: str = Field(..., description="Encoded (plaintext or ciphertext) document")
    integrity: Dict[str, str] = Field(
        default_factory=dict,
        description="Codec material stored with the payload (e.g. iv, salt)"
    )
    updated_at: Optional[str] = Field(default=None, description="Backend update timestamp")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value
