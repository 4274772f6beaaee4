"""Data models for GrowthCanvas."""

from .widgets import (
    ChartConfig,
    ChartWidget,
    ContainerWidget,
    ImageWidget,
    LinkData,
    LinkWidget,
    TableWidget,
    TextWidget,
    Widget,
    WIDGET_TYPES,
    create_widget,
    is_container,
    parse_widget,
)
from .document import (
    CanonicalSection,
    CanvasDocument,
    LoadedCanvas,
    ProjectInfo,
    ProjectMeta,
    SavedCanvas,
    Section,
    utc_now_iso,
)

__all__ = [
    "ChartConfig",
    "ChartWidget",
    "ContainerWidget",
    "ImageWidget",
    "LinkData",
    "LinkWidget",
    "TableWidget",
    "TextWidget",
    "Widget",
    "WIDGET_TYPES",
    "create_widget",
    "is_container",
    "parse_widget",
    "CanonicalSection",
    "CanvasDocument",
    "LoadedCanvas",
    "ProjectInfo",
    "ProjectMeta",
    "SavedCanvas",
    "Section",
    "utc_now_iso",
]
