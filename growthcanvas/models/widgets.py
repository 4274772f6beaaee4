"""
Widget models for GrowthCanvas.

A widget is one typed content node of a section. The payload is a tagged
union keyed by ``type``: each variant carries only the fields relevant to it,
and only ``container`` widgets own child widgets.
"""

import uuid
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from ..links import infer_provider


WIDGET_TYPES = ("text", "image", "table", "chart", "link", "container")

# Tags and keys written by the earlier web client.
LEGACY_TYPE_ALIASES = {
    "text_block": "text",
    "image_base64": "image",
    "graph_plot": "chart",
    "link_block": "link",
    "accordion": "container",
}

LEGACY_KEY_ALIASES = {
    "tableData": "table_data",
    "graphConfig": "graph_config",
    "linkData": "link_data",
    "tableId": "table_id",
    "chartType": "chart_type",
    "xAxisColumn": "x_axis_column",
    "dataColumns": "data_columns",
}

DEFAULT_TEXT_CONTENT = "<h3>New Title</h3><p>Write your ideas here...</p>"
DEFAULT_TABLE_DATA = [["Metric", "Q1", "Q2"], ["Retention", "20%", "25%"]]
DEFAULT_CONTAINER_TITLE = "New Hypothesis"


def new_widget_id() -> str:
    """Generate an opaque, unique widget id."""
    return str(uuid.uuid4())


def rename_legacy_keys(data: Any) -> Any:
    """Rewrite camelCase keys from older documents to current field names."""
    if not isinstance(data, dict):
        return data
    return {LEGACY_KEY_ALIASES.get(key, key): value for key, value in data.items()}


def normalize_widget_data(data: Any) -> Any:
    """
    Prepare raw widget data for validation against the tagged union.

    Maps legacy type tags and keys, and drops the ``children`` array that
    older documents stored on every widget type.
    """
    if not isinstance(data, dict):
        return data
    data = rename_legacy_keys(data)
    widget_type = data.get("type")
    data["type"] = LEGACY_TYPE_ALIASES.get(widget_type, widget_type)
    if data["type"] != "container":
        data.pop("children", None)
    return data


def normalize_widget_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, list):
        return [normalize_widget_data(item) for item in value]
    return value


class WidgetBase(BaseModel):
    """Fields shared by every widget variant."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(
        default_factory=new_widget_id,
        description="Opaque identifier, stable for the widget's lifetime"
    )


class TextWidget(WidgetBase):
    """Rich-text block holding HTML markup."""

    type: Literal["text"] = "text"

    content: str = Field(
        default="",
        description="HTML content produced by the pseudo-markdown transform"
    )


class ImageWidget(WidgetBase):
    """Image given as a base64 data URL or an external reference."""

    type: Literal["image"] = "image"

    src: Optional[str] = Field(
        default=None,
        description="Data URL or external image reference"
    )


class TableWidget(WidgetBase):
    """Spreadsheet-style grid of raw cell strings (formulas start with '=')."""

    type: Literal["table"] = "table"

    table_data: List[List[str]] = Field(
        default_factory=list,
        description="Row-major grid of raw cell text; row 0 is conventionally the header"
    )

    @field_validator("table_data", mode="before")
    @classmethod
    def _cells_as_text(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [
                ["" if cell is None else str(cell) for cell in row] if isinstance(row, list) else row
                for row in value
            ]
        return value


class ChartConfig(BaseModel):
    """Which table a chart reads and how its columns map onto the chart."""

    model_config = ConfigDict(extra="ignore")

    table_id: str = Field(
        ...,
        description="Id of the table widget providing the data"
    )

    chart_type: str = Field(
        default="bar",
        description="Renderer hint: bar, line, pie or area"
    )

    x_axis_column: int = Field(
        default=0,
        ge=0,
        description="Zero-based column used for axis labels"
    )

    data_columns: List[int] = Field(
        default_factory=list,
        description="Zero-based columns rendered as numeric series"
    )

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_keys(cls, data: Any) -> Any:
        return rename_legacy_keys(data)


class ChartWidget(WidgetBase):
    """Chart derived from the computed values of a table widget."""

    type: Literal["chart"] = "chart"

    graph_config: Optional[ChartConfig] = Field(
        default=None,
        description="Chart configuration; None until the user picks a table"
    )


class LinkData(BaseModel):
    """A rich link embed."""

    model_config = ConfigDict(extra="ignore")

    url: str = Field(default="", description="Target URL")
    title: Optional[str] = Field(default=None, description="Optional display title")
    description: Optional[str] = Field(default=None, description="Optional description")
    provider: Optional[str] = Field(
        default=None,
        description="Embed provider tag, inferred from the URL when omitted"
    )

    @model_validator(mode="after")
    def _infer_provider(self) -> "LinkData":
        if self.provider is None and self.url:
            self.provider = infer_provider(self.url)
        return self


class LinkWidget(WidgetBase):
    """Embed of an external resource (video, repository, file, ...)."""

    type: Literal["link"] = "link"

    link_data: Optional[LinkData] = Field(
        default=None,
        description="The embedded link; None until a URL is entered"
    )


class ContainerWidget(WidgetBase):
    """Collapsible group holding an ordered list of child widgets."""

    type: Literal["container"] = "container"

    title: str = Field(
        default=DEFAULT_CONTAINER_TITLE,
        description="Caption shown on the collapsible header"
    )

    children: List["Widget"] = Field(
        default_factory=list,
        description="Ordered child widgets owned by this container"
    )

    @field_validator("children", mode="before")
    @classmethod
    def _normalize_children(cls, value: Any) -> Any:
        return normalize_widget_list(value)


Widget = Annotated[
    Union[TextWidget, ImageWidget, TableWidget, ChartWidget, LinkWidget, ContainerWidget],
    Field(discriminator="type"),
]

# Enable forward references for the self-referencing container model
ContainerWidget.model_rebuild()

_WIDGET_ADAPTER = TypeAdapter(Widget)

WIDGET_CLASSES: Dict[str, type] = {
    "text": TextWidget,
    "image": ImageWidget,
    "table": TableWidget,
    "chart": ChartWidget,
    "link": LinkWidget,
    "container": ContainerWidget,
}


def parse_widget(data: Dict[str, Any]) -> Widget:
    """Validate raw (possibly legacy) widget data into its variant model."""
    return _WIDGET_ADAPTER.validate_python(normalize_widget_data(dict(data)))


def create_widget(widget_type: str) -> Widget:
    """
    Create a fresh widget of the given type with its starter payload.

    Args:
        widget_type: One of WIDGET_TYPES (legacy tags are accepted)

    Returns:
        A new widget with a freshly generated id

    Raises:
        ValueError: If the type is unknown
    """
    widget_type = LEGACY_TYPE_ALIASES.get(widget_type, widget_type)
    if widget_type == "text":
        return TextWidget(content=DEFAULT_TEXT_CONTENT)
    if widget_type == "table":
        return TableWidget(table_data=[list(row) for row in DEFAULT_TABLE_DATA])
    if widget_type == "container":
        return ContainerWidget(title=DEFAULT_CONTAINER_TITLE, children=[])
    if widget_type in WIDGET_CLASSES:
        return WIDGET_CLASSES[widget_type]()
    raise ValueError(f"Unknown widget type: {widget_type}")


def is_container(widget: Any) -> bool:
    return isinstance(widget, ContainerWidget)
