"""
Drag-and-drop reordering of widgets.

``place_widget`` resolves a drag gesture (dragged id, hovered/dropped id)
into one atomic remove+insert against a single snapshot of a section's
widget forest. ``DragController`` drives it from pointer events: every
hover commits a placement through the document store, and the drop
commits once more in case the last hover and the drop target differ.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .models import Widget, is_container
from .tree import (
    WidgetList,
    find_widget,
    insert_widget,
    is_descendant,
    locate_widget,
    remove_widget,
)

if TYPE_CHECKING:
    from .store import DocumentStore


# A drop target id of the form "container-<id>" means "append to that
# container's children" rather than "drop next to this sibling".
CONTAINER_DROP_PREFIX = "container-"


def container_drop_id(container_id: str) -> str:
    """The drop-zone target id for a container's content area."""
    return f"{CONTAINER_DROP_PREFIX}{container_id}"


def parse_container_drop(over_id: str) -> Optional[str]:
    """The container id encoded in a drop-zone target id, or None."""
    if over_id.startswith(CONTAINER_DROP_PREFIX):
        return over_id[len(CONTAINER_DROP_PREFIX):] or None
    return None


def place_widget(widgets: WidgetList, active_id: str, over_id: str) -> WidgetList:
    """
    Move ``active_id`` to the position designated by ``over_id``.

    Within one list this is an index shift (the dragged widget takes the
    hovered widget's index); across lists it re-parents the widget together
    with its subtree. A drop-zone target appends to the container's children.

    Returns:
        The new root list, or ``widgets`` itself when the placement cannot be
        resolved (unknown ids, or a drop into the dragged widget's own subtree)
    """
    if active_id == over_id:
        return widgets

    if locate_widget(widgets, active_id) is None:
        logging.debug(f"place_widget: dragged widget '{active_id}' not found")
        return widgets

    container_id = parse_container_drop(over_id)
    if container_id is not None:
        if not is_container(find_widget(widgets, container_id)):
            logging.debug(f"place_widget: drop zone '{over_id}' has no container")
            return widgets
        destination_parent, destination_index = container_id, None
    else:
        destination = locate_widget(widgets, over_id)
        if destination is None:
            logging.debug(f"place_widget: drop target '{over_id}' not found")
            return widgets
        destination_parent, destination_index = destination

    if destination_parent is not None and (
        destination_parent == active_id or is_descendant(widgets, active_id, destination_parent)
    ):
        logging.debug(f"place_widget: refusing to move '{active_id}' into its own subtree")
        return widgets

    moved = find_widget(widgets, active_id)
    remaining = remove_widget(widgets, active_id)
    return insert_widget(remaining, moved, destination_parent, destination_index)


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class DragController:
    """
    Interprets drag events for one document store.

    Hover placements are committed immediately. Whether a cancelled drag
    keeps the last hover placement or restores the layout captured at drag
    start is controlled by ``restore_on_cancel``.
    """

    def __init__(self, store: "DocumentStore", restore_on_cancel: Optional[bool] = None):
        """
        Initialize the controller.

        Args:
            store: Document store the placements are committed to
            restore_on_cancel: Restore the pre-drag layout on cancel
                (defaults to the ``drag.restore_on_cancel`` setting)
        """
        self.store = store
        if restore_on_cancel is None:
            restore_on_cancel = store.config.restore_on_cancel
        self.restore_on_cancel = restore_on_cancel
        self.state = DragState.IDLE
        self.section_id: Optional[str] = None
        self.active_id: Optional[str] = None
        self._snapshot: Optional[WidgetList] = None

    @property
    def is_dragging(self) -> bool:
        return self.state == DragState.DRAGGING

    @property
    def overlay_widget(self) -> Optional[Widget]:
        """The widget rendered in the drag overlay while dragging."""
        if not self.is_dragging:
            return None
        return self.store.find_widget(self.active_id, self.section_id)

    def start(self, section_id: str, active_id: str) -> bool:
        """
        Begin dragging a widget.

        Returns:
            True if the drag started, False if the widget is unknown
        """
        section = self.store.find_section(section_id)
        if section is None or find_widget(section.widgets, active_id) is None:
            logging.debug(f"Drag start ignored: '{active_id}' not in section '{section_id}'")
            return False
        self.state = DragState.DRAGGING
        self.section_id = section_id
        self.active_id = active_id
        self._snapshot = section.widgets
        return True

    def over(self, over_id: Optional[str]) -> bool:
        """Commit a tentative placement for the hovered target."""
        if not self.is_dragging or over_id is None or over_id == self.active_id:
            return False
        return self.store.move_widget(self.section_id, self.active_id, over_id)

    def end(self, over_id: Optional[str]) -> bool:
        """Finish the drag with a final corrective placement."""
        if not self.is_dragging:
            return False
        moved = False
        if over_id is not None and over_id != self.active_id:
            moved = self.store.move_widget(self.section_id, self.active_id, over_id)
        self._reset()
        return moved

    def cancel(self) -> None:
        """Abort the drag; hover placements stay applied unless restore_on_cancel is set."""
        if not self.is_dragging:
            return
        if self.restore_on_cancel and self._snapshot is not None:
            self.store.restore_section_widgets(self.section_id, self._snapshot)
        self._reset()

    def _reset(self) -> None:
        self.state = DragState.IDLE
        self.section_id = None
        self.active_id = None
        self._snapshot = None
