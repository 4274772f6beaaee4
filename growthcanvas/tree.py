"""
Widget tree operations.

Every function takes a list of widgets (a section's top-level list) and
returns a new list; the input is never mutated. Unchanged branches are
shared between the old and the new tree, and an operation that finds
nothing to do returns the very same list object, so callers can detect a
no-op with ``is``. Unknown ids never raise.
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .models import ContainerWidget, TableWidget, Widget, is_container
from .models.widgets import rename_legacy_keys

WidgetList = List[Widget]

# Keys that identify a node and are never merged by update_widget.
_IDENTITY_KEYS = {"id", "type"}


def iter_widgets(widgets: WidgetList) -> Iterator[Widget]:
    """Yield every widget depth-first, parents before their children."""
    for widget in widgets:
        yield widget
        if is_container(widget):
            yield from iter_widgets(widget.children)


def find_widget(widgets: WidgetList, widget_id: str) -> Optional[Widget]:
    """
    Find a widget by id at any depth.

    Args:
        widgets: Root widget list
        widget_id: Id to search for

    Returns:
        The first widget with that id in depth-first order, or None
    """
    for widget in iter_widgets(widgets):
        if widget.id == widget_id:
            return widget
    return None


def count_widgets(widgets: WidgetList) -> int:
    """Total number of widgets in the forest, descendants included."""
    return sum(1 for _ in iter_widgets(widgets))


def subtree_size(widget: Widget) -> int:
    """Number of nodes in a widget's subtree, the widget itself included."""
    if is_container(widget):
        return 1 + count_widgets(widget.children)
    return 1


def locate_widget(
    widgets: WidgetList, widget_id: str, parent_id: Optional[str] = None
) -> Optional[Tuple[Optional[str], int]]:
    """
    Find the list that directly holds a widget.

    Returns:
        ``(parent_id, index)`` where ``parent_id`` is the owning container's
        id (None for the root list), or None when the id is unknown
    """
    for index, widget in enumerate(widgets):
        if widget.id == widget_id:
            return parent_id, index
        if is_container(widget):
            found = locate_widget(widget.children, widget_id, widget.id)
            if found is not None:
                return found
    return None


def children_of(widgets: WidgetList, parent_id: Optional[str]) -> Optional[WidgetList]:
    """The child list of a container (the root list for None), or None."""
    if parent_id is None:
        return widgets
    parent = find_widget(widgets, parent_id)
    if is_container(parent):
        return parent.children
    return None


def is_descendant(widgets: WidgetList, ancestor_id: str, widget_id: str) -> bool:
    """True if ``widget_id`` lies strictly inside the subtree of ``ancestor_id``."""
    ancestor = find_widget(widgets, ancestor_id)
    if not is_container(ancestor):
        return False
    return find_widget(ancestor.children, widget_id) is not None


def collect_tables(widgets: WidgetList) -> List[TableWidget]:
    """All table widgets in the forest, in depth-first order."""
    return [widget for widget in iter_widgets(widgets) if isinstance(widget, TableWidget)]


def _with_children(container: ContainerWidget, children: WidgetList) -> ContainerWidget:
    return container.model_copy(update={"children": children})


def _insert_at(widgets: WidgetList, new_widget: Widget, index: Optional[int]) -> WidgetList:
    if index is None or index >= len(widgets):
        return widgets + [new_widget]
    index = max(index, 0)
    return widgets[:index] + [new_widget] + widgets[index:]


def _insert_into(
    widgets: WidgetList, new_widget: Widget, parent_id: str, index: Optional[int]
) -> Tuple[WidgetList, bool]:
    for position, widget in enumerate(widgets):
        if not is_container(widget):
            continue
        if widget.id == parent_id:
            updated = _with_children(widget, _insert_at(widget.children, new_widget, index))
        else:
            children, changed = _insert_into(widget.children, new_widget, parent_id, index)
            if not changed:
                continue
            updated = _with_children(widget, children)
        return widgets[:position] + [updated] + widgets[position + 1:], True
    return widgets, False


def insert_widget(
    widgets: WidgetList,
    new_widget: Widget,
    parent_id: Optional[str] = None,
    index: Optional[int] = None,
) -> WidgetList:
    """
    Insert a widget into the root list or into a container's children.

    Args:
        widgets: Root widget list
        new_widget: Widget to insert
        parent_id: Container to insert into; None targets the root list
        index: Position in the target list; None appends

    Returns:
        The new root list, or ``widgets`` itself when the parent does not
        exist or is not a container
    """
    if parent_id is None:
        return _insert_at(widgets, new_widget, index)
    result, changed = _insert_into(widgets, new_widget, parent_id, index)
    if not changed:
        logging.debug(f"insert_widget: no container with id '{parent_id}'")
        return widgets
    return result


def _rewrite_owner(
    widgets: WidgetList, widget_id: str, rewrite: Callable[[WidgetList, int], WidgetList]
) -> Tuple[WidgetList, bool]:
    """Apply ``rewrite(owner_list, index)`` to the list directly holding ``widget_id``."""
    for position, widget in enumerate(widgets):
        if widget.id == widget_id:
            return rewrite(widgets, position), True
        if is_container(widget):
            children, changed = _rewrite_owner(widget.children, widget_id, rewrite)
            if changed:
                return widgets[:position] + [_with_children(widget, children)] + widgets[position + 1:], True
    return widgets, False


def merge_widget(widget: Widget, changes: Dict[str, Any]) -> Widget:
    """
    Shallow-merge payload fields over a widget.

    ``id`` and ``type`` are never changed. The merged data is validated
    against the widget's own variant, so fields of other variants are dropped.

    Raises:
        pydantic.ValidationError: If a merged field has an invalid value
    """
    changes = {
        key: value for key, value in rename_legacy_keys(dict(changes)).items()
        if key not in _IDENTITY_KEYS
    }
    widget_class = type(widget)
    merged = {name: getattr(widget, name) for name in widget_class.model_fields}
    merged.update(changes)
    return widget_class.model_validate(merged)


def update_widget(widgets: WidgetList, widget_id: str, changes: Dict[str, Any]) -> WidgetList:
    """
    Merge ``changes`` into the payload of the widget with ``widget_id``.

    Returns:
        The new root list, or ``widgets`` itself when the id is unknown

    Raises:
        pydantic.ValidationError: If a merged field has an invalid value
    """
    def rewrite(owner: WidgetList, index: int) -> WidgetList:
        return owner[:index] + [merge_widget(owner[index], changes)] + owner[index + 1:]

    result, changed = _rewrite_owner(widgets, widget_id, rewrite)
    return result if changed else widgets


def remove_widget(widgets: WidgetList, widget_id: str) -> WidgetList:
    """
    Remove a widget and its whole subtree.

    Returns:
        The new root list, or ``widgets`` itself when the id is unknown
    """
    def rewrite(owner: WidgetList, index: int) -> WidgetList:
        return owner[:index] + owner[index + 1:]

    result, changed = _rewrite_owner(widgets, widget_id, rewrite)
    return result if changed else widgets
