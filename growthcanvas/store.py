"""
Document store for GrowthCanvas.

The store owns the current document and is the only place it changes.
Every mutation goes through the pure tree transforms, touches
``meta.last_modified``, re-ingests table sheets and schedules a debounced
save through the configured repository.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from . import tables
from .charts import ChartProjector, Record, TableSource
from .config import ConfigManager, get_config
from .drag import place_widget
from .exceptions import PersistenceError, UnauthorizedError
from .models import (
    CanonicalSection,
    CanvasDocument,
    ChartWidget,
    ProjectInfo,
    ProjectMeta,
    Section,
    TableWidget,
    TextWidget,
    Widget,
    create_widget,
    utc_now_iso,
)
from .persistence import CanvasRepository, JsonPayloadCodec, PayloadCodec
from .richtext import html_to_markdown, markdown_to_html
from .sheet_engine import FunctionInfo, SheetEngine
from .tree import (
    WidgetList,
    collect_tables,
    find_widget,
    insert_widget,
    remove_widget,
    update_widget,
)


STATUS_LOCAL = "Local"
STATUS_SYNCING = "Syncing..."
STATUS_SAVED = "Saved"
STATUS_ERROR = "Sync Error"
STATUS_SIGNED_OUT = "Signed out"


class SaveScheduler:
    """
    Debounce timer owned by one store.

    Each ``schedule()`` cancels the pending timer and starts a new one, so a
    burst of edits results in a single save after the last of them.
    """

    def __init__(self, delay: float, callback: Callable[[], Any],
                 timer_factory: Callable[..., Any] = threading.Timer):
        self.delay = delay
        self.callback = callback
        self.timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self.timer_factory(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self.callback()


def default_sections(titles: List[str]) -> List[Section]:
    return [Section(id=f"section_{index + 1}", title=title) for index, title in enumerate(titles)]


def build_default_document(config_manager: Optional[ConfigManager] = None) -> CanvasDocument:
    """A fresh document with the configured title, author and sections."""
    config = config_manager or get_config()
    return CanvasDocument(
        meta=ProjectMeta(),
        project=ProjectInfo(title=config.default_title, author_name=config.default_author),
        sections=default_sections(config.default_sections),
    )


def reconcile_sections(canonical: List[CanonicalSection], local: List[Section]) -> List[Section]:
    """
    Align local sections with the canonical list.

    Sections are matched by title. A match keeps its widgets and completion
    flag but takes the canonical id; a canonical title without a local match
    becomes an empty section. Local sections with no canonical counterpart
    are kept after the canonical ones.

    Args:
        canonical: Authoritative sections in display order
        local: Sections of the loaded or current document

    Returns:
        The reconciled section list (``local`` unchanged when canonical is empty)
    """
    if not canonical:
        return list(local)

    by_title: Dict[str, Section] = {}
    for section in local:
        by_title.setdefault(section.title, section)

    reconciled: List[Section] = []
    matched = set()
    for entry in canonical:
        section = by_title.get(entry.title)
        if section is None:
            logging.info(f"Adding empty section for canonical title '{entry.title}'")
            reconciled.append(Section(id=entry.id, title=entry.title))
            continue
        matched.add(id(section))
        if section.id != entry.id:
            logging.debug(f"Remapping section '{entry.title}': {section.id} -> {entry.id}")
            section = section.model_copy(update={"id": entry.id})
        reconciled.append(section)

    leftovers = [section for section in local if id(section) not in matched]
    if leftovers:
        titles = ", ".join(section.title for section in leftovers)
        logging.warning(f"Keeping {len(leftovers)} section(s) with no canonical match: {titles}")
        reconciled.extend(leftovers)
    return reconciled


class DocumentStore:
    """
    Owns the document, its sheet engine and its sync state.
    """

    def __init__(self, repository: Optional[CanvasRepository] = None,
                 codec: Optional[PayloadCodec] = None,
                 debounce_seconds: Optional[float] = None,
                 timer_factory: Callable[..., Any] = threading.Timer,
                 config_manager: Optional[ConfigManager] = None,
                 document: Optional[CanvasDocument] = None):
        """
        Initialize the store.

        Args:
            repository: Persistence backend; None keeps the document local only
            codec: Payload codec (plaintext JSON by default)
            debounce_seconds: Autosave delay (defaults to ``sync.debounce_seconds``)
            timer_factory: Timer constructor used by the save scheduler
            config_manager: Configuration (defaults to the global instance)
            document: Initial document (defaults to a fresh one)
        """
        self.config = config_manager or get_config()
        self.repository = repository
        self.codec = codec or JsonPayloadCodec()
        delay = self.config.debounce_seconds if debounce_seconds is None else debounce_seconds
        self.scheduler = SaveScheduler(delay, self._save, timer_factory)

        self.document = document or build_default_document(self.config)
        self.engine = SheetEngine()
        self.projector = ChartProjector(self.engine)

        self.is_exporting = False
        self.is_syncing = False
        self.is_authenticated = True
        self.sync_error: Optional[str] = None
        self.sync_status = STATUS_LOCAL
        self.last_synced_at: Optional[str] = None

        self._document_lock = threading.RLock()
        self._save_lock = threading.Lock()
        self._save_in_progress = False
        self._save_requested = False

        self._refresh_sheets()

    # Read access

    @property
    def sections(self) -> List[Section]:
        return self.document.sections

    def find_section(self, section_id: str) -> Optional[Section]:
        for section in self.document.sections:
            if section.id == section_id:
                return section
        return None

    def find_widget(self, widget_id: str, section_id: Optional[str] = None) -> Optional[Widget]:
        """Find a widget in one section, or anywhere when no section is given."""
        sections = self.document.sections
        if section_id is not None:
            section = self.find_section(section_id)
            sections = [section] if section else []
        for section in sections:
            widget = find_widget(section.widgets, widget_id)
            if widget is not None:
                return widget
        return None

    def available_tables(self) -> List[TableSource]:
        return self.projector.available_tables(self.document.sections)

    def chart_data(self, chart_widget_id: str) -> List[Record]:
        """
        Chart records for a chart widget.

        Raises:
            NoDataSourceError: If the document contains no table widget
        """
        widget = self.find_widget(chart_widget_id)
        config = widget.graph_config if isinstance(widget, ChartWidget) else None
        return self.projector.project(config, self.document.sections)

    def function_catalog(self) -> List[FunctionInfo]:
        return self.engine.get_function_catalog()

    # Mutations

    def set_project_title(self, title: str) -> None:
        project = self.document.project.model_copy(update={"title": title})
        self._commit(self.document.model_copy(update={"project": project}))

    def set_author_name(self, name: str) -> None:
        project = self.document.project.model_copy(update={"author_name": name})
        self._commit(self.document.model_copy(update={"project": project}))

    def set_grid_columns(self, columns: int) -> bool:
        if columns not in (1, 2, 3):
            logging.debug(f"Ignoring unsupported grid column count: {columns}")
            return False
        meta = self.document.meta.model_copy(update={"grid_columns": columns})
        self._commit(self.document.model_copy(update={"meta": meta}))
        return True

    def add_widget(self, section_id: str, widget_type: str,
                   parent_id: Optional[str] = None) -> Optional[str]:
        """
        Append a new widget to a section or to a container in it.

        Returns:
            The new widget id, or None when the section or parent is unknown

        Raises:
            ValueError: If the widget type is unknown
        """
        section = self.find_section(section_id)
        if section is None:
            return None
        widget = create_widget(widget_type)
        widgets = insert_widget(section.widgets, widget, parent_id)
        if widgets is section.widgets:
            return None
        self._commit_section(section_id, widgets)
        return widget.id

    def update_widget(self, section_id: str, widget_id: str, changes: Dict[str, Any]) -> bool:
        """
        Merge payload fields into a widget.

        Returns:
            False when the section or widget is unknown, or when a merged
            value is invalid for the widget type (the document is unchanged)
        """
        section = self.find_section(section_id)
        if section is None:
            return False
        try:
            widgets = update_widget(section.widgets, widget_id, changes)
        except ValidationError as e:
            logging.warning(f"Ignoring invalid update for widget {widget_id}: {e}")
            return False
        return self._commit_section(section_id, widgets)

    def commit_text(self, section_id: str, widget_id: str, html: str) -> bool:
        """Store edited text, rendering its pseudo-markdown lines as HTML."""
        if not isinstance(self.find_widget(widget_id, section_id), TextWidget):
            return False
        return self.update_widget(section_id, widget_id, {"content": markdown_to_html(html)})

    def editable_text(self, section_id: str, widget_id: str) -> Optional[str]:
        """Content of a text widget reverted to editable pseudo-markdown lines."""
        widget = self.find_widget(widget_id, section_id)
        if not isinstance(widget, TextWidget):
            return None
        return html_to_markdown(widget.content)

    def set_table_cell(self, section_id: str, widget_id: str, row: int, col: int, value: str) -> bool:
        return self._edit_table(section_id, widget_id, lambda grid: tables.set_cell(grid, row, col, value))

    def add_table_row(self, section_id: str, widget_id: str) -> bool:
        return self._edit_table(section_id, widget_id, tables.add_row)

    def add_table_column(self, section_id: str, widget_id: str) -> bool:
        return self._edit_table(section_id, widget_id, tables.add_column)

    def remove_table_row(self, section_id: str, widget_id: str, index: int) -> bool:
        return self._edit_table(section_id, widget_id, lambda grid: tables.remove_row(grid, index))

    def remove_table_column(self, section_id: str, widget_id: str, index: int) -> bool:
        return self._edit_table(section_id, widget_id, lambda grid: tables.remove_column(grid, index))

    def _edit_table(self, section_id: str, widget_id: str,
                    edit: Callable[[tables.Grid], tables.Grid]) -> bool:
        widget = self.find_widget(widget_id, section_id)
        if not isinstance(widget, TableWidget):
            return False
        grid = edit(widget.table_data)
        if grid is widget.table_data:
            return False
        return self.update_widget(section_id, widget_id, {"table_data": grid})

    def remove_widget(self, section_id: str, widget_id: str) -> bool:
        section = self.find_section(section_id)
        if section is None:
            return False
        return self._commit_section(section_id, remove_widget(section.widgets, widget_id))

    def move_widget(self, section_id: str, active_id: str, over_id: str) -> bool:
        """Apply one drag placement; False when it could not be resolved."""
        section = self.find_section(section_id)
        if section is None:
            return False
        widgets = place_widget(section.widgets, active_id, over_id)
        if widgets is section.widgets:
            logging.debug(f"Drag placement aborted: {active_id} -> {over_id}")
            return False
        return self._commit_section(section_id, widgets)

    def restore_section_widgets(self, section_id: str, widgets: WidgetList) -> bool:
        section = self.find_section(section_id)
        if section is None:
            return False
        return self._commit_section(section_id, widgets)

    def toggle_section_complete(self, section_id: str) -> bool:
        section = self.find_section(section_id)
        if section is None:
            return False
        toggled = section.model_copy(update={"is_completed": not section.is_completed})
        self._commit(self._with_section(toggled))
        return True

    def reset_project(self) -> None:
        """
        Start over with an empty document.

        Section ids and titles are kept so the document stays aligned with
        the canonical list; so is the persisted document id.
        """
        sections = [Section(id=section.id, title=section.title) for section in self.document.sections]
        if not sections:
            sections = default_sections(self.config.default_sections)
        document = CanvasDocument(
            meta=ProjectMeta(document_id=self.document.meta.document_id),
            project=ProjectInfo(title=self.config.default_title, author_name=self.config.default_author),
            sections=sections,
        )
        logging.info("Project reset")
        self._commit(document)

    def load_project(self, document: Union[CanvasDocument, Dict[str, Any]]) -> None:
        """
        Replace the whole document (e.g. an imported file).

        This hydrates state only: ``last_modified`` is kept as loaded and no
        save is scheduled.
        """
        if not isinstance(document, CanvasDocument):
            document = CanvasDocument.model_validate(document)
        self.scheduler.cancel()
        with self._document_lock:
            self.document = document
        self.engine.close()
        self.engine = SheetEngine()
        self.projector = ChartProjector(self.engine)
        self._refresh_sheets()
        logging.info(f"Loaded project '{document.project.title}' with {len(document.sections)} sections")

    def set_exporting(self, exporting: bool) -> None:
        self.is_exporting = exporting

    def _with_section(self, updated: Section) -> CanvasDocument:
        sections = [updated if section.id == updated.id else section for section in self.document.sections]
        return self.document.model_copy(update={"sections": sections})

    def _commit_section(self, section_id: str, widgets: WidgetList) -> bool:
        section = self.find_section(section_id)
        if section is None or widgets is section.widgets:
            return False
        self._commit(self._with_section(section.model_copy(update={"widgets": widgets})))
        return True

    def _commit(self, document: CanvasDocument) -> None:
        with self._document_lock:
            # An id adopted by a save that finished after ``document`` was built
            document_id = document.meta.document_id or self.document.meta.document_id
            meta = document.meta.model_copy(update={
                "last_modified": utc_now_iso(),
                "document_id": document_id,
            })
            self.document = document.model_copy(update={"meta": meta})
        self._refresh_sheets()
        self._schedule_save()

    def _refresh_sheets(self) -> None:
        table_ids = set()
        for section in self.document.sections:
            for table in collect_tables(section.widgets):
                table_ids.add(table.id)
                self.engine.update_sheet(table.id, table.table_data)
        for sheet_id in self.engine.sheet_ids():
            if sheet_id not in table_ids:
                self.engine.remove_sheet(sheet_id)

    # Sync

    def load(self) -> bool:
        """
        Hydrate from the repository and reconcile sections with the canonical list.

        Returns:
            True if a stored document was loaded, False for the empty state or
            when loading failed (see ``sync_error``)
        """
        if self.repository is None:
            return False
        try:
            canonical = self.repository.fetch_sections()
        except UnauthorizedError as e:
            self._signed_out(e)
            return False
        except PersistenceError as e:
            logging.warning(f"Could not fetch canonical sections, keeping local ones: {e}")
            canonical = []

        try:
            record = self.repository.load(self.document.meta.document_id)
            document = None
            if record is not None:
                document = self.codec.decode(record.payload, record.integrity)
        except UnauthorizedError as e:
            self._signed_out(e)
            return False
        except PersistenceError as e:
            self.sync_error = str(e)
            self.sync_status = STATUS_ERROR
            logging.error(f"Failed to load canvas: {e}")
            return False

        if document is None:
            logging.info("No stored canvas; starting from the local document")
            self.load_project(self.document.model_copy(update={
                "sections": reconcile_sections(canonical, self.document.sections)
            }))
            return False

        meta = document.meta.model_copy(update={"document_id": record.id})
        self.load_project(document.model_copy(update={
            "meta": meta,
            "sections": reconcile_sections(canonical, document.sections),
        }))
        self.sync_error = None
        self.sync_status = STATUS_SAVED
        self.last_synced_at = record.updated_at
        return True

    def force_save(self) -> bool:
        """Save now, dropping any pending debounced save."""
        self.scheduler.cancel()
        return self._save()

    def flush(self) -> bool:
        """Run a pending debounced save immediately, if there is one."""
        if not self.scheduler.pending:
            return False
        return self.force_save()

    def reauthenticate(self) -> None:
        """Resume saving after the user signed in again."""
        self.is_authenticated = True
        self.sync_error = None
        self.sync_status = STATUS_LOCAL
        self._schedule_save()

    def close(self) -> None:
        """Drop pending saves and tear down the sheet engine."""
        self.scheduler.cancel()
        self.engine.close()

    def _schedule_save(self) -> None:
        if self.repository is None:
            return
        if not self.is_authenticated:
            logging.debug("Not authenticated; autosave skipped")
            return
        self.scheduler.schedule()

    def _save(self) -> bool:
        if self.repository is None or not self.is_authenticated:
            return False
        with self._save_lock:
            if self._save_in_progress:
                self._save_requested = True
                return False
            self._save_in_progress = True
        try:
            saved = self._save_once()
            while True:
                with self._save_lock:
                    if not self._save_requested or not self.is_authenticated:
                        break
                    self._save_requested = False
                saved = self._save_once()
            return saved
        finally:
            with self._save_lock:
                self._save_in_progress = False
                self._save_requested = False

    def _save_once(self) -> bool:
        document = self.document
        self.is_syncing = True
        self.sync_status = STATUS_SYNCING
        try:
            payload, integrity = self.codec.encode(document)
            saved = self.repository.save(document.meta.document_id, payload, integrity)
        except UnauthorizedError as e:
            self._signed_out(e)
            return False
        except PersistenceError as e:
            self.sync_error = str(e)
            self.sync_status = STATUS_ERROR
            logging.error(f"Failed to save canvas: {e}")
            return False
        finally:
            self.is_syncing = False

        with self._document_lock:
            if self.document.meta.document_id != saved.id:
                meta = self.document.meta.model_copy(update={"document_id": saved.id})
                self.document = self.document.model_copy(update={"meta": meta})
        self.sync_error = None
        self.sync_status = STATUS_SAVED
        self.last_synced_at = saved.updated_at or utc_now_iso()
        logging.info(f"Canvas {saved.id} saved")
        return True

    def _signed_out(self, error: Exception) -> None:
        self.is_authenticated = False
        self.sync_error = str(error)
        self.sync_status = STATUS_SIGNED_OUT
        self.scheduler.cancel()
        logging.warning(f"Signed out by the persistence backend: {error}")
