"""
Unit tests for the document store: mutators, section reconciliation,
debounced saving and sync failure handling.
"""

import unittest
from unittest.mock import MagicMock

from growthcanvas.config import ConfigManager
from growthcanvas.exceptions import NoDataSourceError, PersistenceError, UnauthorizedError
from growthcanvas.models import CanonicalSection, ContainerWidget, SavedCanvas, Section, TextWidget
from growthcanvas.persistence import InMemoryCanvasRepository, JsonPayloadCodec
from growthcanvas.store import DocumentStore, SaveScheduler, reconcile_sections
from growthcanvas.tree import count_widgets


class FakeTimer:
    """Timer stand-in; tests fire it explicitly."""

    created = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


def live_timers():
    return [timer for timer in FakeTimer.created if timer.started and not timer.cancelled]


class TestSaveScheduler(unittest.TestCase):
    """Test the debounce timer."""

    def setUp(self):
        FakeTimer.created = []
        self.callback = MagicMock()
        self.scheduler = SaveScheduler(1.0, self.callback, timer_factory=FakeTimer)

    def test_schedule_restarts_pending_timer(self):
        self.scheduler.schedule()
        self.scheduler.schedule()
        self.scheduler.schedule()

        self.assertEqual(len(FakeTimer.created), 3)
        self.assertEqual(len(live_timers()), 1)
        self.assertTrue(self.scheduler.pending)

        live_timers()[0].fire()

        self.callback.assert_called_once()
        self.assertFalse(self.scheduler.pending)

    def test_cancel(self):
        self.scheduler.schedule()
        self.scheduler.cancel()

        self.assertFalse(self.scheduler.pending)
        self.assertEqual(live_timers(), [])


class TestReconcileSections(unittest.TestCase):
    """Test reconciliation with the canonical section list."""

    def test_widgets_preserved_and_id_remapped(self):
        widget = TextWidget(id="w")
        local = [Section(id="old1", title="Acq", widgets=[widget])]

        result = reconcile_sections([CanonicalSection(id="x", title="Acq")], local)

        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].id, "x")
        self.assertEqual(result[0].title, "Acq")
        self.assertEqual(result[0].widgets, [widget])

    def test_canonical_order_and_missing_sections(self):
        local = [
            Section(id="l2", title="Ret", is_completed=True),
            Section(id="l1", title="Acq"),
        ]
        canonical = [
            CanonicalSection(id="1", title="Acq"),
            CanonicalSection(id="2", title="Act"),
            CanonicalSection(id="3", title="Ret"),
        ]

        result = reconcile_sections(canonical, local)

        self.assertEqual([(s.id, s.title) for s in result], [("1", "Acq"), ("2", "Act"), ("3", "Ret")])
        self.assertTrue(result[2].is_completed)
        self.assertEqual(result[1].widgets, [])

    def test_unmatched_local_sections_are_kept(self):
        local = [Section(id="mine", title="Private", widgets=[TextWidget(id="w")])]

        result = reconcile_sections([CanonicalSection(id="1", title="Acq")], local)

        self.assertEqual([s.id for s in result], ["1", "mine"])

    def test_no_canonical_list(self):
        local = [Section(id="a", title="A")]
        self.assertEqual(reconcile_sections([], local), local)


class TestDocumentStoreMutations(unittest.TestCase):
    """Test store mutators and derived data."""

    def setUp(self):
        FakeTimer.created = []
        self.config = ConfigManager("does-not-exist.yaml")
        self.repository = InMemoryCanvasRepository()
        self.store = DocumentStore(
            repository=self.repository,
            timer_factory=FakeTimer,
            config_manager=self.config,
        )
        self.section_id = self.store.sections[0].id

    def test_default_document(self):
        self.assertEqual(len(self.store.sections), 5)
        self.assertEqual(self.store.sections[0].id, "section_1")
        self.assertEqual(self.store.document.project.title, "Mi Estrategia de Crecimiento")

    def test_add_widget_into_container(self):
        container_id = self.store.add_widget(self.section_id, "container")
        child_id = self.store.add_widget(self.section_id, "text", parent_id=container_id)

        container = self.store.find_widget(container_id, self.section_id)
        self.assertIsInstance(container, ContainerWidget)
        self.assertEqual([w.id for w in container.children], [child_id])
        self.assertIsNone(self.store.add_widget(self.section_id, "text", parent_id="missing"))
        self.assertIsNone(self.store.add_widget("missing", "text"))

    def test_mutations_touch_last_modified_and_schedule_save(self):
        self.store.document = self.store.document.model_copy(update={
            "meta": self.store.document.meta.model_copy(update={"last_modified": "2000-01-01T00:00:00+00:00"})
        })

        self.store.set_project_title("Plan 2025")

        self.assertEqual(self.store.document.project.title, "Plan 2025")
        self.assertNotEqual(self.store.document.meta.last_modified, "2000-01-01T00:00:00+00:00")
        self.assertTrue(self.store.scheduler.pending)

    def test_unknown_ids_are_noops(self):
        before = self.store.document

        self.assertFalse(self.store.update_widget(self.section_id, "missing", {"content": "x"}))
        self.assertFalse(self.store.remove_widget(self.section_id, "missing"))
        self.assertFalse(self.store.move_widget(self.section_id, "missing", "other"))
        self.assertFalse(self.store.toggle_section_complete("missing"))

        self.assertIs(self.store.document, before)
        self.assertFalse(self.store.scheduler.pending)

    def test_grid_columns(self):
        self.assertTrue(self.store.set_grid_columns(3))
        self.assertFalse(self.store.set_grid_columns(4))
        self.assertEqual(self.store.document.meta.grid_columns, 3)

    def test_exporting_flag_does_not_save(self):
        self.store.set_exporting(True)
        self.assertTrue(self.store.is_exporting)
        self.assertFalse(self.store.scheduler.pending)

    def test_toggle_section_complete(self):
        self.assertTrue(self.store.toggle_section_complete(self.section_id))
        self.assertTrue(self.store.find_section(self.section_id).is_completed)

    def test_table_edits_feed_charts(self):
        table_id = self.store.add_widget(self.section_id, "table")
        chart_id = self.store.add_widget(self.section_id, "chart")
        self.store.update_widget(self.section_id, table_id, {
            "table_data": [["Month", "Users"], ["Jan", "10"], ["Feb", "=B2*2"]]
        })
        self.store.update_widget(self.section_id, chart_id, {
            "graph_config": {"table_id": table_id, "x_axis_column": 0, "data_columns": [1]}
        })

        self.assertEqual(self.store.engine.get_computed_value(table_id, 2, 1), "20")
        self.assertEqual(self.store.chart_data(chart_id), [
            {"name": "Jan", "Users": 10.0},
            {"name": "Feb", "Users": 20.0},
        ])
        self.assertEqual([t.id for t in self.store.available_tables()], [table_id])

        self.store.remove_widget(self.section_id, table_id)
        self.assertFalse(self.store.engine.has_sheet(table_id))
        with self.assertRaises(NoDataSourceError):
            self.store.chart_data(chart_id)

    def test_table_grid_mutators(self):
        table_id = self.store.add_widget(self.section_id, "table")
        self.store.scheduler.cancel()

        self.assertTrue(self.store.set_table_cell(self.section_id, table_id, 1, 2, "=B2*2"))
        self.assertEqual(self.store.engine.get_computed_value(table_id, 1, 2), "0.4")
        self.assertTrue(self.store.scheduler.pending)

        self.assertTrue(self.store.add_table_row(self.section_id, table_id))
        self.assertTrue(self.store.add_table_column(self.section_id, table_id))
        table = self.store.find_widget(table_id, self.section_id)
        self.assertEqual([len(row) for row in table.table_data], [4, 4, 4])

        self.assertTrue(self.store.remove_table_column(self.section_id, table_id, 3))
        self.assertTrue(self.store.remove_table_row(self.section_id, table_id, 2))
        table = self.store.find_widget(table_id, self.section_id)
        self.assertEqual(table.table_data, [["Metric", "Q1", "Q2"], ["Retention", "20%", "=B2*2"]])

    def test_table_mutators_reject_bad_targets(self):
        table_id = self.store.add_widget(self.section_id, "table")
        text_id = self.store.add_widget(self.section_id, "text")
        before = self.store.document

        self.assertFalse(self.store.set_table_cell(self.section_id, table_id, 9, 0, "x"))
        self.assertFalse(self.store.remove_table_column(self.section_id, table_id, 7))
        self.assertFalse(self.store.add_table_row(self.section_id, text_id))
        self.assertFalse(self.store.add_table_column(self.section_id, "missing"))

        self.assertIs(self.store.document, before)

    def test_commit_and_edit_text(self):
        text_id = self.store.add_widget(self.section_id, "text")
        table_id = self.store.add_widget(self.section_id, "table")
        lines = "<div># Goals</div><div>- **grow**</div>"

        self.assertTrue(self.store.commit_text(self.section_id, text_id, lines))

        self.assertEqual(self.store.find_widget(text_id, self.section_id).content,
                         "<h1>Goals</h1><ul><li><b>grow</b></li></ul>")
        self.assertEqual(self.store.editable_text(self.section_id, text_id), lines)
        self.assertFalse(self.store.commit_text(self.section_id, table_id, lines))
        self.assertIsNone(self.store.editable_text(self.section_id, table_id))

    def test_invalid_widget_update_is_ignored(self):
        table_id = self.store.add_widget(self.section_id, "table")
        self.store.scheduler.cancel()
        before = self.store.document

        self.assertFalse(self.store.update_widget(self.section_id, table_id, {"table_data": "oops"}))

        self.assertIs(self.store.document, before)
        self.assertFalse(self.store.scheduler.pending)

    def test_reset_keeps_section_ids_and_document_id(self):
        self.store.add_widget(self.section_id, "text")
        self.store.force_save()
        document_id = self.store.document.meta.document_id

        self.store.reset_project()

        self.assertEqual(self.store.document.meta.document_id, document_id)
        self.assertEqual(self.store.sections[0].id, self.section_id)
        self.assertEqual(sum(count_widgets(s.widgets) for s in self.store.sections), 0)

    def test_load_project_is_hydration_only(self):
        document = self.store.document.model_copy(update={
            "meta": self.store.document.meta.model_copy(update={"last_modified": "2020-01-01T00:00:00+00:00"})
        })

        self.store.load_project(document.model_dump())

        self.assertEqual(self.store.document.meta.last_modified, "2020-01-01T00:00:00+00:00")
        self.assertFalse(self.store.scheduler.pending)
        self.assertEqual(self.repository.save_calls, 0)

    def test_function_catalog(self):
        names = [info.name for info in self.store.function_catalog()]
        self.assertEqual(names[0], "AVERAGE")


class TestDocumentStoreSync(unittest.TestCase):
    """Test debounced saving, load and failure handling."""

    def setUp(self):
        FakeTimer.created = []
        self.config = ConfigManager("does-not-exist.yaml")

    def make_store(self, repository):
        return DocumentStore(repository=repository, timer_factory=FakeTimer, config_manager=self.config)

    def test_burst_of_edits_saves_once(self):
        repository = InMemoryCanvasRepository()
        store = self.make_store(repository)
        section_id = store.sections[0].id

        for _ in range(5):
            store.add_widget(section_id, "text")

        self.assertEqual(repository.save_calls, 0)
        self.assertEqual(len(live_timers()), 1)
        live_timers()[0].fire()

        self.assertEqual(repository.save_calls, 1)
        self.assertEqual(store.sync_status, "Saved")
        self.assertIsNotNone(store.document.meta.document_id)

    def test_saved_id_is_adopted(self):
        repository = InMemoryCanvasRepository()
        store = self.make_store(repository)
        store.set_author_name("Ana")

        self.assertTrue(store.flush())
        first_id = store.document.meta.document_id
        store.set_author_name("Bea")
        store.flush()

        self.assertEqual(store.document.meta.document_id, first_id)
        self.assertEqual(len(repository.records), 1)
        stored = JsonPayloadCodec().decode(repository.records[first_id].payload, {})
        self.assertEqual(stored.project.author_name, "Bea")

    def test_unauthorized_stops_autosave(self):
        repository = MagicMock()
        repository.save.side_effect = UnauthorizedError("401")
        store = self.make_store(repository)
        section_id = store.sections[0].id

        store.add_widget(section_id, "text")
        self.assertFalse(store.flush())

        self.assertFalse(store.is_authenticated)
        self.assertEqual(store.sync_status, "Signed out")
        widgets_before = count_widgets(store.find_section(section_id).widgets)

        store.add_widget(section_id, "text")
        self.assertFalse(store.scheduler.pending)
        self.assertEqual(count_widgets(store.find_section(section_id).widgets), widgets_before + 1)

        repository.save.side_effect = None
        repository.save.return_value = SavedCanvas(id="c1", updated_at="now")
        store.reauthenticate()
        self.assertTrue(store.scheduler.pending)
        self.assertTrue(store.flush())
        self.assertEqual(store.document.meta.document_id, "c1")

    def test_failed_save_keeps_local_state(self):
        repository = MagicMock()
        repository.save.side_effect = PersistenceError("boom")
        store = self.make_store(repository)
        section_id = store.sections[0].id
        widget_id = store.add_widget(section_id, "text")

        self.assertFalse(store.force_save())

        self.assertEqual(store.sync_status, "Sync Error")
        self.assertEqual(store.sync_error, "boom")
        self.assertTrue(store.is_authenticated)
        self.assertIsNotNone(store.find_widget(widget_id))
        self.assertFalse(store.is_syncing)

    def test_save_requested_during_save_is_requeued(self):
        repository = InMemoryCanvasRepository()
        store = self.make_store(repository)
        original_save = repository.save
        calls = []

        def save_and_edit(document_id, payload, integrity=None):
            calls.append(payload)
            if len(calls) == 1:
                # An autosave firing while the first save is still running
                store.set_project_title("Edited during save")
                store.scheduler.cancel()
                store._save()
            return original_save(document_id, payload, integrity)

        repository.save = save_and_edit
        store.force_save()

        self.assertEqual(len(calls), 2)
        self.assertIn("Edited during save", calls[1])

    def test_load_reconciles_and_hydrates(self):
        repository = InMemoryCanvasRepository(sections=[
            CanonicalSection(id="c1", title="FUNDAMENTOS Y RETENCIÓN"),
            CanonicalSection(id="c2", title="ADQUISICIÓN"),
        ])
        writer = self.make_store(repository)
        writer.add_widget("section_2", "text")
        writer.force_save()
        saves = repository.save_calls

        reader = self.make_store(repository)
        self.assertTrue(reader.load())

        self.assertEqual([s.id for s in reader.sections][:2], ["c1", "c2"])
        self.assertEqual(count_widgets(reader.find_section("c2").widgets), 1)
        self.assertEqual(reader.document.meta.document_id, writer.document.meta.document_id)
        self.assertEqual(reader.sync_status, "Saved")
        self.assertEqual(repository.save_calls, saves)

    def test_load_empty_state(self):
        repository = InMemoryCanvasRepository(sections=[CanonicalSection(id="c1", title="Only")])
        store = self.make_store(repository)

        self.assertFalse(store.load())

        self.assertIsNone(store.sync_error)
        self.assertEqual(store.sections[0].id, "c1")

    def test_load_unauthorized(self):
        repository = MagicMock()
        repository.fetch_sections.side_effect = UnauthorizedError("401")
        store = self.make_store(repository)

        self.assertFalse(store.load())
        self.assertFalse(store.is_authenticated)

    def test_load_rejects_unknown_widget_type(self):
        repository = InMemoryCanvasRepository()
        repository.save(None, '{"sections": [{"id": "s1", "title": "A", '
                              '"widgets": [{"id": "w", "type": "video"}]}]}')
        store = self.make_store(repository)
        before = store.document

        self.assertFalse(store.load())

        self.assertEqual(store.sync_status, "Sync Error")
        self.assertIn("canvas schema", store.sync_error)
        self.assertIs(store.document, before)

    def test_adopted_id_survives_commit_of_older_snapshot(self):
        repository = InMemoryCanvasRepository()
        store = self.make_store(repository)
        stale = store.document
        self.assertIsNone(stale.meta.document_id)

        store.set_author_name("Ana")
        self.assertTrue(store.force_save())
        saved_id = store.document.meta.document_id

        # A mutation built from a snapshot taken before the save finished
        store._commit(stale.model_copy(update={
            "project": stale.project.model_copy(update={"title": "Late edit"})
        }))

        self.assertEqual(store.document.meta.document_id, saved_id)
        self.assertEqual(store.document.project.title, "Late edit")
        store.flush()
        self.assertEqual(list(repository.records), [saved_id])


if __name__ == '__main__':
    unittest.main()
