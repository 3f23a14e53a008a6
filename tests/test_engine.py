"""Tests for cascade.workflow.engine module."""

import pytest

from cascade.lib.config import EngineConfig
from cascade.lib.types import ItemType, Priority, Status
from cascade.lib.watcher import CHANGED, CREATED, DELETED, FileEvent
from cascade.tree.grouping import COMPLETE_TREE
from cascade.tree.hierarchy import find_node
from cascade.workflow.engine import ChangeType, PlanningEngine, classify_change
from cascade.workflow.fsm import INDEX_CHANGED, REFERENCE_CHANGED

from conftest import make_item, record_text, touch


def rewrite(path, item, type, **fields):
    path.write_text(record_text(item, type, **fields))
    touch(path)


class TestClassifyChange:
    """Tests for classify_change."""

    def test_created_and_deleted(self):
        item = make_item("S1", ItemType.STORY)
        assert classify_change(None, item) == ChangeType.STRUCTURE
        assert classify_change(item, None) == ChangeType.STRUCTURE

    def test_status_change_is_structure(self):
        old = make_item("S1", ItemType.STORY, status=Status.READY)
        new = make_item("S1", ItemType.STORY, status=Status.COMPLETED)
        assert classify_change(old, new) == ChangeType.STRUCTURE

    def test_parent_change_is_structure(self):
        old = make_item("S1", ItemType.STORY, parent="F1")
        new = make_item("S1", ItemType.STORY, parent="F2")
        assert classify_change(old, new) == ChangeType.STRUCTURE

    def test_title_change_is_content(self):
        old = make_item("S1", ItemType.STORY, title="Old")
        new = make_item("S1", ItemType.STORY, title="New")
        assert classify_change(old, new) == ChangeType.CONTENT

    def test_priority_change_is_content(self):
        old = make_item("S1", ItemType.STORY, priority=Priority.LOW)
        new = make_item("S1", ItemType.STORY, priority=Priority.HIGH)
        assert classify_change(old, new) == ChangeType.CONTENT

    def test_identical_is_body(self):
        item = make_item("S1", ItemType.STORY)
        assert classify_change(item, item) == ChangeType.BODY

    def test_still_malformed_is_body(self):
        assert classify_change(None, None) == ChangeType.BODY


@pytest.fixture
def redraws():
    return []


@pytest.fixture
def engine(workspace, scheduler, redraws, sample_plans):
    engine = PlanningEngine(workspace, scheduler, redraws.append, EngineConfig())
    engine.get_roots(COMPLETE_TREE)
    return engine


def progress(engine, item_id):
    return engine.get_progress(find_node(engine.get_roots(COMPLETE_TREE), item_id))


class TestQuerySurface:
    """get_roots / get_children / get_progress."""

    def test_roots_and_children(self, engine):
        roots = engine.get_roots(COMPLETE_TREE)
        assert [n.item.id for n in roots] == ["E1"]
        assert [n.item.id for n in engine.get_children(roots[0])] == ["F1", "F2"]

    def test_progress(self, engine):
        info = progress(engine, "F1")
        assert (info.completed, info.total, info.percentage) == (1, 2, 50)


class TestFileEvents:
    """Routing of record events."""

    def test_status_change_schedules_full_redraw(self, engine, scheduler, redraws, sample_plans):
        rewrite(sample_plans["S2"], "S2", "story", status="Completed")
        engine.handle_file_event(CHANGED, sample_plans["S2"])
        assert redraws == []
        scheduler.advance(300)
        assert redraws == [None]
        assert progress(engine, "F1").percentage == 100

    def test_title_change_redraws_one_node(self, engine, scheduler, redraws, sample_plans):
        rewrite(sample_plans["S2"], "S2", "story", status="Ready", title="Renamed")
        engine.handle_file_event(CHANGED, sample_plans["S2"])
        scheduler.advance(300)
        assert redraws == ["S2"]
        node = find_node(engine.get_roots(COMPLETE_TREE), "S2")
        assert node.item.title == "Renamed"

    def test_body_change_does_not_redraw(self, engine, scheduler, redraws, sample_plans):
        rewrite(sample_plans["S2"], "S2", "story", status="Ready", body="More notes")
        engine.handle_file_event(CHANGED, sample_plans["S2"])
        scheduler.advance(1000)
        assert redraws == []

    def test_delete_redraws(self, engine, scheduler, redraws, sample_plans):
        sample_plans["S2"].unlink()
        engine.handle_file_event(DELETED, sample_plans["S2"])
        scheduler.advance(300)
        assert redraws == [None]
        info = progress(engine, "F1")
        assert (info.completed, info.total) == (1, 1)

    def test_create_redraws(self, engine, scheduler, redraws, write_record):
        path = write_record("epic-01-core/feature-02-cache/story-07.md", "S7", "story")
        engine.handle_file_event(CREATED, path)
        scheduler.advance(300)
        assert redraws == [None]
        assert progress(engine, "F2").total == 1

    def test_concurrent_edits_collapse(self, engine, scheduler, redraws, sample_plans):
        rewrite(sample_plans["S1"], "S1", "story", status="Ready")
        rewrite(sample_plans["S2"], "S2", "story", status="Completed")
        engine.handle_file_event(CHANGED, sample_plans["S1"])
        scheduler.advance(100)
        engine.handle_file_event(CHANGED, sample_plans["S2"])
        scheduler.advance(300)
        assert redraws == [None]


class TestRepositoryOperation:
    """Redraw suppression during repository operations."""

    def test_events_during_operation_do_not_redraw(self, engine, scheduler, redraws, sample_plans):
        engine.handle_repository_signal(REFERENCE_CHANGED)
        for item_id in ("S1", "S2"):
            rewrite(sample_plans[item_id], item_id, "story", status="Blocked")
            engine.handle_file_event(CHANGED, sample_plans[item_id])
        scheduler.advance(499)
        assert redraws == []

        scheduler.advance(1)
        assert redraws == [None]
        assert engine.coordinator.refresh_count == 1
        assert progress(engine, "F1").completed == 0

    def test_invalidation_still_applies_during_operation(self, engine, scheduler, sample_plans):
        engine.handle_repository_signal(INDEX_CHANGED)
        rewrite(sample_plans["S2"], "S2", "story", status="Completed")
        engine.handle_file_event(CHANGED, sample_plans["S2"])
        assert progress(engine, "F1").completed == 2

    def test_redraw_scheduled_before_operation_still_fires(self, engine, scheduler, redraws, sample_plans):
        rewrite(sample_plans["S2"], "S2", "story", status="Completed")
        engine.handle_file_event(CHANGED, sample_plans["S2"])
        engine.handle_repository_signal(REFERENCE_CHANGED)
        scheduler.advance(50)
        engine.handle_repository_signal(INDEX_CHANGED)
        scheduler.advance(550)
        # One debounced redraw at t=300, one completion redraw at t=550
        assert redraws == [None, None]

    def test_detection_disabled(self, workspace, scheduler, redraws, sample_plans):
        engine = PlanningEngine(
            workspace, scheduler, redraws.append, EngineConfig(git_detection_enabled=False)
        )
        engine.get_roots(COMPLETE_TREE)
        engine.handle_repository_signal(REFERENCE_CHANGED)
        rewrite(sample_plans["S2"], "S2", "story", status="Completed")
        engine.handle_file_event(CHANGED, sample_plans["S2"])
        scheduler.advance(300)
        assert redraws == [None]


class TestLifecycle:
    """Manual refresh, config and shutdown."""

    def test_refresh_now_clears_caches(self, engine, redraws, sample_plans):
        progress(engine, "F1")
        rewrite(sample_plans["S2"], "S2", "story", status="Completed")
        engine.refresh_now()
        assert redraws == [None]
        assert progress(engine, "F1").completed == 2

    def test_apply_config(self, engine, scheduler, redraws, sample_plans):
        engine.apply_config(EngineConfig(refresh_debounce_ms=0, git_settle_ms=1000))
        assert engine.detector.settle_ms == 1000
        rewrite(sample_plans["S2"], "S2", "story", status="Completed")
        engine.handle_file_event(CHANGED, sample_plans["S2"])
        assert redraws == [None]

    def test_apply_config_disables_detection_mid_operation(self, engine, scheduler, redraws):
        engine.handle_repository_signal(REFERENCE_CHANGED)
        engine.apply_config(EngineConfig(git_detection_enabled=False))
        scheduler.advance(1000)
        assert redraws == []
        assert engine.detector.is_idle()

    def test_file_events_through_debouncer(self, engine, scheduler, redraws, sample_plans):
        rewrite(sample_plans["S2"], "S2", "story", status="Completed")
        for _ in range(3):
            engine.debouncer.push(FileEvent(CHANGED, sample_plans["S2"]))
            scheduler.advance(100)
        scheduler.advance(200)
        assert redraws == []
        scheduler.advance(300)
        assert redraws == [None]

    def test_dispose_cancels_everything(self, engine, scheduler, redraws, sample_plans):
        engine.debouncer.push(FileEvent(CHANGED, sample_plans["S1"]))
        engine.handle_repository_signal(REFERENCE_CHANGED)
        engine.coordinator.schedule_refresh()
        engine.dispose()
        scheduler.advance(5000)
        assert redraws == []
        assert scheduler.pending == []
