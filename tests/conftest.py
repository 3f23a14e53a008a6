"""Shared fixtures: a virtual-time scheduler and a planning record writer."""

import itertools
import os
from pathlib import Path

import pytest

from cascade.lib.types import ItemType, Priority, Status, WorkItem


class FakeTimer:
    def __init__(self, due: float, seq: int, callback):
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock. Timers only fire inside advance()."""

    def __init__(self):
        self.now = 0.0
        self._timers: list[FakeTimer] = []
        self._seq = itertools.count()

    def call_later(self, delay_ms, callback) -> FakeTimer:
        timer = FakeTimer(self.now + delay_ms, next(self._seq), callback)
        self._timers.append(timer)
        return timer

    def now_ms(self) -> float:
        return self.now

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self._timers if not t.cancelled]

    def advance(self, ms: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.now + ms
        while True:
            due = [t for t in self.pending if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self._timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self._timers = self.pending
        self.now = target


@pytest.fixture
def scheduler():
    return FakeScheduler()


def record_text(
    item: str,
    type: str,
    title: str = None,
    status: str = "Not Started",
    priority: str = "Medium",
    parent: str = None,
    dependencies: list = None,
    body: str = "",
) -> str:
    lines = [
        "---",
        f"item: {item}",
        f"title: {title or item + ' title'}",
        f"type: {type}",
        f"status: {status}",
        f"priority: {priority}",
    ]
    if parent:
        lines.append(f"parent: {parent}")
    if dependencies:
        lines.append(f"dependencies: [{', '.join(dependencies)}]")
    lines += [
        "created: 2025-10-12",
        "updated: 2025-10-14",
        "---",
        "",
        body,
    ]
    return "\n".join(lines)


_mtime_ns = itertools.count(1_700_000_000_000_000_000, 1_000_000)


def touch(path: Path) -> None:
    """Give a file a fresh, strictly increasing mtime."""
    stamp = next(_mtime_ns)
    os.utime(path, ns=(stamp, stamp))


@pytest.fixture
def workspace(tmp_path):
    (tmp_path / "plans").mkdir()
    return tmp_path


@pytest.fixture
def plans_dir(workspace):
    return workspace / "plans"


@pytest.fixture
def write_record(plans_dir):
    """Write a record under plans/ and return its path."""

    def _write(rel_path: str, item: str, type: str, **fields) -> Path:
        path = plans_dir / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(record_text(item, type, **fields))
        touch(path)
        return path

    return _write


@pytest.fixture
def sample_plans(write_record):
    """One epic with two features; F1 holds a completed and a ready story."""
    return {
        "E1": write_record("epic-01-core/epic.md", "E1", "epic", status="In Progress"),
        "F1": write_record("epic-01-core/feature-01-parser/feature.md", "F1", "feature", status="In Progress"),
        "S1": write_record("epic-01-core/feature-01-parser/story-01-read.md", "S1", "story", status="Completed"),
        "S2": write_record("epic-01-core/feature-01-parser/story-02-write.md", "S2", "story", status="Ready"),
        "F2": write_record("epic-01-core/feature-02-cache/feature.md", "F2", "feature", status="Completed"),
    }


def make_item(
    item_id: str,
    type: ItemType,
    status: Status = Status.NOT_STARTED,
    path: str = None,
    parent: str = None,
    title: str = None,
    priority: Priority = Priority.MEDIUM,
    dependencies: tuple = (),
) -> WorkItem:
    return WorkItem(
        id=item_id,
        title=title or f"{item_id} title",
        type=type,
        status=status,
        priority=priority,
        source_path=Path(path or f"/plans/{item_id.lower()}.md"),
        parent=parent,
        dependencies=dependencies,
    )
