"""
Poll-based change source for planning records and repository metadata.

Snapshots compare cheap stat metadata between polls:

- records: {normalized path: mtime_ns} for every *.md under the plans dir
- repository: stat signatures of .git/HEAD and .git/index

PathDebouncer sits between the record diff and the engine so a file written
several times in quick succession is delivered once.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .constants import RECORD_SUFFIX
from .paths import normalize_path

logger = logging.getLogger(__name__)

CREATED = "created"
CHANGED = "changed"
DELETED = "deleted"
EVENT_KINDS = (CREATED, CHANGED, DELETED)

# Same strings the detector consumes
REFERENCE_CHANGED = "reference changed"
INDEX_CHANGED = "index changed"

StatSignature = tuple[str, int, int]


@dataclass(frozen=True)
class FileEvent:
    """One record change between two snapshots."""
    kind: str   # created | changed | deleted
    path: Path


@dataclass
class Snapshot:
    """Record mtimes keyed by normalized path, with the on-disk Path kept for delivery."""
    mtimes: dict[str, int]
    paths: dict[str, Path]


def take_snapshot(plans_dir: Path) -> Snapshot:
    """Stat every record under plans_dir. A missing directory is an empty snapshot."""
    mtimes: dict[str, int] = {}
    paths: dict[str, Path] = {}
    if not plans_dir.is_dir():
        return Snapshot(mtimes, paths)

    for path in plans_dir.rglob(f"*{RECORD_SUFFIX}"):
        try:
            st = path.stat()
        except OSError:
            continue
        if not path.is_file():
            continue
        key = normalize_path(path)
        mtimes[key] = st.st_mtime_ns
        paths[key] = path
    return Snapshot(mtimes, paths)


def diff_snapshots(old: Snapshot, new: Snapshot) -> list[FileEvent]:
    """Events turning old into new, sorted by path."""
    events = []
    for key in sorted(set(old.mtimes) | set(new.mtimes)):
        if key not in old.mtimes:
            events.append(FileEvent(CREATED, new.paths[key]))
        elif key not in new.mtimes:
            events.append(FileEvent(DELETED, old.paths[key]))
        elif old.mtimes[key] != new.mtimes[key]:
            events.append(FileEvent(CHANGED, new.paths[key]))
    return events


class PathDebouncer:
    """Collapse repeated events for the same path into one delivery.

    Each path has its own timer; a new event for a path restarts only that
    path's timer and replaces its pending kind.
    """

    def __init__(self, scheduler, handler: Callable[[str, Path], None], delay_ms: int = 300):
        self._scheduler = scheduler
        self._handler = handler
        self.delay_ms = delay_ms
        self._pending: dict[str, tuple[object, FileEvent]] = {}

    def push(self, event: FileEvent) -> None:
        if self.delay_ms == 0:
            self._handler(event.kind, event.path)
            return

        key = normalize_path(event.path)
        previous = self._pending.pop(key, None)
        if previous is not None:
            previous[0].cancel()
            event = FileEvent(_merge_kinds(previous[1].kind, event.kind), event.path)

        timer = self._scheduler.call_later(self.delay_ms, lambda: self._deliver(key))
        self._pending[key] = (timer, event)

    def _deliver(self, key: str) -> None:
        entry = self._pending.pop(key, None)
        if entry is None:
            return
        event = entry[1]
        self._handler(event.kind, event.path)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def dispose(self) -> None:
        for timer, _event in self._pending.values():
            timer.cancel()
        self._pending.clear()


def _merge_kinds(first: str, last: str) -> str:
    """Kind to deliver for a path that saw `first` then `last` inside one window."""
    if first == CREATED and last == CHANGED:
        # Still new to anyone who has not seen it yet
        return CREATED
    if first == DELETED and last == CREATED:
        # Replaced in place (editors that save via rename)
        return CHANGED
    return last


def _stat_signature(path: Path) -> StatSignature:
    try:
        st = path.stat()
    except FileNotFoundError:
        return ("missing", 0, 0)
    except OSError:
        return ("error", 0, 0)
    return ("ok", st.st_mtime_ns, st.st_size)


def resolve_git_dir(workspace: Path) -> Optional[Path]:
    """Locate the git directory for a workspace.

    Handles worktrees and submodules, where .git is a file holding
    "gitdir: <path>". Returns None outside a repository.
    """
    dot_git = workspace / ".git"
    if dot_git.is_dir():
        return dot_git
    if dot_git.is_file():
        try:
            content = dot_git.read_text(encoding="utf-8").strip()
        except OSError as e:
            logger.warning(f"[Git] Cannot read {dot_git}: {e}")
            return None
        if content.startswith("gitdir:"):
            git_dir = Path(content.split(":", 1)[1].strip())
            if not git_dir.is_absolute():
                git_dir = (workspace / git_dir).resolve()
            return git_dir
    return None


class RepositoryWatcher:
    """Report repository metadata signals by polling HEAD and index."""

    def __init__(self, workspace: Path):
        self.git_dir = resolve_git_dir(workspace)
        self._signatures: dict[str, StatSignature] = {}
        if self.git_dir is not None:
            self._signatures = self._read()
        else:
            logger.info(f"[Git] No repository at {workspace}, operation detection off")

    @property
    def available(self) -> bool:
        return self.git_dir is not None

    def _read(self) -> dict[str, StatSignature]:
        return {
            REFERENCE_CHANGED: _stat_signature(self.git_dir / "HEAD"),
            INDEX_CHANGED: _stat_signature(self.git_dir / "index"),
        }

    def poll(self) -> list[str]:
        """Signal kinds whose metadata changed since the previous poll."""
        if self.git_dir is None:
            return []
        current = self._read()
        signals = [kind for kind, sig in current.items() if self._signatures.get(kind) != sig]
        self._signatures = current
        return signals


class ChangePoller:
    """One poll of both sources, feeding the engine.

    Repository signals are delivered before record events so an operation is
    already open when its file rewrites arrive.
    """

    def __init__(
        self,
        plans_dir: Path,
        repository: RepositoryWatcher,
        debouncer: PathDebouncer,
        on_signal: Callable[[str], None],
    ):
        self.plans_dir = plans_dir
        self.repository = repository
        self.debouncer = debouncer
        self.on_signal = on_signal
        self._snapshot = take_snapshot(plans_dir)

    def poll(self) -> int:
        """Compare against the previous poll; returns the number of record events."""
        for kind in self.repository.poll():
            self.on_signal(kind)

        snapshot = take_snapshot(self.plans_dir)
        events = diff_snapshots(self._snapshot, snapshot)
        self._snapshot = snapshot
        for event in events:
            self.debouncer.push(event)
        if events:
            logger.debug(f"[Watch] {len(events)} record events")
        return len(events)
