"""Planning engine: wires the cache, refresh coordinator and operation detector.

Event flow:

    record event --> invalidate(path) --+-- operation in progress: stop
                                        |
                                        +-- classify --> schedule_refresh(target)

    metadata signal --> detector --(settled)--> invalidate_all() + refresh_now()

The rendering side only reads: get_roots(), get_children(), get_progress().
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from cascade.lib.config import EngineConfig
from cascade.lib.types import WorkItem
from cascade.lib.watcher import DELETED, EVENT_KINDS, PathDebouncer
from cascade.tree.cache import PlanningCache
from cascade.tree.grouping import GroupKey
from cascade.tree.hierarchy import HierarchyNode
from cascade.tree.progress import ProgressInfo
from cascade.workflow.fsm import RepositoryOperationDetector
from cascade.workflow.refresh import RefreshCoordinator, RefreshTarget
from cascade.workflow.scheduler import Scheduler

logger = logging.getLogger(__name__)


class ChangeType(Enum):
    """How much of the tree a record change can affect.

    - STRUCTURE: the item appeared, disappeared, or moved (status, id, parent)
    - CONTENT: only its label changed (title, priority)
    - BODY: nothing the tree shows changed
    """

    STRUCTURE = "structure"
    CONTENT = "content"
    BODY = "body"


def classify_change(old: Optional[WorkItem], new: Optional[WorkItem]) -> ChangeType:
    """Compare a record before and after a change."""
    if old is None and new is None:
        return ChangeType.BODY
    if old is None or new is None:
        return ChangeType.STRUCTURE

    if (
        old.status != new.status
        or old.id != new.id
        or old.type != new.type
        or old.parent != new.parent
        or old.dependencies != new.dependencies
    ):
        return ChangeType.STRUCTURE
    if old.title != new.title or old.priority != new.priority:
        return ChangeType.CONTENT
    return ChangeType.BODY


class PlanningEngine:
    """Reactive aggregation over one workspace's planning records."""

    def __init__(
        self,
        workspace: Path,
        scheduler: Scheduler,
        on_redraw: Callable[[RefreshTarget], None],
        config: Optional[EngineConfig] = None,
    ):
        """
        Args:
            workspace: Workspace root; records live under workspace/config.plans_dir
            scheduler: Timer source shared by every debouncer
            on_redraw: Called with None (redraw everything) or an item id
            config: Engine settings, defaults if None
        """
        self.workspace = workspace
        self.config = config or EngineConfig()
        self.cache = PlanningCache(workspace / self.config.plans_dir)

        self.coordinator = RefreshCoordinator(
            scheduler, on_redraw, delay_ms=self.config.refresh_debounce_ms
        )
        self.detector = RepositoryOperationDetector(
            scheduler,
            on_complete=self._on_operation_complete,
            settle_ms=self.config.git_settle_ms,
            enabled=self.config.git_detection_enabled,
        )
        self.debouncer = PathDebouncer(
            scheduler, self.handle_file_event, delay_ms=self.config.file_event_debounce_ms
        )

    @property
    def plans_dir(self) -> Path:
        return self.cache.plans_dir

    # ------------------------------------------------------------------
    # Query surface
    # ------------------------------------------------------------------

    def get_roots(self, key: GroupKey) -> list[HierarchyNode]:
        return self.cache.get_hierarchy(key)

    def get_children(self, node: HierarchyNode) -> list[HierarchyNode]:
        return node.children

    def get_progress(self, node: HierarchyNode) -> Optional[ProgressInfo]:
        return self.cache.get_progress(node)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def handle_file_event(self, kind: str, path: Path) -> None:
        """Apply one (debounced) record event.

        The cache entry is always invalidated. Redraws are suppressed while a
        repository operation is in progress; its completion rebuilds instead.
        """
        if kind not in EVENT_KINDS:
            logger.warning(f"[Refresh] Unknown file event '{kind}' for {path}, treating as changed")

        path = Path(path)
        old = self.cache.peek_item(path)
        self.cache.invalidate(path)

        if self.detector.is_operation_in_progress():
            logger.debug(f"[Refresh] {path.name} {kind} during repository operation, redraw deferred")
            return

        new = None if kind == DELETED else self.cache.load_item(path)
        change = classify_change(old, new)
        logger.debug(f"[Refresh] {path.name} {kind}: {change.value} change")

        if change == ChangeType.STRUCTURE:
            self.coordinator.schedule_refresh()
        elif change == ChangeType.CONTENT:
            self.coordinator.schedule_refresh(new.id)

    def handle_repository_signal(self, kind: str) -> None:
        self.detector.handle_signal(kind)

    def _on_operation_complete(self) -> None:
        self.cache.invalidate_all()
        self.coordinator.refresh_now()

    def refresh_now(self) -> None:
        """User-requested refresh: drop every cache tier and redraw immediately."""
        logger.info("[Refresh] Manual refresh")
        self.cache.invalidate_all()
        self.coordinator.refresh_now()

    # ------------------------------------------------------------------
    # Configuration and lifecycle
    # ------------------------------------------------------------------

    def apply_config(self, config: EngineConfig) -> None:
        """Apply new settings; they take effect on the next scheduling decision."""
        self.coordinator.update_delay(config.refresh_debounce_ms)
        self.detector.update_settle_delay(config.git_settle_ms)
        self.detector.set_enabled(config.git_detection_enabled)
        self.debouncer.delay_ms = config.file_event_debounce_ms

        plans_changed = config.plans_dir != self.config.plans_dir
        self.config = config
        if plans_changed:
            logger.info(f"[Refresh] Plans directory changed to {config.plans_dir}")
            self.cache = PlanningCache(self.workspace / config.plans_dir)
            self.coordinator.refresh_now()

    def dispose(self) -> None:
        """Cancel every pending timer without firing."""
        self.detector.dispose()
        self.coordinator.dispose()
        self.debouncer.dispose()
