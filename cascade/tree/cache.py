"""
Multi-tier cache for planning items, hierarchy forests and progress.

Three tiers, all owned here and only changed through this class:

- items by path: one entry per record file, re-parsed when its mtime moves
- hierarchy by group: one built forest per GroupKey
- progress by node id: ProgressInfo (or None) per container item id

invalidate(path) re-reads the record, drops every cached forest, and evicts the
progress of every ancestor the record had before or has after the edit.
invalidate_all() drops everything. After either returns, the next read of an
affected key recomputes.
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Iterator, Optional

from cascade.lib.constants import RECORD_SUFFIX
from cascade.lib.frontmatter import parse_record
from cascade.lib.paths import normalize_path
from cascade.lib.types import ItemType, WorkItem
from cascade.tree.grouping import COMPLETE_TREE, GroupKey
from cascade.tree.hierarchy import (
    HierarchyNode,
    build_hierarchy,
    find_node,
    item_sort_key,
    iter_nodes,
    parse_item_path,
)
from cascade.tree.progress import ProgressInfo, progress_of

logger = logging.getLogger(__name__)


@dataclass
class _ItemEntry:
    """Cached parse of one record. item is None when the record is malformed."""
    item: Optional[WorkItem]
    mtime_ns: int


@dataclass
class CacheStats:
    """Hit/miss counters per tier."""
    item_hits: int = 0
    item_misses: int = 0
    records_parsed: int = 0
    hierarchy_hits: int = 0
    hierarchy_misses: int = 0
    progress_hits: int = 0
    progress_misses: int = 0

    @property
    def progress_hit_rate(self) -> float:
        total = self.progress_hits + self.progress_misses
        return self.progress_hits / total if total else 0.0


class PlanningCache:
    """Item, hierarchy and progress caches for one plans directory."""

    def __init__(
        self,
        plans_dir: Path,
        parse: Callable[[Path], Optional[WorkItem]] = parse_record,
    ):
        """
        Args:
            plans_dir: Directory scanned for *.md records; also the root for
                path-encoded ancestry
            parse: Record parser; returns None for files to skip
        """
        self.plans_dir = plans_dir
        self._parse = parse

        self._items_by_path: dict[str, _ItemEntry] = {}
        self._hierarchy_by_group: dict[GroupKey, list[HierarchyNode]] = {}
        self._progress_by_node_id: dict[str, Optional[ProgressInfo]] = {}

        # Derived from the item tier on every scan
        self._item_list: Optional[list[WorkItem]] = None
        self._items_by_id: dict[str, WorkItem] = {}
        self._ids_by_container_key: dict[str, str] = {}

        self._stats = CacheStats()

    # ------------------------------------------------------------------
    # Item tier
    # ------------------------------------------------------------------

    def get_items(self) -> list[WorkItem]:
        """All parseable records, sorted by item order.

        A hit returns the cached list without touching the file system. A miss
        lists the plans directory and parses only records that are new or whose
        mtime changed.
        """
        if self._item_list is not None:
            self._stats.item_hits += 1
            return list(self._item_list)

        self._stats.item_misses += 1
        self._scan()
        return list(self._item_list)

    def _iter_record_files(self) -> Iterator[Path]:
        if not self.plans_dir.is_dir():
            logger.debug(f"[Cache] Plans directory missing: {self.plans_dir}")
            return
        for path in sorted(self.plans_dir.rglob(f"*{RECORD_SUFFIX}")):
            if path.is_file():
                yield path

    def _scan(self) -> None:
        seen: set[str] = set()
        parsed = 0

        for path in self._iter_record_files():
            key = normalize_path(path)
            try:
                mtime_ns = path.stat().st_mtime_ns
            except OSError:
                # Deleted between listing and stat
                continue
            seen.add(key)

            entry = self._items_by_path.get(key)
            if entry is not None and entry.mtime_ns == mtime_ns:
                continue

            self._items_by_path[key] = _ItemEntry(item=self._parse(path), mtime_ns=mtime_ns)
            parsed += 1

        for key in list(self._items_by_path):
            if key not in seen:
                del self._items_by_path[key]

        items = [e.item for e in self._items_by_path.values() if e.item is not None]
        items.sort(key=item_sort_key)
        self._item_list = items
        self._reindex(items)
        self._stats.records_parsed += parsed

        skipped = len(self._items_by_path) - len(items)
        logger.debug(
            f"[Cache] Scanned {len(seen)} records: parsed {parsed}, "
            f"{len(items)} items, {skipped} skipped"
        )

    def _reindex(self, items: list[WorkItem]) -> None:
        self._items_by_id = {}
        self._ids_by_container_key = {}
        for item in items:
            if item.id in self._items_by_id:
                logger.warning(
                    f"[Cache] Duplicate item id {item.id}: "
                    f"{self._items_by_id[item.id].source_path} and {item.source_path}"
                )
            self._items_by_id[item.id] = item

            parts = parse_item_path(item.source_path, self.plans_dir)
            if item.type == ItemType.EPIC and parts.epic_dir:
                self._ids_by_container_key.setdefault(parts.epic_dir, item.id)
            elif item.type == ItemType.FEATURE and parts.feature_key:
                self._ids_by_container_key.setdefault(parts.feature_key, item.id)

    def peek_item(self, path: Path) -> Optional[WorkItem]:
        """Cached item for a path, without parsing. None if absent or malformed."""
        entry = self._items_by_path.get(normalize_path(path))
        return entry.item if entry is not None else None

    def load_item(self, path: Path) -> Optional[WorkItem]:
        """Cached item for a path, parsing the single record on a miss.

        A newly parsed record marks the item list stale so the next
        get_items() rescans.
        """
        key = normalize_path(path)
        entry = self._items_by_path.get(key)
        if entry is not None:
            return entry.item

        try:
            mtime_ns = path.stat().st_mtime_ns
        except OSError:
            return None

        item = self._parse(path)
        self._items_by_path[key] = _ItemEntry(item=item, mtime_ns=mtime_ns)
        self._stats.records_parsed += 1
        self._item_list = None
        return item

    # ------------------------------------------------------------------
    # Hierarchy tier
    # ------------------------------------------------------------------

    def get_hierarchy(self, key: GroupKey) -> list[HierarchyNode]:
        """Cached forest for a group key, built from get_items() on a miss.

        The returned list and its nodes are shared; callers must not mutate them.
        """
        forest = self._hierarchy_by_group.get(key)
        if forest is not None:
            self._stats.hierarchy_hits += 1
            return forest

        self._stats.hierarchy_misses += 1
        items = [item for item in self.get_items() if key.matches(item)]
        forest = build_hierarchy(items, root=self.plans_dir)
        self._hierarchy_by_group[key] = forest
        logger.debug(f"[Cache] Built hierarchy '{key.label}': {len(forest)} roots from {len(items)} items")
        return forest

    # ------------------------------------------------------------------
    # Progress tier
    # ------------------------------------------------------------------

    def get_progress(self, node: HierarchyNode) -> Optional[ProgressInfo]:
        """Cached progress for a node's item.

        Counts are taken from the same item's node in the complete forest, so
        a container reports the same progress in every view.
        """
        item_id = node.item.id
        if item_id in self._progress_by_node_id:
            self._stats.progress_hits += 1
            return self._progress_by_node_id[item_id]

        self._stats.progress_misses += 1
        source = node
        if not node.item.is_leaf:
            full = find_node(self.get_hierarchy(COMPLETE_TREE), item_id)
            if full is not None:
                source = full

        progress = progress_of(source)
        self._progress_by_node_id[item_id] = progress
        return progress

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def _parent_ref(self, item: WorkItem) -> Optional[str]:
        """Id of the container an item would attach to, if any."""
        if item.parent:
            return item.parent
        parts = parse_item_path(item.source_path, self.plans_dir)
        if item.type in (ItemType.STORY, ItemType.BUG) and parts.feature_key:
            return self._ids_by_container_key.get(parts.feature_key)
        if item.type == ItemType.FEATURE and parts.epic_dir:
            return self._ids_by_container_key.get(parts.epic_dir)
        if item.type == ItemType.EPIC:
            return next((dep for dep in item.dependencies if dep.startswith("P")), None)
        return None

    def _walk_up(self, item_id: Optional[str]) -> Iterator[str]:
        """Yield item_id and the ids above it, following parent refs."""
        visited: set[str] = set()
        while item_id and item_id not in visited:
            visited.add(item_id)
            yield item_id
            item = self._items_by_id.get(item_id)
            item_id = self._parent_ref(item) if item is not None else None

    def _ancestor_ids(self, path: Path, *items: Optional[WorkItem]) -> set[str]:
        ids: set[str] = set()
        key = normalize_path(path)

        # Before and after the edit: a parent field can move an item anywhere
        for item in items:
            if item is not None:
                ids.add(item.id)
                ids.update(self._walk_up(self._parent_ref(item)))

        for container_key in parse_item_path(path, self.plans_dir).container_keys():
            ids.update(self._walk_up(self._ids_by_container_key.get(container_key)))

        for forest in self._hierarchy_by_group.values():
            for node in iter_nodes(forest):
                if normalize_path(node.item.source_path) == key:
                    ids.update(ancestor.item.id for ancestor in node.ancestors())

        return ids

    def invalidate(self, path: Path) -> None:
        """Drop one record and everything derived from it.

        Removes the record's item entry, clears every cached forest (a changed
        item can move between groups), and evicts progress for the record and
        every container above it, both where it was and where it now points.
        The record is re-read once here and the fresh entry kept, so a later
        load_item() or rescan does not parse it again.
        """
        path = Path(path)
        key = normalize_path(path)
        entry = self._items_by_path.pop(key, None)
        old_item = entry.item if entry is not None else None

        new_item = None
        try:
            mtime_ns = path.stat().st_mtime_ns
        except OSError:
            # Deleted record
            mtime_ns = None
        if mtime_ns is not None:
            new_item = self._parse(path)
            self._items_by_path[key] = _ItemEntry(item=new_item, mtime_ns=mtime_ns)
            self._stats.records_parsed += 1

        evicted = 0
        for item_id in self._ancestor_ids(path, old_item, new_item):
            if item_id in self._progress_by_node_id:
                del self._progress_by_node_id[item_id]
                evicted += 1

        self._hierarchy_by_group.clear()
        self._item_list = None
        logger.debug(f"[Cache] Invalidated {path.name}: {evicted} progress entries evicted")

    def invalidate_all(self) -> None:
        """Drop every tier."""
        logger.debug(f"[Cache] Clearing all tiers, progress hit rate {self._stats.progress_hit_rate:.0%}")
        self._items_by_path.clear()
        self._hierarchy_by_group.clear()
        self._progress_by_node_id.clear()
        self._item_list = None
        self._items_by_id = {}
        self._ids_by_container_key = {}

    def stats(self) -> CacheStats:
        """Snapshot of hit/miss counters."""
        return replace(self._stats)
