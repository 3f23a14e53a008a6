"""
Hierarchy builder for planning items.

Reconstructs the Project -> Epic -> Feature -> Story/Bug tree from a flat list
of WorkItems. Parent links come from the `parent` frontmatter field when
present, otherwise from directory markers in the record path:

    plans/epic-04-kanban/epic.md                       -> epic container "epic-04-kanban"
    plans/epic-04-kanban/feature-16-base/feature.md    -> feature container "epic-04-kanban/feature-16-base"
    plans/epic-04-kanban/feature-16-base/story-49.md   -> story under that feature
    plans/story-19-standalone.md                       -> orphan story (root level)

The build runs in a fixed number of passes over flat lookup maps, so a
missing or out-of-order container can only turn a child into an orphan.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from cascade.lib.constants import (
    EPIC_DIR_PATTERN,
    FEATURE_DIR_PATTERN,
    ITEM_ID_PATTERN,
    PROJECT_DIR_PATTERN,
    TYPE_PREFIX_RANK,
    UNKNOWN_PREFIX_RANK,
)
from cascade.lib.paths import normalize_path, relative_parts
from cascade.lib.types import ItemType, WorkItem

logger = logging.getLogger(__name__)

UNKNOWN_NUMBER = 10**9


@dataclass(frozen=True)
class ItemPathParts:
    """Container directories found in a record path."""
    project_dir: Optional[str]
    epic_dir: Optional[str]
    feature_dir: Optional[str]
    file_name: str

    @property
    def feature_key(self) -> Optional[str]:
        """Lookup key for the enclosing feature container.

        Qualified by the epic directory so two epics may reuse a feature dir name.
        """
        if not self.feature_dir:
            return None
        if self.epic_dir:
            return f"{self.epic_dir}/{self.feature_dir}"
        return self.feature_dir

    def container_keys(self) -> list[str]:
        """Ancestry keys of every container enclosing this path, outermost first."""
        keys = []
        if self.epic_dir:
            keys.append(self.epic_dir)
        if self.feature_key:
            keys.append(self.feature_key)
        return keys


@dataclass(eq=False)
class HierarchyNode:
    """One item in a hierarchy forest.

    A node owns its children. `parent` is a back-reference used for walking
    upward; it is None for roots and orphans.
    """
    item: WorkItem
    children: list["HierarchyNode"] = field(default_factory=list)
    parent: Optional["HierarchyNode"] = field(default=None, repr=False)

    def ancestors(self) -> Iterator["HierarchyNode"]:
        """Yield parent, grandparent, ... up to the root."""
        node = self.parent
        while node is not None:
            yield node
            node = node.parent


def parse_item_path(path: Path, root: Optional[Path] = None) -> ItemPathParts:
    """Find project/epic/feature directory markers in a record path.

    The first segment matching each marker wins. `root` trims the workspace
    prefix so directories above it never count as containers.
    """
    parts = relative_parts(path, root)
    file_name = parts[-1] if parts else ""
    directories = parts[:-1]

    def first_match(pattern) -> Optional[str]:
        for part in directories:
            if pattern.match(part):
                return part
        return None

    return ItemPathParts(
        project_dir=first_match(PROJECT_DIR_PATTERN),
        epic_dir=first_match(EPIC_DIR_PATTERN),
        feature_dir=first_match(FEATURE_DIR_PATTERN),
        file_name=file_name,
    )


def item_sort_key(item: WorkItem) -> tuple:
    """Total order for siblings: type prefix rank, numeric id, then id text and path.

    P1 < E1 < F1 < S1 < B1, and S2 < S10.
    """
    match = ITEM_ID_PATTERN.match(item.id)
    if match:
        prefix, number = match.group(1), int(match.group(2))
    else:
        prefix = item.id[:1]
        digits = "".join(ch for ch in item.id[1:] if ch.isdigit())
        number = int(digits) if digits else UNKNOWN_NUMBER
    rank = TYPE_PREFIX_RANK.get(prefix, UNKNOWN_PREFIX_RANK)
    return (rank, number, item.id, normalize_path(item.source_path))


def sort_nodes(nodes: list[HierarchyNode]) -> None:
    """Sort a node list and every descendant list in place."""
    nodes.sort(key=lambda node: item_sort_key(node.item))
    for node in nodes:
        if node.children:
            sort_nodes(node.children)


def _attach(child: HierarchyNode, parent: HierarchyNode) -> None:
    child.parent = parent
    parent.children.append(child)


def build_hierarchy(
    items: list[WorkItem],
    root: Optional[Path] = None,
    diagnostics: Optional[list[str]] = None,
) -> list[HierarchyNode]:
    """Build a sorted forest from a flat list of items.

    Args:
        items: Work items to arrange; any subset of the workspace is fine
        root: Workspace root used to trim record paths before marker parsing
        diagnostics: If given, one message is appended per dangling parent
            reference or duplicate container

    Returns:
        Root-level nodes: projects, unattached epics/features and orphans
    """
    def note(message: str) -> None:
        logger.debug(f"[Hierarchy] {message}")
        if diagnostics is not None:
            diagnostics.append(message)

    project_map: dict[str, HierarchyNode] = {}   # item id -> project
    epic_map: dict[str, HierarchyNode] = {}      # epic dir (or id) -> epic
    feature_map: dict[str, HierarchyNode] = {}   # epic dir/feature dir (or id) -> feature
    leaves: list[tuple[HierarchyNode, ItemPathParts]] = []
    orphans: list[HierarchyNode] = []
    roots: list[HierarchyNode] = []

    # Pass 1: create nodes and index containers
    for item in items:
        parts = parse_item_path(item.source_path, root)
        node = HierarchyNode(item=item)

        if item.type == ItemType.PROJECT:
            container_map, key = project_map, item.id
        elif item.type == ItemType.EPIC:
            # Epics outside a marker directory are still reachable by id
            container_map, key = epic_map, parts.epic_dir or item.id
        elif item.type == ItemType.FEATURE:
            container_map, key = feature_map, parts.feature_key or item.id
        elif item.type in (ItemType.STORY, ItemType.BUG):
            leaves.append((node, parts))
            continue
        else:
            # Specs and phases
            orphans.append(node)
            continue

        if key in container_map:
            note(f"Duplicate {item.type.value} container '{key}': {item.id} shown at root")
            orphans.append(node)
        else:
            container_map[key] = node

    epics_by_id = {node.item.id: node for node in epic_map.values()}
    features_by_id = {node.item.id: node for node in feature_map.values()}

    # Pass 2: stories and bugs -> features
    for node, parts in leaves:
        item = node.item
        if item.parent:
            parent = features_by_id.get(item.parent)
            ref = item.parent
        elif parts.feature_key:
            parent = feature_map.get(parts.feature_key)
            ref = parts.feature_key
        else:
            orphans.append(node)
            continue

        if parent is not None:
            _attach(node, parent)
        else:
            note(f"Parent feature not found for {item.id}: {ref}")
            orphans.append(node)

    # Pass 3: features -> epics
    for node in feature_map.values():
        item = node.item
        parts = parse_item_path(item.source_path, root)
        if item.parent:
            parent = epics_by_id.get(item.parent)
            ref = item.parent
        elif parts.epic_dir:
            parent = epic_map.get(parts.epic_dir)
            ref = parts.epic_dir
        else:
            roots.append(node)
            continue

        if parent is not None:
            _attach(node, parent)
        else:
            note(f"Parent epic not found for {item.id}: {ref}")
            roots.append(node)

    # Pass 4: epics -> projects
    for node in epic_map.values():
        item = node.item
        ref = item.parent or next((dep for dep in item.dependencies if dep.startswith("P")), None)
        if ref is None:
            roots.append(node)
            continue

        parent = project_map.get(ref)
        if parent is not None:
            _attach(node, parent)
        else:
            note(f"Parent project not found for {item.id}: {ref}")
            roots.append(node)

    roots.extend(project_map.values())
    roots.extend(orphans)

    if items:
        logger.debug(
            f"[Hierarchy] Built {len(roots)} roots from {len(items)} items "
            f"(projects={len(project_map)}, epics={len(epic_map)}, "
            f"features={len(feature_map)}, stories/bugs={len(leaves)}, orphans={len(orphans)})"
        )

    sort_nodes(roots)
    return roots


def iter_nodes(forest: list[HierarchyNode]) -> Iterator[HierarchyNode]:
    """Pre-order walk over every node in a forest."""
    stack = list(reversed(forest))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_node(forest: list[HierarchyNode], item_id: str) -> Optional[HierarchyNode]:
    """Depth-first search for the node holding item_id."""
    for node in iter_nodes(forest):
        if node.item.id == item_id:
            return node
    return None
