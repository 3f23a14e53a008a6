"""
cascade show - Print the planning tree with progress.
"""

from pathlib import Path
from typing import Callable, Iterator, Optional

from cascade.lib.config import EngineConfig
from cascade.lib.paths import effective_status
from cascade.lib.types import WorkItem
from cascade.tree.cache import PlanningCache
from cascade.tree.grouping import GroupKey, ViewMode, root_keys
from cascade.tree.hierarchy import HierarchyNode, iter_nodes
from cascade.tree.progress import ProgressInfo, render_progress_bar

INDENT = "  "

ProgressLookup = Callable[[HierarchyNode], Optional[ProgressInfo]]


def format_item_label(item: WorkItem) -> str:
    """'Story S75 - Archive Detection', or 'Story S75' without a title."""
    type_label = item.type.value.capitalize()
    if not item.title:
        return f"{type_label} {item.id}"
    return f"{type_label} {item.id} - {item.title}"


def format_description(item: WorkItem, progress: Optional[ProgressInfo]) -> str:
    """Status badge, followed by the progress bar for containers with children."""
    badge = effective_status(item).value
    if progress is None:
        return badge
    return f"{badge} {render_progress_bar(progress)}"


def group_label(key: GroupKey, forest: list[HierarchyNode]) -> str:
    """Status bucket header with item count: 'Ready (5)'."""
    count = sum(1 for _ in iter_nodes(forest))
    return f"{key.label} ({count})"


def render_nodes(
    nodes: list[HierarchyNode],
    get_progress: ProgressLookup,
    depth: int = 0,
) -> Iterator[str]:
    for node in nodes:
        label = format_item_label(node.item)
        description = format_description(node.item, get_progress(node))
        yield f"{INDENT * depth}{label}  {description}"
        yield from render_nodes(node.children, get_progress, depth + 1)


def render_tree(cache: PlanningCache, view_mode: ViewMode, show_archived: bool) -> list[str]:
    """Render the tree for a view as text lines."""
    lines = []
    for key in root_keys(view_mode, show_archived):
        forest = cache.get_hierarchy(key)
        if view_mode == ViewMode.STATUS:
            lines.append(group_label(key, forest))
            lines.extend(render_nodes(forest, cache.get_progress, depth=1))
        else:
            lines.extend(render_nodes(forest, cache.get_progress))
    return lines


def cmd_show(args, workspace: Path, config: EngineConfig) -> int:
    """Print the planning tree."""
    plans_dir = workspace / config.plans_dir
    if not plans_dir.is_dir():
        print(f"ERROR: Plans directory not found: {plans_dir}")
        return 2

    cache = PlanningCache(plans_dir)
    lines = render_tree(cache, ViewMode(args.view), args.archived)
    if not cache.get_items():
        print(f"No planning records under {plans_dir}")
        return 0

    for line in lines:
        print(line)
    return 0
