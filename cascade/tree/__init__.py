"""
Tree module for cascade.

Builds the planning hierarchy from flat work items, aggregates completion
progress, and caches both per grouping key.
"""

from cascade.tree.hierarchy import (
    HierarchyNode,
    build_hierarchy,
    find_node,
    iter_nodes,
    parse_item_path,
)
from cascade.tree.progress import ProgressInfo, progress_of, render_progress_bar
from cascade.tree.grouping import COMPLETE_TREE, GroupKey, ViewMode, root_keys
from cascade.tree.cache import CacheStats, PlanningCache

__all__ = [
    "HierarchyNode",
    "build_hierarchy",
    "find_node",
    "iter_nodes",
    "parse_item_path",
    "ProgressInfo",
    "progress_of",
    "render_progress_bar",
    "COMPLETE_TREE",
    "GroupKey",
    "ViewMode",
    "root_keys",
    "CacheStats",
    "PlanningCache",
]
