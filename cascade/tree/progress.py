"""
Completion progress for container nodes.

Progress is shallow: a feature counts its stories and bugs, an epic counts its
features, a project counts its epics. Grandchildren are never inspected.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from cascade.lib.types import Status
from cascade.tree.hierarchy import HierarchyNode

logger = logging.getLogger(__name__)

PROGRESS_BAR_LENGTH = 10
FILLED_BLOCK = "█"
EMPTY_BLOCK = "░"


@dataclass(frozen=True)
class ProgressInfo:
    """Completion counts for one container's direct children."""
    completed: int
    total: int
    percentage: int  # 0-100, rounded
    display: str     # "(3/5)"

    @classmethod
    def from_counts(cls, completed: int, total: int, label: str = "") -> "ProgressInfo":
        """Build a ProgressInfo, clamping counts that break 0 <= completed <= total."""
        if total < 0:
            logger.warning(f"[Progress] {label}: total={total} below zero, clamping to 0")
            total = 0
        if completed < 0 or completed > total:
            clamped = min(max(completed, 0), total)
            logger.warning(
                f"[Progress] {label}: completed={completed} outside 0..{total}, clamping to {clamped}"
            )
            completed = clamped

        # Half-up rounding: 1/8 -> 13%
        percentage = (completed * 200 + total) // (2 * total) if total else 0
        return cls(
            completed=completed,
            total=total,
            percentage=percentage,
            display=f"({completed}/{total})",
        )


def progress_of(node: HierarchyNode) -> Optional[ProgressInfo]:
    """Count completed direct children of a node.

    Returns None for leaf types (stories, bugs) and for containers that have
    no children yet.
    """
    if node.item.is_leaf or not node.children:
        return None

    completed = sum(1 for child in node.children if child.item.status == Status.COMPLETED)
    return ProgressInfo.from_counts(completed, len(node.children), label=node.item.id)


def render_progress_bar(progress: ProgressInfo) -> str:
    """Render a fixed-width bar: '█████░░░░░ 50% (1/2)'."""
    filled = (progress.percentage * PROGRESS_BAR_LENGTH + 50) // 100
    filled = min(max(filled, 0), PROGRESS_BAR_LENGTH)
    bar = FILLED_BLOCK * filled + EMPTY_BLOCK * (PROGRESS_BAR_LENGTH - filled)
    return f"{bar} {progress.percentage}% ({progress.completed}/{progress.total})"
