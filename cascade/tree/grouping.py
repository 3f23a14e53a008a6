"""
Grouping keys for cached hierarchy forests.

Each GroupKey names one independently cached forest: a status bucket in the
status view, or the whole tree (with or without archived items) in the
hierarchy view.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cascade.lib.paths import effective_status, is_item_archived
from cascade.lib.types import Status, WorkItem


class ViewMode(Enum):
    """How the renderer lays out the tree.

    - STATUS: one bucket per status, each holding that status's forest
    - HIERARCHY: the whole Project -> Epic -> Feature -> Story tree
    """

    STATUS = "status"
    HIERARCHY = "hierarchy"


@dataclass(frozen=True)
class GroupKey:
    """Partition under which a hierarchy forest is cached."""
    status: Optional[Status] = None   # Set for status buckets
    include_archived: bool = True     # Only meaningful for whole-tree keys

    @classmethod
    def for_status(cls, status: Status) -> "GroupKey":
        return cls(status=status)

    @classmethod
    def whole_tree(cls, include_archived: bool = True) -> "GroupKey":
        return cls(status=None, include_archived=include_archived)

    @property
    def label(self) -> str:
        if self.status is not None:
            return self.status.value
        return "all" if self.include_archived else "active"

    def matches(self, item: WorkItem) -> bool:
        """True if the item belongs in this key's forest."""
        if self.status is not None:
            return effective_status(item) == self.status
        return self.include_archived or not is_item_archived(item)


COMPLETE_TREE = GroupKey.whole_tree(include_archived=True)


def visible_statuses(show_archived: bool) -> list[Status]:
    """Status buckets shown in the status view, in display order."""
    return [s for s in Status if show_archived or s != Status.ARCHIVED]


def root_keys(view_mode: ViewMode, show_archived: bool) -> list[GroupKey]:
    """Group keys whose forests the renderer needs for a view."""
    if view_mode == ViewMode.HIERARCHY:
        return [GroupKey.whole_tree(include_archived=show_archived)]
    return [GroupKey.for_status(s) for s in visible_statuses(show_archived)]
