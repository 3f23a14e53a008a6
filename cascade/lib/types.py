"""
Shared data types for the planning engine.

This module contains the work-item snapshot and its enums, used across the
parser, the hierarchy builder and the cache to avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class ItemType(Enum):
    """Kind of planning record. Values match the frontmatter `type` field."""

    PROJECT = "project"
    EPIC = "epic"
    FEATURE = "feature"
    STORY = "story"
    BUG = "bug"
    SPEC = "spec"
    PHASE = "phase"


class Status(Enum):
    """Lifecycle state of a work item.

    Values match the frontmatter `status` field. Declaration order is the
    order status buckets are displayed in.
    """

    NOT_STARTED = "Not Started"
    IN_PLANNING = "In Planning"
    READY = "Ready"
    IN_PROGRESS = "In Progress"
    BLOCKED = "Blocked"
    COMPLETED = "Completed"
    ARCHIVED = "Archived"


class Priority(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Estimate(Enum):
    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"


LEAF_TYPES = frozenset({ItemType.STORY, ItemType.BUG})


def parse_status(status_str: str | None) -> Status | None:
    """Parse a status string into Status enum.

    Returns None if status is unknown.
    """
    if status_str is None:
        return None
    for status in Status:
        if status.value == status_str:
            return status
    return None


@dataclass(frozen=True)
class WorkItem:
    """Immutable snapshot of one planning record.

    A fresh WorkItem is produced every time the record is re-parsed; nothing
    mutates one in place.
    """
    id: str                                    # S49, F16, E4, P1, B2
    title: str
    type: ItemType
    status: Status
    priority: Priority
    source_path: Path                          # Unique key in the item cache
    parent: Optional[str] = None               # Explicit parent id from frontmatter
    dependencies: tuple[str, ...] = field(default_factory=tuple)
    estimate: Optional[Estimate] = None
    created: str = ""                          # YYYY-MM-DD
    updated: str = ""                          # YYYY-MM-DD

    @property
    def is_leaf(self) -> bool:
        """Stories and bugs never have children."""
        return self.type in LEAF_TYPES
