"""
Path helpers for consistent cache keys and archive detection.

Watchers, the item cache and the hierarchy builder all key on record paths,
so every path goes through normalize_path() before it is used as a key.
"""

from pathlib import Path

from cascade.lib.constants import ARCHIVE_DIR_NAME
from cascade.lib.types import Status, WorkItem


def normalize_path(path: Path | str) -> str:
    """Normalize a record path for use as a cache key.

    Converts backslashes to forward slashes and lowercases, so
    'D:\\Plans\\story-40.md' and 'd:/plans/story-40.md' share one key.
    """
    return str(path).replace("\\", "/").lower()


def is_path_archived(path: Path | str) -> bool:
    """True if the path sits inside an `archive` directory.

    Matches the directory segment exactly: `archive-old/` or `archived/` do not count.
    """
    normalized = normalize_path(path)
    marker = f"/{ARCHIVE_DIR_NAME}"
    return f"{marker}/" in normalized or normalized.endswith(marker)


def is_item_archived(item: WorkItem) -> bool:
    """An item is archived by status or by living under an archive directory."""
    if item.status == Status.ARCHIVED:
        return True
    return is_path_archived(item.source_path)


def effective_status(item: WorkItem) -> Status:
    """Status bucket an item is shown in. Archived items go to ARCHIVED regardless of status."""
    return Status.ARCHIVED if is_item_archived(item) else item.status


def relative_parts(path: Path, root: Path | None) -> list[str]:
    """Split a path into segments, relative to root when the path lives under it."""
    normalized = Path(str(path).replace("\\", "/"))
    if root is not None:
        try:
            normalized = normalized.relative_to(Path(str(root).replace("\\", "/")))
        except ValueError:
            pass
    return list(normalized.parts)
