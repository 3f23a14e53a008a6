"""
Frontmatter parser for planning records.

Each record is a Markdown file opening with a YAML block:

    ---
    item: S49
    title: Core foundation
    type: story
    status: In Progress
    priority: High
    created: 2025-10-12
    updated: 2025-10-14
    ---

Parsing never raises: parse_frontmatter() returns a ParseResult and
parse_record() returns None for anything that is not a valid record.
"""

import datetime
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from cascade.lib.types import Estimate, ItemType, Priority, Status, WorkItem
from cascade.lib.validate import ValidationError, validate

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r'\A---[ \t]*\n(.*?)\n---[ \t]*(?:\n|\Z)', re.DOTALL)

DATE_FIELDS = ("created", "updated")


@dataclass
class ParseResult:
    """Outcome of parsing one record's frontmatter."""
    success: bool
    frontmatter: Optional[dict] = None
    error: Optional[str] = None


def _normalize_dates(data: dict) -> dict:
    """YAML loads bare YYYY-MM-DD values as dates; the schema wants strings."""
    normalized = dict(data)
    for key in DATE_FIELDS:
        value = normalized.get(key)
        if isinstance(value, datetime.datetime):
            normalized[key] = value.date().isoformat()
        elif isinstance(value, datetime.date):
            normalized[key] = value.isoformat()
    return normalized


def parse_frontmatter(content: str) -> ParseResult:
    """Extract and validate the YAML frontmatter block of a record."""
    match = FRONTMATTER_RE.match(content.replace("\r\n", "\n"))
    if not match:
        return ParseResult(success=False, error="No frontmatter found (missing --- delimiters)")

    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        return ParseResult(success=False, error=f"Invalid YAML syntax: {e}")

    if not isinstance(data, dict):
        return ParseResult(
            success=False,
            error="Frontmatter must be a YAML mapping (not list, null, or scalar)",
        )

    data = _normalize_dates(data)

    try:
        validate(data, "frontmatter")
    except ValidationError as e:
        return ParseResult(success=False, error=str(e))

    return ParseResult(success=True, frontmatter=data)


def to_work_item(frontmatter: dict, path: Path) -> WorkItem:
    """Build a WorkItem from validated frontmatter."""
    estimate = frontmatter.get("estimate")
    return WorkItem(
        id=frontmatter["item"],
        title=frontmatter["title"],
        type=ItemType(frontmatter["type"]),
        status=Status(frontmatter["status"]),
        priority=Priority(frontmatter["priority"]),
        source_path=path,
        parent=frontmatter.get("parent"),
        dependencies=tuple(frontmatter.get("dependencies") or ()),
        estimate=Estimate(estimate) if estimate else None,
        created=frontmatter["created"],
        updated=frontmatter["updated"],
    )


def parse_record(path: Path) -> Optional[WorkItem]:
    """Read and parse one record file.

    Returns None on missing files and malformed metadata; the reason is logged.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"[Parser] Cannot read {path}: {e}")
        return None

    result = parse_frontmatter(content)
    if not result.success:
        logger.warning(f"[Parser] Skipping {path}: {result.error}")
        return None

    return to_work_item(result.frontmatter, path)
