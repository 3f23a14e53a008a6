"""Shared constants for the planning engine."""

import re

# Work item ID validation (P1, E4, F16, S49, B2)
ITEM_ID_PATTERN = re.compile(r'^([PEFSB])(\d+)$')

# Directory markers that encode ancestry in a record's path
PROJECT_DIR_PATTERN = re.compile(r'^project-\d+-')
EPIC_DIR_PATTERN = re.compile(r'^epic-\d+-')
FEATURE_DIR_PATTERN = re.compile(r'^feature-\d+-')

# Sort rank by ID prefix; unknown prefixes sort last
TYPE_PREFIX_RANK = {
    "P": 1,
    "E": 2,
    "F": 3,
    "S": 4,
    "B": 5,
}
UNKNOWN_PREFIX_RANK = 999

RECORD_SUFFIX = ".md"
ARCHIVE_DIR_NAME = "archive"
