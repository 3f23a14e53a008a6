"""
Schema checks for planning record frontmatter.

Frontmatter is checked against a JSON Schema before it becomes a WorkItem.
Only the most relevant violation is reported; a record with a bad status and
a missing title surfaces one readable message rather than a list.
"""

import json
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema.exceptions import best_match
from jsonschema.protocols import Validator

SCHEMAS_DIR = Path(__file__).parent.parent / "schemas"


class ValidationError(Exception):
    """A record does not match its schema."""

    def __init__(self, schema_name: str, message: str, path: str = None):
        self.schema_name = schema_name
        self.path = path
        super().__init__(f"[{schema_name}] {message}" + (f" at {path}" if path else ""))


# Compiled validators by schema name
_validators: dict[str, Validator] = {}


def _get_validator(schema_name: str) -> Validator:
    validator = _validators.get(schema_name)
    if validator is None:
        schema_path = SCHEMAS_DIR / f"{schema_name}.schema.json"
        try:
            schema = json.loads(schema_path.read_text())
        except FileNotFoundError:
            raise ValidationError(schema_name, f"Schema file not found: {schema_path}") from None
        cls = jsonschema.validators.validator_for(schema)
        cls.check_schema(schema)
        validator = _validators[schema_name] = cls(schema)
    return validator


def validate(data: Any, schema_name: str) -> None:
    """
    Check data against a named schema.

    Raises:
        ValidationError: naming the offending field as a dotted path, or
            "(root)" when the mapping itself is wrong (e.g. a missing key)
    """
    error = best_match(_get_validator(schema_name).iter_errors(data))
    if error is None:
        return
    path = ".".join(str(p) for p in error.absolute_path) or "(root)"
    raise ValidationError(schema_name, error.message, path)
