"""
Reader for cascade.env settings files.

Lines are plain KEY=value assignments. Nothing is expanded or executed, and a
value containing shell syntax is an error rather than a literal.
"""

import re
from pathlib import Path

# Backticks, $( and ${ substitution, ; && || and | chaining
SHELL_SYNTAX_RE = re.compile(r'`|\$[({]|;|&&|\|')

KEY_RE = re.compile(r'^[A-Z][A-Z0-9_]*$')

QUOTES = ('"', "'")


class EnvSyntaxError(ValueError):
    """A line in an env file is not a plain assignment."""

    def __init__(self, source: str, lineno: int, message: str):
        self.source = source
        self.lineno = lineno
        super().__init__(f"{source}:{lineno}: {message}")


def _parse_line(line: str, source: str, lineno: int) -> tuple[str, str]:
    key, sep, value = line.partition('=')
    if not sep:
        raise EnvSyntaxError(source, lineno, "Invalid syntax (no '=')")

    key = key.strip()
    if not KEY_RE.match(key):
        raise EnvSyntaxError(source, lineno, f"Invalid key '{key}'")

    value = value.strip()
    if len(value) >= 2 and value[0] in QUOTES and value[-1] == value[0]:
        value = value[1:-1]

    match = SHELL_SYNTAX_RE.search(value)
    if match:
        raise EnvSyntaxError(source, lineno, f"Forbidden pattern '{match.group()}' in value of {key}")
    return key, value


def parse_env(text: str, source: str = "<string>") -> dict[str, str]:
    """Parse env text into raw string values. Later assignments win."""
    result: dict[str, str] = {}
    for lineno, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if line and not line.startswith('#'):
            key, value = _parse_line(line, source, lineno)
            result[key] = value
    return result


def load_env(filepath: Path) -> dict[str, str]:
    """
    Read and parse an env file.

    Raises:
        FileNotFoundError: if the file is missing
        EnvSyntaxError: on the first malformed line
    """
    path = Path(filepath)
    return parse_env(path.read_text(), source=str(path))
