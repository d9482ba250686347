"""Statement-shape classification.

Classification is structural: it looks at the leading keyword of a statement
after stripping comments and whitespace. Anything that isn't recognised is
``StatementKind.OTHER``; nothing here raises on odd input.
"""

from __future__ import annotations

import re
from enum import Enum

_LEADING_COMMENTS = re.compile(r"^(?:\s*(?:/\*.*?\*/|--[^\n]*(?:\n|$)))*\s*", re.DOTALL)


class StatementKind(Enum):
    """Coarse statement kinds used by the detectors."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    BEGIN = "begin"
    COMMIT = "commit"
    ROLLBACK = "rollback"
    OTHER = "other"

    @property
    def is_write(self) -> bool:
        return self in (StatementKind.INSERT, StatementKind.UPDATE, StatementKind.DELETE)


def strip_leading_comments(text: str) -> str:
    """Drop ``/* ... */`` and ``-- ...`` comments preceding the statement."""
    return _LEADING_COMMENTS.sub("", text, count=1)


def classify_statement(text: str) -> StatementKind:
    """Return the kind of a statement from its leading keyword."""
    if not text:
        return StatementKind.OTHER

    head = strip_leading_comments(text).upper()

    if head.startswith("SELECT") or head.startswith("WITH"):
        return StatementKind.SELECT
    if head.startswith("INSERT"):
        return StatementKind.INSERT
    if head.startswith("UPDATE"):
        return StatementKind.UPDATE
    if head.startswith("DELETE"):
        return StatementKind.DELETE
    if head.startswith("START TRANSACTION") or head.startswith("BEGIN"):
        return StatementKind.BEGIN
    if head.startswith("COMMIT") or head.startswith("END TRANSACTION"):
        return StatementKind.COMMIT
    if head.startswith("ROLLBACK"):
        # ROLLBACK TO SAVEPOINT keeps the transaction open
        if re.match(r"ROLLBACK\s+(?:WORK\s+)?TO\b", head):
            return StatementKind.OTHER
        return StatementKind.ROLLBACK

    return StatementKind.OTHER
