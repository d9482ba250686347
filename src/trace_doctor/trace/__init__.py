"""Captured statement traces."""

from .models import QueryRecord, QueryTrace, StackFrame, TraceRecorder
from .statements import StatementKind, classify_statement

__all__ = [
    "QueryRecord",
    "QueryTrace",
    "StackFrame",
    "TraceRecorder",
    "StatementKind",
    "classify_statement",
]
