"""
Trace Doctor - ORM query-trace diagnostics

Reads the ordered log of statements one unit of work executed, together
with the ORM's mapping metadata, and reports the access anti-patterns
hidden in it: N+1 lookup loops, wasteful JOINs, broken transaction
boundaries and row limits that truncate collections.
"""

__version__ = "0.1.0"

from .config import AnalysisConfig, DetectorThresholds, load_config
from .engine import DiagnosticKernel, DiagnosticResult, Finding, Severity, Suggestion
from .logging_config import setup_logging, setup_logging_from_config
from .mapping import Association, Cardinality, EntityMapping, FetchStrategy, MappingSnapshot
from .trace import QueryRecord, QueryTrace, StackFrame, TraceRecorder

__all__ = [
    "DiagnosticKernel",  # Main entry point
    "DiagnosticResult",
    "Finding",
    "Severity",
    "Suggestion",
    "AnalysisConfig",
    "DetectorThresholds",
    "load_config",
    "setup_logging",
    "setup_logging_from_config",
    "QueryRecord",
    "QueryTrace",
    "StackFrame",
    "TraceRecorder",
    "Association",
    "Cardinality",
    "EntityMapping",
    "FetchStrategy",
    "MappingSnapshot",
]
