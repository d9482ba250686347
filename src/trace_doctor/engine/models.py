"""Data models for the diagnostic engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARNING: 1, Severity.CRITICAL: 2}


class Renderer(Protocol):
    """Turns a suggestion template plus its context into display text."""

    def render(self, template_name: str, context: dict[str, Any]) -> str: ...


@dataclass(frozen=True)
class Suggestion:
    template_name: str  # "performance/eager_loading", ...
    context: dict[str, Any] = field(default_factory=dict)
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class Finding:
    kind: str  # "sequential-load-loop", "unclosed-transaction", ...
    title: str  # "12 sequential loads on users"
    description: str
    severity: Severity
    evidence: tuple[int, ...]  # trace indices, never the records themselves
    subject: str = ""  # table or other identity; the title when empty
    suggestion: Optional[Suggestion] = None
    detector: str = ""

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.kind, self.subject or self.title)

    def render(self, renderer: Renderer) -> Optional[str]:
        if self.suggestion is None:
            return None
        return renderer.render(self.suggestion.template_name, dict(self.suggestion.context))


@dataclass
class TraceSummary:
    total_queries: int = 0
    select_queries: int = 0
    write_queries: int = 0
    total_duration_ms: float = 0.0
    entities_mapped: Optional[int] = None  # None when metadata was unavailable


@dataclass
class DiagnosticResult:
    findings: list[Finding]
    trace_summary: TraceSummary
    detector_errors: dict[str, str] = field(default_factory=dict)

    @property
    def has_critical(self) -> bool:
        return any(f.severity is Severity.CRITICAL for f in self.findings)
