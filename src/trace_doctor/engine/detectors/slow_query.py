"""SLOW_QUERY: individual statements above the duration threshold.

Severity: WARNING, CRITICAL from ``critical_ms``
Subject: statement text
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

from ...sql.structure import (
    group_by_columns,
    has_distinct,
    has_leading_wildcard_like,
    has_subquery,
    order_by_columns,
)
from ..models import Finding, Severity, Suggestion
from .helpers import normalize_statement, truncate_statement

if TYPE_CHECKING:
    from ...mapping import MappingSnapshot
    from ...trace import QueryRecord, QueryTrace


def optimization_hints(sql: str) -> list[str]:
    """Structural hints for speeding up a statement, most specific first."""
    hints = []
    if has_subquery(sql):
        hints.append("Rewrite the subquery as a JOIN or move it into a separate query")
    order_by = order_by_columns(sql)
    if order_by:
        hints.append(f"Add an index covering the ORDER BY columns: {', '.join(order_by)}")
    group_by = group_by_columns(sql)
    if group_by:
        hints.append(f"Add an index covering the GROUP BY columns: {', '.join(group_by)}")
    if has_leading_wildcard_like(sql):
        hints.append("LIKE with a leading wildcard cannot use an index; consider full-text search")
    if has_distinct(sql):
        hints.append("DISTINCT often hides duplicate rows from a JOIN; check the JOIN is needed")
    return hints


class SlowQueryDetector:
    """Flags statements whose execution time exceeds a threshold."""

    name = "slow_query"
    kind = "slow-query"
    uses_mapping = False

    def __init__(self, threshold_ms: float = 100.0, critical_ms: float = 1000.0):
        self.threshold_ms = threshold_ms
        self.critical_ms = critical_ms

    def detect(self, trace: QueryTrace, snapshot: MappingSnapshot) -> Iterator[Finding]:
        for record in trace:
            if record.is_slow(self.threshold_ms):
                yield self._build_finding(record)

    def _build_finding(self, record: QueryRecord) -> Finding:
        severity = Severity.CRITICAL if record.duration_ms >= self.critical_ms else Severity.WARNING
        hints = optimization_hints(record.text)

        return Finding(
            kind=self.kind,
            title=f"Slow query ({record.duration_ms:.2f}ms)",
            description=(
                f"Statement #{record.index} took {record.duration_ms:.2f}ms "
                f"(threshold: {self.threshold_ms:.0f}ms)."
            ),
            severity=severity,
            evidence=(record.index,),
            subject=normalize_statement(record.text),
            suggestion=Suggestion(
                template_name="performance/slow_query",
                context={
                    "sql": truncate_statement(record.text),
                    "duration_ms": record.duration_ms,
                    "threshold_ms": self.threshold_ms,
                    "hints": hints,
                    "row_count": record.row_count,
                },
                tags=("performance", "slow-query"),
            ),
            detector=self.name,
        )
