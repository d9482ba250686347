"""SEQUENTIAL_LOAD_LOOP: the same key lookup repeated in a tight run.

Severity: WARNING, CRITICAL from ``critical_threshold`` loads
Subject: table

Fetching a collection and then loading each element's relation one row
at a time produces a burst of ``SELECT ... WHERE id = ?`` statements on one
table. A group only counts as a loop when its members sit close together
in the trace: the average index gap must not exceed ``gap_window``. The
same lookup spread thinly across a long-running process is not a loop.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

import numpy as np

from ...logging_config import get_logger
from ...sql.structure import key_lookup_table
from ..models import Finding, Severity, Suggestion
from .helpers import relation_from_call_site, table_to_entity_name

if TYPE_CHECKING:
    from ...mapping import MappingSnapshot
    from ...trace import QueryRecord, QueryTrace

logger = get_logger(__name__)


class SequentialLoadDetector:
    """Detects N+1 lookups issued one row at a time inside a loop."""

    name = "sequential_load"
    kind = "sequential-load-loop"
    uses_mapping = False

    def __init__(self, threshold: int = 10, gap_window: float = 5.0, critical_threshold: int = 50):
        self.threshold = threshold
        self.gap_window = gap_window
        self.critical_threshold = critical_threshold

    def detect(self, trace: QueryTrace, snapshot: MappingSnapshot) -> Iterator[Finding]:
        for table, members in self._group_lookups(trace).items():
            if len(members) < self.threshold:
                continue

            average_gap = self._average_gap(members)
            if average_gap > self.gap_window:
                logger.debug(
                    f"{len(members)} lookups on {table} are spread out "
                    f"(average gap {average_gap:.1f}), not a loop"
                )
                continue

            yield self._build_finding(table, members, average_gap)

    def _group_lookups(self, trace: QueryTrace) -> dict[str, list[QueryRecord]]:
        """Group key lookups by table, keeping trace order within each group."""
        groups: dict[str, list[QueryRecord]] = {}
        for record in trace:
            table = key_lookup_table(record.text)
            if table is None:
                continue
            groups.setdefault(table, []).append(record)
        return groups

    @staticmethod
    def _average_gap(members: list[QueryRecord]) -> float:
        if len(members) < 2:
            return 0.0
        gaps = np.diff(np.array([r.index for r in members], dtype=np.int64))
        return float(gaps.mean())

    def _build_finding(self, table: str, members: list[QueryRecord], average_gap: float) -> Finding:
        count = len(members)
        total_ms = sum(r.duration_ms for r in members)
        entity = table_to_entity_name(table)
        relation = relation_from_call_site(members[0].call_site)

        severity = Severity.CRITICAL if count >= self.critical_threshold else Severity.WARNING

        return Finding(
            kind=self.kind,
            title=f"Sequential loads in loop: {count} queries on {entity}",
            description=(
                f"Detected {count} sequential single-row loads on table '{table}' "
                f"(entity {entity}, relation: {relation}) taking {total_ms:.2f}ms in total, "
                f"on average {average_gap:.1f} statements apart. Fetch the relation with a "
                f"JOIN or a batched IN (...) query instead of one query per row "
                f"(threshold: {self.threshold})."
            ),
            severity=severity,
            evidence=tuple(r.index for r in members),
            subject=table,
            suggestion=Suggestion(
                template_name="performance/eager_loading",
                context={
                    "entity": entity,
                    "relation": relation,
                    "table": table,
                    "query_count": count,
                    "total_duration_ms": total_ms,
                },
                tags=("performance", "n+1", "lazy-loading"),
            ),
            detector=self.name,
        )
