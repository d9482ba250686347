"""PAGINATION_WITH_COLLECTION_JOIN: a row limit applied across a fetch join.

Severity: CRITICAL
Subject: statement text

``LIMIT n`` counts SQL rows, not root entities. When a to-many collection
is fetch-joined, one root spans several rows, so the limit silently cuts
the collection short and may return fewer roots than asked for.

A statement is flagged when it carries a numeric row limit, at least one
JOIN, and a projection drawing columns from two or more table aliases. A
JOIN pinned to a single ``locale`` (translation tables) yields one row per
root and is exempt.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

from ...logging_config import get_logger
from ...sql.structure import (
    extract_joins,
    extract_main_table,
    has_limit,
    has_locale_constraint,
    projection_aliases,
)
from ..models import Finding, Severity, Suggestion
from .helpers import normalize_statement, truncate_statement

if TYPE_CHECKING:
    from ...mapping import MappingSnapshot
    from ...trace import QueryRecord, QueryTrace

logger = get_logger(__name__)


class PaginationHazardDetector:
    """Detects row limits combined with collection fetch joins."""

    name = "pagination_hazard"
    kind = "pagination-with-collection-join"
    uses_mapping = False

    def detect(self, trace: QueryTrace, snapshot: MappingSnapshot) -> Iterator[Finding]:
        for record in trace:
            if not record.is_select or not has_limit(record.text):
                continue

            joins = extract_joins(record.text)
            if not joins:
                continue

            aliases = projection_aliases(record.text)
            if len(aliases) < 2:
                continue

            if has_locale_constraint(joins):
                logger.debug(f"Statement #{record.index} joins a single locale row, not a collection")
                continue

            yield self._build_finding(record, aliases)

    def _build_finding(self, record: QueryRecord, aliases: list[str]) -> Finding:
        main = extract_main_table(record.text)
        root = main.table if main is not None else "the root entity"

        return Finding(
            kind=self.kind,
            title="Row limit with collection fetch join",
            description=(
                f"Statement #{record.index} applies a row limit while selecting columns from "
                f"{len(aliases)} joined tables ({', '.join(aliases)}). The limit counts joined "
                f"rows, so collections of {root} are truncated and fewer root rows than "
                f"requested may come back. Paginate in two steps: select the limited root "
                f"identifiers first, then load the full graph for exactly those identifiers."
            ),
            severity=Severity.CRITICAL,
            evidence=(record.index,),
            subject=normalize_statement(record.text),
            suggestion=Suggestion(
                template_name="performance/set_max_results_with_collection_join",
                context={
                    "root_table": root,
                    "aliases": aliases,
                    "sql": truncate_statement(record.text),
                },
                tags=("critical", "data-loss", "pagination", "collections", "anti-pattern"),
            ),
            detector=self.name,
        )
