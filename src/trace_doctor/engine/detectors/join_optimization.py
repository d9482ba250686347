"""JOIN_OPTIMIZATION: JOINs that cost more than they need to, or nothing at all.

Severity: WARNING/CRITICAL depending on check
Subject: table

Four structural checks run over every SELECT that joins:
- too-many-joins: more JOINs than ``max_joins_recommended``
- left-join-on-not-null: a LEFT JOIN over a relation the mapping declares
  non-nullable can never null-pad a row, so INNER JOIN is equivalent
- unused-join: the joined alias is never referenced outside its own JOIN
- multiple-collection-joins: two or more to-many collections LEFT-joined
  from the same root, multiplying rows

Mapping access goes through the snapshot. If its provider is unavailable
the error escapes this generator and the kernel records it.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Optional

from ...logging_config import get_logger
from ...sql.structure import (
    JoinFragment,
    TableRef,
    extract_joins,
    extract_main_table,
    is_alias_used,
    mentions_column,
)
from ..models import Finding, Severity, Suggestion
from .helpers import truncate_statement

if TYPE_CHECKING:
    from ...mapping import Association, EntityMapping, MappingSnapshot
    from ...trace import QueryRecord, QueryTrace

logger = get_logger(__name__)

TOO_MANY_JOINS = "too-many-joins"
LEFT_JOIN_ON_NOT_NULL = "left-join-on-not-null"
UNUSED_JOIN = "unused-join"
MULTIPLE_COLLECTION_JOINS = "multiple-collection-joins"


class JoinOptimizationDetector:
    """Detects excessive, loose, unused and row-multiplying JOINs."""

    name = "join_optimization"
    uses_mapping = True

    def __init__(self, max_joins_recommended: int = 5, max_joins_critical: int = 8):
        self.max_joins_recommended = max_joins_recommended
        self.max_joins_critical = max_joins_critical

    def detect(self, trace: QueryTrace, snapshot: MappingSnapshot) -> Iterator[Finding]:
        # Local to one call: identical statements collapse to one finding
        seen: set[tuple[str, str]] = set()

        for record in trace:
            if not record.is_select:
                continue

            joins = extract_joins(record.text)
            if not joins:
                continue

            for finding in self._check_statement(record, joins, snapshot):
                if finding.dedup_key in seen:
                    continue
                seen.add(finding.dedup_key)
                yield finding

    def _check_statement(
        self, record: QueryRecord, joins: list[JoinFragment], snapshot: MappingSnapshot
    ) -> Iterator[Finding]:
        main = extract_main_table(record.text)
        if main is None:
            logger.debug(f"No FROM table in statement #{record.index}, skipping mapping checks")

        if len(joins) > self.max_joins_recommended:
            yield self._too_many_joins(record, joins, main)

        main_entity = snapshot.entity_for_table(main.table) if main is not None else None

        if main_entity is not None:
            finding = self._multiple_collection_joins(record, joins, main, main_entity, snapshot)
            if finding is not None:
                yield finding

        for join in joins:
            if join.join_type == "LEFT":
                finding = self._left_join_on_not_null(record, join, main_entity, snapshot)
                if finding is not None:
                    yield finding

            if join.alias is not None and not is_alias_used(record.text, join):
                yield self._unused_join(record, join)

    # ── too many joins ─────────────────────────────────────────────────

    def _too_many_joins(
        self, record: QueryRecord, joins: list[JoinFragment], main: Optional[TableRef]
    ) -> Finding:
        count = len(joins)
        severity = Severity.CRITICAL if count > self.max_joins_critical else Severity.WARNING
        title = f"Too many JOINs in single query ({count} joins)"

        return Finding(
            kind=TOO_MANY_JOINS,
            title=title,
            description=(
                f"Query contains {count} JOINs (recommended maximum: "
                f"{self.max_joins_recommended}). Each JOIN multiplies the work the "
                f"database has to do; consider splitting the load into several queries "
                f"or fetching the extra data on demand."
            ),
            severity=severity,
            evidence=(record.index,),
            subject=main.table if main is not None else "",
            suggestion=Suggestion(
                template_name="performance/too_many_joins",
                context={
                    "join_count": count,
                    "max_recommended": self.max_joins_recommended,
                    "tables": [j.table for j in joins],
                    "sql": truncate_statement(record.text),
                },
                tags=("performance", "join", "query-shape"),
            ),
            detector=self.name,
        )

    # ── LEFT JOIN over a non-null relation ─────────────────────────────

    def _left_join_on_not_null(
        self,
        record: QueryRecord,
        join: JoinFragment,
        main_entity: Optional[EntityMapping],
        snapshot: MappingSnapshot,
    ) -> Optional[Finding]:
        joined_entity = snapshot.entity_for_table(join.table)

        match = None
        owner = joined_entity
        if joined_entity is not None:
            match = _non_null_key_in_clause(joined_entity.associations, join.on_clause)

        # Owning side declared on the root entity, pointing at the joined one
        if match is None and main_entity is not None:
            candidates = [
                a
                for a in main_entity.associations
                if (snapshot.target_table(a) or "").lower() == join.table.lower()
            ]
            match = _non_null_key_in_clause(candidates, join.on_clause)
            owner = main_entity

        if match is None:
            return None

        association, column = match
        return Finding(
            kind=LEFT_JOIN_ON_NOT_NULL,
            title=f"Suboptimal LEFT JOIN on NOT NULL relation: {join.table}",
            description=(
                f"LEFT JOIN on '{join.table}' follows {owner.name}.{association.field_name} "
                f"through non-nullable column '{column}'. The relation always exists, so "
                f"the LEFT JOIN never produces a null-padded row; INNER JOIN gives the same "
                f"result and lets the database pick a better plan."
            ),
            severity=Severity.CRITICAL,
            evidence=(record.index,),
            subject=join.table,
            suggestion=Suggestion(
                template_name="performance/left_join_to_inner_join",
                context={
                    "table": join.table,
                    "alias": join.alias,
                    "entity": owner.name,
                    "association": association.field_name,
                    "join_column": column,
                },
                tags=("performance", "join", "nullability"),
            ),
            detector=self.name,
        )

    # ── JOIN whose alias is never read ─────────────────────────────────

    def _unused_join(self, record: QueryRecord, join: JoinFragment) -> Finding:
        return Finding(
            kind=UNUSED_JOIN,
            title=f"Unused JOIN on {join.table}",
            description=(
                f"Table '{join.table}' is joined as '{join.alias}' but the alias is never "
                f"referenced outside its own JOIN. The database still reads and merges the "
                f"table; remove the JOIN or select from it."
            ),
            severity=Severity.WARNING,
            evidence=(record.index,),
            subject=join.table,
            suggestion=Suggestion(
                template_name="performance/unused_join",
                context={
                    "table": join.table,
                    "alias": join.alias,
                    "join_type": join.join_type,
                    "fragment": join.fragment,
                },
                tags=("performance", "join", "dead-code"),
            ),
            detector=self.name,
        )

    # ── several collections fetched at once ────────────────────────────

    def _multiple_collection_joins(
        self,
        record: QueryRecord,
        joins: list[JoinFragment],
        main: TableRef,
        main_entity: EntityMapping,
        snapshot: MappingSnapshot,
    ) -> Optional[Finding]:
        collection_tables: dict[str, str] = {}
        for assoc in main_entity.associations:
            if not assoc.is_collection:
                continue
            table = snapshot.target_table(assoc)
            if table is not None:
                collection_tables.setdefault(table.lower(), assoc.field_name)

        fields = [
            collection_tables[j.table.lower()]
            for j in joins
            if j.join_type == "LEFT" and j.table.lower() in collection_tables
        ]
        if len(fields) < 2:
            return None

        return Finding(
            kind=MULTIPLE_COLLECTION_JOINS,
            title=f"Multiple collection JOINs on {main_entity.name} ({len(fields)} collections)",
            description=(
                f"Query LEFT-joins {len(fields)} collections of {main_entity.name} "
                f"({', '.join(fields)}). Each row of one collection is repeated for every "
                f"row of the others, so the result grows as their product. Load each "
                f"collection in its own query."
            ),
            severity=Severity.WARNING,
            evidence=(record.index,),
            subject=main.table,
            suggestion=Suggestion(
                template_name="performance/multiple_collection_joins",
                context={
                    "entity": main_entity.name,
                    "collections": fields,
                    "sql": truncate_statement(record.text),
                },
                tags=("performance", "join", "cartesian-product", "collections"),
            ),
            detector=self.name,
        )


def _non_null_key_in_clause(
    associations, on_clause: str
) -> Optional[tuple[Association, str]]:
    """First non-nullable association whose FK column appears in ``on_clause``."""
    for assoc in associations:
        if not assoc.has_foreign_key or assoc.nullable is not False:
            continue
        for column in assoc.join_columns:
            if mentions_column(on_clause, column):
                return assoc, column
    return None
