"""TRANSACTION_BOUNDARY: misuse of explicit transactions.

Severity: CRITICAL (nested, unclosed), WARNING (multiple flush, long-running)
Subject: transaction start index

A single ordered pass drives a two-state machine. ``Closed`` is ``None``;
``Open`` carries the nesting depth, the number of writes since the outer
BEGIN, the index of that BEGIN and the statement time accumulated after it.

    begin     Closed -> Open(1)              Open -> depth+1, nested-transaction
    write     Closed -> no-op (autocommit)   Open -> flush+1, multiple-flush at >= N
    commit/   Closed -> no-op                Open(depth>1) -> depth-1
    rollback                                 Open(1) -> Closed, long-running if slow
    end of trace while Open -> unclosed-transaction
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional

from ...logging_config import get_logger
from ...trace.statements import StatementKind
from ..models import Finding, Severity, Suggestion

if TYPE_CHECKING:
    from ...mapping import MappingSnapshot
    from ...trace import QueryRecord, QueryTrace

logger = get_logger(__name__)

NESTED_TRANSACTION = "nested-transaction"
MULTIPLE_FLUSH = "multiple-flush-in-transaction"
LONG_RUNNING_TRANSACTION = "long-running-transaction"
UNCLOSED_TRANSACTION = "unclosed-transaction"


@dataclass(frozen=True)
class OpenTransaction:
    depth: int
    flush_count: int
    start_index: int
    elapsed_ms: float


class TransactionBoundaryDetector:
    """Walks transaction boundaries in trace order and reports their misuse."""

    name = "transaction_boundary"
    uses_mapping = False

    def __init__(self, flush_warning_count: int = 2, long_transaction_ms: float = 1000.0):
        self.flush_warning_count = flush_warning_count
        self.long_transaction_ms = long_transaction_ms

    def detect(self, trace: QueryTrace, snapshot: MappingSnapshot) -> Iterator[Finding]:
        state: Optional[OpenTransaction] = None

        for record in trace:
            kind = record.statement_kind

            if state is not None:
                state = replace(state, elapsed_ms=state.elapsed_ms + record.duration_ms)

            if kind is StatementKind.BEGIN:
                if state is None:
                    state = OpenTransaction(
                        depth=1,
                        flush_count=0,
                        start_index=record.index,
                        elapsed_ms=0.0,
                    )
                else:
                    state = replace(state, depth=state.depth + 1)
                    yield self._nested(record, state)

            elif kind.is_write:
                if state is None:
                    continue
                state = replace(state, flush_count=state.flush_count + 1)
                if state.flush_count >= self.flush_warning_count:
                    yield self._multiple_flush(record, state)

            elif kind in (StatementKind.COMMIT, StatementKind.ROLLBACK):
                if state is None:
                    logger.debug(f"{kind.value} at #{record.index} with no open transaction")
                    continue
                if state.depth > 1:
                    state = replace(state, depth=state.depth - 1)
                    continue
                if state.elapsed_ms > self.long_transaction_ms:
                    yield self._long_running(record, state)
                state = None

        if state is not None:
            yield self._unclosed(state)

    def _nested(self, record: QueryRecord, state: OpenTransaction) -> Finding:
        return Finding(
            kind=NESTED_TRANSACTION,
            title=f"Nested transaction at depth {state.depth}",
            description=(
                f"BEGIN at statement #{record.index} was issued inside the transaction "
                f"opened at #{state.start_index}. The database cannot truly nest "
                f"transactions: the inner COMMIT commits nothing and the inner ROLLBACK "
                f"leaves the outer transaction unusable."
            ),
            severity=Severity.CRITICAL,
            evidence=(state.start_index, record.index),
            subject=f"begin@{record.index}",
            suggestion=Suggestion(
                template_name="transactions/nested_transaction",
                context={
                    "outer_start_index": state.start_index,
                    "nested_index": record.index,
                    "depth": state.depth,
                },
                tags=("transaction", "nested", "bug"),
            ),
            detector=self.name,
        )

    def _multiple_flush(self, record: QueryRecord, state: OpenTransaction) -> Finding:
        count = state.flush_count
        return Finding(
            kind=MULTIPLE_FLUSH,
            title=f"Multiple flushes in one transaction ({count} writes)",
            description=(
                f"The transaction opened at #{state.start_index} has issued {count} separate "
                f"write statements. Each one takes row locks that are held until the commit, "
                f"which lengthens lock time and exposes the unit of work to deadlocks. "
                f"Batch the changes and flush once."
            ),
            severity=Severity.WARNING,
            evidence=(state.start_index, record.index),
            subject=f"transaction@{state.start_index}#{count}",
            suggestion=Suggestion(
                template_name="transactions/multiple_flush",
                context={"start_index": state.start_index, "flush_count": count},
                tags=("transaction", "flush", "locking"),
            ),
            detector=self.name,
        )

    def _long_running(self, record: QueryRecord, state: OpenTransaction) -> Finding:
        return Finding(
            kind=LONG_RUNNING_TRANSACTION,
            title=f"Long-running transaction ({state.elapsed_ms:.0f}ms)",
            description=(
                f"Transaction from #{state.start_index} to #{record.index} spent "
                f"{state.elapsed_ms:.2f}ms executing statements (threshold: "
                f"{self.long_transaction_ms:.0f}ms). Locks are held for its whole duration; "
                f"move slow reads or external calls outside the transaction."
            ),
            severity=Severity.WARNING,
            evidence=(state.start_index, record.index),
            subject=f"transaction@{state.start_index}",
            suggestion=Suggestion(
                template_name="transactions/long_running",
                context={
                    "start_index": state.start_index,
                    "end_index": record.index,
                    "elapsed_ms": state.elapsed_ms,
                    "threshold_ms": self.long_transaction_ms,
                },
                tags=("transaction", "performance", "locking"),
            ),
            detector=self.name,
        )

    def _unclosed(self, state: OpenTransaction) -> Finding:
        return Finding(
            kind=UNCLOSED_TRANSACTION,
            title="Transaction started but never committed",
            description=(
                f"The transaction opened at #{state.start_index} was neither committed nor "
                f"rolled back before the unit of work ended ({state.flush_count} writes "
                f"pending). Its changes are lost and its locks are held until the "
                f"connection closes."
            ),
            severity=Severity.CRITICAL,
            evidence=(state.start_index,),
            subject=f"transaction@{state.start_index}",
            suggestion=Suggestion(
                template_name="transactions/unclosed_transaction",
                context={
                    "start_index": state.start_index,
                    "flush_count": state.flush_count,
                    "depth": state.depth,
                },
                tags=("transaction", "data-loss", "bug"),
            ),
            detector=self.name,
        )
