"""Data model for captured statement executions."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from ..exceptions import InvalidTraceError
from .statements import StatementKind, classify_statement

Parameters = Union[tuple, Mapping[str, Any]]


@dataclass(frozen=True)
class StackFrame:
    """One call-site frame attached to a captured statement."""

    file: Optional[str] = None
    line: Optional[int] = None
    function: Optional[str] = None
    cls: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StackFrame:
        line = data.get("line")
        return cls(
            file=data.get("file"),
            line=int(line) if line is not None else None,
            function=data.get("function"),
            cls=data.get("class"),
        )


@dataclass(frozen=True)
class QueryRecord:
    """One captured statement execution.

    ``index`` defines trace order. ``duration_ms`` is the elapsed execution
    time in milliseconds. ``call_site`` is ordered innermost frame first.
    """

    index: int
    text: str
    duration_ms: float = 0.0
    parameters: Parameters = ()
    row_count: Optional[int] = None
    call_site: Optional[tuple[StackFrame, ...]] = None

    def __post_init__(self) -> None:
        if self.duration_ms < 0:
            raise ValueError("duration_ms must be non-negative")
        if self.row_count is not None and self.row_count < 0:
            raise ValueError("row_count must be non-negative")

    @property
    def statement_kind(self) -> StatementKind:
        return classify_statement(self.text)

    @property
    def is_select(self) -> bool:
        return self.statement_kind is StatementKind.SELECT

    def is_slow(self, threshold_ms: float = 100.0) -> bool:
        if threshold_ms <= 0:
            raise ValueError("threshold_ms must be positive")
        return self.duration_ms > threshold_ms


@dataclass(frozen=True)
class QueryTrace:
    """Ordered, immutable sequence of captured statements.

    Records must appear with strictly increasing ``index``; gaps are allowed
    (they carry meaning for the loop heuristics) but duplicates are not.
    """

    records: tuple[QueryRecord, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        previous: Optional[int] = None
        for record in self.records:
            if previous is not None and record.index <= previous:
                raise InvalidTraceError(
                    f"record index {record.index} does not follow {previous}",
                    index=record.index,
                )
            previous = record.index

    def __iter__(self) -> Iterator[QueryRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __bool__(self) -> bool:
        return bool(self.records)

    def get(self, index: int) -> Optional[QueryRecord]:
        """Look up a record by its capture index."""
        for record in self.records:
            if record.index == index:
                return record
            if record.index > index:
                break
        return None

    @property
    def total_duration_ms(self) -> float:
        return sum(r.duration_ms for r in self.records)

    @classmethod
    def empty(cls) -> QueryTrace:
        return cls(())

    @classmethod
    def from_texts(cls, texts: Iterable[str], duration_ms: float = 1.0) -> QueryTrace:
        """Build a trace of consecutive records from bare statement strings."""
        return cls(
            tuple(
                QueryRecord(index=i, text=text, duration_ms=duration_ms)
                for i, text in enumerate(texts)
            )
        )

    @classmethod
    def from_dicts(cls, rows: Sequence[Mapping[str, Any]]) -> QueryTrace:
        """Build a trace from the capture layer's row dictionaries.

        Accepted keys: ``sql``, ``executionMS``, ``params``, ``backtrace``,
        ``rowCount``/``row_count`` and an optional ``index`` (defaults to the
        row position). Durations strictly between 0 and 1 are reported in
        seconds by some drivers and are scaled to milliseconds.
        """
        records = []
        for position, row in enumerate(rows):
            duration = float(row.get("executionMS", 0.0) or 0.0)
            if 0 < duration < 1:
                duration *= 1000

            row_count = row.get("rowCount", row.get("row_count"))

            params = row.get("params") or ()
            if not isinstance(params, Mapping):
                params = tuple(params)

            backtrace = row.get("backtrace")
            call_site = None
            if backtrace:
                call_site = tuple(StackFrame.from_dict(frame) for frame in backtrace)

            records.append(
                QueryRecord(
                    index=int(row.get("index", position)),
                    text=row.get("sql", "") or "",
                    duration_ms=duration,
                    parameters=params,
                    row_count=int(row_count) if row_count is not None else None,
                    call_site=call_site,
                )
            )
        return cls(tuple(records))


class TraceRecorder:
    """Append-only capture buffer that assigns indices and freezes into a trace."""

    def __init__(self, start_index: int = 0):
        self._records: list[QueryRecord] = []
        self._next_index = start_index
        self._finalized = False

    def record(
        self,
        text: str,
        duration_ms: float = 0.0,
        parameters: Parameters = (),
        row_count: Optional[int] = None,
        call_site: Optional[Iterable[StackFrame]] = None,
    ) -> QueryRecord:
        if self._finalized:
            raise InvalidTraceError("cannot append to a finalized trace", index=self._next_index)

        record = QueryRecord(
            index=self._next_index,
            text=text,
            duration_ms=duration_ms,
            parameters=parameters,
            row_count=row_count,
            call_site=tuple(call_site) if call_site is not None else None,
        )
        self._records.append(record)
        self._next_index += 1
        return record

    def skip(self, count: int = 1) -> None:
        """Advance the index counter without recording (statements not captured)."""
        if count < 0:
            raise ValueError("count must be non-negative")
        self._next_index += count

    def finalize(self) -> QueryTrace:
        self._finalized = True
        return QueryTrace(tuple(self._records))

    @property
    def finalized(self) -> bool:
        return self._finalized

    def __len__(self) -> int:
        return len(self._records)
