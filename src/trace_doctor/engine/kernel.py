"""DiagnosticKernel: runs detectors over a finalized trace and collects findings."""

from __future__ import annotations

import time
from collections.abc import Iterator
from typing import TYPE_CHECKING, Optional, Union

from ..config import AnalysisConfig
from ..exceptions import DetectorError, MetadataUnavailableError
from ..logging_config import get_logger
from ..mapping import MappingSnapshot
from .detectors import build_detectors
from .models import DiagnosticResult, Finding, TraceSummary
from .ranking import deduplicate_findings

if TYPE_CHECKING:
    from ..mapping import MappingProvider
    from ..trace import QueryTrace
    from .protocols import Detector

logger = get_logger(__name__)


class DiagnosticKernel:
    """Orchestrate analysis: detect -> isolate failures -> deduplicate."""

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        detectors: Optional[list] = None,
    ):
        self.config = config or AnalysisConfig()
        self._detectors = detectors if detectors is not None else build_detectors(self.config)

    @property
    def detectors(self) -> list:
        return list(self._detectors)

    def run(
        self,
        trace: QueryTrace,
        snapshot: Union[MappingSnapshot, MappingProvider, None] = None,
    ) -> DiagnosticResult:
        """Run every detector and return the deduplicated findings.

        Parameters
        ----------
        trace : QueryTrace
            The finalized statement trace of one unit of work.
        snapshot : MappingSnapshot or MappingProvider, optional
            Mapping metadata. A bare provider is wrapped in a snapshot bounded
            by ``config.mapping_timeout_seconds``; None means no metadata.

        Returns
        -------
        DiagnosticResult
            Findings in detector order with repeats collapsed, a summary of
            the trace, and the error of every detector that failed.
        """
        snapshot = self._as_snapshot(snapshot)
        errors: dict[str, str] = {}

        findings = deduplicate_findings(self.iter_findings(trace, snapshot, errors))

        summary = self._summarize(trace, snapshot)
        logger.info(
            f"Analyzed {summary.total_queries} statements with {len(self._detectors)} detectors: "
            f"{len(findings)} findings, {len(errors)} detector failures"
        )
        return DiagnosticResult(findings=findings, trace_summary=summary, detector_errors=errors)

    def iter_findings(
        self,
        trace: QueryTrace,
        snapshot: Optional[MappingSnapshot] = None,
        errors: Optional[dict[str, str]] = None,
    ) -> Iterator[Finding]:
        """Lazily chain every detector's findings, containing each one's failure.

        Findings are not deduplicated here. When ``errors`` is given, a failed
        detector's name is mapped to the reason it stopped.
        """
        snapshot = self._as_snapshot(snapshot)
        for detector in self._detectors:
            yield from self._guarded(detector, trace, snapshot, errors)

    def _guarded(
        self,
        detector: Detector,
        trace: QueryTrace,
        snapshot: MappingSnapshot,
        errors: Optional[dict[str, str]],
    ) -> Iterator[Finding]:
        start = time.perf_counter()
        produced = 0
        try:
            for finding in detector.detect(trace, snapshot):
                produced += 1
                yield finding
        except MetadataUnavailableError as e:
            logger.error(f"Detector {detector.name} stopped, mapping metadata unavailable: {e.reason}")
            if errors is not None:
                errors[detector.name] = str(DetectorError(detector.name, e.reason))
            return
        except Exception as e:
            logger.error(f"Detector {detector.name} failed: {e}")
            if errors is not None:
                errors[detector.name] = str(DetectorError(detector.name, str(e)))
            return

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"Detector {detector.name} produced {produced} findings in {elapsed_ms:.1f}ms")

    def _as_snapshot(self, snapshot) -> MappingSnapshot:
        if snapshot is None:
            return MappingSnapshot.empty()
        if isinstance(snapshot, MappingSnapshot):
            return snapshot
        return MappingSnapshot.from_provider(snapshot, timeout=self.config.mapping_timeout_seconds)

    def _summarize(self, trace: QueryTrace, snapshot: MappingSnapshot) -> TraceSummary:
        selects = 0
        writes = 0
        for record in trace:
            kind = record.statement_kind
            if record.is_select:
                selects += 1
            elif kind.is_write:
                writes += 1

        # Never load a provider just to count its entities
        entities_mapped = len(snapshot) if snapshot.is_loaded else None

        return TraceSummary(
            total_queries=len(trace),
            select_queries=selects,
            write_queries=writes,
            total_duration_ms=trace.total_duration_ms,
            entities_mapped=entities_mapped,
        )
