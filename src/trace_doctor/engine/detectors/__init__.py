"""Detector implementations: read a trace and mapping snapshot, yield Findings.

The set of detectors is closed. ``DetectorKind`` names every variant and
``build_detectors`` instantiates the enabled ones in a fixed order:

- sequential_load: N+1 key lookups repeated in a tight loop
- join_optimization: too many, loose, unused or row-multiplying JOINs
- transaction_boundary: nested, unclosed, long or write-heavy transactions
- pagination_hazard: row limits across collection fetch joins
- slow_query: statements above the duration threshold
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

from ...config import DEFAULT_THRESHOLDS, DetectorThresholds
from ...exceptions import InvalidConfigError
from .join_optimization import JoinOptimizationDetector
from .pagination_hazard import PaginationHazardDetector
from .sequential_load import SequentialLoadDetector
from .slow_query import SlowQueryDetector
from .transaction_boundary import TransactionBoundaryDetector

if TYPE_CHECKING:
    from ...config import AnalysisConfig
    from ..protocols import Detector


class DetectorKind(Enum):
    SEQUENTIAL_LOAD = "sequential_load"
    JOIN_OPTIMIZATION = "join_optimization"
    TRANSACTION_BOUNDARY = "transaction_boundary"
    PAGINATION_HAZARD = "pagination_hazard"
    SLOW_QUERY = "slow_query"


def build_detector(kind: DetectorKind, thresholds: DetectorThresholds = DEFAULT_THRESHOLDS) -> Detector:
    """Instantiate one detector variant with its thresholds."""
    if kind is DetectorKind.SEQUENTIAL_LOAD:
        return SequentialLoadDetector(
            threshold=thresholds.loop_threshold,
            gap_window=thresholds.loop_gap_window,
            critical_threshold=thresholds.loop_critical_threshold,
        )
    if kind is DetectorKind.JOIN_OPTIMIZATION:
        return JoinOptimizationDetector(
            max_joins_recommended=thresholds.max_joins_recommended,
            max_joins_critical=thresholds.max_joins_critical,
        )
    if kind is DetectorKind.TRANSACTION_BOUNDARY:
        return TransactionBoundaryDetector(
            flush_warning_count=thresholds.flush_warning_count,
            long_transaction_ms=thresholds.long_transaction_ms,
        )
    if kind is DetectorKind.PAGINATION_HAZARD:
        return PaginationHazardDetector()
    return SlowQueryDetector(
        threshold_ms=thresholds.slow_query_ms,
        critical_ms=thresholds.slow_query_critical_ms,
    )


def build_detectors(config: Optional[AnalysisConfig] = None) -> list:
    """Return the detectors enabled by ``config``, in registry order.

    Raises:
        InvalidConfigError: If ``config.detectors`` names an unknown detector
    """
    thresholds = config.thresholds if config is not None else DEFAULT_THRESHOLDS
    enabled = config.detectors if config is not None else None

    if enabled is None:
        kinds = list(DetectorKind)
    else:
        known = {k.value for k in DetectorKind}
        unknown = [name for name in enabled if name not in known]
        if unknown:
            raise InvalidConfigError(
                "detectors",
                ", ".join(unknown),
                f"known detectors are {', '.join(sorted(known))}",
            )
        wanted = set(enabled)
        kinds = [k for k in DetectorKind if k.value in wanted]

    return [build_detector(kind, thresholds) for kind in kinds]


def get_default_detectors() -> list:
    """Return every detector with default thresholds."""
    return build_detectors()


__all__ = [
    "DetectorKind",
    "JoinOptimizationDetector",
    "PaginationHazardDetector",
    "SequentialLoadDetector",
    "SlowQueryDetector",
    "TransactionBoundaryDetector",
    "build_detector",
    "build_detectors",
    "get_default_detectors",
]
