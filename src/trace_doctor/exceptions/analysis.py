"""Analysis-related exceptions: trace integrity, mapping metadata, detectors."""

from typing import Dict, Optional

from .base import TraceDoctorError


class AnalysisError(TraceDoctorError):
    """Base class for analysis-related errors."""
    pass


class InvalidTraceError(AnalysisError):
    """Raised when a query trace violates its ordering invariants."""

    def __init__(self, reason: str, index: Optional[int] = None):
        details: Dict[str, str] = {"reason": reason}
        if index is not None:
            details["index"] = str(index)

        super().__init__(f"Invalid query trace: {reason}", details=details)
        self.reason = reason
        self.index = index


class MetadataUnavailableError(AnalysisError):
    """Raised when the mapping provider fails or times out."""

    def __init__(self, reason: str):
        super().__init__(
            "Mapping metadata unavailable",
            details={"reason": reason},
        )
        self.reason = reason


class DetectorError(AnalysisError):
    """Records a detector whose finding sequence was cut short by a failure."""

    def __init__(self, detector: str, reason: str):
        super().__init__(
            f"Detector failed: {detector}",
            details={"detector": detector, "reason": reason},
        )
        self.detector = detector
        self.reason = reason
