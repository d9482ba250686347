"""Exception hierarchy for Trace Doctor."""

from .analysis import (
    AnalysisError,
    DetectorError,
    InvalidTraceError,
    MetadataUnavailableError,
)
from .base import TraceDoctorError
from .config import ConfigurationError, InvalidConfigError

__all__ = [
    "TraceDoctorError",
    "AnalysisError",
    "InvalidTraceError",
    "MetadataUnavailableError",
    "DetectorError",
    "ConfigurationError",
    "InvalidConfigError",
]
