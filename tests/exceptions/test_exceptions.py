"""Tests for the exception hierarchy."""

import pytest

from trace_doctor.exceptions import (
    AnalysisError,
    ConfigurationError,
    DetectorError,
    InvalidConfigError,
    InvalidTraceError,
    MetadataUnavailableError,
    TraceDoctorError,
)


class TestHierarchy:
    """Test base classes."""

    @pytest.mark.parametrize(
        "error",
        [
            InvalidTraceError("out of order", index=3),
            MetadataUnavailableError("timeout"),
            DetectorError("join_optimization", "boom"),
        ],
    )
    def test_analysis_errors(self, error):
        assert isinstance(error, AnalysisError)
        assert isinstance(error, TraceDoctorError)

    def test_config_error(self):
        error = InvalidConfigError("detectors", "psychic", "unknown detector")
        assert isinstance(error, ConfigurationError)
        assert error.details["reason"] == "unknown detector"


class TestMessages:
    """Test message and details rendering."""

    def test_details_rendered(self):
        assert str(TraceDoctorError("failed", {"a": "1", "b": "2"})) == "failed (a=1, b=2)"

    def test_no_details(self):
        assert str(TraceDoctorError("failed")) == "failed"

    def test_invalid_trace_index_optional(self):
        assert "index" not in InvalidTraceError("empty").details
        assert InvalidTraceError("dup", index=4).details["index"] == "4"

    def test_detector_error(self):
        error = DetectorError("slow_query", "boom")
        assert error.detector == "slow_query"
        assert str(error) == "Detector failed: slow_query (detector=slow_query, reason=boom)"
