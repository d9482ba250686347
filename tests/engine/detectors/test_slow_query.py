"""Tests for the slow query detector."""

from trace_doctor.engine.detectors.slow_query import SlowQueryDetector, optimization_hints
from trace_doctor.engine.models import Severity
from trace_doctor.trace import QueryRecord, QueryTrace


def _trace(*durations):
    return QueryTrace(
        tuple(
            QueryRecord(index=i, text=f"SELECT * FROM posts WHERE id = {i}", duration_ms=d)
            for i, d in enumerate(durations)
        )
    )


class TestSlowQuery:
    """Test duration thresholds."""

    def test_threshold_exclusive(self, empty_snapshot):
        """Only durations above the threshold count."""
        findings = list(SlowQueryDetector(threshold_ms=100.0).detect(_trace(50.0, 100.0, 150.0), empty_snapshot))
        assert [f.evidence for f in findings] == [(2,)]
        assert findings[0].severity is Severity.WARNING

    def test_critical(self, empty_snapshot):
        findings = list(SlowQueryDetector(critical_ms=1000.0).detect(_trace(1000.0), empty_snapshot))
        assert findings[0].severity is Severity.CRITICAL

    def test_hints_in_context(self, empty_snapshot):
        trace = QueryTrace((QueryRecord(0, "SELECT * FROM posts ORDER BY created_at DESC", duration_ms=300.0),))
        (finding,) = SlowQueryDetector().detect(trace, empty_snapshot)
        assert finding.suggestion.context["hints"] == [
            "Add an index covering the ORDER BY columns: created_at"
        ]


class TestOptimizationHints:
    def test_plain_statement(self):
        assert optimization_hints("SELECT id FROM posts WHERE id = ?") == []

    def test_leading_wildcard(self):
        hints = optimization_hints("SELECT id FROM posts WHERE title LIKE '%sql%'")
        assert len(hints) == 1
        assert "wildcard" in hints[0]
