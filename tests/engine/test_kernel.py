"""Tests for DiagnosticKernel orchestration."""

import logging

from trace_doctor.config import AnalysisConfig
from trace_doctor.engine.kernel import DiagnosticKernel
from trace_doctor.engine.models import Finding, Severity
from trace_doctor.mapping import EntityMapping, MappingSnapshot
from trace_doctor.trace import QueryRecord, QueryTrace

TOO_MANY = (
    "SELECT r.id, a.id, b.id, c.id, d.id, e.id, f.id FROM roots r "
    "JOIN a ON a.r_id = r.id JOIN b ON b.r_id = r.id JOIN c ON c.r_id = r.id "
    "JOIN d ON d.r_id = r.id JOIN e ON e.r_id = r.id JOIN f ON f.r_id = r.id"
)


def _finding(kind, subject, index):
    return Finding(kind=kind, title=kind, description="", severity=Severity.WARNING, evidence=(index,), subject=subject)


class StaticDetector:
    uses_mapping = False

    def __init__(self, name, findings):
        self.name = name
        self._findings = findings

    def detect(self, trace, snapshot):
        yield from self._findings


class CrashingDetector:
    """Yields one finding, then fails."""

    name = "crashing"
    uses_mapping = False

    def detect(self, trace, snapshot):
        yield _finding("partial", "x", 0)
        raise RuntimeError("boom")


class BrokenProvider:
    def load_entities(self):
        raise ConnectionError("metadata cache offline")


class CountingProvider:
    def __init__(self):
        self.calls = 0

    def load_entities(self):
        self.calls += 1
        return [EntityMapping("User", "users")]


class TestFailureIsolation:
    """Test that one detector's failure doesn't stop the others."""

    def test_crash_keeps_partial_and_other_findings(self):
        """Findings yielded before the crash and from later detectors survive."""
        later = StaticDetector("later", [_finding("ok", "y", 1)])
        kernel = DiagnosticKernel(detectors=[CrashingDetector(), later])

        result = kernel.run(QueryTrace.empty())

        assert [f.kind for f in result.findings] == ["partial", "ok"]
        assert "crashing" in result.detector_errors
        assert "boom" in result.detector_errors["crashing"]

    def test_crash_logged_at_error(self, caplog):
        """Detector failures are always visible."""
        kernel = DiagnosticKernel(detectors=[CrashingDetector()])
        with caplog.at_level(logging.ERROR, logger="trace_doctor"):
            kernel.run(QueryTrace.empty())
        assert any(r.levelno == logging.ERROR and "crashing" in r.getMessage() for r in caplog.records)

    def test_metadata_failure_contained(self, make_trace):
        """An unavailable mapping stops only the detectors that need it."""
        trace = make_trace(["BEGIN", "SELECT c.id, p.id FROM comments c LEFT JOIN posts p ON c.post_id = p.id"])
        kernel = DiagnosticKernel()

        result = kernel.run(trace, MappingSnapshot.from_provider(BrokenProvider(), timeout=1.0))

        assert set(result.detector_errors) == {"join_optimization"}
        assert [f.kind for f in result.findings] == ["unclosed-transaction"]
        assert result.trace_summary.entities_mapped is None

    def test_bare_provider_accepted(self, make_trace):
        """A provider is wrapped in a snapshot bounded by the configured timeout."""
        provider = CountingProvider()
        kernel = DiagnosticKernel(AnalysisConfig(mapping_timeout_seconds=1.0))
        trace = make_trace(["SELECT u.id, p.id FROM users u JOIN posts p ON p.user_id = u.id"])
        result = kernel.run(trace, provider)
        assert result.trace_summary.entities_mapped == 1
        assert provider.calls == 1

    def test_provider_untouched_without_mapping_detectors(self, make_trace):
        """The summary never loads metadata that no detector asked for."""
        provider = CountingProvider()
        kernel = DiagnosticKernel(AnalysisConfig(detectors=["transaction_boundary"]))
        result = kernel.run(make_trace(["BEGIN", "SELECT * FROM users", "COMMIT"]), provider)
        assert result.trace_summary.entities_mapped is None
        assert provider.calls == 0

    def test_provider_untouched_when_no_statement_needs_mapping(self, make_trace):
        """Mapping detectors that never consult the snapshot leave it unloaded."""
        provider = CountingProvider()
        result = DiagnosticKernel().run(make_trace(["SELECT * FROM users WHERE name = ?"]), provider)
        assert result.trace_summary.entities_mapped is None
        assert provider.calls == 0


class TestDeduplicationAndOrder:
    """Test post-processing of detector output."""

    def test_structurally_identical_statements(self, make_trace):
        """Two identical too-many-joins statements give one finding."""
        result = DiagnosticKernel().run(make_trace([TOO_MANY, TOO_MANY]))
        assert [f.kind for f in result.findings] == ["too-many-joins"]

    def test_dedup_across_detectors(self):
        a = StaticDetector("a", [_finding("k", "s", 0), _finding("k", "t", 1)])
        b = StaticDetector("b", [_finding("k", "s", 2)])
        result = DiagnosticKernel(detectors=[a, b]).run(QueryTrace.empty())
        assert [f.evidence for f in result.findings] == [(0,), (1,)]

    def test_detector_order_preserved(self):
        """Findings are not reordered by severity."""
        a = StaticDetector("a", [_finding("first", "s", 0)])
        critical = Finding(
            kind="second", title="second", description="", severity=Severity.CRITICAL, evidence=(1,)
        )
        b = StaticDetector("b", [critical])
        result = DiagnosticKernel(detectors=[a, b]).run(QueryTrace.empty())
        assert [f.kind for f in result.findings] == ["first", "second"]


class TestRun:
    def test_deterministic(self, lookup_records, make_trace):
        """Analyzing twice yields the same findings."""
        trace = QueryTrace(tuple(lookup_records(12)) + tuple(
            QueryRecord(index=100 + i, text=t) for i, t in enumerate(["BEGIN", "INSERT INTO t VALUES (1)", "INSERT INTO t VALUES (2)"])
        ))
        kernel = DiagnosticKernel()
        first = kernel.run(trace)
        second = kernel.run(trace)
        assert first.findings == second.findings
        assert len(first.findings) == 3

    def test_summary(self):
        trace = QueryTrace(
            (
                QueryRecord(0, "BEGIN", duration_ms=1.0),
                QueryRecord(1, "SELECT 1", duration_ms=2.0),
                QueryRecord(2, "UPDATE t SET a = 1", duration_ms=3.0),
                QueryRecord(3, "COMMIT", duration_ms=4.0),
            )
        )
        summary = DiagnosticKernel().run(trace).trace_summary
        assert summary.total_queries == 4
        assert summary.select_queries == 1
        assert summary.write_queries == 1
        assert summary.total_duration_ms == 10.0
        assert summary.entities_mapped == 0

    def test_empty_trace(self):
        result = DiagnosticKernel().run(QueryTrace.empty())
        assert result.findings == []
        assert result.detector_errors == {}
        assert not result.has_critical

    def test_iter_findings_is_lazy(self):
        """Stopping early never runs later detectors."""
        later = CrashingDetector()
        kernel = DiagnosticKernel(detectors=[StaticDetector("a", [_finding("k", "s", 0)]), later])
        errors = {}
        stream = kernel.iter_findings(QueryTrace.empty(), errors=errors)
        assert next(stream).kind == "k"
        stream.close()
        assert errors == {}

    def test_configured_subset(self, make_trace):
        kernel = DiagnosticKernel(AnalysisConfig(detectors=["transaction_boundary"]))
        assert [d.name for d in kernel.detectors] == ["transaction_boundary"]
        result = kernel.run(make_trace([TOO_MANY, "BEGIN"]))
        assert [f.kind for f in result.findings] == ["unclosed-transaction"]
