"""Tests for finding deduplication, ordering and statistics."""

from trace_doctor.engine.models import Finding, Severity
from trace_doctor.engine.ranking import (
    count_by_kind,
    count_by_severity,
    deduplicate_findings,
    filter_by_kind,
    filter_by_severity,
    group_by_kind,
    most_severe,
    sort_by_severity,
    unique_kinds,
)


def _f(kind, subject, severity=Severity.WARNING, index=0):
    return Finding(
        kind=kind,
        title=f"{kind} on {subject}",
        description="",
        severity=severity,
        evidence=(index,),
        subject=subject,
    )


class TestDeduplicate:
    """Test collapsing repeated findings."""

    def test_keeps_first(self):
        """The first finding for a key wins."""
        first = _f("too-many-joins", "orders", index=1)
        repeat = _f("too-many-joins", "orders", index=9)
        assert deduplicate_findings([first, repeat]) == [first]

    def test_different_subjects_kept(self):
        a = _f("unused-join", "orders")
        b = _f("unused-join", "items")
        assert deduplicate_findings([a, b]) == [a, b]

    def test_same_subject_different_kind_kept(self):
        a = _f("unused-join", "orders")
        b = _f("left-join-on-not-null", "orders")
        assert deduplicate_findings([a, b]) == [a, b]

    def test_order_preserved(self):
        """Order of first appearance is kept."""
        a, b, c = _f("k", "a"), _f("k", "b"), _f("k", "c")
        assert deduplicate_findings([c, a, c, b, a]) == [c, a, b]

    def test_empty(self):
        assert deduplicate_findings([]) == []


class TestOrderingAndFilters:
    """Test severity ordering and filters."""

    def test_sort_by_severity_is_stable(self):
        """Equal severities keep their relative order."""
        w1 = _f("a", "1")
        c1 = _f("b", "2", Severity.CRITICAL)
        w2 = _f("c", "3")
        i1 = _f("d", "4", Severity.INFO)
        assert sort_by_severity([w1, c1, w2, i1]) == [c1, w1, w2, i1]
        assert sort_by_severity([w1, c1, w2, i1], descending=False) == [i1, w1, w2, c1]

    def test_filter_by_severity_accepts_strings(self):
        c = _f("a", "1", Severity.CRITICAL)
        w = _f("b", "2")
        assert filter_by_severity([c, w], "critical") == [c]
        assert filter_by_severity([c, w], Severity.WARNING) == [w]

    def test_filter_and_group_by_kind(self):
        a1, b1, a2 = _f("a", "1"), _f("b", "1"), _f("a", "2")
        assert filter_by_kind([a1, b1, a2], "a") == [a1, a2]
        assert group_by_kind([a1, b1, a2]) == {"a": [a1, a2], "b": [b1]}
        assert unique_kinds([a1, b1, a2]) == ["a", "b"]


class TestStatistics:
    def test_count_by_severity_includes_zero(self):
        """Every severity is reported."""
        counts = count_by_severity([_f("a", "1", Severity.CRITICAL), _f("b", "2", Severity.CRITICAL)])
        assert counts == {"critical": 2, "warning": 0, "info": 0}

    def test_count_by_kind(self):
        assert count_by_kind([_f("a", "1"), _f("a", "2"), _f("b", "3")]) == {"a": 2, "b": 1}

    def test_most_severe(self):
        """The first finding at the highest severity."""
        w = _f("a", "1")
        c1 = _f("b", "2", Severity.CRITICAL)
        c2 = _f("c", "3", Severity.CRITICAL)
        assert most_severe([w, c1, c2]) is c1
        assert most_severe([]) is None
