"""Finding deduplication, severity ordering, and collection statistics."""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import TYPE_CHECKING, Optional, Union

from .models import Severity

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import Finding


def deduplicate_findings(findings: Iterable[Finding]) -> list[Finding]:
    """Collapse findings that share a dedup key, keeping the first one.

    The same structural defect reported by many identical statements
    becomes one finding. Order of first appearance is preserved.

    Args:
        findings: Findings in the order detectors produced them

    Returns:
        Deduplicated list of findings
    """
    seen: set[tuple[str, str]] = set()
    unique: list[Finding] = []
    for finding in findings:
        key = finding.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(finding)
    return unique


def sort_by_severity(findings: Iterable[Finding], descending: bool = True) -> list[Finding]:
    """Stable sort by severity; equal severities keep their relative order."""
    return sorted(findings, key=lambda f: f.severity.rank, reverse=descending)


def _as_severity(severity: Union[Severity, str]) -> Severity:
    return severity if isinstance(severity, Severity) else Severity(severity)


def filter_by_severity(
    findings: Iterable[Finding], severity: Union[Severity, str]
) -> list[Finding]:
    wanted = _as_severity(severity)
    return [f for f in findings if f.severity is wanted]


def filter_by_kind(findings: Iterable[Finding], kind: str) -> list[Finding]:
    return [f for f in findings if f.kind == kind]


def group_by_kind(findings: Iterable[Finding]) -> dict[str, list[Finding]]:
    groups: dict[str, list[Finding]] = defaultdict(list)
    for f in findings:
        groups[f.kind].append(f)
    return dict(groups)


def count_by_severity(findings: Iterable[Finding]) -> dict[str, int]:
    """Count findings per severity; every severity appears, zero included."""
    counts = Counter(f.severity for f in findings)
    return {s.value: counts.get(s, 0) for s in (Severity.CRITICAL, Severity.WARNING, Severity.INFO)}


def count_by_kind(findings: Iterable[Finding]) -> dict[str, int]:
    return dict(Counter(f.kind for f in findings))


def most_severe(findings: Iterable[Finding]) -> Optional[Finding]:
    """The first finding of the highest severity present, or None."""
    best: Optional[Finding] = None
    for f in findings:
        if best is None or f.severity.rank > best.severity.rank:
            best = f
    return best


def unique_kinds(findings: Iterable[Finding]) -> list[str]:
    return list(dict.fromkeys(f.kind for f in findings))
