"""Diagnostic engine: detectors, findings and the kernel that runs them."""

from .detectors import DetectorKind, build_detectors
from .kernel import DiagnosticKernel
from .models import DiagnosticResult, Finding, Renderer, Severity, Suggestion, TraceSummary
from .protocols import Detector

__all__ = [
    "Detector",
    "DetectorKind",
    "DiagnosticKernel",
    "DiagnosticResult",
    "Finding",
    "Renderer",
    "Severity",
    "Suggestion",
    "TraceSummary",
    "build_detectors",
]
