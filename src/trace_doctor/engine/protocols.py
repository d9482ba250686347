"""Protocol class for detector plugins."""

from collections.abc import Iterator
from typing import Protocol

from ..mapping import MappingSnapshot
from ..trace import QueryTrace
from .models import Finding


class Detector(Protocol):
    """Detectors read a finalized trace and mapping snapshot (NEVER write).

    ``detect`` returns a lazy, finite sequence: the same inputs always give
    the same ordered findings, and a caller may stop consuming at any point.
    Statement shapes a detector doesn't recognise are skipped, not raised.
    """

    name: str
    uses_mapping: bool  # whether detect() reads the snapshot

    def detect(self, trace: QueryTrace, snapshot: MappingSnapshot) -> Iterator[Finding]: ...
