"""Ports for source detectors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from softcatalog.domain.model import DetectedCandidate, OriginPlatform


@runtime_checkable
class SourceDetector(Protocol):
    """One origin's installation records, read without side effects."""

    name: str
    origin: OriginPlatform

    def is_available(self) -> bool: ...

    def detect(self) -> list[DetectedCandidate]: ...

    def claim_from_path(self, path: str) -> DetectedCandidate | None:
        """Return a richer candidate when ``path`` lies under this origin's install pattern."""
        ...
