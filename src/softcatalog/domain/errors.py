"""Error taxonomy for the inventory pipeline.

None of these are meant to reach the host process: detectors, repositories and
the orchestrator each recover from the kinds they raise.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from softcatalog.domain.model import OriginPlatform


class InventoryError(RuntimeError):
    """Base class for inventory pipeline errors."""


class SourceReadError(InventoryError):
    """A detector's artifact is missing, corrupt or unparsable."""

    def __init__(self, message: str, *, origin: OriginPlatform, path: str | None = None) -> None:
        super().__init__(message)
        self.origin = origin
        self.path = path


class PersistenceConflict(InventoryError):
    """A unique constraint rejected a find-or-create insert and no row could be re-read."""


class ProviderUnavailable(InventoryError):
    """A metadata provider cannot be used this run (missing key, missing tool)."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider} unavailable: {reason}")
        self.provider = provider
        self.reason = reason


class ProviderCallFailure(InventoryError):
    """A single provider lookup failed (network, timeout, malformed response)."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class CorruptStoreError(InventoryError):
    """A persisted store is unreadable or its schema is missing."""
