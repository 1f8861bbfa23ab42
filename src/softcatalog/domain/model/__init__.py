"""Domain model for the software inventory."""

from __future__ import annotations

from .enums import Category, EnrichmentState, OriginPlatform, ProviderGroup
from .inventory import (
    DetectedCandidate,
    InstalledSoftware,
    InstallFacts,
    LocalInstallation,
    ReferenceCatalogEntry,
)

__all__ = [
    "Category",
    "DetectedCandidate",
    "EnrichmentState",
    "InstallFacts",
    "InstalledSoftware",
    "LocalInstallation",
    "OriginPlatform",
    "ProviderGroup",
    "ReferenceCatalogEntry",
]
