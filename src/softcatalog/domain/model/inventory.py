"""Inventory entities.

``DetectedCandidate`` is transient and lives for one refresh pass.
``ReferenceCatalogEntry`` (catalog store) owns shareable metadata and
``LocalInstallation`` (local store) owns machine-specific facts. The two stores
are linked only by ``LocalInstallation.reference_catalog_id``; there is no
object graph between them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from softcatalog.domain.model.enums import Category, EnrichmentState, OriginPlatform

if TYPE_CHECKING:
    from datetime import date


@dataclass(kw_only=True)
class DetectedCandidate:
    name: str
    origin: OriginPlatform
    external_id: str | None = None
    install_path: str | None = None
    executable_path: str | None = None
    icon_hint: str | None = None
    version: str | None = None
    install_timestamp: datetime | None = None
    publisher: str | None = None
    category: Category | None = None
    size_bytes: int | None = None
    attributes: dict[str, str] = field(default_factory=dict[str, str])

    def install_facts(self) -> InstallFacts:
        return InstallFacts(
            install_path=self.install_path,
            executable_path=self.executable_path,
            icon_path=self.icon_hint,
            registry_key=self.attributes.get("registry_key"),
            version=self.version,
            install_timestamp=self.install_timestamp,
            size_bytes=self.size_bytes,
        )


@dataclass(frozen=True, slots=True)
class InstallFacts:
    """Machine-specific facts written to a ``LocalInstallation`` on upsert."""

    install_path: str | None = None
    executable_path: str | None = None
    icon_path: str | None = None
    registry_key: str | None = None
    version: str | None = None
    install_timestamp: datetime | None = None
    size_bytes: int | None = None


@dataclass(eq=False, kw_only=True)
class ReferenceCatalogEntry:
    name: str
    origin: OriginPlatform
    name_key: str
    external_id: str | None = None
    category: Category = Category.OTHER
    publisher: str | None = None
    description: str | None = None
    genres: list[str] = field(default_factory=list[str])
    developers: list[str] = field(default_factory=list[str])
    release_date: date | None = None
    cover_image_url: str | None = None
    additional_metadata: dict[str, object] = field(default_factory=dict[str, object])
    last_enriched_at: datetime | None = None
    enrichment_source: str | None = None
    last_enrichment_attempt: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: int | None = None

    @property
    def enrichment_state(self) -> EnrichmentState:
        """Persisted state; ``ENRICHING`` is only known to the running orchestrator."""

        attempt = self.last_enrichment_attempt
        enriched = self.last_enriched_at
        if attempt is not None and (enriched is None or attempt > enriched):
            return EnrichmentState.FAILED
        if enriched is None:
            return EnrichmentState.UNENRICHED
        if self.enrichment_source:
            return EnrichmentState.ENRICHED
        return EnrichmentState.SKIPPED

    def is_fresh(self, now: datetime, freshness: timedelta) -> bool:
        return self.last_enriched_at is not None and now - self.last_enriched_at < freshness


@dataclass(eq=False, kw_only=True)
class LocalInstallation:
    reference_catalog_id: int
    install_path: str | None = None
    executable_path: str | None = None
    icon_path: str | None = None
    registry_key: str | None = None
    version: str | None = None
    install_timestamp: datetime | None = None
    size_bytes: int | None = None
    last_detected_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: int | None = None

    def apply_facts(self, facts: InstallFacts, *, now: datetime) -> None:
        self.install_path = facts.install_path
        self.executable_path = facts.executable_path
        self.icon_path = facts.icon_path
        self.registry_key = facts.registry_key
        self.version = facts.version
        self.install_timestamp = facts.install_timestamp
        self.size_bytes = facts.size_bytes
        self.last_detected_at = now
        self.updated_at = now


@dataclass(frozen=True, slots=True)
class InstalledSoftware:
    """Read model joining one installation with its catalog entry."""

    installation: LocalInstallation
    reference: ReferenceCatalogEntry

    @property
    def name(self) -> str:
        return self.reference.name

    @property
    def origin(self) -> OriginPlatform:
        return self.reference.origin

    @property
    def category(self) -> Category:
        return self.reference.category
