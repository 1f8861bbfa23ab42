"""Ports for the catalog and local installation stores."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable
    from datetime import datetime, timedelta

    from softcatalog.domain.model import (
        Category,
        InstalledSoftware,
        InstallFacts,
        LocalInstallation,
        OriginPlatform,
        ReferenceCatalogEntry,
    )


@runtime_checkable
class ReferenceCatalogRepository(Protocol):
    """Shareable "what is this software" entries keyed by origin and external id."""

    def find_by_id(self, entry_id: int) -> ReferenceCatalogEntry | None: ...

    def find_by_external_id(
        self, origin: OriginPlatform, external_id: str
    ) -> ReferenceCatalogEntry | None: ...

    def find_by_name(
        self, name: str, origin: OriginPlatform | None = None
    ) -> ReferenceCatalogEntry | None: ...

    def find_or_create(
        self,
        name: str,
        origin: OriginPlatform,
        external_id: str | None,
        category: Category,
    ) -> ReferenceCatalogEntry: ...

    def get_many(self, entry_ids: Iterable[int]) -> dict[int, ReferenceCatalogEntry]: ...

    def get_unenriched(
        self,
        max_age: timedelta,
        limit: int,
        *,
        retry_after: timedelta | None = None,
        now: datetime | None = None,
    ) -> list[ReferenceCatalogEntry]: ...

    def list_all(self) -> list[ReferenceCatalogEntry]: ...

    def update(self, entry: ReferenceCatalogEntry) -> None: ...

    def save_enrichment(self, entry: ReferenceCatalogEntry) -> None: ...


@runtime_checkable
class LocalInstallationRepository(Protocol):
    """Machine-scoped installation rows linked to catalog entries by id."""

    def upsert(self, reference_catalog_id: int, facts: InstallFacts) -> LocalInstallation: ...

    def prune_stale(self, seen_installation_ids: Collection[int]) -> int: ...

    def get_all(self) -> list[LocalInstallation]: ...

    def get_joined_with_catalog(
        self,
        catalog: ReferenceCatalogRepository,
        *,
        category: Category | None = None,
        origin: OriginPlatform | None = None,
    ) -> list[InstalledSoftware]: ...

    def count(self) -> int: ...
