"""Repository implementations backed by SQLAlchemy sessions.

Reads degrade to empty results when a store is missing its schema or is
corrupt; writes translate the same failures into ``CorruptStoreError``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, cast

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import DatabaseError, IntegrityError

from softcatalog.adapters.sqlalchemy.mappings import (
    installed_software_table,
    software_ref_table,
)
from softcatalog.domain.errors import CorruptStoreError, PersistenceConflict
from softcatalog.domain.matching import normalize_name
from softcatalog.domain.model import (
    InstalledSoftware,
    LocalInstallation,
    ReferenceCatalogEntry,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable
    from datetime import timedelta

    from sqlalchemy.engine import CursorResult
    from sqlalchemy.orm import Session

    from softcatalog.domain.model import Category, InstallFacts, OriginPlatform
    from softcatalog.domain.ports.persistence import ReferenceCatalogRepository

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


# Columns the enrichment orchestrator owns; publisher is only filled when empty.
_ENRICHMENT_COLUMNS = (
    "description",
    "genres",
    "developers",
    "release_date",
    "cover_image_url",
    "enrichment_source",
    "last_enriched_at",
    "last_enrichment_attempt",
)


class _SqlAlchemyStoreRepository:
    store_name = "store"

    def __init__(self, session: Session) -> None:
        self.session = session

    def _read[T](self, operation: str, query: Callable[[], T], default: Callable[[], T]) -> T:
        try:
            return query()
        except IntegrityError:
            raise
        except DatabaseError as exc:
            self.session.rollback()
            log.warning(
                "%s %s failed, treating as empty: %s",
                self.store_name,
                operation,
                exc.orig if exc.orig is not None else exc,
            )
            return default()

    def _write[T](self, operation: str, action: Callable[[], T]) -> T:
        try:
            return action()
        except IntegrityError:
            raise
        except DatabaseError as exc:
            self.session.rollback()
            raise CorruptStoreError(f"{self.store_name} {operation} failed: {exc}") from exc


class SqlAlchemyReferenceCatalogRepository(_SqlAlchemyStoreRepository):
    store_name = "catalog store"

    def find_by_id(self, entry_id: int) -> ReferenceCatalogEntry | None:
        return self._read(
            "find_by_id",
            lambda: self.session.get(ReferenceCatalogEntry, entry_id),
            lambda: None,
        )

    def find_by_external_id(
        self, origin: OriginPlatform, external_id: str
    ) -> ReferenceCatalogEntry | None:
        if not external_id:
            return None
        return self._read(
            "find_by_external_id",
            lambda: self._select_by_external_id(origin, external_id),
            lambda: None,
        )

    def find_by_name(
        self, name: str, origin: OriginPlatform | None = None
    ) -> ReferenceCatalogEntry | None:
        if not name or not name.strip():
            return None
        return self._read(
            "find_by_name",
            lambda: self._select_by_name(normalize_name(name), origin),
            lambda: None,
        )

    def find_or_create(
        self,
        name: str,
        origin: OriginPlatform,
        external_id: str | None,
        category: Category,
    ) -> ReferenceCatalogEntry:
        """Return the entry for this identity, inserting it when absent.

        A concurrent insert of the same identity surfaces as an IntegrityError on
        flush; the session is rolled back and the winner's row is returned.
        Callers should commit pending work before calling.
        """

        if not name or not name.strip():
            raise ValueError("Catalog entries require a name")
        external_id = external_id.strip() if external_id and external_id.strip() else None
        name_key = normalize_name(name)

        existing = self._write("find_or_create", lambda: self._find_identity(
            name_key, origin, external_id
        ))
        if existing is not None:
            return existing

        now = _utcnow()
        entry = ReferenceCatalogEntry(
            name=name.strip(),
            name_key=name_key,
            origin=origin,
            external_id=external_id,
            category=category,
            created_at=now,
            updated_at=now,
        )
        try:
            self._write("find_or_create", lambda: self._insert(entry))
        except IntegrityError as exc:
            self.session.rollback()
            log.debug(
                "Catalog insert for %s:%s (%r) lost a race, re-reading",
                origin,
                external_id or "-",
                name,
            )
            existing = self._write(
                "find_or_create", lambda: self._find_identity(name_key, origin, external_id)
            )
            if existing is None:
                raise PersistenceConflict(
                    f"Conflicting catalog row for {origin}:{external_id or name_key} vanished"
                ) from exc
            return existing

        log.info(
            "Created catalog entry %s (%s:%s, id=%s)",
            entry.name,
            origin,
            external_id or "-",
            entry.id,
        )
        return entry

    def get_many(self, entry_ids: Iterable[int]) -> dict[int, ReferenceCatalogEntry]:
        ids = sorted(set(entry_ids))
        if not ids:
            return {}

        def query() -> dict[int, ReferenceCatalogEntry]:
            stmt = select(ReferenceCatalogEntry).where(software_ref_table.c.id.in_(ids))
            return {
                cast(int, entry.id): entry for entry in self.session.execute(stmt).scalars()
            }

        return self._read("get_many", query, dict)

    def get_unenriched(
        self,
        max_age: timedelta,
        limit: int,
        *,
        retry_after: timedelta | None = None,
        now: datetime | None = None,
    ) -> list[ReferenceCatalogEntry]:
        """Entries never enriched or older than ``max_age``, never-enriched first.

        Entries attempted within ``retry_after`` are left for a later batch.
        """

        if limit <= 0:
            return []
        current = now or _utcnow()
        columns = software_ref_table.c
        stmt = select(ReferenceCatalogEntry).where(
            or_(
                columns.last_enriched_at.is_(None),
                columns.last_enriched_at < current - max_age,
            )
        )
        if retry_after is not None:
            stmt = stmt.where(
                or_(
                    columns.last_enrichment_attempt.is_(None),
                    columns.last_enrichment_attempt < current - retry_after,
                )
            )
        stmt = stmt.order_by(columns.last_enriched_at.asc().nulls_first(), columns.id).limit(
            limit
        )

        entries = self._read(
            "get_unenriched",
            lambda: list(self.session.execute(stmt).scalars()),
            list,
        )
        log.debug("Selected %d catalog entries for enrichment (limit %d)", len(entries), limit)
        return entries

    def list_all(self) -> list[ReferenceCatalogEntry]:
        stmt = select(ReferenceCatalogEntry).order_by(software_ref_table.c.id)
        return self._read("list_all", lambda: list(self.session.execute(stmt).scalars()), list)

    def update(self, entry: ReferenceCatalogEntry) -> None:
        entry.updated_at = _utcnow()

        def action() -> None:
            self.session.merge(entry)
            self.session.flush()

        self._write("update", action)

    def save_enrichment(self, entry: ReferenceCatalogEntry) -> None:
        """Write the enrichment columns of ``entry`` onto the stored row.

        The row is re-read first; identity columns keep whatever re-detection
        stored since ``entry`` was loaded.
        """

        entry_id = entry.id
        if entry_id is None:
            raise ValueError("Only persisted catalog entries can be saved")

        def action() -> None:
            stored = self.session.get(ReferenceCatalogEntry, entry_id)
            if stored is None:
                log.warning("Catalog entry %s vanished before its enrichment was saved", entry_id)
                return
            for column in _ENRICHMENT_COLUMNS:
                setattr(stored, column, getattr(entry, column))
            if entry.publisher and not stored.publisher:
                stored.publisher = entry.publisher
            source = entry.enrichment_source
            if source is not None and source in entry.additional_metadata:
                metadata = dict(stored.additional_metadata)
                metadata[source] = entry.additional_metadata[source]
                stored.additional_metadata = metadata
            stored.updated_at = _utcnow()
            self.session.flush()

        self._write("save_enrichment", action)

    def _insert(self, entry: ReferenceCatalogEntry) -> None:
        self.session.add(entry)
        self.session.flush()

    def _find_identity(
        self,
        name_key: str,
        origin: OriginPlatform,
        external_id: str | None,
    ) -> ReferenceCatalogEntry | None:
        if external_id is not None:
            by_id = self._select_by_external_id(origin, external_id)
            if by_id is not None:
                return by_id
        by_name = self._select_by_name(name_key, origin, id_less_only=True)
        if by_name is not None and external_id is not None:
            # the origin exposes an id now; adopt it instead of creating a twin
            by_name.external_id = external_id
            by_name.updated_at = _utcnow()
            self.session.flush()
        return by_name

    def _select_by_external_id(
        self, origin: OriginPlatform, external_id: str
    ) -> ReferenceCatalogEntry | None:
        stmt = (
            select(ReferenceCatalogEntry)
            .where(software_ref_table.c.origin == origin)
            .where(software_ref_table.c.external_id == external_id)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _select_by_name(
        self,
        name_key: str,
        origin: OriginPlatform | None,
        *,
        id_less_only: bool = False,
    ) -> ReferenceCatalogEntry | None:
        stmt = select(ReferenceCatalogEntry).where(software_ref_table.c.name_key == name_key)
        if origin is not None:
            stmt = stmt.where(software_ref_table.c.origin == origin)
        if id_less_only:
            stmt = stmt.where(software_ref_table.c.external_id.is_(None))
        stmt = stmt.order_by(software_ref_table.c.id).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()


class SqlAlchemyLocalInstallationRepository(_SqlAlchemyStoreRepository):
    store_name = "local store"

    def upsert(self, reference_catalog_id: int, facts: InstallFacts) -> LocalInstallation:
        """Insert or refresh the row for (catalog id, install path).

        Without an install path the executable path identifies the row.
        """

        if reference_catalog_id <= 0:
            raise ValueError(f"Invalid reference catalog id: {reference_catalog_id}")

        def action() -> LocalInstallation:
            now = _utcnow()
            existing = self._match(reference_catalog_id, facts)
            if existing is not None:
                existing.apply_facts(facts, now=now)
                self.session.flush()
                return existing
            installation = LocalInstallation(
                reference_catalog_id=reference_catalog_id,
                created_at=now,
            )
            installation.apply_facts(facts, now=now)
            self.session.add(installation)
            self.session.flush()
            return installation

        try:
            return self._write("upsert", action)
        except IntegrityError as exc:
            self.session.rollback()
            raise PersistenceConflict(
                f"Installation row for catalog id {reference_catalog_id} conflicts: {exc}"
            ) from exc

    def prune_stale(self, seen_installation_ids: Collection[int]) -> int:
        """Delete every installation whose id was not seen in the current pass."""

        seen = sorted(set(seen_installation_ids))

        def action() -> int:
            stmt = delete(installed_software_table)
            if seen:
                stmt = stmt.where(installed_software_table.c.id.not_in(seen))
            result = cast("CursorResult[object]", self.session.execute(stmt))
            return int(result.rowcount or 0)

        removed = self._write("prune_stale", action)
        if removed:
            log.info("Pruned %d stale installations", removed)
        return removed

    def get_all(self) -> list[LocalInstallation]:
        stmt = select(LocalInstallation).order_by(
            installed_software_table.c.reference_catalog_id,
            installed_software_table.c.install_path,
        )
        return self._read("get_all", lambda: list(self.session.execute(stmt).scalars()), list)

    def get_joined_with_catalog(
        self,
        catalog: ReferenceCatalogRepository,
        *,
        category: Category | None = None,
        origin: OriginPlatform | None = None,
    ) -> list[InstalledSoftware]:
        """Join installations with their catalog rows: one query per store.

        Installations whose catalog row is missing are logged and left out.
        """

        installations = self.get_all()
        if not installations:
            return []
        references = catalog.get_many(
            installation.reference_catalog_id for installation in installations
        )

        joined: list[InstalledSoftware] = []
        for installation in installations:
            reference = references.get(installation.reference_catalog_id)
            if reference is None:
                log.warning(
                    "Catalog entry %s missing for installation %s",
                    installation.reference_catalog_id,
                    installation.id,
                )
                continue
            if category is not None and reference.category != category:
                continue
            if origin is not None and reference.origin != origin:
                continue
            joined.append(InstalledSoftware(installation=installation, reference=reference))
        return joined

    def count(self) -> int:
        stmt = select(func.count()).select_from(installed_software_table)
        return self._read("count", lambda: int(self.session.execute(stmt).scalar_one()), int)

    def _match(self, reference_catalog_id: int, facts: InstallFacts) -> LocalInstallation | None:
        columns = installed_software_table.c
        stmt = select(LocalInstallation).where(
            columns.reference_catalog_id == reference_catalog_id
        )
        if facts.install_path:
            stmt = stmt.where(columns.install_path == facts.install_path)
        elif facts.executable_path:
            stmt = stmt.where(columns.install_path.is_(None)).where(
                columns.executable_path == facts.executable_path
            )
        else:
            stmt = stmt.where(columns.install_path.is_(None)).where(
                columns.executable_path.is_(None)
            )
        return self.session.execute(stmt.limit(1)).scalar_one_or_none()


if TYPE_CHECKING:
    from softcatalog.domain.ports.persistence import LocalInstallationRepository

    _session_stub = cast("Session", object())
    _catalog_check: ReferenceCatalogRepository = SqlAlchemyReferenceCatalogRepository(
        _session_stub
    )
    _local_check: LocalInstallationRepository = SqlAlchemyLocalInstallationRepository(
        _session_stub
    )
