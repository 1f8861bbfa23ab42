"""Inventory refresh: detect, dedupe, persist, prune.

One pass runs at a time. A refresh requested while a pass is running is
folded into a single re-run at the end of that pass.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from softcatalog.domain.categorization import assign_categories
from softcatalog.domain.detection import DetectorReport, run_detectors
from softcatalog.domain.errors import CorruptStoreError, PersistenceConflict
from softcatalog.domain.merge import merge_candidates
from softcatalog.domain.model import Category

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from softcatalog.domain.model import DetectedCandidate, ReferenceCatalogEntry
    from softcatalog.domain.ports import (
        CatalogUnitOfWorkFactory,
        LocalUnitOfWorkFactory,
        SourceDetector,
    )

log = getLogger(__name__)

DETECTION_METADATA_KEY = "detection"


@dataclass(slots=True)
class RefreshResult:
    detected: int = 0
    claimed: int = 0
    merged: int = 0
    created: int = 0
    updated: int = 0
    installations: int = 0
    pruned: int = 0
    conflicts: int = 0
    enrichment_candidates: list[int] = field(default_factory=list[int])
    reports: list[DetectorReport] = field(default_factory=list[DetectorReport])
    failed: bool = False
    error: str | None = None


class InventoryRefresher:
    def __init__(
        self,
        detectors: Sequence[SourceDetector],
        catalog_unit_of_work_factory: CatalogUnitOfWorkFactory,
        local_unit_of_work_factory: LocalUnitOfWorkFactory,
        *,
        on_enrichment_candidates: Callable[[list[int]], None] | None = None,
    ) -> None:
        self.detectors = tuple(detectors)
        self.catalog_unit_of_work_factory = catalog_unit_of_work_factory
        self.local_unit_of_work_factory = local_unit_of_work_factory
        self.on_enrichment_candidates = on_enrichment_candidates
        self._state = threading.Lock()
        self._running = False
        self._pending = False

    @property
    def is_running(self) -> bool:
        with self._state:
            return self._running

    def refresh(self) -> RefreshResult | None:
        """Run a refresh pass, or return ``None`` when one is already running.

        The ``None`` case schedules exactly one re-run after the current pass.
        """

        with self._state:
            if self._running:
                if not self._pending:
                    log.info("Refresh already running, scheduling one re-run")
                self._pending = True
                return None
            self._running = True

        try:
            while True:
                result = self._refresh_once()
                with self._state:
                    if not self._pending:
                        self._running = False
                        return result
                    self._pending = False
                log.info("Running the refresh requested during the previous pass")
        except BaseException:
            with self._state:
                self._running = False
                self._pending = False
            raise

    def _refresh_once(self) -> RefreshResult:
        result = RefreshResult()
        started = datetime.now(UTC)

        detection = run_detectors(self.detectors)
        result.reports = detection.reports
        result.detected = len(detection.candidates)
        result.claimed = detection.claimed

        candidates = merge_candidates(detection.candidates)
        assign_categories(candidates)
        result.merged = len(candidates)

        seen: set[int] = set()
        try:
            for candidate in candidates:
                try:
                    installation_id = self._persist(candidate, started, result)
                except PersistenceConflict as exc:
                    log.warning("Skipping %r: %s", candidate.name, exc)
                    result.conflicts += 1
                    continue
                if installation_id is not None:
                    seen.add(installation_id)
            result.installations = len(seen)

            if result.conflicts:
                log.warning("Not pruning: %d candidates could not be stored", result.conflicts)
            else:
                with self.local_unit_of_work_factory() as uow:
                    result.pruned = uow.repositories.installations.prune_stale(seen)
                    uow.commit()
        except CorruptStoreError as exc:
            log.error("Refresh stopped, store unusable: %s", exc)
            result.failed = True
            result.error = str(exc)
            return result

        log.info(
            "Refresh done: %d detected, %d merged, %d new, %d updated, %d pruned",
            result.detected,
            result.merged,
            result.created,
            result.updated,
            result.pruned,
        )
        if result.enrichment_candidates and self.on_enrichment_candidates is not None:
            self.on_enrichment_candidates(list(result.enrichment_candidates))
        return result

    def _persist(
        self,
        candidate: DetectedCandidate,
        started: datetime,
        result: RefreshResult,
    ) -> int | None:
        with self.catalog_unit_of_work_factory() as uow:
            entry = uow.repositories.references.find_or_create(
                candidate.name,
                candidate.origin,
                candidate.external_id,
                candidate.category or Category.OTHER,
            )
            created = entry.created_at is not None and entry.created_at >= started
            if created:
                result.created += 1
                if _seed_new_entry(entry, candidate):
                    uow.repositories.references.update(entry)
            elif _refresh_identity(entry, candidate):
                result.updated += 1
                uow.repositories.references.update(entry)
            uow.commit()

        entry_id = entry.id
        if entry_id is None:
            return None
        if entry.last_enriched_at is None:
            result.enrichment_candidates.append(entry_id)

        with self.local_unit_of_work_factory() as uow:
            installation = uow.repositories.installations.upsert(
                entry_id, candidate.install_facts()
            )
            uow.commit()
        return installation.id


def _seed_new_entry(entry: ReferenceCatalogEntry, candidate: DetectedCandidate) -> bool:
    changed = False
    if candidate.publisher and not entry.publisher:
        entry.publisher = candidate.publisher
        changed = True
    if candidate.attributes:
        metadata = dict(entry.additional_metadata)
        metadata[DETECTION_METADATA_KEY] = dict(candidate.attributes)
        entry.additional_metadata = metadata
        changed = True
    return changed


def _refresh_identity(entry: ReferenceCatalogEntry, candidate: DetectedCandidate) -> bool:
    changed = False
    if candidate.publisher and not entry.publisher:
        entry.publisher = candidate.publisher
        changed = True
    if (
        entry.category is Category.OTHER
        and candidate.category is not None
        and candidate.category is not Category.OTHER
    ):
        entry.category = candidate.category
        changed = True
    return changed
