"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from softcatalog.adapters.detectors import build_default_detectors
from softcatalog.adapters.providers import build_default_providers
from softcatalog.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyCatalogUnitOfWork,
    SqlAlchemyLocalUnitOfWork,
    StartupError,
    is_started,
    startup,
)
from softcatalog.config import (
    ConfigurationError,
    EnrichmentConfig,
    get_detection_config,
    get_enrichment_config,
)
from softcatalog.domain.diagnostics import DiagnosticsReport, build_diagnostics
from softcatalog.domain.enrichment_pipeline import (
    EnrichmentBatchResult,
    EnrichmentOrchestrator,
    EnrichmentRequest,
    EnrichmentWorker,
    OrchestratorSettings,
)
from softcatalog.domain.errors import InventoryError
from softcatalog.domain.inventory import InventoryRefresher, RefreshResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from softcatalog.domain.model import (
        Category,
        InstalledSoftware,
        OriginPlatform,
        ReferenceCatalogEntry,
    )
    from softcatalog.domain.ports import (
        CatalogUnitOfWorkFactory,
        LocalUnitOfWorkFactory,
        MetadataProvider,
        SourceDetector,
    )

log = getLogger(__name__)

# Failures that leave a store or its configuration unusable for this call.
_UNUSABLE_SETUP = (InventoryError, StartupError, ConfigurationError, OSError)


@dataclass(slots=True)
class InventoryStatistics:
    total: int = 0
    by_category: dict[str, int] = field(default_factory=dict[str, int])
    by_origin: dict[str, int] = field(default_factory=dict[str, int])
    available_origins: list[str] = field(default_factory=list[str])


def orchestrator_settings(config: EnrichmentConfig) -> OrchestratorSettings:
    return OrchestratorSettings(
        freshness=config.freshness,
        retry_after=config.retry_after,
        auto_batch_size=config.auto_batch_size,
        force_batch_size=config.force_batch_size,
        max_auto_batches=config.max_auto_batches,
        batch_delay_seconds=config.batch_delay_seconds,
        entry_delay_seconds=config.entry_delay_seconds,
        provider_timeout_seconds=config.provider_timeout_seconds,
        acceptance_threshold=config.acceptance_threshold,
        software_acceptance_threshold=config.software_acceptance_threshold,
    )


def _catalog_factory(factory: CatalogUnitOfWorkFactory | None) -> CatalogUnitOfWorkFactory:
    if factory is not None:
        return factory
    if not is_started():
        startup()
    return SqlAlchemyCatalogUnitOfWork


def _local_factory(factory: LocalUnitOfWorkFactory | None) -> LocalUnitOfWorkFactory:
    if factory is not None:
        return factory
    if not is_started():
        startup()
    return SqlAlchemyLocalUnitOfWork


def build_orchestrator(
    *,
    providers: Sequence[MetadataProvider] | None = None,
    unit_of_work_factory: CatalogUnitOfWorkFactory | None = None,
    config: EnrichmentConfig | None = None,
) -> EnrichmentOrchestrator:
    catalog_factory = _catalog_factory(unit_of_work_factory)
    effective_config = config or get_enrichment_config()
    return EnrichmentOrchestrator(
        providers if providers is not None else build_default_providers(),
        catalog_factory,
        settings=orchestrator_settings(effective_config),
    )


def build_worker(
    *,
    providers: Sequence[MetadataProvider] | None = None,
    unit_of_work_factory: CatalogUnitOfWorkFactory | None = None,
    config: EnrichmentConfig | None = None,
) -> EnrichmentWorker:
    """An enrichment worker for hosts that keep running after a refresh."""

    return EnrichmentWorker(
        build_orchestrator(
            providers=providers,
            unit_of_work_factory=unit_of_work_factory,
            config=config,
        )
    )


def refresh_inventory(
    *,
    detectors: Sequence[SourceDetector] | None = None,
    catalog_unit_of_work_factory: CatalogUnitOfWorkFactory | None = None,
    local_unit_of_work_factory: LocalUnitOfWorkFactory | None = None,
    worker: EnrichmentWorker | None = None,
) -> RefreshResult:
    """Detect installed software and persist it; new entries are handed to ``worker``."""

    try:
        catalog_factory = _catalog_factory(catalog_unit_of_work_factory)
        local_factory = _local_factory(local_unit_of_work_factory)
        effective_detectors = (
            detectors if detectors is not None else build_default_detectors(get_detection_config())
        )
    except _UNUSABLE_SETUP as exc:
        log.error("Cannot refresh the inventory: %s", exc)  # noqa: TRY400
        return RefreshResult(failed=True, error=str(exc))

    refresher = InventoryRefresher(
        effective_detectors,
        catalog_factory,
        local_factory,
        on_enrichment_candidates=worker.submit_background if worker is not None else None,
    )
    log.info("Starting inventory refresh with %d detectors", len(effective_detectors))
    result = refresher.refresh()
    if result is None:
        # only reachable when a refresher is shared across threads
        return RefreshResult(error="refresh already running")

    log.info(
        "Finished inventory refresh: detected=%d, merged=%d, created=%d, updated=%d, pruned=%d",
        result.detected,
        result.merged,
        result.created,
        result.updated,
        result.pruned,
    )
    return result


def enrich_catalog(
    *,
    batch_size: int | None = None,
    providers: Sequence[MetadataProvider] | None = None,
    unit_of_work_factory: CatalogUnitOfWorkFactory | None = None,
    config: EnrichmentConfig | None = None,
) -> EnrichmentBatchResult:
    """Run one on-demand enrichment batch in the calling thread."""

    try:
        orchestrator = build_orchestrator(
            providers=providers,
            unit_of_work_factory=unit_of_work_factory,
            config=config,
        )
    except _UNUSABLE_SETUP as exc:
        log.error("Cannot start enrichment: %s", exc)  # noqa: TRY400
        return EnrichmentBatchResult(error=str(exc))

    async def run() -> EnrichmentBatchResult:
        try:
            return await orchestrator.run_request(EnrichmentRequest.on_demand(batch_size))
        finally:
            await orchestrator.aclose()

    return asyncio.run(run())


def list_installed(
    *,
    category: Category | None = None,
    origin: OriginPlatform | None = None,
    catalog_unit_of_work_factory: CatalogUnitOfWorkFactory | None = None,
    local_unit_of_work_factory: LocalUnitOfWorkFactory | None = None,
) -> list[InstalledSoftware]:
    try:
        catalog_factory = _catalog_factory(catalog_unit_of_work_factory)
        local_factory = _local_factory(local_unit_of_work_factory)
        with catalog_factory() as catalog, local_factory() as local:
            return local.repositories.installations.get_joined_with_catalog(
                catalog.repositories.references,
                category=category,
                origin=origin,
            )
    except _UNUSABLE_SETUP as exc:
        log.warning("Inventory unavailable: %s", exc)
        return []


def _available_origins(detectors: Sequence[SourceDetector] | None) -> list[str]:
    effective = (
        detectors if detectors is not None else build_default_detectors(get_detection_config())
    )
    available: set[str] = set()
    for detector in effective:
        try:
            if detector.is_available():
                available.add(detector.origin.value)
        except OSError as exc:
            log.debug("%s availability check failed: %s", detector.name, exc)
    return sorted(available)


def inventory_statistics(
    *,
    detectors: Sequence[SourceDetector] | None = None,
    catalog_unit_of_work_factory: CatalogUnitOfWorkFactory | None = None,
    local_unit_of_work_factory: LocalUnitOfWorkFactory | None = None,
) -> InventoryStatistics:
    installed = list_installed(
        catalog_unit_of_work_factory=catalog_unit_of_work_factory,
        local_unit_of_work_factory=local_unit_of_work_factory,
    )
    categories = Counter(item.category.value for item in installed)
    origins = Counter(item.origin.value for item in installed)
    return InventoryStatistics(
        total=len(installed),
        by_category=dict(sorted(categories.items())),
        by_origin=dict(sorted(origins.items())),
        available_origins=_available_origins(detectors),
    )


def diagnostics_report(
    *,
    providers: Sequence[MetadataProvider] | None = None,
    catalog_unit_of_work_factory: CatalogUnitOfWorkFactory | None = None,
    in_flight: Sequence[int] = (),
) -> DiagnosticsReport:
    warnings: list[str] = []
    try:
        get_enrichment_config()
    except ConfigurationError as exc:
        warnings.append(str(exc))

    entries: list[ReferenceCatalogEntry] = []
    try:
        with _catalog_factory(catalog_unit_of_work_factory)() as uow:
            entries = uow.repositories.references.list_all()
    except _UNUSABLE_SETUP as exc:
        log.warning("Catalog unavailable for diagnostics: %s", exc)
        warnings.append(f"Catalog store unavailable: {exc}")

    return build_diagnostics(
        entries,
        providers if providers is not None else build_default_providers(),
        in_flight=in_flight,
        config_warnings=warnings,
    )
