from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from softcatalog.adapters.sqlalchemy.unit_of_work import SqlAlchemyCatalogUnitOfWork
from softcatalog.domain.enrichment_pipeline import (
    EnrichmentOrchestrator,
    EnrichmentWorker,
    OrchestratorSettings,
)
from softcatalog.domain.model import Category, EnrichmentState, OriginPlatform, ProviderGroup
from tests.helpers.fakes import StubProvider, make_result

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

pytestmark = pytest.mark.integration

SETTINGS = OrchestratorSettings(batch_delay_seconds=0, entry_delay_seconds=0)


def _seed(*names: str) -> list[int]:
    ids: list[int] = []
    with SqlAlchemyCatalogUnitOfWork() as uow:
        for name in names:
            entry = uow.repositories.references.find_or_create(
                name, OriginPlatform.STEAM, None, Category.GAMES
            )
            assert entry.id is not None
            ids.append(entry.id)
        uow.commit()
    return ids


def _states() -> dict[str, EnrichmentState]:
    with SqlAlchemyCatalogUnitOfWork() as uow:
        return {
            entry.name: entry.enrichment_state
            for entry in uow.repositories.references.list_all()
        }


def test_worker_enriches_background_requests(file_stores: tuple[Engine, Engine]) -> None:
    del file_stores
    ids = _seed("Portal 2", "Hades")
    provider = StubProvider("RAWG", ProviderGroup.GAME, by_name=make_result(0.9))
    worker = EnrichmentWorker(
        EnrichmentOrchestrator([provider], SqlAlchemyCatalogUnitOfWork, settings=SETTINGS)
    )

    worker.submit_background(ids[:1])
    try:
        assert worker.is_running
        assert worker.wait_idle(timeout=10)
    finally:
        worker.stop(timeout=10)

    assert not worker.is_running
    assert provider.closed
    assert _states() == {
        "Portal 2": EnrichmentState.ENRICHED,
        "Hades": EnrichmentState.ENRICHED,
    }


def test_worker_on_demand_request(file_stores: tuple[Engine, Engine]) -> None:
    del file_stores
    _seed("Celeste")
    provider = StubProvider("RAWG", ProviderGroup.GAME, by_name=make_result(0.5))
    orchestrator = EnrichmentOrchestrator(
        [provider], SqlAlchemyCatalogUnitOfWork, settings=SETTINGS
    )
    worker = EnrichmentWorker(orchestrator)

    worker.submit_on_demand(batch_size=5)
    worker.stop(timeout=10)

    assert orchestrator.last_result is not None
    assert orchestrator.last_result.failed == 1
    assert _states() == {"Celeste": EnrichmentState.FAILED}


def test_idle_worker_calls_are_harmless(file_stores: tuple[Engine, Engine]) -> None:
    del file_stores
    worker = EnrichmentWorker(EnrichmentOrchestrator([], SqlAlchemyCatalogUnitOfWork))

    worker.cancel()
    assert worker.wait_idle(timeout=1)
    worker.stop()

    assert not worker.is_running
