from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from softcatalog.domain.enrichment_pipeline import (
    EnrichmentBatchResult,
    EnrichmentOrchestrator,
    EnrichmentRequest,
    OrchestratorSettings,
)
from softcatalog.domain.errors import ProviderCallFailure
from softcatalog.domain.model import Category, EnrichmentState, OriginPlatform, ProviderGroup
from tests.helpers.fakes import StubProvider, make_result

if TYPE_CHECKING:
    from collections.abc import Callable

    from softcatalog.adapters.sqlalchemy.unit_of_work import SqlAlchemyCatalogUnitOfWork
    from softcatalog.domain.model import ReferenceCatalogEntry
    from softcatalog.domain.ports import LookupContext, MetadataResult

    CatalogFactory = Callable[[], SqlAlchemyCatalogUnitOfWork]

SETTINGS = OrchestratorSettings(
    batch_delay_seconds=0,
    entry_delay_seconds=0,
    provider_timeout_seconds=1.0,
)


def _seed(
    factory: CatalogFactory,
    name: str,
    origin: OriginPlatform = OriginPlatform.STEAM,
    external_id: str | None = None,
    category: Category = Category.GAMES,
) -> ReferenceCatalogEntry:
    with factory() as uow:
        entry = uow.repositories.references.find_or_create(name, origin, external_id, category)
        uow.commit()
    return entry


def _load(factory: CatalogFactory, entry_id: int | None) -> ReferenceCatalogEntry:
    assert entry_id is not None
    with factory() as uow:
        entry = uow.repositories.references.find_by_id(entry_id)
    assert entry is not None
    return entry


def test_lookup_by_external_id_is_preferred(catalog_unit_of_work: CatalogFactory) -> None:
    entry = _seed(catalog_unit_of_work, "Portal 2", external_id="620")
    rawg = StubProvider(
        "RAWG",
        ProviderGroup.GAME,
        supported_origins=frozenset({OriginPlatform.STEAM}),
        by_id=make_result(0.95, description="Think with portals"),
        by_name=make_result(0.99),
    )
    orchestrator = EnrichmentOrchestrator([rawg], catalog_unit_of_work, settings=SETTINGS)

    state = asyncio.run(orchestrator.enrich_entry(entry))

    assert state is EnrichmentState.ENRICHED
    assert rawg.id_calls == [(OriginPlatform.STEAM, "620")]
    assert rawg.name_calls == []
    stored = _load(catalog_unit_of_work, entry.id)
    assert stored.description == "Think with portals"
    assert stored.enrichment_source == "RAWG"
    assert stored.external_id == "620"


def test_rejected_id_lookup_falls_back_to_name(catalog_unit_of_work: CatalogFactory) -> None:
    entry = _seed(catalog_unit_of_work, "Portal 2", external_id="620")
    rawg = StubProvider(
        "RAWG",
        ProviderGroup.GAME,
        supported_origins=frozenset({OriginPlatform.STEAM}),
        by_id=None,
        by_name=make_result(0.9),
    )
    orchestrator = EnrichmentOrchestrator([rawg], catalog_unit_of_work, settings=SETTINGS)

    state = asyncio.run(orchestrator.enrich_entry(entry))

    assert state is EnrichmentState.ENRICHED
    assert rawg.name_calls == ["Portal 2"]


def test_low_confidence_moves_on_to_next_provider(catalog_unit_of_work: CatalogFactory) -> None:
    entry = _seed(
        catalog_unit_of_work, "Paint.NET", OriginPlatform.REGISTRY, category=Category.DESIGN
    )
    winget = StubProvider("Winget", ProviderGroup.SOFTWARE, priority=1, by_name=make_result(0.5))
    wikipedia = StubProvider(
        "Wikipedia",
        ProviderGroup.SOFTWARE,
        priority=99,
        by_name=make_result(0.9, description="Raster graphics editor"),
    )
    rawg = StubProvider("RAWG", ProviderGroup.GAME, by_name=make_result(1.0))
    orchestrator = EnrichmentOrchestrator(
        [wikipedia, rawg, winget], catalog_unit_of_work, settings=SETTINGS
    )

    result = EnrichmentBatchResult()
    asyncio.run(orchestrator.enrich_entry(entry, result))

    assert result.enriched == 1
    assert winget.calls == 1
    assert rawg.calls == 0
    stored = _load(catalog_unit_of_work, entry.id)
    assert stored.enrichment_source == "Wikipedia"
    assert stored.description == "Raster graphics editor"


def test_unavailable_and_failing_providers_are_told_apart(
    catalog_unit_of_work: CatalogFactory,
) -> None:
    entry = _seed(catalog_unit_of_work, "Hades")
    rawg = StubProvider("RAWG", ProviderGroup.GAME, available=False, reason="no key")
    flaky = StubProvider(
        "Flaky",
        ProviderGroup.GAME,
        priority=2,
        error=ProviderCallFailure("Flaky", "HTTP 502"),
    )
    orchestrator = EnrichmentOrchestrator([rawg, flaky], catalog_unit_of_work, settings=SETTINGS)

    result = EnrichmentBatchResult()
    state = asyncio.run(orchestrator.enrich_entry(entry, result))

    assert state is EnrichmentState.FAILED
    assert rawg.calls == 0
    assert result.unavailable_providers == {"RAWG"}
    assert result.provider_failures == ["Flaky: HTTP 502"]
    stored = _load(catalog_unit_of_work, entry.id)
    assert stored.enrichment_state is EnrichmentState.FAILED
    assert stored.last_enrichment_attempt is not None
    assert stored.last_enriched_at is None


def test_entry_waits_when_no_provider_of_its_group_is_available(
    catalog_unit_of_work: CatalogFactory,
) -> None:
    entry = _seed(
        catalog_unit_of_work, "Paint.NET", OriginPlatform.REGISTRY, category=Category.DESIGN
    )
    winget = StubProvider("Winget", ProviderGroup.SOFTWARE, available=False, reason="missing")
    rawg = StubProvider("RAWG", ProviderGroup.GAME, by_name=make_result(1.0))
    orchestrator = EnrichmentOrchestrator([winget, rawg], catalog_unit_of_work, settings=SETTINGS)

    result = EnrichmentBatchResult()
    state = asyncio.run(orchestrator.enrich_entry(entry, result))

    assert state is EnrichmentState.UNENRICHED
    assert result.no_provider_available == 1
    assert (result.enriched, result.failed, result.skipped) == (0, 0, 0)
    assert result.unavailable_providers == {"Winget"}
    assert rawg.calls == 0
    stored = _load(catalog_unit_of_work, entry.id)
    assert stored.enrichment_state is EnrichmentState.UNENRICHED
    assert stored.last_enrichment_attempt is None


def test_background_request_stops_when_no_provider_can_help(
    catalog_unit_of_work: CatalogFactory,
) -> None:
    entry = _seed(catalog_unit_of_work, "Hades")
    rawg = StubProvider("RAWG", ProviderGroup.GAME, available=False, reason="no key")
    orchestrator = EnrichmentOrchestrator([rawg], catalog_unit_of_work, settings=SETTINGS)

    result = asyncio.run(orchestrator.run_request(EnrichmentRequest.background([entry.id or 0])))

    # the seeded id, then one selection pass that made no progress
    assert result.selected == 2
    assert result.no_provider_available == 2
    assert result.processed == 0


def test_enrichment_keeps_identity_set_by_a_concurrent_refresh(
    catalog_unit_of_work: CatalogFactory,
) -> None:
    seeded = _seed(catalog_unit_of_work, "Hades", category=Category.OTHER)
    snapshot = _load(catalog_unit_of_work, seeded.id)
    with catalog_unit_of_work() as uow:
        references = uow.repositories.references
        adopted = references.find_or_create(
            "Hades", OriginPlatform.STEAM, "1145360", Category.OTHER
        )
        adopted.category = Category.GAMES
        adopted.publisher = "Supergiant Games"
        references.update(adopted)
        uow.commit()
    rawg = StubProvider(
        "RAWG",
        ProviderGroup.GAME,
        by_name=make_result(0.95, description="Roguelike", publisher="Someone Else"),
    )
    orchestrator = EnrichmentOrchestrator([rawg], catalog_unit_of_work, settings=SETTINGS)

    state = asyncio.run(orchestrator.enrich_entry(snapshot))

    assert state is EnrichmentState.ENRICHED
    stored = _load(catalog_unit_of_work, seeded.id)
    assert stored.external_id == "1145360"
    assert stored.category is Category.GAMES
    assert stored.publisher == "Supergiant Games"
    assert stored.description == "Roguelike"
    assert stored.enrichment_source == "RAWG"
    assert stored.additional_metadata["RAWG"]["confidence"] == 0.95  # type: ignore[index]


def test_unexpected_provider_errors_count_as_failures(
    catalog_unit_of_work: CatalogFactory,
) -> None:
    entry = _seed(catalog_unit_of_work, "Hades")
    broken = StubProvider("Broken", ProviderGroup.GAME, error=RuntimeError("boom"))
    fallback = StubProvider("Fallback", ProviderGroup.GAME, priority=5, by_name=make_result(0.9))
    orchestrator = EnrichmentOrchestrator(
        [broken, fallback], catalog_unit_of_work, settings=SETTINGS
    )

    result = EnrichmentBatchResult()
    state = asyncio.run(orchestrator.enrich_entry(entry, result))

    assert state is EnrichmentState.ENRICHED
    assert len(result.provider_failures) == 1
    assert result.provider_failures[0].startswith("Broken: ")


def test_timed_out_call_is_a_provider_failure(catalog_unit_of_work: CatalogFactory) -> None:
    entry = _seed(catalog_unit_of_work, "Celeste")
    slow = StubProvider("Slow", ProviderGroup.GAME, delay=0.5, by_name=make_result(1.0))
    fast = StubProvider("Fast", ProviderGroup.GAME, priority=2, by_name=make_result(0.9))
    settings = OrchestratorSettings(
        batch_delay_seconds=0, entry_delay_seconds=0, provider_timeout_seconds=0.05
    )
    orchestrator = EnrichmentOrchestrator([slow, fast], catalog_unit_of_work, settings=settings)

    result = EnrichmentBatchResult()
    asyncio.run(orchestrator.enrich_entry(entry, result))

    assert result.provider_failures == ["Slow: timed out after 0.05s"]
    assert _load(catalog_unit_of_work, entry.id).enrichment_source == "Fast"


def test_fresh_entry_makes_no_provider_calls(catalog_unit_of_work: CatalogFactory) -> None:
    entry = _seed(catalog_unit_of_work, "Portal 2")
    rawg = StubProvider("RAWG", ProviderGroup.GAME, by_name=make_result(0.95))
    orchestrator = EnrichmentOrchestrator([rawg], catalog_unit_of_work, settings=SETTINGS)
    asyncio.run(orchestrator.enrich_entry(entry))
    assert rawg.calls == 1

    again = _load(catalog_unit_of_work, entry.id)
    result = EnrichmentBatchResult()
    state = asyncio.run(
        EnrichmentOrchestrator([rawg], catalog_unit_of_work, settings=SETTINGS).enrich_entry(
            again, result
        )
    )

    assert state is None
    assert result.fresh == 1
    assert rawg.calls == 1


def test_same_entry_is_not_enriched_twice_at_once(catalog_unit_of_work: CatalogFactory) -> None:
    entry = _seed(catalog_unit_of_work, "Portal 2")
    rawg = StubProvider("RAWG", ProviderGroup.GAME, delay=0.05, by_name=make_result(0.95))
    orchestrator = EnrichmentOrchestrator([rawg], catalog_unit_of_work, settings=SETTINGS)
    first, second = EnrichmentBatchResult(), EnrichmentBatchResult()

    async def both() -> list[EnrichmentState | None]:
        return list(
            await asyncio.gather(
                orchestrator.enrich_entry(entry, first),
                orchestrator.enrich_entry(entry, second),
            )
        )

    states = asyncio.run(both())

    assert states == [EnrichmentState.ENRICHED, None]
    assert second.already_in_flight == 1
    assert rawg.calls == 1
    assert orchestrator.in_flight == frozenset()


def test_background_selection_honours_retry_cooldown(
    catalog_unit_of_work: CatalogFactory,
) -> None:
    entry = _seed(catalog_unit_of_work, "Hades")
    entry.last_enrichment_attempt = datetime.now(UTC) - timedelta(hours=1)
    with catalog_unit_of_work() as uow:
        uow.repositories.references.update(entry)
        uow.commit()
    rawg = StubProvider("RAWG", ProviderGroup.GAME, by_name=make_result(0.9))
    orchestrator = EnrichmentOrchestrator([rawg], catalog_unit_of_work, settings=SETTINGS)

    background = asyncio.run(
        orchestrator.run_request(EnrichmentRequest.background([entry.id or 0]))
    )
    on_demand = asyncio.run(orchestrator.run_request(EnrichmentRequest.on_demand()))

    assert background.selected == 0
    assert on_demand.selected == 1
    assert on_demand.enriched == 1


def test_on_demand_batch_size_caps_selection(catalog_unit_of_work: CatalogFactory) -> None:
    for name in ("A Game", "B Game", "C Game"):
        _seed(catalog_unit_of_work, name)
    rawg = StubProvider("RAWG", ProviderGroup.GAME, by_name=make_result(0.9))
    orchestrator = EnrichmentOrchestrator([rawg], catalog_unit_of_work, settings=SETTINGS)

    result = asyncio.run(orchestrator.run_request(EnrichmentRequest.on_demand(batch_size=2)))

    assert result.selected == 2
    assert result.enriched == 2
    assert orchestrator.last_result is result


def test_background_request_keeps_batching_until_nothing_is_left(
    catalog_unit_of_work: CatalogFactory,
) -> None:
    seeded = [_seed(catalog_unit_of_work, f"Game {index}") for index in range(5)]
    rawg = StubProvider("RAWG", ProviderGroup.GAME, by_name=make_result(0.9))
    settings = OrchestratorSettings(
        auto_batch_size=2, batch_delay_seconds=0, entry_delay_seconds=0
    )
    orchestrator = EnrichmentOrchestrator([rawg], catalog_unit_of_work, settings=settings)

    result = asyncio.run(
        orchestrator.run_request(EnrichmentRequest.background([seeded[0].id or 0]))
    )

    assert result.enriched == 5
    assert rawg.calls == 5


class CancellingProvider(StubProvider):
    orchestrator: EnrichmentOrchestrator | None = None

    async def lookup_by_name(self, name: str, context: LookupContext) -> MetadataResult | None:
        if self.orchestrator is not None:
            self.orchestrator.cancel()
        return await super().lookup_by_name(name, context)


def test_cancel_stops_between_entries(catalog_unit_of_work: CatalogFactory) -> None:
    seeded = [_seed(catalog_unit_of_work, name) for name in ("Alpha", "Beta", "Gamma")]
    provider = CancellingProvider("RAWG", ProviderGroup.GAME, by_name=make_result(0.9))
    orchestrator = EnrichmentOrchestrator([provider], catalog_unit_of_work, settings=SETTINGS)
    provider.orchestrator = orchestrator

    result = asyncio.run(orchestrator.run_request(EnrichmentRequest.on_demand()))

    assert result.cancelled
    assert result.enriched == 1
    states = [_load(catalog_unit_of_work, entry.id).enrichment_state for entry in seeded]
    assert states.count(EnrichmentState.ENRICHED) == 1
    assert states.count(EnrichmentState.UNENRICHED) == 2


def test_run_consumes_queue_until_shutdown(catalog_unit_of_work: CatalogFactory) -> None:
    game = _seed(catalog_unit_of_work, "Portal 2")
    tool = _seed(
        catalog_unit_of_work, "Notepad++", OriginPlatform.REGISTRY, category=Category.DEVELOPMENT
    )
    rawg = StubProvider("RAWG", ProviderGroup.GAME, by_name=make_result(0.9))
    winget = StubProvider("Winget", ProviderGroup.SOFTWARE, by_name=make_result(1.0))
    orchestrator = EnrichmentOrchestrator([rawg, winget], catalog_unit_of_work, settings=SETTINGS)

    async def scenario() -> None:
        orchestrator.submit(EnrichmentRequest.background([game.id or 0]))
        orchestrator.submit(EnrichmentRequest.on_demand())
        orchestrator.shutdown()
        await orchestrator.run()

    asyncio.run(scenario())

    assert _load(catalog_unit_of_work, game.id).enrichment_source == "RAWG"
    assert _load(catalog_unit_of_work, tool.id).enrichment_source == "Winget"
    assert rawg.closed
    assert winget.closed


def test_cancel_drops_queued_requests_but_keeps_shutdown(
    catalog_unit_of_work: CatalogFactory,
) -> None:
    _seed(catalog_unit_of_work, "Portal 2")
    rawg = StubProvider("RAWG", ProviderGroup.GAME, by_name=make_result(0.9))
    orchestrator = EnrichmentOrchestrator([rawg], catalog_unit_of_work, settings=SETTINGS)

    async def scenario() -> None:
        orchestrator.submit(EnrichmentRequest.on_demand())
        orchestrator.shutdown()
        orchestrator.cancel()
        await orchestrator.run()

    asyncio.run(scenario())

    assert rawg.calls == 0
    assert rawg.closed
