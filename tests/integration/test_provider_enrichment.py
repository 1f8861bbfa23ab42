"""Real provider parsing pushed through the orchestrator's acceptance rules."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from softcatalog.adapters.providers import (
    CnetProvider,
    RawgProvider,
    WikipediaProvider,
    WingetProvider,
)
from softcatalog.config import CnetConfig, RawgConfig, WikipediaConfig, WingetConfig
from softcatalog.config.providers import CNET_BASE_URL, RAWG_BASE_URL, WIKIPEDIA_BASE_URL
from softcatalog.domain.enrichment_pipeline import EnrichmentOrchestrator, OrchestratorSettings
from softcatalog.domain.model import Category, EnrichmentState, OriginPlatform
from tests.helpers.http import make_client_factory, offline_resilience

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from softcatalog.adapters.sqlalchemy.unit_of_work import SqlAlchemyCatalogUnitOfWork
    from softcatalog.domain.model import ReferenceCatalogEntry
    from softcatalog.domain.ports import MetadataProvider

    CatalogFactory = Callable[[], SqlAlchemyCatalogUnitOfWork]

SETTINGS = OrchestratorSettings(batch_delay_seconds=0, entry_delay_seconds=0)


def _seed(
    factory: CatalogFactory,
    name: str,
    category: Category,
    origin: OriginPlatform = OriginPlatform.REGISTRY,
) -> ReferenceCatalogEntry:
    with factory() as uow:
        entry = uow.repositories.references.find_or_create(name, origin, None, category)
        uow.commit()
    return entry


def _enrich(
    factory: CatalogFactory,
    provider: MetadataProvider,
    entry: ReferenceCatalogEntry,
) -> tuple[EnrichmentState | None, ReferenceCatalogEntry]:
    orchestrator = EnrichmentOrchestrator([provider], factory, settings=SETTINGS)

    async def run() -> EnrichmentState | None:
        try:
            return await orchestrator.enrich_entry(entry)
        finally:
            await orchestrator.aclose()

    state = asyncio.run(run())
    assert entry.id is not None
    with factory() as uow:
        stored = uow.repositories.references.find_by_id(entry.id)
    assert stored is not None
    return state, stored


def _cnet(page: str) -> CnetProvider:
    def handler(request: httpx.Request) -> httpx.Response:
        del request
        return httpx.Response(200, text=page)

    return CnetProvider(
        config=CnetConfig(resilience=offline_resilience("cnet", CNET_BASE_URL)),
        client_factory=make_client_factory(handler),
    )


def test_cnet_structured_result_enriches_software(catalog_unit_of_work: CatalogFactory) -> None:
    application = {
        "@context": "https://schema.org",
        "@type": "SoftwareApplication",
        "name": "VLC Media Player",
        "description": "<p>Play &amp; stream media.</p>",
        "publisher": {"@type": "Organization", "name": "VideoLAN"},
    }
    page = (
        '<html><head><script type="application/ld+json">'
        f"{json.dumps(application)}</script></head></html>"
    )
    entry = _seed(catalog_unit_of_work, "VLC media player", Category.MEDIA)

    state, stored = _enrich(catalog_unit_of_work, _cnet(page), entry)

    assert state is EnrichmentState.ENRICHED
    assert stored.enrichment_source == "CNET"
    assert stored.description == "Play & stream media."
    assert stored.publisher == "VideoLAN"
    assert stored.additional_metadata["CNET"]["confidence"] == 0.8  # type: ignore[index]


def test_cnet_heading_result_enriches_software(catalog_unit_of_work: CatalogFactory) -> None:
    page = "<html><body><h2><a href='/7zip'>7-Zip 23.01</a></h2><p>File archiver.</p></body></html>"
    entry = _seed(catalog_unit_of_work, "7-Zip", Category.UTILITIES)

    state, stored = _enrich(catalog_unit_of_work, _cnet(page), entry)

    assert state is EnrichmentState.ENRICHED
    assert stored.enrichment_source == "CNET"
    assert stored.description == "File archiver."


class ScriptedWinget:
    def __init__(self, responses: dict[str, tuple[int, str]]) -> None:
        self.responses = responses

    async def __call__(self, args: Sequence[str], timeout: float) -> tuple[int, str]:
        del timeout
        return self.responses.get(args[1], (1, ""))


def test_winget_partial_title_match_enriches_software(
    catalog_unit_of_work: CatalogFactory,
) -> None:
    runner = ScriptedWinget(
        {
            "search": (
                0,
                "Name       Id                   Version  Source\n"
                "-----------------------------------------------\n"
                "Notepad++  Notepad++.Notepad++  8.6.2    winget\n",
            ),
            "show": (0, "Found Notepad++ [Notepad++.Notepad++]\nPublisher: Notepad++ Team\n"),
        }
    )
    provider = WingetProvider(
        config=WingetConfig(), runner=runner, executable=Path("C:/winget.exe")
    )
    entry = _seed(catalog_unit_of_work, "Notepad", Category.DEVELOPMENT)

    state, stored = _enrich(catalog_unit_of_work, provider, entry)

    assert state is EnrichmentState.ENRICHED
    assert stored.enrichment_source == "Winget"
    assert stored.publisher == "Notepad++ Team"
    assert stored.additional_metadata["Winget"]["confidence"] == 0.8  # type: ignore[index]


def _wikipedia(title: str) -> WikipediaProvider:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("list") == "search":
            return httpx.Response(200, json={"query": {"search": [{"pageid": 7, "title": title}]}})
        page = {"pageid": 7, "title": title, "extract": "An audio editor."}
        return httpx.Response(200, json={"query": {"pages": {"7": page}}})

    return WikipediaProvider(
        config=WikipediaConfig(resilience=offline_resilience("wikipedia", WIKIPEDIA_BASE_URL)),
        client_factory=make_client_factory(handler),
    )


def test_wikipedia_containment_match_enriches_software(
    catalog_unit_of_work: CatalogFactory,
) -> None:
    entry = _seed(catalog_unit_of_work, "Audacity", Category.MEDIA)

    state, stored = _enrich(catalog_unit_of_work, _wikipedia("Audacity (audio editor)"), entry)

    assert state is EnrichmentState.ENRICHED
    assert stored.enrichment_source == "Wikipedia"
    assert stored.description == "An audio editor."


def test_wikipedia_unrelated_title_is_rejected(catalog_unit_of_work: CatalogFactory) -> None:
    entry = _seed(catalog_unit_of_work, "Audacity", Category.MEDIA)

    state, stored = _enrich(catalog_unit_of_work, _wikipedia("Sound recording"), entry)

    assert state is EnrichmentState.FAILED
    assert stored.description is None
    assert stored.last_enrichment_attempt is not None


def test_rawg_exact_title_enriches_game(catalog_unit_of_work: CatalogFactory) -> None:
    game = {
        "id": 4200,
        "name": "Portal 2",
        "slug": "portal-2",
        "released": "2011-04-18",
        "genres": [{"id": 1, "name": "Puzzle"}],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/games"):
            return httpx.Response(200, json={"count": 1, "results": [game]})
        return httpx.Response(200, json={**game, "description_raw": "A puzzle game."})

    provider = RawgProvider(
        config=RawgConfig(api_key="k", resilience=offline_resilience("rawg", RAWG_BASE_URL)),
        client_factory=make_client_factory(handler),
    )
    entry = _seed(catalog_unit_of_work, "Portal 2", Category.GAMES, OriginPlatform.STEAM)

    state, stored = _enrich(catalog_unit_of_work, provider, entry)

    assert state is EnrichmentState.ENRICHED
    assert stored.enrichment_source == "RAWG"
    assert stored.description == "A puzzle game."
    assert stored.genres == ["Puzzle"]
