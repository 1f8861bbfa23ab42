"""RAWG as a game metadata provider."""

from __future__ import annotations

from datetime import date
from logging import getLogger
from typing import TYPE_CHECKING, cast

from softcatalog.domain.matching import clean_game_name, name_similarity
from softcatalog.domain.model import OriginPlatform, ProviderGroup
from softcatalog.domain.ports import MetadataResult

from .client import STEAM_STORE_ID, RawgClient

if TYPE_CHECKING:
    from collections.abc import Callable

    from softcatalog.adapters.http_resilience import ResilientClient
    from softcatalog.config.http_resilience import ResilienceConfig
    from softcatalog.config.providers import RawgConfig
    from softcatalog.domain.ports import LookupContext, MetadataProvider

    from .schema import RawgGame, RawgGameDetails

log = getLogger(__name__)

STEAM_ID_CONFIDENCE = 0.95


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _normalized_rating(game: RawgGame) -> float | None:
    if game.rating is None or not game.rating_top:
        return None
    return round(game.rating / game.rating_top, 4)


def translate_game(game: RawgGame, *, confidence: float) -> MetadataResult:
    return MetadataResult(
        name=game.name,
        genres=[genre.name for genre in game.genres],
        release_date=_parse_date(game.released),
        cover_image_url=game.background_image,
        icon_url=game.background_image,
        rating=_normalized_rating(game),
        confidence=confidence,
        raw_extras={"rawg_id": game.id, "slug": game.slug},
    )


def apply_details(result: MetadataResult, details: RawgGameDetails) -> None:
    if details.description_raw:
        result.description = details.description_raw
    if details.website:
        result.website_url = details.website
    result.developers = [developer.name for developer in details.developers]
    if details.publishers:
        result.publisher = details.publishers[0].name
    result.raw_extras["metacritic"] = details.metacritic
    result.raw_extras["playtime"] = details.playtime
    result.raw_extras["esrb_rating"] = details.esrb_rating.name if details.esrb_rating else None


class RawgProvider:
    name = "RAWG"
    group = ProviderGroup.GAME
    priority = 1
    supported_origins = frozenset({OriginPlatform.STEAM})

    def __init__(
        self,
        *,
        config: RawgConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._client = RawgClient(config=config, client_factory=client_factory)

    def is_available(self) -> bool:
        return self._client.has_api_key

    def unavailable_reason(self) -> str | None:
        return None if self.is_available() else "RAWG_API_KEY not configured"

    async def lookup_by_external_id(
        self,
        origin: OriginPlatform,
        external_id: str,
    ) -> MetadataResult | None:
        if origin is not OriginPlatform.STEAM:
            return None
        log.debug("RAWG: looking up Steam app %s", external_id)
        response = await self._client.search_games(
            query=external_id, page_size=5, stores=STEAM_STORE_ID
        )
        for game in response.results:
            if game.references_steam_app(external_id):
                return translate_game(game, confidence=STEAM_ID_CONFIDENCE)
        return None

    async def lookup_by_name(
        self,
        name: str,
        context: LookupContext,  # noqa: ARG002
    ) -> MetadataResult | None:
        cleaned = clean_game_name(name)
        if not cleaned:
            return None
        log.debug("RAWG: searching for %r", cleaned)
        response = await self._client.search_games(query=cleaned, page_size=5)
        if not response.results:
            log.debug("RAWG: no results for %r", cleaned)
            return None

        best = max(
            response.results,
            key=lambda game: name_similarity(cleaned, clean_game_name(game.name)),
        )
        result = translate_game(
            best, confidence=name_similarity(cleaned, clean_game_name(best.name))
        )
        details = await self._client.game_details(best.id)
        apply_details(result, details)
        log.info("RAWG: %r -> %r (confidence %.2f)", name, result.name, result.confidence)
        return result

    async def aclose(self) -> None:
        await self._client.aclose()


if TYPE_CHECKING:
    _provider_check: MetadataProvider = RawgProvider(config=cast("RawgConfig", object()))
