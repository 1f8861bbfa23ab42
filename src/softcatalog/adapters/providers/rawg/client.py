"""RAWG API client."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from softcatalog.adapters.http_resilience import ResilientClient
from softcatalog.domain.errors import ProviderCallFailure

from .schema import RawgGameDetails, RawgSearchResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from softcatalog.config.http_resilience import ResilienceConfig
    from softcatalog.config.providers import RawgConfig

log = getLogger(__name__)

# RAWG's store id for Steam
STEAM_STORE_ID = 1


class RawgAPIError(ProviderCallFailure):
    """Raised when RAWG answers with an unexpected payload."""

    def __init__(self, message: str) -> None:
        super().__init__("RAWG", message)


class RawgClient:
    """Low-level HTTP client for the RAWG API."""

    def __init__(
        self,
        *,
        config: RawgConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._client: ResilientClient | None = None

    @property
    def has_api_key(self) -> bool:
        return bool(self._config.api_key)

    async def search_games(
        self,
        *,
        query: str,
        page_size: int = 5,
        stores: int | None = None,
    ) -> RawgSearchResponse:
        params: dict[str, str] = {"search": query, "page_size": str(page_size)}
        if stores is not None:
            params["stores"] = str(stores)
        payload = await self._get_json("games", params)
        try:
            return RawgSearchResponse.model_validate(payload)
        except ValidationError as exc:
            raise RawgAPIError(f"Malformed search response: {exc}") from exc

    async def game_details(self, game_id: int) -> RawgGameDetails:
        payload = await self._get_json(f"games/{game_id}", {})
        try:
            return RawgGameDetails.model_validate(payload)
        except ValidationError as exc:
            raise RawgAPIError(f"Malformed details for game {game_id}: {exc}") from exc

    async def aclose(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    def _http(self) -> ResilientClient:
        # One client per provider so the rate limiter spans all lookups
        if self._client is None:
            self._client = self._client_factory(self._resilience)
        return self._client

    async def _get_json(self, path: str, params: dict[str, str]) -> dict[str, object]:
        if self._resilience.base_url is None:
            raise RawgAPIError("Missing RAWG base_url in resilience configuration")
        if not self._config.api_key:
            raise RawgAPIError("RAWG_API_KEY not configured")

        response = await self._http().get(path, params={**params, "key": self._config.api_key})
        response.raise_for_status()

        payload = response.json()
        if not isinstance(payload, dict):
            raise RawgAPIError("Unexpected RAWG response payload")
        if "error" in payload:
            raise RawgAPIError(str(payload["error"]))
        log.debug("RAWG %s answered %d", path, response.status_code)
        return payload
