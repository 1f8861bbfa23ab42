"""MediaWiki API client for English Wikipedia."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from softcatalog.adapters.http_resilience import ResilientClient
from softcatalog.domain.errors import ProviderCallFailure

from .schema import ExtractResponse, PageExtract, SearchHit, SearchResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from softcatalog.config.http_resilience import ResilienceConfig
    from softcatalog.config.providers import WikipediaConfig

log = getLogger(__name__)


class WikipediaAPIError(ProviderCallFailure):
    """Raised when the MediaWiki API returns an unexpected response."""

    def __init__(self, message: str) -> None:
        super().__init__("Wikipedia", message)


class WikipediaClient:
    def __init__(
        self,
        *,
        config: WikipediaConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._client: ResilientClient | None = None

    async def search(self, term: str) -> SearchHit | None:
        payload = await self._query(
            {"list": "search", "srsearch": term, "srlimit": "1"},
        )
        try:
            response = SearchResponse.model_validate(payload)
        except ValidationError as exc:
            raise WikipediaAPIError(f"Malformed search response: {exc}") from exc
        return response.query.search[0] if response.query.search else None

    async def extract(self, page_id: int) -> PageExtract | None:
        payload = await self._query(
            {
                "prop": "extracts|info",
                "pageids": str(page_id),
                "exintro": "1",
                "explaintext": "1",
                "inprop": "url",
            },
        )
        try:
            response = ExtractResponse.model_validate(payload)
        except ValidationError as exc:
            raise WikipediaAPIError(f"Malformed extract for page {page_id}: {exc}") from exc
        return response.query.pages.get(str(page_id))

    async def aclose(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    def _http(self) -> ResilientClient:
        if self._client is None:
            self._client = self._client_factory(self._resilience)
        return self._client

    async def _query(self, params: dict[str, str]) -> dict[str, object]:
        if self._resilience.base_url is None:
            raise WikipediaAPIError("Missing Wikipedia base_url in resilience configuration")
        response = await self._http().get(
            "api.php", params={"action": "query", "format": "json", **params}
        )
        response.raise_for_status()

        payload = response.json()
        if not isinstance(payload, dict):
            raise WikipediaAPIError("Unexpected Wikipedia response payload")
        if "error" in payload:
            raise WikipediaAPIError(str(payload["error"]))
        return payload
