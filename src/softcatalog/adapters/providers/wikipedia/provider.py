"""Wikipedia as the last-resort software metadata provider."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, cast

from softcatalog.domain.model import ProviderGroup
from softcatalog.domain.ports import MetadataResult

from .client import WikipediaClient

if TYPE_CHECKING:
    from collections.abc import Callable

    from softcatalog.adapters.http_resilience import ResilientClient
    from softcatalog.config.http_resilience import ResilienceConfig
    from softcatalog.config.providers import WikipediaConfig
    from softcatalog.domain.model import OriginPlatform
    from softcatalog.domain.ports import LookupContext, MetadataProvider

log = getLogger(__name__)


def title_confidence(title: str, name: str) -> float:
    """0.9 for the same title, 0.7 when one contains the other, else 0.5."""

    found = title.strip().casefold()
    wanted = name.strip().casefold()
    if not found or not wanted:
        return 0.5
    if found == wanted:
        return 0.9
    if wanted in found or found in wanted:
        return 0.7
    return 0.5


class WikipediaProvider:
    name = "Wikipedia"
    group = ProviderGroup.SOFTWARE
    priority = 99
    supported_origins: frozenset[OriginPlatform] = frozenset()

    def __init__(
        self,
        *,
        config: WikipediaConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._client = WikipediaClient(config=config, client_factory=client_factory)

    def is_available(self) -> bool:
        return True

    def unavailable_reason(self) -> str | None:
        return None

    async def lookup_by_external_id(
        self,
        origin: OriginPlatform,  # noqa: ARG002
        external_id: str,  # noqa: ARG002
    ) -> MetadataResult | None:
        return None

    async def lookup_by_name(
        self,
        name: str,
        context: LookupContext,
    ) -> MetadataResult | None:
        if not name.strip():
            return None
        term = f"{name} {context.publisher}" if context.publisher else name
        hit = await self._client.search(term)
        if hit is None:
            log.debug("Wikipedia: no results for %r", term)
            return None
        page = await self._client.extract(hit.pageid)
        if page is None:
            return None
        result = MetadataResult(
            name=page.title,
            description=page.extract.strip() if page.extract else None,
            website_url=page.fullurl,
            confidence=title_confidence(page.title, name),
            raw_extras={"pageid": page.pageid},
        )
        log.info("Wikipedia: %r -> %r (confidence %.2f)", name, result.name, result.confidence)
        return result

    async def aclose(self) -> None:
        await self._client.aclose()


if TYPE_CHECKING:
    _provider_check: MetadataProvider = WikipediaProvider(
        config=cast("WikipediaConfig", object())
    )
