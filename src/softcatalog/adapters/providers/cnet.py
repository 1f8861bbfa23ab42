"""CNET download pages scraped for software metadata."""

from __future__ import annotations

import html
import json
import re
from logging import getLogger
from typing import TYPE_CHECKING, cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from softcatalog.adapters.http_resilience import ResilientClient
from softcatalog.domain.model import ProviderGroup
from softcatalog.domain.ports import MetadataResult

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from softcatalog.config.http_resilience import ResilienceConfig
    from softcatalog.config.providers import CnetConfig
    from softcatalog.domain.model import OriginPlatform
    from softcatalog.domain.ports import LookupContext, MetadataProvider

log = getLogger(__name__)

JSON_LD_CONFIDENCE = 0.8
HEADING_CONFIDENCE = 0.6
APPLICATION_TYPES = frozenset({"SoftwareApplication", "WebApplication"})

_JSON_LD = re.compile(
    r"<script[^>]*type=[\"']application/ld\+json[\"'][^>]*>(.*?)</script>",
    re.IGNORECASE | re.DOTALL,
)
_HEADING = re.compile(r"<h([1-6])[^>]*>(.*?)</h\1>", re.IGNORECASE | re.DOTALL)
_PARAGRAPH = re.compile(r"<p[^>]*>(.*?)</p>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def strip_html(fragment: str) -> str:
    text = _TAG.sub(" ", fragment)
    return _WHITESPACE.sub(" ", html.unescape(text)).strip()


def _name_of(value: object) -> object:
    if isinstance(value, dict):
        return cast("dict[str, object]", value).get("name")
    return value


def _first_url(value: object) -> object:
    if isinstance(value, list):
        items = cast("list[object]", value)
        return items[0] if items else None
    if isinstance(value, dict):
        return cast("dict[str, object]", value).get("url")
    return value


class AggregateRating(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    rating_value: float | None = Field(default=None, alias="ratingValue")
    best_rating: float | None = Field(default=None, alias="bestRating")


class SoftwareApplication(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str = Field(alias="@type")
    name: str | None = None
    description: str | None = None
    publisher: str | None = None
    url: str | None = None
    image: str | None = None
    aggregate_rating: AggregateRating | None = Field(default=None, alias="aggregateRating")

    _flatten_publisher = field_validator("publisher", mode="before")(_name_of)
    _flatten_image = field_validator("image", mode="before")(_first_url)

    def rating(self) -> float | None:
        if self.aggregate_rating is None or self.aggregate_rating.rating_value is None:
            return None
        best = self.aggregate_rating.best_rating or 5.0
        return round(self.aggregate_rating.rating_value / best, 4)


def _json_ld_objects(page: str) -> Iterator[dict[str, object]]:
    for match in _JSON_LD.finditer(page):
        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError:
            continue
        items = data if isinstance(data, list) else [data]
        for item in cast("list[object]", items):
            if not isinstance(item, dict):
                continue
            node = cast("dict[str, object]", item)
            graph = node.get("@graph")
            if isinstance(graph, list):
                yield from (
                    cast("dict[str, object]", child)
                    for child in cast("list[object]", graph)
                    if isinstance(child, dict)
                )
            else:
                yield node


def parse_application(page: str) -> MetadataResult | None:
    for node in _json_ld_objects(page):
        if node.get("@type") not in APPLICATION_TYPES:
            continue
        try:
            app = SoftwareApplication.model_validate(node)
        except ValidationError as exc:
            log.debug("CNET: unusable JSON-LD block: %s", exc)
            continue
        return MetadataResult(
            name=app.name,
            description=strip_html(app.description) if app.description else None,
            publisher=app.publisher,
            website_url=app.url,
            icon_url=app.image,
            rating=app.rating(),
            confidence=JSON_LD_CONFIDENCE,
        )
    return None


def parse_heading(page: str, name: str) -> MetadataResult | None:
    wanted = name.strip().casefold()
    if not wanted:
        return None
    for match in _HEADING.finditer(page):
        title = strip_html(match.group(2))
        if wanted not in title.casefold():
            continue
        paragraph = _PARAGRAPH.search(page, match.end())
        description = strip_html(paragraph.group(1)) if paragraph else None
        return MetadataResult(
            name=title,
            description=description or None,
            confidence=HEADING_CONFIDENCE,
        )
    return None


class CnetProvider:
    name = "CNET"
    group = ProviderGroup.SOFTWARE
    priority = 10
    supported_origins: frozenset[OriginPlatform] = frozenset()

    def __init__(
        self,
        *,
        config: CnetConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._client: ResilientClient | None = None

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
        if self._client is None:
            self._client = self._client_factory(self._resilience)
        response = await self._client.get("search/", params={"q": term})
        response.raise_for_status()

        page = response.text
        result = parse_application(page) or parse_heading(page, name)
        if result is None:
            log.debug("CNET: nothing usable for %r", term)
        else:
            log.info("CNET: %r -> %r (confidence %.2f)", name, result.name, result.confidence)
        return result

    async def aclose(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()


if TYPE_CHECKING:
    _provider_check: MetadataProvider = CnetProvider(config=cast("CnetConfig", object()))
