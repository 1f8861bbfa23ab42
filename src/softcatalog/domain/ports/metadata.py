"""Port definitions for metadata enrichment providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import date

    from softcatalog.domain.model import Category, OriginPlatform, ProviderGroup


@dataclass(slots=True)
class MetadataResult:
    """Metadata returned by a provider for one lookup."""

    name: str | None = None
    description: str | None = None
    genres: list[str] = field(default_factory=list[str])
    developers: list[str] = field(default_factory=list[str])
    publisher: str | None = None
    release_date: date | None = None
    cover_image_url: str | None = None
    icon_url: str | None = None
    website_url: str | None = None
    rating: float | None = None
    confidence: float = 0.0
    raw_extras: dict[str, object] = field(default_factory=dict[str, object])


@dataclass(frozen=True, slots=True)
class LookupContext:
    """What is known about an entry besides its name."""

    publisher: str | None = None
    origin: OriginPlatform | None = None
    category: Category | None = None


@runtime_checkable
class MetadataProvider(Protocol):
    name: str
    group: ProviderGroup
    priority: int
    supported_origins: frozenset[OriginPlatform]

    def is_available(self) -> bool: ...

    def unavailable_reason(self) -> str | None: ...

    async def lookup_by_external_id(
        self,
        origin: OriginPlatform,
        external_id: str,
    ) -> MetadataResult | None: ...

    async def lookup_by_name(
        self,
        name: str,
        context: LookupContext,
    ) -> MetadataResult | None: ...

    async def aclose(self) -> None:
        """Release network clients or other resources held by the provider."""
        ...
