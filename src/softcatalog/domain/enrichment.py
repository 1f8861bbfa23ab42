"""Pure enrichment rules: provider selection, confidence gating, applying results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from softcatalog.domain.model import ProviderGroup

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime, timedelta

    from softcatalog.domain.model import ReferenceCatalogEntry
    from softcatalog.domain.ports.metadata import MetadataProvider, MetadataResult


def provider_group_for(entry: ReferenceCatalogEntry) -> ProviderGroup | None:
    """Which provider group serves ``entry``, if any.

    Anything installed through a game launcher counts as a game even when the
    categorizer filed it elsewhere.
    """

    group = entry.category.provider_group
    if group is None:
        return None
    if entry.origin.is_game_launcher:
        return ProviderGroup.GAME
    return group


def providers_for(
    entry: ReferenceCatalogEntry,
    providers: Iterable[MetadataProvider],
) -> list[MetadataProvider]:
    group = provider_group_for(entry)
    if group is None:
        return []
    applicable = [provider for provider in providers if provider.group == group]
    return sorted(applicable, key=lambda provider: provider.priority)


@dataclass(frozen=True, slots=True)
class ConfidencePolicy:
    """Minimum confidence per provider group."""

    threshold: float = 0.85
    software_threshold: float = 0.6

    def __post_init__(self) -> None:
        for value in (self.threshold, self.software_threshold):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Confidence threshold must be within 0..1, got {value}")

    def threshold_for(self, group: ProviderGroup) -> float:
        return self.software_threshold if group is ProviderGroup.SOFTWARE else self.threshold

    def accept(
        self,
        result: MetadataResult | None,
        group: ProviderGroup = ProviderGroup.GAME,
    ) -> bool:
        return result is not None and result.confidence >= self.threshold_for(group)


def apply_metadata(
    entry: ReferenceCatalogEntry,
    result: MetadataResult,
    source: str,
    now: datetime,
) -> None:
    """Copy an accepted provider result onto ``entry`` and stamp it enriched."""

    if result.description:
        entry.description = result.description
    if result.genres:
        entry.genres = list(dict.fromkeys(result.genres))
    if result.developers:
        entry.developers = list(dict.fromkeys(result.developers))
    if result.release_date is not None:
        entry.release_date = result.release_date
    if result.publisher and not entry.publisher:
        entry.publisher = result.publisher
    cover = result.cover_image_url or result.icon_url
    if cover:
        entry.cover_image_url = cover

    extras: dict[str, object] = dict(result.raw_extras)
    if result.rating is not None:
        extras["rating"] = result.rating
    if result.website_url:
        extras["website"] = result.website_url
    if result.icon_url and result.icon_url != cover:
        extras["icon_url"] = result.icon_url
    extras["confidence"] = round(result.confidence, 3)

    # reassign so the JSON column sees the change
    metadata = dict(entry.additional_metadata)
    metadata[source] = extras
    entry.additional_metadata = metadata

    entry.enrichment_source = source
    entry.last_enriched_at = now
    entry.last_enrichment_attempt = now
    entry.updated_at = now


def mark_skipped(entry: ReferenceCatalogEntry, now: datetime) -> None:
    """Nothing can describe this entry; don't look again within the freshness window."""

    entry.enrichment_source = None
    entry.last_enriched_at = now
    entry.last_enrichment_attempt = now
    entry.updated_at = now


def mark_failed(entry: ReferenceCatalogEntry, now: datetime) -> None:
    entry.last_enrichment_attempt = now
    entry.updated_at = now


def needs_enrichment(entry: ReferenceCatalogEntry, now: datetime, freshness: timedelta) -> bool:
    return not entry.is_fresh(now, freshness)
