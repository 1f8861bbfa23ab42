"""Enrichment diagnostics: where the catalog stands and which providers can run."""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING

from softcatalog.domain.model import EnrichmentState, ProviderGroup

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from softcatalog.domain.model import ReferenceCatalogEntry
    from softcatalog.domain.ports.metadata import MetadataProvider


@dataclass(frozen=True, slots=True)
class EntrySummary:
    id: int | None
    name: str
    origin: str


@dataclass(frozen=True, slots=True)
class ProviderStatus:
    name: str
    group: str
    priority: int
    available: bool
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class ProviderStatistics:
    group: str
    total: int
    available: int

    @property
    def has_available(self) -> bool:
        return self.available > 0


@dataclass(slots=True)
class DiagnosticsReport:
    total_entries: int = 0
    by_state: dict[str, int] = field(default_factory=dict[str, int])
    by_origin: dict[str, int] = field(default_factory=dict[str, int])
    by_category: dict[str, int] = field(default_factory=dict[str, int])
    by_source: dict[str, int] = field(default_factory=dict[str, int])
    failed_entries: list[EntrySummary] = field(default_factory=list[EntrySummary])
    never_attempted: list[EntrySummary] = field(default_factory=list[EntrySummary])
    providers: list[ProviderStatus] = field(default_factory=list[ProviderStatus])
    provider_statistics: list[ProviderStatistics] = field(
        default_factory=list[ProviderStatistics]
    )
    configuration_warnings: list[str] = field(default_factory=list[str])

    def to_dict(self) -> dict[str, object]:
        return asdict(self)

    def render(self) -> str:
        lines = [f"Catalog entries: {self.total_entries}"]
        lines.append("By state:")
        lines.extend(f"  {state:<12} {count}" for state, count in self.by_state.items())
        if self.by_origin:
            lines.append("By origin:")
            lines.extend(f"  {origin:<12} {count}" for origin, count in self.by_origin.items())
        if self.by_category:
            lines.append("By category:")
            lines.extend(
                f"  {category:<18} {count}" for category, count in self.by_category.items()
            )
        if self.by_source:
            lines.append("By source:")
            lines.extend(f"  {source:<12} {count}" for source, count in self.by_source.items())
        lines.append("Providers:")
        for provider in self.providers:
            status = "available" if provider.available else f"unavailable ({provider.reason})"
            lines.append(f"  {provider.name:<12} {provider.group:<9} p{provider.priority} {status}")
        for stats in self.provider_statistics:
            lines.append(f"  {stats.group}: {stats.available}/{stats.total} available")
        if self.failed_entries:
            lines.append(f"Failed ({len(self.failed_entries)}):")
            lines.extend(
                f"  #{entry.id} {entry.name} [{entry.origin}]" for entry in self.failed_entries
            )
        if self.never_attempted:
            lines.append(f"Never attempted: {len(self.never_attempted)}")
        if self.configuration_warnings:
            lines.append("Warnings:")
            lines.extend(f"  {warning}" for warning in self.configuration_warnings)
        return "\n".join(lines)


def build_diagnostics(
    entries: Iterable[ReferenceCatalogEntry],
    providers: Sequence[MetadataProvider],
    *,
    in_flight: Iterable[int] = (),
    config_warnings: Iterable[str] = (),
) -> DiagnosticsReport:
    report = DiagnosticsReport(configuration_warnings=list(config_warnings))
    enriching = set(in_flight)

    states: Counter[str] = Counter({state.value: 0 for state in EnrichmentState})
    origins: Counter[str] = Counter()
    categories: Counter[str] = Counter()
    sources: Counter[str] = Counter()

    for entry in entries:
        report.total_entries += 1
        state = EnrichmentState.ENRICHING if entry.id in enriching else entry.enrichment_state
        states[state.value] += 1
        origins[entry.origin.value] += 1
        categories[entry.category.value] += 1
        if entry.enrichment_source:
            sources[entry.enrichment_source] += 1

        summary = EntrySummary(id=entry.id, name=entry.name, origin=entry.origin.value)
        if state is EnrichmentState.FAILED:
            report.failed_entries.append(summary)
        elif state is EnrichmentState.UNENRICHED:
            report.never_attempted.append(summary)

    report.by_state = dict(states)
    report.by_origin = dict(origins.most_common())
    report.by_category = dict(categories.most_common())
    report.by_source = dict(sources.most_common())

    for provider in sorted(providers, key=lambda item: (item.group, item.priority)):
        available = provider.is_available()
        reason = None if available else provider.unavailable_reason() or "not available"
        report.providers.append(
            ProviderStatus(
                name=provider.name,
                group=provider.group.value,
                priority=provider.priority,
                available=available,
                reason=reason,
            )
        )
        if not available:
            report.configuration_warnings.append(f"{provider.name}: {reason}")

    for group in ProviderGroup:
        members = [status for status in report.providers if status.group == group.value]
        stats = ProviderStatistics(
            group=group.value,
            total=len(members),
            available=sum(1 for status in members if status.available),
        )
        report.provider_statistics.append(stats)
        if not stats.has_available:
            report.configuration_warnings.append(
                f"No {group.value} provider is available; {group.value} entries cannot be enriched"
            )

    return report
