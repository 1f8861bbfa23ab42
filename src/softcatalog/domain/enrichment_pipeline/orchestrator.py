"""Async enrichment orchestrator.

Background and on-demand requests share one queue and one consumer. Entries
are enriched one at a time; each is persisted through its own unit of work so
cancelling between entries never loses committed work.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from softcatalog.domain.enrichment import (
    ConfidencePolicy,
    apply_metadata,
    mark_failed,
    mark_skipped,
    needs_enrichment,
    providers_for,
)
from softcatalog.domain.errors import CorruptStoreError, ProviderCallFailure
from softcatalog.domain.model import EnrichmentState
from softcatalog.domain.ports.metadata import LookupContext

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence

    from softcatalog.domain.model import ReferenceCatalogEntry
    from softcatalog.domain.ports.metadata import MetadataProvider, MetadataResult
    from softcatalog.domain.ports.unit_of_work import CatalogUnitOfWorkFactory

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RequestKind(StrEnum):
    BACKGROUND = "background"
    ON_DEMAND = "on_demand"


@dataclass(frozen=True, slots=True)
class EnrichmentRequest:
    kind: RequestKind
    entry_ids: tuple[int, ...] = ()
    batch_size: int | None = None

    @classmethod
    def background(cls, entry_ids: Iterable[int] = ()) -> EnrichmentRequest:
        return cls(kind=RequestKind.BACKGROUND, entry_ids=tuple(dict.fromkeys(entry_ids)))

    @classmethod
    def on_demand(cls, batch_size: int | None = None) -> EnrichmentRequest:
        return cls(kind=RequestKind.ON_DEMAND, batch_size=batch_size)


@dataclass(frozen=True, slots=True)
class OrchestratorSettings:
    freshness: timedelta = timedelta(days=30)
    retry_after: timedelta | None = timedelta(hours=24)
    auto_batch_size: int = 50
    force_batch_size: int = 500
    max_auto_batches: int = 20
    batch_delay_seconds: float = 1.0
    entry_delay_seconds: float = 0.5
    provider_timeout_seconds: float = 20.0
    acceptance_threshold: float = 0.85
    software_acceptance_threshold: float = 0.6


@dataclass(slots=True)
class EnrichmentBatchResult:
    """Outcome of one batch, or of several batches merged together."""

    selected: int = 0
    enriched: int = 0
    failed: int = 0
    skipped: int = 0
    fresh: int = 0
    already_in_flight: int = 0
    # no provider of the entry's group was available; left untouched
    no_provider_available: int = 0
    cancelled: bool = False
    error: str | None = None
    provider_failures: list[str] = field(default_factory=list[str])
    unavailable_providers: set[str] = field(default_factory=set[str])

    @property
    def processed(self) -> int:
        return self.enriched + self.failed + self.skipped

    def count(self, state: EnrichmentState) -> None:
        if state is EnrichmentState.ENRICHED:
            self.enriched += 1
        elif state is EnrichmentState.FAILED:
            self.failed += 1
        elif state is EnrichmentState.SKIPPED:
            self.skipped += 1

    def merge(self, other: EnrichmentBatchResult) -> None:
        self.selected += other.selected
        self.enriched += other.enriched
        self.failed += other.failed
        self.skipped += other.skipped
        self.fresh += other.fresh
        self.already_in_flight += other.already_in_flight
        self.no_provider_available += other.no_provider_available
        self.cancelled = self.cancelled or other.cancelled
        self.error = self.error or other.error
        self.provider_failures.extend(other.provider_failures)
        self.unavailable_providers |= other.unavailable_providers


class EnrichmentOrchestrator:
    def __init__(
        self,
        providers: Sequence[MetadataProvider],
        unit_of_work_factory: CatalogUnitOfWorkFactory,
        *,
        settings: OrchestratorSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.providers = tuple(providers)
        self.unit_of_work_factory = unit_of_work_factory
        self.settings = settings or OrchestratorSettings()
        self.policy = ConfidencePolicy(
            self.settings.acceptance_threshold,
            self.settings.software_acceptance_threshold,
        )
        self._clock = clock or _utcnow
        self._in_flight: set[int] = set()
        self._provider_locks: dict[str, asyncio.Lock] = {}
        self._queue: asyncio.Queue[EnrichmentRequest | None] = asyncio.Queue()
        self._cancel = asyncio.Event()
        self._busy = False
        self.last_result: EnrichmentBatchResult | None = None

    @property
    def in_flight(self) -> frozenset[int]:
        """Catalog ids currently being enriched."""

        return frozenset(self._in_flight)

    # Queue ---------------------------------------------------------------

    def submit(self, request: EnrichmentRequest) -> None:
        log.debug("Queued %s enrichment request (%d ids)", request.kind, len(request.entry_ids))
        self._queue.put_nowait(request)

    def shutdown(self) -> None:
        """Stop ``run`` once the requests queued so far are done."""

        self._queue.put_nowait(None)

    def cancel(self) -> None:
        """Stop the running request between entries and drop queued ones."""

        dropped = 0
        while True:
            try:
                request = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            if request is None:
                # keep the stop marker
                self._queue.put_nowait(None)
                break
            dropped += 1
        if dropped:
            log.info("Dropped %d queued enrichment requests", dropped)
        if self._busy:
            self._cancel.set()

    async def join(self) -> None:
        await self._queue.join()

    async def run(self) -> None:
        """Consume queued requests until ``shutdown`` is called."""

        self._provider_locks.clear()
        try:
            while True:
                request = await self._queue.get()
                try:
                    if request is None:
                        return
                    await self.run_request(request)
                except Exception:
                    log.exception("Enrichment request %s failed", request.kind)
                finally:
                    self._queue.task_done()
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        for provider in self.providers:
            await provider.aclose()

    # Requests ------------------------------------------------------------

    async def run_request(self, request: EnrichmentRequest) -> EnrichmentBatchResult:
        """Run one request: a single batch on demand, bounded batches in the background."""

        self._busy = True
        try:
            if request.kind is RequestKind.ON_DEMAND:
                total = await self.run_batch(request)
            else:
                total = await self._run_background(request)
        finally:
            self._busy = False
            self._cancel.clear()
        self.last_result = total
        log.info(
            "Enrichment %s done: %d enriched, %d failed, %d skipped, %d fresh",
            request.kind,
            total.enriched,
            total.failed,
            total.skipped,
            total.fresh,
        )
        return total

    async def _run_background(self, request: EnrichmentRequest) -> EnrichmentBatchResult:
        total = EnrichmentBatchResult()
        if request.entry_ids:
            total.merge(await self.run_batch(request))
        batches = 0
        while batches < self.settings.max_auto_batches:
            if total.cancelled or total.error or self._cancel.is_set():
                break
            if batches or request.entry_ids:
                await asyncio.sleep(self.settings.batch_delay_seconds)
            result = await self.run_batch(EnrichmentRequest.background())
            batches += 1
            total.merge(result)
            if result.selected == 0 or result.processed == 0:
                break
        return total

    async def run_batch(self, request: EnrichmentRequest) -> EnrichmentBatchResult:
        result = EnrichmentBatchResult()
        try:
            entries = self._select(request)
        except CorruptStoreError as exc:
            log.warning("Could not select entries for enrichment: %s", exc)
            result.error = str(exc)
            return result
        result.selected = len(entries)

        for index, entry in enumerate(entries):
            if self._cancel.is_set():
                log.info("Enrichment cancelled after %d of %d entries", index, len(entries))
                result.cancelled = True
                break
            if index and self.settings.entry_delay_seconds > 0:
                await asyncio.sleep(self.settings.entry_delay_seconds)
            try:
                await self.enrich_entry(entry, result)
            except CorruptStoreError as exc:
                log.warning("Stopping enrichment batch, catalog store failed: %s", exc)
                result.error = str(exc)
                break
        return result

    def _select(self, request: EnrichmentRequest) -> list[ReferenceCatalogEntry]:
        settings = self.settings
        on_demand = request.kind is RequestKind.ON_DEMAND
        default_size = settings.force_batch_size if on_demand else settings.auto_batch_size
        limit = request.batch_size or default_size
        # on-demand runs ignore the retry cooldown
        retry_after = None if on_demand else settings.retry_after
        now = self._clock()

        with self.unit_of_work_factory() as uow:
            references = uow.repositories.references
            if not request.entry_ids:
                return references.get_unenriched(
                    settings.freshness, limit, retry_after=retry_after, now=now
                )
            found = references.get_many(request.entry_ids)

        selected: list[ReferenceCatalogEntry] = []
        for entry_id in request.entry_ids:
            entry = found.get(entry_id)
            if entry is None or not needs_enrichment(entry, now, settings.freshness):
                continue
            attempt = entry.last_enrichment_attempt
            if retry_after is not None and attempt is not None and now - attempt < retry_after:
                continue
            selected.append(entry)
        return selected[:limit]

    # Entries -------------------------------------------------------------

    async def enrich_entry(
        self,
        entry: ReferenceCatalogEntry,
        result: EnrichmentBatchResult | None = None,
    ) -> EnrichmentState | None:
        """Enrich and persist one entry.

        Returns ``None`` when nothing had to be done and ``UNENRICHED`` when no
        provider of the entry's group was available; neither case touches the row.
        """

        result = result if result is not None else EnrichmentBatchResult()
        entry_id = entry.id
        if entry_id is None:
            raise ValueError("Only persisted catalog entries can be enriched")
        if entry_id in self._in_flight:
            log.debug("Entry %s is already being enriched", entry_id)
            result.already_in_flight += 1
            return None
        if not needs_enrichment(entry, self._clock(), self.settings.freshness):
            result.fresh += 1
            return None

        self._in_flight.add(entry_id)
        try:
            state = await self._enrich(entry, result)
            if state is EnrichmentState.UNENRICHED:
                result.no_provider_available += 1
                return state
            with self.unit_of_work_factory() as uow:
                uow.repositories.references.save_enrichment(entry)
                uow.commit()
        finally:
            self._in_flight.discard(entry_id)
        result.count(state)
        return state

    async def _enrich(
        self, entry: ReferenceCatalogEntry, result: EnrichmentBatchResult
    ) -> EnrichmentState:
        candidates = providers_for(entry, self.providers)
        if not candidates:
            log.debug("No provider serves %r (%s), skipping", entry.name, entry.category)
            mark_skipped(entry, self._clock())
            return EnrichmentState.SKIPPED

        context = LookupContext(
            publisher=entry.publisher,
            origin=entry.origin,
            category=entry.category,
        )
        attempted = False
        for provider in candidates:
            if not provider.is_available():
                result.unavailable_providers.add(provider.name)
                continue
            attempted = True
            try:
                found = await self._lookup(provider, entry, context)
            except ProviderCallFailure as exc:
                log.warning("Lookup of %r failed: %s", entry.name, exc)
                result.provider_failures.append(str(exc))
                continue
            if found is not None and self.policy.accept(found, provider.group):
                apply_metadata(entry, found, provider.name, self._clock())
                log.info(
                    "Enriched %r from %s (confidence %.2f)",
                    entry.name,
                    provider.name,
                    found.confidence,
                )
                return EnrichmentState.ENRICHED
            if found is not None:
                log.debug(
                    "%s result for %r rejected (confidence %.2f)",
                    provider.name,
                    entry.name,
                    found.confidence,
                )

        if not attempted:
            log.debug("No %s provider available for %r", candidates[0].group, entry.name)
            return EnrichmentState.UNENRICHED
        mark_failed(entry, self._clock())
        return EnrichmentState.FAILED

    async def _lookup(
        self,
        provider: MetadataProvider,
        entry: ReferenceCatalogEntry,
        context: LookupContext,
    ) -> MetadataResult | None:
        external_id = entry.external_id
        if external_id and entry.origin in provider.supported_origins:
            by_id = await self._call(
                provider, lambda: provider.lookup_by_external_id(entry.origin, external_id)
            )
            if self.policy.accept(by_id, provider.group):
                return by_id
        return await self._call(provider, lambda: provider.lookup_by_name(entry.name, context))

    async def _call(
        self,
        provider: MetadataProvider,
        call: Callable[[], Awaitable[MetadataResult | None]],
    ) -> MetadataResult | None:
        lock = self._provider_locks.setdefault(provider.name, asyncio.Lock())
        timeout = self.settings.provider_timeout_seconds
        async with lock:
            try:
                return await asyncio.wait_for(call(), timeout=timeout)
            except ProviderCallFailure:
                raise
            except TimeoutError as exc:
                raise ProviderCallFailure(provider.name, f"timed out after {timeout}s") from exc
            except Exception as exc:
                raise ProviderCallFailure(provider.name, repr(exc)) from exc
