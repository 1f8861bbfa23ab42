"""Background thread hosting the enrichment orchestrator's event loop."""

from __future__ import annotations

import asyncio
import threading
from logging import getLogger
from typing import TYPE_CHECKING

from softcatalog.domain.enrichment_pipeline.orchestrator import EnrichmentRequest

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from softcatalog.domain.enrichment_pipeline.orchestrator import EnrichmentOrchestrator

log = getLogger(__name__)


class EnrichmentWorker:
    """Run an orchestrator on a daemon thread; every public method is thread-safe."""

    def __init__(
        self,
        orchestrator: EnrichmentOrchestrator,
        *,
        name: str = "softcatalog-enrichment",
    ) -> None:
        self.orchestrator = orchestrator
        self.name = name
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._ready.clear()
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()
        self._ready.wait()

    def submit_background(self, entry_ids: Iterable[int] = ()) -> None:
        """Queue bounded background batches, starting with ``entry_ids``."""

        self._call_soon(self.orchestrator.submit, EnrichmentRequest.background(entry_ids))

    def submit_on_demand(self, batch_size: int | None = None) -> None:
        self._call_soon(self.orchestrator.submit, EnrichmentRequest.on_demand(batch_size))

    def cancel(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self.orchestrator.cancel)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every queued request is processed; ``False`` on timeout."""

        loop = self._loop
        if loop is None or not self.is_running:
            return True
        future = asyncio.run_coroutine_threadsafe(self.orchestrator.join(), loop)
        try:
            future.result(timeout)
        except TimeoutError:
            future.cancel()
            return False
        return True

    def stop(self, *, wait: bool = True, timeout: float | None = None) -> None:
        """Let the queued requests finish, then end the thread."""

        with self._lock:
            thread = self._thread
            loop = self._loop
            if thread is None or loop is None:
                return
            if not loop.is_closed():
                loop.call_soon_threadsafe(self.orchestrator.shutdown)
        if wait:
            thread.join(timeout)
            if thread.is_alive():
                log.warning("Enrichment worker still busy after %ss", timeout)
                return
            with self._lock:
                self._thread = None

    def _call_soon(
        self,
        callback: Callable[[EnrichmentRequest], None],
        request: EnrichmentRequest,
    ) -> None:
        self.start()
        loop = self._loop
        if loop is None:
            raise RuntimeError("Enrichment worker loop is not running")
        loop.call_soon_threadsafe(callback, request)

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()
        log.debug("Enrichment worker started")
        try:
            loop.run_until_complete(self.orchestrator.run())
        except Exception:
            log.exception("Enrichment worker crashed")
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            self._loop = None
            log.debug("Enrichment worker stopped")
