"""Async enrichment: one queue, one consumer, optionally hosted on a worker thread."""

from __future__ import annotations

from .orchestrator import (
    EnrichmentBatchResult,
    EnrichmentOrchestrator,
    EnrichmentRequest,
    OrchestratorSettings,
    RequestKind,
)
from .worker import EnrichmentWorker

__all__ = [
    "EnrichmentBatchResult",
    "EnrichmentOrchestrator",
    "EnrichmentRequest",
    "EnrichmentWorker",
    "OrchestratorSettings",
    "RequestKind",
]
