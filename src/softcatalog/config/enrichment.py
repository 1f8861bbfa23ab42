"""Enrichment orchestrator defaults."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from .env import env_float, env_int
from .errors import ConfigurationError

DEFAULT_FRESHNESS_DAYS = 30
DEFAULT_AUTO_BATCH_SIZE = 50
DEFAULT_FORCE_BATCH_SIZE = 500
DEFAULT_ACCEPTANCE_THRESHOLD = 0.85
DEFAULT_SOFTWARE_ACCEPTANCE_THRESHOLD = 0.6


@dataclass(frozen=True, slots=True)
class EnrichmentConfig:
    freshness_days: int = DEFAULT_FRESHNESS_DAYS
    auto_batch_size: int = DEFAULT_AUTO_BATCH_SIZE
    force_batch_size: int = DEFAULT_FORCE_BATCH_SIZE
    max_auto_batches: int = 20
    batch_delay_seconds: float = 1.0
    entry_delay_seconds: float = 0.5
    acceptance_threshold: float = DEFAULT_ACCEPTANCE_THRESHOLD
    software_acceptance_threshold: float = DEFAULT_SOFTWARE_ACCEPTANCE_THRESHOLD
    provider_timeout_seconds: float = 20.0
    retry_after_hours: int = 24

    @property
    def freshness(self) -> timedelta:
        return timedelta(days=self.freshness_days)

    @property
    def retry_after(self) -> timedelta:
        return timedelta(hours=self.retry_after_hours)


def _threshold(name: str, default: float) -> float:
    value = env_float(name, default)
    if value > 1.0:
        raise ConfigurationError(f"{name} must be within 0..1, got {value}")
    return value


def get_enrichment_config() -> EnrichmentConfig:
    threshold = _threshold("SOFTCATALOG_ENRICH_THRESHOLD", DEFAULT_ACCEPTANCE_THRESHOLD)
    software_threshold = _threshold(
        "SOFTCATALOG_ENRICH_SOFTWARE_THRESHOLD", DEFAULT_SOFTWARE_ACCEPTANCE_THRESHOLD
    )
    return EnrichmentConfig(
        freshness_days=env_int("SOFTCATALOG_ENRICH_FRESHNESS_DAYS", DEFAULT_FRESHNESS_DAYS),
        auto_batch_size=env_int(
            "SOFTCATALOG_ENRICH_AUTO_BATCH", DEFAULT_AUTO_BATCH_SIZE, minimum=1
        ),
        force_batch_size=env_int(
            "SOFTCATALOG_ENRICH_FORCE_BATCH", DEFAULT_FORCE_BATCH_SIZE, minimum=1
        ),
        acceptance_threshold=threshold,
        software_acceptance_threshold=software_threshold,
        provider_timeout_seconds=env_float("SOFTCATALOG_ENRICH_TIMEOUT", 20.0, minimum=0.1),
    )
