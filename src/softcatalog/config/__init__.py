"""Application configuration helpers."""

from __future__ import annotations

from .detection import DetectionConfig, get_detection_config
from .enrichment import EnrichmentConfig, get_enrichment_config
from .env import optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .providers import (
    CnetConfig,
    RawgConfig,
    WikipediaConfig,
    WingetConfig,
    get_cnet_config,
    get_rawg_config,
    get_wikipedia_config,
    get_winget_config,
)
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "CacheConfig",
    "CnetConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "DetectionConfig",
    "EnrichmentConfig",
    "MissingConfigurationError",
    "RateLimit",
    "RawgConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "WikipediaConfig",
    "WingetConfig",
    "configure_logging",
    "get_cnet_config",
    "get_database_config",
    "get_detection_config",
    "get_enrichment_config",
    "get_rawg_config",
    "get_storage_config",
    "get_wikipedia_config",
    "get_winget_config",
    "optional_env_var",
    "require_env_vars",
]
