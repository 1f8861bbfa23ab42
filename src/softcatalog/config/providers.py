"""Metadata provider configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .env import optional_env_var
from .http_resilience import (
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    default_user_agent,
)

RAWG_BASE_URL = "https://api.rawg.io/api"
WIKIPEDIA_BASE_URL = "https://en.wikipedia.org/w"
CNET_BASE_URL = "https://www.cnet.com"
# Browser-like agent; the site rejects unknown agents.
CNET_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


@dataclass(frozen=True, slots=True)
class RawgConfig:
    api_key: str | None
    resilience: ResilienceConfig


@dataclass(frozen=True, slots=True)
class WikipediaConfig:
    resilience: ResilienceConfig


@dataclass(frozen=True, slots=True)
class CnetConfig:
    resilience: ResilienceConfig


@dataclass(frozen=True, slots=True)
class WingetConfig:
    executable: Path | None = None
    timeout_seconds: float = 30.0


def _cache_successful_json(payload: object) -> bool:
    return isinstance(payload, dict) and "error" not in payload


def get_rawg_config(*, resilience: ResilienceConfig | None = None) -> RawgConfig:
    return RawgConfig(
        api_key=optional_env_var("RAWG_API_KEY"),
        resilience=resilience
        or ResilienceConfig(
            name="rawg",
            base_url=RAWG_BASE_URL,
            timeout_seconds=15.0,
            ratelimit=RateLimit(max_calls=4, per_seconds=1.0),
            retry=RetryPolicy(total=3),
            cache=CacheConfig(backend="sqlite", should_cache=_cache_successful_json),
            default_headers={"User-Agent": default_user_agent()},
        ),
    )


def get_wikipedia_config(*, resilience: ResilienceConfig | None = None) -> WikipediaConfig:
    return WikipediaConfig(
        resilience=resilience
        or ResilienceConfig(
            name="wikipedia",
            base_url=WIKIPEDIA_BASE_URL,
            timeout_seconds=15.0,
            ratelimit=RateLimit(max_calls=1, per_seconds=1.0),
            cache=CacheConfig(backend="sqlite", should_cache=_cache_successful_json),
            default_headers={"User-Agent": default_user_agent()},
        )
    )


def get_cnet_config(*, resilience: ResilienceConfig | None = None) -> CnetConfig:
    return CnetConfig(
        resilience=resilience
        or ResilienceConfig(
            name="cnet",
            base_url=CNET_BASE_URL,
            timeout_seconds=20.0,
            ratelimit=RateLimit(max_calls=1, per_seconds=2.0),
            retry=RetryPolicy(total=2),
            cache=CacheConfig(backend="sqlite"),
            default_headers={"User-Agent": CNET_USER_AGENT},
        )
    )


def get_winget_config() -> WingetConfig:
    override = optional_env_var("SOFTCATALOG_WINGET_PATH")
    return WingetConfig(executable=Path(override) if override else None)
