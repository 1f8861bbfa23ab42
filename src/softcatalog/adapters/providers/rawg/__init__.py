"""RAWG game metadata adapter."""

from __future__ import annotations

from .client import RawgAPIError, RawgClient
from .provider import RawgProvider
from .schema import RawgGame, RawgGameDetails, RawgSearchResponse

__all__ = [
    "RawgAPIError",
    "RawgClient",
    "RawgGame",
    "RawgGameDetails",
    "RawgProvider",
    "RawgSearchResponse",
]
