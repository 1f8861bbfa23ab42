"""Wikipedia software metadata adapter."""

from __future__ import annotations

from .client import WikipediaAPIError, WikipediaClient
from .provider import WikipediaProvider, title_confidence

__all__ = [
    "WikipediaAPIError",
    "WikipediaClient",
    "WikipediaProvider",
    "title_confidence",
]
