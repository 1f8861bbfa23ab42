"""Metadata providers for games and software."""

from __future__ import annotations

from typing import TYPE_CHECKING

from softcatalog.config import (
    get_cnet_config,
    get_rawg_config,
    get_wikipedia_config,
    get_winget_config,
)

from .cnet import CnetProvider
from .rawg import RawgProvider
from .wikipedia import WikipediaProvider
from .winget import WingetProvider

if TYPE_CHECKING:
    from softcatalog.domain.ports import MetadataProvider


def build_default_providers() -> list[MetadataProvider]:
    return [
        RawgProvider(config=get_rawg_config()),
        WingetProvider(config=get_winget_config()),
        CnetProvider(config=get_cnet_config()),
        WikipediaProvider(config=get_wikipedia_config()),
    ]


__all__ = [
    "CnetProvider",
    "RawgProvider",
    "WikipediaProvider",
    "WingetProvider",
    "build_default_providers",
]
