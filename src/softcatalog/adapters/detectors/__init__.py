"""Source detectors for the OS registry and the game launchers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .amazon import AmazonGamesDetector
from .ea import EaDetector
from .epic import EpicDetector
from .gog import GogDetector
from .registry import RegistryDetector
from .steam import SteamDetector
from .ubisoft import UbisoftDetector
from .windows_registry import RegistryHive, RegistryReader, WindowsRegistryReader

if TYPE_CHECKING:
    from softcatalog.config import DetectionConfig
    from softcatalog.domain.ports import SourceDetector


def build_default_detectors(
    config: DetectionConfig,
    reader: RegistryReader | None = None,
) -> list[SourceDetector]:
    """Registration order: the generic registry scan first, launchers after."""

    reader = reader or WindowsRegistryReader()
    return [
        RegistryDetector(reader),
        SteamDetector(config.steam_root),
        EpicDetector(config.epic_manifests_dir),
        GogDetector(reader),
        UbisoftDetector(reader),
        EaDetector(reader),
        AmazonGamesDetector(config.amazon_data_dir, config.amazon_library_dir),
    ]


__all__ = [
    "AmazonGamesDetector",
    "EaDetector",
    "EpicDetector",
    "GogDetector",
    "RegistryDetector",
    "RegistryHive",
    "RegistryReader",
    "SteamDetector",
    "UbisoftDetector",
    "WindowsRegistryReader",
    "build_default_detectors",
]
