"""Locations of launcher artifacts read by the source detectors."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .env import optional_env_var

DEFAULT_STEAM_ROOT = Path(r"C:\Program Files (x86)\Steam")
DEFAULT_EPIC_MANIFESTS = Path(r"C:\ProgramData\Epic\EpicGamesLauncher\Data\Manifests")


@dataclass(frozen=True, slots=True)
class DetectionConfig:
    steam_root: Path
    epic_manifests_dir: Path
    amazon_data_dir: Path
    amazon_library_dir: Path | None = None


def _local_app_data() -> Path:
    base = os.getenv("LOCALAPPDATA")
    return Path(base) if base else (Path.home() / "AppData" / "Local")


def _path_override(name: str, default: Path) -> Path:
    value = optional_env_var(name)
    return Path(value).expanduser() if value else default


def get_detection_config() -> DetectionConfig:
    amazon_library = optional_env_var("SOFTCATALOG_AMAZON_LIBRARY")
    return DetectionConfig(
        steam_root=_path_override("SOFTCATALOG_STEAM_ROOT", DEFAULT_STEAM_ROOT),
        epic_manifests_dir=_path_override("SOFTCATALOG_EPIC_MANIFESTS", DEFAULT_EPIC_MANIFESTS),
        amazon_data_dir=_path_override(
            "SOFTCATALOG_AMAZON_DATA",
            _local_app_data() / "Amazon Games" / "Data",
        ),
        amazon_library_dir=Path(amazon_library).expanduser() if amazon_library else None,
    )
