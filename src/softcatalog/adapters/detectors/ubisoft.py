"""Ubisoft Connect installs recorded under ``Ubisoft\\Launcher\\Installs``."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from pathlib import Path, PureWindowsPath
from typing import TYPE_CHECKING, Final

from softcatalog.domain.model import Category, DetectedCandidate, OriginPlatform

from ._files import find_executable, is_under
from .windows_registry import RegistryHive, iter_subkey_values, string_value

if TYPE_CHECKING:
    from .windows_registry import RegistryReader

log = getLogger(__name__)

UBISOFT_INSTALLS_KEYS: Final[tuple[str, ...]] = (
    r"SOFTWARE\WOW6432Node\Ubisoft\Launcher\Installs",
    r"SOFTWARE\Ubisoft\Launcher\Installs",
)


class UbisoftDetector:
    name = "Ubisoft Connect"
    origin = OriginPlatform.UBISOFT

    def __init__(self, reader: RegistryReader) -> None:
        self.reader = reader
        self._detected: list[DetectedCandidate] | None = None

    def is_available(self) -> bool:
        if not self.reader.is_supported():
            return False
        return any(
            self.reader.values(RegistryHive.LOCAL_MACHINE, key) is not None
            for key in UBISOFT_INSTALLS_KEYS
        )

    def detect(self) -> list[DetectedCandidate]:
        candidates: dict[str, DetectedCandidate] = {}
        for root in UBISOFT_INSTALLS_KEYS:
            for game_id, values in iter_subkey_values(
                self.reader, RegistryHive.LOCAL_MACHINE, root
            ):
                install_dir = string_value(values, "InstallDir")
                if not install_dir:
                    log.debug("Ubisoft install %s has no InstallDir", game_id)
                    continue
                candidates.setdefault(
                    game_id,
                    self._to_candidate(game_id, install_dir, f"HKLM\\{root}\\{game_id}"),
                )
        self._detected = list(candidates.values())
        return list(self._detected)

    def claim_from_path(self, path: str) -> DetectedCandidate | None:
        known = self._detected if self._detected is not None else self.detect()
        for candidate in known:
            if candidate.install_path and is_under(path, candidate.install_path):
                return replace(candidate, attributes=dict(candidate.attributes))
        return None

    def _to_candidate(
        self,
        game_id: str,
        install_dir: str,
        registry_key: str,
    ) -> DetectedCandidate:
        # The registry only records the folder; its name is the game title
        name = PureWindowsPath(install_dir.replace("/", "\\").rstrip("\\")).name
        found = find_executable(Path(install_dir), name)
        executable = str(found) if found else None
        return DetectedCandidate(
            name=name or game_id,
            origin=self.origin,
            external_id=game_id,
            install_path=install_dir.rstrip("\\/"),
            executable_path=executable,
            icon_hint=executable,
            category=Category.GAMES,
            attributes={"registry_key": registry_key},
        )
