"""EA app / Origin installs recorded under ``EA Games``."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Final

from softcatalog.domain.model import Category, DetectedCandidate, OriginPlatform

from ._files import find_executable, is_under, path_key
from .windows_registry import RegistryHive, iter_subkey_values, string_value

if TYPE_CHECKING:
    from .windows_registry import RegistryReader

log = getLogger(__name__)

EA_GAMES_KEYS: Final[tuple[str, ...]] = (
    r"SOFTWARE\WOW6432Node\EA Games",
    r"SOFTWARE\EA Games",
)


class EaDetector:
    """EA records no stable product id in these keys, so candidates carry none."""

    name = "EA app"
    origin = OriginPlatform.EA

    def __init__(self, reader: RegistryReader) -> None:
        self.reader = reader
        self._detected: list[DetectedCandidate] | None = None

    def is_available(self) -> bool:
        if not self.reader.is_supported():
            return False
        return any(
            self.reader.values(RegistryHive.LOCAL_MACHINE, key) is not None
            for key in EA_GAMES_KEYS
        )

    def detect(self) -> list[DetectedCandidate]:
        candidates: dict[str, DetectedCandidate] = {}
        for root in EA_GAMES_KEYS:
            for key_name, values in iter_subkey_values(
                self.reader, RegistryHive.LOCAL_MACHINE, root
            ):
                install_dir = string_value(values, "Install Dir") or string_value(
                    values, "InstallLocation"
                )
                if not install_dir:
                    log.debug("EA entry %s has no install folder", key_name)
                    continue
                name = string_value(values, "DisplayName") or key_name
                found = find_executable(Path(install_dir), name)
                executable = str(found) if found else None
                candidates.setdefault(
                    path_key(install_dir),
                    DetectedCandidate(
                        name=name,
                        origin=self.origin,
                        install_path=install_dir.rstrip("\\/"),
                        executable_path=executable,
                        icon_hint=executable,
                        category=Category.GAMES,
                        attributes={
                            "ea_key": key_name,
                            "registry_key": f"HKLM\\{root}\\{key_name}",
                        },
                    ),
                )
        self._detected = list(candidates.values())
        return list(self._detected)

    def claim_from_path(self, path: str) -> DetectedCandidate | None:
        known = self._detected if self._detected is not None else self.detect()
        for candidate in known:
            if candidate.install_path and is_under(path, candidate.install_path):
                return replace(candidate, attributes=dict(candidate.attributes))
        return None
