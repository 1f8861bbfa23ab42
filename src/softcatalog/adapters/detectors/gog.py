"""GOG Galaxy installs recorded under ``GOG.com\\Games``."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Final

from softcatalog.domain.model import Category, DetectedCandidate, OriginPlatform

from ._files import find_executable, is_under
from .windows_registry import RegistryHive, iter_subkey_values, string_value

if TYPE_CHECKING:
    from .windows_registry import RegistryReader

log = getLogger(__name__)

GOG_GAMES_KEYS: Final[tuple[str, ...]] = (
    r"SOFTWARE\WOW6432Node\GOG.com\Games",
    r"SOFTWARE\GOG.com\Games",
)


class GogDetector:
    name = "GOG Galaxy"
    origin = OriginPlatform.GOG

    def __init__(self, reader: RegistryReader) -> None:
        self.reader = reader
        self._detected: list[DetectedCandidate] | None = None

    def is_available(self) -> bool:
        if not self.reader.is_supported():
            return False
        return any(
            self.reader.values(RegistryHive.LOCAL_MACHINE, key) is not None
            for key in GOG_GAMES_KEYS
        )

    def detect(self) -> list[DetectedCandidate]:
        candidates: dict[str, DetectedCandidate] = {}
        for root in GOG_GAMES_KEYS:
            for game_id, values in iter_subkey_values(
                self.reader, RegistryHive.LOCAL_MACHINE, root
            ):
                candidate = self._to_candidate(game_id, values, f"HKLM\\{root}\\{game_id}")
                if candidate is not None:
                    # both views can list the same game
                    candidates.setdefault(game_id, candidate)
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
        values: dict[str, object],
        registry_key: str,
    ) -> DetectedCandidate | None:
        name = string_value(values, "gameName")
        install_path = string_value(values, "path")
        if not name or not install_path:
            log.debug("GOG entry %s lacks a name or path", game_id)
            return None

        exe = string_value(values, "exe")
        working_dir = string_value(values, "workingDir")
        executable: str | None = None
        if exe:
            executable = str(Path(working_dir or install_path) / exe)
        else:
            found = find_executable(Path(install_path), name)
            executable = str(found) if found else None

        return DetectedCandidate(
            name=name,
            origin=self.origin,
            external_id=game_id,
            install_path=install_path,
            executable_path=executable,
            icon_hint=executable,
            version=string_value(values, "ver"),
            category=Category.GAMES,
            attributes={"registry_key": registry_key},
        )
