"""Steam libraries: ``libraryfolders.vdf`` and ``appmanifest_<appid>.acf`` files."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, cast

import vdf

from softcatalog.domain.categorization import categorize
from softcatalog.domain.errors import SourceReadError
from softcatalog.domain.model import Category, DetectedCandidate, OriginPlatform

from ._files import find_executable, path_key, relative_parts

if TYPE_CHECKING:
    from collections.abc import Mapping

log = getLogger(__name__)

_MANIFEST_NAME = re.compile(r"^appmanifest_(\d+)\.acf$", re.IGNORECASE)
_ICON_TEMPLATES = ("{appid}_icon.jpg", "{appid}_logo.png", "{appid}.ico")


def _get(mapping: Mapping[str, object], key: str) -> object:
    """Case-insensitive lookup; VDF key casing differs between Steam versions."""

    if key in mapping:
        return mapping[key]
    wanted = key.casefold()
    for name, value in mapping.items():
        if name.casefold() == wanted:
            return value
    return None


def _text(mapping: Mapping[str, object], key: str) -> str | None:
    value = _get(mapping, key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _number(mapping: Mapping[str, object], key: str) -> int | None:
    value = _text(mapping, key)
    if value is None or not value.isdigit():
        return None
    return int(value)


def _load_vdf(path: Path) -> dict[str, object] | None:
    try:
        with path.open(encoding="utf-8", errors="replace") as handle:
            return cast(dict[str, object], vdf.load(handle))
    except (OSError, SyntaxError, ValueError) as exc:
        log.debug("Skipping unreadable VDF file %s: %s", path, exc)
        return None


class SteamDetector:
    name = "Steam"
    origin = OriginPlatform.STEAM

    def __init__(self, steam_root: Path) -> None:
        self.steam_root = steam_root
        self._install_dirs: dict[str, Path] | None = None

    def is_available(self) -> bool:
        return (self.steam_root / "steamapps").is_dir()

    def library_paths(self) -> list[Path]:
        """The Steam root plus every library listed in ``libraryfolders.vdf``."""

        libraries: dict[str, Path] = {path_key(self.steam_root): self.steam_root}
        for candidate in (
            self.steam_root / "steamapps" / "libraryfolders.vdf",
            self.steam_root / "config" / "libraryfolders.vdf",
        ):
            if not candidate.is_file():
                continue
            data = _load_vdf(candidate)
            if data is None:
                continue
            folders = _get(data, "libraryfolders")
            if not isinstance(folders, dict):
                continue
            for key, value in cast(dict[str, object], folders).items():
                path: str | None = None
                if isinstance(value, dict):
                    path = _text(cast(dict[str, object], value), "path")
                elif isinstance(value, str) and key.isdigit():
                    # pre-2021 format: "1" "D:\\SteamLibrary"
                    path = value
                if path:
                    libraries.setdefault(path_key(path), Path(path))
            break
        return list(libraries.values())

    def detect(self) -> list[DetectedCandidate]:
        steamapps = self.steam_root / "steamapps"
        if not steamapps.is_dir():
            raise SourceReadError(
                f"Steam library not found at {steamapps}",
                origin=self.origin,
                path=str(steamapps),
            )

        candidates: list[DetectedCandidate] = []
        install_dirs: dict[str, Path] = {}
        for library in self.library_paths():
            for manifest in self._manifests(library):
                candidate = self._parse_manifest(manifest, library)
                if candidate is None:
                    continue
                candidates.append(candidate)
                if candidate.install_path:
                    install_dirs[path_key(candidate.install_path)] = manifest
        self._install_dirs = install_dirs
        return candidates

    def claim_from_path(self, path: str) -> DetectedCandidate | None:
        for library in self.library_paths():
            parts = relative_parts(path, library / "steamapps" / "common")
            if not parts:
                continue
            install_dir = library / "steamapps" / "common" / parts[0]
            manifest = self._manifest_index().get(path_key(install_dir))
            if manifest is not None:
                return self._parse_manifest(manifest, library)
        return None

    def _manifest_index(self) -> dict[str, Path]:
        if self._install_dirs is None:
            self.detect()
        return self._install_dirs or {}

    def _manifests(self, library: Path) -> list[Path]:
        steamapps = library / "steamapps"
        if not steamapps.is_dir():
            log.debug("Steam library %s has no steamapps folder", library)
            return []
        try:
            return sorted(steamapps.glob("appmanifest_*.acf"))
        except OSError as exc:
            log.warning("Cannot list Steam manifests in %s: %s", steamapps, exc)
            return []

    def _parse_manifest(self, manifest: Path, library: Path) -> DetectedCandidate | None:
        data = _load_vdf(manifest)
        if data is None:
            return None
        state = _get(data, "AppState")
        if not isinstance(state, dict):
            log.debug("Manifest %s has no AppState", manifest)
            return None
        app_state = cast(dict[str, object], state)

        match = _MANIFEST_NAME.match(manifest.name)
        appid = match.group(1) if match else _text(app_state, "appid")
        name = _text(app_state, "name")
        if not appid or not name:
            log.debug("Manifest %s lacks an app id or name", manifest)
            return None

        attributes: dict[str, str] = {"manifest": str(manifest)}
        install_path: Path | None = None
        executable: Path | None = None
        installdir = _text(app_state, "installdir")
        if installdir:
            attributes["installdir"] = installdir
            install_path = library / "steamapps" / "common" / installdir
            executable = find_executable(install_path, name)
        buildid = _text(app_state, "buildid")
        if buildid:
            attributes["buildid"] = buildid

        updated = _number(app_state, "LastUpdated")
        icon = self._icon_hint(appid) or (str(executable) if executable else None)
        category = Category.COMPONENT if categorize(name) is Category.COMPONENT else Category.GAMES

        return DetectedCandidate(
            name=name,
            origin=self.origin,
            external_id=appid,
            install_path=str(install_path) if install_path else None,
            executable_path=str(executable) if executable else None,
            icon_hint=icon,
            install_timestamp=datetime.fromtimestamp(updated, UTC) if updated else None,
            category=category,
            size_bytes=_number(app_state, "SizeOnDisk"),
            attributes=attributes,
        )

    def _icon_hint(self, appid: str) -> str | None:
        cache = self.steam_root / "appcache" / "librarycache"
        for template in _ICON_TEMPLATES:
            icon = cache / template.format(appid=appid)
            if icon.is_file():
                return str(icon)
        return None
