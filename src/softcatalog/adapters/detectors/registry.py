"""Generic detector over the Windows ``Uninstall`` keys."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from softcatalog.domain.model import DetectedCandidate, OriginPlatform

from .windows_registry import RegistryHive, int_value, iter_subkey_values, string_value

if TYPE_CHECKING:
    from .windows_registry import RegistryReader

log = getLogger(__name__)

UNINSTALL_KEYS: Final[tuple[tuple[RegistryHive, str], ...]] = (
    (RegistryHive.LOCAL_MACHINE, r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall"),
    (
        RegistryHive.LOCAL_MACHINE,
        r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall",
    ),
    (RegistryHive.CURRENT_USER, r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall"),
)

_UPDATE_PATTERN = re.compile(
    r"\bKB\d{6,}\b|\bhotfix\b|^update for\b|\bsecurity update\b",
    re.IGNORECASE,
)
_ICON_INDEX = re.compile(r",\s*-?\d+$")


def _icon_path(raw: str | None) -> str | None:
    if not raw:
        return None
    return _ICON_INDEX.sub("", raw).strip().strip('"') or None


def _install_date(raw: str | None) -> datetime | None:
    if not raw or len(raw) != 8 or not raw.isdigit():  # noqa: PLR2004
        return None
    try:
        return datetime.strptime(raw, "%Y%m%d").replace(tzinfo=UTC)
    except ValueError:
        return None


def is_system_update(name: str) -> bool:
    return _UPDATE_PATTERN.search(name) is not None


class RegistryDetector:
    """Everything listed in Add/Remove Programs.

    Launcher games also show up here; the specialized detectors claim them
    by install path.
    """

    name = "Windows Registry"
    origin = OriginPlatform.REGISTRY

    def __init__(self, reader: RegistryReader) -> None:
        self.reader = reader

    def is_available(self) -> bool:
        return self.reader.is_supported()

    def detect(self) -> list[DetectedCandidate]:
        candidates: list[DetectedCandidate] = []
        seen: set[tuple[str, str | None, str | None]] = set()
        for hive, root in UNINSTALL_KEYS:
            for key_name, values in iter_subkey_values(self.reader, hive, root):
                candidate = self._to_candidate(values, f"{hive}\\{root}\\{key_name}")
                if candidate is None:
                    continue
                # 32- and 64-bit views often repeat the same product
                identity = (
                    candidate.name.casefold(),
                    candidate.version,
                    (candidate.install_path or "").casefold() or None,
                )
                if identity in seen:
                    continue
                seen.add(identity)
                candidates.append(candidate)
        return candidates

    def claim_from_path(self, path: str) -> DetectedCandidate | None:  # noqa: ARG002
        return None

    def _to_candidate(
        self,
        values: dict[str, object],
        registry_key: str,
    ) -> DetectedCandidate | None:
        name = string_value(values, "DisplayName")
        if not name:
            return None
        if int_value(values, "SystemComponent") == 1:
            log.debug("Skipping system component %s", name)
            return None
        if string_value(values, "ParentKeyName"):
            log.debug("Skipping child entry %s", name)
            return None
        if is_system_update(name):
            log.debug("Skipping update %s", name)
            return None

        install_location = string_value(values, "InstallLocation")
        icon = _icon_path(string_value(values, "DisplayIcon"))
        attributes = {"registry_key": registry_key}
        uninstall = string_value(values, "UninstallString")
        if uninstall:
            attributes["uninstall_string"] = uninstall

        size_kb = int_value(values, "EstimatedSize")
        return DetectedCandidate(
            name=name,
            origin=self.origin,
            install_path=install_location.rstrip("\\/") if install_location else None,
            executable_path=icon if icon and icon.lower().endswith(".exe") else None,
            icon_hint=icon,
            version=string_value(values, "DisplayVersion"),
            install_timestamp=_install_date(string_value(values, "InstallDate")),
            publisher=string_value(values, "Publisher"),
            size_bytes=size_kb * 1024 if size_kb is not None else None,
            attributes=attributes,
        )
