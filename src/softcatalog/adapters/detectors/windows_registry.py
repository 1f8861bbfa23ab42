"""Read-only access to the Windows registry.

Detectors depend on the ``RegistryReader`` protocol; tests substitute an
in-memory reader.
"""

from __future__ import annotations

import sys
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterator
    from contextlib import AbstractContextManager

log = getLogger(__name__)


class RegistryHive(StrEnum):
    LOCAL_MACHINE = "HKLM"
    CURRENT_USER = "HKCU"


@runtime_checkable
class RegistryReader(Protocol):
    def is_supported(self) -> bool: ...

    def subkeys(self, hive: RegistryHive, path: str) -> list[str]:
        """Names of the direct subkeys of ``path``; empty when the key is missing."""
        ...

    def values(self, hive: RegistryHive, path: str) -> dict[str, object] | None:
        """Values of ``path``; ``None`` when the key is missing."""
        ...


class WindowsRegistryReader:
    def is_supported(self) -> bool:
        return sys.platform == "win32"

    def subkeys(self, hive: RegistryHive, path: str) -> list[str]:
        if not self.is_supported():
            return []
        import winreg  # noqa: PLC0415

        try:
            with self._open(hive, path) as key:
                count = winreg.QueryInfoKey(key)[0]
                return [winreg.EnumKey(key, index) for index in range(count)]
        except FileNotFoundError:
            return []

    def values(self, hive: RegistryHive, path: str) -> dict[str, object] | None:
        if not self.is_supported():
            return None
        import winreg  # noqa: PLC0415

        try:
            with self._open(hive, path) as key:
                count = winreg.QueryInfoKey(key)[1]
                found: dict[str, object] = {}
                for index in range(count):
                    name, data, _kind = winreg.EnumValue(key, index)
                    found[name] = data
                return found
        except FileNotFoundError:
            return None

    def _open(self, hive: RegistryHive, path: str) -> AbstractContextManager[object]:
        import winreg  # noqa: PLC0415

        root = (
            winreg.HKEY_LOCAL_MACHINE
            if hive is RegistryHive.LOCAL_MACHINE
            else winreg.HKEY_CURRENT_USER
        )
        return winreg.OpenKey(root, path, 0, winreg.KEY_READ)


def iter_subkey_values(
    reader: RegistryReader,
    hive: RegistryHive,
    path: str,
) -> Iterator[tuple[str, dict[str, object]]]:
    """Yield ``(subkey name, values)`` under ``path``, skipping unreadable subkeys."""

    for name in reader.subkeys(hive, path):
        try:
            values = reader.values(hive, f"{path}\\{name}")
        except OSError as exc:
            log.debug("Cannot read %s\\%s\\%s: %s", hive, path, name, exc)
            continue
        if values is not None:
            yield name, values


def string_value(values: dict[str, object], name: str) -> str | None:
    value = values.get(name)
    if isinstance(value, str):
        stripped = value.strip().strip('"')
        return stripped or None
    return None


def int_value(values: dict[str, object], name: str) -> int | None:
    value = values.get(name)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
