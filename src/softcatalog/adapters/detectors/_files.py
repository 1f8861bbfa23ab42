"""File-system helpers shared by the launcher detectors."""

from __future__ import annotations

import re
from logging import getLogger
from pathlib import Path
from typing import Final

log = getLogger(__name__)

# Helper executables shipped next to the real one
SKIPPED_EXECUTABLE_MARKERS: Final[tuple[str, ...]] = (
    "unins",
    "crash",
    "report",
    "launcher",
    "setup",
    "install",
    "updater",
    "redist",
)

# Where engines tend to hide the game binary
BINARY_SUBDIRECTORIES: Final[tuple[str, ...]] = (
    "bin",
    "Binaries",
    "Binaries/Win64",
    "Binaries/Win32",
    "Game/Binaries/Win64",
)

_NON_WORD = re.compile(r"[^\w]")


def _compact(value: str) -> str:
    return _NON_WORD.sub("", value).casefold()


def _executables(directory: Path) -> list[Path]:
    try:
        files = sorted(
            entry
            for entry in directory.iterdir()
            if entry.is_file() and entry.suffix.lower() == ".exe"
        )
    except OSError as exc:
        log.debug("Cannot list %s: %s", directory, exc)
        return []
    return [
        path
        for path in files
        if not any(marker in path.name.lower() for marker in SKIPPED_EXECUTABLE_MARKERS)
    ]


def find_executable(install_dir: Path, name: str | None = None) -> Path | None:
    """Best guess at the main executable under ``install_dir``.

    Looks in the directory itself, then in engine binary folders, then one
    level deep. An executable named like the software wins over the first one found.
    """

    if not install_dir.is_dir():
        return None

    directories = [install_dir]
    directories.extend(
        install_dir / sub for sub in BINARY_SUBDIRECTORIES if (install_dir / sub).is_dir()
    )
    try:
        directories.extend(
            sorted(child for child in install_dir.iterdir() if child.is_dir())
        )
    except OSError as exc:
        log.debug("Cannot list %s: %s", install_dir, exc)

    wanted = _compact(name) if name else None
    first: Path | None = None
    seen: set[Path] = set()
    for directory in directories:
        if directory in seen:
            continue
        seen.add(directory)
        for executable in _executables(directory):
            if wanted and _compact(executable.stem) == wanted:
                return executable
            if first is None:
                first = executable
        if first is not None and not wanted:
            return first
    return first


def path_key(path: str | Path) -> str:
    """Case- and separator-insensitive form of a Windows or POSIX path."""

    return str(path).replace("\\", "/").rstrip("/").casefold()


def is_under(path: str | Path, root: str | Path) -> bool:
    candidate = path_key(path)
    base = path_key(root)
    return bool(base) and (candidate == base or candidate.startswith(base + "/"))


def relative_parts(path: str | Path, root: str | Path) -> list[str]:
    """Casefolded path segments of ``path`` below ``root`` (empty when not under it)."""

    if not is_under(path, root):
        return []
    remainder = path_key(path)[len(path_key(root)) :]
    return [part for part in remainder.split("/") if part]
