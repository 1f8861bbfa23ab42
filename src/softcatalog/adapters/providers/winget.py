"""The local ``winget`` tool as a software metadata provider."""

from __future__ import annotations

import asyncio
import os
import shutil
from dataclasses import dataclass
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, cast

from softcatalog.domain.matching import clean_software_name
from softcatalog.domain.model import ProviderGroup
from softcatalog.domain.ports import MetadataResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from softcatalog.config.providers import WingetConfig
    from softcatalog.domain.model import OriginPlatform
    from softcatalog.domain.ports import LookupContext, MetadataProvider

log = getLogger(__name__)

type ProcessRunner = Callable[[Sequence[str], float], Awaitable[tuple[int, str]]]

SOURCE_AGREEMENTS = "--accept-source-agreements"


@dataclass(frozen=True, slots=True)
class WingetPackage:
    name: str
    id: str
    version: str | None = None
    source: str | None = None


async def run_process(args: Sequence[str], timeout: float) -> tuple[int, str]:
    """Run ``args`` and return its exit code and decoded stdout."""

    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        process.kill()
        await process.wait()
        raise
    return process.returncode or 0, stdout.decode("utf-8", errors="replace")


def locate_winget(override: Path | None = None) -> Path | None:
    if override is not None:
        return override if override.is_file() else None
    found = shutil.which("winget")
    if found:
        return Path(found)
    local = os.getenv("LOCALAPPDATA")
    if local:
        candidate = Path(local) / "Microsoft" / "WindowsApps" / "winget.exe"
        if candidate.is_file():
            return candidate
    return None


def _output_lines(output: str) -> list[str]:
    # progress spinners rewrite the line with carriage returns
    return [line.split("\r")[-1].rstrip() for line in output.split("\n")]


def parse_search_table(output: str) -> list[WingetPackage]:
    """Rows of the ``winget search`` table, sliced by the header's column offsets."""

    lines = _output_lines(output)
    separator = next(
        (
            index
            for index, line in enumerate(lines)
            if index > 0 and line.strip() and set(line.strip()) == {"-"}
        ),
        None,
    )
    if separator is None:
        return []

    header = lines[separator - 1]
    columns: list[tuple[str, int]] = []
    position = 0
    for title in header.split():
        position = header.index(title, position)
        columns.append((title.casefold(), position))
        position += len(title)
    if len(columns) < 2:  # noqa: PLR2004
        return []

    packages: list[WingetPackage] = []
    for line in lines[separator + 1 :]:
        if not line.strip():
            continue
        cells: dict[str, str] = {}
        for index, (title, start) in enumerate(columns):
            end = columns[index + 1][1] if index + 1 < len(columns) else len(line)
            cells[title] = line[start:end].strip()
        name = cells.get(columns[0][0], "")
        package_id = cells.get(columns[1][0], "")
        if not name or not package_id:
            continue
        version = cells.get(columns[2][0]) if len(columns) > 2 else None  # noqa: PLR2004
        packages.append(
            WingetPackage(
                name=name,
                id=package_id,
                version=version or None,
                source=cells.get("source") or None,
            )
        )
    return packages


def parse_show_output(output: str) -> dict[str, str]:
    """``Key: value`` fields of ``winget show``; indented lines continue the previous key."""

    fields: dict[str, str] = {}
    current: str | None = None
    for line in _output_lines(output):
        if not line.strip():
            continue
        if line.startswith((" ", "\t")) and current is not None:
            fields[current] = f"{fields[current]} {line.strip()}".strip()
            continue
        key, sep, value = line.partition(":")
        if not sep or not key.strip():
            current = None
            continue
        current = key.strip().casefold()
        fields[current] = value.strip()
    return fields


def match_confidence(found: str, wanted: str) -> float:
    found_key = found.strip().casefold()
    wanted_key = wanted.strip().casefold()
    if not found_key or not wanted_key:
        return 0.5
    if found_key == wanted_key:
        return 1.0
    if wanted_key in found_key:
        return 0.8
    return 0.6


class WingetProvider:
    name = "Winget"
    group = ProviderGroup.SOFTWARE
    priority = 1
    supported_origins: frozenset[OriginPlatform] = frozenset()

    def __init__(
        self,
        *,
        config: WingetConfig,
        runner: ProcessRunner | None = None,
        executable: Path | None = None,
    ) -> None:
        self._config = config
        self._runner = runner or run_process
        self._executable = executable or locate_winget(config.executable)

    def is_available(self) -> bool:
        return self._executable is not None

    def unavailable_reason(self) -> str | None:
        return None if self.is_available() else "winget executable not found"

    async def lookup_by_external_id(
        self,
        origin: OriginPlatform,  # noqa: ARG002
        external_id: str,  # noqa: ARG002
    ) -> MetadataResult | None:
        return None

    async def lookup_by_name(
        self,
        name: str,
        context: LookupContext,  # noqa: ARG002
    ) -> MetadataResult | None:
        cleaned = clean_software_name(name)
        if not cleaned or self._executable is None:
            return None

        code, output = await self._run("search", cleaned)
        if code != 0:
            log.debug("winget search %r exited with %d", cleaned, code)
            return None
        packages = parse_search_table(output)
        if not packages:
            return None

        package = packages[0]
        result = MetadataResult(
            name=package.name,
            confidence=match_confidence(package.name, cleaned),
            raw_extras={"package_id": package.id, "version": package.version},
        )

        code, output = await self._run("show", "--id", package.id, "--exact")
        if code == 0:
            details = parse_show_output(output)
            result.publisher = details.get("publisher") or None
            result.description = details.get("description") or None
            result.website_url = details.get("homepage") or None
            if details.get("version"):
                result.raw_extras["latest_version"] = details["version"]
        else:
            log.debug("winget show %s exited with %d", package.id, code)

        log.info("Winget: %r -> %r (confidence %.2f)", name, result.name, result.confidence)
        return result

    async def aclose(self) -> None:
        return None

    async def _run(self, *args: str) -> tuple[int, str]:
        command = [str(self._executable), *args, SOURCE_AGREEMENTS]
        return await self._runner(command, self._config.timeout_seconds)


if TYPE_CHECKING:
    _provider_check: MetadataProvider = WingetProvider(config=cast("WingetConfig", object()))
