"""Epic Games Launcher ``*.item`` manifests."""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from softcatalog.domain.errors import SourceReadError
from softcatalog.domain.model import Category, DetectedCandidate, OriginPlatform

from ._files import find_executable, is_under

if TYPE_CHECKING:
    from collections.abc import Iterator

log = getLogger(__name__)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class EpicManifest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    app_name: str = Field(alias="AppName")
    display_name: str = Field(alias="DisplayName")
    install_location: str | None = Field(default=None, alias="InstallLocation")
    launch_executable: str | None = Field(default=None, alias="LaunchExecutable")
    install_size: int | None = Field(default=None, alias="InstallSize")
    app_version: str | None = Field(default=None, alias="AppVersionString")
    catalog_namespace: str | None = Field(default=None, alias="CatalogNamespace")
    catalog_item_id: str | None = Field(default=None, alias="CatalogItemId")
    incomplete: bool = Field(default=False, alias="bIsIncompleteInstall")

    _normalize_optional = field_validator(
        "install_location",
        "launch_executable",
        "app_version",
        "catalog_namespace",
        "catalog_item_id",
        mode="before",
    )(_blank_to_none)


class EpicDetector:
    name = "Epic Games"
    origin = OriginPlatform.EPIC

    def __init__(self, manifests_dir: Path) -> None:
        self.manifests_dir = manifests_dir

    def is_available(self) -> bool:
        return self.manifests_dir.is_dir()

    def detect(self) -> list[DetectedCandidate]:
        if not self.manifests_dir.is_dir():
            raise SourceReadError(
                f"Epic manifests folder not found at {self.manifests_dir}",
                origin=self.origin,
                path=str(self.manifests_dir),
            )
        return [self._to_candidate(manifest) for manifest in self._manifests()]

    def claim_from_path(self, path: str) -> DetectedCandidate | None:
        for manifest in self._manifests():
            if manifest.install_location and is_under(path, manifest.install_location):
                return self._to_candidate(manifest)
        return None

    def _manifests(self) -> Iterator[EpicManifest]:
        try:
            files = sorted(self.manifests_dir.glob("*.item"))
        except OSError as exc:
            raise SourceReadError(
                f"Cannot list Epic manifests: {exc}",
                origin=self.origin,
                path=str(self.manifests_dir),
            ) from exc
        for path in files:
            try:
                manifest = EpicManifest.model_validate_json(path.read_bytes())
            except (OSError, ValidationError) as exc:
                log.debug("Skipping Epic manifest %s: %s", path.name, exc)
                continue
            if manifest.incomplete:
                log.debug("Skipping incomplete Epic install %s", manifest.display_name)
                continue
            yield manifest

    def _to_candidate(self, manifest: EpicManifest) -> DetectedCandidate:
        executable: str | None = None
        if manifest.install_location:
            install_dir = Path(manifest.install_location)
            if manifest.launch_executable:
                executable = str(install_dir / manifest.launch_executable)
            else:
                found = find_executable(install_dir, manifest.display_name)
                executable = str(found) if found else None

        attributes: dict[str, str] = {}
        if manifest.catalog_namespace:
            attributes["catalog_namespace"] = manifest.catalog_namespace
        if manifest.catalog_item_id:
            attributes["catalog_item_id"] = manifest.catalog_item_id

        return DetectedCandidate(
            name=manifest.display_name,
            origin=self.origin,
            external_id=manifest.app_name,
            install_path=manifest.install_location,
            executable_path=executable,
            icon_hint=executable,
            version=manifest.app_version,
            category=Category.GAMES,
            size_bytes=manifest.install_size,
            attributes=attributes,
        )
