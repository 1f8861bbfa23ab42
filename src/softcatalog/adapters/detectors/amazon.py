"""Amazon Games: the launcher's SQLite databases, or ``fuel.json`` descriptors."""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import UTC, datetime
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from softcatalog.domain.errors import SourceReadError
from softcatalog.domain.model import Category, DetectedCandidate, OriginPlatform

from ._files import find_executable, is_under

if TYPE_CHECKING:
    from collections.abc import Mapping

log = getLogger(__name__)

INSTALL_INFO_QUERY: Final[str] = (
    "SELECT Id, InstallDirectory, ProductTitle FROM DbSet WHERE Installed = 1"
)
PRODUCT_DETAILS_QUERY: Final[str] = "SELECT Id, Details FROM DbSet"


class AmazonBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AmazonProductDetails(AmazonBaseModel):
    product_title: str | None = Field(default=None, alias="ProductTitle")
    publisher: str | None = Field(default=None, alias="ProductPublisher")
    developers: list[str] = Field(default_factory=list[str], alias="Developers")
    genres: list[str] = Field(default_factory=list[str], alias="Genres")
    game_modes: list[str] = Field(default_factory=list[str], alias="GameModes")
    esrb_rating: str | None = Field(default=None, alias="EsrbRating")
    release_date: str | None = Field(default=None, alias="ReleaseDate")
    description: str | None = Field(default=None, alias="ProductDescription")
    icon_url: str | None = Field(default=None, alias="ProductIconUrl")

    def attributes(self) -> dict[str, str]:
        found: dict[str, str] = {}
        if self.developers:
            found["developers"] = ", ".join(self.developers)
        if self.genres:
            found["genres"] = ", ".join(self.genres)
        if self.game_modes:
            found["game_modes"] = ", ".join(self.game_modes)
        for key, value in (
            ("esrb_rating", self.esrb_rating),
            ("release_date", self.release_date),
            ("description", self.description),
            ("icon_url", self.icon_url),
        ):
            if value:
                found[key] = value
        return found


class FuelDescriptor(AmazonBaseModel):
    id: str = Field(alias="Id")
    product_title: str = Field(alias="ProductTitle")
    install_directory: str | None = Field(default=None, alias="InstallDirectory")


def _read_only_rows(database: Path, query: str) -> list[Mapping[str, object]]:
    uri = f"{database.resolve().as_uri()}?mode=ro"
    engine = create_engine(
        "sqlite+pysqlite://", creator=lambda: sqlite3.connect(uri, uri=True)
    )
    try:
        with engine.connect() as connection:
            return [dict(row) for row in connection.execute(text(query)).mappings()]
    finally:
        engine.dispose()


def _modified_at(path: Path) -> datetime | None:
    try:
        return datetime.fromtimestamp(path.stat().st_mtime, UTC)
    except OSError:
        return None


class AmazonGamesDetector:
    name = "Amazon Games"
    origin = OriginPlatform.AMAZON

    def __init__(self, data_dir: Path, library_dir: Path | None = None) -> None:
        self.data_dir = data_dir
        self.library_dir = library_dir
        self._detected: list[DetectedCandidate] | None = None

    @property
    def sql_dir(self) -> Path:
        return self.data_dir / "Games" / "Sql"

    @property
    def install_database(self) -> Path:
        return self.sql_dir / "GameInstallInfo.sqlite"

    @property
    def details_database(self) -> Path:
        return self.sql_dir / "ProductDetails.sqlite"

    def is_available(self) -> bool:
        return self.install_database.is_file() or self._fuel_root().is_dir()

    def detect(self) -> list[DetectedCandidate]:
        if self.install_database.is_file():
            candidates = self._from_database()
        else:
            log.debug("No Amazon database at %s, reading fuel.json", self.install_database)
            candidates = self._from_fuel()
        self._detected = candidates
        return list(candidates)

    def claim_from_path(self, path: str) -> DetectedCandidate | None:
        known = self._detected if self._detected is not None else self.detect()
        for candidate in known:
            if candidate.install_path and is_under(path, candidate.install_path):
                return replace(candidate, attributes=dict(candidate.attributes))
        return None

    def _from_database(self) -> list[DetectedCandidate]:
        try:
            rows = _read_only_rows(self.install_database, INSTALL_INFO_QUERY)
        except SQLAlchemyError as exc:
            raise SourceReadError(
                f"Cannot read Amazon install database: {exc}",
                origin=self.origin,
                path=str(self.install_database),
            ) from exc

        details = self._product_details()
        candidates: list[DetectedCandidate] = []
        for row in rows:
            product_id = str(row.get("Id") or "").strip()
            install_dir = str(row.get("InstallDirectory") or "").strip()
            title = str(row.get("ProductTitle") or "").strip()
            if not product_id:
                log.debug("Skipping Amazon row without an id")
                continue
            product = details.get(product_id)
            if not title:
                title = (product.product_title if product else None) or product_id
            candidate = self._to_candidate(product_id, title, install_dir, product)
            if candidate is not None:
                candidate.attributes["source"] = "database"
                candidates.append(candidate)
        return candidates

    def _product_details(self) -> dict[str, AmazonProductDetails]:
        if not self.details_database.is_file():
            return {}
        try:
            rows = _read_only_rows(self.details_database, PRODUCT_DETAILS_QUERY)
        except SQLAlchemyError as exc:
            log.warning("Cannot read Amazon product details: %s", exc)
            return {}

        details: dict[str, AmazonProductDetails] = {}
        for row in rows:
            product_id = str(row.get("Id") or "").strip()
            payload = row.get("Details")
            if not product_id or not isinstance(payload, str) or not payload.strip():
                continue
            try:
                details[product_id] = AmazonProductDetails.model_validate_json(payload)
            except ValidationError as exc:
                log.debug("Unreadable Amazon details for %s: %s", product_id, exc)
        return details

    def _fuel_root(self) -> Path:
        return self.library_dir or (self.data_dir / "Games")

    def _from_fuel(self) -> list[DetectedCandidate]:
        root = self._fuel_root()
        if not root.is_dir():
            return []
        candidates: list[DetectedCandidate] = []
        for folder in sorted(child for child in root.iterdir() if child.is_dir()):
            descriptor_path = next(
                (
                    path
                    for path in (folder / "fuel.json", folder / "Fuel.json")
                    if path.is_file()
                ),
                None,
            )
            if descriptor_path is None:
                continue
            try:
                descriptor = FuelDescriptor.model_validate_json(descriptor_path.read_bytes())
            except (OSError, ValidationError) as exc:
                log.debug("Skipping Amazon descriptor %s: %s", descriptor_path, exc)
                continue
            install_dir = descriptor.install_directory or str(folder)
            candidate = self._to_candidate(descriptor.id, descriptor.product_title, install_dir)
            if candidate is not None:
                candidate.attributes["source"] = "fuel"
                candidate.attributes["fuel_json"] = str(descriptor_path)
                candidates.append(candidate)
        return candidates

    def _to_candidate(
        self,
        product_id: str,
        title: str,
        install_dir: str,
        product: AmazonProductDetails | None = None,
    ) -> DetectedCandidate | None:
        install_path = Path(install_dir) if install_dir else None
        if install_path is None or not install_path.is_dir():
            log.debug("Amazon install folder missing for %s: %s", title, install_dir)
            return None

        found = find_executable(install_path, title)
        executable = str(found) if found else None
        attributes = {"product_id": product_id}
        if product is not None:
            attributes.update(product.attributes())
        return DetectedCandidate(
            name=title,
            origin=self.origin,
            external_id=product_id,
            install_path=install_dir,
            executable_path=executable,
            icon_hint=executable,
            install_timestamp=_modified_at(install_path),
            publisher=product.publisher if product else None,
            category=Category.GAMES,
            attributes=attributes,
        )
