"""SQLAlchemy mapping metadata for the catalog and local installation stores.

Each store has its own registry and metadata so the schemas can live in
separate SQLite files. ``installed_software.reference_catalog_id`` points into
the other store and is therefore a plain integer column, not a ForeignKey.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, date, datetime
from enum import StrEnum
from functools import cache
from typing import TYPE_CHECKING, Any, Final, cast

from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    orm,
)
from sqlalchemy.orm import configure_mappers

from softcatalog.domain.model import (
    Category,
    LocalInstallation,
    OriginPlatform,
    ReferenceCatalogEntry,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

NAMING_CONVENTION: Final[dict[str, str]] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class StringListType(TypeDecorator[list[str]]):
    impl = Text
    cache_ok = True

    def process_bind_param(self, value: list[str] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if not value:
            return None
        return json.dumps(list(value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> list[str]:
        _ = dialect
        if not value:
            return []
        try:
            loaded = json.loads(value)
        except json.JSONDecodeError:
            log.warning("Discarding unreadable list column value: %.60r", value)
            return []
        if not isinstance(loaded, list):
            return []
        items = cast(list[Any], loaded)
        return [str(item) for item in items if item is not None]


class JSONObjectType(TypeDecorator[dict[str, object]]):
    impl = Text
    cache_ok = True

    def process_bind_param(
        self, value: dict[str, object] | None, dialect: Dialect
    ) -> str | None:
        _ = dialect
        if not value:
            return None
        return json.dumps(value, default=_json_default, sort_keys=True)

    def process_result_value(self, value: str | None, dialect: Dialect) -> dict[str, object]:
        _ = dialect
        if not value:
            return {}
        try:
            loaded = json.loads(value)
        except json.JSONDecodeError:
            log.warning("Discarding unreadable metadata blob: %.60r", value)
            return {}
        if not isinstance(loaded, dict):
            return {}
        return cast(dict[str, object], loaded)


def _json_default(value: object) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _enum_column(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


catalog_registry = orm.registry()
catalog_registry.metadata.naming_convention = NAMING_CONVENTION

local_registry = orm.registry()
local_registry.metadata.naming_convention = NAMING_CONVENTION

# Catalog store ---------------------------------------------------------------

software_ref_table = Table(
    "software_ref",
    catalog_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("name_key", String, nullable=False),
    Column("origin", _enum_column(OriginPlatform), nullable=False),
    Column("external_id", String, nullable=True),
    Column(
        "category",
        _enum_column(Category),
        nullable=False,
        default=Category.OTHER,
    ),
    Column("publisher", String, nullable=True),
    Column("description", Text, nullable=True),
    Column("genres", StringListType, nullable=True),
    Column("developers", StringListType, nullable=True),
    Column("release_date", Date, nullable=True),
    Column("cover_image_url", String, nullable=True),
    Column("additional_metadata", JSONObjectType, nullable=True),
    Column("last_enriched_at", UTCDateTime, nullable=True),
    Column("enrichment_source", String, nullable=True),
    Column("last_enrichment_attempt", UTCDateTime, nullable=True),
    Column("created_at", UTCDateTime, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
)

# Identity: (origin, external_id) when the origin exposes an id, else (origin, name_key)
Index(
    "uq_software_ref_origin_external_id",
    software_ref_table.c.origin,
    software_ref_table.c.external_id,
    unique=True,
    sqlite_where=software_ref_table.c.external_id.isnot(None),
)
Index(
    "uq_software_ref_origin_name_key",
    software_ref_table.c.origin,
    software_ref_table.c.name_key,
    unique=True,
    sqlite_where=software_ref_table.c.external_id.is_(None),
)
Index("ix_software_ref_last_enriched_at", software_ref_table.c.last_enriched_at)

# Local store -----------------------------------------------------------------

installed_software_table = Table(
    "installed_software",
    local_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("reference_catalog_id", Integer, nullable=False, index=True),
    Column("install_path", String, nullable=True),
    Column("executable_path", String, nullable=True),
    Column("icon_path", String, nullable=True),
    Column("registry_key", String, nullable=True),
    Column("version", String, nullable=True),
    Column("install_timestamp", UTCDateTime, nullable=True),
    Column("size_bytes", BigInteger, nullable=True),
    Column("last_detected_at", UTCDateTime, nullable=False),
    Column("created_at", UTCDateTime, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
    UniqueConstraint("reference_catalog_id", "install_path"),
)


@cache
def start_mappers() -> tuple[orm.registry, orm.registry]:
    """Configure SQLAlchemy mappers for the inventory model."""

    log.info("Starting SQLAlchemy mappers")

    catalog_registry.map_imperatively(ReferenceCatalogEntry, software_ref_table)
    local_registry.map_imperatively(LocalInstallation, installed_software_table)

    configure_mappers()
    return catalog_registry, local_registry


def create_catalog_tables(engine: Engine) -> None:
    """Create the catalog store schema if it does not exist yet."""

    log.info("Creating catalog tables")
    catalog_registry.metadata.create_all(engine, checkfirst=True)


def create_local_tables(engine: Engine) -> None:
    """Create the local store schema if it does not exist yet."""

    log.info("Creating local installation tables")
    local_registry.metadata.create_all(engine, checkfirst=True)
