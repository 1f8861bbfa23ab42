from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import inspect, insert, select, text
from sqlalchemy.exc import IntegrityError

from softcatalog.adapters.sqlalchemy.mappings import (
    installed_software_table,
    software_ref_table,
    start_mappers,
)
from softcatalog.domain.model import (
    Category,
    LocalInstallation,
    OriginPlatform,
    ReferenceCatalogEntry,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session

NOW = datetime(2026, 3, 1, 12, tzinfo=UTC)


def _row(name: str, external_id: str | None, origin: str = "STEAM") -> dict[str, object]:
    return {
        "name": name,
        "name_key": name.casefold(),
        "origin": OriginPlatform[origin],
        "external_id": external_id,
        "category": Category.GAMES,
        "created_at": NOW,
        "updated_at": NOW,
    }


def test_start_mappers_is_idempotent() -> None:
    # the engine fixtures already started them
    assert start_mappers() is start_mappers()


def test_catalog_indexes(catalog_engine: Engine) -> None:
    indexes = {index["name"] for index in inspect(catalog_engine).get_indexes("software_ref")}

    assert {
        "uq_software_ref_origin_external_id",
        "uq_software_ref_origin_name_key",
        "ix_software_ref_last_enriched_at",
    } <= indexes


def test_external_id_is_unique_per_origin(catalog_session: Session) -> None:
    catalog_session.execute(insert(software_ref_table).values(_row("Portal 2", "620")))
    catalog_session.execute(insert(software_ref_table).values(_row("Portal 2", "620", "EPIC")))

    with pytest.raises(IntegrityError):
        catalog_session.execute(insert(software_ref_table).values(_row("Portal Two", "620")))


def test_name_key_is_unique_only_without_external_id(catalog_session: Session) -> None:
    catalog_session.execute(insert(software_ref_table).values(_row("Hades", None)))
    # an id-bearing twin does not collide with the name identity
    catalog_session.execute(insert(software_ref_table).values(_row("Hades", "1145360")))

    with pytest.raises(IntegrityError):
        catalog_session.execute(insert(software_ref_table).values(_row("Hades", None)))


def test_entry_round_trip(catalog_session: Session) -> None:
    entry = ReferenceCatalogEntry(
        name="Hades",
        origin=OriginPlatform.STEAM,
        name_key="hades",
        external_id="1145360",
        category=Category.GAMES,
        genres=["Action"],
        release_date=date(2020, 9, 17),
        last_enrichment_attempt=datetime(2026, 3, 1, 14, tzinfo=timezone(timedelta(hours=2))),
        created_at=NOW,
        updated_at=NOW,
    )
    catalog_session.add(entry)
    catalog_session.commit()
    catalog_session.expunge_all()

    loaded = catalog_session.scalars(select(ReferenceCatalogEntry)).one()

    assert loaded.origin is OriginPlatform.STEAM
    assert loaded.category is Category.GAMES
    assert loaded.genres == ["Action"]
    assert loaded.additional_metadata == {}
    assert loaded.release_date == date(2020, 9, 17)
    assert loaded.last_enrichment_attempt == NOW
    assert loaded.last_enrichment_attempt.tzinfo is UTC


def test_enums_are_stored_by_value(catalog_session: Session) -> None:
    catalog_session.execute(insert(software_ref_table).values(_row("Hades", "1")))

    stored = catalog_session.execute(text("SELECT origin, category FROM software_ref")).one()

    assert tuple(stored) == ("steam", "games")


def test_installation_round_trip(local_session: Session) -> None:
    installation = LocalInstallation(
        reference_catalog_id=7,
        install_path="/games/hades",
        size_bytes=5 * 1024**3,
        last_detected_at=NOW,
        created_at=NOW,
        updated_at=NOW,
    )
    local_session.add(installation)
    local_session.commit()
    local_session.expunge_all()

    row = local_session.execute(select(installed_software_table)).one()

    assert row.reference_catalog_id == 7
    assert row.size_bytes == 5 * 1024**3
