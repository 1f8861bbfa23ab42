from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from softcatalog.adapters.sqlalchemy.mappings import (
    create_catalog_tables,
    create_local_tables,
    start_mappers,
)
from softcatalog.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyCatalogUnitOfWork,
    SqlAlchemyLocalUnitOfWork,
    create_store_engine,
    shutdown,
    startup,
)

os.environ.setdefault("CATALOG_DATABASE_URI", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("LOCAL_DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    monkeypatch.setenv("SOFTCATALOG_DATA_DIR", str(data_dir))
    return data_dir


@pytest.fixture
def catalog_engine() -> Iterator[Engine]:
    engine = create_store_engine("sqlite+pysqlite:///:memory:")
    start_mappers()
    create_catalog_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def local_engine() -> Iterator[Engine]:
    engine = create_store_engine("sqlite+pysqlite:///:memory:")
    start_mappers()
    create_local_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def catalog_session(catalog_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=catalog_engine, expire_on_commit=False)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def local_session(local_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=local_engine, expire_on_commit=False)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def stores(catalog_engine: Engine, local_engine: Engine) -> Iterator[None]:
    startup(catalog_engine=catalog_engine, local_engine=local_engine, force=True)
    try:
        yield
    finally:
        shutdown()


@pytest.fixture
def catalog_unit_of_work(stores: None) -> Callable[[], SqlAlchemyCatalogUnitOfWork]:
    del stores
    return SqlAlchemyCatalogUnitOfWork


@pytest.fixture
def local_unit_of_work(stores: None) -> Callable[[], SqlAlchemyLocalUnitOfWork]:
    del stores
    return SqlAlchemyLocalUnitOfWork


@pytest.fixture
def file_stores(tmp_path: Path) -> Iterator[tuple[Engine, Engine]]:
    """File-backed stores for tests that touch the databases from several threads."""

    catalog = create_store_engine(f"sqlite+pysqlite:///{tmp_path / 'catalog.db'}")
    local = create_store_engine(f"sqlite+pysqlite:///{tmp_path / 'local.db'}")
    startup(catalog_engine=catalog, local_engine=local, force=True)
    try:
        yield catalog, local
    finally:
        shutdown()
