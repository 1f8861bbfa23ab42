"""SQLAlchemy-backed units of work for the catalog and local stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.exc import DatabaseError
from sqlalchemy.orm import Session, sessionmaker

from softcatalog.adapters.sqlalchemy.mappings import (
    create_catalog_tables,
    create_local_tables,
    start_mappers,
)
from softcatalog.adapters.sqlalchemy.repositories import (
    SqlAlchemyLocalInstallationRepository,
    SqlAlchemyReferenceCatalogRepository,
)
from softcatalog.config.storage import get_database_config
from softcatalog.domain.errors import CorruptStoreError
from softcatalog.domain.ports.unit_of_work import (
    CatalogRepositories,
    LocalRepositories,
    RepositoryCollection,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)

# Seconds a connection waits on a locked SQLite file before raising
SQLITE_BUSY_TIMEOUT = 30


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    label: str
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                f"SQLAlchemy {self.label} store not initialised. Call softcatalog.adapters."
                "sqlalchemy.unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_CATALOG = _AdapterState(label="catalog")
_LOCAL = _AdapterState(label="local")


def create_store_engine(uri: str) -> Engine:
    """Create an engine; SQLite connections wait on locks instead of failing fast."""

    if uri.startswith("sqlite"):
        return create_engine(uri, connect_args={"timeout": SQLITE_BUSY_TIMEOUT})
    return create_engine(uri)


def _prepare(
    label: str,
    engine: Engine,
    create_tables: Callable[[Engine], None],
) -> None:
    try:
        create_tables(engine)
    except DatabaseError as exc:
        raise CorruptStoreError(f"{label} store at {engine.url} is unusable: {exc}") from exc


def startup(
    *,
    catalog_engine: Engine | None = None,
    local_engine: Engine | None = None,
    catalog_uri: str | None = None,
    local_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise both engines, their schemas, and the session factories.

    Missing tables are created; a store whose file is not a database raises
    ``CorruptStoreError``.
    """

    if is_started() and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    if catalog_engine is None or local_engine is None:
        database = get_database_config()
        catalog_engine = catalog_engine or create_store_engine(
            catalog_uri or database.catalog_uri
        )
        local_engine = local_engine or create_store_engine(local_uri or database.local_uri)

    start_mappers()
    _prepare("catalog", catalog_engine, create_catalog_tables)
    _prepare("local", local_engine, create_local_tables)

    _CATALOG.engine = catalog_engine
    _LOCAL.engine = local_engine
    log.info("Stores ready: catalog=%s local=%s", catalog_engine.url, local_engine.url)


def configured_engines() -> tuple[Engine | None, Engine | None]:
    """Return the (catalog, local) engines currently managed by the adapter."""

    return _CATALOG.engine, _LOCAL.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _CATALOG.engine is not None and _LOCAL.engine is not None


def shutdown() -> None:
    """Dispose the managed engines and reset state (primarily for tests)."""

    for state in (_CATALOG, _LOCAL):
        if state.engine is not None:
            state.engine.dispose()
        state.engine = None


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory
        self._session: Session | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        return False

    def commit(self) -> None:
        try:
            self.session.commit()
        except DatabaseError as exc:
            self.session.rollback()
            raise CorruptStoreError(f"Commit failed: {exc}") from exc

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyCatalogUnitOfWork(BaseSqlAlchemyUnitOfWork[CatalogRepositories]):
    """Unit of work over the shareable catalog store."""

    def __init__(self) -> None:
        super().__init__(_CATALOG.session_factory)

    def _build_repositories(self, session: Session) -> CatalogRepositories:
        return CatalogRepositories(references=SqlAlchemyReferenceCatalogRepository(session))


class SqlAlchemyLocalUnitOfWork(BaseSqlAlchemyUnitOfWork[LocalRepositories]):
    """Unit of work over the machine-scoped installation store."""

    def __init__(self) -> None:
        super().__init__(_LOCAL.session_factory)

    def _build_repositories(self, session: Session) -> LocalRepositories:
        return LocalRepositories(installations=SqlAlchemyLocalInstallationRepository(session))


if TYPE_CHECKING:
    from softcatalog.domain.ports.unit_of_work import CatalogUnitOfWork, LocalUnitOfWork

    _uow_catalog_check: CatalogUnitOfWork = SqlAlchemyCatalogUnitOfWork()
    _uow_local_check: LocalUnitOfWork = SqlAlchemyLocalUnitOfWork()
