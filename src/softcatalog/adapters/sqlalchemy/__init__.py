"""SQLAlchemy adapter package for softcatalog."""

from __future__ import annotations

from .mappings import (
    catalog_registry,
    create_catalog_tables,
    create_local_tables,
    local_registry,
    start_mappers,
)
from .repositories import (
    SqlAlchemyLocalInstallationRepository,
    SqlAlchemyReferenceCatalogRepository,
)
from .unit_of_work import (
    SqlAlchemyCatalogUnitOfWork,
    SqlAlchemyLocalUnitOfWork,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyCatalogUnitOfWork",
    "SqlAlchemyLocalInstallationRepository",
    "SqlAlchemyLocalUnitOfWork",
    "SqlAlchemyReferenceCatalogRepository",
    "catalog_registry",
    "create_catalog_tables",
    "create_local_tables",
    "local_registry",
    "shutdown",
    "startup",
]
