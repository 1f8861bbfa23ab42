"""Domain ports (interfaces) for adapters."""

from __future__ import annotations

from .detection import SourceDetector
from .metadata import LookupContext, MetadataProvider, MetadataResult
from .persistence import LocalInstallationRepository, ReferenceCatalogRepository
from .unit_of_work import (
    CatalogRepositories,
    CatalogUnitOfWork,
    CatalogUnitOfWorkFactory,
    LocalRepositories,
    LocalUnitOfWork,
    LocalUnitOfWorkFactory,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "CatalogRepositories",
    "CatalogUnitOfWork",
    "CatalogUnitOfWorkFactory",
    "LocalInstallationRepository",
    "LocalRepositories",
    "LocalUnitOfWork",
    "LocalUnitOfWorkFactory",
    "LookupContext",
    "MetadataProvider",
    "MetadataResult",
    "ReferenceCatalogRepository",
    "RepositoryCollection",
    "SourceDetector",
    "UnitOfWork",
]
