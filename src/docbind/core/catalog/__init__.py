"""Catalog package: registry of typed collections."""

from docbind.core.catalog.catalog import Catalog, CatalogEntry

__all__ = ["Catalog", "CatalogEntry"]
