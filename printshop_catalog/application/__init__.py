"""Application layer: catalog source, query coordinator and screen lifecycle."""

from printshop_catalog.application.catalog_source import CatalogSource
from printshop_catalog.application.coordinator import CatalogSnapshot, QueryCoordinator
from printshop_catalog.application.screen import FilterStateStore, ListingScreen

__all__ = [
    "CatalogSnapshot",
    "CatalogSource",
    "FilterStateStore",
    "ListingScreen",
    "QueryCoordinator",
]
