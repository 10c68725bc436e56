"""Catalog domain layer.

Pure, synchronous building blocks: the tag taxonomy, the filter state and
its transitions, and the canonical listing query.
"""

from printshop_catalog.domain.exceptions import (
    CatalogError,
    FetchError,
    InvalidPageError,
    InvalidSelectionError,
    InvalidTaxonomyError,
    StaleResponseDiscarded,
)
from printshop_catalog.domain.filters import FilterState, SortBy, SortOrder
from printshop_catalog.domain.query import CatalogPage, CatalogQuery, ListingSummary
from printshop_catalog.domain.taxonomy import Tag, TagHierarchy, TagTaxonomy

__all__ = [
    # Taxonomy
    "Tag",
    "TagHierarchy",
    "TagTaxonomy",
    # Filters
    "FilterState",
    "SortBy",
    "SortOrder",
    # Query
    "CatalogPage",
    "CatalogQuery",
    "ListingSummary",
    # Exceptions
    "CatalogError",
    "FetchError",
    "InvalidPageError",
    "InvalidSelectionError",
    "InvalidTaxonomyError",
    "StaleResponseDiscarded",
]
