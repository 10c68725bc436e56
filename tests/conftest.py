"""Pytest configuration and fixtures for catalog tests."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from printshop_catalog.application.catalog_source import CatalogSource
from printshop_catalog.config import Settings
from printshop_catalog.domain.query import CatalogPage, CatalogQuery, ListingSummary
from printshop_catalog.domain.taxonomy import Tag, TagTaxonomy

BUSINESS_CARDS = Tag(id=1, name="Business Cards")
POSTERS = Tag(id=2, name="Posters")
MATTE = Tag(id=11, name="Matte", parent_id=1)
GLOSSY = Tag(id=12, name="Glossy", parent_id=1)
A1 = Tag(id=21, name="A1", parent_id=2)
A2 = Tag(id=22, name="A2", parent_id=2)

TAG_PAYLOAD = [
    {"id": 1, "name": "Business Cards", "parentId": None},
    {"id": 2, "name": "Posters", "parentId": None},
    {"id": 11, "name": "Matte", "parentId": 1},
    {"id": 12, "name": "Glossy", "parentId": 1},
    {"id": 21, "name": "A1", "parentId": 2},
    {"id": 22, "name": "A2", "parentId": 2},
]


def make_page(total_count: int, names: list[str] | None = None) -> CatalogPage:
    """Create a result page with the given shop names."""
    names = names if names is not None else ["Shop"]
    return CatalogPage(
        items=tuple(
            ListingSummary(id=index, name=name) for index, name in enumerate(names, start=1)
        ),
        total_count=total_count,
    )


class ControlledSource:
    """Catalog source whose responses are released by the test.

    Each fetch waits on a future keyed by its query. Cancellation is ignored
    so superseded responses can still arrive late.
    """

    def __init__(self, taxonomy: TagTaxonomy | None = None) -> None:
        self.taxonomy = taxonomy
        self.requests: list[CatalogQuery] = []
        self._pending: dict[CatalogQuery, asyncio.Future] = {}

    def _future(self, query: CatalogQuery) -> asyncio.Future:
        if query not in self._pending:
            self._pending[query] = asyncio.get_running_loop().create_future()
        return self._pending[query]

    async def load_taxonomy(self) -> TagTaxonomy:
        return self.taxonomy

    async def fetch_page(self, query: CatalogQuery) -> CatalogPage:
        self.requests.append(query)
        future = self._future(query)
        while True:
            try:
                return await asyncio.shield(future)
            except asyncio.CancelledError:
                if future.done():
                    return future.result()

    def resolve(self, query: CatalogQuery, page: CatalogPage) -> None:
        self._future(query).set_result(page)

    def fail(self, query: CatalogQuery, error: Exception) -> None:
        self._future(query).set_exception(error)


@pytest.fixture
def taxonomy() -> TagTaxonomy:
    """Business Cards / Posters taxonomy."""
    return TagTaxonomy.from_payload(TAG_PAYLOAD)


@pytest.fixture
def settings() -> Settings:
    """Settings with a page size of 10."""
    return Settings(page_size=10, persist_filters=False)


@pytest.fixture
def mock_source(taxonomy: TagTaxonomy) -> MagicMock:
    """Create a mock catalog source returning one page of 3 shops."""
    source = MagicMock(spec=CatalogSource)
    source.load_taxonomy = AsyncMock(return_value=taxonomy)
    source.fetch_page = AsyncMock(return_value=make_page(3, ["A", "B", "C"]))
    source.get_print_shop = AsyncMock()
    return source


@pytest.fixture
def controlled_source(taxonomy: TagTaxonomy) -> ControlledSource:
    """Create a catalog source driven by the test."""
    return ControlledSource(taxonomy)
