"""Listing screen lifecycle.

A ListingScreen owns one QueryCoordinator for as long as the listing is
mounted. Whether filters survive navigating away is an explicit setting;
when it is on, the state is kept in an injected FilterStateStore instead
of process-wide globals.

Example usage:
    store = FilterStateStore()
    async with ListingScreen(source, settings, store=store) as screen:
        screen.coordinator.set_search_text("stickers")
        await screen.coordinator.wait_idle()
"""

import structlog

from printshop_catalog.application.catalog_source import CatalogSource
from printshop_catalog.application.coordinator import QueryCoordinator
from printshop_catalog.config import Settings, get_settings
from printshop_catalog.domain.exceptions import FetchError
from printshop_catalog.domain.filters import FilterState

logger = structlog.get_logger()


class FilterStateStore:
    """Holds the listing filters between two mounts of the screen."""

    def __init__(self) -> None:
        self._saved: FilterState | None = None

    def save(self, state: FilterState) -> None:
        self._saved = state

    def load(self) -> FilterState | None:
        return self._saved

    def clear(self) -> None:
        self._saved = None


class ListingScreen:
    """Mount/unmount lifecycle around a QueryCoordinator."""

    def __init__(
        self,
        source: CatalogSource,
        settings: Settings | None = None,
        store: FilterStateStore | None = None,
    ) -> None:
        """Initialize screen.

        Args:
            source: Catalog source for taxonomy and listing pages.
            settings: Settings providing ``page_size`` and ``persist_filters``.
            store: Store used when ``persist_filters`` is enabled.
        """
        self.settings = settings or get_settings()
        self.source = source
        self.store = store or FilterStateStore()
        self.coordinator: QueryCoordinator | None = None
        self.taxonomy_error: FetchError | None = None

    async def __aenter__(self) -> "ListingScreen":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.unmount()

    @property
    def persist_filters(self) -> bool:
        return self.settings.persist_filters

    async def mount(self) -> QueryCoordinator:
        """Create the coordinator, issue the first fetch and load tags.

        The listing fetch goes out before the taxonomy request, so a slow
        or failing tag endpoint never delays results. Once the taxonomy
        arrives, selections are rebound and a new fetch is issued only if
        the query changed. A taxonomy failure drops restored sub-tags and
        leaves tag filters disabled until ``retry_taxonomy`` succeeds.

        Returns:
            The screen's coordinator.
        """
        initial = self.store.load() if self.persist_filters else None
        self.coordinator = QueryCoordinator(
            self.source,
            page_size=self.settings.page_size,
            state=initial or FilterState(),
        )
        logger.info(
            "Listing screen mounted",
            restored=initial is not None,
            page_size=self.settings.page_size,
        )

        self.coordinator.on_filter_state_changed(self.coordinator.state)
        await self._load_taxonomy()
        return self.coordinator

    async def retry_taxonomy(self) -> bool:
        """Re-attempt a failed taxonomy load.

        Returns:
            True if tag filters are available afterwards.
        """
        return await self._load_taxonomy()

    async def _load_taxonomy(self) -> bool:
        try:
            taxonomy = await self.source.load_taxonomy()
        except FetchError as e:
            logger.warning(
                "Tag taxonomy unavailable, tag filters disabled",
                error=e.message,
                status_code=e.status_code,
            )
            self.taxonomy_error = e
            self.coordinator.adopt_taxonomy(None)
            return False

        self.taxonomy_error = None
        self.coordinator.adopt_taxonomy(taxonomy)
        return True

    async def unmount(self) -> None:
        """Cancel outstanding work and keep or drop the filters."""
        if self.coordinator is None:
            return
        if self.persist_filters:
            self.store.save(self.coordinator.state)
        else:
            self.store.clear()
        await self.coordinator.aclose()
        logger.info("Listing screen unmounted", persisted=self.persist_filters)
        self.coordinator = None
