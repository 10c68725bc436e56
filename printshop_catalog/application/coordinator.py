"""Query coordinator for the print shop listing.

Owns the listing's FilterState, derives the canonical CatalogQuery from it
and runs at most one authoritative fetch at a time. Every issued fetch is
tagged with a generation token; a response whose token is not the latest
is dropped, whatever order responses arrive in. Cancelling a superseded
fetch only saves bandwidth, the token check is what keeps results in
issuance order.

Example usage:
    coordinator = QueryCoordinator(source, page_size=10)
    coordinator.subscribe(render)
    coordinator.adopt_taxonomy(taxonomy)
    coordinator.set_search_text("  business   cards ")
    await coordinator.wait_idle()
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from printshop_catalog.application.catalog_source import CatalogSource
from printshop_catalog.domain.exceptions import (
    FetchError,
    InvalidSelectionError,
    StaleResponseDiscarded,
)
from printshop_catalog.domain.filters import FilterState, SortBy, SortOrder
from printshop_catalog.domain.query import CatalogPage, CatalogQuery
from printshop_catalog.domain.taxonomy import Tag, TagTaxonomy

logger = structlog.get_logger()


@dataclass(frozen=True)
class CatalogSnapshot:
    """Read-only view handed to the presentation layer.

    Attributes:
        state: Current filter state.
        page: Last published result page, if any.
        error: Last fetch error, cleared by the next successful fetch.
        loading: Whether the latest issued fetch is still outstanding.
        taxonomy: Loaded taxonomy (None while tag filters are unavailable).
        total_pages: Page count implied by ``page``.
    """

    state: FilterState
    page: CatalogPage | None
    error: FetchError | None
    loading: bool
    taxonomy: TagTaxonomy | None
    total_pages: int

    @property
    def filters_enabled(self) -> bool:
        """Check whether tag filters can be used."""
        return self.taxonomy is not None


Listener = Callable[[CatalogSnapshot], None]


class QueryCoordinator:
    """Keeps the filter state, the issued query and the published page in step."""

    def __init__(
        self,
        source: CatalogSource,
        page_size: int,
        state: FilterState | None = None,
        taxonomy: TagTaxonomy | None = None,
    ) -> None:
        """Initialize coordinator.

        Args:
            source: Catalog source used to fetch listing pages.
            page_size: Fixed listing page size.
            state: Starting filter state (defaults to a fresh state).
            taxonomy: Already loaded taxonomy, if any.
        """
        self._source = source
        self.page_size = page_size
        self._state = state or FilterState()
        self._taxonomy = taxonomy
        self._page: CatalogPage | None = None
        self._error: FetchError | None = None
        self._listeners: list[Listener] = []

        self._generation = 0
        self._query: CatalogQuery | None = None
        self._failed = False
        self._in_flight = False
        self._task: asyncio.Task[None] | None = None

    # =========================================================================
    # Read surface
    # =========================================================================

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def page(self) -> CatalogPage | None:
        return self._page

    @property
    def error(self) -> FetchError | None:
        return self._error

    @property
    def taxonomy(self) -> TagTaxonomy | None:
        return self._taxonomy

    @property
    def generation(self) -> int:
        """Token of the most recently issued fetch."""
        return self._generation

    @property
    def query(self) -> CatalogQuery | None:
        """Query of the most recently issued fetch."""
        return self._query

    def snapshot(self) -> CatalogSnapshot:
        """Capture the current state for rendering."""
        return CatalogSnapshot(
            state=self._state,
            page=self._page,
            error=self._error,
            loading=self._in_flight,
            taxonomy=self._taxonomy,
            total_pages=self._page.total_pages(self.page_size) if self._page else 0,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with a snapshot after every change.

        Args:
            listener: Callback receiving a CatalogSnapshot.

        Returns:
            Function that unregisters the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    # =========================================================================
    # Taxonomy
    # =========================================================================

    def adopt_taxonomy(self, taxonomy: TagTaxonomy | None) -> None:
        """Install a freshly loaded taxonomy.

        Selections are re-resolved against it and the first top-level tag is
        selected when none is. Passing None disables tag filters and drops
        any sub-tag selection, so the listing is narrowed by search only.
        """
        self._taxonomy = taxonomy
        if taxonomy is None:
            if self._state.selected_tags:
                self._apply(self._state.clear_tags())
            else:
                self._publish()
            return
        self._apply(self._state.rebind(taxonomy))

    def _require_tag(self, tag: Tag) -> None:
        if self._taxonomy is None:
            raise InvalidSelectionError(tag.id, "tag filters are unavailable")
        if self._taxonomy.get(tag.id) != tag:
            raise InvalidSelectionError(tag.id, "tag is not part of the loaded taxonomy")

    # =========================================================================
    # Mutation surface
    # =========================================================================

    def set_search_text(self, text: str) -> asyncio.Task[None] | None:
        return self._apply(self._state.set_search_text(text))

    def set_top_level_tag(self, tag: Tag) -> asyncio.Task[None] | None:
        self._require_tag(tag)
        return self._apply(self._state.set_top_level_tag(tag))

    def toggle_tag(self, tag: Tag) -> asyncio.Task[None] | None:
        self._require_tag(tag)
        return self._apply(self._state.toggle_tag(tag))

    def clear_tags(self) -> asyncio.Task[None] | None:
        return self._apply(self._state.clear_tags())

    def set_sort(
        self,
        sort_by: SortBy | str,
        sort_order: SortOrder | str,
    ) -> asyncio.Task[None] | None:
        return self._apply(self._state.set_sort(sort_by, sort_order))

    def set_page(self, page: int) -> asyncio.Task[None] | None:
        return self._apply(self._state.set_page(page))

    def reset(self) -> asyncio.Task[None] | None:
        default = self._taxonomy.first_top_level if self._taxonomy else None
        return self._apply(self._state.reset(default))

    def retry(self) -> asyncio.Task[None] | None:
        """Re-issue the current query after a failed fetch."""
        return self.on_filter_state_changed(self._state)

    def _apply(self, state: FilterState) -> asyncio.Task[None] | None:
        task = self.on_filter_state_changed(state)
        self._publish()
        return task

    # =========================================================================
    # Fetch orchestration
    # =========================================================================

    def on_filter_state_changed(self, state: FilterState) -> asyncio.Task[None] | None:
        """Issue a fetch for ``state`` unless its query is already covered.

        A query equal to the one in flight, or to the last one fetched
        successfully, issues nothing. Anything else supersedes the previous
        fetch.

        Args:
            state: New filter state.

        Returns:
            The issued fetch task, or None when nothing was issued.
        """
        self._state = state
        query = CatalogQuery.from_state(state, self.page_size)
        if query == self._query and not self._failed:
            logger.debug("Query unchanged, no fetch issued", generation=self._generation)
            return None

        previous = self._task
        if (
            previous is not None
            and not previous.done()
            and previous is not asyncio.current_task()
        ):
            previous.cancel()

        self._generation += 1
        self._query = query
        self._failed = False
        self._in_flight = True
        logger.debug(
            "Issuing listing fetch",
            generation=self._generation,
            page=query.page,
            tag_ids=list(query.tag_ids),
            sort_by=query.sort_by.value,
            sort_order=query.sort_order.value,
        )
        self._task = asyncio.create_task(self._fetch(self._generation, query))
        return self._task

    async def _fetch(self, generation: int, query: CatalogQuery) -> None:
        try:
            page = await self._source.fetch_page(query)
        except FetchError as e:
            self._settle(generation, error=e)
        except Exception as e:
            logger.exception("Unexpected listing fetch error", generation=generation)
            self._settle(
                generation,
                error=FetchError(
                    f"Could not load print shops: {e}",
                    error_code="INTERNAL_ERROR",
                    cause=e,
                ),
            )
        else:
            self._settle(generation, page=page)

    def _check_current(self, generation: int) -> None:
        if generation != self._generation:
            raise StaleResponseDiscarded(generation, self._generation)

    def _settle(
        self,
        generation: int,
        page: CatalogPage | None = None,
        error: FetchError | None = None,
    ) -> None:
        try:
            self._check_current(generation)
        except StaleResponseDiscarded as e:
            logger.debug("Stale response discarded", **e.details)
            return

        self._in_flight = False
        if error is not None:
            logger.warning(
                "Listing fetch failed",
                generation=generation,
                status_code=error.status_code,
                error=error.message,
            )
            self._failed = True
            self._error = error
            self._publish()
            return

        self._page = page
        self._error = None
        self._publish()
        self._clamp_page(page)

    def _clamp_page(self, page: CatalogPage) -> None:
        last_page = max(1, page.total_pages(self.page_size))
        if self._state.current_page > last_page:
            logger.info(
                "Current page beyond result set, clamping",
                current_page=self._state.current_page,
                last_page=last_page,
                total_count=page.total_count,
            )
            self.set_page(last_page)

    async def wait_idle(self) -> None:
        """Wait until the latest fetch, and any follow-up it issued, is done."""
        while self._task is not None:
            task = self._task
            await asyncio.wait({task})
            if task is self._task:
                if not task.cancelled():
                    task.result()
                return

    async def aclose(self) -> None:
        """Cancel in-flight work; late responses are discarded."""
        task, self._task = self._task, None
        self._generation += 1
        self._query = None
        self._in_flight = False
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
