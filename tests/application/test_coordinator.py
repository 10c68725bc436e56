"""Tests for the query coordinator."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from printshop_catalog.application.coordinator import CatalogSnapshot, QueryCoordinator
from printshop_catalog.domain.exceptions import FetchError, InvalidSelectionError
from printshop_catalog.domain.filters import FilterState, SortBy, SortOrder
from printshop_catalog.domain.taxonomy import Tag, TagTaxonomy
from tests.conftest import A1, BUSINESS_CARDS, GLOSSY, MATTE, POSTERS, ControlledSource, make_page


@pytest.fixture
def coordinator(mock_source: MagicMock, taxonomy: TagTaxonomy) -> QueryCoordinator:
    """Coordinator on the first-load state with the taxonomy installed."""
    return QueryCoordinator(
        mock_source,
        page_size=10,
        state=FilterState.initial(BUSINESS_CARDS),
        taxonomy=taxonomy,
    )


class TestFetching:
    """Tests for issuing fetches."""

    @pytest.mark.asyncio
    async def test_first_fetch_publishes_page(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """A state change issues a fetch and publishes its page."""
        task = coordinator.on_filter_state_changed(coordinator.state)
        assert task is not None
        assert coordinator.snapshot().loading is True

        await coordinator.wait_idle()

        snapshot = coordinator.snapshot()
        assert snapshot.loading is False
        assert snapshot.page.total_count == 3
        assert snapshot.total_pages == 1
        assert snapshot.error is None
        mock_source.fetch_page.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_same_query_not_refetched(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """An unchanged query issues nothing, in flight or completed."""
        coordinator.on_filter_state_changed(coordinator.state)
        assert coordinator.on_filter_state_changed(coordinator.state) is None
        await coordinator.wait_idle()
        assert coordinator.on_filter_state_changed(coordinator.state) is None
        assert mock_source.fetch_page.await_count == 1

    @pytest.mark.asyncio
    async def test_reordered_selection_not_refetched(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """Selecting the same tags in another order maps to the same query."""
        coordinator.toggle_tag(MATTE)
        coordinator.toggle_tag(GLOSSY)
        await coordinator.wait_idle()
        calls = mock_source.fetch_page.await_count

        base = FilterState.initial(BUSINESS_CARDS)
        assert coordinator.on_filter_state_changed(base.toggle_tag(GLOSSY).toggle_tag(MATTE)) is None
        assert mock_source.fetch_page.await_count == calls

    @pytest.mark.asyncio
    async def test_category_switch_without_tags_not_refetched(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """The category alone does not narrow the listing."""
        coordinator.on_filter_state_changed(coordinator.state)
        await coordinator.wait_idle()

        assert coordinator.set_top_level_tag(POSTERS) is None
        assert coordinator.state.selected_top_level_tag == POSTERS
        assert mock_source.fetch_page.await_count == 1

    @pytest.mark.asyncio
    async def test_query_sent_to_source(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """The canonical query reaches the source."""
        coordinator.set_sort(SortBy.VIEW_COUNT, SortOrder.DESC)
        await coordinator.wait_idle()

        query = mock_source.fetch_page.await_args.args[0]
        assert query.sort_by is SortBy.VIEW_COUNT
        assert query.sort_order is SortOrder.DESC
        assert query.page_size == 10

    @pytest.mark.asyncio
    async def test_superseded_fetch_cancelled(
        self, taxonomy: TagTaxonomy, mock_source: MagicMock
    ) -> None:
        """Issuing a new query cancels the outstanding one."""
        started = asyncio.Event()

        async def slow_fetch(query):
            if query.search_text == "":
                started.set()
                await asyncio.Event().wait()
            return make_page(1)

        mock_source.fetch_page = AsyncMock(side_effect=slow_fetch)
        coordinator = QueryCoordinator(mock_source, 10, FilterState.initial(BUSINESS_CARDS), taxonomy)

        first = coordinator.on_filter_state_changed(coordinator.state)
        await started.wait()
        coordinator.set_search_text("foil")
        await coordinator.wait_idle()

        assert first.cancelled()
        assert coordinator.page.total_count == 1


class TestPageReset:
    """Tests for page reset through the coordinator."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "change",
        [
            lambda c: c.set_search_text("foil"),
            lambda c: c.toggle_tag(MATTE),
            lambda c: c.set_top_level_tag(POSTERS),
            lambda c: c.set_sort(SortBy.RATING, SortOrder.ASC),
        ],
    )
    async def test_filter_changes_reset_page(
        self, coordinator: QueryCoordinator, mock_source: MagicMock, change
    ) -> None:
        """Changing what is described goes back to page 1."""
        mock_source.fetch_page.return_value = make_page(100)
        coordinator.set_page(4)
        change(coordinator)
        await coordinator.wait_idle()
        assert coordinator.state.current_page == 1

    @pytest.mark.asyncio
    async def test_reset_restores_defaults(self, coordinator: QueryCoordinator) -> None:
        """Reset returns to the first-load state."""
        coordinator.set_top_level_tag(POSTERS)
        coordinator.toggle_tag(A1)
        coordinator.set_search_text("foil")
        coordinator.reset()
        await coordinator.wait_idle()
        assert coordinator.state == FilterState.initial(BUSINESS_CARDS)


class TestOrdering:
    """Tests for issuance-order application of responses."""

    @pytest.mark.asyncio
    async def test_late_stale_response_dropped(
        self, controlled_source: ControlledSource, taxonomy: TagTaxonomy
    ) -> None:
        """A superseded response arriving last never overwrites the page."""
        coordinator = QueryCoordinator(
            controlled_source, 10, FilterState.initial(BUSINESS_CARDS), taxonomy
        )
        first = coordinator.on_filter_state_changed(coordinator.state)
        q1 = coordinator.query
        await asyncio.sleep(0)
        second = coordinator.set_search_text("foil")
        q2 = coordinator.query
        await asyncio.sleep(0)

        controlled_source.resolve(q2, make_page(1, ["second"]))
        await asyncio.wait({second})
        assert coordinator.page.items[0].name == "second"

        controlled_source.resolve(q1, make_page(30, ["first"]))
        await asyncio.wait({first})

        assert not first.cancelled()
        assert coordinator.page.items[0].name == "second"
        assert coordinator.page.total_count == 1
        assert coordinator.generation == 2

    @pytest.mark.asyncio
    async def test_early_stale_response_dropped(
        self, controlled_source: ControlledSource, taxonomy: TagTaxonomy
    ) -> None:
        """A superseded response arriving first is not published either."""
        coordinator = QueryCoordinator(
            controlled_source, 10, FilterState.initial(BUSINESS_CARDS), taxonomy
        )
        first = coordinator.on_filter_state_changed(coordinator.state)
        q1 = coordinator.query
        await asyncio.sleep(0)
        coordinator.set_search_text("foil")
        q2 = coordinator.query
        await asyncio.sleep(0)

        controlled_source.resolve(q1, make_page(30, ["first"]))
        await asyncio.wait({first})
        assert coordinator.page is None
        assert coordinator.snapshot().loading is True

        controlled_source.resolve(q2, make_page(1, ["second"]))
        await coordinator.wait_idle()
        assert coordinator.page.items[0].name == "second"

    @pytest.mark.asyncio
    async def test_stale_failure_dropped(
        self, controlled_source: ControlledSource, taxonomy: TagTaxonomy
    ) -> None:
        """A superseded failure does not surface an error."""
        coordinator = QueryCoordinator(
            controlled_source, 10, FilterState.initial(BUSINESS_CARDS), taxonomy
        )
        first = coordinator.on_filter_state_changed(coordinator.state)
        q1 = coordinator.query
        await asyncio.sleep(0)
        coordinator.set_search_text("foil")
        q2 = coordinator.query
        await asyncio.sleep(0)

        controlled_source.resolve(q2, make_page(1))
        controlled_source.fail(q1, FetchError("gone", status_code=503))
        await asyncio.wait({first})
        await coordinator.wait_idle()

        assert coordinator.error is None
        assert coordinator.page.total_count == 1


class TestClamp:
    """Tests for clamping the page to the result set."""

    @pytest.mark.asyncio
    async def test_page_beyond_results_clamped(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """Page 5 of a 12-result set becomes page 2."""
        mock_source.fetch_page.return_value = make_page(12)
        coordinator.set_page(5)
        await coordinator.wait_idle()

        assert coordinator.state.current_page == 2
        assert mock_source.fetch_page.await_count == 2
        assert mock_source.fetch_page.await_args.args[0].page == 2

    @pytest.mark.asyncio
    async def test_empty_results_clamp_to_first_page(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """An empty result set leaves page 1."""
        mock_source.fetch_page.return_value = make_page(0, [])
        coordinator.set_page(3)
        await coordinator.wait_idle()
        assert coordinator.state.current_page == 1

    @pytest.mark.asyncio
    async def test_page_within_results_kept(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """No correction while the page exists."""
        mock_source.fetch_page.return_value = make_page(25)
        coordinator.set_page(3)
        await coordinator.wait_idle()
        assert coordinator.state.current_page == 3
        assert mock_source.fetch_page.await_count == 1


class TestFailures:
    """Tests for fetch failures and retry."""

    @pytest.mark.asyncio
    async def test_failure_published_state_unchanged(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """A failed fetch publishes the error and keeps the filters."""
        mock_source.fetch_page.side_effect = FetchError("down", status_code=503)
        coordinator.set_page(2)
        state = coordinator.state
        await coordinator.wait_idle()

        assert coordinator.error.status_code == 503
        assert coordinator.state == state
        assert coordinator.snapshot().loading is False

    @pytest.mark.asyncio
    async def test_retry_issues_new_attempt(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """Retrying the same state fetches again and clears the error."""
        mock_source.fetch_page.side_effect = [FetchError("down"), make_page(4)]
        coordinator.on_filter_state_changed(coordinator.state)
        await coordinator.wait_idle()
        assert coordinator.error is not None

        assert coordinator.retry() is not None
        await coordinator.wait_idle()

        assert coordinator.error is None
        assert coordinator.page.total_count == 4
        assert mock_source.fetch_page.await_count == 2

    @pytest.mark.asyncio
    async def test_retry_after_success_is_noop(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """Nothing to retry once the current query succeeded."""
        coordinator.on_filter_state_changed(coordinator.state)
        await coordinator.wait_idle()
        assert coordinator.retry() is None

    @pytest.mark.asyncio
    async def test_editing_filters_after_failure(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """Filters stay editable while an error is shown."""
        mock_source.fetch_page.side_effect = [FetchError("down"), make_page(2)]
        coordinator.on_filter_state_changed(coordinator.state)
        await coordinator.wait_idle()

        coordinator.toggle_tag(GLOSSY)
        await coordinator.wait_idle()
        assert coordinator.error is None
        assert coordinator.state.selected_tags == {GLOSSY}

    @pytest.mark.asyncio
    async def test_unexpected_exception_settles_as_fetch_error(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """A source bug still ends loading and leaves the query retryable."""
        mock_source.fetch_page.side_effect = [RuntimeError("boom"), make_page(3)]
        coordinator.on_filter_state_changed(coordinator.state)
        await coordinator.wait_idle()

        snapshot = coordinator.snapshot()
        assert snapshot.loading is False
        assert snapshot.error.error_code == "INTERNAL_ERROR"
        assert isinstance(snapshot.error.cause, RuntimeError)

        assert coordinator.retry() is not None
        await coordinator.wait_idle()
        assert coordinator.error is None
        assert coordinator.page.total_count == 3


class TestSelectionGuards:
    """Tests for tag validation against the taxonomy."""

    @pytest.mark.asyncio
    async def test_filters_disabled_without_taxonomy(self, mock_source: MagicMock) -> None:
        """Without a taxonomy only search, sort and paging work."""
        coordinator = QueryCoordinator(mock_source, page_size=10)
        assert coordinator.snapshot().filters_enabled is False

        with pytest.raises(InvalidSelectionError):
            coordinator.set_top_level_tag(BUSINESS_CARDS)
        with pytest.raises(InvalidSelectionError):
            coordinator.toggle_tag(MATTE)

        coordinator.set_search_text("foil")
        await coordinator.wait_idle()
        assert coordinator.page is not None

    @pytest.mark.asyncio
    async def test_unknown_tag_rejected(self, coordinator: QueryCoordinator) -> None:
        """Tags outside the loaded taxonomy are rejected."""
        with pytest.raises(InvalidSelectionError):
            coordinator.toggle_tag(Tag(id=99, name="Foil", parent_id=1))

    @pytest.mark.asyncio
    async def test_foreign_tag_leaves_state(
        self, coordinator: QueryCoordinator, mock_source: MagicMock
    ) -> None:
        """A rejected toggle changes nothing and fetches nothing."""
        coordinator.set_top_level_tag(POSTERS)
        state = coordinator.state
        with pytest.raises(InvalidSelectionError):
            coordinator.toggle_tag(MATTE)
        assert coordinator.state == state

    @pytest.mark.asyncio
    async def test_adopt_taxonomy_selects_first_category(
        self, mock_source: MagicMock, taxonomy: TagTaxonomy
    ) -> None:
        """Installing a taxonomy picks the default category."""
        coordinator = QueryCoordinator(mock_source, page_size=10)
        coordinator.adopt_taxonomy(taxonomy)
        await coordinator.wait_idle()
        assert coordinator.state.selected_top_level_tag == BUSINESS_CARDS

    @pytest.mark.asyncio
    async def test_losing_taxonomy_drops_sub_tags(
        self, mock_source: MagicMock, taxonomy: TagTaxonomy
    ) -> None:
        """Without a taxonomy no tag ids reach the request."""
        state = FilterState.initial(POSTERS).toggle_tag(A1)
        coordinator = QueryCoordinator(mock_source, page_size=10, state=state)
        coordinator.on_filter_state_changed(state)
        coordinator.adopt_taxonomy(None)
        await coordinator.wait_idle()

        assert coordinator.state.selected_tags == frozenset()
        assert coordinator.query.tag_ids == ()
        assert mock_source.fetch_page.await_args.args[0].tag_ids == ()


class TestSubscribers:
    """Tests for snapshot publication."""

    @pytest.mark.asyncio
    async def test_listener_receives_snapshots(self, coordinator: QueryCoordinator) -> None:
        """Listeners see state changes and results until unsubscribed."""
        seen: list[CatalogSnapshot] = []
        unsubscribe = coordinator.subscribe(seen.append)

        coordinator.set_search_text("foil")
        await coordinator.wait_idle()

        assert seen[0].state.search_text == "foil"
        assert seen[0].loading is True
        assert seen[-1].page is not None
        assert seen[-1].loading is False

        unsubscribe()
        count = len(seen)
        coordinator.set_search_text("paper")
        await coordinator.wait_idle()
        assert len(seen) == count


class TestClose:
    """Tests for aclose."""

    @pytest.mark.asyncio
    async def test_aclose_cancels_in_flight(
        self, taxonomy: TagTaxonomy, mock_source: MagicMock
    ) -> None:
        """Closing cancels the outstanding fetch."""

        async def hang(query):
            await asyncio.Event().wait()

        mock_source.fetch_page = AsyncMock(side_effect=hang)
        coordinator = QueryCoordinator(mock_source, 10, FilterState.initial(BUSINESS_CARDS), taxonomy)
        task = coordinator.on_filter_state_changed(coordinator.state)
        await asyncio.sleep(0)

        await coordinator.aclose()

        assert task.cancelled()
        assert coordinator.snapshot().loading is False
