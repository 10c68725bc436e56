"""Canonical listing query and result page.

A CatalogQuery is derived from a FilterState and compared by value, so two
states with the same selection made in a different order map to the same
query.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from printshop_catalog.domain.filters import FilterState, SortBy, SortOrder


@dataclass(frozen=True)
class CatalogQuery:
    """Request sent to the listing endpoint.

    Attributes:
        page: Page number (1-indexed).
        page_size: Items per page.
        search_text: Normalized search text.
        tag_ids: Selected tag IDs in ascending order.
        sort_by: Sort field.
        sort_order: Sort direction.
    """

    page: int
    page_size: int
    search_text: str = ""
    tag_ids: tuple[int, ...] = ()
    sort_by: SortBy = SortBy.NAME
    sort_order: SortOrder = SortOrder.ASC

    @classmethod
    def from_state(cls, state: FilterState, page_size: int) -> "CatalogQuery":
        """Derive the canonical query for a filter state.

        Args:
            state: Current filter state.
            page_size: Configured page size.

        Returns:
            CatalogQuery instance.
        """
        return cls(
            page=state.current_page,
            page_size=page_size,
            search_text=state.search_text,
            tag_ids=state.selected_tag_ids,
            sort_by=state.sort_by,
            sort_order=state.sort_order,
        )

    def to_params(self) -> list[tuple[str, Any]]:
        """Encode as query parameters for ``GET /print-shop``.

        Returns:
            Parameter pairs; ``tagIds[]`` is repeated once per tag.
        """
        params: list[tuple[str, Any]] = [
            ("page", self.page),
            ("size", self.page_size),
            ("searchText", self.search_text),
        ]
        params.extend(("tagIds[]", tag_id) for tag_id in self.tag_ids)
        params.append(("sortBy", self.sort_by.value))
        params.append(("sortOrder", self.sort_order.value))
        return params


class ListingSummary(BaseModel):
    """A print shop as shown in the listing."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    id: int = Field(..., description="Print shop ID")
    name: str = Field(..., description="Print shop name")
    introduction: str | None = Field(default=None, description="Short introduction")
    logo_image: str | None = Field(
        default=None, alias="logoImage", description="Logo image URL"
    )
    address: str | None = Field(default=None, description="Street address")
    tags: list[dict[str, Any]] = Field(default_factory=list, description="Attached tags")


@dataclass(frozen=True)
class CatalogPage:
    """One page of listing results.

    Attributes:
        items: Print shops on this page.
        total_count: Number of print shops matching the query.
    """

    items: tuple[ListingSummary, ...]
    total_count: int

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CatalogPage":
        """Parse a ``GET /print-shop`` response body."""
        return cls(
            items=tuple(
                ListingSummary.model_validate(item)
                for item in payload.get("printShops") or []
            ),
            total_count=max(0, int(payload.get("totalCount") or 0)),
        )

    def total_pages(self, page_size: int) -> int:
        """Calculate total pages."""
        return (self.total_count + page_size - 1) // page_size
