"""Filter state for the print shop listing.

FilterState is immutable; every operation returns the next state. Any
change to which result set is described (search text, tag selection,
sort) goes back to page 1. Only ``set_page`` may move to another page.
"""

import re
from dataclasses import dataclass, field, replace
from enum import Enum

from printshop_catalog.domain.exceptions import InvalidPageError, InvalidSelectionError
from printshop_catalog.domain.taxonomy import Tag, TagTaxonomy

_WHITESPACE = re.compile(r"\s+")


class SortBy(str, Enum):
    """Listing sort fields (wire values)."""

    NAME = "name"
    RATING = "rating"
    CREATED_AT = "createdAt"
    VIEW_COUNT = "viewCount"


class SortOrder(str, Enum):
    """Listing sort directions (wire values)."""

    ASC = "ASC"
    DESC = "DESC"


def normalize_search_text(text: str) -> str:
    """Trim and collapse whitespace runs to single spaces."""
    return _WHITESPACE.sub(" ", text).strip()


@dataclass(frozen=True)
class FilterState:
    """Composable listing query as edited by the user.

    Attributes:
        search_text: Normalized free-text search.
        selected_top_level_tag: Selected category (None until the taxonomy loads).
        selected_tags: Selected children of ``selected_top_level_tag``.
        sort_by: Sort field.
        sort_order: Sort direction.
        current_page: Page number (1-indexed).
    """

    search_text: str = ""
    selected_top_level_tag: Tag | None = None
    selected_tags: frozenset[Tag] = field(default_factory=frozenset)
    sort_by: SortBy = SortBy.NAME
    sort_order: SortOrder = SortOrder.ASC
    current_page: int = 1

    @classmethod
    def initial(cls, top_level_tag: Tag | None = None) -> "FilterState":
        """Create the first-load state.

        Args:
            top_level_tag: First top-level tag of the loaded taxonomy.

        Returns:
            Default filter state.
        """
        return cls(selected_top_level_tag=top_level_tag)

    @property
    def selected_tag_ids(self) -> tuple[int, ...]:
        """Get selected tag IDs in ascending order."""
        return tuple(sorted(tag.id for tag in self.selected_tags))

    def set_search_text(self, text: str) -> "FilterState":
        """Replace the search text and return to page 1."""
        return replace(self, search_text=normalize_search_text(text), current_page=1)

    def set_top_level_tag(self, tag: Tag) -> "FilterState":
        """Switch category, dropping sub-tag selections.

        Args:
            tag: Top-level tag to select.

        Returns:
            Next state with no sub-tags selected, on page 1.

        Raises:
            InvalidSelectionError: If ``tag`` is not a top-level tag.
        """
        if not tag.is_top_level:
            raise InvalidSelectionError(
                tag.id,
                f"tag has parent {tag.parent_id} and cannot be a top-level selection",
                self._top_level_id,
            )
        return replace(
            self,
            selected_top_level_tag=tag,
            selected_tags=frozenset(),
            current_page=1,
        )

    def toggle_tag(self, tag: Tag) -> "FilterState":
        """Add or remove a sub-tag of the selected category.

        Args:
            tag: Child tag to toggle.

        Returns:
            Next state on page 1.

        Raises:
            InvalidSelectionError: If ``tag`` does not belong to the selected
                top-level tag.
        """
        if self.selected_top_level_tag is None:
            raise InvalidSelectionError(tag.id, "no top-level tag is selected")
        if tag.parent_id != self.selected_top_level_tag.id:
            raise InvalidSelectionError(
                tag.id,
                f"tag belongs to {tag.parent_id}, not to the selected top-level tag",
                self._top_level_id,
            )
        return replace(
            self,
            selected_tags=self.selected_tags ^ {tag},
            current_page=1,
        )

    def clear_tags(self) -> "FilterState":
        """Drop all sub-tag selections and return to page 1."""
        return replace(self, selected_tags=frozenset(), current_page=1)

    def set_sort(
        self,
        sort_by: SortBy | str,
        sort_order: SortOrder | str,
    ) -> "FilterState":
        """Change the ordering and return to page 1.

        Args:
            sort_by: Sort field (enum or wire value).
            sort_order: Sort direction (enum or wire value).

        Returns:
            Next state on page 1.
        """
        return replace(
            self,
            sort_by=SortBy(sort_by),
            sort_order=SortOrder(sort_order),
            current_page=1,
        )

    def set_page(self, page: int) -> "FilterState":
        """Move to another page without touching anything else.

        Raises:
            InvalidPageError: If ``page`` is below 1.
        """
        if page < 1:
            raise InvalidPageError(page)
        return replace(self, current_page=page)

    def reset(self, default_top_level_tag: Tag | None = None) -> "FilterState":
        """Return to the first-load state for the given default category."""
        return FilterState.initial(default_top_level_tag)

    def rebind(self, taxonomy: TagTaxonomy) -> "FilterState":
        """Resolve selections against a freshly loaded taxonomy.

        An unknown or missing category falls back to the taxonomy's first
        top-level tag. Sub-tags that are no longer children of the category
        are dropped, and dropping any of them returns to page 1.

        Args:
            taxonomy: Newly loaded taxonomy.

        Returns:
            Next state whose selections all exist in ``taxonomy``.
        """
        top = self.selected_top_level_tag
        top = taxonomy.get(top.id) if top else None
        if top is None or not top.is_top_level:
            top = taxonomy.first_top_level

        children = {tag.id: tag for tag in taxonomy.children_of(top)} if top else {}
        tags = frozenset(children[t.id] for t in self.selected_tags if t.id in children)
        kept_all = len(tags) == len(self.selected_tags)
        return replace(
            self,
            selected_top_level_tag=top,
            selected_tags=tags,
            current_page=self.current_page if kept_all else 1,
        )

    @property
    def _top_level_id(self) -> int | None:
        tag = self.selected_top_level_tag
        return tag.id if tag else None
