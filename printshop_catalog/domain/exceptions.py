"""Catalog exceptions.

Errors raised by the tag taxonomy, the filter state transitions and the
query coordinator. Contract violations (bad selections, bad pages) fail
fast and leave the filter state untouched; fetch failures are retryable.
"""

from typing import Any


class CatalogError(Exception):
    """Base class for all catalog exceptions.

    Lets the presentation layer catch catalog-specific errors in one place.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize catalog error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Selection Errors
# ============================================================================


class InvalidSelectionError(CatalogError):
    """Raised when a tag cannot be selected in the current filter state.

    The presentation layer offered an impossible action: a sub-tag that does
    not belong to the selected top-level tag, or a top-level selection with
    a tag that has a parent.
    """

    def __init__(
        self,
        tag_id: int | None,
        reason: str,
        selected_top_level_id: int | None = None,
    ) -> None:
        """Initialize invalid selection error.

        Args:
            tag_id: ID of the rejected tag.
            reason: Explanation of why the selection is invalid.
            selected_top_level_id: ID of the currently selected top-level tag.
        """
        super().__init__(
            f"Cannot select tag {tag_id}: {reason}",
            details={
                "tag_id": tag_id,
                "reason": reason,
                "selected_top_level_id": selected_top_level_id,
            },
        )


class InvalidPageError(CatalogError):
    """Raised when a page number below 1 is requested."""

    def __init__(self, page: int) -> None:
        """Initialize invalid page error.

        Args:
            page: The rejected page number.
        """
        super().__init__(
            f"Invalid page {page}: pages start at 1",
            details={"page": page},
        )


class InvalidTaxonomyError(CatalogError):
    """Raised when a tag payload does not form a two-level taxonomy."""

    def __init__(
        self,
        tag_id: int,
        parent_id: int,
        reason: str = "references unknown top-level tag",
    ) -> None:
        """Initialize invalid taxonomy error.

        Args:
            tag_id: ID of the offending child tag.
            parent_id: Parent ID the child hangs off.
            reason: What is wrong with the relation.
        """
        super().__init__(
            f"Tag {tag_id} {reason} {parent_id}",
            details={"tag_id": tag_id, "parent_id": parent_id, "reason": reason},
        )


# ============================================================================
# Fetch Errors
# ============================================================================


class FetchError(CatalogError):
    """Raised when the backend could not serve a taxonomy or listing request.

    Always surfaced to the user as a retryable state.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize fetch error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status reported by the transport, if any.
            error_code: Machine-readable error code, if any.
            cause: Underlying exception, if any.
        """
        super().__init__(
            message,
            details={"status_code": status_code, "error_code": error_code},
        )
        self.status_code = status_code
        self.error_code = error_code
        self.cause = cause


class StaleResponseDiscarded(CatalogError):
    """Signals that a response for a superseded query was dropped.

    Never shown to the user.
    """

    def __init__(self, generation: int, latest_generation: int) -> None:
        """Initialize stale response signal.

        Args:
            generation: Generation token the response was issued with.
            latest_generation: Most recently issued generation token.
        """
        super().__init__(
            f"Discarded response for generation {generation} "
            f"(latest is {latest_generation})",
            details={"generation": generation, "latest_generation": latest_generation},
        )
        self.generation = generation
        self.latest_generation = latest_generation
