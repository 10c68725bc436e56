"""Catalog source.

Turns API client responses into domain objects. Transport failures come
back from the client as ``APIResponse`` errors and leave here as
``FetchError``.
"""

from typing import Any

import structlog

from printshop_catalog.domain.exceptions import FetchError, InvalidTaxonomyError
from printshop_catalog.domain.query import CatalogPage, CatalogQuery
from printshop_catalog.domain.taxonomy import TagTaxonomy
from printshop_catalog.infrastructure.api_client import APIResponse, PrintShopAPIClient

logger = structlog.get_logger()


def to_fetch_error(response: APIResponse, what: str) -> FetchError:
    """Build a FetchError from a failed API response."""
    if response.error is None:
        return FetchError(f"Could not load {what}: empty error")
    return FetchError(
        f"Could not load {what}: {response.error.message}",
        status_code=response.error.status_code,
        error_code=response.error.error_code,
    )


class CatalogSource:
    """Reads the tag taxonomy and listing pages from the REST API.

    Example usage:
        source = CatalogSource(PrintShopAPIClient("http://localhost:8080"))
        taxonomy = await source.load_taxonomy()
        page = await source.fetch_page(CatalogQuery(page=1, page_size=10))
    """

    def __init__(self, client: PrintShopAPIClient) -> None:
        """Initialize source with an API client.

        Args:
            client: Print shop API client.
        """
        self.client = client

    async def load_taxonomy(self) -> TagTaxonomy:
        """Fetch the whole tag taxonomy.

        Returns:
            Taxonomy built from ``GET /tag``.

        Raises:
            FetchError: If the request fails or the payload is malformed.
        """
        response = await self.client.list_tags()
        if not response.success:
            raise to_fetch_error(response, "tags")

        try:
            taxonomy = TagTaxonomy.from_payload(response.data or [])
        except InvalidTaxonomyError as e:
            raise FetchError(e.message, error_code="INVALID_TAXONOMY", cause=e) from e
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise FetchError(
                "Could not load tags: malformed payload",
                error_code="INVALID_RESPONSE",
                cause=e,
            ) from e

        logger.info("Tag taxonomy loaded", top_level_count=len(taxonomy))
        return taxonomy

    async def fetch_page(self, query: CatalogQuery) -> CatalogPage:
        """Fetch one listing page.

        Args:
            query: Canonical listing query.

        Returns:
            Page of print shops with the total count.

        Raises:
            FetchError: If the request fails or the payload is malformed.
        """
        response = await self.client.list_print_shops(query.to_params())
        if not response.success:
            raise to_fetch_error(response, "print shops")
        if not isinstance(response.data, dict):
            raise FetchError(
                "Could not load print shops: malformed payload",
                error_code="INVALID_RESPONSE",
            )

        try:
            return CatalogPage.from_payload(response.data)
        except (TypeError, ValueError) as e:
            raise FetchError(
                "Could not load print shops: malformed payload",
                error_code="INVALID_RESPONSE",
                cause=e,
            ) from e

    async def get_print_shop(self, print_shop_id: int) -> dict[str, Any]:
        """Fetch a single print shop detail.

        Args:
            print_shop_id: Print shop ID.

        Returns:
            The ``printShop`` payload.

        Raises:
            FetchError: If the request fails or the print shop is missing.
        """
        response = await self.client.get_print_shop(print_shop_id)
        if not response.success:
            raise to_fetch_error(response, f"print shop {print_shop_id}")

        data = response.data if isinstance(response.data, dict) else {}
        print_shop = data.get("printShop")
        if not isinstance(print_shop, dict):
            raise FetchError(
                f"Print shop {print_shop_id} not found in response",
                error_code="INVALID_RESPONSE",
            )
        return print_shop
