"""Transport adapters for the print shop REST API."""

from printshop_catalog.infrastructure.api_client import (
    APIError,
    APIResponse,
    PrintShopAPIClient,
)

__all__ = ["APIError", "APIResponse", "PrintShopAPIClient"]
