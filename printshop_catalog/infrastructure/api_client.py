"""Print Shop API Client.

Async wrapper around the print shop REST API. Failures never escape as
exceptions: a bad status, an unreachable host or an unreadable body all
come back as an ``APIResponse`` whose ``error`` says what went wrong and
on which path.

Example usage:
    client = PrintShopAPIClient("http://localhost:8080", api_key="secret")
    response = await client.list_print_shops([("page", 1), ("size", 10)])
    if response.success:
        shops = response.data["printShops"]
    await client.close()
"""

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

logger = structlog.get_logger()

Params = dict[str, Any] | list[tuple[str, Any]]


@dataclass
class APIError:
    """Failure reported by the REST API or the transport.

    Attributes:
        error_code: Server error code, or one of TIMEOUT, REQUEST_ERROR,
            INVALID_URL, INVALID_RESPONSE, HTTP_ERROR.
        message: Human-readable description.
        status_code: HTTP status (synthesized for transport failures).
        path: Request path that failed.
        details: Extra context from the error body.
    """

    error_code: str
    message: str
    status_code: int
    path: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def retryable(self) -> bool:
        """Check whether repeating the request may succeed."""
        return self.status_code >= 500 or self.error_code == "TIMEOUT"


@dataclass
class APIResponse:
    """Outcome of one request: ``data`` on success, ``error`` otherwise."""

    success: bool
    data: dict[str, Any] | list[Any] | None = None
    error: APIError | None = None

    @classmethod
    def ok(cls, data: dict[str, Any] | list[Any] | None) -> "APIResponse":
        return cls(success=True, data=data)

    @classmethod
    def failed(
        cls,
        error_code: str,
        message: str,
        status_code: int,
        path: str = "",
        details: dict[str, Any] | None = None,
    ) -> "APIResponse":
        return cls(
            success=False,
            error=APIError(
                error_code=error_code,
                message=message,
                status_code=status_code,
                path=path,
                details=details or {},
            ),
        )


def drop_empty_params(params: Params | None) -> Params | None:
    """Remove None values, keeping repeated keys and their order."""
    if params is None:
        return None
    if isinstance(params, dict):
        return {key: value for key, value in params.items() if value is not None}
    return [(key, value) for key, value in params if value is not None]


def error_body(response: httpx.Response) -> dict[str, Any]:
    """Read an error body, tolerating non-JSON and non-object payloads."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class PrintShopAPIClient:
    """HTTP client for the tag list and the print shop listing.

    The underlying ``httpx.AsyncClient`` is created on first use and
    reused until ``close``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the API client.

        Args:
            base_url: REST API base URL.
            api_key: Optional bearer token.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
            )
        return self._client

    async def close(self) -> None:
        """Release the connection pool; the next request opens a new one."""
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Params | None = None,
    ) -> APIResponse:
        """Send one request and classify the outcome.

        Args:
            method: HTTP method.
            path: Endpoint path relative to ``base_url``.
            params: Query parameters, as a mapping or as ordered pairs for
                repeated keys such as ``tagIds[]``.

        Returns:
            APIResponse carrying the decoded body or the error.
        """
        params = drop_empty_params(params)
        logger.debug("Making API request", method=method, path=path)

        try:
            client = await self._get_client()
            response = await client.request(method=method, url=path, params=params)
            if response.status_code >= 400:
                body = error_body(response)
                logger.warning(
                    "API request rejected", path=path, status_code=response.status_code
                )
                return APIResponse.failed(
                    body.get("error_code", "HTTP_ERROR"),
                    body.get("message", f"HTTP {response.status_code} for {path}"),
                    response.status_code,
                    path=path,
                    details=body.get("details"),
                )
            if response.status_code == 204:
                return APIResponse.ok(None)
            return APIResponse.ok(response.json())

        except httpx.TimeoutException as e:
            logger.error("API request timeout", path=path, error=str(e))
            return APIResponse.failed("TIMEOUT", f"Request timed out: {path}", 504, path=path)
        except httpx.InvalidURL as e:
            logger.error("API base URL rejected", base_url=self.base_url, error=str(e))
            return APIResponse.failed(
                "INVALID_URL", f"Invalid API URL {self.base_url!r}: {e}", 500, path=path
            )
        except httpx.RequestError as e:
            logger.error("API request failed", path=path, error=str(e))
            return APIResponse.failed("REQUEST_ERROR", f"Request failed: {e}", 500, path=path)
        except ValueError as e:
            logger.error("API response was not JSON", path=path, error=str(e))
            return APIResponse.failed(
                "INVALID_RESPONSE", f"Response from {path} was not JSON", 502, path=path
            )

    # =========================================================================
    # Tag Endpoints
    # =========================================================================

    async def list_tags(self) -> APIResponse:
        """Get the full tag list.

        Returns:
            APIResponse with a flat or nested tag list.
        """
        return await self._request(method="GET", path="/tag")

    # =========================================================================
    # Print Shop Endpoints
    # =========================================================================

    async def list_print_shops(self, params: Params) -> APIResponse:
        """Get one page of print shops.

        Args:
            params: Listing query parameters (``page``, ``size``, ``searchText``,
                ``tagIds[]``, ``sortBy``, ``sortOrder``).

        Returns:
            APIResponse with ``printShops`` and ``totalCount``.
        """
        return await self._request(method="GET", path="/print-shop", params=params)

    async def get_print_shop(self, print_shop_id: int) -> APIResponse:
        return await self._request(method="GET", path=f"/print-shop/{print_shop_id}")
