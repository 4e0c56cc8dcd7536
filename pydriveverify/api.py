"""API client for the drive listing service."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import config
from .exceptions import (
    DriveAPIError,
    DriveAuthenticationError,
    DriveConfigError,
    DriveInvalidResponseError,
    DriveNetworkError,
    DriveNotFoundError,
    DrivePermissionError,
    DriveRateLimitError,
    DriveServerError,
)
from .models import DriveItem
from .utils import DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)

LIST_FIELDS = "nextPageToken, files(id, name, parents, trashed, md5Checksum, mimeType)"


class DriveClient:
    """Read-only client for a Drive v3 style files API.

    The client only lists files. Token acquisition is left to the caller;
    an already issued OAuth access token is sent as a bearer token.
    """

    def __init__(
        self,
        access_token: str | None = None,
        api_url: str | None = None,
        timeout: float = 30.0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """Initialize the drive API client.

        Args:
            access_token: Optional access token (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            timeout: Request timeout in seconds (default: 30.0)
            page_size: Number of items requested per listing page
        """
        self.access_token = access_token or config.access_token
        self.api_url = api_url or config.api_url
        self.timeout = timeout
        self.page_size = page_size

        if not self.access_token:
            raise DriveConfigError(
                "Access token not configured. Please set DRIVE_ACCESS_TOKEN "
                "or run 'pydriveverify init'."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> DriveClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _handle_http_error(self, e: httpx.HTTPStatusError) -> DriveAPIError:
        """Translate an HTTP status error into a pydriveverify exception.

        Args:
            e: The HTTP error exception

        Returns:
            Exception to raise
        """
        status_code = e.response.status_code

        if status_code == 401:
            return DriveAuthenticationError("Invalid or expired access token")
        if status_code == 403:
            # Drive reports quota problems as 403 with a rate limit reason
            if "ratelimitexceeded" in e.response.text.lower():
                return DriveRateLimitError("Rate limit exceeded")
            return DrivePermissionError("Access forbidden - check your permissions")
        if status_code == 404:
            return DriveNotFoundError("Resource not found")
        if status_code == 429:
            return DriveRateLimitError("Rate limit exceeded")

        error_msg = f"API request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    error = error_data.get("error")
                    msg = error.get("message") if isinstance(error, dict) else error
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Body is not JSON, keep the status based message
            pass

        if 500 <= status_code < 600:
            return DriveServerError(error_msg)
        return DriveAPIError(error_msg)

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make a single API request.

        Retrying is left to the caller so that each caller can choose its
        own policy.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data

        Raises:
            DriveAPIError: If the request fails
        """
        url = f"{self.api_url.rstrip('/')}/{endpoint.lstrip('/')}"
        client = self._get_client()

        try:
            response = client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._handle_http_error(e) from e
        except httpx.RequestError as e:
            raise DriveNetworkError(f"Network error: {e}") from e

        content_type = response.headers.get("Content-Type", "")
        if response.content and "application/json" not in content_type:
            raise DriveInvalidResponseError(f"Unexpected response type: {content_type}")

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise DriveInvalidResponseError("Invalid JSON response from server") from e

    # =========================
    # Listing Operations
    # =========================

    def get_root_id(self) -> str:
        """Get the id of the account's root folder.

        Returns:
            Root folder id

        Raises:
            DriveAPIError: If the request fails
            DriveInvalidResponseError: If the response has no id
        """
        result = self._request("GET", "/files/root", params={"fields": "id"})
        root_id = result.get("id") if isinstance(result, dict) else None
        if not root_id:
            raise DriveInvalidResponseError("Root folder response has no id")
        return str(root_id)

    def list_page(
        self,
        page_token: str | None = None,
        query: str = "trashed != true",
    ) -> tuple[list[DriveItem], str | None]:
        """List one page of files.

        Args:
            page_token: Token returned by the previous page, None for the first
            query: Drive search query (default: every non-trashed item)

        Returns:
            Tuple of (items, next page token). The token is None on the last page.

        Raises:
            DriveAPIError: If the request fails
        """
        params: dict[str, Any] = {
            "pageSize": self.page_size,
            "fields": LIST_FIELDS,
            "q": query,
        }
        if page_token:
            params["pageToken"] = page_token

        result = self._request("GET", "/files", params=params)
        if not isinstance(result, dict):
            raise DriveInvalidResponseError("Listing response is not an object")

        items = [DriveItem.from_dict(f) for f in result.get("files", []) if "id" in f]
        next_token = result.get("nextPageToken") or None
        logger.debug(
            f"Listed {len(items)} items (next page: {'yes' if next_token else 'no'})"
        )
        return items, next_token
