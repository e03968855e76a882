# Copyright (c) Syntropy Systems
"""HTTP client for triggering check-sets on a countwatch server."""
from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

try:
    import httpx
except ImportError:
    httpx = None  # type: ignore[assignment]

from pydantic import BaseModel, ValidationError
from typing_extensions import Self

from countwatch.models.api import (
    CheckSetListResponse,
    CheckSetResponse,
    ErrorResponse,
    HealthResponse,
    HistoryResponse,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping
    from types import TracebackType

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


class CountwatchClientError(Exception):
    """Error from countwatch server communication."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CountwatchClient:
    """HTTP client for a countwatch server."""

    server_url: str
    timeout: float

    def __init__(
        self,
        server_url: str,
        timeout: float = 300.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            server_url: Base URL of the countwatch server (e.g., "http://monitor:8080")
            timeout: Request timeout in seconds; a check-set run can be slow
            transport: Optional httpx transport, mainly for tests

        """
        if httpx is None:
            msg = (
                "httpx is required for remote checks. "
                "Install with: pip install countwatch[server]"
            )
            raise ImportError(msg)

        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> Self:
        """Enter the client context and return self."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the client context and close the HTTP client."""
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        response_model: type[ResponseModel],
        params: Mapping[str, object] | None = None,
        accept_status: Collection[int] = (),
    ) -> ResponseModel:
        """Make an HTTP request to the server.

        Statuses in ``accept_status`` are parsed like a success instead of
        raising; the check endpoint answers 500 with a full body on failure.
        """
        url = f"{self.server_url}{path}"
        try:
            response = self._client.request(method=method, url=url, params=params)
            if response.status_code not in accept_status:
                _ = response.raise_for_status()
            return response_model.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            # Try to get error detail from response
            try:
                detail = ErrorResponse.model_validate(e.response.json()).detail
            except (ValidationError, ValueError):
                detail = str(e)
            msg = f"Server error: {detail}"
            raise CountwatchClientError(msg, status_code=e.response.status_code) from e
        except httpx.RequestError as e:
            msg = f"Connection error: {e}"
            raise CountwatchClientError(msg) from e
        except (ValidationError, ValueError) as e:
            msg = f"Unexpected response from server: {e}"
            raise CountwatchClientError(msg) from e

    def run_check_set(self, check_set_id: str) -> CheckSetResponse:
        """Trigger a check-set and return its outcomes, valid or not.

        Raises CountwatchClientError for unknown check-sets (status 404) and
        an unready server (status 503).
        """
        return self._request(
            "GET",
            f"/check/{check_set_id}",
            response_model=CheckSetResponse,
            accept_status=(500,),
        )

    def list_check_sets(self) -> CheckSetListResponse:
        """Get the check-sets registered on the server."""
        return self._request("GET", "/api/v1/check-sets", response_model=CheckSetListResponse)

    def get_history(
        self,
        check_set_id: str,
        table_name: str | None = None,
        limit: int = 50,
    ) -> HistoryResponse:
        """Get persisted outcomes for a check-set, newest first."""
        params: dict[str, object] = {"limit": limit}
        if table_name is not None:
            params["table"] = table_name
        return self._request(
            "GET",
            f"/api/v1/history/{check_set_id}",
            response_model=HistoryResponse,
            params=params,
        )

    def health(self) -> HealthResponse:
        """Get server health."""
        return self._request("GET", "/health", response_model=HealthResponse)
