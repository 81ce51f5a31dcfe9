"""
HTTP client for the mess backend with circuit breaker protection.
Only consumes the JSON REST API; owns no server-side state.
"""

import logging
from typing import Any

import httpx

from messleave.circuit_breaker import CircuitBreaker
from messleave.config import settings
from messleave.observability import trace_span

logger = logging.getLogger(__name__)

LEAVE_REQUESTS_PATH = "/user/leave-requests"
USER_MESS_DETAILS_PATH = "/mess/search/user-details"
LEAVE_STATUS_FILTERS = ("pending", "approved", "rejected", "cancelled", "all")


class ApiError(RuntimeError):
    """Backend call failed at the transport level or with an error status."""

    def __init__(self, message: str, status_code: int | None = None, server_message: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        # Text of the backend JSON "message" field, when the backend sent one
        self.server_message = server_message


def _server_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return None


class MessApiClient:
    """
    Async client for the leave and mess-details endpoints.

    The bearer token, base URL and timeout default to the global settings.
    A custom ``transport`` can be injected (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ):
        self.base_url = base_url or settings.api_base_url
        self.token = token if token is not None else settings.api_auth_token

        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout or settings.api_timeout_seconds,
            transport=transport,
        )
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            timeout=settings.circuit_breaker_timeout,
            name="MessApiCircuitBreaker",
        )

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {path} failed: {e}") from e

        # Server-side failures count against the circuit, client errors do not
        if response.status_code >= 500:
            server_message = _server_message(response)
            raise ApiError(
                server_message or f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                server_message=server_message,
            )
        return response

    async def request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        """
        Send a request and return the decoded JSON body.

        Raises:
            ApiError: transport failure, non-2xx status or non-JSON body
            CircuitBreakerOpenError: backend considered down
        """
        with trace_span("mess_api_request", method=method, path=path):
            response = await self.circuit_breaker.call(self._send, method, path, **kwargs)

        if response.is_error:
            server_message = _server_message(response)
            message = server_message or f"{method} {path} returned {response.status_code}"
            logger.warning(f"Backend rejected {method} {path}: {response.status_code} {message}")
            raise ApiError(message, status_code=response.status_code, server_message=server_message)

        try:
            body = response.json()
        except ValueError as e:
            raise ApiError(f"{method} {path} returned a non-JSON body", response.status_code) from e

        return body if isinstance(body, dict) else {"success": True, "data": body}

    async def get_user_mess_details(self) -> dict[str, Any]:
        """Fetch the user's messes and their subscribed meal plans."""
        return await self.request("GET", USER_MESS_DETAILS_PATH)

    async def list_leave_requests(self, status: str | None = None) -> dict[str, Any]:
        """
        Fetch the user's leave history.

        ``status`` filters client-side; ``None`` or ``"all"`` keeps everything.
        """
        if status is not None and status not in LEAVE_STATUS_FILTERS:
            raise ValueError(f"Invalid leave status filter: {status}")

        body = await self.request("GET", LEAVE_REQUESTS_PATH)
        if status and status != "all" and isinstance(body.get("data"), list):
            body = {
                **body,
                "data": [item for item in body["data"] if item and item.get("status") == status],
            }
        return body

    async def get_leave_request(self, leave_id: str) -> dict[str, Any]:
        return await self.request("GET", f"{LEAVE_REQUESTS_PATH}/{leave_id}")

    async def get_leave_stats(self) -> dict[str, Any]:
        return await self.request("GET", f"{LEAVE_REQUESTS_PATH}/stats/summary")

    async def create_leave_request(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.request("POST", LEAVE_REQUESTS_PATH, json=payload)

    async def extend_leave_request(self, leave_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.request("POST", f"{LEAVE_REQUESTS_PATH}/{leave_id}/extend", json=payload)

    async def preview_leave_request(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Non-persistent server calculation of a candidate leave."""
        return await self.request("POST", f"{LEAVE_REQUESTS_PATH}/preview", json=payload)

    async def cancel_leave_request(self, leave_id: str) -> dict[str, Any]:
        return await self.request("DELETE", f"{LEAVE_REQUESTS_PATH}/{leave_id}")

    def get_circuit_breaker_state(self) -> dict:
        """Get circuit breaker state for monitoring."""
        return self.circuit_breaker.get_state()

    async def close(self):
        await self._client.aclose()
        logger.info("Mess API client closed")
