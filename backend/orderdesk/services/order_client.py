"""Async HTTP client for the order server."""

import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from orderdesk.core.exceptions import (
    AuthenticationRequired,
    NetworkError,
    ServerBusinessError,
    SignatureValidationError,
    ValidationError,
)
from orderdesk.models.enums import ReferenceCollection
from orderdesk.schemas.order import (
    GenerateOrderResponse,
    OrderPayload,
    SyncOfflineResponse,
)

logger = logging.getLogger(__name__)


def _json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise ServerBusinessError(
            f"Invalid JSON from {resp.request.method} {resp.request.url.path}",
            server_status=resp.status_code,
        ) from exc


def _raise_for_status(resp: httpx.Response) -> None:
    """Map HTTP error responses onto the error taxonomy."""
    if resp.is_success:
        return

    try:
        body = resp.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}
    error = body.get("error")
    if isinstance(error, dict):
        error = error.get("message")
    message = body.get("message") or error or f"HTTP {resp.status_code}"

    if resp.status_code == 401:
        raise AuthenticationRequired(message)
    if resp.status_code in (400, 422):
        if body.get("signatureError"):
            raise SignatureValidationError(message)
        raise ValidationError(message)
    raise ServerBusinessError(message, server_status=resp.status_code)


class OrderServerClient:
    """Thin async wrapper around the order server API.

    Transport failures and timeouts become ``NetworkError``; HTTP error
    responses become validation / business errors. Document generation and
    e-mail calls share one hard ceiling (``send_timeout``).
    """

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        timeout: float = 30,
        send_timeout: float = 60,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self.send_timeout = send_timeout
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        headers = {}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers,
            transport=self._transport,
        )

    async def _request(
        self, method: str, path: str, *, timeout: float, **kwargs
    ) -> httpx.Response:
        try:
            async with self._client(timeout) as client:
                resp = await asyncio.wait_for(
                    client.request(method, path, **kwargs), timeout=timeout
                )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            raise NetworkError(
                f"{method} {path} timed out after {timeout:.0f}s"
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc

        _raise_for_status(resp)
        return resp

    async def generate_order(self, order: OrderPayload) -> GenerateOrderResponse:
        """Create the order, render its documents and send e-mails server-side."""
        resp = await self._request(
            "POST", "/orders/generate", json=order.to_wire(), timeout=self.send_timeout
        )
        try:
            return GenerateOrderResponse.model_validate(_json(resp))
        except PydanticValidationError as exc:
            raise ServerBusinessError(
                "Unexpected response from /orders/generate", server_status=resp.status_code
            ) from exc

    async def sync_offline_order(self, order: dict[str, Any]) -> SyncOfflineResponse:
        """Submit an offline order. Idempotent on the server, keyed by orderCode."""
        resp = await self._request(
            "POST",
            "/orders/sync-offline",
            json={"order": order},
            timeout=self.send_timeout,
        )
        try:
            return SyncOfflineResponse.model_validate(_json(resp))
        except PydanticValidationError as exc:
            raise ServerBusinessError(
                "Unexpected response from /orders/sync-offline",
                server_status=resp.status_code,
            ) from exc

    async def send_order_emails(self, order_code: str, client_email: str | None) -> None:
        """Re-send the e-mails of an order the server already has."""
        resp = await self._request(
            "POST",
            "/orders/send-emails",
            json={"orderCode": order_code, "clientEmail": client_email},
            timeout=self.send_timeout,
        )
        body = _json(resp)
        if isinstance(body, dict) and body.get("success") is False:
            raise ServerBusinessError(
                body.get("message") or "E-mail sending failed",
                server_status=resp.status_code,
            )

    async def fetch_collection(
        self, collection: ReferenceCollection, page_size: int = 10000
    ) -> Any:
        """Fetch one reference collection in a single (large) page."""
        params = {"page": 1, "pageSize": page_size} if collection.paginated else None
        resp = await self._request(
            "GET", collection.path, params=params, timeout=self.timeout
        )
        body = _json(resp)
        if not collection.paginated:
            return body

        data = body.get("data", body) if isinstance(body, dict) else body
        return data if isinstance(data, list) else []
