"""Order submission: online generation, or offline staging for later sync.

    Submitting ──online──> POST /orders/generate ──ok──> SubmittedOnline
        │                        │
        │                  NetworkError
        ▼                        ▼
    offline path: local code + best-effort receipt + repository.save ──> SubmittedOffline

Validation and server business errors propagate to the caller and nothing is
persisted. The offline path returns as soon as the local record is written;
delivery is left to the sync engine. If the store refuses the record, the
order is held in memory by the repository and the result carries a warning.
"""

import asyncio
import base64
import binascii
import logging
import string
import time
from datetime import datetime, timezone
from typing import Any, Protocol

from orderdesk.core.exceptions import (
    NetworkError,
    SignatureValidationError,
    StorageUnavailable,
    ValidationError,
)
from orderdesk.models.enums import SubmissionState
from orderdesk.schemas.order import OrderPayload, SubmissionResult
from orderdesk.services.connectivity import ConnectivitySignal
from orderdesk.services.offline_orders import OfflineOrderRepository
from orderdesk.services.order_client import OrderServerClient

logger = logging.getLogger(__name__)

SIGNATURE_PREFIXES = (
    "data:image/png;base64,",
    "data:image/jpeg;base64,",
    "data:image/jpg;base64,",
)
MAX_SIGNATURE_LENGTH = 500 * 1024
MIN_SIGNATURE_CONTENT_LENGTH = 100

STORAGE_WARNING = (
    "The order could not be saved on this device. Keep the app open until it "
    "has been sent, or submit it again once the connection is back."
)

_BASE36_DIGITS = string.digits + string.ascii_uppercase


class DocumentRenderer(Protocol):
    def render_pdf(self, order: OrderPayload) -> bytes: ...


def validate_signature(signature: str | None) -> None:
    if not signature:
        raise SignatureValidationError("Signature is missing.")
    if not signature.startswith(SIGNATURE_PREFIXES):
        raise SignatureValidationError(
            "Invalid signature format. Expected a PNG or JPEG image."
        )
    if len(signature) > MAX_SIGNATURE_LENGTH:
        raise SignatureValidationError("Signature is too large (max 500KB).")

    content = signature.split(",", 1)[1]
    if len(content) < MIN_SIGNATURE_CONTENT_LENGTH:
        raise SignatureValidationError("Signature content is invalid or empty.")
    try:
        base64.b64decode(content, validate=True)
    except (binascii.Error, ValueError):
        raise SignatureValidationError("Signature data is corrupted.") from None


def validate_order(order: OrderPayload) -> None:
    if not order.notification_email:
        raise ValidationError("A client e-mail address is required.")
    validate_signature(order.signature)


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def generate_offline_code(prefix: str = "OFF-", timestamp_ms: int | None = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    return f"{prefix}{to_base36(timestamp_ms)}"


def is_offline_code(code: str, prefix: str = "OFF-") -> bool:
    return code.startswith(prefix)


class OrderSubmissionService:
    def __init__(
        self,
        connectivity: ConnectivitySignal,
        client: OrderServerClient,
        repository: OfflineOrderRepository,
        renderer: DocumentRenderer | None = None,
        code_prefix: str = "OFF-",
        render_timeout: float = 10,
    ):
        self.connectivity = connectivity
        self.client = client
        self.repository = repository
        self.renderer = renderer
        self.code_prefix = code_prefix
        self.render_timeout = render_timeout
        self._last_code_ms = 0

    def next_offline_code(self) -> str:
        """Timestamp-derived code, strictly increasing within this process."""
        now_ms = time.time_ns() // 1_000_000
        self._last_code_ms = max(now_ms, self._last_code_ms + 1)
        return generate_offline_code(self.code_prefix, self._last_code_ms)

    async def submit_order(self, order: OrderPayload | dict[str, Any]) -> SubmissionResult:
        if not isinstance(order, OrderPayload):
            order = OrderPayload.model_validate(order)
        validate_order(order)

        if self.connectivity.is_online():
            try:
                response = await self.client.generate_order(order)
            except NetworkError as exc:
                # The signal can be stale (captive portal, flaky link)
                logger.warning("Order server unreachable (%s); staging order offline", exc)
            else:
                logger.info(
                    "Order %s submitted online (emails_sent=%s)",
                    response.order_code,
                    response.emails_sent,
                )
                return SubmissionResult(
                    order_code=response.order_code,
                    is_offline=False,
                    emails_sent=response.emails_sent,
                    email_error=response.email_error,
                    state=SubmissionState.SUBMITTED_ONLINE,
                    pdf_url=response.pdf_url,
                    excel_url=response.excel_url,
                )

        return await self._submit_offline(order)

    async def _submit_offline(self, order: OrderPayload) -> SubmissionResult:
        code = self.next_offline_code()
        staged = order.model_copy(
            update={
                "order_code": code,
                "created_at": order.created_at or datetime.now(timezone.utc).isoformat(),
            }
        )
        snapshot = await self._render_snapshot(staged)

        storage_warning = None
        try:
            await self.repository.save(staged, snapshot)
        except StorageUnavailable as exc:
            logger.error("Offline order %s kept in memory only: %s", code, exc)
            self.repository.hold(staged, snapshot)
            storage_warning = STORAGE_WARNING
        else:
            logger.info("Order %s staged offline", code)

        return SubmissionResult(
            order_code=code,
            is_offline=True,
            emails_sent=False,
            state=SubmissionState.SUBMITTED_OFFLINE,
            storage_warning=storage_warning,
        )

    async def _render_snapshot(self, order: OrderPayload) -> bytes | None:
        """Best-effort receipt; a failure never blocks the submission."""
        if self.renderer is None:
            return None
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.renderer.render_pdf, order),
                timeout=self.render_timeout,
            )
        except Exception as exc:
            logger.warning("Receipt rendering failed for %s: %s", order.order_code, exc)
            return None
