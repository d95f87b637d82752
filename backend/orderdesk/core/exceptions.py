"""Error taxonomy for order submission and offline sync.

Hierarchy:
    OrderDeskError (base)
    ├── ValidationError           - order payload invalid, never retried or persisted
    │   └── SignatureValidationError - caller clears the signature and re-signs
    ├── NetworkError              - timeout / transport failure / offline, always retried
    ├── StorageUnavailable        - local durable store inaccessible (degraded mode)
    ├── ServerBusinessError       - server rejected a structurally valid request
    ├── AuthenticationRequired    - server answered 401 (not logged in)
    ├── OfflineOrderNotFound
    └── OfflineOrderNotSynced     - cleanup attempted before the server has the order
"""

from typing import Any


class OrderDeskError(Exception):
    """Base class. ``status_code`` and ``code`` drive the HTTP error envelope."""

    status_code = 500
    code = "ORDERDESK_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(OrderDeskError):
    status_code = 422
    code = "VALIDATION_ERROR"


class SignatureValidationError(ValidationError):
    """The signature is missing or malformed.

    The presentation layer handles this one specially: clear the signature
    field and send the user back to the signing step.
    """

    code = "SIGNATURE_ERROR"


class NetworkError(OrderDeskError):
    """Timeout, DNS failure, refused connection, or the device is offline."""

    status_code = 503
    code = "NETWORK_ERROR"


class StorageUnavailable(OrderDeskError):
    """Quota exceeded, database locked or corrupted, file not writable."""

    status_code = 503
    code = "STORAGE_UNAVAILABLE"


class ServerBusinessError(OrderDeskError):
    status_code = 502
    code = "SERVER_REJECTED"

    def __init__(
        self,
        message: str,
        server_status: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        error_details = details or {}
        if server_status is not None:
            error_details["server_status"] = server_status
        super().__init__(message, error_details)
        self.server_status = server_status


class AuthenticationRequired(OrderDeskError):
    status_code = 401
    code = "AUTHENTICATION_REQUIRED"


class OfflineOrderNotFound(OrderDeskError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, order_id: str):
        super().__init__(f"Offline order {order_id} not found.")
        self.order_id = order_id


class OfflineOrderNotSynced(OrderDeskError):
    status_code = 409
    code = "NOT_SYNCED"

    def __init__(self, order_id: str):
        super().__init__(
            f"Offline order {order_id} has not reached the server yet and cannot be deleted.",
            {"order_id": order_id},
        )
        self.order_id = order_id
