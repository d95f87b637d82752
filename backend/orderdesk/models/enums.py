"""Enum types for offline orders, submissions and reference data."""

import enum


class OfflineOrderState(str, enum.Enum):
    """Derived from the persisted ``synced_to_server`` / ``email_sent`` pair."""

    PENDING = "pending"
    SYNCED_AWAITING_EMAIL = "synced_awaiting_email"
    COMPLETE = "complete"
    FAILED = "failed"


class SubmissionState(str, enum.Enum):
    """Where ``submit_order`` left the order; the offline sync lifecycle is ``OfflineOrderState``."""

    SUBMITTED_ONLINE = "submitted_online"
    SUBMITTED_OFFLINE = "submitted_offline"


class ReferenceCollection(str, enum.Enum):
    # Paginated admin lists
    ORDERS = "orders"
    COMMERCIALS = "commercials"
    CLIENTS = "clients"
    SUPPLIERS = "suppliers"
    THEMES = "themes"
    # Lightweight lists used to prefill the order form
    DATA_COMMERCIALS = "data_commercials"
    DATA_CLIENTS = "data_clients"
    DATA_SUPPLIERS = "data_suppliers"
    DATA_THEMES = "data_themes"

    @property
    def cache_key(self) -> str:
        return f"{self.value}_cache"

    @property
    def paginated(self) -> bool:
        return not self.value.startswith("data_")

    @property
    def path(self) -> str:
        return _REFERENCE_PATHS[self]


_REFERENCE_PATHS = {
    ReferenceCollection.ORDERS: "/orders",
    ReferenceCollection.COMMERCIALS: "/admin/commerciaux",
    ReferenceCollection.CLIENTS: "/admin/clients",
    ReferenceCollection.SUPPLIERS: "/admin/fournisseurs",
    ReferenceCollection.THEMES: "/admin/themes",
    ReferenceCollection.DATA_COMMERCIALS: "/data/commerciaux",
    ReferenceCollection.DATA_CLIENTS: "/data/clients",
    ReferenceCollection.DATA_SUPPLIERS: "/data/suppliers",
    ReferenceCollection.DATA_THEMES: "/data/themes",
}

LAST_SYNC_CACHE_KEY = "last_sync_timestamp"
