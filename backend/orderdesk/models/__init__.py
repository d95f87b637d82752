"""Local store tables.

Import all models here so ``Base.metadata`` knows both collections.
"""

from orderdesk.models.base import Base  # noqa: F401
from orderdesk.models.cached_data import CachedDataEntry  # noqa: F401
from orderdesk.models.offline_order import OfflineOrderRecord  # noqa: F401
