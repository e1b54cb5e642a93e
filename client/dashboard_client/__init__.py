from .api import ApiClient, ApiError, ConnectionFailure
from .storage import TokenStore
from .sync import DashboardPoller, SyncState, device_ids, format_age, live_status

__all__ = [
    "ApiClient",
    "ApiError",
    "ConnectionFailure",
    "TokenStore",
    "DashboardPoller",
    "SyncState",
    "device_ids",
    "format_age",
    "live_status",
]
