"""
Sales aggregate store, sync log and dashboard
"""
from .store import SalesStore
from .sync_log import SyncLog
from .dashboard import DashboardService

__all__ = ["SalesStore", "SyncLog", "DashboardService"]
