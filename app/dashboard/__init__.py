"""
Staff dashboard client.

Exports the order mirror and the WebSocket client that feeds it.
"""

from app.dashboard.client import ConnectionState, DashboardClient
from app.dashboard.state import DashboardState, count_by_status, split_orders

__all__ = [
    "ConnectionState",
    "DashboardClient",
    "DashboardState",
    "count_by_status",
    "split_orders",
]
