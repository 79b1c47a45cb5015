"""
                        Services Module

Contains the order business logic:
    - store: durable (SQL) and fallback (in-memory) order stores + router
    - lifecycle: status flow and submission rules
    - broadcast: real-time fan-out to staff dashboards
    - orders: orchestration used by the API endpoints
"""

from app.services.broadcast import BroadcastChannel
from app.services.orders import OrderService

__all__ = ["BroadcastChannel", "OrderService"]
