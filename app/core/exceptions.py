"""
Order domain exceptions.

Every error carries the HTTP status it maps to; the exception handler in
app.main turns them into ``{"success": false, "message": ...}`` bodies.
"""

from typing import Optional


class OrderError(Exception):
    """Base class for all order-related errors."""

    status_code: int = 400
    default_message: str = "Order request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# =============================================================================
# VALIDATION (4xx, never retried)
# =============================================================================

class OrderValidationError(OrderError):
    """Request rejected before touching the store."""
    status_code = 400
    default_message = "Invalid order request"


class EmptyOrderError(OrderValidationError):
    default_message = "Order must contain items"


class InvalidTotalError(OrderValidationError):
    default_message = "Invalid order total"


class InvalidStatusError(OrderValidationError):
    default_message = "Invalid status"

    def __init__(self, status: Optional[str] = None):
        message = f"Invalid status: {status}" if status is not None else None
        super().__init__(message)
        self.status = status


class InvalidTransitionError(OrderValidationError):
    """Order is already in the terminal status."""

    def __init__(self, order_id: int, status: str):
        super().__init__(f"Order #{order_id} is already {status} and cannot advance")
        self.order_id = order_id
        self.status = status


class OrderNotFoundError(OrderError):
    status_code = 404
    default_message = "Order not found"

    def __init__(self, order_id: Optional[int] = None):
        super().__init__()
        self.order_id = order_id


# =============================================================================
# INFRASTRUCTURE
# =============================================================================

class PersistenceError(OrderError):
    """
    The durable backend failed a read or write.

    ``backend_unavailable`` is True when the failure means the database can
    no longer be reached; the store router then switches to the fallback
    store for subsequent operations.
    """
    status_code = 500
    default_message = "Order storage failure"

    def __init__(self, message: Optional[str] = None, backend_unavailable: bool = True):
        super().__init__(message)
        self.backend_unavailable = backend_unavailable


class ConnectivityError(OrderError):
    """The real-time channel is not connected (client side)."""
    status_code = 503
    default_message = "Order channel is reconnecting"
