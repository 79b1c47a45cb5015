"""
Order Lifecycle Engine

Status flow of a restaurant order:

    pending → accepted → preparing → ready → completed

Orders only ever move one step forward; ``completed`` is terminal. The raw
``parse_status`` path lets staff correct a status by hand, but it still only
accepts the five known values.
"""

import logging
import math
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from app.core.exceptions import (
    EmptyOrderError,
    InvalidStatusError,
    InvalidTotalError,
)
from app.models import OrderStatus
from app.schemas import OrderItem, OrderRecord

logger = logging.getLogger(__name__)


STATUS_FLOW: List[OrderStatus] = [
    OrderStatus.PENDING,
    OrderStatus.ACCEPTED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.COMPLETED,
]

_NEXT_STATUS = {
    current: following
    for current, following in zip(STATUS_FLOW, STATUS_FLOW[1:])
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_status(status: OrderStatus) -> Optional[OrderStatus]:
    """Return the status that follows ``status``, or None if it is terminal."""
    return _NEXT_STATUS.get(status)


def is_terminal(status: OrderStatus) -> bool:
    return next_status(status) is None


def parse_status(value: Optional[str]) -> OrderStatus:
    """Convert a raw status string, raising InvalidStatusError if unknown."""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidStatusError(value)


def validate_submission(items: Sequence[OrderItem], total: Optional[float]) -> None:
    """
    Check the creation-time invariants of an order.

    Raises:
        EmptyOrderError: no items
        InvalidTotalError: total missing or not a positive finite number
    """
    if not items:
        raise EmptyOrderError()
    if total is None or not math.isfinite(total) or total <= 0:
        raise InvalidTotalError()

    # Hardening gap: the client-side total is trusted as-is.
    expected = round(sum(item.price * item.quantity for item in items), 2)
    if abs(expected - total) > 0.005:
        logger.warning(f"Order total {total} does not match item sum {expected}; keeping client total")


def build_order(
    order_id: int,
    items: Sequence[OrderItem],
    total: float,
    now: Optional[datetime] = None,
) -> OrderRecord:
    """Create a new pending order record."""
    now = now or utcnow()
    return OrderRecord(
        order_id=order_id,
        items=list(items),
        total=total,
        status=OrderStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
