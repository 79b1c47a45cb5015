"""
Dashboard Client State

Client-side mirror of all orders on the staff dashboard. Incoming channel
messages are posted to a FIFO mailbox and applied in arrival order:

    loadOrders    → replace the mirror
    newOrder      → append unless already known (duplicate delivery)
    orderUpdated  → replace by id, ignored if unknown
    orderDeleted  → remove by id, ignored if unknown

After every applied message the derived views are recomputed: active
orders (newest first), completed orders (most recently finished first) and
counts per status.
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional

from app.models import OrderStatus
from app.schemas import OrderRecord
from app.services.broadcast import OrderEvent

logger = logging.getLogger(__name__)


def count_by_status(orders: Iterable[OrderRecord]) -> Dict[str, int]:
    """Order count for every status, zeros included."""
    counts = {status.value: 0 for status in OrderStatus}
    for order in orders:
        counts[order.status.value] += 1
    return counts


def split_orders(orders: Iterable[OrderRecord]):
    """Return (active, completed) lists sorted for display."""
    active = [o for o in orders if o.status != OrderStatus.COMPLETED]
    completed = [o for o in orders if o.status == OrderStatus.COMPLETED]
    active.sort(key=lambda o: (o.created_at, o.order_id), reverse=True)
    completed.sort(key=lambda o: (o.updated_at, o.order_id), reverse=True)
    return active, completed


class DashboardState:
    """
    Local order mirror with a message mailbox.

    Only mutated from the event loop thread that owns it.
    """

    def __init__(self, on_change: Optional[Callable[["DashboardState"], None]] = None):
        self.mailbox: Deque[Dict[str, Any]] = deque()
        self.on_change = on_change
        self._orders: List[OrderRecord] = []
        self.active_orders: List[OrderRecord] = []
        self.completed_orders: List[OrderRecord] = []
        self.counts: Dict[str, int] = count_by_status([])

    @property
    def orders(self) -> List[OrderRecord]:
        return list(self._orders)

    @property
    def total_orders(self) -> int:
        return len(self._orders)

    def get(self, order_id: int) -> Optional[OrderRecord]:
        for order in self._orders:
            if order.order_id == order_id:
                return order
        return None

    # =========================================================================
    # MAILBOX
    # =========================================================================

    def post(self, message: Dict[str, Any]) -> None:
        self.mailbox.append(message)

    def drain(self) -> int:
        """Apply every queued message in arrival order; return how many were applied."""
        applied = 0
        while self.mailbox:
            message = self.mailbox.popleft()
            try:
                self.apply(message)
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Ignoring malformed {message.get('event')!r} message: {e}")
                continue
            applied += 1
        return applied

    def apply(self, message: Dict[str, Any]) -> None:
        event = message.get("event")
        data = message.get("data")

        if event == OrderEvent.LOAD_ORDERS:
            self.load_snapshot(OrderRecord.model_validate(o) for o in data)
        elif event == OrderEvent.NEW_ORDER:
            self.add_order(OrderRecord.model_validate(data))
        elif event == OrderEvent.ORDER_UPDATED:
            self.update_order(OrderRecord.model_validate(data))
        elif event == OrderEvent.ORDER_DELETED:
            self.remove_order(int(data["orderId"]))
        else:
            logger.debug(f"Unknown channel event: {event!r}")

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    def load_snapshot(self, orders: Iterable[OrderRecord]) -> None:
        self._orders = list(orders)
        self._refresh()

    def add_order(self, order: OrderRecord) -> None:
        if self.get(order.order_id) is not None:
            return
        self._orders.append(order)
        self._refresh()

    def update_order(self, order: OrderRecord) -> None:
        for index, existing in enumerate(self._orders):
            if existing.order_id == order.order_id:
                self._orders[index] = order
                self._refresh()
                return

    def remove_order(self, order_id: int) -> None:
        remaining = [o for o in self._orders if o.order_id != order_id]
        if len(remaining) != len(self._orders):
            self._orders = remaining
            self._refresh()

    def _refresh(self) -> None:
        self.active_orders, self.completed_orders = split_orders(self._orders)
        self.counts = count_by_status(self._orders)
        if self.on_change is not None:
            self.on_change(self)
