"""
Broadcast Channel

Fans order lifecycle events out to every subscribed staff connection.

Events (server → client), sent as ``{"event": name, "data": payload}``:
    - loadOrders: full snapshot, on subscribe and on ``requestOrders``
    - newOrder: a created order
    - orderUpdated: an order after a status change
    - orderDeleted: ``{"orderId": n}``

Delivery is fire-and-forget: a subscriber whose send fails is dropped and
has to resubscribe to catch up from a fresh snapshot.

Author: Khalil Bannouri
Version: 4.0.0
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Protocol, Sequence

from app.schemas import OrderRecord

logger = logging.getLogger(__name__)


class OrderEvent:
    """Event names on the real-time order channel."""
    LOAD_ORDERS = "loadOrders"
    NEW_ORDER = "newOrder"
    ORDER_UPDATED = "orderUpdated"
    ORDER_DELETED = "orderDeleted"
    REQUEST_ORDERS = "requestOrders"


class Subscriber(Protocol):
    """Anything that can receive JSON frames (e.g. a FastAPI WebSocket)."""

    async def send_json(self, data: Any) -> None:
        ...


SnapshotLoader = Callable[[], Awaitable[Sequence[OrderRecord]]]


@dataclass
class Subscription:
    """A registered subscriber and the events held back until its snapshot is out."""
    subscriber_id: str
    connection: Subscriber
    ready: bool = False
    pending: List[Dict[str, Any]] = field(default_factory=list)


def make_message(event: str, data: Any) -> Dict[str, Any]:
    return {"event": event, "data": data}


def snapshot_message(orders: Sequence[OrderRecord]) -> Dict[str, Any]:
    return make_message(OrderEvent.LOAD_ORDERS, [order.to_wire() for order in orders])


class BroadcastChannel:
    """
    Explicit registry of live subscribers.

    ``publish`` walks the registry in registration order and awaits each
    send, so every subscriber sees events in the order they were published.
    """

    def __init__(self):
        self._subscriptions: Dict[str, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, subscriber_id: str) -> bool:
        return subscriber_id in self._subscriptions

    async def subscribe(self, connection: Subscriber, load_snapshot: SnapshotLoader) -> str:
        """
        Register ``connection`` and send it the current order snapshot.

        Events published while the snapshot is being loaded are queued for
        this subscriber and sent right after the snapshot.
        """
        subscriber_id = uuid.uuid4().hex[:12]
        subscription = Subscription(subscriber_id, connection)
        self._subscriptions[subscriber_id] = subscription
        logger.info(f"✓ Staff connected: {subscriber_id} ({self.subscriber_count} online)")

        try:
            orders = await load_snapshot()
        except Exception:
            self.unsubscribe(subscriber_id)
            raise

        delivered = await self._send(subscription, snapshot_message(orders))
        while delivered and subscription.pending:
            delivered = await self._send(subscription, subscription.pending.pop(0))
        subscription.ready = True
        return subscriber_id

    def unsubscribe(self, subscriber_id: str) -> None:
        if self._subscriptions.pop(subscriber_id, None) is not None:
            logger.info(f"✗ Staff disconnected: {subscriber_id} ({self.subscriber_count} online)")

    async def send_snapshot(self, subscriber_id: str, orders: Sequence[OrderRecord]) -> bool:
        """Resend the full order list to one subscriber (``requestOrders``)."""
        subscription = self._subscriptions.get(subscriber_id)
        if subscription is None:
            return False
        return await self._send(subscription, snapshot_message(orders))

    async def publish(self, event: str, data: Any) -> int:
        """Send one event to every subscriber; return how many got it."""
        message = make_message(event, data)
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if not subscription.ready:
                subscription.pending.append(message)
                delivered += 1
            elif await self._send(subscription, message):
                delivered += 1
        logger.debug(f"Broadcast {event} to {delivered} subscriber(s)")
        return delivered

    async def order_created(self, order: OrderRecord) -> int:
        return await self.publish(OrderEvent.NEW_ORDER, order.to_wire())

    async def order_updated(self, order: OrderRecord) -> int:
        return await self.publish(OrderEvent.ORDER_UPDATED, order.to_wire())

    async def order_deleted(self, order_id: int) -> int:
        return await self.publish(OrderEvent.ORDER_DELETED, {"orderId": order_id})

    async def _send(self, subscription: Subscription, message: Dict[str, Any]) -> bool:
        try:
            await subscription.connection.send_json(message)
            return True
        except Exception as e:
            # Transport is gone; the client resyncs from a snapshot on reconnect.
            logger.warning(f"Dropping subscriber {subscription.subscriber_id}: {e}")
            self.unsubscribe(subscription.subscriber_id)
            return False
