"""
Order Service

Orchestrates every order operation:

    validate (lifecycle) → persist (store router) → notify (broadcast channel)

A broadcast is only sent after the store call succeeded, and exactly one
per successful create, update or delete.

Author: Khalil Bannouri
Version: 4.0.0
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, List, Optional, Sequence

from app.core.config import get_settings
from app.core.exceptions import (
    InvalidStatusError,
    InvalidTransitionError,
    OrderNotFoundError,
    PersistenceError,
)
from app.models import OrderStatus
from app.schemas import OrderItem, OrderRecord
from app.services.broadcast import BroadcastChannel
from app.services.lifecycle import (
    build_order,
    next_status,
    parse_status,
    utcnow,
    validate_submission,
)
from app.services.store import BaseOrderStore, OrderStoreRouter

logger = logging.getLogger(__name__)


class OrderService:
    """
    Public order operations used by the HTTP and WebSocket endpoints.

    Attributes:
        router: Picks the durable or fallback store per operation
        channel: Real-time fan-out to staff dashboards
        clock: Source of ``createdAt`` / ``updatedAt`` timestamps
    """

    def __init__(
        self,
        router: OrderStoreRouter,
        channel: BroadcastChannel,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.router = router
        self.channel = channel
        self.clock = clock
        self.currency = get_settings().currency_symbol

    @asynccontextmanager
    async def _store(self) -> AsyncIterator[BaseOrderStore]:
        store = await self.router.current()
        try:
            yield store
        except PersistenceError as e:
            self.router.report_failure(store, e)
            raise

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def list_orders(self, status: Optional[str] = None) -> List[OrderRecord]:
        """Orders newest first; a status no order can have matches nothing."""
        status_filter = None
        if status is not None:
            try:
                status_filter = parse_status(status)
            except InvalidStatusError:
                return []
        async with self._store() as store:
            return await store.find_all(status_filter)

    async def snapshot(self) -> List[OrderRecord]:
        """Complete current order list, newest first."""
        return await self.list_orders()

    async def get_order(self, order_id: int) -> OrderRecord:
        async with self._store() as store:
            order = await store.find(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def submit_order(self, items: Sequence[OrderItem], total: Optional[float]) -> OrderRecord:
        """Validate, assign an id, persist as pending and announce."""
        validate_submission(items, total)

        async with self._store() as store:
            order_id = await store.next_id()
            order = build_order(order_id, items, total, now=self.clock())
            stored = await store.create(order)

        logger.info(
            f"✓ Order #{stored.order_id} created with {len(stored.items)} items - "
            f"Total: {self.currency}{stored.total}"
        )
        await self.channel.order_created(stored)
        return stored

    async def advance_order(self, order_id: int) -> OrderRecord:
        """Move an order to the next status in the lifecycle."""
        async with self._store() as store:
            current = await store.find(order_id)
            if current is None:
                raise OrderNotFoundError(order_id)

            target = next_status(current.status)
            if target is None:
                raise InvalidTransitionError(order_id, current.status.value)

            updated = await store.update(order_id, target, self.clock())
            if updated is None:
                raise OrderNotFoundError(order_id)

        logger.info(f"✓ Order #{order_id} advanced {current.status.value} → {target.value}")
        await self.channel.order_updated(updated)
        return updated

    async def set_status(self, order_id: int, status: Optional[str]) -> OrderRecord:
        """
        Assign any recognised status directly.

        Administrative correction only; use ``advance_order`` for the normal
        lifecycle.
        """
        target: OrderStatus = parse_status(status)

        async with self._store() as store:
            updated = await store.update(order_id, target, self.clock())
        if updated is None:
            raise OrderNotFoundError(order_id)

        logger.info(f"✓ Order #{order_id} updated to {target.value}")
        await self.channel.order_updated(updated)
        return updated

    async def delete_order(self, order_id: int) -> None:
        async with self._store() as store:
            deleted = await store.delete(order_id)
        if not deleted:
            raise OrderNotFoundError(order_id)

        logger.info(f"✓ Order #{order_id} deleted")
        await self.channel.order_deleted(order_id)
