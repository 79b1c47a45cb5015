"""
In-Memory Order Store

Fallback store used while the database is unreachable. Orders live in a
plain list for the lifetime of the process; nothing is migrated to or from
the database when connectivity changes.

Author: Khalil Bannouri
Version: 4.0.0
"""

import logging
from datetime import datetime
from typing import List, Optional

from app.models import OrderStatus
from app.schemas import OrderRecord
from app.services.store.base import BaseOrderStore, OrderIdSequence

logger = logging.getLogger(__name__)


def _newest_first(order: OrderRecord):
    return (order.created_at, order.order_id)


class InMemoryOrderStore(BaseOrderStore):
    """
    Process-local order store.

    Attributes:
        sequence: Shared id high-water mark
    """

    def __init__(self, sequence: Optional[OrderIdSequence] = None):
        self.sequence = sequence or OrderIdSequence()
        self._orders: List[OrderRecord] = []
        self._counter = 1
        logger.info("InMemoryOrderStore initialized")

    @property
    def provider_name(self) -> str:
        return "memory"

    def __len__(self) -> int:
        return len(self._orders)

    def _index_of(self, order_id: int) -> Optional[int]:
        for index, order in enumerate(self._orders):
            if order.order_id == order_id:
                return index
        return None

    async def next_id(self) -> int:
        order_id = self.sequence.claim(self._counter)
        self._counter = order_id + 1
        return order_id

    async def create(self, order: OrderRecord) -> OrderRecord:
        self._orders.append(order.model_copy(deep=True))
        return order.model_copy(deep=True)

    async def find(self, order_id: int) -> Optional[OrderRecord]:
        index = self._index_of(order_id)
        if index is None:
            return None
        return self._orders[index].model_copy(deep=True)

    async def find_all(self, status: Optional[OrderStatus] = None) -> List[OrderRecord]:
        orders = [o for o in self._orders if status is None or o.status == status]
        orders.sort(key=_newest_first, reverse=True)
        return [o.model_copy(deep=True) for o in orders]

    async def update(
        self,
        order_id: int,
        status: OrderStatus,
        updated_at: datetime,
    ) -> Optional[OrderRecord]:
        index = self._index_of(order_id)
        if index is None:
            return None
        stored = self._orders[index]
        stored.status = status
        stored.updated_at = updated_at
        return stored.model_copy(deep=True)

    async def delete(self, order_id: int) -> bool:
        index = self._index_of(order_id)
        if index is None:
            return False
        del self._orders[index]
        return True
