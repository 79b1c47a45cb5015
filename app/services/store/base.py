"""
Order Store Abstract Base Class

Defines the interface contract for order persistence. Both the durable
SqlOrderStore and the in-process InMemoryOrderStore implement it, and the
OrderStoreRouter picks one of them for every operation.

Stores are the sole owners of order records: every method returns copies,
so callers can never mutate stored state without going through ``update``.

Author: Khalil Bannouri
Version: 4.0.0
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from app.models import OrderStatus
from app.schemas import OrderRecord


class OrderIdSequence:
    """
    Process-wide high-water mark for issued order ids.

    Stores propose a candidate id (database max + 1, or their own counter)
    and ``claim`` returns the larger of the candidate and the last issued id
    plus one, so ids never go backwards while the process is alive.
    """

    def __init__(self, start: int = 1):
        self._last = start - 1

    @property
    def last_issued(self) -> int:
        return self._last

    def claim(self, candidate: int) -> int:
        order_id = max(candidate, self._last + 1)
        self._last = order_id
        return order_id


class BaseOrderStore(ABC):
    """Abstract base class for order stores."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the store name ("database" or "memory")."""
        pass

    @property
    def is_durable(self) -> bool:
        return False

    @abstractmethod
    async def next_id(self) -> int:
        """Return the next unused order id."""
        pass

    @abstractmethod
    async def create(self, order: OrderRecord) -> OrderRecord:
        """Persist a fully formed order and return the stored copy."""
        pass

    @abstractmethod
    async def find(self, order_id: int) -> Optional[OrderRecord]:
        """Return the order, or None when it does not exist."""
        pass

    @abstractmethod
    async def find_all(self, status: Optional[OrderStatus] = None) -> List[OrderRecord]:
        """Return orders newest first, optionally filtered by status."""
        pass

    @abstractmethod
    async def update(
        self,
        order_id: int,
        status: OrderStatus,
        updated_at: datetime,
    ) -> Optional[OrderRecord]:
        """Set the status of an order; None when it does not exist."""
        pass

    @abstractmethod
    async def delete(self, order_id: int) -> bool:
        """Remove an order; False when it does not exist."""
        pass
