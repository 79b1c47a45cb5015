"""
SQL Order Store

Durable order store on top of SQLAlchemy's async ORM. Each operation runs in
its own session; driver and connectivity failures are converted into
PersistenceError so the router can fall back to the in-memory store.

Author: Khalil Bannouri
Version: 4.0.0
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import PersistenceError
from app.models import Order, OrderStatus
from app.schemas import OrderItem, OrderRecord
from app.services.store.base import BaseOrderStore, OrderIdSequence

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(row: Order) -> OrderRecord:
    return OrderRecord(
        order_id=row.order_id,
        items=[OrderItem.model_validate(item) for item in json.loads(row.items)],
        total=row.total,
        status=row.status,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


class SqlOrderStore(BaseOrderStore):
    """
    Database-backed order store.

    Attributes:
        session_factory: async_sessionmaker bound to the application engine
        sequence: Shared id high-water mark
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sequence: Optional[OrderIdSequence] = None,
    ):
        self.session_factory = session_factory
        self.sequence = sequence or OrderIdSequence()

    @property
    def provider_name(self) -> str:
        return "database"

    @property
    def is_durable(self) -> bool:
        return True

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except IntegrityError as e:
            logger.error(f"Database rejected {action}: {e.orig}")
            raise PersistenceError(
                f"Database rejected {action}",
                backend_unavailable=False,
            ) from e
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Database error during {action}: {e}")
            raise PersistenceError(f"Database error during {action}") from e

    async def _get_row(self, session: AsyncSession, order_id: int) -> Optional[Order]:
        result = await session.execute(select(Order).where(Order.order_id == order_id))
        return result.scalar_one_or_none()

    async def next_id(self) -> int:
        # Read-then-increment: two concurrent writers in different processes
        # can still pick the same id; the unique index rejects the loser.
        async with self._session("next_id") as session:
            result = await session.execute(select(func.max(Order.order_id)))
            highest = result.scalar() or 0
        return self.sequence.claim(highest + 1)

    async def create(self, order: OrderRecord) -> OrderRecord:
        async with self._session(f"create of order #{order.order_id}") as session:
            row = Order(
                order_id=order.order_id,
                items=json.dumps([item.model_dump() for item in order.items]),
                total=order.total,
                status=order.status,
                created_at=order.created_at,
                updated_at=order.updated_at,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return _to_record(row)

    async def find(self, order_id: int) -> Optional[OrderRecord]:
        async with self._session(f"lookup of order #{order_id}") as session:
            row = await self._get_row(session, order_id)
            return _to_record(row) if row else None

    async def find_all(self, status: Optional[OrderStatus] = None) -> List[OrderRecord]:
        query = select(Order).order_by(Order.created_at.desc(), Order.order_id.desc())
        if status is not None:
            query = query.where(Order.status == status)

        async with self._session("order listing") as session:
            result = await session.execute(query)
            return [_to_record(row) for row in result.scalars().all()]

    async def update(
        self,
        order_id: int,
        status: OrderStatus,
        updated_at: datetime,
    ) -> Optional[OrderRecord]:
        async with self._session(f"update of order #{order_id}") as session:
            row = await self._get_row(session, order_id)
            if row is None:
                return None
            row.status = status
            row.updated_at = updated_at
            await session.commit()
            await session.refresh(row)
            return _to_record(row)

    async def delete(self, order_id: int) -> bool:
        async with self._session(f"delete of order #{order_id}") as session:
            row = await self._get_row(session, order_id)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True
