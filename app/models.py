"""
SQLAlchemy Database Models

Persisted layout of a restaurant order:
- Unique index on the public order number
- Composite (status, created_at) index for the filtered dashboard queries

Author: Khalil Bannouri
Version: 4.0.0
"""

import enum

from sqlalchemy import Column, Integer, Float, DateTime, Text, Enum, Index

from app.database import Base


class OrderStatus(str, enum.Enum):
    """Order status workflow, in lifecycle order."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"


class Order(Base):
    """
    Orders table - one row per submitted order.

    ``order_id`` is the number shown to customers and staff; ``id`` is an
    internal surrogate key.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, nullable=False, unique=True, index=True)

    items = Column(Text, nullable=False)  # JSON string of ordered items
    total = Column(Float, nullable=False)

    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
    )

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_orders_status_created_at", "status", "created_at"),
    )

    def __repr__(self):
        return f"<Order #{self.order_id} - {self.status.value} - {self.total}>"
