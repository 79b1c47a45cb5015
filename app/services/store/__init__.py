"""
Order Store Factory

Provides a single entry point for building the order store stack:
SqlOrderStore (durable) + InMemoryOrderStore (fallback) behind an
OrderStoreRouter that picks one of them for every operation.

Usage:
    from app.services.store import build_order_store_router

    router = build_order_store_router(settings)
    await router.monitor.probe()
    store = await router.current()

Author: Khalil Bannouri
Version: 4.0.0
"""

import logging

from app.core.config import Settings
from app.database import DatabaseMonitor, build_engine, build_session_factory
from app.services.store.base import BaseOrderStore, OrderIdSequence
from app.services.store.memory import InMemoryOrderStore
from app.services.store.router import OrderStoreRouter
from app.services.store.sql import SqlOrderStore

logger = logging.getLogger(__name__)


def build_order_store_router(settings: Settings) -> OrderStoreRouter:
    """
    Wire the durable and fallback stores around one shared id sequence.

    The engine is created lazily by SQLAlchemy, so this never touches the
    network; call ``router.monitor.probe()`` to check connectivity.
    """
    engine = build_engine(
        settings.database_url,
        echo=settings.database_echo,
        connect_timeout=settings.database_connect_timeout,
    )
    monitor = DatabaseMonitor(
        engine,
        connect_timeout=settings.database_connect_timeout,
        reprobe_seconds=settings.database_reprobe_seconds,
    )
    sequence = OrderIdSequence()

    logger.debug(f"Order store configured for {engine.url.render_as_string(hide_password=True)}")
    return OrderStoreRouter(
        fallback=InMemoryOrderStore(sequence),
        durable=SqlOrderStore(build_session_factory(engine), sequence),
        monitor=monitor,
    )


__all__ = [
    "build_order_store_router",
    "BaseOrderStore",
    "OrderIdSequence",
    "InMemoryOrderStore",
    "SqlOrderStore",
    "OrderStoreRouter",
]
