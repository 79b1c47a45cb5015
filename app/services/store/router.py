"""
Order Store Router

Selects the durable or the fallback store for every operation, based on the
database monitor's capability check at the time of the call. Writes made in
one mode are not copied to the other when connectivity changes.

Author: Khalil Bannouri
Version: 4.0.0
"""

import logging
from typing import Optional

from app.core.exceptions import PersistenceError
from app.database import DatabaseMonitor
from app.services.store.base import BaseOrderStore

logger = logging.getLogger(__name__)


class OrderStoreRouter:
    """
    Per-operation store selection.

    Attributes:
        durable: Database-backed store, or None when no database is configured
        fallback: In-process store used whenever the database is unreachable
        monitor: Connectivity tracker for the durable backend
    """

    def __init__(
        self,
        fallback: BaseOrderStore,
        durable: Optional[BaseOrderStore] = None,
        monitor: Optional[DatabaseMonitor] = None,
    ):
        self.fallback = fallback
        self.durable = durable
        self.monitor = monitor
        self._last_mode: Optional[str] = None

    async def is_durable_backend_reachable(self) -> bool:
        if self.durable is None or self.monitor is None:
            return False
        return await self.monitor.is_reachable()

    async def current(self) -> BaseOrderStore:
        """Return the store that should serve the next operation."""
        store = self.durable if await self.is_durable_backend_reachable() else self.fallback
        if store.provider_name != self._last_mode:
            if self._last_mode is not None:
                logger.warning(f"Order store switched: {self._last_mode} → {store.provider_name}")
            self._last_mode = store.provider_name
        return store

    @property
    def mode(self) -> str:
        """Mode used by the most recent operation ("database" or "memory")."""
        if self._last_mode is not None:
            return self._last_mode
        return self.fallback.provider_name

    def report_failure(self, store: BaseOrderStore, error: PersistenceError) -> None:
        """Degrade to the fallback store after a connectivity failure."""
        if store is self.durable and error.backend_unavailable and self.monitor is not None:
            self.monitor.mark_unreachable(error.message)
