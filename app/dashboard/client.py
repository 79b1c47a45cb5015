"""
Staff Dashboard Client

Subscribes to the real-time order channel over WebSocket and keeps a
DashboardState mirror up to date. Dropped connections are retried with
exponential backoff; the mirror keeps its last contents while reconnecting
and is replaced by the fresh snapshot the server sends on resubscribe.

Staff actions (advance an order, clear an order) go over the REST API.

Usage:
    from app.dashboard import DashboardClient

    client = DashboardClient()
    task = asyncio.create_task(client.run())
    ...
    await client.advance(order_id=3)
    await client.stop()
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Optional

import httpx
import websockets

from app.core.config import get_settings
from app.core.exceptions import (
    ConnectivityError,
    OrderNotFoundError,
    OrderValidationError,
)
from app.dashboard.state import DashboardState
from app.schemas import OrderRecord
from app.services.broadcast import OrderEvent

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


class DashboardClient:
    """
    Real-time order channel subscriber.

    Attributes:
        ws_url: WebSocket endpoint of the order channel
        api_base_url: Base URL of the orders REST API
        state: Local order mirror
        initial_delay: First reconnect delay in seconds
        max_delay: Cap for the exponential backoff
    """

    def __init__(
        self,
        ws_url: Optional[str] = None,
        api_base_url: Optional[str] = None,
        state: Optional[DashboardState] = None,
        initial_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.ws_url = ws_url or settings.dashboard_ws_url
        self.api_base_url = (api_base_url or settings.api_base_url).rstrip("/")
        self.state = state or DashboardState()
        self.initial_delay = initial_delay or settings.reconnect_initial_delay
        self.max_delay = max_delay or settings.reconnect_max_delay
        # Only close the HTTP client we created; an injected one belongs to the caller
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=self.api_base_url, timeout=10.0)
        self._ws = None
        self._stopped = False
        self.connection_state = ConnectionState.IDLE

    @property
    def is_reconnecting(self) -> bool:
        return self.connection_state == ConnectionState.RECONNECTING

    def backoff_delay(self, attempt: int) -> float:
        """Delay before reconnect attempt ``attempt`` (0-based)."""
        return min(self.max_delay, self.initial_delay * (2 ** attempt))

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state != self.connection_state:
            logger.info(f"Order channel: {self.connection_state.value} → {new_state.value}")
            self.connection_state = new_state

    # =========================================================================
    # CHANNEL
    # =========================================================================

    def handle_frame(self, raw: str) -> None:
        """Queue one channel frame and apply everything pending."""
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning(f"Ignoring non-JSON frame: {raw[:80]!r}")
            return
        if not isinstance(message, dict):
            logger.warning(f"Ignoring unexpected frame: {raw[:80]!r}")
            return
        self.state.post(message)
        self.state.drain()

    async def run(self) -> None:
        """Connect and consume events until ``stop()`` is called."""
        attempt = 0
        self._stopped = False
        self._set_state(ConnectionState.CONNECTING)

        while not self._stopped:
            try:
                async with websockets.connect(self.ws_url, open_timeout=10) as ws:
                    self._ws = ws
                    attempt = 0
                    self._set_state(ConnectionState.CONNECTED)
                    async for raw in ws:
                        self.handle_frame(raw)
            except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
                logger.warning(f"Order channel error: {e}")
            finally:
                self._ws = None

            if self._stopped:
                break

            delay = self.backoff_delay(attempt)
            attempt += 1
            self._set_state(ConnectionState.RECONNECTING)
            logger.info(f"Reconnecting in {delay:.1f}s (attempt {attempt})")
            await asyncio.sleep(delay)

        self._set_state(ConnectionState.STOPPED)

    async def request_orders(self) -> None:
        """Ask the server for a fresh snapshot."""
        if self._ws is None:
            raise ConnectivityError()
        await self._ws.send(json.dumps({"event": OrderEvent.REQUEST_ORDERS}))

    async def stop(self) -> None:
        self._stopped = True
        if self._ws is not None:
            await self._ws.close()
        if self._owns_http:
            await self._http.aclose()

    # =========================================================================
    # STAFF ACTIONS
    # =========================================================================

    async def _call(self, method: str, path: str) -> dict:
        try:
            response = await self._http.request(method, path)
        except httpx.TransportError as e:
            raise ConnectivityError(f"Orders API unreachable: {e}") from e

        if response.status_code == 404:
            raise OrderNotFoundError()
        if response.status_code == 400:
            raise OrderValidationError(response.json().get("message"))
        response.raise_for_status()
        return response.json()

    async def advance(self, order_id: int) -> OrderRecord:
        """Mark an order as its next status ("Mark as Preparing" button)."""
        data = await self._call("POST", f"/api/orders/{order_id}/advance")
        return OrderRecord.model_validate(data["order"])

    async def clear(self, order_id: int) -> None:
        """Delete an order ("Clear Order" button)."""
        await self._call("DELETE", f"/api/orders/{order_id}")
