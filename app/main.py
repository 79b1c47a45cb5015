"""
FastAPI Application Entry Point

QR Menu Ordering System - order backend and real-time staff channel.
Orders are persisted in the database when it is reachable and in an
in-process store otherwise.

Endpoints:
    - GET    /api/orders: List orders (newest first)
    - GET    /api/orders/status/{status}: List orders in one status
    - GET    /api/orders/{order_id}: Get one order
    - POST   /api/orders: Submit an order from the menu
    - PATCH  /api/orders/{order_id}/status: Set a status directly (admin)
    - POST   /api/orders/{order_id}/advance: Move to the next status
    - DELETE /api/orders/{order_id}: Clear an order
    - GET    /api/dashboard-data: Dashboard statistics
    - WS     /ws/orders: Real-time order channel for staff
    - GET    /health: System health check

Author: Khalil Bannouri
Version: 4.0.0
"""

import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import Any, Optional
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from app.core.config import Settings, get_settings, setup_logging
from app.core.exceptions import OrderError, PersistenceError
from app.dashboard.state import count_by_status, split_orders
from app.schemas import (
    DashboardDataResponse,
    HealthResponse,
    MessageResponse,
    OrderCreate,
    OrderEnvelope,
    OrderListResponse,
    StatusUpdate,
)
from app.services.broadcast import BroadcastChannel, OrderEvent
from app.services.orders import OrderService
from app.services.store import build_order_store_router

logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    settings: Settings = app.state.settings

    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    router = build_order_store_router(settings)
    if await router.monitor.probe():
        logger.info("✅ Database initialized")
    else:
        logger.warning("⚠️ Running with in-memory order storage")

    app.state.channel = BroadcastChannel()
    app.state.order_service = OrderService(router, app.state.channel)

    issues = settings.validate_production_config()
    if issues:
        logger.warning(f"⚠️ Insecure production config: {issues}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await router.monitor.engine.dispose()
    logger.info("✅ Cleanup complete")


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

root_router = APIRouter()


@root_router.get("/", tags=["Root"])
async def root(request: Request) -> dict[str, str]:
    """API root with navigation links."""
    settings: Settings = request.app.state.settings
    return {
        "message": f"🍽️ Welcome to {settings.restaurant_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "orders": "/api/orders",
        "channel": "/ws/orders",
        "health": "/health",
    }


@root_router.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    service: OrderService = Depends(get_order_service),
) -> HealthResponse:
    """Report database connectivity and which order store is serving."""
    store = await service.router.current()
    monitor = service.router.monitor

    if monitor is not None and monitor.reachable:
        db_status = "healthy"
    else:
        reason = monitor.last_error if monitor is not None else "not configured"
        db_status = f"unhealthy: {reason}"

    return HealthResponse(
        status="operational" if store.is_durable else "degraded",
        database=db_status,
        store_mode=store.provider_name,
        subscribers=service.channel.subscriber_count,
        timestamp=datetime.now(),
    )


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

orders_router = APIRouter(prefix="/api", tags=["Orders"])


@orders_router.get(
    "/orders",
    response_model=OrderListResponse,
    summary="List Orders",
)
async def list_orders(
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """Retrieve every order, newest first."""
    return OrderListResponse(orders=await service.list_orders())


@orders_router.get(
    "/orders/status/{status}",
    response_model=OrderListResponse,
    summary="List Orders by Status",
)
async def list_orders_by_status(
    status: str,
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    return OrderListResponse(orders=await service.list_orders(status))


@orders_router.get(
    "/orders/{order_id}",
    response_model=OrderEnvelope,
    responses={404: {"model": MessageResponse}},
)
async def get_order(
    order_id: int,
    service: OrderService = Depends(get_order_service),
) -> OrderEnvelope:
    """Get a specific order by its order number."""
    return OrderEnvelope(order=await service.get_order(order_id))


@orders_router.post(
    "/orders",
    response_model=OrderEnvelope,
    status_code=201,
    responses={400: {"model": MessageResponse}, 500: {"model": MessageResponse}},
    summary="Submit Order",
)
async def create_order(
    order_data: OrderCreate,
    service: OrderService = Depends(get_order_service),
) -> OrderEnvelope:
    """
    Submit a new order from the menu.

    The order is stored as ``pending`` and pushed to every connected
    staff dashboard.
    """
    order = await service.submit_order(order_data.items, order_data.total)
    return OrderEnvelope(order=order)


@orders_router.patch(
    "/orders/{order_id}/status",
    response_model=OrderEnvelope,
    responses={400: {"model": MessageResponse}, 404: {"model": MessageResponse}},
    summary="Set Order Status (Admin)",
)
async def update_order_status(
    order_id: int,
    update: StatusUpdate,
    service: OrderService = Depends(get_order_service),
) -> OrderEnvelope:
    """Assign any valid status directly, bypassing the lifecycle order."""
    return OrderEnvelope(order=await service.set_status(order_id, update.status))


@orders_router.post(
    "/orders/{order_id}/advance",
    response_model=OrderEnvelope,
    responses={400: {"model": MessageResponse}, 404: {"model": MessageResponse}},
    summary="Advance Order Status",
)
async def advance_order(
    order_id: int,
    service: OrderService = Depends(get_order_service),
) -> OrderEnvelope:
    """Move an order to the next status in the lifecycle."""
    return OrderEnvelope(order=await service.advance_order(order_id))


@orders_router.delete(
    "/orders/{order_id}",
    response_model=MessageResponse,
    responses={404: {"model": MessageResponse}},
)
async def delete_order(
    order_id: int,
    service: OrderService = Depends(get_order_service),
) -> MessageResponse:
    await service.delete_order(order_id)
    return MessageResponse(success=True, message="Order deleted")


# =============================================================================
# DASHBOARD ENDPOINTS
# =============================================================================

@orders_router.get(
    "/dashboard-data",
    response_model=DashboardDataResponse,
    tags=["Dashboard"],
)
async def dashboard_data(
    service: OrderService = Depends(get_order_service),
) -> DashboardDataResponse:
    """Get aggregated dashboard statistics."""
    orders = await service.snapshot()
    active, completed = split_orders(orders)
    return DashboardDataResponse(
        total_orders=len(orders),
        counts=count_by_status(orders),
        active_orders=len(active),
        completed_orders=len(completed),
        store_mode=service.router.mode,
    )


# =============================================================================
# REAL-TIME CHANNEL
# =============================================================================

channel_router = APIRouter()


@channel_router.websocket("/ws/orders")
async def orders_channel(websocket: WebSocket) -> None:
    """
    Real-time order channel for staff dashboards.

    Sends ``loadOrders`` on connect, then every order event. A client may
    send ``{"event": "requestOrders"}`` at any time to resync.
    """
    service: OrderService = websocket.app.state.order_service
    channel: BroadcastChannel = websocket.app.state.channel

    await websocket.accept()
    try:
        subscriber_id = await channel.subscribe(websocket, service.snapshot)
    except PersistenceError as e:
        logger.error(f"Could not load initial orders: {e}")
        await websocket.close(code=1011)
        return

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message: Any = json.loads(raw)
            except ValueError:
                logger.warning(f"Ignoring non-JSON frame from {subscriber_id}")
                continue

            if isinstance(message, dict) and message.get("event") == OrderEvent.REQUEST_ORDERS:
                try:
                    await channel.send_snapshot(subscriber_id, await service.snapshot())
                except PersistenceError as e:
                    logger.error(f"Error sending orders to {subscriber_id}: {e}")
    except WebSocketDisconnect:
        pass
    finally:
        channel.unsubscribe(subscriber_id)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

async def order_error_handler(request: Request, exc: OrderError) -> JSONResponse:
    """Map domain errors to ``{success: false, message}`` responses."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": message},
    )


def make_global_exception_handler(settings: Settings):
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all exception handler."""
        logger.exception(f"Unhandled exception: {exc}")

        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Internal Server Error",
                "detail": str(exc) if settings.debug else "An unexpected error occurred",
            },
        )
    return global_exception_handler


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application for ``settings`` (defaults to the environment)."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Restaurant order backend with a real-time staff channel. "
            "Falls back to in-memory storage when the database is unreachable."
        ),
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(root_router)
    app.include_router(orders_router)
    app.include_router(channel_router)

    app.add_exception_handler(OrderError, order_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, make_global_exception_handler(settings))

    return app


# Initialize configuration and logging
setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.api_host, port=settings.api_port)
