"""
FastAPI Application Entry Point

OrderDesk - restaurant ordering backend for the customer site and the
admin back-office. Development mode runs entirely on in-memory/file
collaborators; staging and production use PostgreSQL and Redis.

Endpoints:
    - /api/menu/*: Categories, products, featured products
    - /api/cart/*: Session cart (X-Cart-Session header, issued when missing)
    - POST /api/checkout: Place an order from the cart
    - /api/orders/{id}, /api/my/orders: Order lookups
    - /api/auth/*: Sign up, sign in, sign out, current session
    - /api/admin/*: Order transitions, dashboard, reports, customers
    - /ws/admin/orders, /ws/my/orders: Live order lists
    - GET /health: System health check

Version: 1.0.0
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, Query, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from orderdesk.core.config import get_settings, setup_logging
from orderdesk.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    EmptyCartError,
    ExternalServiceError,
    InvalidTransitionError,
    OrderDeskError,
    OrderNotFoundError,
    PartialOrderError,
    ValidationError,
)
from orderdesk.schemas import (
    AcceptOrderRequest,
    AdminOrderListResponse,
    AuthSession,
    CartItemCreate,
    CartResponse,
    Category,
    CheckoutForm,
    CheckoutRequest,
    CustomerStats,
    DashboardStats,
    ErrorResponse,
    HealthResponse,
    LanguagePreference,
    Order,
    OrderTotals,
    OrderType,
    Product,
    RejectOrderRequest,
    SalesReport,
    SignInRequest,
    SignUpRequest,
    UpdateQuantityRequest,
)
from orderdesk.services.auth import BaseAuthProvider, get_auth_provider
from orderdesk.services.cart import CartStore
from orderdesk.services.catalog import MenuCatalog
from orderdesk.services.checkout import OrderSubmissionFlow
from orderdesk.services.order_status import OrderStatusMachine
from orderdesk.services.preferences import LanguagePreferences
from orderdesk.services.realtime import BaseChangeFeed, get_change_feed
from orderdesk.services.realtime_sync import OrderScope, RealtimeSyncAdapter
from orderdesk.services.reports import ReportService, orphaned_order_ids, split_active_completed
from orderdesk.services.storage import BaseKeyValueStorage, get_key_value_storage
from orderdesk.services.store import BaseDataStore, get_data_store
from orderdesk.tasks import export_sales_report

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name} ({settings.restaurant_name})")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    if settings.use_real_services:
        from orderdesk.database import init_db

        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")
        await init_db()
        logger.info("Database initialized")

    store = get_data_store()
    feed = get_change_feed()
    logger.info(f"Data Store: {store.provider_name}")
    logger.info(f"Change Feed: {feed.provider_name}")
    logger.info(f"Client Storage: {get_key_value_storage().provider_name}")
    logger.info(f"Item failure policy: {settings.item_failure_policy.value}")
    logger.info("Application ready!")

    yield

    logger.info("Shutting down...")
    await store.close()
    await feed.close()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant ordering backend: cart, checkout, order lifecycle "
        "and live order views for customers and staff."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Cart-Session"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

CART_SESSION_HEADER = "X-Cart-Session"


def get_cart_session(
    response: Response,
    x_cart_session: Optional[str] = Header(None, alias=CART_SESSION_HEADER),
) -> str:
    """
    Browsing session id from the X-Cart-Session header.

    Requests without one get a fresh id, returned in the same header so
    the client can send it back on its next request.
    """
    session_id = (x_cart_session or "").strip()
    if not session_id:
        session_id = uuid.uuid4().hex
        logger.debug(f"Issued cart session {session_id}")
    response.headers[CART_SESSION_HEADER] = session_id
    return session_id


def get_cart(
    session_id: str = Depends(get_cart_session),
    storage: BaseKeyValueStorage = Depends(get_key_value_storage),
) -> CartStore:
    return CartStore(storage, key=f"{settings.cart_storage_key}:{session_id}")


def get_language_preferences(
    session_id: str = Depends(get_cart_session),
    storage: BaseKeyValueStorage = Depends(get_key_value_storage),
) -> LanguagePreferences:
    return LanguagePreferences(storage, key=f"{settings.language_storage_key}:{session_id}")


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


async def get_optional_session(
    authorization: Optional[str] = Header(None),
    auth: BaseAuthProvider = Depends(get_auth_provider),
) -> Optional[AuthSession]:
    return await auth.get_session(_bearer_token(authorization))


async def require_session(
    session: Optional[AuthSession] = Depends(get_optional_session),
) -> AuthSession:
    if session is None:
        raise AuthenticationError("Please sign in")
    return session


async def require_admin(session: AuthSession = Depends(require_session)) -> AuthSession:
    if not session.is_admin:
        raise AuthorizationError("Admin access required")
    return session


def get_sync_adapter(
    store: BaseDataStore = Depends(get_data_store),
    feed: BaseChangeFeed = Depends(get_change_feed),
) -> RealtimeSyncAdapter:
    return RealtimeSyncAdapter(store, feed)


def _cart_response(cart: CartStore) -> CartResponse:
    return CartResponse(
        items=list(cart.items),
        total_item_count=cart.total_item_count,
        subtotal=cart.subtotal,
    )


def _admin_order_list(orders: list[Order]) -> AdminOrderListResponse:
    active, completed = split_active_completed(orders)
    return AdminOrderListResponse(
        active=active,
        completed=completed,
        orphaned=orphaned_order_ids(orders),
    )


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.restaurant_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    store: BaseDataStore = Depends(get_data_store),
    feed: BaseChangeFeed = Depends(get_change_feed),
    storage: BaseKeyValueStorage = Depends(get_key_value_storage),
) -> HealthResponse:
    """Verify all collaborators are operational."""
    store_status = "healthy" if await store.health_check() else "unhealthy"
    feed_status = "healthy" if await feed.health_check() else "unhealthy"
    storage_status = "healthy" if storage.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in (store_status, feed_status, storage_status)
    ) else "degraded"

    return HealthResponse(
        status=overall,
        data_store=store_status,
        change_feed=feed_status,
        storage=storage_status,
        timestamp=datetime.now(timezone.utc),
    )


# =============================================================================
# MENU ENDPOINTS
# =============================================================================

@app.get("/api/menu/categories", response_model=list[Category], tags=["Menu"])
async def list_categories(store: BaseDataStore = Depends(get_data_store)) -> list[Category]:
    return await MenuCatalog(store).categories()


@app.get("/api/menu/products", response_model=list[Product], tags=["Menu"])
async def list_products(
    category_id: Optional[str] = Query(None),
    store: BaseDataStore = Depends(get_data_store),
) -> list[Product]:
    return await MenuCatalog(store).products(category_id)


@app.get("/api/menu/featured", response_model=list[Product], tags=["Menu"])
async def list_featured(store: BaseDataStore = Depends(get_data_store)) -> list[Product]:
    return await MenuCatalog(store).featured()


# =============================================================================
# CART ENDPOINTS
# =============================================================================

@app.get("/api/cart", response_model=CartResponse, tags=["Cart"])
async def get_cart_contents(cart: CartStore = Depends(get_cart)) -> CartResponse:
    return _cart_response(cart)


@app.get("/api/cart/totals", response_model=OrderTotals, tags=["Cart"])
async def get_cart_totals(
    order_type: OrderType = Query(OrderType.PICKUP),
    cart: CartStore = Depends(get_cart),
) -> OrderTotals:
    """Price preview for pickup or delivery."""
    return cart.totals(order_type)


@app.post("/api/cart/items", response_model=CartResponse, tags=["Cart"])
async def add_cart_item(item: CartItemCreate, cart: CartStore = Depends(get_cart)) -> CartResponse:
    cart.add_item(item)
    return _cart_response(cart)


@app.patch("/api/cart/items/{line_id}", response_model=CartResponse, tags=["Cart"])
async def update_cart_item(
    line_id: str,
    body: UpdateQuantityRequest,
    cart: CartStore = Depends(get_cart),
) -> CartResponse:
    cart.update_quantity(line_id, body.quantity)
    return _cart_response(cart)


@app.delete("/api/cart/items/{line_id}", response_model=CartResponse, tags=["Cart"])
async def remove_cart_item(line_id: str, cart: CartStore = Depends(get_cart)) -> CartResponse:
    cart.remove_item(line_id)
    return _cart_response(cart)


@app.delete("/api/cart", response_model=CartResponse, tags=["Cart"])
async def clear_cart(cart: CartStore = Depends(get_cart)) -> CartResponse:
    cart.clear()
    return _cart_response(cart)


# =============================================================================
# CHECKOUT & ORDER ENDPOINTS
# =============================================================================

@app.post(
    "/api/checkout",
    response_model=Order,
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    tags=["Orders"],
    summary="Place Order",
)
async def checkout(
    body: CheckoutRequest,
    cart: CartStore = Depends(get_cart),
    session: Optional[AuthSession] = Depends(get_optional_session),
    store: BaseDataStore = Depends(get_data_store),
) -> Order:
    """
    Turn the session cart into an order.

    Signed-in customers get the order linked to their account so it
    shows up under /api/my/orders.
    """
    form = CheckoutForm.model_validate(body.model_dump(include=set(CheckoutForm.model_fields)))
    flow = OrderSubmissionFlow(store, settings)
    return await flow.submit(
        cart,
        form,
        body.order_type,
        body.payment_method,
        user_id=session.user_id if session else None,
        estimated_time=body.estimated_time,
    )


@app.get("/api/orders/{order_id}", response_model=Order, tags=["Orders"])
async def get_order(order_id: str, store: BaseDataStore = Depends(get_data_store)) -> Order:
    """Order confirmation lookup."""
    return await MenuCatalog(store).get_order(order_id)


@app.get("/api/my/orders", response_model=list[Order], tags=["Orders"])
async def my_orders(
    session: AuthSession = Depends(require_session),
    adapter: RealtimeSyncAdapter = Depends(get_sync_adapter),
) -> list[Order]:
    return await adapter.fetch_orders(OrderScope.for_customer(session.user_id))


# =============================================================================
# AUTH ENDPOINTS
# =============================================================================

@app.post(
    "/api/auth/signup",
    response_model=AuthSession,
    status_code=201,
    tags=["Auth"],
)
async def sign_up(body: SignUpRequest, auth: BaseAuthProvider = Depends(get_auth_provider)) -> AuthSession:
    return await auth.sign_up(body.email, body.password, body.full_name)


@app.post("/api/auth/signin", response_model=AuthSession, tags=["Auth"])
async def sign_in(body: SignInRequest, auth: BaseAuthProvider = Depends(get_auth_provider)) -> AuthSession:
    return await auth.sign_in(body.email, body.password)


@app.post("/api/auth/signout", tags=["Auth"])
async def sign_out(
    session: AuthSession = Depends(require_session),
    auth: BaseAuthProvider = Depends(get_auth_provider),
) -> dict[str, bool]:
    await auth.sign_out(session.token)
    return {"success": True}


@app.get("/api/auth/me", response_model=AuthSession, tags=["Auth"])
async def current_session(session: AuthSession = Depends(require_session)) -> AuthSession:
    return session


# =============================================================================
# PREFERENCE ENDPOINTS
# =============================================================================

@app.get("/api/preferences/language", response_model=LanguagePreference, tags=["Preferences"])
async def get_language(prefs: LanguagePreferences = Depends(get_language_preferences)) -> LanguagePreference:
    return LanguagePreference(language=prefs.get())


@app.put("/api/preferences/language", response_model=LanguagePreference, tags=["Preferences"])
async def set_language(
    body: LanguagePreference,
    prefs: LanguagePreferences = Depends(get_language_preferences),
) -> LanguagePreference:
    return LanguagePreference(language=prefs.set(body.language))


# =============================================================================
# ADMIN ENDPOINTS
# =============================================================================

@app.get("/api/admin/orders", response_model=AdminOrderListResponse, tags=["Admin"])
async def admin_orders(
    _admin: AuthSession = Depends(require_admin),
    adapter: RealtimeSyncAdapter = Depends(get_sync_adapter),
) -> AdminOrderListResponse:
    """All orders split into active and completed, with orphaned orders flagged."""
    return _admin_order_list(await adapter.fetch_orders(OrderScope.all_orders()))


@app.post("/api/admin/orders/{order_id}/accept", response_model=Order, tags=["Admin"])
async def accept_order(
    order_id: str,
    body: AcceptOrderRequest,
    admin: AuthSession = Depends(require_admin),
    store: BaseDataStore = Depends(get_data_store),
) -> Order:
    logger.info(f"{admin.email} accepting order {order_id}")
    return await OrderStatusMachine(store).accept(order_id, body.delivery_time, body.admin_notes)


@app.post("/api/admin/orders/{order_id}/reject", response_model=Order, tags=["Admin"])
async def reject_order(
    order_id: str,
    body: RejectOrderRequest,
    admin: AuthSession = Depends(require_admin),
    store: BaseDataStore = Depends(get_data_store),
) -> Order:
    logger.info(f"{admin.email} rejecting order {order_id}")
    return await OrderStatusMachine(store).reject(order_id, body.rejection_reason)


@app.post("/api/admin/orders/{order_id}/advance", response_model=Order, tags=["Admin"])
async def advance_order(
    order_id: str,
    _admin: AuthSession = Depends(require_admin),
    store: BaseDataStore = Depends(get_data_store),
) -> Order:
    """Move the order one step; a delivered order is returned unchanged."""
    machine = OrderStatusMachine(store)
    order = await machine.advance(order_id)
    if order is None:
        order = await machine.get_order(order_id)
    return order


@app.get("/api/admin/dashboard", response_model=DashboardStats, tags=["Admin"])
async def admin_dashboard(
    _admin: AuthSession = Depends(require_admin),
    store: BaseDataStore = Depends(get_data_store),
) -> DashboardStats:
    return await ReportService(store).dashboard_stats()


@app.get("/api/admin/reports", response_model=SalesReport, tags=["Admin"])
async def admin_sales_report(
    days: int = Query(7),
    _admin: AuthSession = Depends(require_admin),
    store: BaseDataStore = Depends(get_data_store),
) -> SalesReport:
    return await ReportService(store).sales_report(days)


@app.post("/api/admin/reports/export", status_code=202, tags=["Admin"])
async def admin_export_report(
    days: int = Query(7),
    _admin: AuthSession = Depends(require_admin),
    store: BaseDataStore = Depends(get_data_store),
) -> dict[str, Any]:
    """Queue an Excel export of the sales report."""
    report = await ReportService(store).sales_report(days)
    task = export_sales_report.delay(report.model_dump(mode="json"))
    logger.info(f"Queued {days}-day report export (task {task.id})")
    return {"success": True, "task_id": task.id, "days": days}


@app.get("/api/admin/customers", response_model=list[CustomerStats], tags=["Admin"])
async def admin_customers(
    _admin: AuthSession = Depends(require_admin),
    store: BaseDataStore = Depends(get_data_store),
) -> list[CustomerStats]:
    return await ReportService(store).customer_stats()


# =============================================================================
# WEBSOCKET ENDPOINTS
# =============================================================================

async def _websocket_session(
    websocket: WebSocket,
    token: Optional[str],
    auth: BaseAuthProvider,
) -> Optional[AuthSession]:
    session = await auth.get_session(token)
    if session is None:
        await websocket.close(code=4401)
    return session


async def _hold_open(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected")


@app.websocket("/ws/admin/orders")
async def admin_orders_feed(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    auth: BaseAuthProvider = Depends(get_auth_provider),
    adapter: RealtimeSyncAdapter = Depends(get_sync_adapter),
) -> None:
    """Push the admin order list on connect and after every change."""
    session = await _websocket_session(websocket, token, auth)
    if session is None:
        return
    if not session.is_admin:
        await websocket.close(code=4403)
        return

    await websocket.accept()

    async def send(orders: list[Order]) -> None:
        await websocket.send_json(_admin_order_list(orders).model_dump(mode="json"))

    async with adapter.watch(OrderScope.all_orders(), send):
        await _hold_open(websocket)


@app.websocket("/ws/my/orders")
async def my_orders_feed(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    auth: BaseAuthProvider = Depends(get_auth_provider),
    adapter: RealtimeSyncAdapter = Depends(get_sync_adapter),
) -> None:
    """Push the customer's own orders on connect and after every change."""
    session = await _websocket_session(websocket, token, auth)
    if session is None:
        return

    await websocket.accept()

    async def send(orders: list[Order]) -> None:
        await websocket.send_json({"orders": [order.model_dump(mode="json") for order in orders]})

    async with adapter.watch(OrderScope.for_customer(session.user_id), send):
        await _hold_open(websocket)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

ERROR_STATUS_CODES: list[tuple[type[OrderDeskError], int]] = [
    (EmptyCartError, 400),
    (ValidationError, 422),
    (InvalidTransitionError, 409),
    (OrderNotFoundError, 404),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (PartialOrderError, 502),
    (ExternalServiceError, 503),
]


@app.exception_handler(OrderDeskError)
async def order_desk_exception_handler(request: Request, exc: OrderDeskError) -> JSONResponse:
    """Map application errors to HTTP responses."""
    status_code = next(
        (code for error_cls, code in ERROR_STATUS_CODES if isinstance(exc, error_cls)),
        400,
    )

    if isinstance(exc, ExternalServiceError):
        logger.error(f"{exc.service} unavailable on {request.url.path}: {exc.message}")
        content = ErrorResponse(
            error="Service temporarily unavailable",
            detail="Please try again in a moment",
        )
    elif isinstance(exc, PartialOrderError):
        content = ErrorResponse(error=exc.message, detail=exc.order_number)
    else:
        content = ErrorResponse(error=exc.message, detail=getattr(exc, "field", None))

    return JSONResponse(status_code=status_code, content=content.model_dump())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("orderdesk.main:app", host=settings.api_host, port=settings.api_port, reload=settings.debug)
