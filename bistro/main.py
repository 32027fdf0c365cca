"""
FastAPI Application Entry Point

Restaurant ordering & reservation backend with live admin notifications.
Supports both Mock services (development) and Real APIs (production).

Endpoints:
    - /api/auth/*: Register, login, logout, session status
    - /api/orders: Submit, update and list orders
    - /api/reservations: Book, update and list reservations
    - /api/categories, /api/menu-items: Menu reads and admin edits
    - /api/settings, /api/locations: Branding and locations
    - /paypal/*: PayPal checkout pass-through
    - /api/dashboard-data: Admin dashboard statistics
    - /api/reports/orders: Queue an Excel export of all orders
    - /ws: Live notification socket
    - /health: System health check

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Optional

import redis.asyncio as aioredis
from fastapi import (
    Depends,
    FastAPI,
    File,
    Request,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from kombu.exceptions import OperationalError as BrokerError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from bistro.core.config import get_settings, setup_logging
from bistro.core.errors import (
    BistroError,
    PaymentProviderError,
    TransientIOError,
    field_errors,
)
from bistro.dependencies import (
    SESSION_USER_KEY,
    get_auth_service,
    get_bus,
    get_current_identity,
    get_menu_service,
    get_order_controller,
    get_reservation_service,
    identity_from_session,
    socket_allowed,
)
from bistro.schemas import (
    AuthStatusResponse,
    Category,
    CategoryWrite,
    DashboardData,
    ErrorResponse,
    HealthResponse,
    Identity,
    Location,
    LocationCreate,
    LocationUpdate,
    LoginRequest,
    MenuItem,
    MenuItemCreate,
    MenuItemUpdate,
    MessageResponse,
    Order,
    OrderCreate,
    OrderStatus,
    OrderUpdate,
    PaypalCaptureResponse,
    PaypalOrderRequest,
    PaypalOrderResponse,
    PaypalSetupResponse,
    RegisterRequest,
    ReportQueuedResponse,
    Reservation,
    ReservationCreate,
    ReservationUpdate,
    RestaurantSettings,
    RestaurantSettingsUpdate,
    User,
)
from bistro.services.access import require_admin
from bistro.services.auth import AuthService
from bistro.services.menu import MenuService
from bistro.services.notifications import (
    NotificationBus,
    WebSocketSubscriber,
    get_notification_bus,
)
from bistro.services.orders import OrderLifecycleController
from bistro.services.payment import get_payment_service
from bistro.services.reservations import ReservationService
from bistro.services.uploads import save_upload
from bistro.storage import get_store, init_store
from bistro.tasks import export_orders_report

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(settings.upload_directory)
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)

# Documented error bodies for the order and reservation routes
WRITE_ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}
READ_ERRORS = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    settings = get_settings()

    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    # Initialize storage
    store = get_store()
    await init_store(store, settings)
    logger.info(f"✅ Store initialized: {store.backend_name}")

    # Log service configuration
    payment_service = get_payment_service()
    logger.info(f"✅ Payment Service: {payment_service.provider_name}")
    logger.info(f"✅ Notification socket auth: {settings.ws_auth_mode.value}")

    # Validate production config
    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await get_notification_bus().close()
    await payment_service.close()
    await store.close()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant ordering and reservation backend with live "
        "notifications for the admin dashboard."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Signed cookie sessions
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    max_age=settings.session_max_age_seconds,
    https_only=settings.session_https_only,
    same_site="lax",
)

app.mount("/uploads", StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    settings = get_settings()
    return {
        "message": f"🍽️ Welcome to {settings.app_name}",
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
async def health_check(bus: NotificationBus = Depends(get_bus)) -> HealthResponse:
    """Verify all system components are operational."""
    settings = get_settings()

    # Check store
    store_status = "healthy" if await get_store().health_check() else "unhealthy"

    # Check Redis
    redis_status = "healthy"
    client = aioredis.from_url(settings.redis_url, socket_timeout=2, socket_connect_timeout=2)
    try:
        await client.ping()
    except Exception as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")
    finally:
        await client.aclose()

    # Check payment service
    payment_service = get_payment_service()
    payment_status = "healthy" if await payment_service.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [store_status, redis_status, payment_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        store=store_status,
        redis=redis_status,
        payment_service=payment_status,
        live_connections=bus.connection_count,
        timestamp=datetime.now(timezone.utc),
    )


# =============================================================================
# AUTH ENDPOINTS
# =============================================================================

@app.post(
    "/api/auth/register",
    response_model=User,
    status_code=status.HTTP_201_CREATED,
    tags=["Auth"],
)
async def register(
    data: RegisterRequest,
    auth: AuthService = Depends(get_auth_service),
) -> User:
    """Create a customer account."""
    return await auth.register(data)


@app.post("/api/auth/login", response_model=User, tags=["Auth"])
async def login(
    data: LoginRequest,
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> User:
    user = await auth.login(data)
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id
    return user


@app.post("/api/auth/logout", response_model=MessageResponse, tags=["Auth"])
async def logout(request: Request) -> MessageResponse:
    request.session.clear()
    return MessageResponse(message="Logged out successfully")


@app.get("/api/auth/status", response_model=AuthStatusResponse, tags=["Auth"])
async def auth_status(
    identity: Optional[Identity] = Depends(get_current_identity),
    auth: AuthService = Depends(get_auth_service),
) -> AuthStatusResponse:
    if identity is None:
        return AuthStatusResponse(authenticated=False)
    return AuthStatusResponse(authenticated=True, user=await auth.get_user(identity))


# =============================================================================
# CATEGORY & MENU ENDPOINTS
# =============================================================================

@app.get("/api/categories", response_model=list[Category], tags=["Menu"])
async def list_categories(menu: MenuService = Depends(get_menu_service)) -> list[Category]:
    return await menu.list_categories()


@app.post(
    "/api/categories",
    response_model=Category,
    status_code=status.HTTP_201_CREATED,
    tags=["Menu"],
)
async def create_category(
    data: CategoryWrite,
    identity: Optional[Identity] = Depends(get_current_identity),
    menu: MenuService = Depends(get_menu_service),
) -> Category:
    return await menu.create_category(data, identity)


@app.put("/api/categories/{category_id}", response_model=Category, tags=["Menu"])
async def update_category(
    category_id: int,
    data: CategoryWrite,
    identity: Optional[Identity] = Depends(get_current_identity),
    menu: MenuService = Depends(get_menu_service),
) -> Category:
    return await menu.update_category(category_id, data, identity)


@app.delete("/api/categories/{category_id}", response_model=MessageResponse, tags=["Menu"])
async def delete_category(
    category_id: int,
    identity: Optional[Identity] = Depends(get_current_identity),
    menu: MenuService = Depends(get_menu_service),
) -> MessageResponse:
    await menu.delete_category(category_id, identity)
    return MessageResponse(message="Category deleted successfully")


@app.get(
    "/api/categories/{category_id}/menu-items",
    response_model=list[MenuItem],
    tags=["Menu"],
)
async def list_category_menu_items(
    category_id: int,
    menu: MenuService = Depends(get_menu_service),
) -> list[MenuItem]:
    return await menu.list_menu_items_by_category(category_id)


@app.get("/api/menu-items", response_model=list[MenuItem], tags=["Menu"])
async def list_menu_items(menu: MenuService = Depends(get_menu_service)) -> list[MenuItem]:
    return await menu.list_menu_items()


@app.get("/api/menu-items/{item_id}", response_model=MenuItem, tags=["Menu"])
async def get_menu_item(
    item_id: int,
    menu: MenuService = Depends(get_menu_service),
) -> MenuItem:
    return await menu.get_menu_item(item_id)


@app.post(
    "/api/menu-items",
    response_model=MenuItem,
    status_code=status.HTTP_201_CREATED,
    tags=["Menu"],
)
async def create_menu_item(
    data: MenuItemCreate,
    identity: Optional[Identity] = Depends(get_current_identity),
    menu: MenuService = Depends(get_menu_service),
) -> MenuItem:
    return await menu.create_menu_item(data, identity)


@app.put("/api/menu-items/{item_id}", response_model=MenuItem, tags=["Menu"])
async def update_menu_item(
    item_id: int,
    data: MenuItemUpdate,
    identity: Optional[Identity] = Depends(get_current_identity),
    menu: MenuService = Depends(get_menu_service),
) -> MenuItem:
    return await menu.update_menu_item(item_id, data, identity)


@app.put("/api/menu-items/{item_id}/image", response_model=MenuItem, tags=["Menu"])
async def upload_menu_item_image(
    item_id: int,
    image: UploadFile = File(...),
    identity: Optional[Identity] = Depends(get_current_identity),
    menu: MenuService = Depends(get_menu_service),
) -> MenuItem:
    require_admin(identity)
    await menu.get_menu_item(item_id)
    url = await save_upload(image, get_settings().upload_directory, "image")
    return await menu.set_menu_item_image(item_id, url, identity)


@app.delete("/api/menu-items/{item_id}", response_model=MessageResponse, tags=["Menu"])
async def delete_menu_item(
    item_id: int,
    identity: Optional[Identity] = Depends(get_current_identity),
    menu: MenuService = Depends(get_menu_service),
) -> MessageResponse:
    await menu.delete_menu_item(item_id, identity)
    return MessageResponse(message="Menu item deleted successfully")


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=Order,
    status_code=status.HTTP_201_CREATED,
    responses=WRITE_ERRORS,
    tags=["Orders"],
    summary="Submit Order",
)
async def create_order(
    draft: OrderCreate,
    identity: Optional[Identity] = Depends(get_current_identity),
    orders: OrderLifecycleController = Depends(get_order_controller),
) -> Order:
    """
    Place an order for the logged-in user.

    Prices come from the current menu; any ``price`` sent per line is
    ignored. The new order is broadcast as ``order-created``.
    """
    return await orders.submit(draft, identity)


@app.get("/api/orders", response_model=list[Order], responses=READ_ERRORS, tags=["Orders"])
async def list_orders(
    identity: Optional[Identity] = Depends(get_current_identity),
    orders: OrderLifecycleController = Depends(get_order_controller),
) -> list[Order]:
    """All orders for administrators, the caller's own otherwise."""
    return await orders.list_visible(identity)


@app.get("/api/orders/active", response_model=list[Order], responses=READ_ERRORS, tags=["Orders"])
async def list_active_orders(
    identity: Optional[Identity] = Depends(get_current_identity),
    orders: OrderLifecycleController = Depends(get_order_controller),
) -> list[Order]:
    return await orders.list_active(identity)


@app.get("/api/orders/{order_id}", response_model=Order, responses=READ_ERRORS, tags=["Orders"])
async def get_order(
    order_id: int,
    identity: Optional[Identity] = Depends(get_current_identity),
    orders: OrderLifecycleController = Depends(get_order_controller),
) -> Order:
    return await orders.get(order_id, identity)


@app.put("/api/orders/{order_id}", response_model=Order, responses=WRITE_ERRORS, tags=["Orders"])
async def update_order(
    order_id: int,
    update: OrderUpdate,
    identity: Optional[Identity] = Depends(get_current_identity),
    orders: OrderLifecycleController = Depends(get_order_controller),
) -> Order:
    """Change status and/or record a completed payment."""
    return await orders.update(order_id, update, identity)


# =============================================================================
# RESERVATION ENDPOINTS
# =============================================================================

@app.post(
    "/api/reservations",
    response_model=Reservation,
    status_code=status.HTTP_201_CREATED,
    responses=WRITE_ERRORS,
    tags=["Reservations"],
)
async def create_reservation(
    data: ReservationCreate,
    identity: Optional[Identity] = Depends(get_current_identity),
    reservations: ReservationService = Depends(get_reservation_service),
) -> Reservation:
    return await reservations.create(data, identity)


@app.get(
    "/api/reservations",
    response_model=list[Reservation],
    responses=READ_ERRORS,
    tags=["Reservations"],
)
async def list_reservations(
    identity: Optional[Identity] = Depends(get_current_identity),
    reservations: ReservationService = Depends(get_reservation_service),
) -> list[Reservation]:
    return await reservations.list_visible(identity)


@app.get(
    "/api/reservations/active",
    response_model=list[Reservation],
    responses=READ_ERRORS,
    tags=["Reservations"],
)
async def list_active_reservations(
    identity: Optional[Identity] = Depends(get_current_identity),
    reservations: ReservationService = Depends(get_reservation_service),
) -> list[Reservation]:
    return await reservations.list_active(identity)


@app.get(
    "/api/reservations/{reservation_id}",
    response_model=Reservation,
    responses=READ_ERRORS,
    tags=["Reservations"],
)
async def get_reservation(
    reservation_id: int,
    identity: Optional[Identity] = Depends(get_current_identity),
    reservations: ReservationService = Depends(get_reservation_service),
) -> Reservation:
    return await reservations.get(reservation_id, identity)


@app.put(
    "/api/reservations/{reservation_id}",
    response_model=Reservation,
    responses=WRITE_ERRORS,
    tags=["Reservations"],
)
async def update_reservation(
    reservation_id: int,
    update: ReservationUpdate,
    identity: Optional[Identity] = Depends(get_current_identity),
    reservations: ReservationService = Depends(get_reservation_service),
) -> Reservation:
    return await reservations.update(reservation_id, update, identity)


# =============================================================================
# SETTINGS & LOCATION ENDPOINTS
# =============================================================================

@app.get("/api/settings", response_model=RestaurantSettings, tags=["Settings"])
async def get_restaurant_settings(
    menu: MenuService = Depends(get_menu_service),
) -> RestaurantSettings:
    return await menu.get_settings()


@app.put("/api/settings", response_model=RestaurantSettings, tags=["Settings"])
async def update_restaurant_settings(
    update: RestaurantSettingsUpdate,
    identity: Optional[Identity] = Depends(get_current_identity),
    menu: MenuService = Depends(get_menu_service),
) -> RestaurantSettings:
    return await menu.update_settings(update, identity)


@app.put("/api/settings/logo", response_model=RestaurantSettings, tags=["Settings"])
async def upload_logo(
    logo: UploadFile = File(...),
    identity: Optional[Identity] = Depends(get_current_identity),
    menu: MenuService = Depends(get_menu_service),
) -> RestaurantSettings:
    require_admin(identity)
    url = await save_upload(logo, get_settings().upload_directory, "logo")
    return await menu.set_logo(url, identity)


@app.get("/api/locations", response_model=list[Location], tags=["Settings"])
async def list_locations(menu: MenuService = Depends(get_menu_service)) -> list[Location]:
    return await menu.list_locations()


@app.get("/api/locations/{location_id}", response_model=Location, tags=["Settings"])
async def get_location(
    location_id: int,
    menu: MenuService = Depends(get_menu_service),
) -> Location:
    return await menu.get_location(location_id)


@app.post(
    "/api/locations",
    response_model=Location,
    status_code=status.HTTP_201_CREATED,
    tags=["Settings"],
)
async def create_location(
    data: LocationCreate,
    identity: Optional[Identity] = Depends(get_current_identity),
    menu: MenuService = Depends(get_menu_service),
) -> Location:
    return await menu.create_location(data, identity)


@app.put("/api/locations/{location_id}", response_model=Location, tags=["Settings"])
async def update_location(
    location_id: int,
    update: LocationUpdate,
    identity: Optional[Identity] = Depends(get_current_identity),
    menu: MenuService = Depends(get_menu_service),
) -> Location:
    return await menu.update_location(location_id, update, identity)


@app.delete("/api/locations/{location_id}", response_model=MessageResponse, tags=["Settings"])
async def delete_location(
    location_id: int,
    identity: Optional[Identity] = Depends(get_current_identity),
    menu: MenuService = Depends(get_menu_service),
) -> MessageResponse:
    await menu.delete_location(location_id, identity)
    return MessageResponse(message="Location deleted successfully")


# =============================================================================
# PAYPAL PASS-THROUGH
# =============================================================================

@app.get("/paypal/setup", response_model=PaypalSetupResponse, tags=["Payments"])
async def paypal_setup() -> PaypalSetupResponse:
    """Client id and token the browser PayPal SDK needs."""
    payment_service = get_payment_service()
    return PaypalSetupResponse(
        client_token=await payment_service.create_client_token(),
        client_id=payment_service.client_id,
        currency=get_settings().payment_currency,
        provider=payment_service.provider_name,
    )


@app.post("/paypal/order", response_model=PaypalOrderResponse, tags=["Payments"])
async def paypal_create_order(data: PaypalOrderRequest) -> PaypalOrderResponse:
    payment_service = get_payment_service()
    result = await payment_service.create_order(
        data.amount,
        currency=(data.currency or get_settings().payment_currency).upper(),
        reference=f"order-{data.order_id}" if data.order_id is not None else None,
    )
    if not result.success:
        raise PaymentProviderError(result.error_message, details={"code": result.error_code})

    return PaypalOrderResponse(
        id=result.provider_order_id,
        status=result.status,
        approve_url=result.approve_url,
    )


@app.post(
    "/paypal/order/{paypal_order_id}/capture",
    response_model=PaypalCaptureResponse,
    tags=["Payments"],
)
async def paypal_capture_order(paypal_order_id: str) -> PaypalCaptureResponse:
    payment_service = get_payment_service()
    result = await payment_service.capture_order(paypal_order_id)
    if not result.success:
        raise PaymentProviderError(result.error_message, details={"code": result.error_code})

    return PaypalCaptureResponse(
        id=result.provider_order_id,
        status=result.status,
        capture_id=result.capture_id,
        amount=result.amount,
    )


# =============================================================================
# DASHBOARD & REPORTS
# =============================================================================

@app.get("/api/dashboard-data", response_model=DashboardData, tags=["Dashboard"])
async def dashboard_data(
    identity: Optional[Identity] = Depends(get_current_identity),
    orders: OrderLifecycleController = Depends(get_order_controller),
    reservations: ReservationService = Depends(get_reservation_service),
    bus: NotificationBus = Depends(get_bus),
) -> DashboardData:
    """Get aggregated dashboard statistics."""
    all_orders = await orders.list_all(identity)
    all_reservations = await reservations.list_all(identity)

    today = datetime.now(timezone.utc).date()
    billable = [o for o in all_orders if o.status != OrderStatus.CANCELLED]

    return DashboardData(
        total_orders=len(all_orders),
        active_orders=sum(1 for o in all_orders if o.is_active),
        total_revenue=sum((o.total for o in billable), Decimal("0")),
        today_revenue=sum(
            (o.total for o in billable if o.created_at.date() == today),
            Decimal("0"),
        ),
        reservations_today=sum(1 for r in all_reservations if r.date.date() == today),
        active_reservations=sum(1 for r in all_reservations if r.is_active),
        live_connections=bus.connection_count,
        environment=get_settings().env_mode.value,
        recent_orders=all_orders[:10],
    )


@app.post(
    "/api/reports/orders",
    response_model=ReportQueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Dashboard"],
)
async def queue_orders_report(
    identity: Optional[Identity] = Depends(get_current_identity),
    orders: OrderLifecycleController = Depends(get_order_controller),
) -> ReportQueuedResponse:
    """Queue an Excel export of every order on the Celery worker."""
    all_orders = await orders.list_all(identity)
    payload = [o.model_dump(mode="json", by_alias=True) for o in all_orders]

    try:
        task = export_orders_report.delay(payload)
    except BrokerError as e:
        logger.error(f"Could not queue report: {e}")
        raise TransientIOError("Task queue unavailable") from e

    logger.info(f"📋 Report task {task.id} queued with {len(payload)} order(s)")
    return ReportQueuedResponse(task_id=task.id, orders=len(payload))


# =============================================================================
# LIVE NOTIFICATIONS
# =============================================================================

@app.websocket("/ws")
async def notifications_socket(websocket: WebSocket) -> None:
    """
    Live event stream for dashboards.

    Clients send ``{"type": "ping"}`` to keep the socket alive; every
    order, reservation and menu change arrives as ``{"type", "data"}``.
    """
    settings = get_settings()
    identity = await identity_from_session(websocket.session)

    if not socket_allowed(settings.ws_auth_mode, identity):
        logger.info(f"Rejected socket ({settings.ws_auth_mode.value} required)")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    bus = get_notification_bus()
    connection = await bus.connect(WebSocketSubscriber(websocket))
    idle_timeout = settings.ws_idle_timeout_seconds or None

    try:
        while True:
            try:
                message = await asyncio.wait_for(websocket.receive(), timeout=idle_timeout)
            except asyncio.TimeoutError:
                logger.info(f"Closing idle socket {connection}")
                await websocket.close(code=status.WS_1000_NORMAL_CLOSURE)
                break

            if message["type"] == "websocket.disconnect":
                break
            if message.get("text") is not None:
                await bus.handle_message(connection, message["text"])
            else:
                logger.info(f"Ignoring binary frame from {connection}")
    except WebSocketDisconnect:
        pass
    finally:
        await bus.disconnect(connection)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(BistroError)
async def bistro_error_handler(request: Request, exc: BistroError) -> JSONResponse:
    """Render expected application errors."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Schema violations are plain 400s with per-field detail."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": "Invalid input",
            "detail": field_errors(exc.errors()),
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail), "detail": None},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if get_settings().debug else "An unexpected error occurred",
        },
    )


# =============================================================================
# DEVELOPMENT SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "bistro.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
