"""
Pydantic Schemas for Entities, Requests and Responses

Every entity the store hands out and every body the API accepts is a
pydantic model. Models serialize with camelCase aliases so the HTTP and
WebSocket payloads keep the shape dashboard clients already consume
(``deliveryMethod``, ``menuItemId``, ...), while Python code uses
snake_case attributes.

Money is carried as ``Decimal`` and emitted as a JSON number.

Author: Your Name
Version: 1.0.0
"""

import re
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


CENTS = Decimal("0.01")

Money = Annotated[
    Decimal,
    Field(ge=0),
    PlainSerializer(float, return_type=float, when_used="json"),
]

EMAIL_PATTERN = re.compile(r"^[\w\.\+-]+@[\w\.-]+\.\w+$")


def quantize_money(value: Decimal) -> Decimal:
    """Round a monetary amount to cents, half up."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def as_utc(value: datetime) -> datetime:
    """Normalize to UTC; naive datetimes are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _check_email(v: str) -> str:
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email format")
    return v


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class DeliveryMethod(str, Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class PaymentMethod(str, Enum):
    CASH = "cash"
    PAYPAL = "paypal"


class OrderStatus(str, Enum):
    """Order status workflow."""
    PENDING = "pending"
    PROCESSING = "processing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})
TERMINAL_RESERVATION_STATUSES = frozenset(
    {ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}
)


class CamelModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# USERS & IDENTITY
# =============================================================================

class User(CamelModel):
    id: int
    username: str
    email: str
    full_name: str
    phone: Optional[str] = None
    role: UserRole = UserRole.CUSTOMER
    password_hash: str = Field(default="", exclude=True, repr=False)


class Identity(CamelModel):
    """The authenticated caller, as seen by services."""
    user_id: int
    username: str
    role: UserRole = UserRole.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(user_id=user.id, username=user.username, role=user.role)


class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=128)
    email: str = Field(..., max_length=255)
    full_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _check_email(v)


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthStatusResponse(CamelModel):
    authenticated: bool
    user: Optional[User] = None


# =============================================================================
# MENU
# =============================================================================

class Category(CamelModel):
    id: int
    name: str


class CategoryWrite(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)


class MenuItem(CamelModel):
    id: int
    name: str
    description: str = ""
    price: Money
    image_url: Optional[str] = None
    category_id: int
    available: bool = True


class MenuItemCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)
    price: Money
    image_url: Optional[str] = Field(None, max_length=500)
    category_id: int
    available: bool = True


class MenuItemUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[Money] = None
    image_url: Optional[str] = Field(None, max_length=500)
    category_id: Optional[int] = None
    available: Optional[bool] = None


# =============================================================================
# ORDERS
# =============================================================================

class OrderLine(CamelModel):
    """A line of a placed order; ``price`` is the unit price at submission."""
    model_config = ConfigDict(frozen=True)

    id: int
    order_id: int
    menu_item_id: int
    name: str = ""
    quantity: int = Field(..., ge=1)
    price: Money


class Order(CamelModel):
    id: int
    user_id: int
    status: OrderStatus = OrderStatus.PENDING
    subtotal: Money
    delivery_fee: Money
    tax: Money
    total: Money
    delivery_method: DeliveryMethod
    delivery_address: Optional[str] = None
    payment_method: PaymentMethod
    payment_completed: bool = False
    payment_id: Optional[str] = None
    created_at: datetime
    items: list[OrderLine] = Field(default_factory=list)

    @field_validator("created_at")
    @classmethod
    def utc_created_at(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def is_active(self) -> bool:
        return self.status not in TERMINAL_ORDER_STATUSES


class OrderLineCreate(CamelModel):
    """
    One requested line. ``price`` is accepted for client compatibility;
    the unit price is always taken from the menu at submission time.
    """
    menu_item_id: int
    quantity: int = Field(..., ge=1)
    price: Optional[Money] = None


class OrderCreate(CamelModel):
    """Request schema for submitting an order."""
    delivery_method: DeliveryMethod = DeliveryMethod.DELIVERY
    payment_method: PaymentMethod = PaymentMethod.CASH
    delivery_address: Optional[str] = Field(None, max_length=255)
    items: list[OrderLineCreate] = Field(default_factory=list)
    status: OrderStatus = OrderStatus.PENDING

    @field_validator("delivery_address")
    @classmethod
    def strip_address(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None

    @field_validator("status")
    @classmethod
    def only_pending(cls, v: OrderStatus) -> OrderStatus:
        if v != OrderStatus.PENDING:
            raise ValueError("New orders must start as pending")
        return v


class OrderUpdate(CamelModel):
    """Partial order update: a status change and/or a completed payment."""
    model_config = ConfigDict(extra="forbid")

    status: Optional[OrderStatus] = None
    payment_completed: Optional[bool] = None
    payment_id: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def require_change(self) -> "OrderUpdate":
        if self.status is None and self.payment_completed is None and self.payment_id is None:
            raise ValueError("Nothing to update")
        if self.payment_completed is False:
            raise ValueError("A completed payment cannot be reverted")
        return self


class NewOrderLine(CamelModel):
    menu_item_id: int
    name: str
    quantity: int = Field(..., ge=1)
    price: Money


class NewOrder(CamelModel):
    """Fields of an order about to be persisted (no id, no timestamp yet)."""
    user_id: int
    status: OrderStatus = OrderStatus.PENDING
    subtotal: Money
    delivery_fee: Money
    tax: Money
    total: Money
    delivery_method: DeliveryMethod
    delivery_address: Optional[str] = None
    payment_method: PaymentMethod
    payment_completed: bool = False
    payment_id: Optional[str] = None


# =============================================================================
# RESERVATIONS
# =============================================================================

class Reservation(CamelModel):
    id: int
    user_id: int
    date: datetime
    party_size: int = Field(..., ge=1)
    full_name: str
    email: str
    phone: str
    special_requests: Optional[str] = None
    status: ReservationStatus = ReservationStatus.PENDING

    @field_validator("date")
    @classmethod
    def utc_date(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def is_active(self) -> bool:
        return self.status not in TERMINAL_RESERVATION_STATUSES


class ReservationCreate(CamelModel):
    date: datetime
    party_size: int = Field(..., ge=1, le=50)
    full_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=255)
    phone: str = Field(..., min_length=1, max_length=20)
    special_requests: Optional[str] = Field(None, max_length=500)

    @field_validator("date")
    @classmethod
    def utc_date(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _check_email(v)


class ReservationUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    date: Optional[datetime] = None
    party_size: Optional[int] = Field(None, ge=1, le=50)
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, min_length=1, max_length=20)
    special_requests: Optional[str] = Field(None, max_length=500)
    status: Optional[ReservationStatus] = None

    @field_validator("date")
    @classmethod
    def utc_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_email(v)


class NewReservation(ReservationCreate):
    user_id: int
    status: ReservationStatus = ReservationStatus.PENDING


# =============================================================================
# RESTAURANT SETTINGS & LOCATIONS
# =============================================================================

class RestaurantSettings(CamelModel):
    id: int
    name: str
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    theme_settings: dict[str, Any] = Field(default_factory=dict)


class RestaurantSettingsUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    logo_url: Optional[str] = Field(None, max_length=500)
    primary_color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    theme_settings: Optional[dict[str, Any]] = None


class Location(CamelModel):
    id: int
    name: str
    address: str
    phone: str
    opening_hours: str


class LocationCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=1, max_length=20)
    opening_hours: str = Field(..., min_length=1, max_length=100)


class LocationUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, min_length=1, max_length=20)
    opening_hours: Optional[str] = Field(None, min_length=1, max_length=100)


# =============================================================================
# PAYMENTS (PayPal pass-through)
# =============================================================================

class PaypalOrderRequest(CamelModel):
    amount: Money
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    order_id: Optional[int] = None

    @field_validator("amount")
    @classmethod
    def positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Amount must be greater than 0")
        return v


class PaypalOrderResponse(CamelModel):
    id: str
    status: str
    approve_url: Optional[str] = None


class PaypalCaptureResponse(CamelModel):
    id: str
    status: str
    capture_id: Optional[str] = None
    amount: Optional[Money] = None


class PaypalSetupResponse(CamelModel):
    client_token: Optional[str] = None
    client_id: Optional[str] = None
    currency: str
    provider: str


# =============================================================================
# GENERIC RESPONSES
# =============================================================================

class MessageResponse(CamelModel):
    message: str


class ErrorResponse(CamelModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[Any] = None


class HealthResponse(CamelModel):
    """Health check response."""
    status: str
    store: str
    redis: str
    payment_service: str
    live_connections: int
    timestamp: datetime


class DashboardData(CamelModel):
    total_orders: int
    active_orders: int
    total_revenue: Money
    today_revenue: Money
    reservations_today: int
    active_reservations: int
    live_connections: int
    environment: str
    recent_orders: list[Order]


class ReportQueuedResponse(CamelModel):
    task_id: str
    orders: int
