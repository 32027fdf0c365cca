"""
SQLAlchemy Database Models

Tables behind SqlStore. Rows are converted to the pydantic entities in
``bistro.schemas`` before they leave the store, so nothing outside
``bistro.storage`` touches these classes.

Money columns are ``Numeric(10, 2)``; order lines carry their own copy of
the menu item's name and price, so menu edits and deletions never rewrite
history.

Author: Your Name
Version: 1.0.0
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from bistro.database import Base
from bistro.schemas import (
    DeliveryMethod,
    OrderStatus,
    PaymentMethod,
    ReservationStatus,
    UserRole,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(Enum(UserRole), default=UserRole.CUSTOMER, nullable=False)
    password_hash = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<User #{self.id} - {self.username} - {self.role.value}>"


class CategoryRow(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)

    def __repr__(self):
        return f"<Category #{self.id} - {self.name}>"


class MenuItemRow(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    available = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.name} - {self.price}>"


class OrderRow(Base):
    """
    Placed order.

    Tracks the lifecycle from submission to completion or cancellation.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # =========================================================================
    # ORDER STATUS
    # =========================================================================
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )

    # =========================================================================
    # PRICING
    # =========================================================================
    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)

    # =========================================================================
    # FULFILMENT
    # =========================================================================
    delivery_method = Column(Enum(DeliveryMethod), nullable=False)
    delivery_address = Column(String(255), nullable=True)

    # =========================================================================
    # PAYMENT INFO
    # =========================================================================
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_completed = Column(Boolean, default=False, nullable=False)
    payment_id = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    items = relationship(
        "OrderLineRow",
        lazy="selectin",
        order_by="OrderLineRow.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Order #{self.id} - {self.delivery_method.value} - {self.status.value}>"


class OrderLineRow(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, nullable=False)
    name = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)


class ReservationRow(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    party_size = Column(Integer, nullable=False)
    full_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    special_requests = Column(Text, nullable=True)
    status = Column(
        Enum(ReservationStatus),
        default=ReservationStatus.PENDING,
        nullable=False,
        index=True
    )

    def __repr__(self):
        return f"<Reservation #{self.id} - {self.full_name} x{self.party_size} - {self.status.value}>"


class RestaurantSettingsRow(Base):
    __tablename__ = "restaurant_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    logo_url = Column(String(500), nullable=True)
    primary_color = Column(String(7), nullable=True)
    theme_settings = Column(JSON, nullable=False, default=dict)


class LocationRow(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    address = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    opening_hours = Column(String(100), nullable=False)
