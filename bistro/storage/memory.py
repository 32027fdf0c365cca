"""
In-Memory Store

Process-local backend used in development and tests. Every mutation is a
single synchronous step with no ``await`` between the read and the write,
so concurrent requests on the event loop can never interleave inside one.
Entities are copied on the way in and out; callers never hold references
into the store.

Author: Your Name
Version: 1.0.0
"""

import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Optional, TypeVar

from pydantic import BaseModel

from bistro.core.errors import ValidationError
from bistro.schemas import (
    Category,
    Location,
    LocationCreate,
    MenuItem,
    MenuItemCreate,
    NewOrder,
    NewOrderLine,
    NewReservation,
    Order,
    OrderLine,
    Reservation,
    RestaurantSettings,
    User,
    UserRole,
)
from bistro.storage.base import (
    LOCATION_MUTABLE_FIELDS,
    MENU_ITEM_MUTABLE_FIELDS,
    ORDER_MUTABLE_FIELDS,
    RESERVATION_MUTABLE_FIELDS,
    SETTINGS_MUTABLE_FIELDS,
    BaseStore,
    check_changes,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _copy(entity: M) -> M:
    return entity.model_copy(deep=True)


def _apply(entity: M, changes: dict[str, Any]) -> M:
    """Validated copy of ``entity`` with ``changes`` applied."""
    data = entity.model_dump()
    data.update(changes)
    return type(entity).model_validate(data)


def _newest_first(orders: list[Order]) -> list[Order]:
    return sorted(orders, key=lambda o: (o.created_at, o.id), reverse=True)


class MemoryStore(BaseStore):
    """Dictionary-backed store. Contents vanish with the process."""

    def __init__(self):
        self._users: dict[int, User] = {}
        self._categories: dict[int, Category] = {}
        self._menu_items: dict[int, MenuItem] = {}
        self._orders: dict[int, Order] = {}
        self._reservations: dict[int, Reservation] = {}
        self._locations: dict[int, Location] = {}
        self._settings: Optional[RestaurantSettings] = None

        self._user_ids = itertools.count(1)
        self._category_ids = itertools.count(1)
        self._menu_item_ids = itertools.count(1)
        self._order_ids = itertools.count(1)
        self._order_line_ids = itertools.count(1)
        self._reservation_ids = itertools.count(1)
        self._location_ids = itertools.count(1)

    @property
    def backend_name(self) -> str:
        return "memory"

    async def health_check(self) -> bool:
        return True

    # =========================================================================
    # USERS
    # =========================================================================

    async def get_user(self, user_id: int) -> Optional[User]:
        user = self._users.get(user_id)
        return _copy(user) if user else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return self._find_user(username=username)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return self._find_user(email=email)

    def _find_user(self, username: Optional[str] = None, email: Optional[str] = None) -> Optional[User]:
        for user in self._users.values():
            if username is not None and user.username.lower() == username.lower():
                return _copy(user)
            if email is not None and user.email.lower() == email.lower():
                return _copy(user)
        return None

    async def create_user(
        self,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        phone: Optional[str] = None,
        role: UserRole = UserRole.CUSTOMER,
    ) -> User:
        if self._find_user(username=username):
            raise ValidationError("Username already exists", details={"username": "Already taken"})
        if self._find_user(email=email):
            raise ValidationError("Email already exists", details={"email": "Already registered"})

        user = User(
            id=next(self._user_ids),
            username=username,
            email=email,
            full_name=full_name,
            phone=phone,
            role=role,
            password_hash=password_hash,
        )
        self._users[user.id] = user
        return _copy(user)

    async def list_users(self) -> list[User]:
        return [_copy(u) for u in self._users.values()]

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def get_category(self, category_id: int) -> Optional[Category]:
        category = self._categories.get(category_id)
        return _copy(category) if category else None

    async def list_categories(self) -> list[Category]:
        return [_copy(c) for c in self._categories.values()]

    def _check_category_name(self, name: str, exclude_id: Optional[int] = None) -> None:
        for category in self._categories.values():
            if category.id != exclude_id and category.name.lower() == name.lower():
                raise ValidationError(
                    "Category already exists", details={"name": "Already exists"}
                )

    async def create_category(self, name: str) -> Category:
        self._check_category_name(name)
        category = Category(id=next(self._category_ids), name=name)
        self._categories[category.id] = category
        return _copy(category)

    async def update_category(self, category_id: int, name: str) -> Optional[Category]:
        if category_id not in self._categories:
            return None
        self._check_category_name(name, exclude_id=category_id)
        category = Category(id=category_id, name=name)
        self._categories[category_id] = category
        return _copy(category)

    async def delete_category(self, category_id: int) -> bool:
        if category_id not in self._categories:
            return False
        if any(item.category_id == category_id for item in self._menu_items.values()):
            raise ValidationError(
                "Category still has menu items",
                details={"categoryId": "Move or delete its menu items first"},
            )
        del self._categories[category_id]
        return True

    # =========================================================================
    # MENU ITEMS
    # =========================================================================

    async def get_menu_item(self, item_id: int) -> Optional[MenuItem]:
        item = self._menu_items.get(item_id)
        return _copy(item) if item else None

    async def list_menu_items(self) -> list[MenuItem]:
        return [_copy(i) for i in self._menu_items.values()]

    async def list_menu_items_by_category(self, category_id: int) -> list[MenuItem]:
        return [_copy(i) for i in self._menu_items.values() if i.category_id == category_id]

    async def create_menu_item(self, data: MenuItemCreate) -> MenuItem:
        item = MenuItem(id=next(self._menu_item_ids), **data.model_dump())
        self._menu_items[item.id] = item
        return _copy(item)

    async def update_menu_item(self, item_id: int, changes: dict[str, Any]) -> Optional[MenuItem]:
        check_changes("menu item", changes, MENU_ITEM_MUTABLE_FIELDS)
        item = self._menu_items.get(item_id)
        if item is None:
            return None
        updated = _apply(item, changes)
        self._menu_items[item_id] = updated
        return _copy(updated)

    async def delete_menu_item(self, item_id: int) -> bool:
        return self._menu_items.pop(item_id, None) is not None

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def get_order(self, order_id: int) -> Optional[Order]:
        order = self._orders.get(order_id)
        return _copy(order) if order else None

    async def list_orders(self) -> list[Order]:
        return _newest_first([_copy(o) for o in self._orders.values()])

    async def list_orders_by_user(self, user_id: int) -> list[Order]:
        return _newest_first([_copy(o) for o in self._orders.values() if o.user_id == user_id])

    async def list_active_orders(self) -> list[Order]:
        return _newest_first([_copy(o) for o in self._orders.values() if o.is_active])

    async def create_order(self, order: NewOrder, lines: list[NewOrderLine]) -> Order:
        order_id = next(self._order_ids)
        created = Order(
            id=order_id,
            created_at=datetime.now(timezone.utc),
            items=[
                OrderLine(id=next(self._order_line_ids), order_id=order_id, **line.model_dump())
                for line in lines
            ],
            **order.model_dump(),
        )
        self._orders[order_id] = created
        logger.debug(f"Stored order #{order_id} with {len(lines)} line(s)")
        return _copy(created)

    async def update_order(self, order_id: int, changes: dict[str, Any]) -> Optional[Order]:
        check_changes("order", changes, ORDER_MUTABLE_FIELDS)
        order = self._orders.get(order_id)
        if order is None:
            return None
        updated = _apply(order, changes)
        self._orders[order_id] = updated
        return _copy(updated)

    async def get_order_lines(self, order_id: int) -> list[OrderLine]:
        order = self._orders.get(order_id)
        return list(order.items) if order else []

    # =========================================================================
    # RESERVATIONS
    # =========================================================================

    async def get_reservation(self, reservation_id: int) -> Optional[Reservation]:
        reservation = self._reservations.get(reservation_id)
        return _copy(reservation) if reservation else None

    async def list_reservations(self) -> list[Reservation]:
        return sorted(
            (_copy(r) for r in self._reservations.values()),
            key=lambda r: (r.date, r.id),
        )

    async def list_reservations_by_user(self, user_id: int) -> list[Reservation]:
        return [r for r in await self.list_reservations() if r.user_id == user_id]

    async def list_active_reservations(self) -> list[Reservation]:
        return [r for r in await self.list_reservations() if r.is_active]

    async def create_reservation(self, data: NewReservation) -> Reservation:
        reservation = Reservation(id=next(self._reservation_ids), **data.model_dump())
        self._reservations[reservation.id] = reservation
        return _copy(reservation)

    async def update_reservation(
        self, reservation_id: int, changes: dict[str, Any]
    ) -> Optional[Reservation]:
        check_changes("reservation", changes, RESERVATION_MUTABLE_FIELDS)
        reservation = self._reservations.get(reservation_id)
        if reservation is None:
            return None
        updated = _apply(reservation, changes)
        self._reservations[reservation_id] = updated
        return _copy(updated)

    # =========================================================================
    # RESTAURANT SETTINGS
    # =========================================================================

    async def get_restaurant_settings(self) -> Optional[RestaurantSettings]:
        return _copy(self._settings) if self._settings else None

    async def update_restaurant_settings(self, changes: dict[str, Any]) -> RestaurantSettings:
        check_changes("settings", changes, SETTINGS_MUTABLE_FIELDS)
        current = self._settings or RestaurantSettings(id=1, name="Restaurant")
        self._settings = _apply(current, changes)
        return _copy(self._settings)

    # =========================================================================
    # LOCATIONS
    # =========================================================================

    async def get_location(self, location_id: int) -> Optional[Location]:
        location = self._locations.get(location_id)
        return _copy(location) if location else None

    async def list_locations(self) -> list[Location]:
        return [_copy(loc) for loc in self._locations.values()]

    async def create_location(self, data: LocationCreate) -> Location:
        location = Location(id=next(self._location_ids), **data.model_dump())
        self._locations[location.id] = location
        return _copy(location)

    async def update_location(self, location_id: int, changes: dict[str, Any]) -> Optional[Location]:
        check_changes("location", changes, LOCATION_MUTABLE_FIELDS)
        location = self._locations.get(location_id)
        if location is None:
            return None
        updated = _apply(location, changes)
        self._locations[location_id] = updated
        return _copy(updated)

    async def delete_location(self, location_id: int) -> bool:
        return self._locations.pop(location_id, None) is not None
