"""
Base Store Interface

Abstract persistence layer for every entity the restaurant backend keeps.
Business logic talks only to this interface; the memory and SQL backends
are interchangeable behind ``get_store()``.

Contract:
    - Reads return pydantic entities (never ORM rows or raw dicts).
    - Lookups of a missing id return None; deletes return False.
    - ``create_order`` persists the order and all of its lines as a single
      step. Either everything is stored or nothing is.
    - Identifiers are assigned by the store, increase monotonically and are
      never reused.
    - Uniqueness violations (username, email, category name) raise
      ``ValidationError``.

Author: Your Name
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

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


# Fields each update_* method may change. Prices and totals of a placed
# order are fixed at submission.
ORDER_MUTABLE_FIELDS = frozenset({"status", "payment_completed", "payment_id"})
RESERVATION_MUTABLE_FIELDS = frozenset(
    {"date", "party_size", "full_name", "email", "phone", "special_requests", "status"}
)
MENU_ITEM_MUTABLE_FIELDS = frozenset(
    {"name", "description", "price", "image_url", "category_id", "available"}
)
SETTINGS_MUTABLE_FIELDS = frozenset({"name", "logo_url", "primary_color", "theme_settings"})
LOCATION_MUTABLE_FIELDS = frozenset({"name", "address", "phone", "opening_hours"})


def check_changes(entity: str, changes: dict[str, Any], allowed: frozenset) -> dict[str, Any]:
    """Reject updates touching fields outside ``allowed``."""
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise ValueError(f"Cannot update {entity} field(s): {', '.join(unknown)}")
    return changes


class BaseStore(ABC):
    """
    Abstract base class for storage backends.

    Implementations:
        - MemoryStore: process-local dictionaries (development, tests)
        - SqlStore: SQLAlchemy async engine (PostgreSQL in production)
    """

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def initialize(self) -> None:
        """Prepare the backend (create tables, seed data)."""
        pass

    async def close(self) -> None:
        """Release connections."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True when the backend can serve requests."""
        pass

    @property
    def backend_name(self) -> str:
        return self.__class__.__name__

    # =========================================================================
    # USERS
    # =========================================================================

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Case-insensitive lookup."""
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive lookup."""
        pass

    @abstractmethod
    async def create_user(
        self,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        phone: Optional[str] = None,
        role: UserRole = UserRole.CUSTOMER,
    ) -> User:
        pass

    @abstractmethod
    async def list_users(self) -> list[User]:
        pass

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    @abstractmethod
    async def get_category(self, category_id: int) -> Optional[Category]:
        pass

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        pass

    @abstractmethod
    async def create_category(self, name: str) -> Category:
        pass

    @abstractmethod
    async def update_category(self, category_id: int, name: str) -> Optional[Category]:
        pass

    @abstractmethod
    async def delete_category(self, category_id: int) -> bool:
        """Delete a category. Raises ValidationError while items still use it."""
        pass

    # =========================================================================
    # MENU ITEMS
    # =========================================================================

    @abstractmethod
    async def get_menu_item(self, item_id: int) -> Optional[MenuItem]:
        pass

    @abstractmethod
    async def list_menu_items(self) -> list[MenuItem]:
        pass

    @abstractmethod
    async def list_menu_items_by_category(self, category_id: int) -> list[MenuItem]:
        pass

    @abstractmethod
    async def create_menu_item(self, data: MenuItemCreate) -> MenuItem:
        pass

    @abstractmethod
    async def update_menu_item(self, item_id: int, changes: dict[str, Any]) -> Optional[MenuItem]:
        pass

    @abstractmethod
    async def delete_menu_item(self, item_id: int) -> bool:
        pass

    # =========================================================================
    # ORDERS
    # =========================================================================

    @abstractmethod
    async def get_order(self, order_id: int) -> Optional[Order]:
        pass

    @abstractmethod
    async def list_orders(self) -> list[Order]:
        """All orders, newest first."""
        pass

    @abstractmethod
    async def list_orders_by_user(self, user_id: int) -> list[Order]:
        """A user's orders, newest first."""
        pass

    @abstractmethod
    async def list_active_orders(self) -> list[Order]:
        """Orders that are neither completed nor cancelled, newest first."""
        pass

    @abstractmethod
    async def create_order(self, order: NewOrder, lines: list[NewOrderLine]) -> Order:
        """Persist an order together with its lines, atomically."""
        pass

    @abstractmethod
    async def update_order(self, order_id: int, changes: dict[str, Any]) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_order_lines(self, order_id: int) -> list[OrderLine]:
        pass

    # =========================================================================
    # RESERVATIONS
    # =========================================================================

    @abstractmethod
    async def get_reservation(self, reservation_id: int) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def list_reservations(self) -> list[Reservation]:
        """All reservations, soonest first."""
        pass

    @abstractmethod
    async def list_reservations_by_user(self, user_id: int) -> list[Reservation]:
        pass

    @abstractmethod
    async def list_active_reservations(self) -> list[Reservation]:
        pass

    @abstractmethod
    async def create_reservation(self, data: NewReservation) -> Reservation:
        pass

    @abstractmethod
    async def update_reservation(
        self, reservation_id: int, changes: dict[str, Any]
    ) -> Optional[Reservation]:
        pass

    # =========================================================================
    # RESTAURANT SETTINGS
    # =========================================================================

    @abstractmethod
    async def get_restaurant_settings(self) -> Optional[RestaurantSettings]:
        pass

    @abstractmethod
    async def update_restaurant_settings(self, changes: dict[str, Any]) -> RestaurantSettings:
        """Update the single settings record, creating it if needed."""
        pass

    # =========================================================================
    # LOCATIONS
    # =========================================================================

    @abstractmethod
    async def get_location(self, location_id: int) -> Optional[Location]:
        pass

    @abstractmethod
    async def list_locations(self) -> list[Location]:
        pass

    @abstractmethod
    async def create_location(self, data: LocationCreate) -> Location:
        pass

    @abstractmethod
    async def update_location(self, location_id: int, changes: dict[str, Any]) -> Optional[Location]:
        pass

    @abstractmethod
    async def delete_location(self, location_id: int) -> bool:
        pass
