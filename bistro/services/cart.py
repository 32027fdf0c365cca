"""
Cart Engine

A customer's not-yet-submitted basket: menu selections plus delivery and
payment preferences. The cart is a plain object owned by whoever drives
the checkout (a UI session, a script, a test). Every mutation is written
through a ``CartStorage`` as JSON under a fixed key, so a cart survives
a process restart.

Lines are unique by menu item id; adding an item that is already in the
cart bumps its quantity instead of appending a line.

Usage:
    storage = JsonFileCartStorage("data/carts")
    cart = Cart(storage=storage)
    cart.add_item(menu_item)
    cart.set_delivery_method("pickup")
    print(cart.total)

Author: Your Name
Version: 1.0.0
"""

import logging
import os
from abc import ABC, abstractmethod
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

from filelock import FileLock
from pydantic import Field, ValidationError as PydanticValidationError

from bistro.schemas import (
    CamelModel,
    DeliveryMethod,
    MenuItem,
    OrderCreate,
    OrderLineCreate,
    PaymentMethod,
)
from bistro.services.pricing import (
    PriceBreakdown,
    PricingRules,
    calculate_totals,
    line_subtotal,
)

logger = logging.getLogger(__name__)


# =============================================================================
# STATE
# =============================================================================

class CartLine(CamelModel):
    menu_item: MenuItem
    quantity: int = Field(..., ge=1)


class CartState(CamelModel):
    """Persisted shape of a cart."""
    items: list[CartLine] = Field(default_factory=list)
    delivery_method: DeliveryMethod = DeliveryMethod.DELIVERY
    payment_method: PaymentMethod = PaymentMethod.CASH
    delivery_address: str = ""


# =============================================================================
# STORAGE
# =============================================================================

class CartStorage(ABC):
    """Key/value persistence for serialized carts."""

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """Return the stored JSON for ``key``, or None."""
        pass

    @abstractmethod
    def save(self, key: str, payload: str) -> None:
        pass


class MemoryCartStorage(CartStorage):
    """Process-local storage, mostly for tests and scripts."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def load(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def save(self, key: str, payload: str) -> None:
        self._data[key] = payload


class JsonFileCartStorage(CartStorage):
    """
    One JSON file per key under ``directory``.

    Writes go to a temporary file that replaces the target, under a file
    lock, so a reader never sees a half-written cart.
    """

    def __init__(self, directory: Union[str, Path], lock_timeout: int = 30):
        self.directory = Path(directory)
        self.lock_timeout = lock_timeout

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _lock(self, key: str) -> FileLock:
        return FileLock(str(self.directory / f"{key}.json.lock"), timeout=self.lock_timeout)

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        with self._lock(key):
            return path.read_text(encoding="utf-8")

    def save(self, key: str, payload: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        with self._lock(key):
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, path)


# =============================================================================
# CART
# =============================================================================

class Cart:
    """
    Shopping cart with write-through persistence.

    Args:
        storage: Where the cart is persisted (defaults to memory)
        rules: Pricing rules (defaults to application settings)
        key: Storage key the cart lives under
    """

    def __init__(
        self,
        storage: Optional[CartStorage] = None,
        rules: Optional[PricingRules] = None,
        key: str = "cart",
    ):
        self._storage = storage or MemoryCartStorage()
        self._rules = rules or PricingRules.from_settings()
        self._key = key
        self._state = self._load()
        self._breakdown = self._price()

    @classmethod
    def from_json(
        cls,
        payload: str,
        storage: Optional[CartStorage] = None,
        rules: Optional[PricingRules] = None,
        key: str = "cart",
    ) -> "Cart":
        """Build a cart from its serialized form and persist it under ``key``."""
        storage = storage or MemoryCartStorage()
        storage.save(key, payload)
        return cls(storage=storage, rules=rules, key=key)

    def _load(self) -> CartState:
        try:
            payload = self._storage.load(self._key)
        except OSError as e:
            logger.error(f"Could not read stored cart '{self._key}': {e}")
            return CartState()

        if not payload:
            return CartState()

        try:
            return CartState.model_validate_json(payload)
        except PydanticValidationError as e:
            logger.error(f"Discarding unreadable cart '{self._key}': {e.error_count()} error(s)")
            return CartState()

    def _price(self) -> PriceBreakdown:
        subtotal = line_subtotal(
            (line.menu_item.price, line.quantity) for line in self._state.items
        )
        return calculate_totals(subtotal, self._state.delivery_method, self._rules)

    def _commit(self) -> None:
        self._breakdown = self._price()
        self._storage.save(self._key, self.to_json())

    def _find(self, menu_item_id: int) -> Optional[CartLine]:
        for line in self._state.items:
            if line.menu_item.id == menu_item_id:
                return line
        return None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add_item(self, menu_item: Union[MenuItem, dict[str, Any]]) -> None:
        if not isinstance(menu_item, MenuItem):
            menu_item = MenuItem.model_validate(menu_item)

        line = self._find(menu_item.id)
        if line is not None:
            line.quantity += 1
        else:
            self._state.items.append(CartLine(menu_item=menu_item, quantity=1))
        self._commit()

    def remove_item(self, menu_item_id: int) -> None:
        if self._find(menu_item_id) is None:
            return
        self._state.items = [
            line for line in self._state.items if line.menu_item.id != menu_item_id
        ]
        self._commit()

    def update_quantity(self, menu_item_id: int, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(menu_item_id)
            return

        line = self._find(menu_item_id)
        if line is None:
            return
        line.quantity = quantity
        self._commit()

    def set_delivery_method(self, method: Union[DeliveryMethod, str]) -> None:
        self._state.delivery_method = DeliveryMethod(method)
        self._commit()

    def set_payment_method(self, method: Union[PaymentMethod, str]) -> None:
        self._state.payment_method = PaymentMethod(method)
        self._commit()

    def set_delivery_address(self, address: str) -> None:
        self._state.delivery_address = address
        self._commit()

    def clear_cart(self) -> None:
        self._state = CartState()
        self._commit()

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def items(self) -> list[CartLine]:
        return [line.model_copy(deep=True) for line in self._state.items]

    @property
    def delivery_method(self) -> DeliveryMethod:
        return self._state.delivery_method

    @property
    def payment_method(self) -> PaymentMethod:
        return self._state.payment_method

    @property
    def delivery_address(self) -> str:
        return self._state.delivery_address

    @property
    def cart_count(self) -> int:
        return sum(line.quantity for line in self._state.items)

    @property
    def is_empty(self) -> bool:
        return not self._state.items

    @property
    def breakdown(self) -> PriceBreakdown:
        return self._breakdown

    @property
    def subtotal(self) -> Decimal:
        return self._breakdown.subtotal

    @property
    def delivery_fee(self) -> Decimal:
        return self._breakdown.delivery_fee

    @property
    def tax(self) -> Decimal:
        return self._breakdown.tax

    @property
    def total(self) -> Decimal:
        return self._breakdown.total

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_json(self) -> str:
        return self._state.model_dump_json(by_alias=True)

    def to_order_draft(self) -> OrderCreate:
        """The ``POST /api/orders`` body for this cart."""
        return OrderCreate(
            delivery_method=self._state.delivery_method,
            payment_method=self._state.payment_method,
            delivery_address=self._state.delivery_address or None,
            items=[
                OrderLineCreate(
                    menu_item_id=line.menu_item.id,
                    quantity=line.quantity,
                    price=line.menu_item.price,
                )
                for line in self._state.items
            ],
        )

    def __repr__(self) -> str:
        return f"<Cart '{self._key}' - {self.cart_count} item(s) - {self.total}>"
