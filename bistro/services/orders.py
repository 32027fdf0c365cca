"""
Order Lifecycle Controller

Turns a validated cart draft into a persisted order with a frozen price,
enforces the order status workflow and announces every change on the
notification bus.

Status workflow:
    pending ──► processing ──► out_for_delivery ──► completed   (delivery)
       │             │
       │             └──────────────────────────► completed   (pickup)
       │             │
       └─────────────┴──► cancelled

``completed`` and ``cancelled`` are terminal. Administrators may set any
status unless ``enforce_admin_transitions`` is on; customers may only
cancel their own orders, and only along a legal edge.

Usage:
    controller = OrderLifecycleController(store, bus)
    order = await controller.submit(draft, identity)
    await controller.transition(order.id, OrderStatus.PROCESSING, admin)

Author: Your Name
Version: 1.0.0
"""

import logging
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from bistro.core.config import Settings, get_settings
from bistro.core.errors import Forbidden, NotFound, ValidationError
from bistro.schemas import (
    DeliveryMethod,
    Identity,
    NewOrder,
    NewOrderLine,
    Order,
    OrderCreate,
    OrderStatus,
    OrderUpdate,
)
from bistro.services.access import require_admin, require_identity, require_owner_or_admin
from bistro.services.cart import Cart
from bistro.services.notifications import EventType, NotificationBus, NotificationEvent
from bistro.services.pricing import PricingRules, calculate_totals, line_subtotal
from bistro.storage.base import BaseStore

logger = logging.getLogger(__name__)


# =============================================================================
# STATE MACHINE
# =============================================================================

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset(
        {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.COMPLETED, OrderStatus.CANCELLED}
    ),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def allowed_transitions(order: Order) -> frozenset[OrderStatus]:
    """Statuses ``order`` may move to next."""
    edges = ORDER_TRANSITIONS[order.status]
    if order.status == OrderStatus.PROCESSING:
        if order.delivery_method == DeliveryMethod.DELIVERY:
            edges = edges - {OrderStatus.COMPLETED}
        else:
            edges = edges - {OrderStatus.OUT_FOR_DELIVERY}
    return edges


# =============================================================================
# CONTROLLER
# =============================================================================

class OrderLifecycleController:
    """
    Order submission, status changes, payment completion and reads.

    Args:
        store: Persistence backend
        bus: Where order events are published
        settings: Pricing and workflow configuration
    """

    def __init__(
        self,
        store: BaseStore,
        bus: NotificationBus,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.bus = bus
        self.settings = settings or get_settings()
        self.rules = PricingRules.from_settings(self.settings)

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    async def submit(self, draft: OrderCreate, identity: Optional[Identity]) -> Order:
        """
        Validate, price and persist a new order, then announce it.

        Raises:
            AuthenticationRequired: No caller
            ValidationError: Missing address, empty basket, duplicate,
                unknown or unavailable items (all reported together)
        """
        identity = require_identity(identity)

        errors: dict[str, str] = {}
        if draft.delivery_method == DeliveryMethod.DELIVERY and not draft.delivery_address:
            errors["deliveryAddress"] = "Delivery address is required for delivery orders"
        if not draft.items:
            errors["items"] = "Order must contain at least one item"

        lines: list[NewOrderLine] = []
        seen: set[int] = set()
        for index, requested in enumerate(draft.items):
            field = f"items.{index}.menuItemId"
            if requested.menu_item_id in seen:
                errors[field] = "Duplicate menu item"
                continue
            seen.add(requested.menu_item_id)

            item = await self.store.get_menu_item(requested.menu_item_id)
            if item is None:
                errors[field] = f"Menu item {requested.menu_item_id} does not exist"
                continue
            if not item.available:
                errors[field] = f"{item.name} is not available"
                continue

            # Unit price comes from the menu, never from the client
            lines.append(
                NewOrderLine(
                    menu_item_id=item.id,
                    name=item.name,
                    quantity=requested.quantity,
                    price=item.price,
                )
            )

        if errors:
            logger.info(f"Rejected order from user #{identity.user_id}: {sorted(errors)}")
            raise ValidationError("Invalid order", details=errors)

        breakdown = calculate_totals(
            line_subtotal((line.price, line.quantity) for line in lines),
            draft.delivery_method,
            self.rules,
        )

        order = await self.store.create_order(
            NewOrder(
                user_id=identity.user_id,
                status=OrderStatus.PENDING,
                subtotal=breakdown.subtotal,
                delivery_fee=breakdown.delivery_fee,
                tax=breakdown.tax,
                total=breakdown.total,
                delivery_method=draft.delivery_method,
                delivery_address=(
                    draft.delivery_address
                    if draft.delivery_method == DeliveryMethod.DELIVERY
                    else None
                ),
                payment_method=draft.payment_method,
            ),
            lines,
        )

        logger.info(
            f"Order #{order.id} placed by user #{identity.user_id}: "
            f"{len(order.items)} line(s), {order.delivery_method.value}, total {order.total}"
        )
        await self._notify(EventType.ORDER_CREATED, order)
        return order

    async def submit_cart(self, cart: Cart, identity: Optional[Identity]) -> Order:
        """Submit a cart; the cart is cleared only if the order was placed."""
        require_identity(identity)
        try:
            draft = cart.to_order_draft()
        except PydanticValidationError as e:
            raise ValidationError.from_errors(e.errors(), "Invalid order") from e

        order = await self.submit(draft, identity)
        cart.clear_cart()
        return order

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    async def transition(
        self,
        order_id: int,
        status: Union[OrderStatus, str],
        identity: Optional[Identity],
    ) -> Order:
        """Move an order to ``status``."""
        try:
            status = OrderStatus(status)
        except ValueError as e:
            raise ValidationError("Invalid status", details={"status": str(e)}) from e
        return await self.update(order_id, OrderUpdate(status=status), identity)

    async def record_payment(
        self,
        order_id: int,
        payment_id: Optional[str],
        identity: Optional[Identity],
    ) -> Order:
        """Mark an order as paid."""
        return await self.update(
            order_id,
            OrderUpdate(payment_completed=True, payment_id=payment_id),
            identity,
        )

    async def update(
        self,
        order_id: int,
        update: OrderUpdate,
        identity: Optional[Identity],
    ) -> Order:
        """
        Apply a status change and/or payment completion in one step.

        Every check runs before anything is written.
        """
        identity = require_identity(identity)
        order = await self._load(order_id)
        require_owner_or_admin(identity, order.user_id)

        changes: dict = {}

        if update.status is not None:
            self._check_status_change(order, update.status, identity)
            changes["status"] = update.status

        if update.payment_completed or update.payment_id is not None:
            if order.status == OrderStatus.CANCELLED:
                raise ValidationError(
                    "Cannot record a payment on a cancelled order",
                    details={"paymentCompleted": "Order is cancelled"},
                )
            if update.payment_completed:
                changes["payment_completed"] = True
            if update.payment_id is not None:
                changes["payment_id"] = update.payment_id

        updated = await self.store.update_order(order_id, changes)
        if updated is None:
            raise NotFound(f"Order {order_id} not found")

        logger.info(
            f"Order #{order_id} updated by {identity.username}: "
            + ", ".join(f"{k}={getattr(v, 'value', v)}" for k, v in changes.items())
        )
        await self._notify(EventType.ORDER_UPDATED, updated)
        return updated

    def _check_status_change(self, order: Order, target: OrderStatus, identity: Identity) -> None:
        if identity.is_admin:
            if self.settings.enforce_admin_transitions:
                self._check_edge(order, target)
            return

        if target != OrderStatus.CANCELLED:
            raise Forbidden("Only administrators can change the order status")
        self._check_edge(order, target)

    @staticmethod
    def _check_edge(order: Order, target: OrderStatus) -> None:
        if target not in allowed_transitions(order):
            raise ValidationError(
                f"Cannot move order from {order.status.value} to {target.value}",
                details={"status": f"Not allowed from {order.status.value}"},
            )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, order_id: int, identity: Optional[Identity]) -> Order:
        identity = require_identity(identity)
        order = await self._load(order_id)
        require_owner_or_admin(identity, order.user_id)
        return order

    async def list_for_user(self, identity: Optional[Identity]) -> list[Order]:
        identity = require_identity(identity)
        return await self.store.list_orders_by_user(identity.user_id)

    async def list_all(self, identity: Optional[Identity]) -> list[Order]:
        require_admin(identity)
        return await self.store.list_orders()

    async def list_active(self, identity: Optional[Identity]) -> list[Order]:
        require_admin(identity)
        return await self.store.list_active_orders()

    async def list_visible(self, identity: Optional[Identity]) -> list[Order]:
        """Everything for administrators, the caller's own orders otherwise."""
        identity = require_identity(identity)
        if identity.is_admin:
            return await self.store.list_orders()
        return await self.list_for_user(identity)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _load(self, order_id: int) -> Order:
        order = await self.store.get_order(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    async def _notify(self, event_type: EventType, order: Order) -> None:
        try:
            await self.bus.publish(NotificationEvent.of(event_type, order))
        except Exception:
            logger.exception(f"Failed to publish {event_type.value} for order #{order.id}")
