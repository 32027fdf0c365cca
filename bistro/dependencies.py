"""
FastAPI Dependencies

Wires the cached store, bus and settings into per-request service objects
and resolves the caller from the signed session cookie.
"""

import logging
from typing import Any, Mapping, Optional

from fastapi import Request

from bistro.core.config import SocketAuthMode, get_settings
from bistro.schemas import Identity
from bistro.services.auth import AuthService
from bistro.services.menu import MenuService
from bistro.services.notifications import NotificationBus, get_notification_bus
from bistro.services.orders import OrderLifecycleController
from bistro.services.reservations import ReservationService
from bistro.storage import get_store

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "user_id"


def get_bus() -> NotificationBus:
    return get_notification_bus()


def get_auth_service() -> AuthService:
    return AuthService(get_store())


def get_order_controller() -> OrderLifecycleController:
    return OrderLifecycleController(get_store(), get_notification_bus(), get_settings())


def get_reservation_service() -> ReservationService:
    return ReservationService(get_store(), get_notification_bus(), get_settings())


def get_menu_service() -> MenuService:
    return MenuService(get_store(), get_notification_bus())


async def identity_from_session(session: Mapping[str, Any]) -> Optional[Identity]:
    """The logged-in user behind a session, if any."""
    user_id = session.get(SESSION_USER_KEY)
    if not isinstance(user_id, int):
        return None
    return await get_auth_service().identity_for(user_id)


async def get_current_identity(request: Request) -> Optional[Identity]:
    return await identity_from_session(request.session)


def socket_allowed(mode: SocketAuthMode, identity: Optional[Identity]) -> bool:
    """Whether a caller may open the notification socket."""
    if mode == SocketAuthMode.NONE:
        return True
    if mode == SocketAuthMode.AUTHENTICATED:
        return identity is not None
    return identity is not None and identity.is_admin
