"""
Notification Bus Factory

Returns the process-wide bus that pushes lifecycle events to connected
dashboards.

Usage:
    from bistro.services.notifications import get_notification_bus

    bus = get_notification_bus()
    await bus.publish(NotificationEvent.of(EventType.ORDER_CREATED, order))

Author: Your Name
Version: 1.0.0
"""

import logging
from functools import lru_cache

from bistro.core.config import get_settings
from bistro.services.notifications.bus import (
    Connection,
    NotificationBus,
    Subscriber,
    WebSocketSubscriber,
)
from bistro.services.notifications.events import (
    EventType,
    InboundMessage,
    NotificationEvent,
)

logger = logging.getLogger(__name__)


@lru_cache()
def get_notification_bus() -> NotificationBus:
    """Get the process-wide notification bus."""
    settings = get_settings()
    logger.info(f"Notification Bus: in-process broadcast (queue={settings.ws_send_queue_size})")
    return NotificationBus(send_queue_size=settings.ws_send_queue_size)


def reset_notification_bus() -> None:
    """Forget the cached bus (tests, reconfiguration)."""
    get_notification_bus.cache_clear()


__all__ = [
    "get_notification_bus",
    "reset_notification_bus",
    "NotificationBus",
    "Connection",
    "Subscriber",
    "WebSocketSubscriber",
    "EventType",
    "InboundMessage",
    "NotificationEvent",
]
