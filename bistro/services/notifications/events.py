"""
Notification Event Vocabulary

Frames exchanged on the live notification socket. Outbound frames are
always ``{"type": ..., "data": ...}``; ``data`` is the entity the event is
about, serialized exactly as the REST API would return it.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field


class EventType(str, Enum):
    CONNECTION = "connection"
    PONG = "pong"
    ORDER_CREATED = "order-created"
    ORDER_UPDATED = "order-updated"
    RESERVATION_CREATED = "reservation-created"
    RESERVATION_UPDATED = "reservation-updated"
    MENU_ITEM_CREATED = "menu-item-created"
    MENU_ITEM_UPDATED = "menu-item-updated"
    MENU_ITEM_DELETED = "menu-item-deleted"


class NotificationEvent(BaseModel):
    type: EventType
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def of(cls, event_type: EventType, payload: Union[BaseModel, dict[str, Any]]) -> "NotificationEvent":
        """Build an event from an entity model or a plain dict."""
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json", by_alias=True)
        return cls(type=event_type, data=payload)

    @classmethod
    def connected(cls) -> "NotificationEvent":
        return cls(type=EventType.CONNECTION, data={"status": "connected"})

    @classmethod
    def pong(cls) -> "NotificationEvent":
        return cls(
            type=EventType.PONG,
            data={"time": datetime.now(timezone.utc).isoformat()},
        )

    def to_json(self) -> str:
        return self.model_dump_json()


class InboundMessage(BaseModel):
    """A frame sent by a client. Only ``ping`` is understood."""
    type: str
    data: Any = None
