"""
Notification Bus

Server-side fan-out of lifecycle events to every live socket connection.

Model:
    - One broadcast channel. Every connection gets every event; clients
      decide what is relevant to them.
    - Best effort, at most once per connection. Nothing is persisted or
      replayed, and nobody acknowledges anything.
    - Each connection owns a FIFO queue drained by a single sender task,
      so one connection sees events in the order ``publish`` was called
      and a slow socket never stalls the others.

The registry is guarded by an ``asyncio.Lock`` and ``publish`` walks a
snapshot of it, so connections may come and go while an event is being
fanned out.

Author: Your Name
Version: 1.0.0
"""

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from starlette.websockets import WebSocket, WebSocketState

from bistro.services.notifications.events import InboundMessage, NotificationEvent

logger = logging.getLogger(__name__)


# =============================================================================
# SUBSCRIBERS
# =============================================================================

class Subscriber(ABC):
    """Anything the bus can push text frames to."""

    @property
    @abstractmethod
    def is_writable(self) -> bool:
        pass

    @abstractmethod
    async def send_text(self, payload: str) -> None:
        pass

    @property
    def label(self) -> str:
        return self.__class__.__name__


class WebSocketSubscriber(Subscriber):
    """Adapter for a Starlette/FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket

    @property
    def is_writable(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, payload: str) -> None:
        await self._websocket.send_text(payload)

    @property
    def label(self) -> str:
        client = self._websocket.client
        if client is None:
            return "websocket"
        return f"{client.host}:{client.port}"


@dataclass(eq=False)
class Connection:
    """A registered subscriber and its outbound queue."""
    id: int
    subscriber: Subscriber
    queue: asyncio.Queue
    sender: Optional[asyncio.Task] = None
    closed: bool = False
    sent: int = field(default=0)

    def __repr__(self) -> str:
        return f"<Connection #{self.id} {self.subscriber.label}>"


# =============================================================================
# BUS
# =============================================================================

class NotificationBus:
    """
    Broadcast registry of live connections.

    Args:
        send_queue_size: Frames buffered per connection before new events
            are dropped for that connection
    """

    def __init__(self, send_queue_size: int = 100):
        self._send_queue_size = send_queue_size
        self._connections: dict[int, Connection] = {}
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    async def connect(self, subscriber: Subscriber) -> Connection:
        """Register a subscriber and greet it with a ``connection`` frame."""
        connection = Connection(
            id=next(self._ids),
            subscriber=subscriber,
            queue=asyncio.Queue(maxsize=self._send_queue_size),
        )
        async with self._lock:
            self._connections[connection.id] = connection

        connection.sender = asyncio.create_task(
            self._pump(connection),
            name=f"notification-sender-{connection.id}",
        )
        self._enqueue(connection, NotificationEvent.connected().to_json())

        logger.info(f"Socket connected: {connection} ({self.connection_count} live)")
        return connection

    async def disconnect(self, connection: Connection) -> None:
        """Unregister a connection. Frames still queued for it are dropped."""
        await self._unregister(connection)

        sender = connection.sender
        if sender is not None and not sender.done() and sender is not asyncio.current_task():
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)

    async def close(self) -> None:
        """Disconnect everybody (application shutdown)."""
        for connection in list(self._connections.values()):
            await self.disconnect(connection)

    async def _unregister(self, connection: Connection) -> None:
        async with self._lock:
            removed = self._connections.pop(connection.id, None)
        connection.closed = True

        # Release anything still queued so flush() never waits on a dead socket
        while not connection.queue.empty():
            connection.queue.get_nowait()
            connection.queue.task_done()

        if removed is not None:
            logger.info(
                f"Socket disconnected: {connection} after {connection.sent} frame(s) "
                f"({self.connection_count} live)"
            )

    # -------------------------------------------------------------------------
    # Inbound frames
    # -------------------------------------------------------------------------

    async def handle_message(self, connection: Connection, raw: str) -> None:
        """Answer a client frame. Only ``ping`` gets a reply."""
        try:
            message = InboundMessage.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning(f"Ignoring malformed frame from {connection}")
            return

        if message.type == "ping":
            self._enqueue(connection, NotificationEvent.pong().to_json())
        else:
            logger.info(f"Unknown message type from {connection}: {message.type}")

    # -------------------------------------------------------------------------
    # Outbound frames
    # -------------------------------------------------------------------------

    async def publish(self, event: NotificationEvent) -> int:
        """
        Queue ``event`` for every writable connection.

        Returns:
            Number of connections the event was queued for
        """
        payload = event.to_json()
        queued = 0

        for connection in list(self._connections.values()):
            if self._enqueue(connection, payload):
                queued += 1

        logger.debug(f"Published {event.type.value} to {queued} connection(s)")
        return queued

    async def flush(self) -> None:
        """Wait until every queued frame has been handed to its subscriber."""
        connections = list(self._connections.values())
        await asyncio.gather(*(c.queue.join() for c in connections))

    def _enqueue(self, connection: Connection, payload: str) -> bool:
        if connection.closed or not connection.subscriber.is_writable:
            return False
        try:
            connection.queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full, dropping frame for {connection}")
            return False
        return True

    async def _pump(self, connection: Connection) -> None:
        queue = connection.queue
        while True:
            payload = await queue.get()
            failed = False
            try:
                if not connection.closed and connection.subscriber.is_writable:
                    await connection.subscriber.send_text(payload)
                    connection.sent += 1
            except Exception as e:
                logger.warning(f"Send to {connection} failed: {e}")
                failed = True
            finally:
                queue.task_done()

            if failed:
                await self._unregister(connection)
                return
