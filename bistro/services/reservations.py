"""
Reservation Service

Table bookings. Follows the same rules as orders: customers see and edit
their own bookings, administrators see and edit everything, and every
change is announced on the notification bus.

Status workflow:
    pending ──► confirmed ──► completed
       │            │
       └────────────┴──► cancelled

Author: Your Name
Version: 1.0.0
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from bistro.core.config import Settings, get_settings
from bistro.core.errors import Forbidden, NotFound, ValidationError
from bistro.schemas import (
    Identity,
    NewReservation,
    Reservation,
    ReservationCreate,
    ReservationStatus,
    ReservationUpdate,
)
from bistro.services.access import require_admin, require_identity, require_owner_or_admin
from bistro.services.notifications import EventType, NotificationBus, NotificationEvent
from bistro.storage.base import BaseStore

logger = logging.getLogger(__name__)


RESERVATION_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset(
        {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.CONFIRMED: frozenset(
        {ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}

# Fields that may be explicitly cleared with null
NULLABLE_FIELDS = frozenset({"special_requests"})


class ReservationService:

    def __init__(
        self,
        store: BaseStore,
        bus: NotificationBus,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.bus = bus
        self.settings = settings or get_settings()

    async def create(self, data: ReservationCreate, identity: Optional[Identity]) -> Reservation:
        identity = require_identity(identity)
        reservation = await self.store.create_reservation(
            NewReservation(
                **data.model_dump(),
                user_id=identity.user_id,
                status=ReservationStatus.PENDING,
            )
        )
        logger.info(
            f"Reservation #{reservation.id} booked by user #{identity.user_id} "
            f"for {reservation.party_size} on {reservation.date.isoformat()}"
        )
        await self._notify(EventType.RESERVATION_CREATED, reservation)
        return reservation

    async def update(
        self,
        reservation_id: int,
        update: ReservationUpdate,
        identity: Optional[Identity],
    ) -> Reservation:
        """Edit booking details and/or change status."""
        identity = require_identity(identity)
        reservation = await self._load(reservation_id)
        require_owner_or_admin(identity, reservation.user_id)

        changes: dict[str, Any] = {
            field: value
            for field, value in update.model_dump(exclude_unset=True).items()
            if value is not None or field in NULLABLE_FIELDS
        }
        if not changes:
            raise ValidationError("Nothing to update")

        status = changes.get("status")
        if status is not None:
            self._check_status_change(reservation, status, identity)

        details = set(changes) - {"status"}
        if details and not identity.is_admin and not reservation.is_active:
            raise ValidationError(
                "Reservation can no longer be changed",
                details={"status": f"Reservation is {reservation.status.value}"},
            )

        updated = await self.store.update_reservation(reservation_id, changes)
        if updated is None:
            raise NotFound(f"Reservation {reservation_id} not found")

        logger.info(f"Reservation #{reservation_id} updated by {identity.username}: {sorted(changes)}")
        await self._notify(EventType.RESERVATION_UPDATED, updated)
        return updated

    def _check_status_change(
        self,
        reservation: Reservation,
        target: ReservationStatus,
        identity: Identity,
    ) -> None:
        if identity.is_admin:
            if self.settings.enforce_admin_transitions:
                self._check_edge(reservation, target)
            return

        if target != ReservationStatus.CANCELLED:
            raise Forbidden("Only administrators can change the reservation status")
        self._check_edge(reservation, target)

    @staticmethod
    def _check_edge(reservation: Reservation, target: ReservationStatus) -> None:
        if target not in RESERVATION_TRANSITIONS[reservation.status]:
            raise ValidationError(
                f"Cannot move reservation from {reservation.status.value} to {target.value}",
                details={"status": f"Not allowed from {reservation.status.value}"},
            )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, reservation_id: int, identity: Optional[Identity]) -> Reservation:
        identity = require_identity(identity)
        reservation = await self._load(reservation_id)
        require_owner_or_admin(identity, reservation.user_id)
        return reservation

    async def list_for_user(self, identity: Optional[Identity]) -> list[Reservation]:
        identity = require_identity(identity)
        return await self.store.list_reservations_by_user(identity.user_id)

    async def list_all(self, identity: Optional[Identity]) -> list[Reservation]:
        require_admin(identity)
        return await self.store.list_reservations()

    async def list_active(self, identity: Optional[Identity]) -> list[Reservation]:
        require_admin(identity)
        return await self.store.list_active_reservations()

    async def list_visible(self, identity: Optional[Identity]) -> list[Reservation]:
        identity = require_identity(identity)
        if identity.is_admin:
            return await self.store.list_reservations()
        return await self.store.list_reservations_by_user(identity.user_id)

    async def list_for_day(self, identity: Optional[Identity], day: Optional[datetime] = None) -> list[Reservation]:
        """Bookings on the given UTC day (today by default)."""
        require_admin(identity)
        day = (day or datetime.now(timezone.utc)).date()
        return [r for r in await self.store.list_reservations() if r.date.date() == day]

    async def _load(self, reservation_id: int) -> Reservation:
        reservation = await self.store.get_reservation(reservation_id)
        if reservation is None:
            raise NotFound(f"Reservation {reservation_id} not found")
        return reservation

    async def _notify(self, event_type: EventType, reservation: Reservation) -> None:
        try:
            await self.bus.publish(NotificationEvent.of(event_type, reservation))
        except Exception:
            logger.exception(
                f"Failed to publish {event_type.value} for reservation #{reservation.id}"
            )
