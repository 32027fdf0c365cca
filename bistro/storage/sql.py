"""
SQL Store

SQLAlchemy async backend (PostgreSQL via psycopg in production, SQLite via
aiosqlite in tests).

Failure handling:
    - Reads retry connection-level errors with exponential backoff and
      then raise ``TransientIOError``.
    - Writes run in one transaction each and are never retried; a
      connection failure surfaces as ``TransientIOError`` and a constraint
      violation as ``ValidationError``.
    - ``create_order`` inserts the order and its lines in the same
      transaction.

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar

from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from bistro.core.errors import TransientIOError, ValidationError
from bistro.database import create_engine, create_session_maker, init_db
from bistro.models import (
    CategoryRow,
    LocationRow,
    MenuItemRow,
    OrderLineRow,
    OrderRow,
    ReservationRow,
    RestaurantSettingsRow,
    UserRow,
)
from bistro.schemas import (
    TERMINAL_ORDER_STATUSES,
    TERMINAL_RESERVATION_STATUSES,
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

T = TypeVar("T")

TRANSIENT_ERRORS = (OperationalError, InterfaceError, ConnectionError)


def _assign(row: Any, changes: dict[str, Any]) -> None:
    for field, value in changes.items():
        setattr(row, field, value)


class SqlStore(BaseStore):
    """
    Store backed by a relational database.

    Args:
        database_url: SQLAlchemy async URL
        echo: Log every SQL statement
        retry_attempts: Tries per read before giving up
        retry_backoff: Delay before the first retry, doubled each time
    """

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        retry_attempts: int = 3,
        retry_backoff: float = 0.2,
    ):
        self.database_url = database_url
        self.engine = create_engine(database_url, echo=echo)
        self._sessions = create_session_maker(self.engine)
        self._retry_attempts = max(1, retry_attempts)
        self._retry_backoff = retry_backoff

    @property
    def backend_name(self) -> str:
        return f"sql ({self.engine.dialect.name})"

    async def initialize(self) -> None:
        await init_db(self.engine)

    async def close(self) -> None:
        await self.engine.dispose()

    async def health_check(self) -> bool:
        try:
            async with self._sessions() as session:
                await session.execute(text("SELECT 1"))
            return True
        except TRANSIENT_ERRORS as e:
            logger.warning(f"Database health check failed: {e}")
            return False

    # =========================================================================
    # SESSION HELPERS
    # =========================================================================

    async def _read(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        delay = self._retry_backoff
        for attempt in range(1, self._retry_attempts + 1):
            try:
                async with self._sessions() as session:
                    return await operation(session)
            except TRANSIENT_ERRORS as e:
                if attempt == self._retry_attempts:
                    logger.error(f"Store read failed after {attempt} attempt(s): {e}")
                    raise TransientIOError("Database unavailable") from e
                logger.warning(
                    f"Store read failed (attempt {attempt}/{self._retry_attempts}), "
                    f"retrying in {delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)
                delay *= 2
        raise TransientIOError("Database unavailable")

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessions() as session:
                async with session.begin():
                    yield session
        except IntegrityError as e:
            logger.warning(f"Constraint violation: {e.orig}")
            raise ValidationError("Conflicting data") from e
        except TRANSIENT_ERRORS as e:
            logger.error(f"Store write failed: {e}")
            raise TransientIOError("Database unavailable") from e

    # =========================================================================
    # USERS
    # =========================================================================

    async def get_user(self, user_id: int) -> Optional[User]:
        async def op(session: AsyncSession) -> Optional[User]:
            row = await session.get(UserRow, user_id)
            return User.model_validate(row) if row else None
        return await self._read(op)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return await self._read(
            lambda session: self._find_user(session, UserRow.username, username)
        )

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return await self._read(
            lambda session: self._find_user(session, UserRow.email, email)
        )

    @staticmethod
    async def _find_user(session: AsyncSession, column: Any, value: str) -> Optional[User]:
        result = await session.execute(
            select(UserRow).where(func.lower(column) == value.lower())
        )
        row = result.scalars().first()
        return User.model_validate(row) if row else None

    async def create_user(
        self,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        phone: Optional[str] = None,
        role: UserRole = UserRole.CUSTOMER,
    ) -> User:
        async with self._transaction() as session:
            if await self._find_user(session, UserRow.username, username):
                raise ValidationError("Username already exists", details={"username": "Already taken"})
            if await self._find_user(session, UserRow.email, email):
                raise ValidationError("Email already exists", details={"email": "Already registered"})

            row = UserRow(
                username=username,
                email=email,
                full_name=full_name,
                phone=phone,
                role=role,
                password_hash=password_hash,
            )
            session.add(row)
            await session.flush()
            return User.model_validate(row)

    async def list_users(self) -> list[User]:
        async def op(session: AsyncSession) -> list[User]:
            result = await session.execute(select(UserRow).order_by(UserRow.id))
            return [User.model_validate(r) for r in result.scalars()]
        return await self._read(op)

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def get_category(self, category_id: int) -> Optional[Category]:
        async def op(session: AsyncSession) -> Optional[Category]:
            row = await session.get(CategoryRow, category_id)
            return Category.model_validate(row) if row else None
        return await self._read(op)

    async def list_categories(self) -> list[Category]:
        async def op(session: AsyncSession) -> list[Category]:
            result = await session.execute(select(CategoryRow).order_by(CategoryRow.id))
            return [Category.model_validate(r) for r in result.scalars()]
        return await self._read(op)

    @staticmethod
    async def _check_category_name(
        session: AsyncSession, name: str, exclude_id: Optional[int] = None
    ) -> None:
        query = select(CategoryRow.id).where(func.lower(CategoryRow.name) == name.lower())
        if exclude_id is not None:
            query = query.where(CategoryRow.id != exclude_id)
        if (await session.execute(query)).first():
            raise ValidationError("Category already exists", details={"name": "Already exists"})

    async def create_category(self, name: str) -> Category:
        async with self._transaction() as session:
            await self._check_category_name(session, name)
            row = CategoryRow(name=name)
            session.add(row)
            await session.flush()
            return Category.model_validate(row)

    async def update_category(self, category_id: int, name: str) -> Optional[Category]:
        async with self._transaction() as session:
            row = await session.get(CategoryRow, category_id)
            if row is None:
                return None
            await self._check_category_name(session, name, exclude_id=category_id)
            row.name = name
            await session.flush()
            return Category.model_validate(row)

    async def delete_category(self, category_id: int) -> bool:
        async with self._transaction() as session:
            row = await session.get(CategoryRow, category_id)
            if row is None:
                return False
            in_use = await session.scalar(
                select(func.count(MenuItemRow.id)).where(MenuItemRow.category_id == category_id)
            )
            if in_use:
                raise ValidationError(
                    "Category still has menu items",
                    details={"categoryId": "Move or delete its menu items first"},
                )
            await session.delete(row)
            return True

    # =========================================================================
    # MENU ITEMS
    # =========================================================================

    async def get_menu_item(self, item_id: int) -> Optional[MenuItem]:
        async def op(session: AsyncSession) -> Optional[MenuItem]:
            row = await session.get(MenuItemRow, item_id)
            return MenuItem.model_validate(row) if row else None
        return await self._read(op)

    async def list_menu_items(self) -> list[MenuItem]:
        async def op(session: AsyncSession) -> list[MenuItem]:
            result = await session.execute(select(MenuItemRow).order_by(MenuItemRow.id))
            return [MenuItem.model_validate(r) for r in result.scalars()]
        return await self._read(op)

    async def list_menu_items_by_category(self, category_id: int) -> list[MenuItem]:
        async def op(session: AsyncSession) -> list[MenuItem]:
            result = await session.execute(
                select(MenuItemRow)
                .where(MenuItemRow.category_id == category_id)
                .order_by(MenuItemRow.id)
            )
            return [MenuItem.model_validate(r) for r in result.scalars()]
        return await self._read(op)

    async def create_menu_item(self, data: MenuItemCreate) -> MenuItem:
        async with self._transaction() as session:
            row = MenuItemRow(**data.model_dump())
            session.add(row)
            await session.flush()
            return MenuItem.model_validate(row)

    async def update_menu_item(self, item_id: int, changes: dict[str, Any]) -> Optional[MenuItem]:
        check_changes("menu item", changes, MENU_ITEM_MUTABLE_FIELDS)
        async with self._transaction() as session:
            row = await session.get(MenuItemRow, item_id)
            if row is None:
                return None
            _assign(row, changes)
            await session.flush()
            return MenuItem.model_validate(row)

    async def delete_menu_item(self, item_id: int) -> bool:
        async with self._transaction() as session:
            row = await session.get(MenuItemRow, item_id)
            if row is None:
                return False
            await session.delete(row)
            return True

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def get_order(self, order_id: int) -> Optional[Order]:
        async def op(session: AsyncSession) -> Optional[Order]:
            row = await session.get(OrderRow, order_id)
            return Order.model_validate(row) if row else None
        return await self._read(op)

    async def _list_orders(self, *criteria: Any) -> list[Order]:
        async def op(session: AsyncSession) -> list[Order]:
            result = await session.execute(
                select(OrderRow)
                .where(*criteria)
                .order_by(OrderRow.created_at.desc(), OrderRow.id.desc())
            )
            return [Order.model_validate(r) for r in result.scalars()]
        return await self._read(op)

    async def list_orders(self) -> list[Order]:
        return await self._list_orders()

    async def list_orders_by_user(self, user_id: int) -> list[Order]:
        return await self._list_orders(OrderRow.user_id == user_id)

    async def list_active_orders(self) -> list[Order]:
        return await self._list_orders(OrderRow.status.not_in(list(TERMINAL_ORDER_STATUSES)))

    async def create_order(self, order: NewOrder, lines: list[NewOrderLine]) -> Order:
        async with self._transaction() as session:
            row = OrderRow(
                **order.model_dump(),
                items=[OrderLineRow(**line.model_dump()) for line in lines],
            )
            session.add(row)
            await session.flush()
            created = Order.model_validate(row)

        logger.debug(f"Stored order #{created.id} with {len(lines)} line(s)")
        return created

    async def update_order(self, order_id: int, changes: dict[str, Any]) -> Optional[Order]:
        check_changes("order", changes, ORDER_MUTABLE_FIELDS)
        async with self._transaction() as session:
            row = await session.get(OrderRow, order_id)
            if row is None:
                return None
            _assign(row, changes)
            await session.flush()
            return Order.model_validate(row)

    async def get_order_lines(self, order_id: int) -> list[OrderLine]:
        async def op(session: AsyncSession) -> list[OrderLine]:
            result = await session.execute(
                select(OrderLineRow)
                .where(OrderLineRow.order_id == order_id)
                .order_by(OrderLineRow.id)
            )
            return [OrderLine.model_validate(r) for r in result.scalars()]
        return await self._read(op)

    # =========================================================================
    # RESERVATIONS
    # =========================================================================

    async def get_reservation(self, reservation_id: int) -> Optional[Reservation]:
        async def op(session: AsyncSession) -> Optional[Reservation]:
            row = await session.get(ReservationRow, reservation_id)
            return Reservation.model_validate(row) if row else None
        return await self._read(op)

    async def _list_reservations(self, *criteria: Any) -> list[Reservation]:
        async def op(session: AsyncSession) -> list[Reservation]:
            result = await session.execute(
                select(ReservationRow)
                .where(*criteria)
                .order_by(ReservationRow.date, ReservationRow.id)
            )
            return [Reservation.model_validate(r) for r in result.scalars()]
        return await self._read(op)

    async def list_reservations(self) -> list[Reservation]:
        return await self._list_reservations()

    async def list_reservations_by_user(self, user_id: int) -> list[Reservation]:
        return await self._list_reservations(ReservationRow.user_id == user_id)

    async def list_active_reservations(self) -> list[Reservation]:
        return await self._list_reservations(
            ReservationRow.status.not_in(list(TERMINAL_RESERVATION_STATUSES))
        )

    async def create_reservation(self, data: NewReservation) -> Reservation:
        async with self._transaction() as session:
            row = ReservationRow(**data.model_dump())
            session.add(row)
            await session.flush()
            return Reservation.model_validate(row)

    async def update_reservation(
        self, reservation_id: int, changes: dict[str, Any]
    ) -> Optional[Reservation]:
        check_changes("reservation", changes, RESERVATION_MUTABLE_FIELDS)
        async with self._transaction() as session:
            row = await session.get(ReservationRow, reservation_id)
            if row is None:
                return None
            _assign(row, changes)
            await session.flush()
            return Reservation.model_validate(row)

    # =========================================================================
    # RESTAURANT SETTINGS
    # =========================================================================

    async def get_restaurant_settings(self) -> Optional[RestaurantSettings]:
        async def op(session: AsyncSession) -> Optional[RestaurantSettings]:
            result = await session.execute(
                select(RestaurantSettingsRow).order_by(RestaurantSettingsRow.id).limit(1)
            )
            row = result.scalars().first()
            return RestaurantSettings.model_validate(row) if row else None
        return await self._read(op)

    async def update_restaurant_settings(self, changes: dict[str, Any]) -> RestaurantSettings:
        check_changes("settings", changes, SETTINGS_MUTABLE_FIELDS)
        async with self._transaction() as session:
            result = await session.execute(
                select(RestaurantSettingsRow).order_by(RestaurantSettingsRow.id).limit(1)
            )
            row = result.scalars().first()
            if row is None:
                row = RestaurantSettingsRow(name="Restaurant", theme_settings={})
                session.add(row)
            _assign(row, changes)
            await session.flush()
            return RestaurantSettings.model_validate(row)

    # =========================================================================
    # LOCATIONS
    # =========================================================================

    async def get_location(self, location_id: int) -> Optional[Location]:
        async def op(session: AsyncSession) -> Optional[Location]:
            row = await session.get(LocationRow, location_id)
            return Location.model_validate(row) if row else None
        return await self._read(op)

    async def list_locations(self) -> list[Location]:
        async def op(session: AsyncSession) -> list[Location]:
            result = await session.execute(select(LocationRow).order_by(LocationRow.id))
            return [Location.model_validate(r) for r in result.scalars()]
        return await self._read(op)

    async def create_location(self, data: LocationCreate) -> Location:
        async with self._transaction() as session:
            row = LocationRow(**data.model_dump())
            session.add(row)
            await session.flush()
            return Location.model_validate(row)

    async def update_location(self, location_id: int, changes: dict[str, Any]) -> Optional[Location]:
        check_changes("location", changes, LOCATION_MUTABLE_FIELDS)
        async with self._transaction() as session:
            row = await session.get(LocationRow, location_id)
            if row is None:
                return None
            _assign(row, changes)
            await session.flush()
            return Location.model_validate(row)

    async def delete_location(self, location_id: int) -> bool:
        async with self._transaction() as session:
            row = await session.get(LocationRow, location_id)
            if row is None:
                return False
            await session.delete(row)
            return True
