"""Store contract, run against both backends."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from bistro.core.errors import TransientIOError, ValidationError
from bistro.schemas import (
    DeliveryMethod,
    LocationCreate,
    MenuItemCreate,
    NewOrder,
    NewOrderLine,
    NewReservation,
    OrderStatus,
    PaymentMethod,
    ReservationStatus,
    UserRole,
)
from bistro.storage.memory import MemoryStore
from bistro.storage.seed import seed_store
from bistro.storage.sql import SqlStore


@pytest.fixture(params=["memory", "sql"])
async def backend(request, tmp_path, settings):
    if request.param == "memory":
        store = MemoryStore()
    else:
        store = SqlStore(f"sqlite+aiosqlite:///{tmp_path / 'bistro.db'}", retry_backoff=0)
    await store.initialize()
    await seed_store(store, settings)
    yield store
    await store.close()


def new_order(user_id=1, **overrides):
    data = dict(
        user_id=user_id,
        subtotal=Decimal("20.00"),
        delivery_fee=Decimal("3.99"),
        tax=Decimal("1.65"),
        total=Decimal("25.64"),
        delivery_method=DeliveryMethod.DELIVERY,
        delivery_address="1 Main St",
        payment_method=PaymentMethod.CASH,
    )
    data.update(overrides)
    return NewOrder(**data)


LINES = [
    NewOrderLine(menu_item_id=1, name="Grilled Salmon", quantity=1, price=Decimal("24.99")),
    NewOrderLine(menu_item_id=2, name="Pasta Pomodoro", quantity=2, price=Decimal("18.50")),
]


class TestSeed:
    async def test_admin_and_demo_data(self, backend):
        admin = await backend.get_user_by_username("ADMIN")
        assert admin.id == 1
        assert admin.role == UserRole.ADMIN

        assert [c.name for c in await backend.list_categories()] == [
            "Starters", "Main Courses", "Desserts", "Drinks",
        ]
        items = await backend.list_menu_items()
        assert [(i.id, i.name, i.price) for i in items] == [
            (1, "Grilled Salmon", Decimal("24.99")),
            (2, "Pasta Pomodoro", Decimal("18.50")),
            (3, "Filet Mignon", Decimal("32.99")),
        ]
        assert (await backend.get_restaurant_settings()).primary_color == "#8D4E00"
        assert [loc.name for loc in await backend.list_locations()] == ["Downtown", "Uptown"]

    async def test_seeding_twice_changes_nothing(self, backend, settings):
        await seed_store(backend, settings)

        assert len(await backend.list_users()) == 1
        assert len(await backend.list_menu_items()) == 3


class TestUsers:
    async def test_duplicates_ignore_case(self, backend):
        await backend.create_user("alice", "alice@example.com", "Alice", "hash")

        with pytest.raises(ValidationError):
            await backend.create_user("ALICE", "other@example.com", "Alice", "hash")
        with pytest.raises(ValidationError):
            await backend.create_user("alice2", "Alice@Example.com", "Alice", "hash")

    async def test_lookup_by_email(self, backend):
        user = await backend.create_user("alice", "alice@example.com", "Alice", "hash", phone="555")
        found = await backend.get_user_by_email("ALICE@example.com")

        assert found.id == user.id
        assert found.password_hash == "hash"
        assert found.role == UserRole.CUSTOMER


class TestCategoriesAndMenu:
    async def test_category_in_use_cannot_be_deleted(self, backend):
        with pytest.raises(ValidationError):
            await backend.delete_category(2)
        assert await backend.delete_category(4) is True
        assert await backend.get_category(4) is None

    async def test_category_names_unique(self, backend):
        with pytest.raises(ValidationError):
            await backend.create_category("desserts")
        with pytest.raises(ValidationError):
            await backend.update_category(1, "Drinks")

    async def test_menu_item_update_and_delete(self, backend):
        item = await backend.create_menu_item(
            MenuItemCreate(name="Lemonade", price=Decimal("3.50"), category_id=4)
        )
        updated = await backend.update_menu_item(item.id, {"price": Decimal("4.00"), "available": False})

        assert updated.price == Decimal("4.00")
        assert updated.available is False
        assert [i.id for i in await backend.list_menu_items_by_category(4)] == [item.id]
        assert await backend.delete_menu_item(item.id) is True
        assert await backend.delete_menu_item(item.id) is False

    async def test_update_rejects_unknown_fields(self, backend):
        with pytest.raises(ValueError):
            await backend.update_menu_item(1, {"id": 99})

    async def test_missing_rows(self, backend):
        assert await backend.get_menu_item(999) is None
        assert await backend.update_menu_item(999, {"name": "x"}) is None


class TestOrders:
    async def test_order_and_lines_stored_together(self, backend):
        order = await backend.create_order(new_order(), LINES)

        assert order.id == 1
        assert order.status == OrderStatus.PENDING
        assert order.created_at.tzinfo is not None
        assert [(line.order_id, line.quantity) for line in order.items] == [(1, 1), (1, 2)]

        fetched = await backend.get_order(order.id)
        assert fetched.total == Decimal("25.64")
        assert [line.name for line in await backend.get_order_lines(order.id)] == [
            "Grilled Salmon", "Pasta Pomodoro",
        ]

    async def test_ids_increase(self, backend):
        first = await backend.create_order(new_order(), LINES)
        second = await backend.create_order(new_order(), LINES)
        assert second.id > first.id
        assert second.items[0].id > first.items[-1].id

    async def test_only_status_and_payment_are_mutable(self, backend):
        order = await backend.create_order(new_order(), LINES)

        updated = await backend.update_order(order.id, {"status": OrderStatus.PROCESSING, "payment_completed": True})
        assert updated.status == OrderStatus.PROCESSING
        assert updated.payment_completed is True
        assert updated.total == order.total

        with pytest.raises(ValueError):
            await backend.update_order(order.id, {"total": Decimal("0.01")})

    async def test_listing(self, backend):
        mine = await backend.create_order(new_order(user_id=1), LINES)
        other = await backend.create_order(new_order(user_id=2), LINES)
        await backend.update_order(mine.id, {"status": OrderStatus.COMPLETED})

        assert [o.id for o in await backend.list_orders()] == [other.id, mine.id]
        assert [o.id for o in await backend.list_orders_by_user(1)] == [mine.id]
        assert [o.id for o in await backend.list_active_orders()] == [other.id]

    async def test_repricing_menu_item_keeps_order_lines(self, backend):
        order = await backend.create_order(new_order(), LINES)
        await backend.update_menu_item(1, {"price": Decimal("99.00")})

        fetched = await backend.get_order(order.id)
        assert fetched.items[0].price == Decimal("24.99")
        assert fetched.total == Decimal("25.64")

    async def test_deleting_menu_item_keeps_order_lines(self, backend):
        order = await backend.create_order(new_order(), LINES)
        await backend.delete_menu_item(1)

        assert (await backend.get_order(order.id)).items[0].name == "Grilled Salmon"


class TestReservations:
    async def test_dates_round_trip_as_utc(self, backend):
        when = datetime(2030, 6, 1, 19, 0, tzinfo=timezone.utc)
        reservation = await backend.create_reservation(
            NewReservation(
                user_id=1,
                date=when,
                party_size=2,
                full_name="Alice",
                email="alice@example.com",
                phone="555",
            )
        )

        fetched = await backend.get_reservation(reservation.id)
        assert fetched.date == when
        assert fetched.status == ReservationStatus.PENDING

    async def test_soonest_first(self, backend):
        base = datetime(2030, 6, 1, 19, 0, tzinfo=timezone.utc)
        ids = []
        for offset in (3, 1, 2):
            r = await backend.create_reservation(
                NewReservation(
                    user_id=1,
                    date=base + timedelta(days=offset),
                    party_size=2,
                    full_name="Alice",
                    email="alice@example.com",
                    phone="555",
                )
            )
            ids.append(r.id)

        assert [r.id for r in await backend.list_reservations()] == [ids[1], ids[2], ids[0]]
        await backend.update_reservation(ids[1], {"status": ReservationStatus.CANCELLED})
        assert [r.id for r in await backend.list_active_reservations()] == [ids[2], ids[0]]


class TestSettingsAndLocations:
    async def test_settings_update_merges(self, backend):
        updated = await backend.update_restaurant_settings({"theme_settings": {"font": "Lora"}})
        assert updated.name == "Paul's Restaurant"
        assert updated.theme_settings == {"font": "Lora"}

    async def test_location_crud(self, backend):
        location = await backend.create_location(
            LocationCreate(name="Harbor", address="9 Pier Rd", phone="555", opening_hours="9-5")
        )
        updated = await backend.update_location(location.id, {"opening_hours": "10-6"})

        assert updated.opening_hours == "10-6"
        assert await backend.delete_location(location.id) is True
        assert await backend.get_location(location.id) is None


class TestSqlFailures:
    async def test_reads_retry_then_raise_transient(self, tmp_path):
        store = SqlStore(f"sqlite+aiosqlite:///{tmp_path / 'flaky.db'}", retry_attempts=3, retry_backoff=0)
        await store.initialize()
        calls = []

        async def flaky(session):
            calls.append(1)
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        with pytest.raises(TransientIOError):
            await store._read(flaky)
        assert len(calls) == 3
        await store.close()

    async def test_read_recovers_after_transient_error(self, tmp_path):
        store = SqlStore(f"sqlite+aiosqlite:///{tmp_path / 'flaky.db'}", retry_attempts=3, retry_backoff=0)
        await store.initialize()
        calls = []

        async def flaky_once(session):
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("SELECT 1", {}, Exception("connection reset"))
            return "ok"

        assert await store._read(flaky_once) == "ok"
        await store.close()

    async def test_health_check(self, tmp_path):
        store = SqlStore(f"sqlite+aiosqlite:///{tmp_path / 'health.db'}")
        await store.initialize()

        assert await store.health_check() is True
        assert store.backend_name == "sql (sqlite)"
        await store.close()
