"""
Pytest configuration and shared test fixtures.

This module provides the test settings, an in-memory order gateway for
exercising the order services without a database, file-backed SQLite engine and
gateway fixtures for the repository, and the HTTP client for API tests.
"""

import asyncio
import itertools
import os
import tempfile
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator, AsyncIterator, Optional, Sequence

os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault(
    "APP_DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'carsline-test.db')}",
)
os.environ.setdefault("APP_RATE_LIMIT", "10000/minute")
os.environ.setdefault("APP_LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker  # noqa: E402

from carsline.core.exceptions import OrderNumberConflictError, StorageError  # noqa: E402
from carsline.database import connection  # noqa: E402
from carsline.database.connection import (  # noqa: E402
    create_engine,
    create_session_factory,
    create_tables,
)
from carsline.database.models import (  # noqa: E402
    ExtraService,
    Order,
    OrderLineItem,
    ServiceHistory,
    ServiceType,
)
from carsline.services.orders.enums import OPEN_STATUSES, OrderStatus  # noqa: E402
from carsline.services.orders.gateway import OrderGateway, OrderStore  # noqa: E402
from carsline.services.orders.repository import SqlAlchemyOrderGateway  # noqa: E402
from carsline.services.orders.service import OrderService  # noqa: E402

ORDER_COLUMNS = [column.key for column in Order.__table__.columns]

FIXED_NOW = datetime(2026, 3, 15, 10, 30, tzinfo=timezone.utc)

SERVICE_TYPES = [
    {"id": 1, "name": "Oil change", "base_price": Decimal("500.00")},
    {"id": 2, "name": "Brake inspection", "base_price": Decimal("350.50")},
]

EXTRA_SERVICES = [
    {"id": 1, "name": "Wheel alignment", "price": Decimal("150.00"), "category": "tires"},
    {"id": 2, "name": "Cabin filter", "price": Decimal("89.90"), "category": "filters"},
    {"id": 3, "name": "Car wash", "price": Decimal("60.00"), "category": "cosmetic"},
]


class FixedClock:
    """Callable clock returning a settable instant."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ============================================================================
# In-memory gateway
# ============================================================================


class InMemoryOrderDatabase:
    """
    Committed state shared by every in-memory transaction.

    ``taken_numbers`` plays the unique index on order numbers: it holds the
    committed numbers plus the ones reserved by transactions still running.
    """

    def __init__(self):
        self.orders: dict[int, dict[str, Any]] = {}
        self.taken_numbers: set[str] = set()
        self.service_types: dict[int, ServiceType] = {}
        self.extra_services: dict[int, ExtraService] = {}
        self.service_history: list[ServiceHistory] = []
        self.conflicts = 0
        self.transactions = 0
        self.fail_history_insert = False
        self.add_order_error: Optional[Exception] = None
        self.add_order_calls = 0
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)

    def committed_numbers(self) -> list[str]:
        return [row["columns"]["order_number"] for row in self.orders.values()]

    def seed_catalog(self) -> None:
        for data in SERVICE_TYPES:
            self.service_types[data["id"]] = ServiceType(active=True, **data)
        for data in EXTRA_SERVICES:
            self.extra_services[data["id"]] = ExtraService(active=True, **data)

    def seed_order(self, **fields: Any) -> Order:
        """Store a committed order directly, bypassing the service."""
        columns = {
            "order_type": 1,
            "client_id": 1,
            "vehicle_id": 1,
            "advisor_id": 1,
            "service_type_id": None,
            "current_mileage": 1000,
            "status": OrderStatus.CREATED,
            "promised_at": FIXED_NOW,
            "created_at": FIXED_NOW,
            "process_started_at": None,
            "finished_at": None,
            "delivered_at": None,
            "advisor_notes": None,
            "total_cost": Decimal("0.00"),
            "active": True,
        }
        line_items = fields.pop("line_items", [])
        columns.update(fields)
        columns.setdefault("id", self.next_id())
        self.orders[columns["id"]] = {"columns": columns, "line_items": list(line_items)}
        self.taken_numbers.add(columns["order_number"])
        return self.materialize(columns["id"])

    def snapshot(self, order: Order) -> dict[str, Any]:
        return {
            "columns": {key: getattr(order, key) for key in ORDER_COLUMNS},
            "line_items": [
                (item.extra_service_id, item.price_applied) for item in order.line_items
            ],
        }

    def materialize(self, order_id: int) -> Order:
        """Fresh Order instance built from the committed row."""
        row = self.orders[order_id]
        columns = row["columns"]
        return Order(
            **columns,
            line_items=[
                OrderLineItem(
                    extra_service_id=extra_id,
                    price_applied=price,
                    extra_service=self.extra_services.get(extra_id),
                )
                for extra_id, price in row["line_items"]
            ],
            service_type=self.service_types.get(columns["service_type_id"]),
        )


class InMemoryOrderStore(OrderStore):
    """Order store staging its writes until the transaction commits."""

    def __init__(self, db: InMemoryOrderDatabase):
        self.db = db
        self._staged: dict[int, Order] = {}
        self._reserved: set[str] = set()
        self._history: list[ServiceHistory] = []

    async def list_order_numbers(self, prefix: str) -> list[str]:
        numbers = [n for n in self.db.committed_numbers() if n.startswith(f"{prefix}-")]
        # Let concurrent transactions run between the read and the insert
        await asyncio.sleep(0)
        return numbers

    async def get_service_type_price(self, service_type_id: int) -> Optional[Decimal]:
        service_type = self.db.service_types.get(service_type_id)
        return service_type.base_price if service_type else None

    async def get_extra_service_prices(self, extra_service_ids: Sequence[int]) -> dict[int, Decimal]:
        return {
            extra_id: self.db.extra_services[extra_id].price
            for extra_id in extra_service_ids
            if extra_id in self.db.extra_services
        }

    async def add_order(self, order: Order) -> Order:
        await asyncio.sleep(0)
        self.db.add_order_calls += 1
        if self.db.add_order_error is not None:
            raise self.db.add_order_error
        if order.order_number in self.db.taken_numbers:
            self.db.conflicts += 1
            raise OrderNumberConflictError(order.order_number)

        self.db.taken_numbers.add(order.order_number)
        self._reserved.add(order.order_number)
        order.id = self.db.next_id()
        self._staged[order.id] = order
        return order

    async def get_order(self, order_id: int, for_update: bool = False) -> Optional[Order]:
        if order_id in self._staged:
            return self._staged[order_id]
        if order_id not in self.db.orders:
            return None
        order = self.db.materialize(order_id)
        self._staged[order_id] = order
        return order

    async def update_order(self, order: Order) -> Order:
        self._staged[order.id] = order
        return order

    async def add_service_history(self, record: ServiceHistory) -> ServiceHistory:
        if self.db.fail_history_insert:
            raise StorageError("The order store is unavailable")
        record.id = self.db.next_id()
        self._history.append(record)
        return record

    async def list_open_orders(self, advisor_id: int, order_type: int) -> Sequence[Order]:
        orders = [
            self.db.materialize(order_id)
            for order_id, row in self.db.orders.items()
            if row["columns"]["advisor_id"] == advisor_id
            and row["columns"]["order_type"] == order_type
            and row["columns"]["active"]
            and row["columns"]["status"] in OPEN_STATUSES
        ]
        return sorted(orders, key=lambda o: (o.promised_at, o.id))

    async def list_delivered_orders(self, vehicle_id: int, since: datetime) -> Sequence[Order]:
        orders = [
            self.db.materialize(order_id)
            for order_id, row in self.db.orders.items()
            if row["columns"]["vehicle_id"] == vehicle_id
            and row["columns"]["active"]
            and row["columns"]["status"] == OrderStatus.DELIVERED
            and row["columns"]["created_at"] >= since
        ]
        return sorted(orders, key=lambda o: (o.created_at, o.id), reverse=True)

    def commit(self) -> None:
        for order_id, order in self._staged.items():
            self.db.orders[order_id] = self.db.snapshot(order)
        self.db.service_history.extend(self._history)

    def rollback(self) -> None:
        self.db.taken_numbers -= self._reserved


class InMemoryOrderGateway(OrderGateway):
    """Gateway whose transactions commit into an InMemoryOrderDatabase."""

    def __init__(self, db: InMemoryOrderDatabase):
        self.db = db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryOrderStore]:
        self.db.transactions += 1
        store = InMemoryOrderStore(self.db)
        try:
            yield store
        except BaseException:
            store.rollback()
            raise
        store.commit()


# ============================================================================
# Service fixtures
# ============================================================================


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def memory_db() -> InMemoryOrderDatabase:
    """In-memory order database with the catalog seeded."""
    db = InMemoryOrderDatabase()
    db.seed_catalog()
    return db


@pytest.fixture
def memory_gateway(memory_db: InMemoryOrderDatabase) -> InMemoryOrderGateway:
    return InMemoryOrderGateway(memory_db)


@pytest.fixture
def order_service(memory_gateway: InMemoryOrderGateway, clock: FixedClock) -> OrderService:
    """Order service over the in-memory gateway with a fixed clock."""
    return OrderService(memory_gateway, max_attempts=5, retry_delay=0, clock=clock)


@pytest.fixture
def order_data() -> dict[str, Any]:
    """Valid keyword arguments for OrderService.create_order."""
    return {
        "order_type": 1,
        "client_id": 15,
        "vehicle_id": 42,
        "advisor_id": 7,
        "current_mileage": 45210,
        "promised_at": datetime(2026, 3, 16, 17, 0, tzinfo=timezone.utc),
        "service_type_id": 1,
        "advisor_notes": "Noise on front brakes",
        "extra_service_ids": [1, 2],
    }


# ============================================================================
# Database fixtures
# ============================================================================


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh file-backed SQLite engine with the schema created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'carsline.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
async def seeded_catalog(session_factory: async_sessionmaker[AsyncSession]) -> None:
    async with session_factory() as session:
        async with session.begin():
            session.add_all([ServiceType(active=True, **data) for data in SERVICE_TYPES])
            session.add_all([ExtraService(active=True, **data) for data in EXTRA_SERVICES])


@pytest.fixture
def sql_gateway(
    session_factory: async_sessionmaker[AsyncSession], seeded_catalog: None
) -> SqlAlchemyOrderGateway:
    return SqlAlchemyOrderGateway(session_factory)


# ============================================================================
# HTTP fixtures
# ============================================================================


@pytest.fixture
async def async_client(
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
    seeded_catalog: None,
    monkeypatch,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an asynchronous test client for the FastAPI application.

    The application's global engine is swapped for the test engine, so
    requests see the seeded catalog.

    Example:
        async def test_health_endpoint_async(async_client):
            response = await async_client.get("/health")
            assert response.status_code == 200
    """
    from carsline.main import app

    monkeypatch.setattr(connection, "_engine", engine)
    monkeypatch.setattr(connection, "_session_factory", session_factory)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
