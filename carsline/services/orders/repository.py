"""
Order data access repository with transaction support.

This module implements the SQLAlchemy side of the order persistence
gateway: ``SqlAlchemyOrderGateway`` opens one session and transaction per
unit of work, and ``OrderRepository`` runs the queries inside it. Driver
errors are logged here and surfaced as ``StorageError``; a duplicate order
number is surfaced as ``OrderNumberConflictError`` so creation can retry.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from carsline.core.exceptions import OrderNumberConflictError, StorageError
from carsline.core.logging import get_logger
from carsline.database.models import (
    ExtraService,
    Order,
    ServiceHistory,
    ServiceType,
)
from carsline.services.orders.enums import OPEN_STATUSES, OrderStatus
from carsline.services.orders.gateway import OrderGateway, OrderStore

logger = get_logger(__name__)

ORDER_NUMBER_CONSTRAINT = "uq_orders_order_number"


def is_order_number_violation(error: IntegrityError) -> bool:
    """
    Check whether an integrity error comes from the order number constraint.

    PostgreSQL reports the constraint name, SQLite the column.
    """
    message = str(error.orig)
    return ORDER_NUMBER_CONSTRAINT in message or "orders.order_number" in message


class OrderRepository(OrderStore):
    """
    Repository for order data access operations.

    All methods run inside the session's current transaction; committing
    or rolling back is left to SqlAlchemyOrderGateway.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize order repository.

        Args:
            session: Async database session with an open transaction
        """
        self.session = session

    async def list_order_numbers(self, prefix: str) -> list[str]:
        stmt = select(Order.order_number).where(Order.order_number.startswith(f"{prefix}-"))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_service_type_price(self, service_type_id: int) -> Optional[Decimal]:
        stmt = select(ServiceType.base_price).where(ServiceType.id == service_type_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_extra_service_prices(self, extra_service_ids: Sequence[int]) -> dict[int, Decimal]:
        if not extra_service_ids:
            return {}
        stmt = select(ExtraService.id, ExtraService.price).where(
            ExtraService.id.in_(list(extra_service_ids))
        )
        result = await self.session.execute(stmt)
        return {extra_id: price for extra_id, price in result.all()}

    async def add_order(self, order: Order) -> Order:
        """
        Insert an order with its line items.

        Args:
            order: Transient order, line items attached

        Returns:
            The order with its id assigned

        Raises:
            OrderNumberConflictError: If another order already has its number
        """
        self.session.add(order)
        try:
            await self.session.flush()
        except IntegrityError as e:
            if is_order_number_violation(e):
                logger.info(
                    "Order number already taken",
                    order_number=order.order_number,
                )
                raise OrderNumberConflictError(order.order_number) from e
            raise

        logger.debug(
            "Order inserted",
            order_id=order.id,
            order_number=order.order_number,
            line_item_count=len(order.line_items),
        )
        return order

    async def get_order(self, order_id: int, for_update: bool = False) -> Optional[Order]:
        """
        Get order by ID with its line items.

        Args:
            order_id: Order identifier
            for_update: Lock the row until the transaction ends

        Returns:
            Order if found, None otherwise
        """
        stmt = select(Order).where(Order.id == order_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_order(self, order: Order) -> Order:
        await self.session.flush()
        return order

    async def add_service_history(self, record: ServiceHistory) -> ServiceHistory:
        self.session.add(record)
        await self.session.flush()
        logger.debug(
            "Service history recorded",
            history_id=record.id,
            order_id=record.order_id,
            vehicle_id=record.vehicle_id,
        )
        return record

    async def list_open_orders(self, advisor_id: int, order_type: int) -> Sequence[Order]:
        stmt = (
            select(Order)
            .where(
                Order.advisor_id == advisor_id,
                Order.order_type == order_type,
                Order.active.is_(True),
                Order.status.in_(sorted(OPEN_STATUSES)),
            )
            .order_by(Order.promised_at, Order.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_delivered_orders(self, vehicle_id: int, since: datetime) -> Sequence[Order]:
        stmt = (
            select(Order)
            .where(
                Order.vehicle_id == vehicle_id,
                Order.active.is_(True),
                Order.status == OrderStatus.DELIVERED,
                Order.created_at >= since,
            )
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class SqlAlchemyOrderGateway(OrderGateway):
    """Order gateway backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[OrderRepository]:
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    yield OrderRepository(session)
            except SQLAlchemyError as e:
                logger.error(
                    "Order transaction failed - database error",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise StorageError("The order store is unavailable") from e
