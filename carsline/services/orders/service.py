"""
Order service orchestrating the order lifecycle.

This module implements the OrderService class: opening orders with a
sequential number and a cost snapshot, cancelling them, delivering them
with their service history record, and the advisor and vehicle history
read views. Each write runs in a single gateway transaction.
"""

import asyncio
import random
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional

from carsline.core.config import get_settings
from carsline.core.exceptions import (
    ConflictError,
    NotFoundError,
    OrderNumberConflictError,
    ValidationError,
)
from carsline.core.logging import get_logger, log_performance
from carsline.database.models import Order, OrderLineItem, ServiceHistory
from carsline.services.orders.enums import OrderStatus, OrderType
from carsline.services.orders.gateway import OrderGateway, OrderStore
from carsline.services.orders.numbering import OrderNumberGenerator
from carsline.services.orders.pricing import OrderCostCalculator, to_money
from carsline.services.orders.projection import (
    FixedIntervalProjection,
    NextServiceProjection,
    add_months,
)
from carsline.services.orders.state_machine import OrderStateMachine

logger = get_logger(__name__)

GENERAL_SERVICE_LABEL = "General service"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class OrderService:
    """
    Order lifecycle manager.

    Attributes:
        gateway: Persistence gateway opening one transaction per operation
        numbering: Order number generator
        pricing: Order cost calculator
        state_machine: Transition table and status side effects
        projection: Next service projection policy used on delivery
        max_attempts: Creation attempts before a numbering conflict is reported
        retry_delay: Base backoff in seconds between creation attempts
    """

    def __init__(
        self,
        gateway: OrderGateway,
        projection: Optional[NextServiceProjection] = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize order service.

        Args:
            gateway: Persistence gateway
            projection: Next service policy, defaults to the configured fixed interval
            max_attempts: Override of APP_ORDER_NUMBER_MAX_ATTEMPTS
            retry_delay: Override of APP_ORDER_NUMBER_RETRY_DELAY
            clock: Source of the current time
        """
        settings = get_settings()
        self.gateway = gateway
        self.numbering = OrderNumberGenerator()
        self.pricing = OrderCostCalculator()
        self.state_machine = OrderStateMachine()
        self.projection = projection or FixedIntervalProjection.from_settings()
        self.max_attempts = max_attempts or settings.order_number_max_attempts
        self.retry_delay = (
            settings.order_number_retry_delay if retry_delay is None else retry_delay
        )
        self.clock = clock

    async def create_order(
        self,
        order_type: int,
        client_id: int,
        vehicle_id: int,
        advisor_id: int,
        current_mileage: int,
        promised_at: datetime,
        service_type_id: Optional[int] = None,
        advisor_notes: Optional[str] = None,
        extra_service_ids: Optional[Iterable[int]] = None,
    ) -> dict[str, Any]:
        """
        Open a new order.

        Numbers the order, prices it and inserts it with its line items in
        one transaction. When another request takes the same number first,
        the whole transaction is retried with a fresh number.

        Args:
            order_type: Order type code
            client_id: Client the work is billed to
            vehicle_id: Vehicle being worked on
            advisor_id: Advisor opening the order
            current_mileage: Odometer reading at reception
            promised_at: Promised delivery date and time
            service_type_id: Optional base service
            advisor_notes: Optional notes
            extra_service_ids: Optional extra services

        Returns:
            Dictionary with order_id, order_number and total_cost

        Raises:
            ValidationError: If a required field is missing or malformed
            ConflictError: If no free order number was found within the attempts
            StorageError: If the store fails
        """
        extra_service_ids = list(extra_service_ids or [])
        self._validate_order_data(
            order_type=order_type,
            client_id=client_id,
            vehicle_id=vehicle_id,
            advisor_id=advisor_id,
            current_mileage=current_mileage,
            promised_at=promised_at,
            service_type_id=service_type_id,
            advisor_notes=advisor_notes,
            extra_service_ids=extra_service_ids,
        )

        logger.info(
            "Creating order",
            order_type=order_type,
            vehicle_id=vehicle_id,
            extra_count=len(extra_service_ids),
        )

        for attempt in range(1, self.max_attempts + 1):
            try:
                with log_performance(logger, "create_order", attempt=attempt):
                    async with self.gateway.transaction() as store:
                        order = await self._insert_order(
                            store,
                            order_type=order_type,
                            client_id=client_id,
                            vehicle_id=vehicle_id,
                            advisor_id=advisor_id,
                            current_mileage=current_mileage,
                            promised_at=promised_at,
                            service_type_id=service_type_id,
                            advisor_notes=advisor_notes,
                            extra_service_ids=extra_service_ids,
                        )
            except OrderNumberConflictError as e:
                logger.warning(
                    "Order number collision, retrying",
                    order_number=e.order_number,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self._backoff(attempt))
                continue

            logger.info(
                "Order created successfully",
                order_id=order.id,
                order_number=order.order_number,
                total_cost=str(order.total_cost),
                attempts=attempt,
            )
            return {
                "order_id": order.id,
                "order_number": order.order_number,
                "total_cost": order.total_cost,
            }

        logger.error(
            "Order numbering retries exhausted",
            order_type=order_type,
            max_attempts=self.max_attempts,
        )
        raise ConflictError(
            "Could not assign an order number, please retry",
            order_type=order_type,
            attempts=self.max_attempts,
        )

    async def cancel_order(self, order_id: int) -> dict[str, Any]:
        """
        Cancel an order and take it off the active queues.

        Cancelling an already cancelled order re-applies the cancellation.

        Raises:
            NotFoundError: If the order does not exist
            ConflictError: If the order was already delivered
        """
        self._validate_order_id(order_id)

        async with self.gateway.transaction() as store:
            order = await self._get_order_or_raise(store, order_id)
            self.state_machine.apply(order, OrderStatus.CANCELLED, self.clock())
            await store.update_order(order)

        logger.info("Order cancelled", order_id=order.id, order_number=order.order_number)
        return self._format_status_response(order)

    async def deliver_order(self, order_id: int) -> dict[str, Any]:
        """
        Hand an order back to the client.

        When the order carries a service type, a service history record
        with the projected next service is written in the same
        transaction as the status change.

        Raises:
            NotFoundError: If the order does not exist
            ConflictError: If the order was already delivered or cancelled
        """
        self._validate_order_id(order_id)
        history_id = None

        async with self.gateway.transaction() as store:
            order = await self._get_order_or_raise(store, order_id)
            now = self.clock()
            self.state_machine.apply(order, OrderStatus.DELIVERED, now)
            await store.update_order(order)

            if order.service_type_id is not None:
                record = await store.add_service_history(
                    self._build_service_history(order, now)
                )
                history_id = record.id

        logger.info(
            "Order delivered",
            order_id=order.id,
            order_number=order.order_number,
            service_history_id=history_id,
        )
        response = self._format_status_response(order)
        response["service_history_id"] = history_id
        return response

    async def list_open_orders(self, advisor_id: int, order_type: int) -> list[dict[str, Any]]:
        """
        Orders of one type still on an advisor's work queue.

        Returns:
            Orders sorted by promised delivery time
        """
        async with self.gateway.transaction() as store:
            orders = await store.list_open_orders(advisor_id, order_type)

        logger.debug(
            "Open orders listed",
            advisor_id=advisor_id,
            order_type=order_type,
            count=len(orders),
        )
        return [self._format_queue_entry(order) for order in orders]

    async def get_vehicle_history(self, vehicle_id: int, months: int = 6) -> dict[str, Any]:
        """
        Delivered orders of a vehicle over the last months, with summary figures.

        Args:
            vehicle_id: Vehicle identifier
            months: Size of the window, counted back from now

        Returns:
            Dictionary with the history entries, newest first, and statistics
        """
        since = add_months(self.clock(), -months)

        async with self.gateway.transaction() as store:
            orders = await store.list_delivered_orders(vehicle_id, since)

        entries = [self._format_history_entry(order) for order in orders]
        total_services = len(entries)
        average_cost = (
            to_money(sum((entry["total_cost"] for entry in entries), Decimal("0")) / total_services)
            if entries
            else Decimal("0.00")
        )
        latest = entries[0] if entries else None

        return {
            "vehicle_id": vehicle_id,
            "months": months,
            "history": entries,
            "total_services": total_services,
            "average_cost": average_cost,
            "last_mileage": latest["mileage"] if latest else 0,
            "last_service_date": latest["service_date"] if latest else None,
        }

    async def _insert_order(
        self,
        store: OrderStore,
        order_type: int,
        client_id: int,
        vehicle_id: int,
        advisor_id: int,
        current_mileage: int,
        promised_at: datetime,
        service_type_id: Optional[int],
        advisor_notes: Optional[str],
        extra_service_ids: list[int],
    ) -> Order:
        order_number = await self.numbering.next_number(store, order_type)
        costs = await self.pricing.calculate(store, service_type_id, extra_service_ids)

        order = Order(
            order_number=order_number,
            order_type=int(order_type),
            client_id=client_id,
            vehicle_id=vehicle_id,
            advisor_id=advisor_id,
            service_type_id=service_type_id,
            current_mileage=current_mileage,
            status=OrderStatus.CREATED,
            promised_at=promised_at,
            created_at=self.clock(),
            advisor_notes=advisor_notes,
            total_cost=costs.total,
            active=True,
            line_items=[
                OrderLineItem(extra_service_id=extra_id, price_applied=price)
                for extra_id, price in costs.extra_prices.items()
            ],
        )
        return await store.add_order(order)

    async def _get_order_or_raise(self, store: OrderStore, order_id: int) -> Order:
        order = await store.get_order(order_id, for_update=True)
        if order is None:
            logger.info("Order not found", order_id=order_id)
            raise NotFoundError(f"Order {order_id} not found", order_id=order_id)
        return order

    def _build_service_history(self, order: Order, now: datetime) -> ServiceHistory:
        next_service = self.projection.project(
            order.service_type_id, order.current_mileage, now
        )
        return ServiceHistory(
            vehicle_id=order.vehicle_id,
            order_id=order.id,
            service_type_id=order.service_type_id,
            mileage=order.current_mileage,
            service_date=now,
            next_mileage=next_service.mileage,
            next_date=next_service.date,
            total_cost=order.total_cost,
        )

    def _backoff(self, attempt: int) -> float:
        """Full jitter exponential backoff for the given attempt."""
        return random.uniform(0, self.retry_delay * (2 ** (attempt - 1)))

    @staticmethod
    def _validate_order_id(order_id: Any) -> None:
        if not _is_int(order_id) or order_id <= 0:
            raise ValidationError("Order id must be a positive integer", order_id=order_id)

    def _validate_order_data(
        self,
        order_type: Any,
        client_id: Any,
        vehicle_id: Any,
        advisor_id: Any,
        current_mileage: Any,
        promised_at: Any,
        service_type_id: Any,
        advisor_notes: Any,
        extra_service_ids: list[Any],
    ) -> None:
        """
        Validate order data.

        Raises:
            ValidationError: If validation fails
        """
        if not _is_int(order_type):
            raise ValidationError("order_type must be an integer", field="order_type")

        for field, value in (
            ("client_id", client_id),
            ("vehicle_id", vehicle_id),
            ("advisor_id", advisor_id),
        ):
            if not _is_int(value) or value <= 0:
                raise ValidationError(f"{field} must be a positive integer", field=field)

        if service_type_id is not None and (not _is_int(service_type_id) or service_type_id <= 0):
            raise ValidationError(
                "service_type_id must be a positive integer", field="service_type_id"
            )

        if not _is_int(current_mileage) or current_mileage < 0:
            raise ValidationError(
                "current_mileage must be a non-negative integer", field="current_mileage"
            )

        if not isinstance(promised_at, datetime):
            raise ValidationError("promised_at is required", field="promised_at")

        if advisor_notes is not None and not isinstance(advisor_notes, str):
            raise ValidationError("advisor_notes must be text", field="advisor_notes")

        for extra_id in extra_service_ids:
            if not _is_int(extra_id) or extra_id <= 0:
                raise ValidationError(
                    "extra_service_ids must contain positive integers",
                    field="extra_service_ids",
                )

    @staticmethod
    def _format_status_response(order: Order) -> dict[str, Any]:
        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "status": OrderStatus(order.status),
            "active": order.active,
            "delivered_at": order.delivered_at,
        }

    @staticmethod
    def _format_queue_entry(order: Order) -> dict[str, Any]:
        service_type = order.service_type
        try:
            order_type_name = OrderType(order.order_type).display_name
        except ValueError:
            order_type_name = "Other"
        return {
            "id": order.id,
            "order_number": order.order_number,
            "order_type": order.order_type,
            "order_type_name": order_type_name,
            "client_id": order.client_id,
            "vehicle_id": order.vehicle_id,
            "service_type": service_type.name if service_type else None,
            "promised_at": order.promised_at,
            "process_started_at": order.process_started_at,
            "finished_at": order.finished_at,
            "total_cost": order.total_cost,
            "status": OrderStatus(order.status),
        }

    @staticmethod
    def _format_history_entry(order: Order) -> dict[str, Any]:
        service_type = order.service_type
        return {
            "order_number": order.order_number,
            "service_date": order.created_at,
            "service_type": service_type.name if service_type else GENERAL_SERVICE_LABEL,
            "mileage": order.current_mileage,
            "total_cost": order.total_cost,
            "extra_services": [
                {
                    "name": item.extra_service.name if item.extra_service else "",
                    "price": item.price_applied,
                }
                for item in order.line_items
            ],
            "advisor_notes": order.advisor_notes or "",
        }
