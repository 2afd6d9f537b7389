"""
Persistence gateway used by the order services.

The services never touch a session directly. They open a transaction on an
``OrderGateway`` and work against the ``OrderStore`` it yields; everything
done through that store commits together or not at all.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from carsline.database.models import Order, ServiceHistory


class OrderStore(ABC):
    """Persistence operations available inside one transaction."""

    @abstractmethod
    async def list_order_numbers(self, prefix: str) -> list[str]:
        """Return every order number starting with ``<prefix>-``."""

    @abstractmethod
    async def get_service_type_price(self, service_type_id: int) -> Optional[Decimal]:
        """Return the base price of a service type, None if it does not exist."""

    @abstractmethod
    async def get_extra_service_prices(self, extra_service_ids: Sequence[int]) -> dict[int, Decimal]:
        """Return prices keyed by id for the extra services that exist."""

    @abstractmethod
    async def add_order(self, order: Order) -> Order:
        """
        Insert an order together with its line items.

        Raises:
            OrderNumberConflictError: If the order number is already taken
        """

    @abstractmethod
    async def get_order(self, order_id: int, for_update: bool = False) -> Optional[Order]:
        """
        Return an order with its line items, None if it does not exist.

        ``for_update`` locks the row until the transaction ends where the
        backend supports it.
        """

    @abstractmethod
    async def update_order(self, order: Order) -> Order:
        """Write pending changes of an order loaded through this store."""

    @abstractmethod
    async def add_service_history(self, record: ServiceHistory) -> ServiceHistory:
        """Insert a service history row."""

    @abstractmethod
    async def list_open_orders(self, advisor_id: int, order_type: int) -> Sequence[Order]:
        """Active orders of an advisor and type still on the work queue, by promised time."""

    @abstractmethod
    async def list_delivered_orders(self, vehicle_id: int, since: datetime) -> Sequence[Order]:
        """Active delivered orders of a vehicle created since a date, newest first."""


class OrderGateway(ABC):
    """Factory of transactional order stores."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[OrderStore]:
        """
        Open a transaction.

        Commits when the block exits normally and rolls back on any
        exception, which is re-raised.
        """
