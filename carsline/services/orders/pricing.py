"""
Order cost calculation.

The cost of an order is the base price of its service type plus the
price of every extra service selected, read from the catalog when the
order is created and stored as a snapshot.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from carsline.core.logging import get_logger
from carsline.services.orders.gateway import OrderStore

logger = get_logger(__name__)

CENTS = Decimal("0.01")


def to_money(value: Optional[Decimal]) -> Decimal:
    """Quantize an amount to cents; None counts as zero."""
    if value is None:
        return Decimal("0.00")
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CostBreakdown:
    """Priced components of a new order."""

    base_price: Decimal = Decimal("0.00")
    extra_prices: dict[int, Decimal] = field(default_factory=dict)

    @property
    def total(self) -> Decimal:
        return to_money(self.base_price + sum(self.extra_prices.values(), Decimal("0.00")))


class OrderCostCalculator:
    """Prices an order from the service catalog."""

    async def calculate(
        self,
        store: OrderStore,
        service_type_id: Optional[int] = None,
        extra_service_ids: Optional[Iterable[int]] = None,
    ) -> CostBreakdown:
        """
        Price a service type plus extra services.

        Unknown service types count as zero and unknown extra services are
        skipped. An extra service listed twice is priced once.

        Args:
            store: Store of the running transaction
            service_type_id: Optional base service
            extra_service_ids: Optional extra services

        Returns:
            Cost breakdown with the prices that were found
        """
        base_price = Decimal("0.00")
        if service_type_id is not None:
            found = await store.get_service_type_price(service_type_id)
            if found is None:
                logger.info("Service type not found, priced at zero", service_type_id=service_type_id)
            base_price = to_money(found)

        requested = list(dict.fromkeys(extra_service_ids or ()))
        extra_prices: dict[int, Decimal] = {}
        if requested:
            found_prices = await store.get_extra_service_prices(requested)
            extra_prices = {
                extra_id: to_money(found_prices[extra_id])
                for extra_id in requested
                if extra_id in found_prices
            }
            missing = [extra_id for extra_id in requested if extra_id not in found_prices]
            if missing:
                logger.info("Unknown extra services ignored", extra_service_ids=missing)

        breakdown = CostBreakdown(base_price=base_price, extra_prices=extra_prices)

        logger.debug(
            "Order cost calculated",
            service_type_id=service_type_id,
            base_price=str(breakdown.base_price),
            extra_count=len(extra_prices),
            total=str(breakdown.total),
        )

        return breakdown
