"""
Sequential order numbering.

Order numbers look like ``SRV-000042``: the prefix of the order type, a
dash, and a per-prefix sequence zero padded to six digits. The next
sequence is derived from the numbers already stored, so two concurrent
creations can compute the same number; the unique constraint on
``orders.order_number`` rejects the second insert and the caller retries.
"""

from typing import Iterable, Union

from carsline.core.logging import get_logger
from carsline.services.orders.enums import OrderType, prefix_for_order_type
from carsline.services.orders.gateway import OrderStore

logger = get_logger(__name__)

SEQUENCE_WIDTH = 6


def parse_sequence(order_number: str) -> int:
    """
    Extract the sequence from an order number.

    Everything after the first dash must be an integer. Numbers that do
    not follow the format count as 0 rather than failing.

    Args:
        order_number: Stored order number

    Returns:
        Parsed sequence, or 0 when it cannot be parsed
    """
    parts = order_number.split("-", 1)
    if len(parts) < 2:
        return 0
    try:
        return int(parts[1])
    except ValueError:
        return 0


def next_sequence(existing_numbers: Iterable[str]) -> int:
    """Return one past the highest sequence among existing numbers."""
    return max((parse_sequence(number) for number in existing_numbers), default=0) + 1


def format_order_number(prefix: str, sequence: int) -> str:
    """Format ``prefix`` and ``sequence`` as ``PREFIX-000001``."""
    return f"{prefix}-{sequence:0{SEQUENCE_WIDTH}d}"


class OrderNumberGenerator:
    """Derives the next order number for an order type."""

    async def next_number(
        self,
        store: OrderStore,
        order_type: Union[OrderType, int],
    ) -> str:
        """
        Compute the next order number within the caller's transaction.

        Args:
            store: Store of the running transaction
            order_type: Order type code

        Returns:
            Order number one past the highest stored for the type's prefix
        """
        prefix = prefix_for_order_type(order_type)
        existing = await store.list_order_numbers(prefix)
        order_number = format_order_number(prefix, next_sequence(existing))

        logger.debug(
            "Order number computed",
            prefix=prefix,
            existing_count=len(existing),
            order_number=order_number,
        )

        return order_number
