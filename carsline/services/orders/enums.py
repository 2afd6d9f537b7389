"""Order type and order status enums for the workshop order lifecycle.

Both enums are stored as their integer codes, which are the codes the
mobile client and existing rows already use.
"""

from enum import IntEnum
from typing import Union


DEFAULT_ORDER_PREFIX = "ORD"


class OrderType(IntEnum):
    """Kind of work an order represents.

    Each type owns the prefix of its order numbers. Codes without a
    member here are still accepted and numbered under ``ORD``.
    """

    SERVICE = 1
    DIAGNOSIS = 2
    REPAIR = 3
    WARRANTY = 4

    @property
    def prefix(self) -> str:
        """Three letter order number prefix."""
        return _ORDER_TYPE_PREFIXES[self]

    @property
    def display_name(self) -> str:
        return self.name.replace("_", " ").title()


_ORDER_TYPE_PREFIXES = {
    OrderType.SERVICE: "SRV",
    OrderType.DIAGNOSIS: "DIA",
    OrderType.REPAIR: "REP",
    OrderType.WARRANTY: "GAR",
}


def prefix_for_order_type(order_type: Union[OrderType, int]) -> str:
    """Map an order type code to its order number prefix.

    Args:
        order_type: OrderType member or raw integer code

    Returns:
        Prefix such as ``SRV``; ``ORD`` for unknown codes
    """
    try:
        return OrderType(order_type).prefix
    except ValueError:
        return DEFAULT_ORDER_PREFIX


class OrderStatus(IntEnum):
    """Order lifecycle status.

    Valid transitions driven by this service:
    - CREATED, IN_PROCESS, FINISHED -> CANCELLED, DELIVERED
    - CANCELLED -> CANCELLED (repeat cancel re-applies)
    - DELIVERED -> (terminal state)

    CREATED -> IN_PROCESS -> FINISHED are recorded by the workshop floor
    tooling and are not driven from here.
    """

    CREATED = 1
    IN_PROCESS = 2
    FINISHED = 3
    DELIVERED = 4
    CANCELLED = 5

    @property
    def display_name(self) -> str:
        """Get human-readable display name for status."""
        return self.name.replace("_", " ").title()


OPEN_STATUSES = frozenset(
    {OrderStatus.CREATED, OrderStatus.IN_PROCESS, OrderStatus.FINISHED}
)
