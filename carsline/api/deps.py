"""
FastAPI dependencies for the order endpoints.

This module provides dependency functions wiring the order service to the
database gateway and reading the acting advisor from the request headers.
Authentication itself happens upstream; the advisor id arrives already
resolved in the ``X-User-Id`` header.
"""

from typing import Annotated

from fastapi import Depends, Header

from carsline.core.exceptions import AuthenticationError
from carsline.core.logging import get_logger, set_advisor_id
from carsline.database.connection import get_session_factory
from carsline.services.orders.gateway import OrderGateway
from carsline.services.orders.repository import SqlAlchemyOrderGateway
from carsline.services.orders.service import OrderService

logger = get_logger(__name__)


def get_order_gateway() -> OrderGateway:
    """Order gateway bound to the application's session factory."""
    return SqlAlchemyOrderGateway(get_session_factory())


def get_order_service(
    gateway: Annotated[OrderGateway, Depends(get_order_gateway)],
) -> OrderService:
    return OrderService(gateway)


async def get_advisor_id(
    x_user_id: Annotated[str | None, Header(alias="X-User-Id")] = None,
) -> int:
    """
    Resolve the acting advisor from the ``X-User-Id`` header.

    Raises:
        AuthenticationError: If the header is missing or not a positive integer
    """
    if x_user_id is None:
        logger.warning("Advisor identification failed: header missing")
        raise AuthenticationError("X-User-Id header is required")

    try:
        advisor_id = int(x_user_id)
    except ValueError:
        advisor_id = 0

    if advisor_id <= 0:
        logger.warning("Advisor identification failed: invalid id", value=x_user_id)
        raise AuthenticationError("X-User-Id header must be a positive integer")

    set_advisor_id(advisor_id)
    return advisor_id


# Type aliases for common dependencies
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
AdvisorId = Annotated[int, Depends(get_advisor_id)]
