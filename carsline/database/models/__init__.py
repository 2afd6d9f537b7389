"""
Database models package initialization.

Models are imported here so that they are registered with the Base
metadata before tables are created or relationships resolved.
"""

from carsline.database.base import Base, BaseModel, IntegerIdMixin, create_table_args
from carsline.database.models.catalog import ExtraService, ServiceType
from carsline.database.models.order import Order, OrderLineItem
from carsline.database.models.service_history import ServiceHistory

__all__ = [
    "Base",
    "BaseModel",
    "IntegerIdMixin",
    "create_table_args",
    "ExtraService",
    "ServiceType",
    "Order",
    "OrderLineItem",
    "ServiceHistory",
]
