"""
Service history model.

One row per delivered order that carried a service type. Rows are
written once, at delivery, and never updated afterwards.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from carsline.database.base import BaseModel, create_table_args


class ServiceHistory(BaseModel):
    """
    Completed service on a vehicle, with the projected next service.

    References the order and the vehicle by id only.
    """

    __tablename__ = "service_history"

    vehicle_id: Mapped[int] = mapped_column(Integer, nullable=False)

    order_id: Mapped[int] = mapped_column(Integer, nullable=False)

    service_type_id: Mapped[int] = mapped_column(Integer, nullable=False)

    mileage: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Odometer reading when the service was done",
    )

    service_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    next_mileage: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Projected odometer reading for the next service",
    )

    next_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Projected date of the next service",
    )

    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Order cost snapshot",
    )

    __table_args__ = create_table_args(
        Index("ix_service_history_vehicle_date", "vehicle_id", "service_date"),
        Index("ix_service_history_order", "order_id"),
        comment="Completed services per vehicle",
    )
