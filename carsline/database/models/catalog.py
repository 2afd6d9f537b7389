"""
Service catalog models.

The catalog is maintained elsewhere; the order services only read the
base price of a service type and the prices of extra services.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from carsline.database.base import BaseModel, create_table_args


class ServiceType(BaseModel):
    """Base workshop service, e.g. a 10,000 km maintenance."""

    __tablename__ = "service_types"

    name: Mapped[str] = mapped_column(String(150), nullable=False)

    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    base_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0.00"),
    )

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = create_table_args(
        CheckConstraint("base_price >= 0", name="ck_service_types_price_non_negative"),
        comment="Catalog of base services",
    )


class ExtraService(BaseModel):
    """Optional add-on service that can be applied to an order."""

    __tablename__ = "extra_services"

    name: Mapped[str] = mapped_column(String(150), nullable=False)

    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0.00"),
    )

    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = create_table_args(
        CheckConstraint("price >= 0", name="ck_extra_services_price_non_negative"),
        comment="Catalog of extra services",
    )
