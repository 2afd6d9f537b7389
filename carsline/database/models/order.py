"""
Order and order line item models.

An Order is one unit of workshop work on a vehicle. Its line items are
the extra services selected when the order was opened, each carrying the
price that applied at that moment.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from carsline.database.base import BaseModel, create_table_args
from carsline.services.orders.enums import OrderStatus

if TYPE_CHECKING:
    from carsline.database.models.catalog import ExtraService, ServiceType


class StatusCode(TypeDecorator):
    """Persist an OrderStatus as its integer code."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return OrderStatus(value)


class Order(BaseModel):
    """
    Workshop order.

    Attributes:
        order_number: Human-readable ``<PREFIX>-<6 digits>`` number, unique forever
        order_type: Order type code (see OrderType); unknown codes are kept as-is
        client_id: Client the work is billed to
        vehicle_id: Vehicle being worked on
        advisor_id: Service advisor who opened the order
        service_type_id: Optional base service from the catalog
        current_mileage: Odometer reading at reception
        status: Lifecycle status
        promised_at: Delivery time promised to the client
        created_at: When the order was opened
        process_started_at: When work started, if it has
        finished_at: When work finished, if it has
        delivered_at: When the vehicle was handed back
        advisor_notes: Free text notes from the advisor
        total_cost: Cost snapshot taken at creation
        active: False once the order leaves the active queues
    """

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Human-readable order number",
    )

    order_type: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Order type code",
    )

    client_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    vehicle_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    advisor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Plain reference: an unknown service type is accepted and priced at zero.
    service_type_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Base service from the catalog",
    )

    current_mileage: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Odometer reading at reception",
    )

    status: Mapped[OrderStatus] = mapped_column(
        StatusCode(),
        nullable=False,
        default=OrderStatus.CREATED,
        index=True,
        comment="Lifecycle status code",
    )

    promised_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Promised delivery date and time",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the order was opened",
    )

    process_started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    finished_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    advisor_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Cost snapshot taken at creation",
    )

    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="False once excluded from active queue queries",
    )

    line_items: Mapped[list["OrderLineItem"]] = relationship(
        "OrderLineItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderLineItem.id",
    )

    service_type: Mapped[Optional["ServiceType"]] = relationship(
        "ServiceType",
        primaryjoin="foreign(Order.service_type_id) == ServiceType.id",
        lazy="selectin",
        viewonly=True,
    )

    __table_args__ = create_table_args(
        UniqueConstraint("order_number", name="uq_orders_order_number"),
        Index("ix_orders_advisor_type_status", "advisor_id", "order_type", "status"),
        Index("ix_orders_vehicle_status_created", "vehicle_id", "status", "created_at"),
        CheckConstraint("current_mileage >= 0", name="ck_orders_mileage_non_negative"),
        CheckConstraint("total_cost >= 0", name="ck_orders_total_cost_non_negative"),
        comment="Workshop orders",
    )

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, order_number={self.order_number}, "
            f"status={self.status.name if self.status else None})>"
        )


class OrderLineItem(BaseModel):
    """Extra service applied to an order, priced when the order was opened."""

    __tablename__ = "order_line_items"

    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    extra_service_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("extra_services.id", ondelete="RESTRICT"),
        nullable=False,
    )

    price_applied: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Extra service price at order creation",
    )

    order: Mapped["Order"] = relationship("Order", back_populates="line_items")

    extra_service: Mapped[Optional["ExtraService"]] = relationship(
        "ExtraService",
        lazy="selectin",
    )

    __table_args__ = create_table_args(
        CheckConstraint("price_applied >= 0", name="ck_line_items_price_non_negative"),
        comment="Extra services applied to orders",
    )
