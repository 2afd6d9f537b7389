"""
SQLAlchemy declarative base and common model mixins.

This module provides the SQLAlchemy DeclarativeBase shared by every
workshop table, an integer surrogate key mixin and a helper to build
``__table_args__``.
"""

from typing import Any, Dict, Optional

from sqlalchemy import Integer
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all SQLAlchemy models with async support.

    Provides async attribute loading and a primary key based repr.
    """

    __abstract__ = True

    def __repr__(self) -> str:
        """
        Generate string representation of model instance.

        Returns:
            String representation with primary key values
        """
        pk_values = []
        for column in self.__table__.primary_key.columns:
            value = getattr(self, column.key, None)
            if value is not None:
                pk_values.append(f"{column.key}={value!r}")

        pk_str = ", ".join(pk_values) if pk_values else "transient"
        return f"<{self.__class__.__name__}({pk_str})>"


class IntegerIdMixin:
    """Mixin for an autoincrementing integer primary key."""

    @declared_attr
    def id(cls) -> Mapped[int]:
        return mapped_column(
            Integer,
            primary_key=True,
            autoincrement=True,
            comment="Surrogate identifier",
        )


class BaseModel(Base, IntegerIdMixin):
    """
    Base model with an integer primary key.

    Example:
        class ServiceType(BaseModel):
            __tablename__ = "service_types"

            name: Mapped[str] = mapped_column(String(150))
    """

    __abstract__ = True


def create_table_args(
    *constraints: Any,
    comment: Optional[str] = None,
    **kwargs: Any,
) -> tuple:
    """
    Create a ``__table_args__`` tuple with common settings.

    Args:
        *constraints: Constraint and index objects for the table
        comment: Table comment for documentation
        **kwargs: Additional table keyword arguments

    Returns:
        Tuple suitable for __table_args__
    """
    table_kwargs: Dict[str, Any] = dict(kwargs)
    if comment:
        table_kwargs["comment"] = comment
    return (*constraints, table_kwargs)
