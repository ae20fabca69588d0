"""
Base ORM Model and Mixins.

============================================================
PURPOSE
============================================================
Declarative base and shared mixins for the transfer store.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- TimestampMixin: created_at / updated_at bookkeeping columns
- BaseUnitAmount: exact integer token amounts on every dialect

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Declarative base for the transfer store.

    Every datetime column is timezone-aware. SQLite drops the
    offset on read, repositories re-attach UTC.
    """

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """
    Mixin providing row bookkeeping timestamps.

    updated_at doubles as the staleness signal for sync cursors.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Row creation timestamp (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Last update timestamp (UTC)"
    )


class BaseUnitAmount(TypeDecorator):
    """
    Raw token amount in base units, up to 78 digits (uint256).

    PostgreSQL stores NUMERIC(78, 0). SQLite has no exact decimal type
    and would bind through float, so other dialects store the digits
    as text. Python values are always int.
    """

    impl = Numeric(78, 0)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(Numeric(78, 0))
        return dialect.type_descriptor(String(80))

    def process_bind_param(self, value: Any, dialect) -> Optional[Any]:
        if value is None:
            return None
        if dialect.name == "postgresql":
            return Decimal(int(value))
        return str(int(value))

    def process_result_value(self, value: Any, dialect) -> Optional[int]:
        if value is None:
            return None
        return int(value)
