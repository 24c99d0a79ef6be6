# shopagenda/db/models/shop.py

from __future__ import annotations
from datetime import datetime
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from shopagenda.db.session import Base
from shopagenda.db.types import UTCDateTime, utcnow


class Shop(Base):
    """Tenant. Owned by the wider product; read here for names and timezone."""
    __tablename__ = "shops"

    id: Mapped[int] = mapped_column(sa.BigInteger().with_variant(sa.Integer, "sqlite"), primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    phone: Mapped[str | None] = mapped_column(sa.String(20))
    address: Mapped[str | None] = mapped_column(sa.Text)
    timezone: Mapped[str | None] = mapped_column(sa.String(64))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class Customer(Base):
    """Lookup only: recipient phone for SMS, first name for the public page."""
    __tablename__ = "customers"
    __table_args__ = (
        sa.Index("ix_customers_shop_id", "shop_id"),
    )

    id: Mapped[int] = mapped_column(sa.BigInteger().with_variant(sa.Integer, "sqlite"), primary_key=True, autoincrement=True)
    shop_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    first_name: Mapped[str] = mapped_column(sa.String(120), nullable=False)
    last_name: Mapped[str | None] = mapped_column(sa.String(120))
    phone: Mapped[str | None] = mapped_column(sa.String(20))
    email: Mapped[str | None] = mapped_column(sa.String(254))
