# shopagenda/db/models/working_hours.py

from __future__ import annotations
from datetime import time
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from shopagenda.db.session import Base


class WorkingHours(Base):
    __tablename__ = "working_hours"
    __table_args__ = (
        sa.UniqueConstraint("shop_id", "weekday", name="uq_working_hours_shop_id_weekday"),
        sa.CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_working_hours_weekday"),
        sa.CheckConstraint(
            "(break_start IS NULL) = (break_end IS NULL)",
            name="ck_working_hours_break_pair",
        ),
    )

    id: Mapped[int] = mapped_column(sa.BigInteger().with_variant(sa.Integer, "sqlite"), primary_key=True, autoincrement=True)
    shop_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    weekday: Mapped[int] = mapped_column(sa.SmallInteger, nullable=False)  # 0=Mon .. 6=Sun
    is_open: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    start_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    end_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    break_start: Mapped[time | None] = mapped_column(sa.Time)
    break_end: Mapped[time | None] = mapped_column(sa.Time)
