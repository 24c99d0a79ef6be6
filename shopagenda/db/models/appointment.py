# shopagenda/db/models/appointment.py

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Any
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopagenda.core.transitions import Action, Actor, AppointmentStatus, AppointmentType, EventKind
from shopagenda.db.session import Base
from shopagenda.db.types import UTCDateTime, utcnow

_ID = sa.BigInteger().with_variant(sa.Integer, "sqlite")


def _enum(enum_cls, name: str) -> sa.Enum:
    # store the lowercase values, not the member names
    return sa.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        sa.Index("ix_appointments_shop_id_start", "shop_id", "start_datetime"),
        sa.Index("ix_appointments_shop_id_status", "shop_id", "status"),
        sa.CheckConstraint("duration_minutes > 0", name="ck_appointments_duration_positive"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    shop_id: Mapped[int] = mapped_column(sa.BigInteger, sa.ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)

    # Weak references, lookup only
    sav_case_id: Mapped[str | None] = mapped_column(sa.String(64))
    customer_id: Mapped[int | None] = mapped_column(sa.BigInteger)
    technician_id: Mapped[str | None] = mapped_column(sa.String(64))

    start_datetime: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=30)
    status: Mapped[AppointmentStatus] = mapped_column(
        _enum(AppointmentStatus, "appointment_status"), nullable=False, default=AppointmentStatus.PROPOSED
    )
    appointment_type: Mapped[AppointmentType] = mapped_column(
        _enum(AppointmentType, "appointment_type"), nullable=False
    )
    proposed_by: Mapped[Actor] = mapped_column(_enum(Actor, "appointment_actor"), nullable=False)

    confirmation_token: Mapped[str] = mapped_column(sa.String(128), nullable=False, unique=True)
    token_digest: Mapped[str] = mapped_column(sa.String(64), nullable=False, unique=True, index=True)

    counter_proposal_datetime: Mapped[datetime | None] = mapped_column(UTCDateTime)
    counter_proposal_message: Mapped[str | None] = mapped_column(sa.Text)

    notes: Mapped[str | None] = mapped_column(sa.Text)
    device_info: Mapped[dict[str, Any]] = mapped_column(sa.JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    events: Mapped[list["AppointmentEvent"]] = relationship(
        back_populates="appointment",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="AppointmentEvent.id",
    )

    @property
    def end_datetime(self) -> datetime:
        return self.start_datetime + timedelta(minutes=self.duration_minutes)


class AppointmentEvent(Base):
    """Append-only history; keeps counter-proposals after they are resolved."""
    __tablename__ = "appointment_events"
    __table_args__ = (
        sa.Index("ix_appointment_events_appointment_id", "appointment_id"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    appointment_id: Mapped[int] = mapped_column(
        sa.BigInteger, sa.ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    action: Mapped[Action] = mapped_column(_enum(Action, "appointment_action"), nullable=False)
    actor: Mapped[Actor] = mapped_column(_enum(Actor, "appointment_actor"), nullable=False)
    from_status: Mapped[AppointmentStatus | None] = mapped_column(_enum(AppointmentStatus, "appointment_status"))
    to_status: Mapped[AppointmentStatus] = mapped_column(_enum(AppointmentStatus, "appointment_status"), nullable=False)
    start_datetime: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    counter_proposal_datetime: Mapped[datetime | None] = mapped_column(UTCDateTime)
    counter_proposal_message: Mapped[str | None] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    appointment: Mapped["Appointment"] = relationship(back_populates="events")


class AppointmentMessage(Base):
    """In-app chat message written by the chat notification channel."""
    __tablename__ = "appointment_messages"
    __table_args__ = (
        sa.Index("ix_appointment_messages_shop_id", "shop_id"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    shop_id: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    # no FK: messages outlive a deleted appointment
    appointment_id: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    sav_case_id: Mapped[str | None] = mapped_column(sa.String(64))
    sender_type: Mapped[Actor] = mapped_column(_enum(Actor, "appointment_actor"), nullable=False)
    event_kind: Mapped[EventKind] = mapped_column(_enum(EventKind, "appointment_event_kind"), nullable=False)
    body: Mapped[str] = mapped_column(sa.Text, nullable=False)
    read: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
