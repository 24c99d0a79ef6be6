# shopagenda/crud/appointment.py

from __future__ import annotations
import hashlib
import secrets
from datetime import datetime
from typing import Any, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from shopagenda.core.transitions import TERMINAL_STATUSES, Action, Actor, AppointmentStatus
from shopagenda.db.models.appointment import Appointment, AppointmentEvent
from shopagenda.db.types import utcnow

TOKEN_BYTES = 32


def digest_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def new_confirmation_token() -> tuple[str, str]:
    """Fresh bearer token and the digest used to look it up."""
    token = secrets.token_urlsafe(TOKEN_BYTES)
    return token, digest_token(token)


async def insert_appointment(db: AsyncSession, *, actor: Actor, **fields: Any) -> Appointment:
    token, token_digest = new_confirmation_token()
    now = utcnow()
    appt = Appointment(
        status=AppointmentStatus.PROPOSED,
        proposed_by=actor,
        confirmation_token=token,
        token_digest=token_digest,
        created_at=now,
        updated_at=now,
        **fields,
    )
    db.add(appt)
    await db.flush()  # assigns id for the history row
    add_event(
        db,
        appt,
        action=Action.CREATE,
        actor=actor,
        from_status=None,
    )
    await db.commit()
    await db.refresh(appt)
    return appt


def add_event(
    db: AsyncSession,
    appt: Appointment,
    *,
    action: Action,
    actor: Actor,
    from_status: Optional[AppointmentStatus],
    to_status: Optional[AppointmentStatus] = None,
    start_datetime: Optional[datetime] = None,
    counter_proposal_datetime: Optional[datetime] = None,
    counter_proposal_message: Optional[str] = None,
) -> AppointmentEvent:
    event = AppointmentEvent(
        appointment_id=appt.id,
        action=action,
        actor=actor,
        from_status=from_status,
        to_status=to_status or appt.status,
        start_datetime=start_datetime or appt.start_datetime,
        counter_proposal_datetime=counter_proposal_datetime,
        counter_proposal_message=counter_proposal_message,
        created_at=utcnow(),
    )
    db.add(event)
    return event


async def update_if_status(
    db: AsyncSession,
    *,
    appointment_id: int,
    expected_status: AppointmentStatus,
    values: dict[str, Any],
) -> bool:
    """Compare-and-swap on status. False means another writer got there first.

    Does not commit; the caller commits together with the history row.
    """
    result = await db.execute(
        sa.update(Appointment)
        .where(
            Appointment.id == appointment_id,
            Appointment.status == expected_status,
        )
        .values(**values, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def get_appointment(
    db: AsyncSession,
    *,
    appointment_id: int,
    shop_id: Optional[int] = None,
) -> Optional[Appointment]:
    q = sa.select(Appointment).where(Appointment.id == appointment_id)
    if shop_id is not None:
        q = q.where(Appointment.shop_id == shop_id)
    res = await db.execute(q.execution_options(populate_existing=True))
    return res.scalar_one_or_none()


async def get_by_token_digest(db: AsyncSession, token_digest: str) -> Optional[Appointment]:
    res = await db.execute(
        sa.select(Appointment)
        .where(Appointment.token_digest == token_digest)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def list_appointments(
    db: AsyncSession,
    *,
    shop_id: int,
    start_utc: Optional[datetime] = None,
    end_utc: Optional[datetime] = None,
    active_only: bool = False,
    limit: Optional[int] = None,
) -> Sequence[Appointment]:
    q = sa.select(Appointment).where(Appointment.shop_id == shop_id)
    if start_utc is not None:
        q = q.where(Appointment.start_datetime >= start_utc)
    if end_utc is not None:
        q = q.where(Appointment.start_datetime < end_utc)
    if active_only:
        q = q.where(Appointment.status.not_in(sorted(TERMINAL_STATUSES)))
    q = q.order_by(Appointment.start_datetime.asc(), Appointment.id.asc())
    if limit is not None:
        q = q.limit(limit)
    res = await db.execute(q)
    return res.scalars().all()


async def list_pending_counter_proposals(db: AsyncSession, *, shop_id: int) -> Sequence[Appointment]:
    res = await db.execute(
        sa.select(Appointment)
        .where(
            Appointment.shop_id == shop_id,
            Appointment.status == AppointmentStatus.COUNTER_PROPOSED,
        )
        .order_by(Appointment.updated_at.desc())
    )
    return res.scalars().all()


async def count_active_between(
    db: AsyncSession,
    *,
    shop_id: int,
    start_utc: datetime,
    end_utc: datetime,
) -> int:
    res = await db.execute(
        sa.select(sa.func.count(Appointment.id)).where(
            Appointment.shop_id == shop_id,
            Appointment.start_datetime >= start_utc,
            Appointment.start_datetime < end_utc,
            Appointment.status.not_in(sorted(TERMINAL_STATUSES)),
        )
    )
    return int(res.scalar_one())


async def list_events(db: AsyncSession, *, appointment_id: int) -> Sequence[AppointmentEvent]:
    res = await db.execute(
        sa.select(AppointmentEvent)
        .where(AppointmentEvent.appointment_id == appointment_id)
        .order_by(AppointmentEvent.id.asc())
    )
    return res.scalars().all()


async def delete_appointment(db: AsyncSession, *, shop_id: int, appointment_id: int) -> bool:
    """Hard delete. History goes with it."""
    await db.execute(
        sa.delete(AppointmentEvent).where(
            AppointmentEvent.appointment_id == appointment_id,
            AppointmentEvent.appointment_id.in_(
                sa.select(Appointment.id).where(Appointment.shop_id == shop_id)
            ),
        )
    )
    result = await db.execute(
        sa.delete(Appointment).where(
            Appointment.id == appointment_id,
            Appointment.shop_id == shop_id,
        )
    )
    await db.commit()
    return result.rowcount == 1
