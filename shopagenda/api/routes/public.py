# shopagenda/api/routes/public.py
"""
Public confirmation page API. The token in the URL is the only credential.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shopagenda.api.auth import get_dispatcher
from shopagenda.core.transitions import AppointmentStatus
from shopagenda.db.session import get_session
from shopagenda.schemas.public import CounterProposalIn, PublicActionOut, PublicAppointmentOut
from shopagenda.services import gateway
from shopagenda.services.notifications import NotificationDispatcher

router = APIRouter(prefix="/rdv", tags=["public"])


def _action_out(status: AppointmentStatus, message: str) -> PublicActionOut:
    return PublicActionOut(
        status=status.value,
        status_label=gateway.STATUS_LABELS[status],
        message=message,
    )


@router.get("/{token}", response_model=PublicAppointmentOut)
async def view_appointment(token: str, db: AsyncSession = Depends(get_session)):
    return PublicAppointmentOut.model_validate(await gateway.view(db, token), from_attributes=True)


@router.post("/{token}/confirm", response_model=PublicActionOut)
async def confirm_appointment(
    token: str,
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = await gateway.confirm(db, dispatcher, token)
    # delivery warnings stay on the shop side
    return _action_out(AppointmentStatus(result.appointment.status), "Your appointment is confirmed.")


@router.post("/{token}/counter-proposal", response_model=PublicActionOut)
async def counter_propose(
    token: str,
    payload: CounterProposalIn,
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = await gateway.counter_propose(
        db, dispatcher, token, payload.proposed_datetime, payload.message
    )
    return _action_out(
        AppointmentStatus(result.appointment.status),
        "Your proposal was sent to the shop. You will be notified of their answer.",
    )
