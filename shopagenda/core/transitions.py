# shopagenda/core/transitions.py
"""
Appointment status set and its legal-transition table.

Every status change in the service is checked with ``rule_for()``; callers
never compare status strings themselves.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from shopagenda.core.errors import InvalidTransition


class AppointmentStatus(str, Enum):
    PROPOSED = "proposed"
    CONFIRMED = "confirmed"
    COUNTER_PROPOSED = "counter_proposed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    AppointmentStatus.CANCELLED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.NO_SHOW,
})


class AppointmentType(str, Enum):
    DEPOSIT = "deposit"
    PICKUP = "pickup"
    DIAGNOSTIC = "diagnostic"
    REPAIR = "repair"


class Actor(str, Enum):
    SHOP = "shop"
    CLIENT = "client"

    @property
    def other(self) -> "Actor":
        return Actor.CLIENT if self is Actor.SHOP else Actor.SHOP


class Action(str, Enum):
    CREATE = "create"
    CONFIRM = "confirm"
    COUNTER_PROPOSE = "counter_propose"
    CANCEL = "cancel"
    ACCEPT_COUNTER = "accept_counter"
    REJECT_COUNTER = "reject_counter"
    COMPLETE = "complete"
    MARK_NO_SHOW = "mark_no_show"
    EDIT = "edit"
    DELETE = "delete"


class EventKind(str, Enum):
    """What the other party is told about."""
    PROPOSED = "proposed"
    CONFIRMED = "confirmed"
    COUNTER_PROPOSED = "counter_proposed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Rule:
    actors: frozenset
    target: Optional[AppointmentStatus]  # None keeps the current status
    event: Optional[EventKind] = None
    clears_counter: bool = False


_SHOP = frozenset({Actor.SHOP})
_CLIENT = frozenset({Actor.CLIENT})
_BOTH = frozenset({Actor.SHOP, Actor.CLIENT})

S = AppointmentStatus

TRANSITIONS: dict[tuple[AppointmentStatus, Action], Rule] = {
    (S.PROPOSED, Action.CONFIRM): Rule(_BOTH, S.CONFIRMED, EventKind.CONFIRMED),
    (S.PROPOSED, Action.COUNTER_PROPOSE): Rule(_CLIENT, S.COUNTER_PROPOSED, EventKind.COUNTER_PROPOSED),
    (S.PROPOSED, Action.CANCEL): Rule(_BOTH, S.CANCELLED, EventKind.CANCELLED),
    (S.COUNTER_PROPOSED, Action.CANCEL): Rule(_BOTH, S.CANCELLED, EventKind.CANCELLED, clears_counter=True),
    (S.COUNTER_PROPOSED, Action.ACCEPT_COUNTER): Rule(_SHOP, S.CONFIRMED, EventKind.CONFIRMED, clears_counter=True),
    (S.COUNTER_PROPOSED, Action.REJECT_COUNTER): Rule(_SHOP, S.CANCELLED, EventKind.CANCELLED, clears_counter=True),
    (S.CONFIRMED, Action.COMPLETE): Rule(_SHOP, S.COMPLETED),
    (S.CONFIRMED, Action.MARK_NO_SHOW): Rule(_SHOP, S.NO_SHOW),
    (S.PROPOSED, Action.EDIT): Rule(_SHOP, None),
    (S.CONFIRMED, Action.EDIT): Rule(_SHOP, None),
}

del S


def rule_for(current: AppointmentStatus, action: Action, actor: Actor) -> Rule:
    """Return the rule allowing ``actor`` to apply ``action`` from ``current``.

    Raises InvalidTransition when the table has no entry, which covers every
    action attempted from a terminal status.
    """
    rule = TRANSITIONS.get((current, action))
    if rule is None or actor not in rule.actors:
        raise InvalidTransition(current, action, actor)
    return rule


def transition(current: AppointmentStatus, action: Action, actor: Actor) -> AppointmentStatus:
    """Next status after ``action``; edits keep the current status."""
    rule = rule_for(current, action, actor)
    return rule.target if rule.target is not None else current


def allowed_actions(current: AppointmentStatus, actor: Actor) -> list[Action]:
    return [
        action for (status, action), rule in TRANSITIONS.items()
        if status == current and actor in rule.actors
    ]
