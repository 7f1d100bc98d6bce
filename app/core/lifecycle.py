"""
Event status lifecycle.

    REGISTRATION_OPEN -> REGISTRATION_CLOSED | VOIDED -> LIVE -> SETTLED

Time moves an event through the first three states; settlement is an
administrative action. VOIDED and SETTLED are terminal.
"""
from enum import Enum
import typing as t


class EventStatus(str, Enum):
    REGISTRATION_OPEN = "REGISTRATION_OPEN"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    LIVE = "LIVE"
    SETTLED = "SETTLED"
    VOIDED = "VOIDED"


TERMINAL = {EventStatus.VOIDED, EventStatus.SETTLED}

TRANSITIONS = {
    EventStatus.REGISTRATION_OPEN: {EventStatus.REGISTRATION_CLOSED, EventStatus.VOIDED, EventStatus.LIVE},
    EventStatus.REGISTRATION_CLOSED: {EventStatus.LIVE, EventStatus.VOIDED},
    EventStatus.LIVE: {EventStatus.SETTLED},
    EventStatus.VOIDED: set(),
    EventStatus.SETTLED: set(),
}


def derive_status(now: int, registration_deadline: int, event_date: int, current_participants: int) -> EventStatus:
    if now < registration_deadline:
        return EventStatus.REGISTRATION_OPEN
    if now < event_date:
        if current_participants > 0:
            return EventStatus.REGISTRATION_CLOSED
        return EventStatus.VOIDED
    return EventStatus.LIVE


def can_transition(current: t.Union[EventStatus, str], target: t.Union[EventStatus, str]) -> bool:
    current, target = EventStatus(current), EventStatus(target)
    if current == target:
        return True
    return target in TRANSITIONS[current]


def effective_status(
    stored: t.Optional[t.Union[EventStatus, str]],
    now: int,
    registration_deadline: int,
    event_date: int,
    current_participants: int,
) -> EventStatus:
    """
    Status an event is in right now: the stored status advanced by the clock.
    Terminal states stick, and the clock never moves an event backwards.
    """
    stored = EventStatus(stored or EventStatus.REGISTRATION_OPEN)
    if stored in TERMINAL:
        return stored

    derived = derive_status(now, registration_deadline, event_date, current_participants)
    if can_transition(stored, derived):
        return derived
    return stored
