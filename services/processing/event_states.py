"""
Event processing states.

States a worker goes through while processing a single event.
"""

from enum import Enum, auto


class EventState(Enum):
    """States of the processing of one event."""

    IDLE = auto()
    PER_EVENT_SELECTION = auto()
    PAIR_ENUMERATION = auto()
    DISPATCH = auto()

    def __str__(self) -> str:
        return self.name


VALID_EVENT_TRANSITIONS = {
    EventState.IDLE: {EventState.PER_EVENT_SELECTION},
    # Rejected event, or a pass with fewer than two particles
    EventState.PER_EVENT_SELECTION: {EventState.IDLE, EventState.PAIR_ENUMERATION},
    EventState.PAIR_ENUMERATION: {EventState.DISPATCH, EventState.PER_EVENT_SELECTION},
    EventState.DISPATCH: {EventState.PAIR_ENUMERATION},
}


def is_valid_event_transition(from_state: EventState, to_state: EventState) -> bool:
    return to_state in VALID_EVENT_TRANSITIONS.get(from_state, set())
