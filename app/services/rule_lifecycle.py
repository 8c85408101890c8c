"""Repeating rule lifecycle.

The rule-to-task link behaves as a small state machine. The transition table
below is the single source of truth; the materializer and the rule store
ask it before changing anything.

    AWAITING --DUE_REACHED--> SPAWNED --OCCURRENCE_COMPLETED--> AWAITING
    AWAITING/SPAWNED --PAUSE--> PAUSED --RESUME--> AWAITING
    any live state --REMOVE--> DELETED (terminal)
"""
from enum import Enum
from typing import Dict, Optional, Tuple

from app.models.repeating_rule import RepeatingRule


class RuleState(str, Enum):
    AWAITING = "awaiting"  # no live occurrence, waiting for the pointer date
    SPAWNED = "spawned"  # a live occurrence is outstanding
    PAUSED = "paused"
    DELETED = "deleted"


class RuleEvent(str, Enum):
    DUE_REACHED = "due_reached"
    OCCURRENCE_COMPLETED = "occurrence_completed"
    PAUSE = "pause"
    RESUME = "resume"
    REMOVE = "remove"


TRANSITIONS: Dict[Tuple[RuleState, RuleEvent], RuleState] = {
    (RuleState.AWAITING, RuleEvent.DUE_REACHED): RuleState.SPAWNED,
    (RuleState.AWAITING, RuleEvent.PAUSE): RuleState.PAUSED,
    (RuleState.AWAITING, RuleEvent.REMOVE): RuleState.DELETED,
    (RuleState.SPAWNED, RuleEvent.OCCURRENCE_COMPLETED): RuleState.AWAITING,
    (RuleState.SPAWNED, RuleEvent.PAUSE): RuleState.PAUSED,
    (RuleState.SPAWNED, RuleEvent.REMOVE): RuleState.DELETED,
    # Completing the last occurrence of a paused rule still advances its pointer
    (RuleState.PAUSED, RuleEvent.OCCURRENCE_COMPLETED): RuleState.PAUSED,
    (RuleState.PAUSED, RuleEvent.RESUME): RuleState.AWAITING,
    (RuleState.PAUSED, RuleEvent.REMOVE): RuleState.DELETED,
}


class InvalidTransition(Exception):
    """Event is not allowed in the rule's current state. Internal only."""

    def __init__(self, state: RuleState, event: RuleEvent):
        self.state = state
        self.event = event
        super().__init__(f"Cannot apply {event.value} to a rule in state {state.value}")


def derive_state(rule: RepeatingRule, has_live_occurrence: bool) -> RuleState:
    """Compute a rule's lifecycle state from its stored fields."""
    if rule.is_deleted:
        return RuleState.DELETED
    if rule.paused:
        return RuleState.PAUSED
    if has_live_occurrence:
        return RuleState.SPAWNED
    return RuleState.AWAITING


def next_state(state: RuleState, event: RuleEvent) -> Optional[RuleState]:
    return TRANSITIONS.get((state, event))


def can_transition(state: RuleState, event: RuleEvent) -> bool:
    return (state, event) in TRANSITIONS


def transition(state: RuleState, event: RuleEvent) -> RuleState:
    """Apply an event, raising InvalidTransition when the table forbids it."""
    new_state = next_state(state, event)
    if new_state is None:
        raise InvalidTransition(state, event)
    return new_state
