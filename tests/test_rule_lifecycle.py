from datetime import date, datetime

import pytest

from app.models.repeating_rule import RepeatingRule
from app.services.rule_lifecycle import (
    InvalidTransition,
    RuleEvent,
    RuleState,
    can_transition,
    derive_state,
    next_state,
    transition,
)


def build_rule(**fields) -> RepeatingRule:
    return RepeatingRule(
        user_id="user-1",
        rule_definition={"frequency": "daily", "interval": 1},
        start_date=date(2024, 1, 1),
        next_occurrence=date(2024, 1, 1),
        title="Stretch",
        **fields,
    )


def test_spawn_and_complete_cycle():
    state = transition(RuleState.AWAITING, RuleEvent.DUE_REACHED)
    assert state == RuleState.SPAWNED
    assert transition(state, RuleEvent.OCCURRENCE_COMPLETED) == RuleState.AWAITING


def test_spawned_rule_cannot_spawn_again():
    assert not can_transition(RuleState.SPAWNED, RuleEvent.DUE_REACHED)
    with pytest.raises(InvalidTransition):
        transition(RuleState.SPAWNED, RuleEvent.DUE_REACHED)


def test_paused_rule_does_not_spawn():
    assert next_state(RuleState.PAUSED, RuleEvent.DUE_REACHED) is None
    assert transition(RuleState.PAUSED, RuleEvent.OCCURRENCE_COMPLETED) == RuleState.PAUSED
    assert transition(RuleState.PAUSED, RuleEvent.RESUME) == RuleState.AWAITING


@pytest.mark.parametrize("event", list(RuleEvent))
def test_deleted_is_terminal(event):
    assert not can_transition(RuleState.DELETED, event)


@pytest.mark.parametrize("state", [RuleState.AWAITING, RuleState.SPAWNED, RuleState.PAUSED])
def test_remove_from_any_live_state(state):
    assert transition(state, RuleEvent.REMOVE) == RuleState.DELETED


def test_derive_state():
    assert derive_state(build_rule(), False) == RuleState.AWAITING
    assert derive_state(build_rule(), True) == RuleState.SPAWNED
    assert derive_state(build_rule(paused=True), True) == RuleState.PAUSED
    assert derive_state(build_rule(active=False), False) == RuleState.DELETED
    assert derive_state(build_rule(paused=True, deleted_at=datetime(2024, 1, 2)), False) == RuleState.DELETED
