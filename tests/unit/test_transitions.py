import pytest

from workpilot.db_models.enums import OrderStatus
from workpilot.models import OrderState
from workpilot.transitions import (
    AlreadyTerminal, InvalidStateTransition, NoNextStage, NoPreviousStage, OrderAction, StageNotFinal,
    apply_transition, cancel, complete, move_to_next_stage, move_to_previous_stage, revert, start,
)

A, B, C = 11, 12, 13


def new_order(*stage_ids):
    return OrderState(status=OrderStatus.CREATED, current_stage_id=None, stage_ids=list(stage_ids))


def test_onboarding_scenario():
    state = new_order(A, B, C)
    assert (state.status, state.current_stage_id, state.has_next_stage) == (OrderStatus.CREATED, None, False)

    state = start(state)
    assert (state.status, state.current_stage_id, state.has_next_stage) == (OrderStatus.IN_PROGRESS, A, True)

    state = move_to_next_stage(move_to_next_stage(state))
    assert state.current_stage_id == C
    assert state.has_next_stage is False

    state = complete(state)
    assert state.status == OrderStatus.COMPLETED
    assert state.has_next_stage is False


def test_zero_stage_order_starts_without_stage_and_completes():
    state = start(new_order())
    assert state.status == OrderStatus.IN_PROGRESS
    assert state.current_stage_id is None
    assert state.has_next_stage is False
    assert complete(state).status == OrderStatus.COMPLETED


@pytest.mark.parametrize("stage_ids, completable", [
    ([], True),
    ([A], True),
    ([A, B], False),
    ([A, B, C], False),
])
def test_start_then_complete_only_for_zero_or_one_stage(stage_ids, completable):
    started = start(new_order(*stage_ids))
    if completable:
        assert complete(started).status == OrderStatus.COMPLETED
    else:
        with pytest.raises(StageNotFinal):
            complete(started)


def test_next_then_previous_restores_stage():
    state = start(new_order(A, B, C))
    assert move_to_previous_stage(move_to_next_stage(state)).current_stage_id == state.current_stage_id


def test_has_next_stage_only_before_last_stage_while_in_progress():
    state = start(new_order(A, B))
    assert state.has_next_stage is True
    state = move_to_next_stage(state)
    assert state.has_next_stage is False
    assert cancel(start(new_order(A, B))).has_next_stage is False


def test_next_stage_at_last_stage_fails():
    state = start(new_order(A))
    with pytest.raises(NoNextStage):
        move_to_next_stage(state)


def test_previous_stage_at_first_stage_fails():
    with pytest.raises(NoPreviousStage):
        move_to_previous_stage(start(new_order(A, B)))


def test_cancel_from_created_never_sets_stage():
    state = cancel(new_order(A, B))
    assert state.status == OrderStatus.CANCELLED
    assert state.current_stage_id is None


def test_cancel_in_progress_keeps_stage():
    state = cancel(move_to_next_stage(start(new_order(A, B, C))))
    assert state.status == OrderStatus.CANCELLED
    assert state.current_stage_id == B


def test_revert_resets_to_created():
    state = revert(move_to_next_stage(start(new_order(A, B))))
    assert state.status == OrderStatus.CREATED
    assert state.current_stage_id is None
    assert start(state).current_stage_id == A


@pytest.mark.parametrize("action, error", [
    (OrderAction.NEXT_STAGE, InvalidStateTransition),
    (OrderAction.PREVIOUS_STAGE, NoPreviousStage),
    (OrderAction.COMPLETE, StageNotFinal),
])
def test_stage_moves_require_started_order(action, error):
    with pytest.raises(error):
        apply_transition(new_order(A, B), action)


def test_zero_stage_order_must_be_started_before_completion():
    with pytest.raises(StageNotFinal):
        complete(new_order())


def test_start_twice_fails():
    with pytest.raises(InvalidStateTransition):
        start(start(new_order(A)))


@pytest.mark.parametrize("terminal", [OrderStatus.COMPLETED, OrderStatus.CANCELLED])
@pytest.mark.parametrize("action", list(OrderAction))
def test_terminal_orders_reject_everything(terminal, action):
    state = OrderState(status=terminal, current_stage_id=B, stage_ids=[A, B])
    with pytest.raises(AlreadyTerminal):
        apply_transition(state, action)
    assert state.status == terminal
    assert state.current_stage_id == B


def test_transitions_do_not_mutate_input():
    state = new_order(A, B)
    start(state)
    assert state.status == OrderStatus.CREATED
    assert state.current_stage_id is None
