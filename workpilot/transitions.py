"""
Order progress state machine.

An order walks the stage sequence of the task it was created from::

    CREATED --start--> IN_PROGRESS --complete--> COMPLETED
       |                 |  ^  next-stage / previous-stage
       |                 |__|
       +---- cancel ---->+----> CANCELLED
       ^                 |
       +---- revert -----+

COMPLETED and CANCELLED are terminal. Every function here is pure: it takes an
``OrderState`` snapshot and returns a new one, or raises an
``OrderTransitionError`` leaving the input untouched.
"""
from enum import Enum
from typing import Callable, Dict

from workpilot.db_models.enums import OrderStatus
from workpilot.models import OrderState


class OrderTransitionError(Exception):
    """Base class for transitions the order's current state does not allow."""
    code = "INVALID_TRANSITION"


class InvalidStateTransition(OrderTransitionError):
    code = "INVALID_STATE_TRANSITION"


class NoNextStage(OrderTransitionError):
    code = "NO_NEXT_STAGE"


class NoPreviousStage(OrderTransitionError):
    code = "NO_PREVIOUS_STAGE"


class StageNotFinal(OrderTransitionError):
    code = "STAGE_NOT_FINAL"


class AlreadyTerminal(OrderTransitionError):
    code = "ALREADY_TERMINAL"


class OrderAction(str, Enum):
    START = "start"
    NEXT_STAGE = "next-stage"
    PREVIOUS_STAGE = "previous-stage"
    COMPLETE = "complete"
    CANCEL = "cancel"
    REVERT = "revert"


def _ensure_not_terminal(state: OrderState, action: OrderAction) -> None:
    if state.status.is_terminal:
        raise AlreadyTerminal(f"Cannot {action.value} an order that is {state.status.value}.")


def _ensure_in_progress(state: OrderState, action: OrderAction) -> None:
    _ensure_not_terminal(state, action)
    if state.status != OrderStatus.IN_PROGRESS:
        raise InvalidStateTransition(
            f"Cannot {action.value} an order that is {state.status.value}; start it first."
        )


def start(state: OrderState) -> OrderState:
    _ensure_not_terminal(state, OrderAction.START)
    if state.status != OrderStatus.CREATED:
        raise InvalidStateTransition(f"Only CREATED orders can be started, order is {state.status.value}.")
    first_stage = state.stage_ids[0] if state.stage_ids else None
    return state.model_copy(update={"status": OrderStatus.IN_PROGRESS, "current_stage_id": first_stage})


def move_to_next_stage(state: OrderState) -> OrderState:
    _ensure_in_progress(state, OrderAction.NEXT_STAGE)
    pos = state.position
    if pos is None or pos >= len(state.stage_ids) - 1:
        raise NoNextStage("Order is already at its last stage; complete it instead.")
    return state.model_copy(update={"current_stage_id": state.stage_ids[pos + 1]})


def move_to_previous_stage(state: OrderState) -> OrderState:
    _ensure_not_terminal(state, OrderAction.PREVIOUS_STAGE)
    if state.status != OrderStatus.IN_PROGRESS:
        raise NoPreviousStage("Order has not been started, so it has no stage to go back from.")
    pos = state.position
    if pos is None or pos == 0:
        raise NoPreviousStage("Order is at its first stage.")
    return state.model_copy(update={"current_stage_id": state.stage_ids[pos - 1]})


def complete(state: OrderState) -> OrderState:
    _ensure_not_terminal(state, OrderAction.COMPLETE)
    if state.status != OrderStatus.IN_PROGRESS:
        raise StageNotFinal("Order has not been started, so it is not at its last stage.")
    if state.stage_ids and state.position != len(state.stage_ids) - 1:
        raise StageNotFinal("Order can only be completed from its last stage.")
    return state.model_copy(update={"status": OrderStatus.COMPLETED})


def cancel(state: OrderState) -> OrderState:
    _ensure_not_terminal(state, OrderAction.CANCEL)
    # The stage reached so far is kept for history.
    return state.model_copy(update={"status": OrderStatus.CANCELLED})


def revert(state: OrderState) -> OrderState:
    _ensure_not_terminal(state, OrderAction.REVERT)
    return state.model_copy(update={"status": OrderStatus.CREATED, "current_stage_id": None})


TRANSITIONS: Dict[OrderAction, Callable[[OrderState], OrderState]] = {
    OrderAction.START: start,
    OrderAction.NEXT_STAGE: move_to_next_stage,
    OrderAction.PREVIOUS_STAGE: move_to_previous_stage,
    OrderAction.COMPLETE: complete,
    OrderAction.CANCEL: cancel,
    OrderAction.REVERT: revert,
}


def apply_transition(state: OrderState, action: OrderAction) -> OrderState:
    return TRANSITIONS[action](state)
