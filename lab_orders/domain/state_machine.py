"""Order workflow: CREATED -> ANALYSIS -> COMPLETED.

The sequence is fixed and total. An order only ever moves one step
forward, and only through :func:`advance`. Functions here are pure; the
caller persists the returned value.
"""

from lab_orders.domain.errors import FinalStateReached, InvalidState
from lab_orders.domain.order import Order, OrderState

STATE_SEQUENCE: tuple[OrderState, ...] = (
    OrderState.CREATED,
    OrderState.ANALYSIS,
    OrderState.COMPLETED,
)

FINAL_STATE = STATE_SEQUENCE[-1]


def _position(state: str) -> int:
    try:
        return STATE_SEQUENCE.index(OrderState(state))
    except ValueError:
        raise InvalidState(f"Invalid current state: {state!r}") from None


def can_advance(order: Order) -> bool:
    """True iff the order is not in the last state of the sequence."""
    return order.state in STATE_SEQUENCE and order.state != FINAL_STATE


def next_state(state: str) -> OrderState:
    """Return the state that follows ``state``.

    Raises:
        InvalidState: ``state`` is not part of the sequence.
        FinalStateReached: ``state`` is already the last one.
    """
    position = _position(state)
    if position >= len(STATE_SEQUENCE) - 1:
        raise FinalStateReached()
    return STATE_SEQUENCE[position + 1]


def advance(order: Order) -> Order:
    """Return a copy of ``order`` moved one step forward."""
    return order.model_copy(update={"state": next_state(order.state)})
