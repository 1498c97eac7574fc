from collections import defaultdict
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from lab_orders.domain.order import Amount, Order, OrderState
from lab_orders.domain.state_machine import STATE_SEQUENCE


class StateSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    state: OrderState
    count: int
    total_value: Amount = Field(alias="totalValue")


def summarize_by_state(orders: list[Order]) -> list[StateSummary]:
    """Group orders by workflow state, counting them and summing service values.

    States with no orders are omitted; the rest follow the workflow order.
    """
    counts: dict[OrderState, int] = defaultdict(int)
    totals: dict[OrderState, Decimal] = defaultdict(Decimal)
    for order in orders:
        counts[order.state] += 1
        totals[order.state] += order.total_value

    return [
        StateSummary(state=state, count=counts[state], total_value=totals[state])
        for state in STATE_SEQUENCE
        if counts[state]
    ]
