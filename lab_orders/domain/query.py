"""Filter, sort and paging for order listings.

Every listing is scoped to one owner by the store contract. The engine
here adds the caller's filters, fixes the sort order (with ``id`` as the
tie-breaker so pages never drift) and turns the store's ``(items, total)``
into a page with totals.
"""

import math
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from lab_orders.domain.order import Order, OrderState, OrderStatus

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


class SortField(StrEnum):
    created_at = "createdAt"
    updated_at = "updatedAt"
    patient = "patient"
    customer = "customer"
    lab = "lab"
    state = "state"
    status = "status"

    @property
    def attribute(self) -> str:
        """Name of the ``Order`` attribute this sort key reads."""
        return self.name


class SortOrder(StrEnum):
    asc = "asc"
    desc = "desc"


class OrderQuery(BaseModel):
    """Listing parameters as sent by the caller."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    page: int = Field(default=DEFAULT_PAGE, ge=1)
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)
    state: OrderState | None = None
    status: OrderStatus | None = None
    patient_name: str | None = Field(default=None, alias="patientName")
    dentist_name: str | None = Field(default=None, alias="dentistName")
    sort_by: SortField = Field(default=SortField.created_at, alias="sortBy")
    sort_order: SortOrder = Field(default=SortOrder.desc, alias="sortOrder")

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class OrderFilter(BaseModel):
    """Predicate the store applies on top of the owner scope."""

    model_config = ConfigDict(frozen=True)

    state: OrderState | None = None
    status: OrderStatus | None = None
    patient_contains: str | None = None
    customer_contains: str | None = None

    def matches(self, order: Order) -> bool:
        if self.state is not None and order.state != self.state:
            return False
        if self.status is not None and order.status != self.status:
            return False
        if self.patient_contains and not _icontains(order.patient, self.patient_contains):
            return False
        if self.customer_contains and not _icontains(
            order.customer, self.customer_contains
        ):
            return False
        return True


class SortSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: SortField = SortField.created_at
    descending: bool = True

    def key(self, order: Order) -> tuple:
        # id breaks ties so equal primary keys keep a fixed order across pages
        return (getattr(order, self.field.attribute), order.id)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int

    @computed_field(alias="totalPages")
    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)


class OrderPage(BaseModel):
    data: list[Order]
    pagination: Pagination


def _icontains(value: str, needle: str) -> bool:
    return needle.casefold() in value.casefold()


def build_filter(query: OrderQuery) -> OrderFilter:
    """Translate caller parameters into a store predicate.

    Soft-deleted orders stay hidden unless the caller asks for a status
    explicitly.
    """
    patient = (query.patient_name or "").strip() or None
    customer = (query.dentist_name or "").strip() or None
    return OrderFilter(
        state=query.state,
        status=query.status or OrderStatus.ACTIVE,
        patient_contains=patient,
        customer_contains=customer,
    )


def build_sort(query: OrderQuery) -> SortSpec:
    return SortSpec(
        field=query.sort_by, descending=query.sort_order == SortOrder.desc
    )


def build_page(items: list[Order], total: int, query: OrderQuery) -> OrderPage:
    return OrderPage(
        data=items,
        pagination=Pagination(page=query.page, limit=query.limit, total=total),
    )
