from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, StringConstraints


class OrderState(StrEnum):
    CREATED = "CREATED"
    ANALYSIS = "ANALYSIS"
    COMPLETED = "COMPLETED"


class OrderStatus(StrEnum):
    ACTIVE = "ACTIVE"
    DELETED = "DELETED"


class ServiceStatus(StrEnum):
    PENDING = "PENDING"
    DONE = "DONE"


# Field rules shared by the stored entity and the request payloads, so the
# constraints are declared exactly once.
LabName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2)]
PersonName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3)]
NonEmptyText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
# Decimal in Python, a plain number on the wire
Amount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Money = Annotated[Amount, Field(gt=0)]


class Service(BaseModel):
    """A priced line item of an order."""

    model_config = ConfigDict(frozen=True)

    name: NonEmptyText
    value: Money
    status: ServiceStatus = ServiceStatus.PENDING


class Comment(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: NonEmptyText


class Order(BaseModel):
    """Lab work ticket owned by a single user.

    Instances are immutable; every change produces a new value through
    ``model_copy`` and is written back by the order store.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    owner_id: str = Field(alias="ownerId")
    lab: LabName
    patient: PersonName
    customer: PersonName
    services: list[Service] = Field(min_length=1)
    state: OrderState = OrderState.CREATED
    status: OrderStatus = OrderStatus.ACTIVE
    comments: list[Comment] = Field(default_factory=list)
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @property
    def total_value(self) -> Decimal:
        return sum((service.value for service in self.services), Decimal("0"))


class NewOrder(BaseModel):
    """Payload accepted by order creation."""

    model_config = ConfigDict(extra="forbid")

    lab: LabName
    patient: PersonName
    customer: PersonName
    services: list[Service] = Field(min_length=1)
    comments: list[Comment] = Field(default_factory=list)


class OrderPatch(BaseModel):
    """Partial update; omitted fields are left untouched."""

    model_config = ConfigDict(extra="forbid")

    lab: LabName | None = None
    patient: PersonName | None = None
    customer: PersonName | None = None
    services: list[Service] | None = Field(default=None, min_length=1)

    def changes(self) -> dict:
        """Return only the fields the caller actually sent."""
        return self.model_dump(exclude_unset=True, exclude_none=True)
