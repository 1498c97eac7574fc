from typing import Any, Protocol

from .access_policy import Identity
from .order import Order, OrderState, OrderStatus
from .query import OrderFilter, SortSpec


class IOrderStore(Protocol):
    """Document store for orders; every lookup is scoped by owner."""

    def create(self, owner_id: str, fields: dict[str, Any]) -> Order:
        """Insert a new order and return it with its generated id and timestamps."""
        ...

    def find_by_id(self, owner_id: str, order_id: str) -> Order | None: ...

    def find(
        self,
        owner_id: str,
        criteria: OrderFilter,
        sort: SortSpec,
        skip: int,
        limit: int,
    ) -> tuple[list[Order], int]:
        """Return one page of matching orders and the pre-pagination total."""
        ...

    def list_all(self, owner_id: str, criteria: OrderFilter) -> list[Order]: ...

    def update(
        self,
        owner_id: str,
        order_id: str,
        changes: dict[str, Any],
        expected_state: OrderState | None = None,
        expected_status: OrderStatus | None = None,
    ) -> Order | None:
        """Apply ``changes`` atomically.

        Returns ``None`` when no order matched, or when ``expected_state`` or
        ``expected_status`` is given and the stored value differs.
        """
        ...

    def push(
        self,
        owner_id: str,
        order_id: str,
        field: str,
        item: Any,
        expected_state: OrderState | None = None,
        expected_status: OrderStatus | None = None,
    ) -> Order | None:
        """Append ``item`` to the list ``field`` atomically; same matching as ``update``."""
        ...

    def delete(self, owner_id: str, order_id: str) -> bool: ...


class IIdentityProvider(Protocol):
    def authenticate(self, authorization: str | None) -> Identity:
        """Resolve an ``Authorization`` header into the calling identity."""
        ...
