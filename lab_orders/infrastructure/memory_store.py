import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from loguru import logger

from lab_orders.domain.order import Order, OrderState, OrderStatus
from lab_orders.domain.query import OrderFilter, SortSpec
from lab_orders.shared.decorators import log_errors


class InMemoryOrderStore:
    """Process-local order store implementing ``IOrderStore``.

    Each method holds the store lock for its whole read-modify-write, so a
    single order document is always updated atomically. Documents are
    re-validated as ``Order`` before they replace the stored copy, so a
    write that would break an invariant never lands.
    """

    # Fields assigned on insert that no later write may touch
    IMMUTABLE_FIELDS = frozenset({"id", "owner_id", "created_at"})

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._lock = threading.RLock()
        self._last_stamp = datetime.min.replace(tzinfo=UTC)

    def _now(self) -> datetime:
        # strictly increasing, so createdAt ordering is total within the store
        with self._lock:
            stamp = max(datetime.now(UTC), self._last_stamp + timedelta(microseconds=1))
            self._last_stamp = stamp
            return stamp

    def _owned(self, owner_id: str, order_id: str) -> Order | None:
        order = self._orders.get(order_id)
        if order is None or order.owner_id != owner_id:
            return None
        return order

    def _check_mutable(self, fields: dict[str, Any] | list[str]) -> None:
        if touched := self.IMMUTABLE_FIELDS.intersection(fields):
            raise ValueError(f"Fields cannot be modified: {sorted(touched)}")

    @log_errors
    def create(self, owner_id: str, fields: dict[str, Any]) -> Order:
        self._check_mutable(fields)
        now = self._now()
        order = Order.model_validate(
            {
                **fields,
                "id": uuid.uuid4().hex,
                "owner_id": owner_id,
                "created_at": now,
                "updated_at": now,
            }
        )
        with self._lock:
            self._orders[order.id] = order
        logger.debug(f"[Store] Inserted order {order.id} for owner {owner_id}")
        return order

    def find_by_id(self, owner_id: str, order_id: str) -> Order | None:
        with self._lock:
            return self._owned(owner_id, order_id)

    def find(
        self,
        owner_id: str,
        criteria: OrderFilter,
        sort: SortSpec,
        skip: int,
        limit: int,
    ) -> tuple[list[Order], int]:
        matching = self.list_all(owner_id, criteria)
        matching.sort(key=sort.key, reverse=sort.descending)
        return matching[skip : skip + limit], len(matching)

    def list_all(self, owner_id: str, criteria: OrderFilter) -> list[Order]:
        with self._lock:
            return [
                order
                for order in self._orders.values()
                if order.owner_id == owner_id and criteria.matches(order)
            ]

    def _replace(
        self,
        owner_id: str,
        order_id: str,
        expected_state: OrderState | None,
        expected_status: OrderStatus | None,
        build: Callable[[dict[str, Any]], None],
    ) -> Order | None:
        with self._lock:
            current = self._owned(owner_id, order_id)
            if current is None:
                return None
            if expected_state is not None and current.state != expected_state:
                logger.debug(
                    f"[Store] Conditional write on {order_id} skipped: "
                    f"expected {expected_state}, found {current.state}"
                )
                return None
            if expected_status is not None and current.status != expected_status:
                logger.debug(
                    f"[Store] Conditional write on {order_id} skipped: "
                    f"expected {expected_status}, found {current.status}"
                )
                return None
            document = current.model_dump()
            build(document)
            document["updated_at"] = self._now()
            updated = Order.model_validate(document)
            self._orders[order_id] = updated
            return updated

    @log_errors
    def update(
        self,
        owner_id: str,
        order_id: str,
        changes: dict[str, Any],
        expected_state: OrderState | None = None,
        expected_status: OrderStatus | None = None,
    ) -> Order | None:
        self._check_mutable(changes)
        return self._replace(
            owner_id,
            order_id,
            expected_state,
            expected_status,
            lambda doc: doc.update(changes),
        )

    @log_errors
    def push(
        self,
        owner_id: str,
        order_id: str,
        field: str,
        item: Any,
        expected_state: OrderState | None = None,
        expected_status: OrderStatus | None = None,
    ) -> Order | None:
        self._check_mutable([field])
        return self._replace(
            owner_id,
            order_id,
            expected_state,
            expected_status,
            lambda doc: doc[field].append(item),
        )

    def delete(self, owner_id: str, order_id: str) -> bool:
        with self._lock:
            if self._owned(owner_id, order_id) is None:
                return False
            del self._orders[order_id]
        logger.debug(f"[Store] Removed order {order_id} for owner {owner_id}")
        return True
