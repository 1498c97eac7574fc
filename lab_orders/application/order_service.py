from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from lab_orders.domain import state_machine
from lab_orders.domain.access_policy import Identity, Operation, authorize
from lab_orders.domain.errors import (
    Forbidden,
    InvalidRequest,
    NotFound,
    StateConflict,
    ValidationError,
)
from lab_orders.domain.interfaces import IOrderStore
from lab_orders.domain.order import (
    Comment,
    NewOrder,
    Order,
    OrderPatch,
    OrderState,
    OrderStatus,
    Service,
)
from lab_orders.domain.query import (
    OrderFilter,
    OrderPage,
    OrderQuery,
    build_filter,
    build_page,
    build_sort,
)
from lab_orders.domain.stats import StateSummary, summarize_by_state

M = TypeVar("M", bound=BaseModel)

SERVICES_REQUIRED = "At least one service required"
COMPLETED_SERVICES_LOCKED = "Cannot change services of a completed order"


def _validate(model: type[M], data: Any) -> M:
    """Validate ``data`` against ``model``, reporting failures as ``ValidationError``."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        raise ValidationError("Validation error", errors=errors) from None


class OrderService:
    """Application service for lab orders.

    Each call authorizes the caller's role, scopes every store access to
    the caller's ``user_id`` and validates input once before any write.
    Soft-deleted orders behave as absent for everything but an explicit
    ``status=DELETED`` listing.
    """

    def __init__(self, store: IOrderStore, soft_delete: bool = True) -> None:
        self._store = store
        self._soft_delete = soft_delete

    def _authorize(self, operation: Operation, actor: Identity) -> None:
        try:
            authorize(operation, actor)
        except Forbidden as exc:
            logger.warning(
                f"[OrderService] {operation} denied for {actor.user_id} "
                f"(role={actor.role}): {exc.message}"
            )
            raise

    # -- reads ---------------------------------------------------------------

    def _load(self, owner_id: str, order_id: str) -> Order:
        order = self._store.find_by_id(owner_id, order_id)
        if order is None or order.status == OrderStatus.DELETED:
            raise NotFound()
        return order

    def _write_missed(self, owner_id: str, order_id: str) -> Exception:
        """Explain why a conditional write matched nothing."""
        current = self._store.find_by_id(owner_id, order_id)
        if current is None or current.status == OrderStatus.DELETED:
            return NotFound()
        logger.warning(
            f"[OrderService] Lost race on order {order_id}, now in {current.state}"
        )
        return StateConflict()

    def get_order_by_id(self, actor: Identity, order_id: str) -> Order:
        self._authorize(Operation.READ, actor)
        return self._load(actor.user_id, order_id)

    def get_order_status(self, actor: Identity, order_id: str) -> dict:
        order = self.get_order_by_id(actor, order_id)
        return {"id": order.id, "state": order.state, "status": order.status}

    def list_orders(
        self, actor: Identity, params: OrderQuery | dict[str, Any] | None = None
    ) -> OrderPage:
        self._authorize(Operation.READ, actor)
        query = params if isinstance(params, OrderQuery) else _validate(
            OrderQuery, params or {}
        )
        items, total = self._store.find(
            actor.user_id,
            build_filter(query),
            build_sort(query),
            query.skip,
            query.limit,
        )
        return build_page(items, total, query)

    def get_order_stats(self, actor: Identity) -> list[StateSummary]:
        self._authorize(Operation.READ, actor)
        orders = self._store.list_all(
            actor.user_id, OrderFilter(status=OrderStatus.ACTIVE)
        )
        return summarize_by_state(orders)

    # -- writes --------------------------------------------------------------

    def create_order(self, actor: Identity, data: dict[str, Any]) -> Order:
        self._authorize(Operation.CREATE, actor)
        if not isinstance(data, dict) or not data.get("services"):
            raise ValidationError(SERVICES_REQUIRED)

        new_order = _validate(NewOrder, data)
        order = self._store.create(
            actor.user_id,
            {
                **new_order.model_dump(),
                "state": OrderState.CREATED,
                "status": OrderStatus.ACTIVE,
            },
        )
        logger.info(
            f"[OrderService] Order {order.id} created by {actor.user_id} "
            f"with {len(order.services)} service(s)"
        )
        return order

    def update_order(
        self, actor: Identity, order_id: str, patch: dict[str, Any]
    ) -> Order:
        self._authorize(Operation.UPDATE, actor)
        if not isinstance(patch, dict):
            raise ValidationError("Update payload must be an object")
        if "state" in patch:
            raise InvalidRequest(
                "state is not mutable via update, use the advance operation"
            )
        if "status" in patch:
            raise InvalidRequest(
                "status is not mutable via update, use the delete operation"
            )
        if "services" in patch and not patch["services"]:
            raise ValidationError(SERVICES_REQUIRED)

        changes = _validate(OrderPatch, patch).changes()
        current = self._load(actor.user_id, order_id)
        if not changes:
            return current

        # service lines of a completed order are frozen
        expected_state = None
        if "services" in changes:
            if current.state == OrderState.COMPLETED:
                raise ValidationError(COMPLETED_SERVICES_LOCKED)
            expected_state = current.state

        order = self._store.update(
            actor.user_id,
            order_id,
            changes,
            expected_state=expected_state,
            expected_status=OrderStatus.ACTIVE,
        )
        if order is None:
            raise self._write_missed(actor.user_id, order_id)
        logger.info(
            f"[OrderService] Order {order_id} updated: {sorted(changes)}"
        )
        return order

    def delete_order(self, actor: Identity, order_id: str) -> None:
        self._authorize(Operation.DELETE, actor)
        self._load(actor.user_id, order_id)

        if self._soft_delete:
            deleted = self._store.update(
                actor.user_id,
                order_id,
                {"status": OrderStatus.DELETED},
                expected_status=OrderStatus.ACTIVE,
            ) is not None
        else:
            deleted = self._store.delete(actor.user_id, order_id)

        if not deleted:
            raise NotFound()
        mode = "soft" if self._soft_delete else "hard"
        logger.info(f"[OrderService] Order {order_id} deleted ({mode})")

    def advance_order_state(self, actor: Identity, order_id: str) -> Order:
        self._authorize(Operation.ADVANCE, actor)
        order = self._load(actor.user_id, order_id)
        advanced = state_machine.advance(order)

        saved = self._store.update(
            actor.user_id,
            order_id,
            {"state": advanced.state},
            expected_state=order.state,
            expected_status=OrderStatus.ACTIVE,
        )
        if saved is None:
            raise self._write_missed(actor.user_id, order_id)
        logger.info(
            f"[OrderService] Order {order_id} advanced {order.state} -> {saved.state}"
        )
        return saved

    def add_service_to_order(
        self, actor: Identity, order_id: str, service: dict[str, Any]
    ) -> Order:
        self._authorize(Operation.ADD_SERVICE, actor)
        new_service = _validate(Service, service)
        order = self._load(actor.user_id, order_id)
        if order.state == OrderState.COMPLETED:
            raise ValidationError(COMPLETED_SERVICES_LOCKED)

        saved = self._store.push(
            actor.user_id,
            order_id,
            "services",
            new_service.model_dump(),
            expected_state=order.state,
            expected_status=OrderStatus.ACTIVE,
        )
        if saved is None:
            raise self._write_missed(actor.user_id, order_id)
        logger.info(
            f"[OrderService] Service '{new_service.name}' added to order {order_id}"
        )
        return saved

    def add_comment_to_order(
        self, actor: Identity, order_id: str, comment: dict[str, Any]
    ) -> Order:
        self._authorize(Operation.ADD_COMMENT, actor)
        new_comment = _validate(Comment, comment)
        self._load(actor.user_id, order_id)

        saved = self._store.push(
            actor.user_id,
            order_id,
            "comments",
            new_comment.model_dump(),
            expected_status=OrderStatus.ACTIVE,
        )
        if saved is None:
            raise self._write_missed(actor.user_id, order_id)
        logger.info(f"[OrderService] Comment added to order {order_id}")
        return saved
