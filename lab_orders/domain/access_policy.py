"""Role gate for order operations.

Decides whether a role may invoke an operation at all. Ownership is a
separate concern handled by owner-scoped store lookups: an allowed role
acting on someone else's order gets ``NotFound`` from the service, never
a ``Forbidden`` from here.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from lab_orders.domain.errors import RoleNotFound, RoleNotPermitted


class Role(StrEnum):
    ATTENDANT = "ATTENDANT"
    LAB_ADMIN = "LAB_ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"
    CUSTOMER = "CUSTOMER"


class Operation(StrEnum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    ADVANCE = "advance"
    ADD_SERVICE = "add_service"
    ADD_COMMENT = "add_comment"


STAFF_ROLES: frozenset[Role] = frozenset(
    {Role.ATTENDANT, Role.LAB_ADMIN, Role.SUPER_ADMIN}
)

# None means any authenticated caller, including one without a role.
POLICY: dict[Operation, frozenset[Role] | None] = {
    Operation.CREATE: STAFF_ROLES,
    Operation.READ: None,
    Operation.UPDATE: STAFF_ROLES,
    Operation.DELETE: STAFF_ROLES,
    Operation.ADVANCE: STAFF_ROLES,
    Operation.ADD_SERVICE: STAFF_ROLES,
    Operation.ADD_COMMENT: STAFF_ROLES,
}


class Identity(BaseModel):
    """Authenticated caller as reported by the identity provider."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: str | None = None


def is_allowed(operation: Operation, role: str | None) -> bool:
    allowed = POLICY[operation]
    if allowed is None:
        return True
    try:
        return Role(role) in allowed
    except ValueError:
        return False


def authorize(operation: Operation, identity: Identity) -> None:
    """Raise unless ``identity`` may perform ``operation``.

    Raises:
        RoleNotFound: the operation is gated and the caller carries no role.
        RoleNotPermitted: the caller's role is not in the allowed set.
    """
    if POLICY[operation] is None:
        return
    if not identity.role:
        raise RoleNotFound()
    if not is_allowed(operation, identity.role):
        raise RoleNotPermitted()
