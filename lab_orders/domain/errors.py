"""Order domain errors.

Raised where a rule is violated and propagated unchanged to the HTTP
boundary, which renders ``status_code`` and ``message``.
"""


class OrderError(Exception):
    """Base class for every failure the order core reports to callers."""

    status_code = 500
    default_message = "Order operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(OrderError):
    """Malformed or invariant-violating input."""

    status_code = 400
    default_message = "Validation error"

    def __init__(
        self, message: str | None = None, errors: list[dict] | None = None
    ) -> None:
        super().__init__(message)
        self.errors = errors or []


class InvalidRequest(OrderError):
    """Well-formed request asking for something the workflow does not allow."""

    status_code = 400
    default_message = "Invalid request"


class FinalStateReached(OrderError):
    status_code = 400
    default_message = "Order is already in final state"


class Unauthenticated(OrderError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(OrderError):
    status_code = 403
    default_message = "Access denied"


class RoleNotFound(Forbidden):
    default_message = "User role not found"


class RoleNotPermitted(Forbidden):
    default_message = (
        "Access denied. Only authorized staff can perform this operation."
    )


class NotFound(OrderError):
    """No order with this id under this owner.

    Also raised when the order exists under another owner.
    """

    status_code = 404
    default_message = "Order not found"


class StateConflict(OrderError):
    """The order changed between read and conditional write."""

    status_code = 409
    default_message = "Order was modified concurrently, reload and retry"


class InvalidState(OrderError):
    """Stored state is outside the known sequence (data-integrity fault)."""

    status_code = 500
    default_message = "Invalid current state"
