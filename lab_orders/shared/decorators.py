from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from loguru import logger

from lab_orders.domain.errors import OrderError

P = ParamSpec("P")
R = TypeVar("R")


def log_errors(func: Callable[P, R]) -> Callable[P, R]:
    """Log and re-raise any exception raised by the decorated method.

    Expected domain failures (``OrderError``) are logged at WARNING with
    their HTTP-equivalent status; anything else is logged at ERROR with
    the traceback attached.

    Usage::

        @log_errors
        def find_by_id(self, owner_id: str, order_id: str) -> Order | None: ...
    """

    @wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return func(*args, **kwargs)
        except OrderError as exc:
            logger.warning(
                f"[{func.__qualname__}] {type(exc).__name__} "
                f"({exc.status_code}): {exc.message}"
            )
            raise
        except Exception as exc:
            logger.opt(exception=exc).error(
                f"[{func.__qualname__}] {type(exc).__name__}: {exc}"
            )
            raise

    return wrapper
