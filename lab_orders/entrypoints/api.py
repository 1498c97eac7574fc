"""HTTP surface for lab orders.

Thin JSON layer over ``OrderService``: resolves the caller through the
identity provider, passes raw payloads to the service (which validates
them) and wraps results in the ``{status, data}`` envelope. Domain errors
are rendered by a single exception handler.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from lab_orders.application.order_service import OrderService
from lab_orders.domain.access_policy import Identity
from lab_orders.domain.errors import OrderError, ValidationError
from lab_orders.domain.interfaces import IIdentityProvider
from lab_orders.domain.order import Order

router = APIRouter(prefix="/orders", tags=["orders"])


# ============================================================================
# Dependencies
# ============================================================================


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_identity(
    request: Request,
    authorization: str | None = Header(None, description="Bearer token"),
) -> Identity:
    provider: IIdentityProvider = request.app.state.identity_provider
    return provider.authenticate(authorization)


def _success(data: Any) -> dict:
    return {"status": "success", "data": data}


def _order(order: Order) -> dict:
    return order.model_dump(mode="json", by_alias=True)


# ============================================================================
# Routes
# ============================================================================


@router.post("", status_code=201)
def create_order(
    payload: Any = Body(...),
    actor: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
) -> dict:
    return _success(_order(service.create_order(actor, payload)))


@router.get("")
def list_orders(
    request: Request,
    actor: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
) -> dict:
    page = service.list_orders(actor, dict(request.query_params))
    return {"status": "success", **page.model_dump(mode="json", by_alias=True)}


@router.get("/stats")
def get_order_stats(
    actor: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
) -> dict:
    stats = service.get_order_stats(actor)
    return _success([entry.model_dump(mode="json", by_alias=True) for entry in stats])


@router.get("/{order_id}")
def get_order(
    order_id: str,
    actor: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
) -> dict:
    return _success(_order(service.get_order_by_id(actor, order_id)))


@router.get("/{order_id}/status")
def get_order_status(
    order_id: str,
    actor: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
) -> dict:
    projection = service.get_order_status(actor, order_id)
    return _success({key: str(value) for key, value in projection.items()})


@router.put("/{order_id}")
def update_order(
    order_id: str,
    payload: Any = Body(...),
    actor: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
) -> dict:
    return _success(_order(service.update_order(actor, order_id, payload)))


@router.delete("/{order_id}", status_code=204)
def delete_order(
    order_id: str,
    actor: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
) -> Response:
    service.delete_order(actor, order_id)
    return Response(status_code=204)


@router.patch("/{order_id}/advance")
def advance_order_state(
    order_id: str,
    actor: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
) -> dict:
    return _success(_order(service.advance_order_state(actor, order_id)))


@router.post("/{order_id}/add-service")
def add_service(
    order_id: str,
    payload: Any = Body(...),
    actor: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
) -> dict:
    return _success(_order(service.add_service_to_order(actor, order_id, payload)))


@router.post("/{order_id}/add-comment")
def add_comment(
    order_id: str,
    payload: Any = Body(...),
    actor: Identity = Depends(get_identity),
    service: OrderService = Depends(get_order_service),
) -> dict:
    return _success(_order(service.add_comment_to_order(actor, order_id, payload)))


# ============================================================================
# Error rendering
# ============================================================================


def _error(status_code: int, message: str, errors: list | None = None) -> JSONResponse:
    body: dict[str, Any] = {"status": "error", "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body)


async def order_error_handler(request: Request, exc: OrderError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"[API] {request.method} {request.url.path}: {exc.message}")
    errors = exc.errors if isinstance(exc, ValidationError) else None
    return _error(exc.status_code, exc.message, errors)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return _error(400, "Validation error", errors)


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return _error(exc.status_code, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(
        f"[API] Unhandled error on {request.method} {request.url.path}"
    )
    return _error(500, "Internal server error")


def create_app(
    order_service: OrderService,
    identity_provider: IIdentityProvider,
    title: str = "Lab Orders API",
    version: str = "1.0.0",
) -> FastAPI:
    """Build the application around injected collaborators."""
    app = FastAPI(title=title, version=version)
    app.state.order_service = order_service
    app.state.identity_provider = identity_provider

    app.add_exception_handler(OrderError, order_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(router)

    @app.get("/")
    def index() -> dict:
        return {
            "message": title,
            "version": version,
            "endpoints": {
                "health": "/health",
                "orders": "/orders",
                "stats": "/orders/stats",
                "docs": "/docs",
            },
        }

    @app.get("/health")
    def health() -> dict:
        return _success({"status": "ok"})

    return app
