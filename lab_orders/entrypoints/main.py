import sys

import uvicorn
from fastapi import FastAPI
from loguru import logger

from lab_orders.application.order_service import OrderService
from lab_orders.entrypoints.api import create_app
from lab_orders.entrypoints.settings import Config, config
from lab_orders.infrastructure.memory_store import InMemoryOrderStore
from lab_orders.infrastructure.token_identity import HmacTokenIdentityProvider


def configure_logging(level: str) -> None:
    """Replace loguru's default sink with a stderr sink at ``level``."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def build_app(settings: Config = config) -> FastAPI:
    # --- Storage layer ---
    # To go live: swap InMemoryOrderStore for a document-store adapter.
    order_service = OrderService(
        InMemoryOrderStore(), soft_delete=settings.SOFT_DELETE
    )

    # --- Identity layer ---
    identity_provider = HmacTokenIdentityProvider(
        secret=settings.TOKEN_SECRET,
        ttl_seconds=settings.TOKEN_TTL_SECONDS,
    )

    return create_app(
        order_service,
        identity_provider,
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
    )


def main() -> None:
    configure_logging(config.LOG_LEVEL)
    logger.info(f"Starting {config.APP_NAME} on {config.HOST}:{config.PORT}")
    uvicorn.run(
        build_app(config),
        host=config.HOST,
        port=config.PORT,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
