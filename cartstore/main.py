# cartstore/main.py
from contextlib import asynccontextmanager

import redis
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cartstore.api import api_router
from cartstore.data.store import open_redis
from cartstore.domain.errors import CartError, CartValidationError
from cartstore.services.product_client import ProductClient, build_product_client
from cartstore.utils.settings import PORT
from cartstore.utils.logging import get_logger

logger = get_logger(__name__)


def create_app(
    redis_client: redis.Redis | None = None,
    product_client: ProductClient | None = None,
) -> FastAPI:
    """
    Build the cart service app.

    Without an injected client the lifespan opens a Redis pool on startup
    and disconnects it on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Cart Service...")
        if redis_client is not None:
            yield
        else:
            with open_redis() as client:
                app.state.redis = client
                yield
        logger.info("Cart Service shut down")

    app = FastAPI(
        title="Cart Service",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.redis = redis_client
    app.state.product_client = product_client or build_product_client()

    app.include_router(api_router)

    @app.exception_handler(CartError)
    async def cart_error_handler(request: Request, exc: CartError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc.code} {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # body validation answers 400 like every other validation error
        return JSONResponse(
            status_code=CartValidationError.status_code,
            content={"error": CartValidationError.code, "message": str(exc.errors())},
        )

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=PORT)
