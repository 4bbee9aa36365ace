import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from community_analytics.api.router import api_router
from community_analytics.cache.redis import redis_client
from community_analytics.config import settings
from community_analytics.database import init_db
from community_analytics.exceptions import CustomException
from community_analytics.middleware import (
    configure_logging,
    setup_request_logging_middleware,
)


configure_logging(logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)

UNLOGGED_PATHS = ["/health", "/docs", "/redoc", f"{settings.API_PREFIX}/openapi.json"]


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Create missing tables on startup and release the cache on shutdown."""
    await init_db()
    logger.info("%s %s started", settings.PROJECT_NAME, settings.VERSION)
    try:
        yield
    finally:
        await redis_client.disconnect()


async def handle_custom_exception(
    _request: Request, exc: CustomException
) -> JSONResponse:
    """Render domain errors as {"detail", "code"} with their status."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


def create_app() -> FastAPI:
    """
    Build the analytics API.

    Interactive docs are only served in debug mode.
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=(
            "Sentiment scoring, trend classification, metric forecasting "
            "and model management for community content"
        ),
        version=settings.VERSION,
        lifespan=lifespan,
        openapi_url=(
            f"{settings.API_PREFIX}/openapi.json" if settings.DEBUG else None
        ),
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_request_logging_middleware(app, exclude_paths=UNLOGGED_PATHS)

    app.add_exception_handler(
        CustomException, handle_custom_exception  # type: ignore[arg-type]
    )
    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "community_analytics.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG,
    )
