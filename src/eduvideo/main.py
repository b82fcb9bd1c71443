"""Main application entrypoint for the EduVideo upload service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from eduvideo.api.v1 import routes_health
from eduvideo.api.v1.routes_content import router as content_router
from eduvideo.api.v1.routes_upload import router as upload_router
from eduvideo.content.database import init_db
from eduvideo.core.config import settings
from eduvideo.core.logging import setup_logging
from eduvideo.core.middleware import HTTPErrorLoggingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    settings.chunks_dir.mkdir(parents=True, exist_ok=True)
    settings.videos_dir.mkdir(parents=True, exist_ok=True)
    yield


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed requests as 400 with the validation details."""
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    # Initialize logging first
    setup_logging()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(HTTPErrorLoggingMiddleware)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Register routers
    app.include_router(routes_health.router, tags=["health"])
    app.include_router(upload_router)
    app.include_router(content_router)

    return app


# Export app instance for ASGI servers
app = create_app()
