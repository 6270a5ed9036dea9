# snapcast/main.py

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from snapcast.api.router import api_router
from snapcast.core.config import settings
from snapcast.core.exceptions import SnapCastError, VideoValidationError

# Configure logging so errors are easy to spot
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="API for SnapCast: upload screen recordings, track their processing and share them.",
        version="1.0.0",
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
    )

    @app.exception_handler(VideoValidationError)
    async def validation_exception_handler(request: Request, exc: VideoValidationError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "field": exc.field},
        )

    @app.exception_handler(SnapCastError)
    async def domain_exception_handler(request: Request, exc: SnapCastError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.detail, exc_info=exc)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)

    # Catch-all so no stack trace reaches the client
    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error("An unhandled exception occurred on %s: %s", request.url.path, exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "An internal server error occurred."},
        )

    @app.get("/")
    def read_root():
        logger.info("Root endpoint was called.")
        return {"message": "Welcome to SnapCast API! The server is running."}

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()

logger.info("FastAPI application startup complete.")
