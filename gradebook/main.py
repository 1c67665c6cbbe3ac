"""ASGI entry point: app factory, error envelope handlers and health check."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gradebook.api.v1.router import api_router
from gradebook.core.config import settings
from gradebook.core.database import engine
from gradebook.core.exceptions import AppException, InternalError, error_body
from gradebook.middleware.logging import RequestLoggingMiddleware

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
for noisy in ("sqlalchemy", "sqlalchemy.engine", "python_multipart", "python_multipart.multipart"):
    logging.getLogger(noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

API_DESCRIPTION = """
Imports instructors, students and subjects from a roster/curriculum workbook
and records per-subject scores and absences.

Every imported row and every grade edit is reported on its own, so one bad
row never hides the others. Endpoints other than login and `/health` need
`Authorization: Bearer <token>`; imports are restricted to admins.

Call-level failures use one body shape:
`{"success": false, "error": {"code": ..., "message": ..., "details": {}}}`.
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"[APP] Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    yield
    logger.info("[APP] Shutting down, disposing connection pool")
    engine.dispose()


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may carry exception instances that JSONResponse cannot serialize
    return [{key: value for key, value in error.items() if key != "ctx"} for error in exc.errors()]


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.detail)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = error_body("VALIDATION_ERROR", "Request validation failed", {"errors": jsonable_errors(exc)})
    return JSONResponse(status_code=422, content=body)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"[APP] Unhandled error on {request.method} {request.url.path}")
    fallback = InternalError("An internal server error occurred")
    return JSONResponse(status_code=fallback.status_code, content=fallback.detail)


def create_application() -> FastAPI:
    """Build the app: middleware, error handlers, health check and the v1 router."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=API_DESCRIPTION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "healthy", "app": settings.APP_NAME, "version": settings.APP_VERSION}

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)
    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("gradebook.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
