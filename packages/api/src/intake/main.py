# This project was developed with assistance from AI tools.
"""FastAPI application entry point."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .routes import dossiers, health
from .schemas.error import ErrorResponse, UploadFailedResponse
from .services.reconciliation import UploadFailedError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Wire the adapters on startup; flush open sessions on shutdown."""
    from .services.intake import init_session_registry
    from .services.notifications import init_notification_dispatcher, log_notification_status
    from .services.storage import init_storage_service

    log_notification_status(settings)
    storage = init_storage_service(settings)
    dispatcher = init_notification_dispatcher(settings)
    registry = init_session_registry(storage, dispatcher)
    yield
    await registry.close_all()
    await dispatcher.aclose()


app = FastAPI(
    title="Rental Intake API",
    description="Rental application intake and document completion",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)

_STATUS_TITLES: dict[int, str] = {
    400: "Bad Request",
    404: "Not Found",
    413: "Payload Too Large",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


def _request_id(request: Request) -> str:
    return request.headers.get("x-request-id", str(uuid.uuid4()))


def _problem(request: Request, status_code: int, detail: str) -> JSONResponse:
    """Render an RFC 7807 Problem Details response."""
    body = ErrorResponse(
        title=_STATUS_TITLES.get(status_code, "Error"),
        status=status_code,
        detail=detail,
        request_id=_request_id(request),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _problem(request, exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _problem(request, 422, str(exc.errors()))


@app.exception_handler(UploadFailedError)
async def upload_failed_handler(request: Request, exc: UploadFailedError):
    """A batch that failed partway: 502 plus the files that were stored."""
    body = UploadFailedResponse(
        title=_STATUS_TITLES[502],
        status=502,
        detail=str(exc),
        request_id=_request_id(request),
        filename=exc.filename,
        index=exc.index,
        uploaded=exc.uploaded,
    )
    return JSONResponse(status_code=502, content=body.model_dump(mode="json"))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _problem(request, 500, "An unexpected error occurred.")


app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(dossiers.router, prefix="/api/dossiers", tags=["dossiers"])
