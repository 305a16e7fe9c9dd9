"""Lumina API entrypoint.

Every failure leaves the API as an ``ErrorResponse`` body. Domain errors
raised by the session routes are mapped here: a failed redesign becomes a
retryable 502 and an unreadable upload a 422.
"""

import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lumina.activities.edit import ImageEditError
from lumina.api.routes import health, sessions
from lumina.api.routes.health import VERSION
from lumina.logging import configure_logging
from lumina.models.contracts import ErrorResponse
from lumina.utils.image import InvalidImageError

configure_logging()

logger = structlog.get_logger()

EDIT_FAILED_MESSAGE = "Failed to edit image. Please try again."

app = FastAPI(
    title="Lumina API",
    description="Room photo redesigns and a grounded design consultant.",
    version=VERSION,
    docs_url="/docs",
    redoc_url=None,
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Bind X-Request-ID (or a fresh UUID) into the log context and echo it back."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _error_response(
    request: Request,
    status: int,
    code: str,
    message: str,
    *,
    retryable: bool = False,
) -> JSONResponse:
    response = JSONResponse(
        status_code=status,
        content=ErrorResponse(error=code, message=message, retryable=retryable).model_dump(),
    )
    # the 500 handler runs outside the middleware, so set the header here too
    request_id = getattr(request.state, "request_id", None)
    response.headers["X-Request-ID"] = request_id or request.headers.get("X-Request-ID", "")
    return response


@app.exception_handler(ImageEditError)
async def image_edit_error_handler(request: Request, exc: ImageEditError) -> JSONResponse:
    """A redesign that produced no image. The session is left as it was."""
    logger.warning(
        "edit_failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc)[:200],
    )
    return _error_response(request, 502, "edit_failed", EDIT_FAILED_MESSAGE, retryable=True)


@app.exception_handler(InvalidImageError)
async def invalid_image_handler(request: Request, exc: InvalidImageError) -> JSONResponse:
    logger.info("upload_rejected", path=request.url.path, reason=str(exc))
    return _error_response(request, 422, "invalid_image", str(exc))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    messages = [
        f"{' → '.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    ]
    return _error_response(request, 422, "validation_error", "; ".join(messages))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _error_response(
        request, 500, "internal_error", "An unexpected error occurred", retryable=True
    )


app.include_router(health.router)
app.include_router(sessions.router, prefix="/api/v1")
