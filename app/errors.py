"""Error taxonomy and structured error responses."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

log = structlog.get_logger()


class AnalyticsError(Exception):
    """Base class for errors raised by the analytics service."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidQueryError(AnalyticsError):
    """A query parameter was out of range or not recognized.

    Raised before the store is touched.
    """

    status_code = 400

    def __init__(self, parameter: str, message: str):
        super().__init__(message)
        self.parameter = parameter


class StoreUnavailableError(AnalyticsError):
    """The event store could not be reached or timed out.

    Transient; retry policy belongs to the caller.
    """

    status_code = 503


def get_correlation_id() -> str | None:
    """Correlation ID bound to the logging context by the middleware."""
    return structlog.contextvars.get_contextvars().get("correlation_id")


async def analytics_error_handler(request: Request, exc: AnalyticsError) -> JSONResponse:
    correlation_id = get_correlation_id()
    content = {
        "error": exc.__class__.__name__,
        "message": exc.message,
        "status_code": exc.status_code,
        "correlation_id": correlation_id,
        "path": str(request.url.path),
    }
    if isinstance(exc, InvalidQueryError):
        content["parameter"] = exc.parameter
        log.warning("request.invalid_query", parameter=exc.parameter, detail=exc.message, path=request.url.path)
    else:
        log.error(
            "request.failed",
            error=exc.message,
            error_type=exc.__class__.__name__,
            path=request.url.path,
        )
    return JSONResponse(status_code=exc.status_code, content=content)


def register_exception_handlers(app: FastAPI):
    """Map domain errors to structured JSON responses."""
    app.add_exception_handler(AnalyticsError, analytics_error_handler)
