"""
Middleware for observability and request limits.
"""
import uuid
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
import structlog

# Path label for requests that matched no route
UNMATCHED_ROUTE = "unmatched"


def route_template(request: Request) -> str:
    """
    Path label for metrics: the matched route's template.

    Only valid after the router has run, since routing stores the matched
    route in the request scope.
    """
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation IDs to all requests.

    - Extracts correlation ID from X-Correlation-ID header if present
    - Generates new UUID if not present
    - Binds correlation ID and the query string (hours, limit, source) to structlog context
    - Adds correlation ID to response headers
    """

    async def dispatch(self, request: Request, call_next):
        # Get or generate correlation ID
        correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())

        # Bind to structlog context
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            http_method=request.method,
            http_path=request.url.path,
        )
        if request.query_params:
            # Analytics parameters show up on every log line of the query
            structlog.contextvars.bind_contextvars(http_query=dict(request.query_params))

        # Process request
        response = await call_next(request)

        # Add correlation ID to response
        response.headers["x-correlation-id"] = correlation_id
        return response


class PayloadSizeMiddleware(BaseHTTPMiddleware):
    """Rejects request bodies whose declared size exceeds the limit."""

    def __init__(self, app, max_bytes: int):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_bytes:
            structlog.get_logger().warning(
                "payload.too_large",
                size=int(content_length),
                max_size=self.max_bytes,
                path=request.url.path,
            )
            return JSONResponse(
                status_code=413,
                content={
                    "error": "PayloadTooLarge",
                    "message": f"Request payload exceeds maximum size of {self.max_bytes} bytes",
                    "max_size": self.max_bytes,
                    "received_size": int(content_length),
                },
            )
        return await call_next(request)


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP metrics for Prometheus.

    - Records request count by method, route template, status
    - Records request duration histogram
    - Tracks active requests
    - Refreshes process memory when /metrics is scraped
    """

    def __init__(self, app, metrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        # Skip metrics endpoint to avoid recursion
        if request.url.path.startswith("/metrics"):
            self.metrics.update_system_metrics()
            return await call_next(request)

        # Track active requests
        self.metrics.http_requests_active.inc()
        start_time = time.time()
        logger = structlog.get_logger()

        try:
            # Process request
            response = await call_next(request)
            duration = time.time() - start_time
            path = route_template(request)

            # Record metrics
            self.metrics.http_requests_total.labels(
                service=self.metrics.service_name,
                method=request.method,
                path=path,
                status=response.status_code,
            ).inc()

            self.metrics.http_request_duration.labels(
                service=self.metrics.service_name,
                method=request.method,
                path=path,
            ).observe(duration)

            # Log request
            logger.info(
                "http_request",
                http_status=response.status_code,
                route=path,
                duration_ms=round(duration * 1000, 2),
            )

            return response

        except Exception as e:
            duration = time.time() - start_time

            # Record error metrics
            self.metrics.http_requests_total.labels(
                service=self.metrics.service_name,
                method=request.method,
                path=route_template(request),
                status=500,
            ).inc()

            # Log error
            logger.error(
                "http_request_error",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round(duration * 1000, 2),
            )

            raise

        finally:
            # Decrement active requests
            self.metrics.http_requests_active.dec()
