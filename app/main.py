"""
AdFunnel Analytics - advertising event ingestion and aggregate reporting.

Features:
- Canonical field extraction across Facebook and TikTok payloads
- Aggregation queries (overview, time series, funnel, countries, revenue, rankings)
- Structured logging with correlation IDs
- Prometheus metrics
- Health checks (liveness and readiness)
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from .config import get_settings
from .logging import setup_logging, get_logger
from .adapters.base import EventStore
from .analytics.service import AnalyticsService
from .api.analytics_router import router as analytics_router
from .api.webhook_router import router as webhook_router
from .errors import register_exception_handlers
from .health import HealthChecker
from .metrics import Metrics
from .middleware import CorrelationIdMiddleware, MetricsMiddleware, PayloadSizeMiddleware
from .services.event_store import EventIngestor, create_store

SERVICE_NAME = "adanalytics"
VERSION = "0.1.0"

settings = get_settings()

setup_logging(json_output=settings.LOG_JSON, service_name=SERVICE_NAME, level=settings.LOG_LEVEL)
logger = get_logger()


def create_app(store: EventStore | None = None) -> FastAPI:
    """
    Build the application around an event store.

    Args:
        store: Event store to serve from (defaults to the configured adapter)
    """
    store = store or create_store(settings)
    metrics = Metrics(service_name=SERVICE_NAME, version=VERSION)
    health_checker = HealthChecker(store, service_name=SERVICE_NAME, version=VERSION)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "service_starting",
            version=VERSION,
            env=settings.ENV,
            store=type(store).__name__,
        )
        yield
        logger.info("service_stopping")
        metrics.app_up.labels(service=SERVICE_NAME, version=VERSION).set(0)
        await store.close()

    app = FastAPI(
        title="AdFunnel Analytics",
        version=VERSION,
        description="Event ingestion and analytics for advertising platform events",
        lifespan=lifespan,
    )

    app.state.store = store
    app.state.metrics = metrics
    app.state.analytics = AnalyticsService(store, metrics=metrics)
    app.state.ingestor = EventIngestor(store, metrics=metrics)

    # Added last runs first: correlation ID, then size limit, then metrics
    app.add_middleware(MetricsMiddleware, metrics=metrics)
    app.add_middleware(PayloadSizeMiddleware, max_bytes=settings.MAX_EVENT_SIZE * settings.MAX_BATCH_SIZE)
    app.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(app)
    app.include_router(webhook_router)
    app.include_router(analytics_router)

    app.mount("/metrics", make_asgi_app(registry=metrics.registry))

    @app.get("/health")
    async def health():
        """Liveness probe - returns 200 if the service is running."""
        return health_checker.liveness()

    @app.get("/health/ready")
    async def health_ready():
        """
        Readiness probe.

        Returns:
            200: Event store reachable and resources available
            503: Service is not ready
        """
        result = await health_checker.readiness()
        status_code = 200 if result["status"] == "ready" else 503
        return JSONResponse(content=result, status_code=status_code)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.SERVICE_PORT,
        reload=True,
    )
