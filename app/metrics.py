"""
Prometheus metrics for the analytics service.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
import psutil
import os


class Metrics:
    """
    Centralized metrics for the analytics service.
    """

    def __init__(self, service_name: str = "adanalytics", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            registry=self.registry,
        )

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Business Metrics
        self.queries_total = Counter(
            "adanalytics_queries_total",
            "Aggregation queries executed",
            ["query", "status"],
            registry=self.registry,
        )

        self.query_duration = Histogram(
            "adanalytics_query_duration_seconds",
            "Aggregation query duration in seconds",
            ["query"],
            registry=self.registry,
        )

        self.events_ingested_total = Counter(
            "adanalytics_events_ingested_total",
            "Events appended to the store",
            ["source", "funnel_stage"],
            registry=self.registry,
        )

        # System Metrics
        self.process_memory_bytes = Gauge(
            "process_resident_memory_bytes",
            "Resident memory size in bytes",
            ["service"],
            registry=self.registry,
        )
        self.update_system_metrics()

    def update_system_metrics(self):
        """Update process memory from psutil."""
        try:
            memory_info = psutil.Process(os.getpid()).memory_info()
        except psutil.Error:
            return
        self.process_memory_bytes.labels(service=self.service_name).set(memory_info.rss)

    def record_query(self, query: str, status: str, duration_seconds: float):
        """Record one aggregation query."""
        self.queries_total.labels(query=query, status=status).inc()
        self.query_duration.labels(query=query).observe(duration_seconds)

    def record_event_ingested(self, source: str, funnel_stage: str):
        """Record an event accepted into the store."""
        self.events_ingested_total.labels(source=source, funnel_stage=funnel_stage).inc()
