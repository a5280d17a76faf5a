"""
Prometheus metrics for the CA injector.

This module provides the provisioning outcome counters, the admission review
metrics and the plaintext HTTP server exposing them.
"""

import logging
import time
from contextlib import asynccontextmanager

from aiohttp.web import Application, AppRunner, Request, Response, TCPSite
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

METRICS_NAMESPACE = "cainjector"

RESOURCE_LABELS = ["namespace", "groupVersionKind"]


class MetricsCollector:
    """Collects and manages metrics for the CA injector."""

    def __init__(self, subsystem: str = "", registry: CollectorRegistry | None = None):
        """
        Initialize metrics collector.

        Args:
            subsystem: Optional metric name subsystem, part of every
                provisioning counter name
            registry: Registry to register with, a dedicated one by default
        """
        self.registry = registry or CollectorRegistry()

        def resource_counter(name: str, documentation: str) -> Counter:
            return Counter(
                name,
                documentation,
                RESOURCE_LABELS,
                namespace=METRICS_NAMESPACE,
                subsystem=subsystem,
                registry=self.registry,
            )

        self.resource_already_exists = resource_counter(
            "resource_already_exists",
            "The number of resources which already existed when creating",
        )
        self.resource_create_errors = resource_counter(
            "resource_create_errors",
            "The number of errors encountered when creating resources",
        )
        self.resource_created = resource_counter(
            "resource_created", "The number of resources created"
        )
        self.resource_deleted = resource_counter(
            "resource_deleted", "The number of resources deleted"
        )
        self.resource_not_found = resource_counter(
            "resource_not_found",
            "The number of resources which were not found when deleting",
        )
        self.resource_delete_errors = resource_counter(
            "resource_delete_errors",
            "The number of errors encountered when deleting resources",
        )

        self.admission_reviews = Counter(
            "admission_reviews",
            "Total number of admission reviews handled",
            ["webhook", "operation", "result"],
            namespace=METRICS_NAMESPACE,
            registry=self.registry,
        )
        self.admission_review_duration = Histogram(
            "admission_review_duration_seconds",
            "Time spent handling admission reviews",
            ["webhook", "operation"],
            namespace=METRICS_NAMESPACE,
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
            registry=self.registry,
        )

    @asynccontextmanager
    async def track_review(self, webhook: str, operation: str):
        """
        Context manager to track admission review handling.

        Args:
            webhook: Webhook handling the review (validate, mutate)
            operation: Admission operation of the request
        """
        start_time = time.time()
        result = "unknown"

        try:
            yield
            result = "success"
        except Exception:
            result = "error"
            raise
        finally:
            self.admission_reviews.labels(
                webhook=webhook, operation=operation, result=result
            ).inc()
            self.admission_review_duration.labels(
                webhook=webhook, operation=operation
            ).observe(time.time() - start_time)

    def render(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)


class MetricsServer:
    """HTTP server for exposing Prometheus metrics."""

    def __init__(
        self, collector: MetricsCollector, port: int = 8080, host: str = "0.0.0.0"
    ):
        """
        Initialize metrics server.

        Args:
            collector: Metrics collector whose registry is served
            port: Port to serve metrics on
            host: Host interface to bind to
        """
        self.collector = collector
        self.port = port
        self.host = host
        self.app = Application()
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_get("/metrics", self._metrics_handler)
        self.app.router.add_get("/healthz", self._healthz_handler)

    async def _metrics_handler(self, request: Request) -> Response:
        """Handle /metrics endpoint for Prometheus scraping."""
        try:
            metrics_data = self.collector.render()
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            return Response(
                text=f"Error generating metrics: {type(e).__name__}. Check logs for details.",
                status=500,
            )
        # CONTENT_TYPE_LATEST carries a charset, aiohttp wants it separately
        return Response(body=metrics_data, headers={"Content-Type": CONTENT_TYPE_LATEST})

    async def _healthz_handler(self, request: Request) -> Response:
        return Response(text="ok")

    async def start(self) -> None:
        """Start the metrics server."""
        try:
            self.runner = AppRunner(self.app)
            await self.runner.setup()

            self.site = TCPSite(self.runner, self.host, self.port)
            await self.site.start()

            logger.info(f"Metrics available at http://{self.host}:{self.port}/metrics")
        except Exception as e:
            logger.error(f"Failed to start metrics server: {e}")
            raise

    async def stop(self) -> None:
        """Stop the metrics server."""
        if self.site:
            await self.site.stop()
            self.site = None

        if self.runner:
            await self.runner.cleanup()
            self.runner = None

        logger.info("Metrics server stopped")

    async def serve(self, stop_event) -> None:
        """Serve until the stop event is set."""
        await self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
