"""
HTTPS server exposing the admission webhooks.

Routes:
- POST /inject/validate: validating webhook, always allows except for
  unsupported operations and shutdown
- POST /inject/mutate: mutating webhook answering with a base64 JSONPatch
- GET /healthz: liveness probe
"""

import asyncio
import base64
import json
import logging
import ssl

import jsonpatch
from aiohttp import web
from pydantic import ValidationError

from ..constants import SERVER_SHUTDOWN_TIMEOUT
from ..errors import InjectorError
from ..models.admission import AdmissionResponse, AdmissionReview, AdmissionStatus
from ..observability.logging import set_correlation_id
from ..observability.metrics import MetricsCollector
from .mutator import Mutator
from .validator import Validator

logger = logging.getLogger(__name__)

PATCH_TYPE_JSON_PATCH = "JSONPatch"


def json_patch(original: dict, mutated: dict) -> str | None:
    """Base64 JSONPatch turning ``original`` into ``mutated``, None if equal."""
    patch = jsonpatch.JsonPatch.from_diff(original, mutated)
    if not patch.patch:
        return None
    return base64.b64encode(patch.to_string().encode()).decode()


class WebhookServer:
    """Serves the validating and mutating webhooks over TLS."""

    def __init__(
        self,
        validator: Validator,
        mutator: Mutator,
        metrics: MetricsCollector,
        ssl_context: ssl.SSLContext | None,
        port: int = 8443,
        host: str = "0.0.0.0",
    ):
        """
        Initialize the webhook server.

        Args:
            validator: Validating webhook logic
            mutator: Mutating webhook logic
            metrics: Collector for the admission review metrics
            ssl_context: Listener TLS context, plaintext when None
            port: Port to serve the webhooks on
            host: Host interface to bind to
        """
        self.validator = validator
        self.mutator = mutator
        self.metrics = metrics
        self.ssl_context = ssl_context
        self.port = port
        self.host = host
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_post("/inject/validate", self._validate_handler)
        self.app.router.add_post("/inject/mutate", self._mutate_handler)
        self.app.router.add_get("/healthz", self._healthz_handler)

    async def _read_review(self, request: web.Request) -> AdmissionReview:
        try:
            body = await request.json()
            review = AdmissionReview.model_validate(body)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Rejected malformed admission review: {e}")
            raise web.HTTPBadRequest(text=f"malformed admission review: {e}") from e

        if review.request is None:
            raise web.HTTPBadRequest(text="admission review has no request")

        set_correlation_id(review.request.uid)
        return review

    @staticmethod
    def _denied(uid: str, error: InjectorError) -> AdmissionResponse:
        return AdmissionResponse(
            uid=uid,
            allowed=False,
            status=AdmissionStatus(code=500, message=str(error)),
        )

    async def _validate_handler(self, request: web.Request) -> web.Response:
        review = await self._read_review(request)
        admission = review.request
        assert admission is not None

        async with self.metrics.track_review("validate", admission.operation):
            try:
                result = await self.validator.validate(admission)
            except InjectorError as e:
                logger.error(
                    f"Validation of {admission.namespace}/{admission.name} failed: {e}",
                    extra={"webhook": "validate", "operation": admission.operation},
                )
                response = self._denied(admission.uid, e)
            else:
                response = AdmissionResponse(
                    uid=admission.uid,
                    allowed=result.allowed,
                    status=AdmissionStatus(message=result.message) if result.message else None,
                    warnings=result.warnings or None,
                )

        return web.json_response(review.respond(response).to_wire())

    async def _mutate_handler(self, request: web.Request) -> web.Response:
        review = await self._read_review(request)
        admission = review.request
        assert admission is not None

        async with self.metrics.track_review("mutate", admission.operation):
            try:
                result = await self.mutator.mutate(admission)
            except InjectorError as e:
                logger.error(
                    f"Mutation of {admission.namespace}/{admission.name} failed: {e}",
                    extra={"webhook": "mutate", "operation": admission.operation},
                )
                response = self._denied(admission.uid, e)
            else:
                response = AdmissionResponse(
                    uid=admission.uid,
                    allowed=True,
                    warnings=result.warnings or None,
                )
                if result.mutated_object is not None and admission.object is not None:
                    patch = json_patch(admission.object, result.mutated_object)
                    if patch is not None:
                        response.patch = patch
                        response.patch_type = PATCH_TYPE_JSON_PATCH

        return web.json_response(review.respond(response).to_wire())

    async def _healthz_handler(self, request: web.Request) -> web.Response:
        return web.Response(text="ok")

    async def start(self) -> None:
        """Start the webhook server."""
        self.runner = web.AppRunner(self.app, shutdown_timeout=SERVER_SHUTDOWN_TIMEOUT)
        await self.runner.setup()

        self.site = web.TCPSite(
            self.runner, self.host, self.port, ssl_context=self.ssl_context
        )
        await self.site.start()

        scheme = "https" if self.ssl_context else "http"
        logger.info(f"Webhook server listening on {scheme}://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the webhook server, draining in-flight requests."""
        if self.site:
            await self.site.stop()
            self.site = None

        if self.runner:
            await self.runner.cleanup()
            self.runner = None

        logger.info("Webhook server stopped")

    async def serve(self, stop_event: asyncio.Event) -> None:
        """Serve until the stop event is set."""
        await self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()
