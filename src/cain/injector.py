#!/usr/bin/env python3
"""
cain - Main entry point of the CA injection admission controller.

The injector runs these workers concurrently, the first failing worker
stops all of them:
- the TLS credential watcher
- the secret creation, secret deletion and certificate creation workers
- the plaintext metrics server
- the HTTPS webhook server

Usage:
    python -m cain.injector

Environment Variables:
    CA_ISSUER: ClusterIssuer signing JVM truststore certificates
    CA_SECRET: Default CA secret, <secret name>/<key>[,<key>...]
    TRUSTSTORE_PASSWORD: Default JVM truststore password
    JVM_ENV_VAR: Environment variable receiving the JVM options
"""

import asyncio
import logging
import signal
import sys

from kubernetes import client
from pydantic import ValidationError

from cain import __version__
from cain.errors import InjectorError
from cain.models.provisioning import (
    CertificateCreationRequest,
    SecretCreationRequest,
    SecretDeletionRequest,
)
from cain.observability.logging import setup_structured_logging
from cain.observability.metrics import MetricsCollector, MetricsServer
from cain.services import (
    CertificateCreator,
    RequestQueue,
    SecretCreator,
    SecretDeleter,
)
from cain.settings import Settings, get_settings
from cain.utils.kubernetes import (
    get_kubernetes_client,
    get_pod_namespace,
    load_ca_secret_data,
)
from cain.utils.metadata import PolicyExtractor
from cain.utils.ownership import ControllerFetcher, OwnerChainResolver
from cain.utils.resources import ContainerResources
from cain.utils.tls import ReloadingTLSCredential
from cain.webhooks import Mutator, Validator, WebhookServer

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure structured logging for the injector from its settings."""
    setup_structured_logging(
        log_level=settings.log_level.upper(),
        enable_json_formatting=settings.json_logs,
        correlation_id_enabled=settings.correlation_ids,
    )


async def run(settings: Settings) -> None:
    """
    Build all components and run them until shutdown.

    Raises:
        InjectorError: If the configuration is unusable
        ExceptionGroup: If a worker fails
    """
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    ca_secret = settings.ca_secret_ref
    resources = ContainerResources.from_values(
        cpu_limit=settings.cpu_limit,
        mem_limit=settings.mem_limit,
        cpu_request=settings.cpu_request,
        mem_request=settings.mem_request,
    )
    credential = ReloadingTLSCredential(settings.tls_cert_file, settings.tls_key_file)

    k8s_client = get_kubernetes_client()
    namespace = get_pod_namespace(settings.pod_namespace)
    ca_data = await load_ca_secret_data(client.CoreV1Api(k8s_client), ca_secret, namespace)

    metrics = MetricsCollector(subsystem=settings.metrics_subsystem)
    secret_queue: RequestQueue[SecretCreationRequest] = RequestQueue("secret-creation")
    deletion_queue: RequestQueue[SecretDeletionRequest] = RequestQueue("secret-deletion")
    certificate_queue: RequestQueue[CertificateCreationRequest] = RequestQueue(
        "certificate-creation"
    )

    provisioners = [
        SecretCreator(secret_queue, metrics, k8s_client),
        SecretDeleter(deletion_queue, metrics, k8s_client),
        CertificateCreator(
            certificate_queue, metrics, settings.ca_issuer, secret_queue, k8s_client
        ),
    ]

    extractor = PolicyExtractor(settings.metadata_domain, settings.truststore_password)
    resolver = OwnerChainResolver(ControllerFetcher(k8s_client))
    validator = Validator(
        extractor,
        resolver,
        ca_secret,
        ca_data,
        secret_queue,
        deletion_queue,
        certificate_queue,
        shutdown,
    )
    mutator = Mutator(
        extractor,
        resolver,
        ca_secret,
        settings.init_images,
        resources,
        settings.jvm_env_var,
    )

    webhook_server = WebhookServer(
        validator,
        mutator,
        metrics,
        credential.server_context(),
        port=settings.port,
        host=settings.host,
    )
    metrics_server = MetricsServer(metrics, port=settings.metrics_port, host=settings.host)

    async def serve_webhooks() -> None:
        try:
            await webhook_server.serve(shutdown)
        finally:
            # No admission request can enqueue anymore, let the workers drain
            await validator.close_queues()

    logger.info(f"Starting cain {__version__} in namespace {namespace}")
    try:
        async with asyncio.TaskGroup() as tg:
            tg.create_task(credential.run(shutdown), name="tls-watcher")
            for provisioner in provisioners:
                tg.create_task(provisioner.run(), name=type(provisioner).__name__)
            tg.create_task(metrics_server.serve(shutdown), name="metrics-server")
            tg.create_task(serve_webhooks(), name="webhook-server")
    finally:
        k8s_client.close()

    logger.info("Injector stopped")


def main() -> None:
    """Main entry point for the injector."""
    try:
        settings = get_settings()
    except ValidationError as e:
        setup_structured_logging()
        logger.error(f"Invalid injector configuration: {e}")
        sys.exit(1)

    configure_logging(settings)

    try:
        asyncio.run(run(settings))
    except InjectorError as e:
        logger.error(f"Injector failed to start: {e}")
        sys.exit(1)
    except ExceptionGroup as eg:
        for error in eg.exceptions:
            logger.error(f"Injector worker failed: {error!r}", exc_info=error)
        sys.exit(1)


if __name__ == "__main__":
    main()
