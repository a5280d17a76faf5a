"""
cert-manager Certificate creation worker.

A JVM workload gets a Certificate issued by the configured ClusterIssuer
whose keystores section makes cert-manager write a JKS truststore next to
the certificate. The truststore password lives in its own secret, which is
requested from the secret creation queue first.
"""

import asyncio
import base64
import logging
from typing import Any

from kubernetes import client

from ..constants import (
    CERT_MANAGER_GROUP,
    CERT_MANAGER_VERSION,
    CERTIFICATE_KIND,
    CERTIFICATE_PLURAL,
    CLUSTER_ISSUER_KIND,
    TRUSTSTORE_PASSWORD_KEY,
)
from ..errors import QueueClosedError
from ..models.provisioning import CertificateCreationRequest, SecretCreationRequest
from ..observability.metrics import MetricsCollector
from ..utils.kubernetes import group_version_kind
from ..utils.naming import truststore_password_secret_name, truststore_secret_name
from .base_provisioner import Action, BaseProvisioner
from .queue import RequestQueue

logger = logging.getLogger(__name__)


class CertificateCreator(BaseProvisioner[CertificateCreationRequest]):
    """Creates JKS truststore Certificates for JVM workloads."""

    action = Action.CREATE
    group_version_kind = group_version_kind(
        CERT_MANAGER_GROUP, CERT_MANAGER_VERSION, CERTIFICATE_KIND
    )

    def __init__(
        self,
        queue: RequestQueue[CertificateCreationRequest],
        metrics: MetricsCollector,
        issuer_name: str,
        secret_queue: RequestQueue[SecretCreationRequest],
        k8s_client: client.ApiClient | None = None,
    ):
        """
        Initialize the certificate creator.

        Args:
            queue: Queue the certificate requests are consumed from
            metrics: Collector receiving the outcome counters
            issuer_name: ClusterIssuer signing the certificates
            secret_queue: Queue receiving the truststore password secrets
            k8s_client: Kubernetes API client
        """
        super().__init__(queue, metrics, k8s_client)
        self.issuer_name = issuer_name
        self.secret_queue = secret_queue

    def describe(self, request: CertificateCreationRequest) -> tuple[str, str]:
        return request.namespace, request.root_name

    def build_certificate(self, request: CertificateCreationRequest) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "name": request.root_name,
            "namespace": request.namespace,
        }
        if request.owner_ref is not None and request.owner_ref.uid:
            metadata["ownerReferences"] = [request.owner_ref.to_manifest()]

        return {
            "apiVersion": f"{CERT_MANAGER_GROUP}/{CERT_MANAGER_VERSION}",
            "kind": CERTIFICATE_KIND,
            "metadata": metadata,
            "spec": {
                "commonName": request.dns_names[0],
                "dnsNames": list(request.dns_names),
                "secretName": truststore_secret_name(request.root_name),
                "issuerRef": {
                    "name": self.issuer_name,
                    "kind": CLUSTER_ISSUER_KIND,
                },
                "keystores": {
                    "jks": {
                        "create": True,
                        "passwordSecretRef": {
                            "name": truststore_password_secret_name(request.root_name),
                            "key": TRUSTSTORE_PASSWORD_KEY,
                        },
                    }
                },
            },
        }

    async def request_password_secret(self, request: CertificateCreationRequest) -> None:
        password = base64.b64encode(request.truststore_password.encode()).decode()
        secret_request = SecretCreationRequest(
            name=truststore_password_secret_name(request.root_name),
            namespace=request.namespace,
            data={TRUSTSTORE_PASSWORD_KEY: password},
            owner_ref=request.owner_ref,
        )
        try:
            await self.secret_queue.put(secret_request)
        except QueueClosedError as e:
            logger.warning(
                f"Truststore password secret for {request.namespace}/"
                f"{request.root_name} not requested: {e}",
                extra={"namespace": request.namespace, "resource_name": secret_request.name},
            )

    async def provision(self, request: CertificateCreationRequest) -> None:
        await self.request_password_secret(request)

        custom_api = client.CustomObjectsApi(self.k8s_client)
        await asyncio.to_thread(
            custom_api.create_namespaced_custom_object,
            group=CERT_MANAGER_GROUP,
            version=CERT_MANAGER_VERSION,
            namespace=request.namespace,
            plural=CERTIFICATE_PLURAL,
            body=self.build_certificate(request),
        )
