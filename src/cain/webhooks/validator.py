"""
Validating admission webhook.

The validating webhook never rejects a workload. It only turns admission
events of injection enabled Pods into provisioning requests: the CA bundle
secret and, for JVM workloads, the truststore Certificate on CREATE, and
the cleanup of a bare Pod's secret on DELETE. Dry runs never enqueue.
"""

import asyncio
import logging

from ..constants import (
    MESSAGE_NO_ROOT_OBJECT,
    OPERATION_CREATE,
    OPERATION_DELETE,
    WARNING_NOT_A_POD,
)
from ..errors import (
    InjectorShutdownError,
    KubernetesAPIError,
    OwnerResolutionError,
    QueueClosedError,
    UnsupportedOperationError,
)
from ..models.admission import AdmissionRequest, KubernetesObject, ValidationResult
from ..models.policy import CASecretRef
from ..models.provisioning import (
    CertificateCreationRequest,
    SecretCreationRequest,
    SecretDeletionRequest,
)
from ..services.queue import RequestQueue
from ..utils.metadata import PolicyExtractor
from ..utils.naming import ca_bundle_secret_name
from ..utils.ownership import OwnerChainResolver, get_owner_references

logger = logging.getLogger(__name__)


class Validator:
    """Decides which resources an admitted Pod needs provisioned."""

    def __init__(
        self,
        extractor: PolicyExtractor,
        resolver: OwnerChainResolver,
        ca_secret: CASecretRef,
        ca_data: dict[str, str],
        secret_queue: RequestQueue[SecretCreationRequest],
        deletion_queue: RequestQueue[SecretDeletionRequest],
        certificate_queue: RequestQueue[CertificateCreationRequest],
        shutdown: asyncio.Event,
    ):
        """
        Initialize the validator.

        Args:
            extractor: Policy extractor for the configured metadata domain
            resolver: Owner chain resolver
            ca_secret: Default CA secret reference
            ca_data: Base64 CA data copied into every CA bundle secret
            secret_queue: Secret creation queue
            deletion_queue: Secret deletion queue
            certificate_queue: Certificate creation queue
            shutdown: Set once the injector is shutting down
        """
        self.extractor = extractor
        self.resolver = resolver
        self.ca_secret = ca_secret
        self.ca_data = ca_data
        self.secret_queue = secret_queue
        self.deletion_queue = deletion_queue
        self.certificate_queue = certificate_queue
        self.shutdown = shutdown

    async def close_queues(self) -> None:
        for queue in (self.secret_queue, self.deletion_queue, self.certificate_queue):
            await queue.close()

    async def validate(self, request: AdmissionRequest) -> ValidationResult:
        """
        Handle a validating admission request.

        Raises:
            InjectorShutdownError: If the injector is shutting down
            UnsupportedOperationError: For operations other than CREATE and DELETE
        """
        if self.shutdown.is_set():
            await self.close_queues()
            raise InjectorShutdownError()

        subject = request.subject or {}
        if not self.extractor.is_injection_enabled(subject):
            return ValidationResult()

        pod = request.pod()
        if pod is None:
            return ValidationResult(warnings=[WARNING_NOT_A_POD])

        try:
            if request.operation == OPERATION_DELETE:
                await self.handle_delete(request, pod)
                return ValidationResult()
            if request.operation == OPERATION_CREATE:
                return await self.handle_create(request, pod)
        except QueueClosedError as e:
            logger.warning(
                f"Provisioning skipped, injector is shutting down: {e}",
                extra={"namespace": request.namespace, "operation": request.operation},
            )
            return ValidationResult(warnings=[str(e)])

        raise UnsupportedOperationError(request.operation)

    async def handle_delete(self, request: AdmissionRequest, pod: KubernetesObject) -> None:
        """Delete the CA bundle secret of a bare Pod."""
        # Secrets of owned Pods are garbage collected with their root object
        if get_owner_references(pod) or request.dry_run:
            return

        name = (pod.get("metadata") or {}).get("name") or request.name
        deletion = SecretDeletionRequest(
            name=ca_bundle_secret_name(self.ca_secret.name, name),
            namespace=request.namespace,
        )
        await self.deletion_queue.put(deletion)
        logger.debug(
            f"Requested deletion of secret {deletion.namespace}/{deletion.name}",
            extra={"namespace": deletion.namespace, "resource_name": deletion.name},
        )

    async def handle_create(
        self, request: AdmissionRequest, pod: KubernetesObject
    ) -> ValidationResult:
        try:
            root, owner_ref = await self.resolver.resolve(pod, request.namespace)
        except (OwnerResolutionError, KubernetesAPIError) as e:
            logger.warning(
                f"Owner resolution failed for Pod {request.namespace}/{request.name}: {e}",
                extra={"namespace": request.namespace, "resource_name": request.name},
            )
            message = MESSAGE_NO_ROOT_OBJECT.format(e)
            return ValidationResult(message=message, warnings=[message])

        if request.dry_run:
            return ValidationResult()

        root_metadata = root.get("metadata") or {}
        root_name = root_metadata.get("name") or request.name
        namespace = root_metadata.get("namespace") or request.namespace

        await self.secret_queue.put(
            SecretCreationRequest(
                name=ca_bundle_secret_name(self.ca_secret.name, root_name),
                namespace=request.namespace,
                data=dict(self.ca_data),
                owner_ref=owner_ref,
            )
        )

        if self.extractor.is_jvm_enabled(pod):
            await self.certificate_queue.put(
                CertificateCreationRequest(
                    root_name=root_name,
                    namespace=namespace,
                    dns_names=[self.extractor.jvm_common_name(root, namespace)],
                    truststore_password=self.extractor.truststore_password(pod),
                    owner_ref=owner_ref,
                )
            )

        logger.info(
            f"Requested CA provisioning for root object {namespace}/{root_name}",
            extra={
                "namespace": namespace,
                "resource_name": root_name,
                "resource_kind": root.get("kind", "Pod"),
                "operation": OPERATION_CREATE,
            },
        )
        return ValidationResult()
