"""Secret creation worker."""

import asyncio

from kubernetes import client

from ..models.provisioning import SecretCreationRequest
from ..utils.kubernetes import group_version_kind
from .base_provisioner import Action, BaseProvisioner


class SecretCreator(BaseProvisioner[SecretCreationRequest]):
    """Creates the per-workload CA bundle and truststore password secrets."""

    action = Action.CREATE
    group_version_kind = group_version_kind("", "v1", "Secret")

    def describe(self, request: SecretCreationRequest) -> tuple[str, str]:
        return request.namespace, request.name

    def build_secret(self, request: SecretCreationRequest) -> client.V1Secret:
        owner_references = None
        # references without a UID are rejected by the API server
        if request.owner_ref is not None and request.owner_ref.uid:
            owner_references = [request.owner_ref.to_k8s()]

        return client.V1Secret(
            api_version="v1",
            kind="Secret",
            metadata=client.V1ObjectMeta(
                name=request.name,
                namespace=request.namespace,
                owner_references=owner_references,
            ),
            data=request.data,
        )

    async def provision(self, request: SecretCreationRequest) -> None:
        core_api = client.CoreV1Api(self.k8s_client)
        await asyncio.to_thread(
            core_api.create_namespaced_secret,
            namespace=request.namespace,
            body=self.build_secret(request),
        )
