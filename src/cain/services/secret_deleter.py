"""Secret deletion worker."""

import asyncio

from kubernetes import client

from ..models.provisioning import SecretDeletionRequest
from ..utils.kubernetes import group_version_kind
from .base_provisioner import Action, BaseProvisioner


class SecretDeleter(BaseProvisioner[SecretDeletionRequest]):
    """
    Deletes the CA bundle secret of a bare Pod.

    Secrets of controller owned Pods are garbage collected through their
    owner reference, bare Pods have no owner to collect them.
    """

    action = Action.DELETE
    group_version_kind = group_version_kind("", "v1", "Secret")

    def describe(self, request: SecretDeletionRequest) -> tuple[str, str]:
        return request.namespace, request.name

    async def provision(self, request: SecretDeletionRequest) -> None:
        core_api = client.CoreV1Api(self.k8s_client)
        await asyncio.to_thread(
            core_api.delete_namespaced_secret,
            name=request.name,
            namespace=request.namespace,
        )
