"""
Owner chain resolution for workload objects.

A Pod created by a controller has a generated name, so resources shared by
all replicas are named and owned after the root object that transitively
controls the Pod (Deployment, StatefulSet, DaemonSet, CronJob, Job). This
module walks the owner references upward through the cluster until an
object without owner references is reached.
"""

import asyncio
import logging
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from kubernetes import client
from kubernetes.client.rest import ApiException

from cain.constants import MAX_OWNER_CHAIN_DEPTH
from cain.errors import KubernetesAPIError, NoRootObjectError, OwnerChainTooDeepError
from cain.models.provisioning import OwnerReference
from cain.utils.kubernetes import to_manifest

logger = logging.getLogger(__name__)


class ControllerKind(StrEnum):
    """Controller kinds the owner chain walk follows."""

    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"
    REPLICA_SET = "ReplicaSet"
    DAEMON_SET = "DaemonSet"
    CRON_JOB = "CronJob"
    JOB = "Job"

    @classmethod
    def from_kind(cls, kind: str | None) -> "ControllerKind | None":
        """Return the controller kind, None for kinds the walk stops at."""
        try:
            return cls(kind)
        except ValueError:
            return None


# Reader per controller kind: (API class, read method)
_CONTROLLER_READERS: dict[ControllerKind, tuple[type, str]] = {
    ControllerKind.DEPLOYMENT: (client.AppsV1Api, "read_namespaced_deployment"),
    ControllerKind.STATEFUL_SET: (client.AppsV1Api, "read_namespaced_stateful_set"),
    ControllerKind.REPLICA_SET: (client.AppsV1Api, "read_namespaced_replica_set"),
    ControllerKind.DAEMON_SET: (client.AppsV1Api, "read_namespaced_daemon_set"),
    ControllerKind.CRON_JOB: (client.BatchV1Api, "read_namespaced_cron_job"),
    ControllerKind.JOB: (client.BatchV1Api, "read_namespaced_job"),
}


def get_owner_references(obj: Mapping[str, Any]) -> list[dict[str, Any]]:
    return (obj.get("metadata") or {}).get("ownerReferences") or []


class ControllerFetcher:
    """Reads controller objects from the cluster as manifests."""

    def __init__(self, k8s_client: client.ApiClient | None = None):
        """
        Initialize the fetcher.

        Args:
            k8s_client: Optional Kubernetes API client
        """
        self.k8s_client = k8s_client
        self._apis: dict[type, Any] = {}

    def _api(self, api_class: type) -> Any:
        if api_class not in self._apis:
            self._apis[api_class] = api_class(self.k8s_client)
        return self._apis[api_class]

    async def fetch(
        self, kind: ControllerKind, name: str, namespace: str
    ) -> dict[str, Any]:
        """
        Read a controller object.

        Raises:
            KubernetesAPIError: If the read fails
        """
        api_class, method = _CONTROLLER_READERS[kind]
        reader = getattr(self._api(api_class), method)
        try:
            obj = await asyncio.to_thread(reader, name=name, namespace=namespace)
        except ApiException as e:
            raise KubernetesAPIError(
                f"getting {kind} {name!r}",
                reason=e.reason,
                status=e.status,
                cause=e,
            ) from e
        return to_manifest(obj)


class OwnerChainResolver:
    """Finds the root object controlling a workload instance."""

    def __init__(
        self, fetcher: ControllerFetcher, max_depth: int = MAX_OWNER_CHAIN_DEPTH
    ):
        self.fetcher = fetcher
        self.max_depth = max_depth

    async def resolve(
        self,
        obj: Mapping[str, Any],
        namespace: str,
        owner_ref: OwnerReference | None = None,
    ) -> tuple[Mapping[str, Any], OwnerReference | None]:
        """
        Walk the owner references of an object up to its root.

        Only the first owner reference with a supported controller kind is
        followed at every level, fetch errors are not retried.

        Args:
            obj: Object to start from
            namespace: Namespace the chain lives in
            owner_ref: Edge that led to ``obj``, returned when it is the root

        Returns:
            Tuple of the root object and the owner reference pointing to it,
            the reference is None when ``obj`` itself is the root

        Raises:
            NoRootObjectError: If no owner reference has a supported kind
            OwnerChainTooDeepError: If the chain is cyclic or too deep
            KubernetesAPIError: If a controller cannot be read
        """
        subject = obj
        edge = owner_ref
        metadata = obj.get("metadata") or {}
        chain = [f"{obj.get('kind', 'Pod')}/{metadata.get('name', '')}"]
        visited: set[tuple[ControllerKind, str]] = set()

        while True:
            references = get_owner_references(subject)
            if not references:
                logger.debug(f"Resolved root object {chain[-1]} in {namespace}")
                return subject, edge

            if len(visited) >= self.max_depth:
                raise OwnerChainTooDeepError(self.max_depth, chain)

            for reference in references:
                kind = ControllerKind.from_kind(reference.get("kind"))
                if kind is not None:
                    break
            else:
                subject_meta = subject.get("metadata") or {}
                raise NoRootObjectError(
                    subject.get("kind", "Pod"), subject_meta.get("name", "")
                )

            edge = OwnerReference.model_validate(reference)
            chain.append(f"{kind}/{edge.name}")
            if (kind, edge.name) in visited:
                raise OwnerChainTooDeepError(self.max_depth, chain)
            visited.add((kind, edge.name))

            subject = await self.fetcher.fetch(kind, edge.name, namespace)
