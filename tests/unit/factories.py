"""
Manifest factories shared by the injector unit tests.

Objects are plain manifests in their camelCase JSON form, the way they
arrive in an AdmissionReview.
"""

from typing import Any

from cain.errors import KubernetesAPIError
from cain.models.admission import AdmissionRequest

DOMAIN = "weisshorn.cyd"
ENABLED_LABEL = f"cain.{DOMAIN}/enabled"
CA_SECRET_DATA = {"ca.crt": "LS0tLS1CRUdJTiBDRVJUSUZJQ0FURS0tLS0t"}


def annotation(name: str) -> str:
    return f"cain.{DOMAIN}/{name}"


def make_pod(
    name: str = "test-pod",
    namespace: str = "default",
    enabled: bool = True,
    annotations: dict[str, str] | None = None,
    owner_references: list[dict[str, Any]] | None = None,
    containers: list[dict[str, Any]] | None = None,
    init_containers: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build a Pod manifest, injection enabled by default."""
    metadata: dict[str, Any] = {"name": name, "namespace": namespace}
    if enabled:
        metadata["labels"] = {ENABLED_LABEL: "true"}
    if annotations:
        metadata["annotations"] = annotations
    if owner_references:
        metadata["ownerReferences"] = owner_references

    spec: dict[str, Any] = {
        "containers": containers
        if containers is not None
        else [{"name": "busybox", "image": "busybox"}]
    }
    if init_containers is not None:
        spec["initContainers"] = init_containers

    return {"apiVersion": "v1", "kind": "Pod", "metadata": metadata, "spec": spec}


def owner_ref(kind: str, name: str, uid: str = "") -> dict[str, Any]:
    api_version = "batch/v1" if kind in ("Job", "CronJob") else "apps/v1"
    return {
        "apiVersion": api_version,
        "kind": kind,
        "name": name,
        "uid": uid or f"uid-{name}",
        "controller": True,
    }


def make_controller(
    kind: str, name: str, namespace: str = "default", owners: list | None = None
) -> dict[str, Any]:
    metadata: dict[str, Any] = {"name": name, "namespace": namespace}
    if owners:
        metadata["ownerReferences"] = owners
    return {"kind": kind, "metadata": metadata}


def make_request(
    obj: dict[str, Any] | None,
    operation: str = "CREATE",
    namespace: str = "default",
    kind: str = "Pod",
    dry_run: bool = False,
    old_object: dict[str, Any] | None = None,
) -> AdmissionRequest:
    name = ((obj or old_object or {}).get("metadata") or {}).get("name", "")
    return AdmissionRequest.model_validate(
        {
            "uid": "705ab4f5-6393-11e8-b7cc-42010a800002",
            "kind": {"group": "", "version": "v1", "kind": kind},
            "namespace": namespace,
            "name": name,
            "operation": operation,
            "object": obj,
            "oldObject": old_object,
            "dryRun": dry_run,
        }
    )


class StaticFetcher:
    """Controller fetcher serving objects from a dict, recording every read."""

    def __init__(self, objects: dict[tuple[str, str], dict[str, Any]] | None = None):
        self.objects = objects or {}
        self.calls: list[tuple[str, str, str]] = []

    async def fetch(self, kind, name, namespace):
        self.calls.append((str(kind), name, namespace))
        try:
            return self.objects[(str(kind), name)]
        except KeyError:
            raise KubernetesAPIError(
                f"getting {kind} {name!r}", reason="NotFound", status=404
            ) from None


def deployment_chain(
    deployment: str = "test-dep", replica_set: str = "test-dep-5d8f7b"
) -> StaticFetcher:
    """Fetcher for Pod -> ReplicaSet -> Deployment."""
    return StaticFetcher(
        {
            ("ReplicaSet", replica_set): make_controller(
                "ReplicaSet", replica_set, owners=[owner_ref("Deployment", deployment)]
            ),
            ("Deployment", deployment): make_controller("Deployment", deployment),
        }
    )
