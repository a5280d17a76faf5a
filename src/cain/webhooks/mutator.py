"""
Mutating admission webhook.

Rewrites the spec of an injection enabled Pod so that every container sees
an OS trust bundle regenerated with the configured CA certificates:

1. a projected secret volume carrying the CA certificates and an empty
   volume receiving the regenerated bundle are appended to the Pod,
2. the ``ca-cert-gen`` init container, running the family's trust update
   tooling, is prepended to the init containers,
3. the bundle volume is mounted into every other container,
4. JVM workloads get the cert-manager issued truststore and the JVM
   options pointing at it,
5. Python workloads get ``REQUESTS_CA_BUNDLE`` and ``SSL_CERT_FILE``.

A failing step leaves the Pod as it was before that step and adds a
warning, the Pod is never rejected.
"""

import copy
import logging
import posixpath
from collections.abc import Callable
from typing import Any, TypeAlias

from kubernetes import client

from ..constants import (
    CA_INIT_CONTAINER_NAME,
    CA_TRUSTSTORE_VOLUME_NAME,
    EXCLUDED_NAMESPACES,
    FILE_DEFAULT_MODE,
    OPERATION_CREATE,
    REQUESTS_CA_BUNDLE_ENV_VAR,
    SSL_CERT_FILE_ENV_VAR,
    WARNING_ALREADY_MUTATED,
    WARNING_CA_VOLUMES_FAILED,
    WARNING_JVM_FAILED,
    WARNING_NOT_A_POD,
    WARNING_PYTHON_FAILED,
    WARNING_TRUSTSTORE_PRESENT,
)
from ..errors import (
    InjectorError,
    KubernetesAPIError,
    OwnerResolutionError,
    UnrecognisedFamilyError,
)
from ..models.admission import AdmissionRequest, KubernetesObject, MutationResult
from ..models.policy import FAMILY_LAYOUTS, CASecretRef, InitImages, WorkloadPolicy
from ..utils.kubernetes import to_manifest
from ..utils.metadata import PolicyExtractor
from ..utils.naming import ca_bundle_secret_name, truststore_secret_name
from ..utils.ownership import OwnerChainResolver
from ..utils.resources import ContainerResources

logger = logging.getLogger(__name__)

PodSpec: TypeAlias = dict[str, Any]

# Malformed Pod specs surface as these while editing the manifest
STEP_ERRORS = (InjectorError, KeyError, TypeError, ValueError, AttributeError)


def _containers(spec: PodSpec) -> list[dict[str, Any]]:
    return spec.get("containers") or []


def _init_containers(spec: PodSpec) -> list[dict[str, Any]]:
    return spec.get("initContainers") or []


def _add_volume_mount(container: dict[str, Any], mount: client.V1VolumeMount) -> None:
    container.setdefault("volumeMounts", []).append(to_manifest(mount))


def _add_env(container: dict[str, Any], env: client.V1EnvVar) -> None:
    container.setdefault("env", []).append(to_manifest(env))


def jvm_options(trust_store: str, password: str) -> str:
    return f"-Djavax.net.ssl.trustStore={trust_store} -Djavax.net.ssl.password={password}"


class Mutator:
    """Injects the CA trust material into admitted Pods."""

    def __init__(
        self,
        extractor: PolicyExtractor,
        resolver: OwnerChainResolver,
        ca_secret: CASecretRef,
        init_images: InitImages,
        resources: ContainerResources,
        jvm_env_var: str,
    ):
        """
        Initialize the mutator.

        Args:
            extractor: Policy extractor for the configured metadata domain
            resolver: Owner chain resolver, must agree with the validator's
            ca_secret: Default CA secret reference
            init_images: Init container image per OS family
            resources: Init container resource requirements
            jvm_env_var: Environment variable receiving the JVM options
        """
        self.extractor = extractor
        self.resolver = resolver
        self.ca_secret = ca_secret
        self.init_images = init_images
        self.resources = resources
        self.jvm_env_var = jvm_env_var

    async def mutate(self, request: AdmissionRequest) -> MutationResult:
        """Return the mutated Pod, None when nothing changes."""
        if request.operation != OPERATION_CREATE:
            return MutationResult()

        subject = request.object or {}
        if not self.extractor.is_injection_enabled(subject):
            return MutationResult()

        namespace = request.namespace or (subject.get("metadata") or {}).get(
            "namespace", ""
        )
        if namespace in EXCLUDED_NAMESPACES:
            logger.debug(f"Skipping Pod in excluded namespace {namespace}")
            return MutationResult()

        pod = request.pod()
        if pod is None:
            return MutationResult(warnings=[WARNING_NOT_A_POD])

        spec = pod.get("spec") or {}
        if any(c.get("name") == CA_INIT_CONTAINER_NAME for c in _init_containers(spec)):
            return MutationResult(warnings=[WARNING_ALREADY_MUTATED])

        try:
            root, _ = await self.resolver.resolve(pod, namespace)
        except (OwnerResolutionError, KubernetesAPIError) as e:
            logger.warning(
                f"Owner resolution failed for Pod {namespace}/{request.name}: {e}",
                extra={"namespace": namespace, "resource_name": request.name},
            )
            return MutationResult(warnings=[WARNING_CA_VOLUMES_FAILED])

        root_name = (root.get("metadata") or {}).get("name") or request.name
        policy = self.extractor.extract(pod, namespace)
        warnings: list[str] = []

        mutated, ok = self._apply_step(
            pod, lambda s: self.add_ca_volumes(s, policy, root_name)
        )
        if not ok:
            return MutationResult(warnings=[WARNING_CA_VOLUMES_FAILED])

        if policy.jvm_enabled:
            volumes = mutated["spec"].get("volumes") or []
            if any(v.get("name") == CA_TRUSTSTORE_VOLUME_NAME for v in volumes):
                warnings.append(WARNING_TRUSTSTORE_PRESENT)
            else:
                mutated, ok = self._apply_step(
                    mutated, lambda s: self.add_jvm_truststore(s, policy, root_name)
                )
                if not ok:
                    warnings.append(WARNING_JVM_FAILED)

        if policy.python_enabled:
            mutated, ok = self._apply_step(
                mutated, lambda s: self.add_python_env(s, policy)
            )
            if not ok:
                warnings.append(WARNING_PYTHON_FAILED)

        logger.info(
            f"Injected CA into Pod {namespace}/{request.name or root_name}",
            extra={
                "namespace": namespace,
                "resource_name": root_name,
                "resource_kind": root.get("kind", "Pod"),
                "operation": OPERATION_CREATE,
            },
        )
        return MutationResult(mutated_object=mutated, warnings=warnings)

    def _apply_step(
        self, pod: KubernetesObject, step: Callable[[PodSpec], None]
    ) -> tuple[KubernetesObject, bool]:
        """Run a step on a copy of the Pod, returning the original on failure."""
        candidate = copy.deepcopy(pod)
        if not isinstance(candidate.get("spec"), dict):
            candidate["spec"] = {}
        try:
            step(candidate["spec"])
        except STEP_ERRORS as e:
            logger.warning(f"Pod mutation step failed: {e}", extra={"error": str(e)})
            return pod, False
        return candidate, True

    def build_secret_volume(self, policy: WorkloadPolicy, root_name: str) -> client.V1Volume:
        ca_bundle_secret = ca_bundle_secret_name(self.ca_secret.name, root_name)
        sources = [
            client.V1VolumeProjection(
                secret=client.V1SecretProjection(
                    name=ca_bundle_secret,
                    items=[client.V1KeyToPath(key=key, path=f"injected_ca-{i}.crt")],
                )
            )
            for i, key in enumerate(self.ca_secret.keys)
        ]
        sources += [
            client.V1VolumeProjection(
                secret=client.V1SecretProjection(
                    name=extra.secret_name,
                    items=[
                        client.V1KeyToPath(key=extra.key, path=f"injected_extra_ca-{i}.crt")
                    ],
                )
            )
            for i, extra in enumerate(policy.extra_ca_sources)
        ]
        return client.V1Volume(
            name=policy.secret_volume_name,
            projected=client.V1ProjectedVolumeSource(
                default_mode=FILE_DEFAULT_MODE, sources=sources
            ),
        )

    def build_init_container(self, policy: WorkloadPolicy) -> client.V1Container:
        layout = policy.layout
        return client.V1Container(
            name=CA_INIT_CONTAINER_NAME,
            image=self.init_images.for_family(policy.family),
            resources=self.resources.to_k8s(),
            volume_mounts=[
                client.V1VolumeMount(
                    name=policy.secret_volume_name,
                    mount_path=layout.incoming_ca_path,
                    read_only=True,
                ),
                client.V1VolumeMount(
                    name=policy.ca_volume_name, mount_path=layout.output_path
                ),
            ],
        )

    def add_ca_volumes(self, spec: PodSpec, policy: WorkloadPolicy, root_name: str) -> None:
        """Add the CA volumes and the init container, mount the bundle everywhere."""
        volumes = spec.setdefault("volumes", [])
        volumes.append(to_manifest(self.build_secret_volume(policy, root_name)))
        volumes.append(
            to_manifest(
                client.V1Volume(
                    name=policy.ca_volume_name, empty_dir=client.V1EmptyDirVolumeSource()
                )
            )
        )

        bundle_mount = client.V1VolumeMount(
            name=policy.ca_volume_name, mount_path=policy.layout.output_path
        )
        for container in _init_containers(spec):
            _add_volume_mount(container, bundle_mount)
        for container in _containers(spec):
            _add_volume_mount(container, bundle_mount)

        # The trust bundle must exist before the other init containers run
        spec["initContainers"] = [
            to_manifest(self.build_init_container(policy)),
            *_init_containers(spec),
        ]

    def add_jvm_truststore(
        self, spec: PodSpec, policy: WorkloadPolicy, root_name: str
    ) -> None:
        """Mount the truststore Certificate secret and point the JVM at it."""
        spec.setdefault("volumes", []).append(
            to_manifest(
                client.V1Volume(
                    name=CA_TRUSTSTORE_VOLUME_NAME,
                    secret=client.V1SecretVolumeSource(
                        secret_name=truststore_secret_name(root_name),
                        default_mode=FILE_DEFAULT_MODE,
                        items=[
                            client.V1KeyToPath(
                                key=policy.jvm_mount_file, path=policy.jvm_mount_file
                            )
                        ],
                    ),
                )
            )
        )

        mount = client.V1VolumeMount(
            name=CA_TRUSTSTORE_VOLUME_NAME,
            mount_path=policy.jvm_mount_dir,
            read_only=True,
        )
        options = jvm_options(
            posixpath.join(policy.jvm_mount_dir, policy.jvm_mount_file),
            policy.truststore_password,
        )

        for container in _containers(spec):
            _add_volume_mount(container, mount)
            existing = next(
                (e for e in container.get("env") or [] if e.get("name") == self.jvm_env_var),
                None,
            )
            if existing is None:
                _add_env(container, client.V1EnvVar(name=self.jvm_env_var, value=options))
            elif "valueFrom" in existing:
                raise ValueError(
                    f"{self.jvm_env_var} of container {container.get('name')!r} "
                    "is not a literal value"
                )
            else:
                existing["value"] = f"{existing.get('value', '')} {options}".lstrip()

    def add_python_env(self, spec: PodSpec, policy: WorkloadPolicy) -> None:
        """Point the Python TLS stacks at the regenerated bundle."""
        layout = FAMILY_LAYOUTS.get(policy.family)
        if layout is None:
            raise UnrecognisedFamilyError(str(policy.family))

        for container in _containers(spec):
            _add_env(
                container,
                client.V1EnvVar(name=REQUESTS_CA_BUNDLE_ENV_VAR, value=layout.bundle_path),
            )
            _add_env(
                container,
                client.V1EnvVar(name=SSL_CERT_FILE_ENV_VAR, value=layout.bundle_path),
            )
