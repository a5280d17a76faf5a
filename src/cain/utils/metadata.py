"""
Workload policy extraction from labels and annotations.

This module maps the labels and annotations of a Kubernetes object to the
typed injection policy. All lookups tolerate missing or null label and
annotation maps and fall back to documented defaults.
"""

import logging
import posixpath
from collections.abc import Mapping
from typing import Any

from cain.constants import (
    CA_VOLUME_NAME_ANNOTATION,
    DEFAULT_CA_VOLUME_NAME,
    DEFAULT_SECRET_VOLUME_NAME,
    DEFAULT_TRUSTSTORE_FILE,
    DEFAULT_TRUSTSTORE_MOUNT_PATH,
    ENABLED_LABEL,
    ENABLED_VALUE,
    EXTRA_SECRETS_ANNOTATION,
    FAMILY_ANNOTATION,
    JVM_ANNOTATION,
    JVM_COMMON_NAME_ANNOTATION,
    JVM_PATH_ANNOTATION,
    MAX_COMMON_NAME_LENGTH,
    PYTHON_ANNOTATION,
    SECRET_VOLUME_NAME_ANNOTATION,
    TRUSTSTORE_PASSWORD_ANNOTATION,
)
from cain.models.policy import ExtraCASource, Family, WorkloadPolicy

logger = logging.getLogger(__name__)


def _metadata(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    return obj.get("metadata") or {}


def get_labels(obj: Mapping[str, Any]) -> Mapping[str, str]:
    return _metadata(obj).get("labels") or {}


def get_annotations(obj: Mapping[str, Any]) -> Mapping[str, str]:
    return _metadata(obj).get("annotations") or {}


def truncate_common_name(common_name: str) -> str:
    """Keep the last 63 characters of an over-long X.509 common name."""
    if len(common_name) > MAX_COMMON_NAME_LENGTH:
        return common_name[-MAX_COMMON_NAME_LENGTH:]
    return common_name


class PolicyExtractor:
    """Reads the injection policy of an object for one metadata domain."""

    def __init__(self, domain: str, truststore_password: str):
        """
        Initialize the extractor.

        Args:
            domain: Metadata domain, keys are ``cain.<domain>/<name>``
            truststore_password: Default JVM truststore password
        """
        self.domain = domain
        self.default_truststore_password = truststore_password

        self.enabled_label = ENABLED_LABEL.format(domain=domain)
        self.extra_secrets_annotation = EXTRA_SECRETS_ANNOTATION.format(domain=domain)
        self.family_annotation = FAMILY_ANNOTATION.format(domain=domain)
        self.jvm_annotation = JVM_ANNOTATION.format(domain=domain)
        self.python_annotation = PYTHON_ANNOTATION.format(domain=domain)
        self.ca_volume_name_annotation = CA_VOLUME_NAME_ANNOTATION.format(domain=domain)
        self.secret_volume_name_annotation = SECRET_VOLUME_NAME_ANNOTATION.format(
            domain=domain
        )
        self.jvm_common_name_annotation = JVM_COMMON_NAME_ANNOTATION.format(
            domain=domain
        )
        self.truststore_password_annotation = TRUSTSTORE_PASSWORD_ANNOTATION.format(
            domain=domain
        )
        self.jvm_path_annotation = JVM_PATH_ANNOTATION.format(domain=domain)

    def is_injection_enabled(self, obj: Mapping[str, Any]) -> bool:
        return get_labels(obj).get(self.enabled_label) == ENABLED_VALUE

    def family(self, obj: Mapping[str, Any]) -> Family:
        value = get_annotations(obj).get(self.family_annotation)
        if value == Family.REDHAT.value:
            return Family.REDHAT
        return Family.DEBIAN

    def is_jvm_enabled(self, obj: Mapping[str, Any]) -> bool:
        return get_annotations(obj).get(self.jvm_annotation) == ENABLED_VALUE

    def is_python_enabled(self, obj: Mapping[str, Any]) -> bool:
        return get_annotations(obj).get(self.python_annotation) == ENABLED_VALUE

    def extra_ca_sources(self, obj: Mapping[str, Any]) -> tuple[ExtraCASource, ...]:
        """
        Parse the extra CA secrets annotation.

        The annotation is a comma separated list of ``<secret name>/<key>``
        entries. Malformed entries are skipped so one typo does not block
        the injection of the remaining CAs.
        """
        value = get_annotations(obj).get(self.extra_secrets_annotation)
        if not value:
            return ()

        sources = []
        for entry in value.split(","):
            parts = entry.strip().split("/")
            if len(parts) != 2 or not all(parts):
                logger.warning(
                    f"Ignoring malformed extra CA secret {entry!r}",
                    extra={"resource_name": _metadata(obj).get("name", "")},
                )
                continue
            sources.append(ExtraCASource(secret_name=parts[0], key=parts[1]))
        return tuple(sources)

    def ca_volume_name(self, obj: Mapping[str, Any]) -> str:
        return get_annotations(obj).get(
            self.ca_volume_name_annotation, DEFAULT_CA_VOLUME_NAME
        )

    def secret_volume_name(self, obj: Mapping[str, Any]) -> str:
        return get_annotations(obj).get(
            self.secret_volume_name_annotation, DEFAULT_SECRET_VOLUME_NAME
        )

    def jvm_common_name(self, obj: Mapping[str, Any], namespace: str = "") -> str:
        """
        Common name of the truststore certificate.

        Defaults to ``<name>.<namespace>.<domain>``; both the default and an
        explicit override are cut to their last 63 characters.

        Args:
            obj: Object the certificate is issued for
            namespace: Fallback when the object metadata has no namespace
        """
        override = get_annotations(obj).get(self.jvm_common_name_annotation)
        if override is not None:
            return truncate_common_name(override)

        metadata = _metadata(obj)
        obj_namespace = metadata.get("namespace") or namespace
        return truncate_common_name(
            f"{metadata.get('name', '')}.{obj_namespace}.{self.domain}"
        )

    def truststore_password(self, obj: Mapping[str, Any]) -> str:
        return get_annotations(obj).get(
            self.truststore_password_annotation, self.default_truststore_password
        )

    def jvm_path(self, obj: Mapping[str, Any]) -> tuple[str, str]:
        """Return the truststore mount directory and file name."""
        value = get_annotations(obj).get(self.jvm_path_annotation)
        if value is None:
            return DEFAULT_TRUSTSTORE_MOUNT_PATH, DEFAULT_TRUSTSTORE_FILE
        return posixpath.dirname(value), posixpath.basename(value)

    def extract(self, obj: Mapping[str, Any], namespace: str = "") -> WorkloadPolicy:
        """Build the complete policy of an object."""
        mount_dir, mount_file = self.jvm_path(obj)
        return WorkloadPolicy(
            enabled=self.is_injection_enabled(obj),
            family=self.family(obj),
            jvm_enabled=self.is_jvm_enabled(obj),
            python_enabled=self.is_python_enabled(obj),
            extra_ca_sources=self.extra_ca_sources(obj),
            ca_volume_name=self.ca_volume_name(obj),
            secret_volume_name=self.secret_volume_name(obj),
            jvm_common_name=self.jvm_common_name(obj, namespace),
            truststore_password=self.truststore_password(obj),
            jvm_mount_dir=mount_dir,
            jvm_mount_file=mount_file,
        )
