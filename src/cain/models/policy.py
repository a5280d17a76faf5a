"""
Policy models derived from workload metadata.

This module defines the typed policy values extracted from Pod labels and
annotations, the configured CA secret reference, and the closed table of
OS family specific trust store layouts.
"""

import posixpath
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, Field

from cain.errors import ConfigurationError


class Family(StrEnum):
    """OS family of the container images in a Pod."""

    DEBIAN = "debian"
    REDHAT = "redhat"


@dataclass(frozen=True)
class FamilyLayout:
    """Trust store locations used by an OS family."""

    # where new certificates are dropped before the trust update runs
    incoming_ca_path: str
    # directory holding the regenerated bundle, shared with the app containers
    output_path: str
    bundle_name: str

    @property
    def bundle_path(self) -> str:
        return posixpath.join(self.output_path, self.bundle_name)


FAMILY_LAYOUTS: dict[Family, FamilyLayout] = {
    # update-ca-certificates
    Family.DEBIAN: FamilyLayout(
        incoming_ca_path="/usr/local/share/ca-certificates/injected",
        output_path="/etc/ssl/certs/",
        bundle_name="ca-certificates.crt",
    ),
    # update-ca-trust
    Family.REDHAT: FamilyLayout(
        incoming_ca_path="/usr/share/pki/ca-trust-source/anchors",
        output_path="/etc/pki/ca-trust/extracted",
        bundle_name="ca-bundle.trust.crt",
    ),
}


class InitImages(BaseModel):
    """Init container images per OS family."""

    model_config = {"frozen": True}

    debian: str = Field(..., description="Image used for Debian family Pods")
    redhat: str = Field(..., description="Image used for Redhat family Pods")

    def for_family(self, family: Family) -> str:
        return self.redhat if family is Family.REDHAT else self.debian


class CASecretRef(BaseModel):
    """
    Reference to the default CA secret and the keys holding CA certificates.

    Parsed once from the ``<secret name>/<key>[,<key>...]`` configuration
    string and immutable afterwards.
    """

    model_config = {"frozen": True}

    name: str = Field(..., description="Name of the CA secret")
    keys: tuple[str, ...] = Field(..., description="Keys of the CA certificates")

    @classmethod
    def parse(cls, text: str) -> "CASecretRef":
        """
        Parse a CA secret reference.

        Args:
            text: Reference formatted as ``<secret name>/<key>[,<key>...]``

        Returns:
            The parsed reference

        Raises:
            ConfigurationError: If the reference is malformed
        """
        parts = text.split("/")
        if len(parts) != 2 or not parts[0]:
            raise ConfigurationError(
                f"malformatted secret name {text!r}",
                user_action="Set CA_SECRET to <secret name>/<key>[,<key>...]",
            )

        keys = tuple(parts[1].split(","))
        if not all(keys):
            raise ConfigurationError(
                f"malformatted secret keys in {text!r}",
                user_action="List at least one non-empty key after the '/'",
            )

        return cls(name=parts[0], keys=keys)

    def __str__(self) -> str:
        return f"{self.name}/{','.join(self.keys)}"


class ExtraCASource(BaseModel):
    """Additional CA certificate declared on a workload."""

    model_config = {"frozen": True}

    secret_name: str
    key: str


class WorkloadPolicy(BaseModel):
    """
    Injection policy of a single workload object.

    Built from the object's labels and annotations on every request and
    never cached.
    """

    model_config = {"frozen": True}

    enabled: bool = False
    family: Family = Family.DEBIAN
    jvm_enabled: bool = False
    python_enabled: bool = False
    extra_ca_sources: tuple[ExtraCASource, ...] = ()
    ca_volume_name: str
    secret_volume_name: str
    jvm_common_name: str
    truststore_password: str
    jvm_mount_dir: str
    jvm_mount_file: str

    @property
    def layout(self) -> FamilyLayout:
        return FAMILY_LAYOUTS[self.family]
