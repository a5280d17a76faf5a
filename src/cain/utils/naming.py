"""
Naming conventions for provisioned resources.

Shared by the validating and the mutating webhook, both must derive the
same names from the same root object.
"""

from cain.constants import TRUSTSTORE_CERT_SUFFIX, TRUSTSTORE_PASSWORD_SUFFIX


def ca_bundle_secret_name(ca_secret_name: str, root_name: str) -> str:
    """Name of the per-workload copy of the CA secret."""
    return f"{ca_secret_name}-{root_name}"


def truststore_secret_name(root_name: str) -> str:
    """Name of the secret cert-manager writes the JKS truststore to."""
    return root_name + TRUSTSTORE_CERT_SUFFIX


def truststore_password_secret_name(root_name: str) -> str:
    """Name of the secret holding the truststore password."""
    return root_name + TRUSTSTORE_PASSWORD_SUFFIX
