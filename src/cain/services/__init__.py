"""
Service layer for the CA injector.

This module provides the provisioning workers that create and delete the
cluster resources requested by the validating webhook.
"""

from .base_provisioner import Action, BaseProvisioner, Outcome
from .certificate_creator import CertificateCreator
from .queue import RequestQueue
from .secret_creator import SecretCreator
from .secret_deleter import SecretDeleter

__all__ = [
    "Action",
    "BaseProvisioner",
    "CertificateCreator",
    "Outcome",
    "RequestQueue",
    "SecretCreator",
    "SecretDeleter",
]
