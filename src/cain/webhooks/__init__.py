"""
Admission webhooks for CA injection.

The validating webhook requests the cluster resources a Pod needs, the
mutating webhook wires them into the Pod spec. Both derive resource names
from the same root object and must stay in agreement.
"""

from .mutator import Mutator
from .server import WebhookServer
from .validator import Validator

__all__ = ["Mutator", "Validator", "WebhookServer"]
