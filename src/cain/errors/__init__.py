"""
Error handling module for the CA injector.

This module provides the error hierarchy used to separate fatal
configuration errors from the non-fatal resolution and provisioning
errors that only degrade admission into warnings.
"""

from .injector_errors import (
    ConfigurationError,
    InjectorError,
    InjectorShutdownError,
    KubernetesAPIError,
    NoRootObjectError,
    OwnerChainTooDeepError,
    OwnerResolutionError,
    QueueClosedError,
    UnrecognisedFamilyError,
    UnsupportedOperationError,
)

__all__ = [
    "InjectorError",
    "ConfigurationError",
    "OwnerResolutionError",
    "NoRootObjectError",
    "OwnerChainTooDeepError",
    "KubernetesAPIError",
    "UnsupportedOperationError",
    "InjectorShutdownError",
    "UnrecognisedFamilyError",
    "QueueClosedError",
]
