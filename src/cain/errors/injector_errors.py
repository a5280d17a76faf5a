"""
Injector error hierarchy with categorization.

This module defines the error types used throughout the CA injector,
providing clear categorization between fatal configuration problems,
non-fatal resolution problems and the admission level failures.
"""


class InjectorError(Exception):
    """
    Base error class for all injector-related exceptions.

    Provides categorization and user guidance for resolution.
    """

    def __init__(
        self,
        message: str,
        category: str,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize injector error.

        Args:
            message: Human-readable error description
            category: Error category (configuration, resolution, api, admission)
            user_action: What user should do to resolve the issue
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.category = category
        self.user_action = user_action
        self.cause = cause

    def __str__(self) -> str:
        """Enhanced string representation with user guidance."""
        base_msg = super().__str__()
        if self.user_action:
            return f"{base_msg}\nAction required: {self.user_action}"
        return base_msg


class ConfigurationError(InjectorError):
    """Error in injector configuration, fatal at startup."""

    def __init__(self, message: str, user_action: str | None = None):
        super().__init__(
            message=message,
            category="configuration",
            user_action=user_action or "Review and correct the environment configuration",
        )


class OwnerResolutionError(InjectorError):
    """The controlling object of a workload could not be determined."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message=message, category="resolution", cause=cause)


class NoRootObjectError(OwnerResolutionError):
    """None of the owner references point to a supported controller kind."""

    def __init__(self, kind: str, name: str):
        super().__init__(f"no root object found for {kind} {name!r}")
        self.kind = kind
        self.name = name


class OwnerChainTooDeepError(OwnerResolutionError):
    """The owner chain is cyclic or deeper than the walk allows."""

    def __init__(self, depth: int, chain: list[str]):
        super().__init__(
            f"owner chain exceeds {depth} levels or is cyclic: {' -> '.join(chain)}"
        )
        self.depth = depth
        self.chain = chain


class KubernetesAPIError(InjectorError):
    """Error communicating with Kubernetes API."""

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        status: int | None = None,
        cause: Exception | None = None,
    ):
        if reason:
            message = f"{message} (reason: {reason})"
        super().__init__(
            message=message,
            category="api",
            user_action="Check RBAC permissions and cluster connectivity",
            cause=cause,
        )
        self.reason = reason
        self.status = status


class UnsupportedOperationError(InjectorError):
    """Admission operation the validating webhook has no logic for."""

    def __init__(self, operation: str):
        super().__init__(
            message=f"admission operation ({operation}): unsupported operation",
            category="admission",
            user_action="Restrict the webhook configuration to CREATE and DELETE",
        )
        self.operation = operation


class InjectorShutdownError(InjectorError):
    """Admission request received after shutdown was signalled."""

    def __init__(self):
        super().__init__(
            message="context has been cancelled, injector is shutting down",
            category="admission",
        )


class UnrecognisedFamilyError(InjectorError):
    """OS family without a trust bundle layout."""

    def __init__(self, family: str):
        super().__init__(message=f"unrecognised family: {family}", category="mutation")
        self.family = family


class QueueClosedError(InjectorError):
    """A provisioning request was submitted to a closed queue."""

    def __init__(self, queue_name: str):
        super().__init__(
            message=f"provisioning queue {queue_name!r} is closed",
            category="provisioning",
        )
        self.queue_name = queue_name
