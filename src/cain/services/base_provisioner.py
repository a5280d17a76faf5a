"""
Base provisioner providing the consumer loop and outcome classification.

Provisioners are fire-and-forget: each request is attempted exactly once,
its outcome is counted and logged, and failures are never reported back
to the admission request that produced it.
"""

import logging
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any, Generic, TypeVar

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..observability.metrics import MetricsCollector
from ..utils.kubernetes import api_error_message
from .queue import RequestQueue

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Action(StrEnum):
    CREATE = "create"
    DELETE = "delete"


class Outcome(StrEnum):
    """Classified result of a provisioning attempt."""

    SUCCESS = "success"
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    SERVER_REJECTED = "server_rejected"
    ERROR = "error"


class BaseProvisioner(ABC, Generic[T]):
    """
    Base class for the provisioning workers.

    Subclasses implement ``provision`` for a single request, the base class
    drives the queue and turns every result into one metric increment and
    one log line.
    """

    action: Action
    group_version_kind: str

    def __init__(
        self,
        queue: RequestQueue[T],
        metrics: MetricsCollector,
        k8s_client: client.ApiClient | None = None,
    ):
        """
        Initialize the provisioner.

        Args:
            queue: Queue the requests are consumed from
            metrics: Collector receiving the outcome counters
            k8s_client: Kubernetes API client
        """
        self.queue = queue
        self.metrics = metrics
        self.k8s_client = k8s_client

    @abstractmethod
    async def provision(self, request: T) -> None:
        """Perform the cluster call for one request."""

    @abstractmethod
    def describe(self, request: T) -> tuple[str, str]:
        """Return the namespace and name a request targets."""

    async def run(self) -> None:
        """Consume requests until the queue is closed or the task is cancelled."""
        name = self.__class__.__name__
        logger.info(f"{name} started", extra={"component": name})
        while (request := await self.queue.get()) is not None:
            await self.process(request)
        logger.info(f"{name} stopped, queue closed", extra={"component": name})

    async def process(self, request: T) -> Outcome:
        """Attempt a single request and record its outcome."""
        try:
            await self.provision(request)
        except ApiException as e:
            outcome = self.classify_api_error(e)
            self.record(request, outcome, api_error_message(e))
        except Exception as e:
            self.record(request, Outcome.ERROR, str(e))
            return Outcome.ERROR
        else:
            outcome = Outcome.SUCCESS
            self.record(request, outcome)
        return outcome

    def classify_api_error(self, error: ApiException) -> Outcome:
        if self.action is Action.CREATE and error.status == 409:
            return Outcome.ALREADY_EXISTS
        if self.action is Action.DELETE and error.status == 404:
            return Outcome.NOT_FOUND
        return Outcome.SERVER_REJECTED

    def _counter(self, outcome: Outcome) -> Any:
        m = self.metrics
        if self.action is Action.CREATE:
            return {
                Outcome.SUCCESS: m.resource_created,
                Outcome.ALREADY_EXISTS: m.resource_already_exists,
            }.get(outcome, m.resource_create_errors)
        return {
            Outcome.SUCCESS: m.resource_deleted,
            Outcome.NOT_FOUND: m.resource_not_found,
        }.get(outcome, m.resource_delete_errors)

    def record(self, request: T, outcome: Outcome, message: str = "") -> None:
        namespace, name = self.describe(request)
        self._counter(outcome).labels(
            namespace=namespace, groupVersionKind=self.group_version_kind
        ).inc()

        extra: dict[str, Any] = {
            "namespace": namespace,
            "resource_name": name,
            "group_version_kind": self.group_version_kind,
            "operation": str(self.action),
            "outcome": str(outcome),
        }
        match outcome:
            case Outcome.SUCCESS:
                logger.info(
                    f"{self.action} {self.group_version_kind} {namespace}/{name}",
                    extra=extra,
                )
            case Outcome.ALREADY_EXISTS | Outcome.NOT_FOUND:
                logger.info(
                    f"{self.action} {self.group_version_kind} {namespace}/{name}: "
                    f"{outcome.replace('_', ' ')}",
                    extra=extra,
                )
            case _:
                logger.error(
                    f"Failed to {self.action} {self.group_version_kind} "
                    f"{namespace}/{name}: {message}",
                    extra=extra | {"error": message},
                )
