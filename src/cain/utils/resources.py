"""Resource requirements of the CA injection init container."""

from kubernetes import client
from kubernetes.utils import parse_quantity
from pydantic import BaseModel

from cain.errors import ConfigurationError


class ContainerResources(BaseModel):
    """CPU and memory requests/limits, requests default to the limits."""

    model_config = {"frozen": True}

    cpu_limit: str
    mem_limit: str
    cpu_request: str
    mem_request: str

    @classmethod
    def from_values(
        cls,
        cpu_limit: str,
        mem_limit: str,
        cpu_request: str = "",
        mem_request: str = "",
    ) -> "ContainerResources":
        """
        Build and validate the init container resources.

        Raises:
            ConfigurationError: If a quantity cannot be parsed
        """
        resources = cls(
            cpu_limit=cpu_limit,
            mem_limit=mem_limit,
            cpu_request=cpu_request or cpu_limit,
            mem_request=mem_request or mem_limit,
        )
        for field, value in resources.model_dump().items():
            try:
                parse_quantity(value)
            except ValueError as e:
                raise ConfigurationError(f"parsing {field} {value!r}: {e}") from e
        return resources

    def to_k8s(self) -> client.V1ResourceRequirements:
        return client.V1ResourceRequirements(
            limits={"cpu": self.cpu_limit, "memory": self.mem_limit},
            requests={"cpu": self.cpu_request, "memory": self.mem_request},
        )
