"""
Provisioning request models.

Requests are produced once by the validating webhook, handed to a
provisioning queue and consumed exactly once by its worker.
"""

from kubernetes import client
from pydantic import BaseModel, Field


class OwnerReference(BaseModel):
    """Controller reference edge between a workload and its owner."""

    model_config = {"populate_by_name": True, "extra": "ignore", "frozen": True}

    api_version: str = Field("", alias="apiVersion")
    kind: str
    name: str
    uid: str = ""
    controller: bool | None = None
    block_owner_deletion: bool | None = Field(None, alias="blockOwnerDeletion")

    def to_k8s(self) -> client.V1OwnerReference:
        return client.V1OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.name,
            uid=self.uid,
            controller=self.controller,
            block_owner_deletion=self.block_owner_deletion,
        )

    def to_manifest(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class SecretCreationRequest(BaseModel):
    """Secret to create, data values are already base64 encoded."""

    name: str = Field(..., description="Secret name, unique within the namespace")
    namespace: str
    data: dict[str, str] = Field(default_factory=dict)
    owner_ref: OwnerReference | None = Field(
        None, description="Owner used for garbage collection"
    )


class SecretDeletionRequest(BaseModel):
    """Secret to delete if it was not garbage collected already."""

    name: str
    namespace: str


class CertificateCreationRequest(BaseModel):
    """cert-manager Certificate holding a JKS truststore for a root object."""

    root_name: str = Field(..., description="Name of the root workload object")
    namespace: str
    dns_names: list[str] = Field(..., min_length=1)
    truststore_password: str
    owner_ref: OwnerReference | None = None
