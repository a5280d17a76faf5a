"""
Admission review wire models.

Pydantic models for the ``admission.k8s.io/v1`` AdmissionReview exchange
and the results produced by the validating and mutating webhooks.
"""

from typing import Any, TypeAlias

from pydantic import BaseModel, Field

from cain.constants import ADMISSION_API_VERSION, ADMISSION_KIND

KubernetesObject: TypeAlias = dict[str, Any]
"""Kubernetes object in its camelCase JSON form."""


class GroupVersionKind(BaseModel):
    """Kind of the object under admission."""

    group: str = ""
    version: str = ""
    kind: str = ""


class AdmissionRequest(BaseModel):
    """Request half of an AdmissionReview."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    uid: str = Field(..., description="Identifier echoed back in the response")
    kind: GroupVersionKind = Field(default_factory=GroupVersionKind)
    namespace: str = ""
    name: str = ""
    operation: str = Field(..., description="CREATE, UPDATE, DELETE or CONNECT")
    object: KubernetesObject | None = None
    old_object: KubernetesObject | None = Field(None, alias="oldObject")
    dry_run: bool = Field(False, alias="dryRun")

    @property
    def subject(self) -> KubernetesObject | None:
        """Object the decision applies to, DELETE requests only carry oldObject."""
        return self.object if self.object is not None else self.old_object

    def pod(self) -> KubernetesObject | None:
        """Return the admitted object if it is a Pod."""
        subject = self.subject
        if self.kind.kind != "Pod" or not isinstance(subject, dict):
            return None
        return subject


class AdmissionStatus(BaseModel):
    """Status attached to a denied admission response."""

    code: int | None = None
    message: str = ""


class AdmissionResponse(BaseModel):
    """Response half of an AdmissionReview."""

    model_config = {"populate_by_name": True}

    uid: str
    allowed: bool
    status: AdmissionStatus | None = None
    warnings: list[str] | None = None
    patch: str | None = None
    patch_type: str | None = Field(None, alias="patchType")


class AdmissionReview(BaseModel):
    """AdmissionReview envelope."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    api_version: str = Field(ADMISSION_API_VERSION, alias="apiVersion")
    kind: str = ADMISSION_KIND
    request: AdmissionRequest | None = None
    response: AdmissionResponse | None = None

    def respond(self, response: AdmissionResponse) -> "AdmissionReview":
        """Build the response review, keeping the request's API version."""
        return AdmissionReview(api_version=self.api_version, response=response)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ValidationResult(BaseModel):
    """Outcome of the validating webhook."""

    allowed: bool = True
    message: str | None = None
    warnings: list[str] = Field(default_factory=list)


class MutationResult(BaseModel):
    """Outcome of the mutating webhook, no mutated object means no patch."""

    mutated_object: KubernetesObject | None = None
    warnings: list[str] = Field(default_factory=list)
