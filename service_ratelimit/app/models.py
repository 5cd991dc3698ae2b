"""
Pod data models and API models for the rate limit gate.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PodPhase(str, Enum):
    """Pod lifecycle phases."""
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


# Pods in these phases cannot contend for a slot.
INACTIVE_PHASES = frozenset({PodPhase.SUCCEEDED, PodPhase.FAILED, PodPhase.UNKNOWN})


class ObjectMeta(BaseModel):
    """Subset of Kubernetes ObjectMeta the gate reads; other fields pass through."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    namespace: str = "default"
    uid: Optional[str] = None
    resource_version: Optional[str] = Field(default=None, alias="resourceVersion")
    labels: Optional[Dict[str, str]] = None
    annotations: Optional[Dict[str, str]] = None


class PodStatus(BaseModel):
    """Pod status; only the phase is interpreted."""

    model_config = ConfigDict(extra="allow")

    phase: Optional[PodPhase] = None


class Pod(BaseModel):
    """A Kubernetes Pod document.

    Unknown fields are kept so that the document can be serialised back
    without loss, which the admission marker relies on to build a minimal
    merge patch.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: Optional[str] = Field(default=None, alias="apiVersion")
    kind: Optional[str] = None
    metadata: ObjectMeta
    spec: Optional[Dict[str, Any]] = None
    status: PodStatus = Field(default_factory=PodStatus)

    @property
    def key(self) -> str:
        """Namespace/name identifier of the Pod."""
        return f"{self.metadata.namespace}/{self.metadata.name}"

    @property
    def phase(self) -> Optional[PodPhase]:
        return self.status.phase

    @property
    def annotations(self) -> Dict[str, str]:
        """Annotations, or an empty mapping when the Pod has none."""
        return self.metadata.annotations or {}

    @property
    def labels(self) -> Dict[str, str]:
        return self.metadata.labels or {}

    def to_document(self) -> Dict[str, Any]:
        """Serialise to the JSON document shape the Kubernetes API uses."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class PodList(BaseModel):
    """Kubernetes PodList response."""

    model_config = ConfigDict(extra="allow")

    items: List[Pod] = Field(default_factory=list)


class PermitRequest(BaseModel):
    """Request model for a permit decision."""
    pod: Pod = Field(..., description="Pod being scheduled")
    node_name: str = Field(..., description="Node the Pod would be bound to")
    plugin: str = Field(default="RateLimit", description="Permit plugin to run")


class PermitResponse(BaseModel):
    """Response model for a permit decision."""
    plugin: str
    verdict: str
    message: str = ""
    retry_after_seconds: float
