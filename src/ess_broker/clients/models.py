"""Control-plane data models.

Only the parts of the deployment API payloads the broker reads are modelled;
everything else is ignored on input. Deployment templates keep unknown fields
so they can be sent back to the control plane unchanged.
"""

from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel, Field

RESOURCE_KINDS = ("elasticsearch", "kibana", "apm", "appsearch", "enterprise_search")


class ResourcePorts(BaseModel):
    http: int | None = None
    https: int | None = None


class ResourceMetadata(BaseModel):
    endpoint: str | None = Field(default=None, description="Public hostname")
    ports: ResourcePorts = Field(default_factory=ResourcePorts)


class ResourceInfo(BaseModel):
    status: str | None = Field(default=None, description="Lifecycle state, e.g. started")
    healthy: bool | None = None
    metadata: ResourceMetadata = Field(default_factory=ResourceMetadata)


class DeploymentResource(BaseModel):
    """A single sub-resource of a deployment (search engine, dashboard UI, ...)."""

    ref_id: str | None = None
    id: str | None = None
    region: str | None = None
    info: ResourceInfo = Field(default_factory=ResourceInfo)


class ResourceEndpoint(BaseModel):
    """Externally reachable HTTPS endpoint of a sub-resource."""

    host: str
    port: int

    @property
    def url(self) -> str:
        return f"https://{self.host}:{self.port}"


class DeploymentResources(BaseModel):
    elasticsearch: list[DeploymentResource] = Field(default_factory=list)
    kibana: list[DeploymentResource] = Field(default_factory=list)
    apm: list[DeploymentResource] = Field(default_factory=list)
    appsearch: list[DeploymentResource] = Field(default_factory=list)
    enterprise_search: list[DeploymentResource] = Field(default_factory=list)

    def iter_resources(self) -> Iterator[DeploymentResource]:
        for kind in RESOURCE_KINDS:
            yield from getattr(self, kind)

    def of_kind(self, kind: str) -> list[DeploymentResource]:
        if kind not in RESOURCE_KINDS:
            raise ValueError(f"Unknown resource kind: {kind!r}")
        return getattr(self, kind)


class Deployment(BaseModel):
    """Deployment as returned by get and search."""

    id: str
    name: str | None = None
    healthy: bool | None = None
    resources: DeploymentResources = Field(default_factory=DeploymentResources)

    def has_status(self, status: str) -> bool:
        """Return True when every sub-resource reports the given status."""
        return all(resource.info.status == status for resource in self.resources.iter_resources())


class DeploymentCreateResponse(BaseModel):
    id: str
    name: str | None = None
    created: bool | None = None
    alias: str | None = None


class DeploymentTemplate(BaseModel):
    """Deployment create request loaded from the plan catalog.

    Matched to a service plan by name; the remaining fields (resources,
    settings, metadata) are passed through to the control plane untouched.
    """

    name: str

    class Config:
        extra = "allow"


__all__ = [
    "RESOURCE_KINDS",
    "ResourcePorts",
    "ResourceMetadata",
    "ResourceInfo",
    "DeploymentResource",
    "ResourceEndpoint",
    "DeploymentResources",
    "Deployment",
    "DeploymentCreateResponse",
    "DeploymentTemplate",
]
