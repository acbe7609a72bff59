"""Clients for the external collaborators.

The deployment control plane manages deployment lifecycle; the cluster
client talks to one deployment's administrative API.
"""

from .cluster import DEFAULT_ROLES, ClusterClient
from .control_plane import ControlPlaneClient, endpoint_of
from .models import (
    Deployment,
    DeploymentCreateResponse,
    DeploymentResource,
    DeploymentResources,
    DeploymentTemplate,
    ResourceEndpoint,
)

__all__ = [
    "ClusterClient",
    "DEFAULT_ROLES",
    "ControlPlaneClient",
    "endpoint_of",
    "Deployment",
    "DeploymentCreateResponse",
    "DeploymentResource",
    "DeploymentResources",
    "DeploymentTemplate",
    "ResourceEndpoint",
]
