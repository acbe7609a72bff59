"""Provider settings and the service catalog."""

from .catalog import (
    Catalog,
    Service,
    ServicePlan,
    find_deployment_template,
    find_plan,
    load_catalog,
)
from .settings import ProviderConfig, load_config

__all__ = [
    "ProviderConfig",
    "load_config",
    "Catalog",
    "Service",
    "ServicePlan",
    "load_catalog",
    "find_plan",
    "find_deployment_template",
]
