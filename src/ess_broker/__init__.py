"""ESS Broker - service broker core for managed Elasticsearch deployments.

Lets a catalog consumer create, bind to and tear down deployments on a
deployment control plane through asynchronous verbs.

Key components:
    - Provider: Orchestrates provision, deprovision, bind, unbind, update
      and last_operation
    - ControlPlaneClient / ClusterClient: Adapters for the external APIs
    - ProviderConfig / load_catalog: Settings and service catalog
    - CLI: Runs the verbs from a terminal

Quick start:
    ess-broker --config config.yml --catalog ./catalog catalog
    ess-broker provision my-instance --service-id uuid-1 --plan-id uuid-2
    ess-broker last-operation my-instance --operation '<operation data>'
"""

from .config import Catalog, ProviderConfig, load_catalog, load_config
from .provider import LastOperation, LastOperationState, Provider

__version__ = "0.2.0"

__all__ = [
    "Provider",
    "ProviderConfig",
    "Catalog",
    "LastOperation",
    "LastOperationState",
    "load_config",
    "load_catalog",
    "__version__",
]
