"""External integration adapters."""

from .kogito import KogitoClient
from .scaffolder import ActionCatalog, ScaffolderClient, ServiceDiscovery

__all__ = [
    "ActionCatalog",
    "KogitoClient",
    "ScaffolderClient",
    "ServiceDiscovery",
]
