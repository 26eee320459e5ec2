"""Unraid Control - multi-host dashboard core for Unraid's GraphQL API."""

from unraid_control.actions import (
    perform_container_action,
    perform_power_action,
    perform_vm_action,
)
from unraid_control.aggregator import list_all_snapshots
from unraid_control.client import QueryResult, QueryVariant, UnraidClient
from unraid_control.exceptions import (
    UnraidAPIError,
    UnraidAuthenticationError,
    UnraidConfigurationError,
    UnraidConnectionError,
    UnraidMissingCredentialError,
    UnraidSchemaMismatchError,
    UnraidSSLError,
    UnraidTimeoutError,
    UnraidUnsupportedActionError,
)
from unraid_control.models import (
    ActionResult,
    AppSettings,
    ContainerSummary,
    HostRecord,
    HostSnapshot,
    StatusClassification,
    VmSummary,
)
from unraid_control.status import classify_status, fetch_snapshot
from unraid_control.store import ConfigStore
from unraid_control.transport import Transport, TrustPolicy

__all__ = [
    "ActionResult",
    "AppSettings",
    "ConfigStore",
    "ContainerSummary",
    "HostRecord",
    "HostSnapshot",
    "QueryResult",
    "QueryVariant",
    "StatusClassification",
    "Transport",
    "TrustPolicy",
    "UnraidAPIError",
    "UnraidAuthenticationError",
    "UnraidClient",
    "UnraidConfigurationError",
    "UnraidConnectionError",
    "UnraidMissingCredentialError",
    "UnraidSSLError",
    "UnraidSchemaMismatchError",
    "UnraidTimeoutError",
    "UnraidUnsupportedActionError",
    "VmSummary",
    "classify_status",
    "fetch_snapshot",
    "list_all_snapshots",
    "perform_container_action",
    "perform_power_action",
    "perform_vm_action",
]

__version__ = "0.4.0"
