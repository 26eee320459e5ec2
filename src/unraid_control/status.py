"""Per-host status normalization.

``fetch_snapshot`` fans out the info, parity, docker, VM and metrics
sub-queries concurrently and merges whatever answered into one
``HostSnapshot``. A failing sub-query only adds a warning; the snapshot
fails as a whole only when every sub-query fails.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from unraid_control.const import (
    ARRAY_STATE_STARTED,
    STATUS_OK,
    STATUS_PARITY,
    STATUS_STOPPED,
    STATUS_UNKNOWN,
    SUBQUERIES,
    SUBQUERY_DOCKER,
    SUBQUERY_INFO,
    SUBQUERY_METRICS,
    SUBQUERY_PARITY,
    SUBQUERY_VMS,
)
from unraid_control.exceptions import UnraidSchemaMismatchError
from unraid_control.models import (
    ContainerSummary,
    HostSnapshot,
    InfoArray,
    MaintenanceOperation,
    MetricsSample,
    StatusClassification,
    VmSummary,
    round_half_up,
)
from unraid_control.queries import (
    Q_ARRAY_OPERATION,
    Q_DOCKER,
    Q_INFO_ARRAY,
    Q_METRICS,
    Q_VMS,
)

if TYPE_CHECKING:
    from unraid_control.client import QueryResult, UnraidClient
    from unraid_control.models import HostRecord


_LOGGER = logging.getLogger(__name__)


def classify_status(
    array_state: str | None,
    operation: MaintenanceOperation | None,
) -> StatusClassification:
    """Derive the composite status from array state and maintenance.

    Args:
        array_state: Array run-state as reported by the server, if any.
        operation: Detected maintenance operation, if any.

    Returns:
        StatusClassification for the dashboard.

    """
    if array_state and array_state.upper() != ARRAY_STATE_STARTED:
        return StatusClassification(code=STATUS_STOPPED, label=array_state)

    if operation is not None and operation.is_active:
        label = "Parity Check"
        if operation.progress is not None:
            label = f"{label} {round_half_up(operation.progress)}%"
        return StatusClassification(code=STATUS_PARITY, label=label)

    if not array_state:
        return StatusClassification(code=STATUS_UNKNOWN, label="Unknown")

    return StatusClassification(code=STATUS_OK, label="OK")


def _counts(items: list[Any]) -> tuple[int, int]:
    return (sum(1 for item in items if item.is_running), len(items))


async def fetch_snapshot(client: UnraidClient, host: HostRecord) -> HostSnapshot:
    """Build the status snapshot of one host.

    Args:
        client: Client used for all sub-queries.
        host: Host to query.

    Returns:
        HostSnapshot with every field that could be determined; fields no
        variant answered for stay None and the failure is in ``warnings``.

    Raises:
        UnraidAPIError: Every sub-query failed (first failure in sub-query
            order, normally the info query).

    """
    base_url = host.base_url
    results = await asyncio.gather(
        client.execute(base_url, Q_INFO_ARRAY),
        client.execute(base_url, Q_ARRAY_OPERATION),
        client.execute(base_url, Q_DOCKER),
        client.execute(base_url, Q_VMS),
        client.execute(base_url, Q_METRICS),
        return_exceptions=True,
    )
    outcomes: dict[str, QueryResult | BaseException] = dict(
        zip(SUBQUERIES, results, strict=True)
    )

    warnings: list[str] = []

    def settle(name: str) -> QueryResult | None:
        """Return the sub-query result, or record its failure."""
        outcome = outcomes[name]
        if not isinstance(outcome, BaseException):
            return outcome
        if not isinstance(outcome, Exception):
            raise outcome
        warnings.append(f"{name}: {outcome}")
        return None

    result = settle(SUBQUERY_INFO)
    info: InfoArray = result.extract() if result else InfoArray()

    operation: MaintenanceOperation | None = None
    if isinstance(outcomes[SUBQUERY_PARITY], UnraidSchemaMismatchError):
        _LOGGER.debug("No maintenance operation reported by %s", base_url)
    else:
        result = settle(SUBQUERY_PARITY)
        operation = result.extract() if result else None

    docker_running = docker_total = None
    result = settle(SUBQUERY_DOCKER)
    if result:
        docker_running, docker_total = _counts(result.extract())

    vm_running = vm_total = None
    vms = outcomes[SUBQUERY_VMS]
    if isinstance(vms, UnraidSchemaMismatchError):
        vm_running, vm_total = 0, 0
        warnings.append(f"{SUBQUERY_VMS}: VM support not available ({vms})")
    else:
        result = settle(SUBQUERY_VMS)
        if result:
            vm_running, vm_total = _counts(result.extract())

    result = settle(SUBQUERY_METRICS)
    metrics: MetricsSample = result.extract() if result else MetricsSample()

    errors = [outcome for outcome in outcomes.values() if isinstance(outcome, Exception)]
    if len(errors) == len(SUBQUERIES):
        raise errors[0]

    if warnings:
        _LOGGER.debug("Snapshot of %s has warnings: %s", base_url, warnings)

    return HostSnapshot(
        name=host.name,
        base_url=base_url,
        mac=host.mac,
        ok=True,
        hostname=info.hostname,
        os_version=info.os_version,
        uptime_seconds=info.uptime_seconds,
        array_state=info.array_state,
        storage_percent=info.storage_percent,
        docker_running=docker_running,
        docker_total=docker_total,
        vm_running=vm_running,
        vm_total=vm_total,
        cpu_percent=metrics.cpu_percent,
        ram_percent=metrics.ram_percent,
        status=classify_status(info.array_state, operation),
        warnings=warnings,
    )


async def list_containers(client: UnraidClient, base_url: str) -> list[ContainerSummary]:
    """Get all Docker containers of a host, normalized."""
    result = await client.execute(base_url, Q_DOCKER)
    return list(result.extract())


async def list_vms(client: UnraidClient, base_url: str) -> list[VmSummary]:
    """Get all VM domains of a host, normalized."""
    result = await client.execute(base_url, Q_VMS)
    return list(result.extract())


async def probe_host(client: UnraidClient, base_url: str) -> InfoArray:
    """Run the info sub-query once to verify address, TLS and API key.

    Returns:
        InfoArray with the host identity.

    """
    result = await client.execute(base_url, Q_INFO_ARRAY)
    info: InfoArray = result.extract()
    return info
