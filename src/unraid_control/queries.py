"""GraphQL variant sets and their extractors.

Each logical operation has an ordered tuple of ``QueryVariant`` documents,
newest schema first. Every variant carries the extractor that maps its raw
response shape onto the normalized models, so the caller never inspects
which variant answered.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from unraid_control.client import QueryVariant
from unraid_control.const import (
    CONTAINER_PRIMITIVES,
    CONTAINER_STATE_EXITED,
    CONTAINER_STATE_RUNNING,
    PARITY_STATE_INACTIVE,
    PARITY_STATUS_ACTIVE,
    PARITY_TASK_KEYWORDS,
    VM_VERBS,
)
from unraid_control.models import (
    ContainerSummary,
    InfoArray,
    MaintenanceOperation,
    MetricsSample,
    VmSummary,
    as_number,
    round_half_up,
    uptime_seconds,
)


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


# =============================================================================
# Capacity
# =============================================================================


def reconcile_capacity(capacity: Mapping[str, Any] | None) -> int | None:
    """Compute the storage usage percentage from any known capacity shape.

    Accepted shapes are ``used+total``, ``free+total`` and
    ``sizeUsed+sizeTotal``; numbers may be strings.

    Args:
        capacity: Raw capacity mapping, or None.

    Returns:
        ``round(used / total * 100)`` rounded half-up, or None when the
        usage cannot be derived.

    """
    if not capacity:
        return None

    total = as_number(capacity.get("total"))
    used = as_number(capacity.get("used"))
    if total is None:
        total = as_number(capacity.get("sizeTotal"))
    if used is None:
        used = as_number(capacity.get("sizeUsed"))
    if used is None and total is not None:
        free = as_number(capacity.get("free"))
        if free is None:
            free = as_number(capacity.get("sizeFree"))
        if free is not None:
            used = total - free

    if total is None or total <= 0 or used is None:
        return None
    return round_half_up(used / total * 100)


# =============================================================================
# Info + Array
# =============================================================================


def _info_core_versions(data: dict[str, Any]) -> InfoArray:
    info = _dict(data.get("info"))
    os_info = _dict(info.get("os"))
    core = _dict(_dict(info.get("versions")).get("core"))
    array = _dict(data.get("array"))
    return InfoArray(
        hostname=os_info.get("hostname"),
        os_version=core.get("unraid"),
        uptime_seconds=uptime_seconds(os_info.get("uptime")),
        array_state=array.get("state"),
        storage_percent=reconcile_capacity(
            _dict(_dict(array.get("capacity")).get("kilobytes"))
        ),
    )


def _info_flat_versions(data: dict[str, Any]) -> InfoArray:
    info = _dict(data.get("info"))
    os_info = _dict(info.get("os"))
    versions = _dict(info.get("versions"))
    array = _dict(data.get("array"))
    return InfoArray(
        hostname=os_info.get("hostname"),
        os_version=versions.get("unraid") or os_info.get("release"),
        uptime_seconds=uptime_seconds(os_info.get("uptime")),
        array_state=array.get("state"),
        storage_percent=reconcile_capacity(_dict(array.get("capacity"))),
    )


def _info_system(data: dict[str, Any]) -> InfoArray:
    system = _dict(data.get("system"))
    array = _dict(system.get("array"))
    return InfoArray(
        hostname=system.get("hostname"),
        os_version=system.get("osVersion"),
        uptime_seconds=uptime_seconds(system.get("uptime")),
        array_state=array.get("status") or array.get("state"),
        storage_percent=reconcile_capacity(array),
    )


Q_INFO_ARRAY: tuple[QueryVariant, ...] = (
    QueryVariant(
        name="info.versions.core",
        document="""
            query InfoArray {
                info {
                    os { hostname uptime }
                    versions { core { unraid } }
                }
                array {
                    state
                    capacity { kilobytes { free used total } }
                }
            }
        """,
        extract=_info_core_versions,
    ),
    QueryVariant(
        name="info.versions",
        document="""
            query InfoArray {
                info {
                    os { hostname uptime release }
                    versions { unraid }
                }
                array {
                    state
                    capacity { free used total }
                }
            }
        """,
        extract=_info_flat_versions,
    ),
    QueryVariant(
        name="system",
        document="""
            query HostStatus {
                system {
                    hostname
                    osVersion
                    uptime
                    array { status sizeUsed sizeTotal }
                }
            }
        """,
        extract=_info_system,
    ),
)


# =============================================================================
# Array Operation (parity check, rebuild)
# =============================================================================


def _operation_parity_status(data: dict[str, Any]) -> MaintenanceOperation | None:
    status = _dict(_dict(data.get("array")).get("parityCheckStatus"))
    state = str(status.get("status") or "").upper()
    if state not in PARITY_STATUS_ACTIVE and not (
        status.get("running") or status.get("paused")
    ):
        return None
    return MaintenanceOperation(
        kind="parityCheck", progress=as_number(status.get("progress"))
    )


def _operation_generic(data: dict[str, Any]) -> MaintenanceOperation | None:
    operation = _dict(_dict(data.get("array")).get("operation"))
    if not operation:
        return None
    return MaintenanceOperation(
        kind=operation.get("type"), progress=as_number(operation.get("progress"))
    )


def _operation_parity_check(data: dict[str, Any]) -> MaintenanceOperation | None:
    check = _dict(_dict(data.get("array")).get("parityCheck"))
    if not check:
        return None
    if str(check.get("state") or "").upper() in PARITY_STATE_INACTIVE:
        return None
    return MaintenanceOperation(
        kind="parityCheck", progress=as_number(check.get("progress"))
    )


def _operation_tasks(data: dict[str, Any]) -> MaintenanceOperation | None:
    for task in _list(data.get("tasks")):
        task = _dict(task)
        kind = str(task.get("kind") or "")
        if not any(keyword in kind.lower() for keyword in PARITY_TASK_KEYWORDS):
            continue
        if str(task.get("state") or "").upper() in PARITY_STATE_INACTIVE:
            continue
        return MaintenanceOperation(kind=kind, progress=as_number(task.get("progress")))
    return None


Q_ARRAY_OPERATION: tuple[QueryVariant, ...] = (
    QueryVariant(
        name="array.parityCheckStatus",
        document="""
            query ArrayOperation {
                array { parityCheckStatus { status progress running paused } }
            }
        """,
        extract=_operation_parity_status,
    ),
    QueryVariant(
        name="array.operation",
        document="""
            query ArrayOperation {
                array { operation { type progress } }
            }
        """,
        extract=_operation_generic,
    ),
    QueryVariant(
        name="array.parityCheck",
        document="""
            query ArrayOperation {
                array { parityCheck { progress state } }
            }
        """,
        extract=_operation_parity_check,
    ),
    QueryVariant(
        name="tasks",
        document="""
            query ArrayOperation {
                tasks { kind progress state }
            }
        """,
        extract=_operation_tasks,
    ),
)


# =============================================================================
# Docker
# =============================================================================


def normalize_container(raw: Mapping[str, Any]) -> ContainerSummary:
    """Normalize one container from any known schema shape.

    Args:
        raw: Container object from the API.

    Returns:
        ContainerSummary with name and state filled in where possible.

    """
    names = [n for n in _list(raw.get("names")) if isinstance(n, str) and n]
    container_id = str(raw.get("id") or "")
    name = raw.get("name") or (names[0].lstrip("/") if names else container_id)

    state = raw.get("state")
    if state:
        state = str(state).lower()
    else:
        status = str(raw.get("status") or "")
        state = (
            CONTAINER_STATE_RUNNING
            if status.strip().lower().startswith("up")
            else CONTAINER_STATE_EXITED
        )

    return ContainerSummary(
        id=container_id, name=str(name), image=raw.get("image"), state=state
    )


def _containers_nested(data: dict[str, Any]) -> list[ContainerSummary]:
    containers = _list(_dict(data.get("docker")).get("containers"))
    return [normalize_container(_dict(c)) for c in containers]


def _containers_flat(data: dict[str, Any]) -> list[ContainerSummary]:
    return [normalize_container(_dict(c)) for c in _list(data.get("dockerContainers"))]


Q_DOCKER: tuple[QueryVariant, ...] = (
    QueryVariant(
        name="docker.containers.names",
        document="""
            query DockerContainers {
                docker { containers { id names image state status } }
            }
        """,
        extract=_containers_nested,
    ),
    QueryVariant(
        name="docker.containers.name",
        document="""
            query DockerContainers {
                docker { containers { id name image state } }
            }
        """,
        extract=_containers_nested,
    ),
    QueryVariant(
        name="dockerContainers",
        document="""
            query DockerContainers {
                dockerContainers { id names image status }
            }
        """,
        extract=_containers_flat,
    ),
)


# =============================================================================
# Virtual Machines
# =============================================================================


def normalize_vm(raw: Mapping[str, Any]) -> VmSummary:
    """Normalize one VM domain from any known schema shape."""
    vm_id = str(raw.get("id") or raw.get("uuid") or "")
    state = raw.get("state")
    return VmSummary(
        id=vm_id,
        name=str(raw.get("name") or vm_id),
        state=str(state).lower() if state else None,
    )


def _vms_from(key: str) -> Callable[[dict[str, Any]], list[VmSummary]]:
    def extract(data: dict[str, Any]) -> list[VmSummary]:
        domains = _list(_dict(data.get("vms")).get(key))
        return [normalize_vm(_dict(d)) for d in domains]

    return extract


Q_VMS: tuple[QueryVariant, ...] = (
    QueryVariant(
        name="vms.domains",
        document="""
            query VmDomains {
                vms { domains { id name state } }
            }
        """,
        extract=_vms_from("domains"),
    ),
    QueryVariant(
        name="vms.domain",
        document="""
            query VmDomains {
                vms { domain { uuid name state } }
            }
        """,
        extract=_vms_from("domain"),
    ),
    QueryVariant(
        name="vms.list",
        document="""
            query VmDomains {
                vms { list { id name state } }
            }
        """,
        extract=_vms_from("list"),
    ),
)


# =============================================================================
# Metrics
# =============================================================================


def _metrics_from(key: str) -> Callable[[dict[str, Any]], MetricsSample]:
    def extract(data: dict[str, Any]) -> MetricsSample:
        metrics = _dict(data.get(key))
        return MetricsSample(
            cpu_percent=as_number(_dict(metrics.get("cpu")).get("percentTotal")),
            ram_percent=as_number(_dict(metrics.get("memory")).get("percentTotal")),
        )

    return extract


def _metrics_stats(data: dict[str, Any]) -> MetricsSample:
    stats = _dict(data.get("stats"))
    return MetricsSample(
        cpu_percent=as_number(stats.get("cpuPct")),
        ram_percent=as_number(stats.get("ramPct")),
    )


Q_METRICS: tuple[QueryVariant, ...] = (
    QueryVariant(
        name="metrics",
        document="""
            query Metrics {
                metrics {
                    cpu { percentTotal }
                    memory { percentTotal }
                }
            }
        """,
        extract=_metrics_from("metrics"),
    ),
    QueryVariant(
        name="systemMetrics",
        document="""
            query Metrics {
                systemMetrics {
                    cpu { percentTotal }
                    memory { percentTotal }
                }
            }
        """,
        extract=_metrics_from("systemMetrics"),
    ),
    QueryVariant(
        name="stats",
        document="""
            query Metrics {
                stats { cpuPct ramPct }
            }
        """,
        extract=_metrics_stats,
    ),
)


# =============================================================================
# Mutations
# =============================================================================


def _container_variants(verb: str) -> tuple[QueryVariant, ...]:
    field = f"{verb}(id: $id) {{ id state }}"
    return (
        QueryVariant(
            name=f"docker.{verb}",
            document=f"""
                mutation ContainerAction($id: PrefixedID!) {{
                    docker {{ {field} }}
                }}
            """,
        ),
        QueryVariant(
            name=f"docker.{verb}.id",
            document=f"""
                mutation ContainerAction($id: ID!) {{
                    docker {{ {field} }}
                }}
            """,
        ),
        QueryVariant(
            name="docker.containerAction",
            document="""
                mutation ContainerAction($id: ID!, $action: String!) {
                    docker { containerAction(id: $id, action: $action) }
                }
            """,
        ),
    )


def _vm_variants(verb: str) -> tuple[QueryVariant, ...]:
    return (
        QueryVariant(
            name=f"vm.{verb}",
            document=f"""
                mutation VmAction($id: PrefixedID!) {{
                    vm {{ {verb}(id: $id) }}
                }}
            """,
        ),
        QueryVariant(
            name=f"vm.{verb}.id",
            document=f"""
                mutation VmAction($id: ID!) {{
                    vm {{ {verb}(id: $id) }}
                }}
            """,
        ),
        QueryVariant(
            name="vm.action",
            document="""
                mutation VmAction($id: ID!, $action: String!) {
                    vm { action(id: $id, action: $action) }
                }
            """,
        ),
    )


M_CONTAINER_ACTIONS: dict[str, tuple[QueryVariant, ...]] = {
    verb: _container_variants(verb) for verb in CONTAINER_PRIMITIVES
}
M_VM_ACTIONS: dict[str, tuple[QueryVariant, ...]] = {
    verb: _vm_variants(verb) for verb in VM_VERBS
}
