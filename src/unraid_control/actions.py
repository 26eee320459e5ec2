"""Container, VM and power actions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from unraid_control.const import (
    CONTAINER_VERBS,
    POWER_UNSUPPORTED,
    VM_VERBS,
)
from unraid_control.exceptions import (
    UnraidConfigurationError,
    UnraidUnsupportedActionError,
)
from unraid_control.models import ActionResult
from unraid_control.queries import M_CONTAINER_ACTIONS, M_VM_ACTIONS

if TYPE_CHECKING:
    from unraid_control.client import UnraidClient


_LOGGER = logging.getLogger(__name__)

# Higher-level verbs expanded into primitives run in order
_CONTAINER_STEPS: dict[str, tuple[str, ...]] = {
    "start": ("start",),
    "stop": ("stop",),
    "restart": ("stop", "start"),
}


def _require_id(kind: str, target_id: str | None) -> str:
    if not target_id or not str(target_id).strip():
        raise UnraidConfigurationError(f"{kind} id is required")
    return str(target_id).strip()


async def perform_container_action(
    client: UnraidClient,
    base_url: str,
    container_id: str,
    verb: str,
) -> ActionResult:
    """Start, stop or restart a Docker container.

    ``restart`` runs ``stop`` then ``start``; ``start`` is only attempted
    after ``stop`` succeeded, and a failing ``start`` is raised as-is,
    leaving the container stopped.

    Args:
        client: Client to use.
        base_url: Server base URL.
        container_id: Container ID.
        verb: One of ``start``, ``stop``, ``restart``.

    Returns:
        ActionResult with ``ok=True``.

    Raises:
        UnraidUnsupportedActionError: Unknown verb (before any request).
        UnraidAPIError: The mutation failed.

    """
    if verb not in CONTAINER_VERBS:
        raise UnraidUnsupportedActionError(f"Unsupported container action: {verb}")
    container_id = _require_id("Container", container_id)

    for step in _CONTAINER_STEPS[verb]:
        _LOGGER.debug("Container %s on %s: %s", container_id, base_url, step)
        await client.execute(
            base_url,
            M_CONTAINER_ACTIONS[step],
            {"id": container_id, "action": step},
            mutation=True,
        )

    _LOGGER.info("Container %s on %s: %s done", container_id, base_url, verb)
    return ActionResult(ok=True)


async def perform_vm_action(
    client: UnraidClient,
    base_url: str,
    vm_id: str,
    verb: str,
) -> ActionResult:
    """Run a lifecycle action on a virtual machine.

    Args:
        client: Client to use.
        base_url: Server base URL.
        vm_id: VM domain ID.
        verb: One of ``start, stop, pause, resume, forceStop, reboot, reset``.

    Returns:
        ActionResult with ``ok=True``.

    Raises:
        UnraidUnsupportedActionError: Verb not in the allow-list.
        UnraidAPIError: The mutation failed.

    """
    if verb not in VM_VERBS:
        raise UnraidUnsupportedActionError(f"Unsupported VM action: {verb}")
    vm_id = _require_id("VM", vm_id)

    await client.execute(
        base_url,
        M_VM_ACTIONS[verb],
        {"id": vm_id, "action": verb},
        mutation=True,
    )
    _LOGGER.info("VM %s on %s: %s done", vm_id, base_url, verb)
    return ActionResult(ok=True)


async def perform_power_action(base_url: str, action: str) -> ActionResult:
    """Reject host power actions the API cannot perform.

    The Unraid GraphQL API has no reboot or shutdown mutation; waking a
    host is done with Wake-on-LAN instead (see ``unraid_control.wol``).

    Raises:
        UnraidUnsupportedActionError: Always.

    """
    if action in POWER_UNSUPPORTED:
        _LOGGER.warning("Power action %s requested for %s", action, base_url)
        raise UnraidUnsupportedActionError(
            "Shutdown/Reboot are not available via API in this schema (WOL only)."
        )
    raise UnraidUnsupportedActionError(f"Unsupported power action: {action}")
