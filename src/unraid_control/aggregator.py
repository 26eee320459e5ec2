"""Multi-host status aggregation."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from unraid_control.const import STATUS_ERROR, STATUS_OFFLINE
from unraid_control.exceptions import (
    UnraidAuthenticationError,
    UnraidConfigurationError,
)
from unraid_control.models import HostSnapshot, StatusClassification
from unraid_control.status import fetch_snapshot

if TYPE_CHECKING:
    from collections.abc import Sequence

    from unraid_control.client import UnraidClient
    from unraid_control.models import HostRecord


_LOGGER = logging.getLogger(__name__)


def degraded_snapshot(host: HostRecord, error: BaseException) -> HostSnapshot:
    """Build the record shown for a host whose snapshot failed.

    Args:
        host: Host that failed.
        error: Exception raised while building its snapshot.

    Returns:
        HostSnapshot with ``ok=False``, all metrics None and the error text.

    """
    if isinstance(error, UnraidAuthenticationError):
        status = StatusClassification(code=STATUS_ERROR, label="Auth Failed")
    elif isinstance(error, UnraidConfigurationError):
        status = StatusClassification(code=STATUS_ERROR, label="Not Configured")
    else:
        status = StatusClassification(code=STATUS_OFFLINE, label="Offline")

    return HostSnapshot(
        name=host.name,
        base_url=host.base_url,
        mac=host.mac,
        ok=False,
        status=status,
        error=str(error) or type(error).__name__,
    )


async def list_all_snapshots(
    client: UnraidClient,
    hosts: Sequence[HostRecord],
    *,
    max_concurrency: int | None = None,
) -> list[HostSnapshot]:
    """Fetch snapshots of all hosts concurrently.

    One failing host never affects the others: its slot holds a degraded
    record instead. The result has the same length and order as ``hosts``.

    Args:
        client: Client used for every host.
        hosts: Configured hosts, in display order.
        max_concurrency: Optional cap on hosts queried at the same time.

    Returns:
        One HostSnapshot per host, in input order.

    """
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def snapshot(host: HostRecord) -> HostSnapshot:
        if semaphore is None:
            return await fetch_snapshot(client, host)
        async with semaphore:
            return await fetch_snapshot(client, host)

    results = await asyncio.gather(
        *(snapshot(host) for host in hosts), return_exceptions=True
    )

    snapshots: list[HostSnapshot] = []
    for host, result in zip(hosts, results, strict=True):
        if isinstance(result, HostSnapshot):
            snapshots.append(result)
            continue
        if not isinstance(result, Exception):
            raise result
        _LOGGER.warning("Status of %s unavailable: %s", host.base_url, result)
        snapshots.append(degraded_snapshot(host, result))

    _LOGGER.debug("Listed %d server snapshots", len(snapshots))
    return snapshots
