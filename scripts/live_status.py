#!/usr/bin/env python3
"""Live status check of the configured hosts - READ ONLY.

Usage:
    DATA_DIR=/app/data python scripts/live_status.py
    UNRAID_HOST=https://192.168.1.100 UNRAID_API_KEY=key python scripts/live_status.py
"""

import asyncio
import os
import sys
import tempfile

from unraid_control import ConfigStore, TrustPolicy, UnraidClient, list_all_snapshots
from unraid_control.exceptions import UnraidAPIError
from unraid_control.queries import (
    Q_ARRAY_OPERATION,
    Q_DOCKER,
    Q_INFO_ARRAY,
    Q_METRICS,
    Q_VMS,
)


async def show_variants(client: UnraidClient, base_url: str) -> None:
    """Print which query variant each sub-query settles on."""
    for label, variants in (
        ("info", Q_INFO_ARRAY),
        ("parity", Q_ARRAY_OPERATION),
        ("docker", Q_DOCKER),
        ("vms", Q_VMS),
        ("metrics", Q_METRICS),
    ):
        try:
            result = await client.execute(base_url, variants)
            print(f"  ✓ {label}: variant {result.index} ({result.variant.name})")
        except UnraidAPIError as e:
            print(f"  ✗ {label}: {e}")


async def main() -> None:
    """Print a snapshot of every configured host."""
    host = os.environ.get("UNRAID_HOST", "")
    api_key = os.environ.get("UNRAID_API_KEY", "")

    if host:
        if not api_key:
            print("ERROR: Set UNRAID_API_KEY together with UNRAID_HOST")
            sys.exit(1)
        store = ConfigStore(tempfile.mkdtemp(prefix="unraid-control-"))
        store.init_store()
        store.upsert_host({"name": host, "baseUrl": host, "mac": "00:00:00:00:00:00"})
        store.set_credential(host, api_key)
    else:
        store = ConfigStore(os.environ.get("DATA_DIR", "/app/data"))

    hosts = store.list_host_records()
    if not hosts:
        print("No hosts configured")
        sys.exit(1)

    allow_self_signed = os.environ.get("UNRAID_ALLOW_SELF_SIGNED", "true") == "true"
    async with UnraidClient(
        store, trust_policy=TrustPolicy(allow_self_signed=allow_self_signed)
    ) as client:
        print("=" * 60)
        print("LIVE STATUS CHECK - READ ONLY")
        print("=" * 60)

        for snapshot in await list_all_snapshots(client, hosts):
            print(f"\n{snapshot.name} ({snapshot.base_url})")
            print(f"  status: {snapshot.status.label} [{snapshot.status.code}]")
            if not snapshot.ok:
                print(f"  error: {snapshot.error}")
                continue
            print(f"  hostname: {snapshot.hostname}, version: {snapshot.os_version}")
            print(f"  metrics: {snapshot.metrics}")
            print(f"  docker: {snapshot.docker_running}/{snapshot.docker_total}")
            print(f"  vms: {snapshot.vm_running}/{snapshot.vm_total}")
            for warning in snapshot.warnings:
                print(f"  warning: {warning}")
            await show_variants(client, snapshot.base_url)


if __name__ == "__main__":
    asyncio.run(main())
