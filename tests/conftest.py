"""Shared pytest fixtures for Unraid Control tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Mapping
from pathlib import Path
from typing import Any

import pytest
from aioresponses import CallbackResult, aioresponses

from unraid_control import ConfigStore, HostRecord, UnraidClient

BASE_URL = "https://tower.local"
ENDPOINT = f"{BASE_URL}/graphql"
API_KEY = "test-api-key-12345"
MAC = "AA:BB:CC:DD:EE:FF"


def schema_error(field: str = "unknown") -> dict[str, Any]:
    """Return a GraphQL validation error for a field the schema lacks."""
    return {
        "errors": [
            {
                "message": f'Cannot query field "{field}" on type "Query".',
                "extensions": {"code": "GRAPHQL_VALIDATION_FAILED"},
            }
        ]
    }


def graphql_router(
    routes: Mapping[str, dict[str, Any] | tuple[int, dict[str, Any]]],
) -> Callable[..., CallbackResult]:
    """Build an aioresponses callback answering by query text.

    The first route whose marker occurs in the posted document answers,
    either with a payload (HTTP 200) or a ``(status, payload)`` tuple.
    Anything unrouted is rejected as an unknown field.
    """

    def callback(url: Any, **kwargs: Any) -> CallbackResult:
        document = kwargs["json"]["query"]
        for marker, answer in routes.items():
            if marker in document:
                if isinstance(answer, tuple):
                    status, payload = answer
                    return CallbackResult(status=status, payload=payload)
                return CallbackResult(status=200, payload=answer)
        return CallbackResult(status=400, payload=schema_error())

    return callback


def sent_documents(mocked: aioresponses) -> list[str]:
    """Return every GraphQL document posted through ``mocked``, in order."""
    return [
        call.kwargs["json"]["query"]
        for calls in mocked.requests.values()
        for call in calls
    ]


@pytest.fixture
def host_record() -> HostRecord:
    """Return a configured host."""
    return HostRecord(name="Tower", base_url=BASE_URL, mac=MAC)


@pytest.fixture
def store(tmp_path: Path, host_record: HostRecord) -> ConfigStore:
    """Return a store holding one host with an API key."""
    config_store = ConfigStore(tmp_path)
    config_store.init_store()
    config_store.upsert_host(
        {"name": host_record.name, "baseUrl": host_record.base_url, "mac": MAC}
    )
    config_store.set_credential(BASE_URL, API_KEY)
    return config_store


@pytest.fixture
async def client(store: ConfigStore) -> AsyncIterator[UnraidClient]:
    """Return a client without retries, closed after the test."""
    unraid_client = UnraidClient(store, retries=0, retry_backoff=0)
    yield unraid_client
    await unraid_client.close()


@pytest.fixture
def newest_schema() -> dict[str, dict[str, Any]]:
    """Return answers of a current Unraid API for every sub-query."""
    return {
        "versions { core { unraid } }": {
            "data": {
                "info": {
                    "os": {"hostname": "tower", "uptime": 86400},
                    "versions": {"core": {"unraid": "7.2.0"}},
                },
                "array": {
                    "state": "STARTED",
                    "capacity": {
                        "kilobytes": {"free": "600", "used": "400", "total": "1000"}
                    },
                },
            }
        },
        "parityCheckStatus": {
            "data": {
                "array": {
                    "parityCheckStatus": {
                        "status": "COMPLETED",
                        "progress": 100,
                        "running": False,
                        "paused": False,
                    }
                }
            }
        },
        "containers { id names": {
            "data": {
                "docker": {
                    "containers": [
                        {
                            "id": "ct:1",
                            "names": ["/plex"],
                            "image": "plex:latest",
                            "state": "RUNNING",
                            "status": "Up 3 hours",
                        },
                        {
                            "id": "ct:2",
                            "names": ["/sonarr"],
                            "image": "sonarr:latest",
                            "state": "EXITED",
                            "status": "Exited (0) 2 days ago",
                        },
                    ]
                }
            }
        },
        "domains {": {
            "data": {
                "vms": {
                    "domains": [
                        {"id": "vm:1", "name": "Windows", "state": "RUNNING"},
                        {"id": "vm:2", "name": "Ubuntu", "state": "SHUTOFF"},
                    ]
                }
            }
        },
        "metrics {": {
            "data": {
                "metrics": {
                    "cpu": {"percentTotal": 12.5},
                    "memory": {"percentTotal": 48.0},
                }
            }
        },
    }
