"""Pydantic models for host records, snapshots and normalized inventory."""

from __future__ import annotations

import math
import re
from datetime import UTC, datetime
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from unraid_control.const import (
    CONTAINER_STATE_RUNNING,
    LOG_LEVELS,
    MAINTENANCE_KEYWORDS,
    VM_RUNNING_STATES,
)

_MAC_PATTERN = re.compile(r"^[0-9A-Fa-f]{2}([:-][0-9A-Fa-f]{2}){5}$")

StatusCode = Literal["ok", "parity", "stopped", "error", "offline", "unknown"]


def normalize_base_url(value: str) -> str:
    """Return the identity form of a server base URL.

    Args:
        value: URL as typed by the operator.

    Returns:
        URL with surrounding whitespace and trailing slashes removed.

    """
    return (value or "").strip().rstrip("/")


def normalize_mac(value: str) -> str:
    """Return a MAC address as upper-case, colon separated octets.

    Raises:
        ValueError: Not six hex octets.

    """
    value = (value or "").strip()
    if not _MAC_PATTERN.match(value):
        raise ValueError("MAC must be six hex octets, e.g. AA:BB:CC:DD:EE:FF.")
    return value.replace("-", ":").upper()


def normalize_log_level(value: str) -> str:
    """Return the canonical lower-case log level name.

    Raises:
        ValueError: Unknown level.

    """
    level = (value or "").strip().lower()
    if level == "warn":
        level = "warning"
    if level not in LOG_LEVELS:
        raise ValueError(f"Log level must be one of: {', '.join(LOG_LEVELS)}")
    return level


def as_number(value: Any) -> float | None:
    """Coerce an API number (which may arrive as a string) to float.

    Args:
        value: Raw value from a GraphQL response.

    Returns:
        Float value, or None when the value is missing or not numeric.

    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def round_half_up(value: float) -> int:
    """Round to the nearest integer, rounding halves up."""
    return math.floor(value + 0.5)


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse datetime from ISO format string or return datetime as-is.

    Args:
        value: ISO format string, datetime object, or None.

    Returns:
        Parsed datetime or None.

    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        # Python's fromisoformat doesn't handle trailing Z, normalize first
        normalized = value.replace("Z", "+00:00") if value.endswith("Z") else value
        try:
            return datetime.fromisoformat(normalized)
        except ValueError:
            return None
    return None


def uptime_seconds(value: Any, *, now: datetime | None = None) -> int | None:
    """Convert an uptime field to seconds.

    Newer APIs report the boot time as an ISO timestamp, older ones a
    number of seconds.

    Args:
        value: Raw uptime value.
        now: Reference time (defaults to the current UTC time).

    Returns:
        Uptime in whole seconds, or None if it cannot be interpreted.

    """
    seconds = as_number(value)
    if seconds is not None:
        return max(int(seconds), 0)
    booted = parse_datetime(value)
    if booted is None:
        return None
    if booted.tzinfo is None:
        booted = booted.replace(tzinfo=UTC)
    reference = now or datetime.now(UTC)
    return max(int((reference - booted).total_seconds()), 0)


class DashboardModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_json(self) -> dict[str, Any]:
        """Return the JSON-ready camelCase representation."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Host Registry Models
# =============================================================================


class HostRecord(DashboardModel):
    """A configured Unraid server.

    ``base_url`` is the identity key; the API key lives in the credential
    store under the same key and is never part of this record.
    """

    name: str = Field(min_length=1)
    base_url: str
    mac: str
    has_credential: bool = False

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required.")
        return value

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        value = normalize_base_url(value)
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Server Address must be an absolute http(s) URL.")
        return value

    @field_validator("mac")
    @classmethod
    def _validate_mac(cls, value: str) -> str:
        return normalize_mac(value)


class AppSettings(DashboardModel):
    """Runtime toggles persisted alongside the host records."""

    allow_self_signed: bool = False
    log_level: str = "info"

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        return normalize_log_level(value)


# =============================================================================
# Normalized Sub-query Models
# =============================================================================


class StatusClassification(DashboardModel):
    """Composite status shown in the dashboard status column."""

    code: StatusCode
    label: str


class InfoArray(DashboardModel):
    """Host identity and array state from the info sub-query."""

    hostname: str | None = None
    os_version: str | None = None
    uptime_seconds: int | None = None
    array_state: str | None = None
    storage_percent: int | None = None


class MaintenanceOperation(DashboardModel):
    """An in-progress array operation (parity check, rebuild, ...)."""

    kind: str | None = None
    progress: float | None = None

    @property
    def is_active(self) -> bool:
        """Return True if the kind names a maintenance task or progress is known."""
        kind = (self.kind or "").lower()
        if any(keyword in kind for keyword in MAINTENANCE_KEYWORDS):
            return True
        return self.progress is not None and 0 <= self.progress <= 100


class ContainerSummary(DashboardModel):
    """Docker container, normalized across schema versions."""

    id: str
    name: str
    image: str | None = None
    state: str | None = None

    @property
    def is_running(self) -> bool:
        """Return True if the container is running."""
        if self.state is None:
            return False
        return self.state.lower() == CONTAINER_STATE_RUNNING


class VmSummary(DashboardModel):
    """Virtual machine domain, normalized across schema versions."""

    id: str
    name: str
    state: str | None = None

    @property
    def is_running(self) -> bool:
        """Return True if the VM is running or idle."""
        if self.state is None:
            return False
        return self.state.lower() in VM_RUNNING_STATES


class MetricsSample(DashboardModel):
    """CPU and RAM utilization; None means unknown, not idle."""

    cpu_percent: float | None = None
    ram_percent: float | None = None


# =============================================================================
# Snapshot Models
# =============================================================================


class HostSnapshot(DashboardModel):
    """Normalized status of one host for one aggregation pass."""

    name: str
    base_url: str
    mac: str
    ok: bool = True
    hostname: str | None = None
    os_version: str | None = None
    uptime_seconds: int | None = None
    array_state: str | None = None
    storage_percent: int | None = None
    docker_running: int | None = None
    docker_total: int | None = None
    vm_running: int | None = None
    vm_total: int | None = None
    cpu_percent: float | None = None
    ram_percent: float | None = None
    status: StatusClassification
    warnings: list[str] = []
    error: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def metrics(self) -> dict[str, float | int | None]:
        """Return the metrics block rendered in the dashboard table."""
        return {
            "cpuPct": self.cpu_percent,
            "ramPct": self.ram_percent,
            "storagePct": self.storage_percent,
        }


class ActionResult(DashboardModel):
    """Outcome of a mutation requested from the dashboard."""

    ok: bool
    error: str | None = None
