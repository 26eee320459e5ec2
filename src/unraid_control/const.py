"""Constants for Unraid state values, status codes and configuration."""

from __future__ import annotations

# =============================================================================
# HTTP
# =============================================================================

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
API_KEY_HEADER = "x-api-key"
GRAPHQL_PATH = "/graphql"

DEFAULT_TIMEOUT = 10.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF = 0.5

# =============================================================================
# Transport Failure Kinds
# =============================================================================

FAILURE_SELF_SIGNED = "self_signed"
FAILURE_UNAUTHORIZED = "unauthorized"
FAILURE_CONNECTION_REFUSED = "connection_refused"
FAILURE_DNS = "dns"
FAILURE_TIMEOUT = "timeout"
FAILURE_NETWORK = "network"

# =============================================================================
# Composite Status Codes
# =============================================================================

STATUS_OK = "ok"
STATUS_PARITY = "parity"
STATUS_STOPPED = "stopped"
STATUS_ERROR = "error"
STATUS_OFFLINE = "offline"
STATUS_UNKNOWN = "unknown"

# =============================================================================
# Array States
# =============================================================================

ARRAY_STATE_STARTED = "STARTED"

# Maintenance operations that count as "parity" on the dashboard
MAINTENANCE_KEYWORDS = ("parity", "check", "rebuild", "sync", "clear")
PARITY_TASK_KEYWORDS = ("parity", "check")
PARITY_STATUS_ACTIVE = frozenset({"RUNNING", "PAUSED"})
PARITY_STATE_INACTIVE = frozenset(
    {"IDLE", "COMPLETED", "STOPPED", "CANCELLED", "FAILED", "NONE"}
)

# =============================================================================
# Docker Container States
# =============================================================================

CONTAINER_STATE_RUNNING = "running"
CONTAINER_STATE_EXITED = "exited"

# =============================================================================
# VM Domain States
# =============================================================================

VM_RUNNING_STATES = frozenset({"running", "idle"})

# =============================================================================
# Actions
# =============================================================================

CONTAINER_VERBS = ("start", "stop", "restart")
CONTAINER_PRIMITIVES = ("start", "stop")
VM_VERBS = ("start", "stop", "pause", "resume", "forceStop", "reboot", "reset")
POWER_WAKE = "wake"
POWER_UNSUPPORTED = ("reboot", "shutdown")

# =============================================================================
# Sub-queries
# =============================================================================

SUBQUERY_INFO = "info"
SUBQUERY_PARITY = "parity"
SUBQUERY_DOCKER = "docker"
SUBQUERY_VMS = "vms"
SUBQUERY_METRICS = "metrics"

SUBQUERIES = (
    SUBQUERY_INFO,
    SUBQUERY_PARITY,
    SUBQUERY_DOCKER,
    SUBQUERY_VMS,
    SUBQUERY_METRICS,
)

# =============================================================================
# Web
# =============================================================================

CSRF_COOKIE = "ucp_csrf"
CSRF_HEADER = "x-csrf-token"
WOL_PORT = 9

LOG_LEVELS = ("error", "warning", "info", "debug")
