"""aiohttp web application serving the dashboard JSON API."""

from __future__ import annotations

import json
import logging
import secrets
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp
from aiohttp import web

from unraid_control.actions import (
    perform_container_action,
    perform_power_action,
    perform_vm_action,
)
from unraid_control.aggregator import list_all_snapshots
from unraid_control.client import UnraidClient
from unraid_control.config import Settings
from unraid_control.const import CSRF_COOKIE, CSRF_HEADER, POWER_WAKE
from unraid_control.exceptions import (
    UnraidAPIError,
    UnraidConfigurationError,
    UnraidUnsupportedActionError,
)
from unraid_control.models import AppSettings, HostRecord
from unraid_control.status import list_containers, list_vms, probe_host
from unraid_control.store import ConfigStore
from unraid_control.transport import TrustPolicy
from unraid_control.wol import send_magic_packet

_LOGGER = logging.getLogger(__name__)

SETTINGS_KEY = web.AppKey("settings", Settings)
STORE_KEY = web.AppKey("store", ConfigStore)
CLIENT_KEY = web.AppKey("client", UnraidClient)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


# =============================================================================
# Response Helpers
# =============================================================================


def _ok(payload: dict[str, Any] | None = None) -> web.Response:
    return web.json_response({"ok": True, **(payload or {})})


def _fail(status: int, message: str) -> web.Response:
    return web.json_response(
        {"ok": False, "error": message, "message": message}, status=status
    )


def _same(left: str, right: str) -> bool:
    return secrets.compare_digest(left.encode(), right.encode())


def _status_for(err: UnraidAPIError) -> int:
    """Map an error to the HTTP status returned to the browser."""
    if isinstance(err, (UnraidConfigurationError, UnraidUnsupportedActionError)):
        return 400
    return 502


async def _read_json(request: web.Request) -> dict[str, Any]:
    if not request.body_exists:
        return {}
    try:
        body = await request.json()
    except ValueError as err:
        raise UnraidConfigurationError("Request body must be JSON.") from err
    if not isinstance(body, dict):
        raise UnraidConfigurationError("Request body must be a JSON object.")
    return body


def _require_host(request: web.Request) -> HostRecord:
    """Return the registered host named by the ``base`` query parameter.

    Raises:
        web.HTTPNotFound: ``base`` is not a configured host.

    """
    base = request.query.get("base", "")
    host = request.app[STORE_KEY].get_host(base)
    if host is None:
        message = "Unknown host. Check Server Address."
        raise web.HTTPNotFound(
            text=json.dumps({"ok": False, "error": message, "message": message}),
            content_type="application/json",
        )
    return host


def apply_app_settings(app: web.Application, settings: AppSettings) -> None:
    """Apply runtime settings to the running process.

    Args:
        app: Application holding the shared client.
        settings: Settings to apply.

    """
    app[CLIENT_KEY].trust_policy = TrustPolicy(
        allow_self_signed=settings.allow_self_signed
    )
    logging.getLogger().setLevel(settings.log_level.upper())


# =============================================================================
# Middlewares
# =============================================================================


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Turn uncaught errors into JSON responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except UnraidAPIError as err:
        _LOGGER.warning("%s %s failed: %s", request.method, request.path, err)
        return _fail(_status_for(err), str(err))
    except Exception:
        _LOGGER.exception("Unhandled error on %s %s", request.method, request.path)
        return web.json_response({"ok": False, "message": "Internal error"}, status=500)


@web.middleware
async def basic_auth_middleware(
    request: web.Request, handler: Handler
) -> web.StreamResponse:
    """Require HTTP basic auth when a user and password are configured."""
    settings = request.app[SETTINGS_KEY]
    if not settings.basic_auth_enabled:
        return await handler(request)

    try:
        credentials = aiohttp.BasicAuth.decode(request.headers.get("Authorization", ""))
    except ValueError:
        credentials = None

    if credentials is None or not (
        _same(credentials.login, settings.basic_auth_user)
        and _same(credentials.password, settings.basic_auth_pass)
    ):
        return web.Response(
            status=401,
            text="Authentication required.",
            headers={"WWW-Authenticate": 'Basic realm="Restricted"'},
        )
    return await handler(request)


def _with_csrf_cookie(
    request: web.Request, response: web.StreamResponse
) -> web.StreamResponse:
    response.set_cookie(
        CSRF_COOKIE,
        request.app[SETTINGS_KEY].csrf_secret,
        path="/",
        samesite="Lax",
        secure=request.secure,
    )
    return response


@web.middleware
async def csrf_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Double-submit cookie check for state-changing API requests."""
    if request.method != "GET" and request.path.startswith("/api/"):
        cookie_token = request.cookies.get(CSRF_COOKIE, "")
        header_token = request.headers.get(CSRF_HEADER, "")
        if not (
            cookie_token
            and header_token
            and _same(cookie_token, header_token)
        ):
            _LOGGER.warning(
                "CSRF check failed on %s (cookie=%s, header=%s)",
                request.path,
                bool(cookie_token),
                bool(header_token),
            )
            return _with_csrf_cookie(
                request,
                web.json_response(
                    {
                        "ok": False,
                        "error": "Bad CSRF",
                        "message": "Security check failed. Refresh the page and try again.",
                    },
                    status=403,
                ),
            )

    try:
        response = await handler(request)
    except web.HTTPException as exc:
        response = web.Response(
            status=exc.status, reason=exc.reason, text=exc.text, headers=exc.headers
        )
    return _with_csrf_cookie(request, response)


# =============================================================================
# Health & Version
# =============================================================================


async def health(request: web.Request) -> web.Response:
    """Liveness probe."""
    return web.Response(text="ok")


async def version(request: web.Request) -> web.Response:
    """Return the application version."""
    return web.json_response({"version": request.app[SETTINGS_KEY].version})


async def api_version(request: web.Request) -> web.Response:
    """Return the application version in the API envelope."""
    return _ok({"version": request.app[SETTINGS_KEY].version})


# =============================================================================
# Dashboard
# =============================================================================


async def list_servers(request: web.Request) -> web.Response:
    """Return one snapshot per configured host, never failing as a whole."""
    store = request.app[STORE_KEY]
    snapshots = await list_all_snapshots(
        request.app[CLIENT_KEY],
        store.list_host_records(),
        max_concurrency=request.app[SETTINGS_KEY].max_concurrency,
    )
    _LOGGER.info("Listed %d servers", len(snapshots))
    return web.json_response([snapshot.to_json() for snapshot in snapshots])


async def host_containers(request: web.Request) -> web.Response:
    """List Docker containers of a host."""
    host = _require_host(request)
    try:
        containers = await list_containers(request.app[CLIENT_KEY], host.base_url)
    except UnraidAPIError as err:
        _LOGGER.error("Listing containers on %s failed: %s", host.base_url, err)
        return _fail(_status_for(err), "Failed to list containers. See logs for details.")
    return web.json_response([container.to_json() for container in containers])


async def host_container_action(request: web.Request) -> web.Response:
    """Start, stop or restart a container."""
    host = _require_host(request)
    body = await _read_json(request)
    action = str(body.get("action", ""))
    try:
        result = await perform_container_action(
            request.app[CLIENT_KEY], host.base_url, body.get("id", ""), action
        )
    except UnraidAPIError as err:
        _LOGGER.error(
            "Container %s on %s failed: %s", action, host.base_url, err
        )
        return _fail(_status_for(err), f"Container {action} failed: {err}")
    return web.json_response(result.to_json())


async def host_vms(request: web.Request) -> web.Response:
    """List VMs of a host."""
    host = _require_host(request)
    try:
        vms = await list_vms(request.app[CLIENT_KEY], host.base_url)
    except UnraidAPIError as err:
        _LOGGER.error("Listing VMs on %s failed: %s", host.base_url, err)
        return _fail(_status_for(err), "Failed to list VMs. See logs for details.")
    return web.json_response([vm.to_json() for vm in vms])


async def host_vm_action(request: web.Request) -> web.Response:
    """Run a lifecycle action on a VM."""
    host = _require_host(request)
    body = await _read_json(request)
    action = str(body.get("action", ""))
    try:
        result = await perform_vm_action(
            request.app[CLIENT_KEY], host.base_url, body.get("id", ""), action
        )
    except UnraidAPIError as err:
        _LOGGER.error("VM %s on %s failed: %s", action, host.base_url, err)
        return _fail(_status_for(err), f"VM {action} failed: {err}")
    return web.json_response(result.to_json())


async def host_power(request: web.Request) -> web.Response:
    """Wake a host with Wake-on-LAN; other power actions are rejected."""
    host = _require_host(request)
    if request.query.get("action") != "power":
        return _fail(400, "Unsupported action.")
    body = await _read_json(request)
    action = str(body.get("action", ""))

    if action == POWER_WAKE:
        try:
            await send_magic_packet(host.mac, request.app[SETTINGS_KEY].wol_broadcast)
        except UnraidAPIError as err:
            _LOGGER.error("Wake-on-LAN for %s failed: %s", host.base_url, err)
            return _fail(_status_for(err), f"Power action failed: {err}")
        _LOGGER.info("Woke %s (%s)", host.base_url, host.mac)
        return _ok()

    result = await perform_power_action(host.base_url, action)
    return web.json_response(result.to_json())


# =============================================================================
# Settings
# =============================================================================


async def settings_hosts(request: web.Request) -> web.Response:
    """List configured hosts with their credential flag."""
    records = request.app[STORE_KEY].list_host_records()
    return web.json_response([record.to_json() for record in records])


async def settings_upsert_host(request: web.Request) -> web.Response:
    """Create or replace a host."""
    record = request.app[STORE_KEY].upsert_host(await _read_json(request))
    return _ok({"host": record.to_json()})


async def settings_delete_host(request: web.Request) -> web.Response:
    """Delete a host and its API key."""
    request.app[STORE_KEY].delete_host(request.query.get("base", ""))
    return _ok()


async def settings_token(request: web.Request) -> web.Response:
    """Store the API key of a host."""
    body = await _read_json(request)
    request.app[STORE_KEY].set_credential(
        str(body.get("baseUrl", "")), body.get("token")
    )
    return _ok()


async def settings_test(request: web.Request) -> web.Response:
    """Check address, TLS and API key of a host by querying its identity."""
    host = _require_host(request)
    try:
        info = await probe_host(request.app[CLIENT_KEY], host.base_url)
    except UnraidAPIError as err:
        _LOGGER.warning(
            "Connection test for %s failed (allow_self_signed=%s): %s",
            host.base_url,
            request.app[CLIENT_KEY].trust_policy.allow_self_signed,
            err,
        )
        return _fail(_status_for(err), str(err) or "Test failed")
    return _ok({"system": info.to_json()})


async def settings_app(request: web.Request) -> web.Response:
    """Return runtime settings."""
    return _ok({"settings": request.app[STORE_KEY].get_app_settings().to_json()})


async def settings_update_app(request: web.Request) -> web.Response:
    """Update runtime settings and apply them immediately."""
    body = await _read_json(request)
    patch = {key: body[key] for key in ("allowSelfSigned", "logLevel") if key in body}
    settings = request.app[STORE_KEY].set_app_settings(patch)
    apply_app_settings(request.app, settings)
    _LOGGER.info(
        "App settings updated (allow_self_signed=%s, log_level=%s)",
        settings.allow_self_signed,
        settings.log_level,
    )
    return _ok({"settings": settings.to_json()})


# =============================================================================
# Application
# =============================================================================


async def _close_client(app: web.Application) -> None:
    await app[CLIENT_KEY].close()


def create_app(
    settings: Settings,
    store: ConfigStore,
    client: UnraidClient,
) -> web.Application:
    """Build the web application.

    Args:
        settings: Process settings.
        store: Host, credential and app settings store.
        client: Shared Unraid API client (closed on application cleanup).

    Returns:
        Configured aiohttp Application.

    """
    app = web.Application(
        middlewares=[basic_auth_middleware, csrf_middleware, error_middleware]
    )
    app[SETTINGS_KEY] = settings
    app[STORE_KEY] = store
    app[CLIENT_KEY] = client
    app.on_cleanup.append(_close_client)

    app.router.add_get("/health", health)
    app.router.add_get("/version", version)
    app.router.add_get("/api/version", api_version)
    app.router.add_get("/api/servers", list_servers)
    app.router.add_get("/api/host/docker", host_containers)
    app.router.add_post("/api/host/docker/action", host_container_action)
    app.router.add_get("/api/host/vms", host_vms)
    app.router.add_post("/api/host/vm/action", host_vm_action)
    app.router.add_post("/api/host", host_power)
    app.router.add_get("/api/settings/hosts", settings_hosts)
    app.router.add_post("/api/settings/host", settings_upsert_host)
    app.router.add_delete("/api/settings/host", settings_delete_host)
    app.router.add_post("/api/settings/token", settings_token)
    app.router.add_get("/api/settings/test", settings_test)
    app.router.add_get("/api/settings/app", settings_app)
    app.router.add_post("/api/settings/app", settings_update_app)
    return app
