"""HTTP transport for Unraid GraphQL endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
import socket
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import aiohttp

from unraid_control.const import (
    DEFAULT_RETRIES,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_TIMEOUT,
    FAILURE_CONNECTION_REFUSED,
    FAILURE_DNS,
    FAILURE_NETWORK,
    FAILURE_SELF_SIGNED,
    FAILURE_TIMEOUT,
    FAILURE_UNAUTHORIZED,
)
from unraid_control.exceptions import (
    UnraidConnectionError,
    UnraidSSLError,
    UnraidTimeoutError,
)

if TYPE_CHECKING:
    from types import TracebackType


_LOGGER = logging.getLogger(__name__)

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "name resolution",
    "no address associated",
)
_TLS_MARKERS = ("certificate", "self signed", "self-signed")


@dataclass(frozen=True, slots=True)
class TrustPolicy:
    """TLS trust decision for outbound requests.

    ``allow_self_signed`` disables certificate verification for ``https``
    endpoints only; plain ``http`` endpoints are unaffected.
    """

    allow_self_signed: bool = False

    def ssl_for(self, url: str) -> bool:
        """Return the aiohttp ``ssl`` argument to use for ``url``."""
        if urlparse(url).scheme == "https" and self.allow_self_signed:
            return False
        return True


@dataclass(frozen=True, slots=True)
class TransportResponse:
    """Outcome of one HTTP exchange."""

    ok: bool
    status: int
    json_body: dict[str, Any]


def classify_transport_error(err: BaseException) -> tuple[str, str]:
    """Map a raw network exception to a failure kind and a hint.

    Args:
        err: Exception raised by aiohttp or asyncio.

    Returns:
        Tuple of (kind, human-readable hint).

    """
    text = str(err).lower()
    os_error = getattr(err, "os_error", None)

    if isinstance(err, aiohttp.ClientSSLError) or any(
        marker in text for marker in _TLS_MARKERS
    ):
        return (
            FAILURE_SELF_SIGNED,
            "TLS certificate could not be verified (self-signed?). "
            "Allow self-signed certificates or install a trusted certificate.",
        )
    if isinstance(err, TimeoutError) or "timed out" in text or "timeout" in text:
        return (FAILURE_TIMEOUT, "Request timed out: the server is slow or unreachable.")
    if isinstance(os_error, socket.gaierror) or any(
        marker in text for marker in _DNS_MARKERS
    ):
        return (FAILURE_DNS, "Hostname could not be resolved (DNS failure).")
    if isinstance(os_error, ConnectionRefusedError) or "refused" in text:
        return (
            FAILURE_CONNECTION_REFUSED,
            "Connection refused: check the server address and port.",
        )
    if "401" in text or "unauthorized" in text:
        return (FAILURE_UNAUTHORIZED, "Unauthorized: the API key was rejected.")
    return (FAILURE_NETWORK, f"Network error: {err}")


def _transport_error(err: BaseException) -> UnraidConnectionError:
    kind, hint = classify_transport_error(err)
    if kind == FAILURE_SELF_SIGNED:
        return UnraidSSLError(hint)
    if kind == FAILURE_TIMEOUT:
        return UnraidTimeoutError(hint)
    return UnraidConnectionError(hint, kind=kind)


def _parse_body(text: str) -> dict[str, Any]:
    """Parse a response body, wrapping anything that is not a JSON object."""
    if not text:
        return {}
    try:
        parsed = json.loads(text)
    except ValueError:
        return {"raw": text}
    if isinstance(parsed, dict):
        return parsed
    return {"raw": parsed}


class Transport:
    """Async HTTP POST transport with TLS policy, timeout and retries.

    Example:
        async with Transport(TrustPolicy(allow_self_signed=True)) as transport:
            response = await transport.post(url, headers, {"query": "{ online }"})

    """

    def __init__(
        self,
        trust_policy: TrustPolicy | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            trust_policy: TLS trust policy (default: verify certificates).
            timeout: Per-request timeout in seconds.
            retries: Extra attempts after a transport-level failure.
            retry_backoff: Base delay in seconds, doubled on every retry.
            session: Optional aiohttp session to use instead of owning one.

        """
        self.trust_policy = trust_policy or TrustPolicy()
        self.timeout = timeout
        self.retries = max(retries, 0)
        self.retry_backoff = retry_backoff
        self._session: aiohttp.ClientSession | None = session
        self._owns_session: bool = session is None
        self._insecure_warned: set[str] = set()

    @property
    def session(self) -> aiohttp.ClientSession | None:
        """Get the aiohttp session."""
        return self._session

    async def __aenter__(self) -> Transport:
        """Async context manager entry."""
        await self._create_session()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def _create_session(self) -> None:
        """Create the aiohttp session if none was injected."""
        if self._session is not None:
            return
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )
        self._owns_session = True

    async def close(self) -> None:
        """Close the aiohttp session if we created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _ssl_for(self, endpoint: str, trust_policy: TrustPolicy | None) -> bool:
        ssl = (trust_policy or self.trust_policy).ssl_for(endpoint)
        if ssl is False and endpoint not in self._insecure_warned:
            self._insecure_warned.add(endpoint)
            _LOGGER.warning(
                "SSL verification disabled for %s. "
                "Connection is encrypted but server identity is not verified.",
                endpoint,
            )
        return ssl

    async def post(
        self,
        endpoint: str,
        headers: dict[str, str],
        body: dict[str, Any],
        *,
        idempotent: bool = True,
        trust_policy: TrustPolicy | None = None,
    ) -> TransportResponse:
        """POST a JSON body and return the parsed response.

        Transport-level failures are retried with exponential backoff.
        Non-idempotent requests are only retried when the connection was
        never established, so the server cannot have seen them.

        Args:
            endpoint: Absolute URL to post to.
            headers: Request headers.
            body: JSON-serializable request body.
            idempotent: Whether the request may be repeated safely.
            trust_policy: Optional per-request override of the TLS policy.

        Returns:
            TransportResponse with status and parsed JSON body.

        Raises:
            UnraidConnectionError: On network errors, with a classified hint.
            UnraidSSLError: On TLS verification failures.
            UnraidTimeoutError: On request timeout.

        """
        if self._session is None:
            await self._create_session()

        if self._session is None:
            raise UnraidConnectionError("Failed to create HTTP session")

        ssl = self._ssl_for(endpoint, trust_policy)
        attempt = 0
        while True:
            try:
                return await self._post_once(self._session, endpoint, headers, body, ssl)
            except (TimeoutError, aiohttp.ClientError) as err:
                error = _transport_error(err)
                retryable = error.kind != FAILURE_SELF_SIGNED and (
                    idempotent or isinstance(err, aiohttp.ClientConnectorError)
                )
                if not retryable or attempt >= self.retries:
                    raise error from err
                delay = self.retry_backoff * (2**attempt)
                attempt += 1
                _LOGGER.debug(
                    "Request to %s failed (%s), retry %d/%d in %.2fs",
                    endpoint,
                    error.kind,
                    attempt,
                    self.retries,
                    delay,
                )
                await asyncio.sleep(delay)

    async def _post_once(
        self,
        session: aiohttp.ClientSession,
        endpoint: str,
        headers: dict[str, str],
        body: dict[str, Any],
        ssl: bool,
    ) -> TransportResponse:
        async with session.post(
            endpoint,
            json=body,
            headers=headers,
            ssl=ssl,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            text = await response.text()
            return TransportResponse(
                ok=200 <= response.status < 300,
                status=response.status,
                json_body=_parse_body(text),
            )
