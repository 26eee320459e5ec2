"""Schema-adaptive async GraphQL client for Unraid servers."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from unraid_control.const import (
    API_KEY_HEADER,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_TIMEOUT,
    GRAPHQL_PATH,
    HTTP_FORBIDDEN,
    HTTP_UNAUTHORIZED,
)
from unraid_control.exceptions import (
    UnraidAPIError,
    UnraidAuthenticationError,
    UnraidMissingCredentialError,
    UnraidSchemaMismatchError,
)
from unraid_control.models import normalize_base_url
from unraid_control.transport import Transport, TrustPolicy

if TYPE_CHECKING:
    from types import TracebackType

    import aiohttp


_LOGGER = logging.getLogger(__name__)

_SCHEMA_MISMATCH = re.compile(
    r"cannot query field"
    r"|unknown (type|argument)"
    r"|is not defined by type",
    re.IGNORECASE,
)
_AUTH_FAILURE = re.compile(
    r"unauthori[sz]ed|unauthenticated|invalid api key|not authenticated",
    re.IGNORECASE,
)
_AUTH_CODES = frozenset({"UNAUTHENTICATED", "FORBIDDEN", "UNAUTHORIZED"})


class CredentialStore(Protocol):
    """Read path of the credential store."""

    def get_credential(self, base_url: str) -> str | None:
        """Return the API key registered for ``base_url``."""


@dataclass(frozen=True, slots=True)
class QueryVariant:
    """One candidate document for a logical operation.

    ``extract`` maps this variant's raw ``data`` to the common shape, so
    the caller never has to guess which variant answered.
    """

    name: str
    document: str
    extract: Callable[[dict[str, Any]], Any] = dict


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Data returned by the first variant that succeeded."""

    data: dict[str, Any]
    index: int
    variant: QueryVariant

    def extract(self) -> Any:
        """Apply the answering variant's extractor to the data."""
        return self.variant.extract(self.data)


def _error_code(err: Any) -> str:
    if not isinstance(err, dict):
        return ""
    extensions = err.get("extensions") or {}
    if not isinstance(extensions, dict):
        return ""
    return str(extensions.get("code") or "").upper()


def _error_message(err: Any) -> str:
    if isinstance(err, dict):
        return str(err.get("message", ""))
    return str(err)


def is_schema_mismatch(errors: Sequence[Any]) -> bool:
    """Return True if GraphQL errors say a queried field/type does not exist."""
    if not errors:
        return False
    return any(
        _SCHEMA_MISMATCH.search(_error_message(err))
        or _error_code(err) == "GRAPHQL_VALIDATION_FAILED"
        for err in errors
    )


def is_auth_failure(errors: Sequence[Any]) -> bool:
    """Return True if GraphQL errors report a rejected credential."""
    return any(
        _error_code(err) in _AUTH_CODES or _AUTH_FAILURE.search(_error_message(err))
        for err in errors
    )


def _failed_fields(data: dict[str, Any], errors: Sequence[Any]) -> list[str]:
    """Return the top-level fields of a partial response that failed.

    A field failed when it is null and an error path points at it. When every
    top-level field is null nothing usable came back at all.
    """
    nulls = [key for key, value in data.items() if value is None]
    if len(nulls) == len(data):
        return nulls
    roots = {
        err["path"][0]
        for err in errors
        if isinstance(err, dict) and isinstance(err.get("path"), list) and err["path"]
    }
    return [key for key in nulls if key in roots]


def extract_error_message(body: dict[str, Any]) -> str | None:
    """Best-effort error message from a GraphQL-shaped error envelope."""
    errors = body.get("errors")
    if isinstance(errors, list) and errors:
        return "; ".join(_error_message(err) for err in errors)
    for key in ("message", "error"):
        if isinstance(body.get(key), str):
            return str(body[key])
    raw = body.get("raw")
    if isinstance(raw, str) and raw.strip():
        return raw.strip()[:200]
    return None


class UnraidClient:
    """Async client for the GraphQL API of one or more Unraid servers.

    This client handles:
    - API key lookup per server base URL
    - Mapping HTTP, GraphQL and transport failures to exceptions
    - Ordered variant fallback across backend schema versions

    Example:
        async with UnraidClient(store, trust_policy=TrustPolicy(True)) as client:
            result = await client.execute("https://tower", Q_INFO_ARRAY)
            info = result.extract()

    """

    def __init__(
        self,
        credentials: CredentialStore,
        *,
        trust_policy: TrustPolicy | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        """Initialize the API client.

        Args:
            credentials: Store providing the API key for a base URL.
            trust_policy: TLS trust policy for the transport.
            timeout: Request timeout in seconds.
            retries: Transport-level retries per request.
            retry_backoff: Base backoff delay in seconds.
            session: Optional aiohttp session (not closed by the client).
            transport: Optional preconfigured transport.

        """
        self.credentials = credentials
        self.transport = transport or Transport(
            trust_policy,
            timeout=timeout,
            retries=retries,
            retry_backoff=retry_backoff,
            session=session,
        )

    @property
    def trust_policy(self) -> TrustPolicy:
        """Get the TLS trust policy in effect."""
        return self.transport.trust_policy

    @trust_policy.setter
    def trust_policy(self, policy: TrustPolicy) -> None:
        self.transport.trust_policy = policy

    async def __aenter__(self) -> UnraidClient:
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the underlying transport."""
        await self.transport.close()

    def _headers(self, base_url: str) -> dict[str, str]:
        api_key = self.credentials.get_credential(base_url)
        if not api_key:
            raise UnraidMissingCredentialError(base_url)
        return {
            "content-type": "application/json",
            "accept": "application/json",
            API_KEY_HEADER: api_key,
        }

    async def query(
        self,
        base_url: str,
        query: str,
        variables: dict[str, Any] | None = None,
        *,
        mutation: bool = False,
    ) -> dict[str, Any]:
        """Execute a single GraphQL document.

        Args:
            base_url: Server base URL (identity key of the host).
            query: GraphQL query or mutation string.
            variables: Optional variables.
            mutation: Whether the document mutates server state.

        Returns:
            Query response data (the 'data' field from GraphQL response).

        Raises:
            UnraidMissingCredentialError: No API key is registered.
            UnraidConnectionError: On network errors.
            UnraidAuthenticationError: On authentication failures.
            UnraidSchemaMismatchError: A field or type does not exist.
            UnraidAPIError: On any other HTTP or GraphQL error.

        """
        base_url = normalize_base_url(base_url)
        headers = self._headers(base_url)

        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        response = await self.transport.post(
            f"{base_url}{GRAPHQL_PATH}",
            headers,
            payload,
            idempotent=not mutation,
        )
        body = response.json_body
        errors = body.get("errors")
        if not isinstance(errors, list):
            errors = []

        if response.status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
            raise UnraidAuthenticationError(
                "Invalid API key or insufficient permissions"
            )

        if not response.ok:
            if is_schema_mismatch(errors):
                raise UnraidSchemaMismatchError(
                    f"HTTP {response.status}: schema mismatch", errors=errors
                )
            message = extract_error_message(body) or "request failed"
            raise UnraidAPIError(f"HTTP {response.status}: {message}")

        data = body.get("data")

        if errors:
            _LOGGER.debug("Full GraphQL error response from %s: %s", base_url, errors)
            if is_auth_failure(errors):
                raise UnraidAuthenticationError(errors=errors)
            if mutation:
                if is_schema_mismatch(errors):
                    raise UnraidSchemaMismatchError(
                        "GraphQL schema mismatch", errors=errors
                    )
                raise UnraidAPIError("GraphQL mutation failed", errors=errors)
            if isinstance(data, dict) and data:
                failed = _failed_fields(data, errors)
                if not failed:
                    # Partial failure - log and return data
                    _LOGGER.debug(
                        "Some optional fields unavailable on %s: %s",
                        base_url,
                        extract_error_message(body),
                    )
                    return dict(data)
                _LOGGER.debug("Fields %s failed on %s", ", ".join(failed), base_url)
            if is_schema_mismatch(errors):
                raise UnraidSchemaMismatchError("GraphQL schema mismatch", errors=errors)
            raise UnraidAPIError("GraphQL query failed", errors=errors)

        if not isinstance(data, dict):
            message = extract_error_message(body) or "missing data"
            raise UnraidAPIError(f"Unexpected GraphQL response: {message}")

        return dict(data)

    async def mutate(
        self,
        base_url: str,
        mutation: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Execute a GraphQL mutation.

        Args:
            base_url: Server base URL.
            mutation: GraphQL mutation string.
            variables: Optional mutation variables.

        Returns:
            Mutation response data.

        """
        return await self.query(base_url, mutation, variables, mutation=True)

    async def execute(
        self,
        base_url: str,
        variants: Sequence[QueryVariant],
        variables: dict[str, Any] | None = None,
        *,
        mutation: bool = False,
    ) -> QueryResult:
        """Run the first variant the server's schema understands.

        Variants are tried strictly in order. A schema mismatch moves on to
        the next variant; any other error is raised immediately so real
        operational problems are never masked by an older schema's answer.

        Args:
            base_url: Server base URL.
            variants: Ordered candidate documents for one logical operation.
            variables: Variables passed to every variant.
            mutation: Whether the documents mutate server state.

        Returns:
            QueryResult with the data and the index of the answering variant.

        Raises:
            UnraidSchemaMismatchError: Every variant was rejected by the
                schema (the last variant's error).

        """
        if not variants:
            raise ValueError("At least one query variant is required")

        last_error: UnraidSchemaMismatchError | None = None
        for index, variant in enumerate(variants):
            try:
                data = await self.query(
                    base_url, variant.document, variables, mutation=mutation
                )
            except UnraidSchemaMismatchError as err:
                _LOGGER.debug(
                    "Variant %s not supported by %s: %s", variant.name, base_url, err
                )
                last_error = err
                continue
            if index:
                _LOGGER.debug("Using variant %s for %s", variant.name, base_url)
            return QueryResult(data=data, index=index, variant=variant)

        raise last_error or UnraidAPIError("No query variant succeeded")
