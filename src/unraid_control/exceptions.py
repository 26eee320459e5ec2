"""Exceptions raised by the Unraid control client and dispatcher."""

from __future__ import annotations

from typing import Any

from unraid_control.const import FAILURE_NETWORK, FAILURE_SELF_SIGNED, FAILURE_TIMEOUT


class UnraidAPIError(Exception):
    """Base exception for Unraid API errors."""

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            errors: Optional list of GraphQL error objects.

        """
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    def __str__(self) -> str:
        """Return string representation."""
        if self.errors:
            error_msgs = []
            for err in self.errors:
                if isinstance(err, dict):
                    msg = err.get("message", str(err))
                    path = err.get("path")
                    if path:
                        msg = f"{msg} (path: {path})"
                    error_msgs.append(msg)
                else:
                    error_msgs.append(str(err))
            return f"{self.message}: {'; '.join(error_msgs)}"
        return self.message


class UnraidConfigurationError(UnraidAPIError):
    """Exception raised for invalid configuration or settings input.

    Never retried; the message is safe to show to the operator verbatim.
    """


class UnraidMissingCredentialError(UnraidConfigurationError):
    """Exception raised when no API key is registered for a server."""

    def __init__(self, base_url: str) -> None:
        """Initialize the exception.

        Args:
            base_url: Server base URL that has no credential.

        """
        super().__init__(f"No API key configured for {base_url}")
        self.base_url = base_url


class UnraidConnectionError(UnraidAPIError):
    """Exception raised when the server cannot be reached.

    The message is a classified, human-readable hint; the underlying
    exception is available as ``__cause__``.
    """

    def __init__(
        self,
        message: str = "Failed to connect to Unraid server",
        *,
        kind: str = FAILURE_NETWORK,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            kind: Classified failure kind (see ``const.FAILURE_*``).

        """
        super().__init__(message)
        self.kind = kind


class UnraidSSLError(UnraidConnectionError):
    """Exception raised when TLS certificate verification fails.

    Inherits from UnraidConnectionError so callers that only care about
    reachability can catch either.
    """

    def __init__(self, message: str = "SSL certificate verification failed") -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.

        """
        super().__init__(message, kind=FAILURE_SELF_SIGNED)


class UnraidTimeoutError(UnraidConnectionError):
    """Exception raised when a request times out."""

    def __init__(self, message: str = "Request timed out") -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.

        """
        super().__init__(message, kind=FAILURE_TIMEOUT)


class UnraidAuthenticationError(UnraidAPIError):
    """Exception raised when authentication fails."""

    def __init__(
        self,
        message: str = "Authentication failed",
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            errors: Optional list of GraphQL error objects.

        """
        super().__init__(message, errors=errors)


class UnraidSchemaMismatchError(UnraidAPIError):
    """Exception raised when a queried field or type does not exist.

    This is a soft failure: the query engine recovers from it by trying
    the next variant of the same logical operation.
    """


class UnraidUnsupportedActionError(UnraidAPIError):
    """Exception raised for an action that is not allowed or not available."""
