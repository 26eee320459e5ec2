"""Process settings loaded from environment variables."""

from __future__ import annotations

import os
import secrets
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from unraid_control.const import (
    DEFAULT_RETRIES,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_TIMEOUT,
)
from unraid_control.exceptions import UnraidConfigurationError
from unraid_control.models import normalize_log_level

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"", "0", "false", "no", "off"})

# Environment variable -> Settings field
ENV_FIELDS: dict[str, str] = {
    "HOST": "host",
    "PORT": "port",
    "DATA_DIR": "data_dir",
    "UNRAID_ALLOW_SELF_SIGNED": "allow_self_signed",
    "BASIC_AUTH_USER": "basic_auth_user",
    "BASIC_AUTH_PASS": "basic_auth_pass",
    "CSRF_SECRET": "csrf_secret",
    "LOG_LEVEL": "log_level",
    "WOL_BROADCAST": "wol_broadcast",
    "UNRAID_TIMEOUT": "request_timeout",
    "UNRAID_RETRIES": "request_retries",
    "UNRAID_RETRY_BACKOFF": "retry_backoff",
    "UNRAID_MAX_CONCURRENCY": "max_concurrency",
    "APP_VERSION": "version",
}


def _default_version() -> str:
    from unraid_control import __version__

    return __version__


class Settings(BaseModel):
    """Dashboard process settings."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(default=8080, ge=1, le=65535)
    data_dir: str = "/app/data"
    allow_self_signed: bool = False
    basic_auth_user: str = ""
    basic_auth_pass: str = ""
    csrf_secret: str = Field(default_factory=lambda: secrets.token_hex(16))
    log_level: str = "info"
    wol_broadcast: str = "255.255.255.255"
    request_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    request_retries: int = Field(default=DEFAULT_RETRIES, ge=0)
    retry_backoff: float = Field(default=DEFAULT_RETRY_BACKOFF, ge=0)
    max_concurrency: int | None = Field(default=None, ge=1)
    version: str = Field(default_factory=_default_version)

    @field_validator("allow_self_signed", mode="before")
    @classmethod
    def _parse_bool(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise ValueError(f"Expected true or false, got {value!r}")
        return value

    @field_validator("max_concurrency", mode="before")
    @classmethod
    def _empty_is_unlimited(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        return normalize_log_level(value)

    @property
    def basic_auth_enabled(self) -> bool:
        """Return True if both basic auth user and password are set."""
        return bool(self.basic_auth_user and self.basic_auth_pass)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Returns:
            Validated Settings.

        Raises:
            UnraidConfigurationError: A variable holds an invalid value.

        """
        environ = os.environ if environ is None else environ
        values = {
            field: environ[name]
            for name, field in ENV_FIELDS.items()
            if environ.get(name) not in (None, "")
        }
        try:
            return cls.model_validate(values)
        except ValidationError as err:
            field_to_env = {field: name for name, field in ENV_FIELDS.items()}
            problems = [
                f"{field_to_env.get(str(error['loc'][0]), error['loc'][0])}: {error['msg']}"
                for error in err.errors()
            ]
            raise UnraidConfigurationError(
                "Invalid configuration: " + "; ".join(problems)
            ) from err
