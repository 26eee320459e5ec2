"""File-backed host registry, credential store and app settings."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from unraid_control.exceptions import UnraidConfigurationError
from unraid_control.models import AppSettings, HostRecord, normalize_base_url

_LOGGER = logging.getLogger(__name__)

HOSTS_FILE = "hosts.json"
TOKENS_FILE = "tokens.json"
APP_FILE = "app.json"


def _validation_message(err: ValidationError) -> str:
    messages = []
    for error in err.errors():
        msg = str(error.get("msg", ""))
        messages.append(msg.removeprefix("Value error, "))
    return " ".join(messages) or "Invalid host data."


class ConfigStore:
    """JSON-file store for hosts, API keys and runtime settings.

    Files live in ``data_dir``:
    - hosts.json: list of host records (without credentials)
    - tokens.json: map of base URL to API key
    - app.json: runtime toggles (self-signed TLS, log level)

    Example:
        store = ConfigStore("/app/data")
        store.init_store()
        store.upsert_host({"name": "tower", "baseUrl": "https://10.0.0.5",
                           "mac": "AA:BB:CC:DD:EE:FF"})

    """

    def __init__(
        self,
        data_dir: str | Path,
        *,
        app_defaults: AppSettings | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            data_dir: Directory holding the JSON files.
            app_defaults: Settings used when app.json is missing.

        """
        self.data_dir = Path(data_dir)
        self.app_defaults = app_defaults or AppSettings()

    def _path(self, name: str) -> Path:
        return self.data_dir / name

    def _read(self, name: str, fallback: Any) -> Any:
        try:
            with self._path(name).open(encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return fallback
        except (OSError, ValueError) as err:
            _LOGGER.warning("Could not read %s, using defaults: %s", name, err)
            return fallback

    def _write(self, name: str, value: Any) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh, indent=2)
            os.replace(tmp_name, self._path(name))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def init_store(self) -> None:
        """Create the data directory and any missing file."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if not self._path(HOSTS_FILE).exists():
            self._write(HOSTS_FILE, [])
        if not self._path(TOKENS_FILE).exists():
            self._write(TOKENS_FILE, {})
        if not self._path(APP_FILE).exists():
            self._write(APP_FILE, self.app_defaults.to_json())

    # =========================================================================
    # Hosts
    # =========================================================================

    def _host_rows(self) -> list[dict[str, Any]]:
        rows = self._read(HOSTS_FILE, [])
        return [row for row in rows if isinstance(row, dict)] if isinstance(rows, list) else []

    def list_host_records(self) -> list[HostRecord]:
        """Return all hosts in display order, with the credential flag set."""
        tokens = self._tokens()
        records = []
        for row in self._host_rows():
            try:
                record = HostRecord.model_validate(row)
            except ValidationError as err:
                _LOGGER.warning("Skipping invalid host entry %s: %s", row, err)
                continue
            records.append(
                record.model_copy(update={"has_credential": bool(tokens.get(record.base_url))})
            )
        return records

    def get_host(self, base_url: str) -> HostRecord | None:
        """Return the host registered under ``base_url``, if any."""
        base_url = normalize_base_url(base_url)
        for record in self.list_host_records():
            if record.base_url == base_url:
                return record
        return None

    def upsert_host(self, data: dict[str, Any]) -> HostRecord:
        """Create or replace a host, keyed by its base URL.

        Args:
            data: Host fields (``name``, ``baseUrl``, ``mac``).

        Returns:
            The stored HostRecord.

        Raises:
            UnraidConfigurationError: Missing or malformed fields.

        """
        fields = {key: data.get(key) for key in ("name", "baseUrl", "mac")}
        if not all(isinstance(v, str) and v.strip() for v in fields.values()):
            raise UnraidConfigurationError("Missing required fields.")
        try:
            record = HostRecord.model_validate(fields)
        except ValidationError as err:
            raise UnraidConfigurationError(_validation_message(err)) from err

        row = record.model_dump(by_alias=True, include={"name", "base_url", "mac"})
        rows = self._host_rows()
        for index, existing in enumerate(rows):
            if normalize_base_url(str(existing.get("baseUrl", ""))) == record.base_url:
                rows[index] = row
                break
        else:
            rows.append(row)
        self._write(HOSTS_FILE, rows)
        _LOGGER.info("Saved host %s", record.base_url)

        return record.model_copy(
            update={"has_credential": bool(self.get_credential(record.base_url))}
        )

    def delete_host(self, base_url: str) -> None:
        """Delete a host and its credential."""
        base_url = normalize_base_url(base_url)
        if not base_url:
            raise UnraidConfigurationError("Server Address is required.")
        rows = [
            row
            for row in self._host_rows()
            if normalize_base_url(str(row.get("baseUrl", ""))) != base_url
        ]
        self._write(HOSTS_FILE, rows)

        tokens = self._tokens()
        if tokens.pop(base_url, None) is not None:
            self._write(TOKENS_FILE, tokens)
        _LOGGER.info("Deleted host %s", base_url)

    # =========================================================================
    # Credentials
    # =========================================================================

    def _tokens(self) -> dict[str, str]:
        tokens = self._read(TOKENS_FILE, {})
        return {str(k): str(v) for k, v in tokens.items()} if isinstance(tokens, dict) else {}

    def set_credential(self, base_url: str, token: str | None) -> None:
        """Store (or clear, when empty) the API key of a registered host.

        Raises:
            UnraidConfigurationError: The host is not registered.

        """
        base_url = normalize_base_url(base_url)
        if self.get_host(base_url) is None:
            raise UnraidConfigurationError("Unknown host. Save the server first.")
        tokens = self._tokens()
        token = (token or "").strip()
        if token:
            tokens[base_url] = token
        else:
            tokens.pop(base_url, None)
        self._write(TOKENS_FILE, tokens)
        _LOGGER.info("Updated API key for %s", base_url)

    def get_credential(self, base_url: str) -> str | None:
        """Return the API key of ``base_url``, or None."""
        return self._tokens().get(normalize_base_url(base_url)) or None

    # =========================================================================
    # App Settings
    # =========================================================================

    def get_app_settings(self) -> AppSettings:
        """Return the runtime settings merged over the defaults."""
        saved = self._read(APP_FILE, {})
        merged = self.app_defaults.to_json()
        if isinstance(saved, dict):
            merged.update(saved)
        try:
            return AppSettings.model_validate(merged)
        except ValidationError as err:
            _LOGGER.warning("Invalid %s, using defaults: %s", APP_FILE, err)
            return self.app_defaults

    def set_app_settings(self, patch: dict[str, Any]) -> AppSettings:
        """Update runtime settings.

        Raises:
            UnraidConfigurationError: A value has the wrong type.

        """
        merged = self.get_app_settings().to_json()
        merged.update(patch)
        try:
            settings = AppSettings.model_validate(merged)
        except ValidationError as err:
            raise UnraidConfigurationError(_validation_message(err)) from err
        self._write(APP_FILE, settings.to_json())
        return settings
