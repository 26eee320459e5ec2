"""Tests for the file-backed configuration store."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import API_KEY, BASE_URL, MAC

from unraid_control import ConfigStore
from unraid_control.exceptions import UnraidConfigurationError
from unraid_control.models import AppSettings
from unraid_control.store import APP_FILE, HOSTS_FILE, TOKENS_FILE


class TestInitStore:
    """Tests for store initialization."""

    def test_creates_files(self, tmp_path: Path) -> None:
        """Test missing files are created with defaults."""
        data_dir = tmp_path / "data"
        store = ConfigStore(data_dir, app_defaults=AppSettings(allow_self_signed=True))
        store.init_store()

        assert json.loads((data_dir / HOSTS_FILE).read_text()) == []
        assert json.loads((data_dir / TOKENS_FILE).read_text()) == {}
        assert json.loads((data_dir / APP_FILE).read_text()) == {
            "allowSelfSigned": True,
            "logLevel": "info",
        }

    def test_keeps_existing_files(self, store: ConfigStore) -> None:
        """Test initialization does not overwrite saved data."""
        store.init_store()

        assert len(store.list_host_records()) == 1


class TestHosts:
    """Tests for host records."""

    def test_list_sets_credential_flag(self, store: ConfigStore) -> None:
        """Test hasCredential reflects the token store."""
        store.upsert_host({"name": "Backup", "baseUrl": "http://10.0.0.2", "mac": MAC})

        flags = {r.base_url: r.has_credential for r in store.list_host_records()}

        assert flags == {BASE_URL: True, "http://10.0.0.2": False}

    def test_tokens_not_in_hosts_file(self, store: ConfigStore) -> None:
        """Test API keys are only written to the token file."""
        assert API_KEY not in (store.data_dir / HOSTS_FILE).read_text()
        assert API_KEY in (store.data_dir / TOKENS_FILE).read_text()

    def test_upsert_replaces_by_base_url(self, store: ConfigStore) -> None:
        """Test saving an existing base URL updates it in place."""
        saved = store.upsert_host(
            {"name": "Renamed", "baseUrl": BASE_URL + "/", "mac": "11:22:33:44:55:66"}
        )

        records = store.list_host_records()
        assert len(records) == 1
        assert records[0].name == "Renamed"
        assert saved.has_credential is True

    @pytest.mark.parametrize(
        ("data", "message"),
        [
            ({"name": "x", "baseUrl": "http://a"}, "Missing required fields."),
            ({"name": "x", "baseUrl": "nope", "mac": MAC}, "absolute http(s) URL"),
            ({"name": "x", "baseUrl": "http://a", "mac": "zz"}, "six hex octets"),
        ],
    )
    def test_upsert_invalid(self, store: ConfigStore, data: dict, message: str) -> None:
        """Test invalid host data raises a readable configuration error."""
        with pytest.raises(UnraidConfigurationError) as exc_info:
            store.upsert_host(data)

        assert message in str(exc_info.value)

    def test_get_host(self, store: ConfigStore) -> None:
        """Test lookup by normalized base URL."""
        assert store.get_host(BASE_URL + "/") is not None
        assert store.get_host("https://unknown.local") is None

    def test_delete_host_removes_token(self, store: ConfigStore) -> None:
        """Test deleting a host also deletes its API key."""
        store.delete_host(BASE_URL)

        assert store.list_host_records() == []
        assert store.get_credential(BASE_URL) is None

    def test_delete_requires_base_url(self, store: ConfigStore) -> None:
        """Test deleting without an address is rejected."""
        with pytest.raises(UnraidConfigurationError):
            store.delete_host("")

    def test_invalid_rows_skipped(self, store: ConfigStore) -> None:
        """Test hand-edited invalid entries do not break listing."""
        rows = json.loads((store.data_dir / HOSTS_FILE).read_text())
        rows.append({"name": "broken"})
        (store.data_dir / HOSTS_FILE).write_text(json.dumps(rows))

        assert [r.name for r in store.list_host_records()] == ["Tower"]

    def test_corrupt_file(self, store: ConfigStore) -> None:
        """Test an unreadable file falls back to defaults."""
        (store.data_dir / HOSTS_FILE).write_text("{not json")

        assert store.list_host_records() == []


class TestCredentials:
    """Tests for API key storage."""

    def test_get_credential(self, store: ConfigStore) -> None:
        """Test the key is found under the normalized base URL."""
        assert store.get_credential(BASE_URL + "/") == API_KEY

    def test_unknown_host(self, store: ConfigStore) -> None:
        """Test keys can only be stored for registered hosts."""
        with pytest.raises(UnraidConfigurationError):
            store.set_credential("https://unknown.local", "key")

    def test_clear_credential(self, store: ConfigStore) -> None:
        """Test an empty token clears the key."""
        store.set_credential(BASE_URL, "  ")

        assert store.get_credential(BASE_URL) is None


class TestAppSettings:
    """Tests for runtime settings."""

    def test_update(self, store: ConfigStore) -> None:
        """Test settings are merged and persisted."""
        settings = store.set_app_settings({"allowSelfSigned": True})

        assert settings.allow_self_signed is True
        assert settings.log_level == "info"
        assert store.get_app_settings().allow_self_signed is True

    def test_invalid_update(self, store: ConfigStore) -> None:
        """Test invalid values are rejected and nothing is saved."""
        with pytest.raises(UnraidConfigurationError):
            store.set_app_settings({"logLevel": "loud"})

        assert store.get_app_settings().log_level == "info"
