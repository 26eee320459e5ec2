"""Run the dashboard web server."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from aiohttp import web

from unraid_control.client import UnraidClient
from unraid_control.config import Settings
from unraid_control.exceptions import UnraidConfigurationError
from unraid_control.models import AppSettings
from unraid_control.store import ConfigStore
from unraid_control.transport import TrustPolicy
from unraid_control.web import create_app

_LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str, data_dir: Path) -> None:
    """Log to stderr and to ``<data_dir>/app.log``."""
    data_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(data_dir / "app.log", encoding="utf-8"),
        ],
    )


def main() -> int:
    """Start the dashboard server.

    Returns:
        Process exit code.

    """
    try:
        settings = Settings.from_env()
    except UnraidConfigurationError as err:
        print(err, file=sys.stderr)  # noqa: T201
        return 2

    data_dir = Path(settings.data_dir)
    store = ConfigStore(
        data_dir,
        app_defaults=AppSettings(
            allow_self_signed=settings.allow_self_signed,
            log_level=settings.log_level,
        ),
    )
    store.init_store()
    app_settings = store.get_app_settings()
    configure_logging(app_settings.log_level, data_dir)

    client = UnraidClient(
        store,
        trust_policy=TrustPolicy(allow_self_signed=app_settings.allow_self_signed),
        timeout=settings.request_timeout,
        retries=settings.request_retries,
        retry_backoff=settings.retry_backoff,
    )
    app = create_app(settings, store, client)

    _LOGGER.info(
        "Unraid Control %s listening on %s:%s (data in %s)",
        settings.version,
        settings.host,
        settings.port,
        data_dir,
    )
    web.run_app(app, host=settings.host, port=settings.port, print=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
