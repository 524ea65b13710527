"""Infrabase configuration from environment variables.

An optional env file at ``<config dir>/infrabase/env`` is loaded first with
python-dotenv; variables already present in the environment take priority.
Set ``INFRABASE_ENV_FILE`` to load a different file.
"""

from __future__ import annotations

import ipaddress
import logging
import os
from pathlib import Path

import click
from dotenv import load_dotenv

from infrabase.errors import SettingsError, ValidationError
from infrabase.validation import parse_port

logger = logging.getLogger(__name__)

APP_NAME = "infrabase"


def env_file_path() -> Path:
    """Return the env file location (``~/.config/infrabase/env`` on Linux)."""
    override = os.getenv("INFRABASE_ENV_FILE")
    if override:
        return Path(override)
    return Path(click.get_app_dir(APP_NAME, force_posix=False)) / "env"


def import_env(path: Path | None = None) -> bool:
    """Load the env file into ``os.environ`` if it exists.

    Returns True when a file was loaded.
    """
    path = path or env_file_path()
    if not path.exists():
        logger.debug("No env file at %s", path)
        return False
    load_dotenv(dotenv_path=path, override=False)
    logger.debug("Loaded configuration from %s", path)
    return True


class Settings:
    """Infrabase settings, read from environment variables with defaults.

    Only ``database_url`` and ``log_level`` are read eagerly; the rest are
    needed by a few commands and raise :class:`SettingsError` on access if
    missing or malformed.
    """

    def __init__(self) -> None:
        self.database_url: str = os.getenv(
            "DATABASE_URL", "sqlite+aiosqlite:///infrabase.db"
        )
        self.log_level: str = os.getenv("INFRABASE_LOG_LEVEL", "WARNING").upper()
        self.debug: bool = os.getenv("INFRABASE_DEBUG", "").lower() in ("1", "true", "yes")

    # -- required-on-demand -------------------------------------------------

    @staticmethod
    def _require(var: str) -> str:
        value = os.getenv(var)
        if value is None or value == "":
            raise SettingsError(f"Could not get variable {var!r} from environment")
        return value

    def _port(self, var: str) -> int:
        try:
            return parse_port(self._require(var), what=var)
        except ValidationError as exc:
            raise SettingsError(f"Could not parse {var} as a port: {exc}") from exc

    @property
    def default_owner(self) -> str:
        return self._require("DEFAULT_OWNER")

    @property
    def default_provider(self) -> int | None:
        value = os.getenv("DEFAULT_PROVIDER")
        if not value:
            return None
        try:
            return int(value)
        except ValueError:
            raise SettingsError("Could not parse DEFAULT_PROVIDER as an integer") from None

    @property
    def default_ssh_port(self) -> int:
        return self._port("DEFAULT_SSH_PORT")

    @property
    def default_ssh_user(self) -> str:
        return self._require("DEFAULT_SSH_USER")

    @property
    def default_wireguard_port(self) -> int:
        return self._port("DEFAULT_WIREGUARD_PORT")

    def _ip(self, var: str, cls):
        raw = self._require(var)
        try:
            return cls(raw)
        except ValueError:
            raise SettingsError(f"Could not parse {var} as an {cls.__name__}") from None

    @property
    def wireguard_ipv4_range(self) -> tuple[ipaddress.IPv4Address, ipaddress.IPv4Address]:
        return (
            self._ip("WIREGUARD_IPV4_START", ipaddress.IPv4Address),
            self._ip("WIREGUARD_IPV4_END", ipaddress.IPv4Address),
        )

    @property
    def wireguard_ipv6_range(self) -> tuple[ipaddress.IPv6Address, ipaddress.IPv6Address]:
        return (
            self._ip("WIREGUARD_IPV6_START", ipaddress.IPv6Address),
            self._ip("WIREGUARD_IPV6_END", ipaddress.IPv6Address),
        )

    @property
    def wireguard_peers_path_template(self) -> str:
        return self._require("WIREGUARD_PEERS_PATH_TEMPLATE")
