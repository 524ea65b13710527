"""Infrabase database package.

Re-exports the SQLModel table classes, the async engine factory and the
session helpers for convenient top-level imports::

    from infrabase.db import Machine, init_engine, open_session
"""

from infrabase.db.engine import (
    create_async_engine_from_url,
    dispose_engine,
    get_engine,
    init_engine,
    normalize_url,
)
from infrabase.db.models import (
    Machine,
    MachineAddress,
    Network,
    NetworkLink,
    Owner,
    Provider,
    SshServer,
    WireguardInterface,
    WireguardKeepalive,
)
from infrabase.db.retry import db_retry, is_transient_error
from infrabase.db.session import async_session_factory, create_tables, open_session

__all__ = [
    # Engine
    "create_async_engine_from_url",
    "dispose_engine",
    "get_engine",
    "init_engine",
    "normalize_url",
    # Retry
    "db_retry",
    "is_transient_error",
    # Session
    "async_session_factory",
    "create_tables",
    "open_session",
    # Models
    "Machine",
    "MachineAddress",
    "Network",
    "NetworkLink",
    "Owner",
    "Provider",
    "SshServer",
    "WireguardInterface",
    "WireguardKeepalive",
]
