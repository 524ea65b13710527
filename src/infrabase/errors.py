"""Infrabase exception hierarchy.

All infrabase-specific exceptions inherit from :class:`InfrabaseError`.
An unreachable peer is *not* an exception; see
:data:`infrabase.topology.resolver.UNREACHABLE`.
"""

from __future__ import annotations

from typing import Any


class InfrabaseError(Exception):
    """Base exception for all infrabase errors."""


class ValidationError(InfrabaseError):
    """Raised when a field value fails format validation."""


class InvalidHostnameError(ValidationError):
    """Raised when a hostname does not match ``[-_a-z0-9]+``."""


class InvalidNetworkNameError(ValidationError):
    """Raised when a network name is neither ``NONE`` nor ``[-_a-z0-9]+``."""


class InvalidPortError(ValidationError):
    """Raised when a port is outside 1..65535."""


class InvalidKeyError(ValidationError):
    """Raised when a WireGuard key is not 44 characters of base64."""


class InvalidKeepaliveError(ValidationError):
    """Raised when a keepalive interval is outside 1..65535."""


class InvalidUsernameError(ValidationError):
    """Raised when an SSH username does not match the adduser NAME_REGEX."""


class ConfigurationError(InfrabaseError):
    """Raised when a loaded record violates a topology invariant.

    Fatal to the whole resolution run.  ``record`` holds the offending row
    so the operator can find it in the store.
    """

    def __init__(self, message: str, record: Any = None) -> None:
        super().__init__(message)
        self.record = record


class NotFoundError(InfrabaseError):
    """Raised when a named machine, address or link does not exist."""


class ConflictError(InfrabaseError):
    """Raised when an insert would violate a uniqueness rule."""


class PortConflictError(ConflictError):
    """Raised when a port is already used by another service on an address."""


class AddressPoolExhaustedError(InfrabaseError):
    """Raised when no unused tunnel address is left in the configured range."""


class SettingsError(InfrabaseError):
    """Raised when a required setting is missing or cannot be parsed."""
