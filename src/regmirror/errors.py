"""Exception hierarchy shared by the registry client, storage and pipeline."""

from __future__ import annotations


class RegmirrorError(Exception):
    """Base class for all errors raised by :mod:`regmirror`."""


class ConfigError(RegmirrorError):
    """Raised when a settings file or environment override is malformed."""


class RegistryError(RegmirrorError):
    """A call to the remote registry did not produce a usable result."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class RegistryFetchError(RegistryError):
    """Network failure or non-success HTTP status."""


class RegistryParseError(RegistryError):
    """The registry answered, but the payload does not match its schema."""


class DocumentParseError(RegistryParseError):
    """A full-text document could not be parsed as XML."""


class SnapshotExistsError(RegmirrorError):
    """A snapshot for the ``(title, date)`` pair is already stored."""

    def __init__(self, title_number: int, effective_date: str):
        super().__init__(f"Snapshot already stored for title {title_number} on {effective_date}")
        self.title_number = title_number
        self.effective_date = effective_date


class ResetError(RegmirrorError):
    """The destructive catalog wipe failed part-way through."""


__all__ = [
    "ConfigError",
    "DocumentParseError",
    "RegistryError",
    "RegistryFetchError",
    "RegistryParseError",
    "RegmirrorError",
    "ResetError",
    "SnapshotExistsError",
]
