"""Exception classes for the fundhost domain layer.

Provides domain-specific exceptions for clear error handling and reporting.
"""


class FundhostError(Exception):
    """Base exception for domain errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(FundhostError):
    """A field constraint failed (length, enum membership, URL, email, allow-list)."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class InvariantError(FundhostError):
    """An entity-level rule was violated."""

    pass


class NotFoundError(FundhostError):
    """The requested record does not exist (or is soft-deleted)."""

    pass


class ImportLockedError(FundhostError):
    """The transactions import is already being processed."""

    def __init__(self, import_id: int):
        self.import_id = import_id
        super().__init__(f"Import #{import_id} is already being processed")


class ProviderError(FundhostError):
    """An external provider call failed. The message is safe to show to users."""

    pass


class ConfigError(FundhostError):
    """Configuration is missing or invalid."""

    pass


__all__ = [
    "FundhostError",
    "ValidationError",
    "InvariantError",
    "NotFoundError",
    "ImportLockedError",
    "ProviderError",
    "ConfigError",
]
