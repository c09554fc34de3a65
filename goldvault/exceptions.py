"""Exceptions raised by the GoldVault core."""


class GoldVaultError(Exception):
    """Base class for errors raised by this package."""


class StorageError(GoldVaultError, IOError):
    """A key-value backend failed to read or write."""


class ValidationError(GoldVaultError, ValueError):
    """A validation policy rejected a record."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
