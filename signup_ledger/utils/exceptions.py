"""Custom exception classes."""


class LedgerError(Exception):
    """Base error carrying a message that is safe to show to users."""

    default_message = "Signup ledger error"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(LedgerError):
    """Raised when a required field is missing or invalid."""

    default_message = "Missing required fields"


class ConflictError(LedgerError):
    """Raised when a name is already signed up for a date."""

    default_message = "Name already exists for this date"


class StorageUnavailable(LedgerError):
    """Raised when persisted state cannot be read or written."""

    default_message = "Storage unavailable"


class RemoteSyncFailed(LedgerError):
    """Raised when the best-effort remote copy could not be written."""

    default_message = "Remote sync failed"


class ConfigurationError(LedgerError):
    """Raised when settings are inconsistent at startup."""

    default_message = "Invalid configuration"
