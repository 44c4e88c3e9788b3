"""Error taxonomy shared by every layer."""


class SheetdrillError(Exception):
    """Base class for all sheetdrill errors."""


class ValidationError(SheetdrillError):
    """A table failed validation; the load is aborted and no items are installed."""

    def __init__(self, table: str, missing: list[str] | None = None, message: str | None = None):
        self.table = table
        self.missing = list(missing or [])
        if message is None:
            message = f"{table} is missing required columns: {', '.join(self.missing)}"
        super().__init__(message)


class TransportError(SheetdrillError):
    """A read or write against the remote store failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class CredentialsUnavailableError(TransportError):
    """No usable bearer token; every remote call is blocked until it is refreshed."""
