"""
Ports (interfaces) for the remote tabular store and credentials.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import CellUpdate, SpreadsheetInfo


class TokenProvider(ABC):
    """Supplies the bearer credential used for remote calls."""

    @abstractmethod
    def get_token(self) -> str:
        """
        Return the current bearer token.

        Raises:
            CredentialsUnavailableError: If no token is available or it was invalidated.
        """
        pass

    def invalidate(self) -> None:
        """Mark the current token as expired. Default: nothing to forget."""
        return None


class SheetStore(ABC):
    """
    Port for reading and writing spreadsheet tabs.

    Implementations:
        - GoogleSheetsAdapter: Google Sheets v4 REST API over httpx.
        - LocalSheetStore: CSV files in a local directory (offline use).
    """

    @abstractmethod
    async def read_values(self, spreadsheet_id: str, sheet_title: str) -> list[list[str]]:
        """
        Read a whole tab as a rectangular-ish array of string cells.

        Row 0 is the header. An empty tab yields an empty list.
        """
        pass

    @abstractmethod
    async def batch_write(self, spreadsheet_id: str, updates: list[CellUpdate]) -> int:
        """
        Apply single-cell updates in one call.

        Failure is atomic per call: on TransportError the caller must assume
        nothing was applied.

        Returns:
            Number of ranges written.
        """
        pass

    @abstractmethod
    async def get_info(self, spreadsheet_id: str) -> SpreadsheetInfo:
        """Fetch the spreadsheet title and its tab titles."""
        pass

    @abstractmethod
    async def add_sheets(self, spreadsheet_id: str, titles: list[str]) -> None:
        """Create the given tabs in an existing spreadsheet."""
        pass

    @abstractmethod
    async def create_spreadsheet(self, title: str, sheet_titles: list[str]) -> SpreadsheetInfo:
        """Create a new spreadsheet holding the given tabs."""
        pass

    def parse_ref(self, ref: str) -> str:
        """Turn a user-supplied spreadsheet reference into an id; "" if invalid."""
        return (ref or "").strip()

    async def close(self) -> None:
        return None
