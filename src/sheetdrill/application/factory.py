"""
Sheet Store Factory
Centralizes the logic for selecting the store backend and credentials.
"""

from pathlib import Path

from sheetdrill.application.config import AppConfig
from sheetdrill.domain.ports import SheetStore, TokenProvider
from sheetdrill.infrastructure.adapters.google_sheets import GoogleSheetsAdapter
from sheetdrill.infrastructure.adapters.local_store import LocalSheetStore
from sheetdrill.infrastructure.auth import FileTokenProvider, StaticTokenProvider


def get_token_provider(config: AppConfig) -> TokenProvider:
    """A token file wins over an inline token so it can be refreshed externally."""
    if config.token_file is not None:
        return FileTokenProvider(config.token_file)
    return StaticTokenProvider(config.access_token)


def get_sheet_store(config: AppConfig) -> SheetStore:
    """
    Returns the SheetStore implementation selected by config.backend.
    """
    if config.backend == "local":
        return LocalSheetStore(config.local_dir or Path.cwd())

    return GoogleSheetsAdapter(
        token_provider=get_token_provider(config),
        base_url=config.api_base_url,
        timeout=config.request_timeout,
    )
