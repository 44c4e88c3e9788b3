"""Bearer token providers for the remote store."""

import logging
from pathlib import Path

from sheetdrill.domain.errors import CredentialsUnavailableError
from sheetdrill.domain.ports import TokenProvider

logger = logging.getLogger(__name__)


class StaticTokenProvider(TokenProvider):
    """A token handed over once (config or environment). Invalidation is final."""

    def __init__(self, token: str | None):
        self._token = (token or "").strip()

    def get_token(self) -> str:
        if not self._token:
            raise CredentialsUnavailableError("No access token. Connect Google first.")
        return self._token

    def invalidate(self) -> None:
        if self._token:
            logger.warning("Access token rejected; re-authentication required.")
        self._token = ""


class FileTokenProvider(TokenProvider):
    """
    Reads the token from a file on every call, so an external helper can
    refresh it without restarting the session.
    """

    def __init__(self, path: Path):
        self.path = path
        self._rejected: str | None = None

    def get_token(self) -> str:
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise CredentialsUnavailableError(f"Cannot read token file {self.path}: {e}") from e
        if not token:
            raise CredentialsUnavailableError(f"Token file {self.path} is empty.")
        if token == self._rejected:
            raise CredentialsUnavailableError("Access token expired. Refresh the token file.")
        return token

    def invalidate(self) -> None:
        try:
            self._rejected = self.path.read_text(encoding="utf-8").strip() or None
        except OSError:
            self._rejected = None
        logger.warning(f"Access token from {self.path} rejected; waiting for a refreshed token.")
