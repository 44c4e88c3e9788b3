import logging
from typing import Any
from urllib.parse import quote

import httpx

from sheetdrill.application.columns import (
    make_range,
    parse_spreadsheet_id,
    spreadsheet_edit_url,
)
from sheetdrill.domain.constants import (
    READ_RANGE,
    REQUEST_TIMEOUT,
    SHEETS_API_BASE,
    VALUE_INPUT_OPTION,
)
from sheetdrill.domain.errors import CredentialsUnavailableError, TransportError
from sheetdrill.domain.models import CellUpdate, SpreadsheetInfo
from sheetdrill.domain.ports import SheetStore, TokenProvider

METADATA_FIELDS = "spreadsheetId,spreadsheetUrl,properties.title,sheets.properties(sheetId,title)"


class GoogleSheetsAdapter(SheetStore):
    """Adapter for the Google Sheets v4 REST API."""

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: str = SHEETS_API_BASE,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._tokens = token_provider
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.logger.debug(f"GoogleSheetsAdapter initialized with base_url={self.base_url}")

    def parse_ref(self, ref: str) -> str:
        return parse_spreadsheet_id(ref)

    async def read_values(self, spreadsheet_id: str, sheet_title: str) -> list[list[str]]:
        range_ref = quote(make_range(sheet_title, READ_RANGE), safe="")
        data = await self._request(
            "GET", f"/spreadsheets/{spreadsheet_id}/values/{range_ref}", action="Read"
        )
        rows = data.get("values") or []
        return [[self._cell_text(cell) for cell in row] for row in rows]

    async def batch_write(self, spreadsheet_id: str, updates: list[CellUpdate]) -> int:
        if not updates:
            return 0
        payload = {
            "valueInputOption": VALUE_INPUT_OPTION,
            "data": [
                {"range": u.range, "majorDimension": "ROWS", "values": [[u.value]]}
                for u in updates
            ],
        }
        data = await self._request(
            "POST", f"/spreadsheets/{spreadsheet_id}/values:batchUpdate", json=payload, action="Write"
        )
        written = data.get("totalUpdatedCells")
        return int(written) if written is not None else len(updates)

    async def get_info(self, spreadsheet_id: str) -> SpreadsheetInfo:
        data = await self._request(
            "GET",
            f"/spreadsheets/{spreadsheet_id}",
            params={"fields": METADATA_FIELDS},
            action="Metadata read",
        )
        return self._build_info(data, spreadsheet_id)

    async def add_sheets(self, spreadsheet_id: str, titles: list[str]) -> None:
        if not titles:
            return
        requests = [{"addSheet": {"properties": {"title": title}}} for title in titles]
        await self._request(
            "POST",
            f"/spreadsheets/{spreadsheet_id}:batchUpdate",
            json={"requests": requests},
            action="Spreadsheet update",
        )

    async def create_spreadsheet(self, title: str, sheet_titles: list[str]) -> SpreadsheetInfo:
        payload = {
            "properties": {"title": title},
            "sheets": [{"properties": {"title": t}} for t in sheet_titles],
        }
        data = await self._request("POST", "/spreadsheets", json=payload, action="Create sheet")
        return self._build_info(data, data.get("spreadsheetId", ""))

    async def _request(self, method: str, path: str, action: str, **kwargs) -> dict[str, Any]:
        token = self._tokens.get_token()
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

        try:
            resp = await self._client.request(
                method,
                f"{self.base_url}{path}",
                headers={"Authorization": f"Bearer {token}"},
                **kwargs,
            )
        except httpx.HTTPError as e:
            self.logger.error(f"Google Sheets call failed: {e}")
            raise TransportError(f"{action} failed: {e}") from e

        if resp.status_code == 401:
            self._tokens.invalidate()
            raise CredentialsUnavailableError(
                f"{action} failed (401): access token expired", status_code=401
            )
        if resp.is_error:
            message = f"{action} failed ({resp.status_code}): {resp.text}"
            self.logger.error(message)
            raise TransportError(message, status_code=resp.status_code)

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(f"{action} returned invalid JSON: {e}") from e

    @staticmethod
    def _cell_text(cell: Any) -> str:
        return "" if cell is None else str(cell)

    @staticmethod
    def _build_info(data: dict[str, Any], spreadsheet_id: str) -> SpreadsheetInfo:
        titles = tuple(
            sheet.get("properties", {}).get("title", "")
            for sheet in data.get("sheets", [])
            if sheet.get("properties", {}).get("title")
        )
        return SpreadsheetInfo(
            spreadsheet_id=spreadsheet_id,
            title=str(data.get("properties", {}).get("title", "")).strip(),
            sheet_titles=titles,
            url=data.get("spreadsheetUrl") or spreadsheet_edit_url(spreadsheet_id),
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
