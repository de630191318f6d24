"""
Google Sheets Proxy Client

Talks to the serverless proxy function that signs requests against the
Google Sheets API. Values travel as row-major string grids.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from orgchart.config.settings import SheetsSettings
from orgchart.utils.errors import SheetsError, SheetsErrorCode, classify_sheets_failure

logger = logging.getLogger(__name__)


SheetValues = List[List[str]]


class SheetsClient:
    """
    Async client for the spreadsheet proxy.

    Handles:
    - Reading a whole tab
    - Overwriting a column range of a tab
    - Appending rows to a tab
    - Translating transport failures into SheetsError
    """

    def __init__(
        self,
        config: SheetsSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            headers = {}
            if self.config.api_key:
                headers["Authorization"] = f"Bearer {self.config.api_key}"
            self._http_client = httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                headers=headers,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def read_sheet(self, sheet: str) -> SheetValues:
        """
        Read every row of a tab.

        Args:
            sheet: Tab name

        Returns:
            Rows as lists of cell strings; row 0 is the header

        Raises:
            SheetsError: If the proxy is unconfigured or the request fails
        """
        data = await self._request("GET", "read", sheet)
        values = data.get("values") or []
        return [[str(cell) for cell in row] for row in values]

    async def write_sheet(self, sheet: str, values: SheetValues, range_: str) -> None:
        """Overwrite a column range (e.g. ``A:J``) of a tab."""
        await self._request("POST", "write", sheet, {"values": values, "range": range_})

    async def append_sheet(self, sheet: str, values: SheetValues) -> None:
        """Append rows after the last non-empty row of a tab."""
        await self._request("POST", "append", sheet, {"values": values})

    async def check_connection(self) -> bool:
        """Return whether the employee tab can be read."""
        try:
            await self.read_sheet(self.config.sheets.employees)
            return True
        except SheetsError as e:
            logger.warning(f"Sheets connection check failed: {e.code.value} {e.message}")
            return False

    async def _request(
        self,
        method: str,
        action: str,
        sheet: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send one request to the proxy and decode its JSON body."""
        if not self.is_configured:
            raise SheetsError(
                SheetsErrorCode.NOT_CONFIGURED,
                "Google Sheets integration is not configured",
                sheet=sheet,
            )

        client = await self.get_client()
        params = {"action": action, "sheet": sheet}

        try:
            response = await client.request(
                method,
                self.config.proxy_url,
                params=params,
                json=body,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Sheets {action} of '{sheet}' timed out: {str(e)}")
            raise SheetsError(
                SheetsErrorCode.TIMEOUT,
                f"Timed out during {action} of sheet '{sheet}'",
                sheet=sheet,
            )
        except httpx.RequestError as e:
            logger.error(f"Sheets {action} of '{sheet}' failed: {str(e)}")
            raise SheetsError(
                classify_sheets_failure(None, str(e)),
                f"Request error during {action} of sheet '{sheet}': {str(e)}",
                sheet=sheet,
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.is_error:
            error_text = str(data.get("error") or response.text or response.reason_phrase)
            code = classify_sheets_failure(response.status_code, error_text)
            logger.error(
                f"Sheets {action} of '{sheet}' returned HTTP {response.status_code}: {error_text}"
            )
            raise SheetsError(
                code,
                error_text or f"Failed to {action} sheet '{sheet}'",
                details={"status_code": response.status_code},
                sheet=sheet,
            )

        return data
