"""Tests for the spreadsheet proxy client."""

import asyncio
import json

import httpx
import pytest

from orgchart.config.settings import SheetsSettings
from orgchart.infrastructure.sheets.sheets_client import SheetsClient
from orgchart.utils.errors import SheetsError, SheetsErrorCode


PROXY_URL = "https://proxy.test/sheets"


def make_client(handler, api_key=None):
    config = SheetsSettings(proxy_url=PROXY_URL, api_key=api_key)
    return SheetsClient(config, transport=httpx.MockTransport(handler))


class TestSheetsClient:
    """Tests for SheetsClient."""

    def test_read_returns_strings(self):
        """Test cells are returned as strings with action and sheet params."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"values": [["ID", "Nome"], [1, "Ana"]]})

        client = make_client(handler, api_key="secret")
        values = asyncio.run(client.read_sheet("Funcionarios"))

        assert values == [["ID", "Nome"], ["1", "Ana"]]
        assert seen[0].method == "GET"
        assert seen[0].url.params["action"] == "read"
        assert seen[0].url.params["sheet"] == "Funcionarios"
        assert seen[0].headers["Authorization"] == "Bearer secret"

    def test_read_empty_tab(self):
        client = make_client(lambda request: httpx.Response(200, json={}))

        assert asyncio.run(client.read_sheet("Vazio")) == []

    def test_write_and_append_send_values(self):
        bodies = []

        def handler(request):
            bodies.append((request.url.params["action"], json.loads(request.content)))
            return httpx.Response(200, json={"success": True})

        client = make_client(handler)

        async def scenario():
            await client.write_sheet("Departamentos", [["ID"], ["d1"]], "A:D")
            await client.append_sheet("Departamentos", [["d2"]])

        asyncio.run(scenario())

        assert bodies == [
            ("write", {"values": [["ID"], ["d1"]], "range": "A:D"}),
            ("append", {"values": [["d2"]]}),
        ]

    def test_not_configured(self):
        client = SheetsClient(SheetsSettings())

        with pytest.raises(SheetsError) as exc_info:
            asyncio.run(client.read_sheet("Funcionarios"))

        assert exc_info.value.code == SheetsErrorCode.NOT_CONFIGURED
        assert exc_info.value.status_code == 503

    @pytest.mark.parametrize(
        "status_code,error,expected",
        [
            (403, "Google Sheets API error: 403", SheetsErrorCode.PERMISSION_DENIED),
            (404, "Spreadsheet not found", SheetsErrorCode.NOT_FOUND),
            (429, "Quota exceeded", SheetsErrorCode.QUOTA_EXCEEDED),
            (500, "Unexpected failure", SheetsErrorCode.UNKNOWN),
        ],
    )
    def test_error_status_classified(self, status_code, error, expected):
        client = make_client(lambda request: httpx.Response(status_code, json={"error": error}))

        with pytest.raises(SheetsError) as exc_info:
            asyncio.run(client.read_sheet("Funcionarios"))

        assert exc_info.value.code == expected
        assert exc_info.value.sheet == "Funcionarios"
        assert exc_info.value.details == {"status_code": status_code}

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        client = make_client(handler)

        with pytest.raises(SheetsError) as exc_info:
            asyncio.run(client.read_sheet("Funcionarios"))

        assert exc_info.value.code == SheetsErrorCode.TIMEOUT
        assert exc_info.value.retryable is True

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(SheetsError) as exc_info:
            asyncio.run(client.read_sheet("Funcionarios"))

        assert exc_info.value.code == SheetsErrorCode.UNKNOWN

    def test_check_connection(self):
        healthy = make_client(lambda request: httpx.Response(200, json={"values": []}))
        broken = make_client(lambda request: httpx.Response(403, json={"error": "Forbidden"}))

        assert asyncio.run(healthy.check_connection()) is True
        assert asyncio.run(broken.check_connection()) is False

    def test_close_resets_client(self):
        client = make_client(lambda request: httpx.Response(200, json={"values": []}))

        async def scenario():
            first = await client.get_client()
            await client.close()
            second = await client.get_client()
            await client.close()
            return first, second

        first, second = asyncio.run(scenario())

        assert first is not second
        assert first.is_closed
