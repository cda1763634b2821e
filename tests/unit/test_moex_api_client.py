"""
Unit Tests for MOEX ISS API Client

These tests verify that the MoexAPIClient:
- Requests the right ISS endpoints and parameters
- Normalizes column-oriented blocks into row mappings
- Reports malformed payloads as ParseError

Run with:
    pytest tests/unit/test_moex_api_client.py -v
"""

from datetime import date

import pytest
import pytest_asyncio

from core.errors import ParseError
from core.pairs import KZT_RUB, USD_RUB
from exchanges.moex.api_client import MoexAPIClient


# ============================================
# Fixtures
# ============================================

@pytest_asyncio.fixture
async def api_client():
    """Create a MoexAPIClient instance for testing"""
    async with MoexAPIClient() as client:
        yield client


def _recording_get(response):
    calls = []

    async def mock_get(path, params=None):
        calls.append((path, params))
        return response

    return mock_get, calls


# ============================================
# Tests for Current Session
# ============================================

class TestFetchCurrentSession:
    """Tests for fetch_current_session method"""

    @pytest.mark.asyncio
    async def test_returns_zipped_row(self, api_client, monkeypatch):
        """Verify the marketdata block is zipped into a mapping"""
        mock_response = {
            "marketdata": {
                "columns": ["SECID", "LAST", "UPDATETIME"],
                "data": [["USD000UTSTOM", 91.2, "18:49:59"]],
            }
        }
        mock_get, calls = _recording_get(mock_response)
        monkeypatch.setattr(api_client, "_get", mock_get)

        row = await api_client.fetch_current_session(USD_RUB)

        assert row == {"SECID": "USD000UTSTOM", "LAST": 91.2, "UPDATETIME": "18:49:59"}

    @pytest.mark.asyncio
    async def test_requests_board_endpoint(self, api_client, monkeypatch):
        """Verify the CETS board path and ISS parameters"""
        mock_get, calls = _recording_get({"marketdata": {"columns": ["LAST"], "data": [[19.0]]}})
        monkeypatch.setattr(api_client, "_get", mock_get)

        await api_client.fetch_current_session(KZT_RUB)

        path, params = calls[0]
        assert path == "/iss/engines/currency/markets/selt/boards/CETS/securities/KZTRUB_TOM.json"
        assert params["iss.meta"] == "off"
        assert params["iss.only"] == "marketdata"

    @pytest.mark.asyncio
    async def test_null_last_is_passed_through(self, api_client, monkeypatch):
        """LAST is null before the first trade; the client does not interpret it"""
        mock_get, _ = _recording_get({"marketdata": {"columns": ["SECID", "LAST"], "data": [["USD000UTSTOM", None]]}})
        monkeypatch.setattr(api_client, "_get", mock_get)

        row = await api_client.fetch_current_session(USD_RUB)

        assert row["LAST"] is None

    @pytest.mark.asyncio
    async def test_column_row_mismatch_raises_parse_error(self, api_client, monkeypatch):
        mock_get, _ = _recording_get({"marketdata": {"columns": ["SECID", "LAST", "UPDATETIME"], "data": [["USD000UTSTOM", 91.2]]}})
        monkeypatch.setattr(api_client, "_get", mock_get)

        with pytest.raises(ParseError):
            await api_client.fetch_current_session(USD_RUB)

    @pytest.mark.asyncio
    async def test_missing_block_raises_parse_error(self, api_client, monkeypatch):
        mock_get, _ = _recording_get({"securities": {"columns": [], "data": []}})
        monkeypatch.setattr(api_client, "_get", mock_get)

        with pytest.raises(ParseError):
            await api_client.fetch_current_session(USD_RUB)

    @pytest.mark.asyncio
    async def test_empty_marketdata_raises_parse_error(self, api_client, monkeypatch):
        mock_get, _ = _recording_get({"marketdata": {"columns": ["SECID", "LAST"], "data": []}})
        monkeypatch.setattr(api_client, "_get", mock_get)

        with pytest.raises(ParseError):
            await api_client.fetch_current_session(USD_RUB)


# ============================================
# Tests for History Window
# ============================================

class TestFetchHistoryWindow:
    """Tests for fetch_history_window method"""

    @pytest.mark.asyncio
    async def test_returns_rows_newest_first(self, api_client, monkeypatch):
        mock_response = {
            "history": {
                "columns": ["TRADEDATE", "SECID", "CLOSE"],
                "data": [
                    ["2023-06-15", "USD000UTSTOM", 82.1],
                    ["2023-06-14", "USD000UTSTOM", 83.0],
                ],
            }
        }
        mock_get, _ = _recording_get(mock_response)
        monkeypatch.setattr(api_client, "_get", mock_get)

        rows = await api_client.fetch_history_window(USD_RUB, date(2023, 6, 9), date(2023, 6, 15))

        assert len(rows) == 2
        assert rows[0]["CLOSE"] == 82.1
        assert rows[0]["TRADEDATE"] == "2023-06-15"

    @pytest.mark.asyncio
    async def test_requests_window_descending(self, api_client, monkeypatch):
        mock_get, calls = _recording_get({"history": {"columns": ["CLOSE"], "data": []}})
        monkeypatch.setattr(api_client, "_get", mock_get)

        await api_client.fetch_history_window(USD_RUB, date(2023, 6, 9), date(2023, 6, 15))

        path, params = calls[0]
        assert path == "/iss/history/engines/currency/markets/selt/boards/CETS/securities/USD000UTSTOM.json"
        assert params["from"] == "2023-06-09"
        assert params["till"] == "2023-06-15"
        assert params["sort_order"] == "desc"

    @pytest.mark.asyncio
    async def test_empty_window_returns_empty_list(self, api_client, monkeypatch):
        mock_get, _ = _recording_get({"history": {"columns": ["TRADEDATE", "CLOSE"], "data": []}})
        monkeypatch.setattr(api_client, "_get", mock_get)

        rows = await api_client.fetch_history_window(USD_RUB, date(2023, 6, 9), date(2023, 6, 15))

        assert rows == []


class TestClientInitialization:
    """Tests for client defaults"""

    def test_default_base_url(self):
        client = MoexAPIClient()
        assert client.base_url == "https://iss.moex.com"
        assert client.name == "moex"

    def test_base_url_trailing_slash_stripped(self):
        client = MoexAPIClient(base_url="https://iss.example.test/")
        assert client.base_url == "https://iss.example.test"
