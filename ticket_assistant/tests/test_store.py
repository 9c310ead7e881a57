"""
Unit tests for the Ticket Store Adapter base

Tests:
- Successful requests and empty bodies
- Single retry on rate limit (429), then failure
- HTTP and network errors mapped to StoreUnavailable
- Timestamp normalization to epoch seconds
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from ticket_assistant.services.errors import StoreUnavailable
from ticket_assistant.services.store import to_epoch
from ticket_assistant.tests.conftest import FakeTicketStore


@pytest.fixture
def store():
    """Fixture for a store with no records"""
    return FakeTicketStore()


@pytest.fixture
def mock_response():
    """Fixture for mock HTTP response"""
    response = MagicMock()
    response.json.return_value = {"ticket": {"id": 1}}
    response.status_code = 200
    response.content = b'{"ticket": {"id": 1}}'
    return response


def _status_error(status_code: int, headers=None) -> httpx.HTTPStatusError:
    error_response = MagicMock()
    error_response.status_code = status_code
    error_response.headers = headers or {}
    return httpx.HTTPStatusError("HTTP error", request=MagicMock(), response=error_response)


class TestMakeRequest:
    """Test _make_request with its single rate-limit retry"""

    @pytest.mark.asyncio
    async def test_successful_request(self, store, mock_response):
        """Test successful API request returns the JSON body"""
        with patch("httpx.AsyncClient") as mock_client:
            mock_request = AsyncMock(return_value=mock_response)
            mock_client.return_value.__aenter__.return_value.request = mock_request

            result = await store._make_request("GET", "tickets.json")

        assert result == {"ticket": {"id": 1}}
        assert mock_request.call_args.kwargs["url"] == "https://fake.example.com/api/tickets.json"

    @pytest.mark.asyncio
    async def test_empty_body_returns_empty_dict(self, store):
        """Test 204 responses return {}"""
        response = MagicMock()
        response.status_code = 204
        response.content = b""

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(return_value=response)

            result = await store._make_request("DELETE", "tickets/1.json")

        assert result == {}
        response.json.assert_not_called()

    @pytest.mark.asyncio
    async def test_absolute_url_passed_through(self, store, mock_response):
        """Test pagination URLs are not joined to base_url"""
        with patch("httpx.AsyncClient") as mock_client:
            mock_request = AsyncMock(return_value=mock_response)
            mock_client.return_value.__aenter__.return_value.request = mock_request

            await store._make_request("GET", "https://other.example.com/page2")

        assert mock_request.call_args.kwargs["url"] == "https://other.example.com/page2"

    @pytest.mark.asyncio
    async def test_retry_once_on_rate_limit(self, store, mock_response):
        """Test one 429 waits for Retry-After and retries"""
        with patch("httpx.AsyncClient") as mock_client:
            mock_request = AsyncMock(side_effect=[
                _status_error(429, {"Retry-After": "7"}),
                mock_response,
            ])
            mock_client.return_value.__aenter__.return_value.request = mock_request

            with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
                result = await store._make_request("GET", "tickets.json")

        assert result == {"ticket": {"id": 1}}
        assert mock_request.call_count == 2
        mock_sleep.assert_awaited_once_with(7.0)

    @pytest.mark.asyncio
    async def test_rate_limit_default_wait(self, store, mock_response):
        """Test missing Retry-After falls back to the configured wait"""
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(side_effect=[
                _status_error(429),
                mock_response,
            ])

            with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
                await store._make_request("GET", "tickets.json")

        mock_sleep.assert_awaited_once_with(store.rate_limit_wait)

    @pytest.mark.asyncio
    async def test_second_rate_limit_fails(self, store):
        """Test a second 429 raises StoreUnavailable without a third attempt"""
        with patch("httpx.AsyncClient") as mock_client:
            mock_request = AsyncMock(side_effect=[_status_error(429), _status_error(429)])
            mock_client.return_value.__aenter__.return_value.request = mock_request

            with patch("asyncio.sleep", new_callable=AsyncMock):
                with pytest.raises(StoreUnavailable) as exc_info:
                    await store._make_request("GET", "tickets.json")

        assert exc_info.value.status_code == 429
        assert mock_request.call_count == 2

    @pytest.mark.asyncio
    async def test_server_error_not_retried(self, store):
        """Test 5xx responses fail immediately with the status code"""
        with patch("httpx.AsyncClient") as mock_client:
            mock_request = AsyncMock(side_effect=_status_error(500))
            mock_client.return_value.__aenter__.return_value.request = mock_request

            with pytest.raises(StoreUnavailable) as exc_info:
                await store._make_request("PUT", "tickets/1.json")

        assert exc_info.value.status_code == 500
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_network_error(self, store):
        """Test transport errors become StoreUnavailable"""
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                side_effect=httpx.ConnectError("connection refused")
            )

            with pytest.raises(StoreUnavailable) as exc_info:
                await store._make_request("GET", "tickets.json")

        assert exc_info.value.status_code is None


class TestToEpoch:
    """Test timestamp normalization"""

    def test_unix_seconds(self):
        """Test integers pass through as float"""
        assert to_epoch(1700000000) == 1700000000.0

    def test_iso_string(self):
        """Test ISO-8601 strings with Z suffix"""
        assert to_epoch("2023-11-14T22:13:20Z") == 1700000000.0

    def test_naive_datetime_is_utc(self):
        """Test naive datetimes are treated as UTC"""
        assert to_epoch(datetime(2023, 11, 14, 22, 13, 20)) == 1700000000.0

    def test_aware_datetime(self):
        """Test aware datetimes keep their offset"""
        assert to_epoch(datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)) == 1700000000.0

    def test_missing(self):
        """Test None and empty strings become 0"""
        assert to_epoch(None) == 0.0
        assert to_epoch("") == 0.0


class TestCapabilities:
    """Test optional operations on the base class"""

    @pytest.mark.asyncio
    async def test_unsupported_operation_raises(self):
        """Test base optional operations raise NotImplementedError"""
        from ticket_assistant.services.store import TicketStore

        with pytest.raises(NotImplementedError):
            await TicketStore.delete(FakeTicketStore(), 1)
