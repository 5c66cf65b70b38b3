import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, patch
import httpx

from app.connectors.http_collaborators import HttpEmailSender, HttpUpdateGenerator


def response(status_code: int, json=None, text=None) -> httpx.Response:
    request = httpx.Request("POST", "https://updates.example.com/")
    if json is not None:
        return httpx.Response(status_code, json=json, request=request)
    return httpx.Response(status_code, text=text or "", request=request)


@pytest.mark.asyncio
class TestHttpUpdateGenerator:
    @pytest_asyncio.fixture
    async def generator(self):
        generator = HttpUpdateGenerator("https://updates.example.com/", "fake-token")
        yield generator
        await generator.close()

    @pytest.mark.asyncio
    async def test_generate_update_posts_payload(self, generator):
        with patch('httpx.AsyncClient.request', new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response(201, json={"id": 42, "formatted_output": "Today I..."})

            result = await generator.generate_update("admin", "daily", "acme", ["t1"], "notes")

            assert result.update_id == "42"
            assert result.formatted_output == "Today I..."
            method, path = mock_request.await_args.args
            assert (method, path) == ("POST", "/updates/daily")
            assert mock_request.await_args.kwargs["json"]["content"] == "notes"
            assert mock_request.await_args.kwargs["headers"]["Authorization"] == "Bearer fake-token"

    @pytest.mark.asyncio
    async def test_missing_update_id_raises(self, generator):
        with patch('httpx.AsyncClient.request', new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response(200, json={"status": "ok"})

            with pytest.raises(ValueError, match="no update id"):
                await generator.generate_update("admin", "daily", None, [], "notes")

    @pytest.mark.asyncio
    async def test_http_error_raises_value_error(self, generator):
        with patch('httpx.AsyncClient.request', new_callable=AsyncMock) as mock_request:
            mock_request.return_value = response(502, text="bad gateway")

            with pytest.raises(ValueError, match="HTTP 502"):
                await generator.generate_update("admin", "weekly", None, [], "notes")

    @pytest.mark.asyncio
    async def test_unreachable_raises_value_error(self, generator):
        with patch('httpx.AsyncClient.request', new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = httpx.ConnectError("connection refused")

            with pytest.raises(ValueError, match="Cannot reach"):
                await generator.generate_update("admin", "daily", None, [], "notes")


@pytest.mark.asyncio
class TestHttpEmailSender:
    @pytest.mark.asyncio
    async def test_send_update_email(self):
        sender = HttpEmailSender("https://mail.example.com")
        try:
            with patch('httpx.AsyncClient.request', new_callable=AsyncMock) as mock_request:
                mock_request.return_value = response(202, json={})

                await sender.send_update_email("42", ["team@example.com"])

                assert mock_request.await_args.args == ("POST", "/email/send")
                assert mock_request.await_args.kwargs["json"] == {"update_id": "42", "recipients": ["team@example.com"]}
                assert "Authorization" not in mock_request.await_args.kwargs["headers"]
        finally:
            await sender.close()
