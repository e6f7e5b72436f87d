import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from multidict import CIMultiDict

from conftest import http_response
from core.errors import NetworkError, ProtocolError
from core.http import SiteClient, browser_headers


def fake_session(status=200, body=b"", headers=None, error=None):
    """aiohttp.ClientSession double for ``async with session.request()``."""
    session = MagicMock()
    if error is not None:
        session.request.return_value.__aenter__.side_effect = error
        return session
    resp = MagicMock()
    resp.status = status
    resp.url = "https://www.anime4you.one/x"
    resp.headers = CIMultiDict(headers or [])
    resp.read = AsyncMock(return_value=body)
    session.request.return_value.__aenter__.return_value = resp
    return session


class TestSiteClient:
    """Transport behaviour and error translation."""

    @pytest.mark.asyncio
    async def test_get_reads_body_and_headers(self, settings):
        session = fake_session(
            body=b"hello", headers=[("Set-Cookie", "a=1;"), ("Set-Cookie", "b=2;")],
        )
        client = SiteClient(settings, session=session)
        resp = await client.get("https://www.anime4you.one/x", params={"q": "1"})

        assert resp.ok
        assert resp.text() == "hello"
        assert resp.headers.getall("Set-Cookie") == ["a=1;", "b=2;"]
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://www.anime4you.one/x")
        assert kwargs["params"] == {"q": "1"}
        assert kwargs["timeout"].total == settings.request_timeout

    @pytest.mark.asyncio
    async def test_timeout_becomes_network_error(self, settings):
        client = SiteClient(settings, session=fake_session(error=asyncio.TimeoutError()))
        with pytest.raises(NetworkError) as exc:
            await client.get("https://www.anime4you.one/slow")
        assert "timed out" in str(exc.value)

    @pytest.mark.asyncio
    async def test_client_error_becomes_network_error(self, settings):
        client = SiteClient(
            settings, session=fake_session(error=aiohttp.ClientConnectionError("refused")),
        )
        with pytest.raises(NetworkError):
            await client.post("https://www.anime4you.one/x", data={"a": "b"})

    @pytest.mark.asyncio
    async def test_non_success_status_raises_when_expected_ok(self, settings):
        client = SiteClient(settings, session=fake_session(status=500))
        with pytest.raises(NetworkError) as exc:
            await client.get("https://www.anime4you.one/x")
        assert exc.value.status == 500

    @pytest.mark.asyncio
    async def test_non_success_status_returned_when_not_expected_ok(self, settings):
        client = SiteClient(settings, session=fake_session(status=404))
        resp = await client.get("https://www.anime4you.one/x", expect_ok=False)
        assert resp.status == 404
        assert not resp.ok

    @pytest.mark.asyncio
    async def test_close_leaves_injected_session_open(self, settings):
        session = fake_session()
        session.close = AsyncMock()
        client = SiteClient(settings, session=session)
        await client.close()
        session.close.assert_not_called()

    @pytest.mark.asyncio
    async def test_context_manager_creates_and_closes_session(self, settings):
        async with SiteClient(settings) as client:
            assert isinstance(client.session, aiohttp.ClientSession)
            created = client.session
        assert created.closed
        assert client.session is None


class TestHttpResponse:
    """Body decoding helpers."""

    def test_json_ignores_content_type(self):
        resp = http_response(b'{"a": 1}', headers=[("Content-Type", "text/html")])
        assert resp.json() == {"a": 1}

    def test_invalid_json_is_protocol_error(self):
        with pytest.raises(ProtocolError) as exc:
            http_response(b"<html>").json()
        assert exc.value.field == "body"


def test_browser_headers():
    headers = browser_headers("UA/1.0", "https://www.anime4you.one/show/1/aid/1/epi/1")
    assert headers["User-Agent"] == "UA/1.0"
    assert headers["Referer"].endswith("/epi/1")
    assert headers["Connection"] == "keep-alive"
    assert headers["DNT"] == "1"
