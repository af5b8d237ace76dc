"""Tests for the HTTP client utilities."""

from datetime import datetime

import httpx
import pytest

from src.epathway_scraper.config import HttpConfig
from src.epathway_scraper.http_client import HTTPClient
from src.epathway_scraper.models import RunStats


@pytest.mark.asyncio
async def test_cookies_persist_across_requests():
    """Cookies set by one response are sent on every later request."""
    seen_cookies = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_cookies.append(request.headers.get("cookie"))
        if request.url.path == "/first":
            return httpx.Response(200, text="ok", headers={"Set-Cookie": "session=xyz; path=/"})
        return httpx.Response(200, text="ok")

    async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
        await client.get("https://portal.example/first")
        await client.post("https://portal.example/second", data={"a": "1"})
        assert client.cookies.get("session") == "xyz"

    assert seen_cookies == [None, "session=xyz"]


@pytest.mark.asyncio
async def test_redirects_are_followed():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/start":
            return httpx.Response(302, headers={"Location": "https://portal.example/finish"})
        return httpx.Response(200, text="finished")

    async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
        response = await client.post("https://portal.example/start", data={"x": "y"})

    assert response.text == "finished"
    assert str(response.url) == "https://portal.example/finish"


@pytest.mark.asyncio
async def test_post_sends_form_fields():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(request.content.decode("utf-8"))
        return httpx.Response(200, text="ok")

    async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
        await client.post(
            "https://portal.example/form",
            params={"PageNumber": 2},
            data={"__EVENTARGUMENT": "", "__EVENTTARGET": "ctl00$pageButton_2"},
        )

    assert bodies == ["__EVENTARGUMENT=&__EVENTTARGET=ctl00%24pageButton_2"]


@pytest.mark.asyncio
async def test_http_error_is_raised_without_retry_by_default():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503, text="unavailable")

    stats = RunStats(started_at=datetime.now())
    async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await client.get("https://portal.example/", stats=stats)

    assert len(calls) == 1
    assert stats.http_requests == 1
    assert stats.retry_attempts == 0


@pytest.mark.asyncio
async def test_connection_error_is_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(httpx.ConnectError):
            await client.get("https://portal.example/")


@pytest.mark.asyncio
async def test_configured_retries_on_server_error(monkeypatch):
    """With max_retries set, retryable statuses are retried with backoff."""
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(len(attempts) + 1)
        if len(attempts) < 3:
            return httpx.Response(500, text="error")
        return httpx.Response(200, text="ok")

    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr("src.epathway_scraper.http_client.asyncio.sleep", fake_sleep)

    config = HttpConfig({"max_retries": 2, "retry_base_delay": 0.5})
    stats = RunStats(started_at=datetime.now())
    async with HTTPClient(config, transport=httpx.MockTransport(handler)) as client:
        response = await client.get("https://portal.example/", stats=stats)

    assert response.text == "ok"
    assert attempts == [1, 2, 3]
    assert delays == [0.5, 1.0]
    assert stats.http_requests == 3
    assert stats.retry_attempts == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(404, text="missing")

    config = HttpConfig({"max_retries": 3})
    async with HTTPClient(config, transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await client.get("https://portal.example/missing")

    assert len(calls) == 1
