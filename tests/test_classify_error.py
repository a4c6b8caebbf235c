"""Tests for classify_error()."""

import asyncio

import httpx

from hebbot.errors import ConfigError, DuplicateIdError, TargetUnresolvableError, classify_error


def _make_http_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("PUT", "https://example.org/_matrix/client/v3/rooms/x/send")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError(f"{status_code} error", request=request, response=response)


# ── Hebbot exceptions ───────────────────────────────────────

class TestHebbotErrors:
    """Hebbot's own exceptions."""

    def test_unresolvable(self):
        assert "could not be fetched" in classify_error(TargetUnresolvableError("x"))

    def test_duplicate(self):
        assert classify_error(DuplicateIdError("News entry $m1 already exists")) == \
            "News entry $m1 already exists"

    def test_config(self):
        assert "Configuration error" in classify_error(ConfigError("bad"))


# ── httpx ───────────────────────────────────────────────────

class TestHTTPStatusError:
    """Homeserver HTTP status errors."""

    def test_429(self):
        assert "rate limited" in classify_error(_make_http_error(429))

    def test_403(self):
        assert "credentials" in classify_error(_make_http_error(403))

    def test_404(self):
        assert "could not find" in classify_error(_make_http_error(404))

    def test_502(self):
        assert "server issues" in classify_error(_make_http_error(502))

    def test_other(self):
        assert "HTTP 418" in classify_error(_make_http_error(418))


class TestNetworkErrors:
    """Connection and timeout errors."""

    def test_connect(self):
        assert "Cannot connect" in classify_error(httpx.ConnectError("refused"))

    def test_read_timeout(self):
        assert "timed out" in classify_error(httpx.ReadTimeout("slow"))

    def test_asyncio_timeout(self):
        assert "timed out" in classify_error(asyncio.TimeoutError())


def test_fallback():
    """Unknown exceptions get a generic message naming the type."""
    assert classify_error(ValueError("x")) == "Something went wrong (ValueError). Check logs for details."
