import httpx
import pytest

from mobileproxy.app.core.http_client import build_timeout, init_http_client


def test_build_timeout():
    timeout = build_timeout(20.0)

    assert timeout.read == 20.0
    assert timeout.write == 20.0
    assert timeout.connect <= 20.0


def test_build_timeout_short_call_caps_connect():
    assert build_timeout(1.0).connect == 1.0


@pytest.mark.asyncio
async def test_init_http_client_closes_on_exit():
    async with init_http_client() as client:
        assert isinstance(client, httpx.AsyncClient)
        assert not client.is_closed

    assert client.is_closed
