import asyncio

import aiohttp
import pytest

from buildfunctions.direct_fetch import DirectIPFetcher, FetchResult
from buildfunctions.errors import NetworkError
from tests.helpers import TEST_IP, FakeResponse, FakeSession

HOSTNAME = "my-sandbox.buildfunctions.app"


@pytest.mark.asyncio
async def test_connects_to_ip_with_logical_host():
    session = FakeSession(get_response=FakeResponse(200, body='{"ok": true}'))
    fetcher = DirectIPFetcher(timeout=3, session=session)

    result = await fetcher.fetch(TEST_IP, HOSTNAME, "/run?x=1")

    assert result == FetchResult(200, '{"ok": true}')
    assert result.ok
    (call,) = session.gets
    assert call["url"] == f"https://{TEST_IP}:443/run?x=1"
    assert call["headers"] == {"Host": HOSTNAME}
    assert call["server_hostname"] == HOSTNAME
    assert call["timeout"].total == 3


@pytest.mark.asyncio
async def test_path_gets_leading_slash():
    session = FakeSession()
    await DirectIPFetcher(session=session).fetch(TEST_IP, HOSTNAME, "health")
    assert session.gets[0]["url"] == f"https://{TEST_IP}:443/health"


@pytest.mark.asyncio
async def test_error_status_is_returned_not_raised():
    session = FakeSession(get_response=FakeResponse(503, body="starting"))
    result = await DirectIPFetcher(session=session).fetch(TEST_IP, HOSTNAME)

    assert result.status_code == 503
    assert not result.ok


@pytest.mark.parametrize(
    "exception",
    [asyncio.TimeoutError(), aiohttp.ClientConnectionError("refused")],
)
@pytest.mark.asyncio
async def test_transport_failures_become_network_errors(exception):
    session = FakeSession(get_response=exception)

    with pytest.raises(NetworkError) as error:
        await DirectIPFetcher(session=session).fetch(TEST_IP, HOSTNAME)

    assert HOSTNAME in error.value.message
    assert error.value.status_code is None


@pytest.mark.asyncio
async def test_undecodable_body_is_still_a_response():
    session = FakeSession(get_response=FakeResponse(200, body=b"\xff\xfe\xfa ok"))

    result = await DirectIPFetcher(session=session).fetch(TEST_IP, HOSTNAME)

    assert result.status_code == 200
    assert result.body.endswith(" ok")
    assert "�" in result.body
