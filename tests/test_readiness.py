import pytest

from buildfunctions.direct_fetch import DirectIPFetcher
from buildfunctions.errors import NetworkError, ValidationError
from buildfunctions.readiness import (
    EndpointReadinessProber,
    ProbeStatus,
    is_ready_status,
    split_endpoint,
)
from tests.helpers import (
    TEST_ENDPOINT,
    TEST_IP,
    FakeFetcher,
    FakeResolver,
    FakeResponse,
    FakeSession,
    network_down,
)


def make_prober(resolver=None, fetcher=None, max_attempts=3):
    return EndpointReadinessProber(
        resolver or FakeResolver(),
        fetcher or FakeFetcher([200]),
        max_attempts=max_attempts,
        delay_sec=0.001,
    )


@pytest.mark.parametrize(
    "endpoint,expected",
    [
        ("https://a.buildfunctions.app", ("a.buildfunctions.app", "/")),
        ("https://a.buildfunctions.app/", ("a.buildfunctions.app", "/")),
        ("https://a.buildfunctions.app/run", ("a.buildfunctions.app", "/run")),
        (TEST_ENDPOINT, ("my-sandbox.buildfunctions.app", "/run?x=1")),
    ],
)
def test_split_endpoint(endpoint, expected):
    assert split_endpoint(endpoint) == expected


def test_split_endpoint_without_host():
    with pytest.raises(ValidationError):
        split_endpoint("/just/a/path")


@pytest.mark.parametrize(
    "status,ready",
    [(200, True), (204, True), (301, True), (404, True), (499, True), (500, False), (503, False)],
)
def test_ready_statuses(status, ready):
    assert is_ready_status(status) is ready


def test_non_positive_attempts_rejected():
    with pytest.raises(ValidationError):
        make_prober(max_attempts=0)


@pytest.mark.asyncio
async def test_ready_on_first_attempt():
    fetcher = FakeFetcher([200])
    state = await make_prober(fetcher=fetcher).wait_until_ready(TEST_ENDPOINT)

    assert state.status == ProbeStatus.READY
    assert state.attempt_count == 1
    assert fetcher.calls == [(TEST_IP, "my-sandbox.buildfunctions.app", "/run?x=1")]


@pytest.mark.asyncio
async def test_client_error_status_counts_as_ready():
    state = await make_prober(fetcher=FakeFetcher([404])).wait_until_ready(
        TEST_ENDPOINT
    )
    assert state.status == ProbeStatus.READY


@pytest.mark.asyncio
async def test_ready_after_server_errors():
    fetcher = FakeFetcher([502, 200])
    state = await make_prober(fetcher=fetcher).wait_until_ready(TEST_ENDPOINT)

    assert state.attempt_count == 2
    assert len(fetcher.calls) == 2


@pytest.mark.asyncio
async def test_resolution_failures_are_retried():
    resolver = FakeResolver(failures=2)
    fetcher = FakeFetcher([200])
    state = await make_prober(resolver, fetcher).wait_until_ready(TEST_ENDPOINT)

    assert state.attempt_count == 3
    assert len(resolver.calls) == 3
    assert len(fetcher.calls) == 1


@pytest.mark.asyncio
async def test_network_failures_are_retried():
    fetcher = FakeFetcher([network_down(), 200])
    state = await make_prober(fetcher=fetcher).wait_until_ready(TEST_ENDPOINT)
    assert state.attempt_count == 2


@pytest.mark.asyncio
async def test_exhausted_after_max_attempts(monkeypatch):
    sleeps = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    monkeypatch.setattr("buildfunctions.readiness.asyncio.sleep", fake_sleep)
    fetcher = FakeFetcher([503])

    with pytest.raises(NetworkError) as error:
        await make_prober(fetcher=fetcher, max_attempts=3).wait_until_ready(
            TEST_ENDPOINT
        )

    assert error.value.attempts == 3
    assert "3 attempts" in error.value.message
    assert len(fetcher.calls) == 3
    # No sleep after the final attempt.
    assert [delay for delay in sleeps if delay] == [0.001, 0.001]


@pytest.mark.asyncio
async def test_single_fetch_does_not_retry():
    fetcher = FakeFetcher([503])
    result = await make_prober(fetcher=fetcher).fetch(TEST_ENDPOINT)

    assert result.status_code == 503
    assert not result.ok
    assert len(fetcher.calls) == 1


def test_from_config(config):
    prober = EndpointReadinessProber.from_config(config)

    assert prober.max_attempts == config.probe_max_attempts
    assert prober.delay_sec == config.probe_delay_sec
    assert prober.resolver.nameservers == list(config.nameservers)
    assert prober.fetcher.timeout == config.probe_timeout_sec


@pytest.mark.asyncio
async def test_ready_when_body_is_not_utf8():
    session = FakeSession(get_response=FakeResponse(200, body=b"\xff\xfe\xfa ok"))
    prober = EndpointReadinessProber(
        FakeResolver(), DirectIPFetcher(session=session), max_attempts=2, delay_sec=0
    )

    state = await prober.wait_until_ready(TEST_ENDPOINT)

    assert state.status == ProbeStatus.READY
    assert state.attempt_count == 1
