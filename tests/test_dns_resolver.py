from types import SimpleNamespace
from unittest import mock

import dns.exception
import dns.resolver
import pytest

from buildfunctions.constants import AUTHORITATIVE_NAMESERVERS
from buildfunctions.dns_resolver import AuthoritativeResolver
from buildfunctions.errors import ErrorCode, ResolutionError

HOSTNAME = "my-sandbox.buildfunctions.app"


@pytest.fixture()
def patched_resolver():
    with mock.patch("dns.asyncresolver.Resolver") as resolver_cls:
        instance = resolver_cls.return_value
        instance.resolve = mock.AsyncMock()
        yield resolver_cls, instance


@pytest.mark.asyncio
async def test_returns_first_address(patched_resolver):
    resolver_cls, instance = patched_resolver
    instance.resolve.return_value = [
        SimpleNamespace(address="203.0.113.7"),
        SimpleNamespace(address="203.0.113.8"),
    ]

    ip = await AuthoritativeResolver().resolve(HOSTNAME)

    assert ip == "203.0.113.7"
    resolver_cls.assert_called_once_with(configure=False)
    assert instance.nameservers == list(AUTHORITATIVE_NAMESERVERS)
    instance.resolve.assert_awaited_once_with(HOSTNAME, "A")


@pytest.mark.asyncio
async def test_fresh_resolver_per_lookup(patched_resolver):
    resolver_cls, instance = patched_resolver
    instance.resolve.return_value = [SimpleNamespace(address="203.0.113.7")]
    resolver = AuthoritativeResolver(["198.51.100.1"], lifetime=2)

    await resolver.resolve(HOSTNAME)
    await resolver.resolve(HOSTNAME)

    assert resolver_cls.call_count == 2
    assert instance.nameservers == ["198.51.100.1"]
    assert instance.lifetime == 2


@pytest.mark.parametrize(
    "exception,reason",
    [
        (dns.resolver.NXDOMAIN(), "NXDOMAIN"),
        (dns.resolver.NoAnswer(), "no A records"),
        (dns.exception.Timeout(), ""),
    ],
)
@pytest.mark.asyncio
async def test_failures_become_resolution_errors(patched_resolver, exception, reason):
    _, instance = patched_resolver
    instance.resolve.side_effect = exception

    with pytest.raises(ResolutionError) as error:
        await AuthoritativeResolver().resolve(HOSTNAME)

    assert error.value.hostname == HOSTNAME
    assert error.value.code == ErrorCode.RESOLUTION_ERROR
    assert HOSTNAME in error.value.message
    assert reason in error.value.message


@pytest.mark.asyncio
async def test_empty_answer(patched_resolver):
    _, instance = patched_resolver
    instance.resolve.return_value = []

    with pytest.raises(ResolutionError):
        await AuthoritativeResolver().resolve(HOSTNAME)
