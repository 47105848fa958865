"""Hostname resolution straight against the authoritative nameservers.

A sandbox subdomain is created right before it is probed. Asking a caching
resolver (or the operating system) at that point usually returns a cached
NXDOMAIN, so every lookup here goes to the authoritative servers and nothing
is cached between calls.
"""
from typing import Sequence

import dns.asyncresolver
import dns.exception
import dns.resolver

from .constants import AUTHORITATIVE_NAMESERVERS, DNS_LIFETIME_SEC
from .errors import ResolutionError
from .logger import logger


class AuthoritativeResolver:
    def __init__(
        self,
        nameservers: Sequence[str] = AUTHORITATIVE_NAMESERVERS,
        lifetime: float = DNS_LIFETIME_SEC,
    ):
        self.nameservers = list(nameservers)
        self.lifetime = lifetime

    def __repr__(self):
        return f"AuthoritativeResolver(nameservers={self.nameservers})"

    def _make_resolver(self) -> dns.asyncresolver.Resolver:
        # configure=False skips /etc/resolv.conf; no cache is attached.
        resolver = dns.asyncresolver.Resolver(configure=False)
        resolver.nameservers = self.nameservers
        resolver.lifetime = self.lifetime
        return resolver

    async def resolve(self, hostname: str) -> str:
        """Returns the first IPv4 address the authoritative servers hold for ``hostname``.

        Raises:
            ResolutionError: no A record exists or the query failed. Callers
              should treat it as retryable.
        """
        try:
            answer = await self._make_resolver().resolve(hostname, "A")
        except dns.resolver.NXDOMAIN as e:
            raise ResolutionError(hostname, "NXDOMAIN") from e
        except dns.resolver.NoAnswer as e:
            raise ResolutionError(hostname, "no A records") from e
        except dns.exception.DNSException as e:
            raise ResolutionError(hostname, str(e) or type(e).__name__) from e

        addresses = [record.address for record in answer]
        if not addresses:
            raise ResolutionError(hostname)
        logger.debug("Resolved %s to %s", hostname, addresses)
        return addresses[0]
