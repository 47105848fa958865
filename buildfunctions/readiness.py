import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
from urllib.parse import urlsplit

from .config import ClientConfig
from .constants import PROBE_DELAY_SEC, PROBE_LOG_EVERY, PROBE_MAX_ATTEMPTS
from .direct_fetch import DirectIPFetcher, FetchResult
from .dns_resolver import AuthoritativeResolver
from .errors import BuildfunctionsError, NetworkError, ValidationError
from .logger import logger


class ProbeStatus(str, Enum):
    PROBING = "probing"
    READY = "ready"
    EXHAUSTED = "exhausted"


@dataclass
class EndpointProbeState:
    hostname: str
    path: str
    attempt_count: int = 0
    status: ProbeStatus = ProbeStatus.PROBING
    last_error: Optional[str] = None


def split_endpoint(endpoint: str) -> Tuple[str, str]:
    """Splits ``https://host/path?query`` into ``("host", "/path?query")``."""
    parts = urlsplit(endpoint)
    if not parts.hostname:
        raise ValidationError(f"Endpoint has no hostname: {endpoint}")
    path = parts.path or "/"
    if parts.query:
        path += f"?{parts.query}"
    return parts.hostname, path


def is_ready_status(status_code: int) -> bool:
    # A 4xx still proves the execution unit is up and routable.
    return 200 <= status_code < 500


class EndpointReadinessProber:
    """Waits for a freshly provisioned endpoint to answer.

    Each attempt resolves the hostname against the authoritative nameservers
    and GETs the endpoint on the resolved IP. Statuses in ``[200, 500)`` mean
    ready. Anything else, including resolution and network failures, counts
    as "not yet" and is retried after ``delay_sec`` until ``max_attempts`` is
    reached, at which point a :class:`NetworkError` is raised.
    """

    def __init__(
        self,
        resolver: AuthoritativeResolver,
        fetcher: DirectIPFetcher,
        max_attempts: int = PROBE_MAX_ATTEMPTS,
        delay_sec: float = PROBE_DELAY_SEC,
    ):
        if max_attempts <= 0:
            raise ValidationError("max_attempts must be positive")
        self.resolver = resolver
        self.fetcher = fetcher
        self.max_attempts = max_attempts
        self.delay_sec = delay_sec

    @classmethod
    def from_config(cls, config: ClientConfig) -> "EndpointReadinessProber":
        return cls(
            resolver=AuthoritativeResolver(config.nameservers),
            fetcher=DirectIPFetcher(timeout=config.probe_timeout_sec),
            max_attempts=config.probe_max_attempts,
            delay_sec=config.probe_delay_sec,
        )

    async def fetch(self, endpoint: str) -> FetchResult:
        """Single GET of ``endpoint`` through authoritative DNS, no retries."""
        hostname, path = split_endpoint(endpoint)
        ip = await self.resolver.resolve(hostname)
        return await self.fetcher.fetch(ip, hostname, path)

    async def wait_until_ready(self, endpoint: str) -> EndpointProbeState:
        hostname, path = split_endpoint(endpoint)
        state = EndpointProbeState(hostname=hostname, path=path)

        while state.attempt_count < self.max_attempts:
            state.attempt_count += 1
            try:
                ip = await self.resolver.resolve(hostname)
                result = await self.fetcher.fetch(ip, hostname, path)
            except BuildfunctionsError as e:
                state.last_error = e.message
            else:
                if is_ready_status(result.status_code):
                    state.status = ProbeStatus.READY
                    logger.info(
                        "Endpoint %s ready after %s attempt(s)",
                        endpoint,
                        state.attempt_count,
                    )
                    return state
                state.last_error = f"status {result.status_code}"

            self._log_attempt(state)
            if state.attempt_count < self.max_attempts:
                await asyncio.sleep(self.delay_sec)

        state.status = ProbeStatus.EXHAUSTED
        raise NetworkError(
            f"Endpoint not ready after {state.attempt_count} attempts",
            attempts=state.attempt_count,
        )

    def _log_attempt(self, state: EndpointProbeState):
        if state.attempt_count == 1 or state.attempt_count % PROBE_LOG_EVERY == 0:
            log = logger.info
        else:
            log = logger.debug
        log(
            "Waiting for %s... (attempt %s/%s) %s",
            state.hostname,
            state.attempt_count,
            self.max_attempts,
            state.last_error,
        )
