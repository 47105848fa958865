import asyncio
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .constants import HTTPS_PORT, PROBE_TIMEOUT_SEC
from .errors import NetworkError
from .logger import logger


@dataclass(frozen=True)
class FetchResult:
    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class DirectIPFetcher:
    """Issues HTTPS GETs to an IP address on behalf of a logical hostname.

    The TCP connection goes to ``ip`` while the ``Host`` header and the TLS
    server name (and certificate check) use ``hostname``, so a host the local
    DNS does not know about yet can still be reached.
    """

    def __init__(
        self,
        timeout: float = PROBE_TIMEOUT_SEC,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.timeout = timeout
        self._session = session

    def __repr__(self):
        return f"DirectIPFetcher(timeout={self.timeout})"

    async def fetch(self, ip: str, hostname: str, path: str = "/") -> FetchResult:
        if not path.startswith("/"):
            path = "/" + path
        url = f"https://{ip}:{HTTPS_PORT}{path}"
        if self._session is not None:
            return await self._fetch(self._session, url, hostname)
        async with aiohttp.ClientSession() as session:
            return await self._fetch(session, url, hostname)

    async def _fetch(
        self, session: aiohttp.ClientSession, url: str, hostname: str
    ) -> FetchResult:
        try:
            async with session.get(
                url,
                headers={"Host": hostname},
                server_hostname=hostname,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                # Any answer proves the host is up, whatever its encoding.
                body = await response.text(errors="replace")
                logger.debug(
                    "GET %s (Host: %s) returned %s",
                    url,
                    hostname,
                    response.status,
                )
                return FetchResult(status_code=response.status, body=body)
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"Request to {hostname} via {url} timed out after {self.timeout}s"
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkError(
                f"Unable to reach {hostname} via {url}: {e}"
            ) from e
