import asyncio
from unittest import mock
from typing import Callable, Dict, List, Optional, Sequence, Union

from buildfunctions.constants import AUTH_ROUTE
from buildfunctions.direct_fetch import FetchResult
from buildfunctions.errors import NetworkError, ResolutionError

TEST_API_TOKEN = "test-api-token-12345"
TEST_SESSION_TOKEN = "test-session-token"
TEST_BASE_URL = "https://api.buildfunctions.test"
TEST_GPU_BUILD_URL = "https://gpu-build.buildfunctions.test"
TEST_BUCKET = "test-bucket"
TEST_ENDPOINT = "https://my-sandbox.buildfunctions.app/run?x=1"
TEST_IP = "203.0.113.7"

TEST_AUTH_RESPONSE = {
    "authenticated": True,
    "user": {
        "id": "user_123",
        "username": "ada",
        "email": "ada@example.com",
        "computeTier": "pro",
    },
    "sessionToken": TEST_SESSION_TOKEN,
    "expiresAt": "2026-10-20T00:00:00Z",
    "authenticatedAt": "2026-10-19T00:00:00Z",
}


class FakeResponse:
    """Stands in for both an aiohttp response and its request context manager."""

    def __init__(
        self,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
        body: Union[str, bytes] = "",
        reason: str = "OK",
        delay: float = 0,
    ):
        self.status = status
        self.headers = headers or {}
        self.body = body
        self.reason = reason
        self.delay = delay

    @property
    def ok(self) -> bool:
        return self.status < 400

    async def text(self, encoding: str = "utf-8", errors: str = "strict") -> str:
        if isinstance(self.body, bytes):
            return self.body.decode(encoding, errors)
        return self.body

    async def __aenter__(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


def etag_for(url: str) -> str:
    return f"etag-{url.rsplit('/', 1)[-1]}"


def default_put_handler(url: str, data: bytes) -> FakeResponse:
    return FakeResponse(200, headers={"ETag": f'"{etag_for(url)}"'})


class FakeSession:
    """Records PUT/POST/GET calls made through an aiohttp-like session."""

    def __init__(
        self,
        put_handler: Callable[[str, bytes], FakeResponse] = default_put_handler,
        post_response: Optional[FakeResponse] = None,
        get_response: Optional[FakeResponse] = None,
    ):
        self.put_handler = put_handler
        self.post_response = post_response or FakeResponse(200)
        self.get_response = get_response or FakeResponse(200, body="ok")
        self.puts: List[tuple] = []
        self.posts: List[tuple] = []
        self.gets: List[dict] = []

    def put(self, url, data=None, headers=None):
        self.puts.append((url, data, headers))
        return self.put_handler(url, data)

    def post(self, url, json=None):
        self.posts.append((url, json))
        return self.post_response

    def get(self, url, **kwargs):
        self.gets.append({"url": url, **kwargs})
        if isinstance(self.get_response, Exception):
            raise self.get_response
        return self.get_response


class FakeResolver:
    def __init__(self, failures: int = 0, ip: str = TEST_IP):
        self.failures = failures
        self.ip = ip
        self.calls: List[str] = []

    async def resolve(self, hostname: str) -> str:
        self.calls.append(hostname)
        if len(self.calls) <= self.failures:
            raise ResolutionError(hostname, "NXDOMAIN")
        return self.ip


class FakeFetcher:
    """Answers each call with the next status in ``statuses``, repeating the last one."""

    def __init__(self, statuses: Sequence, body: str = '{"ok": true}'):
        self.statuses = list(statuses)
        self.body = body
        self.calls: List[tuple] = []

    async def fetch(self, ip: str, hostname: str, path: str = "/"):
        self.calls.append((ip, hostname, path))
        status = self.statuses[min(len(self.calls), len(self.statuses)) - 1]
        if isinstance(status, Exception):
            raise status
        await asyncio.sleep(0)
        return FetchResult(status_code=status, body=self.body)


def network_down() -> NetworkError:
    return NetworkError("Unable to reach host")


class FakePlatform:
    """Answers make_request calls by route and records them."""

    def __init__(self, responses):
        self.responses = {AUTH_ROUTE: TEST_AUTH_RESPONSE, **responses}
        self.calls = []

    def __call__(self, payload, route, **kwargs):
        self.calls.append((route, payload, kwargs))
        response = self.responses[route]
        if isinstance(response, Exception):
            raise response
        return response

    def call_for(self, route):
        return next(call for call in self.calls if call[0] == route)


def raw_response(status_code, body):
    response = mock.Mock(status_code=status_code)
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response
