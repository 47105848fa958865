from enum import Enum
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Dict, Optional

try:
    buildfunctions_client_version = version("buildfunctions")
except PackageNotFoundError:
    from ._metadata import __version__ as buildfunctions_client_version

INFRA_FLAKE_MESSAGES = [
    "downstream duration timeout",
    "upstream connect error or disconnect/reset before headers. reset reason: local reset",
]


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    INVALID_REQUEST = "INVALID_REQUEST"
    MAX_CAPACITY = "MAX_CAPACITY"
    SIZE_LIMIT_EXCEEDED = "SIZE_LIMIT_EXCEEDED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    RESOLUTION_ERROR = "RESOLUTION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    @staticmethod
    def from_status(
        status_code: Optional[int], code: Optional[str] = None
    ) -> "ErrorCode":
        """Maps a server supplied ``code`` or, failing that, an HTTP status to a kind."""
        if code in SERVER_CODES:
            return ErrorCode(code)
        return STATUS_CODES.get(status_code, ErrorCode.UNKNOWN_ERROR)


SERVER_CODES = {
    ErrorCode.UNAUTHORIZED.value,
    ErrorCode.NOT_FOUND.value,
    ErrorCode.INVALID_REQUEST.value,
    ErrorCode.MAX_CAPACITY.value,
    ErrorCode.SIZE_LIMIT_EXCEEDED.value,
    ErrorCode.VALIDATION_ERROR.value,
}

STATUS_CODES = {
    400: ErrorCode.INVALID_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.SIZE_LIMIT_EXCEEDED,
    503: ErrorCode.MAX_CAPACITY,
}


class BuildfunctionsError(Exception):
    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    @classmethod
    def from_response(
        cls, status_code: int, body: Optional[dict]
    ) -> "BuildfunctionsError":
        body = body if isinstance(body, dict) else {}
        message = body.get("error") or "An unknown error occurred"
        return cls(
            message,
            ErrorCode.from_status(status_code, body.get("code")),
            status_code,
        )


class ResolutionError(BuildfunctionsError):
    def __init__(self, hostname: str, reason: str = "no A records"):
        self.hostname = hostname
        super().__init__(
            f"Could not resolve {hostname} against the authoritative nameservers: {reason}",
            ErrorCode.RESOLUTION_ERROR,
        )


class NetworkError(BuildfunctionsError):
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        attempts: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        self.attempts = attempts
        self.response_body = response_body
        if response_body:
            message += f" - {response_body}"
        super().__init__(message, ErrorCode.NETWORK_ERROR, status_code)


class ValidationError(BuildfunctionsError):
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, ErrorCode.VALIDATION_ERROR, 400, details)


class AuthenticationError(BuildfunctionsError):
    def __init__(self, message="Invalid or missing API key"):
        super().__init__(message, ErrorCode.UNAUTHORIZED, 401)


class NotFoundError(BuildfunctionsError):
    def __init__(self, resource="Resource"):
        super().__init__(f"{resource} not found", ErrorCode.NOT_FOUND, 404)


class CapacityError(BuildfunctionsError):
    def __init__(
        self, message="Service at maximum capacity. Please try again later."
    ):
        super().__init__(message, ErrorCode.MAX_CAPACITY, 503)


class NoAPIToken(AuthenticationError):
    def __init__(
        self,
        message="You need to pass an API token to the BuildfunctionsClient or set the environment variable BUILDFUNCTIONS_API_TOKEN",
    ):
        super().__init__(message)


class BuildfunctionsAPIError(BuildfunctionsError):
    def __init__(self, endpoint, command, requests_response):
        message = f"Your client is on version {buildfunctions_client_version}. If you have not recently done so, please make sure you have updated to the latest version of the client by running pip install --upgrade buildfunctions\n"
        status_code = requests_response.status_code
        command_name = getattr(command, "__name__", "request")
        message += f"Tried to {command_name} {endpoint}, but received {status_code}: {requests_response.reason}."
        server_code = None
        if getattr(requests_response, "text", None):
            message += f"\nThe detailed error is:\n{requests_response.text}"
            try:
                body = requests_response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                server_code = body.get("code")

        if any(
            infra_flake_message in message
            for infra_flake_message in INFRA_FLAKE_MESSAGES
        ):
            message += "\n This likely indicates temporary downtime of the API, please try again in a minute or two"
        super().__init__(
            message, ErrorCode.from_status(status_code, server_code), status_code
        )
