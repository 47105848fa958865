import dataclasses
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Tuple

from .constants import (
    AUTHORITATIVE_NAMESERVERS,
    DEFAULT_BASE_URL,
    DEFAULT_GPU_BUILD_URL,
    PART_SIZE_BYTES,
    PART_UPLOAD_CONCURRENCY,
    PROBE_DELAY_SEC,
    PROBE_MAX_ATTEMPTS,
    PROBE_TIMEOUT_SEC,
)
from .errors import NoAPIToken, ValidationError

if TYPE_CHECKING:
    from .data_transfer_object.auth import AuthResponse


@dataclass(frozen=True)
class ClientConfig:
    """Configuration shared, read-only, by every component of the client.

    Built once and handed to each component's constructor. Authenticating
    produces a new config through :meth:`with_session`; an existing instance
    is never mutated.

    Parameters:
        api_token: API token from https://www.buildfunctions.com/settings.
        base_url: Base URL of the platform API.
        gpu_build_url: Base URL of the GPU build server.
        session_token: Session token returned by authentication. Used as the
          bearer token once present.
        nameservers: Authoritative nameservers used to resolve freshly
          provisioned sandbox hostnames.
        part_size: Size in bytes of each multipart upload part.
        part_upload_concurrency: How many parts of a single file are uploaded
          at once.
        file_upload_concurrency: How many files are uploaded at once. ``None``
          means no limit.
        probe_max_attempts: Attempts before an endpoint is declared unreachable.
        probe_delay_sec: Sleep between readiness attempts.
        probe_timeout_sec: Timeout of a single readiness request.
    """

    api_token: str
    base_url: str = DEFAULT_BASE_URL
    gpu_build_url: str = DEFAULT_GPU_BUILD_URL
    session_token: Optional[str] = None
    user_id: Optional[str] = None
    username: Optional[str] = None
    compute_tier: Optional[str] = None
    nameservers: Tuple[str, ...] = field(
        default=AUTHORITATIVE_NAMESERVERS
    )
    part_size: int = PART_SIZE_BYTES
    part_upload_concurrency: int = PART_UPLOAD_CONCURRENCY
    file_upload_concurrency: Optional[int] = None
    probe_max_attempts: int = PROBE_MAX_ATTEMPTS
    probe_delay_sec: float = PROBE_DELAY_SEC
    probe_timeout_sec: float = PROBE_TIMEOUT_SEC

    def __post_init__(self):
        if not self.api_token:
            raise NoAPIToken()
        if self.part_size <= 0:
            raise ValidationError("part_size must be positive")
        if self.part_upload_concurrency <= 0:
            raise ValidationError("part_upload_concurrency must be positive")
        if (
            self.file_upload_concurrency is not None
            and self.file_upload_concurrency <= 0
        ):
            raise ValidationError(
                "file_upload_concurrency must be positive or None"
            )
        if self.probe_max_attempts <= 0:
            raise ValidationError("probe_max_attempts must be positive")
        if not self.nameservers:
            raise ValidationError("At least one nameserver is required")
        # Strip trailing slashes so routes can always be joined with "/".
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(
            self, "gpu_build_url", self.gpu_build_url.rstrip("/")
        )
        object.__setattr__(self, "nameservers", tuple(self.nameservers))

    @classmethod
    def from_env(cls, api_token: Optional[str] = None, **kwargs):
        """Reads ``BUILDFUNCTIONS_*`` environment variables for anything not passed."""
        if api_token is None:
            api_token = os.environ.get("BUILDFUNCTIONS_API_TOKEN", "")
        if kwargs.get("base_url") is None:
            kwargs["base_url"] = os.environ.get(
                "BUILDFUNCTIONS_BASE_URL", DEFAULT_BASE_URL
            )
        if kwargs.get("gpu_build_url") is None:
            kwargs["gpu_build_url"] = os.environ.get(
                "BUILDFUNCTIONS_GPU_BUILD_URL", DEFAULT_GPU_BUILD_URL
            )
        return cls(api_token=api_token, **kwargs)

    @property
    def bearer_token(self) -> str:
        return self.session_token or self.api_token

    @property
    def is_authenticated(self) -> bool:
        return self.session_token is not None

    def with_session(self, auth_response: "AuthResponse") -> "ClientConfig":
        user = auth_response.user
        return dataclasses.replace(
            self,
            session_token=auth_response.session_token,
            user_id=user.id,
            username=user.username or None,
            compute_tier=user.compute_tier or None,
        )

    def __repr__(self):
        return f"ClientConfig(base_url='{self.base_url}', gpu_build_url='{self.gpu_build_url}', authenticated={self.is_authenticated})"
