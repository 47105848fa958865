"""Buildfunctions Python SDK. """

__all__ = [
    "AuthenticationError",
    "AuthenticatedUser",
    "AuthResponse",
    "AuthoritativeResolver",
    "BuildfunctionsAPIError",
    "BuildfunctionsClient",
    "BuildfunctionsError",
    "CapacityError",
    "ChunkedUploader",
    "ClientConfig",
    "CPUSandbox",
    "DeployedFunction",
    "DirectIPFetcher",
    "EndpointReadinessProber",
    "ErrorCode",
    "FileDescriptor",
    "FunctionConfig",
    "FunctionsManager",
    "GPUSandbox",
    "GPUSandboxConfig",
    "ModelFileUploader",
    "NetworkError",
    "NotFoundError",
    "PartResult",
    "ResolutionError",
    "RunResult",
    "SandboxConfig",
    "UploadTarget",
    "ValidationError",
]

import dataclasses
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import tqdm

from ._metadata import __version__
from .async_utils import run_sync
from .config import ClientConfig
from .connection import Connection
from .constants import AUTH_ROUTE
from .data_transfer_object.auth import AuthenticatedUser, AuthResponse
from .data_transfer_object.deployed_function import DeployedFunction
from .data_transfer_object.upload_target import UploadTarget, parse_upload_targets
from .direct_fetch import DirectIPFetcher
from .dns_resolver import AuthoritativeResolver
from .errors import (
    AuthenticationError,
    BuildfunctionsAPIError,
    BuildfunctionsError,
    CapacityError,
    ErrorCode,
    NetworkError,
    NotFoundError,
    ResolutionError,
    ValidationError,
)
from .file_walker import FileDescriptor, get_files_in_directory
from .functions import FunctionConfig, FunctionsManager
from .logger import logger
from .readiness import EndpointProbeState, EndpointReadinessProber
from .sandbox import (
    CPUSandbox,
    GPUSandbox,
    GPUSandboxConfig,
    RunResult,
    SandboxConfig,
)
from .uploader import ChunkedUploader, ModelFileUploader, PartResult
from .uploader import upload_model_files as _upload_model_files


class BuildfunctionsClient:
    """Client to interact with the Buildfunctions API via Python SDK.

    Parameters:
        api_token: API token from https://www.buildfunctions.com/settings.
          Defaults to the ``BUILDFUNCTIONS_API_TOKEN`` environment variable.
        base_url: Base URL of the API. Defaults to ``BUILDFUNCTIONS_BASE_URL``
          or the production API.
        gpu_build_url: Base URL of the GPU build server. Defaults to
          ``BUILDFUNCTIONS_GPU_BUILD_URL`` or the production build server.
        use_notebook: Whether the client is being used in a notebook (toggles tqdm
          style). Default is ``False``.
        **config_kwargs: Any other :class:`ClientConfig` field, e.g.
          ``file_upload_concurrency`` or ``probe_max_attempts``.
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        gpu_build_url: Optional[str] = None,
        use_notebook: bool = False,
        config: Optional[ClientConfig] = None,
        **config_kwargs,
    ):
        if config is None:
            config = ClientConfig.from_env(
                api_token,
                base_url=base_url,
                gpu_build_url=gpu_build_url,
                **config_kwargs,
            )
        self.config = config
        self.connection = Connection(self.config)
        self.tqdm_bar = tqdm.tqdm
        self._use_notebook = use_notebook
        if use_notebook:
            import tqdm.notebook as tqdm_notebook

            self.tqdm_bar = tqdm_notebook.tqdm
        self._auth: Optional[AuthResponse] = None
        self.functions = FunctionsManager(self)

    def __repr__(self):
        return f"BuildfunctionsClient(base_url='{self.config.base_url}', use_notebook={self._use_notebook})"

    def __eq__(self, other):
        if self.config == other.config:
            if self._use_notebook == other._use_notebook:
                return True
        return False

    def authenticate(self) -> AuthResponse:
        """Exchanges the API token for a session token.

        Every later request, sandbox operation and upload runs with the new
        session.
        """
        response = self.connection.post({}, AUTH_ROUTE)
        auth = AuthResponse.model_validate(response)
        if not auth.authenticated:
            raise AuthenticationError("Authentication failed")
        self._auth = auth
        self.config = self.config.with_session(auth)
        self.connection = Connection(self.config)
        logger.info("Authenticated as %s", auth.user.username or auth.user.id)
        return auth

    def _ensure_authenticated(self):
        if not self.config.is_authenticated:
            self.authenticate()

    @property
    def user(self) -> AuthenticatedUser:
        self._ensure_authenticated()
        return self._auth.user

    @property
    def session_expires_at(self) -> Optional[str]:
        return self._auth.expires_at if self._auth else None

    @property
    def authenticated_at(self) -> Optional[str]:
        return self._auth.authenticated_at if self._auth else None

    @property
    def prober(self) -> EndpointReadinessProber:
        return self.make_prober()

    def make_prober(
        self,
        max_attempts: Optional[int] = None,
        delay_sec: Optional[float] = None,
    ) -> EndpointReadinessProber:
        """Readiness prober built from this client's config.

        Overrides go through :class:`ClientConfig` validation, so a
        non-positive ``max_attempts`` raises :class:`ValidationError`.
        """
        overrides: Dict[str, Any] = {}
        if max_attempts is not None:
            overrides["probe_max_attempts"] = max_attempts
        if delay_sec is not None:
            overrides["probe_delay_sec"] = delay_sec
        config = dataclasses.replace(self.config, **overrides)
        return EndpointReadinessProber.from_config(config)

    def create_cpu_sandbox(
        self, name: str, language: str, **kwargs
    ) -> CPUSandbox:
        """Creates a CPU sandbox.

        Parameters:
            name: Sandbox name.
            language: Handler language.
            **kwargs: Other :class:`SandboxConfig` fields.
        """
        self._ensure_authenticated()
        return CPUSandbox.create(
            self, SandboxConfig(name=name, language=language, **kwargs)
        )

    def create_gpu_sandbox(
        self, name: str, language: str = "python", **kwargs
    ) -> GPUSandbox:
        """Creates a GPU sandbox, uploading ``model_path`` first if it is a local directory.

        Parameters:
            name: Sandbox name.
            language: Handler language. Only ``python`` is supported.
            **kwargs: Other :class:`GPUSandboxConfig` fields.
        """
        self._ensure_authenticated()
        return GPUSandbox.create(
            self, GPUSandboxConfig(name=name, language=language, **kwargs)
        )

    def wait_for_endpoint(
        self,
        endpoint: str,
        max_attempts: Optional[int] = None,
        delay_sec: Optional[float] = None,
    ) -> EndpointProbeState:
        """Blocks until ``endpoint`` answers with a status below 500.

        Raises:
            NetworkError: the endpoint was still unreachable after ``max_attempts``.
        """
        prober = self.make_prober(max_attempts, delay_sec)
        return run_sync(prober.wait_until_ready(endpoint))

    def list_model_files(self, dir_path: str) -> List[FileDescriptor]:
        return get_files_in_directory(dir_path)

    def upload_model_files(
        self,
        files: Sequence[FileDescriptor],
        targets: Mapping[str, Union[UploadTarget, Dict[str, Any]]],
        bucket_name: str,
    ) -> List[FileDescriptor]:
        """Uploads ``files`` to the presigned targets the platform allocated.

        Parameters:
            files: Output of :meth:`list_model_files`.
            targets: Mapping from a file's ``relative_path`` to its upload target,
              as :class:`UploadTarget` or the raw platform dict.
            bucket_name: Bucket holding the targets.

        Returns:
            The files that were uploaded. Files without a target are skipped.

        Raises:
            ValidationError: a target is malformed. Nothing is uploaded.
        """
        parsed_targets = parse_upload_targets(targets)
        progressbar = self.tqdm_bar(total=len(files), desc="Model files")
        try:
            return run_sync(
                _upload_model_files(
                    self.config,
                    files,
                    parsed_targets,
                    bucket_name,
                    progressbar=progressbar,
                )
            )
        finally:
            progressbar.close()
