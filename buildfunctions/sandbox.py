import json
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

import aiohttp
import requests

from .async_utils import run_sync
from .constants import (
    CONTENT_KEY,
    CPU_SANDBOX_CREATE_ROUTE,
    CPU_SANDBOX_CREATE_TIMEOUT_SEC,
    CPU_SANDBOX_DELETE_ROUTE,
    DEFAULT_GPU,
    DEFAULT_NETWORK_TIMEOUT_SEC,
    ERROR_KEY,
    FILE_PATH_KEY,
    GPU_BUILD_ROUTE,
    GPU_BUILD_TIMEOUT_SEC,
    GPU_DELETE_ROUTE,
    SANDBOX_DOMAIN,
    SANDBOX_ID_KEY,
    SANDBOX_TYPE_KEY,
    SANDBOX_UPLOAD_ROUTE,
    SITE_ID_KEY,
    TYPE_KEY,
    USER_ID_KEY,
    USERNAME_KEY,
)
from .data_transfer_object.build_response import BuildResponse
from .errors import BuildfunctionsError, ErrorCode, NetworkError, ValidationError
from .file_walker import FileDescriptor, get_files_in_directory
from .logger import logger
from .payload_constructor import (
    construct_cpu_sandbox_payload,
    construct_gpu_sandbox_payload,
    sanitize_model_name,
)
from .uploader import upload_model_files

if TYPE_CHECKING:
    from . import BuildfunctionsClient


@dataclass
class SandboxConfig:
    """Parameters of a sandbox to create.

    Parameters:
        name: Sandbox name, also used as its subdomain.
        language: One of ``python``, ``javascript``, ``typescript``, ``go``, ``shell``.
        runtime: Defaults to ``language``. Required for ``javascript``
          (``node`` or ``deno``).
        code: Handler code to deploy.
        memory: ``"2GB"``, ``"1024MB"`` or a number of megabytes.
        timeout: Timeout in seconds.
        env_variables: List of ``{"key": ..., "value": ...}`` dicts.
        requirements: requirements.txt content, as a string or a list of lines.
    """

    name: str
    language: str
    runtime: Optional[str] = None
    code: Optional[str] = None
    memory: Optional[Union[str, int]] = None
    timeout: Optional[int] = None
    env_variables: List[Dict[str, str]] = field(default_factory=list)
    requirements: Optional[Union[str, List[str]]] = None

    def validate(self):
        if not self.name or not isinstance(self.name, str):
            raise ValidationError("Sandbox name is required")
        if not self.language or not isinstance(self.language, str):
            raise ValidationError("Language is required")
        if self.language == "javascript" and not self.runtime:
            raise ValidationError(
                'JavaScript requires explicit runtime: "node" or "deno"'
            )


@dataclass
class GPUSandboxConfig(SandboxConfig):
    """Parameters of a GPU sandbox. ``model_path`` is a local model directory to upload."""

    gpu: str = DEFAULT_GPU
    model_path: Optional[str] = None

    def validate(self):
        super().validate()
        if self.language != "python":
            raise ValidationError(
                "GPU Sandboxes currently only support Python. Additional languages coming soon."
            )


@dataclass
class LocalModelInfo:
    files: List[FileDescriptor]
    local_upload_file_name: str
    sanitized_model_name: str


@dataclass(frozen=True)
class RunResult:
    stdout: str
    stderr: str
    text: str
    results: Any
    exit_code: int = 0


def is_local_path(path: Optional[str]) -> bool:
    if not path:
        return False
    return path.startswith(("/", "./", "../")) and os.path.exists(path)


def get_local_model_info(model_path: str, sandbox_name: str) -> LocalModelInfo:
    if not os.path.isdir(model_path):
        raise ValidationError("Model path must be a directory")
    files = get_files_in_directory(model_path)
    if not files:
        raise ValidationError("No files found in model directory")
    return LocalModelInfo(
        files=files,
        local_upload_file_name=os.path.basename(os.path.abspath(model_path)),
        sanitized_model_name=sanitize_model_name(sandbox_name),
    )


def _upload_local_model(
    client: "BuildfunctionsClient",
    local_model_info: LocalModelInfo,
    build: BuildResponse,
) -> None:
    targets = build.upload_targets
    if not targets:
        return
    logger.info("Uploading model files...")
    progressbar = client.tqdm_bar(
        total=len(local_model_info.files), desc="Model files"
    )
    try:
        run_sync(
            upload_model_files(
                client.config,
                local_model_info.files,
                targets,
                build.bucket_name or "",
                progressbar=progressbar,
            )
        )
    finally:
        progressbar.close()
    logger.info("Model files uploaded successfully")


def parse_run_response(status_code: int, text: str) -> RunResult:
    if not text:
        raise BuildfunctionsError(
            "Empty response from sandbox", ErrorCode.UNKNOWN_ERROR, status_code
        )
    try:
        data = json.loads(text)
    except ValueError:
        return RunResult(stdout=text, stderr="", text=text, results=None)

    if not 200 <= status_code < 300:
        error = data.get(ERROR_KEY) if isinstance(data, dict) else None
        raise BuildfunctionsError(
            f"Execution failed: {error or 'Unknown error'}",
            ErrorCode.UNKNOWN_ERROR,
            status_code,
        )
    return RunResult(stdout=text, stderr="", text=text, results=data)


def default_endpoint(name: str) -> str:
    return f"https://{name}.{SANDBOX_DOMAIN}"


class Sandbox:
    """A created sandbox. Use :meth:`BuildfunctionsClient.create_cpu_sandbox`
    or :meth:`BuildfunctionsClient.create_gpu_sandbox` rather than constructing one."""

    sandbox_type = ""

    def __init__(
        self,
        sandbox_id: str,
        name: str,
        runtime: str,
        endpoint: str,
        client: "BuildfunctionsClient",
    ):
        self.id = sandbox_id
        self.name = name
        self.runtime = runtime
        self.endpoint = endpoint
        self._client = client
        self._deleted = False

    def __repr__(self):
        return f"{type(self).__name__}(id='{self.id}', name='{self.name}', endpoint='{self.endpoint}')"

    @property
    def deleted(self) -> bool:
        return self._deleted

    def _check_not_deleted(self):
        if self._deleted:
            raise BuildfunctionsError(
                "Sandbox has been deleted", ErrorCode.INVALID_REQUEST
            )

    def run(self) -> RunResult:
        raise NotImplementedError

    def delete(self) -> None:
        raise NotImplementedError

    def upload(self, local_path: str, file_path: str) -> None:
        """Copies the text file at ``local_path`` to ``file_path`` inside the sandbox."""
        self._check_not_deleted()
        if not local_path or not file_path:
            raise ValidationError("Both local_path and file_path are required")
        if not os.path.exists(local_path):
            raise ValidationError(f"Local file not found: {local_path}")
        with open(local_path, "r", encoding="utf-8") as f:
            content = f.read()
        self._client.connection.post(
            {
                SANDBOX_ID_KEY: self.id,
                FILE_PATH_KEY: file_path,
                CONTENT_KEY: content,
                TYPE_KEY: self.sandbox_type,
            },
            SANDBOX_UPLOAD_ROUTE,
        )


class CPUSandbox(Sandbox):
    sandbox_type = "cpu"

    @classmethod
    def create(
        cls, client: "BuildfunctionsClient", config: SandboxConfig
    ) -> "CPUSandbox":
        config.validate()
        name = config.name.lower()
        response = client.connection.make_request(
            construct_cpu_sandbox_payload(config),
            CPU_SANDBOX_CREATE_ROUTE,
            timeout=CPU_SANDBOX_CREATE_TIMEOUT_SEC,
        )
        build = BuildResponse.parse(response)
        if not build.site_id:
            raise BuildfunctionsError(
                f"Invalid response, no sandbox id: {response}"
            )
        return cls(
            build.site_id,
            name,
            config.runtime or config.language,
            build.resolved_endpoint(default_endpoint(name)),
            client,
        )

    async def _run(self) -> RunResult:
        prober = self._client.prober
        await prober.wait_until_ready(self.endpoint)
        result = await prober.fetch(self.endpoint)
        return parse_run_response(result.status_code, result.body)

    def run(self) -> RunResult:
        """Waits for the endpoint to come up, then calls it through authoritative DNS."""
        self._check_not_deleted()
        return run_sync(self._run())

    def delete(self) -> None:
        if self._deleted:
            return
        self._client.connection.delete(
            CPU_SANDBOX_DELETE_ROUTE,
            {SANDBOX_ID_KEY: self.id, TYPE_KEY: self.sandbox_type},
        )
        self._deleted = True


class GPUSandbox(Sandbox):
    sandbox_type = "gpu"

    def __init__(self, *args, gpu: str = DEFAULT_GPU, **kwargs):
        super().__init__(*args, **kwargs)
        self.gpu = gpu

    @classmethod
    def create(
        cls, client: "BuildfunctionsClient", config: GPUSandboxConfig
    ) -> "GPUSandbox":
        config.validate()
        client_config = client.config

        local_model_info = None
        if is_local_path(config.model_path):
            logger.info("Local model detected: %s", config.model_path)
            local_model_info = get_local_model_info(
                config.model_path, config.name
            )
            logger.info(
                "Found %s files to upload", len(local_model_info.files)
            )

        payload = construct_gpu_sandbox_payload(config, local_model_info)
        payload.update(
            {
                USER_ID_KEY: client_config.user_id,
                USERNAME_KEY: client_config.username,
                "computeTier": client_config.compute_tier,
                "runCommand": None,
            }
        )
        response = client.connection.make_request(
            payload,
            GPU_BUILD_ROUTE,
            base_url=client_config.gpu_build_url,
            authenticated=False,
            timeout=GPU_BUILD_TIMEOUT_SEC,
            ok_statuses={200, 201},
            return_raw_response=True,
        )
        try:
            body = response.json()
        except ValueError:
            body = {"success": response.status_code == 201}

        # The sandbox exists from here on.
        try:
            build = BuildResponse.parse(body)
            if local_model_info is not None:
                _upload_local_model(client, local_model_info, build)
        except (BuildfunctionsError, aiohttp.ClientError, OSError) as e:
            if isinstance(e, BuildfunctionsError):
                raise BuildfunctionsError(
                    f"Sandbox created but model upload failed: {e.message}",
                    e.code,
                    e.status_code,
                    e.details,
                ) from e
            raise BuildfunctionsError(
                f"Sandbox created but model upload failed: {e}"
            ) from e

        name = config.name.lower()
        return cls(
            build.site_id or name,
            name,
            config.runtime or config.language,
            build.resolved_endpoint(default_endpoint(name)),
            client,
            gpu=config.gpu or DEFAULT_GPU,
        )

    def run(self) -> RunResult:
        self._check_not_deleted()
        try:
            response = requests.post(
                self.endpoint,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self._client.config.bearer_token}",
                },
                timeout=DEFAULT_NETWORK_TIMEOUT_SEC,
            )
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Unable to reach {self.endpoint}: {e}") from e
        return parse_run_response(response.status_code, response.text)

    def delete(self) -> None:
        if self._deleted:
            return
        client_config = self._client.config
        self._client.connection.make_request(
            {
                SITE_ID_KEY: self.id,
                SANDBOX_TYPE_KEY: self.sandbox_type,
                USER_ID_KEY: client_config.user_id,
                USERNAME_KEY: client_config.username,
            },
            GPU_DELETE_ROUTE,
            base_url=client_config.gpu_build_url,
            authenticated=False,
            return_raw_response=True,
        )
        self._deleted = True
