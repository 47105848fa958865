import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, List, Optional, Union

from .constants import (
    FUNCTION_BUILD_ROUTE,
    FUNCTION_NAME_PATTERN,
    FUNCTIONS_ROUTE,
    GPU_BUILD_ROUTE,
    GPU_BUILD_TIMEOUT_SEC,
    GPU_DELETE_ROUTE,
    SANDBOX_DOMAIN,
    SITE_ID_KEY,
    USER_ID_KEY,
    USERNAME_KEY,
)
from .data_transfer_object.build_response import BuildResponse
from .data_transfer_object.deployed_function import (
    DeployedFunction,
    FunctionList,
)
from .errors import BuildfunctionsError, ErrorCode, ValidationError
from .logger import logger
from .payload_constructor import (
    construct_cpu_function_payload,
    construct_gpu_function_payload,
    get_default_runtime,
)

if TYPE_CHECKING:
    from . import BuildfunctionsClient


@dataclass
class FunctionConfig:
    """Parameters of a function to deploy.

    Parameters:
        name: Function name, also used as its subdomain. Lowercase letters,
          numbers and hyphens only.
        code: Handler source.
        language: One of ``python``, ``javascript``, ``typescript``, ``go``, ``shell``.
        runtime: Defaults to ``language``. Required for ``javascript``.
        memory: ``"2GB"``, ``"1024MB"`` or a number of megabytes.
        timeout: Timeout in seconds.
        env_variables: List of ``{"key": ..., "value": ...}`` dicts.
        requirements: requirements.txt content, as a string or a list of lines.
        cron_schedule: Cron expression to invoke the function on.
        processor_type: ``"CPU"`` or ``"GPU"``. Setting ``gpu`` also selects GPU.
        framework: ML framework of a GPU function, detected from
          ``requirements`` when unset.
        gpu: GPU type, e.g. ``"T4"``.
    """

    name: str
    code: str
    language: str
    runtime: Optional[str] = None
    memory: Optional[Union[str, int]] = None
    timeout: Optional[int] = None
    env_variables: List[Dict[str, str]] = field(default_factory=list)
    requirements: Optional[Union[str, List[str]]] = None
    cron_schedule: Optional[str] = None
    processor_type: Optional[str] = None
    framework: Optional[str] = None
    gpu: Optional[str] = None

    @property
    def is_gpu(self) -> bool:
        return self.processor_type == "GPU" or bool(self.gpu)

    def validate(self):
        if not self.name or not isinstance(self.name, str):
            raise ValidationError("Function name is required")
        if not re.match(FUNCTION_NAME_PATTERN, self.name.lower()):
            raise ValidationError(
                "Function name can only contain lowercase letters, numbers, and hyphens"
            )
        if not self.code or not isinstance(self.code, str):
            raise ValidationError("Function code is required")
        if not self.language:
            raise ValidationError("Language is required")
        if self.is_gpu and self.language != "python":
            raise ValidationError(
                "GPU Functions currently only support Python. Additional languages coming soon."
            )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FunctionsManager:
    """Deployed functions of the authenticated user, as ``client.functions``.

    ::

        import buildfunctions

        client = buildfunctions.BuildfunctionsClient("YOUR_API_TOKEN")
        fn = client.functions.create("hello", "def handler(): ...", "python")
        client.functions.find_unique(name="hello")
        client.functions.delete(fn)
    """

    def __init__(self, client: "BuildfunctionsClient"):
        self._client = client

    def __repr__(self):
        return f"FunctionsManager(client={self._client})"

    @property
    def _connection(self):
        self._client._ensure_authenticated()
        return self._client.connection

    def list(self, page: int = 1) -> List[DeployedFunction]:
        response = self._connection.get(FUNCTIONS_ROUTE, params={"page": page})
        return FunctionList.parse(response).functions

    def get(self, site_id: str) -> DeployedFunction:
        """Raises :class:`BuildfunctionsAPIError` with code ``NOT_FOUND`` for an unknown id."""
        response = self._connection.get(
            FUNCTION_BUILD_ROUTE, params={SITE_ID_KEY: site_id}
        )
        return DeployedFunction.parse(response)

    def find_unique(
        self, id: Optional[str] = None, name: Optional[str] = None
    ) -> Optional[DeployedFunction]:
        """Looks a function up by ``id`` or, failing that, by ``name``.

        Returns ``None`` when nothing matches. Lookups by name only search
        the first page of :meth:`list`.
        """
        if id:
            try:
                return self.get(id)
            except BuildfunctionsError as e:
                if e.code == ErrorCode.NOT_FOUND:
                    return None
                raise
        if name:
            return next((fn for fn in self.list() if fn.name == name), None)
        return None

    def create(
        self, name: str, code: str, language: str, **kwargs
    ) -> DeployedFunction:
        """Deploys a function.

        Parameters:
            name: Function name.
            code: Handler source.
            language: Handler language.
            **kwargs: Other :class:`FunctionConfig` fields.
        """
        config = FunctionConfig(name=name, code=code, language=language, **kwargs)
        config.validate()
        if config.is_gpu:
            return self._create_gpu(config)
        return self._create_cpu(config)

    def _create_cpu(self, config: FunctionConfig) -> DeployedFunction:
        payload = construct_cpu_function_payload(config)
        response = self._connection.post(payload, FUNCTION_BUILD_ROUTE)
        build = BuildResponse.parse(response)
        if not build.site_id:
            raise BuildfunctionsError(
                f"Invalid response, no function id: {response}"
            )
        logger.info("Deployed CPU function %s", build.site_id)
        return self._deployed(config, payload, build, is_gpu_function=False)

    def _create_gpu(self, config: FunctionConfig) -> DeployedFunction:
        connection = self._connection
        client_config = self._client.config
        payload = construct_gpu_function_payload(config)
        payload.update(
            {
                USER_ID_KEY: client_config.user_id,
                USERNAME_KEY: client_config.username,
                "computeTier": client_config.compute_tier,
                "runCommand": None,
            }
        )
        response = connection.make_request(
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
        build = BuildResponse.parse(body)
        logger.info("Deployed GPU function %s", build.site_id or payload["name"])
        return self._deployed(config, payload, build, is_gpu_function=True)

    @staticmethod
    def _deployed(
        config: FunctionConfig,
        payload: dict,
        build: BuildResponse,
        is_gpu_function: bool,
    ) -> DeployedFunction:
        name = payload["name"]
        now = _now()
        return DeployedFunction(
            id=build.site_id or name,
            name=name,
            subdomain=name,
            endpoint=build.endpoint or f"https://{name}.{SANDBOX_DOMAIN}",
            lambda_url=build.certificate_endpoint,
            language=config.language,
            runtime=config.runtime or get_default_runtime(config.language),
            lambda_memory_allocated=payload["memoryAllocated"],
            timeout_seconds=payload["timeout"],
            cpu_cores=payload.get("cpuCores"),
            is_gpu_function=is_gpu_function,
            framework=config.framework,
            created_at=now,
            updated_at=now,
        )

    def delete(self, function: Union[DeployedFunction, str]) -> None:
        """Deletes a function given as a :class:`DeployedFunction` or a site id.

        GPU functions are removed through the GPU build server, so pass the
        :class:`DeployedFunction` for those.
        """
        connection = self._connection
        if isinstance(function, DeployedFunction) and function.is_gpu_function:
            client_config = self._client.config
            connection.make_request(
                {
                    SITE_ID_KEY: function.id,
                    USER_ID_KEY: client_config.user_id,
                    USERNAME_KEY: client_config.username,
                },
                GPU_DELETE_ROUTE,
                base_url=client_config.gpu_build_url,
                authenticated=False,
                return_raw_response=True,
            )
            return
        site_id = function.id if isinstance(function, DeployedFunction) else function
        connection.delete(FUNCTION_BUILD_ROUTE, {SITE_ID_KEY: site_id})
