import json
import re
import unicodedata
from typing import TYPE_CHECKING, List, Optional, Union

from .constants import (
    CPU_FUNCTION_DEFAULT_MEMORY_MB,
    CPU_FUNCTION_DEFAULT_TIMEOUT_SEC,
    CPU_SANDBOX_DEFAULT_MEMORY_MB,
    CPU_SANDBOX_DEFAULT_TIMEOUT_SEC,
    DEFAULT_FRAMEWORK,
    DEFAULT_GPU,
    FILE_EXTENSIONS,
    GPU_FUNCTION_CPU_CORES,
    GPU_FUNCTION_DEFAULT_MEMORY_MB,
    GPU_FUNCTION_DEFAULT_TIMEOUT_SEC,
    GPU_SANDBOX_CPU_CORES,
    GPU_SANDBOX_DEFAULT_MEMORY_MB,
    GPU_SANDBOX_DEFAULT_TIMEOUT_SEC,
)
from .errors import ValidationError

if TYPE_CHECKING:
    from .functions import FunctionConfig
    from .sandbox import GPUSandboxConfig, LocalModelInfo, SandboxConfig

MEMORY_PATTERN = re.compile(r"^(\d+)\s*(GB|MB)$")


def parse_memory(memory: Union[str, int]) -> int:
    """Megabytes from ``"2GB"``, ``"1024MB"`` or a raw number of megabytes."""
    if isinstance(memory, int):
        return memory
    match = MEMORY_PATTERN.match(memory.strip().upper())
    if not match:
        raise ValidationError(
            f'Invalid memory format: "{memory}". Use "2GB" or "1024MB".'
        )
    value, unit = int(match.group(1)), match.group(2)
    return value * 1024 if unit == "GB" else value


def format_requirements(requirements: Optional[Union[str, List[str]]]) -> str:
    if not requirements:
        return ""
    if isinstance(requirements, (list, tuple)):
        return "\n".join(requirements)
    return requirements


def detect_framework(requirements: Optional[str]) -> Optional[str]:
    # No requirements at all still defaults to pytorch.
    if not requirements:
        return DEFAULT_FRAMEWORK
    if "torch" in requirements.lower():
        return DEFAULT_FRAMEWORK
    return None


def sanitize_model_name(name: str) -> str:
    name = unicodedata.normalize("NFD", name.lower())
    name = "".join(c for c in name if not unicodedata.combining(c)).strip()
    name = name.replace("&", "-and-")
    name = re.sub(r"[^a-z0-9 -]", "", name)
    name = re.sub(r"\s+", "-", name)
    return re.sub(r"-+", "-", name)


def get_file_extension(language: str, default: str = ".py") -> str:
    return FILE_EXTENSIONS.get(language, default)


def get_cpu_sandbox_file_extension(language: str) -> str:
    # CPU sandboxes only run javascript or python handlers.
    return ".js" if language == "javascript" else ".py"


def get_default_runtime(language: str) -> str:
    if language == "javascript":
        raise ValidationError(
            'JavaScript requires explicit runtime: "node" or "deno"'
        )
    return language


def construct_cpu_sandbox_payload(config: "SandboxConfig") -> dict:
    name = config.name.lower()
    code = config.code or ""
    env_variables = config.env_variables or []
    return {
        "type": "cpu",
        "name": name,
        "fileExt": get_cpu_sandbox_file_extension(config.language),
        "code": code,
        "sourceWith": code,
        "sourceWithout": code,
        "language": config.language,
        "runtime": config.runtime or config.language,
        "memoryAllocated": parse_memory(config.memory)
        if config.memory
        else CPU_SANDBOX_DEFAULT_MEMORY_MB,
        "timeout": config.timeout or CPU_SANDBOX_DEFAULT_TIMEOUT_SEC,
        "envVariables": json.dumps(env_variables),
        "requirements": format_requirements(config.requirements),
        "cronExpression": "",
        "subdomain": name,
        "totalVariables": len(env_variables),
        "functionCount": 0,
    }


def construct_gpu_sandbox_payload(
    config: "GPUSandboxConfig",
    local_model_info: Optional["LocalModelInfo"] = None,
) -> dict:
    name = config.name.lower()
    runtime = config.runtime or get_default_runtime(config.language)
    code = config.code or ""
    requirements = format_requirements(config.requirements)
    env_variables = config.env_variables or []
    has_local_model = local_model_info is not None

    if has_local_model:
        model_name = local_model_info.sanitized_model_name
        files = [f.to_payload() for f in local_model_info.files]
        selected_model = {
            "name": model_name,
            "modelName": model_name,
            "currentModelName": local_model_info.local_upload_file_name,
            "isCreatingNewModel": True,
            "gpufProjectTitleState": model_name,
            "useEmptyFolder": False,
            "files": files,
        }
        model_path = f"{model_name}/mnt/storage/{local_model_info.local_upload_file_name}"
    else:
        model_name = None
        files = []
        selected_model = {
            "currentModelName": None,
            "isCreatingNewModel": True,
            "gpufProjectTitleState": "test",
            "useEmptyFolder": True,
        }
        model_path = None

    return {
        "name": name,
        "language": config.language,
        "runtime": runtime,
        "sourceWith": code,
        "sourceWithout": code,
        "fileExt": get_file_extension(config.language),
        "processorType": "GPU",
        "sandboxType": "gpu",
        "gpu": config.gpu or DEFAULT_GPU,
        "memoryAllocated": parse_memory(config.memory)
        if config.memory
        else GPU_SANDBOX_DEFAULT_MEMORY_MB,
        "timeout": config.timeout or GPU_SANDBOX_DEFAULT_TIMEOUT_SEC,
        "cpuCores": GPU_SANDBOX_CPU_CORES,
        "envVariables": json.dumps(env_variables),
        "requirements": requirements,
        "cronExpression": "",
        "totalVariables": len(env_variables),
        "selectedFramework": detect_framework(requirements),
        "useEmptyFolder": not has_local_model,
        "modelPath": model_path,
        "selectedFunction": {
            "name": name,
            "sourceWith": code,
            "runtime": runtime,
            "language": config.language,
            "sizeInBytes": len(code.encode("utf-8")),
        },
        "selectedModel": selected_model,
        "filesWithinModelFolder": files,
        "fileNamesWithinModelFolder": [f.name for f in local_model_info.files]
        if has_local_model
        else [],
        "modelName": model_name,
    }


def _function_memory(config: "FunctionConfig", default: int) -> int:
    return parse_memory(config.memory) if config.memory else default


def construct_cpu_function_payload(config: "FunctionConfig") -> dict:
    name = config.name.lower()
    env_variables = config.env_variables or []
    requirements = format_requirements(config.requirements)
    return {
        "name": name,
        "fileExt": get_file_extension(config.language, default=".js"),
        "sourceWith": config.code,
        "sourceWithout": config.code,
        "language": config.language,
        "runtime": config.runtime or get_default_runtime(config.language),
        "memoryAllocated": _function_memory(
            config, CPU_FUNCTION_DEFAULT_MEMORY_MB
        ),
        "timeout": config.timeout or CPU_FUNCTION_DEFAULT_TIMEOUT_SEC,
        "envVariables": json.dumps(env_variables),
        "requirements": requirements,
        "cronExpression": config.cron_schedule or "",
        "processorType": "CPU",
        "selectedFramework": config.framework or detect_framework(requirements),
        "subdomain": name,
        "totalVariables": len(env_variables),
        "functionCount": 0,
    }


def construct_gpu_function_payload(config: "FunctionConfig") -> dict:
    """Body of a GPU function build. Identity fields are added by the caller."""
    name = config.name.lower()
    runtime = config.runtime or get_default_runtime(config.language)
    env_variables = config.env_variables or []
    requirements = format_requirements(config.requirements)
    return {
        "name": name,
        "language": config.language,
        "runtime": runtime,
        "sourceWith": config.code,
        "sourceWithout": config.code,
        "fileExt": get_file_extension(config.language, default=".js"),
        "processorType": "GPU",
        "gpu": config.gpu or DEFAULT_GPU,
        "memoryAllocated": _function_memory(
            config, GPU_FUNCTION_DEFAULT_MEMORY_MB
        ),
        "timeout": config.timeout or GPU_FUNCTION_DEFAULT_TIMEOUT_SEC,
        "cpuCores": GPU_FUNCTION_CPU_CORES,
        "envVariables": json.dumps(env_variables),
        "requirements": requirements,
        "cronExpression": config.cron_schedule or "",
        "totalVariables": len(env_variables),
        "selectedFramework": config.framework or detect_framework(requirements),
        "useEmptyFolder": True,
        "selectedFunction": {
            "name": name,
            "sourceWith": config.code,
            "runtime": runtime,
            "language": config.language,
            "sizeInBytes": len(config.code.encode("utf-8")),
        },
        "selectedModel": {
            "currentModelName": None,
            "isCreatingNewModel": True,
            "gpufProjectTitleState": "test",
            "useEmptyFolder": True,
        },
    }
