import json

import pytest

from buildfunctions.errors import ValidationError
from buildfunctions.file_walker import FileDescriptor
from buildfunctions.functions import FunctionConfig
from buildfunctions.payload_constructor import (
    construct_cpu_function_payload,
    construct_cpu_sandbox_payload,
    construct_gpu_function_payload,
    construct_gpu_sandbox_payload,
    detect_framework,
    format_requirements,
    parse_memory,
    sanitize_model_name,
)
from buildfunctions.sandbox import GPUSandboxConfig, LocalModelInfo, SandboxConfig


@pytest.mark.parametrize(
    "memory,expected",
    [("2GB", 2048), ("1024MB", 1024), ("512 mb", 512), (256, 256)],
)
def test_parse_memory(memory, expected):
    assert parse_memory(memory) == expected


def test_parse_memory_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_memory("lots")


@pytest.mark.parametrize(
    "name,expected",
    [
        ("my model & co!", "my-model-and-co"),
        ("Café", "cafe"),
        ("  Llama   3  ", "llama-3"),
    ],
)
def test_sanitize_model_name(name, expected):
    assert sanitize_model_name(name) == expected


@pytest.mark.parametrize(
    "requirements,expected",
    [(None, "pytorch"), ("", "pytorch"), ("torch==2.1", "pytorch"), ("numpy", None)],
)
def test_detect_framework(requirements, expected):
    assert detect_framework(requirements) == expected


def test_format_requirements():
    assert format_requirements(["torch", "numpy"]) == "torch\nnumpy"
    assert format_requirements("torch") == "torch"
    assert format_requirements(None) == ""


def test_cpu_payload():
    payload = construct_cpu_sandbox_payload(
        SandboxConfig(
            name="My-Box",
            language="python",
            code="print(1)",
            memory="1GB",
            env_variables=[{"key": "A", "value": "1"}],
        )
    )
    assert payload["name"] == "my-box"
    assert payload["subdomain"] == "my-box"
    assert payload["fileExt"] == ".py"
    assert payload["memoryAllocated"] == 1024
    assert payload["timeout"] == 10
    assert json.loads(payload["envVariables"]) == [{"key": "A", "value": "1"}]
    assert payload["totalVariables"] == 1


@pytest.mark.parametrize(
    "language,runtime,expected",
    [
        ("javascript", "node", ".js"),
        ("python", None, ".py"),
        ("typescript", "typescript", ".py"),
        ("go", "go", ".py"),
    ],
)
def test_cpu_payload_file_extension(language, runtime, expected):
    payload = construct_cpu_sandbox_payload(
        SandboxConfig(name="box", language=language, runtime=runtime)
    )
    assert payload["fileExt"] == expected


def test_gpu_payload_without_model():
    payload = construct_gpu_sandbox_payload(
        GPUSandboxConfig(name="gpu-box", language="python")
    )
    assert payload["gpu"] == "T4"
    assert payload["useEmptyFolder"] is True
    assert payload["modelPath"] is None
    assert payload["selectedFramework"] == "pytorch"
    assert payload["filesWithinModelFolder"] == []


def test_gpu_payload_with_local_model():
    files = [
        FileDescriptor("config.json", 3, "application/octet-stream", "llama/config.json", "/m/llama/config.json")
    ]
    info = LocalModelInfo(
        files=files, local_upload_file_name="llama", sanitized_model_name="my-box"
    )
    payload = construct_gpu_sandbox_payload(
        GPUSandboxConfig(name="My Box", language="python", code="x = 1"), info
    )
    assert payload["useEmptyFolder"] is False
    assert payload["modelPath"] == "my-box/mnt/storage/llama"
    assert payload["fileNamesWithinModelFolder"] == ["config.json"]
    assert payload["filesWithinModelFolder"][0]["webkitRelativePath"] == "llama/config.json"
    assert payload["selectedModel"]["currentModelName"] == "llama"
    assert payload["selectedFunction"]["sizeInBytes"] == 5


@pytest.mark.parametrize(
    "language,expected", [("typescript", ".ts"), ("python", ".py"), ("ruby", ".js")]
)
def test_function_payload_file_extension(language, expected):
    config = FunctionConfig("fn", "code", language, runtime=language)
    assert construct_cpu_function_payload(config)["fileExt"] == expected
    assert construct_gpu_function_payload(config)["fileExt"] == expected


def test_cpu_function_payload_defaults():
    payload = construct_cpu_function_payload(
        FunctionConfig("Fn", "print(1)", "python", requirements="numpy")
    )
    assert payload["name"] == "fn"
    assert payload["subdomain"] == "fn"
    assert payload["memoryAllocated"] == 128
    assert payload["timeout"] == 10
    assert payload["envVariables"] == "[]"
    assert payload["cronExpression"] == ""
    assert payload["selectedFramework"] is None
    assert payload["functionCount"] == 0


def test_gpu_function_payload():
    payload = construct_gpu_function_payload(
        FunctionConfig("fn", "print('é')", "python", timeout=90, framework="jax")
    )
    assert payload["gpu"] == "T4"
    assert payload["timeout"] == 90
    assert payload["cpuCores"] == 2
    assert payload["selectedFramework"] == "jax"
    assert payload["selectedFunction"]["sizeInBytes"] == len("print('é')".encode("utf-8"))
    assert payload["selectedModel"]["isCreatingNewModel"] is True
    assert payload["useEmptyFolder"] is True
