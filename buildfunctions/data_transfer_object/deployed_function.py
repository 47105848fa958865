from typing import List, Optional, Union

from pydantic import Field

from buildfunctions.pydantic_base import DictCompatibleImmutableModel


class DeployedFunction(DictCompatibleImmutableModel):
    """Pydantic model to parse a deployed function from JSON"""

    id: str
    name: str
    subdomain: Optional[str] = None
    endpoint: Optional[str] = None
    lambda_url: str = Field(default="", alias="lambdaUrl")
    language: Optional[str] = None
    runtime: Optional[str] = None
    lambda_memory_allocated: Optional[int] = Field(
        default=None, alias="lambdaMemoryAllocated"
    )
    timeout_seconds: Optional[int] = Field(default=None, alias="timeoutSeconds")
    cpu_cores: Optional[Union[int, str]] = Field(default=None, alias="cpuCores")
    is_gpu_function: bool = Field(default=False, alias="isGPUF")
    framework: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


class FunctionList(DictCompatibleImmutableModel):
    functions: List[DeployedFunction] = Field(
        default_factory=list, alias="stringifiedQueryResults"
    )
