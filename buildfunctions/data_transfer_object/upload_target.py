from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import Field, model_validator

from buildfunctions.errors import ValidationError
from buildfunctions.pydantic_base import DictCompatibleImmutableModel


class UploadTarget(DictCompatibleImmutableModel):
    """Where the platform wants one local file stored.

    A single destination URL means a single-shot PUT. Several URLs mean a
    multipart upload, one URL per part, which then also needs the upload
    session id to finalize.
    """

    destination_urls: List[str] = Field(alias="signedUrl")
    upload_session_id: Optional[str] = Field(default=None, alias="uploadId")
    part_count: Optional[int] = Field(default=None, alias="numberOfParts")
    remote_object_path: Optional[str] = Field(
        default=None, alias="s3FilePath"
    )

    @model_validator(mode="after")
    def check_mode(self):
        if not self.destination_urls:
            raise ValueError("At least one destination url is required")
        if len(self.destination_urls) > 1 and not self.upload_session_id:
            raise ValueError(
                "A multipart upload target requires an uploadId"
            )
        return self

    @property
    def is_multipart(self) -> bool:
        return len(self.destination_urls) > 1

    @property
    def effective_part_count(self) -> int:
        return self.part_count or len(self.destination_urls)


def parse_upload_targets(
    raw: Optional[Mapping[str, Union[UploadTarget, Dict[str, Any]]]]
) -> Dict[str, UploadTarget]:
    """Parses the ``relative_path -> target`` mapping the platform returns.

    Raises:
        ValidationError: A target is malformed. The path is in the message.
    """
    targets = {}
    for path, target in (raw or {}).items():
        if isinstance(target, UploadTarget):
            targets[path] = target
            continue
        try:
            targets[path] = UploadTarget.parse(target)
        except ValidationError as e:
            raise ValidationError(
                f"Malformed upload target for {path}: {e.message}", e.details
            ) from e.__cause__
    return targets
