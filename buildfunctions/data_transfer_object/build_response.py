from typing import Any, Dict, Optional

from pydantic import Field

from buildfunctions.pydantic_base import DictCompatibleImmutableModel

from .upload_target import UploadTarget, parse_upload_targets


class BuildResponseData(DictCompatibleImmutableModel):
    site_id: Optional[str] = Field(default=None, alias="siteId")
    ssl_certificate_endpoint: Optional[str] = Field(
        default=None, alias="sslCertificateEndpoint"
    )


class PresignedUrls(DictCompatibleImmutableModel):
    targets_by_path: Optional[Dict[str, Any]] = Field(
        default=None, alias="modelPresignedUrls"
    )


class BuildResponse(DictCompatibleImmutableModel):
    """Response to a create request from either the platform or the GPU build server.

    Every field is optional: the id of the created sandbox has been returned
    as ``data.siteId``, ``siteId`` or ``id`` depending on the server.
    """

    success: Optional[bool] = None
    data: Optional[BuildResponseData] = None
    root_site_id: Optional[str] = Field(default=None, alias="siteId")
    id: Optional[str] = None
    endpoint: Optional[str] = None
    ssl_certificate_endpoint: Optional[str] = Field(
        default=None, alias="sslCertificateEndpoint"
    )
    error: Optional[str] = None
    presigned_urls: Optional[PresignedUrls] = Field(
        default=None, alias="modelAndFunctionPresignedUrls"
    )
    bucket_name: Optional[str] = Field(default=None, alias="bucketName")

    @property
    def site_id(self) -> Optional[str]:
        if self.data is not None and self.data.site_id:
            return self.data.site_id
        return self.root_site_id or self.id

    @property
    def certificate_endpoint(self) -> str:
        if self.data is not None and self.data.ssl_certificate_endpoint:
            return self.data.ssl_certificate_endpoint
        return self.ssl_certificate_endpoint or ""

    def resolved_endpoint(self, default: str) -> str:
        if self.endpoint:
            return self.endpoint
        if self.data is not None and self.data.ssl_certificate_endpoint:
            return self.data.ssl_certificate_endpoint
        return default

    @property
    def upload_targets(self) -> Dict[str, UploadTarget]:
        if self.presigned_urls is None:
            return {}
        return parse_upload_targets(self.presigned_urls.targets_by_path)
