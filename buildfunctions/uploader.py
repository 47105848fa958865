"""Uploads of local model files to object storage through presigned URLs.

Small files go up in one PUT. Large files are split into ``part_size`` byte
ranges, uploaded in batches of ``part_upload_concurrency`` parts and then
assembled server-side by the platform's complete-multipart-upload route.
"""
import asyncio
import math
from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

import aiohttp
from tqdm import tqdm

from .async_utils import gather_in_batches, gather_with_concurrency
from .config import ClientConfig
from .constants import (
    BUCKET_NAME_KEY,
    COMPLETE_MULTIPART_ROUTE,
    ETAG_KEY,
    FILE_NAME_KEY,
    OCTET_STREAM,
    PART_NUMBER_KEY,
    PARTS_KEY,
    S3_FILE_PATH_KEY,
    UPLOAD_ID_KEY,
)
from .data_transfer_object.upload_target import UploadTarget
from .errors import NetworkError, ValidationError
from .file_walker import FileDescriptor
from .logger import logger


@dataclass(frozen=True)
class PartResult:
    part_number: int
    entity_tag: str

    def to_payload(self) -> dict:
        return {PART_NUMBER_KEY: self.part_number, ETAG_KEY: self.entity_tag}


def count_parts(size: int, part_size: int) -> int:
    return math.ceil(size / part_size)


def part_ranges(size: int, part_size: int) -> List[Tuple[int, int]]:
    """Half-open ``(start, end)`` byte ranges covering ``size`` bytes; the last may be short."""
    return [
        (start, min(start + part_size, size))
        for start in range(0, size, part_size)
    ]


def _clean_etag(etag: str) -> str:
    return etag.strip('"')


async def upload_file(
    session: aiohttp.ClientSession, content: bytes, presigned_url: str
) -> None:
    """Single-shot PUT of a whole file to a presigned URL."""
    async with session.put(
        presigned_url,
        data=content,
        headers={"Content-Type": OCTET_STREAM},
    ) as response:
        if not response.ok:
            raise NetworkError(
                f"Failed to upload file: {response.status} {response.reason}",
                status_code=response.status,
                response_body=await response.text(),
            )


class ChunkedUploader:
    """Multipart upload of one in-memory file.

    Parts are uploaded ``concurrency`` at a time; a batch must finish before
    the next one starts. Any failing part aborts the whole file and nothing
    is finalized. Retrying is left to the caller, for the whole file.
    """

    def __init__(
        self,
        config: ClientConfig,
        session: aiohttp.ClientSession,
        part_size: Optional[int] = None,
        concurrency: Optional[int] = None,
    ):
        self.config = config
        self.session = session
        self.part_size = part_size or config.part_size
        self.concurrency = concurrency or config.part_upload_concurrency

    async def upload_part(
        self, chunk: bytes, presigned_url: str, part_number: int
    ) -> PartResult:
        async with self.session.put(
            presigned_url,
            data=chunk,
            headers={"Content-Type": OCTET_STREAM},
        ) as response:
            if not response.ok:
                raise NetworkError(
                    f"Failed to upload part {part_number}: {response.status} {response.reason}",
                    status_code=response.status,
                    response_body=await response.text(),
                )
            etag = response.headers.get(ETAG_KEY)
            if not etag:
                raise NetworkError(
                    f"Failed to retrieve ETag for part {part_number}",
                    status_code=response.status,
                )
        return PartResult(part_number=part_number, entity_tag=_clean_etag(etag))

    async def upload(
        self,
        content: bytes,
        destination_urls: Sequence[str],
        upload_session_id: str,
        part_count: int,
        bucket_name: str,
        remote_object_path: str,
    ) -> List[PartResult]:
        """Uploads ``content`` part by part, then finalizes the object.

        Returns:
            The parts sent to the finalize call, ascending by part number.
        """
        ranges = part_ranges(len(content), self.part_size)
        if len(ranges) != part_count:
            raise ValidationError(
                f"{remote_object_path}: {len(content)} bytes split in {self.part_size} byte parts "
                f"gives {len(ranges)} parts, but {part_count} were allocated"
            )
        if len(destination_urls) < part_count:
            raise ValidationError(
                f"Missing upload URL for part {len(destination_urls) + 1} of {remote_object_path}"
            )

        collected: List[PartResult] = []

        def part_task(index: int) -> Callable:
            start, end = ranges[index]

            async def run():
                part = await self.upload_part(
                    content[start:end], destination_urls[index], index + 1
                )
                collected.append(part)

            return run

        await gather_in_batches(
            self.concurrency, [part_task(i) for i in range(part_count)]
        )

        parts = sorted(collected, key=lambda part: part.part_number)
        if [part.part_number for part in parts] != list(
            range(1, part_count + 1)
        ):
            raise NetworkError(
                f"Multipart upload of {remote_object_path} is missing or duplicating parts"
            )

        await self.complete(
            bucket_name, upload_session_id, parts, remote_object_path
        )
        return parts

    async def complete(
        self,
        bucket_name: str,
        upload_session_id: str,
        parts: Sequence[PartResult],
        remote_object_path: str,
    ) -> None:
        endpoint = f"{self.config.base_url}/{COMPLETE_MULTIPART_ROUTE}"
        payload = {
            BUCKET_NAME_KEY: bucket_name,
            UPLOAD_ID_KEY: upload_session_id,
            PARTS_KEY: [part.to_payload() for part in parts],
            S3_FILE_PATH_KEY: remote_object_path,
            FILE_NAME_KEY: remote_object_path.split("/")[-1],
        }
        logger.info(
            "Completing multipart upload of %s (%s parts)",
            remote_object_path,
            len(parts),
        )
        async with self.session.post(endpoint, json=payload) as response:
            if not response.ok:
                raise NetworkError(
                    f"Failed to complete upload: {response.status} {response.reason}",
                    status_code=response.status,
                    response_body=await response.text(),
                )


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


class ModelFileUploader:
    """Uploads every file of a model directory to the targets the platform allocated.

    Files run concurrently, capped by ``file_upload_concurrency`` when set.
    Files without a target are skipped. A failing file fails the whole call,
    while files that already made it stay uploaded.
    """

    def __init__(
        self,
        config: ClientConfig,
        session: aiohttp.ClientSession,
        progressbar: Optional[tqdm] = None,
        file_upload_concurrency: Optional[int] = None,
    ):
        self.config = config
        self.session = session
        self.progressbar = progressbar
        self.file_upload_concurrency = (
            file_upload_concurrency
            if file_upload_concurrency is not None
            else config.file_upload_concurrency
        )
        self.chunked_uploader = ChunkedUploader(config, session)

    async def upload(
        self,
        files: Sequence[FileDescriptor],
        targets: Mapping[str, UploadTarget],
        bucket_name: str,
    ) -> List[FileDescriptor]:
        """Returns the descriptors that were uploaded."""
        dispatched = []
        for file in files:
            target = targets.get(file.relative_path)
            if target is None:
                logger.warning(
                    "No upload URL found for %s, skipping", file.relative_path
                )
                continue
            if not target.is_multipart and not target.destination_urls[0]:
                logger.warning(
                    "Empty upload URL for %s, skipping", file.relative_path
                )
                continue
            dispatched.append(file)

        await gather_with_concurrency(
            self.file_upload_concurrency,
            *(
                self.upload_one(file, targets[file.relative_path], bucket_name)
                for file in dispatched
            ),
        )
        return dispatched

    async def upload_one(
        self, file: FileDescriptor, target: UploadTarget, bucket_name: str
    ) -> None:
        content = await asyncio.to_thread(_read_file, file.local_path)
        if target.is_multipart:
            logger.info(
                "Uploading %s in %s parts",
                file.relative_path,
                target.effective_part_count,
            )
            await self.chunked_uploader.upload(
                content,
                target.destination_urls,
                target.upload_session_id,
                target.effective_part_count,
                bucket_name,
                target.remote_object_path or "",
            )
        else:
            logger.info("Uploading %s", file.relative_path)
            await upload_file(
                self.session, content, target.destination_urls[0]
            )
        if self.progressbar is not None:
            self.progressbar.update(1)


async def upload_model_files(
    config: ClientConfig,
    files: Sequence[FileDescriptor],
    targets: Mapping[str, UploadTarget],
    bucket_name: str,
    progressbar: Optional[tqdm] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> List[FileDescriptor]:
    """Opens an ``aiohttp`` session if none is given and runs a :class:`ModelFileUploader`."""
    if session is not None:
        return await ModelFileUploader(config, session, progressbar).upload(
            files, targets, bucket_name
        )
    async with aiohttp.ClientSession() as own_session:
        return await ModelFileUploader(
            config, own_session, progressbar
        ).upload(files, targets, bucket_name)
