"""
Resumable Multipart Uploads

Multipart sessions keep track of which parts were stored so an interrupted
upload can continue from the last good part instead of restarting.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

import aiofiles
from botocore.exceptions import ClientError

from ..constants import DEFAULT_MULTIPART_PART_CONCURRENCY
from ..exceptions import MultipartUploadInterrupted
from .base import ObjectStore

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass
class MultipartUploadState:
    """Saved progress of one multipart session."""

    bucket: str
    key: str
    upload_id: str
    file_path: Path
    file_size: int
    part_size: int
    completed_parts: dict[int, str] = field(default_factory=dict)  # part number -> ETag

    @property
    def total_parts(self) -> int:
        return max(1, (self.file_size + self.part_size - 1) // self.part_size)

    def missing_parts(self) -> list[int]:
        return [n for n in range(1, self.total_parts + 1) if n not in self.completed_parts]

    @property
    def is_complete(self) -> bool:
        return not self.missing_parts()


@dataclass
class ResumeState:
    """Interrupted multipart sessions of one upload job."""

    sessions: list[MultipartUploadState] = field(default_factory=list)


def calculate_part_size(file_size: int) -> int:
    """Calculate optimal part size based on file size."""
    if file_size < 100 * MB:
        return 10 * MB
    elif file_size < 1024 * MB:
        return 16 * MB
    elif file_size < 5 * 1024 * MB:
        return 32 * MB
    else:
        # Target ~100 parts for very large files, cap at 100MB per part
        return min(file_size // 100, 100 * MB)


class MultipartUploader:
    """Drive multipart sessions for single files through an ObjectStore."""

    def __init__(self, store: ObjectStore, part_concurrency: int = DEFAULT_MULTIPART_PART_CONCURRENCY):
        self.store = store
        self.part_concurrency = part_concurrency

    async def start(self, bucket: str, key: str, file_path: Path) -> MultipartUploadState:
        """Initiate a session for ``file_path``."""
        file_size = file_path.stat().st_size
        response = await self.store.client.create_multipart_upload(Bucket=bucket, Key=key)
        state = MultipartUploadState(
            bucket=bucket,
            key=key,
            upload_id=response["UploadId"],
            file_path=file_path,
            file_size=file_size,
            part_size=calculate_part_size(file_size),
        )
        logger.debug(
            f"Starting multipart upload for {key} (upload_id={state.upload_id}, "
            f"file_size={file_size // MB}MB, part_size={state.part_size // MB}MB, parts={state.total_parts})"
        )
        return state

    async def _read_part(self, state: MultipartUploadState, part_number: int) -> bytes:
        async with aiofiles.open(state.file_path, "rb") as f:
            await f.seek((part_number - 1) * state.part_size)
            return await f.read(state.part_size)

    async def _upload_part(self, state: MultipartUploadState, part_number: int, semaphore: asyncio.Semaphore) -> None:
        async with semaphore:
            chunk = await self._read_part(state, part_number)
            response = await self.store.client.upload_part(
                Bucket=state.bucket,
                Key=state.key,
                PartNumber=part_number,
                UploadId=state.upload_id,
                Body=chunk,
            )
            state.completed_parts[part_number] = response["ETag"]
            logger.debug(f"Part {part_number}/{state.total_parts} uploaded for {state.key}")

    async def upload_missing_parts(self, state: MultipartUploadState) -> None:
        """Upload every part not yet recorded in ``state``.

        Raises:
            MultipartUploadInterrupted: one or more parts failed; ``state``
                keeps the parts that were stored
        """
        missing = state.missing_parts()
        if not missing:
            return

        semaphore = asyncio.Semaphore(self.part_concurrency)
        results = await asyncio.gather(
            *(self._upload_part(state, n, semaphore) for n in missing), return_exceptions=True
        )
        errors = [r for r in results if isinstance(r, Exception)]
        if errors:
            logger.warning(
                f"Multipart upload of {state.key} interrupted: {len(errors)} of {len(missing)} parts failed "
                f"({errors[0]})"
            )
            raise MultipartUploadInterrupted(ResumeState([state]), cause=errors[0])

    async def complete(self, state: MultipartUploadState) -> None:
        parts = [{"ETag": etag, "PartNumber": n} for n, etag in sorted(state.completed_parts.items())]
        await self.store.client.complete_multipart_upload(
            Bucket=state.bucket, Key=state.key, UploadId=state.upload_id, MultipartUpload={"Parts": parts}
        )
        logger.debug(f"Multipart upload completed ({state.key}, upload_id={state.upload_id})")

    async def abort(self, state: MultipartUploadState) -> None:
        try:
            await self.store.client.abort_multipart_upload(
                Bucket=state.bucket, Key=state.key, UploadId=state.upload_id
            )
            logger.info(f"Aborted multipart upload ({state.key}, upload_id={state.upload_id})")
        except ClientError as e:
            logger.warning(f"Could not abort multipart upload {state.upload_id} for {state.key}: {e}")

    async def resume(self, state: MultipartUploadState) -> None:
        """Finish a session from its saved state."""
        logger.info(
            f"Resuming multipart upload of {state.key}: "
            f"{len(state.missing_parts())} of {state.total_parts} parts remaining"
        )
        await self._finish(state)

    async def upload(self, bucket: str, key: str, file_path: Path) -> MultipartUploadState:
        """Upload ``file_path`` as a new multipart session."""
        state = await self.start(bucket, key, file_path)
        await self._finish(state)
        return state

    async def _finish(self, state: MultipartUploadState) -> None:
        """Upload missing parts and complete; abort on any error but a part interruption."""
        try:
            await self.upload_missing_parts(state)
            await self.complete(state)
        except MultipartUploadInterrupted:
            raise
        except Exception as e:
            logger.error(f"Multipart upload of {state.key} failed: {e}")
            await self.abort(state)
            raise
