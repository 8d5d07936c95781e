"""
Object Store Adapter

Thin async wrapper around an S3-compatible aioboto3 client providing the
operations the sync layer consumes: bucket checks, command batches,
listings, and single-object uploads and downloads.
"""

import asyncio
import logging
import re
import time
import uuid
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiofiles
from botocore.exceptions import ClientError, WaiterError

from ..constants import DEFAULT_BUCKET_ACL, DEFAULT_DOWNLOAD_CHUNK_SIZE, DEFAULT_REGION
from ..exceptions import BatchTransferError, StorageError

logger = logging.getLogger(__name__)

# Operations that may be wrapped in a Command and dispatched in a batch
SUPPORTED_OPERATIONS = frozenset({"CopyObject", "DeleteObject", "HeadObject", "PutObject"})

NOT_FOUND_CODES = frozenset({"404", "NoSuchBucket", "NotFound"})


def _operation_method(operation: str) -> str:
    """CopyObject -> copy_object"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", operation).lower()


def error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


@dataclass(frozen=True)
class Command:
    """A single storage API call waiting to be dispatched."""

    operation: str
    params: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)

    def describe(self) -> str:
        bucket = self.params.get("Bucket", "")
        key = self.params.get("Key", "")
        return f"{self.operation} {bucket}/{key}"


class ObjectStore:
    """
    Async object store operations against one S3-compatible service.

    The client is injected already opened and is never replaced; see
    ``storage.factories.open_object_store`` for construction.
    """

    def __init__(self, client: Any, bucket: str = "", region: str | None = None):
        self.client = client
        self.bucket = bucket
        self.region = region

        # Instance identification for logging
        self._instance_id = str(uuid.uuid4())[:8]

        logger.debug(f"ObjectStore created (id={self._instance_id}, bucket={bucket or '-'})")

    async def bucket_exists(self, bucket: str) -> bool:
        """Check whether ``bucket`` exists and is reachable."""
        try:
            await self.client.head_bucket(Bucket=bucket)
            return True
        except ClientError as e:
            if error_code(e) in NOT_FOUND_CODES:
                return False
            raise StorageError(f"Error checking bucket '{bucket}': {e}") from e

    async def create_bucket(self, bucket: str, acl: str = DEFAULT_BUCKET_ACL) -> None:
        """Create ``bucket`` with the given canned ACL."""
        kwargs: dict[str, Any] = {"Bucket": bucket, "ACL": acl}
        if self.region and self.region != DEFAULT_REGION:
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}

        try:
            await self.client.create_bucket(**kwargs)
        except ClientError as e:
            if error_code(e) == "BucketAlreadyOwnedByYou":
                logger.debug(f"Bucket '{bucket}' already owned by this account")
                return
            raise StorageError(f"Failed to create bucket '{bucket}': {e}") from e

    async def wait_until_bucket_exists(self, bucket: str) -> None:
        """Block until the service reports ``bucket`` as existing."""
        waiter = self.client.get_waiter("bucket_exists")
        try:
            await waiter.wait(Bucket=bucket)
        except WaiterError as e:
            raise StorageError(f"Timed out waiting for bucket '{bucket}': {e}") from e

    def build_command(self, operation: str, params: dict[str, Any]) -> Command:
        """Construct a command for later dispatch in a batch."""
        if operation not in SUPPORTED_OPERATIONS:
            raise ValueError(f"Unsupported operation: {operation}")
        return Command(operation=operation, params=dict(params))

    async def _dispatch(self, command: Command, semaphore: asyncio.Semaphore) -> Any:
        async with semaphore:
            method = getattr(self.client, _operation_method(command.operation))
            return await method(**command.params)

    async def execute_batch(self, commands: Sequence[Command], concurrency: int | None = None) -> list[Any]:
        """Dispatch ``commands`` in parallel and wait for all of them.

        Raises:
            BatchTransferError: some commands failed; carries the failed
                commands with their causes and the successful results
        """
        if not commands:
            return []

        semaphore = asyncio.Semaphore(concurrency or len(commands))
        start_time = time.time()
        results = await asyncio.gather(
            *(self._dispatch(command, semaphore) for command in commands), return_exceptions=True
        )

        failed: list[tuple[Command, BaseException]] = []
        succeeded: list[Any] = []
        for command, result in zip(commands, results, strict=True):
            if isinstance(result, Exception):
                failed.append((command, result))
            elif isinstance(result, BaseException):
                raise result
            else:
                succeeded.append(result)

        logger.debug(
            f"Executed batch of {len(commands)} commands in {time.time() - start_time:.3f}s "
            f"({len(failed)} failed, storage_id={self._instance_id})"
        )

        if failed:
            raise BatchTransferError(failed, succeeded)
        return succeeded

    async def iter_objects(self, bucket: str, prefix: str = "") -> AsyncIterator[dict[str, Any]]:
        """Yield object summaries under ``prefix``, paging transparently."""
        list_kwargs = {"Bucket": bucket}
        if prefix:
            list_kwargs["Prefix"] = prefix

        paginator = self.client.get_paginator("list_objects_v2")
        async for page in paginator.paginate(**list_kwargs):
            for obj in page.get("Contents", []):
                yield obj

    async def head_object(self, bucket: str, key: str) -> dict[str, Any] | None:
        """Return object metadata, or None when the object does not exist."""
        try:
            return await self.client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if error_code(e) in NOT_FOUND_CODES or error_code(e) == "NoSuchKey":
                return None
            raise

    async def upload_file(self, bucket: str, key: str, file_path: Path) -> None:
        """Upload a small file in a single request."""
        async with aiofiles.open(file_path, "rb") as f:
            data = await f.read()
        await self.client.put_object(Bucket=bucket, Key=key, Body=data)

    async def download_file(
        self, bucket: str, key: str, destination: Path, chunk_size: int = DEFAULT_DOWNLOAD_CHUNK_SIZE
    ) -> int:
        """Stream an object to ``destination`` and return the bytes written."""
        response = await self.client.get_object(Bucket=bucket, Key=key)
        body = response["Body"]
        written = 0
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(destination, "wb") as f:
                while True:
                    chunk = await body.read(chunk_size)
                    if not chunk:
                        break
                    await f.write(chunk)
                    written += len(chunk)
        finally:
            body.close()
        return written
