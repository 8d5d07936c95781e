"""
Bucket Sync Facade

One entry point for push, pull, copy and listing against the configured
default bucket, sharing a single injected ObjectStore and BucketGuard.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from tenacity.wait import wait_base

from ..run_config import TransferConfig
from ..storage.base import ObjectStore
from ..storage.factories import open_object_store
from .batch_copy import BatchCopyEngine
from .bucket_guard import BucketGuard
from .directory import DirectorySync
from .listing import FileListing
from .models import CopyMapping, ProgressSink, SyncResult

logger = logging.getLogger(__name__)


class BucketSync:
    """Bulk transfers between local directories and one default bucket."""

    def __init__(
        self,
        store: ObjectStore,
        config: TransferConfig,
        copy_backoff: wait_base | None = None,
        upload_backoff: wait_base | None = None,
    ):
        self.store = store
        self.config = config
        self.guard = BucketGuard(store)
        self.directories = DirectorySync(store, self.guard, config, backoff=upload_backoff)
        self.copier = BatchCopyEngine(store, config.bucket, backoff=copy_backoff)
        self.listing = FileListing(store, config.bucket)

    async def push(
        self, local_dir: Path | str, remote_prefix: str, progress: ProgressSink | None = None, force: bool = True
    ) -> bool:
        return await self.directories.push(local_dir, remote_prefix, progress=progress, force=force)

    async def pull(self, remote_prefix: str, local_dir: Path | str, progress: ProgressSink | None = None) -> SyncResult:
        return await self.directories.pull(remote_prefix, local_dir, progress=progress)

    async def copy(
        self, mapping: CopyMapping, concurrency: int | None = None, progress: ProgressSink | None = None
    ) -> bool:
        """Batch copy ``mapping``; concurrency defaults to the upload concurrency."""
        if concurrency is None:
            concurrency = self.config.concurrent_uploads
        return await self.copier.copy(mapping, concurrency, progress=progress)

    async def list_files(self, prefix_pattern: str) -> list[str]:
        return await self.listing.list(prefix_pattern)


@asynccontextmanager
async def open_bucket_sync(config: TransferConfig, **kwargs) -> AsyncIterator[BucketSync]:
    """Open a client for ``config`` and yield a ready BucketSync."""
    config.require_bucket()
    async with open_object_store(config) as store:
        yield BucketSync(store, config, **kwargs)
