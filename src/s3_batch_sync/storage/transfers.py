"""
Directory Transfer Jobs

Many-file upload and download jobs between a local directory and a key
prefix. Jobs run with bounded concurrency and report each completed object
through an injected callback.
"""

import asyncio
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeAlias

from ..common import join_key, local_relative_key, relative_key
from ..constants import DEFAULT_MULTIPART_THRESHOLD, KEY_SEPARATOR
from ..exceptions import MultipartUploadInterrupted, TransferError
from .base import ObjectStore
from .multipart import MultipartUploader, ResumeState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferredObject:
    """One object moved by a transfer job."""

    key: str
    local_path: Path
    size: int


CompletionCallback: TypeAlias = Callable[[TransferredObject], None]


@dataclass(frozen=True)
class LocalFile:
    path: Path
    key: str
    size: int


class UploadSync:
    """
    Upload every file below ``base_dir`` to ``bucket`` under ``key_prefix``.

    Files larger than ``multipart_threshold`` go through multipart sessions.
    The local tree is scanned when the job is built, so a fresh job always
    sees current file sizes.
    """

    def __init__(
        self,
        store: ObjectStore,
        bucket: str,
        base_dir: Path | str,
        key_prefix: str = "",
        concurrency: int = 10,
        force: bool = True,
        multipart_threshold: int = DEFAULT_MULTIPART_THRESHOLD,
        on_complete: CompletionCallback | None = None,
    ):
        self.store = store
        self.bucket = bucket
        self.base_dir = Path(base_dir)
        self.key_prefix = key_prefix.strip(KEY_SEPARATOR)
        self.concurrency = concurrency
        self.force = force
        self.multipart_threshold = multipart_threshold
        self.on_complete = on_complete
        self.multipart = MultipartUploader(store)

        self.files = self._scan()
        self.completed_keys: set[str] = set()

    def _scan(self) -> list[LocalFile]:
        if not self.base_dir.is_dir():
            raise FileNotFoundError(f"Local directory not found: {self.base_dir}")

        files = []
        for root, _dirs, names in os.walk(self.base_dir):
            for name in sorted(names):
                path = Path(root) / name
                if not path.is_file():
                    continue
                key = join_key(self.key_prefix, local_relative_key(path, self.base_dir))
                files.append(LocalFile(path=path, key=key, size=path.stat().st_size))
        logger.debug(f"Found {len(files)} files below {self.base_dir}")
        return files

    async def _is_unchanged(self, local: LocalFile) -> bool:
        remote = await self.store.head_object(self.bucket, local.key)
        return remote is not None and remote.get("ContentLength") == local.size

    def _mark_complete(self, local: LocalFile) -> None:
        self.completed_keys.add(local.key)
        if self.on_complete:
            self.on_complete(TransferredObject(key=local.key, local_path=local.path, size=local.size))

    async def _upload_one(self, local: LocalFile, semaphore: asyncio.Semaphore) -> None:
        async with semaphore:
            if not self.force and await self._is_unchanged(local):
                logger.debug(f"Skipping unchanged {local.key}")
                self.completed_keys.add(local.key)
                return

            if local.size > self.multipart_threshold:
                await self.multipart.upload(self.bucket, local.key, local.path)
            else:
                await self.store.upload_file(self.bucket, local.key, local.path)
            logger.debug(f"Uploaded {local.path} => {self.bucket}/{local.key}")
            self._mark_complete(local)

    async def _run(self, files: list[LocalFile]) -> list[tuple[str, BaseException]]:
        semaphore = asyncio.Semaphore(self.concurrency)
        results = await asyncio.gather(*(self._upload_one(f, semaphore) for f in files), return_exceptions=True)

        failures: list[tuple[str, BaseException]] = []
        for local, result in zip(files, results, strict=True):
            if isinstance(result, Exception):
                failures.append((local.key, result))
            elif isinstance(result, BaseException):
                raise result
        return failures

    async def _raise_for(self, failures: list[tuple[str, BaseException]]) -> None:
        """Raise the error matching the failures of one pass.

        Only interrupted multipart sessions are resumable; any other failure
        leads to a retry of the whole job, so open sessions are aborted.
        """
        if not failures:
            return

        interrupted = [e for _, e in failures if isinstance(e, MultipartUploadInterrupted)]
        if len(interrupted) == len(failures):
            sessions = [session for e in interrupted for session in e.state.sessions]
            raise MultipartUploadInterrupted(ResumeState(sessions), cause=interrupted[0].cause)

        for error in interrupted:
            for session in error.state.sessions:
                await self.multipart.abort(session)
        raise TransferError(failures)

    def pending_files(self) -> list[LocalFile]:
        return [f for f in self.files if f.key not in self.completed_keys]

    async def transfer(self) -> None:
        """Upload every file not yet completed by this job.

        Raises:
            MultipartUploadInterrupted: only multipart sessions failed
            TransferError: one or more objects failed
        """
        pending = self.pending_files()
        logger.info(f"Uploading {len(pending)} files from {self.base_dir} to {self.bucket}/{self.key_prefix}")
        await self._raise_for(await self._run(pending))

    async def resume_from(self, state: ResumeState) -> None:
        """Finish interrupted sessions, then upload any remaining files."""
        failures: list[tuple[str, BaseException]] = []
        by_key = {f.key: f for f in self.files}
        for session in state.sessions:
            try:
                await self.multipart.resume(session)
            except Exception as e:
                failures.append((session.key, e))
                continue
            self._mark_complete(by_key[session.key])

        in_session = {s.key for s in state.sessions}
        remaining = [f for f in self.pending_files() if f.key not in in_session]
        if remaining:
            failures.extend(await self._run(remaining))
        await self._raise_for(failures)


class DownloadSync:
    """
    Download every object under ``key_prefix`` into ``directory``.

    Local paths mirror each key relative to ``base_dir``.
    """

    def __init__(
        self,
        store: ObjectStore,
        bucket: str,
        directory: Path | str,
        base_dir: str = "",
        key_prefix: str = "",
        concurrency: int = 10,
        force: bool = True,
        on_complete: CompletionCallback | None = None,
    ):
        self.store = store
        self.bucket = bucket
        self.directory = Path(directory)
        self.base_dir = base_dir
        self.key_prefix = key_prefix
        self.concurrency = concurrency
        self.force = force
        self.on_complete = on_complete

    def local_path_for(self, key: str) -> Path:
        """Local destination for ``key``.

        Raises:
            TransferError: the key would resolve outside ``directory``
        """
        path = self.directory / relative_key(key, self.base_dir)
        root = self.directory.resolve()
        resolved = path.resolve()
        if resolved == root or not resolved.is_relative_to(root):
            error = ValueError(f"Object key {key!r} resolves outside {self.directory}")
            raise TransferError([(key, error)], str(error))
        return path

    async def _download_one(self, obj: dict, semaphore: asyncio.Semaphore) -> None:
        key = obj["Key"]
        destination = self.local_path_for(key)
        async with semaphore:
            if not self.force and destination.is_file() and destination.stat().st_size == obj.get("Size"):
                logger.debug(f"Skipping existing {destination}")
                return
            size = await self.store.download_file(self.bucket, key, destination)
        logger.debug(f"Copied {key} => {destination}")
        if self.on_complete:
            self.on_complete(TransferredObject(key=key, local_path=destination, size=size))

    async def transfer(self) -> None:
        """Download all objects under the prefix.

        Raises:
            TransferError: one or more objects failed after all were attempted
        """
        objects = [
            obj
            async for obj in self.store.iter_objects(self.bucket, self.key_prefix)
            if not obj["Key"].endswith(KEY_SEPARATOR)
        ]
        logger.info(f"Downloading {len(objects)} objects from {self.bucket}/{self.key_prefix} to {self.directory}")

        semaphore = asyncio.Semaphore(self.concurrency)
        results = await asyncio.gather(*(self._download_one(o, semaphore) for o in objects), return_exceptions=True)

        failures: list[tuple[str, BaseException]] = []
        for obj, result in zip(objects, results, strict=True):
            if isinstance(result, Exception):
                logger.error(f"Failed to download {obj['Key']}: {result}")
                failures.append((obj["Key"], result))
            elif isinstance(result, BaseException):
                raise result
        if failures:
            raise TransferError(failures)
