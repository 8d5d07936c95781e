"""
Directory Sync

Push a local directory to a key prefix and pull a key prefix into a local
directory. Pushes resume interrupted multipart sessions and retry the whole
directory on partial failure; pulls report every file written.
"""

import logging
from pathlib import Path

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from ..constants import KEY_SEPARATOR
from ..run_config import TransferConfig
from ..storage.base import ObjectStore
from ..storage.transfers import DownloadSync, TransferredObject, UploadSync
from .bucket_guard import BucketGuard
from .models import (
    ExitCode,
    FailureRecord,
    OutcomeKind,
    ProgressSink,
    SyncResult,
    TransferOutcome,
    classify_transfer_error,
)

logger = logging.getLogger(__name__)


def _last_outcome(retry_state: RetryCallState) -> TransferOutcome:
    assert retry_state.outcome is not None
    return retry_state.outcome.result()


class DirectorySync:
    """Many-file transfers between a local directory and the default bucket."""

    def __init__(
        self,
        store: ObjectStore,
        guard: BucketGuard,
        config: TransferConfig,
        backoff: wait_base | None = None,
    ):
        self.store = store
        self.guard = guard
        self.config = config
        self.backoff = backoff or wait_exponential(multiplier=1, min=2, max=10)

    async def _resume(self, job: UploadSync, outcome: TransferOutcome, local_dir: Path) -> TransferOutcome:
        """Continue an interrupted upload from its saved multipart state."""
        assert outcome.resume_state is not None
        logger.info(f"Resuming upload of {local_dir}: {outcome.message}")
        try:
            await job.resume_from(outcome.resume_state)
        except Exception as e:
            resumed = classify_transfer_error(e, self.config.bucket)
        else:
            return TransferOutcome.success()

        if resumed.kind is OutcomeKind.RESUMABLE_INTERRUPTION:
            # Interrupted twice; fall back to a whole-directory retry
            assert resumed.resume_state is not None
            for session in resumed.resume_state.sessions:
                await job.multipart.abort(session)
            failures = tuple(
                FailureRecord(session.key, session.key, session.bucket, resumed.message)
                for session in resumed.resume_state.sessions
            )
            return TransferOutcome(OutcomeKind.PARTIAL_FAILURE, failures=failures, message=resumed.message)
        return resumed

    async def _push_once(
        self, local_dir: Path, remote_prefix: str, progress: ProgressSink | None, force: bool
    ) -> TransferOutcome:
        def on_complete(obj: TransferredObject) -> None:
            if progress is not None:
                progress.increment_step()

        try:
            job = UploadSync(
                self.store,
                self.config.bucket,
                local_dir,
                key_prefix=remote_prefix,
                concurrency=self.config.concurrent_uploads,
                force=force,
                multipart_threshold=self.config.multipart_threshold,
                on_complete=on_complete,
            )
        except OSError as e:
            return classify_transfer_error(e, self.config.bucket)

        try:
            await job.transfer()
            return TransferOutcome.success()
        except Exception as e:
            outcome = classify_transfer_error(e, self.config.bucket)

        if outcome.kind is OutcomeKind.RESUMABLE_INTERRUPTION:
            outcome = await self._resume(job, outcome, local_dir)

        if outcome.kind is OutcomeKind.PARTIAL_FAILURE:
            for failure in outcome.failures:
                logger.error(f"Failed to upload {failure.source_key}: {failure.error}")
        return outcome

    async def push_outcome(
        self,
        local_dir: Path | str,
        remote_prefix: str,
        progress: ProgressSink | None = None,
        force: bool = True,
    ) -> TransferOutcome:
        """Upload ``local_dir`` below ``remote_prefix`` and report a tagged outcome."""
        local_dir = Path(local_dir)
        if not await self.guard.ensure(self.config.bucket):
            logger.error(f"Bucket {self.config.bucket} unavailable; not uploading {local_dir}")
            return TransferOutcome(OutcomeKind.BUCKET_UNAVAILABLE, message=f"bucket {self.config.bucket} unavailable")

        attempts = 0

        async def attempt_push() -> TransferOutcome:
            nonlocal attempts
            attempts += 1
            # Retries always overwrite so a re-upload cannot leave a partial mix
            return await self._push_once(local_dir, remote_prefix, progress, force=force or attempts > 1)

        def log_retry(retry_state: RetryCallState) -> None:
            logger.warning(f"Retrying attempt #{retry_state.attempt_number} for {local_dir}")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_retries),
            wait=self.backoff,
            retry=retry_if_result(lambda outcome: outcome.is_partial_failure),
            before_sleep=log_retry,
            retry_error_callback=_last_outcome,
        )
        outcome = await retrying(attempt_push)

        if outcome.is_partial_failure:
            return TransferOutcome(
                OutcomeKind.MAX_RETRIES_EXCEEDED,
                failures=outcome.failures,
                message=f"{len(outcome.failures)} files still failing after {attempts} attempts",
            )
        return outcome

    async def push(
        self,
        local_dir: Path | str,
        remote_prefix: str,
        progress: ProgressSink | None = None,
        force: bool = True,
    ) -> bool:
        """Upload ``local_dir`` below ``remote_prefix``.

        Returns:
            True only when every file was uploaded
        """
        outcome = await self.push_outcome(local_dir, remote_prefix, progress=progress, force=force)
        match outcome.kind:
            case OutcomeKind.SUCCESS:
                logger.info(f"Uploaded {local_dir} to {self.config.bucket}/{remote_prefix}")
                return True
            case OutcomeKind.BUCKET_UNAVAILABLE:
                return False
            case OutcomeKind.MAX_RETRIES_EXCEEDED | OutcomeKind.PARTIAL_FAILURE:
                logger.error(f"Upload of {local_dir} failed: {outcome.message}")
                return False
            case OutcomeKind.UNCLASSIFIED_ERROR | OutcomeKind.RESUMABLE_INTERRUPTION:
                logger.error(f"Upload of {local_dir} failed: {outcome.message}")
                return False

    async def pull(
        self,
        remote_prefix: str,
        local_dir: Path | str,
        progress: ProgressSink | None = None,
    ) -> SyncResult:
        """Download every object under ``remote_prefix`` into ``local_dir``.

        Transfer errors are not retried here and propagate to the caller.
        """
        if remote_prefix.endswith(KEY_SEPARATOR):
            remote_prefix = remote_prefix[:-1]

        result = SyncResult()
        if not await self.guard.ensure(self.config.bucket):
            result.exit_code = ExitCode.BUCKET_UNAVAILABLE
            return result

        local_dir = Path(local_dir)
        local_dir.mkdir(parents=True, exist_ok=True)

        def on_complete(obj: TransferredObject) -> None:
            if progress is not None:
                progress.increment_step()
            logger.debug(f"Copied {obj.key} => {obj.local_path}")
            result.transferred[obj.key] = obj.local_path

        job = DownloadSync(
            self.store,
            self.config.bucket,
            local_dir,
            base_dir=remote_prefix,
            key_prefix=remote_prefix,
            concurrency=self.config.concurrent_downloads,
            force=True,
            on_complete=on_complete,
        )
        await job.transfer()
        result.exit_code = ExitCode.SUCCESS
        return result
