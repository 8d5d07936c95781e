"""
Batch Remote Copy

Copies many objects server-side by dispatching CopyObject commands in
bounded batches. Failed items are isolated per batch and only the failed
subset is retried.
"""

import logging
import math

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_none
from tenacity.wait import wait_base

from ..constants import BATCH_COPY_MAX_RETRIES, KEY_SEPARATOR
from ..exceptions import BatchTransferError, ConfigurationError, MaxRetriesExceeded
from ..storage.base import Command, ObjectStore
from .models import CopyMapping, FailureRecord, ProgressSink, parse_destination, strip_bucket_prefix

logger = logging.getLogger(__name__)


def _last_result(retry_state: RetryCallState) -> list[FailureRecord]:
    """Hand back the final pass's failures instead of raising RetryError."""
    assert retry_state.outcome is not None
    return retry_state.outcome.result()


class BatchCopyEngine:
    """
    Server-side copy of a copy-mapping within or across buckets.

    Sources are keys in ``bucket``. Destinations are bare keys (same bucket)
    or ``target-bucket::key``.
    """

    def __init__(
        self,
        store: ObjectStore,
        bucket: str,
        backoff: wait_base | None = None,
        max_retries: int = BATCH_COPY_MAX_RETRIES,
    ):
        self.store = store
        self.bucket = bucket
        self.backoff = backoff or wait_none()
        self.max_retries = max_retries

    def build_copy_command(self, source_key: str, destination: str) -> Command:
        target = parse_destination(destination, self.bucket)
        logger.debug(f"Preparing command to copy {source_key} to {target.bucket}/{target.key}")
        return self.store.build_command(
            "CopyObject",
            {
                "Bucket": target.bucket,
                "Key": target.key,
                "CopySource": f"{self.bucket}{KEY_SEPARATOR}{source_key}",
            },
        )

    def _failure_record(self, command: Command, error: BaseException) -> FailureRecord:
        return FailureRecord(
            source_key=strip_bucket_prefix(command.get("CopySource", ""), self.bucket),
            destination_key=command.get("Key", ""),
            target_bucket=command.get("Bucket", self.bucket),
            error=str(error),
        )

    async def _dispatch(
        self,
        batch: list[Command],
        batch_num: int,
        batch_count: int,
        concurrency: int,
        progress: ProgressSink | None,
    ) -> list[FailureRecord]:
        logger.debug(f"Copy file batch {batch_num} of {batch_count} batches ({len(batch)} files)")
        failures: list[FailureRecord] = []
        try:
            await self.store.execute_batch(batch, concurrency=concurrency)
        except BatchTransferError as e:
            failures = [self._failure_record(command, error) for command, error in e.failed_commands]
            for record in failures:
                logger.error(f"Failed to copy {record.source_key}: {record.error}")

        succeeded = len(batch) - len(failures)
        if progress is not None and succeeded:
            progress.increment_step(succeeded)
        logger.debug(f"Copy batch complete {batch_num} of {batch_count} batches")
        return failures

    async def _copy_pass(
        self, mapping: CopyMapping, concurrency: int, progress: ProgressSink | None
    ) -> list[FailureRecord]:
        """Run every batch of ``mapping`` once and return the failed items."""
        batch_count = math.ceil(len(mapping) / (concurrency + 1))
        logger.info(f"Starting copy of {len(mapping)} files in {batch_count} batches")

        failures: list[FailureRecord] = []
        batch: list[Command] = []
        batch_num = 0
        for source_key, destination in mapping.items():
            batch.append(self.build_copy_command(source_key, destination))
            # Flushed once the batch exceeds concurrency, so batches hold concurrency + 1 items
            if len(batch) > concurrency:
                batch_num += 1
                failures.extend(await self._dispatch(batch, batch_num, batch_count, concurrency, progress))
                batch = []

        if batch:
            batch_num += 1
            failures.extend(await self._dispatch(batch, batch_num, batch_count, concurrency, progress))

        if failures:
            logger.warning(f"Completed copy of {len(mapping) - len(failures)} out of {len(mapping)} files")
            failed_list = "\n".join(f.source_key for f in failures)
            logger.warning(f"Failed files:\n{failed_list}")
        return failures

    async def copy(
        self,
        mapping: CopyMapping,
        concurrency: int,
        progress: ProgressSink | None = None,
        retry_attempt: int = 0,
    ) -> bool:
        """Copy every ``source -> destination`` pair in ``mapping``.

        Args:
            mapping: Ordered source key to destination mapping
            concurrency: Batch flush threshold and parallel command limit
            progress: Optional sink incremented by each batch's successes
            retry_attempt: Retry passes already spent on this mapping

        Returns:
            False for an empty mapping, True once every item was copied

        Raises:
            MaxRetriesExceeded: items still failed on the final retry pass
        """
        if not mapping:
            return False
        if concurrency < 1:
            raise ConfigurationError(f"concurrency must be >= 1, got {concurrency}")
        if not self.bucket:
            raise ConfigurationError("Missing bucket name")
        if not 0 <= retry_attempt <= self.max_retries:
            raise ValueError(f"retry_attempt must be between 0 and {self.max_retries}, got {retry_attempt}")

        pending: CopyMapping = dict(mapping)

        async def copy_pass() -> list[FailureRecord]:
            nonlocal pending
            failures = await self._copy_pass(pending, concurrency, progress)
            if failures:
                pending = {f.source_key: f.destination_ref(self.bucket) for f in failures}
            return failures

        def log_retry(retry_state: RetryCallState) -> None:
            logger.warning(
                f"Retrying copy of {len(pending)} failed files "
                f"(retry attempt #{retry_attempt + retry_state.attempt_number})"
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1 - retry_attempt),
            wait=self.backoff,
            retry=retry_if_result(bool),
            before_sleep=log_retry,
            retry_error_callback=_last_result,
        )
        failures = await retrying(copy_pass)

        if failures:
            raise MaxRetriesExceeded(failures)

        logger.info(f"Completed copy of {len(mapping)} files")
        return True
