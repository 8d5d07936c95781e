"""Shared test configuration utilities and fixtures."""

from pathlib import Path
from unittest.mock import patch

import pytest
from tenacity import wait_none

from s3_batch_sync.run_config import TransferConfig
from s3_batch_sync.sync import BucketSync
from tests.test_utils.mock_configs import TEST_BUCKET, make_transfer_config
from tests.test_utils.storage_mocks import FakeS3Client, RecordingObjectStore, RecordingProgress


def _no_sleep(seconds):
    """Synchronous sleep stub used to short-circuit tenacity waits in tests."""
    return None


@pytest.fixture(scope="session", autouse=True)
def disable_retry_delays():
    """Disable retry delays globally for all tests to speed up test suite.

    Retries will still happen (testing retry logic), but without wait times.
    Only patches tenacity's internal sleep functions, not asyncio.sleep globally.
    """
    import tenacity

    original_base_run_wait = tenacity.BaseRetrying._run_wait
    original_async_run_wait = tenacity.AsyncRetrying._run_wait

    def _zero_wait(self, retry_state):
        """Invoke original wait logic but force the computed delay to zero."""
        original_base_run_wait(self, retry_state)
        retry_state.upcoming_sleep = 0.0

    async def _zero_wait_async(self, retry_state):
        """Async equivalent that still computes retry metadata without sleeping."""
        await original_async_run_wait(self, retry_state)
        retry_state.upcoming_sleep = 0.0

    with patch("tenacity.nap.sleep", side_effect=_no_sleep):
        with patch.object(tenacity.BaseRetrying, "_run_wait", _zero_wait):
            with patch.object(tenacity.AsyncRetrying, "_run_wait", _zero_wait_async):
                yield


@pytest.fixture
def fake_client() -> FakeS3Client:
    return FakeS3Client(buckets={TEST_BUCKET: {}})


@pytest.fixture
def store(fake_client) -> RecordingObjectStore:
    return RecordingObjectStore(fake_client, bucket=TEST_BUCKET)


@pytest.fixture
def transfer_config() -> TransferConfig:
    return make_transfer_config()


@pytest.fixture
def bucket_sync(store, transfer_config) -> BucketSync:
    return BucketSync(store, transfer_config, copy_backoff=wait_none(), upload_backoff=wait_none())


@pytest.fixture
def progress() -> RecordingProgress:
    return RecordingProgress()


@pytest.fixture
def local_tree(tmp_path) -> Path:
    """A small directory tree with nested files."""
    root = tmp_path / "upload"
    (root / "sub" / "deeper").mkdir(parents=True)
    (root / "a.txt").write_bytes(b"alpha")
    (root / "b.txt").write_bytes(b"bravo!")
    (root / "sub" / "c.txt").write_bytes(b"charlie")
    (root / "sub" / "deeper" / "d.bin").write_bytes(b"\x00\x01\x02\x03")
    return root
