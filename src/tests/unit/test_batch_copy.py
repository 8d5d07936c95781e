#!/usr/bin/env python3
"""
Unit tests for the batch remote copy engine
"""

import math

import pytest
from tenacity import wait_none

from s3_batch_sync.exceptions import ConfigurationError, MaxRetriesExceeded
from s3_batch_sync.sync.batch_copy import BatchCopyEngine
from tests.test_utils.mock_configs import TEST_BUCKET


def seed(fake_client, *keys: str) -> None:
    for key in keys:
        fake_client.buckets[TEST_BUCKET][key] = f"data:{key}".encode()


@pytest.fixture
def engine(store) -> BatchCopyEngine:
    return BatchCopyEngine(store, TEST_BUCKET, backoff=wait_none())


class TestBatching:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "count,concurrency",
        [(1, 1), (2, 1), (5, 1), (8, 3), (10, 3), (12, 5), (7, 10)],
    )
    async def test_batch_count_and_size(self, engine, store, fake_client, count, concurrency):
        """Each pass dispatches ceil(N / (C+1)) batches of at most C+1 commands."""
        keys = [f"file-{i}.txt" for i in range(count)]
        seed(fake_client, *keys)

        result = await engine.copy({key: f"copy/{key}" for key in keys}, concurrency)

        assert result is True
        assert len(store.batch_sizes) == math.ceil(count / (concurrency + 1))
        assert max(store.batch_sizes) <= concurrency + 1
        assert sum(store.batch_sizes) == count

    @pytest.mark.asyncio
    async def test_batches_follow_mapping_order(self, engine, store, fake_client):
        keys = ["c.txt", "a.txt", "b.txt"]
        seed(fake_client, *keys)

        await engine.copy({key: f"dst/{key}" for key in keys}, 1)

        dispatched = [command.get("Key") for batch in store.batches for command in batch]
        assert dispatched == ["dst/c.txt", "dst/a.txt", "dst/b.txt"]

    @pytest.mark.asyncio
    async def test_copy_command_parameters(self, engine, store, fake_client):
        seed(fake_client, "src/a.txt")

        await engine.copy({"src/a.txt": "dst/a.txt"}, 5)

        command = store.batches[0][0]
        assert command.operation == "CopyObject"
        assert command.params == {"Bucket": TEST_BUCKET, "Key": "dst/a.txt", "CopySource": f"{TEST_BUCKET}/src/a.txt"}
        assert fake_client.buckets[TEST_BUCKET]["dst/a.txt"] == b"data:src/a.txt"


class TestCopyResults:
    @pytest.mark.asyncio
    async def test_single_item_success(self, engine, fake_client):
        """A single copy against a healthy bucket returns True."""
        seed(fake_client, "a.txt")

        assert await engine.copy({"a.txt": "b.txt"}, 5) is True
        assert fake_client.buckets[TEST_BUCKET]["b.txt"] == b"data:a.txt"

    @pytest.mark.asyncio
    async def test_empty_mapping_returns_false(self, engine, store):
        assert await engine.copy({}, 5) is False
        assert store.batch_sizes == []

    @pytest.mark.asyncio
    async def test_persistent_failure_retries_only_failed_subset(self, engine, store, fake_client):
        """Only the failing item is retried, and the error names it after two retry passes."""
        seed(fake_client, "a.txt", "b.txt")
        fake_client.fail("copy_object", "b.txt")

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            await engine.copy({"a.txt": "x.txt", "b.txt": "y.txt"}, 1)

        assert all(size <= 2 for size in store.batch_sizes)
        # Initial pass plus two retry passes, each retry holding only b.txt
        assert len(store.batches) == 3
        for retry_batch in store.batches[1:]:
            assert [(c.get("CopySource"), c.get("Key")) for c in retry_batch] == [(f"{TEST_BUCKET}/b.txt", "y.txt")]

        error = exc_info.value
        assert [f.source_key for f in error.failures] == ["b.txt"]
        assert error.failures[0].destination_key == "y.txt"
        assert "b.txt" in str(error)
        assert fake_client.buckets[TEST_BUCKET]["x.txt"] == b"data:a.txt"

    @pytest.mark.asyncio
    async def test_transient_failure_recovers_on_retry(self, engine, store, fake_client):
        seed(fake_client, "a.txt", "b.txt", "c.txt")
        fake_client.fail("copy_object", "b.txt", times=1)

        result = await engine.copy({"a.txt": "a2", "b.txt": "b2", "c.txt": "c2"}, 2)

        assert result is True
        assert store.batch_sizes == [3, 1]
        assert set(fake_client.buckets[TEST_BUCKET]) >= {"a2", "b2", "c2"}

    @pytest.mark.asyncio
    async def test_failure_recovers_on_last_retry(self, engine, store, fake_client):
        seed(fake_client, "a.txt")
        fake_client.fail("copy_object", "a.txt", times=2)

        assert await engine.copy({"a.txt": "b.txt"}, 1) is True
        assert len(store.batches) == 3

    @pytest.mark.asyncio
    async def test_failures_in_several_batches_are_all_retried(self, engine, store, fake_client):
        keys = [f"k{i}" for i in range(6)]
        seed(fake_client, *keys)
        fake_client.fail("copy_object", "k0", times=1)
        fake_client.fail("copy_object", "k5", times=1)

        assert await engine.copy({key: f"out/{key}" for key in keys}, 2) is True
        assert store.batch_sizes == [3, 3, 2]
        retried = [c.get("Key") for c in store.batches[-1]]
        assert retried == ["out/k0", "out/k5"]

    @pytest.mark.asyncio
    async def test_retry_attempt_at_ceiling_raises_after_one_pass(self, engine, store, fake_client):
        seed(fake_client, "a.txt")
        fake_client.fail("copy_object", "a.txt")

        with pytest.raises(MaxRetriesExceeded):
            await engine.copy({"a.txt": "b.txt"}, 1, retry_attempt=2)

        assert len(store.batches) == 1

    @pytest.mark.asyncio
    async def test_retry_attempt_out_of_range(self, engine):
        with pytest.raises(ValueError):
            await engine.copy({"a.txt": "b.txt"}, 1, retry_attempt=3)

    @pytest.mark.asyncio
    async def test_invalid_concurrency(self, engine):
        with pytest.raises(ConfigurationError):
            await engine.copy({"a.txt": "b.txt"}, 0)

    @pytest.mark.asyncio
    async def test_explicit_zero_concurrency_is_not_replaced_by_default(self, bucket_sync, fake_client):
        seed(fake_client, "a.txt")

        with pytest.raises(ConfigurationError):
            await bucket_sync.copy({"a.txt": "b.txt"}, concurrency=0)
        assert fake_client.calls_to("copy_object") == []

    @pytest.mark.asyncio
    async def test_default_concurrency_comes_from_config(self, bucket_sync, store, fake_client):
        seed(fake_client, *(f"{n}.txt" for n in range(10)))

        assert await bucket_sync.copy({f"{n}.txt": f"copy/{n}.txt" for n in range(10)}) is True
        # concurrent_uploads=4 flushes batches of 5
        assert store.batch_sizes == [5, 5]

    @pytest.mark.asyncio
    async def test_missing_bucket_name(self, store):
        engine = BatchCopyEngine(store, "", backoff=wait_none())

        with pytest.raises(ConfigurationError):
            await engine.copy({"a.txt": "b.txt"}, 1)


class TestCrossBucket:
    @pytest.mark.asyncio
    async def test_destination_in_other_bucket(self, engine, store, fake_client):
        seed(fake_client, "a.txt")
        fake_client.buckets["other-bucket"] = {}

        assert await engine.copy({"a.txt": "other-bucket::dest.txt"}, 5) is True

        command = store.batches[0][0]
        assert command.get("Bucket") == "other-bucket"
        assert command.get("Key") == "dest.txt"
        assert command.get("CopySource") == f"{TEST_BUCKET}/a.txt"
        assert fake_client.buckets["other-bucket"]["dest.txt"] == b"data:a.txt"
        assert "dest.txt" not in fake_client.buckets[TEST_BUCKET]

    @pytest.mark.asyncio
    async def test_retry_keeps_target_bucket_and_plain_source(self, engine, store, fake_client):
        seed(fake_client, "a.txt")
        fake_client.buckets["other-bucket"] = {}
        fake_client.fail("copy_object", "a.txt", times=1)

        assert await engine.copy({"a.txt": "other-bucket::nested::dest.txt"}, 1) is True

        retry = store.batches[1][0]
        assert retry.get("Bucket") == "other-bucket"
        assert retry.get("Key") == "nested::dest.txt"
        assert retry.get("CopySource") == f"{TEST_BUCKET}/a.txt"


class TestProgress:
    @pytest.mark.asyncio
    async def test_progress_counts_successes_per_batch(self, engine, fake_client, progress):
        keys = [f"k{i}" for i in range(5)]
        seed(fake_client, *keys)
        fake_client.fail("copy_object", "k1", times=1)

        await engine.copy({key: f"o/{key}" for key in keys}, 2, progress=progress)

        # Batch of 3 with one failure, batch of 2, then the retried item
        assert progress.increments == [2, 2, 1]
        assert progress.total == 5

    @pytest.mark.asyncio
    async def test_fully_failed_batch_does_not_increment(self, engine, fake_client, progress):
        seed(fake_client, "a.txt")
        fake_client.fail("copy_object", "a.txt")

        with pytest.raises(MaxRetriesExceeded):
            await engine.copy({"a.txt": "b.txt"}, 1, progress=progress)

        assert progress.increments == []
