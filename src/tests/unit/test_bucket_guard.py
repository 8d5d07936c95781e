#!/usr/bin/env python3
"""
Unit tests for bucket verification and on-demand creation
"""

from unittest import IsolatedAsyncioTestCase

from s3_batch_sync.exceptions import ConfigurationError
from s3_batch_sync.storage.base import ObjectStore
from s3_batch_sync.sync.bucket_guard import BucketGuard
from tests.test_utils.storage_mocks import FakeS3Client


class TestBucketGuard(IsolatedAsyncioTestCase):
    """Test bucket guard functionality."""

    def setUp(self):
        self.client = FakeS3Client(buckets={"existing-bucket": {}})
        self.store = ObjectStore(self.client)
        self.guard = BucketGuard(self.store)

    async def test_existing_bucket(self):
        """Existing bucket is verified without creation."""
        result = await self.guard.ensure("existing-bucket")

        self.assertTrue(result)
        self.assertEqual(self.client.calls_to("head_bucket"), [{"Bucket": "existing-bucket"}])
        self.assertEqual(self.client.calls_to("create_bucket"), [])

    async def test_missing_bucket_is_created_private(self):
        """Missing bucket is created with a private ACL and waited on."""
        result = await self.guard.ensure("new-bucket")

        self.assertTrue(result)
        self.assertEqual(self.client.calls_to("create_bucket"), [{"Bucket": "new-bucket", "ACL": "private"}])
        self.assertEqual(self.client.waiter_calls, ["new-bucket"])
        self.assertIn("new-bucket", self.client.buckets)
        # Checked before creation and again afterwards
        self.assertEqual(len(self.client.calls_to("head_bucket")), 2)

    async def test_verified_bucket_is_cached(self):
        await self.guard.ensure("existing-bucket")
        await self.guard.ensure("existing-bucket")

        self.assertEqual(len(self.client.calls_to("head_bucket")), 1)

    async def test_reset_clears_cache(self):
        await self.guard.ensure("existing-bucket")
        self.guard.reset()
        await self.guard.ensure("existing-bucket")

        self.assertEqual(len(self.client.calls_to("head_bucket")), 2)

    async def test_cache_is_per_guard(self):
        await self.guard.ensure("existing-bucket")
        await BucketGuard(self.store).ensure("existing-bucket")

        self.assertEqual(len(self.client.calls_to("head_bucket")), 2)

    async def test_empty_bucket_name(self):
        with self.assertRaises(ConfigurationError):
            await self.guard.ensure("")

        self.assertEqual(self.client.calls, [])

    async def test_access_denied_means_unavailable(self):
        """A rejected existence check reports the bucket as unavailable."""
        self.client.head_bucket_error = "403"

        result = await self.guard.ensure("existing-bucket")

        self.assertFalse(result)
        self.assertEqual(self.client.calls_to("create_bucket"), [])

    async def test_unavailable_bucket_is_not_cached(self):
        self.client.head_bucket_error = "403"
        await self.guard.ensure("existing-bucket")

        self.client.head_bucket_error = None
        self.assertTrue(await self.guard.ensure("existing-bucket"))

    async def test_rejected_creation_raises(self):
        self.client.create_bucket_error = "AccessDenied"

        with self.assertRaises(ConfigurationError) as ctx:
            await self.guard.ensure("new-bucket")

        self.assertIn("new-bucket", str(ctx.exception))
        self.assertEqual(self.client.waiter_calls, [])

    async def test_bucket_missing_after_creation_raises(self):
        """Creation that never materializes is a fatal configuration error."""
        self.client.create_bucket_noop = True

        with self.assertRaises(ConfigurationError):
            await self.guard.ensure("ghost-bucket")

        self.assertEqual(self.client.waiter_calls, ["ghost-bucket"])
        self.assertEqual(len(self.client.calls_to("head_bucket")), 2)
