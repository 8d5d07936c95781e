"""
Bucket Guard

Makes sure a bucket exists before any transfer touches it.
"""

import logging

from ..constants import DEFAULT_BUCKET_ACL
from ..exceptions import ConfigurationError, StorageError
from ..storage.base import ObjectStore

logger = logging.getLogger(__name__)


class BucketGuard:
    """Verify, and if needed create, target buckets.

    Verified buckets are cached per guard so repeated transfers do not
    re-check them.
    """

    def __init__(self, store: ObjectStore, acl: str = DEFAULT_BUCKET_ACL):
        self.store = store
        self.acl = acl
        self._verified: set[str] = set()

    def reset(self) -> None:
        """Forget every verified bucket."""
        self._verified.clear()

    async def ensure(self, bucket: str) -> bool:
        """Ensure ``bucket`` exists, creating it if it doesn't.

        Returns:
            True if the bucket exists or was created, False if the existence
            check itself was rejected by the service

        Raises:
            ConfigurationError: bucket name missing, or creation could not be
                verified
        """
        if not bucket:
            raise ConfigurationError("Unable to verify bucket: bucket name not set")

        if bucket in self._verified:
            logger.debug(f"Bucket {bucket} already verified (skipping check)")
            return True

        try:
            exists = await self.store.bucket_exists(bucket)
        except StorageError as e:
            logger.error(str(e))
            return False

        if not exists:
            logger.info(f"Bucket '{bucket}' does not exist. Creating with {self.acl} ACL...")
            try:
                await self.store.create_bucket(bucket, acl=self.acl)
            except StorageError as e:
                raise ConfigurationError(f"Unable to create bucket {bucket}: {e}") from e

            try:
                await self.store.wait_until_bucket_exists(bucket)
            except StorageError as e:
                logger.warning(str(e))

            if not await self.store.bucket_exists(bucket):
                raise ConfigurationError(f"Unable to create bucket {bucket}")
            logger.info(f"Created and verified bucket '{bucket}'")
        else:
            logger.debug(f"Bucket '{bucket}' exists")

        self._verified.add(bucket)
        return True
