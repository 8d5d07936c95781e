"""
File Listing

List real object keys under a prefix, leaving out folder markers.
"""

import logging

from ..constants import KEY_SEPARATOR
from ..storage.base import ObjectStore

logger = logging.getLogger(__name__)

WILDCARD = "*"


class FileListing:
    def __init__(self, store: ObjectStore, bucket: str):
        self.store = store
        self.bucket = bucket

    async def list(self, prefix_pattern: str) -> list[str]:
        """Return keys under ``prefix_pattern`` (``logs/*`` is treated as ``logs/``)."""
        prefix = prefix_pattern.replace(WILDCARD, "")
        keys = [
            obj["Key"]
            async for obj in self.store.iter_objects(self.bucket, prefix)
            if not obj["Key"].endswith(KEY_SEPARATOR)
        ]
        logger.debug(f"Listed {len(keys)} keys under {self.bucket}/{prefix}")
        return keys
