"""
s3_batch_sync

Bulk sync between local directories and S3-compatible buckets, plus batched
server-side copies.
"""

from .exceptions import (
    BatchTransferError,
    ConfigurationError,
    MaxRetriesExceeded,
    MultipartUploadInterrupted,
    StorageError,
    SyncError,
    TransferError,
)
from .run_config import TransferConfig, load_transfer_config
from .sync import BucketSync, ExitCode, SyncResult, open_bucket_sync

__version__ = "0.1.0"

__all__ = [
    "BatchTransferError",
    "BucketSync",
    "ConfigurationError",
    "ExitCode",
    "MaxRetriesExceeded",
    "MultipartUploadInterrupted",
    "StorageError",
    "SyncError",
    "SyncResult",
    "TransferConfig",
    "TransferError",
    "load_transfer_config",
    "open_bucket_sync",
]
