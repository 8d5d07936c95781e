"""
Sync Package

Batch remote copy, directory push/pull, and listing against a bucket.
"""

from .batch_copy import BatchCopyEngine
from .bucket_guard import BucketGuard
from .directory import DirectorySync
from .listing import FileListing
from .models import (
    CopyMapping,
    CopyTarget,
    ExitCode,
    FailureRecord,
    OutcomeKind,
    ProgressSink,
    SyncResult,
    TransferOutcome,
    classify_transfer_error,
    parse_destination,
)
from .orchestrator import BucketSync, open_bucket_sync
from .progress_reporter import ProgressTracker, SlidingWindowRateCalculator

__all__ = [
    # Orchestration
    "BucketSync",
    "open_bucket_sync",
    "BatchCopyEngine",
    "BucketGuard",
    "DirectorySync",
    "FileListing",
    # Models
    "CopyMapping",
    "CopyTarget",
    "ExitCode",
    "FailureRecord",
    "OutcomeKind",
    "ProgressSink",
    "SyncResult",
    "TransferOutcome",
    "classify_transfer_error",
    "parse_destination",
    # Progress
    "ProgressTracker",
    "SlidingWindowRateCalculator",
]
