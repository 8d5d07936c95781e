#!/usr/bin/env python3
"""
Sync Models

Data models and result types shared by copy, push and pull operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto
from pathlib import Path
from typing import Protocol, TypeAlias

from ..constants import BUCKET_KEY_DELIMITER, KEY_SEPARATOR
from ..exceptions import MultipartUploadInterrupted, TransferError
from ..storage.multipart import ResumeState

CopyMapping: TypeAlias = dict[str, str]


class ProgressSink(Protocol):
    """Receives transfer progress increments."""

    def increment_step(self, count: int = 1) -> None: ...


@dataclass(frozen=True)
class CopyTarget:
    """Where a copied object lands."""

    bucket: str
    key: str


def parse_destination(destination: str, default_bucket: str) -> CopyTarget:
    """Split ``bucket::key`` on the first delimiter; bare keys target ``default_bucket``."""
    if BUCKET_KEY_DELIMITER in destination:
        bucket, key = destination.split(BUCKET_KEY_DELIMITER, 1)
        return CopyTarget(bucket=bucket, key=key)
    return CopyTarget(bucket=default_bucket, key=destination)


def encode_destination(target: CopyTarget, default_bucket: str) -> str:
    """Inverse of parse_destination."""
    if target.bucket == default_bucket:
        return target.key
    return f"{target.bucket}{BUCKET_KEY_DELIMITER}{target.key}"


def strip_bucket_prefix(copy_source: str, bucket: str) -> str:
    """``bucket/key`` -> ``key``; other values are returned unchanged."""
    prefix = f"{bucket}{KEY_SEPARATOR}"
    if bucket and copy_source.startswith(prefix):
        return copy_source[len(prefix) :]
    return copy_source


@dataclass(frozen=True)
class FailureRecord:
    """One item that failed during a copy pass or transfer."""

    source_key: str
    destination_key: str
    target_bucket: str
    error: str

    def destination_ref(self, default_bucket: str) -> str:
        return encode_destination(CopyTarget(self.target_bucket, self.destination_key), default_bucket)


class ExitCode(IntEnum):
    SUCCESS = 0
    BUCKET_UNAVAILABLE = 1
    ERROR = 2


@dataclass
class SyncResult:
    """Outcome of a directory download."""

    exit_code: ExitCode | None = None
    transferred: dict[str, Path] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.exit_code == ExitCode.SUCCESS


class OutcomeKind(Enum):
    SUCCESS = auto()
    BUCKET_UNAVAILABLE = auto()
    PARTIAL_FAILURE = auto()
    MAX_RETRIES_EXCEEDED = auto()
    RESUMABLE_INTERRUPTION = auto()
    UNCLASSIFIED_ERROR = auto()


@dataclass(frozen=True)
class TransferOutcome:
    """Tagged result of one transfer attempt."""

    kind: OutcomeKind
    failures: tuple[FailureRecord, ...] = ()
    resume_state: ResumeState | None = None
    message: str = ""

    @classmethod
    def success(cls) -> TransferOutcome:
        return cls(OutcomeKind.SUCCESS)

    @property
    def is_partial_failure(self) -> bool:
        return self.kind is OutcomeKind.PARTIAL_FAILURE


def classify_transfer_error(error: Exception, bucket: str = "") -> TransferOutcome:
    """Map a transfer exception onto a tagged outcome."""
    match error:
        case MultipartUploadInterrupted(state=state):
            return TransferOutcome(OutcomeKind.RESUMABLE_INTERRUPTION, resume_state=state, message=str(error))
        case TransferError(failures=failures):
            records = tuple(
                FailureRecord(source_key=key, destination_key=key, target_bucket=bucket, error=str(cause))
                for key, cause in failures
            )
            return TransferOutcome(OutcomeKind.PARTIAL_FAILURE, failures=records, message=str(error))
        case _:
            return TransferOutcome(OutcomeKind.UNCLASSIFIED_ERROR, message=f"{type(error).__name__}: {error}")
