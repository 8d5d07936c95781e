"""
Exceptions raised by bucket sync and batch copy operations
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .storage.base import Command
    from .storage.multipart import ResumeState
    from .sync.models import FailureRecord


class SyncError(Exception):
    """Base exception for sync errors."""

    pass


class ConfigurationError(SyncError):
    """Raised for missing or invalid configuration. Never retried."""

    pass


class MaxRetriesExceeded(SyncError):
    """Raised when items still fail after the final retry pass."""

    def __init__(self, failures: list[FailureRecord]):
        self.failures = failures
        listing = "\n".join(f"{f.source_key} => {f.target_bucket}/{f.destination_key}" for f in failures)
        super().__init__(f"Maximum retries attempting to copy files ({len(failures)} failed):\n{listing}")


class StorageError(SyncError):
    """Raised when the storage service rejects an operation."""

    pass


class TransferError(StorageError):
    """Raised when some objects of a transfer failed.

    ``failures`` holds ``(key, exception)`` pairs for every failed object.
    """

    def __init__(self, failures: list[tuple[str, BaseException]], message: str | None = None):
        self.failures = failures
        super().__init__(message or f"{len(failures)} object transfer(s) failed")


class BatchTransferError(TransferError):
    """Raised when some commands of a dispatched batch failed."""

    def __init__(self, failed_commands: list[tuple[Command, BaseException]], succeeded: list[Any]):
        self.failed_commands = failed_commands
        self.succeeded = succeeded
        super().__init__(
            [(command.describe(), error) for command, error in failed_commands],
            f"{len(failed_commands)} of {len(failed_commands) + len(succeeded)} batch commands failed",
        )

    def get_exception_for_failed_command(self, command: Command) -> BaseException:
        """Return the underlying exception for one failed command."""
        for failed, error in self.failed_commands:
            if failed is command:
                return error
        raise KeyError(command.describe())


class MultipartUploadInterrupted(StorageError):
    """Raised when multipart sessions were interrupted and can be resumed."""

    def __init__(self, state: ResumeState, cause: BaseException | None = None):
        self.state = state
        self.cause = cause
        keys = ", ".join(session.key for session in state.sessions)
        detail = f": {cause}" if cause else ""
        super().__init__(f"Multipart upload interrupted for {keys}{detail}")
