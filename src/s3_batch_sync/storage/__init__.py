"""
Storage Package

Adapter layer between the sync orchestration and an S3-compatible service.
"""

from .base import Command, ObjectStore
from .factories import build_client_kwargs, open_object_store
from .multipart import MultipartUploader, MultipartUploadState, ResumeState
from .transfers import DownloadSync, TransferredObject, UploadSync

__all__ = [
    # Client wrapper
    "Command",
    "ObjectStore",
    # Factories
    "build_client_kwargs",
    "open_object_store",
    # Multipart sessions
    "MultipartUploader",
    "MultipartUploadState",
    "ResumeState",
    # Directory jobs
    "DownloadSync",
    "TransferredObject",
    "UploadSync",
]
