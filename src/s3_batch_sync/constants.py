#!/usr/bin/env python3
"""
Constants for s3_batch_sync.

Centralized constants to eliminate duplication across the codebase.
"""

from typing import Literal

# Transfer concurrency defaults
DEFAULT_CONCURRENT_UPLOADS = 10
DEFAULT_CONCURRENT_DOWNLOADS = 10

# Whole-directory push attempts before giving up
DEFAULT_MAX_RETRIES = 3

# Retry passes allowed for a batch copy after the initial pass
BATCH_COPY_MAX_RETRIES = 2

# Objects larger than this are uploaded as multipart sessions
DEFAULT_MULTIPART_THRESHOLD = 7_168_000

# Parallel part uploads within one multipart session
DEFAULT_MULTIPART_PART_CONCURRENCY = 5

# S3 connection pool configuration
DEFAULT_S3_MAX_POOL_CONNECTIONS = 50

# Download streaming chunk size
DEFAULT_DOWNLOAD_CHUNK_SIZE = 1024 * 1024

# Separator between target bucket and key in a copy destination
BUCKET_KEY_DELIMITER = "::"

# Object key path separator; keys ending with it are folder markers
KEY_SEPARATOR = "/"

# ACL applied to buckets created on demand
DEFAULT_BUCKET_ACL = "private"

# Region that must not be sent as a LocationConstraint
DEFAULT_REGION = "us-east-1"

# MinIO development defaults
MINIO_DEFAULT_ENDPOINT = "http://localhost:9000"
MINIO_DEFAULT_ACCESS_KEY = "minioadmin"
MINIO_DEFAULT_SECRET_KEY = "minioadmin123"

# Storage types (r2 and minio speak the s3 protocol)
STORAGE_TYPES = Literal["s3", "r2", "minio"]
