"""
Storage Factory Functions

Centralized client creation and credential resolution for S3, R2 and MinIO.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aioboto3
from aiobotocore.config import AioConfig

from ..constants import (
    DEFAULT_S3_MAX_POOL_CONNECTIONS,
    MINIO_DEFAULT_ACCESS_KEY,
    MINIO_DEFAULT_ENDPOINT,
    MINIO_DEFAULT_SECRET_KEY,
)
from ..exceptions import ConfigurationError
from ..run_config import StorageConfig, TransferConfig
from .base import ObjectStore

logger = logging.getLogger(__name__)


def load_json_credentials(credentials_path: str) -> dict[str, Any]:
    """Load and parse JSON credentials file."""
    try:
        with open(credentials_path) as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in credentials file {credentials_path}: {e}") from e
    except FileNotFoundError as e:
        raise ConfigurationError(f"Credentials file not found: {credentials_path}") from e


def validate_required_keys(data: dict, required_keys: list, context: str = "configuration") -> None:
    """
    Validate that required keys exist in configuration dictionary.

    Raises:
        ConfigurationError: If any required keys are missing
    """
    missing_keys = [key for key in required_keys if not data.get(key)]
    if missing_keys:
        raise ConfigurationError(f"Missing required {context} keys: {missing_keys}")


def r2_endpoint_url(account_id: str) -> str:
    return f"https://{account_id}.r2.cloudflarestorage.com"


def build_client_kwargs(storage_config: StorageConfig) -> dict[str, Any]:
    """
    Translate a storage configuration into aioboto3 client keyword arguments.

    Explicit keys win over a credentials file. For plain S3 with neither,
    boto's default credential chain is used.
    """
    storage_type = storage_config["type"]
    config = dict(storage_config["config"])

    if config.get("credentials_file"):
        creds = load_json_credentials(config["credentials_file"])
        for key in ("access_key", "secret_key", "session_token", "endpoint_url", "region"):
            if creds.get(key) and not config.get(key):
                config[key] = creds[key]

    kwargs: dict[str, Any] = {}
    match storage_type:
        case "s3":
            pass
        case "r2":
            if not config.get("endpoint_url"):
                if not config.get("account_id"):
                    raise ConfigurationError("R2 storage requires endpoint_url or account_id")
                config["endpoint_url"] = r2_endpoint_url(config["account_id"])
            validate_required_keys(config, ["access_key", "secret_key"], "R2 credentials")
            config.setdefault("region", "auto")
        case "minio":
            config.setdefault("endpoint_url", MINIO_DEFAULT_ENDPOINT)
            config.setdefault("access_key", MINIO_DEFAULT_ACCESS_KEY)
            config.setdefault("secret_key", MINIO_DEFAULT_SECRET_KEY)
        case _:
            raise ConfigurationError(f"Unknown storage type: {storage_type}")

    if config.get("access_key") and config.get("secret_key"):
        kwargs["aws_access_key_id"] = config["access_key"]
        kwargs["aws_secret_access_key"] = config["secret_key"]
        if config.get("session_token"):
            kwargs["aws_session_token"] = config["session_token"]
    if config.get("endpoint_url"):
        kwargs["endpoint_url"] = config["endpoint_url"]
    if config.get("region"):
        kwargs["region_name"] = config["region"]
    return kwargs


@asynccontextmanager
async def open_object_store(transfer_config: TransferConfig) -> AsyncIterator[ObjectStore]:
    """Open an S3 client for ``transfer_config`` and yield an ObjectStore around it."""
    client_kwargs = build_client_kwargs(transfer_config.storage_config)

    # Pool must cover the widest batch: concurrency + 1 commands in flight
    widest = max(transfer_config.concurrent_uploads, transfer_config.concurrent_downloads) + 1
    max_pool_connections = max(DEFAULT_S3_MAX_POOL_CONNECTIONS, widest)
    client_kwargs["config"] = AioConfig(
        max_pool_connections=max_pool_connections,
        retries={"max_attempts": 3, "mode": "adaptive"},
        read_timeout=300,
        connect_timeout=120,
    )

    logger.info(
        f"Creating S3 client (type={transfer_config.storage_type}, bucket={transfer_config.bucket or '-'}, "
        f"max_pool_connections={max_pool_connections})"
    )

    session = aioboto3.Session()
    async with session.client("s3", **client_kwargs) as client:
        yield ObjectStore(client, bucket=transfer_config.bucket, region=transfer_config.region)
