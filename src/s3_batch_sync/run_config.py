#!/usr/bin/env python3
"""
Transfer Configuration Management

Utilities for reading, writing and validating the configuration shared by
push, pull, copy and listing operations.
"""

import json
import types
from argparse import Namespace
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, TypedDict, Union, cast, get_args, get_origin

from .constants import (
    DEFAULT_CONCURRENT_DOWNLOADS,
    DEFAULT_CONCURRENT_UPLOADS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MULTIPART_THRESHOLD,
    STORAGE_TYPES,
)
from .exceptions import ConfigurationError

# Never written to disk
SECRET_KEYS = ("access_key", "secret_key", "session_token")


def serialize_paths(obj: Any) -> Any:
    """Recursively convert Path objects to strings."""
    if isinstance(obj, Path):
        return str(obj)
    elif isinstance(obj, dict):
        return {k: serialize_paths(v) for k, v in obj.items()}
    elif isinstance(obj, list | tuple):
        return [serialize_paths(item) for item in obj]
    return obj


def deserialize_paths(obj: Any, type_hint: Any) -> Any:
    """Recursively convert strings back to Paths based on type hints."""
    if type_hint == Path:
        return Path(obj) if obj is not None else None

    # Handle Optional[Path] (Path | None or Union[Path, None])
    origin = get_origin(type_hint)
    args = get_args(type_hint)

    if (origin is Union or origin is types.UnionType) and Path in args:
        if obj is not None and isinstance(obj, str):
            return Path(obj)
        return obj

    if hasattr(type_hint, "__dataclass_fields__"):
        result = {}
        for field in fields(type_hint):
            if field.name in obj:
                result[field.name] = deserialize_paths(obj[field.name], field.type)
        return type_hint(**result)

    return obj


class StorageConfigDict(TypedDict, total=False):
    """Inner config dict for storage configuration."""

    bucket: str
    region: str
    endpoint_url: str  # For MinIO/R2
    account_id: str  # For R2 endpoint derivation
    access_key: str  # Only in memory, not saved
    secret_key: str  # Only in memory, not saved
    session_token: str  # Only in memory, not saved
    credentials_file: str


class StorageConfig(TypedDict):
    """Complete storage configuration."""

    type: STORAGE_TYPES
    config: StorageConfigDict


def to_storage_config_dict(source: dict[str, Any]) -> StorageConfigDict:
    """Convert any dict to StorageConfigDict, keeping only valid keys with values."""
    valid_keys = StorageConfigDict.__optional_keys__ | StorageConfigDict.__required_keys__
    filtered = {k: v for k, v in source.items() if k in valid_keys and v not in (None, "")}
    return cast(StorageConfigDict, filtered)


@dataclass
class TransferConfig:
    """Configuration for transfers against one default bucket."""

    storage_config: StorageConfig
    concurrent_uploads: int = DEFAULT_CONCURRENT_UPLOADS
    concurrent_downloads: int = DEFAULT_CONCURRENT_DOWNLOADS
    max_retries: int = DEFAULT_MAX_RETRIES
    multipart_threshold: int = DEFAULT_MULTIPART_THRESHOLD
    log_file: Path | None = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check numeric limits; bucket presence is checked before remote calls."""
        if self.storage_config.get("type") not in get_args(STORAGE_TYPES):
            raise ConfigurationError(f"Unknown storage type: {self.storage_config.get('type')}")
        if self.concurrent_uploads < 1:
            raise ConfigurationError(f"concurrent_uploads must be >= 1, got {self.concurrent_uploads}")
        if self.concurrent_downloads < 1:
            raise ConfigurationError(f"concurrent_downloads must be >= 1, got {self.concurrent_downloads}")
        if self.max_retries < 1:
            raise ConfigurationError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.multipart_threshold < 1:
            raise ConfigurationError(f"multipart_threshold must be >= 1, got {self.multipart_threshold}")

    @property
    def storage_type(self) -> STORAGE_TYPES:
        """Get the storage type."""
        return self.storage_config["type"]

    @property
    def bucket(self) -> str:
        """Get the default bucket (empty string when not configured)."""
        return self.storage_config["config"].get("bucket", "")

    @property
    def region(self) -> str | None:
        """Get the configured region."""
        return self.storage_config["config"].get("region")

    @property
    def endpoint_url(self) -> str | None:
        """Get the configured endpoint URL."""
        return self.storage_config["config"].get("endpoint_url")

    def require_bucket(self) -> str:
        """Return the default bucket, raising if it is not set."""
        if not self.bucket:
            raise ConfigurationError("Missing bucket name")
        return self.bucket


def load_transfer_config(config_path: str | Path) -> TransferConfig:
    """
    Load transfer configuration from a specific path.
    """
    try:
        with open(config_path) as f:
            config_dict = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in config file {config_path}: {e}") from e
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {config_path}") from e
    if "storage_config" not in config_dict:
        raise ConfigurationError(f"Config file {config_path} has no storage_config section")
    return deserialize_paths(config_dict, TransferConfig)


def save_transfer_config(config: TransferConfig, config_path: str | Path) -> None:
    """
    Save transfer configuration as JSON, leaving out credentials.
    """
    config_dict = serialize_paths(asdict(config))
    inner = config_dict["storage_config"]["config"]
    for key in SECRET_KEYS:
        inner.pop(key, None)

    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        json.dump(config_dict, f, indent=2)


def build_storage_config_dict(args: Any) -> StorageConfigDict:
    """
    Build the inner storage config dict from parsed CLI arguments.
    """
    return to_storage_config_dict(
        {
            "bucket": getattr(args, "bucket", None),
            "region": getattr(args, "region", None),
            "endpoint_url": getattr(args, "endpoint_url", None),
            "account_id": getattr(args, "account_id", None),
            "credentials_file": getattr(args, "credentials_file", None),
        }
    )


def build_transfer_config_from_args(args: Namespace, base: TransferConfig | None = None) -> TransferConfig:
    """Build a TransferConfig from CLI arguments.

    Values given on the command line override values from ``base``.
    """
    if base is not None:
        storage_type = getattr(args, "storage", None) or base.storage_type
        storage_inner: dict[str, Any] = dict(base.storage_config["config"])
    else:
        storage_type = getattr(args, "storage", None) or "s3"
        storage_inner = {}
    storage_inner.update(build_storage_config_dict(args))

    overrides = {
        "concurrent_uploads": getattr(args, "concurrent_uploads", None),
        "concurrent_downloads": getattr(args, "concurrent_downloads", None),
        "max_retries": getattr(args, "max_retries", None),
        "multipart_threshold": getattr(args, "multipart_threshold", None),
        "log_file": getattr(args, "log_file", None),
    }
    values: dict[str, Any] = {}
    if base is not None:
        values = {field.name: getattr(base, field.name) for field in fields(TransferConfig)}
    values.update({k: v for k, v in overrides.items() if v is not None})
    if values.get("log_file") is not None:
        values["log_file"] = Path(values["log_file"])

    values["storage_config"] = {"type": storage_type, "config": to_storage_config_dict(storage_inner)}
    return TransferConfig(**values)
