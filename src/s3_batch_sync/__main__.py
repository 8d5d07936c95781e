#!/usr/bin/env python3
"""
s3-batch-sync Command Line Interface

Commands:
  push     Upload a local directory below a key prefix
  pull     Download every object below a key prefix into a local directory
  copy     Server-side copy of many objects from a mapping file
  ls       List object keys under a prefix
"""

import argparse
import asyncio
import csv
import json
import logging
import sys
from pathlib import Path
from typing import get_args

from .common import format_bytes, pluralize
from .constants import STORAGE_TYPES
from .exceptions import ConfigurationError, MaxRetriesExceeded, StorageError
from .logging_config import setup_logging
from .run_config import TransferConfig, build_transfer_config_from_args, load_transfer_config
from .sync import BucketSync, CopyMapping, ExitCode, ProgressTracker, open_bucket_sync

logger = logging.getLogger(__name__)


def load_copy_mapping(mapping_path: str | Path) -> CopyMapping:
    """
    Read a copy mapping from disk.

    Accepts a JSON object of ``source -> destination`` or tab-separated lines
    ``source<TAB>destination``. File order is preserved.
    """
    mapping_path = Path(mapping_path)
    try:
        text = mapping_path.read_text()
    except FileNotFoundError as e:
        raise ConfigurationError(f"Mapping file not found: {mapping_path}") from e

    if text.lstrip().startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in mapping file {mapping_path}: {e}") from e
        return {str(source): str(destination) for source, destination in data.items()}

    mapping: CopyMapping = {}
    for line_num, row in enumerate(csv.reader(text.splitlines(), delimiter="\t"), 1):
        if not row or row[0].startswith("#"):
            continue
        if len(row) != 2:
            raise ConfigurationError(f"{mapping_path}:{line_num}: expected 'source<TAB>destination'")
        mapping[row[0]] = row[1]
    return mapping


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Storage and transfer options shared by every command."""
    storage_group = parser.add_argument_group("storage")
    storage_group.add_argument("--config", help="Path to a JSON transfer config file")
    storage_group.add_argument("--storage", choices=get_args(STORAGE_TYPES), help="Storage type (default: s3)")
    storage_group.add_argument("--bucket", help="Default bucket")
    storage_group.add_argument("--region", help="Bucket region")
    storage_group.add_argument("--endpoint-url", help="Custom endpoint URL (MinIO, R2)")
    storage_group.add_argument("--account-id", help="Cloudflare account id (R2 endpoint derivation)")
    storage_group.add_argument("--credentials-file", help="JSON file with access_key and secret_key")

    transfer_group = parser.add_argument_group("transfer")
    transfer_group.add_argument("--concurrent-uploads", type=int, help="Parallel uploads and copies (default: 10)")
    transfer_group.add_argument("--concurrent-downloads", type=int, help="Parallel downloads (default: 10)")
    transfer_group.add_argument("--max-retries", type=int, help="Whole-directory push attempts (default: 3)")
    transfer_group.add_argument("--multipart-threshold", type=int, help="Multipart upload threshold in bytes")

    log_group = parser.add_argument_group("logging")
    log_group.add_argument(
        "--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level"
    )
    log_group.add_argument("--log-file", help="Log file path (default: timestamped file in logs/)")


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="s3-batch-sync",
        description="Bulk sync between local directories and S3-compatible buckets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload a build directory
  s3-batch-sync push ./dist releases/v1.2 --bucket my-builds

  # Download a prefix from R2
  s3-batch-sync pull releases/v1.2 ./restore --storage r2 --bucket my-builds \\
                --account-id abc123 --credentials-file ~/.config/r2.json

  # Copy objects listed in a mapping file (bare key or other-bucket::key)
  s3-batch-sync copy mapping.json --bucket my-builds --concurrency 20

  # List keys under a prefix
  s3-batch-sync ls "releases/*" --config transfer.json
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    push_parser = subparsers.add_parser("push", help="Upload a local directory")
    push_parser.add_argument("local_dir", help="Local directory to upload")
    push_parser.add_argument("remote_prefix", help="Key prefix to upload below")
    push_parser.add_argument(
        "--no-force",
        dest="force",
        action="store_false",
        help="Skip files whose remote size already matches on the first attempt",
    )
    add_common_arguments(push_parser)

    pull_parser = subparsers.add_parser("pull", help="Download a key prefix")
    pull_parser.add_argument("remote_prefix", help="Key prefix to download")
    pull_parser.add_argument("local_dir", help="Local directory to write into")
    add_common_arguments(pull_parser)

    copy_parser = subparsers.add_parser("copy", help="Server-side copy from a mapping file")
    copy_parser.add_argument("mapping_file", help="JSON object or TSV file of source -> destination")
    copy_parser.add_argument("--concurrency", type=int, help="Batch size threshold (default: --concurrent-uploads)")
    add_common_arguments(copy_parser)

    ls_parser = subparsers.add_parser("ls", help="List keys under a prefix")
    ls_parser.add_argument("pattern", nargs="?", default="", help="Key prefix, e.g. 'logs/*'")
    add_common_arguments(ls_parser)

    return parser


def resolve_transfer_config(args: argparse.Namespace) -> TransferConfig:
    base = load_transfer_config(args.config) if args.config else None
    return build_transfer_config_from_args(args, base)


async def cmd_push(sync: BucketSync, args: argparse.Namespace) -> int:
    progress = ProgressTracker("files")
    ok = await sync.push(args.local_dir, args.remote_prefix, progress=progress, force=args.force)
    progress.show()
    if ok:
        count = progress.completed
        print(f"Uploaded {count:,} {pluralize(count, 'file')} to {sync.config.bucket}/{args.remote_prefix}")
        return 0
    print(f"Upload of {args.local_dir} failed; see log for details")
    return 1


async def cmd_pull(sync: BucketSync, args: argparse.Namespace) -> int:
    progress = ProgressTracker("files")
    result = await sync.pull(args.remote_prefix, args.local_dir, progress=progress)
    progress.show()
    if result.ok:
        count = len(result.transferred)
        total_bytes = sum(path.stat().st_size for path in result.transferred.values())
        print(
            f"Downloaded {count:,} {pluralize(count, 'file')} ({format_bytes(total_bytes)}) to {args.local_dir}"
        )
    else:
        print(f"Bucket {sync.config.bucket} unavailable")
    return int(result.exit_code if result.exit_code is not None else ExitCode.ERROR)


async def cmd_copy(sync: BucketSync, args: argparse.Namespace) -> int:
    mapping = load_copy_mapping(args.mapping_file)
    if not mapping:
        print(f"No files to copy in {args.mapping_file}")
        return 0

    progress = ProgressTracker("files", total_items=len(mapping))
    await sync.copy(mapping, concurrency=args.concurrency, progress=progress)
    progress.show()
    print(f"Copied {len(mapping):,} {pluralize(len(mapping), 'file')}")
    return 0


async def cmd_ls(sync: BucketSync, args: argparse.Namespace) -> int:
    keys = await sync.list_files(args.pattern)
    for key in keys:
        print(key)
    logger.info(f"Listed {len(keys)} keys for pattern '{args.pattern}'")
    return 0


COMMANDS = {
    "push": cmd_push,
    "pull": cmd_pull,
    "copy": cmd_copy,
    "ls": cmd_ls,
}


async def main(argv: list[str] | None = None) -> int:
    """Main entry point for the s3-batch-sync CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = resolve_transfer_config(args)
        setup_logging(args.log_level, config.log_file)
        logger.info(f"Running {args.command} against {config.storage_type} bucket '{config.bucket}'")

        async with open_bucket_sync(config) as sync:
            return await COMMANDS[args.command](sync, args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        logger.error(f"Configuration error: {e}")
        return 2
    except MaxRetriesExceeded as e:
        print(f"Copy failed: {e}", file=sys.stderr)
        logger.error(str(e))
        return 1
    except StorageError as e:
        print(f"Transfer failed: {e}", file=sys.stderr)
        logger.error(f"Transfer failed: {e}")
        return 1


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
