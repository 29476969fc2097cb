"""Command line access to an object storage bucket.

Usage:
  bucketkit ls my-bucket --prefix logs/ --all
  bucketkit get my-bucket path/to/key -o local.bin
  bucketkit put my-bucket path/to/key ./local.txt
  bucketkit rm my-bucket path/to/key

Credentials and endpoint come from S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY and
S3_ENDPOINT_URL (environment or .env).
"""

from __future__ import annotations

import argparse
import logging
import shutil
import sys
from pathlib import Path
from typing import BinaryIO, Sequence

import urllib3

from bucketkit.common.config import Settings, get_settings
from bucketkit.common.logging import setup_logging
from bucketkit.infra.storage import (
    DeleteRequest,
    FileReaderFactory,
    GetRequest,
    ListRequest,
    ObjectRef,
    PutRequest,
    S3StorageClient,
    StorageError,
    TransportError,
)

logger = logging.getLogger("bucketkit.cli")


def list_command(
    client: S3StorageClient, args: argparse.Namespace, settings: Settings
) -> int:
    marker = args.marker or ""
    max_keys = args.max_keys or settings.S3_DEFAULT_MAX_KEYS
    while True:
        result = client.list_objects(
            ListRequest(
                bucket=args.bucket,
                max_keys=max_keys,
                marker=marker,
                prefix=args.prefix or "",
            )
        )
        for entry in result.contents:
            modified = entry.last_modified.isoformat() if entry.last_modified else "-"
            print(f"{modified}\t{entry.size}\t{entry.key}")
        next_marker = result.next_page_marker()
        if not args.all or next_marker is None:
            return 0
        marker = next_marker


def get_command(
    client: S3StorageClient, args: argparse.Namespace, settings: Settings
) -> int:
    body = client.open_object(GetRequest(object=ObjectRef(args.bucket, args.key)))
    try:
        if args.output:
            with open(args.output, "wb") as target:
                _copy_body(body, target)
        else:
            _copy_body(body, sys.stdout.buffer)
    finally:
        body.close()
    return 0


def _copy_body(body: BinaryIO, target: BinaryIO) -> None:
    try:
        shutil.copyfileobj(body, target)
    except urllib3.exceptions.HTTPError as exc:
        raise TransportError(f"Failed to read object body: {exc}") from exc


def put_command(
    client: S3StorageClient, args: argparse.Namespace, settings: Settings
) -> int:
    client.put(
        PutRequest(
            object=ObjectRef(args.bucket, args.key),
            reader_factory=FileReaderFactory(Path(args.file)),
            content_type=args.content_type or "",
        )
    )
    return 0


def remove_command(
    client: S3StorageClient, args: argparse.Namespace, settings: Settings
) -> int:
    client.delete_object(DeleteRequest(object=ObjectRef(args.bucket, args.key)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bucketkit", description="List, fetch, upload and delete objects"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ls_parser = subparsers.add_parser("ls", help="List objects in a bucket")
    ls_parser.add_argument("bucket")
    ls_parser.add_argument("--prefix", default=None, help="Only keys with this prefix")
    ls_parser.add_argument(
        "--max-keys", type=int, default=None, help="Page size (default: 1000)"
    )
    ls_parser.add_argument("--marker", default=None, help="Start after this key")
    ls_parser.add_argument(
        "--all",
        action="store_true",
        help="Keep listing pages until the listing is no longer truncated",
    )
    ls_parser.set_defaults(handler=list_command)

    get_parser = subparsers.add_parser("get", help="Download an object")
    get_parser.add_argument("bucket")
    get_parser.add_argument("key")
    get_parser.add_argument(
        "-o", "--output", default=None, help="Write to FILE instead of stdout"
    )
    get_parser.set_defaults(handler=get_command)

    put_parser = subparsers.add_parser("put", help="Upload a local file")
    put_parser.add_argument("bucket")
    put_parser.add_argument("key")
    put_parser.add_argument("file")
    put_parser.add_argument(
        "--content-type",
        default=None,
        help="Content type (default: guessed from the key's extension)",
    )
    put_parser.set_defaults(handler=put_command)

    rm_parser = subparsers.add_parser("rm", help="Delete an object")
    rm_parser.add_argument("bucket")
    rm_parser.add_argument("key")
    rm_parser.set_defaults(handler=remove_command)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    try:
        client = S3StorageClient.from_settings(settings)
    except StorageError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    with client:
        try:
            return args.handler(client, args, settings)
        except (StorageError, OSError) as exc:
            logger.debug("command %s failed", args.command, exc_info=True)
            print(f"error: {exc}", file=sys.stderr)
            return 1


if __name__ == "__main__":
    sys.exit(main())
