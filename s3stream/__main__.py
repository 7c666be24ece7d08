#!/usr/bin/env python3
"""
Command line access to the three client operations.

Usage:
    python -m s3stream head BUCKET KEY
    python -m s3stream get BUCKET KEY [-o FILE]
    python -m s3stream put BUCKET KEY FILE [-m name=value ...]

    # Against MinIO
    S3_ENDPOINT_URL=http://localhost:9000 python -m s3stream head bucket key

Configuration comes from S3_* environment variables (see S3Config.from_env).
Exit status is 1 when the operation returns an error.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Callable, NoReturn

from s3stream import __version__
from s3stream.core.config import S3Config
from s3stream.core.errors import S3Error
from s3stream.core.types import Bucket, Err, Key, Ok, Result
from s3stream.observability.logging import LogLevel, StructuredLogger, setup_logging
from s3stream.storage.content import ObjectContent
from s3stream.storage.s3_client import ObjectSummary, S3Client

log = StructuredLogger("s3stream.cli")


def _identifier(parse: Callable[[str], Result]) -> Callable[[str], object]:
    """argparse type that validates with Bucket.parse or Key.parse."""
    def convert(raw: str) -> object:
        match parse(raw):
            case Ok(value):
                return value
            case Err(message):
                raise argparse.ArgumentTypeError(message)
    return convert


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3stream",
        description="Streaming client for S3-compatible object stores",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level (default: WARNING)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    head_parser = subparsers.add_parser("head", help="Print object metadata")
    head_parser.add_argument("bucket", type=_identifier(Bucket.parse))
    head_parser.add_argument("key", type=_identifier(Key.parse))

    get_parser = subparsers.add_parser("get", help="Download an object")
    get_parser.add_argument("bucket", type=_identifier(Bucket.parse))
    get_parser.add_argument("key", type=_identifier(Key.parse))
    get_parser.add_argument(
        "--output", "-o",
        help="Destination file (default: stdout)",
    )

    put_parser = subparsers.add_parser("put", help="Upload a file")
    put_parser.add_argument("bucket", type=_identifier(Bucket.parse))
    put_parser.add_argument("key", type=_identifier(Key.parse))
    put_parser.add_argument("file")
    put_parser.add_argument(
        "--metadata", "-m",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="User metadata, repeatable",
    )
    put_parser.add_argument(
        "--content-type",
        default="application/octet-stream",
    )

    return parser


def _parse_metadata(pairs: list[str]) -> dict[str, str]:
    metadata = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise SystemExit(f"invalid metadata {pair!r}, expected NAME=VALUE")
        metadata[name] = value
    return metadata


def _print_summary(summary: ObjectSummary) -> None:
    print(json.dumps({
        "key": str(summary.key),
        "etag": str(summary.etag),
        "size": summary.size,
        "last_modified": summary.last_modified.isoformat() if summary.last_modified else None,
        "content_type": summary.content_type,
        "metadata": dict(summary.metadata),
    }, indent=2))


def _report(error: S3Error) -> int:
    print(json.dumps(error.to_dict(), indent=2), file=sys.stderr)
    return 1


async def _run(args: argparse.Namespace) -> int:
    async with S3Client(S3Config.from_env()) as s3:
        if args.command == "head":
            match await s3.head_object(args.bucket, args.key):
                case Ok(summary):
                    _print_summary(summary)
                    return 0
                case Err(error):
                    return _report(error)

        if args.command == "get":
            match await s3.get_object(args.bucket, args.key):
                case Ok(obj):
                    async with obj:
                        if args.output:
                            with open(args.output, "wb") as sink:
                                drained = await obj.content.drain(sink)
                        else:
                            drained = await obj.content.drain(sys.stdout.buffer)
                    if drained.is_err():
                        return _report(drained.error)
                    return 0
                case Err(error):
                    return _report(error)

        if args.command == "put":
            metadata = _parse_metadata(args.metadata)
            content = ObjectContent.from_file(args.file)
            match await s3.put_object(
                args.bucket,
                args.key,
                content,
                metadata=metadata,
                content_type=args.content_type,
            ):
                case Ok(_):
                    log.info(
                        "upload complete",
                        bytes=s3.metrics.bytes_uploaded,
                        throughput_mbps=round(s3.metrics.upload_throughput_mbps(), 3),
                    )
                    return 0
                case Err(error):
                    return _report(error)

    return 2


def main() -> NoReturn:
    """Main CLI entrypoint."""
    args = _build_parser().parse_args()
    setup_logging(LogLevel.parse(args.log_level), json_output=args.json_logs)
    try:
        sys.exit(asyncio.run(_run(args)))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
