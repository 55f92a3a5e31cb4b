"""bucketstore CLI - command-line access to URI-addressed objects.

Usage:
    python -m bucketstore get URI [--output PATH]
    python -m bucketstore put URI [--input PATH]
    python -m bucketstore ls URI [--page-size N]
    python -m bucketstore rm URI
    python -m bucketstore exists URI
    python -m bucketstore mv SRC_URI DST_URI

Object content is streamed: get writes to stdout unless --output is given,
put reads stdin unless --input is given. Other commands print JSON.

Exit codes:
    0: Success
    1: Internal error (unexpected)
    2: Bucket store or configuration error (bad URI, not found, ...)
    3: exists: the object does not exist
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from bucketstore import for_uri
from bucketstore.config import ConfigError
from bucketstore.errors import BucketStoreError

EXIT_OK = 0
EXIT_INTERNAL_ERROR = 1
EXIT_STORE_ERROR = 2
EXIT_NOT_EXISTS = 3


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _make_error_result(code: str, message: str) -> dict[str, Any]:
    return {"error": {"code": code, "message": message}, "ok": False}


def cmd_get(args: argparse.Namespace) -> int:
    """Stream an object to a file or stdout."""
    chunks = for_uri(args.uri).stream.download()

    if args.output:
        size = 0
        with open(args.output, "wb") as f:
            for _, chunk in chunks:
                f.write(chunk)
                size += len(chunk)
        _output_json({"ok": True, "output": args.output, "size": size, "uri": args.uri})
        return EXIT_OK

    out = sys.stdout.buffer
    for _, chunk in chunks:
        out.write(chunk)
    out.flush()
    return EXIT_OK


def cmd_put(args: argparse.Namespace) -> int:
    """Upload a file or stdin to an object."""
    storage = for_uri(args.uri)
    if args.input:
        with open(args.input, "rb") as f:
            uri = storage.upload(f)
    else:
        uri = storage.upload(sys.stdin.buffer)
    _output_json({"ok": True, "uri": uri})
    return EXIT_OK


def cmd_ls(args: argparse.Namespace) -> int:
    """Print matching URIs, one per line."""
    for uri in for_uri(args.uri).list(page_size=args.page_size):
        print(uri)
    return EXIT_OK


def cmd_rm(args: argparse.Namespace) -> int:
    deleted = for_uri(args.uri).delete()
    _output_json({"deleted": deleted, "ok": True, "uri": args.uri})
    return EXIT_OK


def cmd_exists(args: argparse.Namespace) -> int:
    """Report whether an object exists. Exit code 3 when it does not."""
    exists = for_uri(args.uri).exists()
    _output_json({"exists": exists, "ok": True, "uri": args.uri})
    return EXIT_OK if exists else EXIT_NOT_EXISTS


def cmd_mv(args: argparse.Namespace) -> int:
    moved_to = for_uri(args.src).move(args.dst)
    _output_json({"from": args.src, "ok": True, "to": moved_to})
    return EXIT_OK


COMMAND_DISPATCH = {
    "get": cmd_get,
    "put": cmd_put,
    "ls": cmd_ls,
    "rm": cmd_rm,
    "exists": cmd_exists,
    "mv": cmd_mv,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bucketstore",
        description="bucketstore - URI-addressed object storage CLI",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log storage events to stderr",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    get_parser = subparsers.add_parser("get", help="Download an object")
    get_parser.add_argument("uri", help="Object URI (adapter://bucket/key)")
    get_parser.add_argument("--output", help="Write to this file instead of stdout")

    put_parser = subparsers.add_parser("put", help="Upload an object")
    put_parser.add_argument("uri", help="Object URI (adapter://bucket/key)")
    put_parser.add_argument("--input", help="Read from this file instead of stdin")

    ls_parser = subparsers.add_parser("ls", help="List objects by key prefix")
    ls_parser.add_argument("uri", help="Prefix URI (adapter://bucket/prefix)")
    ls_parser.add_argument(
        "--page-size",
        type=int,
        default=1000,
        help="Keys fetched per backend request (default: 1000)",
    )

    rm_parser = subparsers.add_parser("rm", help="Delete an object")
    rm_parser.add_argument("uri", help="Object URI (adapter://bucket/key)")

    exists_parser = subparsers.add_parser("exists", help="Check whether an object exists")
    exists_parser.add_argument("uri", help="Object URI (adapter://bucket/key)")

    mv_parser = subparsers.add_parser("mv", help="Move an object within one adapter")
    mv_parser.add_argument("src", help="Source URI")
    mv_parser.add_argument("dst", help="Destination URI (same adapter)")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Internal error (unexpected)
        2: Bucket store or configuration error
        3: exists reported a missing object
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    if args.verbose:
        logging.basicConfig(
            level=logging.INFO,
            stream=sys.stderr,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )

    try:
        return COMMAND_DISPATCH[args.command](args)
    except (BucketStoreError, ConfigError) as e:
        _output_json(_make_error_result(type(e).__name__, str(e)))
        return EXIT_STORE_ERROR
    except Exception as e:
        # Unexpected errors (backend I/O, SDK failures) return exit code 1
        _output_json(_make_error_result("INTERNAL_ERROR", str(e)))
        return EXIT_INTERNAL_ERROR


if __name__ == "__main__":
    sys.exit(main())
