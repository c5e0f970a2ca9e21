"""Cast CLI entry points.
This module exposes store, manifest, dataset, and transformation commands.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from core.constants import STORE_ENV_VAR
from core.errors import CastError, CastStoreError, CastValidationError
from core.logging_config import configure_logging
from core.types import SourceInfo
from pipeline.builder_protocol import CommandBuilder
from pipeline.transform_types import TransformRequest
from store.dataset_sdk import CastClient
from store.manifest_io import load_manifest_payload, manifest_to_json, read_manifest
from store.manifest_queries import filter_by_path_prefix, total_size
from store.manifest_validation import validate_manifest_payload


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="cast", description="Content-addressed dataset CLI")
    parser.add_argument("--store-root", help=f"Override {STORE_ENV_VAR} for this command")
    parser.add_argument("--verbose", action="store_true", help="Emit debug logs on stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_put_command(subparsers)
    _add_get_command(subparsers)
    _add_validate_command(subparsers)
    _add_info_command(subparsers)
    _add_filter_command(subparsers)
    _add_register_command(subparsers)
    _add_materialize_command(subparsers)
    _add_transform_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Cast CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    arguments, builder_command = _split_builder_command(argv)
    args = parser.parse_args(arguments)
    args.builder_command = builder_command
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    try:
        return _dispatch(parser, args)
    except CastError as error:
        print(f"error: {error}", file=sys.stderr)
        return 1


def _dispatch(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    if args.command == "validate":
        return _run_validate_command(args)
    if args.command == "info":
        return _run_info_command(args)
    if args.command == "filter":
        return _run_filter_command(args)
    client = CastClient(store_root=args.store_root)
    if args.command == "put":
        return _run_put_command(client, args)
    if args.command == "get":
        return _run_get_command(client, args)
    if args.command == "register":
        return _run_register_command(client, args)
    if args.command == "materialize":
        return _run_materialize_command(client, args)
    if args.command == "transform":
        return _run_transform_command(client, args)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _run_put_command(client: CastClient, args: argparse.Namespace) -> int:
    """Handle put command."""
    print(client.put_file(args.file))
    return 0


def _run_get_command(client: CastClient, args: argparse.Namespace) -> int:
    """Handle get command."""
    print(client.get(args.hash))
    return 0


def _run_validate_command(args: argparse.Namespace) -> int:
    """Handle validate command.

    Args:
        args: Parsed CLI args.

    Returns:
        Exit code, 1 when the manifest has problems.
    """
    problems = validate_manifest_payload(load_manifest_payload(Path(args.manifest)))
    if not problems:
        print("valid")
        return 0
    for problem in problems:
        print(problem)
    return 1


def _run_info_command(args: argparse.Namespace) -> int:
    """Handle info command.

    Args:
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    manifest = read_manifest(Path(args.manifest))
    print(f"name={manifest.dataset.name}")
    print(f"version={manifest.dataset.version}")
    print(f"description={manifest.dataset.description or '-'}")
    print(f"files={len(manifest.contents)}")
    print(f"total_bytes={total_size(manifest)}")
    for index, record in enumerate(manifest.transformations, start=1):
        print(f"transformation.{index}={record.transform_type}\t{record.source_hash}")
    return 0


def _run_filter_command(args: argparse.Namespace) -> int:
    """Handle filter command.

    Args:
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    filtered = filter_by_path_prefix(read_manifest(Path(args.manifest)), args.needle)
    _emit_manifest_json(manifest_to_json(filtered), args.output)
    return 0


def _run_register_command(client: CastClient, args: argparse.Namespace) -> int:
    """Handle register command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    source = SourceInfo(url=args.url, archive_hash=args.archive_hash)
    manifest = client.register(
        args.directory,
        name=args.name,
        version=args.dataset_version,
        source=source,
        description=args.description,
    )
    _emit_manifest_json(manifest_to_json(manifest), args.output)
    return 0


def _run_materialize_command(client: CastClient, args: argparse.Namespace) -> int:
    """Handle materialize command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    dataset = client.materialize(read_manifest(Path(args.manifest)), args.output_dir)
    for key, value in sorted(dataset.environment().items()):
        print(f"{key}={value}")
    return 0


def _run_transform_command(client: CastClient, args: argparse.Namespace) -> int:
    """Handle transform command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    command = list(args.builder_command)
    if not command:
        raise CastValidationError(
            "transform needs a builder command after '--', "
            "for example: cast transform SRC --name out -- ./build.sh"
        )
    request = TransformRequest(
        name=args.name,
        source=Path(args.source),
        builder=CommandBuilder(command),
        params=_parse_params(args.param),
        source_hash=args.source_hash,
        output_dir=Path(args.output_dir) if args.output_dir else None,
    )
    result = client.transform(request)
    print(f"root={result.dataset.root}")
    print(f"files={len(result.manifest.contents)}")
    print(f"chain_length={len(result.manifest.transformations)}")
    print(f"reused={str(result.reused).lower()}")
    return 0


def _split_builder_command(argv: Sequence[str] | None) -> tuple[list[str], list[str]]:
    """Split CLI arguments at the first '--' into Cast options and a builder command."""
    arguments = list(sys.argv[1:] if argv is None else argv)
    if "--" not in arguments:
        return arguments, []
    separator_index = arguments.index("--")
    return arguments[:separator_index], arguments[separator_index + 1 :]


def _parse_params(raw_params: Sequence[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for raw_param in raw_params:
        key, separator, value = raw_param.partition("=")
        if not separator or not key:
            raise CastValidationError(
                f"Invalid --param {raw_param!r}. Use key=value, e.g. --param threads=8."
            )
        params[key] = value
    return params


def _emit_manifest_json(manifest_json: str, output: str | None) -> None:
    if output is None:
        sys.stdout.write(manifest_json)
        return
    try:
        Path(output).write_text(manifest_json, encoding="utf-8")
    except OSError as error:
        raise CastStoreError(
            f"Failed to write manifest to {output}: {error}. "
            "Choose a writable --output path."
        ) from error
    print(output)


def _add_put_command(subparsers: Any) -> None:
    """Register put subcommand."""
    parser = subparsers.add_parser("put", help="Store a file and print its content hash")
    parser.add_argument("file", help="File to store")


def _add_get_command(subparsers: Any) -> None:
    """Register get subcommand."""
    parser = subparsers.add_parser("get", help="Print the stored path for a content hash")
    parser.add_argument("hash", help="Content hash, e.g. sha256:<hex>")


def _add_validate_command(subparsers: Any) -> None:
    """Register validate subcommand."""
    parser = subparsers.add_parser("validate", help="Check a manifest file for problems")
    parser.add_argument("manifest", help="Manifest JSON file")


def _add_info_command(subparsers: Any) -> None:
    """Register info subcommand."""
    parser = subparsers.add_parser("info", help="Summarize a manifest and its provenance")
    parser.add_argument("manifest", help="Manifest JSON file")


def _add_filter_command(subparsers: Any) -> None:
    """Register filter subcommand."""
    parser = subparsers.add_parser("filter", help="Keep entries whose path contains a string")
    parser.add_argument("manifest", help="Manifest JSON file")
    parser.add_argument("needle", help="Substring matched against entry paths")
    parser.add_argument("--output", help="Write the filtered manifest here instead of stdout")


def _add_register_command(subparsers: Any) -> None:
    """Register register subcommand."""
    parser = subparsers.add_parser("register", help="Store a directory and emit its manifest")
    parser.add_argument("directory", help="Directory holding the dataset files")
    parser.add_argument("--name", required=True, help="Dataset name")
    parser.add_argument(
        "--version", dest="dataset_version", required=True, help="Dataset version"
    )
    parser.add_argument("--description", help="Dataset description")
    parser.add_argument("--url", help="Upstream source URL")
    parser.add_argument("--archive-hash", help="Hash of the upstream archive")
    parser.add_argument("--output", help="Write the manifest here instead of stdout")


def _add_materialize_command(subparsers: Any) -> None:
    """Register materialize subcommand."""
    parser = subparsers.add_parser("materialize", help="Realize a manifest as a dataset tree")
    parser.add_argument("manifest", help="Manifest JSON file")
    parser.add_argument("output_dir", help="Destination dataset directory")


def _add_transform_command(subparsers: Any) -> None:
    """Register transform subcommand."""
    parser = subparsers.add_parser(
        "transform",
        help="Run a builder command, given after '--', and capture its output",
    )
    parser.add_argument("source", help="Materialized dataset directory or untracked input")
    parser.add_argument("--name", required=True, help="Transformation and output dataset name")
    parser.add_argument(
        "--param",
        action="append",
        default=[],
        help="Parameter recorded in provenance, as key=value (repeatable)",
    )
    parser.add_argument("--source-hash", help="Override the recorded source hash")
    parser.add_argument("--output-dir", help="Destination for the derived dataset")
