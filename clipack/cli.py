# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Command-line interface for clipack.

This module provides the main CLI entry point for the clipack tool.

Commands:

    build: Build release archives and update manifests
    pack-macos: Wrap the darwin build in a macOS .pkg installer

Example:
    Build every configured target:
        ```bash
        $ clipack build .
        ```

    Build one target with xz archives:
        ```bash
        $ clipack build . --targets linux-x64 --xz
        ```

    Prepare workspaces without archiving:
        ```bash
        $ clipack build . --no-pack --platform darwin
        ```

    Create a macOS installer:
        ```bash
        $ clipack pack-macos --root .
        ```

Exit Codes:

- 0: Success
- 1: Error (configuration, packaging, platform or download failure)

Note:
    Each command has its own handler function (cmd_<command>).
    Verbose mode shows full tracebacks on errors for debugging.
    Debug mode implies verbose mode.

"""

from __future__ import annotations

import argparse
from importlib.metadata import version
from pathlib import Path
import sys

from clipack.build import build_tarballs
from clipack.config import load_build_config
from clipack.exceptions import ClipackError
from clipack.installer import wrap_installer
from clipack.logging import get_logger, set_global_logger


def _split_targets(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [t.strip() for t in value.split(",") if t.strip()]


def _print_error(err: Exception, args: argparse.Namespace) -> None:
    print(f"Error: {err}")
    if args.verbose or args.debug:
        import traceback

        traceback.print_exc()


def cmd_build(args: argparse.Namespace) -> int:
    """Handler for 'clipack build' command.

    Loads the project configuration, stages a clean workspace, installs
    production dependencies, and writes archives and update manifests for
    every requested target under ``dist/``.

    Args:
        args: Parsed command-line arguments containing the project root,
            target list, xz toggle, platform filter and flags.

    Returns:
        Exit code (0 for success, 1 for failure).

    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    root = Path(args.root).resolve()
    if not (root / "package.json").exists():
        print(f"Error: package.json not found in: {root}")
        return 1

    print(f"Building release tarballs for: {root}")
    print()

    try:
        config = load_build_config(
            root, targets=_split_targets(args.targets), xz=args.xz
        )
        result = build_tarballs(
            config,
            platform=args.platform,
            pack=not args.no_pack,
            jobs=args.jobs,
        )
    except ClipackError as err:
        _print_error(err, args)
        return 1

    print("=" * 70)
    print("BUILD RESULTS")
    print("=" * 70)
    print(f"Version:         {result.version}")
    print(f"Channel:         {result.channel}")
    print(f"Workspace:       {result.workspace}")
    print(f"Targets:         {', '.join(t.target for t in result.targets) or '(none)'}")
    for artifact in (result.base, *result.targets):
        for archive in artifact.archives:
            print(f"Archive:         {archive}")
    for manifest in result.manifests:
        print(f"Manifest:        {manifest}")
    print(f"Status:          {result.status}")
    print("=" * 70)

    if result.warnings:
        print()
        print(f"Warnings ({len(result.warnings)}):")
        for warning in result.warnings:
            print(f"  [WARNING] {warning}")

    print()
    print("[SUCCESS] Release tarballs built successfully!")
    return 0


def cmd_pack_macos(args: argparse.Namespace) -> int:
    """Handler for 'clipack pack-macos' command.

    Builds the darwin workspace without archiving it and wraps it in a
    macOS installer package with pkgbuild.

    Args:
        args: Parsed command-line arguments containing the project root
            and flags.

    Returns:
        Exit code (0 for success, 1 for failure).

    Note:
        Only works on macOS. Writes ``dist/macos/<bin>-v<version>.pkg``.

    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    root = Path(args.root).resolve()

    print(f"Creating macOS installer for: {root}")
    print()

    try:
        result = wrap_installer(root)
    except ClipackError as err:
        _print_error(err, args)
        return 1

    print("=" * 70)
    print("INSTALLER RESULTS")
    print("=" * 70)
    print(f"Identifier:      {result.identifier}")
    print(f"Version:         {result.version}")
    print(f"Package Path:    {result.package_path}")
    print(f"Payload:         {result.root_dir}")
    print(f"Status:          {result.status}")
    print("=" * 70)
    print()
    print("[SUCCESS] macOS installer created successfully!")
    return 0


def _add_output_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the clipack CLI."""
    parser = argparse.ArgumentParser(
        prog="clipack",
        description="clipack - release tarballs and update manifests for Node.js CLIs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"clipack {version('clipack')}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    # 'build' command
    parser_build = subparsers.add_parser(
        "build",
        help="Build release archives and update manifests",
        description="Stage the project, install dependencies and build archives for each target.",
    )
    parser_build.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Project root containing package.json (default: current directory)",
    )
    parser_build.add_argument(
        "--targets",
        default=None,
        help="Comma-separated targets, e.g. linux-x64,darwin-arm64 (default: from config)",
    )
    parser_build.add_argument(
        "--xz",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Also produce .tar.xz archives (default: oclif.update.s3.xz)",
    )
    parser_build.add_argument(
        "--platform",
        default=None,
        help="Only build targets for this platform (linux, win32, darwin)",
    )
    parser_build.add_argument(
        "--no-pack",
        action="store_true",
        help="Prepare workspaces only; skip archives and manifests",
    )
    parser_build.add_argument(
        "--jobs",
        type=int,
        default=1,
        help="Number of targets to build concurrently (default: 1)",
    )
    _add_output_flags(parser_build)
    parser_build.set_defaults(func=cmd_build)

    # 'pack-macos' command
    parser_macos = subparsers.add_parser(
        "pack-macos",
        help="Create a macOS .pkg installer",
        description="Build the darwin workspace and wrap it with pkgbuild (macOS only).",
    )
    parser_macos.add_argument(
        "--root",
        default=".",
        help="Project root containing package.json (default: current directory)",
    )
    _add_output_flags(parser_macos)
    parser_macos.set_defaults(func=cmd_pack_macos)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the clipack CLI.

    This function is registered as the 'clipack' console script in
    pyproject.toml.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
