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

"""Launcher scripts for the base workspace.

Both launchers run ``bin/run`` with the Node.js binary bundled next to them
when present, so an archive extracted anywhere works without a system Node.
"""

from __future__ import annotations

from pathlib import Path

POSIX_LAUNCHER = """#!/usr/bin/env bash
set -e
echoerr() {{ echo "$@" 1>&2; }}

get_script_dir () {{
  SOURCE="${{BASH_SOURCE[0]}}"
  # resolve $SOURCE until the file is no longer a symlink
  while [ -h "$SOURCE" ]; do
    DIR="$( cd -P "$( dirname "$SOURCE" )" && pwd )"
    SOURCE="$( readlink "$SOURCE" )"
    [[ $SOURCE != /* ]] && SOURCE="$DIR/$SOURCE"
  done
  DIR="$( cd -P "$( dirname "$SOURCE" )" && pwd )"
  echo "$DIR"
}}
DIR=$(get_script_dir)

if [ -x "$DIR/node" ]; then
  NODE="$DIR/node"
elif command -v node >/dev/null 2>&1; then
  NODE=node
else
  echoerr 'Error: node is not installed.' >&2
  exit 1
fi

export {env_prefix}_BINPATH="$DIR/{bin}"
export {env_prefix}_NODE_VERSION={node_version}
"$NODE" "$DIR/run" "$@"
"""

WINDOWS_LAUNCHER = """@echo off
setlocal enableextensions

set {env_prefix}_BINPATH=%~dp0\\{bin}.cmd
set {env_prefix}_NODE_VERSION={node_version}
if exist "%~dp0\\node.exe" (
  "%~dp0\\node.exe" "%~dp0\\run" %*
) else (
  node "%~dp0\\run" %*
)
"""


def _env_prefix(bin_name: str) -> str:
    """Environment variable prefix for a bin name (``my-cli`` -> ``MY_CLI``)."""
    return "".join(c if c.isalnum() else "_" for c in bin_name).upper()


def write_launchers(workspace: Path, bin_name: str, node_version: str) -> list[Path]:
    """Write ``bin/<bin>`` and ``bin/<bin>.cmd`` into a workspace.

    Args:
        workspace: Base workspace.
        bin_name: CLI binary name.
        node_version: Bundled Node.js version, exported to the CLI.

    Returns:
        Paths of the written launchers.
    """
    from clipack.logging import get_global_logger

    logger = get_global_logger()
    bin_dir = workspace / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)

    values = {
        "bin": bin_name,
        "env_prefix": _env_prefix(bin_name),
        "node_version": node_version,
    }

    posix = bin_dir / bin_name
    posix.write_text(POSIX_LAUNCHER.format(**values), encoding="utf-8")
    posix.chmod(0o755)

    windows = bin_dir / f"{bin_name}.cmd"
    windows.write_text(
        WINDOWS_LAUNCHER.format(**values).replace("\n", "\r\n"),
        encoding="utf-8",
        newline="",
    )

    logger.verbose("STAGE", f"[OK] Wrote launchers: bin/{bin_name}, bin/{bin_name}.cmd")
    return [posix, windows]
