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

"""External process execution for clipack.

Every tool invocation (npm, yarn, npx, git, pkgbuild) goes through
run_command(), which always takes an explicit working directory. The
process-wide current directory is never changed, so target builds can run
on worker threads.
"""

from __future__ import annotations

from pathlib import Path
import subprocess
from typing import Sequence

from clipack.exceptions import PackagingError


def run_command(
    cmd: Sequence[str],
    cwd: Path,
    *,
    prefix: str = "PROCESS",
    timeout: float | None = None,
) -> str:
    """Run a command and return its stdout.

    Args:
        cmd: Command and arguments.
        cwd: Working directory for the process.
        prefix: Log prefix for verbose output.
        timeout: Optional timeout in seconds. Default is no timeout.

    Returns:
        Captured stdout, stripped of trailing whitespace.

    Raises:
        PackagingError: If the executable is missing, exits non-zero or
            times out.
    """
    from clipack.logging import get_global_logger

    logger = get_global_logger()
    logger.verbose(prefix, f"Running: {' '.join(cmd)} (cwd: {cwd})")

    try:
        result = subprocess.run(
            list(cmd),
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
        )
    except FileNotFoundError as err:
        raise PackagingError(f"{cmd[0]} not found on PATH") from err
    except subprocess.CalledProcessError as err:
        error_msg = f"{' '.join(cmd)} failed (exit code {err.returncode})"
        if err.stderr:
            error_msg += f"\n{err.stderr.strip()}"
        raise PackagingError(error_msg) from err
    except subprocess.TimeoutExpired as err:
        raise PackagingError(f"{cmd[0]} timed out after {err.timeout}s") from err

    for line in result.stdout.strip().splitlines():
        logger.debug(prefix, f"  {line}")

    return result.stdout.rstrip()
