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

"""Exception hierarchy for clipack.

This module defines a custom exception hierarchy that allows library users
to distinguish between different types of errors:

- ConfigError: Project metadata errors (package.json, YAML defaults, targets)
- PlatformError: The host OS cannot run the requested operation
- PackagingError: External process or archive failures (npm, yarn, pkgbuild)
- NetworkError: Runtime binary download failures

All exceptions inherit from ClipackError, allowing users to catch all
clipack errors with a single except clause if needed.

Example:
    Catching specific error types:
        ```python
        from clipack.build import build_tarballs
        from clipack.config import load_build_config
        from clipack.exceptions import ConfigError, PackagingError

        try:
            build_tarballs(load_build_config(Path(".")))
        except ConfigError as e:
            print(f"Configuration error: {e}")
        except PackagingError as e:
            print(f"Packaging error: {e}")
        ```

    Catching all clipack errors:
        ```python
        from clipack.exceptions import ClipackError

        try:
            build_tarballs(load_build_config(Path(".")))
        except ClipackError as e:
            print(f"clipack error: {e}")
        ```
"""

from __future__ import annotations

__all__ = [
    "ClipackError",
    "ConfigError",
    "PlatformError",
    "PackagingError",
    "NetworkError",
]


class ClipackError(Exception):
    """Base exception for all clipack errors.

    All clipack-specific exceptions inherit from this class, allowing users
    to catch all clipack errors with a single except clause if needed.
    """

    pass


class ConfigError(ClipackError):
    """Raised for configuration-related errors.

    This exception is raised when there are problems with:

    - Missing or unreadable package.json
    - YAML defaults parsing (syntax errors, invalid structure)
    - Unknown platform/architecture in a target list
    - Missing lockfile in the project root
    - Missing installer identifier for pack-macos

    Configuration errors are always reported before any external process
    runs.
    """

    pass


class PlatformError(ClipackError):
    """Raised when the host OS cannot perform the requested operation.

    Example:
        pack-macos invoked on Linux:
            ```python
            from clipack.installer import wrap_installer
            from clipack.exceptions import PlatformError

            try:
                wrap_installer(Path("."))
            except PlatformError as e:
                print(e)  # must be run from macos
            ```
    """

    pass


class PackagingError(ClipackError):
    """Raised for packaging/build-related errors.

    This exception is raised when there are problems with:

    - npm pack / npm install / yarn / npx invocations exiting non-zero
    - Source tarball extraction
    - Archive creation (gzip/xz)
    - pkgbuild invocation

    No partial-artifact cleanup is performed; the workspace is left in place
    for inspection.
    """

    pass


class NetworkError(ClipackError):
    """Raised for runtime binary download errors.

    This exception is raised when there are problems with:

    - HTTP errors or timeouts while fetching the Node.js distribution
    - Checksum mismatch against SHASUMS256.txt
    """

    pass
