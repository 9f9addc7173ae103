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

"""Public API return types for clipack.

This module defines dataclasses for return values from public API functions.
All dataclasses are frozen (immutable) to prevent accidental mutation of
return values.

Example:
    Using result types:
        ```python
        from pathlib import Path
        from clipack.build import build_tarballs
        from clipack.config import load_build_config

        result = build_tarballs(load_build_config(Path(".")))
        print(result.version)
        for target in result.targets:
            print(target.target, target.archives)
        ```

Note:
    Only public API return types belong in this module. Domain types
    (like Manifest or Target) remain co-located with their related logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class StageResult:
    """Result from staging the base workspace.

    Attributes:
        workspace: Path to the base workspace.
        local_dependencies: Dependency name -> path relative to the
            workspace, in declaration order.
    """

    workspace: Path
    local_dependencies: dict[str, str]


@dataclass(frozen=True)
class TargetResult:
    """Result from building one artifact (a target, or the base).

    Attributes:
        target: Target identifier ("linux-x64"), or "base".
        workspace: Workspace that was archived.
        archives: Archive paths that were written (empty when not packed).
        manifest_path: Manifest path, or None when no manifest was written.
        warnings: Non-fatal problems raised while building this artifact.
    """

    target: str
    workspace: Path
    archives: tuple[Path, ...] = ()
    manifest_path: Path | None = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class BuildResult:
    """Result from a full tarball build.

    Attributes:
        version: Resolved build version.
        channel: Release channel.
        workspace: Base workspace path.
        base: Result for the base artifact.
        targets: Results for each built target, in configuration order.
        warnings: Non-fatal problems (e.g. missing update host).
        status: Build status (typically "success").
    """

    version: str
    channel: str
    workspace: Path
    base: TargetResult
    targets: tuple[TargetResult, ...]
    warnings: list[str] = field(default_factory=list)
    status: str = "success"

    @property
    def manifests(self) -> list[Path]:
        """All manifest files written by this build."""
        results = (self.base, *self.targets)
        return [r.manifest_path for r in results if r.manifest_path is not None]


@dataclass(frozen=True)
class InstallerResult:
    """Result from creating a macOS installer package.

    Attributes:
        package_path: Path to the created .pkg file.
        identifier: Installer package identifier.
        version: Package version.
        root_dir: Workspace used as the package payload.
        status: Packaging status (typically "success").
    """

    package_path: Path
    identifier: str
    version: str
    root_dir: Path
    status: str
