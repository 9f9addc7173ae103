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

"""Workspace staging for clipack.

This module produces the base workspace: the project is packed with
``npm pack``, the tarball is extracted into an emptied workspace, and the
workspace package.json is rewritten for the build.

Private Helpers:
    - _pack_source: Run npm pack and return the tarball path
    - _extract_source: Extract the tarball into a clean workspace
    - _correct_local_dependencies: Rewrite file: dependency specifiers
    - _update_package_json: Stamp version/bucket and correct dependencies

Design Principles:
    - The workspace is wiped on every build (no incremental reuse)
    - The project root is never modified apart from the transient tarball
    - ``file:`` dependencies are re-pointed relative to the workspace so
      they still resolve to the same directory after relocation

Example:
    from pathlib import Path
    from clipack.build.stager import stage
    from clipack.config import load_build_config

    result = stage(load_build_config(Path(".")))
    print(result.workspace, result.local_dependencies)
"""

from __future__ import annotations

import json
import os
from pathlib import Path
import shutil
import tarfile
from typing import Any

from clipack.config import BuildConfig
from clipack.exceptions import ConfigError, PackagingError
from clipack.process import run_command
from clipack.results import StageResult

LOCAL_PREFIX = "file:"

# Windows launcher shipped in oclif packages; the bundled launchers replace it.
REMOVED_LAUNCHERS = ("bin/run.cmd",)


def _pack_source(root: Path) -> Path:
    """Run ``npm pack`` in root and return the produced tarball.

    Raises:
        PackagingError: If npm fails or prints no tarball name.
    """
    stdout = run_command(["npm", "pack", "--unsafe-perm"], root, prefix="STAGE")
    lines = [line.strip() for line in stdout.splitlines() if line.strip()]
    if not lines:
        raise PackagingError("npm pack did not report a tarball name")
    tarball = root / lines[-1]
    if not tarball.exists():
        raise PackagingError(f"npm pack reported {lines[-1]!r} but it does not exist")
    return tarball


def _extract_source(tarball: Path, workspace: Path) -> None:
    """Extract an npm pack tarball into an emptied workspace.

    The ``package/`` wrapper directory is hoisted into the workspace root,
    then the wrapper, the tarball and unneeded launchers are removed.

    Raises:
        PackagingError: If the tarball cannot be extracted.
    """
    from clipack.logging import get_global_logger

    logger = get_global_logger()

    if workspace.exists():
        logger.verbose("STAGE", f"Removing existing workspace: {workspace}")
        shutil.rmtree(workspace)
    workspace.mkdir(parents=True)

    staged_tarball = workspace / tarball.name
    shutil.move(str(tarball), staged_tarball)

    try:
        with tarfile.open(staged_tarball, "r:gz") as tar:
            tar.extractall(workspace, filter="data")
    except (tarfile.TarError, OSError) as err:
        raise PackagingError(f"Failed to extract {staged_tarball}: {err}") from err

    wrapper = workspace / "package"
    if not wrapper.is_dir():
        raise PackagingError(f"{tarball.name} has no package/ directory")
    for item in wrapper.iterdir():
        shutil.move(str(item), workspace / item.name)
    shutil.rmtree(wrapper)
    staged_tarball.unlink()

    for launcher in REMOVED_LAUNCHERS:
        (workspace / launcher).unlink(missing_ok=True)

    logger.verbose("STAGE", f"[OK] Extracted {tarball.name} to {workspace}")


def _correct_local_dependencies(
    dependencies: dict[str, Any], root: Path, workspace: Path
) -> dict[str, str]:
    """Re-point ``file:`` dependency specifiers at the workspace.

    Args:
        dependencies: The ``dependencies`` mapping (modified in place).
        root: Project root the specifiers are relative to.
        workspace: New location of the package.

    Returns:
        Dependency name -> path relative to workspace, in declaration order.
    """
    local: dict[str, str] = {}
    for name, specifier in dependencies.items():
        if not isinstance(specifier, str) or not specifier.startswith(LOCAL_PREFIX):
            continue
        target_dir = os.path.normpath(root / specifier[len(LOCAL_PREFIX) :])
        relative = Path(os.path.relpath(target_dir, workspace)).as_posix()
        local[name] = relative

    for name, relative in local.items():
        dependencies[name] = f"{LOCAL_PREFIX}./{relative}"
    return local


def _update_package_json(config: BuildConfig, workspace: Path) -> dict[str, str]:
    """Rewrite the workspace package.json for this build.

    Sets ``version``, ensures ``oclif.update.s3`` exists and carries the
    configured bucket, and corrects local dependency specifiers.

    Returns:
        The local dependency map from _correct_local_dependencies().

    Raises:
        ConfigError: If package.json is missing or unreadable.
    """
    from clipack.logging import get_global_logger

    logger = get_global_logger()
    pjson_path = workspace / "package.json"
    try:
        pjson = json.loads(pjson_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as err:
        raise ConfigError(f"Failed to read {pjson_path}: {err}") from err

    pjson["version"] = config.version
    s3 = (
        pjson.setdefault("oclif", {})
        .setdefault("update", {})
        .setdefault("s3", {})
    )
    if config.update.s3.bucket is not None:
        s3["bucket"] = config.update.s3.bucket
    else:
        s3.pop("bucket", None)

    local_dependencies: dict[str, str] = {}
    if isinstance(pjson.get("dependencies"), dict):
        local_dependencies = _correct_local_dependencies(
            pjson["dependencies"], config.root, workspace
        )
        for name, relative in local_dependencies.items():
            logger.verbose("STAGE", f"Local dependency {name} -> {relative}")

    pjson_path.write_text(json.dumps(pjson, indent=2) + "\n", encoding="utf-8")
    logger.verbose("STAGE", f"[OK] Updated package.json (version {config.version})")
    return local_dependencies


def stage(config: BuildConfig) -> StageResult:
    """Stage the base workspace for a build.

    Args:
        config: Build configuration.

    Returns:
        StageResult with the workspace path and local dependency map.

    Raises:
        PackagingError: If npm pack or extraction fails.
        ConfigError: If the packed package.json cannot be read.
    """
    from clipack.logging import get_global_logger

    logger = get_global_logger()
    workspace = config.workspace()
    logger.verbose("STAGE", f"Gathering workspace for {config.bin} to {workspace}")

    tarball = _pack_source(config.root)
    _extract_source(tarball, workspace)
    local_dependencies = _update_package_json(config, workspace)

    return StageResult(workspace=workspace, local_dependencies=local_dependencies)
