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

"""Production dependency installation for staged workspaces.

The project's lockfile is copied into the workspace before installing so the
installed tree matches what was tested:

- yarn.lock -> ``yarn --no-progress --production --non-interactive``
- package-lock.json (or npm-shrinkwrap.json) -> ``npm install --production``

Local ``file:`` dependencies are then linked one by one with
``npx install-local``, in declaration order.
"""

from __future__ import annotations

from pathlib import Path
import shutil

from clipack.config import BuildConfig
from clipack.exceptions import ConfigError
from clipack.process import run_command

YARN_INSTALL = ["yarn", "--no-progress", "--production", "--non-interactive"]
NPM_INSTALL = ["npm", "install", "--production"]
INSTALL_LOCAL = ["npx", "install-local@^1.0.0"]

NPM_LOCKFILES = ("package-lock.json", "npm-shrinkwrap.json")


def _find_lockfile(root: Path) -> tuple[Path, list[str]]:
    """Return the lockfile to replicate and the matching install command.

    Raises:
        ConfigError: If the project has no supported lockfile.
    """
    yarn_lock = root / "yarn.lock"
    if yarn_lock.exists():
        return yarn_lock, YARN_INSTALL
    for name in NPM_LOCKFILES:
        lockfile = root / name
        if lockfile.exists():
            return lockfile, NPM_INSTALL
    raise ConfigError(
        f"No lockfile found in {root}. Expected yarn.lock, "
        f"{' or '.join(NPM_LOCKFILES)}."
    )


def install_dependencies(
    config: BuildConfig,
    workspace: Path,
    local_dependencies: dict[str, str] | None = None,
) -> None:
    """Install production dependencies into a staged workspace.

    Args:
        config: Build configuration (the lockfile is read from config.root).
        workspace: Staged workspace.
        local_dependencies: Name -> workspace-relative path of local
            dependencies to link after the primary install.

    Raises:
        ConfigError: If no lockfile is found.
        PackagingError: If any install command exits non-zero.
    """
    from clipack.logging import get_global_logger

    logger = get_global_logger()
    lockfile, install_cmd = _find_lockfile(config.root)

    logger.verbose("DEPS", f"Using lockfile: {lockfile.name}")
    shutil.copy2(lockfile, workspace / lockfile.name)
    run_command(install_cmd, workspace, prefix="DEPS")

    for name, relative in (local_dependencies or {}).items():
        logger.verbose("DEPS", f"Linking local dependency {name}: {relative}")
        run_command([*INSTALL_LOCAL, relative], workspace, prefix="DEPS")

    logger.verbose("DEPS", "[OK] Dependencies installed")
