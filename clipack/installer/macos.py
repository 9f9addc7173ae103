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

"""macOS .pkg installer generation for clipack.

This module wraps a darwin build in a native installer using Apple's
``pkgbuild`` tool.

Design Principles:
    - Preconditions (host OS, installer identifier) are checked before any
      workspace or dist file is touched
    - Payload is the darwin target workspace, installed to
      ``/usr/local/lib/<dirname>``
    - ``/usr/local/bin/<bin>`` is a symlink created by the postinstall script
    - An uninstall script ships inside the payload at ``bin/uninstall``;
      each of its steps reports success or failure on its own and never
      stops the remaining steps
    - Output is ``dist/macos/<bin>-v<version>.pkg``

Example:
    Basic usage:
        ```python
        from pathlib import Path
        from clipack.installer import wrap_installer

        result = wrap_installer(Path("."))
        print(f"Package: {result.package_path}")
        ```
"""

from __future__ import annotations

from pathlib import Path
import shutil
import sys
from typing import Mapping

from clipack.build import build_tarballs
from clipack.config import load_build_config, load_oclif_section
from clipack.exceptions import ConfigError, PlatformError
from clipack.process import run_command
from clipack.results import InstallerResult
from clipack.runtime import RuntimeProvider
from clipack.targets import DEFAULT_TARGETS, Arch, Platform, Target, parse_targets

INSTALL_ROOT = "/usr/local/lib"
PUBLIC_BIN = "/usr/local/bin"


def preinstall_script(bin_name: str, dirname: str) -> str:
    """Remove any previous installation and command symlink."""
    return f"""#!/usr/bin/env bash
sudo rm -rf {INSTALL_ROOT}/{dirname}
sudo rm -rf /usr/local/{bin_name}
sudo rm -rf {PUBLIC_BIN}/{bin_name}
"""


def postinstall_script(bin_name: str, dirname: str) -> str:
    """Link the installed launcher into the public bin directory."""
    return f"""#!/usr/bin/env bash
set -x
sudo mkdir -p {PUBLIC_BIN}
sudo ln -sf {INSTALL_ROOT}/{dirname}/bin/{bin_name} {PUBLIC_BIN}/{bin_name}
"""


def uninstall_script(bin_name: str, dirname: str, identifier: str) -> str:
    """Interactive (or ``-y``) uninstaller shipped as ``bin/uninstall``."""
    return f"""#!/usr/bin/env bash

#Parameters
DATE=`date +%Y-%m-%d`
TIME=`date +%H:%M:%S`
LOG_PREFIX="[$DATE $TIME]"

#Functions
log_info() {{
    echo "${{LOG_PREFIX}}[INFO]" $1
}}

log_warn() {{
    echo "${{LOG_PREFIX}}[WARN]" $1
}}

log_error() {{
    echo "${{LOG_PREFIX}}[ERROR]" $1
}}

#Check running user
if (( $EUID != 0 )); then
    echo "Please run as root."
    exit
fi

echo "Welcome to Application Uninstaller"
echo "The following packages will be REMOVED:"
echo "  {dirname}"
while [ "$1" != "-y" ]; do
    read -p "Do you wish to continue [Y/n]?" answer
    [[ $answer == "y" || $answer == "Y" || $answer == "" ]] && break
    [[ $answer == "n" || $answer == "N" ]] && exit 0
    echo "Please answer with 'y' or 'n'"
done

echo "Application uninstalling process started"
# remove link to shortcut file
find "{PUBLIC_BIN}/" -name "{bin_name}" | xargs rm
if [ $? -eq 0 ]
then
  echo "[1/3] [DONE] Successfully deleted shortcut links"
else
  echo "[1/3] [ERROR] Could not delete shortcut links" >&2
fi

#forget from pkgutil
pkgutil --forget "{identifier}" > /dev/null 2>&1
if [ $? -eq 0 ]
then
  echo "[2/3] [DONE] Successfully deleted application informations"
else
  echo "[2/3] [ERROR] Could not delete application informations" >&2
fi

#remove application source distribution
[ -e "{INSTALL_ROOT}/{dirname}" ] && rm -rf "{INSTALL_ROOT}/{dirname}"
if [ $? -eq 0 ]
then
  echo "[3/3] [DONE] Successfully deleted application"
else
  echo "[3/3] [ERROR] Could not delete application" >&2
fi

echo "Application uninstall process finished"
exit 0
"""


def _payload_target(targets: tuple[Target, ...]) -> Target:
    """Pick the darwin target whose workspace becomes the package payload.

    Raises:
        ConfigError: If no darwin target is configured.
    """
    darwin = [t for t in targets if t.platform is Platform.DARWIN]
    if not darwin:
        raise ConfigError("pack-macos requires a darwin target (e.g. darwin-x64)")
    preferred = Target(Platform.DARWIN, Arch.X64)
    return preferred if preferred in darwin else darwin[0]


def _check_installer_settings(root: Path) -> tuple[str, Target]:
    """Validate installer metadata without running any external process.

    Returns:
        The installer identifier and the payload target.

    Raises:
        ConfigError: If oclif.macos.identifier is missing or no darwin
            target is configured.
    """
    oclif = load_oclif_section(root.resolve())
    macos = oclif.get("macos") or {}
    identifier = macos.get("identifier") if isinstance(macos, dict) else None
    if not identifier:
        raise ConfigError("package.json must have oclif.macos.identifier set")

    update = oclif.get("update")
    node = (update.get("node") if isinstance(update, dict) else None) or {}
    node_targets = node.get("targets") if isinstance(node, dict) else None
    targets = parse_targets(node_targets or DEFAULT_TARGETS)
    return identifier, _payload_target(targets)


def _write_script(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    path.chmod(0o755)


def wrap_installer(
    root: Path,
    *,
    provider: RuntimeProvider | None = None,
    environ: Mapping[str, str] | None = None,
) -> InstallerResult:
    """Build the darwin workspace and wrap it in a macOS .pkg.

    Args:
        root: Project root.
        provider: Runtime binary provider passed to the build.
        environ: Environment mapping; defaults to os.environ.

    Returns:
        InstallerResult with the package path.

    Raises:
        PlatformError: If not running on macOS.
        ConfigError: If oclif.macos.identifier is not set.
        PackagingError: If the build or pkgbuild fails.
    """
    from clipack.logging import get_global_logger

    logger = get_global_logger()
    if sys.platform != "darwin":
        raise PlatformError("must be run from macos")

    # metadata checks read files only; git/node run inside load_build_config
    identifier, payload_target = _check_installer_settings(root)

    config = load_build_config(root, environ=environ)

    logger.step(1, 3, "Building darwin workspace...")
    build_tarballs(config, platform=Platform.DARWIN.value, pack=False, provider=provider)

    logger.step(2, 3, "Writing installer scripts...")
    dist = config.dist("macos", f"{config.bin}-v{config.version}.pkg")
    if dist.parent.exists():
        shutil.rmtree(dist.parent)
    dist.parent.mkdir(parents=True)

    scripts_dir = config.tmp / "macos" / "scripts"
    root_dir = config.workspace(payload_target)
    _write_script(scripts_dir / "preinstall", preinstall_script(config.bin, config.dirname))
    _write_script(
        scripts_dir / "postinstall", postinstall_script(config.bin, config.dirname)
    )
    _write_script(
        root_dir / "bin" / "uninstall",
        uninstall_script(config.bin, config.dirname, identifier),
    )

    logger.step(3, 3, "Running pkgbuild...")
    args = [
        "pkgbuild",
        "--root", str(root_dir),
        "--identifier", identifier,
        "--version", config.version,
        "--install-location", f"{INSTALL_ROOT}/{config.dirname}",
        "--scripts", str(scripts_dir),
    ]  # fmt: skip
    if config.macos.sign:
        args.extend(["--sign", config.macos.sign])
    if config.keychain:
        args.extend(["--keychain", config.keychain])
    args.append(str(dist))
    run_command(args, config.root, prefix="MACOS")

    logger.verbose("MACOS", f"[OK] Package created: {dist}")

    return InstallerResult(
        package_path=dist,
        identifier=identifier,
        version=config.version,
        root_dir=root_dir,
        status="success",
    )
