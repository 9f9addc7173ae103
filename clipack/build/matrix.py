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

"""Per-target and base artifact builds.

Each target gets its own copy of the base workspace with the matching
Node.js binary at ``bin/node`` (``bin/node.exe`` on Windows), which is then
archived to ``dist/<versioned key>`` and described by a manifest at
``dist/<manifest key>``. The base artifact is the base workspace archived
as-is.

Private Helpers:
    - _assemble_manifest: Checksum archives and build a Manifest

Design Principles:
    - The base workspace is only read here; target builds are independent
      and may run concurrently
    - Without ``oclif.update.s3.host`` archives are still produced but no
      manifest is written (local-only build)
    - ``pack=False`` stops after the workspace is prepared (inspection builds)
"""

from __future__ import annotations

from pathlib import Path
import shutil
import tarfile

from clipack.build.manifest import (
    Manifest,
    base_rollout,
    file_sha256,
    target_rollout,
    write_manifest,
)
from clipack.config import BuildConfig
from clipack.exceptions import PackagingError
from clipack.results import TargetResult
from clipack.runtime import RuntimeProvider, runtime_filename
from clipack.targets import Target

GZ_EXT = ".tar.gz"
XZ_EXT = ".tar.xz"

NO_HOST_WARNING = "No S3 bucket or host configured. CLI will not be able to update."


def pack_archive(source_dir: Path, archive: Path) -> Path:
    """Archive source_dir into a .tar.gz or .tar.xz file.

    The archive holds a single top-level directory named after source_dir.

    Raises:
        PackagingError: If the archive cannot be written.
    """
    from clipack.logging import get_global_logger

    logger = get_global_logger()
    if archive.name.endswith(".gz"):
        mode = "w:gz"
    elif archive.name.endswith(".xz"):
        mode = "w:xz"
    else:
        raise ValueError(f"Unsupported archive type: {archive.name}")

    archive.parent.mkdir(parents=True, exist_ok=True)
    logger.verbose("PACK", f"Packing tarball from {source_dir} to {archive}")
    try:
        with tarfile.open(archive, mode) as tar:
            tar.add(source_dir, arcname=source_dir.name)
    except (tarfile.TarError, OSError) as err:
        raise PackagingError(f"Failed to create {archive}: {err}") from err
    return archive


def _assemble_manifest(
    config: BuildConfig,
    target: Target | None,
    gz_archive: Path,
    xz_archive: Path | None,
    rollout: int | None,
) -> Manifest:
    """Checksum the archives and build the manifest for one artifact."""
    keys = config.keys
    host = config.update.s3.host or ""
    xz_url = None
    if xz_archive is not None:
        xz_url = keys.url(host, keys.key("versioned", XZ_EXT, target))
    return Manifest(
        version=config.version,
        channel=config.channel,
        base_dir=keys.key("baseDir", target=target),
        gz=keys.url(host, keys.key("versioned", GZ_EXT, target)),
        sha256gz=file_sha256(gz_archive),
        xz=xz_url,
        sha256xz=file_sha256(xz_archive) if xz_archive else None,
        rollout=rollout,
        node_compatible=config.node_compatible,
        node_recommended=config.node_version,
    )


def _pack_artifact(
    config: BuildConfig, workspace: Path, target: Target | None
) -> tuple[Path, Path | None]:
    """Write the gzip archive, and the xz archive when enabled."""
    keys = config.keys
    gz_archive = pack_archive(workspace, config.dist(keys.key("versioned", GZ_EXT, target)))
    xz_archive = None
    if config.xz:
        xz_archive = pack_archive(
            workspace, config.dist(keys.key("versioned", XZ_EXT, target))
        )
    return gz_archive, xz_archive


def build_target(
    config: BuildConfig,
    target: Target,
    provider: RuntimeProvider,
    *,
    pack: bool = True,
) -> TargetResult:
    """Build the workspace, archives and manifest for one target.

    Args:
        config: Build configuration.
        target: Target to build.
        provider: Supplies the Node.js binary for the target.
        pack: If False, stop once the workspace is prepared.

    Returns:
        TargetResult describing what was written.

    Raises:
        PackagingError: If archiving fails.
        NetworkError: If the runtime binary cannot be obtained.
    """
    from clipack.logging import get_global_logger

    logger = get_global_logger()
    workspace = config.workspace(target)
    key = config.keys.key("versioned", GZ_EXT, target)
    logger.verbose("TARGET", f"Building target {Path(key).name}")

    if workspace.exists():
        shutil.rmtree(workspace)
    workspace.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(config.workspace(), workspace, symlinks=True)

    runtime = workspace / "bin" / runtime_filename(target)
    provider.fetch(target, runtime)
    runtime.chmod(0o755)

    if not pack:
        return TargetResult(target=target.key, workspace=workspace)

    gz_archive, xz_archive = _pack_artifact(config, workspace, target)
    archives = tuple(a for a in (gz_archive, xz_archive) if a is not None)

    if not config.update.s3.host:
        return TargetResult(target=target.key, workspace=workspace, archives=archives)

    manifest = _assemble_manifest(
        config, target, gz_archive, xz_archive, target_rollout(config.update.rollout)
    )
    manifest_path = write_manifest(
        config.dist(config.keys.key("manifest", target=target)), manifest
    )
    logger.verbose("TARGET", f"[OK] Wrote manifest: {manifest_path}")

    return TargetResult(
        target=target.key,
        workspace=workspace,
        archives=archives,
        manifest_path=manifest_path,
    )


def build_base(config: BuildConfig, *, pack: bool = True) -> TargetResult:
    """Archive the base workspace and write the base manifest.

    Args:
        config: Build configuration.
        pack: If False, do nothing (inspection builds).

    Returns:
        TargetResult for "base". Its warnings carry NO_HOST_WARNING when no
        update host is configured.

    Raises:
        PackagingError: If archiving fails.
    """
    from clipack.logging import get_global_logger

    logger = get_global_logger()
    workspace = config.workspace()
    if not pack:
        return TargetResult(target="base", workspace=workspace)

    gz_archive, xz_archive = _pack_artifact(config, workspace, None)
    archives = tuple(a for a in (gz_archive, xz_archive) if a is not None)

    if not config.update.s3.host:
        logger.warning(NO_HOST_WARNING)
        return TargetResult(
            target="base",
            workspace=workspace,
            archives=archives,
            warnings=(NO_HOST_WARNING,),
        )

    manifest = _assemble_manifest(
        config, None, gz_archive, xz_archive, base_rollout(config.update.rollout)
    )
    manifest_path = write_manifest(config.dist(config.keys.key("manifest")), manifest)
    logger.verbose("BASE", f"[OK] Wrote manifest: {manifest_path}")

    return TargetResult(
        target="base",
        workspace=workspace,
        archives=archives,
        manifest_path=manifest_path,
    )
