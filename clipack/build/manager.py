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

"""Build manager for release tarballs.

This module orchestrates the complete build from a project root to
archives and update manifests under ``dist/``.

Pipeline:
    1. Stage the base workspace (npm pack, extract, rewrite package.json)
    2. Install production dependencies from the lockfile
    3. Write the bin/ launchers
    4. Archive the base workspace and write the base manifest
    5. Build every requested target (optionally on a worker pool)

Design Principles:
    - Every build starts from a wiped workspace; reruns are idempotent
    - The first failure aborts the build; nothing is retried
    - After step 3 the base workspace is read-only, so targets can be
      built concurrently without sharing any output path

Example:
    from pathlib import Path
    from clipack.build import build_tarballs
    from clipack.config import load_build_config

    config = load_build_config(Path("."), targets=["linux-x64"])
    result = build_tarballs(config)

    for path in result.manifests:
        print(path)
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from clipack.build.dependencies import install_dependencies
from clipack.build.launchers import write_launchers
from clipack.build.matrix import build_base, build_target
from clipack.build.stager import stage
from clipack.config import BuildConfig
from clipack.exceptions import ConfigError
from clipack.results import BuildResult, TargetResult
from clipack.runtime import NodeBinaryProvider, RuntimeProvider
from clipack.targets import Platform, Target


def _select_targets(config: BuildConfig, platform: str | None) -> list[Target]:
    """Return the configured targets, optionally filtered by platform.

    Raises:
        ConfigError: If platform is not a known platform.
    """
    if not platform:
        return list(config.targets)
    try:
        wanted = Platform(platform)
    except ValueError as err:
        supported = ", ".join(p.value for p in Platform)
        raise ConfigError(
            f"Unknown platform {platform!r}. Supported: {supported}"
        ) from err
    return [t for t in config.targets if t.platform is wanted]


def build_tarballs(
    config: BuildConfig,
    *,
    platform: str | None = None,
    pack: bool = True,
    provider: RuntimeProvider | None = None,
    jobs: int = 1,
) -> BuildResult:
    """Build the base artifact and all requested targets.

    Args:
        config: Build configuration from load_build_config().
        platform: Only build targets for this platform (e.g. "darwin").
        pack: If False, prepare workspaces without archives or manifests.
        provider: Runtime binary provider. Default: NodeBinaryProvider
            caching under ``<root>/tmp/cache/node``.
        jobs: Number of targets built concurrently. Default is 1.

    Returns:
        BuildResult with per-artifact results and any warnings.

    Raises:
        ConfigError: On unknown platform or missing lockfile.
        PackagingError: If an external command or archive step fails.
        NetworkError: If a runtime binary cannot be downloaded.

    Example:
        Inspection build for macOS only:

            result = build_tarballs(config, platform="darwin", pack=False)
            print(result.targets[0].workspace)
    """
    from clipack.logging import get_global_logger

    logger = get_global_logger()
    targets = _select_targets(config, platform)
    if jobs < 1:
        raise ConfigError(f"jobs must be at least 1, got {jobs}")

    config.tmp.mkdir(parents=True, exist_ok=True)

    logger.step(1, 5, "Staging workspace...")
    staged = stage(config)

    logger.step(2, 5, "Installing dependencies...")
    install_dependencies(config, staged.workspace, staged.local_dependencies)

    logger.step(3, 5, "Writing launchers...")
    write_launchers(staged.workspace, config.bin, config.node_version)

    logger.step(4, 5, "Building base tarball...")
    base = build_base(config, pack=pack)

    logger.step(5, 5, f"Building {len(targets)} target(s)...")
    if provider is None:
        provider = NodeBinaryProvider(config.node_version, config.tmp / "cache" / "node")

    results: list[TargetResult]
    if jobs == 1 or len(targets) <= 1:
        results = [build_target(config, t, provider, pack=pack) for t in targets]
    else:
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            futures = [
                pool.submit(build_target, config, t, provider, pack=pack)
                for t in targets
            ]
            results = [f.result() for f in futures]

    warnings = list(base.warnings)
    for result in results:
        warnings.extend(result.warnings)

    logger.verbose("BUILD", f"[OK] Build complete: {config.version}")

    return BuildResult(
        version=config.version,
        channel=config.channel,
        workspace=staged.workspace,
        base=base,
        targets=tuple(results),
        warnings=warnings,
        status="success",
    )
