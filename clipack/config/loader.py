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

"""Build configuration loading for clipack.

This module turns a project root into an immutable BuildConfig. All
defaulting of the loosely shaped ``oclif.update`` section happens here,
once, so the build stages only ever see explicit optional fields.

Configuration Layers:
    1. **Organization defaults** (defaults/org.yaml)
       - Found by walking upward from the project root
       - Same shape as the ``oclif`` section of package.json
       - Optional

    2. **package.json** ``oclif`` section
       - Always wins over the YAML defaults

    3. **Call-site options** (targets, xz)
       - Passed by the CLI; win over both files

Merge Behavior:
    - **Dicts**: Recursively merged (keys from overlay override base)
    - **Lists**: Completely replaced (NOT appended/extended)
    - **Scalars**: Overwritten (strings, numbers, booleans)

Environment:
    Read from the process environment, with a ``.env`` file in the project
    root filling in anything unset:

    - CLIPACK_NEXT_VERSION: replaces the resolved version
    - OSX_KEYCHAIN: keychain passed to pkgbuild

Version Resolution:
    Pre-release versions (containing "-") get the short git sha appended:
    ``1.2.0-beta.1`` becomes ``1.2.0-beta.1.abc1234``. The channel is the
    first pre-release token (``beta``), or ``stable`` for plain versions.

Error Handling:
    - ConfigError: missing/invalid package.json, YAML parse errors,
        unknown targets, invalid rollout values
    - All errors are chained with "from err" for better debugging

Example:
    Basic usage:
        ```python
        from pathlib import Path
        from clipack.config import load_build_config

        config = load_build_config(Path("."), targets=["linux-x64"], xz=False)
        print(config.version, config.channel)
        print(config.workspace())
        ```
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import os
from pathlib import Path
import re
from typing import Any, Iterable, Mapping

from dotenv import dotenv_values
import yaml

from clipack.exceptions import ConfigError, PackagingError
from clipack.keys import KeyScheme, merge_templates
from clipack.targets import DEFAULT_TARGETS, Target, parse_targets

NEXT_VERSION_ENV = "CLIPACK_NEXT_VERSION"
KEYCHAIN_ENV = "OSX_KEYCHAIN"

# -------------------------------
# Data types
# -------------------------------


@dataclass(frozen=True)
class S3Config:
    """Update hosting settings (``oclif.update.s3``).

    Attributes:
        bucket: Bucket name stamped into the workspace package.json.
        host: Public URL prefix. None means local-only build (no manifests).
        xz: Whether xz archives are produced by default.
        templates: Key template table (see clipack.keys).
    """

    bucket: str | None = None
    host: str | None = None
    xz: bool = False
    templates: Mapping[str, Mapping[str, str]] = field(
        default_factory=lambda: merge_templates(None)
    )


@dataclass(frozen=True)
class UpdateConfig:
    """Resolved ``oclif.update`` section.

    Attributes:
        s3: Update hosting settings.
        rollout: ``autoupdate.rollout`` exactly as configured: an int in
            0-100, False, or None when unset. Kept raw because target and
            base manifests interpret False differently.
        node_targets: Target identifiers from ``node.targets``, if any.
    """

    s3: S3Config = field(default_factory=S3Config)
    rollout: int | bool | None = None
    node_targets: tuple[str, ...] | None = None


@dataclass(frozen=True)
class MacosConfig:
    """macOS installer settings (``oclif.macos``)."""

    identifier: str | None = None
    sign: str | None = None


@dataclass(frozen=True)
class BuildConfig:
    """Immutable configuration for one build invocation.

    Attributes:
        root: Project root (directory containing package.json).
        name: npm package name.
        bin: CLI binary name.
        dirname: Install directory name.
        version: Resolved build version.
        channel: Release channel.
        git_sha: Short git sha when the version is a pre-release.
        tmp: Temp/workspace root (``<root>/tmp``).
        node_version: Bundled Node.js version (recommended).
        node_compatible: ``engines.node`` range (compatible).
        xz: Whether to produce xz archives.
        targets: Targets to build.
        update: Resolved update configuration.
        macos: macOS installer settings.
        keychain: Keychain path for pkgbuild signing.
    """

    root: Path
    name: str
    bin: str
    dirname: str
    version: str
    channel: str
    git_sha: str | None
    tmp: Path
    node_version: str
    node_compatible: str
    xz: bool
    targets: tuple[Target, ...]
    update: UpdateConfig = field(default_factory=UpdateConfig)
    macos: MacosConfig = field(default_factory=MacosConfig)
    keychain: str | None = None

    @property
    def keys(self) -> KeyScheme:
        """Key scheme for this build's (bin, channel, version)."""
        return KeyScheme(
            bin=self.bin,
            channel=self.channel,
            version=self.version,
            templates=self.update.s3.templates,
        )

    def workspace(self, target: Target | None = None) -> Path:
        """Return the base workspace, or the workspace for a target."""
        if target is not None:
            return self.tmp / target.key / self.bin
        return self.tmp / self.bin

    def dist(self, *parts: str) -> Path:
        """Return a path under ``<root>/dist``."""
        return self.root.joinpath("dist", *parts)


# -------------------------------
# File helpers
# -------------------------------


def _load_package_json(root: Path) -> dict[str, Any]:
    """Load ``<root>/package.json``.

    Raises:
        ConfigError: If the file is missing, unparsable, or not an object.
    """
    pjson_path = root / "package.json"
    if not pjson_path.exists():
        raise ConfigError(f"package.json not found in {root}")
    try:
        data = json.loads(pjson_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as err:
        raise ConfigError(f"Error parsing {pjson_path}: {err}") from err
    if not isinstance(data, dict):
        raise ConfigError(f"package.json must contain a JSON object: {pjson_path}")
    return data


def _load_yaml_file(p: Path) -> Any:
    """Load a YAML file and return the parsed Python object.

    Raises:
        ConfigError: Invalid YAML or empty file.
    """
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f"Error parsing YAML: {p}: {err}") from err
    if data is None:
        raise ConfigError(f"YAML file is empty: {p}")
    return data


def _deep_merge_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge two dicts with "overlay wins".

    Rules:
      - dict + dict -> deep merge
      - list + list -> overlay REPLACES base (not concatenated)
      - everything else -> overlay overwrites base

    This function does not mutate inputs; returns a new dict.
    """
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge_dicts(result[k], v)
        else:
            result[k] = v
    return result


def _find_defaults_root(start_dir: Path) -> Path | None:
    """Walk upward from start_dir looking for ``defaults/org.yaml``.

    Returns:
        The ``defaults`` directory, or None if not found.
    """
    for parent in [start_dir] + list(start_dir.parents):
        candidate = parent / "defaults" / "org.yaml"
        if candidate.exists():
            return parent / "defaults"
    return None


def _load_environment(root: Path, environ: Mapping[str, str] | None) -> dict[str, str]:
    """Merge ``<root>/.env`` under the process environment."""
    env: dict[str, str] = {}
    dotenv_path = root / ".env"
    if dotenv_path.exists():
        env.update({k: v for k, v in dotenv_values(dotenv_path).items() if v is not None})
    env.update(os.environ if environ is None else environ)
    return env


# -------------------------------
# Resolution helpers
# -------------------------------


def git_sha(cwd: Path, short: bool = True) -> str:
    """Return the current git revision of cwd."""
    from clipack.process import run_command

    args = ["git", "rev-parse", "--short", "HEAD"] if short else ["git", "rev-parse", "HEAD"]
    return run_command(args, cwd, prefix="CONFIG")


def _resolve_channel(version: str) -> str:
    """Return the release channel for a version string.

    Example:
        >>> _resolve_channel("1.2.0-beta.3")
        'beta'
        >>> _resolve_channel("1.2.0")
        'stable'
    """
    if "-" not in version:
        return "stable"
    prerelease = version.split("-", 1)[1]
    return prerelease.split(".", 1)[0] or "stable"


def _host_node_version(root: Path) -> str:
    """Return the Node.js version installed on the host, without the 'v'."""
    from clipack.process import run_command

    try:
        output = run_command(["node", "--version"], root, prefix="CONFIG")
    except PackagingError as err:
        raise ConfigError(
            "oclif.update.node.version is not set and node is not available "
            f"on this host: {err}"
        ) from err
    return output.strip().lstrip("v")


def _resolve_rollout(update: Mapping[str, Any]) -> int | bool | None:
    """Read ``autoupdate.rollout`` without normalizing False.

    Raises:
        ConfigError: If rollout is not False or an int in 0-100.
    """
    autoupdate = update.get("autoupdate")
    if not isinstance(autoupdate, dict) or "rollout" not in autoupdate:
        return None
    rollout = autoupdate["rollout"]
    if rollout is None or rollout is False:
        return rollout
    if isinstance(rollout, bool) or not isinstance(rollout, int):
        raise ConfigError(
            f"oclif.update.autoupdate.rollout must be an integer or false, got {rollout!r}"
        )
    if not 0 <= rollout <= 100:
        raise ConfigError(
            f"oclif.update.autoupdate.rollout must be between 0 and 100, got {rollout}"
        )
    return rollout


def _build_update_config(update: Mapping[str, Any]) -> UpdateConfig:
    """Resolve the ``oclif.update`` mapping into an UpdateConfig."""
    s3 = update.get("s3") or {}
    node = update.get("node") or {}
    if not isinstance(s3, dict) or not isinstance(node, dict):
        raise ConfigError("oclif.update.s3 and oclif.update.node must be mappings")

    node_targets = node.get("targets")
    if node_targets is not None and not isinstance(node_targets, list):
        raise ConfigError("oclif.update.node.targets must be a list")

    return UpdateConfig(
        s3=S3Config(
            bucket=s3.get("bucket") or None,
            host=s3.get("host") or None,
            xz=bool(s3.get("xz", False)),
            templates=merge_templates(s3.get("templates")),
        ),
        rollout=_resolve_rollout(update),
        node_targets=tuple(node_targets) if node_targets is not None else None,
    )


# -------------------------------
# Public API
# -------------------------------


def load_oclif_section(root: Path, pjson: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return the ``oclif`` section of package.json with YAML defaults merged under it."""
    from clipack.logging import get_global_logger

    logger = get_global_logger()
    if pjson is None:
        pjson = _load_package_json(root)
    oclif = pjson.get("oclif") or {}
    if not isinstance(oclif, dict):
        raise ConfigError("package.json 'oclif' section must be an object")

    defaults_root = _find_defaults_root(root)
    if defaults_root is None:
        return oclif

    org_path = defaults_root / "org.yaml"
    logger.verbose("CONFIG", f"Loading defaults: {org_path}")
    org_defaults = _load_yaml_file(org_path)
    if not isinstance(org_defaults, dict):
        raise ConfigError(f"Top-level YAML must be a mapping (dict): {org_path}")
    return _deep_merge_dicts(org_defaults, oclif)


def load_build_config(
    root: Path,
    *,
    targets: Iterable[str] | None = None,
    xz: bool | None = None,
    environ: Mapping[str, str] | None = None,
) -> BuildConfig:
    """Load the build configuration for a project.

    Steps
      1) Read package.json from root.
      2) Merge YAML defaults (defaults/org.yaml) under the oclif section.
      3) Load environment overrides (.env, then process environment).
      4) Resolve version (override, pre-release git sha suffix) and channel.
      5) Resolve update config, node version, targets and xz flag.

    Args:
        root: Project root directory.
        targets: Explicit target identifiers; overrides node.targets and
            the default target set.
        xz: Explicit xz toggle; None falls back to oclif.update.s3.xz.
        environ: Environment mapping; defaults to os.environ.

    Returns:
        The resolved BuildConfig. Nothing is written to disk.

    Raises:
        ConfigError: On missing/invalid metadata or unknown targets.
        PackagingError: If git cannot resolve the revision of a
            pre-release build.
    """
    from clipack.logging import get_global_logger

    logger = get_global_logger()
    root = root.resolve()
    logger.verbose("CONFIG", f"Loading project: {root / 'package.json'}")

    pjson = _load_package_json(root)
    name = pjson.get("name")
    base_version = pjson.get("version")
    if not name or not base_version:
        raise ConfigError("package.json must declare 'name' and 'version'")

    oclif = load_oclif_section(root, pjson)
    env = _load_environment(root, environ)

    next_version = env.get(NEXT_VERSION_ENV)
    sha: str | None = None
    if next_version:
        logger.verbose("CONFIG", f"Using {NEXT_VERSION_ENV}={next_version}")
        version = next_version
    elif "-" in base_version:
        sha = git_sha(root, short=True)
        version = f"{base_version}.{sha}"
    else:
        version = base_version
    channel = _resolve_channel(next_version or base_version)

    update_section = oclif.get("update") or {}
    if not isinstance(update_section, dict):
        raise ConfigError("oclif.update must be a mapping")
    update = _build_update_config(update_section)

    node_section = update_section.get("node") or {}
    node_version = node_section.get("version") or _host_node_version(root)
    node_compatible = (pjson.get("engines") or {}).get("node") or "*"

    target_ids = list(targets) if targets else None
    if target_ids is None:
        target_ids = list(update.node_targets or DEFAULT_TARGETS)

    bin_name = oclif.get("bin") or name.rsplit("/", 1)[-1]
    if not re.fullmatch(r"[A-Za-z0-9._-]+", bin_name):
        raise ConfigError(f"Invalid bin name: {bin_name!r}")

    macos = oclif.get("macos") or {}

    config = BuildConfig(
        root=root,
        name=name,
        bin=bin_name,
        dirname=oclif.get("dirname") or bin_name,
        version=version,
        channel=channel,
        git_sha=sha,
        tmp=root / "tmp",
        node_version=str(node_version).lstrip("v"),
        node_compatible=node_compatible,
        xz=xz if isinstance(xz, bool) else update.s3.xz,
        targets=parse_targets(target_ids),
        update=update,
        macos=MacosConfig(
            identifier=macos.get("identifier") or None,
            sign=macos.get("sign") or None,
        ),
        keychain=env.get(KEYCHAIN_ENV) or None,
    )

    logger.verbose("CONFIG", f"Version: {config.version} (channel: {config.channel})")
    logger.verbose(
        "CONFIG", f"Targets: {', '.join(t.key for t in config.targets) or '(none)'}"
    )
    return config
