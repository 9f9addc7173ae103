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

"""Build targets for clipack.

A target is a (platform, architecture) pair for which a distinct archive is
built. Both halves are closed enumerations so that a typo in a target list
fails at configuration time instead of leaking into workspace paths and
storage keys.

Example:
    Parse target identifiers:
        ```python
        from clipack.targets import parse_target, parse_targets

        target = parse_target("linux-x64")
        print(target.platform, target.arch)  # Platform.LINUX Arch.X64
        print(target.key)  # linux-x64

        targets = parse_targets(["win32-x86", "darwin-x64"])
        ```
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from clipack.exceptions import ConfigError


class Platform(str, Enum):
    """Supported operating system families (Node.js naming)."""

    LINUX = "linux"
    WIN32 = "win32"
    DARWIN = "darwin"


class Arch(str, Enum):
    """Supported CPU architectures (Node.js naming)."""

    X64 = "x64"
    X86 = "x86"
    ARM = "arm"
    ARM64 = "arm64"


@dataclass(frozen=True)
class Target:
    """A (platform, arch) pair.

    Attributes:
        platform: Operating system family.
        arch: CPU architecture.
    """

    platform: Platform
    arch: Arch

    @property
    def key(self) -> str:
        """Hyphenated identifier, e.g. ``linux-x64``."""
        return f"{self.platform.value}-{self.arch.value}"

    def __str__(self) -> str:
        return self.key


DEFAULT_TARGETS = (
    "linux-x64",
    "linux-arm",
    "win32-x64",
    "win32-x86",
    "darwin-x64",
)


def parse_target(identifier: str) -> Target:
    """Parse a hyphenated ``<platform>-<arch>`` identifier.

    Args:
        identifier: Target identifier such as ``"linux-arm"``.

    Returns:
        The parsed Target.

    Raises:
        ConfigError: If the identifier is malformed or names an unknown
            platform or architecture.

    Example:
        >>> parse_target("win32-x86").platform
        <Platform.WIN32: 'win32'>
    """
    platform, sep, arch = identifier.strip().partition("-")
    if not sep or not platform or not arch:
        raise ConfigError(
            f"Invalid target {identifier!r}: expected '<platform>-<arch>'"
        )

    try:
        parsed_platform = Platform(platform)
    except ValueError as err:
        supported = ", ".join(p.value for p in Platform)
        raise ConfigError(
            f"Unknown platform {platform!r} in target {identifier!r}. "
            f"Supported: {supported}"
        ) from err

    try:
        parsed_arch = Arch(arch)
    except ValueError as err:
        supported = ", ".join(a.value for a in Arch)
        raise ConfigError(
            f"Unknown architecture {arch!r} in target {identifier!r}. "
            f"Supported: {supported}"
        ) from err

    return Target(parsed_platform, parsed_arch)


def parse_targets(identifiers: Iterable[str]) -> tuple[Target, ...]:
    """Parse a list of target identifiers, skipping empty entries.

    Duplicates are dropped, keeping the first occurrence.
    """
    targets: list[Target] = []
    for identifier in identifiers:
        if not identifier or not identifier.strip():
            continue
        target = parse_target(identifier)
        if target not in targets:
            targets.append(target)
    return tuple(targets)
