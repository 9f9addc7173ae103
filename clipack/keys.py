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

"""Storage key scheme for release artifacts.

Keys are derived purely from (bin, channel, version, target). The update
client computes the same keys on its own to locate manifests and archives,
so nothing here may depend on the filesystem, the clock or the network.

Default layout (``<t>`` is ``<platform>-<arch>``)::

    baseDir     <channel>/<bin>                 <channel>/<bin>/<t>
    versioned   <baseDir>/<bin>-v<version><ext> <baseDir>/<bin>-v<version>-<t><ext>
    manifest    <baseDir>/version                <baseDir>/version

Projects can override any template through ``oclif.update.s3.templates``
using ``str.format`` placeholders: ``{bin}``, ``{channel}``, ``{version}``,
``{platform}``, ``{arch}`` and ``{ext}``.

Example:
    ```python
    from clipack.keys import KeyScheme, url_for
    from clipack.targets import parse_target

    scheme = KeyScheme(bin="mycli", channel="stable", version="1.2.3")
    key = scheme.key("versioned", ".tar.gz", parse_target("linux-x64"))
    # stable/mycli/linux-x64/mycli-v1.2.3-linux-x64.tar.gz
    url_for("https://cdn.example.com/", key)
    ```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

from clipack.exceptions import ConfigError
from clipack.targets import Target

KeyKind = Literal["baseDir", "versioned", "manifest"]

KEY_KINDS: tuple[str, ...] = ("baseDir", "versioned", "manifest")

DEFAULT_TEMPLATES: dict[str, dict[str, str]] = {
    "vanilla": {
        "baseDir": "{channel}/{bin}",
        "versioned": "{channel}/{bin}/{bin}-v{version}{ext}",
        "manifest": "{channel}/{bin}/version",
    },
    "target": {
        "baseDir": "{channel}/{bin}/{platform}-{arch}",
        "versioned": (
            "{channel}/{bin}/{platform}-{arch}/{bin}-v{version}-{platform}-{arch}{ext}"
        ),
        "manifest": "{channel}/{bin}/{platform}-{arch}/version",
    },
}


def merge_templates(overrides: Mapping[str, Any] | None) -> dict[str, dict[str, str]]:
    """Overlay user templates on the defaults and validate them.

    Args:
        overrides: ``{"vanilla": {...}, "target": {...}}`` with any subset of
            kinds. None or empty keeps the defaults.

    Returns:
        A complete template table.

    Raises:
        ConfigError: If a section or kind is unknown, a template is not a
            string, a template uses an unknown placeholder, or a target template
            lacks {platform} or {arch}.
    """
    templates = {section: dict(kinds) for section, kinds in DEFAULT_TEMPLATES.items()}
    for section, kinds in (overrides or {}).items():
        if section not in templates or not isinstance(kinds, Mapping):
            raise ConfigError(
                f"Invalid key template section {section!r}. Supported: vanilla, target"
            )
        for kind, template in kinds.items():
            if kind not in KEY_KINDS or not isinstance(template, str):
                raise ConfigError(f"Invalid key template {section}.{kind}: {template!r}")
            try:
                template.format(
                    bin="b", channel="c", version="v", platform="p", arch="a", ext=""
                )
            except (KeyError, IndexError, ValueError) as err:
                raise ConfigError(
                    f"Key template {section}.{kind} has an invalid placeholder: {err}"
                ) from err
            if section == "target" and not (
                "{platform}" in template and "{arch}" in template
            ):
                raise ConfigError(
                    f"Key template target.{kind} must contain {{platform}} and {{arch}}"
                )
            templates[section][kind] = template
    return templates


@dataclass(frozen=True)
class KeyScheme:
    """Resolves storage keys for one (bin, channel, version).

    Attributes:
        bin: CLI binary name.
        channel: Release channel (e.g. "stable", "beta").
        version: Resolved build version.
        templates: Template table, see merge_templates().
    """

    bin: str
    channel: str
    version: str
    templates: Mapping[str, Mapping[str, str]] = field(
        default_factory=lambda: merge_templates(None)
    )

    def key(
        self,
        kind: KeyKind,
        ext: str | None = None,
        target: Target | None = None,
    ) -> str:
        """Resolve a key.

        Args:
            kind: One of "baseDir", "versioned" or "manifest".
            ext: File extension (".tar.gz", ".tar.xz"); only used by
                "versioned".
            target: Platform/arch pair, or None for the base artifact.

        Returns:
            The storage key (no leading slash).

        Raises:
            ValueError: If kind is not a known key kind.
        """
        if kind not in KEY_KINDS:
            raise ValueError(f"Unknown key kind: {kind!r}")
        section = "target" if target is not None else "vanilla"
        template = self.templates[section][kind]
        return template.format(
            bin=self.bin,
            channel=self.channel,
            version=self.version,
            platform=target.platform.value if target else "",
            arch=target.arch.value if target else "",
            ext=ext or "",
        )

    def url(self, host: str, key: str) -> str:
        """Public URL of a key on host, see url_for()."""
        return url_for(host, key)


def url_for(host: str, key: str) -> str:
    """Join an update host and a key into a URL."""
    return f"{host.rstrip('/')}/{key.lstrip('/')}"
