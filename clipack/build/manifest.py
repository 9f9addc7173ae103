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

"""Update manifest generation for clipack.

A manifest describes one published artifact to the update client::

    {
      "version": "1.2.3",
      "channel": "stable",
      "baseDir": "stable/mycli/linux-x64",
      "gz": "https://cdn.example.com/stable/mycli/linux-x64/mycli-v1.2.3-linux-x64.tar.gz",
      "sha256gz": "...",
      "xz": "...",            # only when an xz archive was produced
      "sha256xz": "...",      # only when an xz archive was produced
      "rollout": 50,          # only when configured
      "node": {"compatible": ">=18", "recommended": "20.11.1"}
    }

Optional fields are omitted, never written as null.

Rollout:
    ``autoupdate.rollout = false`` is read differently for the two kinds of
    manifest. Target manifests drop the field (full rollout), the base
    manifest writes ``0``. Numbers are written unchanged. An unset value is
    omitted from both, so an unset rollout never reaches the base manifest as
    ``0``; only an explicit ``false`` does. See target_rollout() and
    base_rollout().
"""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import json
from pathlib import Path
from typing import Any

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class Manifest:
    """An update manifest.

    Attributes:
        version: Build version.
        channel: Release channel.
        base_dir: baseDir key of the artifact.
        gz: URL of the gzip archive.
        sha256gz: SHA-256 of the gzip archive.
        node_compatible: Compatible Node.js range.
        node_recommended: Bundled Node.js version.
        xz: URL of the xz archive, if produced.
        sha256xz: SHA-256 of the xz archive, if produced.
        rollout: Rollout percentage, if any.
    """

    version: str
    channel: str
    base_dir: str
    gz: str
    sha256gz: str
    node_compatible: str
    node_recommended: str
    xz: str | None = None
    sha256xz: str | None = None
    rollout: int | None = None

    def __post_init__(self) -> None:
        if (self.xz is None) != (self.sha256xz is None):
            raise ValueError("xz and sha256xz must be set together")

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON document, omitting unset optional fields."""
        data: dict[str, Any] = {
            "version": self.version,
            "channel": self.channel,
            "baseDir": self.base_dir,
            "gz": self.gz,
            "sha256gz": self.sha256gz,
        }
        if self.xz is not None:
            data["xz"] = self.xz
            data["sha256xz"] = self.sha256xz
        if self.rollout is not None:
            data["rollout"] = self.rollout
        data["node"] = {
            "compatible": self.node_compatible,
            "recommended": self.node_recommended,
        }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Manifest:
        """Build a Manifest from a parsed JSON document."""
        node = data.get("node", {})
        return cls(
            version=data["version"],
            channel=data["channel"],
            base_dir=data["baseDir"],
            gz=data["gz"],
            sha256gz=data["sha256gz"],
            node_compatible=node["compatible"],
            node_recommended=node["recommended"],
            xz=data.get("xz"),
            sha256xz=data.get("sha256xz"),
            rollout=data.get("rollout"),
        )


def target_rollout(rollout: int | bool | None) -> int | None:
    """Rollout for a target manifest: False means the field is omitted."""
    if rollout is False or rollout is None:
        return None
    return int(rollout)


def base_rollout(rollout: int | bool | None) -> int | None:
    """Rollout for the base manifest: False is written as 0."""
    if rollout is None:
        return None
    return int(rollout)


def file_sha256(path: Path) -> str:
    """Compute the SHA-256 hex digest of a file, streaming it in chunks."""
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def write_manifest(path: Path, manifest: Manifest) -> Path:
    """Write a manifest as JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(manifest.to_dict(), indent=2) + "\n", encoding="utf-8")
    return path


def read_manifest(path: Path) -> Manifest:
    """Read a manifest written by write_manifest()."""
    return Manifest.from_dict(json.loads(path.read_text(encoding="utf-8")))
