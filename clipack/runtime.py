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

"""Runtime binary provider for clipack.

The target builder only needs "a Node.js executable for (platform, arch)".
Anything implementing the RuntimeProvider protocol can supply it; the
default NodeBinaryProvider downloads official builds from nodejs.org.

Design Principles:
    - Binaries are cached per version/platform/arch (not per build)
    - Every download is verified against the release's SHASUMS256.txt
    - Downloads go to a ``.part`` file and are renamed on success
    - POSIX builds are extracted from the ``.tar.xz`` release archive;
      Windows builds use the standalone ``win-<arch>/node.exe``

Example:
    Basic usage:
        ```python
        from pathlib import Path
        from clipack.runtime import NodeBinaryProvider
        from clipack.targets import parse_target

        provider = NodeBinaryProvider("20.11.1", Path("tmp/cache/node"))
        provider.fetch(parse_target("linux-x64"), Path("workspace/bin/node"))
        ```
"""

from __future__ import annotations

import hashlib
from pathlib import Path
import shutil
import tarfile
import threading
from typing import Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from clipack import __version__
from clipack.exceptions import NetworkError
from clipack.targets import Arch, Platform, Target

NODE_DIST_URL = "https://nodejs.org/dist"

DEFAULT_CHUNK = 1024 * 1024

# nodejs.org names 32-bit ARM builds armv7l
_ARCH_NAMES = {Arch.ARM: "armv7l"}


class RuntimeProvider(Protocol):
    """Supplies a runtime executable for a target."""

    def fetch(self, target: Target, output: Path) -> Path:
        """Place a runtime executable for target at output.

        Args:
            target: Platform/arch of the executable.
            output: Destination path (parent directories exist).

        Returns:
            The output path.
        """
        ...


def make_session() -> requests.Session:
    """Create a requests.Session with retry/backoff defaults."""
    s = requests.Session()
    retries = Retry(
        total=5,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD"),
        raise_on_status=False,
    )
    s.headers.update({"User-Agent": f"clipack/{__version__}"})
    s.mount("http://", HTTPAdapter(max_retries=retries))
    s.mount("https://", HTTPAdapter(max_retries=retries))
    return s


def runtime_filename(target: Target) -> str:
    """Name of the runtime executable inside ``bin/`` for a target."""
    return "node.exe" if target.platform is Platform.WIN32 else "node"


class NodeBinaryProvider:
    """Downloads and caches official Node.js binaries.

    Attributes:
        node_version: Node.js version without the leading "v".
        cache_dir: Directory holding cached binaries.
        base_url: Distribution root (defaults to nodejs.org).
    """

    def __init__(
        self,
        node_version: str,
        cache_dir: Path,
        *,
        base_url: str = NODE_DIST_URL,
        timeout: int = 120,
    ) -> None:
        self.node_version = node_version.lstrip("v")
        self.cache_dir = cache_dir
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._shasums: dict[str, str] | None = None
        self._lock = threading.Lock()

    @property
    def release_url(self) -> str:
        return f"{self.base_url}/v{self.node_version}"

    def _release_file(self, target: Target) -> str:
        """Path of the release file for target, relative to release_url."""
        arch = _ARCH_NAMES.get(target.arch, target.arch.value)
        if target.platform is Platform.WIN32:
            return f"win-{arch}/node.exe"
        return f"node-v{self.node_version}-{target.platform.value}-{arch}.tar.xz"

    def _get_shasums(self, session: requests.Session) -> dict[str, str]:
        """Fetch and parse SHASUMS256.txt once per provider."""
        from clipack.logging import get_global_logger

        logger = get_global_logger()
        with self._lock:
            if self._shasums is not None:
                return self._shasums

            url = f"{self.release_url}/SHASUMS256.txt"
            logger.verbose("NODE", f"GET {url}")
            try:
                resp = session.get(url, timeout=self.timeout)
                resp.raise_for_status()
            except requests.RequestException as err:
                raise NetworkError(f"Failed to fetch {url}: {err}") from err

            shasums: dict[str, str] = {}
            for line in resp.text.splitlines():
                parts = line.split()
                if len(parts) == 2:
                    shasums[parts[1]] = parts[0]
            self._shasums = shasums
            return shasums

    def _download(self, session: requests.Session, release_file: str, dest: Path) -> Path:
        """Download a release file to dest and verify its checksum.

        Raises:
            NetworkError: On HTTP errors or checksum mismatch.
        """
        from clipack.logging import get_global_logger

        logger = get_global_logger()
        expected = self._get_shasums(session).get(release_file)
        if expected is None:
            raise NetworkError(
                f"{release_file} is not listed in SHASUMS256.txt for "
                f"Node.js v{self.node_version}"
            )

        url = f"{self.release_url}/{release_file}"
        logger.verbose("NODE", f"GET {url}")
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(dest.name + ".part")
        sha = hashlib.sha256()
        try:
            with session.get(url, stream=True, timeout=self.timeout) as resp:
                resp.raise_for_status()
                with tmp.open("wb") as f:
                    for chunk in resp.iter_content(chunk_size=DEFAULT_CHUNK):
                        if chunk:
                            f.write(chunk)
                            sha.update(chunk)
        except requests.RequestException as err:
            tmp.unlink(missing_ok=True)
            raise NetworkError(f"Failed to download {url}: {err}") from err

        actual = sha.hexdigest()
        if actual != expected:
            tmp.unlink(missing_ok=True)
            raise NetworkError(
                f"SHA-256 mismatch for {url}: expected {expected}, got {actual}"
            )
        tmp.replace(dest)
        return dest

    def _cached_binary(self, target: Target) -> Path:
        """Return the cached executable for target, downloading it if needed."""
        from clipack.logging import get_global_logger

        logger = get_global_logger()
        arch = _ARCH_NAMES.get(target.arch, target.arch.value)
        cache_entry = (
            self.cache_dir / f"node-v{self.node_version}-{target.platform.value}-{arch}"
        )
        binary = cache_entry / runtime_filename(target)
        if binary.exists():
            logger.verbose("NODE", f"Using cached Node.js: {binary}")
            return binary

        release_file = self._release_file(target)
        with make_session() as session:
            if target.platform is Platform.WIN32:
                self._download(session, release_file, binary)
            else:
                archive = self._download(
                    session, release_file, cache_entry / Path(release_file).name
                )
                member = f"{Path(release_file).name[: -len('.tar.xz')]}/bin/node"
                partial = binary.with_name(binary.name + ".part")
                try:
                    with tarfile.open(archive, "r:xz") as tar:
                        extracted = tar.extractfile(member)
                        if extracted is None:
                            raise NetworkError(f"{member} missing from {archive.name}")
                        with extracted, partial.open("wb") as f:
                            shutil.copyfileobj(extracted, f)
                except (tarfile.TarError, KeyError) as err:
                    partial.unlink(missing_ok=True)
                    raise NetworkError(
                        f"Failed to extract node from {archive}: {err}"
                    ) from err
                partial.replace(binary)
                archive.unlink()

        logger.verbose("NODE", f"[OK] Node.js cached: {binary}")
        return binary

    def fetch(self, target: Target, output: Path) -> Path:
        """Copy the Node.js executable for target to output (mode 0o755)."""
        binary = self._cached_binary(target)
        output.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(binary, output)
        output.chmod(0o755)
        return output
