"""
Tests for clipack.runtime module.

Tests the Node.js binary provider including:
- SHASUMS256.txt verification
- Windows standalone executables
- POSIX binaries extracted from .tar.xz releases
- Per-version/target caching

These are UNIT tests using requests_mock; nothing touches nodejs.org.
"""

from __future__ import annotations

import hashlib
import io
import os
import sys
import tarfile

import pytest
import requests_mock

from clipack.exceptions import NetworkError
from clipack.runtime import NodeBinaryProvider, runtime_filename
from clipack.targets import parse_target

pytestmark = pytest.mark.unit

BASE_URL = "https://nodejs.test/dist"
VERSION = "20.11.1"
RELEASE_URL = f"{BASE_URL}/v{VERSION}"


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def make_node_tar_xz(name: str, node_bytes: bytes) -> bytes:
    """Build an in-memory release archive holding <name>/bin/node."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:xz") as tar:
        info = tarfile.TarInfo(f"{name}/bin/node")
        info.size = len(node_bytes)
        info.mode = 0o755
        tar.addfile(info, io.BytesIO(node_bytes))
    return buf.getvalue()


def shasums(entries: dict[str, bytes]) -> str:
    return "".join(f"{sha256(data)}  {name}\n" for name, data in entries.items())


@pytest.fixture
def node_provider(tmp_path):
    return NodeBinaryProvider(f"v{VERSION}", tmp_path / "cache", base_url=BASE_URL)


class TestRuntimeFilename:
    """Tests for runtime_filename()."""

    def test_names(self):
        """Test Windows targets get node.exe."""
        assert runtime_filename(parse_target("win32-x64")) == "node.exe"
        assert runtime_filename(parse_target("darwin-arm64")) == "node"


class TestNodeBinaryProvider:
    """Tests for NodeBinaryProvider.fetch()."""

    def test_windows_download(self, node_provider, tmp_path):
        """Test win32 binaries are downloaded directly and verified."""
        exe = b"MZ fake node.exe"
        output = tmp_path / "ws" / "bin" / "node.exe"

        with requests_mock.Mocker() as m:
            m.get(f"{RELEASE_URL}/SHASUMS256.txt", text=shasums({"win-x86/node.exe": exe}))
            m.get(f"{RELEASE_URL}/win-x86/node.exe", content=exe)

            node_provider.fetch(parse_target("win32-x86"), output)

        assert output.read_bytes() == exe

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_posix_extract(self, node_provider, tmp_path):
        """Test POSIX binaries are extracted from the release archive."""
        name = f"node-v{VERSION}-linux-armv7l"
        archive = make_node_tar_xz(name, b"ELF fake node")
        output = tmp_path / "ws" / "bin" / "node"

        with requests_mock.Mocker() as m:
            m.get(
                f"{RELEASE_URL}/SHASUMS256.txt",
                text=shasums({f"{name}.tar.xz": archive}),
            )
            m.get(f"{RELEASE_URL}/{name}.tar.xz", content=archive)

            node_provider.fetch(parse_target("linux-arm"), output)

        assert output.read_bytes() == b"ELF fake node"
        assert os.access(output, os.X_OK)
        cache_entry = tmp_path / "cache" / name
        assert not (cache_entry / f"{name}.tar.xz").exists()
        assert not list(cache_entry.glob("*.part"))

    def test_cached_binary_reused(self, node_provider, tmp_path):
        """Test a second fetch for the same target does not download."""
        exe = b"MZ fake node.exe"

        with requests_mock.Mocker() as m:
            m.get(f"{RELEASE_URL}/SHASUMS256.txt", text=shasums({"win-x64/node.exe": exe}))
            binary = m.get(f"{RELEASE_URL}/win-x64/node.exe", content=exe)

            node_provider.fetch(parse_target("win32-x64"), tmp_path / "a" / "node.exe")
            node_provider.fetch(parse_target("win32-x64"), tmp_path / "b" / "node.exe")

        assert binary.call_count == 1
        assert (tmp_path / "b" / "node.exe").read_bytes() == exe

    def test_checksum_mismatch(self, node_provider, tmp_path):
        """Test a corrupted download is rejected and not cached."""
        with requests_mock.Mocker() as m:
            m.get(
                f"{RELEASE_URL}/SHASUMS256.txt",
                text=shasums({"win-x64/node.exe": b"expected"}),
            )
            m.get(f"{RELEASE_URL}/win-x64/node.exe", content=b"tampered")

            with pytest.raises(NetworkError, match="SHA-256 mismatch"):
                node_provider.fetch(parse_target("win32-x64"), tmp_path / "node.exe")

        cache_entry = tmp_path / "cache" / f"node-v{VERSION}-win32-x64"
        assert not (cache_entry / "node.exe").exists()
        assert not list(cache_entry.glob("*.part"))

    def test_not_in_shasums(self, node_provider, tmp_path):
        """Test a release file missing from SHASUMS256.txt is rejected."""
        with requests_mock.Mocker() as m:
            m.get(f"{RELEASE_URL}/SHASUMS256.txt", text="")

            with pytest.raises(NetworkError, match="not listed"):
                node_provider.fetch(parse_target("darwin-x64"), tmp_path / "node")

    def test_http_error(self, node_provider, tmp_path):
        """Test HTTP errors are raised as NetworkError."""
        with requests_mock.Mocker() as m:
            m.get(f"{RELEASE_URL}/SHASUMS256.txt", status_code=404)

            with pytest.raises(NetworkError, match="Failed to fetch"):
                node_provider.fetch(parse_target("linux-x64"), tmp_path / "node")

    def test_shasums_fetched_once(self, node_provider, tmp_path):
        """Test SHASUMS256.txt is fetched once per provider."""
        x64 = b"x64 exe"
        x86 = b"x86 exe"

        with requests_mock.Mocker() as m:
            sums = m.get(
                f"{RELEASE_URL}/SHASUMS256.txt",
                text=shasums({"win-x64/node.exe": x64, "win-x86/node.exe": x86}),
            )
            m.get(f"{RELEASE_URL}/win-x64/node.exe", content=x64)
            m.get(f"{RELEASE_URL}/win-x86/node.exe", content=x86)

            node_provider.fetch(parse_target("win32-x64"), tmp_path / "1" / "node.exe")
            node_provider.fetch(parse_target("win32-x86"), tmp_path / "2" / "node.exe")

        assert sums.call_count == 1
