"""
Pytest configuration and shared fixtures for clipack tests.

This module provides a fake Node.js project on disk, stand-ins for the
external tools (npm pack, npm install) and a runtime provider that never
touches the network.
"""

from __future__ import annotations

import json
from pathlib import Path
import tarfile
import threading
from typing import Any
from unittest.mock import patch

import pytest

from clipack.logging import SilentLogger, set_global_logger
from clipack.targets import Target


@pytest.fixture(autouse=True)
def silent_global_logger():
    """Reset the global logger so CLI tests don't leak verbosity."""
    set_global_logger(SilentLogger())
    yield
    set_global_logger(SilentLogger())


def write_package_json(root: Path, data: dict[str, Any]) -> Path:
    """Write package.json into root."""
    path = root / "package.json"
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def make_npm_tarball(root: Path) -> Path:
    """Create a tarball shaped like ``npm pack`` output for the project in root.

    Every project file except lockfiles, tmp/ and dist/ is placed under a
    ``package/`` directory, and the tarball is written to root.
    """
    pjson = json.loads((root / "package.json").read_text(encoding="utf-8"))
    tarball = root / f"{pjson['name'].replace('/', '-').lstrip('@')}-{pjson['version']}.tgz"
    skipped = {"tmp", "dist", "package-lock.json", "yarn.lock", ".env"}
    with tarfile.open(tarball, "w:gz") as tar:
        for path in sorted(root.rglob("*")):
            rel = path.relative_to(root)
            if rel.parts[0] in skipped or path.suffix == ".tgz" or path.is_dir():
                continue
            tar.add(path, arcname=f"package/{rel.as_posix()}")
    return tarball


@pytest.fixture
def package_data() -> dict[str, Any]:
    """Provide a package.json for a small oclif CLI."""
    return {
        "name": "mycli",
        "version": "1.2.3",
        "engines": {"node": ">=18"},
        "dependencies": {"left-pad": "^1.3.0"},
        "oclif": {
            "bin": "mycli",
            "update": {
                "s3": {
                    "bucket": "mycli-releases",
                    "host": "https://cdn.example.com",
                },
                "node": {"version": "20.11.1"},
            },
        },
    }


@pytest.fixture
def make_project(tmp_path: Path):
    """Factory creating a project root with package.json, a lockfile and bin/run."""

    def _make(data: dict[str, Any], name: str = "mycli") -> Path:
        root = tmp_path / name
        (root / "bin").mkdir(parents=True)
        (root / "lib").mkdir()
        write_package_json(root, data)
        (root / "package-lock.json").write_text("{}", encoding="utf-8")
        (root / "bin" / "run").write_text("#!/usr/bin/env node\n", encoding="utf-8")
        (root / "bin" / "run.cmd").write_text("@echo off\n", encoding="utf-8")
        (root / "lib" / "index.js").write_text("module.exports = {}\n", encoding="utf-8")
        return root.resolve()

    return _make


@pytest.fixture
def project(make_project, package_data: dict[str, Any]) -> Path:
    """Provide the default project root."""
    return make_project(package_data)


class FakeRuntimeProvider:
    """Runtime provider that writes a placeholder binary and records targets."""

    def __init__(self) -> None:
        self.fetched: list[Target] = []
        self._lock = threading.Lock()

    def fetch(self, target: Target, output: Path) -> Path:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(f"node for {target.key}".encode())
        with self._lock:
            self.fetched.append(target)
        return output


@pytest.fixture
def provider() -> FakeRuntimeProvider:
    """Provide a runtime provider that never downloads."""
    return FakeRuntimeProvider()


@pytest.fixture
def fake_tools():
    """Replace npm/yarn/npx invocations with in-process fakes.

    ``npm pack`` builds a tarball from the project files; install commands
    are recorded as ``(cmd, cwd)`` tuples and do nothing.
    """
    installs: list[tuple[list[str], Path]] = []

    def fake_pack(cmd, cwd, **kwargs):
        assert cmd[:2] == ["npm", "pack"]
        return f"npm notice\n{make_npm_tarball(Path(cwd)).name}"

    def fake_install(cmd, cwd, **kwargs):
        installs.append((list(cmd), Path(cwd)))
        return ""

    with (
        patch("clipack.build.stager.run_command", side_effect=fake_pack),
        patch("clipack.build.dependencies.run_command", side_effect=fake_install),
    ):
        yield installs
