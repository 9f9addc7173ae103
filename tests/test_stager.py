"""
Tests for clipack.build.stager module.

Tests workspace staging including:
- npm pack output handling
- Extraction and package/ hoisting
- package.json rewriting (version, bucket, local dependencies)

npm itself is replaced by a fake that builds the tarball in-process.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from clipack.build.stager import _correct_local_dependencies, _pack_source, stage
from clipack.config import load_build_config
from clipack.exceptions import PackagingError

pytestmark = pytest.mark.unit


class TestPackSource:
    """Tests for npm pack invocation."""

    def test_uses_last_output_line(self, tmp_path):
        """Test the tarball name is the last line of npm output."""
        (tmp_path / "mycli-1.0.0.tgz").write_bytes(b"")

        with patch(
            "clipack.build.stager.run_command",
            return_value="npm notice package size\nmycli-1.0.0.tgz",
        ) as mock_run:
            tarball = _pack_source(tmp_path)

        assert tarball == tmp_path / "mycli-1.0.0.tgz"
        assert mock_run.call_args.args[0] == ["npm", "pack", "--unsafe-perm"]
        assert mock_run.call_args.args[1] == tmp_path

    def test_no_output_raises(self, tmp_path):
        """Test error when npm pack prints nothing."""
        with patch("clipack.build.stager.run_command", return_value=""):
            with pytest.raises(PackagingError, match="did not report"):
                _pack_source(tmp_path)

    def test_missing_tarball_raises(self, tmp_path):
        """Test error when the reported tarball does not exist."""
        with patch("clipack.build.stager.run_command", return_value="ghost-1.0.0.tgz"):
            with pytest.raises(PackagingError, match="does not exist"):
                _pack_source(tmp_path)


class TestCorrectLocalDependencies:
    """Tests for file: dependency rewriting."""

    def test_relative_to_workspace(self, tmp_path):
        """Test file: specifiers still point at the same directory."""
        root = tmp_path / "proj"
        workspace = root / "tmp" / "mycli"
        dependencies = {
            "sibling": "file:../sibling",
            "registry": "^1.0.0",
            "inner": "file:./packages/inner",
        }

        local = _correct_local_dependencies(dependencies, root, workspace)

        assert local == {"sibling": "../../../sibling", "inner": "../../packages/inner"}
        assert dependencies["sibling"] == "file:./../../../sibling"
        assert dependencies["registry"] == "^1.0.0"
        assert dependencies["inner"] == "file:./../../packages/inner"
        resolved = os.path.normpath(workspace / "../../../sibling")
        assert Path(resolved) == tmp_path / "sibling"

    def test_declaration_order(self, tmp_path):
        """Test local dependencies keep their declaration order."""
        dependencies = {"b": "file:../b", "a": "file:../a"}

        local = _correct_local_dependencies(dependencies, tmp_path, tmp_path / "ws")

        assert list(local) == ["b", "a"]


class TestStage:
    """Tests for stage()."""

    def test_stage_workspace(self, project, fake_tools):
        """Test the workspace holds the extracted project."""
        config = load_build_config(project, environ={})

        result = stage(config)

        workspace = project / "tmp" / "mycli"
        assert result.workspace == workspace
        assert (workspace / "bin" / "run").exists()
        assert (workspace / "lib" / "index.js").exists()
        assert not (workspace / "bin" / "run.cmd").exists()
        assert not (workspace / "package").exists()
        assert not list(workspace.glob("*.tgz"))
        assert not list(project.glob("*.tgz"))
        assert result.local_dependencies == {}

    def test_package_json_rewritten(self, project, fake_tools):
        """Test version and bucket are stamped into the workspace package.json."""
        config = load_build_config(
            project, environ={"CLIPACK_NEXT_VERSION": "1.3.0"}
        )

        result = stage(config)

        pjson = json.loads((result.workspace / "package.json").read_text())
        assert pjson["version"] == "1.3.0"
        assert pjson["oclif"]["update"]["s3"]["bucket"] == "mycli-releases"
        # project root is untouched
        original = json.loads((project / "package.json").read_text())
        assert original["version"] == "1.2.3"

    def test_empty_bucket_removed(self, make_project, package_data, fake_tools):
        """Test an unset bucket is not written into package.json."""
        package_data["oclif"]["update"]["s3"]["bucket"] = ""
        root = make_project(package_data)
        config = load_build_config(root, environ={})

        result = stage(config)

        pjson = json.loads((result.workspace / "package.json").read_text())
        assert "bucket" not in pjson["oclif"]["update"]["s3"]

    def test_creates_missing_sections(self, make_project, fake_tools):
        """Test oclif.update.s3 is created when package.json lacks it."""
        root = make_project({"name": "bare", "version": "0.1.0"}, name="bare")
        with patch("clipack.config.loader._host_node_version", return_value="20.0.0"):
            config = load_build_config(root, environ={})

        result = stage(config)

        pjson = json.loads((result.workspace / "package.json").read_text())
        assert pjson["oclif"] == {"update": {"s3": {}}}

    def test_local_dependencies_rewritten(self, make_project, package_data, fake_tools):
        """Test file: dependencies are re-pointed relative to the workspace."""
        package_data["dependencies"]["shared"] = "file:../shared"
        root = make_project(package_data)
        config = load_build_config(root, environ={})

        result = stage(config)

        pjson = json.loads((result.workspace / "package.json").read_text())
        assert result.local_dependencies == {"shared": "../../../shared"}
        assert pjson["dependencies"]["shared"] == "file:./../../../shared"

    def test_restage_wipes_workspace(self, project, fake_tools):
        """Test stale files from a previous build are removed."""
        config = load_build_config(project, environ={})
        stage(config)
        stale = config.workspace() / "stale.txt"
        stale.write_text("old")

        stage(config)

        assert not stale.exists()
