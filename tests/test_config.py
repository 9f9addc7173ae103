"""
Tests for clipack.config.loader module.

Tests build configuration loading including:
- package.json parsing and defaults
- YAML organization defaults
- Version and channel resolution
- Environment overrides (.env and process environment)
- Update/rollout validation
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
import yaml

from clipack.config import load_build_config, load_oclif_section
from clipack.config.loader import _deep_merge_dicts, _resolve_channel
from clipack.exceptions import ConfigError
from clipack.targets import DEFAULT_TARGETS

pytestmark = pytest.mark.unit


class TestLoadBuildConfig:
    """Tests for load_build_config()."""

    def test_basic_fields(self, project):
        """Test fields resolved from a plain release project."""
        config = load_build_config(project, environ={})

        assert config.root == project
        assert config.name == "mycli"
        assert config.bin == "mycli"
        assert config.dirname == "mycli"
        assert config.version == "1.2.3"
        assert config.channel == "stable"
        assert config.git_sha is None
        assert config.node_version == "20.11.1"
        assert config.node_compatible == ">=18"
        assert config.xz is False
        assert config.tmp == project / "tmp"
        assert [t.key for t in config.targets] == list(DEFAULT_TARGETS)
        assert config.update.s3.bucket == "mycli-releases"
        assert config.update.s3.host == "https://cdn.example.com"
        assert config.update.rollout is None

    def test_does_not_create_directories(self, project):
        """Test loading configuration writes nothing."""
        load_build_config(project, environ={})

        assert not (project / "tmp").exists()
        assert not (project / "dist").exists()

    def test_workspace_paths(self, project):
        """Test base and per-target workspace locations."""
        config = load_build_config(project, environ={})
        target = config.targets[0]

        assert config.workspace() == project / "tmp" / "mycli"
        assert config.workspace(target) == project / "tmp" / target.key / "mycli"

    def test_missing_package_json(self, tmp_path):
        """Test error when package.json is missing."""
        with pytest.raises(ConfigError, match="package.json not found"):
            load_build_config(tmp_path, environ={})

    def test_invalid_package_json(self, tmp_path):
        """Test error when package.json is not valid JSON."""
        (tmp_path / "package.json").write_text("{not json")

        with pytest.raises(ConfigError, match="Error parsing"):
            load_build_config(tmp_path, environ={})

    def test_missing_version(self, make_project, package_data):
        """Test error when package.json has no version."""
        del package_data["version"]
        root = make_project(package_data)

        with pytest.raises(ConfigError, match="'name' and 'version'"):
            load_build_config(root, environ={})

    def test_bin_defaults_to_unscoped_name(self, make_project, package_data):
        """Test bin falls back to the package name without its scope."""
        package_data["name"] = "@acme/tool"
        del package_data["oclif"]["bin"]
        root = make_project(package_data)

        config = load_build_config(root, environ={})

        assert config.bin == "tool"
        assert config.dirname == "tool"

    def test_dirname_override(self, make_project, package_data):
        """Test oclif.dirname overrides the install directory name."""
        package_data["oclif"]["dirname"] = "mycli-data"
        root = make_project(package_data)

        assert load_build_config(root, environ={}).dirname == "mycli-data"

    def test_engines_default(self, make_project, package_data):
        """Test a missing engines.node means any version."""
        del package_data["engines"]
        root = make_project(package_data)

        assert load_build_config(root, environ={}).node_compatible == "*"

    def test_host_node_version(self, make_project, package_data):
        """Test the host node version is used when none is configured."""
        del package_data["oclif"]["update"]["node"]
        root = make_project(package_data)

        with patch("clipack.process.run_command", return_value="v18.19.0") as mock_run:
            config = load_build_config(root, environ={})

        assert config.node_version == "18.19.0"
        assert mock_run.call_args.args[0] == ["node", "--version"]

    def test_prerelease_appends_git_sha(self, make_project, package_data):
        """Test pre-release versions get the short git sha appended."""
        package_data["version"] = "2.0.0-beta.1"
        root = make_project(package_data)

        with patch("clipack.config.loader.git_sha", return_value="abc1234"):
            config = load_build_config(root, environ={})

        assert config.version == "2.0.0-beta.1.abc1234"
        assert config.channel == "beta"
        assert config.git_sha == "abc1234"

    def test_next_version_override(self, project):
        """Test CLIPACK_NEXT_VERSION replaces the version and channel."""
        config = load_build_config(
            project, environ={"CLIPACK_NEXT_VERSION": "1.3.0-next.0"}
        )

        assert config.version == "1.3.0-next.0"
        assert config.channel == "next"

    def test_dotenv_values(self, project):
        """Test .env supplies values the environment does not set."""
        (project / ".env").write_text(
            "OSX_KEYCHAIN=/tmp/build.keychain\nCLIPACK_NEXT_VERSION=9.9.9\n"
        )

        config = load_build_config(project, environ={"CLIPACK_NEXT_VERSION": "1.4.0"})

        assert config.keychain == "/tmp/build.keychain"
        assert config.version == "1.4.0"

    def test_explicit_targets_and_xz(self, project):
        """Test call-site targets and xz win over configuration."""
        config = load_build_config(
            project, targets=["darwin-arm64", "linux-x64"], xz=True, environ={}
        )

        assert [t.key for t in config.targets] == ["darwin-arm64", "linux-x64"]
        assert config.xz is True

    def test_node_targets_from_config(self, make_project, package_data):
        """Test oclif.update.node.targets replaces the default target set."""
        package_data["oclif"]["update"]["node"]["targets"] = ["win32-x64"]
        root = make_project(package_data)

        config = load_build_config(root, environ={})

        assert [t.key for t in config.targets] == ["win32-x64"]

    def test_unknown_target_raises(self, project):
        """Test an unknown target identifier is rejected."""
        with pytest.raises(ConfigError, match="Unknown platform"):
            load_build_config(project, targets=["beos-x64"], environ={})

    @pytest.mark.parametrize("rollout", [False, 0, 50, 100])
    def test_valid_rollout(self, make_project, package_data, rollout):
        """Test valid rollout values are kept as given."""
        package_data["oclif"]["update"]["autoupdate"] = {"rollout": rollout}
        root = make_project(package_data)

        result = load_build_config(root, environ={}).update.rollout

        assert result == rollout
        assert isinstance(result, bool) == isinstance(rollout, bool)

    @pytest.mark.parametrize("rollout", [True, 101, -1, "50"])
    def test_invalid_rollout(self, make_project, package_data, rollout):
        """Test invalid rollout values are rejected."""
        package_data["oclif"]["update"]["autoupdate"] = {"rollout": rollout}
        root = make_project(package_data)

        with pytest.raises(ConfigError, match="rollout"):
            load_build_config(root, environ={})

    def test_invalid_bin_name(self, make_project, package_data):
        """Test bin names with path separators are rejected."""
        package_data["oclif"]["bin"] = "../evil"
        root = make_project(package_data)

        with pytest.raises(ConfigError, match="Invalid bin name"):
            load_build_config(root, environ={})


class TestOrgDefaults:
    """Tests for YAML defaults layered under the oclif section."""

    def test_defaults_merged_under_package_json(self, tmp_path, make_project, package_data):
        """Test org.yaml fills gaps and package.json wins on conflicts."""
        defaults = tmp_path / "defaults"
        defaults.mkdir()
        (defaults / "org.yaml").write_text(
            yaml.safe_dump(
                {
                    "update": {
                        "s3": {"host": "https://org.example.com", "xz": True},
                        "autoupdate": {"rollout": 25},
                    }
                }
            )
        )
        root = make_project(package_data)

        config = load_build_config(root, environ={})

        assert config.update.s3.host == "https://cdn.example.com"
        assert config.xz is True
        assert config.update.rollout == 25

    def test_empty_yaml_raises(self, tmp_path, project):
        """Test an empty org.yaml is rejected."""
        (tmp_path / "defaults").mkdir()
        (tmp_path / "defaults" / "org.yaml").write_text("")

        with pytest.raises(ConfigError, match="empty"):
            load_oclif_section(project)

    def test_no_defaults(self, project):
        """Test the oclif section is returned unchanged without defaults."""
        pjson = json.loads((project / "package.json").read_text())

        assert load_oclif_section(project) == pjson["oclif"]


class TestHelpers:
    """Tests for private resolution helpers."""

    @pytest.mark.parametrize(
        "version,channel",
        [
            ("1.0.0", "stable"),
            ("1.0.0-beta", "beta"),
            ("1.0.0-beta.3", "beta"),
            ("1.0.0-rc.1.abc1234", "rc"),
        ],
    )
    def test_resolve_channel(self, version, channel):
        """Test channel is the first pre-release token."""
        assert _resolve_channel(version) == channel

    def test_deep_merge_replaces_lists(self):
        """Test lists are replaced rather than concatenated."""
        merged = _deep_merge_dicts(
            {"a": {"b": 1, "c": [1, 2]}}, {"a": {"c": [3]}, "d": True}
        )

        assert merged == {"a": {"b": 1, "c": [3]}, "d": True}
