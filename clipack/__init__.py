"""
clipack - CLI release packager

A Python-based tool for turning a Node.js command-line project into
self-contained release archives for every supported platform, plus the
update manifests an autoupdate client polls.

clipack provides:
  - Clean staging of the project via ``npm pack``
  - Lockfile-driven production dependency install (npm or yarn)
  - Per-target workspaces with a bundled Node.js runtime
  - .tar.gz and optional .tar.xz archives with SHA-256 checksums
  - Versioned, channel-aware update manifests (with staged rollout)
  - macOS .pkg installer wrapping

Quick Start
-----------
Build archives for the configured targets:

    $ clipack build .

Build a single target with xz archives:

    $ clipack build . --targets linux-x64 --xz

Wrap the darwin build in a macOS installer:

    $ clipack pack-macos --root .

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
config : package
    package.json / YAML defaults / environment loading.
build : package
    Staging, dependency install, archives and manifests.
installer : package
    Native installer wrapping (macOS .pkg).
keys : module
    Storage key templates for archives and manifests.
runtime : module
    Node.js runtime download and cache.

Public API
----------
    from clipack.config import load_build_config
    from clipack.build import build_tarballs
    from clipack.installer import wrap_installer

Project Information
-------------------
Author: Roger Cibrian
License: Apache-2.0
"""

__version__ = "0.1.0"
__author__ = "Roger Cibrian"
__license__ = "Apache-2.0"
__description__ = "clipack - release tarballs and update manifests for CLIs"

# Re-export commonly used functions for convenience
from clipack.build import build_tarballs
from clipack.config import load_build_config
from clipack.exceptions import (
    ClipackError,
    ConfigError,
    NetworkError,
    PackagingError,
    PlatformError,
)
from clipack.installer import wrap_installer

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "__description__",
    "build_tarballs",
    "load_build_config",
    "wrap_installer",
    "ClipackError",
    "ConfigError",
    "NetworkError",
    "PackagingError",
    "PlatformError",
]
