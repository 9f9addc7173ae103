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

"""
Release tarball building for clipack.

This package stages a clean workspace from the project, installs production
dependencies, and produces per-target archives plus update manifests.

Example:
    from pathlib import Path
    from clipack.build import build_tarballs
    from clipack.config import load_build_config

    config = load_build_config(Path("."), xz=True)
    result = build_tarballs(config)

    print(f"Built: {result.version} ({result.channel})")
    for target in result.targets:
        print(target.target, target.archives)
"""

from .manager import build_tarballs
from .manifest import Manifest, read_manifest, write_manifest

__all__ = ["build_tarballs", "Manifest", "read_manifest", "write_manifest"]
