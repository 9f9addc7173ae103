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

"""Configuration loading for clipack.

The build configuration comes from the project's package.json (``oclif``
section), optionally layered on top of organization defaults found in
``defaults/org.yaml`` above the project root. Dicts are merged recursively
and lists/scalars are replaced (package.json wins).

Example:
    Basic usage:
        ```python
        from pathlib import Path
        from clipack.config import load_build_config

        config = load_build_config(Path("."))
        print(config.bin, config.version, config.channel)
        ```
"""

from .loader import (
    BuildConfig,
    MacosConfig,
    S3Config,
    UpdateConfig,
    load_build_config,
    load_oclif_section,
)

__all__ = [
    "BuildConfig",
    "MacosConfig",
    "S3Config",
    "UpdateConfig",
    "load_build_config",
    "load_oclif_section",
]
