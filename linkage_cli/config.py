"""Configuration paths and defaults for linkage-cli."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("LINKAGE_HOME", str(Path.home() / ".linkage-cli"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

DEFAULT_REPOSITORY_URLS = ["https://repo1.maven.org/maven2/"]
DEFAULT_LOCAL_REPOSITORY = Path(
    os.environ.get("LINKAGE_LOCAL_REPOSITORY", str(Path.home() / ".m2" / "repository"))
).expanduser()
DEFAULT_TIMEOUT = 30.0
DEFAULT_WORKERS = 1
