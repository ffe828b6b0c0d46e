"""Environment-driven defaults for codescout runs."""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_CONFIG_FILE = Path(os.environ.get("CODESCOUT_CONFIG", "codescout.json"))
DEFAULT_WORKERS = int(os.environ.get("CODESCOUT_WORKERS", str(min(8, os.cpu_count() or 1))))
COMMAND_TIMEOUT = float(os.environ.get("CODESCOUT_COMMAND_TIMEOUT", "600"))

DEFAULT_COMMITS = ["HEAD"]
DEFAULT_EXTENSIONS = ["swift"]
DEFAULT_LOC_TEMPLATE = "%langs% | %include%"

# Standard length for short commit hashes in summaries (e.g. "abc1234")
SHORT_HASH_LENGTH = 7
