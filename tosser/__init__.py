"""File Tosser - rule-driven file distribution daemon."""

import os

__version__ = "0.1.0"

# Filled in by the build pipeline, e.g. TOSSER_BUILD_TIME=2026-10-18
BUILD_TIME = os.environ.get("TOSSER_BUILD_TIME", "n/a")
