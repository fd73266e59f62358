# app/core/version.py
"""Version string from a VERSION file, installed package metadata or git."""
import subprocess
from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version as package_version
from pathlib import Path
from typing import Optional

DISTRIBUTION_NAME = "x402-paylinks"
VERSION_FILE = Path(__file__).resolve().parents[2] / "VERSION"
UNKNOWN_VERSION = "0.0.0-unknown"


def _git_short_hash() -> Optional[str]:
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True, text=True, check=True
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None
    return result.stdout.strip() or None


@lru_cache()
def get_version() -> str:
    """
    Resolve the running version, first match wins:
    VERSION file (container builds), installed distribution metadata,
    0.0.0+<git short hash> in a checkout, else 0.0.0-unknown.
    """
    if VERSION_FILE.is_file():
        pinned = VERSION_FILE.read_text().strip()
        if pinned:
            return pinned

    try:
        return package_version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        pass

    short_hash = _git_short_hash()
    return f"0.0.0+{short_hash}" if short_hash else UNKNOWN_VERSION


VERSION = get_version()
