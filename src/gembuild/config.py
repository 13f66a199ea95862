"""Default locations and environment-driven configuration for gembuild."""

import os
from pathlib import Path

TRUST_DIR_ENV = "GEMBUILD_TRUST_DIR"
OUTPUT_DIR_ENV = "GEMBUILD_OUTPUT_DIR"
POLICY_ENV = "GEMBUILD_POLICY"
HOME_ENV = "GEMBUILD_HOME"

DEFAULT_POLICY_NAME = "high"
GEMSPEC_SUFFIX = ".gemspec"


def gembuild_home() -> Path:
    """Returns the per-user gembuild data directory (``~/.gembuild`` by default)."""
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".gembuild"


def default_trust_dir() -> Path:
    override = os.environ.get(TRUST_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return gembuild_home() / "trust"
