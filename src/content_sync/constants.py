import os
from pathlib import Path

"""Global constants and filesystem locations for content-sync.

This module defines application identifiers, the state and configuration
layout (adhering to XDG standards where applicable), and the default git
identity used for automated commits.
"""

# --- Identity ---
APP_NAME = "content-sync"
"""str: The human-readable application name."""

COMMIT_AUTHOR_NAME = "Clem"
"""str: Default author name for automated content commits."""

COMMIT_AUTHOR_EMAIL = "clem@warframeblog.com"
"""str: Default author email for automated content commits."""

COMMIT_MESSAGE_PREFIX = "Update data"
"""str: Prefix of every automated commit message."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / "content-sync"
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "scheduler.log"
"""Path: The file path for the scheduler process logs."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/content-sync"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The main configuration file path."""

# --- Git / Content Constants ---
REMOTE_NAME = "origin"
"""str: The remote every working tree is cloned from and pushed to."""

TOKEN_PASSWORD = "x-oauth-basic"
"""str: Basic-auth password paired with the token as username."""

DATE_FIELD = "date"
"""str: Front-matter key stamped whenever a file's metadata changes."""

DEFAULT_CONTENT_TYPE = "content"
"""str: Content folder used by the bundled event tasks."""
