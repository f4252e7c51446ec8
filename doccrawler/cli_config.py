"""Configuration loading helpers for CLI entrypoints."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

# Configuration directory for global CLI usage
CONFIG_DIR = Path.home() / ".config" / "doccrawler"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"


def load_config(
    *,
    load_env: Callable[[Path], bool],
    cwd: Optional[Path] = None,
    config_env_file: Path = CONFIG_ENV_FILE,
) -> Optional[Path]:
    """Load .env configuration with fallback to the user config directory.

    Search order:
    1. .env in the current working directory
    2. ~/.config/doccrawler/.env

    Returns the file that was loaded, or None.
    """
    local_env = (cwd or Path.cwd()) / ".env"
    if local_env.is_file():
        load_env(local_env)
        return local_env

    if config_env_file.is_file():
        load_env(config_env_file)
        return config_env_file

    logging.debug("No .env found; using environment and defaults")
    return None
