# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Idempotent .env loading for ``!env`` config values.

Credentials are usually referenced from the config file with ``!env``
tags.  Before the config is parsed, variables are read from two places
(in order):

1. ``~/.config/obj-store-auth/.env`` (XDG config directory)
2. ``.env`` in the current working directory

``python-dotenv`` never overwrites variables that are already set, so
the process environment wins over both files and the XDG file wins over
the working directory.
"""

import logging
from pathlib import Path

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

_dotenv_loaded = False


def load_dotenv_once(xdg_env: Path) -> None:
    """Load .env files on the first call only.

    Args:
        xdg_env: The ``.env`` path inside the XDG config directory.
    """
    global _dotenv_loaded
    if _dotenv_loaded:
        return

    for env_path in (xdg_env, Path.cwd() / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug("Loaded .env from %s", env_path)

    _dotenv_loaded = True


def reset_dotenv_state() -> None:
    """Reset the loaded flag.  For testing only."""
    global _dotenv_loaded
    _dotenv_loaded = False
