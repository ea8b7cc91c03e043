# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures used across multiple test packages."""

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from obj_store_auth.dotenv_loader import reset_dotenv_state
from obj_store_auth.logging import SecretFilter


@pytest.fixture(autouse=True)
def _isolate_global_state(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    """Reset process-wide state touched by config loading.

    Secrets registered with ``SecretFilter`` and the ``.env`` loaded flag
    are cleared around every test, and the XDG config directory and the
    working directory point into ``tmp_path`` so no real ``.env`` or
    config file is picked up.
    """
    SecretFilter.clear_secrets()
    reset_dotenv_state()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.chdir(tmp_path)
    yield
    SecretFilter.clear_secrets()
    reset_dotenv_state()


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper that writes a YAML config and returns its path."""

    def _write(content: str, name: str = "obj_store_auth.yaml") -> Path:
        path = tmp_path / name
        path.write_text(content)
        return path

    return _write


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    """Undo ``configure_logging`` changes to the root logger."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)
