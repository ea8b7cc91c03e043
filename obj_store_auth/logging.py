# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Logging setup with secret key redaction.

Secret access keys are registered with ``SecretFilter`` as soon as they
are loaded, and every handler installed by ``configure_logging`` scrubs
them from log output.

Usage:
    # In entry points (CLI)
    from obj_store_auth.logging import configure_logging
    configure_logging(level=logging.INFO)

    # In library modules
    import logging
    logger = logging.getLogger(__name__)
    logger.info("Signing request for tenant %s", tenant)
"""

import logging
import re
from typing import ClassVar, TextIO


_REDACTED = "[REDACTED]"

_DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class SecretFilter(logging.Filter):
    """Logging filter that replaces registered secrets with [REDACTED].

    The registry is shared by all instances, so a secret registered by
    the config loader is scrubbed by every handler.

    Example:
        SecretFilter.register_secret("wJalrXUtnFEMI/K7MDENG")
        handler.addFilter(SecretFilter())
        logger.info("secret=%s", "wJalrXUtnFEMI/K7MDENG")
        # Output: "secret=[REDACTED]"
    """

    _secrets: ClassVar[set[str]] = set()
    _pattern: ClassVar[re.Pattern[str] | None] = None

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact secrets from the message and its string arguments.

        Args:
            record: The log record to filter.

        Returns:
            Always True; records are modified, never dropped.
        """
        if self._pattern is None:
            return True

        record.msg = self.redact(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(
                self.redact(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        elif isinstance(record.args, dict):
            record.args = {
                key: self.redact(value) if isinstance(value, str) else value
                for key, value in record.args.items()
            }
        return True

    @classmethod
    def redact(cls, text: str) -> str:
        """Return *text* with every registered secret replaced."""
        if cls._pattern is None:
            return text
        return cls._pattern.sub(_REDACTED, text)

    @classmethod
    def register_secret(cls, secret: str) -> None:
        """Register a secret to be redacted from all log output.

        Args:
            secret: The secret string.  Empty strings are ignored.
        """
        if secret and secret not in cls._secrets:
            cls._secrets.add(secret)
            cls._rebuild_pattern()

    @classmethod
    def clear_secrets(cls) -> None:
        """Forget all registered secrets.  Mainly for tests."""
        cls._secrets.clear()
        cls._pattern = None

    @classmethod
    def _rebuild_pattern(cls) -> None:
        if not cls._secrets:
            cls._pattern = None
            return
        # Longest first so a secret containing another is fully redacted
        ordered = sorted(cls._secrets, key=len, reverse=True)
        cls._pattern = re.compile("|".join(re.escape(s) for s in ordered))


def configure_logging(
    level: int = logging.INFO,
    format_string: str | None = None,
    add_secret_filter: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Configure the root logger.

    Replaces any existing root handlers with a single stream handler.

    Args:
        level: The logging level (e.g., logging.INFO, logging.DEBUG).
        format_string: Custom format string.  None uses the default.
        add_secret_filter: Whether to attach ``SecretFilter``.
        stream: Output stream; defaults to stderr.
    """
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(format_string or _DEFAULT_FORMAT))

    if add_secret_filter:
        handler.addFilter(SecretFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)
