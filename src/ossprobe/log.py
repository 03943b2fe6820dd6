# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Logging helpers for ossprobe."""

from __future__ import annotations

import logging
import os
from pathlib import Path

DEFAULT_LOG_LEVEL = os.getenv("OSSPROBE_LOG_LEVEL", "WARNING").upper()
PROBE_LOGGER_NAME = "ossprobe.probe"
PROBE_LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure standard logging for CLI/library use."""
    effective_level = (level or DEFAULT_LOG_LEVEL).upper()
    numeric_level = getattr(logging, effective_level, logging.WARNING)
    root = logging.getLogger()
    existing = list(root.handlers)
    logging.basicConfig(
        level=numeric_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    # ProbeLog raises the probe logger to DEBUG; the console stays at the requested level
    for handler in root.handlers:
        if handler not in existing:
            handler.setLevel(numeric_level)


class ProbeLog:
    """
    Diagnostic log file for one probe invocation.

    The file handler hangs off the ``ossprobe.probe`` logger, so every module under
    ``ossprobe.probe`` writes into it while the log is open. Use as a context manager;
    the handler is flushed and detached on exit whatever the outcome.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.logger = logging.getLogger(PROBE_LOGGER_NAME)
        self._handler: logging.FileHandler | None = None
        self._previous_level: int | None = None

    def open(self) -> ProbeLog:
        if self._handler is not None:
            return self
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(PROBE_LOG_FORMAT))
        self._previous_level = self.logger.level
        self.logger.setLevel(logging.DEBUG)
        self.logger.addHandler(handler)
        self._handler = handler
        return self

    @property
    def is_open(self) -> bool:
        return self._handler is not None

    def close(self) -> None:
        handler = self._handler
        if handler is None:
            return
        self._handler = None
        handler.flush()
        self.logger.removeHandler(handler)
        handler.close()
        if self._previous_level is not None:
            self.logger.setLevel(self._previous_level)

    def __enter__(self) -> ProbeLog:
        return self.open()

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()


__all__ = ["PROBE_LOGGER_NAME", "ProbeLog", "setup_logging"]
