# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Local artifact naming: download destinations, generated probe files and the log."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

from ..errors import LocalIOError

TEMP_OBJECT_PREFIX = "oss-test-probe-"
TEMP_FILE_PREFIX = "oss-test-probe-file-"
DOWNLOAD_PREFIX = "oss-test-probe-download-"
LOG_PREFIX = "logOssProbe"


def _stamp(started_at: datetime) -> str:
    return started_at.strftime("%Y%m%d%H%M%S")


def build_log_path(output_dir: str | None, started_at: datetime) -> Path:
    return Path(output_dir or ".") / f"{LOG_PREFIX}{_stamp(started_at)}.log"


def temp_object_name(started_at: datetime) -> str:
    return f"{TEMP_OBJECT_PREFIX}{_stamp(started_at)}"


def temp_file_path(directory: str | None, started_at: datetime) -> Path:
    return Path(directory or ".") / f"{TEMP_FILE_PREFIX}{_stamp(started_at)}"


def _names_directory(local_path: str) -> bool:
    return local_path.endswith(("/", os.sep)) or Path(local_path).is_dir()


def derive_download_path(local_path: str | None, base_name: str, started_at: datetime) -> Path:
    """
    Destination for a download.

    No local path: a file named after the object/URL in the working directory.
    A directory (existing, or spelled with a trailing separator): base name appended.
    Anything else is used verbatim.
    """
    name = base_name or f"{DOWNLOAD_PREFIX}{_stamp(started_at)}"
    if not local_path:
        return Path(name)
    if _names_directory(local_path):
        return Path(local_path) / name
    return Path(local_path)


def ensure_parent(path: Path) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise LocalIOError(f"cannot create directory {path.parent}: {exc}", cause=exc) from exc
    return path


def generate_probe_file(path: Path, size: int) -> Path:
    """Write `size` random bytes to `path`."""
    ensure_parent(path)
    try:
        with open(path, "wb") as fh:
            remaining = size
            while remaining > 0:
                chunk = os.urandom(min(remaining, 64 * 1024))
                fh.write(chunk)
                remaining -= len(chunk)
    except OSError as exc:
        raise LocalIOError(f"cannot write probe file {path}: {exc}", cause=exc) from exc
    return path
