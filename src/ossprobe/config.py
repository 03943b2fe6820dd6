# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration helpers for ossprobe."""

import os
from dataclasses import dataclass

from .version import __version__

DEFAULT_USER_AGENT = f"ossprobe/{__version__} (connectivity diagnostics)"
DEFAULT_CONFIG_FILE = "~/.ossutilconfig"
DEFAULT_FALLBACK_ADDRESS = "www.aliyun.com"


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class ProbeSettings:
    """Transfer and network defaults for a probe run."""

    timeout: float = 10.0
    connect_timeout: float = 5.0
    user_agent: str = DEFAULT_USER_AGENT
    verify_ssl: bool = True
    fallback_address: str = DEFAULT_FALLBACK_ADDRESS
    part_size: int = 1024 * 1024
    part_concurrency: int = 5
    probe_file_size: int = 100 * 1024
    chunk_size: int = 64 * 1024
    cleanup: bool = True

    @classmethod
    def from_env(cls) -> "ProbeSettings":
        """Create settings from environment variables (evaluated at call time)."""
        part_size = _int_env("OSSPROBE_PART_SIZE", cls.part_size)
        if part_size <= 0:
            part_size = cls.part_size
        probe_file_size = _int_env("OSSPROBE_PROBE_FILE_SIZE", cls.probe_file_size)
        if probe_file_size <= 0:
            probe_file_size = cls.probe_file_size
        chunk_size = _int_env("OSSPROBE_CHUNK_SIZE", cls.chunk_size)
        if chunk_size <= 0:
            chunk_size = cls.chunk_size
        return cls(
            timeout=_float_env("OSSPROBE_HTTP_TIMEOUT", cls.timeout),
            connect_timeout=_float_env("OSSPROBE_CONNECT_TIMEOUT", cls.connect_timeout),
            user_agent=os.getenv("OSSPROBE_USER_AGENT", cls.user_agent),
            verify_ssl=_bool_env("OSSPROBE_VERIFY_SSL", cls.verify_ssl),
            fallback_address=os.getenv("OSSPROBE_FALLBACK_ADDRESS", cls.fallback_address) or cls.fallback_address,
            part_size=part_size,
            part_concurrency=max(1, _int_env("OSSPROBE_PART_CONCURRENCY", cls.part_concurrency)),
            probe_file_size=probe_file_size,
            chunk_size=chunk_size,
            cleanup=_bool_env("OSSPROBE_CLEANUP", cls.cleanup),
        )


def load_probe_settings() -> ProbeSettings:
    """Load probe settings from environment with sensible defaults."""
    return ProbeSettings.from_env()
