# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Probe options, per-invocation run state and outcome models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..errors import ProbeError, ValidationError, error_category_to_reason
from .target import ResolvedTarget
from .transfer import TransferResult

STORAGE_SCHEME = "oss://"


class Direction(str, Enum):
    DOWNLOAD = "download"
    UPLOAD = "upload"


class UploadMode(str, Enum):
    NORMAL = "normal"
    APPEND = "append"
    MULTIPART = "multipart"

    @classmethod
    def parse(cls, value: str | None) -> UploadMode:
        """Empty means normal; anything unrecognized is rejected rather than defaulted."""
        raw = (value or "").strip().lower()
        if not raw:
            return cls.NORMAL
        for mode in cls:
            if mode.value == raw:
                return mode
        allowed = "|".join(mode.value for mode in cls)
        raise ValidationError(f"unknown upload mode {value!r}, expected one of {allowed}")


class ProbeStage(str, Enum):
    INIT = "Init"
    VALIDATED = "Validated"
    RESOLVED = "Resolved"
    EXECUTING = "Executing"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @property
    def terminal(self) -> bool:
        return self in (ProbeStage.SUCCEEDED, ProbeStage.FAILED)


@dataclass(frozen=True)
class Credentials:
    endpoint: str | None = None
    access_key_id: str | None = None
    access_key_secret: str | None = None
    sts_token: str | None = None

    @property
    def missing(self) -> list[str]:
        names = {
            "endpoint": self.endpoint,
            "accessKeyID": self.access_key_id,
            "accessKeySecret": self.access_key_secret,
        }
        return [name for name, value in names.items() if not value]

    def masked(self) -> dict[str, str | None]:
        def _mask(value: str | None) -> str | None:
            if not value:
                return value
            return value[:3] + "***" if len(value) > 6 else "***"

        return {
            "endpoint": self.endpoint,
            "access_key_id": _mask(self.access_key_id),
            "access_key_secret": _mask(self.access_key_secret),
            "sts_token": _mask(self.sts_token),
        }


@dataclass(frozen=True)
class ProbeOptions:
    """
    Immutable input for one probe invocation.

    `download`/`upload` are kept as two flags so that "both" and "neither" can be
    reported as validation failures instead of being unrepresentable. `args` holds
    the positional arguments: at most one local file/destination and at most one
    ``oss://`` reference, in either order.
    `credentials` carries values supplied on the command line; they take precedence
    over whatever the config file holds.
    """

    download: bool = False
    upload: bool = False
    url: str | None = None
    args: tuple[str, ...] = ()
    bucket: str | None = None
    object_key: str | None = None
    up_mode: str | None = None
    config_file: str | None = None
    credentials: Credentials = field(default_factory=Credentials)
    output_dir: str | None = None
    fallback_address: str | None = None
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def direction(self) -> Direction | None:
        if self.download and not self.upload:
            return Direction.DOWNLOAD
        if self.upload and not self.download:
            return Direction.UPLOAD
        return None

    @property
    def storage_args(self) -> list[str]:
        return [arg for arg in self.args if arg.strip().lower().startswith(STORAGE_SCHEME)]

    @property
    def local_args(self) -> list[str]:
        return [arg for arg in self.args if not arg.strip().lower().startswith(STORAGE_SCHEME)]

    @property
    def storage_arg(self) -> str | None:
        storage_args = self.storage_args
        return storage_args[0] if storage_args else None

    @property
    def local_path(self) -> str | None:
        local_args = self.local_args
        return local_args[0] if local_args else None

    def cli_overrides(self) -> dict[str, str]:
        """CLI-supplied values keyed by canonical option name; empty strings count as absent."""
        values = {
            "endpoint": self.credentials.endpoint,
            "accessKeyID": self.credentials.access_key_id,
            "accessKeySecret": self.credentials.access_key_secret,
            "stsToken": self.credentials.sts_token,
            "outputDir": self.output_dir,
        }
        return {name: value for name, value in values.items() if value}

@dataclass
class AttemptRecord:
    attempt: int
    address: str
    elapsed: float = 0.0
    error: ProbeError | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt": self.attempt,
            "address": self.address,
            "elapsed": round(self.elapsed, 3),
            "error": self.error.to_dict() if self.error is not None else None,
        }


@dataclass
class ProbeRunState:
    """Mutable state of a single probe attempt; never shared across invocations."""

    log_path: str
    stage: ProbeStage = ProbeStage.INIT
    resolved_address: str | None = None
    download_file_path: str | None = None
    attempt_count: int = 0
    fallback_used: bool = False
    attempts: list[AttemptRecord] = field(default_factory=list)
    temp_files: list[str] = field(default_factory=list)
    temp_objects: list[str] = field(default_factory=list)

    def advance(self, stage: ProbeStage) -> None:
        if self.stage.terminal:
            raise RuntimeError(f"probe already finished in state {self.stage.value}")
        self.stage = stage

    def use_fallback(self, address: str) -> None:
        if self.fallback_used:
            raise RuntimeError("fallback address may only be applied once per probe")
        self.fallback_used = True
        self.resolved_address = address


@dataclass
class ProbeOutcome:
    ok: bool
    stage: ProbeStage
    log_path: str
    direction: Direction | None = None
    upload_mode: UploadMode | None = None
    target: ResolvedTarget | None = None
    download_file_path: str | None = None
    attempt_count: int = 0
    attempts: list[AttemptRecord] = field(default_factory=list)
    transfer: TransferResult | None = None
    error: ProbeError | None = None
    diagnosis: str = ""

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    @property
    def reason(self) -> str:
        if self.error is None:
            return ""
        return error_category_to_reason(self.error.category)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "stage": self.stage.value,
            "direction": self.direction.value if self.direction else None,
            "upload_mode": self.upload_mode.value if self.upload_mode else None,
            "target": self.target.to_dict() if self.target else None,
            "download_file_path": self.download_file_path,
            "log_path": self.log_path,
            "attempt_count": self.attempt_count,
            "attempts": [attempt.to_dict() for attempt in self.attempts],
            "transfer": self.transfer.to_dict() if self.transfer else None,
            "error": self.error.to_dict() if self.error else None,
            "diagnosis": self.diagnosis,
        }
