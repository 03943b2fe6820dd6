# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Dataclass exports for ossprobe."""

from ..http.models import Headers, HttpRequest, HttpResponse
from .probe import (
    AttemptRecord,
    Credentials,
    Direction,
    ProbeOptions,
    ProbeOutcome,
    ProbeRunState,
    ProbeStage,
    UploadMode,
)
from .target import ResolvedTarget, TargetKind
from .transfer import TransferResult

__all__ = [
    "AttemptRecord",
    "Credentials",
    "Direction",
    "Headers",
    "HttpRequest",
    "HttpResponse",
    "ProbeOptions",
    "ProbeOutcome",
    "ProbeRunState",
    "ProbeStage",
    "ResolvedTarget",
    "TargetKind",
    "TransferResult",
    "UploadMode",
]
