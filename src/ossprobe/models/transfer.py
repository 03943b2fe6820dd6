# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Transfer result model shared by all strategies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..errors import IntegrityError


@dataclass
class TransferResult:
    strategy: str
    bytes_transferred: int
    expected_bytes: int | None = None
    object_key: str = ""
    local_path: str = ""
    etag: str | None = None
    parts: int = 0
    elapsed: float = 0.0
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return self.expected_bytes is None or self.bytes_transferred == self.expected_bytes

    def verify(self) -> TransferResult:
        """Raise IntegrityError when the byte count disagrees with the expected size."""
        if not self.complete:
            raise IntegrityError(
                f"{self.strategy} transferred {self.bytes_transferred} bytes, expected {self.expected_bytes}",
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "bytes_transferred": self.bytes_transferred,
            "expected_bytes": self.expected_bytes,
            "object": self.object_key,
            "local_path": self.local_path,
            "etag": self.etag,
            "parts": self.parts,
            "elapsed": round(self.elapsed, 3),
        }
