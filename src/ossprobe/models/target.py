# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Resolved probe target descriptor."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class TargetKind(str, Enum):
    URL = "URL"
    STORAGE_PATH = "STORAGE_PATH"


@dataclass(frozen=True)
class ResolvedTarget:
    """
    Normalized probe target.

    For `URL` targets `host`/`path` describe the HTTP location and `url` keeps the
    original string. For `STORAGE_PATH` targets `bucket`/`object_key` name the
    object; `object_key` may be empty when the caller wants a generated name.
    """

    kind: TargetKind
    host: str = ""
    path: str = ""
    url: str = ""
    bucket: str = ""
    object_key: str = ""

    @property
    def is_url(self) -> bool:
        return self.kind == TargetKind.URL

    @property
    def base_name(self) -> str:
        source = self.path if self.is_url else self.object_key
        return source.rstrip("/").rsplit("/", 1)[-1]

    def with_object(self, object_key: str) -> ResolvedTarget:
        return ResolvedTarget(kind=self.kind, host=self.host, path=self.path, url=self.url, bucket=self.bucket, object_key=object_key)

    def to_dict(self) -> dict[str, Any]:
        if self.is_url:
            return {"kind": self.kind.value, "url": self.url, "host": self.host, "path": self.path}
        return {"kind": self.kind.value, "bucket": self.bucket, "object": self.object_key}

    def __str__(self) -> str:
        if self.is_url:
            return self.url
        return f"oss://{self.bucket}/{self.object_key}"
