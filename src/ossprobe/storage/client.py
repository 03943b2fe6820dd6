# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Storage client abstraction and factory."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..config import ProbeSettings
from ..models.probe import Credentials


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    size: int | None = None
    object_type: str | None = None
    etag: str | None = None


class StorageClient(Protocol):
    """
    Bucket-scoped operations the probe needs from the storage service.

    Implementations raise the SDK's own exceptions; classification happens in the
    caller via `ossprobe.errors.categorize_exception`. Must be safe for concurrent
    `upload_part` calls within one multipart session.
    """

    bucket: str

    def head_object(self, key: str) -> ObjectInfo: ...

    def get_object_to_file(self, key: str, destination: Path) -> tuple[int, ObjectInfo]: ...

    def put_object_from_file(self, key: str, source: Path) -> str | None: ...

    def append_object(self, key: str, position: int, data: bytes) -> int: ...

    def init_multipart_upload(self, key: str) -> str: ...

    def upload_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> str: ...

    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[tuple[int, str]]) -> str | None: ...

    def abort_multipart_upload(self, key: str, upload_id: str) -> None: ...

    def delete_object(self, key: str) -> None: ...


StorageClientFactory = Callable[[Credentials, str, str, bool], StorageClient]


def create_default_storage_client(
    credentials: Credentials,
    bucket: str,
    endpoint: str,
    is_cname: bool = False,
    *,
    settings: ProbeSettings | None = None,
) -> StorageClient:
    """Factory for the default oss2-backed client."""
    from .oss_client import Oss2StorageClient

    return Oss2StorageClient(credentials, bucket, endpoint, is_cname=is_cname, settings=settings)
