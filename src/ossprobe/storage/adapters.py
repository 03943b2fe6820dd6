# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""In-memory StorageClient that mimics the service's object semantics."""

from __future__ import annotations

import hashlib
import threading
from dataclasses import dataclass, field
from pathlib import Path

import oss2.exceptions

from .client import ObjectInfo, StorageClient

OBJECT_TYPE_NORMAL = "Normal"
OBJECT_TYPE_APPENDABLE = "Appendable"
OBJECT_TYPE_MULTIPART = "Multipart"


def _server_error(
    cls: type[oss2.exceptions.ServerError], status: int, code: str, message: str, headers: dict[str, str] | None = None
) -> oss2.exceptions.ServerError:
    return cls(status, dict(headers or {}), b"", {"Code": code, "Message": message})


def _position_error(next_position: int) -> oss2.exceptions.ServerError:
    return _server_error(
        oss2.exceptions.PositionNotEqualToLength,
        409,
        "PositionNotEqualToLength",
        "Position is not equal to file length",
        {"x-oss-next-append-position": str(next_position)},
    )


@dataclass
class StoredObject:
    data: bytes
    object_type: str = OBJECT_TYPE_NORMAL

    @property
    def etag(self) -> str:
        return hashlib.md5(self.data).hexdigest().upper()  # noqa: S324


@dataclass
class _Session:
    key: str
    parts: dict[int, bytes] = field(default_factory=dict)


class InMemoryStorageClient(StorageClient):
    """
    Deterministic StorageClient for tests and offline runs.

    `unreachable=True` makes every call fail the way the SDK does when the
    endpoint cannot be dialed. `fail_parts` lists part numbers whose upload is
    rejected. `truncate_downloads` drops that many trailing bytes from every GET.
    """

    def __init__(
        self,
        bucket: str = "probe-bucket",
        objects: dict[str, StoredObject] | None = None,
        *,
        unreachable: bool = False,
        fail_parts: set[int] | None = None,
        truncate_downloads: int = 0,
    ):
        self.bucket = bucket
        self.objects: dict[str, StoredObject] = dict(objects or {})
        self.unreachable = unreachable
        self.fail_parts = set(fail_parts or ())
        self.truncate_downloads = truncate_downloads
        self.sessions: dict[str, _Session] = {}
        self.aborted: list[str] = []
        self.calls: list[str] = []
        self._lock = threading.Lock()
        self._upload_seq = 0

    def _enter(self, operation: str) -> None:
        with self._lock:
            self.calls.append(operation)
        if self.unreachable:
            raise oss2.exceptions.RequestError(ConnectionError(f"cannot connect to bucket {self.bucket}"))

    def _object(self, key: str) -> StoredObject:
        stored = self.objects.get(key)
        if stored is None:
            raise _server_error(oss2.exceptions.NoSuchKey, 404, "NoSuchKey", f"The specified key does not exist: {key}")
        return stored

    def put(self, key: str, data: bytes, object_type: str = OBJECT_TYPE_NORMAL) -> None:
        self.objects[key] = StoredObject(data=data, object_type=object_type)

    def head_object(self, key: str) -> ObjectInfo:
        self._enter("head_object")
        stored = self._object(key)
        return ObjectInfo(key=key, size=len(stored.data), object_type=stored.object_type, etag=stored.etag)

    def get_object_to_file(self, key: str, destination: Path) -> tuple[int, ObjectInfo]:
        self._enter("get_object")
        stored = self._object(key)
        data = stored.data[: len(stored.data) - self.truncate_downloads] if self.truncate_downloads else stored.data
        Path(destination).write_bytes(data)
        return len(data), ObjectInfo(key=key, size=len(stored.data), object_type=stored.object_type, etag=stored.etag)

    def put_object_from_file(self, key: str, source: Path) -> str | None:
        self._enter("put_object")
        stored = StoredObject(data=Path(source).read_bytes())
        self.objects[key] = stored
        return stored.etag

    def append_object(self, key: str, position: int, data: bytes) -> int:
        self._enter("append_object")
        stored = self.objects.get(key)
        if stored is None:
            if position != 0:
                raise _position_error(0)
            stored = StoredObject(data=b"", object_type=OBJECT_TYPE_APPENDABLE)
            self.objects[key] = stored
        elif stored.object_type != OBJECT_TYPE_APPENDABLE:
            raise _server_error(oss2.exceptions.ObjectNotAppendable, 409, "ObjectNotAppendable", "The object is not appendable")
        elif position != len(stored.data):
            raise _position_error(len(stored.data))
        stored.data += data
        return len(stored.data)

    def init_multipart_upload(self, key: str) -> str:
        self._enter("init_multipart_upload")
        with self._lock:
            self._upload_seq += 1
            upload_id = f"upload-{self._upload_seq}"
            self.sessions[upload_id] = _Session(key=key)
        return upload_id

    def _session(self, upload_id: str) -> _Session:
        session = self.sessions.get(upload_id)
        if session is None:
            raise _server_error(oss2.exceptions.NoSuchUpload, 404, "NoSuchUpload", f"The specified upload does not exist: {upload_id}")
        return session

    def upload_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> str:
        self._enter("upload_part")
        if part_number in self.fail_parts:
            raise _server_error(oss2.exceptions.AccessDenied, 403, "AccessDenied", f"part {part_number} rejected")
        with self._lock:
            self._session(upload_id).parts[part_number] = bytes(data)
        return hashlib.md5(data).hexdigest().upper()  # noqa: S324

    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[tuple[int, str]]) -> str | None:
        self._enter("complete_multipart_upload")
        with self._lock:
            session = self._session(upload_id)
            numbers = [number for number, _ in parts]
            if numbers != sorted(numbers) or any(number not in session.parts for number in numbers):
                raise _server_error(oss2.exceptions.InvalidArgument, 400, "InvalidPartOrder", "parts must be listed in ascending order")
            stored = StoredObject(data=b"".join(session.parts[number] for number in numbers), object_type=OBJECT_TYPE_MULTIPART)
            self.objects[key] = stored
            del self.sessions[upload_id]
        return stored.etag

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        self._enter("abort_multipart_upload")
        with self._lock:
            self._session(upload_id)
            del self.sessions[upload_id]
            self.aborted.append(upload_id)

    def delete_object(self, key: str) -> None:
        self._enter("delete_object")
        self.objects.pop(key, None)
