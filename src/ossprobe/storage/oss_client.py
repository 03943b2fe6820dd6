# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""oss2-backed StorageClient implementation."""

from __future__ import annotations

import logging
from pathlib import Path

import oss2
from oss2.models import PartInfo

from ..config import ProbeSettings, load_probe_settings
from ..models.probe import Credentials
from .client import ObjectInfo, StorageClient

logger = logging.getLogger(__name__)


def build_auth(credentials: Credentials) -> oss2.Auth | oss2.StsAuth:
    if credentials.sts_token:
        return oss2.StsAuth(credentials.access_key_id, credentials.access_key_secret, credentials.sts_token)
    return oss2.Auth(credentials.access_key_id, credentials.access_key_secret)


class Oss2StorageClient(StorageClient):
    """Thin wrapper over `oss2.Bucket`; SDK exceptions propagate unchanged."""

    def __init__(
        self,
        credentials: Credentials,
        bucket: str,
        endpoint: str,
        *,
        is_cname: bool = False,
        settings: ProbeSettings | None = None,
        oss_bucket: oss2.Bucket | None = None,
    ):
        self.settings = settings or load_probe_settings()
        self.bucket = bucket
        self.endpoint = endpoint
        self._bucket = oss_bucket or oss2.Bucket(
            build_auth(credentials),
            endpoint,
            bucket,
            is_cname=is_cname,
            connect_timeout=self.settings.connect_timeout,
            app_name="ossprobe",
        )

    def head_object(self, key: str) -> ObjectInfo:
        result = self._bucket.head_object(key)
        return ObjectInfo(key=key, size=result.content_length, object_type=result.object_type, etag=result.etag)

    def get_object_to_file(self, key: str, destination: Path) -> tuple[int, ObjectInfo]:
        result = self._bucket.get_object(key)
        info = ObjectInfo(key=key, size=result.content_length, object_type=result.object_type, etag=result.etag)
        written = 0
        with open(destination, "wb") as fh:
            while True:
                chunk = result.read(self.settings.chunk_size)
                if not chunk:
                    break
                fh.write(chunk)
                written += len(chunk)
        logger.debug("GET %s/%s wrote %d bytes", self.bucket, key, written)
        return written, info

    def put_object_from_file(self, key: str, source: Path) -> str | None:
        return self._bucket.put_object_from_file(key, str(source)).etag

    def append_object(self, key: str, position: int, data: bytes) -> int:
        return self._bucket.append_object(key, position, data).next_position

    def init_multipart_upload(self, key: str) -> str:
        return self._bucket.init_multipart_upload(key).upload_id

    def upload_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> str:
        return self._bucket.upload_part(key, upload_id, part_number, data).etag

    def complete_multipart_upload(self, key: str, upload_id: str, parts: list[tuple[int, str]]) -> str | None:
        part_infos = [PartInfo(number, etag) for number, etag in parts]
        return self._bucket.complete_multipart_upload(key, upload_id, part_infos).etag

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        self._bucket.abort_multipart_upload(key, upload_id)

    def delete_object(self, key: str) -> None:
        self._bucket.delete_object(key)
