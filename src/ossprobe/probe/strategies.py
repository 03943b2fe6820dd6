# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Transfer strategies.

Downloads have one strategy per target kind (URL or bucket/object). Uploads pick
between a single PUT, an append sequence starting at offset 0, and a multipart
session whose parts go out on a bounded thread pool. Strategies raise the
collaborators' own exceptions (or ProbeError subclasses); the orchestrator
classifies them.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import oss2
import oss2.exceptions

from ..config import ProbeSettings
from ..errors import NetworkReachabilityError, RemoteRejectionError
from ..http.client import HttpClient
from ..http.models import HttpRequest
from ..models.probe import UploadMode
from ..models.target import ResolvedTarget
from ..models.transfer import TransferResult
from ..storage.client import StorageClient
from .address import with_host

logger = logging.getLogger(__name__)

APPENDABLE_TYPE = "Appendable"


@dataclass
class TransferContext:
    """Everything one attempt needs; rebuilt for every attempt."""

    target: ResolvedTarget
    address: str
    settings: ProbeSettings
    storage: StorageClient | None = None
    http: HttpClient | None = None

    def require_storage(self) -> StorageClient:
        if self.storage is None:
            raise RuntimeError("storage client not configured for this transfer")
        return self.storage

    def require_http(self) -> HttpClient:
        if self.http is None:
            raise RuntimeError("http client not configured for this transfer")
        return self.http


class TransferStrategy(Protocol):
    name: str

    def execute(self, ctx: TransferContext) -> TransferResult: ...


class UrlDownloadStrategy:
    """GET an http(s) URL into a local file."""

    name = "url-download"

    def __init__(self, destination: Path):
        self.destination = destination

    def execute(self, ctx: TransferContext) -> TransferResult:
        url = with_host(ctx.target.url, ctx.address)
        started = time.monotonic()
        response = ctx.require_http().download(HttpRequest(url=url, headers={"Accept-Encoding": "identity"}, timeout=ctx.settings.timeout), self.destination)
        elapsed = time.monotonic() - started
        if not response.ok:
            message = response.error_message or "download failed"
            if response.transport_failure:
                raise NetworkReachabilityError(f"GET {url}: {message}")
            raise RemoteRejectionError(f"GET {url}: {message}", status_code=response.status_code)
        return TransferResult(
            strategy=self.name,
            bytes_transferred=response.bytes_written,
            expected_bytes=response.content_length,
            local_path=str(self.destination),
            elapsed=elapsed,
            meta={"url": url, "status_code": response.status_code},
        )


class ObjectDownloadStrategy:
    """Stream a bucket object into a local file."""

    name = "object-download"

    def __init__(self, destination: Path):
        self.destination = destination

    def execute(self, ctx: TransferContext) -> TransferResult:
        key = ctx.target.object_key
        started = time.monotonic()
        written, info = ctx.require_storage().get_object_to_file(key, self.destination)
        return TransferResult(
            strategy=self.name,
            bytes_transferred=written,
            expected_bytes=info.size,
            object_key=key,
            local_path=str(self.destination),
            etag=info.etag,
            elapsed=time.monotonic() - started,
        )


class NormalPutStrategy:
    """Single PUT of the whole file; the stored size is read back for comparison."""

    name = UploadMode.NORMAL.value

    def __init__(self, source: Path):
        self.source = source

    def execute(self, ctx: TransferContext) -> TransferResult:
        storage = ctx.require_storage()
        key = ctx.target.object_key
        size = self.source.stat().st_size
        started = time.monotonic()
        etag = storage.put_object_from_file(key, self.source)
        stored = storage.head_object(key)
        return TransferResult(
            strategy=self.name,
            bytes_transferred=stored.size if stored.size is not None else size,
            expected_bytes=size,
            object_key=key,
            local_path=str(self.source),
            etag=etag,
            elapsed=time.monotonic() - started,
        )


class AppendStrategy:
    """Append the file in chunks from offset 0; the object must not exist yet."""

    name = UploadMode.APPEND.value

    def __init__(self, source: Path):
        self.source = source

    def _check_absent(self, storage: StorageClient, key: str) -> None:
        try:
            info = storage.head_object(key)
        except oss2.exceptions.NotFound:
            return
        kind = info.object_type or "unknown"
        detail = "is not appendable" if kind != APPENDABLE_TYPE else "already has data"
        raise RemoteRejectionError(
            f"object {key} already exists as a {kind} object and {detail}; append must start at offset 0",
            status_code=409,
        )

    def execute(self, ctx: TransferContext) -> TransferResult:
        storage = ctx.require_storage()
        key = ctx.target.object_key
        size = self.source.stat().st_size
        started = time.monotonic()
        self._check_absent(storage, key)

        position = 0
        appends = 0
        with open(self.source, "rb") as fh:
            while True:
                chunk = fh.read(ctx.settings.part_size)
                if not chunk and appends:
                    break
                position = storage.append_object(key, position, chunk)
                appends += 1
                logger.debug("append %s: next position %d", key, position)
                if not chunk:
                    break
        return TransferResult(
            strategy=self.name,
            bytes_transferred=position,
            expected_bytes=size,
            object_key=key,
            local_path=str(self.source),
            parts=appends,
            elapsed=time.monotonic() - started,
        )


def plan_parts(total_size: int, preferred_size: int) -> list[tuple[int, int, int]]:
    """Split a file into ``(part_number, offset, length)`` triples, numbered from 1."""
    if total_size <= 0:
        return [(1, 0, 0)]
    part_size = oss2.determine_part_size(total_size, preferred_size=preferred_size)
    parts = []
    offset = 0
    number = 1
    while offset < total_size:
        length = min(part_size, total_size - offset)
        parts.append((number, offset, length))
        offset += length
        number += 1
    return parts


class MultipartStrategy:
    """
    Multipart upload over a bounded worker pool.

    Parts may finish in any order; completion always lists them by ascending part
    number. The first failed part cancels queued parts, stops the rest from being
    sent, and aborts the session before the error propagates.
    """

    name = UploadMode.MULTIPART.value

    def __init__(self, source: Path):
        self.source = source

    def _read_part(self, offset: int, length: int) -> bytes:
        with open(self.source, "rb") as fh:
            fh.seek(offset)
            return fh.read(length)

    def execute(self, ctx: TransferContext) -> TransferResult:
        storage = ctx.require_storage()
        key = ctx.target.object_key
        size = self.source.stat().st_size
        parts = plan_parts(size, ctx.settings.part_size)
        started = time.monotonic()

        upload_id = storage.init_multipart_upload(key)
        logger.info("multipart %s: upload id %s, %d part(s)", key, upload_id, len(parts))
        cancelled = threading.Event()

        def upload(number: int, offset: int, length: int) -> tuple[int, str, int]:
            if cancelled.is_set():
                raise RuntimeError(f"part {number} abandoned after an earlier failure")
            data = self._read_part(offset, length)
            etag = storage.upload_part(key, upload_id, number, data)
            return number, etag, len(data)

        workers = max(1, min(ctx.settings.part_concurrency, len(parts)))
        futures: list[Future] = []
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ossprobe-part") as pool:
            futures = [pool.submit(upload, *part) for part in parts]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            failed = next((f for f in futures if f in done and f.exception() is not None), None)
            if failed is not None:
                cancelled.set()
                for future in pending:
                    future.cancel()

        if failed is not None:
            self._abort(storage, key, upload_id)
            raise failed.exception()

        uploaded = sorted(future.result() for future in futures)
        etag = storage.complete_multipart_upload(key, upload_id, [(number, part_etag) for number, part_etag, _ in uploaded])
        return TransferResult(
            strategy=self.name,
            bytes_transferred=sum(length for _, _, length in uploaded),
            expected_bytes=size,
            object_key=key,
            local_path=str(self.source),
            etag=etag,
            parts=len(uploaded),
            elapsed=time.monotonic() - started,
            meta={"upload_id": upload_id},
        )

    @staticmethod
    def _abort(storage: StorageClient, key: str, upload_id: str) -> None:
        try:
            storage.abort_multipart_upload(key, upload_id)
            logger.info("multipart %s: aborted upload %s", key, upload_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("multipart %s: abort of upload %s failed: %s", key, upload_id, exc)


UPLOAD_STRATEGIES: dict[UploadMode, type] = {
    UploadMode.NORMAL: NormalPutStrategy,
    UploadMode.APPEND: AppendStrategy,
    UploadMode.MULTIPART: MultipartStrategy,
}


def select_upload_strategy(mode: UploadMode | str | None, source: Path) -> TransferStrategy:
    """Pick the upload strategy; unknown mode strings raise ValidationError."""
    if not isinstance(mode, UploadMode):
        mode = UploadMode.parse(mode)
    return UPLOAD_STRATEGIES[mode](source)


def select_download_strategy(target: ResolvedTarget, destination: Path) -> TransferStrategy:
    if target.is_url:
        return UrlDownloadStrategy(destination)
    return ObjectDownloadStrategy(destination)


__all__ = [
    "AppendStrategy",
    "MultipartStrategy",
    "NormalPutStrategy",
    "ObjectDownloadStrategy",
    "TransferContext",
    "TransferStrategy",
    "UPLOAD_STRATEGIES",
    "UrlDownloadStrategy",
    "plan_parts",
    "select_download_strategy",
    "select_upload_strategy",
]
