# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Parse the probe target into a URL or bucket/object descriptor."""

from __future__ import annotations

from urllib.parse import urlsplit

from ..errors import ResolutionError
from ..models.probe import STORAGE_SCHEME, ProbeOptions
from ..models.target import ResolvedTarget, TargetKind

HTTP_SCHEMES = ("http://", "https://")


def is_http_url(value: str | None) -> bool:
    return bool(value) and value.strip().lower().startswith(HTTP_SCHEMES)


def is_storage_path(value: str | None) -> bool:
    return bool(value) and value.strip().lower().startswith(STORAGE_SCHEME)


def parse_http_url(raw: str) -> ResolvedTarget:
    url = raw.strip()
    if not is_http_url(url):
        raise ResolutionError(f"{raw!r} is not an http(s) url")
    parts = urlsplit(url)
    host = parts.hostname or ""
    if not host:
        raise ResolutionError(f"url {raw!r} has no host")
    path = parts.path.lstrip("/")
    if not path or path.endswith("/"):
        raise ResolutionError(f"url {raw!r} does not name an object")
    return ResolvedTarget(kind=TargetKind.URL, host=parts.netloc, path=path, url=url)


def parse_storage_path(raw: str) -> ResolvedTarget:
    value = raw.strip()
    if not is_storage_path(value):
        raise ResolutionError(f"{raw!r} is not a {STORAGE_SCHEME} reference")
    remainder = value[len(STORAGE_SCHEME):]
    bucket, _, object_key = remainder.partition("/")
    if not bucket:
        raise ResolutionError(f"invalid cloud url {raw!r}, bucket name is empty")
    return ResolvedTarget(kind=TargetKind.STORAGE_PATH, bucket=bucket, object_key=object_key)


def resolve(raw_target: str | None, positional: str | None, *, bucket: str | None = None, object_key: str | None = None) -> ResolvedTarget:
    """
    Resolve a probe target.

    `raw_target` is the ``--url`` value (an http(s) URL, or an ``oss://`` reference);
    `positional` is the command's first positional argument, which only counts as a
    target when it is an ``oss://`` reference. Without either, the bucket/object
    fields are used. A URL and a storage path together are rejected.
    """
    storage_arg = positional if is_storage_path(positional) else None

    if raw_target:
        if is_storage_path(raw_target):
            if storage_arg:
                raise ResolutionError("a storage path was given both as target and as argument")
            return _with_object_fallback(parse_storage_path(raw_target), object_key)
        if storage_arg:
            raise ResolutionError(f"url {raw_target!r} and storage path {storage_arg!r} cannot be combined")
        return parse_http_url(raw_target)

    if storage_arg:
        return _with_object_fallback(parse_storage_path(storage_arg), object_key)

    if not bucket:
        raise ResolutionError("bucket name is empty; pass --bucket, an oss:// path or --url")
    if "/" in bucket:
        raise ResolutionError(f"invalid bucket name {bucket!r}")
    return ResolvedTarget(kind=TargetKind.STORAGE_PATH, bucket=bucket, object_key=object_key or "")


def resolve_options(options: ProbeOptions) -> ResolvedTarget:
    return resolve(options.url, options.storage_arg, bucket=options.bucket, object_key=options.object_key)


def _with_object_fallback(target: ResolvedTarget, object_key: str | None) -> ResolvedTarget:
    if target.object_key or not object_key:
        return target
    return target.with_object(object_key)


__all__ = ["is_http_url", "is_storage_path", "parse_http_url", "parse_storage_path", "resolve", "resolve_options"]
