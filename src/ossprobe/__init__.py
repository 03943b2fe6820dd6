# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
ossprobe package entrypoint.

Connectivity diagnostics for object storage: a probe performs one real download or
upload against an http(s) URL or an ``oss://bucket/object`` target, falls back to a
well-known address once when the endpoint looks unreachable, classifies the
failure, and leaves a log file (plus the downloaded payload) behind. Network
collaborators are injectable, and domain objects are typed dataclasses.
"""

from .config import ProbeSettings, load_probe_settings
from .errors import ErrorCategory, ProbeError
from .http import HttpClient, HttpRequest, HttpResponse, HttpxClient, create_default_http_client
from .log import setup_logging
from .models import Credentials, Direction, ProbeOptions, ProbeOutcome, UploadMode
from .probe import AddressFallbackPolicy, ProbeOrchestrator, run_probe
from .runtime import OssProbe
from .storage import InMemoryStorageClient, Oss2StorageClient, StorageClient, create_default_storage_client
from .version import __version__

__all__ = [
    "AddressFallbackPolicy",
    "Credentials",
    "Direction",
    "ErrorCategory",
    "HttpClient",
    "HttpRequest",
    "HttpResponse",
    "HttpxClient",
    "InMemoryStorageClient",
    "Oss2StorageClient",
    "OssProbe",
    "ProbeError",
    "ProbeOptions",
    "ProbeOrchestrator",
    "ProbeOutcome",
    "ProbeSettings",
    "StorageClient",
    "UploadMode",
    "create_default_http_client",
    "create_default_storage_client",
    "load_probe_settings",
    "run_probe",
    "setup_logging",
    "__version__",
]
