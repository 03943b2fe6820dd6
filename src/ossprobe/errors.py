# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy and exception helpers."""

from __future__ import annotations

import socket
import ssl as ssl_module
from enum import Enum
from typing import Any

import httpx
import oss2.exceptions


class ErrorCategory(str, Enum):
    VALIDATION = "VALIDATION"
    MISSING_CREDENTIAL = "MISSING_CREDENTIAL"
    RESOLUTION = "RESOLUTION"
    NETWORK_REACHABILITY = "NETWORK_REACHABILITY"
    REMOTE_REJECTION = "REMOTE_REJECTION"
    INTEGRITY = "INTEGRITY"
    LOCAL_IO = "LOCAL_IO"
    NONE = "NONE"


class ProbeError(Exception):
    """
    Base class for every classified probe failure.

    Context fields (`stage`, `address`, `attempt`) are filled in by whoever knows
    them; `with_context` only sets fields that are still empty so the innermost
    caller wins.
    """

    category = ErrorCategory.NONE

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        address: str | None = None,
        attempt: int | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.address = address
        self.attempt = attempt
        self.status_code = status_code
        self.cause = cause

    def with_context(self, **context: Any) -> ProbeError:
        for key in ("stage", "address", "attempt", "status_code"):
            value = context.get(key)
            if value is not None and getattr(self, key) is None:
                setattr(self, key, value)
        return self

    @property
    def retryable(self) -> bool:
        return self.category == ErrorCategory.NETWORK_REACHABILITY

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "message": self.message,
            "reason": error_category_to_reason(self.category),
            "stage": self.stage,
            "address": self.address,
            "attempt": self.attempt,
            "status_code": self.status_code,
            "error_type": type(self.cause).__name__ if self.cause is not None else type(self).__name__,
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.address:
            parts.append(f"address={self.address}")
        if self.attempt is not None:
            parts.append(f"attempt={self.attempt}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        return " ".join(parts)


class ValidationError(ProbeError):
    category = ErrorCategory.VALIDATION


class MissingCredentialError(ProbeError):
    category = ErrorCategory.MISSING_CREDENTIAL


class ResolutionError(ProbeError):
    category = ErrorCategory.RESOLUTION


class NetworkReachabilityError(ProbeError):
    category = ErrorCategory.NETWORK_REACHABILITY


class RemoteRejectionError(ProbeError):
    category = ErrorCategory.REMOTE_REJECTION


class IntegrityError(ProbeError):
    category = ErrorCategory.INTEGRITY


class LocalIOError(ProbeError):
    category = ErrorCategory.LOCAL_IO


_ERROR_CLASSES: dict[ErrorCategory, type[ProbeError]] = {
    ErrorCategory.VALIDATION: ValidationError,
    ErrorCategory.MISSING_CREDENTIAL: MissingCredentialError,
    ErrorCategory.RESOLUTION: ResolutionError,
    ErrorCategory.NETWORK_REACHABILITY: NetworkReachabilityError,
    ErrorCategory.REMOTE_REJECTION: RemoteRejectionError,
    ErrorCategory.INTEGRITY: IntegrityError,
    ErrorCategory.LOCAL_IO: LocalIOError,
}


def _status_of(exc: Exception) -> int | None:
    if isinstance(exc, oss2.exceptions.OssError):
        status = getattr(exc, "status", None)
        return status if isinstance(status, int) and status > 0 else None
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def categorize_exception(exc: Exception) -> ErrorCategory:
    """
    Map SDK/httpx/OS exceptions to ErrorCategory.

    Anything that failed before a valid HTTP response arrived is reachability-class;
    anything carrying an HTTP status code is rejection-class.
    """
    if isinstance(exc, ProbeError):
        return exc.category

    if isinstance(exc, oss2.exceptions.RequestError):
        return ErrorCategory.NETWORK_REACHABILITY
    if isinstance(exc, oss2.exceptions.InconsistentError):
        return ErrorCategory.INTEGRITY
    if isinstance(exc, oss2.exceptions.ClientError):
        return ErrorCategory.VALIDATION
    if _status_of(exc) is not None:
        return ErrorCategory.REMOTE_REJECTION

    if isinstance(exc, httpx.TransportError):
        return ErrorCategory.NETWORK_REACHABILITY
    if isinstance(exc, httpx.InvalidURL):
        return ErrorCategory.RESOLUTION
    if isinstance(exc, (ssl_module.SSLError, ssl_module.CertificateError)):
        return ErrorCategory.NETWORK_REACHABILITY
    if isinstance(exc, (socket.gaierror, socket.herror, socket.timeout, TimeoutError)):
        return ErrorCategory.NETWORK_REACHABILITY
    if isinstance(exc, ConnectionError):
        return ErrorCategory.NETWORK_REACHABILITY
    if isinstance(exc, OSError):
        return ErrorCategory.LOCAL_IO

    return ErrorCategory.NETWORK_REACHABILITY


def to_probe_error(exc: Exception, **context: Any) -> ProbeError:
    """Wrap a raw exception into the matching ProbeError subclass."""
    if isinstance(exc, ProbeError):
        return exc.with_context(**context)
    category = categorize_exception(exc)
    error_cls = _ERROR_CLASSES.get(category, NetworkReachabilityError)
    message = str(exc) or type(exc).__name__
    if isinstance(exc, oss2.exceptions.OssError) and getattr(exc, "code", ""):
        message = f"{exc.code}: {exc.message or message}"
    error = error_cls(message, status_code=_status_of(exc), cause=exc)
    return error.with_context(**context)


def error_category_to_reason(category: ErrorCategory | None) -> str:
    """User-facing reason string."""
    mapping = {
        ErrorCategory.VALIDATION: "Invalid or conflicting probe options",
        ErrorCategory.MISSING_CREDENTIAL: "Endpoint or access key missing",
        ErrorCategory.RESOLUTION: "Target could not be resolved to a bucket/object or host/path",
        ErrorCategory.NETWORK_REACHABILITY: "Network connectivity issue",
        ErrorCategory.REMOTE_REJECTION: "Request rejected by the storage service",
        ErrorCategory.INTEGRITY: "Transferred size does not match the expected size",
        ErrorCategory.LOCAL_IO: "Local file system error",
        ErrorCategory.NONE: "",
        None: "",
    }
    return mapping.get(category, "Probe failed")


__all__ = [
    "ErrorCategory",
    "IntegrityError",
    "LocalIOError",
    "MissingCredentialError",
    "NetworkReachabilityError",
    "ProbeError",
    "RemoteRejectionError",
    "ResolutionError",
    "ValidationError",
    "categorize_exception",
    "error_category_to_reason",
    "to_probe_error",
]
