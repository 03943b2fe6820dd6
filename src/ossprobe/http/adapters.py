# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Programmable HttpClient used by tests and offline runs."""

from __future__ import annotations

from pathlib import Path

from .client import HttpClient
from .models import HttpRequest, HttpResponse


class StubHttpClient(HttpClient):
    """
    Deterministic HttpClient keyed by URL.

    Responses with `ok=True` have their `content` written to the destination on
    `download`; anything else is returned untouched.
    """

    def __init__(self, responses: dict[str, HttpResponse] | None = None):
        self._responses = responses or {}
        self.requests: list[HttpRequest] = []
        self.closed = False

    def add(self, url: str, response: HttpResponse) -> None:
        self._responses[url] = response

    def _lookup(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        if request.url in self._responses:
            return self._responses[request.url]
        return HttpResponse(ok=False, status_code=None, url=request.url, error_message="No stubbed response configured", error_type="ConnectError")

    def download(self, request: HttpRequest, destination: Path) -> HttpResponse:
        response = self._lookup(request)
        if not response.ok:
            return response
        Path(destination).write_bytes(response.content)
        return HttpResponse(
            ok=True,
            status_code=response.status_code,
            headers=dict(response.headers),
            url=response.url or request.url,
            meta={**response.meta, "bytes_written": len(response.content)},
        )

    def close(self) -> None:
        self.closed = True
