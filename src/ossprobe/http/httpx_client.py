# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""httpx-backed HttpClient implementation."""

from __future__ import annotations

from pathlib import Path

import httpx

from ..config import ProbeSettings, load_probe_settings
from .client import HttpClient
from .models import HttpRequest, HttpResponse

MAX_BODY_BYTES = 1024 * 1024


class HttpxClient(HttpClient):
    """Synchronous httpx client wrapper."""

    def __init__(self, settings: ProbeSettings | None = None, client: httpx.Client | None = None):
        self.settings = settings or load_probe_settings()
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=httpx.Timeout(self.settings.timeout, connect=self.settings.connect_timeout),
            verify=self.settings.verify_ssl,
        )

    def _headers(self, request: HttpRequest) -> dict[str, str]:
        headers = dict(request.headers or {})
        headers.setdefault("User-Agent", self.settings.user_agent)
        return headers

    def _timeout(self, request: HttpRequest) -> httpx.Timeout:
        return httpx.Timeout(request.timeout or self.settings.timeout, connect=self.settings.connect_timeout)

    def download(self, request: HttpRequest, destination: Path) -> HttpResponse:
        """
        Stream the response body into `destination`.

        The file is only opened once a 2xx status arrived, so an HTTP rejection never
        leaves a partial payload behind. `meta["bytes_written"]` counts what reached disk.
        """
        written = 0
        try:
            with self._client.stream(
                request.method,
                request.url,
                headers=self._headers(request),
                timeout=self._timeout(request),
                follow_redirects=request.allow_redirects,
            ) as resp:
                if not resp.is_success:
                    resp.read()
                    return HttpResponse(
                        ok=False,
                        status_code=resp.status_code,
                        headers=dict(resp.headers),
                        content=resp.content[:MAX_BODY_BYTES],
                        url=str(resp.url),
                        error_message=f"HTTP {resp.status_code} {resp.reason_phrase}".strip(),
                        meta={"bytes_written": 0},
                    )
                with open(destination, "wb") as fh:
                    for chunk in resp.iter_bytes(chunk_size=self.settings.chunk_size):
                        fh.write(chunk)
                        written += len(chunk)

            return HttpResponse(
                ok=True,
                status_code=resp.status_code,
                headers=dict(resp.headers),
                url=str(resp.url),
                meta={"bytes_written": written},
            )
        except OSError:
            # local file system errors, not transport failures
            raise
        except Exception as exc:  # noqa: BLE001
            return self._failure(request, exc, written)

    @staticmethod
    def _failure(request: HttpRequest, exc: Exception, written: int) -> HttpResponse:
        return HttpResponse(
            ok=False,
            url=request.url,
            error_message=str(exc),
            error_type=type(exc).__name__,
            meta={"bytes_written": written},
        )

    def close(self) -> None:
        self._client.close()
