# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import httpx
import pytest

from ossprobe.config import ProbeSettings
from ossprobe.http import HttpxClient, StubHttpClient, create_default_http_client
from ossprobe.http.models import HttpRequest, HttpResponse


def _client(handler, **settings):
    return HttpxClient(ProbeSettings(**settings), client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_http_response_helpers():
    response = HttpResponse(ok=True, status_code=200, headers={"Content-Length": "12"}, meta={"bytes_written": 12})
    assert response.content_length == 12
    assert response.bytes_written == 12
    assert not response.transport_failure

    failure = HttpResponse(ok=False, error_message="refused")
    assert failure.transport_failure
    assert failure.content_length is None
    assert failure.bytes_written == 0

    assert HttpResponse(ok=False, headers={"content-length": "n/a"}).content_length is None
    assert not HttpResponse(ok=False, status_code=403).transport_failure


def test_download_sets_user_agent(tmp_path):
    seen = {}

    def handler(request):
        seen["ua"] = request.headers["User-Agent"]
        return httpx.Response(200, content=b"pong")

    client = _client(handler, user_agent="ossprobe-test/1.0")
    response = client.download(HttpRequest(url="https://example.com/ping"), tmp_path / "ping")

    assert response.ok
    assert (tmp_path / "ping").read_bytes() == b"pong"
    assert seen["ua"] == "ossprobe-test/1.0"


def test_download_streams_body_to_file(tmp_path):
    payload = b"0123456789" * 1000

    def handler(request):
        assert request.headers["Accept-Encoding"] == "identity"
        return httpx.Response(200, content=payload)

    client = _client(handler, chunk_size=1024)
    destination = tmp_path / "file.bin"
    response = client.download(HttpRequest(url="https://example.com/file.bin", headers={"Accept-Encoding": "identity"}), destination)

    assert response.ok
    assert response.status_code == 200
    assert response.bytes_written == len(payload)
    assert response.content_length == len(payload)
    assert destination.read_bytes() == payload


def test_download_rejection_keeps_status_and_writes_nothing(tmp_path):
    client = _client(lambda request: httpx.Response(403, content=b"<Error><Code>AccessDenied</Code></Error>"))
    destination = tmp_path / "file.bin"

    response = client.download(HttpRequest(url="https://example.com/file.bin"), destination)

    assert not response.ok
    assert response.status_code == 403
    assert not response.transport_failure
    assert "403" in response.error_message
    assert not destination.exists()


def test_download_transport_error_has_no_status(tmp_path):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    response = _client(handler).download(HttpRequest(url="https://example.com/file.bin"), tmp_path / "file.bin")

    assert response.transport_failure
    assert response.error_type == "ConnectError"
    assert "refused" in response.error_message


def test_download_local_write_error_propagates(tmp_path):
    client = _client(lambda request: httpx.Response(200, content=b"data"))

    with pytest.raises(OSError):
        client.download(HttpRequest(url="https://example.com/file.bin"), tmp_path / "missing-dir" / "file.bin")


def test_stub_http_client(tmp_path):
    stub = StubHttpClient()
    stub.add("https://example.com/a", HttpResponse(ok=True, status_code=200, content=b"abc"))

    response = stub.download(HttpRequest(url="https://example.com/a"), tmp_path / "a")
    assert response.bytes_written == 3
    assert (tmp_path / "a").read_bytes() == b"abc"

    missing = stub.download(HttpRequest(url="https://example.com/b"), tmp_path / "b")
    assert missing.transport_failure
    assert not (tmp_path / "b").exists()
    assert [request.url for request in stub.requests] == ["https://example.com/a", "https://example.com/b"]

    stub.close()
    assert stub.closed


def test_create_default_http_client_uses_settings():
    settings = ProbeSettings(timeout=3.0)
    client = create_default_http_client(settings)
    try:
        assert isinstance(client, HttpxClient)
        assert client.settings is settings
    finally:
        client.close()
