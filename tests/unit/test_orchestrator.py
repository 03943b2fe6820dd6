# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import dataclasses
from datetime import datetime
from pathlib import Path
from urllib.parse import urlsplit

import oss2.exceptions
import pytest

from ossprobe.config import ProbeSettings
from ossprobe.credentials import ConfigFileError
from ossprobe.errors import ErrorCategory, ValidationError
from ossprobe.http.adapters import StubHttpClient
from ossprobe.http.models import HttpResponse
from ossprobe.models.probe import Credentials, Direction, ProbeOptions, ProbeStage, UploadMode
from ossprobe.probe.address import host_of
from ossprobe.probe.orchestrator import ProbeOrchestrator, run_probe
from ossprobe.storage import create_default_storage_client
from ossprobe.storage.adapters import OBJECT_TYPE_APPENDABLE, OBJECT_TYPE_MULTIPART, InMemoryStorageClient

STARTED = datetime(2024, 3, 5, 7, 8, 9)
STAMP = "20240305070809"
ENDPOINT_HOST = "oss-cn-hangzhou.aliyuncs.com"
FALLBACK_HOST = "www.aliyun.com"
LOG_NAME = f"logOssProbe{STAMP}.log"

CONFIG_TEXT = f"""\
[Credentials]
language = EN
endpoint = {ENDPOINT_HOST}
accessKeyID = LTAIexampleid
accessKeySecret = example-secret
"""

CONFIG = {"endpoint": ENDPOINT_HOST, "accessKeyID": "LTAIexampleid", "accessKeySecret": "example-secret"}


def _config_loader(config=None):
    return lambda _path: dict(CONFIG if config is None else config)


def _missing_config(_path):
    raise ConfigFileError("read config file /nonexistent error: no such file")


class HostStorageFactory:
    """StorageClientFactory handing out one in-memory client per dialed host."""

    def __init__(self, clients):
        self.clients = clients
        self.calls = []

    def __call__(self, credentials, bucket, endpoint, is_cname):
        self.calls.append((bucket, endpoint, is_cname))
        return self.clients[host_of(endpoint)]


@pytest.fixture(autouse=True)
def _in_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


def _run(options, *, storage=None, clients=None, http=None, config_loader=None, settings=None):
    factory = HostStorageFactory(clients or {ENDPOINT_HOST: storage or InMemoryStorageClient()})
    orchestrator = ProbeOrchestrator(
        dataclasses.replace(options, started_at=STARTED),
        settings=settings or ProbeSettings(),
        http_client=http or StubHttpClient(),
        storage_factory=factory,
        config_loader=config_loader or _config_loader(),
    )
    return orchestrator.run(), orchestrator, factory


def test_download_storage_path_into_existing_directory(tmp_path):
    (tmp_path / "out").mkdir()
    config_file = tmp_path / "ossutilconfig"
    config_file.write_text(CONFIG_TEXT, encoding="utf-8")
    storage = InMemoryStorageClient("bucket-x")
    storage.put("file.jpg", b"\xff\xd8jpeg-bytes")
    factory = HostStorageFactory({ENDPOINT_HOST: storage})

    outcome = ProbeOrchestrator(
        ProbeOptions(download=True, args=("oss://bucket-x/file.jpg", "./out/"), config_file=str(config_file), started_at=STARTED),
        settings=ProbeSettings(),
        storage_factory=factory,
    ).run()

    assert outcome.ok
    assert outcome.stage == ProbeStage.SUCCEEDED
    assert outcome.exit_code == 0
    assert outcome.diagnosis == "ok"
    assert outcome.attempt_count == 1
    assert Path(outcome.download_file_path) == Path("out") / "file.jpg"
    assert (tmp_path / "out" / "file.jpg").read_bytes() == b"\xff\xd8jpeg-bytes"
    assert factory.calls == [("bucket-x", f"http://{ENDPOINT_HOST}", False)]

    log_file = tmp_path / LOG_NAME
    assert Path(outcome.log_path) == Path(LOG_NAME)
    assert log_file.exists()
    log_text = log_file.read_text(encoding="utf-8")
    assert "probe finished: state=Succeeded" in log_text
    assert "example-secret" not in log_text


def test_conflicting_direction_flags_fail_validation(tmp_path):
    outcome, orchestrator, factory = _run(ProbeOptions(download=True, upload=True, args=("oss://b/o",)))

    assert not outcome.ok
    assert outcome.stage == ProbeStage.FAILED
    assert outcome.error.category == ErrorCategory.VALIDATION
    assert outcome.error.stage == "Init"
    assert outcome.diagnosis == "invalid-input"
    assert outcome.attempt_count == 0
    assert factory.calls == []
    assert (tmp_path / LOG_NAME).exists()


def test_missing_direction_fails_validation():
    outcome, _, _ = _run(ProbeOptions(args=("oss://b/o",)))
    assert outcome.error.category == ErrorCategory.VALIDATION
    assert outcome.direction is None


def test_unknown_upload_mode_is_rejected():
    outcome, _, factory = _run(ProbeOptions(upload=True, up_mode="resumable", args=("oss://b/o",)))

    assert outcome.error.category == ErrorCategory.VALIDATION
    assert "resumable" in outcome.error.message
    assert factory.calls == []


@pytest.mark.parametrize(
    "options",
    [
        ProbeOptions(download=True, args=("oss://b/o", "oss://b/p")),
        ProbeOptions(download=True, args=("./a", "./b")),
        ProbeOptions(upload=True, url="https://example.com/a.bin"),
    ],
)
def test_invalid_argument_combinations(options):
    outcome, _, _ = _run(options)
    assert outcome.error.category == ErrorCategory.VALIDATION


def test_upload_source_must_exist():
    outcome, _, _ = _run(ProbeOptions(upload=True, args=("./missing.bin", "oss://b/o")))
    assert outcome.error.category == ErrorCategory.VALIDATION
    assert outcome.error.stage == "Validated"


def test_empty_bucket_fails_resolution_and_still_logs(tmp_path):
    outcome, _, factory = _run(ProbeOptions(download=True, args=("oss:////",)))

    assert outcome.error.category == ErrorCategory.RESOLUTION
    assert outcome.error.stage == "Validated"
    assert outcome.download_file_path == f"oss-test-probe-download-{STAMP}"
    assert factory.calls == []
    assert "bucket name is empty" in (tmp_path / LOG_NAME).read_text(encoding="utf-8")


def test_unreachable_endpoint_retries_once_via_fallback():
    primary = InMemoryStorageClient(unreachable=True)
    fallback = InMemoryStorageClient()
    fallback.put("file.jpg", b"payload")

    outcome, orchestrator, factory = _run(
        ProbeOptions(download=True, bucket="bucket-x", object_key="file.jpg"),
        clients={ENDPOINT_HOST: primary, FALLBACK_HOST: fallback},
    )

    assert outcome.ok
    assert outcome.attempt_count == 2
    assert outcome.diagnosis == "primary-unreachable-network-ok"
    assert [attempt.address for attempt in outcome.attempts] == [ENDPOINT_HOST, FALLBACK_HOST]
    assert outcome.attempts[0].error.category == ErrorCategory.NETWORK_REACHABILITY
    assert outcome.attempts[1].error is None
    assert factory.calls == [("bucket-x", f"http://{ENDPOINT_HOST}", False), ("bucket-x", f"http://{FALLBACK_HOST}", True)]
    assert orchestrator.state.fallback_used
    assert orchestrator.state.resolved_address == FALLBACK_HOST
    assert Path("file.jpg").read_bytes() == b"payload"


def test_fallback_client_dials_the_fallback_host_itself():
    outcome, _, factory = _run(
        ProbeOptions(download=True, bucket="bucket-x", object_key="file.jpg"),
        clients={ENDPOINT_HOST: InMemoryStorageClient(unreachable=True), FALLBACK_HOST: InMemoryStorageClient()},
    )

    assert outcome.attempt_count == 2
    primary_call, fallback_call = factory.calls
    hosts = []
    for bucket, endpoint, is_cname in (primary_call, fallback_call):
        credentials = Credentials(endpoint=endpoint, access_key_id="id", access_key_secret="secret")
        client = create_default_storage_client(credentials, bucket, endpoint, is_cname, settings=ProbeSettings())
        hosts.append(urlsplit(client._bucket._make_url("bucket-x", "k")).netloc)

    assert hosts == [f"bucket-x.{ENDPOINT_HOST}", FALLBACK_HOST]


def test_both_addresses_unreachable():
    outcome, _, _ = _run(
        ProbeOptions(download=True, bucket="bucket-x", object_key="file.jpg"),
        clients={ENDPOINT_HOST: InMemoryStorageClient(unreachable=True), FALLBACK_HOST: InMemoryStorageClient(unreachable=True)},
    )

    assert not outcome.ok
    assert outcome.attempt_count == 2
    assert outcome.error.category == ErrorCategory.NETWORK_REACHABILITY
    assert outcome.error.attempt == 2
    assert outcome.error.address == FALLBACK_HOST
    assert outcome.diagnosis == "network-unreachable"


def test_fallback_override_address_is_used():
    outcome, _, _ = _run(
        ProbeOptions(download=True, bucket="bucket-x", object_key="file.jpg", fallback_address="mirror.example.com"),
        clients={ENDPOINT_HOST: InMemoryStorageClient(unreachable=True), "mirror.example.com": InMemoryStorageClient()},
    )

    assert outcome.attempts[1].address == "mirror.example.com"
    # the mirror answers, so the network works even though the object is not there
    assert outcome.error.category == ErrorCategory.REMOTE_REJECTION
    assert outcome.diagnosis == "primary-unreachable-network-ok"


def test_rejection_is_not_retried():
    outcome, _, factory = _run(ProbeOptions(download=True, args=("oss://bucket-x/missing.jpg",)))

    assert outcome.error.category == ErrorCategory.REMOTE_REJECTION
    assert outcome.error.status_code == 404
    assert outcome.error.message.startswith("NoSuchKey")
    assert outcome.error.stage == "Executing"
    assert outcome.attempt_count == 1
    assert len(factory.calls) == 1
    assert outcome.diagnosis == "rejected"
    assert outcome.download_file_path == "missing.jpg"


def test_missing_credentials():
    outcome, _, factory = _run(
        ProbeOptions(download=True, args=("oss://bucket-x/file.jpg",)),
        config_loader=_config_loader({"endpoint": ENDPOINT_HOST}),
    )

    assert outcome.error.category == ErrorCategory.MISSING_CREDENTIAL
    assert "accessKeyID" in outcome.error.message
    assert factory.calls == []


def test_missing_config_file_is_reported_with_missing_credentials():
    outcome, _, _ = _run(ProbeOptions(download=True, args=("oss://bucket-x/file.jpg",)), config_loader=_missing_config)

    assert outcome.error.category == ErrorCategory.MISSING_CREDENTIAL
    assert "read config file" in outcome.error.message


def test_command_line_credentials_work_without_config_file():
    storage = InMemoryStorageClient()
    storage.put("file.jpg", b"abc")
    credentials = Credentials(endpoint="https://oss-cn-hangzhou.aliyuncs.com", access_key_id="id", access_key_secret="secret")

    outcome, _, factory = _run(
        ProbeOptions(download=True, args=("oss://bucket-x/file.jpg",), credentials=credentials),
        storage=storage,
        config_loader=_missing_config,
    )

    assert outcome.ok
    assert factory.calls == [("bucket-x", "https://oss-cn-hangzhou.aliyuncs.com", False)]


def test_invalid_config_value_fails_storage_probe():
    def loader(_path):
        raise ValidationError('error value of option "language"')

    outcome, _, _ = _run(ProbeOptions(download=True, args=("oss://bucket-x/file.jpg",)), config_loader=loader)
    assert outcome.error.category == ErrorCategory.VALIDATION


def test_bucket_cname_is_dialed():
    config = {**CONFIG, "Bucket-Cname": {"bucket-x": "static.example.com"}}
    storage = InMemoryStorageClient()
    storage.put("file.jpg", b"abc")

    outcome, _, factory = _run(
        ProbeOptions(download=True, args=("oss://bucket-x/file.jpg",)),
        clients={"static.example.com": storage},
        config_loader=_config_loader(config),
    )

    assert outcome.ok
    assert factory.calls == [("bucket-x", "http://static.example.com", True)]


def test_truncated_download_is_an_integrity_failure():
    storage = InMemoryStorageClient(truncate_downloads=3)
    storage.put("file.jpg", b"0123456789")

    outcome, _, _ = _run(ProbeOptions(download=True, args=("oss://bucket-x/file.jpg",)), storage=storage)

    assert outcome.error.category == ErrorCategory.INTEGRITY
    assert outcome.diagnosis == "integrity"
    assert outcome.attempt_count == 1


def test_upload_local_file_normal(tmp_path):
    source = tmp_path / "data.bin"
    source.write_bytes(b"z" * 2048)
    storage = InMemoryStorageClient()

    outcome, _, _ = _run(ProbeOptions(upload=True, args=(str(source), "oss://bucket-x/data.bin")), storage=storage)

    assert outcome.ok
    assert outcome.upload_mode == UploadMode.NORMAL
    assert outcome.transfer.bytes_transferred == 2048
    assert outcome.download_file_path is None
    assert storage.objects["data.bin"].data == b"z" * 2048
    assert source.exists()


def test_upload_append_mode():
    storage = InMemoryStorageClient()
    source = Path("data.bin")
    source.write_bytes(b"a" * 5000)

    outcome, _, _ = _run(ProbeOptions(upload=True, up_mode="append", bucket="bucket-x", object_key="log.txt", args=("data.bin",)), storage=storage)

    assert outcome.ok
    assert storage.objects["log.txt"].object_type == OBJECT_TYPE_APPENDABLE


def test_upload_append_onto_normal_object_is_rejected():
    storage = InMemoryStorageClient()
    storage.put("log.txt", b"existing")
    Path("data.bin").write_bytes(b"a" * 10)

    outcome, _, _ = _run(ProbeOptions(upload=True, up_mode="append", args=("data.bin", "oss://bucket-x/log.txt")), storage=storage)

    assert outcome.error.category == ErrorCategory.REMOTE_REJECTION
    assert outcome.error.status_code == 409
    assert outcome.attempt_count == 1
    assert storage.objects["log.txt"].data == b"existing"


def test_generated_multipart_upload_is_cleaned_up(tmp_path):
    storage = InMemoryStorageClient()
    settings = ProbeSettings(part_size=100 * 1024, probe_file_size=250 * 1024)

    outcome, _, _ = _run(ProbeOptions(upload=True, up_mode="multipart", bucket="bucket-x"), storage=storage, settings=settings)

    assert outcome.ok
    assert outcome.target.object_key == f"oss-test-probe-{STAMP}"
    assert outcome.transfer.parts == 3
    assert outcome.transfer.bytes_transferred == 250 * 1024
    assert "complete_multipart_upload" in storage.calls
    assert storage.calls[-1] == "delete_object"
    assert storage.objects == {}
    assert not (tmp_path / f"oss-test-probe-file-{STAMP}").exists()


def test_cleanup_can_be_disabled(tmp_path):
    storage = InMemoryStorageClient()

    outcome, _, _ = _run(ProbeOptions(upload=True, bucket="bucket-x"), storage=storage, settings=ProbeSettings(cleanup=False))

    assert outcome.ok
    assert f"oss-test-probe-{STAMP}" in storage.objects
    assert (tmp_path / f"oss-test-probe-file-{STAMP}").stat().st_size == ProbeSettings().probe_file_size


def test_download_without_object_seeds_a_temp_object(tmp_path):
    storage = InMemoryStorageClient()
    (tmp_path / "logs").mkdir()

    outcome, _, _ = _run(ProbeOptions(download=True, bucket="bucket-x", output_dir=str(tmp_path / "logs")), storage=storage)

    assert outcome.ok
    assert storage.calls[:2] == ["put_object", "get_object"]
    assert storage.objects == {}
    downloaded = Path(outcome.download_file_path)
    assert downloaded == Path(f"oss-test-probe-{STAMP}")
    assert downloaded.stat().st_size == ProbeSettings().probe_file_size
    assert Path(outcome.log_path) == tmp_path / "logs" / LOG_NAME
    assert list((tmp_path / "logs").iterdir()) == [tmp_path / "logs" / LOG_NAME]


def test_url_download_via_stub_http_client():
    url = "https://bucket-x.oss-cn-hangzhou.aliyuncs.com/dir/file.jpg"
    http = StubHttpClient({url: HttpResponse(ok=True, status_code=200, headers={"content-length": "4"}, content=b"jpeg")})

    outcome, _, factory = _run(ProbeOptions(download=True, url=url), http=http, config_loader=_missing_config)

    assert outcome.ok
    assert outcome.direction == Direction.DOWNLOAD
    assert outcome.target.is_url
    assert Path(outcome.download_file_path) == Path("file.jpg")
    assert Path("file.jpg").read_bytes() == b"jpeg"
    assert factory.calls == []
    assert outcome.to_dict()["target"]["host"] == "bucket-x.oss-cn-hangzhou.aliyuncs.com"


def test_url_download_falls_back_then_reports_rejection():
    url = "https://bucket-x.oss-cn-hangzhou.aliyuncs.com/file.jpg"
    http = StubHttpClient({"https://www.aliyun.com/file.jpg": HttpResponse(ok=False, status_code=404, error_message="HTTP 404 Not Found")})

    outcome, _, _ = _run(ProbeOptions(download=True, url=url, args=("./saved.jpg",)), http=http)

    assert not outcome.ok
    assert outcome.attempt_count == 2
    assert outcome.error.category == ErrorCategory.REMOTE_REJECTION
    assert outcome.diagnosis == "primary-unreachable-network-ok"
    assert outcome.download_file_path == "saved.jpg"
    assert [request.url for request in http.requests] == [url, "https://www.aliyun.com/file.jpg"]


def test_run_probe_helper_and_outcome_dict():
    storage = InMemoryStorageClient()
    storage.put("file.jpg", b"abc")

    outcome = run_probe(
        ProbeOptions(download=True, args=("oss://bucket-x/file.jpg",), started_at=STARTED),
        settings=ProbeSettings(),
        storage_factory=HostStorageFactory({ENDPOINT_HOST: storage}),
        config_loader=_config_loader(),
    )

    data = outcome.to_dict()
    assert data["ok"] is True
    assert data["stage"] == "Succeeded"
    assert data["log_path"] == LOG_NAME
    assert data["transfer"]["bytes_transferred"] == 3
    assert data["attempts"][0]["address"] == ENDPOINT_HOST
    assert data["error"] is None


class _ReadUnreachableStorage(InMemoryStorageClient):
    """Accepts writes but drops the connection on every GET."""

    def get_object_to_file(self, key, destination):
        self._enter("get_object")
        raise oss2.exceptions.RequestError(ConnectionError("connection reset by peer"))


def test_seed_object_is_deleted_through_every_client_that_wrote_it():
    primary = _ReadUnreachableStorage()
    fallback = InMemoryStorageClient()

    outcome, _, _ = _run(
        ProbeOptions(download=True, bucket="bucket-x"),
        clients={ENDPOINT_HOST: primary, FALLBACK_HOST: fallback},
    )

    assert outcome.ok
    assert outcome.diagnosis == "primary-unreachable-network-ok"
    assert "put_object" in primary.calls
    assert "put_object" in fallback.calls
    assert primary.calls[-1] == "delete_object"
    assert fallback.calls[-1] == "delete_object"
    assert primary.objects == {}
    assert fallback.objects == {}


def test_generated_upload_is_deleted_through_the_fallback_client():
    primary = InMemoryStorageClient(unreachable=True)
    fallback = InMemoryStorageClient()

    outcome, _, _ = _run(
        ProbeOptions(upload=True, bucket="bucket-x"),
        clients={ENDPOINT_HOST: primary, FALLBACK_HOST: fallback},
    )

    assert outcome.ok
    assert outcome.attempt_count == 2
    assert "delete_object" not in primary.calls
    assert fallback.calls[-1] == "delete_object"
    assert fallback.objects == {}


def test_rejected_upload_still_cleans_up_through_the_client_that_reached_the_service():
    storage = InMemoryStorageClient(fail_parts={2})
    settings = ProbeSettings(part_size=100 * 1024, probe_file_size=250 * 1024)

    outcome, _, _ = _run(ProbeOptions(upload=True, up_mode="multipart", bucket="bucket-x"), storage=storage, settings=settings)

    assert outcome.error.category == ErrorCategory.REMOTE_REJECTION
    assert storage.aborted
    assert storage.calls[-1] == "delete_object"
