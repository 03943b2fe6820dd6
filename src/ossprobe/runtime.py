# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""High-level ossprobe facade for download and upload probes."""

from __future__ import annotations

from contextlib import suppress
from functools import partial
from typing import Any

from .config import ProbeSettings, load_probe_settings
from .credentials import load_config
from .http.client import HttpClient, create_default_http_client
from .models.probe import Credentials, ProbeOptions, ProbeOutcome
from .probe.orchestrator import ConfigLoader, ProbeOrchestrator
from .storage.client import StorageClientFactory, create_default_storage_client


class OssProbe:
    """
    Convenience wrapper that wires a shared HTTP client and storage-client factory
    into one orchestrator per probe.

    The HTTP client is reused across probes and closed with the facade; storage
    clients are built per attempt since the dialed address can change.
    """

    def __init__(
        self,
        http_client: HttpClient | None = None,
        storage_factory: StorageClientFactory | None = None,
        settings: ProbeSettings | None = None,
        config_loader: ConfigLoader = load_config,
    ):
        self.settings = settings or load_probe_settings()
        self.http_client = http_client or create_default_http_client(self.settings)
        self.storage_factory = storage_factory or partial(create_default_storage_client, settings=self.settings)
        self.config_loader = config_loader

    def probe(self, options: ProbeOptions) -> ProbeOutcome:
        orchestrator = ProbeOrchestrator(
            options,
            settings=self.settings,
            http_client=self.http_client,
            storage_factory=self.storage_factory,
            config_loader=self.config_loader,
        )
        return orchestrator.run()

    def download(
        self,
        url: str | None = None,
        *,
        bucket: str | None = None,
        object_key: str | None = None,
        local_path: str | None = None,
        credentials: Credentials | None = None,
        **options: Any,
    ) -> ProbeOutcome:
        return self.probe(
            ProbeOptions(
                download=True,
                url=url,
                args=(local_path,) if local_path else (),
                bucket=bucket,
                object_key=object_key,
                credentials=credentials or Credentials(),
                **options,
            )
        )

    def upload(
        self,
        local_path: str | None = None,
        *,
        bucket: str | None = None,
        object_key: str | None = None,
        mode: str | None = None,
        credentials: Credentials | None = None,
        **options: Any,
    ) -> ProbeOutcome:
        return self.probe(
            ProbeOptions(
                upload=True,
                args=(local_path,) if local_path else (),
                bucket=bucket,
                object_key=object_key,
                up_mode=mode,
                credentials=credentials or Credentials(),
                **options,
            )
        )

    def close(self) -> None:
        with suppress(Exception):
            if hasattr(self.http_client, "close"):
                self.http_client.close()

    def __enter__(self) -> OssProbe:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()
