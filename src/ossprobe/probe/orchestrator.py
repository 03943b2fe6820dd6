# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Probe orchestration.

One `ProbeOrchestrator.run()` call drives a single probe through
``Init -> Validated -> Resolved -> Executing -> Succeeded | Failed``. The log file
path and, for downloads, the destination path are fixed before any network I/O.
A reachability failure on the first attempt buys exactly one more attempt against
the fallback address; everything else is terminal.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

import httpx
import oss2.exceptions

from ..config import ProbeSettings, load_probe_settings
from ..credentials import (
    OPTION_OUTPUT_DIR,
    ConfigFileError,
    ConfigMap,
    assemble,
    endpoint_for_bucket,
    load_config,
    require_credentials,
)
from ..errors import ErrorCategory, MissingCredentialError, ProbeError, ValidationError, to_probe_error
from ..http.client import HttpClient, create_default_http_client
from ..log import ProbeLog
from ..models.probe import AttemptRecord, Credentials, Direction, ProbeOptions, ProbeOutcome, ProbeRunState, ProbeStage, UploadMode
from ..models.target import ResolvedTarget
from ..models.transfer import TransferResult
from ..storage.client import StorageClient, StorageClientFactory, create_default_storage_client
from .address import AddressFallbackPolicy, with_host
from .paths import build_log_path, derive_download_path, ensure_parent, generate_probe_file, temp_file_path, temp_object_name
from .resolver import is_http_url, resolve_options
from .strategies import TransferContext, TransferStrategy, select_download_strategy, select_upload_strategy

logger = logging.getLogger(__name__)

ConfigLoader = Callable[[str | None], ConfigMap]

DIAGNOSIS_OK = "ok"
DIAGNOSIS_PRIMARY_UNREACHABLE = "primary-unreachable-network-ok"
DIAGNOSIS_NETWORK_UNREACHABLE = "network-unreachable"
DIAGNOSIS_REJECTED = "rejected"
DIAGNOSIS_INVALID_INPUT = "invalid-input"
DIAGNOSIS_INTEGRITY = "integrity"
DIAGNOSIS_LOCAL_IO = "local-io"

_TRANSFER_ERRORS = (ProbeError, oss2.exceptions.OssError, httpx.HTTPError, OSError)


@dataclass
class _Plan:
    direction: Direction
    mode: UploadMode | None
    target: ResolvedTarget
    credentials: Credentials | None = None
    endpoint: str | None = None
    is_cname: bool = False
    primary_address: str = ""
    source: Path | None = None
    destination: Path | None = None
    seed_object: bool = False
    writers: list[StorageClient] = field(default_factory=list)


class ProbeOrchestrator:
    """Runs one probe invocation; construct a new instance per invocation."""

    def __init__(
        self,
        options: ProbeOptions,
        *,
        settings: ProbeSettings | None = None,
        http_client: HttpClient | None = None,
        storage_factory: StorageClientFactory | None = None,
        config_loader: ConfigLoader = load_config,
        address_policy: AddressFallbackPolicy | None = None,
    ):
        self.options = options
        self.settings = settings or load_probe_settings()
        self.http_client = http_client
        self.storage_factory = storage_factory or partial(create_default_storage_client, settings=self.settings)
        self.config_loader = config_loader
        self.address_policy = address_policy or AddressFallbackPolicy(options.fallback_address or self.settings.fallback_address)
        self.state: ProbeRunState | None = None

    def run(self) -> ProbeOutcome:
        config_map, config_error = self._read_config()
        state = ProbeRunState(log_path=str(build_log_path(self._output_dir(config_map), self.options.started_at)))
        self.state = state
        plan: _Plan | None = None

        with ProbeLog(state.log_path):
            logger.info("probe started: %s", self._describe())
            try:
                direction, mode = self._validate(state)
                plan = self._resolve(state, direction, mode, config_map, config_error)
                outcome = self._execute(state, plan)
            except ProbeError as exc:
                outcome = self._fail(state, exc, plan)
            finally:
                self._cleanup(state, plan)
            logger.info(
                "probe finished: state=%s attempts=%d diagnosis=%s",
                outcome.stage.value,
                outcome.attempt_count,
                outcome.diagnosis,
            )
        return outcome

    # Init -> Validated

    def _validate(self, state: ProbeRunState) -> tuple[Direction, UploadMode | None]:
        options = self.options
        if options.download and options.upload:
            raise ValidationError("--download and --upload cannot be used together")
        direction = options.direction
        if direction is None:
            raise ValidationError("one of --download or --upload is required")
        mode = UploadMode.parse(options.up_mode)
        if len(options.storage_args) > 1 or len(options.local_args) > 1:
            raise ValidationError(f"expected at most one local path and one oss:// reference, got {list(options.args)}")
        if direction == Direction.UPLOAD and is_http_url(options.url):
            raise ValidationError("--url can only be used with --download")
        state.advance(ProbeStage.VALIDATED)
        logger.info("validated: direction=%s upload_mode=%s", direction.value, mode.value if direction == Direction.UPLOAD else "-")
        return direction, (mode if direction == Direction.UPLOAD else None)

    # Validated -> Resolved

    def _resolve(
        self,
        state: ProbeRunState,
        direction: Direction,
        mode: UploadMode | None,
        config_map: ConfigMap,
        config_error: ProbeError | None,
    ) -> _Plan:
        options = self.options
        target = resolve_options(options)
        plan = _Plan(direction=direction, mode=mode, target=target)

        if not target.is_url and not target.object_key:
            generated = temp_object_name(options.started_at)
            plan.target = target = target.with_object(generated)
            plan.seed_object = direction == Direction.DOWNLOAD
            state.temp_objects.append(generated)

        if direction == Direction.DOWNLOAD:
            plan.destination = derive_download_path(options.local_path, target.base_name, options.started_at)
            state.download_file_path = str(plan.destination)
        elif options.local_path:
            source = Path(options.local_path)
            if not source.is_file():
                raise ValidationError(f"source file {source} does not exist or is not a regular file")
            plan.source = source

        if target.is_url:
            plan.primary_address = self.address_policy.primary_address(target.url)
        else:
            if config_error is not None and not isinstance(config_error, ConfigFileError):
                raise config_error
            credentials = assemble(config_map, options.cli_overrides())
            if credentials.missing and config_error is not None:
                raise MissingCredentialError(
                    f"missing required credential option(s): {', '.join(credentials.missing)} ({config_error.message})"
                )
            plan.credentials = require_credentials(credentials)
            plan.endpoint, plan.is_cname = endpoint_for_bucket(config_map, target.bucket, credentials.endpoint)
            plan.primary_address = self.address_policy.primary_address(plan.endpoint)
            logger.info("credentials: %s", credentials.masked())

        state.resolved_address = plan.primary_address
        state.advance(ProbeStage.RESOLVED)
        logger.info("resolved target %s via %s", target, plan.primary_address)
        return plan

    # Resolved -> Executing -> Succeeded

    def _execute(self, state: ProbeRunState, plan: _Plan) -> ProbeOutcome:
        if plan.destination is not None:
            ensure_parent(plan.destination)
            logger.info("download destination: %s", plan.destination)
        if plan.source is None and (plan.direction == Direction.UPLOAD or plan.seed_object):
            generated = temp_file_path(self._output_dir_for_temp(state), self.options.started_at)
            plan.source = generate_probe_file(generated, self.settings.probe_file_size)
            state.temp_files.append(str(generated))
            logger.info("generated probe file %s (%d bytes)", generated, self.settings.probe_file_size)

        strategy = self._strategy(plan)
        state.advance(ProbeStage.EXECUTING)
        try:
            result = self._attempt(state, plan, strategy, plan.primary_address)
        except ProbeError as exc:
            if not exc.retryable or state.fallback_used:
                raise
            fallback = self.address_policy.fallback_address(plan.primary_address)
            logger.warning("primary address %s unreachable, retrying once via %s", plan.primary_address, fallback)
            state.use_fallback(fallback)
            result = self._attempt(state, plan, strategy, fallback)

        state.advance(ProbeStage.SUCCEEDED)
        logger.info(
            "transfer ok: strategy=%s bytes=%d elapsed=%.3fs",
            result.strategy,
            result.bytes_transferred,
            result.elapsed,
        )
        return ProbeOutcome(
            ok=True,
            stage=state.stage,
            log_path=state.log_path,
            direction=plan.direction,
            upload_mode=plan.mode,
            target=plan.target,
            download_file_path=state.download_file_path,
            attempt_count=state.attempt_count,
            attempts=list(state.attempts),
            transfer=result,
            diagnosis=DIAGNOSIS_PRIMARY_UNREACHABLE if state.fallback_used else DIAGNOSIS_OK,
        )

    def _strategy(self, plan: _Plan) -> TransferStrategy:
        if plan.direction == Direction.DOWNLOAD:
            return select_download_strategy(plan.target, plan.destination)
        return select_upload_strategy(plan.mode, plan.source)

    def _attempt(self, state: ProbeRunState, plan: _Plan, strategy: TransferStrategy, address: str) -> TransferResult:
        state.attempt_count += 1
        record = AttemptRecord(attempt=state.attempt_count, address=address)
        state.attempts.append(record)
        logger.info("attempt %d: %s via %s", record.attempt, strategy.name, address)

        started = time.monotonic()
        ctx: TransferContext | None = None
        try:
            ctx = self._context(plan, address)
            if plan.seed_object:
                ctx.require_storage().put_object_from_file(plan.target.object_key, plan.source)
                self._track_writer(plan, ctx.storage)
                logger.info("uploaded seed object %s", plan.target.object_key)
            result = strategy.execute(ctx).verify()
        except _TRANSFER_ERRORS as exc:
            error = to_probe_error(exc, address=address, attempt=record.attempt)
            record.error = error
            if ctx is not None and not error.retryable:
                self._track_writer(plan, ctx.storage)
            record.elapsed = time.monotonic() - started
            logger.error("attempt %d failed after %.3fs: [%s] %s", record.attempt, record.elapsed, error.category.value, error)
            raise error from exc
        record.elapsed = time.monotonic() - started
        self._track_writer(plan, ctx.storage)
        return result

    def _context(self, plan: _Plan, address: str) -> TransferContext:
        ctx = TransferContext(target=plan.target, address=address, settings=self.settings)
        if plan.target.is_url:
            if self.http_client is None:
                self.http_client = create_default_http_client(self.settings)
            ctx.http = self.http_client
            return ctx
        endpoint, is_cname = self._endpoint_for(plan, address)
        ctx.storage = self.storage_factory(plan.credentials, plan.target.bucket, endpoint, is_cname)
        return ctx

    @staticmethod
    def _endpoint_for(plan: _Plan, address: str) -> tuple[str, bool]:
        if address == plan.primary_address:
            return plan.endpoint, plan.is_cname
        # The fallback host serves no bucket subdomains, so it is dialed as-is.
        return with_host(plan.endpoint, address), True

    @staticmethod
    def _track_writer(plan: _Plan, storage: StorageClient | None) -> None:
        """Remember a storage client that reached the service and may have written temp objects."""
        if storage is not None and not any(storage is writer for writer in plan.writers):
            plan.writers.append(storage)

    # -> Failed

    def _fail(self, state: ProbeRunState, error: ProbeError, plan: _Plan | None) -> ProbeOutcome:
        error.with_context(stage=state.stage.value)
        direction = plan.direction if plan is not None else self.options.direction
        if direction == Direction.DOWNLOAD and not state.download_file_path:
            state.download_file_path = str(derive_download_path(self.options.local_path, "", self.options.started_at))
        state.stage = ProbeStage.FAILED
        diagnosis = self._diagnose(state, error)
        logger.error("probe failed: [%s] %s (diagnosis=%s)", error.category.value, error, diagnosis)
        return ProbeOutcome(
            ok=False,
            stage=state.stage,
            log_path=state.log_path,
            direction=direction,
            upload_mode=plan.mode if plan is not None else None,
            target=plan.target if plan is not None else None,
            download_file_path=state.download_file_path,
            attempt_count=state.attempt_count,
            attempts=list(state.attempts),
            error=error,
            diagnosis=diagnosis,
        )

    @staticmethod
    def _diagnose(state: ProbeRunState, error: ProbeError) -> str:
        if state.fallback_used:
            if error.category == ErrorCategory.NETWORK_REACHABILITY:
                return DIAGNOSIS_NETWORK_UNREACHABLE
            return DIAGNOSIS_PRIMARY_UNREACHABLE
        return {
            ErrorCategory.NETWORK_REACHABILITY: DIAGNOSIS_NETWORK_UNREACHABLE,
            ErrorCategory.REMOTE_REJECTION: DIAGNOSIS_REJECTED,
            ErrorCategory.INTEGRITY: DIAGNOSIS_INTEGRITY,
            ErrorCategory.LOCAL_IO: DIAGNOSIS_LOCAL_IO,
        }.get(error.category, DIAGNOSIS_INVALID_INPUT)

    # helpers

    def _read_config(self) -> tuple[ConfigMap, ProbeError | None]:
        try:
            return self.config_loader(self.options.config_file), None
        except ProbeError as exc:
            return {}, exc

    def _output_dir(self, config_map: Mapping[str, object]) -> str | None:
        configured = config_map.get(OPTION_OUTPUT_DIR)
        return self.options.output_dir or (configured if isinstance(configured, str) else None)

    def _output_dir_for_temp(self, state: ProbeRunState) -> str:
        return str(Path(state.log_path).parent)

    def _cleanup(self, state: ProbeRunState, plan: _Plan | None) -> None:
        if not self.settings.cleanup:
            if state.temp_files or state.temp_objects:
                logger.info("cleanup disabled, keeping %s %s", state.temp_files, state.temp_objects)
            return
        writers = plan.writers if plan is not None else []
        for storage in writers:
            for key in state.temp_objects:
                try:
                    storage.delete_object(key)
                    logger.info("deleted probe object %s", key)
                except Exception as exc:  # noqa: BLE001
                    logger.warning("could not delete probe object %s: %s", key, exc)
        for path in state.temp_files:
            try:
                Path(path).unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("could not delete probe file %s: %s", path, exc)

    def _describe(self) -> str:
        options = self.options
        return (
            f"download={options.download} upload={options.upload} url={options.url or '-'} "
            f"args={list(options.args)} bucket={options.bucket or '-'} object={options.object_key or '-'} "
            f"upmode={options.up_mode or '-'} config_file={options.config_file or '-'} "
            f"credentials={options.credentials.masked()}"
        )


def run_probe(options: ProbeOptions, **kwargs) -> ProbeOutcome:
    """Convenience wrapper: build an orchestrator and run it once."""
    return ProbeOrchestrator(options, **kwargs).run()


__all__ = ["ProbeOrchestrator", "run_probe"]
