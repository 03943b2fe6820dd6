# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""ossprobe CLI."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from ..config import ProbeSettings, load_probe_settings
from ..http import create_default_http_client
from ..log import setup_logging
from ..models.probe import Credentials, ProbeOptions, ProbeOutcome
from ..runtime import OssProbe


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ossprobe",
        description="Probe an object-storage endpoint with a real upload or download and keep a diagnostic log",
    )
    parser.add_argument(
        "path",
        nargs="*",
        help="Local file to upload, local destination for a download, or an oss://bucket/object reference",
    )
    parser.add_argument("--download", action="store_true", help="Probe by downloading an object or URL")
    parser.add_argument("--upload", action="store_true", help="Probe by uploading a local (or generated) file")
    parser.add_argument("--url", help="HTTP(S) URL of the object to download")
    parser.add_argument("--upmode", help="Upload mode: normal, append or multipart (default normal)")
    parser.add_argument("-c", "--config-file", dest="config_file", help="Config file (default ~/.ossutilconfig)")
    parser.add_argument("-b", "--bucket", help="Bucket name")
    parser.add_argument("--object", help="Object name")
    parser.add_argument("-e", "--endpoint", help="Endpoint, overrides the config file")
    parser.add_argument("-i", "--access-key-id", dest="access_key_id", help="AccessKeyID, overrides the config file")
    parser.add_argument("-k", "--access-key-secret", dest="access_key_secret", help="AccessKeySecret, overrides the config file")
    parser.add_argument("-t", "--sts-token", dest="sts_token", help="STS token, overrides the config file")
    parser.add_argument("--addr", help="Fallback network address used when the endpoint is unreachable")
    parser.add_argument("--output-dir", dest="output_dir", help="Directory for the probe log file")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output JSON instead of human-friendly summary",
    )
    parser.add_argument(
        "--ignore-ssl-errors",
        action="store_true",
        help="Skip TLS verification for URL downloads",
    )
    parser.add_argument("--log-level", dest="log_level", help="Console log level (default from OSSPROBE_LOG_LEVEL)")
    return parser


def options_from_args(args: argparse.Namespace) -> ProbeOptions:
    return ProbeOptions(
        download=args.download,
        upload=args.upload,
        url=args.url or None,
        args=tuple(args.path or ()),
        bucket=args.bucket or None,
        object_key=args.object or None,
        up_mode=args.upmode,
        config_file=args.config_file or None,
        credentials=Credentials(
            endpoint=args.endpoint or None,
            access_key_id=args.access_key_id or None,
            access_key_secret=args.access_key_secret or None,
            sts_token=args.sts_token or None,
        ),
        output_dir=args.output_dir or None,
        fallback_address=args.addr or None,
    )


def _print_json(data: dict[str, Any] | Any) -> None:
    payload = data.to_dict() if hasattr(data, "to_dict") else data
    json.dump(payload, sys.stdout, indent=2, sort_keys=True)
    sys.stdout.write("\n")


def _pretty_print(outcome: ProbeOutcome | dict[str, Any]) -> None:
    payload = outcome.to_dict() if hasattr(outcome, "to_dict") else outcome
    if not isinstance(payload, dict):
        print(payload)
        return
    status = "succeeded" if payload.get("ok") else "failed"
    print(f"[ossprobe] {payload.get('direction') or 'probe'} {status} ({payload.get('diagnosis') or '-'})")
    target = payload.get("target") or {}
    if target:
        print(f"Target: {target.get('url') or 'oss://{}/{}'.format(target.get('bucket', ''), target.get('object', ''))}")
    if payload.get("upload_mode"):
        print(f"Upload mode: {payload['upload_mode']}")
    for attempt in payload.get("attempts") or []:
        error = attempt.get("error") or {}
        result = f"{error.get('category')}: {error.get('message')}" if error else "ok"
        print(f"Attempt {attempt.get('attempt')} via {attempt.get('address')}: {result} ({attempt.get('elapsed')}s)")
    transfer = payload.get("transfer") or {}
    if transfer:
        print(f"Transferred: {transfer.get('bytes_transferred')} bytes in {transfer.get('elapsed')}s")
    if payload.get("download_file_path"):
        print(f"Downloaded file: {payload['download_file_path']}")
    error = payload.get("error") or {}
    if error:
        print(f"Error: [{error.get('category')}] {error.get('message')}")
        if error.get("reason"):
            print(f"Reason: {error['reason']}")
    print(f"Log file: {payload.get('log_path')}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    settings: ProbeSettings = load_probe_settings()
    if args.ignore_ssl_errors:
        settings.verify_ssl = False

    http_client = create_default_http_client(settings)

    with OssProbe(http_client=http_client, settings=settings) as prober:
        outcome = prober.probe(options_from_args(args))

    if args.json:
        _print_json(outcome)
    else:
        _pretty_print(outcome)

    return outcome.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
