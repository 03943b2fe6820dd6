# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Config-file loading and credential assembly.

The config file is INI formatted. Option names in the ``Credentials`` section are
matched case-insensitively against an alias table, so ``accessKeyId``,
``access_key_id`` and ``access-id`` all land on the same canonical option. The
``Bucket-Endpoint`` and ``Bucket-Cname`` sections map bucket names to hosts and are
kept as nested tables.
"""

from __future__ import annotations

import configparser
import logging
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Union

from .config import DEFAULT_CONFIG_FILE
from .errors import MissingCredentialError, ValidationError
from .models.probe import Credentials

logger = logging.getLogger(__name__)

CRED_SECTION = "Credentials"
BUCKET_ENDPOINT_SECTION = "Bucket-Endpoint"
BUCKET_CNAME_SECTION = "Bucket-Cname"
AK_SERVICE_SECTION = "AkService"

OPTION_LANGUAGE = "language"
OPTION_ENDPOINT = "endpoint"
OPTION_ACCESS_KEY_ID = "accessKeyID"
OPTION_ACCESS_KEY_SECRET = "accessKeySecret"
OPTION_STS_TOKEN = "stsToken"
OPTION_OUTPUT_DIR = "outputDir"

CRED_OPTION_ALIASES: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        OPTION_LANGUAGE: frozenset({"language", "Language"}),
        OPTION_ENDPOINT: frozenset({"endpoint", "host"}),
        OPTION_ACCESS_KEY_ID: frozenset(
            {
                "accessKeyID",
                "accessKeyId",
                "AccessKeyID",
                "AccessKeyId",
                "access_key_id",
                "access_id",
                "accessid",
                "access-key-id",
                "access-id",
            }
        ),
        OPTION_ACCESS_KEY_SECRET: frozenset(
            {
                "accessKeySecret",
                "AccessKeySecret",
                "access_key_secret",
                "access_key",
                "accesskey",
                "access-key-secret",
                "access-key",
            }
        ),
        OPTION_STS_TOKEN: frozenset({"stsToken", "ststoken", "STSToken", "sts_token", "sts-token"}),
        OPTION_OUTPUT_DIR: frozenset({"outputDir", "output-dir", "output_dir", "output_directory"}),
    }
)

_ALIAS_LOOKUP: Mapping[str, str] = MappingProxyType(
    {alias.lower(): canonical for canonical, aliases in CRED_OPTION_ALIASES.items() for alias in aliases}
)

LANGUAGE_VALUES = ("CH", "EN")

ConfigMap = dict[str, Union[str, dict[str, str]]]


class ConfigFileError(ValidationError):
    """The config file is missing, unreadable or lacks a Credentials section."""


def option_name_for(name: str) -> str | None:
    """Return the canonical option for any accepted spelling, ignoring case."""
    return _ALIAS_LOOKUP.get(name.strip().lower())


def decide_config_file(config_file: str | None = None) -> str:
    """Return the config file to read, expanding a leading ``~/``."""
    path = config_file or DEFAULT_CONFIG_FILE
    if path.startswith("~/") or path.startswith("~\\"):
        path = str(Path.home() / path[2:])
    return path


def read_config_file(config_file: str | None = None) -> ConfigMap:
    path = decide_config_file(config_file)
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str  # keep option and bucket names as written
    try:
        with open(path, encoding="utf-8") as fh:
            parser.read_file(fh)
    except (OSError, configparser.Error) as exc:
        raise ConfigFileError(f"read config file {path} error: {exc}", cause=exc) from exc

    if not parser.has_section(CRED_SECTION):
        raise ConfigFileError(f"config file {path} has no [{CRED_SECTION}] section")

    config_map: ConfigMap = {}
    for name, value in parser.items(CRED_SECTION):
        canonical = option_name_for(name)
        if canonical:
            config_map[canonical] = value.strip()

    for section in (BUCKET_ENDPOINT_SECTION, BUCKET_CNAME_SECTION, AK_SERVICE_SECTION):
        if parser.has_section(section):
            config_map[section] = {key.strip(): value.strip() for key, value in parser.items(section)}

    return config_map


def check_config(config_map: Mapping[str, object]) -> None:
    language = config_map.get(OPTION_LANGUAGE)
    if isinstance(language, str) and language and language.upper() not in LANGUAGE_VALUES:
        raise ValidationError(
            f'error value of option "{OPTION_LANGUAGE}", the value is: {language} in config file, '
            f"which is not anyone of {'/'.join(LANGUAGE_VALUES)}"
        )


def load_config(config_file: str | None = None) -> ConfigMap:
    """Read and validate the config file."""
    config_map = read_config_file(config_file)
    check_config(config_map)
    return config_map


def merge_options(config_map: Mapping[str, object], cli_overrides: Mapping[str, str] | None = None) -> dict[str, str]:
    """Flatten scalar options; command-line values always win over the file."""
    merged = {name: value for name, value in config_map.items() if isinstance(value, str) and value}
    for name, value in (cli_overrides or {}).items():
        canonical = option_name_for(name) or name
        if value:
            merged[canonical] = value
    return merged


def assemble(config_map: Mapping[str, object], cli_overrides: Mapping[str, str] | None = None) -> Credentials:
    """Merge config-file and command-line values into Credentials. Does not validate presence."""
    merged = merge_options(config_map, cli_overrides)
    return Credentials(
        endpoint=merged.get(OPTION_ENDPOINT),
        access_key_id=merged.get(OPTION_ACCESS_KEY_ID),
        access_key_secret=merged.get(OPTION_ACCESS_KEY_SECRET),
        sts_token=merged.get(OPTION_STS_TOKEN),
    )


def require_credentials(credentials: Credentials) -> Credentials:
    missing = credentials.missing
    if missing:
        raise MissingCredentialError(f"missing required credential option(s): {', '.join(missing)}")
    return credentials


def _bucket_table(config_map: Mapping[str, object], section: str) -> Mapping[str, str]:
    table = config_map.get(section)
    return table if isinstance(table, dict) else {}


def endpoint_for_bucket(config_map: Mapping[str, object], bucket: str, endpoint: str | None) -> tuple[str | None, bool]:
    """
    Return ``(endpoint, is_cname)`` for a bucket.

    A ``Bucket-Cname`` entry wins, then ``Bucket-Endpoint``, then the merged endpoint.
    """
    cname = _bucket_table(config_map, BUCKET_CNAME_SECTION).get(bucket)
    if cname:
        return normalize_endpoint(cname), True
    bucket_endpoint = _bucket_table(config_map, BUCKET_ENDPOINT_SECTION).get(bucket)
    if bucket_endpoint:
        return normalize_endpoint(bucket_endpoint), False
    return (normalize_endpoint(endpoint) if endpoint else None), False


def normalize_endpoint(endpoint: str) -> str:
    endpoint = endpoint.strip()
    if "://" not in endpoint:
        endpoint = "http://" + endpoint
    return endpoint.rstrip("/")


__all__ = [
    "CRED_OPTION_ALIASES",
    "ConfigFileError",
    "ConfigMap",
    "assemble",
    "check_config",
    "decide_config_file",
    "endpoint_for_bucket",
    "load_config",
    "merge_options",
    "normalize_endpoint",
    "option_name_for",
    "read_config_file",
    "require_credentials",
]
