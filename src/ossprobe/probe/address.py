# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Which network address a probe dials, and the one it falls back to."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

from ..config import DEFAULT_FALLBACK_ADDRESS


def host_of(endpoint_or_url: str) -> str:
    """Return the ``host[:port]`` part of an endpoint, with or without scheme."""
    value = endpoint_or_url.strip()
    if "://" not in value:
        value = "http://" + value
    return urlsplit(value).netloc


def with_host(endpoint_or_url: str, address: str) -> str:
    """Replace the host of an endpoint or URL, keeping scheme, path and query."""
    value = endpoint_or_url.strip()
    if "://" not in value:
        value = "http://" + value
    parts = urlsplit(value)
    return urlunsplit((parts.scheme, address, parts.path, parts.query, parts.fragment))


@dataclass(frozen=True)
class AddressFallbackPolicy:
    """
    Stateless address policy.

    The fallback is a well-known public host; reaching it while the primary address
    is unreachable tells a local/network-wide outage apart from an endpoint problem.
    When to use it is the orchestrator's call.
    """

    fallback: str = DEFAULT_FALLBACK_ADDRESS

    def primary_address(self, endpoint: str) -> str:
        return host_of(endpoint)

    def fallback_address(self, host: str) -> str:  # noqa: ARG002
        return host_of(self.fallback)
