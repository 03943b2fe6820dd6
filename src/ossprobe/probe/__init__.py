# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Probe diagnostic engine: target resolution, address policy, strategies and orchestration."""

from .address import AddressFallbackPolicy
from .orchestrator import ProbeOrchestrator, run_probe
from .resolver import resolve, resolve_options
from .strategies import select_download_strategy, select_upload_strategy

__all__ = [
    "AddressFallbackPolicy",
    "ProbeOrchestrator",
    "resolve",
    "resolve_options",
    "run_probe",
    "select_download_strategy",
    "select_upload_strategy",
]
