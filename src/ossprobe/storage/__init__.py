# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Storage service boundary: the client protocol and its implementations."""

from .adapters import InMemoryStorageClient, StoredObject
from .client import ObjectInfo, StorageClient, StorageClientFactory, create_default_storage_client
from .oss_client import Oss2StorageClient

__all__ = [
    "InMemoryStorageClient",
    "ObjectInfo",
    "Oss2StorageClient",
    "StorageClient",
    "StorageClientFactory",
    "StoredObject",
    "create_default_storage_client",
]
