"""Lease-aware cache for dynamic HashiCorp Vault secrets."""

from .clock import Clock, FrozenClock, SystemClock
from .config import ProviderConfig, Settings, ensure_mount_enabled
from .errors import FetchError, InvalidArgument, LeaseCacheError, LeaseStoreError, NotFound, TransportError
from .services import (
    AWSSessionManager,
    DynamicSecretProvider,
    InMemoryLeaseStore,
    JsonFileLeaseStore,
    LeaseManager,
    LeaseRecord,
    LeaseStore,
    VaultTransport,
    build_path,
)

__version__ = "0.1.0"

__all__ = [
    "AWSSessionManager",
    "Clock",
    "DynamicSecretProvider",
    "FetchError",
    "FrozenClock",
    "InMemoryLeaseStore",
    "InvalidArgument",
    "JsonFileLeaseStore",
    "LeaseCacheError",
    "LeaseManager",
    "LeaseRecord",
    "LeaseStore",
    "LeaseStoreError",
    "NotFound",
    "ProviderConfig",
    "Settings",
    "SystemClock",
    "TransportError",
    "VaultTransport",
    "build_path",
    "ensure_mount_enabled",
]
