"""Services for leased Vault secrets."""

from .vault_client import SecretResponse, VaultTransport
from .lease_store import InMemoryLeaseStore, JsonFileLeaseStore, LeaseRecord, LeaseStore
from .lease_manager import DynamicSecretProvider, LeaseManager
from .path_builder import RequestAction, build_path
from .aws_session_manager import AWSSessionManager

__all__ = [
    "AWSSessionManager",
    "DynamicSecretProvider",
    "InMemoryLeaseStore",
    "JsonFileLeaseStore",
    "LeaseManager",
    "LeaseRecord",
    "LeaseStore",
    "RequestAction",
    "SecretResponse",
    "VaultTransport",
    "build_path",
]
