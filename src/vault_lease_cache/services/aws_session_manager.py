"""AWS Session Manager - boto3 sessions built from leased Vault credentials."""

import logging
from typing import Any

import boto3
from botocore.config import Config

from ..config import ProviderConfig, settings
from ..errors import FetchError
from . import codec
from .lease_manager import DynamicSecretProvider

logger = logging.getLogger(__name__)


class AWSSessionManager:
    """Hands out boto3 clients backed by credentials from a lease cache.

    The credentials come from the AWS secrets engine payload
    (``access_key``, ``secret_key`` and optionally ``security_token``).
    Each call goes through the provider, so an expired lease is replaced
    transparently and the session is rebuilt when the payload changes.
    """

    def __init__(
        self,
        provider: DynamicSecretProvider,
        identity: str,
        config: ProviderConfig,
        region: str | None = None,
    ) -> None:
        self._provider = provider
        self._identity = identity
        self._config = config
        self._region = region or settings.aws_region
        self._payload: str | None = None
        self._session: boto3.Session | None = None
        self._boto_config = Config(
            retries={"max_attempts": 5, "mode": "adaptive"},
            connect_timeout=30,
            read_timeout=120,
        )

    @property
    def has_valid_session(self) -> bool:
        """Check if a session has been built from credentials."""
        return self._session is not None

    @property
    def session(self) -> boto3.Session:
        """Get a session for the current lease, rebuilding it if the lease changed.

        Raises:
            FetchError: If no credentials could be obtained
        """
        payload = self._provider.get_value(self._identity, self._config)
        if not payload:
            raise FetchError(f"No AWS credentials available for {self._identity}")

        if payload != self._payload or self._session is None:
            credentials = codec.decode(payload)
            try:
                self._session = boto3.Session(
                    aws_access_key_id=credentials["access_key"],
                    aws_secret_access_key=credentials["secret_key"],
                    aws_session_token=credentials.get("security_token") or None,
                    region_name=self._region,
                )
            except KeyError as e:
                raise FetchError(f"Secret {self._identity} is not an AWS credential pair: missing {e}") from e
            self._payload = payload
            logger.info(f"AWS session built for {self._identity}, region={self._region}")

        return self._session

    def get_client(self, service_name: str, region: str | None = None) -> Any:
        """Get a boto3 client for the specified AWS service.

        Args:
            service_name: AWS service name (e.g., 's3', 'ec2', 'sts')
            region: Optional region override

        Returns:
            boto3 client for the service
        """
        return self.session.client(
            service_name,
            region_name=region,
            config=self._boto_config,
        )

    def get_caller_identity(self) -> dict[str, Any]:
        """Get the identity of the leased credentials via STS."""
        sts = self.get_client("sts")
        return sts.get_caller_identity()

    def release(self) -> None:
        """Revoke the lease and drop the session."""
        logger.info(f"Releasing AWS credentials for {self._identity}")
        self._provider.delete_value(self._identity, self._config)
        self._session = None
        self._payload = None
