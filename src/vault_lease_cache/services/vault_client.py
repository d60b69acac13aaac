"""HashiCorp Vault transport for dynamic secret leases."""

import logging
from dataclasses import dataclass
from typing import Any

import hvac
import requests
from hvac.exceptions import (
    BadGateway,
    InternalServerError,
    RateLimitExceeded,
    VaultDown,
    VaultError,
)

from ..config import settings
from ..errors import TransportError

logger = logging.getLogger(__name__)

_TRANSIENT_VAULT_ERRORS = (InternalServerError, VaultDown, BadGateway, RateLimitExceeded)


@dataclass
class SecretResponse:
    """Decoded body of a Vault read that issued a lease."""

    data: dict[str, Any]
    lease_id: str
    lease_duration: int  # seconds
    renewable: bool = False


class VaultTransport:
    """Thin request layer over ``hvac`` for reading leased secrets.

    Every failure (network, timeout, HTTP status, authentication or an
    unexpected response body) is raised as :class:`TransportError`.
    There is no retry here; the lease manager owns that policy.
    """

    def __init__(
        self,
        url: str | None = None,
        token: str | None = None,
        namespace: str | None = None,
        timeout: float | None = None,
        client: hvac.Client | None = None,
    ) -> None:
        self._url = url or settings.vault_addr
        self._token = token if token is not None else settings.vault_token
        self._namespace = namespace if namespace is not None else settings.vault_namespace
        self._timeout = timeout or settings.request_timeout
        self._client = client

    @property
    def client(self) -> hvac.Client:
        """Get or create the Vault client."""
        if self._client is None:
            self._client = hvac.Client(
                url=self._url,
                token=self._token,
                namespace=self._namespace,
                timeout=self._timeout,
            )
        return self._client

    def is_connected(self) -> bool:
        """Check if connected and authenticated to Vault."""
        try:
            return self.client.is_authenticated()
        except (VaultError, requests.RequestException) as e:
            logger.warning(f"Vault connection check failed: {e}")
            return False

    def read(self, path: str) -> SecretResponse:
        """Read a dynamic secret and the lease that came with it.

        Args:
            path: Request path as built by ``build_path``, e.g. ``/aws/creds/deploy``

        Returns:
            SecretResponse with payload, lease id and lease duration

        Raises:
            TransportError: On any request failure or malformed body
        """
        logger.debug(f"Reading secret at {path}")
        response = self._call("read", path, lambda: self.client.read(path.lstrip("/")))
        if response is None:
            raise TransportError(f"No secret found at {path}", status_code=404)

        try:
            data = response["data"]
            lease_id = response["lease_id"]
            lease_duration = int(response["lease_duration"])
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Malformed response from {path}: {e!r}") from e

        if not isinstance(data, dict) or not lease_id:
            raise TransportError(f"Response from {path} carries no leased secret")

        return SecretResponse(
            data=data,
            lease_id=lease_id,
            lease_duration=lease_duration,
            renewable=bool(response.get("renewable", False)),
        )

    def put(self, path: str, body: dict[str, Any]) -> dict[str, Any] | None:
        """Send a PUT request with a JSON body.

        Returns:
            Decoded JSON body, or None for empty (204) responses
        """
        logger.debug(f"PUT {path}")
        response = self._call(
            "put",
            path,
            lambda: self.client.adapter.put(f"/v1/{path.lstrip('/')}", json=body),
        )
        return response if isinstance(response, dict) else None

    def list_secret_engine_mounts(self, types: list[str] | None = None) -> dict[str, dict[str, Any]]:
        """List enabled secret engine mounts, optionally filtered by engine type.

        Args:
            types: Engine types to keep, e.g. ``["aws"]``

        Returns:
            Mapping of mount path (with trailing slash) to mount info
        """
        response = self._call(
            "list mounts",
            "/sys/mounts",
            self.client.sys.list_mounted_secrets_engines,
        )
        if not isinstance(response, dict):
            raise TransportError("Malformed response from /sys/mounts")

        mounts = response.get("data", response)
        return {
            mount: info
            for mount, info in mounts.items()
            if isinstance(info, dict) and (not types or info.get("type") in types)
        }

    def _call(self, operation: str, path: str, request: Any) -> Any:
        try:
            return request()
        except _TRANSIENT_VAULT_ERRORS as e:
            raise TransportError(
                f"Vault {operation} {path} failed: {e}",
                transient=True,
                status_code=getattr(e, "status_code", None),
            ) from e
        except VaultError as e:
            raise TransportError(f"Vault {operation} {path} failed: {e}") from e
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransportError(f"Vault {operation} {path} unreachable: {e}", transient=True) from e
        except (requests.RequestException, ValueError) as e:
            # ValueError covers undecodable JSON bodies
            raise TransportError(f"Vault {operation} {path} failed: {e}") from e
