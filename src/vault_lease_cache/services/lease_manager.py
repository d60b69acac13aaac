"""Lease Manager - caches dynamic secrets until their Vault lease expires."""

import logging
import threading
import time
import weakref
from typing import Callable, Protocol

from tenacity import Retrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from ..clock import Clock, SystemClock
from ..config import ProviderConfig, Settings
from ..errors import FetchError, InvalidArgument, LeaseStoreError, NotFound, TransportError
from . import codec
from .lease_store import LeaseRecord, LeaseStore
from .path_builder import RequestAction, build_path
from .vault_client import SecretResponse, VaultTransport

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "vault_key_aws"


class Transport(Protocol):
    def read(self, path: str) -> SecretResponse: ...

    def put(self, path: str, body: dict) -> dict | None: ...


class DynamicSecretProvider(Protocol):
    """What a host needs from a source of leased secrets."""

    def get_value(self, identity: str, config: ProviderConfig) -> str: ...

    def set_value(self, identity: str, value: str) -> None: ...

    def delete_value(self, identity: str, config: ProviderConfig) -> None: ...


def _short(lease_id: str) -> str:
    return f"{lease_id[:16]}..." if len(lease_id) > 16 else lease_id


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, TransportError) and error.transient


class LeaseManager:
    """Fetch-or-cache-or-revoke for dynamic Vault secrets.

    This manager:
    - Returns the cached value while its lease is valid (no network call)
    - Re-reads the secret from Vault once the lease has expired
    - Revokes the lease and forgets the record on delete

    Expiry is checked lazily on each ``get_value``; nothing runs in the
    background. Refreshes and deletes for the same identity are serialised
    by a per-identity lock.

    In the default fail-soft mode a failed fetch is logged and ``""`` is
    returned. With ``strict=True`` it raises :class:`FetchError` instead.
    Transient transport failures are retried ``max_retries`` times with
    exponential backoff starting at ``retry_backoff`` seconds.
    """

    def __init__(
        self,
        transport: Transport,
        store: LeaseStore,
        clock: Clock | None = None,
        *,
        namespace: str = DEFAULT_NAMESPACE,
        strict: bool = False,
        max_retries: int = 0,
        retry_backoff: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._transport = transport
        self._store = store
        self._clock = clock or SystemClock()
        self._namespace = namespace
        self._strict = strict
        self._retrying = Retrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential(multiplier=retry_backoff),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=sleep,
            reraise=True,
        )
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: LeaseStore,
        transport: Transport | None = None,
        clock: Clock | None = None,
    ) -> "LeaseManager":
        """Build a manager configured from :class:`Settings`."""
        transport = transport or VaultTransport(
            url=settings.vault_addr,
            token=settings.vault_token,
            namespace=settings.vault_namespace,
            timeout=settings.request_timeout,
        )
        return cls(
            transport,
            store,
            clock,
            namespace=settings.state_namespace,
            strict=settings.strict_fetch,
            max_retries=settings.max_retries,
            retry_backoff=settings.retry_backoff_seconds,
        )

    @property
    def strict(self) -> bool:
        return self._strict

    def state_key(self, identity: str) -> str:
        """Store key for an identity: ``<namespace>.<identity>``."""
        return f"{self._namespace}.{identity}"

    def get_record(self, identity: str) -> LeaseRecord | None:
        """Return the stored lease record for an identity, valid or not.

        Raises:
            LeaseStoreError: If the store cannot be read
        """
        return self._store.get(self.state_key(identity))

    def get_value(self, identity: str, config: ProviderConfig) -> str:
        """Return the secret for ``identity``, fetching a new lease if needed.

        Args:
            identity: Caller-defined name of the secret
            config: Mount and path of the secret in Vault

        Returns:
            The encoded secret payload, or ``""`` if the fetch failed in
            fail-soft mode

        Raises:
            FetchError: If the fetch failed and the manager is strict
        """
        state_key = self.state_key(identity)

        with self._lock_for(identity):
            try:
                lease = self._store.get(state_key)
            except LeaseStoreError as e:
                return self._fetch_failed(identity, e)

            if lease is not None and lease.is_valid(self._clock.now()):
                return lease.data

            if lease is not None:
                logger.info(f"Lease {_short(lease.lease_id)} for {identity} has expired")

            try:
                path = build_path(RequestAction.GET, config)
                response = self._retrying.copy()(self._transport.read, path)
            except (TransportError, InvalidArgument) as e:
                return self._fetch_failed(identity, e)

            lease = LeaseRecord.issue(
                data=codec.encode(response.data),
                lease_id=response.lease_id,
                lease_duration=response.lease_duration,
                issued_at=self._clock.now(),
                renewable=response.renewable,
            )
            try:
                self._store.set(state_key, lease)
            except LeaseStoreError as e:
                # no lease may outlive its record
                self._revoke_lease(identity, lease)
                return self._fetch_failed(identity, e)
            config.lock()

            logger.info(
                f"Cached secret {identity}, lease {_short(lease.lease_id)} "
                f"expires in {lease.lease_duration}s"
            )
            return lease.data

    def set_value(self, identity: str, value: str) -> None:
        """Accept and discard a value; leased secrets are read-only."""
        logger.debug(f"Ignoring set_value for {identity}: dynamic secrets are read-only")

    def delete_value(self, identity: str, config: ProviderConfig) -> None:
        """Revoke the lease for ``identity`` and forget it.

        The record is removed from the store even if the revoke fails.
        Store failures are logged, never raised.
        """
        state_key = self.state_key(identity)

        with self._lock_for(identity):
            try:
                self._revoke(identity, state_key)
            except NotFound:
                logger.debug(f"No lease stored for {identity}, nothing to revoke")
            except LeaseStoreError as e:
                logger.critical(f"Unable to read lease on secret {identity}: {e}")

            try:
                self._store.delete(state_key)
            except LeaseStoreError as e:
                logger.critical(f"Unable to remove lease on secret {identity}: {e}")

    def _revoke(self, identity: str, state_key: str) -> None:
        lease = self._store.get(state_key)
        if lease is None:
            raise NotFound(state_key)
        self._revoke_lease(identity, lease)

    def _revoke_lease(self, identity: str, lease: LeaseRecord) -> None:
        # TODO: confirm against a live Vault that AWS credentials are
        # invalidated by this revoke; it has not been verified end to end.
        try:
            path = build_path(RequestAction.REVOKE, lease_id=lease.lease_id)
            self._transport.put(path, {"lease_id": lease.lease_id})
            logger.info(f"Revoked lease {_short(lease.lease_id)} for {identity}")
        except (TransportError, InvalidArgument) as e:
            logger.critical(f"Unable to revoke lease on secret {identity}: {e}")

    def _fetch_failed(self, identity: str, error: Exception) -> str:
        logger.critical(f"Unable to fetch secret {identity}: {error}")
        if self._strict:
            raise FetchError(f"Unable to fetch secret {identity}") from error
        return ""

    def _lock_for(self, identity: str) -> threading.Lock:
        # entries vanish once no caller holds a reference to the lock
        with self._locks_guard:
            lock = self._locks.get(identity)
            if lock is None:
                lock = threading.Lock()
                self._locks[identity] = lock
            return lock
