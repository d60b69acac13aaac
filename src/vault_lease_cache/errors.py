"""Error types raised by the lease cache."""


class LeaseCacheError(Exception):
    """Base class for all lease cache errors."""


class TransportError(LeaseCacheError):
    """A request to Vault failed.

    Wraps network, HTTP, authentication and response-parsing failures.
    ``transient`` is set for failures worth retrying (connection errors,
    timeouts, 5xx responses).
    """

    def __init__(self, message: str, *, transient: bool = False, status_code: int | None = None) -> None:
        super().__init__(message)
        self.transient = transient
        self.status_code = status_code


class FetchError(LeaseCacheError):
    """A secret could not be fetched (strict mode only)."""


class InvalidArgument(LeaseCacheError, ValueError):
    """Malformed action or configuration."""


class NotFound(LeaseCacheError, KeyError):
    """No lease record exists for an identity."""


class LeaseStoreError(LeaseCacheError):
    """The lease store could not be read or written."""
