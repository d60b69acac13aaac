"""Lease Store - persists lease records keyed by namespaced identity."""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterator

from filelock import FileLock, Timeout

from ..errors import LeaseStoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaseRecord:
    """A cached dynamic secret and the lease that guards it."""

    data: str
    lease_id: str
    lease_duration: int  # seconds
    lease_expiry: float  # epoch seconds, issuance time + lease_duration
    renewable: bool = False

    @classmethod
    def issue(
        cls,
        data: str,
        lease_id: str,
        lease_duration: int,
        issued_at: float,
        renewable: bool = False,
    ) -> "LeaseRecord":
        """Build a record, deriving the expiry from the issuance time."""
        return cls(
            data=data,
            lease_id=lease_id,
            lease_duration=lease_duration,
            lease_expiry=issued_at + lease_duration,
            renewable=renewable,
        )

    def is_valid(self, now: float) -> bool:
        """True while the lease can be used without asking Vault again."""
        return now < self.lease_expiry

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "LeaseRecord":
        return cls(
            data=raw["data"],
            lease_id=raw["lease_id"],
            lease_duration=int(raw["lease_duration"]),
            lease_expiry=float(raw["lease_expiry"]),
            renewable=bool(raw.get("renewable", False)),
        )


class LeaseStore(ABC):
    """Key-value store for lease records.

    Implementations must make each of get, set and delete atomic.
    """

    @abstractmethod
    def get(self, key: str) -> LeaseRecord | None:
        """Return the record stored under ``key``, or None."""
        ...

    @abstractmethod
    def set(self, key: str, record: LeaseRecord) -> None:
        """Store ``record`` under ``key``, replacing any previous record."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""
        ...


class InMemoryLeaseStore(LeaseStore):
    """Process-local store backed by a dict."""

    def __init__(self) -> None:
        self._records: dict[str, LeaseRecord] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> LeaseRecord | None:
        with self._lock:
            return self._records.get(key)

    def set(self, key: str, record: LeaseRecord) -> None:
        with self._lock:
            self._records[key] = record

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._records


class JsonFileLeaseStore(LeaseStore):
    """Store that persists every record to a single JSON file.

    Every operation holds an exclusive lock on ``<path>.lock`` while it
    reads and rewrites the file, so processes sharing one state file never
    lose each other's updates. Writes go to a temporary file in the same
    directory that then replaces the state file.

    Unreadable, corrupt or unwritable state raises :class:`LeaseStoreError`.
    """

    def __init__(self, path: str | os.PathLike[str], lock_timeout: float = -1) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._file_lock = FileLock(f"{self._path}.lock", timeout=lock_timeout)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> LeaseRecord | None:
        with self._locked():
            raw = self._load().get(key)
            if raw is None:
                return None
            try:
                return LeaseRecord.from_dict(raw)
            except (KeyError, TypeError, ValueError) as e:
                raise LeaseStoreError(f"Malformed lease record {key} in {self._path}: {e!r}") from e

    def set(self, key: str, record: LeaseRecord) -> None:
        with self._locked():
            state = self._load()
            state[key] = record.to_dict()
            self._dump(state)

    def delete(self, key: str) -> None:
        with self._locked():
            state = self._load()
            if state.pop(key, None) is not None:
                self._dump(state)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        try:
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._file_lock:
                    yield
        except Timeout as e:
            raise LeaseStoreError(f"Timed out waiting for lock on {self._path}") from e
        except OSError as e:
            raise LeaseStoreError(f"Lease state file {self._path} is not accessible: {e}") from e

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        with self._path.open(encoding="utf-8") as f:
            try:
                state = json.load(f)
            except ValueError as e:
                raise LeaseStoreError(f"Lease state file {self._path} is corrupt: {e}") from e
        if not isinstance(state, dict):
            raise LeaseStoreError(f"Lease state file {self._path} is not a JSON object")
        return state

    def _dump(self, state: dict[str, Any]) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".leases-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state, f, indent=2, sort_keys=True)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._path)
        except BaseException:
            os.unlink(tmp_path)
            raise
        logger.debug(f"Wrote {len(state)} lease record(s) to {self._path}")
