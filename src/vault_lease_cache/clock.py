"""Clock sources used for lease expiry."""

import time
from typing import Protocol


class Clock(Protocol):
    """Wall-clock source returning epoch seconds."""

    def now(self) -> float: ...


class SystemClock:
    """Production clock backed by ``time.time``."""

    def now(self) -> float:
        return time.time()


class FrozenClock:
    """Test clock pinned to a fixed point in time."""

    def __init__(self, fixed: float = 0.0) -> None:
        self._fixed = fixed

    def now(self) -> float:
        return self._fixed

    def set(self, fixed: float) -> None:
        self._fixed = fixed

    def advance(self, seconds: float) -> None:
        """Move the frozen time forward by ``seconds``."""
        self._fixed += seconds
