"""
Injected Collaborators Module

Clock and id-generator capabilities passed into accounts and registries so
that timestamps and identifiers are deterministic under test and no
process-wide counter is shared between ledgers.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol
import itertools
import threading
import uuid


class Clock(Protocol):
    """Source of timestamps for transaction records"""

    def now(self) -> datetime:
        ...


class IdGenerator(Protocol):
    """Source of opaque identifiers; uniqueness is the generator's job"""

    def next_id(self) -> str:
        ...


class SystemClock:
    """Wall clock, timezone-aware UTC"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """
    Deterministic clock for tests
    Returns the same instant until advanced explicitly
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, seconds: float = 1.0) -> datetime:
        """Move the clock forward and return the new instant"""
        with self._lock:
            self._now = self._now + timedelta(seconds=seconds)
            return self._now

    def set(self, instant: datetime) -> None:
        with self._lock:
            self._now = instant


class UuidIdGenerator:
    """Random ids shaped like TXN-1a2b3c4d"""

    def __init__(self, prefix: str = "", length: int = 8):
        self.prefix = prefix
        self.length = length

    def next_id(self) -> str:
        return f"{self.prefix}{uuid.uuid4().hex[:self.length]}"


class SequentialIdGenerator:
    """Monotonic ids shaped like ACC-000001, counter owned by the instance"""

    def __init__(self, prefix: str = "", start: int = 1, width: int = 6):
        self.prefix = prefix
        self.width = width
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            value = next(self._counter)
        return f"{self.prefix}{value:0{self.width}d}"
