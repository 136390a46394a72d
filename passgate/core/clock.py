# passgate/core/clock.py
from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock frozen at a given instant; tests move it with set()/advance()."""

    def __init__(self, at: datetime | None = None):
        self._at = _aware(at or datetime.now(timezone.utc))
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._at

    def set(self, at: datetime) -> None:
        with self._lock:
            self._at = _aware(at)

    def advance(self, **delta) -> datetime:
        with self._lock:
            self._at = self._at + timedelta(**delta)
            return self._at


def _aware(at: datetime) -> datetime:
    if at.tzinfo is None:
        return at.replace(tzinfo=timezone.utc)
    return at.astimezone(timezone.utc)


def as_utc(at: datetime | None) -> datetime | None:
    # SQLite devolve datetimes "naive" mesmo com DateTime(timezone=True)
    if at is None:
        return None
    return _aware(at)
