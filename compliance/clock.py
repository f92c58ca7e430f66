"""
Logical Clock for Deterministic Replay
======================================

Injectable timestamp source for the record store.

GUARANTEES:
- Same appends + same clock sequence = identical record ids
- Never reads system time implicitly in replay mode
- All clock ticks are logged for perfect replay
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from pathlib import Path
import json
import threading

from .contracts.base import ComputationExhausted, Timestamp


class ClockExhausted(ComputationExhausted):
    """Raised when replay clock runs out of ticks."""


@dataclass
class LogicalClock:
    """
    Injectable clock for deterministic execution.

    MODES:
    ======
    1. LIVE mode: Uses real system time, logs all ticks
    2. REPLAY mode: Uses pre-recorded tick sequence
    """
    _ticks: List[datetime] = field(default_factory=list)
    _current_index: int = 0
    _is_live: bool = True
    _start_time: Optional[datetime] = None
    # Appends on different keys may ask for time concurrently
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def now(self) -> datetime:
        """
        Get current logical time.

        In LIVE mode: reads system time and logs it
        In REPLAY mode: returns next tick from recorded sequence
        """
        with self._lock:
            if self._is_live:
                current = datetime.now(timezone.utc)
                self._ticks.append(current)
                self._current_index = len(self._ticks)
                return current
            if self._current_index >= len(self._ticks):
                raise ClockExhausted(
                    f"Replay clock exhausted at index {self._current_index}. "
                    f"Original execution had {len(self._ticks)} ticks.",
                    context=(("tick_index", str(self._current_index)),)
                )
            tick = self._ticks[self._current_index]
            self._current_index += 1
            return tick

    def timestamp(self) -> Timestamp:
        return Timestamp(value=self.now())

    def tick_count(self) -> int:
        """Number of ticks recorded/consumed."""
        return self._current_index

    def is_live(self) -> bool:
        return self._is_live

    def get_start_time(self) -> Optional[datetime]:
        if self._ticks:
            return self._ticks[0]
        return self._start_time

    @classmethod
    def live(cls) -> 'LogicalClock':
        """Create clock in LIVE mode (uses system time)."""
        clock = cls(_is_live=True)
        clock._start_time = datetime.now(timezone.utc)
        return clock

    @classmethod
    def from_ticks(cls, ticks: Iterable[datetime]) -> 'LogicalClock':
        """Create clock in REPLAY mode from an explicit tick sequence."""
        normalized = [
            t if t.tzinfo is not None else t.replace(tzinfo=timezone.utc)
            for t in ticks
        ]
        clock = cls(_ticks=normalized, _current_index=0, _is_live=False)
        if normalized:
            clock._start_time = normalized[0]
        return clock

    @classmethod
    def from_log(cls, tick_log_path: Path) -> 'LogicalClock':
        """
        Create clock in REPLAY mode from recorded log.

        Args:
            tick_log_path: Path to JSON file containing tick sequence
        """
        with open(tick_log_path, 'r') as f:
            data = json.load(f)

        return cls.from_ticks(datetime.fromisoformat(t) for t in data['ticks'])

    def save_log(self, tick_log_path: Path) -> None:
        """Save tick log for future replay."""
        tick_log_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            'version': '1.0',
            'mode': 'live' if self._is_live else 'replay',
            'tick_count': len(self._ticks),
            'start_time': self._ticks[0].isoformat() if self._ticks else None,
            'end_time': self._ticks[-1].isoformat() if self._ticks else None,
            'ticks': [t.isoformat() for t in self._ticks]
        }

        with open(tick_log_path, 'w') as f:
            json.dump(data, f, indent=2)

    def __repr__(self) -> str:
        mode = "LIVE" if self._is_live else "REPLAY"
        return f"LogicalClock({mode}, ticks={len(self._ticks)}, index={self._current_index})"
