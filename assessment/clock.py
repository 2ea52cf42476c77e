"""Session countdown clock. One tick per wall-clock second while running."""
import logging
import math
from typing import Optional

from engine import MOCK_DURATION_MINUTES
from assessment.models import PracticeMode

logger = logging.getLogger(__name__)


class SessionClock:
    """
    Countdown of the whole session.

    The clock never fires anything itself: tick() returns True exactly once,
    on the tick that reaches zero, and the session turns that into its
    finish transition.
    """

    def __init__(self, total_seconds: int):
        self.initial_seconds = max(0, int(total_seconds))
        self.remaining = self.initial_seconds
        self.running = False
        self.paused = False
        self._expired_reported = False
        self._anchor: Optional[float] = None
        self._ticks_applied = 0

    @classmethod
    def for_mode(cls, mode: PracticeMode, per_question_time: int, question_count: int) -> "SessionClock":
        if mode is PracticeMode.MOCK_EXAM:
            return cls(MOCK_DURATION_MINUTES * 60)
        return cls(per_question_time * question_count)

    @property
    def expired(self) -> bool:
        return self.remaining <= 0

    def start(self, now: Optional[float] = None):
        self.running = True
        self.paused = False
        self._anchor = now
        self._ticks_applied = 0

    def stop(self):
        self.running = False
        self._anchor = None

    def pause(self):
        if self.running and not self.paused:
            self.paused = True
            self._anchor = None

    def resume(self, now: Optional[float] = None):
        if self.running and self.paused:
            self.paused = False
            self._anchor = now
            self._ticks_applied = 0

    def tick(self) -> bool:
        """Advance one second. True only on the tick that expires the clock."""
        if not self.running or self.paused:
            return False
        if self.remaining > 0:
            self.remaining -= 1
        if self.remaining <= 0 and not self._expired_reported:
            self._expired_reported = True
            return True
        return False

    def catch_up(self, now: float) -> bool:
        """
        Apply the ticks owed since start/resume, for hosts that re-render
        on demand (e.g. Streamlit) instead of running a periodic task.
        """
        if not self.running or self.paused or self._anchor is None:
            return False
        owed = math.floor(now - self._anchor) - self._ticks_applied
        expired = False
        for _ in range(max(0, owed)):
            self._ticks_applied += 1
            expired = self.tick() or expired
        return expired

    def format_time(self) -> str:
        s = max(0, self.remaining)
        h, rest = divmod(s, 3600)
        m, sec = divmod(rest, 60)
        return f"{h:02d}:{m:02d}:{sec:02d}"
