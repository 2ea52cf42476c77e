"""
Navigation over the question sequence with a debounce guard and
per-question time accounting.

A move is two-phase: begin() books the time spent on the question being
left and locks navigation; settle() lands on the target once the UI
transition is over. Anything asked for in between is rejected.
"""
import logging
from typing import List, Optional

from assessment.answers import AnswerSheet

logger = logging.getLogger(__name__)

PALETTE_FILTERS = ("all", "attempted", "unattempted", "marked")


class Navigator:
    def __init__(self, sheet: AnswerSheet):
        self.sheet = sheet
        self.index = 0
        self.pending_target: Optional[int] = None
        self.held = False
        self._entered_at: Optional[float] = None

    @property
    def count(self) -> int:
        return len(self.sheet)

    @property
    def current_number(self) -> int:
        return self.sheet.numbers[self.index]

    @property
    def busy(self) -> bool:
        """A transition is in flight or feedback is holding the question."""
        return self.pending_target is not None or self.held

    @property
    def is_last(self) -> bool:
        return self.index >= self.count - 1

    def enter(self, now: float):
        """Start timing the current question (session start, resume)."""
        self._entered_at = now

    def account(self, now: float):
        """Book time spent on the current question since it was entered."""
        if self._entered_at is None:
            return
        self.sheet.add_time(self.current_number, now - self._entered_at)
        self._entered_at = None

    def hold(self):
        self.held = True

    def release(self):
        self.held = False

    def begin(self, target: int, now: float, *, force: bool = False) -> bool:
        """
        Start moving to target. Returns False (and changes nothing) when a move
        is already in flight, the question is held (unless force) or the
        target is out of range.
        """
        if self.pending_target is not None or (self.held and not force):
            logger.debug(f"Navigation to {target} rejected: transition in flight")
            return False
        if not 0 <= target < self.count:
            return False
        self.account(now)
        self.held = False
        self.pending_target = target
        return True

    def settle(self, now: float) -> bool:
        if self.pending_target is None:
            return False
        self.index = self.pending_target
        self.pending_target = None
        self._entered_at = now
        return True

    def palette_status(self, index: int) -> str:
        number = self.sheet.numbers[index]
        answered = self.sheet.is_answered(number)
        marked = self.sheet.is_marked(number)
        if marked and answered:
            return "marked-answered"
        if marked:
            return "marked"
        if answered:
            return "answered"
        if index == self.index:
            return "current"
        return "unattempted"

    def palette(self, filter_name: str = "all") -> List[int]:
        """Indices shown in the question palette under a filter."""
        if filter_name not in PALETTE_FILTERS:
            raise ValueError(f"Unknown palette filter: {filter_name!r}")
        out = []
        for i, number in enumerate(self.sheet.numbers):
            if filter_name == "attempted" and not self.sheet.is_answered(number):
                continue
            if filter_name == "unattempted" and self.sheet.is_answered(number):
                continue
            if filter_name == "marked" and not self.sheet.is_marked(number):
                continue
            out.append(i)
        return out
