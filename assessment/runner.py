"""
asyncio host for an AssessmentSession.

Owns the only periodic task (the one-second clock tick) and the short
call_later handles for navigation debounce and feedback auto-advance.
Everything is cancelled when the session finishes or the runner closes.
"""
import asyncio
import logging
from functools import partial
from typing import Optional

from engine import NAVIGATION_DELAY, NAVIGATION_SETTLE, TICK_INTERVAL
from assessment import events
from assessment.ai_grading import ExternalGradingAdapter
from assessment.errors import GradingServiceError
from assessment.models import Answer, Feedback, Result
from assessment.session import AssessmentSession, NavigationOutcome

logger = logging.getLogger(__name__)


class AsyncSessionRunner:
    def __init__(
        self,
        session: AssessmentSession,
        adapter: Optional[ExternalGradingAdapter] = None,
        tick_interval: float = TICK_INTERVAL,
        navigation_delay: float = NAVIGATION_DELAY + NAVIGATION_SETTLE,
        feedback_scale: float = 1.0,
    ):
        self.session = session
        self.adapter = adapter
        self.tick_interval = tick_interval
        self.navigation_delay = navigation_delay
        self.feedback_scale = feedback_scale
        self._tick_task: Optional[asyncio.Task] = None
        self._navigation_handle: Optional[asyncio.TimerHandle] = None
        self._feedback_handle: Optional[asyncio.TimerHandle] = None
        self._finished: Optional[asyncio.Event] = None
        session.notifications.subscribe(events.SESSION_FINISHED, self._on_finished)

    # ============= Lifecycle =============

    async def start(self):
        self._finished = asyncio.Event()
        self.session.start()
        self._tick_task = asyncio.create_task(self._tick_loop())

    async def _tick_loop(self):
        while self.session.is_active:
            await asyncio.sleep(self.tick_interval)
            self.session.tick()

    async def wait_finished(self, timeout: Optional[float] = None):
        if self._finished is None:
            raise RuntimeError("Runner was not started")
        await asyncio.wait_for(self._finished.wait(), timeout)

    def _on_finished(self, _payload):
        if self._finished is not None:
            self._finished.set()
        self._cancel_timers()
        if self._tick_task is not None and self._tick_task is not asyncio.current_task():
            self._tick_task.cancel()

    def _cancel_timers(self):
        for handle in (self._navigation_handle, self._feedback_handle):
            if handle is not None:
                handle.cancel()
        self._navigation_handle = None
        self._feedback_handle = None

    async def close(self):
        """Tear down: stop ticking, drop pending timers, invalidate in-flight grading."""
        self._cancel_timers()
        if self._tick_task is not None and not self._tick_task.done():
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass
        self.session.close()

    # ============= Input =============

    def answer(self, value: Answer) -> Optional[Feedback]:
        fb = self.session.answer(value)
        if fb is not None:
            self._schedule_feedback(fb)
        return fb

    def _schedule_feedback(self, fb: Feedback):
        if self._feedback_handle is None:
            loop = asyncio.get_running_loop()
            self._feedback_handle = loop.call_later(fb.delay * self.feedback_scale, self._on_feedback_due)

    def _on_feedback_due(self):
        self._feedback_handle = None
        self._follow(self.session.advance_after_feedback())

    def pause(self):
        """Pause the session; a pending feedback auto-advance waits for resume()."""
        self.session.pause()
        if self._feedback_handle is not None:
            self._feedback_handle.cancel()
            self._feedback_handle = None

    def resume(self):
        self.session.resume()
        if self.session.feedback is not None:
            self._schedule_feedback(self.session.feedback)

    def next(self) -> NavigationOutcome:
        return self._follow(self.session.next())

    def previous(self) -> NavigationOutcome:
        return self._follow(self.session.previous())

    def jump_to(self, index: int) -> NavigationOutcome:
        return self._follow(self.session.jump_to(index))

    def mark_for_review(self) -> NavigationOutcome:
        return self._follow(self.session.mark_for_review())

    def submit(self) -> bool:
        return self.session.submit()

    def _follow(self, outcome: NavigationOutcome) -> NavigationOutcome:
        if outcome is NavigationOutcome.MOVING:
            loop = asyncio.get_running_loop()
            self._navigation_handle = loop.call_later(self.navigation_delay, self._on_navigation_due)
        return outcome

    def _on_navigation_due(self):
        self._navigation_handle = None
        self.session.settle_navigation()

    # ============= Grading =============

    async def grade_with_ai(self, image_base64: str) -> Optional[Result]:
        """
        Run AI grading off the event loop. The reply is applied only if this
        session is still the one waiting for it; failures leave no result and
        can be retried.
        """
        if self.adapter is None:
            raise RuntimeError("No grading adapter configured")
        session = self.session
        token = session.begin_external_grading()
        loop = asyncio.get_running_loop()
        try:
            grade = partial(self.adapter.grade, image_base64, session.sheet, session.syllabus, now=session.wall_time())
            result = await loop.run_in_executor(None, grade)
        except GradingServiceError as e:
            session.fail_external_grading(token, e)
            return None
        if not session.complete_external_grading(token, result):
            return None
        return result
