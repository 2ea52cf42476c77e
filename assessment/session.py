"""
Timed assessment session: the state machine behind one practice or mock exam.

    NOT_STARTED --start()--> ACTIVE --(clock expiry | submit() | next() on last)--> FINISHED

The session owns its answer sheet, timings and clock. It performs no I/O and
schedules nothing: a host (AsyncSessionRunner, the Streamlit page, tests)
calls tick(), settle_navigation() and advance_after_feedback() when their
delays are due, and passes the current monotonic time where it matters.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional
from uuid import uuid4

from engine import DEFAULT_PER_QUESTION_SECONDS
from assessment import events
from assessment.answers import AnswerSheet
from assessment.clock import SessionClock
from assessment.errors import EmptyQuestionSetError, GradingServiceError, SessionStateError
from assessment.events import EventBus
from assessment.feedback import blocks_input, evaluate, feedback_enabled
from assessment.grading import grade
from assessment.models import (
    Answer, AnswerKey, Feedback, FeedbackStatus, HomeworkSource, PracticeMode,
    Question, ReattemptTask, Result, SessionState,
)
from assessment.navigation import Navigator
from assessment.question_set import build_questions, parse_question_ranges, sections
from assessment.remediation import build_reattempt_task, should_remediate

logger = logging.getLogger(__name__)


class NavigationOutcome(Enum):
    MOVING = "moving"
    FINISHED = "finished"
    REJECTED = "rejected"


def _ignore(*_args, **_kwargs):
    pass


@dataclass
class SessionCallbacks:
    """Hooks provided by the surrounding application."""
    on_session_complete: Callable[[int, int, List[int]], None] = _ignore
    on_log_result: Callable[[Result], None] = _ignore
    on_update_weaknesses: Callable[[List[str]], None] = _ignore
    on_save_task: Callable[[ReattemptTask], None] = _ignore


class AssessmentSession:
    def __init__(
        self,
        questions: Iterable[Question],
        mode: PracticeMode,
        *,
        per_question_time: int = DEFAULT_PER_QUESTION_SECONDS,
        answer_key: Optional[AnswerKey] = None,
        syllabus: str = "",
        homework: Optional[HomeworkSource] = None,
        callbacks: Optional[SessionCallbacks] = None,
        notifications: Optional[EventBus] = None,
        weaknesses: Optional[List[str]] = None,
        monotonic: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = datetime.now,
    ):
        self.questions = tuple(questions)
        if not self.questions:
            raise EmptyQuestionSetError("No questions to attempt. Check the question ranges.")
        self.session_id = uuid4()
        self.mode = mode
        self.answer_key: AnswerKey = dict(answer_key or {})
        self.syllabus = syllabus
        self.homework = homework
        self.callbacks = callbacks or SessionCallbacks()
        self.notifications = notifications or EventBus()
        self.weaknesses: List[str] = list(weaknesses or [])
        self._monotonic = monotonic
        self._wall_clock = wall_clock

        self.sheet = AnswerSheet([q.number for q in self.questions])
        self.navigator = Navigator(self.sheet)
        self.clock = SessionClock.for_mode(mode, per_question_time, len(self.questions))

        self.state = SessionState.NOT_STARTED
        self.feedback: Optional[Feedback] = None
        self.result: Optional[Result] = None
        self.grading_error = ""
        self.finish_pending = False
        self.closed = False
        self.started_at: Optional[float] = None
        self.duration_seconds: Optional[int] = None
        self._graded = False
        self._grading_token = 0
        self._grading_in_flight = False
        self._remediated = set()

    @classmethod
    def from_ranges(
        cls,
        expression: str,
        mode: PracticeMode,
        *,
        subject: str = "",
        questions: Optional[Iterable] = None,
        answer_key: Optional[AnswerKey] = None,
        **kwargs,
    ) -> "AssessmentSession":
        """Build a session from a range expression such as "1-25, 30-35"."""
        numbers = parse_question_ranges(expression)
        resolved = build_questions(numbers, mode, subject=subject, questions=questions, key=answer_key)
        return cls(resolved, mode, answer_key=answer_key, **kwargs)

    # ============= Views =============

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def is_finished(self) -> bool:
        return self.state is SessionState.FINISHED

    @property
    def has_key(self) -> bool:
        return bool(self.answer_key)

    @property
    def grading_in_flight(self) -> bool:
        return self._grading_in_flight

    @property
    def current_question(self) -> Question:
        return self.questions[self.navigator.index]

    def sections(self) -> List[Dict]:
        return sections(list(self.questions))

    def snapshot(self) -> Dict:
        """Read-only state for a UI layer to render."""
        q = self.current_question
        return {
            "session_id": str(self.session_id),
            "state": self.state.value,
            "mode": self.mode.value,
            "index": self.navigator.index,
            "question_number": q.number,
            "question_kind": q.kind.value,
            "section": q.section,
            "total_questions": len(self.questions),
            "time_left": self.clock.format_time(),
            "remaining_seconds": self.clock.remaining,
            "paused": self.clock.paused,
            "answered": self.sheet.solved_count(),
            "marked": self.sheet.marked(),
            "navigating": self.navigator.busy,
            "feedback": self.feedback.status.value if self.feedback else None,
            "score": self.result.score if self.result else None,
        }

    # ============= Lifecycle =============

    def _now(self, now: Optional[float]) -> float:
        return self._monotonic() if now is None else now

    def wall_time(self) -> datetime:
        """Calendar time used to id and date results and re-attempt tasks."""
        return self._wall_clock()

    def _require_active(self, action: str):
        if self.state is not SessionState.ACTIVE:
            raise SessionStateError(f"Cannot {action}: session is {self.state.value}")

    def start(self, now: Optional[float] = None):
        if self.state is not SessionState.NOT_STARTED:
            raise SessionStateError(f"Cannot start: session is {self.state.value}")
        now = self._now(now)
        self.state = SessionState.ACTIVE
        self.started_at = now
        self.clock.start(now)
        self.navigator.enter(now)
        logger.info(f"Session {self.session_id} started: {len(self.questions)} questions, {self.mode.value}, {self.clock.format_time()}")
        self.notifications.emit(events.SESSION_STARTED, self.snapshot())

    def tick(self, now: Optional[float] = None) -> bool:
        """One clock second. Returns True if this tick finished the session."""
        if self.state is not SessionState.ACTIVE:
            return False
        if self.clock.tick():
            return self._expire(now)
        return False

    def catch_up(self, now: Optional[float] = None) -> bool:
        """Apply clock seconds owed since the last render (re-rendering hosts)."""
        if self.state is not SessionState.ACTIVE:
            return False
        now = self._now(now)
        if self.clock.catch_up(now):
            return self._expire(now)
        return False

    def _expire(self, now: Optional[float]) -> bool:
        if self.navigator.busy:
            logger.info(f"Session {self.session_id}: time up during a transition, finishing once it settles")
            self.finish_pending = True
            return False
        return self.finish(now)

    def pause(self, now: Optional[float] = None):
        if self.state is not SessionState.ACTIVE or self.clock.paused:
            return
        self.navigator.account(self._now(now))
        self.clock.pause()

    def resume(self, now: Optional[float] = None):
        if self.state is not SessionState.ACTIVE or not self.clock.paused:
            return
        now = self._now(now)
        self.clock.resume(now)
        self.navigator.enter(now)

    def submit(self, now: Optional[float] = None) -> bool:
        """Manual submit. A second finish attempt is a no-op."""
        return self.finish(now)

    def finish(self, now: Optional[float] = None) -> bool:
        if self.state is not SessionState.ACTIVE:
            return False
        now = self._now(now)
        self.state = SessionState.FINISHED
        self.finish_pending = False
        self.clock.stop()
        if self.navigator.pending_target is None:
            self.navigator.account(now)
        self.feedback = None
        self.navigator.release()
        self.duration_seconds = int(round(now - self.started_at)) if self.started_at is not None else 0
        logger.info(f"Session {self.session_id} finished after {self.duration_seconds}s")
        self.notifications.emit(events.SESSION_FINISHED, self.snapshot())

        if self.has_key:
            self._grade()
        self.callbacks.on_session_complete(
            self.duration_seconds, self.sheet.solved_count(), self.sheet.skipped_numbers()
        )
        return True

    def close(self):
        """Teardown: the host stops driving this session; late replies are dropped."""
        self.closed = True
        self.clock.stop()
        self._grading_token += 1
        self._grading_in_flight = False

    # ============= Answers =============

    def answer(self, value: Answer, now: Optional[float] = None) -> Optional[Feedback]:
        """
        Record an answer for the current question.

        Returns practice-mode feedback when it was produced; the host then calls
        advance_after_feedback() after feedback.delay seconds.
        """
        self._require_active("answer")
        if self.clock.paused or self.navigator.pending_target is not None:
            return None
        question = self.current_question
        if blocks_input(self.feedback, question.kind):
            return None

        self.sheet.record(question.number, value)
        self.notifications.emit(events.ANSWER_RECORDED, {"question_number": question.number})

        if not feedback_enabled(self.mode):
            return None

        fb = evaluate(question, value, self.answer_key)
        self.feedback = fb
        self.navigator.hold()
        if fb.status is FeedbackStatus.INCORRECT:
            self._remediate(question.number, fb.correct_answer)
        return fb

    def clear_answer(self):
        self._require_active("clear an answer")
        self.sheet.clear(self.current_question.number)

    def _remediate(self, number: int, correct_answer):
        if number in self._remediated:
            return
        if not should_remediate(self.mode, self.answer_key, self.homework):
            return
        task = build_reattempt_task(self.homework, number, correct_answer, self.wall_time())
        self._remediated.add(number)
        logger.info(f"Session {self.session_id}: scheduled re-attempt of Q.{number} for {task.day}")
        self.callbacks.on_save_task(task)

    def advance_after_feedback(self, now: Optional[float] = None) -> NavigationOutcome:
        """
        Feedback delay elapsed: move on, or finish on the last question.
        While paused the feedback stays up; the host retries after resume().
        """
        if self.state is not SessionState.ACTIVE or self.feedback is None or self.clock.paused:
            return NavigationOutcome.REJECTED
        now = self._now(now)
        self.feedback = None
        self.navigator.release()
        if self.finish_pending or self.navigator.is_last:
            self.finish(now)
            return NavigationOutcome.FINISHED
        return self._begin(self.navigator.index + 1, now)

    # ============= Navigation =============

    def _begin(self, target: int, now: float) -> NavigationOutcome:
        if self.clock.paused:
            return NavigationOutcome.REJECTED
        if self.navigator.begin(target, now):
            self.feedback = None
            return NavigationOutcome.MOVING
        return NavigationOutcome.REJECTED

    def next(self, now: Optional[float] = None) -> NavigationOutcome:
        if self.state is not SessionState.ACTIVE or self.navigator.busy or self.clock.paused:
            return NavigationOutcome.REJECTED
        now = self._now(now)
        if self.navigator.is_last:
            self.finish(now)
            return NavigationOutcome.FINISHED
        return self._begin(self.navigator.index + 1, now)

    def previous(self, now: Optional[float] = None) -> NavigationOutcome:
        if self.state is not SessionState.ACTIVE:
            return NavigationOutcome.REJECTED
        return self._begin(self.navigator.index - 1, self._now(now))

    def jump_to(self, index: int, now: Optional[float] = None) -> NavigationOutcome:
        if self.state is not SessionState.ACTIVE:
            return NavigationOutcome.REJECTED
        return self._begin(index, self._now(now))

    def mark_for_review(self, now: Optional[float] = None) -> NavigationOutcome:
        """Toggle the review mark on the current question, then move on."""
        self._require_active("mark for review")
        if self.navigator.busy or self.clock.paused:
            return NavigationOutcome.REJECTED
        number = self.current_question.number
        marked = self.sheet.toggle_mark(number)
        self.notifications.emit(events.QUESTION_MARKED, {"question_number": number, "marked": marked})
        return self.next(now)

    def settle_navigation(self, now: Optional[float] = None) -> bool:
        """Debounce elapsed: land on the target question."""
        now = self._now(now)
        settled = self.navigator.settle(now)
        if self.finish_pending and self.state is SessionState.ACTIVE:
            self.finish(now)
        return settled

    # ============= Results =============

    def _grade(self):
        if self._graded:
            return
        self._graded = True
        result = grade(self.questions, self.sheet, self.answer_key, self.mode, self.syllabus, self.wall_time())
        self._publish(result)

    def _publish(self, result: Result):
        self.result = result
        self.grading_error = ""
        self.callbacks.on_log_result(result)
        self.notifications.emit(events.RESULT_READY, result)

    def submit_answer_key(self, answer_key: AnswerKey) -> Result:
        """Grade a finished session that had no key when it ended."""
        if self.state is not SessionState.FINISHED:
            raise SessionStateError("Answer keys can only be applied to a finished session")
        if self.result is not None:
            return self.result
        if not answer_key:
            raise ValueError("Answer key is empty")
        self.answer_key = dict(answer_key)
        self._grade()
        return self.result

    def begin_external_grading(self) -> int:
        """Claim a grading attempt; the returned token identifies its reply."""
        if self.state is not SessionState.FINISHED:
            raise SessionStateError("AI grading is only available once the session is finished")
        if self.result is not None:
            raise SessionStateError("Session already has a result")
        if self.closed:
            raise SessionStateError("Session is closed")
        self._grading_token += 1
        self._grading_in_flight = True
        self.grading_error = ""
        return self._grading_token

    def complete_external_grading(self, token: int, result: Result) -> bool:
        """Apply an AI grading reply. Stale or late replies are ignored."""
        if token != self._grading_token or self.closed or self.result is not None:
            logger.info(f"Session {self.session_id}: ignoring stale grading reply (token {token})")
            return False
        self._grading_in_flight = False
        self._graded = True
        self._publish(result)
        return True

    def fail_external_grading(self, token: int, error: GradingServiceError) -> bool:
        if token != self._grading_token or self.closed:
            return False
        self._grading_in_flight = False
        self.grading_error = error.message
        logger.warning(f"Session {self.session_id}: AI grading failed: {error.message}")
        self.notifications.emit(events.GRADING_FAILED, error.message)
        return True

    def grade_with_ai(self, adapter, image_base64: str) -> Optional[Result]:
        """Blocking AI grading for synchronous hosts. Returns None on failure (see grading_error)."""
        token = self.begin_external_grading()
        try:
            result = adapter.grade(image_base64, self.sheet, self.syllabus, now=self.wall_time())
        except GradingServiceError as e:
            self.fail_external_grading(token, e)
            return None
        self.complete_external_grading(token, result)
        return self.result

    # ============= Mistake analysis =============

    def tag_mistake(self, question_number: int, topic: str) -> List[str]:
        """Tag a missed question with a topic and push the merged weakness list."""
        if self.result is None or str(question_number) not in self.result.mistakes:
            raise ValueError(f"Question {question_number} is not among this session's mistakes")
        topic = (topic or "").strip()
        if not topic:
            raise ValueError("Topic is empty")
        if topic.lower() not in {w.lower() for w in self.weaknesses}:
            self.weaknesses.append(topic)
        self.callbacks.on_update_weaknesses(list(self.weaknesses))
        return list(self.weaknesses)
