"""
Fire-and-forget notifications (sounds, vibration, analytics) emitted by the
session. Handlers run synchronously; a failing handler is logged and the
session carries on.
"""
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

SESSION_STARTED = "session_started"
ANSWER_RECORDED = "answer_recorded"
QUESTION_MARKED = "question_marked"
SESSION_FINISHED = "session_finished"
RESULT_READY = "result_ready"
GRADING_FAILED = "grading_failed"


class EventBus:
    def __init__(self) -> None:
        self._subs: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> None:
        self._subs.setdefault(event, []).append(handler)

    def emit(self, event: str, payload: Any = None) -> None:
        for h in self._subs.get(event, []):
            try:
                h(payload)
            except Exception:
                logger.exception(f"Notification handler for {event} failed")
