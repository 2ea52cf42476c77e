"""
Re-attempt tasks for questions answered wrong during homework practice.
Callers own de-duplication across repeated grading passes.
"""
from datetime import datetime, timedelta
from typing import Optional

from engine import REATTEMPT_MARKER, REATTEMPT_TIME
from assessment.answers import format_answer
from assessment.models import Answer, AnswerKey, HomeworkSource, PracticeMode, ReattemptTask


def is_reattempt(source: HomeworkSource) -> bool:
    return source.title.startswith(REATTEMPT_MARKER)


def should_remediate(
    mode: PracticeMode,
    key: Optional[AnswerKey],
    source: Optional[HomeworkSource],
) -> bool:
    """A wrong answer earns a re-attempt only in keyed homework practice that is not itself a re-attempt."""
    if mode is PracticeMode.MOCK_EXAM or not key or source is None:
        return False
    return not is_reattempt(source)


def build_reattempt_task(
    source: HomeworkSource,
    question_number: int,
    correct_answer: Optional[Answer],
    now: datetime,
) -> ReattemptTask:
    """One follow-up task for tomorrow evening, carrying the source's subject tag."""
    tomorrow = now + timedelta(days=1)
    return ReattemptTask(
        id=f"A{int(now.timestamp() * 1000)}{question_number}",
        day=tomorrow.strftime("%A").upper(),
        time=REATTEMPT_TIME,
        title=f"{REATTEMPT_MARKER} Q.{question_number} of: {source.title}",
        focus_detail=(
            "You got this question wrong. Try solving it again. "
            f"Correct answer was: {format_answer(correct_answer)}."
        ),
        subject_tag=source.subject_tag,
    )
