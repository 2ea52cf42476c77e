"""
Grading engine: net marks, mistakes and per-question outcome under
mode-specific negative marking.

Marking (see engine.py):
    correct                      +4
    wrong, MCQ, mock exam        -1
    skipped, MCQ, mock exam      -1
    anything else                 0
NUM and MULTI_CHOICE questions are never penalized, matching real exam
conventions. Custom practice never penalizes.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from engine import CORRECT_SCORE, INCORRECT_SCORE, MOCK_EXAM_TOTAL, SKIPPED_SCORE
from assessment.answers import AnswerSheet, answers_match, is_answered
from assessment.models import AnswerKey, PracticeMode, Question, QuestionKind, Result

logger = logging.getLogger(__name__)

CORRECT = "correct"
INCORRECT = "incorrect"
UNANSWERED = "unanswered"


@dataclass
class GradeReport:
    net_marks: int
    total_marks: int
    mistakes: List[int] = field(default_factory=list)
    outcomes: Dict[int, str] = field(default_factory=dict)

    @property
    def score(self) -> str:
        return f"{self.net_marks}/{self.total_marks}"

    @property
    def correct_count(self) -> int:
        return sum(1 for o in self.outcomes.values() if o == CORRECT)


def total_marks(mode: PracticeMode, question_count: int) -> int:
    if mode is PracticeMode.MOCK_EXAM:
        return MOCK_EXAM_TOTAL
    return CORRECT_SCORE * question_count


def penalty_applies(kind: QuestionKind, mode: PracticeMode) -> bool:
    """Negative marking is for MCQs in mock exams only."""
    if mode is not PracticeMode.MOCK_EXAM:
        return False
    if kind is QuestionKind.MCQ:
        return True
    if kind is QuestionKind.NUM or kind is QuestionKind.MULTI_CHOICE:
        return False
    raise ValueError(f"Unhandled question kind: {kind}")


def grade_questions(
    questions: Sequence[Question],
    sheet: AnswerSheet,
    key: AnswerKey,
    mode: PracticeMode,
) -> GradeReport:
    """Grade every question in sequence order. Pure: depends only on its arguments."""
    if not key:
        raise ValueError("grade_questions needs a non-empty answer key")

    report = GradeReport(net_marks=0, total_marks=total_marks(mode, len(questions)))
    for q in questions:
        user = sheet.answer_for(q.number)
        if not is_answered(user):
            report.outcomes[q.number] = UNANSWERED
            report.mistakes.append(q.number)
            report.net_marks += INCORRECT_SCORE if penalty_applies(q.kind, mode) else SKIPPED_SCORE
            continue

        if answers_match(q.kind, user, key.get(str(q.number))):
            report.outcomes[q.number] = CORRECT
            report.net_marks += CORRECT_SCORE
        else:
            report.outcomes[q.number] = INCORRECT
            report.mistakes.append(q.number)
            if penalty_applies(q.kind, mode):
                report.net_marks += INCORRECT_SCORE
    return report


def result_id(now: datetime) -> str:
    return f"R{int(now.timestamp() * 1000)}"


def grade(
    questions: Sequence[Question],
    sheet: AnswerSheet,
    key: AnswerKey,
    mode: PracticeMode,
    syllabus: str = "",
    now: Optional[datetime] = None,
) -> Result:
    """
    Grade a finished session into a Result.

    Args:
        questions: Ordered question sequence of the session
        sheet: Answers and timings captured during the session
        key: Non-empty answer key (question number as string -> answer)
        mode: Practice mode; selects total marks and negative marking
        syllabus: Label carried into the result
        now: Grading time; id and date derive from it

    Returns:
        Result with score "<net>/<total>" and mistakes as strings
    """
    now = now or datetime.utcnow()
    report = grade_questions(questions, sheet, key, mode)
    logger.info(f"Graded {len(questions)} questions ({mode.value}): score={report.score}, correct={report.correct_count}, mistakes={len(report.mistakes)}")
    return Result(
        id=result_id(now),
        date=now.date().isoformat(),
        score=report.score,
        mistakes=[str(n) for n in report.mistakes],
        syllabus=syllabus,
        timings=sheet.timings(),
    )
