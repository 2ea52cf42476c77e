"""Immediate per-answer feedback for practice sessions (never in mock exams)."""
from typing import Optional

from engine import FEEDBACK_DELAY_GRADED, FEEDBACK_DELAY_NEUTRAL
from assessment.answers import answers_match, is_answered
from assessment.models import (
    Answer, AnswerKey, Feedback, FeedbackStatus, PracticeMode, Question, QuestionKind,
)


def feedback_enabled(mode: PracticeMode) -> bool:
    return mode is not PracticeMode.MOCK_EXAM


def evaluate(question: Question, value: Answer, key: Optional[AnswerKey]) -> Feedback:
    """
    One-shot check of a single submission. Without a key entry the feedback
    is neutral and waits longer before auto-advancing.
    """
    entry = (key or {}).get(str(question.number))
    if not is_answered(entry):
        return Feedback(status=FeedbackStatus.ANSWERED, delay=FEEDBACK_DELAY_NEUTRAL)
    status = FeedbackStatus.CORRECT if answers_match(question.kind, value, entry) else FeedbackStatus.INCORRECT
    return Feedback(status=status, delay=FEEDBACK_DELAY_GRADED, correct_answer=entry)


def blocks_input(feedback: Optional[Feedback], kind: QuestionKind) -> bool:
    """While feedback is up only multi-choice questions accept more selections."""
    if feedback is None:
        return False
    if kind is QuestionKind.MULTI_CHOICE:
        return False
    if kind is QuestionKind.MCQ or kind is QuestionKind.NUM:
        return True
    raise ValueError(f"Unhandled question kind: {kind}")
