"""
Question set resolution: range expressions -> ordered question numbers -> Questions.
"""
import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from engine import MAX_RANGE_SPAN
from assessment.answers import DIGIT_TO_OPTION
from assessment.models import AnswerKey, PracticeMode, Question, QuestionKind

logger = logging.getLogger(__name__)

TOKEN_SEPARATOR_RE = re.compile(r"[,;]")
SINGLE_RE = re.compile(r"^\d+$")
RANGE_RE = re.compile(r"^(\d+)-(\d+)$")

# JEE Mains paper layout by position: (end index exclusive, section, kind)
MOCK_EXAM_LAYOUT: List[Tuple[int, str, QuestionKind]] = [
    (20, "Physics", QuestionKind.MCQ),
    (25, "Physics", QuestionKind.NUM),
    (45, "Chemistry", QuestionKind.MCQ),
    (50, "Chemistry", QuestionKind.NUM),
    (70, "Maths", QuestionKind.MCQ),
]
MOCK_EXAM_TAIL = ("Maths", QuestionKind.NUM)
MCQ_OPTIONS = ("A", "B", "C", "D")
PLACEHOLDER_TEXT = "Question text not available."


def parse_question_ranges(expression: Optional[str]) -> List[int]:
    """
    Turn "1-10, 15, 20-25" into an ordered list of distinct question numbers.

    Tokens are single integers or inclusive start-end ranges, separated by
    commas (semicolons also accepted); whitespace is ignored. Numbers keep
    the written order of the tokens, ascending inside a range, first
    occurrence wins. Any malformed token makes the whole result empty.
    """
    if not expression or not expression.strip():
        return []
    compact = re.sub(r"\s+", "", expression)
    numbers: List[int] = []
    seen = set()
    for token in TOKEN_SEPARATOR_RE.split(compact):
        if not token:
            continue
        if SINGLE_RE.match(token):
            start = end = int(token)
        else:
            m = RANGE_RE.match(token)
            if not m:
                logger.debug(f"Malformed range token {token!r} in {expression!r}")
                return []
            start, end = int(m.group(1)), int(m.group(2))
            if start > end or end - start >= MAX_RANGE_SPAN:
                logger.debug(f"Invalid range {token!r} in {expression!r}")
                return []
        for n in range(start, end + 1):
            if n not in seen:
                seen.add(n)
                numbers.append(n)
    return numbers


def mock_exam_slot(index: int) -> Tuple[str, QuestionKind]:
    """Section and kind of the question at this position of a mock paper."""
    for end, section, kind in MOCK_EXAM_LAYOUT:
        if index < end:
            return section, kind
    return MOCK_EXAM_TAIL


def kind_from_key(entry) -> QuestionKind:
    """Derive a kind from an answer-key entry. Only used when building placeholders."""
    if isinstance(entry, (list, tuple)):
        return QuestionKind.MULTI_CHOICE
    value = str(entry).strip().upper()
    if value in MCQ_OPTIONS or value in DIGIT_TO_OPTION:
        return QuestionKind.MCQ
    return QuestionKind.NUM


def build_questions(
    numbers: Iterable[int],
    mode: PracticeMode,
    subject: str = "",
    questions: Optional[Iterable] = None,
    key: Optional[AnswerKey] = None,
) -> List[Question]:
    """
    Resolve the ordered, immutable question list for a session.

    An explicit question list (Question objects or {number, text, options, type}
    dicts) wins over bare numbers. Placeholder questions get their kind once,
    here: mock papers follow the JEE layout, custom sets follow the answer key
    where it has an entry and default to MCQ.
    """
    resolved: List[Question] = []
    seen = set()
    if questions:
        for raw in questions:
            q = raw if isinstance(raw, Question) else Question.from_dict(raw, section=subject)
            if q.number in seen:
                logger.warning(f"Dropping duplicate question {q.number}")
                continue
            seen.add(q.number)
            resolved.append(q)
        return resolved

    key = key or {}
    for number in numbers:
        if number in seen:
            continue
        seen.add(number)
        if mode is PracticeMode.MOCK_EXAM:
            section, kind = mock_exam_slot(len(resolved))
        else:
            section = subject or "General"
            entry = key.get(str(number))
            kind = kind_from_key(entry) if entry not in (None, "", []) else QuestionKind.MCQ
        options = () if kind is QuestionKind.NUM else MCQ_OPTIONS
        resolved.append(Question(number=number, text=PLACEHOLDER_TEXT, options=options, kind=kind, section=section))
    return resolved


def sections(questions: List[Question]) -> List[Dict]:
    """Contiguous runs of the same section: [{label, start, end}] with end exclusive."""
    out: List[Dict] = []
    for i, q in enumerate(questions):
        label = q.section or "General"
        if out and out[-1]["label"] == label:
            out[-1]["end"] = i + 1
        else:
            out.append({"label": label, "start": i, "end": i + 1})
    return out
