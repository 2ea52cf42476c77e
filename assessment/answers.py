"""
Answer normalization, answer-key parsing and the per-session answer sheet.

Answers are either a single string (MCQ/NUM) or a list of option letters
(MULTI_CHOICE). Normalization makes equivalent inputs compare equal:
case, surrounding whitespace, digit codes 1-4 and selection order.
"""
import json
import logging
import re
from typing import Dict, List, Optional, Sequence

from assessment.models import Answer, AnswerKey, QuestionKind

logger = logging.getLogger(__name__)

DIGIT_TO_OPTION = {"1": "A", "2": "B", "3": "C", "4": "D"}
KEY_SEPARATORS_RE = re.compile(r"[:=,;\n]")
KEY_PAIR_RE = re.compile(r"([^:=,;\n\[\]]+)[:=]\s*(\[[^\]]*\]|[^,;\n]+)")


def _normalize_scalar(value) -> str:
    upper = str(value).strip().upper()
    return DIGIT_TO_OPTION.get(upper, upper)


def normalize_answer(answer: Optional[Answer]):
    """
    Canonicalize an answer for comparison.

    None/"" -> "", list -> element-wise normalized and sorted,
    scalar -> upper-cased, trimmed, "1".."4" mapped to "A".."D".
    Idempotent: normalize_answer(normalize_answer(x)) == normalize_answer(x).
    """
    if answer is None:
        return ""
    if isinstance(answer, (list, tuple)):
        return sorted(_normalize_scalar(a) for a in answer if str(a).strip())
    if str(answer).strip() == "":
        return ""
    return _normalize_scalar(answer)


def is_answered(value: Optional[Answer]) -> bool:
    """A cleared entry ("" or []) counts as unanswered."""
    if value is None:
        return False
    if isinstance(value, (list, tuple)):
        return any(str(v).strip() for v in value)
    return str(value).strip() != ""


def _as_choice_list(value: Optional[Answer]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [part for part in str(value).split(",") if part.strip()]


def _as_scalar(value: Optional[Answer]) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return "" if value is None else str(value)


def answers_match(kind: QuestionKind, user: Optional[Answer], key: Optional[Answer]) -> bool:
    """Compare a user answer with a key entry under the rules of the question kind."""
    if not is_answered(user) or not is_answered(key):
        return False
    if kind is QuestionKind.MULTI_CHOICE:
        return normalize_answer(_as_choice_list(user)) == normalize_answer(_as_choice_list(key))
    if kind is QuestionKind.MCQ or kind is QuestionKind.NUM:
        return normalize_answer(_as_scalar(user)) == normalize_answer(_as_scalar(key))
    raise ValueError(f"Unhandled question kind: {kind}")


def format_answer(value: Optional[Answer]) -> str:
    """Human-readable answer: lists comma-joined."""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return "" if value is None else str(value)


# ============= Answer keys =============

def _key_value(raw) -> Answer:
    if isinstance(raw, (list, tuple)):
        return [str(v).strip() for v in raw if str(v).strip()]
    return str(raw).strip()


def _parse_text_value(raw: str) -> Answer:
    raw = raw.strip()
    if raw.startswith("[") and raw.endswith("]"):
        return [part.strip() for part in raw[1:-1].split(",") if part.strip()]
    return raw


def parse_answer_key(text: Optional[str]) -> AnswerKey:
    """
    Parse an answer key from free text or an uploaded file.

    Accepted forms:
        {"1": "A", "3": ["A", "C"]}        JSON object
        1:A, 2=B; 3:[A,C]                  key[:=]value pairs, newline/comma/semicolon separated
        A C B D                            bare answers, numbered from 1

    Returns an empty dict when nothing usable is found.
    """
    if not text or not text.strip():
        return {}
    text = text.strip()

    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Answer key is not valid JSON: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning("Answer key JSON is not a key-value object")
            return {}
        key = {}
        for q, a in data.items():
            value = _key_value(a)
            if is_answered(value):
                key[str(q).strip()] = value
        return key

    if KEY_SEPARATORS_RE.search(text):
        key = {}
        for m in KEY_PAIR_RE.finditer(text):
            q = m.group(1).strip()
            if not q.isdigit():
                logger.debug("Skipping answer key entry with non-numeric question %r", q)
                continue
            value = _parse_text_value(m.group(2))
            if is_answered(value) and q not in key:
                key[q] = value
        return key

    return {str(i + 1): a for i, a in enumerate(text.split())}


# ============= Answer sheet =============

class AnswerSheet:
    """
    Answers, timings and review marks for one session.

    Stored as arrays indexed by sequence position, with a lookup from
    question number to position.
    """

    def __init__(self, numbers: Sequence[int]):
        self.numbers: List[int] = list(numbers)
        self._index: Dict[int, int] = {}
        for i, n in enumerate(self.numbers):
            if n in self._index:
                raise ValueError(f"Question {n} appears more than once in the sequence")
            self._index[n] = i
        size = len(self.numbers)
        self._answers: List[Optional[Answer]] = [None] * size
        self._seconds: List[int] = [0] * size
        self._visited: List[bool] = [False] * size
        self._marked: List[bool] = [False] * size

    def __len__(self) -> int:
        return len(self.numbers)

    def index_of(self, number: int) -> Optional[int]:
        return self._index.get(number)

    def _require(self, number: int) -> int:
        idx = self._index.get(number)
        if idx is None:
            raise KeyError(f"Question {number} is not part of this session")
        return idx

    # --- answers ---

    def record(self, number: int, value: Optional[Answer]):
        idx = self._require(number)
        self._answers[idx] = list(value) if isinstance(value, (list, tuple)) else value

    def clear(self, number: int):
        self._answers[self._require(number)] = ""

    def answer_for(self, number: int) -> Optional[Answer]:
        idx = self._index.get(number)
        return None if idx is None else self._answers[idx]

    def is_answered(self, number: int) -> bool:
        return is_answered(self.answer_for(number))

    def answers(self) -> Dict[int, Answer]:
        """Answered questions only, in sequence order."""
        return {n: a for n, a in zip(self.numbers, self._answers) if is_answered(a)}

    def solved_count(self) -> int:
        return sum(1 for a in self._answers if is_answered(a))

    def skipped_numbers(self) -> List[int]:
        return [n for n, a in zip(self.numbers, self._answers) if not is_answered(a)]

    # --- timings ---

    def add_time(self, number: int, seconds: float):
        idx = self._require(number)
        self._seconds[idx] += max(0, int(round(seconds)))
        self._visited[idx] = True

    def timing(self, number: int) -> int:
        idx = self._index.get(number)
        return 0 if idx is None else self._seconds[idx]

    def was_visited(self, number: int) -> bool:
        idx = self._index.get(number)
        return idx is not None and self._visited[idx]

    def timings(self) -> Dict[int, int]:
        return {n: s for n, s, v in zip(self.numbers, self._seconds, self._visited) if v}

    # --- review marks ---

    def toggle_mark(self, number: int) -> bool:
        idx = self._require(number)
        self._marked[idx] = not self._marked[idx]
        return self._marked[idx]

    def is_marked(self, number: int) -> bool:
        idx = self._index.get(number)
        return idx is not None and self._marked[idx]

    def marked(self) -> List[int]:
        return [n for n, m in zip(self.numbers, self._marked) if m]
