"""
Session data model: question kinds, practice modes, session states, results.
Plain dataclasses so the engine stays independent of any UI binding.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

Answer = Union[str, List[str]]
AnswerKey = Dict[str, Answer]


class QuestionKind(Enum):
    MCQ = "MCQ"
    NUM = "NUM"
    MULTI_CHOICE = "MULTI_CHOICE"

    @classmethod
    def parse(cls, value) -> "QuestionKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown question kind: {value!r}")


class PracticeMode(Enum):
    CUSTOM = "custom"
    MOCK_EXAM = "jeeMains"


class SessionState(Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    FINISHED = "finished"


class FeedbackStatus(Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    ANSWERED = "answered"


@dataclass(frozen=True)
class Question:
    number: int
    text: str = ""
    options: Tuple[str, ...] = ()
    kind: QuestionKind = QuestionKind.MCQ
    section: str = ""

    @classmethod
    def from_dict(cls, raw: Dict, section: str = "") -> "Question":
        """Build from an app/API payload: {number, text, options, type}."""
        return cls(
            number=int(raw["number"]),
            text=raw.get("text") or "",
            options=tuple(raw.get("options") or ()),
            kind=QuestionKind.parse(raw.get("type") or raw.get("kind") or "MCQ"),
            section=raw.get("section") or section,
        )


@dataclass(frozen=True)
class Feedback:
    status: FeedbackStatus
    delay: float
    correct_answer: Optional[Answer] = None


@dataclass
class Analysis:
    subject_timings: Dict[str, float] = field(default_factory=dict)
    chapter_scores: Dict[str, Dict] = field(default_factory=dict)
    ai_suggestions: str = ""
    incorrect_question_numbers: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "subject_timings": dict(self.subject_timings),
            "chapter_scores": dict(self.chapter_scores),
            "ai_suggestions": self.ai_suggestions,
            "incorrect_question_numbers": list(self.incorrect_question_numbers),
        }


@dataclass
class Result:
    id: str
    date: str
    score: str
    mistakes: List[str]
    syllabus: str
    timings: Dict[int, int]
    analysis: Optional[Analysis] = None

    def to_dict(self) -> Dict:
        row = {
            "id": self.id,
            "date": self.date,
            "score": self.score,
            "mistakes": list(self.mistakes),
            "syllabus": self.syllabus,
            "timings": {str(k): v for k, v in self.timings.items()},
        }
        if self.analysis is not None:
            row["analysis"] = self.analysis.to_dict()
        return row


@dataclass(frozen=True)
class HomeworkSource:
    """The homework task a session was launched from."""
    id: str
    title: str
    subject_tag: str
    q_ranges: str = ""
    answers: Optional[AnswerKey] = None

    @classmethod
    def from_dict(cls, raw: Dict) -> "HomeworkSource":
        title = raw.get("title") or (raw.get("CARD_TITLE") or {}).get("EN") or ""
        subject = raw.get("subject_tag") or (raw.get("SUBJECT_TAG") or {}).get("EN") or ""
        return cls(
            id=str(raw.get("id") or raw.get("ID") or ""),
            title=title,
            subject_tag=subject,
            q_ranges=raw.get("q_ranges") or raw.get("Q_RANGES") or "",
            answers=raw.get("answers"),
        )


@dataclass(frozen=True)
class ReattemptTask:
    id: str
    day: str
    time: str
    title: str
    focus_detail: str
    subject_tag: str
    type: str = "ACTION"
    sub_type: str = "ANALYSIS"
    is_user_created: bool = True

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type,
            "sub_type": self.sub_type,
            "is_user_created": self.is_user_created,
            "day": self.day,
            "time": self.time,
            "title": self.title,
            "focus_detail": self.focus_detail,
            "subject_tag": self.subject_tag,
        }
