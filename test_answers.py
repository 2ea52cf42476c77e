"""Answer normalization, key parsing and the answer sheet."""
import pytest

from assessment.answers import (
    AnswerSheet,
    answers_match,
    format_answer,
    is_answered,
    normalize_answer,
    parse_answer_key,
)
from assessment.models import QuestionKind


@pytest.mark.parametrize("raw", ["b", "B", " b ", "2", ["c", "a"], ["3", "A", ""], "", None, "12.5"])
def test_normalize_is_idempotent(raw):
    once = normalize_answer(raw)
    assert normalize_answer(once) == once


def test_normalize_case_and_digits():
    assert normalize_answer("b") == normalize_answer("B") == "B"
    assert normalize_answer("2") == "B"
    assert normalize_answer("5") == "5"
    assert normalize_answer(None) == ""


def test_multi_choice_order_does_not_matter():
    assert normalize_answer(["C", "A"]) == normalize_answer(["A", "C"]) == ["A", "C"]
    assert answers_match(QuestionKind.MULTI_CHOICE, ["C", "A"], ["A", "C"])
    assert answers_match(QuestionKind.MULTI_CHOICE, ["c", "1"], "A,C")
    assert not answers_match(QuestionKind.MULTI_CHOICE, ["A"], ["A", "C"])


def test_scalar_matching():
    assert answers_match(QuestionKind.MCQ, "1", "a")
    assert answers_match(QuestionKind.NUM, " 12.5 ", "12.5")
    assert not answers_match(QuestionKind.NUM, "12.50", "12.5")
    assert not answers_match(QuestionKind.MCQ, "A", None)
    assert not answers_match(QuestionKind.MCQ, "", "A")


def test_is_answered():
    assert not is_answered(None)
    assert not is_answered("  ")
    assert not is_answered([])
    assert not is_answered([" "])
    assert is_answered(["A"])
    assert is_answered("0")


def test_format_answer():
    assert format_answer(["A", "C"]) == "A, C"
    assert format_answer(None) == ""
    assert format_answer("B") == "B"


def test_parse_json_key():
    key = parse_answer_key('{"1": "A", "2": ["a", "c"], "3": ""}')
    assert key == {"1": "A", "2": ["a", "c"]}


def test_parse_invalid_json_key():
    assert parse_answer_key("{not json") == {}
    assert parse_answer_key('{"1": ') == {}


def test_parse_pair_key():
    key = parse_answer_key("1:A, 2=b; 3:[A, C]\n4: 12.5\nQ5:D\n1:D")
    assert key == {"1": "A", "2": "b", "3": ["A", "C"], "4": "12.5"}


def test_parse_bare_answer_list():
    assert parse_answer_key("A C B") == {"1": "A", "2": "C", "3": "B"}


@pytest.mark.parametrize("text", [None, "", "  \n "])
def test_parse_blank_key(text):
    assert parse_answer_key(text) == {}


def test_sheet_rejects_duplicate_numbers():
    with pytest.raises(ValueError):
        AnswerSheet([1, 2, 1])


def test_sheet_answers_and_skips():
    sheet = AnswerSheet([3, 7, 9])
    sheet.record(3, "A")
    sheet.record(7, ("B", "D"))
    sheet.record(9, "C")
    sheet.clear(9)
    assert sheet.answer_for(7) == ["B", "D"]
    assert sheet.answer_for(9) == ""
    assert sheet.answers() == {3: "A", 7: ["B", "D"]}
    assert sheet.solved_count() == 2
    assert sheet.skipped_numbers() == [9]
    assert sheet.answer_for(100) is None
    with pytest.raises(KeyError):
        sheet.record(100, "A")


def test_sheet_timings_only_for_visited():
    sheet = AnswerSheet([1, 2, 3])
    sheet.add_time(1, 12.4)
    sheet.add_time(1, 3.6)
    sheet.add_time(3, 0)
    assert sheet.timings() == {1: 16, 3: 0}
    assert sheet.was_visited(3)
    assert not sheet.was_visited(2)


def test_sheet_review_marks_toggle():
    sheet = AnswerSheet([1, 2])
    assert sheet.toggle_mark(2) is True
    assert sheet.marked() == [2]
    assert sheet.toggle_mark(2) is False
    assert sheet.marked() == []
