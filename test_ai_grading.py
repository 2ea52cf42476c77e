"""AI grading client and adapter against a mocked HTTP session."""
from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests

from assessment import ai_grading
from assessment.ai_grading import (
    ANALYZE_TEST_PATH,
    ExternalGradingAdapter,
    GradingServiceClient,
    encode_image,
    flatten_answers,
    result_from_analysis,
)
from assessment.answers import AnswerSheet
from assessment.errors import GradingServiceError

NOW = datetime(2024, 3, 4, 18, 30)

ANALYSIS = {
    "score": 180,
    "totalMarks": 300,
    "incorrectQuestionNumbers": [2, "5"],
    "subjectTimings": {"Physics": 1200},
    "chapterScores": {"Kinematics": {"correct": 3, "total": 4}},
    "aiSuggestions": "Revise rotational dynamics.",
}


def _response(status=200, body=None, text=""):
    r = MagicMock()
    r.status_code = status
    r.ok = status < 400
    r.content = b"x" if body is not None or text else b""
    r.text = text
    if body is None:
        r.json.side_effect = ValueError("no json")
    else:
        r.json.return_value = body
    return r


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(ai_grading.time, "sleep", lambda _s: None)


@pytest.fixture
def http():
    s = MagicMock()
    s.headers = {}
    return s


def _client(http, retries=2):
    return GradingServiceClient(base_url="http://grader.test/api/", token="tok", timeout=5, max_retries=retries, session=http)


def test_client_sets_auth_header_and_posts_json(http):
    http.post.return_value = _response(body={"ok": True})
    assert _client(http).post("/ai/ping", {"a": 1}) == {"ok": True}
    assert http.headers["Authorization"] == "Bearer tok"
    http.post.assert_called_once_with("http://grader.test/api/ai/ping", json={"a": 1}, timeout=5)


def test_unauthorized_is_not_retried(http):
    http.post.return_value = _response(401, body={"error": "bad token"})
    with pytest.raises(GradingServiceError) as exc:
        _client(http).post("/x", {})
    assert exc.value.message == "Unauthorized"
    assert exc.value.status_code == 401
    assert http.post.call_count == 1


def test_client_error_uses_server_message(http):
    http.post.return_value = _response(400, body={"error": "Image too blurry"})
    with pytest.raises(GradingServiceError, match="Image too blurry"):
        _client(http).post("/x", {})


def test_server_errors_are_retried(http):
    http.post.side_effect = [_response(503, text="busy"), _response(body=ANALYSIS)]
    assert _client(http).post("/x", {})["score"] == 180
    assert http.post.call_count == 2


def test_network_errors_exhaust_retries(http):
    http.post.side_effect = requests.ConnectionError("down")
    with pytest.raises(GradingServiceError) as exc:
        _client(http, retries=3).post("/x", {})
    assert exc.value.retryable
    assert http.post.call_count == 3


def test_unparseable_body(http):
    http.post.return_value = _response(200, text="<html>")
    with pytest.raises(GradingServiceError, match="Failed to parse server response."):
        _client(http).post("/x", {})


def test_non_object_body(http):
    http.post.return_value = _response(200, body=[1, 2])
    with pytest.raises(GradingServiceError, match="Failed to parse server response."):
        _client(http).post("/x", {})


def test_flatten_answers_sorts_multi_select():
    assert flatten_answers({1: ["C", "A"], 2: "12"}) == {"1": "A,C", "2": "12"}


def test_encode_image():
    assert encode_image(b"\xff\xd8jpeg") == "/9hqcGVn"


def test_result_from_analysis():
    result = result_from_analysis(ANALYSIS, "Mock 3", {1: 40}, NOW)
    assert result.score == "180/300"
    assert result.mistakes == ["2", "5"]
    assert result.analysis.incorrect_question_numbers == [2, 5]
    assert result.analysis.ai_suggestions == "Revise rotational dynamics."
    assert result.to_dict()["analysis"]["chapter_scores"] == {"Kinematics": {"correct": 3, "total": 4}}


def test_incomplete_analysis_is_rejected():
    with pytest.raises(GradingServiceError):
        result_from_analysis({"score": 10}, "", {}, NOW)


def test_adapter_sends_answers_and_timings():
    client = MagicMock()
    client.post.return_value = ANALYSIS
    sheet = AnswerSheet([1, 2, 3])
    sheet.record(1, "A")
    sheet.record(2, ["D", "B"])
    sheet.add_time(1, 30)
    result = ExternalGradingAdapter(client).grade("aW1n", sheet, "Mock 3", now=NOW)
    client.post.assert_called_once_with(
        ANALYZE_TEST_PATH,
        {"imageBase64": "aW1n", "userAnswers": {"1": "A", "2": "B,D"}, "timings": {"1": 30}, "syllabus": "Mock 3"},
    )
    assert result.timings == {1: 30}


def test_adapter_needs_an_image():
    client = MagicMock()
    with pytest.raises(GradingServiceError):
        ExternalGradingAdapter(client).grade("", AnswerSheet([1]), "")
    client.post.assert_not_called()


def test_analyze_mistake():
    client = MagicMock()
    client.post.return_value = {"mistake_topic": " Friction ", "explanation": "Static vs kinetic."}
    out = ExternalGradingAdapter(client).analyze_mistake(4, "I used kinetic friction")
    assert out == {"mistake_topic": "Friction", "explanation": "Static vs kinetic."}
    assert client.post.call_args[0][1] == {"prompt": "Question 4: I used kinetic friction"}
    client.post.return_value = {"explanation": "?"}
    with pytest.raises(GradingServiceError):
        ExternalGradingAdapter(client).analyze_mistake(4, "?")
