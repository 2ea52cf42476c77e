"""
External grading: when a session has no structured answer key, a photo of the
printed key is sent with the captured answers to the AI analysis service,
which returns the score breakdown.
"""
import base64
import logging
import time
from datetime import datetime
from typing import Dict, Optional

import requests

from assessment import config
from assessment.answers import AnswerSheet
from assessment.errors import GradingServiceError
from assessment.grading import result_id
from assessment.models import Analysis, Answer, Result

logger = logging.getLogger(__name__)

ANALYZE_TEST_PATH = "/ai/analyze-test-results"
ANALYZE_MISTAKE_PATH = "/ai/analyze-mistake"
REQUIRED_FIELDS = ("score", "totalMarks", "incorrectQuestionNumbers")
DEFAULT_ERROR = "Failed to grade answers. Please try again."


def encode_image(data: bytes) -> str:
    """Base64 body of an uploaded image, as the service expects it."""
    return base64.b64encode(data).decode("ascii")


def flatten_answers(answers: Dict[int, Answer]) -> Dict[str, str]:
    """Multi-select answers go over the wire sorted and comma-joined."""
    out = {}
    for number, answer in answers.items():
        if isinstance(answer, (list, tuple)):
            out[str(number)] = ",".join(sorted(str(a) for a in answer))
        else:
            out[str(number)] = str(answer)
    return out


class GradingServiceClient:
    """Thin HTTP client for the AI analysis endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or config.GRADING_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.GRADING_TIMEOUT
        self.max_retries = max(1, max_retries if max_retries is not None else config.GRADING_MAX_RETRIES)
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        token = token or config.GRADING_API_TOKEN
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP error! status: {response.status_code}"
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return f"HTTP error! status: {response.status_code}"

    def post(self, path: str, payload: Dict) -> Dict:
        """POST JSON with retry on network errors and 5xx. Raises GradingServiceError."""
        url = f"{self.base_url}{path}"
        last_error = DEFAULT_ERROR
        for attempt in range(self.max_retries):
            try:
                response = self.session.post(url, json=payload, timeout=self.timeout)
            except requests.RequestException as e:
                logger.warning(f"Grading request failed (attempt {attempt + 1}/{self.max_retries}): {e}")
                last_error = "Could not reach the grading service. Please try again."
            else:
                if response.status_code == 401:
                    raise GradingServiceError("Unauthorized", status_code=401)
                if response.status_code < 500 and not response.ok:
                    raise GradingServiceError(self._error_message(response), status_code=response.status_code)
                if response.ok:
                    try:
                        data = response.json() if response.content else {}
                    except ValueError:
                        raise GradingServiceError("Failed to parse server response.", status_code=response.status_code)
                    if not isinstance(data, dict):
                        raise GradingServiceError("Failed to parse server response.", status_code=response.status_code)
                    return data
                last_error = self._error_message(response)
                logger.warning(f"Grading service error {response.status_code} (attempt {attempt + 1}/{self.max_retries}): {last_error}")
            if attempt < self.max_retries - 1:
                time.sleep(1 + attempt)
        raise GradingServiceError(last_error)


def result_from_analysis(payload: Dict, syllabus: str, timings: Dict[int, int], now: datetime) -> Result:
    missing = [f for f in REQUIRED_FIELDS if f not in payload]
    if missing:
        logger.error(f"Grading response missing fields: {missing}")
        raise GradingServiceError("The grading service returned an incomplete analysis. Please try again.")
    try:
        incorrect = [int(n) for n in payload.get("incorrectQuestionNumbers") or []]
    except (TypeError, ValueError):
        raise GradingServiceError("The grading service returned invalid question numbers. Please try again.")
    analysis = Analysis(
        subject_timings=dict(payload.get("subjectTimings") or {}),
        chapter_scores=dict(payload.get("chapterScores") or {}),
        ai_suggestions=payload.get("aiSuggestions") or "",
        incorrect_question_numbers=incorrect,
    )
    return Result(
        id=result_id(now),
        date=now.date().isoformat(),
        score=f"{payload['score']}/{payload['totalMarks']}",
        mistakes=[str(n) for n in incorrect],
        syllabus=syllabus,
        timings=dict(timings),
        analysis=analysis,
    )


class ExternalGradingAdapter:
    def __init__(self, client: Optional[GradingServiceClient] = None):
        self.client = client or GradingServiceClient()

    def build_request(self, image_base64: str, sheet: AnswerSheet, syllabus: str) -> Dict:
        return {
            "imageBase64": image_base64,
            "userAnswers": flatten_answers(sheet.answers()),
            "timings": {str(n): s for n, s in sheet.timings().items()},
            "syllabus": syllabus,
        }

    def grade(self, image_base64: str, sheet: AnswerSheet, syllabus: str, now: Optional[datetime] = None) -> Result:
        """
        Grade a key-less session from a photo of the answer key.

        Raises:
            GradingServiceError: on any failure; nothing partial is returned
        """
        if not image_base64:
            raise GradingServiceError("Please capture the answer key first.")
        payload = self.client.post(ANALYZE_TEST_PATH, self.build_request(image_base64, sheet, syllabus))
        result = result_from_analysis(payload, syllabus, sheet.timings(), now or datetime.utcnow())
        logger.info(f"AI grading returned score {result.score} with {len(result.mistakes)} mistakes")
        return result

    def analyze_mistake(self, question_number: int, prompt: str, image_base64: Optional[str] = None) -> Dict:
        """Topic and explanation for one missed question: {mistake_topic, explanation}."""
        body = {"prompt": f"Question {question_number}: {prompt}"}
        if image_base64:
            body["imageBase64"] = image_base64
        data = self.client.post(ANALYZE_MISTAKE_PATH, body)
        topic = (data.get("mistake_topic") or "").strip()
        if not topic:
            raise GradingServiceError("Could not identify the topic of this mistake. Please try again.")
        return {"mistake_topic": topic, "explanation": data.get("explanation") or ""}
