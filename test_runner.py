"""AsyncSessionRunner with shrunken timer intervals."""
import asyncio
from datetime import datetime
from unittest.mock import MagicMock

from assessment.errors import GradingServiceError
from assessment.models import PracticeMode, Result
from assessment.runner import AsyncSessionRunner
from assessment.session import AssessmentSession, NavigationOutcome, SessionCallbacks

NOW = datetime(2024, 3, 4, 18, 30)


def _session(expression="1-3", per_question_time=60, **kwargs):
    return AssessmentSession.from_ranges(expression, PracticeMode.CUSTOM, per_question_time=per_question_time, **kwargs)


def test_clock_runs_out_and_finishes_once():
    complete = MagicMock()
    session = _session("1", per_question_time=2, callbacks=SessionCallbacks(on_session_complete=complete))
    runner = AsyncSessionRunner(session, tick_interval=0.01)

    async def run():
        await runner.start()
        await runner.wait_finished(timeout=2)
        await asyncio.sleep(0.05)
        await runner.close()

    asyncio.run(run())
    assert session.is_finished
    complete.assert_called_once()


def test_feedback_auto_advances():
    session = _session(answer_key={"1": "A", "2": "B", "3": "C"})
    runner = AsyncSessionRunner(session, navigation_delay=0.01, feedback_scale=0.01)

    async def run():
        await runner.start()
        fb = runner.answer("A")
        assert fb is not None
        assert runner.answer("B") is None
        await asyncio.sleep(0.1)
        number = session.current_question.number
        await runner.close()
        return number

    assert asyncio.run(run()) == 2


def test_navigation_is_debounced():
    session = _session()
    runner = AsyncSessionRunner(session, navigation_delay=0.02)

    async def run():
        await runner.start()
        assert runner.next() is NavigationOutcome.MOVING
        assert runner.next() is NavigationOutcome.REJECTED
        await asyncio.sleep(0.1)
        assert session.current_question.number == 2
        assert runner.jump_to(0) is NavigationOutcome.MOVING
        await asyncio.sleep(0.1)
        assert session.current_question.number == 1
        await runner.close()

    asyncio.run(run())


def test_submit_cancels_pending_timers():
    session = _session(answer_key={"1": "A"})
    runner = AsyncSessionRunner(session, feedback_scale=10)

    async def run():
        await runner.start()
        runner.answer("A")
        assert runner.submit()
        await runner.wait_finished(timeout=1)
        assert runner._feedback_handle is None
        await runner.close()

    asyncio.run(run())
    assert session.result.score == "4/12"


def test_ai_grading_off_the_loop():
    session = _session()
    adapter = MagicMock()
    adapter.grade.return_value = Result(id="R1", date="2024-03-04", score="8/12", mistakes=["2"], syllabus="", timings={})
    runner = AsyncSessionRunner(session, adapter=adapter)

    async def run():
        await runner.start()
        runner.submit()
        result = await runner.grade_with_ai("aW1n")
        await runner.close()
        return result

    assert asyncio.run(run()).score == "8/12"
    assert session.result.score == "8/12"


def test_ai_grading_failure_leaves_session_retryable():
    session = _session()
    adapter = MagicMock()
    adapter.grade.side_effect = GradingServiceError("Failed to parse server response.")
    runner = AsyncSessionRunner(session, adapter=adapter)

    async def run():
        await runner.start()
        runner.submit()
        result = await runner.grade_with_ai("aW1n")
        await runner.close()
        return result

    assert asyncio.run(run()) is None
    assert session.result is None
    assert session.grading_error == "Failed to parse server response."
    assert not session.grading_in_flight


def test_pause_holds_feedback_until_resume():
    session = _session(answer_key={"1": "A", "2": "B", "3": "C"})
    runner = AsyncSessionRunner(session, navigation_delay=0.01, feedback_scale=0.01)

    async def run():
        await runner.start()
        assert runner.answer("D") is not None
        runner.pause()
        await asyncio.sleep(0.1)
        assert session.current_question.number == 1
        assert session.feedback is not None
        runner.resume()
        await asyncio.sleep(0.1)
        number = session.current_question.number
        await runner.close()
        return number

    assert asyncio.run(run()) == 2
    assert session.feedback is None


def test_ai_grading_passes_session_wall_time():
    session = _session(wall_clock=lambda: NOW)
    adapter = MagicMock()
    adapter.grade.return_value = Result(id="R1", date="2024-03-04", score="8/12", mistakes=["2"], syllabus="", timings={})
    runner = AsyncSessionRunner(session, adapter=adapter)

    async def run():
        await runner.start()
        runner.submit()
        await runner.grade_with_ai("aW1n")
        await runner.close()

    asyncio.run(run())
    assert adapter.grade.call_args[1] == {"now": NOW}
    assert adapter.grade.call_args[0][0] == "aW1n"
