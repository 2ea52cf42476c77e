"""Session clock and navigation guard."""
import pytest

from assessment.answers import AnswerSheet
from assessment.clock import SessionClock
from assessment.models import PracticeMode
from assessment.navigation import Navigator


def test_clock_durations_per_mode():
    assert SessionClock.for_mode(PracticeMode.MOCK_EXAM, 30, 5).remaining == 180 * 60
    assert SessionClock.for_mode(PracticeMode.CUSTOM, 30, 5).remaining == 150


def test_tick_reports_expiry_once():
    clock = SessionClock(3)
    clock.start(0.0)
    assert [clock.tick() for _ in range(5)] == [False, False, True, False, False]
    assert clock.remaining == 0
    assert clock.expired


def test_tick_does_nothing_until_started_or_while_paused():
    clock = SessionClock(2)
    assert not clock.tick()
    assert clock.remaining == 2
    clock.start(0.0)
    clock.pause()
    assert not clock.tick()
    assert clock.remaining == 2


def test_catch_up_applies_owed_seconds():
    clock = SessionClock(10)
    clock.start(100.0)
    assert not clock.catch_up(103.7)
    assert clock.remaining == 7
    assert not clock.catch_up(103.9)
    assert clock.remaining == 7
    assert clock.catch_up(250.0)
    assert clock.remaining == 0
    assert not clock.catch_up(300.0)


def test_catch_up_restarts_from_resume():
    clock = SessionClock(10)
    clock.start(0.0)
    clock.catch_up(4.0)
    clock.pause()
    clock.resume(50.0)
    clock.catch_up(52.0)
    assert clock.remaining == 4


def test_format_time():
    clock = SessionClock(3 * 3600 + 5)
    assert clock.format_time() == "03:00:05"
    assert SessionClock(0).format_time() == "00:00:00"


@pytest.fixture
def nav():
    sheet = AnswerSheet([10, 11, 12])
    navigator = Navigator(sheet)
    navigator.enter(0.0)
    return navigator


def test_move_books_time_and_locks(nav):
    assert nav.begin(1, 8.0)
    assert nav.busy
    assert nav.sheet.timing(10) == 8
    assert not nav.begin(2, 8.1)
    assert nav.settle(8.35)
    assert nav.index == 1
    assert not nav.busy
    assert nav.begin(2, 10.35)
    assert nav.sheet.timing(11) == 2


def test_revisits_accumulate(nav):
    nav.begin(1, 5.0)
    nav.settle(5.0)
    nav.begin(0, 6.0)
    nav.settle(6.0)
    nav.begin(1, 9.0)
    assert nav.sheet.timing(10) == 8


def test_out_of_range_and_held(nav):
    assert not nav.begin(3, 1.0)
    assert not nav.begin(-1, 1.0)
    nav.hold()
    assert not nav.begin(1, 1.0)
    assert nav.begin(1, 1.0, force=True)
    assert not nav.held


def test_palette_filters(nav):
    nav.sheet.record(11, "A")
    nav.sheet.toggle_mark(12)
    assert nav.palette("all") == [0, 1, 2]
    assert nav.palette("attempted") == [1]
    assert nav.palette("unattempted") == [0, 2]
    assert nav.palette("marked") == [2]
    assert nav.palette_status(0) == "current"
    assert nav.palette_status(1) == "answered"
    assert nav.palette_status(2) == "marked"
    with pytest.raises(ValueError):
        nav.palette("bogus")
