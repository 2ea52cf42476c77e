"""Supabase helpers against a mocked client (no network)."""
from datetime import datetime
from unittest.mock import MagicMock

import db
from assessment.models import HomeworkSource, Result
from assessment.remediation import build_reattempt_task


def _client():
    client = MagicMock()
    table = client.table.return_value
    for name in ("select", "eq", "order", "limit", "single", "upsert", "insert", "update"):
        getattr(table, name).return_value = table
    return client, table


RESULT = Result(id="R1", date="2024-03-04", score="2/300", mistakes=["2", "3"], syllabus="Mock 1", timings={1: 30})


def test_insert_result_upserts_on_id():
    client, table = _client()
    assert db.insert_result(client, "u1", RESULT)
    client.table.assert_called_with("results")
    row = table.upsert.call_args[0][0]
    assert row["user_id"] == "u1"
    assert row["timings"] == {"1": 30}
    assert table.upsert.call_args[1] == {"on_conflict": "id"}


def test_insert_result_logs_and_returns_false_on_error():
    client, table = _client()
    table.execute.side_effect = RuntimeError("connection reset")
    assert db.insert_result(client, "u1", RESULT) is False


def test_schedule_items_are_deduped_by_id():
    client, table = _client()
    source = HomeworkSource(id="T1", title="DPP 4", subject_tag="PHYSICS")
    task = build_reattempt_task(source, 2, "B", datetime(2024, 3, 4, 18, 30))
    assert db.insert_schedule_items(client, "u1", [task, task]) == 1
    rows = table.upsert.call_args[0][0]
    assert len(rows) == 1
    assert rows[0]["title"] == "[RE-ATTEMPT] Q.2 of: DPP 4"
    assert db.insert_schedule_items(client, "u1", []) == 0


def test_weaknesses_round_trip():
    client, table = _client()
    table.execute.return_value = MagicMock(data={"weaknesses": ["Optics"]})
    assert db.get_weaknesses(client, "u1") == ["Optics"]
    table.execute.side_effect = RuntimeError("no row")
    assert db.get_weaknesses(client, "u1") == []


def test_callbacks_write_to_tables():
    client, table = _client()
    callbacks = db.supabase_callbacks(client, "u1")
    callbacks.on_session_complete(600, 2, [3])
    row = table.insert.call_args[0][0]
    assert (row["duration"], row["questions_solved"], row["questions_skipped"]) == (600, 2, [3])
    client.table.assert_called_with("study_sessions")
    callbacks.on_update_weaknesses(["Optics", "Rotation"])
    client.table.assert_called_with("profiles")
    assert table.upsert.call_args[0][0] == {"user_id": "u1", "weaknesses": ["Optics", "Rotation"]}


def test_load_homework_builds_source():
    client, table = _client()
    table.execute.return_value = MagicMock(data={"id": "T1", "title": "DPP 4", "subject_tag": "PHYSICS", "q_ranges": "1-10", "answers": {"1": "A"}})
    source = db.load_homework(client, "T1")
    assert (source.id, source.title, source.q_ranges) == ("T1", "DPP 4", "1-10")
    assert source.answers == {"1": "A"}
    client.table.assert_called_with("schedule_items")
    table.eq.assert_called_with("id", "T1")


def test_load_homework_missing_or_failing_is_none():
    client, table = _client()
    table.execute.return_value = MagicMock(data=None)
    assert db.load_homework(client, "T404") is None
    table.execute.side_effect = RuntimeError("connection reset")
    assert db.load_homework(client, "T1") is None


def test_get_results_newest_first():
    client, table = _client()
    rows = [{"id": "R2", "score": "8/12"}, {"id": "R1", "score": "4/12"}]
    table.execute.return_value = MagicMock(data=rows)
    assert db.get_results(client, "u1", limit=10) == rows
    table.order.assert_called_with("date", desc=True)
    table.limit.assert_called_with(10)
    table.execute.side_effect = RuntimeError("timeout")
    assert db.get_results(client, "u1") == []
