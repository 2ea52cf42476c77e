"""Supabase persistence for session outcomes. Client is cached via Streamlit."""
import logging
from datetime import datetime
from typing import List, Optional

import streamlit as st
from supabase import create_client, Client

from assessment import config
from assessment.models import HomeworkSource, ReattemptTask, Result
from assessment.session import SessionCallbacks

logger = logging.getLogger(__name__)


def _env_client() -> Client:
    if not config.SUPABASE_URL or not config.SUPABASE_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(config.SUPABASE_URL, config.SUPABASE_KEY)


@st.cache_resource
def get_supabase() -> Client:
    return _env_client()


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return _env_client()


# --- Results ---

def insert_result(client: Client, user_id: str, result: Result) -> bool:
    row = {"user_id": user_id, **result.to_dict()}
    try:
        client.table("results").upsert(row, on_conflict="id").execute()
        logger.info("Logged result %s (%s) for %s", result.id, result.score, user_id)
        return True
    except Exception as e:
        logger.error(f"Error logging result {result.id}: {e}")
        return False


def get_results(client: Client, user_id: str, limit: int = 50) -> List[dict]:
    """Most recent results first."""
    try:
        r = (
            client.table("results")
            .select("*")
            .eq("user_id", user_id)
            .order("date", desc=True)
            .limit(limit)
            .execute()
        )
        return list(r.data or [])
    except Exception as e:
        logger.error(f"Error fetching results for {user_id}: {e}")
        return []


# --- Schedule items ---

def insert_schedule_items(client: Client, user_id: str, tasks: List[ReattemptTask]) -> int:
    """Insert re-attempt tasks. Dedupes by id so a chunk never carries duplicates."""
    by_id = {t.id: {"user_id": user_id, **t.to_dict()} for t in tasks}
    rows = list(by_id.values())
    if not rows:
        return 0
    try:
        client.table("schedule_items").upsert(rows, on_conflict="id").execute()
        return len(rows)
    except Exception as e:
        logger.error(f"Error saving {len(rows)} schedule item(s): {e}")
        return 0


def get_homework_task(client: Client, task_id: str):
    return client.table("schedule_items").select("*").eq("id", task_id).single().execute()


def load_homework(client: Client, task_id: str) -> Optional[HomeworkSource]:
    """The homework task a session is launched from, or None if it cannot be read."""
    try:
        r = get_homework_task(client, task_id)
    except Exception as e:
        logger.error(f"Error fetching homework task {task_id}: {e}")
        return None
    if not r.data:
        logger.warning("Homework task %s not found", task_id)
        return None
    return HomeworkSource.from_dict(r.data)


def update_homework_answers(client: Client, task_id: str, answers: dict):
    return client.table("schedule_items").update({"answers": answers}).eq("id", task_id).execute()


# --- Study sessions ---

def insert_study_session(client: Client, user_id: str, duration: int, solved: int, skipped: List[int]) -> bool:
    row = {
        "user_id": user_id,
        "date": datetime.utcnow().isoformat(),
        "duration": duration,
        "questions_solved": solved,
        "questions_skipped": skipped,
    }
    try:
        client.table("study_sessions").insert(row).execute()
        return True
    except Exception as e:
        logger.error(f"Error saving study session: {e}")
        return False


# --- Weaknesses ---

def get_weaknesses(client: Client, user_id: str) -> List[str]:
    try:
        r = client.table("profiles").select("weaknesses").eq("user_id", user_id).single().execute()
        return list((r.data or {}).get("weaknesses") or [])
    except Exception as e:
        logger.error(f"Error fetching weaknesses for {user_id}: {e}")
        return []


def update_weaknesses(client: Client, user_id: str, weaknesses: List[str]) -> bool:
    try:
        client.table("profiles").upsert({"user_id": user_id, "weaknesses": weaknesses}, on_conflict="user_id").execute()
        return True
    except Exception as e:
        logger.error(f"Error updating weaknesses for {user_id}: {e}")
        return False


def supabase_callbacks(client: Client, user_id: str) -> SessionCallbacks:
    """Session callbacks that write straight to Supabase."""
    return SessionCallbacks(
        on_session_complete=lambda duration, solved, skipped: insert_study_session(client, user_id, duration, solved, skipped),
        on_log_result=lambda result: insert_result(client, user_id, result),
        on_update_weaknesses=lambda weaknesses: update_weaknesses(client, user_id, weaknesses),
        on_save_task=lambda task: insert_schedule_items(client, user_id, [task]),
    )
