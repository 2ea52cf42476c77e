"""Attach an answer key (JSON or key:value text) to a homework task in Supabase."""
import argparse
import logging
from pathlib import Path

from assessment.answers import parse_answer_key
from assessment.question_set import parse_question_ranges
from db import get_homework_task, get_supabase_uncached, update_homework_answers

logger = logging.getLogger(__name__)


def load_key(path: Path) -> dict:
    """Read and parse an answer key file. Raises ValueError if nothing usable is in it."""
    text = path.read_text(encoding="utf-8")
    key = parse_answer_key(text)
    if not key:
        raise ValueError(f"No answers found in {path}")
    return key


def check_coverage(key: dict, q_ranges: str) -> list[int]:
    """Question numbers of the task that the key does not cover."""
    return [n for n in parse_question_ranges(q_ranges) if str(n) not in key]


def run_import(task_id: str, key_path: Path, dry_run: bool = False, merge: bool = False):
    if not key_path.exists():
        raise FileNotFoundError(f"Answer key not found: {key_path}")
    key = load_key(key_path)
    if dry_run:
        print(f"Dry run: would attach {len(key)} answers from {key_path} to task {task_id}")
        print("Sample:", dict(list(key.items())[:5]))
        return
    client = get_supabase_uncached()
    task = get_homework_task(client, task_id).data or {}
    if merge:
        key = {**(task.get("answers") or {}), **key}
    missing = check_coverage(key, task.get("q_ranges") or "")
    if missing:
        logger.warning("Key does not cover %d question(s) of task %s: %s", len(missing), task_id, missing[:10])
    update_homework_answers(client, task_id, key)
    print(f"Attached {len(key)} answers to task {task_id}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    parser = argparse.ArgumentParser(description="Attach an answer key to a homework task.")
    parser.add_argument("task_id", help="Homework task id (schedule_items.id)")
    parser.add_argument("key_file", help="Answer key file: JSON object or 1:A, 2:B, 3:[A,C] text")
    parser.add_argument("--dry-run", action="store_true", help="Parse only, do not write")
    parser.add_argument("--merge", action="store_true", help="Merge into the task's existing key instead of replacing it")
    args = parser.parse_args()
    run_import(args.task_id, Path(args.key_file), dry_run=args.dry_run, merge=args.merge)
