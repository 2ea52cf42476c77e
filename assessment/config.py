"""
Deployment settings read from the environment (.env supported).
Scoring and timing constants live in the root engine module.
"""
import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

GRADING_API_URL = os.getenv("GRADING_API_URL", "http://localhost:3000/api")
GRADING_API_TOKEN = os.getenv("GRADING_API_TOKEN")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default


GRADING_TIMEOUT = _int_env("GRADING_TIMEOUT", 60)
GRADING_MAX_RETRIES = _int_env("GRADING_MAX_RETRIES", 2)
