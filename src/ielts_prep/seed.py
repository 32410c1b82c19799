"""Seed the database with passages, questions and system mock tests."""
import json
import logging
from pathlib import Path

from ielts_prep.db import get_connection
from ielts_prep.questions import create_passage, create_question
from ielts_prep.resolver import create_test

logger = logging.getLogger(__name__)

CONTENT_DIR = Path(__file__).parent / "content"


def _content(name: str) -> dict:
    return json.loads((CONTENT_DIR / name).read_text(encoding="utf-8"))


def is_seeded(db_path: str) -> bool:
    """Check whether the database already holds any passages."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM passages").fetchone()[0]
    conn.close()
    return count > 0


def seed_passages(db_path: str) -> None:
    """Insert the reading passages from passages.json."""
    for p in _content("passages.json")["passages"]:
        create_passage(db_path, p["title"], p["content"], p["section"], p.get("metadata"), id=p["id"])


def seed_questions(db_path: str) -> None:
    """Insert questions of all four sections from questions.json."""
    for q in _content("questions.json")["questions"]:
        create_question(db_path, **q)


def seed_tests(db_path: str) -> None:
    """Insert the curated mock and practice tests from tests.json."""
    for t in _content("tests.json")["tests"]:
        create_test(db_path, t["title"], t["structure"], is_system=True, id=t["id"])


def seed_all(db_path: str) -> None:
    """Run all seed functions in order."""
    if is_seeded(db_path):
        logger.debug("Database already seeded, skipping seed")
        return
    seed_passages(db_path)
    seed_questions(db_path)
    seed_tests(db_path)
    logger.info("Seeded passages, questions and system tests")
