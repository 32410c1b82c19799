"""Test definitions: storage, structure traversal and question resolution.

A test ``structure`` is a nested document. Each entry of ``sections`` may
list question ids directly (``questionIds``), or group them as writing
``tasks`` or speaking ``parts`` that each carry one ``questionId``. Older
tests put ``tasks``/``parts`` at the top level with no sections at all.
All of these shapes go through the same traversal.
"""
import json
import logging
from datetime import datetime

from ielts_prep.config import Config
from ielts_prep.db import get_connection
from ielts_prep.errors import NotFoundError, ValidationError
from ielts_prep.models import SECTIONS, MockTest
from ielts_prep.questions import get_questions, get_questions_by_ids

logger = logging.getLogger(__name__)

GENERATED_QUESTIONS_PER_SECTION = 5


def _containers(structure: dict) -> list[dict]:
    """Every node of the structure that may hold question references."""
    sections = structure.get("sections") or []
    # legacy tests list bare section names; those carry no questions
    nodes = [s for s in sections if isinstance(s, dict)]
    nodes.append(structure)
    return nodes


def collect_question_ids(structure: dict | str | None) -> list[int]:
    """Unique question ids referenced anywhere in a structure, first-seen order."""
    if not structure:
        return []
    if isinstance(structure, str):
        structure = json.loads(structure)
    seen = {}
    for node in _containers(structure):
        for qid in node.get("questionIds") or []:
            seen.setdefault(int(qid), None)
        for group in ("tasks", "parts"):
            for item in node.get(group) or []:
                if isinstance(item, dict) and item.get("questionId") is not None:
                    seen.setdefault(int(item["questionId"]), None)
    return list(seen)


def exam_duration_minutes(structure: dict | None) -> int:
    """Total exam time declared by the structure.

    A section's own ``duration`` wins over the sum of its tasks/parts.
    Falls back to the full mock length when nothing is declared.
    """
    total = 0
    for node in _containers(structure or {}):
        if node is not structure and node.get("duration"):
            total += int(node["duration"])
            continue
        for group in ("tasks", "parts"):
            for item in node.get(group) or []:
                if isinstance(item, dict) and item.get("duration"):
                    total += int(item["duration"])
    return total or Config.DEFAULT_EXAM_MINUTES


def get_tests(db_path: str) -> list[MockTest]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM tests ORDER BY created_at DESC, id DESC").fetchall()
    conn.close()
    return [MockTest.from_row(r) for r in rows]


def get_test(db_path: str, test_id: int) -> MockTest | None:
    """The stored test row, without resolving its questions."""
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM tests WHERE id = ?", (test_id,)).fetchone()
    conn.close()
    return MockTest.from_row(row) if row else None


def create_test(
    db_path: str,
    title: str,
    structure: dict,
    is_system: bool = False,
    id: int | None = None,
) -> MockTest:
    conn = get_connection(db_path)
    cur = conn.execute(
        "INSERT INTO tests (id, title, structure, is_system, created_at) VALUES (?, ?, ?, ?, ?)",
        (id, title, json.dumps(structure), int(is_system), datetime.now().isoformat()),
    )
    conn.commit()
    row = conn.execute("SELECT * FROM tests WHERE id = ?", (cur.lastrowid,)).fetchone()
    conn.close()
    logger.info("Created test %s: %s", row["id"], title)
    return MockTest.from_row(row)


def resolve_test(db_path: str, test_id: int) -> MockTest:
    """Fetch a test and attach the questions its structure references."""
    test = get_test(db_path, test_id)
    if test is None:
        raise NotFoundError("Test not found")
    test.questions = get_questions_by_ids(db_path, collect_question_ids(test.structure))
    return test


def generate_test(
    db_path: str,
    sections: list[str],
    difficulty: int | None = None,
    per_section: int = GENERATED_QUESTIONS_PER_SECTION,
) -> MockTest:
    """Assemble an ad-hoc practice test from the question bank."""
    if not sections:
        raise ValidationError("At least one section is required", field="sections")
    nodes = []
    for name in dict.fromkeys(sections):
        if name not in SECTIONS:
            raise ValidationError(f"Unknown section: {name}", field="sections")
        picked = get_questions(db_path, section=name, limit=per_section, max_difficulty=difficulty)
        if name == "writing":
            nodes.append({"name": "Writing", "tasks": [
                {"task": f"Task {q.part or i}", "questionId": q.id}
                for i, q in enumerate(picked, 1)
            ]})
        elif name == "speaking":
            nodes.append({"name": "Speaking", "parts": [
                {"part": q.part or i, "questionId": q.id}
                for i, q in enumerate(picked, 1)
            ]})
        else:
            nodes.append({
                "name": name.capitalize(),
                "questionCount": len(picked),
                "questionIds": [q.id for q in picked],
            })
    title = f"Generated Test - {datetime.now().strftime('%Y-%m-%d')}"
    return create_test(db_path, title, {"sections": nodes}, is_system=False)
