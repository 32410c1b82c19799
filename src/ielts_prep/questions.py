"""Question bank and reading passage storage."""
import json
import logging

from ielts_prep.db import get_connection
from ielts_prep.models import Passage, Question

logger = logging.getLogger(__name__)


def _dump(value) -> str | None:
    return json.dumps(value) if value is not None else None


def get_questions(
    db_path: str,
    section: str | None = None,
    type: str | None = None,
    limit: int | None = None,
    max_difficulty: int | None = None,
) -> list[Question]:
    clauses, params = [], []
    if section:
        clauses.append("section = ?")
        params.append(section)
    if type:
        clauses.append("type = ?")
        params.append(type)
    if max_difficulty:
        clauses.append("difficulty <= ?")
        params.append(max_difficulty)
    sql = "SELECT * FROM questions"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY id"
    if limit:
        sql += " LIMIT ?"
        params.append(limit)
    conn = get_connection(db_path)
    rows = conn.execute(sql, params).fetchall()
    conn.close()
    return [Question.from_row(r) for r in rows]


def get_questions_by_ids(db_path: str, ids: list[int]) -> list[Question]:
    """Batch-fetch questions, returned in the order of ``ids``."""
    if not ids:
        return []
    placeholders = ", ".join("?" for _ in ids)
    conn = get_connection(db_path)
    rows = conn.execute(
        f"SELECT * FROM questions WHERE id IN ({placeholders})", list(ids)
    ).fetchall()
    conn.close()
    by_id = {r["id"]: Question.from_row(r) for r in rows}
    return [by_id[i] for i in ids if i in by_id]


def get_question(db_path: str, question_id: int) -> Question | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM questions WHERE id = ?", (question_id,)).fetchone()
    conn.close()
    return Question.from_row(row) if row else None


def create_question(
    db_path: str,
    section: str,
    type: str,
    content: str,
    part: int | None = None,
    options=None,
    correct_answer=None,
    explanation: str | None = None,
    passage_id: int | None = None,
    difficulty: int = 1,
    tags: list | None = None,
    id: int | None = None,
) -> Question:
    conn = get_connection(db_path)
    cur = conn.execute(
        """INSERT INTO questions
        (id, section, part, type, content, options, correct_answer, explanation, passage_id, difficulty, tags)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (id, section, part, type, content, _dump(options), _dump(correct_answer),
         explanation, passage_id, difficulty, json.dumps(tags or [])),
    )
    conn.commit()
    row = conn.execute("SELECT * FROM questions WHERE id = ?", (cur.lastrowid,)).fetchone()
    conn.close()
    logger.debug("Created %s question %s", section, row["id"])
    return Question.from_row(row)


def create_passage(
    db_path: str,
    title: str,
    content: str,
    section: str,
    metadata: dict | None = None,
    id: int | None = None,
) -> Passage:
    conn = get_connection(db_path)
    cur = conn.execute(
        "INSERT INTO passages (id, title, content, section, metadata) VALUES (?, ?, ?, ?, ?)",
        (id, title, content, section, _dump(metadata)),
    )
    conn.commit()
    row = conn.execute("SELECT * FROM passages WHERE id = ?", (cur.lastrowid,)).fetchone()
    conn.close()
    return Passage.from_row(row)


def get_passage(db_path: str, passage_id: int) -> Passage | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM passages WHERE id = ?", (passage_id,)).fetchone()
    conn.close()
    return Passage.from_row(row) if row else None


def get_passages_by_ids(db_path: str, ids: list[int]) -> list[Passage]:
    ids = list(dict.fromkeys(i for i in ids if i is not None))
    if not ids:
        return []
    placeholders = ", ".join("?" for _ in ids)
    conn = get_connection(db_path)
    rows = conn.execute(
        f"SELECT * FROM passages WHERE id IN ({placeholders}) ORDER BY id", ids
    ).fetchall()
    conn.close()
    return [Passage.from_row(r) for r in rows]
