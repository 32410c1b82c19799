"""Exam attempt lifecycle: start, autosave answers, expire and complete.

An attempt moves one way only, ``in_progress`` -> ``completed``. Answers are
recorded as given and graded only when the attempt completes.
"""
import json
import logging
from datetime import datetime

from ielts_prep.db import get_connection
from ielts_prep.errors import ConflictError, NotFoundError
from ielts_prep.models import (
    COMPLETED, IN_PROGRESS, Attempt, AttemptAnswer, AttemptDetails,
)
from ielts_prep.questions import get_passages_by_ids, get_question
from ielts_prep.resolver import exam_duration_minutes, get_test, resolve_test
from ielts_prep.scoring import grade_answers, score_answers

logger = logging.getLogger(__name__)


def create_attempt(db_path: str, user_id: str, test_id: int | None, now: datetime | None = None) -> Attempt:
    if test_id is not None and get_test(db_path, test_id) is None:
        raise NotFoundError("Test not found")
    started = (now or datetime.now()).isoformat()
    conn = get_connection(db_path)
    cur = conn.execute(
        "INSERT INTO attempts (user_id, test_id, status, started_at) VALUES (?, ?, ?, ?)",
        (user_id, test_id, IN_PROGRESS, started),
    )
    conn.commit()
    row = conn.execute("SELECT * FROM attempts WHERE id = ?", (cur.lastrowid,)).fetchone()
    conn.close()
    logger.info("User %s started attempt %s on test %s", user_id, row["id"], test_id)
    return Attempt.from_row(row)


def get_attempt(db_path: str, attempt_id: int) -> Attempt | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM attempts WHERE id = ?", (attempt_id,)).fetchone()
    conn.close()
    return Attempt.from_row(row) if row else None


def get_user_attempts(db_path: str, user_id: str) -> list[Attempt]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM attempts WHERE user_id = ? ORDER BY started_at DESC, id DESC",
        (user_id,),
    ).fetchall()
    conn.close()
    return [Attempt.from_row(r) for r in rows]


def update_attempt_status(
    db_path: str,
    attempt_id: int,
    status: str,
    score: dict | None = None,
    completed_at: str | None = None,
    time_spent: int | None = None,
) -> Attempt | None:
    """Move an in-progress attempt to ``status``.

    Returns None when the attempt is missing or already left ``in_progress``,
    so of two racing calls only one ever writes.
    """
    if status != COMPLETED:
        raise ValueError(f"Attempts can only move forward to {COMPLETED!r}, not {status!r}")
    conn = get_connection(db_path)
    cur = conn.execute(
        """UPDATE attempts SET status = ?, score = ?, completed_at = ?, time_spent = ?
        WHERE id = ? AND status = ?""",
        (status, json.dumps(score) if score is not None else None,
         completed_at, time_spent, attempt_id, IN_PROGRESS),
    )
    conn.commit()
    row = None
    if cur.rowcount:
        row = conn.execute("SELECT * FROM attempts WHERE id = ?", (attempt_id,)).fetchone()
    conn.close()
    return Attempt.from_row(row) if row else None


def get_attempt_answers(db_path: str, attempt_id: int) -> list[AttemptAnswer]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM attempt_answers WHERE attempt_id = ? ORDER BY question_id", (attempt_id,)
    ).fetchall()
    conn.close()
    return [AttemptAnswer.from_row(r) for r in rows]


def upsert_answer(db_path: str, attempt_id: int, question_id: int, answer) -> AttemptAnswer:
    """Record the learner's current answer for a question; last write wins."""
    attempt = get_attempt(db_path, attempt_id)
    if attempt is None:
        raise NotFoundError("Attempt not found")
    if attempt.is_completed:
        raise ConflictError("Attempt is already completed; answers are frozen")
    if get_question(db_path, question_id) is None:
        raise NotFoundError("Question not found")
    conn = get_connection(db_path)
    # correctness is a placeholder until the attempt is completed;
    # both branches only write while the attempt is still in progress
    cur = conn.execute(
        """INSERT INTO attempt_answers (attempt_id, question_id, answer, is_correct, score)
        SELECT ?, ?, ?, 0, 0
        WHERE EXISTS (SELECT 1 FROM attempts WHERE id = ? AND status = ?)
        ON CONFLICT(attempt_id, question_id) DO UPDATE SET
            answer = excluded.answer, is_correct = 0, score = 0
        WHERE (SELECT status FROM attempts WHERE id = excluded.attempt_id) = ?""",
        (attempt_id, question_id, json.dumps(answer), attempt_id, IN_PROGRESS, IN_PROGRESS),
    )
    conn.commit()
    if not cur.rowcount:
        conn.close()
        raise ConflictError("Attempt is already completed; answers are frozen")
    row = conn.execute(
        "SELECT * FROM attempt_answers WHERE attempt_id = ? AND question_id = ?",
        (attempt_id, question_id),
    ).fetchone()
    conn.close()
    logger.debug("Saved answer for attempt %s question %s", attempt_id, question_id)
    return AttemptAnswer.from_row(row)


def _resolve_or_none(db_path: str, test_id: int | None):
    if test_id is None:
        return None
    try:
        return resolve_test(db_path, test_id)
    except NotFoundError:
        logger.warning("Test %s is gone; continuing without it", test_id)
        return None


def get_attempt_with_details(db_path: str, attempt_id: int) -> AttemptDetails:
    attempt = get_attempt(db_path, attempt_id)
    if attempt is None:
        raise NotFoundError("Attempt not found")
    test = _resolve_or_none(db_path, attempt.test_id)
    passages = []
    if test is not None:
        passages = get_passages_by_ids(db_path, [q.passage_id for q in test.questions])
    return AttemptDetails(
        attempt=attempt,
        test=test,
        answers=get_attempt_answers(db_path, attempt_id),
        passages=passages,
    )


def _store_verdicts(db_path: str, attempt_id: int, verdicts: dict[int, bool]) -> None:
    conn = get_connection(db_path)
    conn.executemany(
        "UPDATE attempt_answers SET is_correct = ?, score = ? WHERE attempt_id = ? AND question_id = ?",
        [(int(ok), int(ok), attempt_id, qid) for qid, ok in verdicts.items()],
    )
    conn.commit()
    conn.close()


def complete_attempt(db_path: str, attempt_id: int, now: datetime | None = None) -> Attempt:
    """Score and close an attempt. Completing twice returns the stored result."""
    attempt = get_attempt(db_path, attempt_id)
    if attempt is None:
        raise NotFoundError("Attempt not found")
    if attempt.is_completed:
        return attempt

    test = _resolve_or_none(db_path, attempt.test_id)
    questions = test.questions if test else []
    answers = get_attempt_answers(db_path, attempt_id)
    result = score_answers(questions, answers)

    finished = now or datetime.now()
    time_spent = None
    if attempt.started_at:
        elapsed = finished - datetime.fromisoformat(attempt.started_at)
        time_spent = max(0, int(elapsed.total_seconds()))

    updated = update_attempt_status(
        db_path, attempt_id, COMPLETED,
        score=result.to_dict(), completed_at=finished.isoformat(), time_spent=time_spent,
    )
    if updated is None:
        # lost a race with another completion
        return get_attempt(db_path, attempt_id)
    _store_verdicts(db_path, attempt_id, grade_answers(questions, answers))
    logger.info(
        "Attempt %s completed: %s/%s, band %s",
        attempt_id, result.correct, result.total, result.band,
    )
    return updated


def remaining_seconds(attempt: Attempt, minutes: int, now: datetime | None = None) -> int:
    if attempt.is_completed or not attempt.started_at:
        return 0
    elapsed = (now or datetime.now()) - datetime.fromisoformat(attempt.started_at)
    return max(0, minutes * 60 - int(elapsed.total_seconds()))


def expire_if_due(db_path: str, attempt_id: int, now: datetime | None = None) -> Attempt:
    """Complete the attempt if its exam time has run out."""
    attempt = get_attempt(db_path, attempt_id)
    if attempt is None:
        raise NotFoundError("Attempt not found")
    if attempt.is_completed:
        return attempt
    test = get_test(db_path, attempt.test_id) if attempt.test_id is not None else None
    minutes = exam_duration_minutes(test.structure if test else None)
    if remaining_seconds(attempt, minutes, now) > 0:
        return attempt
    logger.info("Attempt %s ran out of time", attempt_id)
    return complete_attempt(db_path, attempt_id, now=now)
