# tests/test_attempts.py
from datetime import datetime, timedelta

import pytest

from ielts_prep.db import init_db, get_connection
from ielts_prep.errors import ConflictError, NotFoundError
from ielts_prep.seed import seed_all
from ielts_prep import attempts
from ielts_prep.dashboard import get_section_scores
from ielts_prep.attempts import (
    complete_attempt, create_attempt, expire_if_due, get_attempt,
    get_attempt_answers, get_attempt_with_details, get_user_attempts,
    remaining_seconds, update_attempt_status, upsert_answer,
)

FULL_MOCK = 1
READING_PRACTICE = 2
START = datetime(2026, 10, 1, 9, 0, 0)

# Full mock answer keys for the auto-scorable questions
CORRECT = {20: "b", 21: "50 pounds", 1: "c", 2: "true", 3: "India", 4: "b",
           5: "true", 6: "b", 7: "false", 8: "buying less"}


def _setup(tmp_db):
    init_db(tmp_db)
    seed_all(tmp_db)


def test_create_attempt(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK, now=START)
    assert attempt.status == "in_progress"
    assert attempt.user_id == "user-1"
    assert attempt.test_id == FULL_MOCK
    assert attempt.score is None
    assert attempt.started_at == START.isoformat()
    assert attempt.completed_at is None


def test_create_attempt_unknown_test(tmp_db):
    _setup(tmp_db)
    with pytest.raises(NotFoundError):
        create_attempt(tmp_db, "user-1", 999)


def test_multiple_in_progress_attempts_allowed(tmp_db):
    _setup(tmp_db)
    first = create_attempt(tmp_db, "user-1", FULL_MOCK)
    second = create_attempt(tmp_db, "user-1", FULL_MOCK)
    assert first.id != second.id
    assert len(get_user_attempts(tmp_db, "user-1")) == 2


def test_get_user_attempts_newest_first(tmp_db):
    _setup(tmp_db)
    older = create_attempt(tmp_db, "user-1", FULL_MOCK, now=START)
    newer = create_attempt(tmp_db, "user-1", READING_PRACTICE, now=START + timedelta(days=1))
    create_attempt(tmp_db, "someone-else", FULL_MOCK)
    assert [a.id for a in get_user_attempts(tmp_db, "user-1")] == [newer.id, older.id]


def test_upsert_answer_inserts(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK)
    saved = upsert_answer(tmp_db, attempt.id, 1, "c")
    assert saved.answer == "c"
    assert saved.is_correct is False
    assert saved.score == 0


def test_upsert_answer_twice_keeps_one_row_with_latest_value(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK)
    first = upsert_answer(tmp_db, attempt.id, 1, "a")
    second = upsert_answer(tmp_db, attempt.id, 1, "c")
    assert first.id == second.id
    answers = get_attempt_answers(tmp_db, attempt.id)
    assert len(answers) == 1
    assert answers[0].answer == "c"


def test_upsert_answer_structured_value(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK)
    upsert_answer(tmp_db, attempt.id, 11, {"text": "Dear Sir", "words": 2})
    assert get_attempt_answers(tmp_db, attempt.id)[0].answer == {"text": "Dear Sir", "words": 2}


def test_upsert_answer_missing_attempt(tmp_db):
    _setup(tmp_db)
    with pytest.raises(NotFoundError):
        upsert_answer(tmp_db, 999, 1, "a")


def test_upsert_answer_missing_question(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK)
    with pytest.raises(NotFoundError):
        upsert_answer(tmp_db, attempt.id, 999, "a")


def test_upsert_answer_after_completion_rejected(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK)
    complete_attempt(tmp_db, attempt.id)
    with pytest.raises(ConflictError):
        upsert_answer(tmp_db, attempt.id, 1, "c")


def test_get_attempt_with_details(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK)
    upsert_answer(tmp_db, attempt.id, 1, "c")
    details = get_attempt_with_details(tmp_db, attempt.id)
    assert details.attempt.id == attempt.id
    assert details.test.id == FULL_MOCK
    assert len(details.test.questions) == 15
    assert len(details.answers) == 1
    # Reading questions 1-8 come from passages 1-4
    assert [p.id for p in details.passages] == [1, 2, 3, 4]


def test_get_attempt_with_details_missing(tmp_db):
    _setup(tmp_db)
    with pytest.raises(NotFoundError):
        get_attempt_with_details(tmp_db, 999)


def test_get_attempt_with_details_test_deleted(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", READING_PRACTICE)
    conn = get_connection(tmp_db)
    conn.execute("DELETE FROM tests WHERE id = ?", (READING_PRACTICE,))
    conn.commit()
    conn.close()
    details = get_attempt_with_details(tmp_db, attempt.id)
    assert details.test is None
    assert details.passages == []


def test_complete_attempt_scores(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK, now=START)
    for qid, answer in list(CORRECT.items())[:8]:
        upsert_answer(tmp_db, attempt.id, qid, answer)
    upsert_answer(tmp_db, attempt.id, 7, "true")  # wrong: the key is false
    upsert_answer(tmp_db, attempt.id, 14, "An essay")  # not auto-scored
    completed = complete_attempt(tmp_db, attempt.id, now=START + timedelta(minutes=90))
    assert completed.status == "completed"
    assert completed.completed_at == (START + timedelta(minutes=90)).isoformat()
    assert completed.time_spent == 90 * 60
    assert completed.score["total"] == 10
    assert completed.score["correct"] == 8
    assert completed.score["band"] == 8.5


def test_complete_attempt_grades_answers(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK)
    upsert_answer(tmp_db, attempt.id, 1, "C")
    upsert_answer(tmp_db, attempt.id, 2, "false")
    upsert_answer(tmp_db, attempt.id, 14, "An essay")
    complete_attempt(tmp_db, attempt.id)
    graded = {a.question_id: a for a in get_attempt_answers(tmp_db, attempt.id)}
    assert graded[1].is_correct is True
    assert graded[1].score == 1
    assert graded[2].is_correct is False
    assert graded[14].is_correct is False


def test_complete_attempt_all_correct(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK)
    for qid, answer in CORRECT.items():
        upsert_answer(tmp_db, attempt.id, qid, answer)
    completed = complete_attempt(tmp_db, attempt.id)
    assert completed.score["correct"] == 10
    assert completed.score["band"] == 9.0


def test_complete_attempt_is_idempotent(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK, now=START)
    upsert_answer(tmp_db, attempt.id, 1, "c")
    first = complete_attempt(tmp_db, attempt.id, now=START + timedelta(minutes=10))
    second = complete_attempt(tmp_db, attempt.id, now=START + timedelta(minutes=50))
    assert second == first
    assert get_attempt(tmp_db, attempt.id).completed_at == first.completed_at


def test_complete_attempt_missing(tmp_db):
    _setup(tmp_db)
    with pytest.raises(NotFoundError):
        complete_attempt(tmp_db, 999)


def test_complete_attempt_without_test(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", None)
    completed = complete_attempt(tmp_db, attempt.id)
    assert completed.score == {"correct": 0, "total": 0, "percentage": 0.0, "band": 4.0}


def test_complete_speaking_only_test(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", 4)
    upsert_answer(tmp_db, attempt.id, 17, "I live in a small town.")
    completed = complete_attempt(tmp_db, attempt.id)
    assert completed.score["total"] == 0
    assert completed.score["band"] == 4.0


def test_update_attempt_status_only_moves_forward(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK)
    with pytest.raises(ValueError):
        update_attempt_status(tmp_db, attempt.id, "in_progress")
    assert update_attempt_status(tmp_db, attempt.id, "completed", score={"total": 0}) is not None
    # a second transition finds nothing in progress
    assert update_attempt_status(tmp_db, attempt.id, "completed", score={"total": 5}) is None
    assert get_attempt(tmp_db, attempt.id).score == {"total": 0}


def test_remaining_seconds(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", READING_PRACTICE, now=START)
    assert remaining_seconds(attempt, 20, now=START + timedelta(minutes=5)) == 15 * 60
    assert remaining_seconds(attempt, 20, now=START + timedelta(minutes=25)) == 0


def test_expire_if_due_before_time(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", READING_PRACTICE, now=START)
    result = expire_if_due(tmp_db, attempt.id, now=START + timedelta(minutes=19))
    assert result.status == "in_progress"


def test_expire_if_due_completes_when_time_is_up(tmp_db):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", READING_PRACTICE, now=START)
    upsert_answer(tmp_db, attempt.id, 1, "c")
    result = expire_if_due(tmp_db, attempt.id, now=START + timedelta(minutes=20))
    assert result.status == "completed"
    assert result.score["correct"] == 1
    assert result.score["total"] == 5
    assert result.time_spent == 20 * 60


@pytest.mark.parametrize("question_id, answer", [(1, "a"), (2, "true")])
def test_upsert_answer_loses_to_completion_in_between(tmp_db, monkeypatch, question_id, answer):
    """Complete lands after the status check but before the write."""
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK)
    upsert_answer(tmp_db, attempt.id, 1, "c")
    real_get_question = attempts.get_question

    def complete_then_lookup(db_path, qid):
        complete_attempt(db_path, attempt.id)
        return real_get_question(db_path, qid)

    monkeypatch.setattr(attempts, "get_question", complete_then_lookup)
    with pytest.raises(ConflictError):
        upsert_answer(tmp_db, attempt.id, question_id, answer)

    answers = get_attempt_answers(tmp_db, attempt.id)
    assert [(a.question_id, a.answer, a.is_correct) for a in answers] == [(1, "c", True)]
    assert get_attempt(tmp_db, attempt.id).score["correct"] == 1
    assert get_section_scores(tmp_db, "user-1") == [
        {"section": "reading", "answered": 1, "correct": 1, "accuracy": 100.0},
    ]


def test_complete_attempt_losing_race_returns_first_completion(tmp_db, monkeypatch):
    _setup(tmp_db)
    attempt = create_attempt(tmp_db, "user-1", FULL_MOCK, now=START)
    upsert_answer(tmp_db, attempt.id, 1, "c")
    upsert_answer(tmp_db, attempt.id, 2, "false")
    real_score_answers = attempts.score_answers
    real_store_verdicts = attempts._store_verdicts
    first = {}
    verdict_writes = []

    def racing_score_answers(questions, answers):
        if not first:
            first["started"] = True
            first["attempt"] = complete_attempt(tmp_db, attempt.id, now=START + timedelta(minutes=5))
        return real_score_answers(questions, answers)

    def counting_store_verdicts(db_path, attempt_id, verdicts):
        verdict_writes.append(verdicts)
        real_store_verdicts(db_path, attempt_id, verdicts)

    monkeypatch.setattr(attempts, "score_answers", racing_score_answers)
    monkeypatch.setattr(attempts, "_store_verdicts", counting_store_verdicts)
    result = complete_attempt(tmp_db, attempt.id, now=START + timedelta(minutes=30))

    assert result == first["attempt"]
    assert result.completed_at == (START + timedelta(minutes=5)).isoformat()
    assert result.time_spent == 5 * 60
    assert len(verdict_writes) == 1
    graded = {a.question_id: a.is_correct for a in get_attempt_answers(tmp_db, attempt.id)}
    assert graded == {1: True, 2: False}
