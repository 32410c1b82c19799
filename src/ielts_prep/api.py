"""Operation boundary used by front ends.

Each operation validates its input, calls into the domain modules and
returns a plain result dict: ``{"status": 200, "data": ...}`` on success or
``{"status": 4xx/5xx, "error": {"message": ..., "field": ...}}`` on failure.
Nothing raised below this layer escapes it.
"""
import dataclasses
import logging
from functools import wraps

from pydantic import ValidationError as SchemaError

from ielts_prep import attempts, dashboard, planner, questions, resolver
from ielts_prep.errors import NotFoundError, PrepError, ValidationError
from ielts_prep.schemas import (
    AnswerSubmission, AttemptCreate, GenerateTestRequest, PlanRequest,
    QuestionCreate, QuestionFilters,
)

logger = logging.getLogger(__name__)


def _plain(value):
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def _error(status: int, message: str, field: str | None = None) -> dict:
    error = {"message": message}
    if field:
        error["field"] = field
    return {"status": status, "error": error}


def reported(status: int = 200):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return {"status": status, "data": _plain(func(*args, **kwargs))}
            except SchemaError as e:
                first = e.errors()[0]
                field = ".".join(str(p) for p in first["loc"]) or None
                return _error(400, first["msg"], field)
            except ValidationError as e:
                return _error(e.status, e.message, e.field)
            except PrepError as e:
                return _error(e.status, e.message)
            except Exception:
                logger.exception("Unexpected error in %s", func.__name__)
                return _error(500, "Internal server error")
        return wrapper
    return decorator


@reported()
def list_questions(db_path: str, filters: dict | None = None):
    f = QuestionFilters.model_validate(filters or {})
    return questions.get_questions(db_path, section=f.section, type=f.type, limit=f.limit)


@reported(201)
def create_question(db_path: str, payload: dict):
    data = QuestionCreate.model_validate(payload)
    if data.passage_id is not None and questions.get_passage(db_path, data.passage_id) is None:
        raise ValidationError("Passage does not exist", field="passageId")
    return questions.create_question(db_path, **data.model_dump())


@reported()
def list_tests(db_path: str):
    return resolver.get_tests(db_path)


@reported()
def get_test(db_path: str, test_id: int):
    return resolver.resolve_test(db_path, test_id)


@reported(201)
def generate_test(db_path: str, payload: dict):
    data = GenerateTestRequest.model_validate(payload)
    return resolver.generate_test(db_path, list(data.sections), difficulty=data.difficulty)


@reported()
def list_attempts(db_path: str, user_id: str):
    return attempts.get_user_attempts(db_path, user_id)


@reported(201)
def create_attempt(db_path: str, user_id: str, payload: dict):
    data = AttemptCreate.model_validate(payload)
    return attempts.create_attempt(db_path, user_id, data.test_id)


@reported()
def get_attempt(db_path: str, attempt_id: int):
    return attempts.get_attempt_with_details(db_path, attempt_id)


@reported()
def submit_answer(db_path: str, attempt_id: int, payload: dict):
    data = AnswerSubmission.model_validate(payload)
    return attempts.upsert_answer(db_path, attempt_id, data.question_id, data.answer)


@reported()
def complete_attempt(db_path: str, attempt_id: int):
    return attempts.complete_attempt(db_path, attempt_id)


@reported()
def expire_attempt(db_path: str, attempt_id: int):
    return attempts.expire_if_due(db_path, attempt_id)


@reported()
def get_study_plan(db_path: str, user_id: str):
    plan = planner.get_study_plan(db_path, user_id)
    if plan is None:
        raise NotFoundError("No plan found")
    return plan


@reported(201)
def create_study_plan(db_path: str, user_id: str, payload: dict):
    data = PlanRequest.model_validate(payload)
    return planner.create_study_plan(db_path, user_id, data.target_band, data.exam_date)


@reported()
def get_dashboard(db_path: str, user_id: str):
    return {
        "stats": dashboard.get_attempt_stats(db_path, user_id),
        "sections": dashboard.get_section_scores(db_path, user_id),
    }
