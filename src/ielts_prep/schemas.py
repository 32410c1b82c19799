"""Input schemas for the operations exposed by ``ielts_prep.api``."""
from datetime import date
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Section = Literal["listening", "reading", "writing", "speaking"]
QuestionType = Literal[
    "multiple_choice",
    "true_false_not_given",
    "matching_headings",
    "matching_information",
    "sentence_completion",
    "short_answer",
    "essay",
    "letter",
    "speaking_part_1",
    "speaking_part_2",
    "speaking_part_3",
]


class Payload(BaseModel):
    """Accepts both camelCase and snake_case keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuestionFilters(Payload):
    section: Optional[Section] = None
    type: Optional[QuestionType] = None
    limit: Optional[int] = Field(default=None, ge=1)


class QuestionCreate(Payload):
    section: Section
    type: QuestionType
    content: str = Field(min_length=1)
    part: Optional[int] = Field(default=None, ge=1, le=4)
    options: Optional[Any] = None
    correct_answer: Optional[Any] = None
    explanation: Optional[str] = None
    passage_id: Optional[int] = None
    difficulty: int = Field(default=1, ge=1, le=5)
    tags: list[str] = Field(default_factory=list)


class GenerateTestRequest(Payload):
    sections: list[Section] = Field(min_length=1)
    difficulty: Optional[int] = Field(default=None, ge=1, le=5)


class AttemptCreate(Payload):
    test_id: Optional[int] = None


class AnswerSubmission(Payload):
    question_id: int
    answer: Any


class PlanRequest(Payload):
    target_band: float = Field(ge=4, le=9, multiple_of=0.5)
    exam_date: date
