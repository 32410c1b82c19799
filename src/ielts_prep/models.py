"""Data classes for the exam domain model."""
import json
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Optional

SECTIONS = ("listening", "reading", "writing", "speaking")

QUESTION_TYPES = (
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
)

IN_PROGRESS = "in_progress"
COMPLETED = "completed"
ATTEMPT_STATUSES = (IN_PROGRESS, COMPLETED)


def _load(value: Optional[str]) -> Any:
    return json.loads(value) if value is not None else None


@dataclass
class Passage:
    id: int
    title: str
    content: str
    section: str
    metadata: Optional[dict] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Passage":
        return cls(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            section=row["section"],
            metadata=_load(row["metadata"]),
        )


@dataclass
class Question:
    id: int
    section: str
    type: str
    content: str
    part: Optional[int] = None
    options: Optional[Any] = None
    correct_answer: Optional[Any] = None
    explanation: Optional[str] = None
    passage_id: Optional[int] = None
    difficulty: int = 1
    tags: list = field(default_factory=list)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Question":
        return cls(
            id=row["id"],
            section=row["section"],
            type=row["type"],
            content=row["content"],
            part=row["part"],
            options=_load(row["options"]),
            correct_answer=_load(row["correct_answer"]),
            explanation=row["explanation"],
            passage_id=row["passage_id"],
            difficulty=row["difficulty"],
            tags=_load(row["tags"]) or [],
        )


@dataclass
class MockTest:
    id: int
    title: str
    structure: dict
    is_system: bool = False
    created_at: Optional[str] = None
    questions: list = field(default_factory=list)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "MockTest":
        return cls(
            id=row["id"],
            title=row["title"],
            structure=_load(row["structure"]) or {},
            is_system=bool(row["is_system"]),
            created_at=row["created_at"],
        )


@dataclass
class Attempt:
    id: int
    user_id: str
    test_id: Optional[int]
    status: str = IN_PROGRESS
    score: Optional[dict] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    time_spent: Optional[int] = None

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Attempt":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            test_id=row["test_id"],
            status=row["status"],
            score=_load(row["score"]),
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            time_spent=row["time_spent"],
        )


@dataclass
class AttemptAnswer:
    id: int
    attempt_id: int
    question_id: int
    answer: Any = None
    is_correct: bool = False
    score: int = 0
    ai_feedback: Optional[dict] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "AttemptAnswer":
        return cls(
            id=row["id"],
            attempt_id=row["attempt_id"],
            question_id=row["question_id"],
            answer=_load(row["answer"]),
            is_correct=bool(row["is_correct"]),
            score=row["score"] or 0,
            ai_feedback=_load(row["ai_feedback"]),
        )


@dataclass
class AttemptDetails:
    """An attempt merged with its resolved test, answers and passages."""
    attempt: Attempt
    test: Optional[MockTest]
    answers: list = field(default_factory=list)
    passages: list = field(default_factory=list)


@dataclass
class StudyPlan:
    id: int
    user_id: str
    target_band: float  # display form, e.g. 6.5
    exam_date: str
    plan_data: dict
    progress: Optional[dict] = None
    created_at: Optional[str] = None
