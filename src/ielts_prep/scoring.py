"""Answer checking and band score calculation.

Everything here is pure: no database access, no clock.
"""
import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from ielts_prep.models import AttemptAnswer, Question

# (minimum accuracy %, band), checked top-down
BAND_TABLE = (
    (90, 9.0),
    (80, 8.5),
    (70, 8.0),
    (65, 7.5),
    (60, 7.0),
    (55, 6.5),
    (50, 6.0),
    (45, 5.5),
    (40, 5.0),
    (35, 4.5),
)
FLOOR_BAND = 4.0

SHORT_ANSWER_DELIMITER = "|"

UNSCORED_TYPES = {"essay", "letter", "speaking_part_1", "speaking_part_2", "speaking_part_3"}


@dataclass(frozen=True)
class ChoiceKey:
    option: str


@dataclass(frozen=True)
class VerdictKey:
    verdict: str  # true | false | not given


@dataclass(frozen=True)
class AcceptedAnswers:
    accepted: tuple


@dataclass(frozen=True)
class ExactKey:
    value: str


AnswerKey = Union[ChoiceKey, VerdictKey, AcceptedAnswers, ExactKey]


@dataclass(frozen=True)
class ScoreResult:
    correct: int
    total: int
    band: float

    @property
    def percentage(self) -> float:
        return round(self.correct * 100 / self.total, 1) if self.total else 0.0

    def to_dict(self) -> dict:
        return {
            "correct": self.correct,
            "total": self.total,
            "percentage": self.percentage,
            "band": self.band,
        }


def canonical(value: Any) -> str:
    """Comparable string form: trimmed, lower-cased, JSON for non-strings."""
    if not isinstance(value, str):
        value = json.dumps(value, sort_keys=True)
    return value.strip().lower()


def answer_key(question: Question) -> Optional[AnswerKey]:
    """The auto-marking key for a question, or None if it needs a human."""
    if question.type in UNSCORED_TYPES or question.correct_answer is None:
        return None
    raw = question.correct_answer
    if question.type == "multiple_choice":
        return ChoiceKey(canonical(raw))
    if question.type == "true_false_not_given":
        return VerdictKey(canonical(raw))
    if question.type == "short_answer":
        text = raw if isinstance(raw, str) else SHORT_ANSWER_DELIMITER.join(map(str, raw))
        return AcceptedAnswers(tuple(
            canonical(part) for part in text.split(SHORT_ANSWER_DELIMITER) if part.strip()
        ))
    return ExactKey(canonical(raw))


def is_match(key: AnswerKey, answer: Any) -> bool:
    given = canonical(answer)
    if isinstance(key, ChoiceKey):
        return given == key.option
    if isinstance(key, VerdictKey):
        return given == key.verdict
    if isinstance(key, AcceptedAnswers):
        return given in key.accepted
    if isinstance(key, ExactKey):
        return given == key.value
    raise TypeError(f"Unknown answer key: {key!r}")


def grade_answers(questions: list[Question], answers: list[AttemptAnswer]) -> dict[int, bool]:
    """Verdict per auto-scorable question id. Unanswered questions are False."""
    submitted = {a.question_id: a.answer for a in answers}
    verdicts = {}
    for q in questions:
        key = answer_key(q)
        if key is None:
            continue
        answer = submitted.get(q.id)
        verdicts[q.id] = answer is not None and is_match(key, answer)
    return verdicts


def band_for_accuracy(percentage: float) -> float:
    for threshold, band in BAND_TABLE:
        if percentage >= threshold:
            return band
    return FLOOR_BAND


def score_answers(questions: list[Question], answers: list[AttemptAnswer]) -> ScoreResult:
    verdicts = grade_answers(questions, answers)
    total = len(verdicts)
    correct = sum(verdicts.values())
    if total == 0:
        return ScoreResult(correct=0, total=0, band=FLOOR_BAND)
    return ScoreResult(correct=correct, total=total, band=band_for_accuracy(correct * 100 / total))
