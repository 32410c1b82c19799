"""Study plan generation and storage.

Target bands are stored doubled as integers (6.5 -> 13). Convert with
``band_to_storage``/``band_to_display`` exactly once at each boundary.
"""
import json
import logging
import math
from datetime import date, datetime, timedelta

from ielts_prep.db import get_connection
from ielts_prep.errors import ValidationError
from ielts_prep.models import StudyPlan

logger = logging.getLogger(__name__)

MIN_BAND = 4.0
MAX_BAND = 9.0

SHORT_MODE = "15-day"
LONG_MODE = "30-day"
MODE_DAYS = {SHORT_MODE: 15, LONG_MODE: 30}

FOCUS_AREAS = {
    "advanced": [
        "Complex grammatical structures",
        "Advanced vocabulary and collocations",
        "Coherence and cohesion in extended writing",
        "Fluency with natural intonation",
    ],
    "upper": [
        "Paraphrasing and synonym recognition",
        "Task response and essay structure",
        "Skimming and scanning speed",
        "Extending speaking answers with examples",
    ],
    "core": [
        "Test format and question types",
        "Basic sentence structure and grammar accuracy",
        "Everyday topic vocabulary",
        "Listening for specific details",
    ],
}

# day-of-cycle -> (section, tasks); day 6 is handled separately
DAILY_ROTATION = {
    1: ("listening", [
        "Complete one listening section under timed conditions",
        "Review the transcript and note missed keywords",
        "Practise spelling numbers, names and dates",
    ]),
    2: ("reading", [
        "Complete one reading passage in 20 minutes",
        "Practise True/False/Not Given questions",
        "Build a list of paraphrased words from the passage",
    ]),
    3: ("writing", [
        "Write a Task 1 letter in 20 minutes",
        "Plan and write a Task 2 essay in 40 minutes",
        "Check your work for grammar and spelling errors",
    ]),
    4: ("speaking", [
        "Answer Part 1 questions on familiar topics",
        "Record a 2-minute Part 2 talk from a cue card",
        "Discuss two Part 3 questions and review the recording",
    ]),
    5: ("mixed_review", [
        "Revisit mistakes from this week's practice",
        "Review new vocabulary with flashcards",
        "Redo the questions you found hardest",
    ]),
    7: ("rest", [
        "Light review of vocabulary notes",
        "Watch or listen to English media for enjoyment",
    ]),
}

FULL_MOCK_TASKS = [
    "Take a full mock test under exam conditions",
    "Mark the listening and reading sections",
    "Compare your writing with band descriptors",
]
HALF_TEST_TASKS = [
    "Take a half test: one listening and one reading section",
    "Write one Task 2 essay under timed conditions",
    "Review the answers and log recurring errors",
]

TIPS = [
    "Read the question carefully before looking for the answer",
    "Manage your time: do not spend too long on a single question",
    "Transfer answers carefully and check spelling",
    "Practise a little every day rather than cramming",
]
HIGH_BAND_TIP = "Focus on coherence and a wide range of vocabulary to reach the higher bands"
CORE_BAND_TIP = "Prioritise accuracy and clear basic structures before attempting complex language"


def band_to_storage(display_band: float) -> int:
    """Display bands are floats (7.0, 6.5); stored bands are ints (14, 13)."""
    if not isinstance(display_band, float):
        raise ValueError(f"{display_band!r} is not a display band")
    if not MIN_BAND <= display_band <= MAX_BAND:
        raise ValueError(f"Band {display_band} is outside {MIN_BAND}-{MAX_BAND}")
    if not (display_band * 2).is_integer():
        raise ValueError(f"Band {display_band} is not a half-band step")
    return int(display_band * 2)


def band_to_display(stored_band: int) -> float:
    if not isinstance(stored_band, int) or not MIN_BAND * 2 <= stored_band <= MAX_BAND * 2:
        raise ValueError(f"{stored_band!r} is not a stored band")
    return stored_band / 2


def days_until(exam_date: date | datetime, now: datetime | None = None) -> int:
    now = now or datetime.now()
    if not isinstance(exam_date, datetime):
        exam_date = datetime.combine(exam_date, datetime.min.time())
    return math.ceil((exam_date - now).total_seconds() / 86400)


def select_mode(days_until_exam: int) -> str:
    return SHORT_MODE if days_until_exam <= MODE_DAYS[SHORT_MODE] else LONG_MODE


def focus_areas_for(target_band: float) -> list[str]:
    if target_band >= 7.5:
        return list(FOCUS_AREAS["advanced"])
    if target_band >= 6.5:
        return list(FOCUS_AREAS["upper"])
    return list(FOCUS_AREAS["core"])


def weekly_goals_for(mode: str, focus_areas: list[str]) -> list[dict]:
    goals = [
        {"week": 1, "goal": "Foundation", "focus": "Learn the test format and take a diagnostic test"},
        {"week": 2, "goal": "Skill building", "focus": ", ".join(focus_areas[:2])},
    ]
    if mode == LONG_MODE:
        goals += [
            {"week": 3, "goal": "Intensive practice", "focus": "Timed section practice and error review"},
            {"week": 4, "goal": "Mock tests and polish", "focus": "Full mock tests and final revision"},
        ]
    return goals


def daily_task(day: int, start: datetime) -> dict:
    week = math.ceil(day / 7)
    cycle = (day - 1) % 7 + 1
    if cycle == 6:
        section = "full_test"
        tasks = FULL_MOCK_TASKS if week % 2 == 0 else HALF_TEST_TASKS
    else:
        section, tasks = DAILY_ROTATION[cycle]
    if section == "full_test":
        minutes = 180
    elif section == "rest":
        minutes = 30
    else:
        minutes = 90
    return {
        "day": day,
        "week": week,
        "date": (start + timedelta(days=day - 1)).date().isoformat(),
        "section": section,
        "tasks": list(tasks),
        "estimated_minutes": minutes,
        "completed": False,
    }


def generate_plan(target_band: float, days_until_exam: int, mode: str, now: datetime | None = None) -> dict:
    """Build the day-by-day schedule for a display ``target_band``.

    Day 1 is dated ``now``. The output depends only on the arguments.
    """
    now = now or datetime.now()
    focus = focus_areas_for(target_band)
    length = min(days_until_exam, MODE_DAYS[mode])
    return {
        "mode": mode,
        "target_band": target_band,
        "total_days": length,
        "focus_areas": focus,
        "weekly_goals": weekly_goals_for(mode, focus),
        "daily_tasks": [daily_task(day, now) for day in range(1, length + 1)],
        "tips": TIPS + [HIGH_BAND_TIP if target_band >= 7 else CORE_BAND_TIP],
    }


def _plan_from_row(row) -> StudyPlan:
    return StudyPlan(
        id=row["id"],
        user_id=row["user_id"],
        target_band=band_to_display(row["target_band"]),
        exam_date=row["exam_date"],
        plan_data=json.loads(row["plan_data"]),
        progress=json.loads(row["progress"]) if row["progress"] else None,
        created_at=row["created_at"],
    )


def create_study_plan(
    db_path: str,
    user_id: str,
    target_band: float,
    exam_date: date | datetime,
    now: datetime | None = None,
) -> StudyPlan:
    now = now or datetime.now()
    remaining = days_until(exam_date, now)
    if remaining <= 0:
        raise ValidationError("Exam date must be in the future", field="examDate")
    mode = select_mode(remaining)
    plan = generate_plan(target_band, remaining, mode, now=now)
    conn = get_connection(db_path)
    cur = conn.execute(
        """INSERT INTO study_plans (user_id, target_band, exam_date, plan_data, created_at)
        VALUES (?, ?, ?, ?, ?)""",
        (user_id, band_to_storage(target_band), exam_date.isoformat(), json.dumps(plan), now.isoformat()),
    )
    conn.commit()
    row = conn.execute("SELECT * FROM study_plans WHERE id = ?", (cur.lastrowid,)).fetchone()
    conn.close()
    logger.info("Created %s plan %s for %s (band %s)", mode, row["id"], user_id, target_band)
    return _plan_from_row(row)


def get_study_plan(db_path: str, user_id: str) -> StudyPlan | None:
    """The user's current plan: the most recently created one."""
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM study_plans WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT 1",
        (user_id,),
    ).fetchone()
    conn.close()
    return _plan_from_row(row) if row else None
