"""Progress dashboard statistics across a user's completed attempts."""
from ielts_prep.db import get_connection
from ielts_prep.models import COMPLETED, SECTIONS
from ielts_prep.attempts import get_user_attempts


def get_band_label(band: float) -> str:
    if band >= 9:
        return "Expert"
    elif band >= 8:
        return "Very good"
    elif band >= 7:
        return "Good"
    elif band >= 6:
        return "Competent"
    elif band >= 5:
        return "Modest"
    elif band >= 4:
        return "Limited"
    return "Extremely limited"


def get_band_color(band: float) -> str:
    if band >= 7:
        return "green"
    elif band >= 6:
        return "yellow"
    elif band >= 5:
        return "dark_orange"
    return "red"


def get_attempt_stats(db_path: str, user_id: str) -> dict:
    attempts = get_user_attempts(db_path, user_id)
    bands = [
        a.score["band"] for a in attempts
        if a.status == COMPLETED and a.score and a.score.get("band") is not None
    ]
    return {
        "tests_started": len(attempts),
        "tests_completed": sum(1 for a in attempts if a.status == COMPLETED),
        "average_band": round(sum(bands) / len(bands), 1) if bands else None,
        "best_band": max(bands) if bands else None,
        "latest_band": bands[0] if bands else None,
    }


def get_section_scores(db_path: str, user_id: str) -> list[dict]:
    """Accuracy per section over graded answers of completed attempts."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT q.section, COUNT(*) as t, SUM(aa.is_correct) as c
        FROM attempt_answers aa
        JOIN attempts a ON aa.attempt_id = a.id
        JOIN questions q ON aa.question_id = q.id
        WHERE a.user_id = ? AND a.status = ? AND q.correct_answer IS NOT NULL
        GROUP BY q.section""",
        (user_id, COMPLETED),
    ).fetchall()
    conn.close()
    by_section = {r["section"]: r for r in rows}
    results = []
    for section in SECTIONS:
        row = by_section.get(section)
        if row is None:
            continue
        results.append({
            "section": section,
            "answered": row["t"],
            "correct": row["c"] or 0,
            "accuracy": round((row["c"] or 0) / row["t"] * 100, 1),
        })
    return results
