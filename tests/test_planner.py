# tests/test_planner.py
from datetime import date, datetime, timedelta

import pytest

from ielts_prep.db import init_db, get_connection
from ielts_prep.errors import ValidationError
from ielts_prep.planner import (
    CORE_BAND_TIP, FOCUS_AREAS, FULL_MOCK_TASKS, HALF_TEST_TASKS, HIGH_BAND_TIP,
    band_to_display, band_to_storage, create_study_plan, daily_task, days_until,
    focus_areas_for, generate_plan, get_study_plan, select_mode,
)

NOW = datetime(2026, 10, 1, 9, 0, 0)


@pytest.mark.parametrize("band", [6.0, 6.5, 7.0, 7.5, 8.0, 8.5])
def test_band_storage_round_trip(band):
    assert band_to_display(band_to_storage(band)) == band


def test_band_storage_values():
    assert band_to_storage(6.5) == 13
    assert band_to_storage(7.0) == 14
    assert band_to_display(17) == 8.5


def test_band_applied_twice_is_rejected():
    with pytest.raises(ValueError):
        band_to_storage(band_to_storage(6.5))
    with pytest.raises(ValueError):
        band_to_display(band_to_display(13))


@pytest.mark.parametrize("stored", [8, 9])
def test_stored_band_in_display_range_is_rejected(stored):
    # 8 and 9 are valid stored values (4.0, 4.5) and look like display bands
    with pytest.raises(ValueError):
        band_to_storage(stored)


def test_band_off_half_step_is_rejected():
    with pytest.raises(ValueError):
        band_to_storage(6.3)


def test_days_until_rounds_up_partial_days():
    assert days_until(date(2026, 10, 11), NOW) == 10
    assert days_until(datetime(2026, 10, 2, 9, 0, 0), NOW) == 1
    assert days_until(date(2026, 10, 1), NOW) <= 0


def test_select_mode_boundary():
    assert select_mode(1) == "15-day"
    assert select_mode(15) == "15-day"
    assert select_mode(16) == "30-day"
    assert select_mode(90) == "30-day"


def test_focus_areas_by_band():
    assert focus_areas_for(8.5) == FOCUS_AREAS["advanced"]
    assert focus_areas_for(7.5) == FOCUS_AREAS["advanced"]
    assert focus_areas_for(7) == FOCUS_AREAS["upper"]
    assert focus_areas_for(6.5) == FOCUS_AREAS["upper"]
    assert focus_areas_for(6) == FOCUS_AREAS["core"]


def test_daily_rotation():
    sections = [daily_task(day, NOW)["section"] for day in range(1, 8)]
    assert sections == ["listening", "reading", "writing", "speaking", "mixed_review", "full_test", "rest"]


def test_daily_task_dates_start_today():
    assert daily_task(1, NOW)["date"] == "2026-10-01"
    assert daily_task(10, NOW)["date"] == "2026-10-10"


def test_full_test_day_alternates_by_week():
    assert daily_task(6, NOW)["tasks"] == HALF_TEST_TASKS
    assert daily_task(13, NOW)["tasks"] == FULL_MOCK_TASKS
    assert daily_task(20, NOW)["tasks"] == HALF_TEST_TASKS


def test_estimated_minutes():
    assert daily_task(6, NOW)["estimated_minutes"] == 180
    assert daily_task(7, NOW)["estimated_minutes"] == 30
    assert daily_task(3, NOW)["estimated_minutes"] == 90


def test_generate_plan_short_mode_scenario():
    plan = generate_plan(7, 10, "15-day", now=NOW)
    assert plan["mode"] == "15-day"
    assert plan["total_days"] == 10
    assert len(plan["daily_tasks"]) == 10
    assert plan["focus_areas"][:2] == [
        "Paraphrasing and synonym recognition",
        "Task response and essay structure",
    ]
    day6 = plan["daily_tasks"][5]
    assert day6["section"] == "full_test"
    assert day6["week"] == 1
    assert day6["tasks"] == HALF_TEST_TASKS
    assert day6["estimated_minutes"] == 180
    assert all(d["completed"] is False for d in plan["daily_tasks"])


def test_generate_plan_weekly_goals():
    short = generate_plan(6, 15, "15-day", now=NOW)
    long = generate_plan(6, 45, "30-day", now=NOW)
    assert [g["week"] for g in short["weekly_goals"]] == [1, 2]
    assert [g["week"] for g in long["weekly_goals"]] == [1, 2, 3, 4]
    assert long["weekly_goals"][1]["focus"] == ", ".join(FOCUS_AREAS["core"][:2])


def test_generate_plan_is_capped_by_mode():
    plan = generate_plan(6, 45, "30-day", now=NOW)
    assert plan["total_days"] == 30
    assert plan["daily_tasks"][-1]["day"] == 30


def test_generate_plan_tips():
    high = generate_plan(7, 20, "30-day", now=NOW)
    low = generate_plan(6.5, 20, "30-day", now=NOW)
    assert len(high["tips"]) == 5
    assert high["tips"][-1] == HIGH_BAND_TIP
    assert low["tips"][-1] == CORE_BAND_TIP


def test_generate_plan_is_deterministic():
    assert generate_plan(7.5, 12, "15-day", now=NOW) == generate_plan(7.5, 12, "15-day", now=NOW)


def test_create_study_plan(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "user-1", 6.5, date(2026, 10, 11), now=NOW)
    assert plan.target_band == 6.5
    assert plan.exam_date == "2026-10-11"
    assert plan.plan_data["mode"] == "15-day"
    assert plan.plan_data["total_days"] == 10
    assert plan.progress is None


def test_study_plan_band_stored_doubled(tmp_db):
    init_db(tmp_db)
    create_study_plan(tmp_db, "user-1", 6.5, date(2026, 11, 30), now=NOW)
    conn = get_connection(tmp_db)
    stored = conn.execute("SELECT target_band FROM study_plans").fetchone()[0]
    conn.close()
    assert stored == 13
    assert get_study_plan(tmp_db, "user-1").target_band == 6.5


def test_latest_plan_is_current(tmp_db):
    init_db(tmp_db)
    create_study_plan(tmp_db, "user-1", 6.0, date(2026, 11, 30), now=NOW)
    newer = create_study_plan(tmp_db, "user-1", 8.0, date(2026, 10, 20), now=NOW + timedelta(hours=1))
    current = get_study_plan(tmp_db, "user-1")
    assert current.id == newer.id
    assert current.target_band == 8


def test_get_study_plan_none(tmp_db):
    init_db(tmp_db)
    assert get_study_plan(tmp_db, "nobody") is None


@pytest.mark.parametrize("exam_date", [date(2026, 10, 1), date(2026, 9, 1)])
def test_exam_date_must_be_in_future(tmp_db, exam_date):
    init_db(tmp_db)
    with pytest.raises(ValidationError) as exc:
        create_study_plan(tmp_db, "user-1", 7.0, exam_date, now=NOW)
    assert exc.value.field == "examDate"
    assert get_study_plan(tmp_db, "user-1") is None
