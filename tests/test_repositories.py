"""Tests for Pomodoro and study plan persistence."""
import json
import sqlite3
from datetime import datetime

from study_tools.db import init_db
from study_tools.models import PomodoroPhase, PomodoroSnapshot, StudyPlan, StudySession, StudyStrategyType, StudyTopic
from study_tools.repositories import (
    SNAPSHOT_MAX_AGE_MS, AppStateStore, InMemoryPomodoroRepository, InMemoryStudyPlanRepository,
    SqlitePomodoroRepository, SqliteStudyPlanRepository, plan_from_dict, plan_to_dict,
)

NOW = 1_700_000_000_000


def snapshot(**changes):
    values = dict(phase=PomodoroPhase.SHORT_BREAK, remaining_time=120, completed_sessions=3,
                  state="PAUSED", timestamp=0)
    values.update(changes)
    return PomodoroSnapshot(**values)


def make_plan(user_id="guest-user"):
    start = datetime(2024, 1, 1, 9, 0)
    return StudyPlan(
        id="plan-1",
        user_id=user_id,
        topics=[StudyTopic(id="t1", title="Algebra", estimated_hours=3, priority="HIGH")],
        sessions=[
            StudySession(id="s1", topic_id="t1", duration=2, scheduled_date=start),
            StudySession(id="s2", topic_id="t1", duration=1, scheduled_date=start, completed=True,
                         completed_date=datetime(2024, 1, 1, 12, 0)),
        ],
        strategy=StudyStrategyType.REGULAR,
        created_at=start,
    )


def test_app_state_store_roundtrip(tmp_db):
    init_db(tmp_db)
    store = AppStateStore(tmp_db)
    assert store.get("k") is None
    store.set("k", "one")
    store.set("k", "two")
    assert store.get("k") == "two"
    store.delete("k")
    assert store.get("k") is None


def test_pomodoro_save_stamps_current_time():
    repo = InMemoryPomodoroRepository(now=lambda: NOW)
    repo.save(snapshot(timestamp=5))
    assert json.loads(repo.raw)["timestamp"] == NOW
    loaded = repo.load()
    assert loaded == snapshot(timestamp=NOW)


def test_pomodoro_storage_keys():
    repo = InMemoryPomodoroRepository(now=lambda: NOW)
    repo.save(snapshot())
    assert set(json.loads(repo.raw)) == {"phase", "remainingTime", "completedSessions", "state", "timestamp"}


def test_pomodoro_load_empty():
    assert InMemoryPomodoroRepository().load() is None


def test_pomodoro_stale_snapshot_is_cleared():
    clock = {"now": NOW}
    repo = InMemoryPomodoroRepository(now=lambda: clock["now"])
    repo.save(snapshot())
    clock["now"] = NOW + SNAPSHOT_MAX_AGE_MS + 1
    assert repo.load() is None
    assert repo.raw is None


def test_pomodoro_snapshot_at_age_limit_is_kept():
    clock = {"now": NOW}
    repo = InMemoryPomodoroRepository(now=lambda: clock["now"])
    repo.save(snapshot())
    clock["now"] = NOW + SNAPSHOT_MAX_AGE_MS
    assert repo.load() is not None


def test_pomodoro_corrupt_data_returns_none():
    repo = InMemoryPomodoroRepository(now=lambda: NOW)
    for raw in ("{not json", json.dumps({"phase": "WORK"}), json.dumps([1, 2]),
                json.dumps({"phase": "NAP", "remainingTime": 1, "completedSessions": 0,
                            "state": "IDLE", "timestamp": NOW}),
                json.dumps({"phase": "WORK", "remainingTime": -1, "completedSessions": 0,
                            "state": "IDLE", "timestamp": NOW})):
        repo.raw = raw
        assert repo.load() is None


def test_pomodoro_clear():
    repo = InMemoryPomodoroRepository(now=lambda: NOW)
    repo.save(snapshot())
    repo.clear()
    assert repo.load() is None
    repo.clear()


def test_sqlite_pomodoro_repository(tmp_db):
    init_db(tmp_db)
    repo = SqlitePomodoroRepository(tmp_db, now=lambda: NOW)
    repo.save(snapshot())
    assert repo.load() == snapshot(timestamp=NOW)
    assert AppStateStore(tmp_db).get("pomodoro-state") is not None
    repo.clear()
    assert repo.load() is None


def test_sqlite_pomodoro_without_schema_does_not_raise(tmp_db, caplog):
    repo = SqlitePomodoroRepository(tmp_db, now=lambda: NOW)
    repo.save(snapshot())
    assert repo.load() is None
    repo.clear()
    assert "Failed to save Pomodoro state" in caplog.text


def test_plan_dict_roundtrip():
    plan = make_plan()
    data = plan_to_dict(plan)
    assert data["userId"] == "guest-user"
    assert data["sessions"][1]["completedDate"] == "2024-01-01T12:00:00"
    assert plan_from_dict(json.loads(json.dumps(data))) == plan


def test_in_memory_plan_repository_returns_copies():
    repo = InMemoryStudyPlanRepository()
    plan = make_plan()
    repo.save(plan)
    plan.topics[0].title = "Changed after save"
    loaded = repo.load("guest-user")
    assert loaded.topics[0].title == "Algebra"
    loaded.topics[0].title = "Changed after load"
    assert repo.load("guest-user").topics[0].title == "Algebra"


def test_in_memory_plan_repository_delete_and_exists():
    repo = InMemoryStudyPlanRepository()
    assert not repo.exists("guest-user")
    repo.save(make_plan())
    assert repo.exists("guest-user")
    repo.delete("guest-user")
    assert repo.load("guest-user") is None
    repo.save(make_plan("other"))
    repo.clear()
    assert not repo.exists("other")


def test_sqlite_plan_repository(tmp_db):
    init_db(tmp_db)
    repo = SqliteStudyPlanRepository(tmp_db)
    repo.save(make_plan("alice"))
    assert repo.exists("alice")
    assert not repo.exists("bob")
    assert repo.load("alice") == make_plan("alice")
    assert AppStateStore(tmp_db).get("study-plan-alice") is not None
    repo.delete("alice")
    assert repo.load("alice") is None


def test_sqlite_plan_repository_corrupt_data(tmp_db):
    init_db(tmp_db)
    AppStateStore(tmp_db).set(SqliteStudyPlanRepository.build_key("alice"), '{"id": "x"}')
    assert SqliteStudyPlanRepository(tmp_db).load("alice") is None


def test_sqlite_plan_repository_storage_errors(tmp_db):
    repo = SqliteStudyPlanRepository(tmp_db)
    repo.save(make_plan())
    assert repo.load("guest-user") is None
    assert repo.exists("guest-user") is False
    repo.delete("guest-user")
    conn = sqlite3.connect(tmp_db)
    tables = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    conn.close()
    assert tables == []
