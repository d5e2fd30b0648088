"""Persistence for Pomodoro snapshots and study plans.

Storage failures stop here: they are logged and turned into None or a no-op,
never raised into the state machines.
"""
import copy
import json
import logging
import sqlite3
import time
from datetime import datetime
from typing import Callable, Optional

from study_tools.db import get_connection
from study_tools.models import (
    PomodoroSnapshot, StudyPlan, StudySession, StudyStrategyType, StudyTopic,
)

logger = logging.getLogger(__name__)

SNAPSHOT_MAX_AGE_MS = 60 * 60 * 1000
POMODORO_STATE_KEY = "pomodoro-state"
STUDY_PLAN_KEY_PREFIX = "study-plan"

_BAD_DATA = (ValueError, KeyError, TypeError)


def _now_ms() -> int:
    return int(time.time() * 1000)


class AppStateStore:
    """Key/value rows in the app_state table."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    def get(self, key: str) -> Optional[str]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("SELECT value FROM app_state WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                """INSERT INTO app_state (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at""",
                (key, value, datetime.now().isoformat()),
            )
            conn.commit()
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute("DELETE FROM app_state WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()


# ----- Pomodoro -----

class PomodoroRepository:
    """Stores one timer snapshot. Snapshots older than an hour are discarded on load."""

    def __init__(self, now: Optional[Callable[[], int]] = None):
        self._now = now or _now_ms

    def save(self, snapshot: PomodoroSnapshot) -> None:
        data = dict(snapshot.to_dict(), timestamp=self._now())
        try:
            self._write(json.dumps(data))
        except (sqlite3.Error, OSError) as e:
            logger.warning("Failed to save Pomodoro state: %s", e)

    def load(self) -> Optional[PomodoroSnapshot]:
        try:
            raw = self._read()
        except (sqlite3.Error, OSError) as e:
            logger.warning("Failed to load Pomodoro state: %s", e)
            return None
        if raw is None:
            return None
        try:
            snapshot = PomodoroSnapshot.from_dict(json.loads(raw))
        except _BAD_DATA as e:
            logger.warning("Failed to load Pomodoro state: %s", e)
            return None
        if self._now() - snapshot.timestamp > SNAPSHOT_MAX_AGE_MS:
            logger.info("Discarding stale Pomodoro state")
            self.clear()
            return None
        return snapshot

    def clear(self) -> None:
        try:
            self._remove()
        except (sqlite3.Error, OSError) as e:
            logger.warning("Failed to clear Pomodoro state: %s", e)

    def _read(self) -> Optional[str]:
        raise NotImplementedError

    def _write(self, raw: str) -> None:
        raise NotImplementedError

    def _remove(self) -> None:
        raise NotImplementedError


class InMemoryPomodoroRepository(PomodoroRepository):
    def __init__(self, now: Optional[Callable[[], int]] = None):
        super().__init__(now)
        self.raw: Optional[str] = None

    def _read(self):
        return self.raw

    def _write(self, raw):
        self.raw = raw

    def _remove(self):
        self.raw = None


class SqlitePomodoroRepository(PomodoroRepository):
    def __init__(self, db_path: str, key: str = POMODORO_STATE_KEY,
                 now: Optional[Callable[[], int]] = None):
        super().__init__(now)
        self.store = AppStateStore(db_path)
        self.key = key

    def _read(self):
        return self.store.get(self.key)

    def _write(self, raw):
        self.store.set(self.key, raw)

    def _remove(self):
        self.store.delete(self.key)


# ----- Study plans -----

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def plan_to_dict(plan: StudyPlan) -> dict:
    return {
        "id": plan.id,
        "userId": plan.user_id,
        "strategy": plan.strategy.value,
        "createdAt": _iso(plan.created_at),
        "targetDate": _iso(plan.target_date),
        "topics": [
            {
                "id": t.id,
                "title": t.title,
                "estimatedHours": t.estimated_hours,
                "priority": t.priority,
                "completed": t.completed,
            }
            for t in plan.topics
        ],
        "sessions": [
            {
                "id": s.id,
                "topicId": s.topic_id,
                "duration": s.duration,
                "completed": s.completed,
                "scheduledDate": _iso(s.scheduled_date),
                "completedDate": _iso(s.completed_date),
            }
            for s in plan.sessions
        ],
    }


def plan_from_dict(data: dict) -> StudyPlan:
    return StudyPlan(
        id=data["id"],
        user_id=data["userId"],
        strategy=StudyStrategyType(data["strategy"]),
        created_at=_from_iso(data["createdAt"]),
        target_date=_from_iso(data.get("targetDate")),
        topics=[
            StudyTopic(
                id=t["id"],
                title=t["title"],
                estimated_hours=t["estimatedHours"],
                priority=t["priority"],
                completed=t["completed"],
            )
            for t in data["topics"]
        ],
        sessions=[
            StudySession(
                id=s["id"],
                topic_id=s["topicId"],
                duration=s["duration"],
                completed=s["completed"],
                scheduled_date=_from_iso(s["scheduledDate"]),
                completed_date=_from_iso(s.get("completedDate")),
            )
            for s in data["sessions"]
        ],
    )


class StudyPlanRepository:
    """One plan per user. Returned plans are copies; mutating them does not touch storage."""

    def save(self, plan: StudyPlan) -> None:
        raise NotImplementedError

    def load(self, user_id: str) -> Optional[StudyPlan]:
        raise NotImplementedError

    def delete(self, user_id: str) -> None:
        raise NotImplementedError

    def exists(self, user_id: str) -> bool:
        raise NotImplementedError


class InMemoryStudyPlanRepository(StudyPlanRepository):
    def __init__(self):
        self._plans: dict[str, StudyPlan] = {}

    def save(self, plan):
        self._plans[plan.user_id] = copy.deepcopy(plan)

    def load(self, user_id):
        plan = self._plans.get(user_id)
        return copy.deepcopy(plan) if plan else None

    def delete(self, user_id):
        self._plans.pop(user_id, None)

    def exists(self, user_id):
        return user_id in self._plans

    def clear(self) -> None:
        self._plans.clear()


class SqliteStudyPlanRepository(StudyPlanRepository):
    def __init__(self, db_path: str):
        self.store = AppStateStore(db_path)

    @staticmethod
    def build_key(user_id: str) -> str:
        return f"{STUDY_PLAN_KEY_PREFIX}-{user_id}"

    def save(self, plan):
        try:
            self.store.set(self.build_key(plan.user_id), json.dumps(plan_to_dict(plan)))
        except sqlite3.Error as e:
            logger.warning("Failed to save study plan for %s: %s", plan.user_id, e)

    def load(self, user_id):
        try:
            raw = self.store.get(self.build_key(user_id))
        except sqlite3.Error as e:
            logger.warning("Failed to load study plan for %s: %s", user_id, e)
            return None
        if raw is None:
            return None
        try:
            return plan_from_dict(json.loads(raw))
        except _BAD_DATA as e:
            logger.warning("Failed to parse study plan for %s: %s", user_id, e)
            return None

    def delete(self, user_id):
        try:
            self.store.delete(self.build_key(user_id))
        except sqlite3.Error as e:
            logger.warning("Failed to delete study plan for %s: %s", user_id, e)

    def exists(self, user_id):
        try:
            return self.store.get(self.build_key(user_id)) is not None
        except sqlite3.Error as e:
            logger.warning("Failed to check study plan for %s: %s", user_id, e)
            return False
