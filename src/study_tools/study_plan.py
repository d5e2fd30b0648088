"""Study plan generation, progress tracking and undo history."""
import copy
import math
import uuid
from datetime import datetime, timedelta
from typing import Optional

from study_tools.errors import UnknownStrategy
from study_tools.models import (
    StudyPlan, StudyPlanMemento, StudyPlanState, StudySession, StudyStrategyType, StudyTopic,
)

PRIORITY_WEIGHT = {"HIGH": 3, "MEDIUM": 2, "LOW": 1}


class StudyStrategy:
    """How many hours a day to study and how long a single session may be."""
    name: StudyStrategyType
    daily_hours: float
    max_session_hours: float
    break_frequency: int  # minutes of study between breaks

    def prioritize(self, topics: list) -> list:
        return sorted(topics, key=lambda t: (-PRIORITY_WEIGHT[t.priority], t.estimated_hours))

    def distribute_topics(self, topics: list, start: Optional[datetime] = None) -> list[StudySession]:
        """Fill days greedily, highest priority topics first."""
        start = start or datetime.now()
        sessions = []
        day = 0
        day_hours = 0.0

        for topic in self.prioritize(topics):
            remaining = topic.estimated_hours
            while remaining > 0:
                duration = min(remaining, self.daily_hours - day_hours, self.max_session_hours)
                if duration > 0:
                    sessions.append(StudySession(
                        id=f"session-{len(sessions)}-{uuid.uuid4().hex[:8]}",
                        topic_id=topic.id,
                        duration=duration,
                        scheduled_date=start + timedelta(days=day),
                    ))
                    remaining -= duration
                    day_hours += duration
                if day_hours >= self.daily_hours:
                    day += 1
                    day_hours = 0.0
        return sessions


class IntensiveStrategy(StudyStrategy):
    name = StudyStrategyType.INTENSIVE
    daily_hours = 8
    max_session_hours = 3
    break_frequency = 50


class RegularStrategy(StudyStrategy):
    name = StudyStrategyType.REGULAR
    daily_hours = 4
    max_session_hours = 2
    break_frequency = 45


class LightStrategy(StudyStrategy):
    name = StudyStrategyType.LIGHT
    daily_hours = 2
    max_session_hours = 1
    break_frequency = 30


class StudyPlanGenerator:
    def __init__(self, strategies: Optional[list] = None):
        self._strategies = {}
        for strategy in strategies or [IntensiveStrategy(), RegularStrategy(), LightStrategy()]:
            self._strategies[strategy.name] = strategy

    def get_strategy(self, strategy_type: StudyStrategyType) -> StudyStrategy:
        try:
            return self._strategies[strategy_type]
        except KeyError:
            raise UnknownStrategy(f"Unknown strategy type: {strategy_type}") from None

    def calculate_days(self, topics: list, strategy_type: StudyStrategyType,
                       target_date: Optional[datetime] = None) -> int:
        """Days available until the target date, or days the strategy needs without one."""
        strategy = self.get_strategy(strategy_type)
        if target_date:
            diff = (target_date - datetime.now()).total_seconds() / 86400
            return max(math.ceil(diff), 1)
        total_hours = sum(t.estimated_hours for t in topics)
        return math.ceil(total_hours / strategy.daily_hours)

    def generate_plan(self, topics: list, strategy_type: StudyStrategyType,
                      user_id: str = "guest-user", target_date: Optional[datetime] = None) -> StudyPlan:
        strategy = self.get_strategy(strategy_type)
        return StudyPlan(
            id=f"plan-{uuid.uuid4().hex}",
            user_id=user_id,
            topics=copy.deepcopy(list(topics)),
            sessions=strategy.distribute_topics(topics),
            strategy=strategy_type,
            created_at=datetime.now(),
            target_date=target_date,
        )


def _studied_hours(sessions: list) -> float:
    return sum(s.duration for s in sessions if s.completed)


class StudyPlanCaretaker:
    """Keeps the last ``max_history`` snapshots of a plan's topics and sessions."""

    def __init__(self, max_history: int = 10):
        self.max_history = max_history
        self._history: list[StudyPlanMemento] = []

    def save(self, plan: StudyPlan) -> None:
        state = StudyPlanState(
            topics=copy.deepcopy(plan.topics),
            sessions=copy.deepcopy(plan.sessions),
            completed_sessions=sum(1 for s in plan.sessions if s.completed),
            total_hours_studied=_studied_hours(plan.sessions),
        )
        self._history.append(StudyPlanMemento(state=state, timestamp=datetime.now()))
        if len(self._history) > self.max_history:
            self._history.pop(0)

    def restore(self, index: int) -> Optional[StudyPlanState]:
        if index < 0 or index >= len(self._history):
            return None
        return self._history[index].state

    def get_latest(self) -> Optional[StudyPlanState]:
        if not self._history:
            return None
        return self._history[-1].state

    def pop(self) -> Optional[StudyPlanState]:
        """Remove and return the newest snapshot."""
        if not self._history:
            return None
        return self._history.pop().state

    @property
    def history(self) -> list:
        return list(self._history)

    def clear(self) -> None:
        self._history = []


class StudyPlanOriginator:
    def __init__(self, plan: StudyPlan):
        self.plan = plan

    def complete_session(self, session_id: str) -> bool:
        """Mark a session done. Returns False if it was unknown or already complete."""
        session = next((s for s in self.plan.sessions if s.id == session_id), None)
        if session is None or session.completed:
            return False
        session.completed = True
        session.completed_date = datetime.now()

        topic = next((t for t in self.plan.topics if t.id == session.topic_id), None)
        if topic is not None:
            if all(s.completed for s in self.plan.sessions if s.topic_id == topic.id):
                topic.completed = True
        return True

    def add_topic(self, topic: StudyTopic) -> None:
        self.plan.topics.append(topic)

    def remove_topic(self, topic_id: str) -> None:
        self.plan.topics = [t for t in self.plan.topics if t.id != topic_id]
        self.plan.sessions = [s for s in self.plan.sessions if s.topic_id != topic_id]

    def get_progress(self) -> dict:
        hours_studied = _studied_hours(self.plan.sessions)
        total_hours = sum(s.duration for s in self.plan.sessions)
        return {
            "completed_topics": sum(1 for t in self.plan.topics if t.completed),
            "total_topics": len(self.plan.topics),
            "completed_sessions": sum(1 for s in self.plan.sessions if s.completed),
            "total_sessions": len(self.plan.sessions),
            "hours_studied": hours_studied,
            "total_hours": total_hours,
            "percentage_complete": round(hours_studied / total_hours * 100) if total_hours > 0 else 0,
        }

    def restore_from_memento(self, state: StudyPlanState) -> None:
        self.plan.topics = copy.deepcopy(state.topics)
        self.plan.sessions = copy.deepcopy(state.sessions)
