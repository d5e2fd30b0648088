"""Data classes for the study tools domain model."""
import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class PomodoroPhase(str, Enum):
    WORK = "WORK"
    SHORT_BREAK = "SHORT_BREAK"
    LONG_BREAK = "LONG_BREAK"


def _check_positive(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")


@dataclass(frozen=True)
class PomodoroSettings:
    """Durations in minutes plus the number of work sessions before a long break."""
    work_duration: int = 25
    short_break_duration: int = 5
    long_break_duration: int = 15
    sessions_until_long_break: int = 4

    def __post_init__(self):
        _check_positive("work_duration", self.work_duration)
        _check_positive("short_break_duration", self.short_break_duration)
        _check_positive("long_break_duration", self.long_break_duration)
        _check_positive("sessions_until_long_break", self.sessions_until_long_break)

    def duration_for(self, phase: PomodoroPhase) -> int:
        """Length of a phase in seconds."""
        if phase == PomodoroPhase.WORK:
            return self.work_duration * 60
        elif phase == PomodoroPhase.SHORT_BREAK:
            return self.short_break_duration * 60
        return self.long_break_duration * 60


@dataclass(frozen=True)
class PomodoroSnapshot:
    phase: PomodoroPhase
    remaining_time: int
    completed_sessions: int
    state: str
    timestamp: int  # epoch milliseconds

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "remainingTime": self.remaining_time,
            "completedSessions": self.completed_sessions,
            "state": self.state,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PomodoroSnapshot":
        remaining = data["remainingTime"]
        completed = data["completedSessions"]
        timestamp = data["timestamp"]
        for name, value in (("remainingTime", remaining), ("completedSessions", completed), ("timestamp", timestamp)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"invalid {name}: {value!r}")
        if not isinstance(data["state"], str):
            raise ValueError(f"invalid state: {data['state']!r}")
        return cls(
            phase=PomodoroPhase(data["phase"]),
            remaining_time=remaining,
            completed_sessions=completed,
            state=data["state"],
            timestamp=timestamp,
        )


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    FILL_IN_THE_BLANK = "FILL_IN_THE_BLANK"


@dataclass(frozen=True)
class Question:
    id: str
    text: str
    type: QuestionType
    options: tuple
    correct_answer: int
    explanation: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "options", tuple(self.options))
        if not 0 <= self.correct_answer < len(self.options):
            raise ValueError(
                f"correct_answer {self.correct_answer} out of range for {len(self.options)} options"
            )


@dataclass(frozen=True)
class QuestionDraft:
    """A question as returned by an AI backend, before it gets an id and type."""
    text: str
    options: tuple
    correct_answer: int = 0
    explanation: Optional[str] = None


@dataclass(frozen=True)
class QuizData:
    id: str
    title: str
    questions: tuple
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        object.__setattr__(self, "questions", tuple(self.questions))


class StudyStrategyType(str, Enum):
    INTENSIVE = "INTENSIVE"
    REGULAR = "REGULAR"
    LIGHT = "LIGHT"


PRIORITIES = ("HIGH", "MEDIUM", "LOW")


@dataclass
class StudyTopic:
    id: str
    title: str
    estimated_hours: float
    priority: str = "MEDIUM"
    completed: bool = False

    def __post_init__(self):
        if self.priority not in PRIORITIES:
            raise ValueError(f"priority must be one of {PRIORITIES}, got {self.priority!r}")


@dataclass
class StudySession:
    id: str
    topic_id: str
    duration: float
    scheduled_date: datetime
    completed: bool = False
    completed_date: Optional[datetime] = None


@dataclass
class StudyPlan:
    id: str
    user_id: str
    topics: list
    sessions: list
    strategy: StudyStrategyType
    created_at: datetime = field(default_factory=datetime.now)
    target_date: Optional[datetime] = None

    def copy(self) -> "StudyPlan":
        return copy.deepcopy(self)


@dataclass
class StudyPlanState:
    topics: list
    sessions: list
    completed_sessions: int
    total_hours_studied: float


@dataclass
class StudyPlanMemento:
    state: StudyPlanState
    timestamp: datetime = field(default_factory=datetime.now)
