import pytest

from study_tools.clock import ManualClock
from study_tools.models import PomodoroSettings
from study_tools.pomodoro import PomodoroEngine, PomodoroObserver


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_study.db")
    return db_path


class RecordingObserver(PomodoroObserver):
    def __init__(self):
        self.events = []

    def on_state_change(self, state_name, phase, remaining_time):
        self.events.append(("state", state_name, phase, remaining_time))

    def on_phase_complete(self, ended_phase):
        self.events.append(("phase", ended_phase))

    def on_session_complete(self, completed_sessions):
        self.events.append(("session", completed_sessions))

    def of(self, kind):
        return [e for e in self.events if e[0] == kind]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def engine(clock):
    """Engine with one-minute phases so tests can tick through them."""
    settings = PomodoroSettings(work_duration=1, short_break_duration=1, long_break_duration=2)
    return PomodoroEngine(settings, clock=clock)


@pytest.fixture
def observer(engine):
    obs = RecordingObserver()
    engine.subscribe(obs)
    return obs
