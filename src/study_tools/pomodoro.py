"""Pomodoro timer state machine.

The engine holds the timer data and delegates every mutating operation to its
current state object. States are stateless singletons; the engine swaps them
with set_state(). Observers are notified after every state-affecting change.
"""
import dataclasses
import logging
import threading
import time
from typing import Callable, Optional

from study_tools.clock import ThreadingClock
from study_tools.errors import IllegalTransition
from study_tools.models import PomodoroPhase, PomodoroSettings, PomodoroSnapshot

logger = logging.getLogger(__name__)

TICK_INTERVAL = 1.0


class PomodoroObserver:
    """Subscriber interface. Override the callbacks you care about."""

    def on_state_change(self, state_name: str, phase: PomodoroPhase, remaining_time: int) -> None:
        pass

    def on_phase_complete(self, ended_phase: PomodoroPhase) -> None:
        pass

    def on_session_complete(self, completed_sessions: int) -> None:
        pass


class TimerState:
    name = ""

    def start(self, engine: "PomodoroEngine") -> None:
        raise NotImplementedError

    def pause(self, engine: "PomodoroEngine") -> None:
        raise NotImplementedError

    def resume(self, engine: "PomodoroEngine") -> None:
        raise NotImplementedError

    def reset(self, engine: "PomodoroEngine") -> None:
        raise NotImplementedError

    def skip(self, engine: "PomodoroEngine") -> None:
        raise NotImplementedError

    def tick(self, engine: "PomodoroEngine") -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def _reset_engine(engine: "PomodoroEngine") -> None:
    engine.set_phase(PomodoroPhase.WORK)
    engine.set_remaining_time(engine.settings.work_duration * 60)
    engine.reset_completed_sessions()


def complete_phase(engine: "PomodoroEngine") -> None:
    """End the current phase and move to the one that follows it.

    The long break decision uses the session count after incrementing, so the
    Nth, 2Nth, ... work sessions are followed by a long break.
    """
    settings = engine.settings
    if engine.phase == PomodoroPhase.WORK:
        engine.increment_completed_sessions()
        if engine.completed_sessions % settings.sessions_until_long_break == 0:
            engine.set_phase(PomodoroPhase.LONG_BREAK)
            engine.set_remaining_time(settings.long_break_duration * 60)
        else:
            engine.set_phase(PomodoroPhase.SHORT_BREAK)
            engine.set_remaining_time(settings.short_break_duration * 60)
    else:
        engine.set_phase(PomodoroPhase.WORK)
        engine.set_remaining_time(settings.work_duration * 60)
    engine.notify_observers()


class IdleState(TimerState):
    name = "IDLE"

    def start(self, engine):
        engine.set_remaining_time(engine.settings.work_duration * 60)
        engine.set_phase(PomodoroPhase.WORK)
        engine.set_state(RUNNING)

    def pause(self, engine):
        raise IllegalTransition("Cannot pause when idle", self.name)

    def resume(self, engine):
        raise IllegalTransition("Cannot resume when idle", self.name)

    def reset(self, engine):
        _reset_engine(engine)
        engine.notify_observers()

    def skip(self, engine):
        raise IllegalTransition("Cannot skip when idle", self.name)

    def tick(self, engine):
        pass


class RunningState(TimerState):
    name = "RUNNING"

    def start(self, engine):
        raise IllegalTransition("Timer already running", self.name)

    def pause(self, engine):
        engine.set_state(PAUSED)

    def resume(self, engine):
        raise IllegalTransition("Timer already running", self.name)

    def reset(self, engine):
        _reset_engine(engine)
        engine.set_state(IDLE)

    def skip(self, engine):
        complete_phase(engine)

    def tick(self, engine):
        remaining = engine.remaining_time
        if remaining <= 0:
            complete_phase(engine)
        else:
            engine.set_remaining_time(remaining - 1)
            engine.notify_observers()


class PausedState(TimerState):
    name = "PAUSED"

    def start(self, engine):
        raise IllegalTransition("Timer already started", self.name)

    def pause(self, engine):
        pass

    def resume(self, engine):
        engine.set_state(RUNNING)

    def reset(self, engine):
        _reset_engine(engine)
        engine.set_state(IDLE)

    def skip(self, engine):
        engine.set_state(RUNNING)
        RUNNING.skip(engine)

    def tick(self, engine):
        pass


IDLE = IdleState()
RUNNING = RunningState()
PAUSED = PausedState()

STATES = {state.name: state for state in (IDLE, RUNNING, PAUSED)}


def format_time(seconds: int) -> str:
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


def phase_label(phase: PomodoroPhase) -> str:
    labels = {
        PomodoroPhase.WORK: "Focus",
        PomodoroPhase.SHORT_BREAK: "Short Break",
        PomodoroPhase.LONG_BREAK: "Long Break",
    }
    return labels[phase]


def _now_ms() -> int:
    return int(time.time() * 1000)


class PomodoroEngine:
    """Holds timer data for one study session and dispatches to the current state."""

    def __init__(self, settings: Optional[PomodoroSettings] = None, clock=None):
        self._settings = settings or PomodoroSettings()
        self._clock = clock if clock is not None else ThreadingClock()
        # Owners hold this lock around commands so they never interleave with ticks.
        self.lock = getattr(self._clock, "lock", None) or threading.RLock()
        self._state: TimerState = IDLE
        self._phase = PomodoroPhase.WORK
        self._remaining_time = self._settings.work_duration * 60
        self._completed_sessions = 0
        self._observers: list[PomodoroObserver] = []
        self._tick_handle = None

    # ----- State -----
    @property
    def state(self) -> TimerState:
        return self._state

    def set_state(self, state: TimerState) -> None:
        self._state = state
        self.notify_observers()

    @property
    def phase(self) -> PomodoroPhase:
        return self._phase

    def set_phase(self, phase: PomodoroPhase) -> None:
        old_phase = self._phase
        self._phase = phase
        if old_phase != phase:
            for observer in list(self._observers):
                observer.on_phase_complete(old_phase)

    @property
    def remaining_time(self) -> int:
        return self._remaining_time

    def set_remaining_time(self, seconds: int) -> None:
        self._remaining_time = seconds

    @property
    def completed_sessions(self) -> int:
        return self._completed_sessions

    def increment_completed_sessions(self) -> None:
        self._completed_sessions += 1
        for observer in list(self._observers):
            observer.on_session_complete(self._completed_sessions)

    def reset_completed_sessions(self) -> None:
        self._completed_sessions = 0

    @property
    def settings(self) -> PomodoroSettings:
        return self._settings

    def update_settings(self, **changes) -> PomodoroSettings:
        """Shallow-merge new values into the settings. Unknown fields raise TypeError."""
        self._settings = dataclasses.replace(self._settings, **changes)
        return self._settings

    # ----- Observers -----
    def subscribe(self, observer: PomodoroObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def notify_observers(self) -> None:
        state_name = self._state.name
        for observer in list(self._observers):
            observer.on_state_change(state_name, self._phase, self._remaining_time)

    # ----- Ticking -----
    @property
    def is_ticking(self) -> bool:
        return self._tick_handle is not None

    def start_ticking(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
        self._tick_handle = self._clock.call_every(TICK_INTERVAL, self._on_tick)
        logger.debug("Ticking started")

    def stop_ticking(self) -> None:
        if self._tick_handle is None:
            return
        self._tick_handle.cancel()
        self._tick_handle = None
        logger.debug("Ticking stopped")

    def _on_tick(self) -> None:
        self._state.tick(self)

    # ----- Persistence handoff -----
    def snapshot(self) -> PomodoroSnapshot:
        return PomodoroSnapshot(
            phase=self._phase,
            remaining_time=self._remaining_time,
            completed_sessions=self._completed_sessions,
            state=self._state.name,
            timestamp=_now_ms(),
        )

    def restore(self, snapshot: PomodoroSnapshot) -> None:
        """Put the engine back to a saved snapshot without firing phase or session callbacks."""
        try:
            state = STATES[snapshot.state]
        except KeyError:
            raise ValueError(f"Unknown timer state: {snapshot.state!r}") from None
        self._phase = snapshot.phase
        self._remaining_time = snapshot.remaining_time
        self._completed_sessions = snapshot.completed_sessions
        self._state = state
        self.notify_observers()
