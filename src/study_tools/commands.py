"""Command objects that invoke the engine's current state."""
from dataclasses import dataclass
from typing import Optional

from study_tools.models import PomodoroPhase
from study_tools.pomodoro import PomodoroEngine


class PomodoroCommand:
    def __init__(self, engine: PomodoroEngine):
        self.engine = engine

    def execute(self) -> None:
        raise NotImplementedError


class StartCommand(PomodoroCommand):
    def execute(self) -> None:
        self.engine.state.start(self.engine)


class PauseCommand(PomodoroCommand):
    def execute(self) -> None:
        self.engine.state.pause(self.engine)


class ResumeCommand(PomodoroCommand):
    def execute(self) -> None:
        self.engine.state.resume(self.engine)


class SkipCommand(PomodoroCommand):
    def execute(self) -> None:
        self.engine.state.skip(self.engine)


@dataclass
class _ResetSnapshot:
    remaining_time: int
    phase: PomodoroPhase


class ResetCommand(PomodoroCommand):
    """Reset the timer, remembering remaining time and phase so undo() can put them back."""

    def __init__(self, engine: PomodoroEngine):
        super().__init__(engine)
        self.previous: Optional[_ResetSnapshot] = None

    def execute(self) -> None:
        self.previous = _ResetSnapshot(
            remaining_time=self.engine.remaining_time,
            phase=self.engine.phase,
        )
        self.engine.state.reset(self.engine)

    def undo(self) -> None:
        # Raw field restore: the timer state stays where reset left it.
        if self.previous is None:
            return
        self.engine.set_remaining_time(self.previous.remaining_time)
        self.engine.set_phase(self.previous.phase)


COMMANDS = {
    "start": StartCommand,
    "pause": PauseCommand,
    "resume": ResumeCommand,
    "reset": ResetCommand,
    "skip": SkipCommand,
}
