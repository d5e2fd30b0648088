"""Periodic callback sources that drive the Pomodoro engine."""
import threading
from typing import Callable, Optional


class ManualHandle:
    def __init__(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self.callback = callback
        self.elapsed = 0.0
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Clock advanced by hand. Callbacks fire synchronously inside advance()."""

    def __init__(self):
        self._handles: list[ManualHandle] = []

    def call_every(self, interval: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(interval, callback)
        self._handles.append(handle)
        return handle

    @property
    def active(self) -> int:
        """Number of registrations that have not been cancelled."""
        return sum(1 for h in self._handles if not h.cancelled)

    def advance(self, seconds: float = 1.0) -> None:
        remaining = seconds
        while remaining > 0:
            step = min(1.0, remaining)
            remaining -= step
            for handle in list(self._handles):
                if handle.cancelled:
                    continue
                handle.elapsed += step
                while handle.elapsed >= handle.interval and not handle.cancelled:
                    handle.elapsed -= handle.interval
                    handle.callback()
        self._handles = [h for h in self._handles if not h.cancelled]


class ThreadHandle:
    def __init__(self, interval: float, callback: Callable[[], None], lock: threading.RLock):
        self.interval = interval
        self.callback = callback
        self._lock = lock
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            with self._lock:
                # cancel() may have run while we waited for the lock
                if self._stopped.is_set():
                    return
                self.callback()

    def cancel(self) -> None:
        # Holding the lock guarantees no callback is mid-flight once we return,
        # unless cancel() is called from inside the callback itself (RLock).
        with self._lock:
            self._stopped.set()

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()


class ThreadingClock:
    """One daemon thread per registration, each call made while holding ``lock``."""

    def __init__(self, lock: Optional[threading.RLock] = None):
        self.lock = lock or threading.RLock()

    def call_every(self, interval: float, callback: Callable[[], None]) -> ThreadHandle:
        handle = ThreadHandle(interval, callback, self.lock)
        handle.start()
        return handle
