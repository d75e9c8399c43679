"""Liveness signalling between processes via a heartbeat counter."""

from __future__ import annotations

import threading
import weakref
from dataclasses import dataclass, field
from typing import Callable

from .misc import Timer


@dataclass
class _State:
    quit: threading.Event = field(default_factory=threading.Event)
    alive: bool = True
    thread: threading.Thread | None = None


def _shutdown(state: _State) -> None:
    state.quit.set()
    thread = state.thread
    if thread is not None and thread is not threading.current_thread():
        thread.join()


class Watchdog:
    """Either beats a counter periodically or monitors one for changes.

    A heartbeat watchdog calls ``increment`` every ``interval`` seconds and
    always reports alive. A monitor watchdog reads a counter every
    ``interval`` seconds and reports dead once it has not changed for longer
    than ``timeout`` seconds. An empty or stopped watchdog reports dead.
    """

    def __init__(self) -> None:
        self._state: _State | None = None
        self._finalizer: weakref.finalize | None = None

    @classmethod
    def _start(cls, run: Callable[[_State], None], label: str) -> Watchdog:
        state = _State()
        thread = threading.Thread(target=run, args=(state,), name=label, daemon=True)
        state.thread = thread
        watchdog = cls()
        watchdog._state = state
        watchdog._finalizer = weakref.finalize(watchdog, _shutdown, state)
        thread.start()
        return watchdog

    @classmethod
    def create_heartbeat(cls, interval: float, increment: Callable[[], None]) -> Watchdog:
        """Start a thread that calls ``increment`` every ``interval`` seconds."""

        def run(state: _State) -> None:
            while not state.quit.wait(interval):
                increment()

        return cls._start(run, "softcam-heartbeat")

    @classmethod
    def create_monitor(
        cls, interval: float, timeout: float, read: Callable[[], int]
    ) -> Watchdog:
        """Start a thread that watches the counter returned by ``read``."""

        def run(state: _State) -> None:
            last_value = read()
            timer = Timer()
            while not state.quit.wait(interval):
                value = read()
                if value != last_value:
                    last_value = value
                    state.alive = True
                    timer.reset()
                if timeout < timer.get():
                    state.alive = False

        return cls._start(run, "softcam-monitor")

    def stop(self) -> None:
        """Stop the background thread and wait for it to end."""
        if self._finalizer is not None:
            self._finalizer()
        self._finalizer = None
        self._state = None

    def alive(self) -> bool:
        """Whether the watched side is considered alive."""
        return self._state is not None and self._state.alive