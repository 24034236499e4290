"""Supervise the application server as a child process.

Lifecycle changes are published as :class:`ServerEvent` values on a queue:
``start`` on every launch, ``restart`` before a relaunch, ``exit`` when the
server stops cleanly on its own, and ``crash`` for any other exit. ``crash``
is always the last event; after it the supervisor refuses to relaunch.
"""

from __future__ import annotations

import os
import queue
import subprocess
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Mapping, Optional, Sequence

from ..orchestrator.logging import get_logger


class EventKind(str, Enum):
    START = "start"
    RESTART = "restart"
    EXIT = "exit"
    CRASH = "crash"


@dataclass(frozen=True)
class ServerEvent:
    kind: EventKind
    files: tuple[str, ...] = ()
    returncode: Optional[int] = None
    pid: Optional[int] = None


class ServerSupervisor:
    def __init__(
        self,
        argv: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
        grace_period: float = 5.0,
    ):
        self.argv = list(argv)
        self.env = dict(os.environ, **(env or {}))
        self.cwd = cwd
        self.grace_period = grace_period
        self.events: "queue.Queue[ServerEvent]" = queue.Queue()
        self.logger = get_logger("serve.supervisor")
        self._lock = threading.Lock()
        self._proc: Optional[subprocess.Popen] = None
        self._generation = 0
        self._closed = False
        self._crashed = False

    @property
    def pid(self) -> Optional[int]:
        proc = self._proc
        return proc.pid if proc is not None else None

    @property
    def crashed(self) -> bool:
        return self._crashed

    def _publish(self, event: ServerEvent) -> None:
        self.events.put(event)

    def _launch(self) -> None:
        try:
            proc = subprocess.Popen(self.argv, env=self.env, cwd=self.cwd)
        except OSError as e:
            # A launch failure is a crash
            self._proc = None
            self._crashed = True
            self.logger.error("Could not start `%s`: %s", " ".join(self.argv), e)
            self._publish(ServerEvent(EventKind.CRASH))
            return
        self._generation += 1
        self._proc = proc
        self.logger.info("Starting `%s` (pid %d)", " ".join(self.argv), proc.pid)
        threading.Thread(
            target=self._monitor, args=(proc, self._generation), name="server-monitor", daemon=True
        ).start()
        self._publish(ServerEvent(EventKind.START, pid=proc.pid))

    def _monitor(self, proc: subprocess.Popen, generation: int) -> None:
        code = proc.wait()
        with self._lock:
            # Exits of replaced or deliberately stopped processes are expected
            if generation != self._generation or self._closed:
                return
            self._proc = None
            if code == 0:
                self.logger.info("Server exited cleanly; waiting for changes before restart")
                self._publish(ServerEvent(EventKind.EXIT, returncode=code, pid=proc.pid))
            else:
                self._crashed = True
                self.logger.error("Server crashed with exit code %d", code)
                self._publish(ServerEvent(EventKind.CRASH, returncode=code, pid=proc.pid))

    def _terminate(self) -> None:
        proc = self._proc
        self._proc = None
        if proc is None or proc.poll() is not None:
            return
        proc.terminate()
        try:
            proc.wait(timeout=self.grace_period)
        except subprocess.TimeoutExpired:
            self.logger.warning("Server did not stop within %.1f s; killing it", self.grace_period)
            proc.kill()
            proc.wait()

    def start(self) -> None:
        with self._lock:
            if self._proc is not None:
                raise RuntimeError("Server already running")
            self._launch()

    def restart(self, files: Sequence[str] = ()) -> bool:
        """Replace the running server with a fresh process.

        Returns ``False`` once the server crashed or the supervisor stopped.
        """
        with self._lock:
            if self._crashed or self._closed:
                return False
            # Bump first so the monitor of the old process ignores its exit
            self._generation += 1
            self._terminate()
            self._publish(ServerEvent(EventKind.RESTART, files=tuple(files)))
            self._launch()
            return not self._crashed

    def stop(self) -> None:
        with self._lock:
            self._closed = True
            self._terminate()

    def iter_events(self, timeout: Optional[float] = None) -> Iterator[ServerEvent]:
        """Yield events until a crash; ``timeout`` bounds the wait for each one."""
        while True:
            try:
                event = self.events.get(timeout=timeout)
            except queue.Empty:
                return
            yield event
            if event.kind is EventKind.CRASH:
                return
