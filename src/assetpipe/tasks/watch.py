"""Watch task: recompile source assets whenever they change.

Each change runs the bound task on its own thread. Nothing serializes two
runs of the same task; the last one to write its output wins.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..orchestrator import task
from ..orchestrator import globs
from ..orchestrator.config import BuildConfig
from ..orchestrator.logging import get_logger
from .fonts import fonts
from .images import images
from .scripts import scripts
from .styles import styles

WATCHED_EVENTS = {"created", "modified", "moved", "deleted"}

BUILD_TASKS: dict[str, Callable[[BuildConfig], object]] = {
    "styles": styles,
    "scripts": scripts,
    "images": images,
    "fonts": fonts,
}


@dataclass(frozen=True)
class WatchRegistration:
    patterns: tuple[str, ...]
    task: str

    def matches(self, rel_path: str) -> bool:
        if any(p.startswith("!") and globs.matches(p[1:], rel_path) for p in self.patterns):
            return False
        return any(globs.matches(p, rel_path) for p in self.patterns if not p.startswith("!"))


def default_registrations(config: BuildConfig) -> list[WatchRegistration]:
    return [WatchRegistration(tuple(config.group(name).src), name) for name in BUILD_TASKS]


class GlobEventHandler(FileSystemEventHandler):
    """Routes watchdog events to callbacks bound to glob patterns."""

    def __init__(
        self,
        root: Path,
        bindings: Sequence[tuple[WatchRegistration, Callable[[str, str], None]]],
    ):
        super().__init__()
        self.root = Path(root).resolve()
        self.bindings = list(bindings)

    def relative(self, path: str) -> Optional[str]:
        try:
            return Path(path).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return None

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in WATCHED_EVENTS:
            return
        paths = [event.src_path]
        if event.event_type == "moved" and getattr(event, "dest_path", None):
            paths.append(event.dest_path)
        fired: set[str] = set()
        for raw in paths:
            rel = self.relative(raw)
            if rel is None:
                continue
            for registration, callback in self.bindings:
                if registration.task not in fired and registration.matches(rel):
                    fired.add(registration.task)
                    callback(registration.task, rel)


def schedule(observer, handler: GlobEventHandler, patterns: Iterable[str], root: Path) -> list[Path]:
    logger = get_logger("watch")
    scheduled: list[Path] = []
    for directory in globs.watch_dirs(patterns, root):
        if not directory.is_dir():
            logger.warning("Not watching %s: directory does not exist", directory)
            continue
        if any(directory == s or s in directory.parents for s in scheduled):
            continue
        observer.schedule(handler, str(directory), recursive=True)
        scheduled.append(directory)
    return scheduled


class WatchController:
    """Runs the bound build task whenever a registered glob sees a change."""

    def __init__(
        self,
        config: BuildConfig,
        registrations: Optional[Sequence[WatchRegistration]] = None,
        runners: Optional[dict[str, Callable[[BuildConfig], object]]] = None,
    ):
        self.config = config
        self.registrations = list(registrations or default_registrations(config))
        self.runners = runners or BUILD_TASKS
        self.logger = get_logger("watch")
        self.handler = GlobEventHandler(
            config.root, [(r, self.trigger) for r in self.registrations]
        )
        self.threads: list[threading.Thread] = []
        self._observer = None

    def trigger(self, task_name: str, changed: str) -> threading.Thread:
        self.logger.info("'%s' changed, running '%s'", changed, task_name)
        thread = threading.Thread(
            target=self._run, args=(task_name,), name=f"watch-{task_name}", daemon=True
        )
        self.threads = [t for t in self.threads if t.is_alive()]
        self.threads.append(thread)
        thread.start()
        return thread

    def _run(self, task_name: str) -> None:
        started = time.perf_counter()
        try:
            self.runners[task_name](self.config)
        except Exception:  # noqa: BLE001
            self.logger.exception("'%s' failed; still watching", task_name)
            return
        self.logger.info("Finished '%s' after %.2f s", task_name, time.perf_counter() - started)

    def start(self, observer=None) -> None:
        self._observer = observer or Observer()
        patterns = [p for r in self.registrations for p in r.patterns]
        schedule(self._observer, self.handler, patterns, self.config.root)
        self._observer.start()

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None


@task(name="watch", long_running=True)
def watch(config: BuildConfig) -> None:
    """Recompile source assets whenever they change."""
    logger = get_logger("watch")
    controller = WatchController(config)
    controller.start()
    logger.info("Watching source assets... To stop watching, press Ctrl+C.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Watcher stopped.")
    finally:
        controller.stop()
