"""Serve task: run the app against the compiled static assets.

The server restarts whenever an application file changes. Once it first
starts, a live-reload proxy pushes recompiled assets to the browser. A server
crash ends the session.
"""

from __future__ import annotations

from typing import Callable, Optional

from watchdog.observers import Observer

from ..backend.proxy import create_proxy_app, start_proxy_thread
from ..backend.supervisor import EventKind, ServerEvent, ServerSupervisor
from ..orchestrator import task
from ..orchestrator.config import BuildConfig
from ..orchestrator.errors import ServerCrashed
from ..orchestrator.logging import get_logger
from .watch import GlobEventHandler, WatchRegistration, schedule

RESTART = "restart"


def default_proxy_starter(config: BuildConfig) -> None:
    app = create_proxy_app(config.server_url)
    start_proxy_thread(
        app, config.static_dir, config.proxy_port, open_browser=config.open_browser
    )


class ServeSession:
    def __init__(
        self,
        config: BuildConfig,
        supervisor: Optional[ServerSupervisor] = None,
        proxy_starter: Optional[Callable[[BuildConfig], None]] = None,
    ):
        self.config = config
        self.supervisor = supervisor or ServerSupervisor(
            config.server_argv(),
            env={config.env_var: config.mode.value},
            cwd=config.root,
        )
        self.proxy_starter = proxy_starter or default_proxy_starter
        self.proxy_started = False
        self.logger = get_logger("serve")
        self.registration = WatchRegistration(config.restart_globs(), RESTART)
        self.handler = GlobEventHandler(config.root, [(self.registration, self.on_app_change)])
        self._observer = None

    def on_app_change(self, _task: str, changed: str) -> None:
        self.supervisor.restart([changed])

    def handle(self, event: ServerEvent) -> None:
        if event.kind is EventKind.START:
            if not self.proxy_started:
                self.proxy_started = True
                self.proxy_starter(self.config)
        elif event.kind is EventKind.RESTART:
            self.logger.info("Restarting the server due to change in: %s", ", ".join(event.files))
        elif event.kind is EventKind.EXIT:
            self.logger.info("Server exited; it will start again on the next change")
        elif event.kind is EventKind.CRASH:
            message = (
                "Server failed to start"
                if event.returncode is None
                else f"Server crashed with exit code {event.returncode}"
            )
            raise ServerCrashed(
                message,
                returncode=event.returncode,
            )

    def start(self, observer=None) -> None:
        self._observer = observer or Observer()
        schedule(self._observer, self.handler, self.registration.patterns, self.config.root)
        self._observer.start()
        self.supervisor.start()

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self.supervisor.stop()

    def run(self, observer=None) -> None:
        """Start everything and process server events until a crash."""
        self.start(observer)
        try:
            for event in self.supervisor.iter_events():
                self.handle(event)
        finally:
            self.stop()


@task(name="serve", long_running=True)
def serve(config: BuildConfig) -> None:
    """Serve the app with live reload; restart it when app files change."""
    logger = get_logger("serve")
    session = ServeSession(config)
    try:
        session.run()
    except KeyboardInterrupt:
        logger.info("Serve session stopped.")
