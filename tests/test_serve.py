from pathlib import Path

import pytest
from watchdog.events import FileModifiedEvent

from assetpipe.backend.supervisor import EventKind, ServerEvent
from assetpipe.orchestrator.errors import ServerCrashed
from assetpipe.tasks.serve import ServeSession
from helpers import FakeObserver


class FakeSupervisor:
    def __init__(self, events=()):
        self.restarts = []
        self.queued = list(events)
        self.started = self.stopped = False

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def restart(self, files=()):
        self.restarts.append(list(files))
        return True

    def iter_events(self, timeout=None):
        yield from self.queued


@pytest.fixture
def proxies():
    return []


@pytest.fixture
def session_for(make_config, proxies):
    def _make(events=(), production=False):
        supervisor = FakeSupervisor(events)
        session = ServeSession(make_config(production=production), supervisor, proxies.append)
        return session, supervisor

    return _make


def test_app_changes_restart_the_server(project: Path, session_for) -> None:
    session, supervisor = session_for()
    session.handler.dispatch(FileModifiedEvent(str(project / "app.py")))
    session.handler.dispatch(FileModifiedEvent(str(project / "api/v1/users.py")))
    session.handler.dispatch(FileModifiedEvent(str(project / "server.py")))
    assert supervisor.restarts == [["app.py"], ["api/v1/users.py"], ["server.py"]]


def test_asset_changes_do_not_restart(project: Path, session_for) -> None:
    session, supervisor = session_for()
    session.handler.dispatch(FileModifiedEvent(str(project / "assets/styles/a.scss")))
    session.handler.dispatch(FileModifiedEvent(str(project / "dist/styles/main.css")))
    session.handler.dispatch(FileModifiedEvent(str(project / "lib/helpers.py")))
    assert supervisor.restarts == []


def test_proxy_starts_once_on_first_start(session_for, proxies, caplog) -> None:
    session, _ = session_for()
    session.handle(ServerEvent(EventKind.START, pid=1))
    with caplog.at_level("INFO"):
        session.handle(ServerEvent(EventKind.RESTART, files=("app.py",)))
    session.handle(ServerEvent(EventKind.START, pid=2))
    assert proxies == [session.config]
    assert "Restarting the server due to change in: app.py" in caplog.text


def test_crash_ends_the_session(project: Path, session_for, proxies) -> None:
    session, supervisor = session_for(
        [
            ServerEvent(EventKind.START, pid=1),
            ServerEvent(EventKind.EXIT, returncode=0, pid=1),
            ServerEvent(EventKind.CRASH, returncode=2, pid=2),
        ]
    )
    observer = FakeObserver()
    with pytest.raises(ServerCrashed) as excinfo:
        session.run(observer)
    assert excinfo.value.returncode == 2
    assert supervisor.started and supervisor.stopped
    assert observer.started and observer.stopped
    assert observer.scheduled == [project]
    assert len(proxies) == 1


def test_default_supervisor_runs_server_script_with_mode(project: Path, make_config) -> None:
    session = ServeSession(make_config(production=True, server={"env_var": "NODE_ENV"}))
    supervisor = session.supervisor
    assert supervisor.argv[-1] == "server.py"
    assert supervisor.env["NODE_ENV"] == "production"
    assert supervisor.cwd == project


def test_server_that_cannot_start_ends_the_session(session_for) -> None:
    session, _ = session_for()
    with pytest.raises(ServerCrashed, match="failed to start") as excinfo:
        session.handle(ServerEvent(EventKind.CRASH))
    assert excinfo.value.returncode is None
