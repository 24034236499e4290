import threading
from pathlib import Path

from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from assetpipe.tasks.watch import (
    GlobEventHandler,
    WatchController,
    WatchRegistration,
    default_registrations,
)
from helpers import FakeObserver


def _handler(project: Path, make_config):
    calls = []
    bindings = [(r, lambda task, rel: calls.append((task, rel))) for r in default_registrations(make_config())]
    return GlobEventHandler(project, bindings), calls


def test_registration_matching() -> None:
    registration = WatchRegistration(("assets/images/**/*", "!assets/images/raw/**"), "images")
    assert registration.matches("assets/images/a.png")
    assert not registration.matches("assets/images/raw/a.png")
    assert not registration.matches("assets/fonts/a.woff")


def test_events_route_to_the_bound_task(project: Path, make_config) -> None:
    handler, calls = _handler(project, make_config)
    handler.dispatch(FileModifiedEvent(str(project / "assets/styles/a.scss")))
    handler.dispatch(FileCreatedEvent(str(project / "assets/fonts/new.woff")))
    handler.dispatch(FileModifiedEvent(str(project / "assets/styles/.#a.scss")))
    handler.dispatch(DirModifiedEvent(str(project / "assets/styles")))
    handler.dispatch(FileModifiedEvent(str(project / "dist/styles/main.css")))
    assert calls == [("styles", "assets/styles/a.scss"), ("fonts", "assets/fonts/new.woff")]


def test_move_into_a_watched_glob_fires_once(project: Path, make_config) -> None:
    handler, calls = _handler(project, make_config)
    handler.dispatch(
        FileMovedEvent(str(project / "assets/scripts/app.js~"), str(project / "assets/scripts/app.js"))
    )
    assert calls == [("scripts", "assets/scripts/app.js")]


def test_controller_runs_tasks_on_their_own_threads(project: Path, make_config) -> None:
    config = make_config()
    ran = []
    main_thread = threading.current_thread()
    runners = {"styles": lambda cfg: ran.append((cfg, threading.current_thread()))}
    controller = WatchController(config, [WatchRegistration(("assets/styles/**/*",), "styles")], runners)

    controller.handler.dispatch(FileModifiedEvent(str(project / "assets/styles/a.css")))
    for thread in controller.threads:
        thread.join(timeout=5)

    assert len(ran) == 1
    assert ran[0][0] is config
    assert ran[0][1] is not main_thread


def test_failing_rebuild_keeps_watching(project: Path, make_config, caplog) -> None:
    def broken(cfg):
        raise RuntimeError("bad input")

    controller = WatchController(
        make_config(), [WatchRegistration(("assets/scripts/*.js",), "scripts")], {"scripts": broken}
    )
    thread = controller.trigger("scripts", "assets/scripts/a.js")
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert "'scripts' failed; still watching" in caplog.text


def test_start_schedules_existing_directories(project: Path, make_config) -> None:
    (project / "assets/styles").mkdir(parents=True)
    (project / "assets/fonts").mkdir(parents=True)
    controller = WatchController(make_config())
    observer = FakeObserver()
    controller.start(observer)
    assert observer.started
    assert observer.scheduled == [project / "assets/styles", project / "assets/fonts"]
    controller.stop()
    assert observer.stopped


def test_finished_trigger_threads_are_dropped(project: Path, make_config) -> None:
    controller = WatchController(
        make_config(), [WatchRegistration(("assets/fonts/**/*",), "fonts")], {"fonts": lambda cfg: None}
    )
    for _ in range(5):
        controller.trigger("fonts", "assets/fonts/a.woff").join(timeout=5)
    assert len(controller.threads) == 1
