from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from .errors import PipelineError
from .logging import get_logger

if TYPE_CHECKING:
    from .config import BuildConfig


@dataclass
class TaskResult:
    """What a task did: files written, their total size and recorded events."""

    name: str
    files: list[Path] = field(default_factory=list)
    size: int = 0
    events: list[str] = field(default_factory=list)
    problems: list = field(default_factory=list)
    status: str = "ok"

    def record(self, kind: str, subject: object = "") -> None:
        self.events.append(f"{kind}:{subject}" if subject != "" else kind)

    def add_file(self, path: Path) -> None:
        self.files.append(path)
        self.size += path.stat().st_size

    def events_of(self, kind: str) -> list[str]:
        prefix = f"{kind}:"
        return [e[len(prefix) :] for e in self.events if e.startswith(prefix)]


@dataclass
class TaskSpec:
    name: str
    fn: Callable[["BuildConfig"], Optional[TaskResult]]
    description: str = ""
    long_running: bool = False


def task(name: str, description: str = "", long_running: bool = False):
    """Decorator to declare a task on a function.

    The wrapped function receives the frozen :class:`BuildConfig` and returns
    a :class:`TaskResult` (long-running tasks may return ``None``).
    """

    def deco(fn: Callable[["BuildConfig"], Optional[TaskResult]]):
        doc_lines = (fn.__doc__ or "").strip().splitlines()
        spec = TaskSpec(
            name=name,
            fn=fn,
            description=description or (doc_lines[0] if doc_lines else ""),
            long_running=long_running,
        )
        setattr(fn, "_task_spec", spec)
        return fn

    return deco


def topo_levels(nodes: Iterable[str], edges: Iterable[tuple[str, str]]) -> list[list[str]]:
    """Group nodes into levels; every node runs after all nodes of earlier levels.

    Node order inside a level follows the order of ``nodes``.
    """
    nodes = list(nodes)
    incoming = {n: set() for n in nodes}
    outgoing = {n: set() for n in nodes}
    for u, v in edges:
        if u not in incoming or v not in incoming:
            raise ValueError(f"Edge references unknown node: {(u, v)}")
        outgoing[u].add(v)
        incoming[v].add(u)
    levels: list[list[str]] = []
    remaining = list(nodes)
    while remaining:
        level = [n for n in remaining if not incoming[n]]
        if not level:
            raise ValueError("Cycle detected in DAG")
        for n in level:
            for m in outgoing[n]:
                incoming[m].discard(n)
        remaining = [n for n in remaining if n not in level]
        levels.append(level)
    return levels


def _format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    return f"{seconds:.2f} s"


class Pipeline:
    """Runs tasks level by level; tasks inside a level run concurrently.

    A failing task never cancels its siblings, but once a level has a failure
    no later level is started and :class:`PipelineError` is raised.
    """

    def __init__(
        self,
        tasks: dict[str, TaskSpec],
        edges: list[tuple[str, str]],
        name: str = "pipeline",
    ):
        self.name = name
        self.tasks = tasks
        self.edges = edges
        self.levels = topo_levels(tasks.keys(), edges)
        self.logger = get_logger(f"pipeline.{self.name}")

    def _run_step(self, step_name: str, config: "BuildConfig") -> Optional[TaskResult]:
        spec = self.tasks[step_name]
        step_logger = get_logger(f"pipeline.{self.name}.{step_name}")
        step_logger.info("Starting '%s'...", step_name)
        started = time.perf_counter()
        result = spec.fn(config)
        step_logger.info(
            "Finished '%s' after %s",
            step_name,
            _format_duration(time.perf_counter() - started),
        )
        return result

    def run(self, config: "BuildConfig") -> dict[str, TaskResult]:
        self.logger.info(
            "Running %s (%s): %s",
            self.name,
            config.mode.value,
            " → ".join("[" + ", ".join(level) + "]" if len(level) > 1 else level[0] for level in self.levels),
        )
        results: dict[str, TaskResult] = {}
        for level in self.levels:
            errors: dict[str, BaseException] = {}
            if len(level) == 1:
                step_name = level[0]
                try:
                    results[step_name] = self._run_step(step_name, config) or TaskResult(step_name)
                except Exception as e:  # noqa: BLE001
                    errors[step_name] = e
            else:
                with ThreadPoolExecutor(max_workers=len(level), thread_name_prefix=self.name) as pool:
                    futures = {n: pool.submit(self._run_step, n, config) for n in level}
                for step_name, fut in futures.items():
                    exc = fut.exception()
                    if exc is not None:
                        errors[step_name] = exc
                    else:
                        results[step_name] = fut.result() or TaskResult(step_name)

            if errors:
                for step_name, exc in errors.items():
                    results[step_name] = TaskResult(step_name, status="error")
                    self.logger.error(
                        "'%s' errored: %s", step_name, exc, exc_info=(type(exc), exc, exc.__traceback__)
                    )
                failed = list(errors)
                raise PipelineError(
                    f"{self.name} failed in: {', '.join(failed)}",
                    failed=failed,
                    metadata={"results": results},
                ) from next(iter(errors.values()))
        return results
