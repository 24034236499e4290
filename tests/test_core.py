import threading
import time

import pytest

from assetpipe.orchestrator.core import Pipeline, TaskResult, TaskSpec, task, topo_levels
from assetpipe.orchestrator.errors import PipelineError
from assetpipe.orchestrator.registry import TaskName, build_registry, default_pipeline


def _spec(name, fn) -> TaskSpec:
    return TaskSpec(name=name, fn=fn)


def test_topo_levels_group_independent_nodes() -> None:
    levels = topo_levels(["a", "b", "c", "d"], [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")])
    assert levels == [["a"], ["b", "c"], ["d"]]


def test_topo_levels_reject_cycles() -> None:
    with pytest.raises(ValueError):
        topo_levels(["a", "b"], [("a", "b"), ("b", "a")])


def test_default_sequence_levels() -> None:
    assert default_pipeline().levels == [["clean"], ["styles"], ["scripts", "images", "fonts"]]


def test_registry_lists_every_task_with_description() -> None:
    registry = build_registry()
    assert list(registry) == list(TaskName)
    assert all(spec.description for spec in registry.values())
    assert registry[TaskName.WATCH].long_running
    assert registry[TaskName.SERVE].long_running


def test_task_decorator_uses_docstring_summary() -> None:
    @task(name="demo")
    def demo(config):
        """Do the demo thing.

        More words.
        """

    assert demo._task_spec.description == "Do the demo thing."
    assert demo._task_spec.fn is demo


def test_steps_run_in_dependency_order_and_siblings_overlap(make_config) -> None:
    order = []
    lock = threading.Lock()
    barrier = threading.Barrier(2, timeout=5)

    def step(name, wait=False):
        def fn(config):
            if wait:
                barrier.wait()
            with lock:
                order.append(name)
            return TaskResult(name)

        return fn

    pipeline = Pipeline(
        tasks={
            "first": _spec("first", step("first")),
            "left": _spec("left", step("left", wait=True)),
            "right": _spec("right", step("right", wait=True)),
            "last": _spec("last", step("last")),
        },
        edges=[("first", "left"), ("first", "right"), ("left", "last"), ("right", "last")],
    )
    results = pipeline.run(make_config())
    assert order[0] == "first"
    assert set(order[1:3]) == {"left", "right"}
    assert order[3] == "last"
    assert set(results) == {"first", "left", "right", "last"}


def test_failure_does_not_cancel_siblings_but_stops_later_levels(make_config) -> None:
    finished = []

    def boom(config):
        raise RuntimeError("broken source")

    def slow(config):
        time.sleep(0.2)
        finished.append("slow")

    def later(config):
        finished.append("later")

    pipeline = Pipeline(
        tasks={
            "start": _spec("start", lambda config: None),
            "boom": _spec("boom", boom),
            "slow": _spec("slow", slow),
            "later": _spec("later", later),
        },
        edges=[("start", "boom"), ("start", "slow"), ("boom", "later"), ("slow", "later")],
    )
    with pytest.raises(PipelineError) as excinfo:
        pipeline.run(make_config())
    assert excinfo.value.failed == ["boom"]
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert finished == ["slow"]
    results = excinfo.value.metadata["results"]
    assert results["boom"].status == "error"
    assert results["slow"].status == "ok"
    assert "later" not in results


def test_task_result_events() -> None:
    result = TaskResult("images")
    result.record("transform", "a.png")
    result.record("cache-hit", "b.png")
    result.record("skip")
    assert result.events == ["transform:a.png", "cache-hit:b.png", "skip"]
    assert result.events_of("cache-hit") == ["b.png"]
