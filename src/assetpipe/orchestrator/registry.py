"""Typed task registry and the default build sequence."""

from __future__ import annotations

from enum import Enum

from ..tasks.clean import clean
from ..tasks.fonts import fonts
from ..tasks.images import images
from ..tasks.scripts import scripts
from ..tasks.serve import serve
from ..tasks.styles import styles
from ..tasks.watch import watch
from .config import BuildConfig
from .core import Pipeline, TaskResult, TaskSpec


class TaskName(str, Enum):
    CLEAN = "clean"
    DEFAULT = "default"
    STYLES = "styles"
    SCRIPTS = "scripts"
    IMAGES = "images"
    FONTS = "fonts"
    WATCH = "watch"
    SERVE = "serve"


# clean → styles → (scripts, images, fonts)
DEFAULT_EDGES = [
    ("clean", "styles"),
    ("styles", "scripts"),
    ("styles", "images"),
    ("styles", "fonts"),
]


def _specs() -> dict[TaskName, TaskSpec]:
    fns = (clean, styles, scripts, images, fonts, watch, serve)
    return {TaskName(fn._task_spec.name): fn._task_spec for fn in fns}


def default_pipeline() -> Pipeline:
    specs = _specs()
    names = (TaskName.CLEAN, TaskName.STYLES, TaskName.SCRIPTS, TaskName.IMAGES, TaskName.FONTS)
    return Pipeline(
        tasks={n.value: specs[n] for n in names},
        edges=DEFAULT_EDGES,
        name="default",
    )


def run_default(config: BuildConfig) -> TaskResult:
    """Clean, then build styles, then scripts, images and fonts in parallel."""
    results = default_pipeline().run(config)
    merged = TaskResult("default")
    for name, res in results.items():
        merged.files.extend(res.files)
        merged.size += res.size
        merged.events.extend(f"{name}.{e}" for e in res.events)
        merged.problems.extend(res.problems)
    return merged


def build_registry() -> dict[TaskName, TaskSpec]:
    registry = _specs()
    registry[TaskName.DEFAULT] = TaskSpec(
        name=TaskName.DEFAULT.value,
        fn=run_default,
        description="Clean and compile every asset group",
    )
    return {name: registry[name] for name in TaskName}


def pipeline_for(name: TaskName) -> Pipeline:
    if name is TaskName.DEFAULT:
        return default_pipeline()
    spec = build_registry()[name]
    return Pipeline(tasks={spec.name: spec}, edges=[], name=spec.name)


def run_task(name: TaskName, config: BuildConfig) -> dict[str, TaskResult]:
    return pipeline_for(name).run(config)
