"""Clean task: remove the public static asset directory."""

from __future__ import annotations

import shutil

from ..orchestrator import task
from ..orchestrator.config import BuildConfig
from ..orchestrator.core import TaskResult
from ..orchestrator.errors import ConfigError
from ..orchestrator.logging import get_logger


@task(name="clean")
def clean(config: BuildConfig) -> TaskResult:
    """Delete the output root."""
    logger = get_logger("tasks.clean")
    result = TaskResult("clean")
    root = config.root.resolve()
    target = config.static_dir.resolve()
    if target == root or root not in target.parents:
        raise ConfigError(
            f"Refusing to delete {target}: static root must be inside the project",
            metadata={"static_root": config.static_root},
        )
    if not target.exists():
        logger.info("Nothing to clean at %s", config.static_root)
        return result
    shutil.rmtree(target)
    result.record("deleted", config.static_root)
    logger.info("Deleted %s", config.static_root)
    return result
