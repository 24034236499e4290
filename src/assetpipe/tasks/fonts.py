"""Font task: copy web fonts to the destination directory."""

from __future__ import annotations

import shutil

from ..orchestrator import task
from ..orchestrator import globs
from ..orchestrator.config import BuildConfig
from ..orchestrator.core import TaskResult
from ..orchestrator.logging import get_logger
from ..orchestrator.utils import display_path, report_size


@task(name="fonts")
def fonts(config: BuildConfig) -> TaskResult:
    """Copy fonts unchanged."""
    logger = get_logger("tasks.fonts")
    result = TaskResult("fonts")
    dest_dir = config.fonts.dest_dir(config.root)
    for src, rel in globs.iter_matches(config.fonts.src, config.root):
        out = dest_dir / rel
        out.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, out)
        result.add_file(out)
        result.record("copy", display_path(src, config.root))
    report_size(logger, "fonts", result.size)
    return result
