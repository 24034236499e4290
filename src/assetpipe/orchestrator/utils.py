from __future__ import annotations

"""Small helpers shared by the build tasks."""

import logging
from pathlib import Path
from typing import Union


def human_size(num: int) -> str:
    if num < 1000:
        return f"{num} B"
    value = float(num)
    for unit in ("kB", "MB", "GB"):
        value /= 1000
        if value < 1000:
            return f"{value:.2f} {unit}"
    return f"{value:.2f} TB"


def display_path(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def write_output(path: Path, data: Union[str, bytes]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, str):
        path.write_text(data, encoding="utf-8")
    else:
        path.write_bytes(data)
    return path


def report_size(logger: logging.Logger, title: str, total: int) -> None:
    logger.info("%s all files %s", title, human_size(total))
