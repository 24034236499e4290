"""Writes a concatenated bundle with or without its source map."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional

from ..orchestrator.utils import write_output
from .sourcemap import Concat, inline_url, mapping_comment, to_json


def map_source_name(source: Path, out_dir: Path) -> str:
    return Path(os.path.relpath(source, out_dir)).as_posix()


def write_bundle(
    bundle: Concat,
    out_path: Path,
    kind: str,
    minify: Optional[Callable[[str], str]] = None,
    sourcemaps: Optional[str] = "external",
) -> list[Path]:
    """Write ``bundle`` to ``out_path`` and return every file written.

    With ``minify`` the content is minified and no map is produced; a map left
    behind by an earlier development build is removed. Otherwise the map is
    written next to the bundle (``external``) or embedded (``inline``).
    """
    map_path = out_path.with_name(out_path.name + ".map")
    content = bundle.content
    if minify is not None or not sourcemaps:
        if minify is not None:
            content = minify(content)
        if map_path.exists():
            map_path.unlink()
        return [write_output(out_path, content)]

    source_map = bundle.source_map()
    if sourcemaps == "inline":
        content = content.rstrip("\n") + "\n" + mapping_comment(inline_url(source_map), kind) + "\n"
        if map_path.exists():
            map_path.unlink()
        return [write_output(out_path, content)]

    content = content.rstrip("\n") + "\n" + mapping_comment(map_path.name, kind) + "\n"
    written = [write_output(out_path, content)]
    written.append(write_output(map_path, to_json(source_map)))
    return written
