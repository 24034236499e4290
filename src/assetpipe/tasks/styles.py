"""Style task: compile SASS, add vendor prefixes and concatenate all styles.

In development a source map is written and the task is skipped while the
concatenated stylesheet is newer than every source. In production the output
is minified and carries no map.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import rcssmin
import sass

from ..orchestrator import task
from ..orchestrator import cache as cache_mod
from ..orchestrator import globs
from ..orchestrator.config import BuildConfig
from ..orchestrator.core import TaskResult
from ..orchestrator.errors import CompileError
from ..orchestrator.logging import get_logger
from ..orchestrator.utils import display_path, report_size
from ..transforms.bundle import map_source_name, write_bundle
from ..transforms.prefixer import prefix_css
from ..transforms.sourcemap import Concat, first_mapping_per_line

SASS_SUFFIXES = {".scss", ".sass"}


def is_partial(path: Path) -> bool:
    return path.suffix in SASS_SUFFIXES and path.name.startswith("_")


def _main_source_index(source_map: dict, src: Path, map_dir: Path) -> Optional[int]:
    for i, name in enumerate(source_map.get("sources", [])):
        if name.startswith("file://"):
            name = name[len("file://") :]
        candidate = Path(name) if Path(name).is_absolute() else map_dir / name
        if candidate.resolve() == src.resolve():
            return i
    for i, name in enumerate(source_map.get("sources", [])):
        if Path(name).name == src.name:
            return i
    return None


def compile_sass(src: Path, with_map: bool) -> tuple[str, Optional[list]]:
    """Compile one SASS file; with ``with_map`` also return a per-line origin map."""
    try:
        if not with_map:
            return sass.compile(filename=str(src), output_style="expanded"), None
        css, raw_map = sass.compile(
            filename=str(src),
            output_style="expanded",
            source_map_filename=str(src.with_name(src.name + ".map")),
            omit_source_map_url=True,
        )
    except sass.CompileError as e:
        raise CompileError(f"Failed to compile {src.name}: {e}", source=src) from e
    source_map = json.loads(raw_map)
    css = css.rstrip("\n")
    main = _main_source_index(source_map, src, src.parent)
    # Lines coming from imported partials stay unmapped
    line_map = [
        (entry[1], entry[2]) if entry is not None and entry[0] == main else None
        for entry in first_mapping_per_line(source_map, css.count("\n") + 1)
    ]
    return css, line_map


@task(name="styles")
def styles(config: BuildConfig) -> TaskResult:
    """Compile, prefix and concatenate style sources."""
    logger = get_logger("tasks.styles")
    group = config.styles
    result = TaskResult("styles")
    matched = globs.expand(group.src, config.root)
    sources = [p for p in matched if not is_partial(p)]
    out_path = group.concat_path(config.root)
    if out_path is None:
        raise CompileError("The styles group needs a concat filename")
    if not sources:
        logger.info("No style sources match %s", ", ".join(group.src))
        return result

    # Partials count for freshness even though they are not compiled on their own
    manifest = cache_mod.bundle_manifest(matched, config.mode.value, config.sourcemaps)
    if not config.production and cache_mod.is_fresh(config.cache_path, out_path, manifest):
        result.record("skip", "up-to-date")
        result.status = "skipped"
        logger.info("%s is up to date", display_path(out_path, config.root))
        return result

    with_map = not config.production
    bundle = Concat(group.concat)
    for src in sources:
        original = src.read_text(encoding="utf-8")
        if src.suffix in SASS_SUFFIXES:
            css, line_map = compile_sass(src, with_map)
        else:
            css, line_map = original.rstrip("\n"), None
        prefixed, origins = prefix_css(css, config.browsers)
        if line_map is not None:
            mapped = [line_map[o] if o < len(line_map) else None for o in origins]
        else:
            mapped = [(o, 0) for o in origins]
        bundle.add(map_source_name(src, out_path.parent), prefixed, original=original, line_map=mapped)
        result.record("compile", display_path(src, config.root))

    written = write_bundle(
        bundle,
        out_path,
        kind="css",
        minify=rcssmin.cssmin if config.production else None,
        sourcemaps=config.sourcemaps,
    )
    cache_mod.write_manifest(config.cache_path, out_path, manifest, written)
    for path in written:
        result.add_file(path)
    report_size(logger, "styles", result.size)
    return result
