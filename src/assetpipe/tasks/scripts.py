"""Script task: lint JavaScript, compile CoffeeScript and concatenate all scripts.

Lint problems are reported and never stop the build. In development a source
map is written; in production the bundle is minified.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import rjsmin

from ..orchestrator import task
from ..orchestrator import cache as cache_mod
from ..orchestrator import globs
from ..orchestrator.config import BuildConfig
from ..orchestrator.core import TaskResult
from ..orchestrator.errors import CompileError
from ..orchestrator.logging import get_logger
from ..orchestrator.utils import display_path, report_size
from ..transforms.bundle import map_source_name, write_bundle
from ..transforms.lint import lint_file, stylish
from ..transforms.sourcemap import Concat


def compile_coffee(src: Path, command: tuple[str, ...]) -> str:
    """Compile a CoffeeScript file with the external compiler; stdout is the JS."""
    argv = list(command) + [str(src)]
    try:
        proc = subprocess.run(argv, capture_output=True, text=True, check=False)
    except FileNotFoundError as e:
        raise CompileError(
            f"CoffeeScript compiler not found: {command[0]}", source=src
        ) from e
    if proc.returncode != 0:
        raise CompileError(
            f"Failed to compile {src.name}: {proc.stderr.strip() or proc.stdout.strip()}",
            source=src,
            metadata={"returncode": proc.returncode},
        )
    return proc.stdout


@task(name="scripts")
def scripts(config: BuildConfig) -> TaskResult:
    """Lint, compile and concatenate script sources."""
    logger = get_logger("tasks.scripts")
    group = config.scripts
    result = TaskResult("scripts")
    sources = globs.expand(group.src, config.root)
    out_path = group.concat_path(config.root)
    if out_path is None:
        raise CompileError("The scripts group needs a concat filename")
    if not sources:
        logger.info("No script sources match %s", ", ".join(group.src))
        return result

    manifest = cache_mod.bundle_manifest(sources, config.mode.value, config.sourcemaps)
    if not config.production and cache_mod.is_fresh(config.cache_path, out_path, manifest):
        result.record("skip", "up-to-date")
        result.status = "skipped"
        logger.info("%s is up to date", display_path(out_path, config.root))
        return result

    for src in sources:
        if src.suffix == ".js":
            result.problems.extend(lint_file(src, display_path(src, config.root)))
    if result.problems:
        logger.warning("Lint problems found\n%s", stylish(result.problems))

    bundle = Concat(group.concat)
    for src in sources:
        original = src.read_text(encoding="utf-8")
        if src.suffix == ".coffee":
            js = compile_coffee(src, config.coffee_command).rstrip("\n")
            # Compiled output keeps only its first line mapped
            line_map = [(0, 0)] + [None] * js.count("\n")
            bundle.add(map_source_name(src, out_path.parent), js, original=original, line_map=line_map)
        else:
            bundle.add(map_source_name(src, out_path.parent), original.rstrip("\n"), original=original)
        result.record("compile", display_path(src, config.root))

    written = write_bundle(
        bundle,
        out_path,
        kind="js",
        minify=rjsmin.jsmin if config.production else None,
        sourcemaps=config.sourcemaps,
    )
    cache_mod.write_manifest(config.cache_path, out_path, manifest, written)
    for path in written:
        result.add_file(path)
    report_size(logger, "scripts", result.size)
    return result
