"""Image task: optimize images into the destination directory.

Optimized bytes are cached by content, so a second run over unchanged sources
copies cached results without touching Pillow. The cache lives outside the
static root and survives ``clean``.
"""

from __future__ import annotations

import io
from typing import Any, Dict

from PIL import Image

from ..orchestrator import task
from ..orchestrator import cache as cache_mod
from ..orchestrator import globs
from ..orchestrator.config import BuildConfig, ImageOptions
from ..orchestrator.core import TaskResult
from ..orchestrator.errors import CompileError
from ..orchestrator.logging import get_logger
from ..orchestrator.utils import display_path, human_size, report_size, write_output

CACHE_NAMESPACE = "images"

IMAGE_FORMATS = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".gif": "GIF",
}


def _save_kwargs(fmt: str, img: Image.Image, options: ImageOptions) -> Dict[str, Any]:
    if fmt == "JPEG":
        quality = options.jpeg_quality
        if quality is None:
            # "keep" reuses the source quantization tables; only valid for JPEG input
            quality = "keep" if img.format == "JPEG" else 85
        return {"optimize": True, "progressive": options.progressive, "quality": quality}
    if fmt == "GIF":
        return {
            "optimize": True,
            "interlace": options.interlaced,
            "save_all": bool(getattr(img, "is_animated", False)),
        }
    return {"optimize": True}


def optimize_image(data: bytes, suffix: str, options: ImageOptions) -> bytes:
    """Return optimized image bytes, or the input when nothing smaller results."""
    fmt = IMAGE_FORMATS.get(suffix.lower())
    if fmt is None:
        return data
    with Image.open(io.BytesIO(data)) as img:
        kwargs = _save_kwargs(fmt, img, options)
        if fmt == "JPEG" and img.mode not in ("RGB", "L", "CMYK"):
            img = img.convert("RGB")
            if kwargs["quality"] == "keep":
                kwargs["quality"] = 85
        buf = io.BytesIO()
        img.save(buf, fmt, **kwargs)
    out = buf.getvalue()
    return out if len(out) < len(data) else data


@task(name="images")
def images(config: BuildConfig) -> TaskResult:
    """Optimize images, reusing cached results for unchanged inputs."""
    logger = get_logger("tasks.images")
    group = config.images
    result = TaskResult("images")
    dest_dir = group.dest_dir(config.root)
    options = config.image_options
    original_total = 0

    for src, rel in globs.iter_matches(group.src, config.root):
        name = display_path(src, config.root)
        data = src.read_bytes()
        original_total += len(data)
        key = cache_mod.compute_key(
            CACHE_NAMESPACE, data, {**options.as_dict(), "suffix": src.suffix.lower()}
        )
        optimized = cache_mod.lookup(config.cache_path, CACHE_NAMESPACE, key)
        if optimized is None:
            try:
                optimized = optimize_image(data, src.suffix, options)
            except OSError as e:
                raise CompileError(f"Failed to optimize {name}: {e}", source=src) from e
            cache_mod.store(config.cache_path, CACHE_NAMESPACE, key, optimized)
            result.record("transform", name)
        else:
            result.record("cache-hit", name)
        out = write_output(dest_dir / rel, optimized)
        result.add_file(out)

    if result.files:
        saved = original_total - result.size
        logger.info(
            "Minified %d image%s (saved %s - %.1f%%)",
            len(result.files),
            "" if len(result.files) == 1 else "s",
            human_size(saved),
            100.0 * saved / original_total if original_total else 0.0,
        )
    report_size(logger, "images", result.size)
    return result
