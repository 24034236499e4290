from __future__ import annotations

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def safe_stat(path: Path) -> dict:
    try:
        st = path.stat()
        return {"size": st.st_size, "mtime": st.st_mtime}
    except FileNotFoundError:
        return {"size": None, "mtime": None}


def compute_key(namespace: str, data: bytes, options: dict) -> str:
    """Cache key for transforming ``data`` with ``options``.

    The key depends on content only, so renaming or touching a file does not
    invalidate its entry.
    """
    payload = {
        "namespace": namespace,
        "digest": sha256_bytes(data),
        "options": options,
    }
    return sha256_bytes(json.dumps(payload, sort_keys=True).encode("utf-8"))


def _entry_path(cache_dir: Path, namespace: str, key: str) -> Path:
    return cache_dir / namespace / key[:2] / key


def lookup(cache_dir: Path, namespace: str, key: str) -> Optional[bytes]:
    entry = _entry_path(cache_dir, namespace, key)
    try:
        return entry.read_bytes()
    except FileNotFoundError:
        return None


def store(cache_dir: Path, namespace: str, key: str, data: bytes) -> Path:
    entry = _entry_path(cache_dir, namespace, key)
    entry.parent.mkdir(parents=True, exist_ok=True)
    # Readers never observe a partially written entry
    fd, tmp = tempfile.mkstemp(dir=entry.parent, prefix=".tmp-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, entry)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    return entry


def is_up_to_date(sources: Iterable[Path], output: Path) -> bool:
    """True when ``output`` exists and is at least as new as every source."""
    out_mtime = safe_stat(output)["mtime"]
    if out_mtime is None:
        return False
    for src in sources:
        mtime = safe_stat(src)["mtime"]
        if mtime is None or mtime > out_mtime:
            return False
    return True


BUNDLE_NAMESPACE = "bundles"


def bundle_manifest(sources: Iterable[Path], mode: str, sourcemaps: str) -> dict:
    """What a bundle was built from: its ordered sources, the build mode and map style."""
    return {
        "sources": [str(p) for p in sources],
        "mode": mode,
        "sourcemaps": sourcemaps,
    }


def _manifest_key(output: Path) -> str:
    return sha256_bytes(str(output.resolve()).encode("utf-8"))


def read_manifest(cache_dir: Path, output: Path) -> Optional[dict]:
    raw = lookup(cache_dir, BUNDLE_NAMESPACE, _manifest_key(output))
    if raw is None:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except ValueError:
        return None


def write_manifest(cache_dir: Path, output: Path, manifest: dict, written: Iterable[Path]) -> Path:
    payload = {**manifest, "outputs": [str(p) for p in written]}
    data = json.dumps(payload, sort_keys=True).encode("utf-8")
    return store(cache_dir, BUNDLE_NAMESPACE, _manifest_key(output), data)


def is_fresh(cache_dir: Path, output: Path, manifest: dict) -> bool:
    """True when the last build of ``output`` used ``manifest`` and none of its inputs changed.

    A different source list (a file was added, removed or reordered), another
    mode or map style, or a missing output file all make the bundle stale.
    """
    recorded = read_manifest(cache_dir, output)
    if recorded is None:
        return False
    outputs = recorded.pop("outputs", [])
    if recorded != manifest:
        return False
    if not all(Path(p).exists() for p in outputs):
        return False
    return is_up_to_date([Path(p) for p in manifest["sources"]], output)
