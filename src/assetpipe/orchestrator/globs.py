"""Glob expansion for asset sources.

Patterns are POSIX-style paths relative to the project root and support
``**`` (any number of directories), ``*``, ``?``, ``[...]`` classes and
``{a,b}`` alternation. A leading ``!`` turns a pattern into an exclusion.
Dotfiles are never matched.

Ordering: each pattern's own matches are sorted lexicographically by their
relative path; across patterns the caller's list order is kept and a file
matched twice keeps its first position.
"""

from __future__ import annotations

import os
import re
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, Sequence, Union

Patterns = Union[str, Sequence[str]]

_MAGIC = set("*?[{")


def has_magic(pattern: str) -> bool:
    return any(ch in _MAGIC for ch in pattern)


def _normalize(pattern: str) -> str:
    pattern = pattern.replace("\\", "/")
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern


@lru_cache(maxsize=256)
def translate(pattern: str) -> "re.Pattern[str]":
    """Compile a glob pattern into an anchored regular expression."""
    pattern = _normalize(pattern)
    out: list[str] = []
    depth = 0
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**/", i):
                out.append("(?:[^/]+/)*")
                i += 3
                continue
            if pattern.startswith("**", i):
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = pattern.find("]", i + 1)
            if j == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : j]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                i = j + 1
                continue
        elif c == "{":
            depth += 1
            out.append("(?:")
        elif c == "}" and depth:
            depth -= 1
            out.append(")")
        elif c == "," and depth:
            out.append("|")
        else:
            out.append(re.escape(c))
        i += 1
    if depth:
        raise ValueError(f"Unbalanced braces in glob: {pattern}")
    return re.compile("".join(out) + r"\Z")


def glob_base(pattern: str) -> str:
    """Leading directory of a pattern that contains no wildcard."""
    parts = _normalize(pattern).split("/")
    base: list[str] = []
    for part in parts[:-1]:
        if has_magic(part):
            break
        base.append(part)
    return "/".join(base)


def matches(pattern: str, rel_path: str) -> bool:
    rel_path = _normalize(rel_path)
    if any(part.startswith(".") for part in rel_path.split("/")):
        return False
    return translate(pattern).match(rel_path) is not None


def as_list(patterns: Patterns) -> list[str]:
    if isinstance(patterns, str):
        return [patterns]
    return [str(p) for p in patterns]


def _walk(pattern: str, root: Path) -> list[str]:
    pattern = _normalize(pattern)
    if not has_magic(pattern):
        return [pattern] if (root / pattern).is_file() else []
    base = glob_base(pattern)
    base_dir = root / base if base else root
    regex = translate(pattern)
    found: list[str] = []
    for dirpath, dirnames, files in os.walk(base_dir):
        dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        for file in files:
            if file.startswith("."):
                continue
            rel = (Path(dirpath) / file).relative_to(root).as_posix()
            if regex.match(rel):
                found.append(rel)
    return sorted(found)


def iter_matches(patterns: Patterns, root: Path) -> Iterator[tuple[Path, PurePosixPath]]:
    """Yield ``(absolute path, path relative to its pattern's base)`` pairs."""
    root = Path(root)
    pats = [_normalize(p) for p in as_list(patterns)]
    excludes = [translate(p[1:]) for p in pats if p.startswith("!")]
    seen: set[str] = set()
    for pat in pats:
        if pat.startswith("!"):
            continue
        base = glob_base(pat)
        for rel in _walk(pat, root):
            if rel in seen or any(x.match(rel) for x in excludes):
                continue
            seen.add(rel)
            rel_base = PurePosixPath(rel).relative_to(base) if base else PurePosixPath(rel)
            yield root / rel, rel_base


def expand(patterns: Patterns, root: Path) -> list[Path]:
    return [path for path, _ in iter_matches(patterns, root)]


def watch_dirs(patterns: Iterable[str], root: Path) -> list[Path]:
    """Directories to observe so that every pattern's matches are covered."""
    dirs: list[Path] = []
    for pat in patterns:
        if pat.startswith("!"):
            continue
        base = glob_base(pat)
        d = root / base if base else Path(root)
        if d not in dirs:
            dirs.append(d)
    return dirs
