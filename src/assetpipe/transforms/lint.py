"""Lightweight JavaScript linting with a stylish console report.

Checks run on source with strings and comments blanked out, so positions stay
accurate while literals never trigger a rule.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

_MASK = re.compile(
    r"""//[^\n]*|/\*.*?\*/|'(?:\\.|[^'\\\n])*'|"(?:\\.|[^"\\\n])*"|`(?:\\.|[^`\\])*`""",
    re.S,
)

_EQ = re.compile(r"(?<![=!<>])(==|!=)(?!=)(?!\s*null\b)")
_DEBUGGER = re.compile(r"\bdebugger\b")
_EVAL = re.compile(r"(?<![\w.$])eval\s*\(")
_WITH = re.compile(r"(?<![\w.$])with\s*\(")
_TRAILING = re.compile(r"[ \t]+$", re.M)


@dataclass(frozen=True)
class Problem:
    path: str
    line: int
    column: int
    code: str
    message: str
    severity: str = "warning"


def _mask(source: str) -> str:
    return _MASK.sub(lambda m: re.sub(r"[^\n]", " ", m.group(0)), source)


def _position(source: str, offset: int) -> tuple[int, int]:
    line = source.count("\n", 0, offset) + 1
    column = offset - (source.rfind("\n", 0, offset) + 1) + 1
    return line, column


def lint_source(source: str, path: str = "<input>", maxlen: Optional[int] = None) -> list[Problem]:
    code = _mask(source)
    problems: list[Problem] = []

    def add(offset: int, rule: str, message: str, severity: str = "warning") -> None:
        line, col = _position(source, offset)
        problems.append(Problem(path, line, col, rule, message, severity))

    for m in _EQ.finditer(code):
        add(m.start(), "eqeqeq", f"Expected '{m.group(1)}=' and instead saw '{m.group(1)}'.")
    for m in _DEBUGGER.finditer(code):
        add(m.start(), "debug", "Forgotten 'debugger' statement?")
    for m in _EVAL.finditer(code):
        add(m.start(), "evil", "eval can be harmful.")
    for m in _WITH.finditer(code):
        add(m.start(), "with", "Don't use 'with'.", severity="error")
    for m in _TRAILING.finditer(source):
        add(m.start(), "trailing", "Trailing whitespace.")
    if maxlen:
        offset = 0
        for text in source.split("\n"):
            if len(text) > maxlen:
                add(offset + maxlen, "maxlen", "Line is too long.")
            offset += len(text) + 1

    problems.sort(key=lambda p: (p.line, p.column))
    return problems


def lint_file(path: Path, display: Optional[str] = None, maxlen: Optional[int] = None) -> list[Problem]:
    return lint_source(path.read_text(encoding="utf-8"), display or str(path), maxlen=maxlen)


def stylish(problems: Iterable[Problem]) -> str:
    """Format problems grouped by file, followed by a summary line."""
    problems = list(problems)
    if not problems:
        return ""
    lines: list[str] = []
    current = None
    for p in problems:
        if p.path != current:
            if current is not None:
                lines.append("")
            lines.append(p.path)
            current = p.path
        lines.append(f"  line {p.line:<3} col {p.column:<3} {p.message}")
    errors = sum(1 for p in problems if p.severity == "error")
    warnings = len(problems) - errors
    summary = []
    if errors:
        summary.append(f"{errors} error{'s' if errors != 1 else ''}")
    if warnings:
        summary.append(f"{warnings} warning{'s' if warnings != 1 else ''}")
    lines.append("")
    lines.append("  ✖ " + ", ".join(summary))
    return "\n".join(lines)
