"""Source map v3 support for concatenated bundles.

Only line-level precision is kept: every generated line maps to the first
column of one original line. That is enough for browser devtools to show the
right file and line for each rule or statement.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Optional, Sequence

_B64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_B64_INDEX = {c: i for i, c in enumerate(_B64)}

LineMap = Sequence[Optional[tuple[int, int]]]


def vlq_encode(value: int) -> str:
    vlq = (-value << 1) | 1 if value < 0 else value << 1
    out = []
    while True:
        digit = vlq & 31
        vlq >>= 5
        if vlq:
            digit |= 32
        out.append(_B64[digit])
        if not vlq:
            return "".join(out)


def vlq_decode(segment: str) -> list[int]:
    values: list[int] = []
    shift = value = 0
    for ch in segment:
        digit = _B64_INDEX[ch]
        value += (digit & 31) << shift
        if digit & 32:
            shift += 5
            continue
        values.append(-(value >> 1) if value & 1 else value >> 1)
        shift = value = 0
    return values


def decode_mappings(mappings: str) -> list[list[tuple[int, ...]]]:
    """Decode a ``mappings`` string into absolute segments per generated line."""
    lines: list[list[tuple[int, ...]]] = []
    src = src_line = src_col = name = 0
    for line in mappings.split(";"):
        gen_col = 0
        segments: list[tuple[int, ...]] = []
        for raw in line.split(","):
            if not raw:
                continue
            fields = vlq_decode(raw)
            gen_col += fields[0]
            if len(fields) >= 4:
                src += fields[1]
                src_line += fields[2]
                src_col += fields[3]
                if len(fields) == 5:
                    name += fields[4]
                segments.append((gen_col, src, src_line, src_col))
            else:
                segments.append((gen_col,))
        lines.append(segments)
    return lines


def first_mapping_per_line(source_map: dict, line_count: int) -> list[Optional[tuple[int, int, int]]]:
    """``(source index, line, column)`` of the first mapped segment on each generated line."""
    decoded = decode_mappings(source_map.get("mappings", ""))
    out: list[Optional[tuple[int, int, int]]] = []
    for i in range(line_count):
        segs = [s for s in (decoded[i] if i < len(decoded) else []) if len(s) == 4]
        out.append((segs[0][1], segs[0][2], segs[0][3]) if segs else None)
    return out


@dataclass
class Concat:
    """Joins sources with a separator while tracking a line-level source map."""

    file: str
    separator: str = "\n"
    parts: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    contents: list[Optional[str]] = field(default_factory=list)
    _segments: list[tuple[int, int, int, int]] = field(default_factory=list)
    _next_line: int = 0

    def add(
        self,
        source: str,
        text: str,
        original: Optional[str] = None,
        line_map: Optional[LineMap] = None,
    ) -> None:
        """Append ``text`` produced from ``source``.

        ``line_map`` gives, for each line of ``text``, the original
        ``(line, column)`` it came from, or ``None`` for unmapped lines. When
        omitted each line maps to the same line of the source.
        """
        if self.parts:
            self._next_line += self.separator.count("\n")
        idx = len(self.sources)
        self.sources.append(source)
        self.contents.append(original if original is not None else text)
        for i in range(text.count("\n") + 1):
            if line_map is None:
                origin: Optional[tuple[int, int]] = (i, 0)
            else:
                origin = line_map[i] if i < len(line_map) else None
            if origin is not None:
                self._segments.append((self._next_line + i, idx, origin[0], origin[1]))
        self._next_line += text.count("\n")
        self.parts.append(text)

    @property
    def content(self) -> str:
        return self.separator.join(self.parts)

    def mappings(self) -> str:
        by_line: dict[int, list[tuple[int, int, int]]] = {}
        for gen_line, src, line, col in self._segments:
            by_line.setdefault(gen_line, []).append((src, line, col))
        total = self._next_line + 1
        prev_src = prev_line = prev_col = 0
        out = []
        for gen_line in range(total):
            segs = []
            for src, line, col in by_line.get(gen_line, [])[:1]:
                segs.append(
                    vlq_encode(0)
                    + vlq_encode(src - prev_src)
                    + vlq_encode(line - prev_line)
                    + vlq_encode(col - prev_col)
                )
                prev_src, prev_line, prev_col = src, line, col
            out.append(",".join(segs))
        return ";".join(out)

    def source_map(self) -> dict:
        return {
            "version": 3,
            "file": self.file,
            "sources": list(self.sources),
            "sourcesContent": list(self.contents),
            "names": [],
            "mappings": self.mappings(),
        }


def to_json(source_map: dict) -> str:
    return json.dumps(source_map, separators=(",", ":"))


def inline_url(source_map: dict) -> str:
    encoded = base64.b64encode(to_json(source_map).encode("utf-8")).decode("ascii")
    return f"data:application/json;charset=utf-8;base64,{encoded}"


def mapping_comment(url: str, kind: str) -> str:
    if kind == "css":
        return f"/*# sourceMappingURL={url} */"
    return f"//# sourceMappingURL={url}"
