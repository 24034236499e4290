"""Vendor prefixing for compiled CSS.

Adds prefixed declarations (and ``@-webkit-keyframes`` blocks) required by the
oldest version of each browser in a support list such as ``"ie >= 10"`` or
``"android >= 4.4"``. The support data covers the properties whose prefixes
still matter for the browsers this tool targets; unknown properties pass
through untouched.

Every function returns the new CSS together with ``origins``: for each output
line, the index of the input line it came from. Source maps use it to keep
line mappings valid after lines are inserted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

Version = tuple[int, ...]

BROWSER_ALIASES = {
    "ff": "firefox",
    "fx": "firefox",
    "bb": "blackberry",
    "ie_mob": "ie_mob",
    "iemobile": "ie_mob",
    "ios_saf": "ios",
    "and_chr": "android",
    "op": "opera",
}

# Prefix rules: property -> [(prefix, {browser: first version without prefix})].
# A version of None means every version of that browser needs the prefix.
_TRANSFORM = {"chrome": (36,), "safari": (9,), "ios": (9,), "android": (5,), "opera": (23,), "blackberry": (11,)}
_ANIMATION = {"chrome": (43,), "safari": (9,), "ios": (9,), "android": (5,), "opera": (30,), "blackberry": (11,)}
_TRANSITION = {"chrome": (26,), "safari": (7,), "ios": (7,), "android": (4, 4), "opera": (12, 1), "blackberry": (11,)}
_FLEX = {"chrome": (29,), "safari": (9,), "ios": (9,), "android": (4, 4), "opera": (17,), "blackberry": (11,)}
_COLUMNS = {"chrome": (50,), "safari": (9,), "ios": (9,), "android": (50,), "opera": (37,), "blackberry": None}
_ALWAYS_WEBKIT = {"chrome": None, "safari": None, "ios": None, "android": None, "opera": None, "blackberry": None}


@dataclass(frozen=True)
class Rule:
    prefix: str
    browsers: dict
    name: Optional[str] = None
    values: Optional[dict] = None

    def prefixed_name(self, prop: str) -> str:
        return self.name or f"{self.prefix}{prop}"


PROPERTY_RULES: dict[str, list[Rule]] = {
    "transform": [Rule("-webkit-", _TRANSFORM), Rule("-ms-", {"ie": (10,)})],
    "transform-origin": [Rule("-webkit-", _TRANSFORM), Rule("-ms-", {"ie": (10,)})],
    "transform-style": [Rule("-webkit-", _TRANSFORM)],
    "perspective": [Rule("-webkit-", _TRANSFORM)],
    "perspective-origin": [Rule("-webkit-", _TRANSFORM)],
    "backface-visibility": [Rule("-webkit-", {**_TRANSFORM, "safari": None, "ios": None, "blackberry": None})],
    "transition": [Rule("-webkit-", _TRANSITION)],
    "transition-property": [Rule("-webkit-", _TRANSITION)],
    "transition-duration": [Rule("-webkit-", _TRANSITION)],
    "transition-timing-function": [Rule("-webkit-", _TRANSITION)],
    "transition-delay": [Rule("-webkit-", _TRANSITION)],
    "animation": [Rule("-webkit-", _ANIMATION)],
    "animation-name": [Rule("-webkit-", _ANIMATION)],
    "animation-duration": [Rule("-webkit-", _ANIMATION)],
    "animation-timing-function": [Rule("-webkit-", _ANIMATION)],
    "animation-delay": [Rule("-webkit-", _ANIMATION)],
    "animation-iteration-count": [Rule("-webkit-", _ANIMATION)],
    "animation-direction": [Rule("-webkit-", _ANIMATION)],
    "animation-fill-mode": [Rule("-webkit-", _ANIMATION)],
    "animation-play-state": [Rule("-webkit-", _ANIMATION)],
    "flex": [Rule("-webkit-", _FLEX), Rule("-ms-", {"ie": (11,)})],
    "flex-grow": [Rule("-webkit-", _FLEX), Rule("-ms-", {"ie": (11,)}, name="-ms-flex-positive")],
    "flex-shrink": [Rule("-webkit-", _FLEX), Rule("-ms-", {"ie": (11,)}, name="-ms-flex-negative")],
    "flex-basis": [Rule("-webkit-", _FLEX), Rule("-ms-", {"ie": (11,)}, name="-ms-flex-preferred-size")],
    "flex-direction": [Rule("-webkit-", _FLEX), Rule("-ms-", {"ie": (11,)})],
    "flex-wrap": [Rule("-webkit-", _FLEX), Rule("-ms-", {"ie": (11,)})],
    "flex-flow": [Rule("-webkit-", _FLEX), Rule("-ms-", {"ie": (11,)})],
    "order": [Rule("-webkit-", _FLEX), Rule("-ms-", {"ie": (11,)}, name="-ms-flex-order")],
    "align-items": [
        Rule("-webkit-", _FLEX),
        Rule("-ms-", {"ie": (11,)}, name="-ms-flex-align", values={"flex-start": "start", "flex-end": "end"}),
    ],
    "align-self": [
        Rule("-webkit-", _FLEX),
        Rule("-ms-", {"ie": (11,)}, name="-ms-flex-item-align", values={"flex-start": "start", "flex-end": "end"}),
    ],
    "align-content": [
        Rule("-webkit-", _FLEX),
        Rule(
            "-ms-",
            {"ie": (11,)},
            name="-ms-flex-line-pack",
            values={"flex-start": "start", "flex-end": "end", "space-between": "justify", "space-around": "distribute"},
        ),
    ],
    "justify-content": [
        Rule("-webkit-", _FLEX),
        Rule(
            "-ms-",
            {"ie": (11,)},
            name="-ms-flex-pack",
            values={"flex-start": "start", "flex-end": "end", "space-between": "justify", "space-around": "distribute"},
        ),
    ],
    "columns": [Rule("-webkit-", _COLUMNS), Rule("-moz-", {"firefox": (52,)})],
    "column-count": [Rule("-webkit-", _COLUMNS), Rule("-moz-", {"firefox": (52,)})],
    "column-gap": [Rule("-webkit-", _COLUMNS), Rule("-moz-", {"firefox": (52,)})],
    "column-rule": [Rule("-webkit-", _COLUMNS), Rule("-moz-", {"firefox": (52,)})],
    "column-width": [Rule("-webkit-", _COLUMNS), Rule("-moz-", {"firefox": (52,)})],
    "user-select": [
        Rule("-webkit-", {**_ALWAYS_WEBKIT, "chrome": (54,), "opera": (41,)}),
        Rule("-moz-", {"firefox": (69,)}),
        Rule("-ms-", {"ie": None, "ie_mob": None}),
    ],
    "appearance": [Rule("-webkit-", _ALWAYS_WEBKIT), Rule("-moz-", {"firefox": None})],
    "hyphens": [
        Rule("-webkit-", {"safari": None, "ios": None}),
        Rule("-moz-", {"firefox": (43,)}),
        Rule("-ms-", {"ie": None, "ie_mob": None}),
    ],
    "text-size-adjust": [Rule("-webkit-", {"ios": None}), Rule("-ms-", {"ie_mob": None})],
    "filter": [Rule("-webkit-", {"chrome": (53,), "safari": (10,), "ios": (10,), "android": (53,), "opera": (40,), "blackberry": None})],
    "box-sizing": [Rule("-webkit-", {"android": (4,), "ios": (5,), "safari": (5, 1)}), Rule("-moz-", {"firefox": (29,)})],
    "font-feature-settings": [Rule("-moz-", {"firefox": (34,)})],
}

# Value rules for ``display``: value -> [(prefixed value, {browser: first version without prefix})].
DISPLAY_VALUES: dict[str, list[tuple[str, dict]]] = {
    "flex": [("-webkit-flex", _FLEX), ("-ms-flexbox", {"ie": (11,)})],
    "inline-flex": [("-webkit-inline-flex", _FLEX), ("-ms-inline-flexbox", {"ie": (11,)})],
}

KEYFRAMES_RULE = Rule("-webkit-", _ANIMATION)

_QUERY = re.compile(r"^\s*([a-z_]+)\s*(>=|<=|>|<|=)?\s*([\d.]+)?\s*$", re.I)

_DECLARATION = re.compile(
    r"(?:(?<=[{;])|^)(?P<ws>[ \t\r\n]*)(?P<prop>[a-zA-Z][a-zA-Z-]*)(?P<colon>[ \t]*:)(?P<value>[^;{}]+)(?=[;}])",
    re.M,
)

_KEYFRAMES = re.compile(r"@keyframes\b")


def parse_version(text: str) -> Version:
    return tuple(int(p) for p in text.split(".") if p.isdigit())


def parse_browsers(queries: Iterable[str]) -> dict[str, Version]:
    """Oldest supported version per browser for queries like ``"ios >= 7"``."""
    oldest: dict[str, Version] = {}
    for query in queries:
        m = _QUERY.match(query)
        if not m:
            raise ValueError(f"Unsupported browser query: {query!r}")
        name = BROWSER_ALIASES.get(m.group(1).lower(), m.group(1).lower())
        op, ver = m.group(2), m.group(3)
        if op in (">=", "=") and ver:
            version = parse_version(ver)
        elif op == ">" and ver:
            v = parse_version(ver)
            version = v[:-1] + (v[-1] + 1,)
        else:
            # "< n", "<= n" or a bare name reach back to the first release
            version = (0,)
        oldest[name] = min(oldest.get(name, version), version)
    return oldest


def needs_prefix(browsers: dict, targets: dict[str, Version]) -> bool:
    for name, since in browsers.items():
        if name not in targets:
            continue
        if since is None or targets[name] < since:
            return True
    return False


class _Writer:
    """Collects output pieces while tracking each output line's input line."""

    def __init__(self) -> None:
        self.parts: list[str] = []
        self.origins: list[int] = [0]
        self.in_line = 0

    def original(self, text: str) -> None:
        for _ in range(text.count("\n")):
            self.in_line += 1
            self.origins.append(self.in_line)
        self.parts.append(text)

    def inserted(self, text: str, origin: Optional[int] = None) -> None:
        line = self.in_line if origin is None else origin
        for _ in range(text.count("\n")):
            self.origins.append(line)
        self.parts.append(text)

    def result(self) -> tuple[str, list[int]]:
        return "".join(self.parts), self.origins


def _block_end(css: str, open_brace: int) -> int:
    depth = 0
    for i in range(open_brace, len(css)):
        if css[i] == "{":
            depth += 1
        elif css[i] == "}":
            depth -= 1
            if depth == 0:
                return i
    return len(css) - 1


def _prefix_declarations(css: str, targets: dict[str, Version], only_prefix: Optional[str] = None) -> tuple[str, list[int]]:
    out = _Writer()
    pos = 0
    for m in _DECLARATION.finditer(css):
        prop = m.group("prop").lower()
        value = m.group("value")
        block_start = css.rfind("{", 0, m.start()) + 1
        preceding = css[block_start : m.start()]
        ws = m.group("ws")
        sep = ws if "\n" in ws else ""
        additions: list[str] = []

        for rule in PROPERTY_RULES.get(prop, []):
            if only_prefix and rule.prefix != only_prefix:
                continue
            if not needs_prefix(rule.browsers, targets):
                continue
            pname = rule.prefixed_name(prop)
            if re.search(rf"(?<![\w-]){re.escape(pname)}\s*:", preceding):
                continue
            pvalue = value
            if rule.values:
                pvalue = rule.values.get(value.strip(), value.strip())
                pvalue = (" " if value.startswith(" ") else "") + pvalue
            if prop.startswith("transition"):
                pvalue = _prefix_transition_value(pvalue, rule.prefix, targets)
            additions.append(f"{pname}{m.group('colon')}{pvalue};")

        if prop == "display":
            for pvalue, browsers in DISPLAY_VALUES.get(value.strip(), []):
                if only_prefix and not pvalue.startswith(only_prefix):
                    continue
                if needs_prefix(browsers, targets) and not re.search(rf":\s*{re.escape(pvalue)}\s*;", preceding):
                    lead = " " if value.startswith(" ") else ""
                    additions.append(f"display{m.group('colon')}{lead}{pvalue};")

        if not additions:
            continue
        out.original(css[pos : m.start()])
        out.original(ws)
        for add in additions:
            out.inserted(add + sep)
        out.original(css[m.start("prop") : m.end()])
        pos = m.end()
    out.original(css[pos:])
    return out.result()


def _prefix_transition_value(value: str, prefix: str, targets: dict[str, Version]) -> str:
    for prop in ("transform", "filter"):
        rules = [r for r in PROPERTY_RULES[prop] if r.prefix == prefix]
        if rules and needs_prefix(rules[0].browsers, targets):
            value = re.sub(rf"(?<![\w-]){prop}\b", f"{prefix}{prop}", value)
    return value


def _prefix_keyframes(css: str, targets: dict[str, Version]) -> tuple[str, list[int]]:
    if not needs_prefix(KEYFRAMES_RULE.browsers, targets):
        return css, list(range(css.count("\n") + 1))
    out = _Writer()
    pos = 0
    for m in _KEYFRAMES.finditer(css):
        if m.start() < pos:
            continue
        brace = css.find("{", m.end())
        if brace == -1:
            break
        name = css[m.end() : brace].strip()
        if re.search(rf"@-webkit-keyframes\s+{re.escape(name)}\s*{{", css):
            continue
        end = _block_end(css, brace)
        line_start = css.rfind("\n", 0, m.start()) + 1
        indent = css[line_start : m.start()]
        block = css[m.start() : end + 1]
        if indent.strip():
            indent = ""
        prefixed, block_origins = _prefix_declarations(
            "@-webkit-keyframes" + block[len("@keyframes") :], targets, only_prefix="-webkit-"
        )
        out.original(css[pos : m.start()])
        first_line = out.in_line
        lines = prefixed.split("\n")
        out.inserted(lines[0])
        for i in range(1, len(lines)):
            out.inserted("\n" + lines[i], origin=first_line + block_origins[i])
        out.inserted("\n" + indent if "\n" in block else " ", origin=first_line)
        out.original(block)
        pos = end + 1
    out.original(css[pos:])
    return out.result()


def prefix_css(css: str, browsers: Iterable[str]) -> tuple[str, list[int]]:
    """Add vendor prefixes needed by ``browsers``; returns ``(css, origins)``."""
    targets = parse_browsers(browsers)
    step1, origins1 = _prefix_keyframes(css, targets)
    step2, origins2 = _prefix_declarations(step1, targets)
    return step2, [origins1[o] for o in origins2]
