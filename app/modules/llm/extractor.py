"""Recover a JSON payload from free-form generator text.

Generators wrap JSON in prose, fence it in markdown and make the usual
hand-written JSON mistakes. ``extract_json`` tries the least invasive fix
first and only falls back to scanning for a bracketed span when the text is
not pure JSON.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Optional

from app.modules.llm.errors import MalformedOutput


EXCERPT_CHARS = 500

_TRAILING_SEPARATOR = re.compile(r",\s*([\]}])")
_ADJACENT_OBJECTS = re.compile(r"}\s*{")
_MISSING_LINE_SEPARATOR = re.compile(r'(["\d\]}])\s*\n\s*"')
_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def _light_repair(text: str) -> str:
    text = _TRAILING_SEPARATOR.sub(r"\1", text)
    return _ADJACENT_OBJECTS.sub("},{", text)


def _heavy_repair(text: str) -> str:
    return _MISSING_LINE_SEPARATOR.sub(r'\1,\n"', _light_repair(text))


_REPAIRS: tuple[Callable[[str], str], ...] = (
    lambda t: t,
    _light_repair,
    _heavy_repair,
)

_NOT_PARSED = object()


def _parse_with_repairs(text: str) -> Any:
    for repair in _REPAIRS:
        try:
            return json.loads(repair(text))
        except json.JSONDecodeError:
            continue
    return _NOT_PARSED


def find_balanced(text: str, open_char: str = "{", close_char: str = "}") -> Optional[str]:
    """First top-level balanced span starting at ``open_char``.

    Brackets inside string literals are ignored; backslash escapes inside
    strings are honoured. Returns None when no balanced span exists.
    """
    start = text.find(open_char)
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
            continue
        if ch == "\\" and in_string:
            escaped = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def _candidates(text: str):
    yield text
    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        yield fenced.group(1).strip()
    for open_char, close_char in (("{", "}"), ("[", "]")):
        span = find_balanced(text, open_char, close_char)
        if span is not None:
            yield span


def extract_json(text: str) -> Any:
    """Parse the structured payload in ``text`` or raise MalformedOutput."""
    for candidate in _candidates(text or ""):
        value = _parse_with_repairs(candidate)
        if value is not _NOT_PARSED:
            return value
    excerpt = (text or "")[:EXCERPT_CHARS]
    raise MalformedOutput(
        f"could not parse JSON from generator output: {excerpt!r}", excerpt=excerpt
    )
