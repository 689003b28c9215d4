"""Tolerant JSON parsing for provider output.

Some backends cannot be constrained to emit pure JSON and wrap the payload in
prose or markdown fences. ``extract_json_block`` returns the first balanced
``{...}`` or ``[...]`` block found in the text (brackets inside string
literals are ignored) and ``None`` when there is no such block.
``parse_json_loose`` builds on it and returns ``None`` rather than raising when
nothing decodes.
"""

import json
from typing import Any, Iterator, Optional

_OPENERS = {"{": "}", "[": "]"}
_CLOSERS = {"}", "]"}


def _balanced_end(text: str, start: int) -> Optional[int]:
    """Index just past the block opened at ``start``, or None if it never closes cleanly."""
    stack = []
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in _CLOSERS:
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return i + 1

    return None


def iter_json_blocks(text: str) -> Iterator[str]:
    """Yield every balanced bracket block, in order of their opening bracket."""
    if not text:
        return
    pos = 0
    while pos < len(text):
        starts = [i for i in (text.find("{", pos), text.find("[", pos)) if i != -1]
        if not starts:
            return
        start = min(starts)
        end = _balanced_end(text, start)
        if end is None:
            pos = start + 1
            continue
        yield text[start:end]
        pos = end


def extract_json_block(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` or ``[...]`` block, or None."""
    return next(iter_json_blocks(text), None)


def strip_code_fence(text: str) -> str:
    content = text.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else ""
        content = content.rsplit("```", 1)[0]
    return content.strip()


def parse_json_loose(text: Optional[str]) -> Optional[Any]:
    """Decode provider output that should contain JSON.

    Tries the whole text, then the text with markdown fences removed, then each
    balanced block in turn. Returns None when nothing decodes.
    """
    if not text or not text.strip():
        return None

    for candidate in (text.strip(), strip_code_fence(text)):
        try:
            return json.loads(candidate)
        except ValueError:
            pass

    for block in iter_json_blocks(text):
        try:
            return json.loads(block)
        except ValueError:
            continue

    return None
