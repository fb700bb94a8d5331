"""
Recovering JSON from model text.

Models are asked for bare JSON but routinely wrap it in prose, markdown fences,
or double-escape whitespace. Every structured call site goes through
parse_structured(), which applies one contract:

  1. direct json.loads (strict=False) of the trimmed text, accepted only if it
     is the expected container type (dict or list). Well-formed JSON is never
     rewritten, so its string values come back exactly.
  2. scan for balanced {...} / [...] regions in order of appearance (ignoring
     brackets inside JSON strings) and return the first one that decodes to
     the expected type.
  3. recovery: normalize_model_text() drops non-whitespace control characters
     and turns literal \\n, \\t, \\r escape sequences (single or double-escaped)
     into the whitespace they denote, then steps 1 and 2 are retried on the
     normalized text.

Anything else raises ParseError with a bounded excerpt. Callers decide whether
that is fatal (policy extraction, evaluation) or degradable (summaries).
"""
from __future__ import annotations

import json
import re
from typing import Any, Iterator

from adcheck.core.errors import ParseError


_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_ESCAPED_WHITESPACE = re.compile(r"(?<!\\)\\{1,2}([ntr])")
_WHITESPACE = {"n": "\n", "t": "\t", "r": "\r"}
_PAIRS: dict[type, tuple[str, str]] = {dict: ("{", "}"), list: ("[", "]")}

# Stage 2 gives up after this many candidate regions
_MAX_CANDIDATES = 25

_MISSING = object()


def normalize_model_text(text: str) -> str:
    """
    Recovery-only: a genuine backslash followed by n/t/r inside a string value
    is rewritten too, so this never runs on text that already parses.
    """
    cleaned = _CONTROL_CHARS.sub("", text)
    cleaned = _ESCAPED_WHITESPACE.sub(lambda m: _WHITESPACE[m.group(1)], cleaned)
    return cleaned.strip()


def _find_close(text: str, start: int, open_char: str, close_char: str) -> int:
    depth = 0
    in_string = False
    escape_next = False

    for i in range(start, len(text)):
        char = text[i]
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return i
    return -1


def iter_balanced_regions(text: str, open_char: str, close_char: str) -> Iterator[str]:
    """
    Yield balanced open_char...close_char substrings in order of their opening position.
    """
    start = text.find(open_char)
    while start != -1:
        end = _find_close(text, start, open_char, close_char)
        if end != -1:
            yield text[start:end + 1]
        start = text.find(open_char, start + 1)


def _loads(candidate: str) -> Any:
    try:
        return json.loads(candidate, strict=False)
    except json.JSONDecodeError:
        return _MISSING


def _first_match(text: str, expect: type) -> Any:
    value = _loads(text)
    if isinstance(value, expect):
        return value

    open_char, close_char = _PAIRS[expect]
    for attempt, region in enumerate(iter_balanced_regions(text, open_char, close_char)):
        if attempt >= _MAX_CANDIDATES:
            break
        value = _loads(region)
        if isinstance(value, expect):
            return value
    return _MISSING


def parse_structured(text: str, *, expect: type = dict, excerpt_chars: int = 500) -> Any:
    if expect not in _PAIRS:
        raise TypeError(f"expect must be dict or list, got {expect!r}")
    if not isinstance(text, str) or not text.strip():
        raise ParseError("model response is empty")

    raw = text.strip()
    value = _first_match(raw, expect)
    if value is not _MISSING:
        return value

    cleaned = normalize_model_text(raw)
    if cleaned != raw:
        value = _first_match(cleaned, expect)
        if value is not _MISSING:
            return value

    kind = "object" if expect is dict else "array"
    raise ParseError(
        f"no valid JSON {kind} found in model response",
        excerpt=cleaned,
        excerpt_chars=excerpt_chars,
    )
