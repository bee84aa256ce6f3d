"""Best-effort extraction of JSON embedded in model prose.

Providers are asked for "JSON only" but routinely wrap the payload in code
fences or explanatory sentences. ``extract_json`` scans the text for the first
balanced ``{...}`` (or ``[...]``) span that parses as JSON and raises
``ParseFailure`` when there is none.
"""
from __future__ import annotations

import json
from typing import Any, Literal

from deepdive.errors import ParseFailure

JsonKind = Literal["object", "array"]

_BRACKETS = {"object": ("{", "}"), "array": ("[", "]")}


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if not text.startswith("```"):
        return text
    parts = text.split("```")
    if len(parts) >= 2:
        text = parts[1]
    if text.startswith("json"):
        text = text[4:]
    return text.strip()


def _balanced_end(text: str, start: int, open_char: str, close_char: str) -> int:
    """Index of the bracket closing ``text[start]``, or -1 when unbalanced."""
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
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
        elif ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return idx
    return -1


def iter_json_spans(text: str, kind: JsonKind = "object"):
    open_char, close_char = _BRACKETS[kind]
    pos = text.find(open_char)
    while pos >= 0:
        end = _balanced_end(text, pos, open_char, close_char)
        if end > pos:
            yield text[pos : end + 1]
        pos = text.find(open_char, pos + 1)


def extract_json(raw_text: str | None, kind: JsonKind = "object") -> Any:
    if not raw_text or not raw_text.strip():
        raise ParseFailure("empty provider response")

    expected = dict if kind == "object" else list
    for candidate_text in (strip_code_fences(raw_text), raw_text):
        for span in iter_json_spans(candidate_text, kind):
            try:
                parsed = json.loads(span)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, expected):
                return parsed

    raise ParseFailure(f"no JSON {kind} found in provider response")
