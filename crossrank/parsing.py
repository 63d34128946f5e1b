"""
parsing.py - Decoding untrusted model output into JSON values

Model replies are supposed to be bare JSON but routinely arrive wrapped in
prose or markdown fences, or cut off mid-array. Nothing here raises on bad
input except `parse_json_object`, which backs the arbiter call where there is
no fallback.
"""

import json
import math

from .errors import MalformedOutput

_CLOSERS = {"[": "]", "{": "}"}


def find_balanced(text: str, open_char: str = "[") -> str | None:
    """Return the first balanced span starting at `open_char`, or None.

    Brackets inside JSON string literals (including escaped quotes) do not
    count towards the nesting depth.
    """
    close_char = _CLOSERS[open_char]
    start = text.find(open_char)
    while start != -1:
        depth = 0
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
            elif ch == open_char:
                depth += 1
            elif ch == close_char:
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # Unbalanced from this opener (truncated reply); try a later one
        start = text.find(open_char, start + 1)
    return None


def parse_json_array(text: str) -> list | None:
    """Strict parse first, then the first balanced [...] span. None if neither is an array."""
    if not text:
        return None
    text = text.strip()

    try:
        data = json.loads(text)
        if isinstance(data, list):
            return data
    except (ValueError, RecursionError):
        pass

    span = find_balanced(text, "[")
    if span is None:
        return None
    try:
        data = json.loads(span)
    except (ValueError, RecursionError):
        return None
    return data if isinstance(data, list) else None


def parse_json_object(text: str, model_id: str | None = None) -> dict:
    """Strict parse of the trimmed reply as a JSON object."""
    raw = text or ""
    try:
        data = json.loads(raw.strip())
    except json.JSONDecodeError as e:
        raise MalformedOutput(f"Reply is not valid JSON: {e.msg}", model_id=model_id, raw=raw) from e
    except (ValueError, RecursionError) as e:
        # Oversized integer literals or pathological nesting
        raise MalformedOutput(f"Reply could not be decoded: {type(e).__name__}", model_id=model_id, raw=raw) from e
    if not isinstance(data, dict):
        raise MalformedOutput(f"Expected a JSON object, got {type(data).__name__}",
                              model_id=model_id, raw=raw)
    return data


def coerce_index(value, size: int) -> int | None:
    """Resolve a position into a sequence of `size` items, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    elif isinstance(value, str):
        value = value.strip()
        if not value.isdecimal():
            return None
        try:
            value = int(value)
        except ValueError:
            return None
    elif not isinstance(value, int):
        return None
    return value if 0 <= value < size else None


def coerce_score(value, low: float = 1.0, high: float = 10.0) -> float | None:
    """Finite number within [low, high], or None."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        score = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(score) or not low <= score <= high:
        return None
    return score
