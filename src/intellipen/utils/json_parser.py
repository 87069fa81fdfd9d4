"""Extract JSON payloads from free-form model replies."""

from __future__ import annotations

import json
import re

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)\n?```", re.DOTALL)


def extract_json(text: str) -> dict | list:
    """Extract the first JSON object or array from ``text``.

    Tries, in order: the whole text, the body of a fenced code block, the
    outermost ``[...]`` or ``{...}`` span (whichever opens first), and
    finally a repair of a reply truncated mid-structure.
    """
    text = (text or "").strip()

    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        pass

    fenced = _FENCE_RE.search(text)
    if fenced:
        body = fenced.group(1).strip()
        try:
            return json.loads(body)
        except json.JSONDecodeError:
            text = body

    for candidate in _outer_spans(text):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    repaired = _close_truncated(text)
    if repaired is not None:
        return repaired

    raise ValueError(f"Could not extract JSON from text: {text[:200]}...")


def _outer_spans(text: str) -> list[str]:
    """Outermost bracket/brace spans, earliest opener first.

    Stops at the first opener with no closer after it, so an array cut off
    mid-reply is left to the repair step instead of yielding one element.
    """
    openers = sorted(
        (text.find(opener), closer)
        for opener, closer in (("[", "]"), ("{", "}"))
        if opener in text
    )
    spans = []
    for start, closer in openers:
        end = text.rfind(closer)
        if end <= start:
            break
        spans.append(text[start : end + 1])
    return spans


def _close_truncated(text: str) -> dict | list | None:
    """Close brackets left open by a reply that was cut off."""
    starts = [i for i in (text.find("["), text.find("{")) if i != -1]
    if not starts:
        return None
    candidate = text[min(starts) :]

    # Cut back to the last complete object so no half-written string remains
    last_close = candidate.rfind("}")
    if last_close != -1:
        candidate = candidate[: last_close + 1]
    candidate = candidate.rstrip().rstrip(",")

    stack = []
    in_string = False
    escaped = False
    for ch in candidate:
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            in_string = not in_string
        elif not in_string and ch in "[{":
            stack.append("]" if ch == "[" else "}")
        elif not in_string and ch in "]}" and stack:
            stack.pop()
    if in_string or not stack:
        return None

    try:
        return json.loads(candidate + "".join(reversed(stack)))
    except json.JSONDecodeError:
        return None
