"""JSONPath navigation helpers for interactive scope narrowing.

- Autocomplete: suggest the next path segment from every host's payload, so a
  field present on only some hosts still shows up.
- Click-to-path: map lines of the pretty-printed text back to the JSONPath
  that produced them.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable

from core.services.diff_engine import compile_path, format_for_display, parse_payload

logger = logging.getLogger(__name__)

ROOT = "$"
WILDCARD = "[*]"

_SEGMENT_RE = re.compile(r"^([^.\[\]]+)")
_KEY_LINE_RE = re.compile(r'^"((?:[^"\\]|\\.)*)":\s*([{\[])?')
_OPENERS = ("{", "[")
_CLOSERS = ("}", "]", "},", "],")


def _join_segments(segments: list[str]) -> str:
    return ROOT + "".join(s if s == WILDCARD else f".{s}" for s in segments)


def parse_path_input(text: str) -> tuple[str, str]:
    """Split partially typed input into (evaluable prefix, segment being typed).

    `$.data[*].na` -> (`$.data[*]`, `na`); `$.data.` -> (`$.data`, ``).
    """

    trimmed = (text or "").strip()
    if not trimmed or trimmed == ROOT:
        return ROOT, ""
    if not trimmed.startswith(ROOT):
        return ROOT, trimmed

    last_is_partial = not (trimmed.endswith(".") or trimmed.endswith("[]"))
    segments: list[str] = []
    rest = trimmed[1:].removeprefix(".")
    while rest:
        if rest.startswith(WILDCARD):
            if last_is_partial and rest == WILDCARD:
                return _join_segments(segments), WILDCARD
            segments.append(WILDCARD)
            rest = rest[len(WILDCARD) :].removeprefix(".")
            continue
        match = _SEGMENT_RE.match(rest)
        if not match:
            break
        segment = match.group(1)
        rest = rest[len(segment) :].removeprefix(".")
        if last_is_partial and not rest:
            return _join_segments(segments), segment
        segments.append(segment)
    return _join_segments(segments), ""


def _values_at(data: Any, path_prefix: str) -> list[Any]:
    if not path_prefix or path_prefix == ROOT:
        return [data]
    try:
        return [datum.value for datum in compile_path(path_prefix).find(data)]
    except Exception as exc:
        logger.debug("Cannot evaluate %r for suggestions: %s", path_prefix, exc)
        return []


def _segments_of(value: Any) -> list[str]:
    if isinstance(value, list):
        return [WILDCARD]
    if isinstance(value, dict):
        return [str(k) for k in value]
    return []


def suggest_next_segments(samples: Iterable[Any], path_prefix: str, partial: str = "") -> list[str]:
    """Sorted, de-duplicated next segments under `path_prefix` across all samples."""

    partial_lower = (partial or "").lower()
    seen: set[str] = set()
    for sample in samples:
        data = parse_payload(sample)
        for node in _values_at(data, path_prefix):
            if path_prefix.endswith(WILDCARD) and isinstance(node, list):
                inspect = node
            else:
                inspect = [node]
            for item in inspect:
                for segment in _segments_of(item):
                    if segment.lower().startswith(partial_lower):
                        seen.add(segment)
    return sorted(seen)


def _decode_key(raw: str) -> str:
    try:
        return json.loads(f'"{raw}"')
    except ValueError:
        return raw


def map_display_lines_to_paths(value: Any, base_path: str = ROOT) -> dict[int, str]:
    """1-based line number -> JSONPath for the text `format_for_display` prints."""

    mapping: dict[int, str] = {}
    # stack[d] is the container path for lines indented at depth d - 1.
    stack: list[str] = [base_path]

    for number, line in enumerate(format_for_display(value).split("\n"), start=1):
        stripped = line.lstrip()
        depth = (len(line) - len(stripped)) // 2

        if stripped in _CLOSERS:
            closing = stack[depth + 1] if len(stack) > depth + 1 else stack[-1]
            if stripped.startswith("]"):
                closing = closing.removesuffix(WILDCARD) or ROOT
            mapping[number] = closing
            del stack[depth + 1 :]
            continue

        del stack[depth + 1 :]
        current = stack[-1]
        mapping[number] = current

        key_match = _KEY_LINE_RE.match(stripped)
        if key_match:
            key_path = f"{current}.{_decode_key(key_match.group(1))}"
            mapping[number] = key_path
            opener = key_match.group(2)
            if opener:
                stack.append(key_path + WILDCARD if opener == "[" else key_path)
        elif stripped in _OPENERS:
            stack.append(current + WILDCARD if stripped == "[" else current)

    return mapping
