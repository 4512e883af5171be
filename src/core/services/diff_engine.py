"""Diff preprocessing.

Turns two response payloads into comparably shaped text blocks:
- pretty-printing with stable indentation (optionally alphabetical keys),
- common-keys-first alignment,
- JSONPath scoping,
- ignore rules (timestamps, ids, whitespace, case, array order, custom paths),
- a headline summary (status / elapsed time).

Everything here is synchronous and side-effect free: inputs are deep-copied
before any transform, so the same payload can feed several comparisons.
"""

from __future__ import annotations

import copy
import json
import logging
from functools import lru_cache
from typing import Any, Callable

from jsonpath_ng.ext import parse as parse_jsonpath
from jsonpath_ng.jsonpath import Fields, Index, JSONPath

from core.domain.models import (
    ComparisonOptions,
    ComparisonView,
    ExecutionOutcome,
    HeadlineDifference,
    ScopeResult,
)

logger = logging.getLogger(__name__)

# Elapsed-time divergence (ms) below which differences are treated as jitter.
RESPONSE_TIME_THRESHOLD_MS = 500
NO_MATCHES_MESSAGE = "No matches found"
DISPLAY_INDENT = 2

_TIMESTAMP_ALIASES = frozenset(
    {
        "created",
        "updated",
        "modified",
        "createdat",
        "updatedat",
        "deletedat",
        "created_at",
        "updated_at",
        "deleted_at",
        "lastmodified",
        "last_modified",
        "ts",
        "expires",
        "expiry",
    }
)
_ID_ALIASES = frozenset({"id", "_id", "uuid", "guid"})

_NOT_JSON = object()


def _try_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return _NOT_JSON


def parse_payload(raw: Any) -> Any:
    """Decode textual JSON; anything else comes back unchanged."""

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        parsed = _try_json(raw)
        return raw if parsed is _NOT_JSON else parsed
    return raw


def _dump(value: Any) -> str:
    return json.dumps(value, indent=DISPLAY_INDENT, ensure_ascii=False, default=str)


def sort_keys_deep(value: Any) -> Any:
    """Sort object keys at every level; array order is preserved."""

    if isinstance(value, list):
        return [sort_keys_deep(item) for item in value]
    if isinstance(value, dict):
        return {key: sort_keys_deep(value[key]) for key in sorted(value)}
    return value


def format_for_display(raw: Any, alphabetical: bool = False) -> str:
    """Pretty-print structured payloads; return other text untouched."""

    if raw is None:
        return ""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        parsed = _try_json(raw)
        if parsed is _NOT_JSON:
            return raw
        raw = parsed
    return _dump(sort_keys_deep(raw) if alphabetical else raw)


def sort_common_keys_first(left: Any, right: Any) -> tuple[Any, Any]:
    """Order both objects as: shared keys (sorted, recursed), then own keys (sorted).

    Non-object values on either side pass through untouched.
    """

    if not isinstance(left, dict) or not isinstance(right, dict):
        return left, right

    common = sorted(k for k in left if k in right)
    left_only = sorted(k for k in left if k not in right)
    right_only = sorted(k for k in right if k not in left)

    sorted_left: dict[str, Any] = {}
    sorted_right: dict[str, Any] = {}
    for key in common:
        sorted_left[key], sorted_right[key] = sort_common_keys_first(left[key], right[key])
    for key in left_only:
        sorted_left[key] = left[key]
    for key in right_only:
        sorted_right[key] = right[key]
    return sorted_left, sorted_right


@lru_cache(maxsize=256)
def compile_path(expression: str) -> JSONPath:
    """Compile a JSONPath expression (extended syntax, filters included)."""

    return parse_jsonpath(expression)


def scope_by_path(value: Any, expression: str) -> ScopeResult:
    """Narrow `value` to the nodes selected by a JSONPath expression.

    Empty expression: no-op. One match: the bare value. Several: a list.
    Bad syntax, evaluation failures and zero matches come back as distinct
    errors; nothing is raised.
    """

    if not expression or not expression.strip():
        return ScopeResult(value=value)
    try:
        compiled = compile_path(expression.strip())
    except Exception as exc:
        return ScopeResult(error=f"Invalid path expression: {exc}")
    try:
        matches = [datum.value for datum in compiled.find(value)]
    except Exception as exc:
        # ext filters compare node values directly and raise on mixed types
        return ScopeResult(error=f"Path evaluation failed: {exc}")

    if not matches:
        return ScopeResult(error=NO_MATCHES_MESSAGE)
    return ScopeResult(value=matches[0] if len(matches) == 1 else matches)


def _drop_keys(value: Any, predicate: Callable[[str], bool]) -> Any:
    if isinstance(value, dict):
        return {k: _drop_keys(v, predicate) for k, v in value.items() if not predicate(k)}
    if isinstance(value, list):
        return [_drop_keys(item, predicate) for item in value]
    return value


def _is_timestamp_key(key: str) -> bool:
    lowered = key.lower()
    return "time" in lowered or "date" in lowered or lowered in _TIMESTAMP_ALIASES


def _is_id_key(key: str) -> bool:
    return key.lower() in _ID_ALIASES


def _map_strings(value: Any, fn: Callable[[str], str], *, keys: bool = False) -> Any:
    if isinstance(value, str):
        return fn(value)
    if isinstance(value, dict):
        return {
            (fn(k) if keys else k): _map_strings(v, fn, keys=keys) for k, v in value.items()
        }
    if isinstance(value, list):
        return [_map_strings(item, fn, keys=keys) for item in value]
    return value


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


def _sort_arrays(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _sort_arrays(v) for k, v in value.items()}
    if isinstance(value, list):
        return sorted((_sort_arrays(item) for item in value), key=_canonical)
    return value


def _index_of(path: Index) -> int | None:
    # Older jsonpath-ng exposes `index`, newer ones `indices`.
    index = getattr(path, "index", None)
    if isinstance(index, int):
        return index
    indices = getattr(path, "indices", None) or ()
    return indices[0] if len(indices) == 1 else None


def _remove_path(value: Any, expression: str) -> None:
    """Delete every node matched by `expression` from `value`, in place."""

    try:
        matches = compile_path(expression.strip()).find(value)
    except Exception as exc:
        logger.debug("Skipping ignore path %r: %s", expression, exc)
        return

    list_removals: list[tuple[list, int]] = []
    for datum in matches:
        if datum.context is None:
            continue
        container = datum.context.value
        if isinstance(datum.path, Fields) and isinstance(container, dict):
            for name in datum.path.fields:
                container.pop(name, None)
        elif isinstance(datum.path, Index) and isinstance(container, list):
            index = _index_of(datum.path)
            if index is None:
                continue
            list_removals.append((container, index if index >= 0 else index + len(container)))

    # Highest index first so earlier deletions do not shift later ones.
    seen: set[tuple[int, int]] = set()
    for container, index in sorted(list_removals, key=lambda item: item[1], reverse=True):
        marker = (id(container), index)
        if marker in seen or not 0 <= index < len(container):
            continue
        seen.add(marker)
        del container[index]


def apply_ignore_rules(value: Any, options: ComparisonOptions) -> Any:
    """Return a transformed deep copy of `value`.

    Fixed order: timestamps, ids, whitespace, case, array order, custom paths.
    With every toggle off the result is deep-equal to the input.
    """

    result = copy.deepcopy(value)
    if options.ignore_timestamps:
        result = _drop_keys(result, _is_timestamp_key)
    if options.ignore_ids:
        result = _drop_keys(result, _is_id_key)
    if options.ignore_whitespace:
        result = _map_strings(result, lambda s: " ".join(s.split()))
    if options.case_insensitive:
        result = _map_strings(result, str.lower, keys=True)
    if options.ignore_array_order:
        result = _sort_arrays(result)
    for expression in options.custom_ignore_paths:
        if not expression or not expression.strip():
            continue
        _remove_path(result, expression)
        if options.case_insensitive and expression.lower() != expression:
            _remove_path(result, expression.lower())
    return result


def summarize_headline(
    reference: ExecutionOutcome,
    comparison: ExecutionOutcome,
) -> list[HeadlineDifference]:
    """Status mismatch always; elapsed time only past the jitter threshold."""

    differences: list[HeadlineDifference] = []
    if reference.status != comparison.status:
        differences.append(
            HeadlineDifference(
                path="status",
                reference_value=reference.status,
                comparison_value=comparison.status,
            )
        )
    if abs(reference.elapsed_ms - comparison.elapsed_ms) > RESPONSE_TIME_THRESHOLD_MS:
        differences.append(
            HeadlineDifference(
                path="elapsed_ms",
                reference_value=reference.elapsed_ms,
                comparison_value=comparison.elapsed_ms,
            )
        )
    return differences


def _outcome_payload(outcome: ExecutionOutcome) -> tuple[Any, bool]:
    """(value, structured) for one side of a comparison."""

    if outcome.response is None:
        return f"Error: {outcome.error}", False
    parsed = _try_json(outcome.response.body)
    if parsed is _NOT_JSON:
        return outcome.response.body, False
    return parsed, True


def _render(value: Any, structured: bool, alphabetical: bool) -> str:
    if value is None:
        return ""
    if not structured and isinstance(value, str):
        return value
    return _dump(sort_keys_deep(value) if alphabetical else value)


def prepare_comparison(
    reference: ExecutionOutcome,
    comparison: ExecutionOutcome,
    options: ComparisonOptions | None = None,
    *,
    path_expression: str = "",
    alphabetical: bool = False,
    common_first: bool = False,
) -> ComparisonView:
    """Build the two text blocks and headline list for one host pair.

    Pipeline: parse, scope, ignore rules, key ordering, pretty-print.
    A scope failure shared by both sides is reported in `scope_error` and the
    unscoped payloads are rendered; a path missing on one side only renders
    that side empty.
    """

    options = options or ComparisonOptions()
    left, left_structured = _outcome_payload(reference)
    right, right_structured = _outcome_payload(comparison)

    scope_error: str | None = None
    if path_expression and path_expression.strip():
        no_match = ScopeResult(error=NO_MATCHES_MESSAGE)
        left_scope = scope_by_path(left, path_expression) if left_structured else no_match
        right_scope = scope_by_path(right, path_expression) if right_structured else no_match
        if left_scope.ok or right_scope.ok:
            left = left_scope.value if left_scope.ok else None
            right = right_scope.value if right_scope.ok else None
            left_structured = right_structured = True
        else:
            scope_error = left_scope.error if left_structured else right_scope.error

    left = apply_ignore_rules(left, options)
    right = apply_ignore_rules(right, options)

    if common_first:
        left, right = sort_common_keys_first(left, right)
        alphabetical = False

    return ComparisonView(
        left_text=_render(left, left_structured, alphabetical),
        right_text=_render(right, right_structured, alphabetical),
        differences=summarize_headline(reference, comparison),
        scope_error=scope_error,
    )
