"""Execution modes for the request matrix.

Lives in the domain layer so that configuration, the scheduler and the CLI
share one definition without importing each other.
"""

from __future__ import annotations

from enum import Enum


class ExecutionMode(str, Enum):
    """How the scheduler overlaps (template, host) dispatches."""

    ALL_AT_ONCE = "all-at-once"
    PER_TEMPLATE = "per-template"

    @classmethod
    def default(cls) -> "ExecutionMode":
        return cls.ALL_AT_ONCE

    def label(self) -> str:
        """Human readable label for tables and logging."""

        if self is ExecutionMode.PER_TEMPLATE:
            return "Per template (hosts in parallel, templates in sequence)"
        return "All at once (every pair in parallel)"
