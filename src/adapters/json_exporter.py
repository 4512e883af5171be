"""JSON export of a comparison run.

Lets other tools (CI jobs, diff viewers) consume outcomes without going
through the CLI tables.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from core.domain.models import TemplateComparison


def build_export_payload(comparisons: Iterable[TemplateComparison]) -> list[dict]:
    payload: list[dict] = []
    for comparison in comparisons:
        payload.append(
            {
                "index": comparison.run.index,
                "template": comparison.run.template.model_dump(mode="json"),
                "reference_index": comparison.reference_index,
                "outcomes": [o.model_dump(mode="json") for o in comparison.run.outcomes],
                "differences": [h.model_dump(mode="json") for h in comparison.hosts],
            }
        )
    return payload


def export_comparisons_json(*, comparisons: Iterable[TemplateComparison], output_path: Path) -> Path:
    """Write comparisons as UTF-8 JSON with stable formatting."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(build_export_payload(comparisons), ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return output_path
