"""Post-execution comparison assembly.

Pairs every host of a `TemplateRun` with the reference host and attaches the
headline differences. The heavy lifting (text normalization) stays in
`diff_engine.prepare_comparison`, which callers invoke per chosen pair.
"""

from __future__ import annotations

from typing import Iterable

from core.domain.models import (
    ComparisonOptions,
    ComparisonView,
    HostComparison,
    TemplateComparison,
    TemplateRun,
)
from core.services.diff_engine import prepare_comparison, summarize_headline


def compare_run(run: TemplateRun, reference_index: int = 0) -> TemplateComparison:
    """Headline-compare each host of `run` against the reference host.

    An out-of-range reference index falls back to the first host.
    """

    if not 0 <= reference_index < len(run.outcomes):
        reference_index = 0
    if not run.outcomes:
        return TemplateComparison(run=run, reference_index=0, hosts=[])

    reference = run.outcomes[reference_index]
    hosts = [
        HostComparison(
            host=outcome.host,
            is_reference=position == reference_index,
            differences=[] if position == reference_index else summarize_headline(reference, outcome),
        )
        for position, outcome in enumerate(run.outcomes)
    ]
    return TemplateComparison(run=run, reference_index=reference_index, hosts=hosts)


def compare_runs(runs: Iterable[TemplateRun], reference_index: int = 0) -> list[TemplateComparison]:
    return [compare_run(run, reference_index) for run in runs]


def view_for_host(
    comparison: TemplateComparison,
    host_index: int,
    options: ComparisonOptions | None = None,
    *,
    path_expression: str = "",
    alphabetical: bool = False,
    common_first: bool = False,
) -> ComparisonView:
    """Prepared text blocks for reference vs. `host_index` of one template."""

    reference = comparison.reference
    if reference is None:
        return ComparisonView()
    return prepare_comparison(
        reference,
        comparison.run.outcomes[host_index],
        options,
        path_expression=path_expression,
        alphabetical=alphabetical,
        common_first=common_first,
    )
