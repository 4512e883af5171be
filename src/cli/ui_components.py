"""Rich UI components for the CLI.

Keeps table/panel layout out of the command functions so several commands
can share them.
"""

from __future__ import annotations

import difflib
from typing import Iterable

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import ComparisonView, HeadlineDifference, TemplateComparison
from core.services.scheduler import RejectedCommand


def print_banner(console: Console) -> None:
    title = Text("hostdiff", style="bold cyan")
    subtitle = Text("Same request • Many hosts • Normalized diffs", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def describe_difference(diff: HeadlineDifference) -> str:
    if diff.path == "elapsed_ms":
        return f"time {diff.reference_value:.0f}ms → {diff.comparison_value:.0f}ms"
    return f"{diff.path} {diff.reference_value} → {diff.comparison_value}"


def build_outcomes_table(comparison: TemplateComparison) -> Table:
    """One row per host for a template run."""

    run = comparison.run
    title = f"#{run.index + 1} {run.template.method} {run.template.url}"
    table = Table(title=title, title_justify="left")
    table.add_column("Host", style="cyan", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Time", style="magenta", justify="right")
    table.add_column("Differences", style="yellow")
    table.add_column("Error", style="red")

    for outcome, host_cmp in zip(run.outcomes, comparison.hosts):
        host_label = outcome.host.base_url + (" (ref)" if host_cmp.is_reference else "")
        if outcome.response is not None:
            status = f"{outcome.response.status} {outcome.response.reason}".strip()
            if outcome.via_proxy:
                status += " [dim](proxy)[/dim]"
        else:
            status = "FAILED"
        table.add_row(
            host_label,
            status,
            f"{outcome.elapsed_ms:.0f}ms",
            ", ".join(describe_difference(d) for d in host_cmp.differences),
            outcome.error or "",
        )
    return table


def build_rejected_table(rejected: Iterable[RejectedCommand]) -> Table:
    table = Table(title="Rejected commands", title_justify="left")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Command", style="white")
    table.add_column("Reason", style="red")
    for item in rejected:
        table.add_row(str(item.index + 1), item.text, item.reason)
    return table


def build_diff_panel(view: ComparisonView, *, left_label: str, right_label: str) -> Panel:
    """Unified diff of the two prepared text blocks."""

    body = Text()
    lines = difflib.unified_diff(
        view.left_text.splitlines(),
        view.right_text.splitlines(),
        fromfile=left_label,
        tofile=right_label,
        lineterm="",
    )
    has_changes = False
    for line in lines:
        has_changes = True
        if line.startswith(("+++", "---")):
            style = "bold"
        elif line.startswith("+"):
            style = "green"
        elif line.startswith("-"):
            style = "red"
        elif line.startswith("@@"):
            style = "cyan"
        else:
            style = None
        body.append(line + "\n", style=style)
    if not has_changes:
        body.append("No differences after normalization.", style="green")

    return Panel(body, title=Text("Diff", style="bold yellow"), border_style="yellow")
