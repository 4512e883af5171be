"""hostdiff CLI (Typer + Rich).

Thin shell around the core: reads hosts and commands, runs the scheduler,
prints tables and diffs. No parsing, resolution or normalization logic lives
here.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress
from rich.table import Table

from adapters.http_client import HttpxTransport, ProxyTransport, build_async_client
from adapters.json_exporter import export_comparisons_json
from cli import doctor
from cli.ui_components import (
    build_diff_panel,
    build_outcomes_table,
    build_rejected_table,
    describe_difference,
    print_banner,
)
from core.config import AppSettings
from core.domain.execution_mode import ExecutionMode
from core.domain.models import ComparisonOptions, HostSpec, TemplateRun
from core.services.command_parser import (
    auto_detect_placeholder,
    has_placeholder,
    parse_command,
    split_command_text,
    validate_command,
)
from core.services.comparison import compare_run, compare_runs, view_for_host
from core.services.host_normalizer import parse_hosts, validate_host
from core.services.path_navigator import parse_path_input, suggest_next_segments
from core.services.scheduler import CommandBatchResult, ExecutionScheduler, SchedulerHooks

app = typer.Typer(
    no_args_is_help=True,
    help="Send the same cURL-style requests to several hosts and compare the responses.",
)
app.add_typer(doctor.app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Hide the banner."),
) -> None:
    settings = AppSettings()
    _configure_logging("DEBUG" if verbose else settings.log_level)
    if not quiet:
        print_banner(_console)


def _load_commands(commands: list[str] | None, file: Path | None) -> list[str]:
    texts: list[str] = []
    for text in commands or []:
        texts.extend(split_command_text(text))
    if file is not None:
        if not file.exists():
            raise typer.BadParameter(f"command file not found: {file}")
        texts.extend(split_command_text(file.read_text(encoding="utf-8")))
    if not texts:
        raise typer.BadParameter("provide at least one command (argument or --file)")
    return texts


def _load_hosts(hosts: str) -> list[HostSpec]:
    for segment in (s for s in hosts.split(",") if s.strip()):
        validation = validate_host(segment)
        if not validation.valid:
            raise typer.BadParameter(f"{segment.strip()!r}: {validation.reason}")
    specs = parse_hosts(hosts)
    if not specs:
        raise typer.BadParameter("provide at least one host")
    return specs


def _apply_placeholder_suggestions(texts: list[str], accept: bool) -> list[str]:
    out: list[str] = []
    for text in texts:
        if has_placeholder(text):
            out.append(text)
            continue
        suggestion = auto_detect_placeholder(text)
        if suggestion == text:
            out.append(text)
            continue
        if accept:
            _console.print(f"[yellow]Using placeholder:[/yellow] {suggestion}")
            out.append(suggestion)
        else:
            _console.print(
                f"[yellow]No {{host}} placeholder in:[/yellow] {text}\n"
                f"  suggestion: {suggestion} (pass --auto-placeholder to accept)"
            )
            out.append(text)
    return out


def _settings_with(proxy_fallback: bool) -> AppSettings:
    settings = AppSettings()
    if proxy_fallback:
        settings = settings.model_copy(update={"proxy_fallback": proxy_fallback})
    return settings


async def _execute(
    *,
    settings: AppSettings,
    texts: list[str],
    hosts: list[HostSpec],
    mode: ExecutionMode,
) -> CommandBatchResult:
    accepted = sum(1 for t in texts if validate_command(t).valid)
    with Progress(console=_console, transient=True) as progress:
        task = progress.add_task("Running requests", total=accepted * len(hosts))
        hooks = SchedulerHooks(outcome=lambda _t, _h, _o: progress.advance(task))
        async with build_async_client(settings) as client:
            scheduler = ExecutionScheduler(
                HttpxTransport(client, settings=settings),
                settings=settings,
                fallback_transport=ProxyTransport(client, settings=settings),
                hooks=hooks,
            )
            return await scheduler.run_commands(texts, hosts, mode)


@app.command(name="run")
def run_command(
    commands: list[str] | None = typer.Argument(None, help="cURL commands (use {host} as placeholder)."),
    hosts: str = typer.Option(..., "--hosts", help="Comma-separated hosts; the first is the reference."),
    file: Path | None = typer.Option(None, "--file", "-f", help="File with one command per line."),
    mode: ExecutionMode | None = typer.Option(None, "--mode", help="all-at-once or per-template."),
    reference: int = typer.Option(1, "--reference", min=1, help="1-based reference host."),
    auto_placeholder: bool = typer.Option(False, "--auto-placeholder", help="Accept {host} suggestions."),
    proxy_fallback: bool = typer.Option(
        False, "--proxy-fallback", help="Retry failures once via the local proxy."
    ),
    export: Path | None = typer.Option(None, "--export", help="Write results as JSON."),
) -> None:
    """Run every command against every host and summarize the differences."""

    settings = _settings_with(proxy_fallback)
    host_specs = _load_hosts(hosts)
    texts = _apply_placeholder_suggestions(_load_commands(commands, file), auto_placeholder)

    result = asyncio.run(
        _execute(settings=settings, texts=texts, hosts=host_specs, mode=mode or settings.execution_mode)
    )

    if result.rejected:
        _console.print(build_rejected_table(result.rejected))

    comparisons = compare_runs(result.runs, reference_index=reference - 1)
    for comparison in comparisons:
        _console.print(build_outcomes_table(comparison))

    if export is not None:
        path = export_comparisons_json(comparisons=comparisons, output_path=export)
        _console.print(f"[green]Exported:[/green] {path}")

    if not result.runs:
        raise typer.Exit(code=1)


@app.command()
def validate(
    commands: list[str] | None = typer.Argument(None, help="cURL commands to check."),
    file: Path | None = typer.Option(None, "--file", "-f", help="File with one command per line."),
) -> None:
    """Check commands without sending anything."""

    texts = _load_commands(commands, file)
    table = Table(title="Validation", title_justify="left")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Valid", no_wrap=True)
    table.add_column("Method / URL", style="cyan")
    table.add_column("Notes", style="yellow")

    failures = 0
    for position, text in enumerate(texts, start=1):
        validation = validate_command(text)
        template = parse_command(text)
        notes = validation.reason or ""
        if validation.valid and not has_placeholder(text):
            suggestion = auto_detect_placeholder(text)
            notes = f"suggestion: {suggestion}" if suggestion != text else "no {host} placeholder"
        failures += 0 if validation.valid else 1
        table.add_row(
            str(position),
            "[green]yes[/green]" if validation.valid else "[red]no[/red]",
            f"{template.method} {template.url}",
            notes,
        )
    _console.print(table)
    if failures:
        raise typer.Exit(code=1)


async def _run_one_template(settings: AppSettings, text: str, hosts: list[HostSpec]) -> TemplateRun:
    async with build_async_client(settings) as client:
        scheduler = ExecutionScheduler(
            HttpxTransport(client, settings=settings),
            settings=settings,
            fallback_transport=ProxyTransport(client, settings=settings),
        )
        return await scheduler.run_single(parse_command(text), hosts)


def _single_command(command: str) -> str:
    texts = split_command_text(command)
    if len(texts) != 1:
        raise typer.BadParameter("expected exactly one command")
    validation = validate_command(texts[0])
    if not validation.valid:
        raise typer.BadParameter(validation.reason or "invalid command")
    return texts[0]


@app.command()
def diff(
    command: str = typer.Argument(..., help="One cURL command."),
    hosts: str = typer.Option(..., "--hosts", help="Comma-separated hosts."),
    host: int = typer.Option(2, "--host", min=1, help="1-based host to compare."),
    reference: int = typer.Option(1, "--reference", min=1, help="1-based reference host."),
    path: str = typer.Option("", "--path", help="JSONPath scope, e.g. $.data.items[*]"),
    ignore_timestamps: bool = typer.Option(False, "--ignore-timestamps"),
    ignore_ids: bool = typer.Option(False, "--ignore-ids"),
    ignore_whitespace: bool = typer.Option(False, "--ignore-whitespace"),
    case_insensitive: bool = typer.Option(False, "--case-insensitive"),
    ignore_array_order: bool = typer.Option(False, "--ignore-array-order"),
    ignore_path: list[str] | None = typer.Option(None, "--ignore-path", help="JSONPath to drop (repeatable)."),
    sort_keys: bool = typer.Option(False, "--sort-keys", help="Alphabetical keys."),
    common_first: bool = typer.Option(False, "--common-first", help="Shared keys first."),
    proxy_fallback: bool = typer.Option(False, "--proxy-fallback"),
) -> None:
    """Show a normalized diff between the reference host and one other host."""

    settings = _settings_with(proxy_fallback)
    host_specs = _load_hosts(hosts)
    if host > len(host_specs) or reference > len(host_specs):
        raise typer.BadParameter(f"only {len(host_specs)} host(s) given")

    text = _single_command(command)
    run = asyncio.run(_run_one_template(settings, text, host_specs))
    comparison = compare_run(run, reference_index=reference - 1)

    options = ComparisonOptions(
        ignore_timestamps=ignore_timestamps,
        ignore_ids=ignore_ids,
        ignore_whitespace=ignore_whitespace,
        case_insensitive=case_insensitive,
        ignore_array_order=ignore_array_order,
        custom_ignore_paths=list(ignore_path or []),
    )
    view = view_for_host(
        comparison,
        host - 1,
        options,
        path_expression=path,
        alphabetical=sort_keys,
        common_first=common_first,
    )

    if view.scope_error:
        _console.print(f"[red]Path error:[/red] {view.scope_error} (showing unscoped responses)")
    for difference in view.differences:
        _console.print(f"[yellow]•[/yellow] {describe_difference(difference)}")
    _console.print(
        build_diff_panel(
            view,
            left_label=host_specs[reference - 1].base_url,
            right_label=host_specs[host - 1].base_url,
        )
    )


@app.command()
def paths(
    command: str = typer.Argument(..., help="One cURL command."),
    hosts: str = typer.Option(..., "--hosts", help="Comma-separated hosts."),
    prefix: str = typer.Option("$", "--prefix", help="Partially typed JSONPath."),
) -> None:
    """Suggest the next JSONPath segments from every host's response."""

    settings = AppSettings()
    host_specs = _load_hosts(hosts)
    run = asyncio.run(_run_one_template(settings, _single_command(command), host_specs))

    path_prefix, partial = parse_path_input(prefix)
    samples = [o.response.body for o in run.outcomes if o.response is not None]
    suggestions = suggest_next_segments(samples, path_prefix, partial)
    if not suggestions:
        _console.print(f"[yellow]No segments under[/yellow] {path_prefix}")
        return
    for segment in suggestions:
        joined = f"{path_prefix}{segment}" if segment == "[*]" else f"{path_prefix}.{segment}"
        _console.print(joined)


def run() -> None:
    app()
