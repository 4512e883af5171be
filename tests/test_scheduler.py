import asyncio

import pytest

from core.config import AppSettings
from core.domain.execution_mode import ExecutionMode
from core.domain.models import RequestTemplate, ResolvedRequest, ResponseSnapshot
from core.interfaces.transport import HttpTransport
from core.services.host_normalizer import parse_hosts
from core.services.scheduler import ExecutionScheduler, SchedulerHooks


class RecordingTransport:
    """Answers with a per-hostname status and tracks concurrency."""

    def __init__(self, statuses=None, failures=None, delay=0.01):
        self.statuses = statuses or {}
        self.failures = failures or {}
        self.delay = delay
        self.seen: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, request: ResolvedRequest) -> ResponseSnapshot:
        self.seen.append(request.url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            for hostname, error in self.failures.items():
                if hostname in request.url:
                    raise error
            status = next((s for h, s in self.statuses.items() if h in request.url), 200)
            return ResponseSnapshot(status=status, body=f'{{"url": "{request.url}"}}')
        finally:
            self.in_flight -= 1


def _settings(**overrides) -> AppSettings:
    values = {"proxy_fallback": False, "http_timeout_seconds": 5.0}
    values.update(overrides)
    return AppSettings(**values)


def _templates():
    return [RequestTemplate(url="{host}/a"), RequestTemplate(method="POST", url="{host}/b")]


def _hosts():
    return parse_hosts("one.test,two.test,three.test")


def test_fake_transport_matches_protocol():
    assert isinstance(RecordingTransport(), HttpTransport)


@pytest.mark.anyio
async def test_both_modes_return_the_same_grouping():
    def shape(runs):
        return [
            (run.index, run.template.url, [(o.host.hostname, o.status) for o in run.outcomes])
            for run in runs
        ]

    statuses = {"two.test": 404}
    all_at_once = await ExecutionScheduler(RecordingTransport(statuses), settings=_settings()).run_matrix(
        _templates(), _hosts(), ExecutionMode.ALL_AT_ONCE
    )
    per_template = await ExecutionScheduler(RecordingTransport(statuses), settings=_settings()).run_matrix(
        _templates(), _hosts(), "per-template"
    )

    assert shape(all_at_once) == shape(per_template)
    assert shape(all_at_once)[0] == (
        0,
        "{host}/a",
        [("one.test", 200), ("two.test", 404), ("three.test", 200)],
    )


@pytest.mark.anyio
async def test_all_at_once_overlaps_every_pair():
    transport = RecordingTransport()
    await ExecutionScheduler(transport, settings=_settings()).run_matrix(
        _templates(), _hosts(), ExecutionMode.ALL_AT_ONCE
    )

    assert transport.max_in_flight == 6


@pytest.mark.anyio
async def test_per_template_runs_templates_in_sequence():
    transport = RecordingTransport()
    await ExecutionScheduler(transport, settings=_settings()).run_matrix(
        _templates(), _hosts(), ExecutionMode.PER_TEMPLATE
    )

    assert transport.max_in_flight == 3
    assert all(url.endswith("/a") for url in transport.seen[:3])
    assert all(url.endswith("/b") for url in transport.seen[3:])


@pytest.mark.anyio
async def test_mode_defaults_to_settings():
    transport = RecordingTransport()
    scheduler = ExecutionScheduler(transport, settings=_settings(execution_mode="per-template"))

    await scheduler.run_matrix(_templates(), _hosts())

    assert transport.max_in_flight == 3


@pytest.mark.anyio
async def test_transport_error_becomes_failure_outcome():
    transport = RecordingTransport(failures={"two.test": ConnectionError("connection refused")})
    run = await ExecutionScheduler(transport, settings=_settings()).run_single(
        RequestTemplate(url="{host}/x"), _hosts()
    )

    failed = run.outcomes[1]
    assert not failed.ok
    assert failed.response is None
    assert failed.error == "connection refused"
    assert failed.elapsed_ms >= 0
    assert [o.ok for o in run.outcomes] == [True, False, True]


@pytest.mark.anyio
async def test_error_statuses_are_successful_outcomes():
    transport = RecordingTransport(statuses={"one.test": 500})
    run = await ExecutionScheduler(transport, settings=_settings()).run_single(
        RequestTemplate(url="{host}/x"), _hosts()
    )

    assert run.outcomes[0].ok
    assert run.outcomes[0].status == 500


@pytest.mark.anyio
async def test_timeout_is_reported():
    transport = RecordingTransport(delay=1.0)
    run = await ExecutionScheduler(transport, settings=_settings(http_timeout_seconds=0.05)).run_single(
        RequestTemplate(url="{host}/slow"), parse_hosts("one.test")
    )

    assert run.outcomes[0].error == "Request timed out after 0.05s"


@pytest.mark.anyio
async def test_proxy_fallback_retries_once():
    primary = RecordingTransport(failures={"one.test": ConnectionError("refused")})
    proxy = RecordingTransport()
    scheduler = ExecutionScheduler(primary, settings=_settings(proxy_fallback=True), fallback_transport=proxy)

    run = await scheduler.run_single(RequestTemplate(url="{host}/x"), parse_hosts("one.test,two.test"))

    assert run.outcomes[0].ok
    assert run.outcomes[0].via_proxy
    assert not run.outcomes[1].via_proxy
    assert proxy.seen == ["http://one.test/x"]


@pytest.mark.anyio
async def test_proxy_failure_reports_both_errors():
    primary = RecordingTransport(failures={"one.test": ConnectionError("refused")})
    proxy = RecordingTransport(failures={"one.test": ConnectionError("proxy down")})
    scheduler = ExecutionScheduler(primary, settings=_settings(proxy_fallback=True), fallback_transport=proxy)

    run = await scheduler.run_single(RequestTemplate(url="{host}/x"), parse_hosts("one.test"))

    assert run.outcomes[0].error == "refused (proxy: proxy down)"


@pytest.mark.anyio
async def test_fallback_unused_when_disabled():
    primary = RecordingTransport(failures={"one.test": ConnectionError("refused")})
    proxy = RecordingTransport()
    scheduler = ExecutionScheduler(primary, settings=_settings(), fallback_transport=proxy)

    run = await scheduler.run_single(RequestTemplate(url="{host}/x"), parse_hosts("one.test"))

    assert run.outcomes[0].error == "refused"
    assert proxy.seen == []


@pytest.mark.anyio
async def test_hooks_see_every_pair_and_hook_errors_are_contained():
    calls = []

    def on_outcome(template_index, host_index, outcome):
        calls.append((template_index, host_index))
        if host_index == 0:
            raise RuntimeError("ui exploded")

    scheduler = ExecutionScheduler(
        RecordingTransport(), settings=_settings(), hooks=SchedulerHooks(outcome=on_outcome)
    )
    runs = await scheduler.run_matrix(_templates(), _hosts())

    assert sorted(calls) == [(t, h) for t in range(2) for h in range(3)]
    assert all(o.ok for run in runs for o in run.outcomes)


@pytest.mark.anyio
async def test_run_commands_skips_rejected_commands():
    scheduler = ExecutionScheduler(RecordingTransport(), settings=_settings())

    result = await scheduler.run_commands(
        ["curl {host}/a", "curl --bogus-flag http://x", "curl -X POST {host}/b"],
        _hosts(),
    )

    assert [run.index for run in result.runs] == [0, 2]
    assert [run.template.method for run in result.runs] == ["GET", "POST"]
    assert len(result.rejected) == 1
    assert result.rejected[0].index == 1
    assert "--bogus-flag" in result.rejected[0].reason


@pytest.mark.anyio
async def test_run_commands_with_nothing_valid():
    scheduler = ExecutionScheduler(RecordingTransport(), settings=_settings())

    result = await scheduler.run_commands(["", "wget x"], _hosts())

    assert result.runs == []
    assert [r.index for r in result.rejected] == [0, 1]
