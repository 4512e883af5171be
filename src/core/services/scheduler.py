"""Request matrix execution.

Fans resolved requests across hosts and templates under one of two
concurrency policies and collects exactly one `ExecutionOutcome` per
(template, host) pair. Outcomes are regrouped into fresh `TemplateRun`
objects only after the relevant concurrent group has completed; concurrent
dispatches never write to shared state.

Side effects for UI layers (progress, live tables) go through
`SchedulerHooks`, keeping printing out of the core.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from core.config import AppSettings
from core.domain.execution_mode import ExecutionMode
from core.domain.models import (
    ExecutionOutcome,
    HostSpec,
    RequestTemplate,
    ResolvedRequest,
    TemplateRun,
)
from core.interfaces.transport import HttpTransport
from core.services.command_parser import parse_command, validate_command
from core.services.placeholder import resolve

logger = logging.getLogger(__name__)


@dataclass
class SchedulerHooks:
    """Optional callbacks for UI layers.

    `outcome(template_index, host_index, outcome)` fires as each pair
    completes, in completion order.
    """

    outcome: Callable[[int, int, ExecutionOutcome], None] | None = None


@dataclass
class RejectedCommand:
    index: int
    text: str
    reason: str


@dataclass
class CommandBatchResult:
    """Output of `ExecutionScheduler.run_commands`."""

    runs: list[TemplateRun] = field(default_factory=list)
    rejected: list[RejectedCommand] = field(default_factory=list)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 3)


class ExecutionScheduler:
    """Runs request matrices against an injected transport.

    The optional `fallback_transport` is only used when
    `settings.proxy_fallback` is enabled; it is the single retry path of the
    system and is tried at most once per request.
    """

    def __init__(
        self,
        transport: HttpTransport,
        *,
        settings: AppSettings | None = None,
        fallback_transport: HttpTransport | None = None,
        hooks: SchedulerHooks | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._transport = transport
        self._fallback = fallback_transport if self._settings.proxy_fallback else None
        self._hooks = hooks or SchedulerHooks()
        self._timeout = self._settings.http_timeout_seconds

    def _describe(self, exc: BaseException) -> str:
        if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
            return f"Request timed out after {self._timeout:g}s"
        return str(exc) or exc.__class__.__name__

    async def run_one(self, request: ResolvedRequest, host: HostSpec) -> ExecutionOutcome:
        """Dispatch one request; never raises for transport problems.

        Any status code is a success outcome. Timeouts and transport errors
        become failure outcomes. Elapsed time is always recorded.
        """

        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(self._transport.send(request), timeout=self._timeout)
            return ExecutionOutcome(host=host, response=response, elapsed_ms=_elapsed_ms(start))
        except Exception as exc:
            direct_error = self._describe(exc)

        if self._fallback is None:
            return ExecutionOutcome(host=host, error=direct_error, elapsed_ms=_elapsed_ms(start))

        logger.warning("Direct request to %s failed (%s), retrying via proxy", request.url, direct_error)
        try:
            response = await asyncio.wait_for(self._fallback.send(request), timeout=self._timeout)
            return ExecutionOutcome(
                host=host,
                response=response,
                elapsed_ms=_elapsed_ms(start),
                via_proxy=True,
            )
        except Exception as exc:
            return ExecutionOutcome(
                host=host,
                error=f"{direct_error} (proxy: {self._describe(exc)})",
                elapsed_ms=_elapsed_ms(start),
            )

    async def _dispatch(
        self,
        template_index: int,
        host_index: int,
        template: RequestTemplate,
        host: HostSpec,
    ) -> ExecutionOutcome:
        outcome = await self.run_one(resolve(template, host), host)
        if self._hooks.outcome:
            try:
                self._hooks.outcome(template_index, host_index, outcome)
            except Exception:
                logger.exception("Outcome hook failed for template %d, host %d", template_index, host_index)
        return outcome

    async def _run_template(
        self,
        index: int,
        template: RequestTemplate,
        hosts: Sequence[HostSpec],
    ) -> TemplateRun:
        outcomes = await asyncio.gather(
            *(self._dispatch(index, h_idx, template, host) for h_idx, host in enumerate(hosts))
        )
        return TemplateRun(index=index, template=template, outcomes=list(outcomes))

    async def _run_indexed(
        self,
        templates: Sequence[tuple[int, RequestTemplate]],
        hosts: Sequence[HostSpec],
        mode: ExecutionMode,
    ) -> list[TemplateRun]:
        logger.debug(
            "Running %d template(s) x %d host(s) in %s mode",
            len(templates),
            len(hosts),
            mode.value,
        )

        if mode is ExecutionMode.PER_TEMPLATE:
            runs: list[TemplateRun] = []
            for index, template in templates:
                runs.append(await self._run_template(index, template, hosts))
            return runs

        flat = await asyncio.gather(
            *(
                self._dispatch(index, h_idx, template, host)
                for index, template in templates
                for h_idx, host in enumerate(hosts)
            )
        )
        width = len(hosts)
        return [
            TemplateRun(
                index=index,
                template=template,
                outcomes=list(flat[pos * width : (pos + 1) * width]),
            )
            for pos, (index, template) in enumerate(templates)
        ]

    async def run_matrix(
        self,
        templates: Iterable[RequestTemplate],
        hosts: Iterable[HostSpec],
        mode: ExecutionMode | str | None = None,
    ) -> list[TemplateRun]:
        """Execute every template against every host.

        Template and host order are preserved. Both modes return the same
        grouping; they only differ in how much the dispatches overlap.
        """

        effective = ExecutionMode(mode or self._settings.execution_mode)
        return await self._run_indexed(list(enumerate(templates)), list(hosts), effective)

    async def run_single(
        self,
        template: RequestTemplate,
        hosts: Iterable[HostSpec],
        *,
        index: int = 0,
    ) -> TemplateRun:
        """Re-run one template against the current hosts, all hosts at once."""

        return await self._run_template(index, template, list(hosts))

    async def run_commands(
        self,
        commands: Iterable[str],
        hosts: Iterable[HostSpec],
        mode: ExecutionMode | str | None = None,
    ) -> CommandBatchResult:
        """Validate, parse and run command texts.

        Invalid commands are reported in `rejected` and never stop the others.
        Run indices refer to positions in `commands`.
        """

        accepted: list[tuple[int, RequestTemplate]] = []
        rejected: list[RejectedCommand] = []
        for index, text in enumerate(commands):
            validation = validate_command(text)
            if not validation.valid:
                rejected.append(RejectedCommand(index=index, text=text, reason=validation.reason or "invalid"))
                continue
            accepted.append((index, parse_command(text)))

        effective = ExecutionMode(mode or self._settings.execution_mode)
        runs = await self._run_indexed(accepted, list(hosts), effective)
        return CommandBatchResult(runs=runs, rejected=rejected)
