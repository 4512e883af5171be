"""Domain models (Pydantic v2).

These models describe *what* a host, a request template and an outcome are,
not *how* they are fetched. The domain knows nothing about httpx or the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict


class HostSpec(BaseModel):
    """A normalized host entry.

    Immutable: editing a host means parsing the new text into a new instance.
    """

    model_config = ConfigDict(frozen=True)

    original: str = Field(
        ...,
        description="Trimmed text as typed by the user.",
    )
    base_url: str = Field(
        ...,
        min_length=1,
        description="Scheme + authority + optional path, no trailing slash unless root.",
    )
    hostname: str = Field(
        ...,
        description="Bare hostname (no scheme, port or path).",
    )


class RequestTemplate(BaseModel):
    """Structured request extracted from a command, independent of any host."""

    method: str = Field(
        default="GET",
        min_length=1,
        description="Upper-cased HTTP method.",
    )
    url: str = Field(
        default="",
        description="Target URL; may contain the {host} placeholder.",
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Header map, case-sensitive keys, last write wins.",
    )
    body: str | None = Field(
        default=None,
        description="Raw request body, if any.",
    )
    source: str = Field(
        default="",
        description="Command text the template was parsed from.",
    )


class ResolvedRequest(BaseModel):
    """A template with its placeholder substituted for one concrete host."""

    method: str
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None


class ResponseSnapshot(BaseModel):
    """What the transport handed back for a completed exchange."""

    status: int = Field(..., ge=0)
    reason: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""


class ExecutionOutcome(BaseModel):
    """Terminal result of one (template, host) dispatch.

    Exactly one of `response` / `error` is set.
    """

    host: HostSpec
    response: ResponseSnapshot | None = None
    error: str | None = None
    elapsed_ms: float = Field(default=0.0, ge=0.0)
    via_proxy: bool = Field(
        default=False,
        description="True when the response came through the proxy fallback.",
    )

    @model_validator(mode="after")
    def _exactly_one_result(self) -> "ExecutionOutcome":
        if (self.response is None) == (self.error is None):
            raise ValueError("an outcome carries either a response or an error")
        return self

    @property
    def ok(self) -> bool:
        return self.response is not None

    @property
    def status(self) -> int | None:
        return self.response.status if self.response is not None else None


class TemplateRun(BaseModel):
    """All outcomes of one template, in host order."""

    index: int = Field(..., ge=0)
    template: RequestTemplate
    outcomes: list[ExecutionOutcome] = Field(default_factory=list)


class ComparisonOptions(BaseModel):
    """Independently toggleable ignore rules. Pure configuration."""

    ignore_timestamps: bool = False
    ignore_ids: bool = False
    ignore_whitespace: bool = False
    case_insensitive: bool = False
    ignore_array_order: bool = False
    custom_ignore_paths: list[str] = Field(default_factory=list)


class HeadlineDifference(BaseModel):
    """Short summary entry (status / elapsed time) between two outcomes."""

    path: str
    reference_value: Any = None
    comparison_value: Any = None


class ComparisonView(BaseModel):
    """Ready-to-render pair of text blocks plus headline differences."""

    left_text: str = ""
    right_text: str = ""
    differences: list[HeadlineDifference] = Field(default_factory=list)
    scope_error: str | None = None


class HostComparison(BaseModel):
    host: HostSpec
    is_reference: bool = False
    differences: list[HeadlineDifference] = Field(default_factory=list)


class TemplateComparison(BaseModel):
    """Headline comparison of every host of a run against the reference host."""

    run: TemplateRun
    reference_index: int = Field(default=0, ge=0)
    hosts: list[HostComparison] = Field(default_factory=list)

    @property
    def reference(self) -> ExecutionOutcome | None:
        if not self.run.outcomes:
            return None
        return self.run.outcomes[self.reference_index]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating host or command text."""

    valid: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, reason: str) -> "ValidationResult":
        return cls(valid=False, reason=reason)


@dataclass(frozen=True)
class ScopeResult:
    """Path scoping result: the matched value or a typed error."""

    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
