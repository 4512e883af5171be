"""`{host}` placeholder resolution.

Turns a host-independent `RequestTemplate` into a concrete `ResolvedRequest`
for one `HostSpec`. The placeholder is always replaced by the host's full base
URL (scheme + authority + base path).
"""

from __future__ import annotations

import logging
import re
from typing import Iterable
from urllib.parse import urljoin

from core.domain.models import HostSpec, RequestTemplate, ResolvedRequest
from core.services.command_parser import PLACEHOLDER

logger = logging.getLogger(__name__)

_SCHEME_ONLY_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://$")


def _join(base: str, rest: str) -> str:
    """Concatenate base and remainder with exactly one slash between them."""

    if not rest:
        return base
    if rest[0] in "?#":
        return base + rest
    return base.rstrip("/") + "/" + rest.lstrip("/")


def _substitute(value: str, host: HostSpec) -> str:
    return value.replace(PLACEHOLDER, host.base_url)


def resolve_url(url: str, host: HostSpec) -> str:
    if PLACEHOLDER in url:
        head, _, rest = url.partition(PLACEHOLDER)
        if head and not _SCHEME_ONLY_RE.match(head):
            logger.debug("Dropping %r in front of %s in %r", head, PLACEHOLDER, url)
        return _join(host.base_url, _substitute(rest, host))
    return urljoin(host.base_url.rstrip("/") + "/", url)


def resolve(template: RequestTemplate, host: HostSpec) -> ResolvedRequest:
    """Resolve `template` against `host`.

    URL: text before the placeholder (e.g. a scheme) is replaced by the host
    base; without a placeholder the URL is resolved relative to the base.
    Headers and body get plain-text substitution; everything else passes
    through.
    """

    return ResolvedRequest(
        method=template.method,
        url=resolve_url(template.url, host),
        headers={key: _substitute(value, host) for key, value in template.headers.items()},
        body=_substitute(template.body, host) if template.body is not None else None,
    )


def batch_resolve(template: RequestTemplate, hosts: Iterable[HostSpec]) -> list[ResolvedRequest]:
    return [resolve(template, host) for host in hosts]


def render_command_for_host(command: str, host: HostSpec) -> str:
    """Textual preview of a command for one host (every placeholder replaced)."""

    return _substitute(command, host)
