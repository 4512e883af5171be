"""Host parsing and normalization.

Accepts whatever the user types in the hosts box (bare hostname, host:port,
IPv4 literal, full URL with path) and turns it into a `HostSpec` with a
canonical base URL. Parsing never raises; validation is a separate step.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable
from urllib.parse import urlsplit

from core.domain.models import HostSpec, ValidationResult

logger = logging.getLogger(__name__)

DEFAULT_SCHEME = "http"
# Stands in for a missing authority so every base URL stays absolute.
EMPTY_AUTHORITY = "localhost"

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_HOSTNAME_RE = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
_IPV4_RE = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")
_DEFAULT_PORTS = {"http": 80, "https": 443}


def _authority_text(trimmed: str) -> str:
    return _SCHEME_RE.sub("", trimmed, count=1).strip("/")


def _fallback_host(trimmed: str) -> HostSpec:
    logger.debug("Host %r did not parse as a URL, using it verbatim", trimmed)
    match = _SCHEME_RE.match(trimmed)
    scheme = match.group(0)[:-3].lower() if match else DEFAULT_SCHEME
    authority = _authority_text(trimmed) or EMPTY_AUTHORITY
    return HostSpec(
        original=trimmed,
        base_url=f"{scheme}://{authority}",
        hostname=authority,
    )


def parse_host(text: str) -> HostSpec:
    """Normalize free-form host text into a `HostSpec`.

    - Missing scheme defaults to `http://`.
    - Scheme and hostname are lower-cased, default ports dropped.
    - The path is kept as the base; one trailing slash is stripped unless the
      path is exactly "/".
    - Text without a usable authority (`""`, `"http://"`) falls back to
      `EMPTY_AUTHORITY`.
    """

    trimmed = (text or "").strip()
    url_text = trimmed if _SCHEME_RE.match(trimmed) else f"{DEFAULT_SCHEME}://{trimmed}"

    try:
        parts = urlsplit(url_text)
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return _fallback_host(trimmed)

    if not hostname:
        return _fallback_host(trimmed)

    scheme = parts.scheme.lower()
    authority = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        authority = f"{authority}:{port}"

    path = parts.path
    if path != "/" and path.endswith("/"):
        path = path[:-1]

    return HostSpec(
        original=trimmed,
        base_url=f"{scheme}://{authority}{path}",
        hostname=hostname,
    )


def parse_hosts(text: str | Iterable[str]) -> list[HostSpec]:
    """Parse several hosts, keeping order.

    A string is split on commas; empty segments are discarded. The first host
    is what callers use as the default reference.
    """

    if isinstance(text, str):
        segments = text.split(",")
    else:
        segments = list(text)
    return [parse_host(s) for s in segments if s and s.strip()]


def validate_host(text: str) -> ValidationResult:
    if not text or not text.strip():
        return ValidationResult.fail("Host cannot be empty")
    if not _authority_text(text.strip()):
        return ValidationResult.fail("Invalid host format")

    host = parse_host(text)
    if not host.hostname:
        return ValidationResult.fail("Invalid host format")
    if not _HOSTNAME_RE.match(host.hostname) and not _IPV4_RE.match(host.hostname):
        return ValidationResult.fail("Invalid hostname format")
    return ValidationResult.ok()
