"""Transport contract used by the scheduler.

A structural Protocol: the scheduler depends on "perform one HTTP call and
return a snapshot or raise", never on httpx directly. Tests plug in fakes.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.models import ResolvedRequest, ResponseSnapshot


@runtime_checkable
class HttpTransport(Protocol):
    """Minimal contract for a request performer.

    Rules:
    - `send` is async because it does network I/O.
    - Any received status code (including 4xx/5xx) is returned, not raised.
    - Transport-level failures (DNS, connection, TLS) raise.
    """

    async def send(self, request: ResolvedRequest) -> ResponseSnapshot:
        """Perform `request` and return the normalized response."""

        ...
