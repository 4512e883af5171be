"""httpx-backed transports.

- `build_async_client` standardizes timeouts, default headers and TLS policy
  so every dispatch behaves the same.
- `HttpxTransport` implements `core.interfaces.transport.HttpTransport`.
- `ProxyTransport` sends the same request through the local forwarding proxy
  (`settings.proxy_url?url=<target>`); the scheduler uses it as its single
  fallback path.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from core.config import AppSettings
from core.domain.models import ResolvedRequest, ResponseSnapshot

logger = logging.getLogger(__name__)


def build_async_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an `httpx.AsyncClient` with the project's defaults.

    `transport` lets tests plug in `httpx.MockTransport`.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "*/*",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        verify=settings.verify_tls,
        transport=transport,
    )


def snapshot_response(response: httpx.Response) -> ResponseSnapshot:
    return ResponseSnapshot(
        status=response.status_code,
        reason=response.reason_phrase or "",
        headers=dict(response.headers.items()),
        body=response.text,
    )


class HttpxTransport:
    """Direct transport.

    With a shared `client` every request reuses its connection pool; without
    one, each request opens (and closes) its own client.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        settings: AppSettings | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._client = client

    async def send(self, request: ResolvedRequest) -> ResponseSnapshot:
        if self._client is not None:
            return await self._send_with(self._client, request)
        async with build_async_client(self._settings) as client:
            return await self._send_with(client, request)

    async def _send_with(self, client: httpx.AsyncClient, request: ResolvedRequest) -> ResponseSnapshot:
        content = request.body.encode("utf-8") if request.body is not None else None
        response = await client.request(
            request.method,
            request.url,
            headers=request.headers,
            content=content,
        )
        logger.debug("%s %s -> %d", request.method, request.url, response.status_code)
        return snapshot_response(response)


class ProxyTransport(HttpxTransport):
    """Indirect transport through the local forwarding proxy.

    The target URL travels as the `url` query parameter; any explicit Host
    header is dropped because the proxy sets it for the target.
    """

    def proxied(self, request: ResolvedRequest) -> ResolvedRequest:
        headers = {k: v for k, v in request.headers.items() if k.lower() != "host"}
        url = f"{self._settings.proxy_url}?url={quote(request.url, safe='')}"
        return request.model_copy(update={"url": url, "headers": headers})

    async def _send_with(self, client: httpx.AsyncClient, request: ResolvedRequest) -> ResponseSnapshot:
        return await super()._send_with(client, self.proxied(request))
