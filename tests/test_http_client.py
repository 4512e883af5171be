import httpx
import pytest

from adapters.http_client import HttpxTransport, ProxyTransport, build_async_client
from core.config import AppSettings
from core.domain.models import ResolvedRequest
from core.interfaces.transport import HttpTransport


def _settings(**overrides) -> AppSettings:
    values = {"proxy_url": "http://localhost:3001/proxy", "user_agent": "hostdiff-test"}
    values.update(overrides)
    return AppSettings(**values)


@pytest.mark.anyio
async def test_httpx_transport_sends_method_headers_and_body():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["url"] = str(request.url)
        captured["headers"] = request.headers
        captured["body"] = request.content
        return httpx.Response(
            201,
            request=request,
            text='{"ok": true}',
            headers={"Content-Type": "application/json"},
        )

    settings = _settings()
    client = build_async_client(settings, transport=httpx.MockTransport(handler))
    try:
        transport = HttpxTransport(client, settings=settings)
        snapshot = await transport.send(
            ResolvedRequest(
                method="POST",
                url="http://api.test/items?x=1",
                headers={"Content-Type": "application/json"},
                body='{"a": 1}',
            )
        )
    finally:
        await client.aclose()

    assert isinstance(transport, HttpTransport)
    assert captured["method"] == "POST"
    assert captured["url"] == "http://api.test/items?x=1"
    assert captured["headers"]["content-type"] == "application/json"
    assert captured["headers"]["user-agent"] == "hostdiff-test"
    assert captured["body"] == b'{"a": 1}'
    assert snapshot.status == 201
    assert snapshot.reason == "Created"
    assert snapshot.body == '{"ok": true}'
    assert snapshot.headers["content-type"] == "application/json"


@pytest.mark.anyio
async def test_error_statuses_do_not_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, request=request, text="down")

    client = build_async_client(_settings(), transport=httpx.MockTransport(handler))
    try:
        snapshot = await HttpxTransport(client).send(ResolvedRequest(method="GET", url="http://api.test/"))
    finally:
        await client.aclose()

    assert snapshot.status == 503
    assert snapshot.body == "down"


@pytest.mark.anyio
async def test_connection_errors_propagate():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = build_async_client(_settings(), transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(httpx.ConnectError):
            await HttpxTransport(client).send(ResolvedRequest(method="GET", url="http://api.test/"))
    finally:
        await client.aclose()


def test_proxy_rewrites_target_and_drops_host_header():
    proxy = ProxyTransport(settings=_settings())

    proxied = proxy.proxied(
        ResolvedRequest(
            method="GET",
            url="https://api.test/a b?x=1&y=2",
            headers={"Host": "api.test", "Accept": "text/plain"},
        )
    )

    assert proxied.url == "http://localhost:3001/proxy?url=https%3A%2F%2Fapi.test%2Fa%20b%3Fx%3D1%26y%3D2"
    assert proxied.headers == {"Accept": "text/plain"}
    assert proxied.method == "GET"


@pytest.mark.anyio
async def test_proxy_transport_sends_through_proxy():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, request=request, text="via proxy")

    settings = _settings()
    client = build_async_client(settings, transport=httpx.MockTransport(handler))
    try:
        snapshot = await ProxyTransport(client, settings=settings).send(
            ResolvedRequest(method="DELETE", url="http://api.test/x", headers={"host": "api.test"})
        )
    finally:
        await client.aclose()

    assert snapshot.body == "via proxy"
    assert seen[0].method == "DELETE"
    assert seen[0].url.host == "localhost"
    assert seen[0].url.params["url"] == "http://api.test/x"
    assert seen[0].headers["host"] == "localhost:3001"
