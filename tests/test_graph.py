"""Tests for graph.py — error translation and page access resolution."""

import httpx
import pytest

from conftest import PAGE_ID, FakeGraph
from errors import ConfigurationError, UpstreamError
from graph import GraphClient, resolve_page_access


def _client(handler) -> GraphClient:
    return GraphClient(version="v21.0", transport=httpx.MockTransport(handler))


# -- GraphClient --

@pytest.mark.asyncio
async def test_post_is_form_encoded_against_versioned_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["type"] = request.headers["content-type"]
        seen["body"] = request.read().decode()
        return httpx.Response(200, json={"id": "42"})

    async with _client(handler) as graph:
        result = await graph.post("page-1/photos", data={"url": "https://x/a.jpg", "published": "false"})

    assert result == {"id": "42"}
    assert seen["url"] == "https://graph.facebook.com/v21.0/page-1/photos"
    assert seen["type"].startswith("application/x-www-form-urlencoded")
    assert "published=false" in seen["body"]


@pytest.mark.asyncio
async def test_non_2xx_raises_with_vendor_message():
    def handler(request):
        return httpx.Response(400, json={"error": {"message": "Invalid parameter", "code": 100}})

    async with _client(handler) as graph:
        with pytest.raises(UpstreamError, match="Invalid parameter") as exc:
            await graph.post("page-1/feed", data={})
    assert exc.value.status_code == 400
    assert exc.value.code == 100


@pytest.mark.asyncio
async def test_embedded_error_on_200_raises():
    def handler(request):
        return httpx.Response(200, json={"error": {"message": "Token expired"}})

    async with _client(handler) as graph:
        with pytest.raises(UpstreamError, match="Token expired"):
            await graph.get("page-1", params={})


@pytest.mark.asyncio
async def test_non_json_failure_gets_generic_message():
    def handler(request):
        return httpx.Response(502, text="<html>bad gateway</html>")

    async with _client(handler) as graph:
        with pytest.raises(UpstreamError, match=r"Graph request failed \(502\)"):
            await graph.get("page-1", params={})


@pytest.mark.asyncio
async def test_transport_error_wrapped():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as graph:
        with pytest.raises(UpstreamError, match="connection refused") as exc:
            await graph.post("page-1/photos", data={})
    assert exc.value.status_code is None


# -- resolve_page_access --

@pytest.mark.asyncio
async def test_resolves_page_token_and_instagram_account(meta_env, fake_graph):
    async with fake_graph.client() as graph:
        access = await resolve_page_access(graph)

    assert access.page_id == PAGE_ID
    assert access.page_access_token == "page-token"
    assert access.instagram_business_id == "ig-1"
    method, endpoint, params = fake_graph.calls[0]
    assert (method, endpoint) == ("GET", PAGE_ID)
    assert params == {"fields": "access_token,instagram_business_account", "access_token": "user-token"}


@pytest.mark.asyncio
async def test_unlinked_page_has_no_instagram_id(meta_env):
    fake = FakeGraph(page_reply={"access_token": "page-token"})
    async with fake.client() as graph:
        access = await resolve_page_access(graph)
    assert access.instagram_business_id is None


@pytest.mark.asyncio
async def test_missing_access_token_in_reply_raises(meta_env):
    fake = FakeGraph(page_reply={"id": PAGE_ID})
    async with fake.client() as graph:
        with pytest.raises(UpstreamError, match="page access token"):
            await resolve_page_access(graph)


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["FACEBOOK_ACCESS_TOKEN", "FB_PAGE_ID"])
async def test_missing_configuration_raises_before_network(meta_env, monkeypatch, fake_graph, missing):
    monkeypatch.delenv(missing)
    async with fake_graph.client() as graph:
        with pytest.raises(ConfigurationError, match=missing):
            await resolve_page_access(graph)
    assert fake_graph.calls == []


@pytest.mark.asyncio
async def test_resolved_fresh_every_call(meta_env, fake_graph):
    async with fake_graph.client() as graph:
        await resolve_page_access(graph)
        await resolve_page_access(graph)
    assert len(fake_graph.calls) == 2
