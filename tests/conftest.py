"""Shared fixtures: a scripted fake of the Graph API behind httpx.MockTransport."""

from urllib.parse import parse_qsl

import httpx
import pytest

from graph import GraphClient
from store import Product, ProductImage

PAGE_ID = "page-1"


class FakeGraph:
    """Records every Graph call and answers with predictable ids.

    Photo ids are ``photo-<url>``, single media containers ``container-<url>``,
    the carousel parent ``carousel-1``, feed posts ``feed-1`` and published
    Instagram media ``ig-post-1``.
    """

    def __init__(self, statuses: list[str] | None = None, page_reply: dict | None = None):
        self.calls: list[tuple[str, str, dict]] = []
        self.statuses = list(statuses or ["FINISHED"])
        self.page_reply = page_reply if page_reply is not None else {
            "access_token": "page-token",
            "instagram_business_account": {"id": "ig-1"},
        }
        self.failures: dict[str, tuple[int, dict]] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.split("/", 2)[2]
        if request.method == "GET":
            params = dict(request.url.params)
        else:
            params = dict(parse_qsl(request.read().decode()))
        self.calls.append((request.method, endpoint, params))

        for suffix, (status, body) in self.failures.items():
            if endpoint.endswith(suffix):
                return httpx.Response(status, json=body)

        if request.method == "GET":
            if endpoint == PAGE_ID:
                return httpx.Response(200, json=self.page_reply)
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            return httpx.Response(200, json={"status_code": status})

        if endpoint.endswith("/photos"):
            return httpx.Response(200, json={"id": f"photo-{params['url']}"})
        if endpoint.endswith("/feed"):
            return httpx.Response(200, json={"id": "feed-1"})
        if endpoint.endswith("/media_publish"):
            return httpx.Response(200, json={"id": "ig-post-1"})
        if endpoint.endswith("/media"):
            if params.get("media_type") == "CAROUSEL":
                return httpx.Response(200, json={"id": "carousel-1"})
            return httpx.Response(200, json={"id": f"container-{params['image_url']}"})
        return httpx.Response(404, json={"error": {"message": f"Unknown endpoint {endpoint}"}})

    def client(self) -> GraphClient:
        return GraphClient(version="v21.0", transport=httpx.MockTransport(self.handler))

    def posts_to(self, suffix: str) -> list[dict]:
        return [params for method, endpoint, params in self.calls if method == "POST" and endpoint.endswith(suffix)]

    def status_queries(self) -> int:
        return sum(1 for method, endpoint, _ in self.calls if method == "GET" and endpoint != PAGE_ID)


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def meta_env(monkeypatch):
    monkeypatch.setenv("FACEBOOK_ACCESS_TOKEN", "user-token")
    monkeypatch.setenv("FB_PAGE_ID", PAGE_ID)


def make_product(urls: list[str], main: int | None = None, **fields) -> Product:
    images = [ProductImage(url=url, is_main=(i == main)) for i, url in enumerate(urls)]
    return Product(id=fields.pop("id", "p1"), name=fields.pop("name", "Lamp"), images=images, **fields)
