"""Meta Graph API client and page access resolution.

The client is constructed explicitly and passed to whoever needs it, so
tests can swap the transport for an ``httpx.MockTransport``.
"""

import logging
from dataclasses import dataclass

import httpx

from errors import UpstreamError
from utils import (
    GRAPH_BASE, GRAPH_TIMEOUT, GRAPH_VERSION, PAGE_ID_ENV, USER_TOKEN_ENV,
    require_env,
)

logger = logging.getLogger(__name__)


@dataclass
class PageAccess:
    page_id: str
    page_access_token: str
    instagram_business_id: str | None = None


class GraphClient:
    def __init__(
        self,
        version: str = GRAPH_VERSION,
        base_url: str = GRAPH_BASE,
        timeout: float = GRAPH_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = f"{base_url.rstrip('/')}/{version}"
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _api(self, method: str, endpoint: str, **kwargs: object) -> dict:
        """Graph request that raises UpstreamError on any failure reply."""
        try:
            resp = await self.client.request(method, f"{self.base_url}/{endpoint}", **kwargs)
        except httpx.HTTPError as e:
            logger.error("Graph API %s %s failed: %s", method, endpoint, e)
            raise UpstreamError(f"Graph request to {endpoint} failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        error = data.get("error")
        if not resp.is_success or error:
            error = error if isinstance(error, dict) else {}
            message = error.get("message") or f"Graph request failed ({resp.status_code})"
            logger.error("Graph API %s %s → %s: %s", method, endpoint, resp.status_code, message)
            raise UpstreamError(message, status_code=resp.status_code, code=error.get("code"))
        return data

    async def get(self, endpoint: str, params: dict[str, str]) -> dict:
        return await self._api("GET", endpoint, params=params)

    async def post(self, endpoint: str, data: dict[str, str]) -> dict:
        """Form-encoded POST."""
        return await self._api("POST", endpoint, data=data)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "GraphClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


async def resolve_page_access(
    graph: GraphClient,
    user_token: str | None = None,
    page_id: str | None = None,
) -> PageAccess:
    """Exchange the long-lived user token for a page token and linked IG account.

    Called fresh for every publish; the result is never cached.
    """
    user_token = user_token or require_env(USER_TOKEN_ENV)
    page_id = page_id or require_env(PAGE_ID_ENV)

    data = await graph.get(
        page_id,
        params={"fields": "access_token,instagram_business_account", "access_token": user_token},
    )
    token = data.get("access_token")
    if not token:
        raise UpstreamError("Could not obtain a page access token")

    linked = data.get("instagram_business_account") or {}
    return PageAccess(
        page_id=page_id,
        page_access_token=token,
        instagram_business_id=linked.get("id"),
    )
