"""Tests for the web search client."""

import httpx
import pytest

from sol_gateway.exceptions import SearchError
from sol_gateway.search import search_web


@pytest.mark.asyncio
async def test_search_maps_results():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        seen["key"] = request.headers["Ocp-Apim-Subscription-Key"]
        return httpx.Response(
            200,
            json={"webPages": {"value": [{"name": "Notion API", "url": "https://developers.notion.com", "snippet": "Docs"}]}},
        )

    results = await search_web("bing-key", "notion api", recency_days=7, transport=httpx.MockTransport(handler))

    assert results == [{"title": "Notion API", "url": "https://developers.notion.com", "snippet": "Docs"}]
    assert seen == {"params": {"q": "notion api", "freshness": "Day:7"}, "key": "bing-key"}


@pytest.mark.asyncio
async def test_search_without_web_pages():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))

    assert await search_web("bing-key", "nothing", transport=transport) == []


@pytest.mark.asyncio
async def test_search_provider_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "bad key"}))

    with pytest.raises(SearchError) as exc_info:
        await search_web("bad-key", "notion", transport=transport)

    assert exc_info.value.status_code == 502
    assert exc_info.value.to_payload() == {"ok": False, "error": "search_failed", "status": 401}
