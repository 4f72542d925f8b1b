"""Web search through the Bing Web Search API."""

import httpx

from sol_gateway.exceptions import SearchError

BING_SEARCH_URL = "https://api.bing.microsoft.com/v7.0/search"


def simulated_results(query: str) -> list[dict]:
    return [
        {
            "title": f"Simulated result for: {query}",
            "url": "https://example.com/1",
            "snippet": "Stubbed snippet (set SEARCH_API_KEY for live search)",
        }
    ]


async def search_web(
    api_key: str,
    query: str,
    recency_days: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[dict]:
    """Return ``[{title, url, snippet}]`` for the query."""
    params: dict = {"q": query}
    if recency_days:
        params["freshness"] = f"Day:{recency_days}"

    try:
        async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
            response = await client.get(
                BING_SEARCH_URL,
                params=params,
                headers={"Ocp-Apim-Subscription-Key": api_key},
            )
    except httpx.HTTPError as e:
        raise SearchError(f"Search request failed: {e}") from e

    if response.status_code >= 400:
        raise SearchError(f"Search API error ({response.status_code})", status=response.status_code)

    data = response.json()
    return [
        {"title": r.get("name"), "url": r.get("url"), "snippet": r.get("snippet")}
        for r in (data.get("webPages") or {}).get("value", [])
    ]
